import logging
from pathlib import Path
from typing import List, Optional

from fastapi import FastAPI, Depends, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import crud, schemas
from .config import settings
from .db import engine, get_db
from .errors import Conflict, InvalidCredentials, NotFound, ValidationFailed
from .logs import EndpointFilter, setup_logging
from .schema import init_db
from .ui import router as ui_router
from .validators import as_int

setup_logging(settings.log_level)
logging.getLogger("uvicorn.access").addFilter(EndpointFilter())
logger = logging.getLogger(__name__)

app = FastAPI(title="StoreRate")

if settings.cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

app.mount("/static", StaticFiles(directory=Path(__file__).parent / "static"), name="static")
app.include_router(ui_router)


@app.on_event("startup")
async def create_schema():
    # Create tables if not existing and seed an empty database
    init_db(engine, seed=settings.seed_on_startup)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    response = await call_next(request)
    logger.info(f"{request.method} {request.url.path}", extra={"status_code": response.status_code})
    return response


# -------------------- error mapping --------------------

@app.exception_handler(ValidationFailed)
async def validation_failed_handler(request: Request, exc: ValidationFailed):
    return JSONResponse(status_code=400, content={"detail": str(exc), "errors": exc.errors})


@app.exception_handler(InvalidCredentials)
async def invalid_credentials_handler(request: Request, exc: InvalidCredentials):
    return JSONResponse(status_code=401, content={"detail": str(exc)})


@app.exception_handler(NotFound)
async def not_found_handler(request: Request, exc: NotFound):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(Conflict)
async def conflict_handler(request: Request, exc: Conflict):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(SQLAlchemyError)
async def storage_error_handler(request: Request, exc: SQLAlchemyError):
    # never leak SQL or driver messages to the client
    logger.exception("storage failure on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# -------------------- misc --------------------

@app.get("/")
async def root():
    return {"message": "StoreRate API is running"}


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.post("/init", response_model=schemas.Message)
async def initialize_database():
    init_db(engine, seed=True)
    return {"message": "Database initialized successfully"}


# -------------------- auth --------------------

@app.post("/api/auth/register", response_model=schemas.UserPublic, status_code=201)
async def register(payload: dict, db: Session = Depends(get_db)):
    return crud.create_user(db, payload)


@app.post("/api/auth/login", response_model=schemas.UserPublic)
async def login(payload: dict, db: Session = Depends(get_db)):
    # No token: the client keeps the returned user record
    return crud.authenticate(db, payload)


@app.put("/api/auth/password", response_model=schemas.Message)
async def change_password(payload: dict, db: Session = Depends(get_db)):
    crud.update_password(db, payload)
    return {"message": "Password updated successfully"}


# -------------------- user --------------------

@app.get("/api/user/stores", response_model=List[schemas.StoreSearchRow])
async def list_stores_for_user(
    userId: Optional[str] = None,
    name: Optional[str] = None,
    address: Optional[str] = None,
    db: Session = Depends(get_db),
):
    return crud.search_stores(db, as_int(userId), name=name, address=address)


@app.post("/api/user/stores/{store_id}/rate")
async def rate_store(store_id: int, payload: dict, db: Session = Depends(get_db)):
    summary = crud.submit_rating(
        db,
        payload.get("userId"),
        store_id,
        payload.get("rating"),
        comment=payload.get("comment"),
    )
    if summary is None:
        return {"message": "Rating submitted but store not found"}
    return summary.model_dump(mode="json", by_alias=True)


# -------------------- admin --------------------

@app.get("/api/admin/users", response_model=List[schemas.UserAdminRow])
async def admin_list_users(db: Session = Depends(get_db)):
    return crud.list_users_with_stats(db)


@app.get("/api/admin/users/{user_id}", response_model=schemas.UserAdminRow)
async def admin_get_user(user_id: int, db: Session = Depends(get_db)):
    return crud.get_user_with_stats(db, user_id)


@app.post("/api/admin/users", response_model=schemas.UserCreated, status_code=201)
async def admin_create_user(payload: dict, db: Session = Depends(get_db)):
    return crud.create_user(db, payload)


@app.get("/api/admin/stores", response_model=List[schemas.StoreAdminRow])
async def admin_list_stores(db: Session = Depends(get_db)):
    return crud.list_stores_with_stats(db)


@app.post("/api/admin/stores", response_model=schemas.StoreCreated, status_code=201)
async def admin_create_store(payload: dict, db: Session = Depends(get_db)):
    return crud.create_store(db, payload)


@app.get("/api/admin/stores/owner/{owner_id}", response_model=schemas.OwnerStore)
async def admin_store_by_owner(owner_id: int, db: Session = Depends(get_db)):
    return crud.get_store_by_owner(db, owner_id)


@app.get("/api/admin/stores/{store_id}/ratings/users", response_model=List[schemas.RatingUser])
async def admin_store_rating_users(store_id: int, db: Session = Depends(get_db)):
    return crud.list_store_rating_users(db, store_id)
