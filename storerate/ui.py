"""Server-rendered pages for the three roles.

The logged-in user is kept in a signed ``session`` cookie; every page
resolves it and redirects to the login page when the role does not match.
"""
from pathlib import Path

import jwt
from fastapi import APIRouter, Depends, Form, HTTPException, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from sqlalchemy.orm import Session

from . import crud, models
from .auth import SESSION_COOKIE, SESSION_SECONDS, create_session_token, decode_session_token
from .db import get_db
from .errors import Conflict, InvalidCredentials, NotFound, ValidationFailed
from .utils import sanitize_input

templates = Jinja2Templates(directory=Path(__file__).parent / "templates")
router = APIRouter(prefix="/ui", include_in_schema=False)

HOME_FOR_ROLE = {
    models.ROLE_USER: "/ui/user",
    models.ROLE_ADMIN: "/ui/admin",
    models.ROLE_STORE_OWNER: "/ui/owner",
}


def session_user(request: Request, db: Session = Depends(get_db)) -> models.User | None:
    token = request.cookies.get(SESSION_COOKIE)
    if not token:
        return None
    try:
        payload = decode_session_token(token)
    except jwt.PyJWTError:
        return None
    return db.get(models.User, int(payload["sub"]))


def require_role(*roles: str):
    def dependency(user: models.User | None = Depends(session_user)) -> models.User:
        if user is None or (roles and user.role not in roles):
            # a 303 with Location sends the browser to the login page
            raise HTTPException(status_code=303, headers={"Location": "/ui/login"})
        return user
    return dependency


def login_redirect(user: models.User) -> RedirectResponse:
    response = RedirectResponse(url=HOME_FOR_ROLE.get(user.role, "/ui/login"), status_code=303)
    response.set_cookie(
        SESSION_COOKIE,
        create_session_token(user.id, user.role),
        max_age=SESSION_SECONDS,
        httponly=True,
        samesite="lax",
    )
    return response


def render(request: Request, template: str, status_code: int = 200, **context):
    return templates.TemplateResponse(request, template, context, status_code=status_code)


# -------------------- session --------------------

@router.get("", response_class=HTMLResponse)
async def ui_index(user: models.User | None = Depends(session_user)):
    if user is None:
        return RedirectResponse(url="/ui/login", status_code=303)
    return RedirectResponse(url=HOME_FOR_ROLE.get(user.role, "/ui/login"), status_code=303)


@router.get("/login", response_class=HTMLResponse)
async def ui_login_form(request: Request):
    return render(request, "login.html", email="", error=None, errors={})


@router.post("/login")
async def ui_login(request: Request, email: str = Form(""), password: str = Form(""), db: Session = Depends(get_db)):
    try:
        user = crud.authenticate(db, {"email": email, "password": password})
    except ValidationFailed as e:
        return render(request, "login.html", status_code=400, email=email, error=None, errors=e.errors)
    except InvalidCredentials as e:
        return render(request, "login.html", status_code=401, email=email, error=str(e), errors={})
    return login_redirect(user)


@router.get("/register", response_class=HTMLResponse)
async def ui_register_form(request: Request):
    return render(request, "register.html", form={"role": models.ROLE_USER}, roles=models.ROLES, error=None, errors={})


@router.post("/register")
async def ui_register(
    request: Request,
    name: str = Form(""),
    email: str = Form(""),
    address: str = Form(""),
    password: str = Form(""),
    role: str = Form(models.ROLE_USER),
    db: Session = Depends(get_db),
):
    form = {"name": name, "email": email, "address": address, "password": password, "role": role}
    try:
        user = crud.create_user(db, form)
    except ValidationFailed as e:
        return render(request, "register.html", status_code=400, form=form, roles=models.ROLES, error=None, errors=e.errors)
    except Conflict as e:
        return render(request, "register.html", status_code=409, form=form, roles=models.ROLES, error=str(e), errors={})
    return login_redirect(user)


@router.post("/logout")
async def ui_logout():
    response = RedirectResponse(url="/ui/login", status_code=303)
    response.delete_cookie(SESSION_COOKIE)
    return response


@router.get("/password", response_class=HTMLResponse)
async def ui_password_form(request: Request, user: models.User = Depends(require_role())):
    return render(request, "password.html", user=user, home=HOME_FOR_ROLE[user.role], message=None, errors={})


@router.post("/password")
async def ui_password(
    request: Request,
    oldPassword: str = Form(""),
    newPassword: str = Form(""),
    user: models.User = Depends(require_role()),
    db: Session = Depends(get_db),
):
    home = HOME_FOR_ROLE[user.role]
    try:
        crud.update_password(db, {"userId": user.id, "oldPassword": oldPassword, "newPassword": newPassword})
    except ValidationFailed as e:
        return render(request, "password.html", status_code=400, user=user, home=home, message=None, errors=e.errors)
    return render(request, "password.html", user=user, home=home, message="Password updated successfully", errors={})


# -------------------- user --------------------

@router.get("/user", response_class=HTMLResponse)
async def ui_user_home(
    request: Request,
    name: str = "",
    address: str = "",
    user: models.User = Depends(require_role(models.ROLE_USER)),
    db: Session = Depends(get_db),
):
    clean_name = sanitize_input(name)
    clean_address = sanitize_input(address)
    toast = None
    if clean_name != name.strip() or clean_address != address.strip():
        toast = "Invalid input detected, input has been sanitized for safety."
    stores = crud.search_stores(db, user.id, name=clean_name, address=clean_address)
    return render(
        request,
        "user_home.html",
        user=user,
        stores=stores,
        name=clean_name,
        address=clean_address,
        toast=toast,
        error=None,
    )


@router.post("/user/stores/{store_id}/rate")
async def ui_rate_store(
    request: Request,
    store_id: int,
    rating: str = Form(""),
    comment: str = Form(""),
    user: models.User = Depends(require_role(models.ROLE_USER)),
    db: Session = Depends(get_db),
):
    try:
        crud.submit_rating(db, user.id, store_id, rating, comment=comment or None)
    except ValidationFailed as e:
        stores = crud.search_stores(db, user.id)
        return render(
            request, "user_home.html", status_code=400,
            user=user, stores=stores, name="", address="", toast=None, error=e.errors.get("rating"),
        )
    except NotFound as e:
        stores = crud.search_stores(db, user.id)
        return render(
            request, "user_home.html", status_code=404,
            user=user, stores=stores, name="", address="", toast=None, error=str(e),
        )
    return RedirectResponse(url="/ui/user", status_code=303)


# -------------------- admin --------------------

@router.get("/admin", response_class=HTMLResponse)
async def ui_admin_home(
    request: Request,
    user: models.User = Depends(require_role(models.ROLE_ADMIN)),
    db: Session = Depends(get_db),
):
    return render(request, "admin_home.html", user=user, totals=crud.count_totals(db))


@router.get("/admin/users", response_class=HTMLResponse)
async def ui_admin_users(
    request: Request,
    q: str = "",
    role: str = "",
    user: models.User = Depends(require_role(models.ROLE_ADMIN)),
    db: Session = Depends(get_db),
):
    q = sanitize_input(q)
    rows = crud.list_users_with_stats(db)
    if role:
        rows = [r for r in rows if r.role == role]
    if q:
        needle = q.lower()
        rows = [r for r in rows if needle in r.name.lower() or needle in r.email.lower() or needle in r.address.lower()]
    return render(request, "admin_users.html", user=user, users=rows, q=q, role=role, roles=models.ROLES)


@router.get("/admin/users/new", response_class=HTMLResponse)
async def ui_admin_user_form(request: Request, user: models.User = Depends(require_role(models.ROLE_ADMIN))):
    return render(request, "admin_user_form.html", user=user, form={"role": models.ROLE_USER}, roles=models.ROLES, error=None, errors={})


@router.post("/admin/users/new")
async def ui_admin_create_user(
    request: Request,
    name: str = Form(""),
    email: str = Form(""),
    address: str = Form(""),
    password: str = Form(""),
    role: str = Form(models.ROLE_USER),
    user: models.User = Depends(require_role(models.ROLE_ADMIN)),
    db: Session = Depends(get_db),
):
    form = {"name": name, "email": email, "address": address, "password": password, "role": role}
    try:
        crud.create_user(db, form)
    except ValidationFailed as e:
        return render(request, "admin_user_form.html", status_code=400, user=user, form=form, roles=models.ROLES, error=None, errors=e.errors)
    except Conflict as e:
        return render(request, "admin_user_form.html", status_code=409, user=user, form=form, roles=models.ROLES, error=str(e), errors={})
    return RedirectResponse(url="/ui/admin/users", status_code=303)


@router.get("/admin/users/{user_id}", response_class=HTMLResponse)
async def ui_admin_user_detail(
    request: Request,
    user_id: int,
    user: models.User = Depends(require_role(models.ROLE_ADMIN)),
    db: Session = Depends(get_db),
):
    try:
        detail = crud.get_user_with_stats(db, user_id)
    except NotFound as e:
        return render(request, "admin_user_detail.html", status_code=404, user=user, detail=None, error=str(e))
    return render(request, "admin_user_detail.html", user=user, detail=detail, error=None)


@router.get("/admin/stores", response_class=HTMLResponse)
async def ui_admin_stores(
    request: Request,
    q: str = "",
    user: models.User = Depends(require_role(models.ROLE_ADMIN)),
    db: Session = Depends(get_db),
):
    q = sanitize_input(q)
    rows = crud.list_stores_with_stats(db)
    if q:
        needle = q.lower()
        rows = [r for r in rows if needle in r.name.lower() or needle in r.email.lower()]
    return render(request, "admin_stores.html", user=user, stores=rows, q=q)


def _store_owners(db: Session):
    return (
        db.query(models.User)
        .filter(models.User.role == models.ROLE_STORE_OWNER)
        .order_by(models.User.name)
        .all()
    )


@router.get("/admin/stores/new", response_class=HTMLResponse)
async def ui_admin_store_form(
    request: Request,
    user: models.User = Depends(require_role(models.ROLE_ADMIN)),
    db: Session = Depends(get_db),
):
    return render(request, "admin_store_form.html", user=user, form={}, owners=_store_owners(db), errors={})


@router.post("/admin/stores/new")
async def ui_admin_create_store(
    request: Request,
    name: str = Form(""),
    email: str = Form(""),
    address: str = Form(""),
    owner_user_id: str = Form(""),
    user: models.User = Depends(require_role(models.ROLE_ADMIN)),
    db: Session = Depends(get_db),
):
    form = {"name": name, "email": email, "address": address, "owner_user_id": owner_user_id}
    try:
        crud.create_store(db, form)
    except ValidationFailed as e:
        return render(request, "admin_store_form.html", status_code=400, user=user, form=form, owners=_store_owners(db), errors=e.errors)
    return RedirectResponse(url="/ui/admin/stores", status_code=303)


# -------------------- store owner --------------------

@router.get("/owner", response_class=HTMLResponse)
async def ui_owner_home(
    request: Request,
    user: models.User = Depends(require_role(models.ROLE_STORE_OWNER)),
    db: Session = Depends(get_db),
):
    try:
        store = crud.get_store_by_owner(db, user.id)
    except NotFound:
        return render(request, "owner_home.html", user=user, store=None, raters=[])
    raters = crud.list_store_rating_users(db, store.id)
    return render(request, "owner_home.html", user=user, store=store, raters=raters)


@router.get("/owner/store", response_class=HTMLResponse)
async def ui_owner_store_form(request: Request, user: models.User = Depends(require_role(models.ROLE_STORE_OWNER))):
    return render(request, "owner_store_form.html", user=user, form={"email": user.email, "address": user.address}, error=None, errors={})


@router.post("/owner/store")
async def ui_owner_create_store(
    request: Request,
    name: str = Form(""),
    email: str = Form(""),
    address: str = Form(""),
    user: models.User = Depends(require_role(models.ROLE_STORE_OWNER)),
    db: Session = Depends(get_db),
):
    form = {"name": name, "email": email, "address": address, "owner_user_id": user.id}
    try:
        crud.create_store(db, form, single_store=True)
    except ValidationFailed as e:
        return render(request, "owner_store_form.html", status_code=400, user=user, form=form, error=None, errors=e.errors)
    except Conflict as e:
        return render(request, "owner_store_form.html", status_code=409, user=user, form=form, error=str(e), errors={})
    return RedirectResponse(url="/ui/owner", status_code=303)
