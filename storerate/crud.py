import logging
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, aliased

from . import models, schemas
from .auth import hash_password, verify_password
from .errors import Conflict, InvalidCredentials, NotFound, ValidationFailed
from .utils import clean_text, round_rating
from .validators import (
    as_int,
    is_valid_rating,
    normalize_role,
    validate_login,
    validate_password_update,
    validate_registration,
    validate_store,
)

logger = logging.getLogger(__name__)


# -------------------- users / auth --------------------

def get_user_by_email(db: Session, email: str) -> models.User | None:
    return db.query(models.User).filter(models.User.email == email).first()


def create_user(db: Session, data: dict) -> models.User:
    """Validate a registration payload and insert the user with a hashed password."""
    errors = validate_registration(data)
    if errors:
        raise ValidationFailed(errors)

    email = data["email"].strip()
    if get_user_by_email(db, email):
        raise Conflict("Email already in use")

    db_user = models.User(
        name=data["name"].strip(),
        email=email,
        address=data["address"].strip(),
        password_hash=hash_password(data["password"]),
        role=normalize_role(data["role"]),
    )
    db.add(db_user)
    try:
        db.commit()
    except IntegrityError as e:
        # concurrent registration with the same email lost the race
        db.rollback()
        raise Conflict("Email already in use") from e
    db.refresh(db_user)
    logger.info("created user %s with role %s", db_user.id, db_user.role)
    return db_user


def authenticate(db: Session, data: dict) -> models.User:
    errors = validate_login(data)
    if errors:
        raise ValidationFailed(errors)
    user = get_user_by_email(db, data["email"].strip())
    # same error for unknown email and wrong password
    if not user or not verify_password(data["password"], user.password_hash):
        logger.info("failed login attempt")
        raise InvalidCredentials()
    return user


def update_password(db: Session, data: dict) -> None:
    errors = validate_password_update(data)
    if errors:
        raise ValidationFailed(errors)
    user = db.get(models.User, as_int(data["userId"]))
    if not user:
        raise NotFound("User not found")
    if not verify_password(data["oldPassword"], user.password_hash):
        raise ValidationFailed({"oldPassword": "Current password is incorrect"})
    user.password_hash = hash_password(data["newPassword"])
    db.add(user)
    db.commit()
    logger.info("password updated for user %s", user.id)


def _store_stats_query():
    """Users joined to any owned store and that store's ratings."""
    return (
        select(
            models.User.id,
            models.User.name,
            models.User.email,
            models.User.address,
            models.User.role,
            models.User.created_at,
            models.Store.id.label("store_id"),
            func.coalesce(func.avg(models.Rating.rating), 0).label("store_average_rating"),
            func.count(models.Rating.id).label("ratings_count"),
        )
        .outerjoin(models.Store, models.Store.owner_user_id == models.User.id)
        .outerjoin(models.Rating, models.Rating.store_id == models.Store.id)
        .group_by(
            models.User.id,
            models.User.name,
            models.User.email,
            models.User.address,
            models.User.role,
            models.User.created_at,
            models.Store.id,
        )
    )


def _user_row(row) -> schemas.UserAdminRow:
    return schemas.UserAdminRow(
        id=row.id,
        name=row.name,
        email=row.email,
        address=row.address,
        role=row.role,
        created_at=row.created_at,
        store_id=row.store_id,
        store_average_rating=round_rating(row.store_average_rating),
        ratings_count=row.ratings_count,
    )


def list_users_with_stats(db: Session) -> List[schemas.UserAdminRow]:
    stmt = _store_stats_query().order_by(func.lower(models.User.name), models.User.name, models.User.id)
    return [_user_row(r) for r in db.execute(stmt).all()]


def get_user_with_stats(db: Session, user_id: int) -> schemas.UserAdminRow:
    if as_int(user_id) is None:
        raise NotFound("User not found")
    stmt = _store_stats_query().where(models.User.id == user_id).order_by(models.Store.id.asc())
    row = db.execute(stmt).first()
    if row is None:
        raise NotFound("User not found")
    return _user_row(row)


# -------------------- stores / ratings --------------------

def _aggregate_query(user_id: Optional[int] = None):
    """Stores left-joined to their ratings with average and count.

    When ``user_id`` is given a correlated subquery adds that user's own rating.
    """
    own = aliased(models.Rating)
    columns = [
        models.Store.id,
        models.Store.name,
        models.Store.email,
        models.Store.address,
        models.Store.owner_user_id,
        models.Store.created_at,
        func.coalesce(func.avg(models.Rating.rating), 0).label("average_rating"),
        func.count(models.Rating.id).label("ratings_count"),
    ]
    if user_id is not None:
        own_rating = (
            select(own.rating)
            .where(own.store_id == models.Store.id, own.user_id == user_id)
            .correlate(models.Store)
            .scalar_subquery()
        )
        columns.append(own_rating.label("user_rating"))
    return (
        select(*columns)
        .outerjoin(models.Rating, models.Rating.store_id == models.Store.id)
        .group_by(
            models.Store.id,
            models.Store.name,
            models.Store.email,
            models.Store.address,
            models.Store.owner_user_id,
            models.Store.created_at,
        )
    )


def _search_row(row) -> schemas.StoreSearchRow:
    return schemas.StoreSearchRow(
        id=row.id,
        name=row.name,
        address=row.address,
        average_rating=round_rating(row.average_rating),
        ratings_count=row.ratings_count,
        user_rating=round_rating(row.user_rating),
    )


def search_stores(
    db: Session, user_id: Optional[int], name: Optional[str] = None, address: Optional[str] = None
) -> List[schemas.StoreSearchRow]:
    """Every store matching the filters with its aggregate and the requester's rating.

    Filters are case-insensitive substring matches, ANDed when both are given.
    LIKE wildcards in the filter text match literally.
    """
    if user_id is None:
        raise ValidationFailed({"userId": "User ID is required"})
    stmt = _aggregate_query(user_id)
    if name:
        stmt = stmt.where(models.Store.name.icontains(name, autoescape=True))
    if address:
        stmt = stmt.where(models.Store.address.icontains(address, autoescape=True))
    stmt = stmt.order_by(func.lower(models.Store.name), models.Store.name, models.Store.id)
    return [_search_row(r) for r in db.execute(stmt).all()]


def get_store_summary(db: Session, store_id: int, user_id: int) -> schemas.StoreSearchRow | None:
    stmt = _aggregate_query(user_id).where(models.Store.id == store_id)
    row = db.execute(stmt).first()
    return _search_row(row) if row else None


def _upsert_rating_stmt(dialect: str, values: dict):
    table = models.Rating.__table__
    if dialect == "mysql" or dialect == "mariadb":
        from sqlalchemy.dialects.mysql import insert

        stmt = insert(table).values(**values)
        return stmt.on_duplicate_key_update(
            rating=stmt.inserted.rating,
            comment=stmt.inserted.comment,
            created_at=func.now(),
        )
    if dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    elif dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    else:
        raise NotImplementedError(f"rating upsert not supported on {dialect}")
    stmt = insert(table).values(**values)
    return stmt.on_conflict_do_update(
        index_elements=[table.c.user_id, table.c.store_id],
        set_={
            "rating": stmt.excluded.rating,
            "comment": stmt.excluded.comment,
            "created_at": func.now(),
        },
    )


def submit_rating(db: Session, user_id, store_id, rating, comment: Optional[str] = None):
    """Create or replace the user's single rating for a store.

    One INSERT .. ON CONFLICT statement against the (user_id, store_id) unique
    constraint, so concurrent submissions can never produce two rows.
    Returns the refreshed store row, or None if the store cannot be read back.
    """
    user_id = as_int(user_id)
    store_id = as_int(store_id)
    if not user_id or not store_id or rating is None:
        raise ValidationFailed({"rating": "User ID, store ID, and rating are required"})
    if not is_valid_rating(rating):
        raise ValidationFailed({"rating": "Rating must be an integer between 1 and 5"})

    values = {
        "user_id": user_id,
        "store_id": store_id,
        "rating": as_int(rating),
        "comment": clean_text(comment),
    }
    stmt = _upsert_rating_stmt(db.get_bind().dialect.name, values)
    try:
        db.execute(stmt)
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise NotFound("User or store not found") from e
    logger.info("user %s rated store %s with %s", user_id, store_id, values["rating"])
    return get_store_summary(db, store_id, user_id)


def _admin_store_row(row) -> schemas.StoreAdminRow:
    return schemas.StoreAdminRow(
        id=row.id,
        name=row.name,
        email=row.email,
        address=row.address,
        average_rating=round_rating(row.average_rating),
        ratings_count=row.ratings_count,
    )


def list_stores_with_stats(db: Session) -> List[schemas.StoreAdminRow]:
    stmt = _aggregate_query().order_by(func.lower(models.Store.name), models.Store.name, models.Store.id)
    return [_admin_store_row(r) for r in db.execute(stmt).all()]


def create_store(db: Session, data: dict, single_store: bool = False) -> models.Store:
    """Insert a store for a store owner.

    With ``single_store`` the owner must not already have one (store-owner flow).
    """
    errors = validate_store(data)
    if errors:
        raise ValidationFailed(errors)
    owner_id = as_int(data.get("owner_user_id"))
    owner = db.get(models.User, owner_id) if owner_id else None
    if not owner or owner.role != models.ROLE_STORE_OWNER:
        raise ValidationFailed({"owner_user_id": "Invalid store owner ID or user is not a store owner"})
    if single_store and owner.stores:
        raise Conflict("Store owner already has a store")

    store = models.Store(
        name=data["name"].strip(),
        email=data["email"].strip(),
        address=data["address"].strip(),
        owner_user_id=owner.id,
    )
    db.add(store)
    db.commit()
    db.refresh(store)
    logger.info("created store %s for owner %s", store.id, owner.id)
    return store


def get_store_by_owner(db: Session, owner_id: int) -> schemas.OwnerStore:
    if as_int(owner_id) is None:
        raise NotFound("Store not found for this owner")
    stmt = (
        _aggregate_query()
        .where(models.Store.owner_user_id == owner_id)
        .order_by(models.Store.id.asc())
    )
    row = db.execute(stmt).first()
    if row is None:
        raise NotFound("Store not found for this owner")
    return schemas.OwnerStore(
        id=row.id,
        name=row.name,
        email=row.email,
        address=row.address,
        owner_user_id=row.owner_user_id,
        created_at=row.created_at,
        average_rating=round_rating(row.average_rating),
        ratings_count=row.ratings_count,
    )


def list_store_rating_users(db: Session, store_id: int) -> List[schemas.RatingUser]:
    if as_int(store_id) is None or not db.get(models.Store, store_id):
        raise NotFound("Store not found")
    stmt = (
        select(
            models.User.id,
            models.User.name,
            models.User.email,
            models.Rating.rating,
            models.Rating.comment,
            models.Rating.created_at.label("rating_date"),
        )
        .select_from(models.Rating)
        .join(models.User, models.Rating.user_id == models.User.id)
        .where(models.Rating.store_id == store_id)
        .order_by(models.Rating.created_at.desc(), models.Rating.id.desc())
    )
    return [
        schemas.RatingUser(
            id=r.id,
            name=r.name,
            email=r.email,
            rating=round_rating(r.rating),
            comment=r.comment,
            rating_date=r.rating_date,
        )
        for r in db.execute(stmt).all()
    ]


def count_totals(db: Session) -> dict:
    return {
        "users": db.query(func.count(models.User.id)).scalar(),
        "stores": db.query(func.count(models.Store.id)).scalar(),
        "ratings": db.query(func.count(models.Rating.id)).scalar(),
    }
