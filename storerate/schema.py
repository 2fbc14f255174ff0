"""Schema manager: create tables and seed baseline rows on startup."""
import logging

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from . import models
from .auth import hash_password
from .db import Base

logger = logging.getLogger(__name__)

SEED_USERS = [
    # name, email, address, password, role
    ("Regular Platform User Account", "user@example.com", "123 User Street", "User@12345", models.ROLE_USER),
    ("Platform Administrator Account", "admin@example.com", "456 Admin Avenue", "Admin@12345", models.ROLE_ADMIN),
    ("Sample Store Owner Account", "owner@example.com", "789 Market Boulevard", "Owner@12345", models.ROLE_STORE_OWNER),
]
SEED_STORE = ("Sample Store", "store@example.com", "789 Market Boulevard")


def init_db(engine, seed: bool = True) -> bool:
    """Create missing tables and seed an empty database.

    Safe to call on every start. Returns True when seed rows were written.
    """
    Base.metadata.create_all(bind=engine)
    if not seed:
        return False
    with Session(engine) as db:
        if db.execute(select(func.count(models.User.id))).scalar():
            return False
        users = {}
        for name, email, address, password, role in SEED_USERS:
            user = models.User(
                name=name, email=email, address=address,
                password_hash=hash_password(password), role=role,
            )
            db.add(user)
            users[role] = user
        db.flush()
        name, email, address = SEED_STORE
        store = models.Store(name=name, email=email, address=address,
                             owner_user_id=users[models.ROLE_STORE_OWNER].id)
        db.add(store)
        db.flush()
        db.add(models.Rating(store_id=store.id, user_id=users[models.ROLE_USER].id,
                             rating=4, comment="Great store!"))
        db.commit()
    logger.info("seeded empty database with %d users", len(SEED_USERS))
    return True
