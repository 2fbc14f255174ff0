import os
from typing import Generator

# The app engine must not touch a database file during tests
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SEED_ON_STARTUP", "0")

import pytest
from sqlalchemy.orm import sessionmaker

from storerate.db import Base, make_engine
from storerate.main import app, get_db
from storerate import crud, models

PASSWORD = "Secret@123"


@pytest.fixture(scope="function")
def db_session() -> Generator:
    # In-memory SQLite with a single connection and foreign keys enforced
    engine = make_engine("sqlite://")
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        engine.dispose()

@pytest.fixture(scope="function")
def client(db_session):
    # Override dependency to use the same session
    def override_get_db():
        try:
            yield db_session
        finally:
            pass
    app.dependency_overrides[get_db] = override_get_db
    from fastapi.testclient import TestClient
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def make_user(db, email, role=models.ROLE_USER, name=None, address="1 Test Street"):
    return crud.create_user(db, {
        "name": name or ("Test Account " + email.split("@")[0]).ljust(20, "x")[:60],
        "email": email,
        "address": address,
        "password": PASSWORD,
        "role": role,
    })


def make_store(db, owner, name, address="1 Market Street", email=None):
    return crud.create_store(db, {
        "name": name,
        "email": email or f"{name.lower().replace(' ', '')}@stores.test",
        "address": address,
        "owner_user_id": owner.id,
    })


@pytest.fixture
def owner(db_session):
    return make_user(db_session, "owner@example.com", role=models.ROLE_STORE_OWNER, name="Store Owner Test Account")


@pytest.fixture
def shopper(db_session):
    return make_user(db_session, "shopper@example.com", name="Regular Shopper Account")
