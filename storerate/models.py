from sqlalchemy import Column, Integer, String, Text, ForeignKey, Numeric, DateTime, UniqueConstraint, func
from sqlalchemy.orm import relationship
from .db import Base

ROLE_USER = "user"
ROLE_ADMIN = "admin"
ROLE_STORE_OWNER = "store_owner"
ROLES = (ROLE_USER, ROLE_ADMIN, ROLE_STORE_OWNER)
# older clients send 'contractor' for store owners
ROLE_ALIASES = {"contractor": ROLE_STORE_OWNER}


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(60), nullable=False, index=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    address = Column(String(400), nullable=False, default="")
    # passlib hash, never the plaintext
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default=ROLE_USER, index=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())

    stores = relationship("Store", back_populates="owner")
    ratings = relationship("Rating", back_populates="user", cascade="all, delete-orphan")


class Store(Base):
    __tablename__ = "stores"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(60), nullable=False, index=True)
    email = Column(String(255), nullable=False)
    address = Column(String(400), nullable=False)
    owner_user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())

    owner = relationship("User", back_populates="stores")
    ratings = relationship("Rating", back_populates="store", cascade="all, delete-orphan")


class Rating(Base):
    __tablename__ = "ratings"
    __table_args__ = (UniqueConstraint("user_id", "store_id", name="uq_ratings_user_store"),)

    id = Column(Integer, primary_key=True, index=True)
    store_id = Column(Integer, ForeignKey("stores.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    rating = Column(Numeric(3, 2), nullable=False)
    comment = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())

    store = relationship("Store", back_populates="ratings")
    user = relationship("User", back_populates="ratings")
