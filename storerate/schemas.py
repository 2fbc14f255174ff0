from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field
from pydantic.config import ConfigDict

# Responses use the camelCase keys the client reads; attributes stay snake_case.


class UserPublic(BaseModel):
    id: int
    name: str
    email: str
    role: str

    model_config = ConfigDict(from_attributes=True)


class UserCreated(UserPublic):
    address: str


class UserAdminRow(BaseModel):
    id: int
    name: str
    email: str
    address: str
    role: str
    created_at: Optional[datetime] = None
    store_id: Optional[int] = Field(default=None, alias="storeId")
    store_average_rating: Decimal = Field(default=Decimal("0.00"), alias="storeAverageRating")
    ratings_count: int = Field(default=0, alias="ratingsCount")

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class StoreSearchRow(BaseModel):
    id: int
    name: str
    address: str
    average_rating: Decimal = Field(alias="averageRating")
    ratings_count: int = Field(default=0, alias="ratingsCount")
    user_rating: Optional[Decimal] = Field(default=None, alias="userRating")

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class StoreAdminRow(BaseModel):
    id: int
    name: str
    email: str
    address: str
    average_rating: Decimal = Field(alias="averageRating")
    ratings_count: int = Field(alias="ratingsCount")

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class OwnerStore(StoreAdminRow):
    owner_user_id: Optional[int] = None
    created_at: Optional[datetime] = None


class StoreCreated(BaseModel):
    id: int
    name: str
    email: str
    address: str
    owner_user_id: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)


class RatingUser(BaseModel):
    id: int
    name: str
    email: str
    rating: Decimal
    comment: Optional[str] = None
    rating_date: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class Message(BaseModel):
    message: str
