"""Pydantic schemas shared across the services.

Fields are snake_case in Python and camelCase on the wire.
"""
from __future__ import annotations

from datetime import date, datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class MessageRead(CamelModel):
    message: str


class UserRead(CamelModel):
    id: int
    first_name: str
    last_name: str
    email: EmailStr
    username: str


class UserPreview(CamelModel):
    id: int
    first_name: str
    last_name: str


class SessionRead(CamelModel):
    user: Optional[UserRead] = None


class SignupRequest(CamelModel):
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    email: EmailStr
    username: str = Field(..., min_length=4, max_length=30)
    password: str = Field(..., min_length=6)

    @field_validator("username")
    @classmethod
    def username_is_not_email(cls, value: str) -> str:
        if "@" in value:
            raise ValueError("Username cannot be an email")
        return value


class LoginRequest(CamelModel):
    credential: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class SpotBase(CamelModel):
    address: str = Field(..., min_length=1, max_length=255)
    city: str = Field(..., min_length=1, max_length=100)
    state: str = Field(..., min_length=1, max_length=100)
    country: str = Field(..., min_length=1, max_length=100)
    lat: Optional[float] = Field(None, ge=-90, le=90)
    lng: Optional[float] = Field(None, ge=-180, le=180)
    name: str = Field(..., min_length=1, max_length=50)
    description: str = Field(..., min_length=1)
    price: float = Field(..., gt=0)


class SpotCreate(SpotBase):
    pass


class SpotUpdate(CamelModel):
    address: Optional[str] = Field(None, min_length=1, max_length=255)
    city: Optional[str] = Field(None, min_length=1, max_length=100)
    state: Optional[str] = Field(None, min_length=1, max_length=100)
    country: Optional[str] = Field(None, min_length=1, max_length=100)
    lat: Optional[float] = Field(None, ge=-90, le=90)
    lng: Optional[float] = Field(None, ge=-180, le=180)
    name: Optional[str] = Field(None, min_length=1, max_length=50)
    description: Optional[str] = Field(None, min_length=1)
    price: Optional[float] = Field(None, gt=0)

    @field_validator("address", "city", "state", "country", "name", "description", "price")
    @classmethod
    def not_null(cls, value):
        # Only runs for values sent explicitly; lat/lng may be cleared.
        if value is None:
            raise ValueError("Field cannot be null")
        return value


class SpotRead(SpotBase):
    id: int
    owner_id: int
    created_at: datetime
    updated_at: datetime


class SpotList(CamelModel):
    spots: List[SpotRead] = Field(..., alias="Spots")
    page: int
    size: int


class BookingCreate(CamelModel):
    start_date: date
    end_date: date


class BookingUpdate(CamelModel):
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class BookingPreview(CamelModel):
    spot_id: int
    start_date: date
    end_date: date


class BookingRead(BookingPreview):
    id: int
    user_id: int
    created_at: datetime
    updated_at: datetime


class BookingWithSpot(BookingRead):
    spot: SpotRead


class BookingWithUser(BookingRead):
    user: UserPreview


class BookingList(CamelModel):
    bookings: List[BookingWithSpot] = Field(..., alias="Bookings")


class SpotBookingList(CamelModel):
    bookings: List[BookingWithUser] = Field(..., alias="Bookings")


class BookingPreviewList(CamelModel):
    bookings: List[BookingPreview] = Field(..., alias="Bookings")


class AvailabilityRead(CamelModel):
    spot_id: int
    available: bool
    errors: Optional[Dict[str, str]] = None
