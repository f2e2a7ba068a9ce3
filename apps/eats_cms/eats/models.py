from __future__ import annotations

import enum
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, DateTime, UniqueConstraint
from sqlalchemy import Enum as SAEnum
from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MealType(str, enum.Enum):
    snack = "snack"
    breakfast = "breakfast"
    lunch = "lunch"
    dinner = "dinner"


class RestaurantStatus(str, enum.Enum):
    untried = "untried"
    liked = "liked"
    disliked = "disliked"


def _ts(nullable: bool = False, onupdate: bool = False) -> Column:
    return Column(
        DateTime(timezone=True),
        nullable=nullable,
        default=None if nullable else utcnow,
        onupdate=utcnow if onupdate else None,
    )


class Country(SQLModel, table=True):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    name: str = Field(unique=True)
    created_at: datetime = Field(default_factory=utcnow, sa_column=_ts())
    updated_at: datetime = Field(default_factory=utcnow, sa_column=_ts(onupdate=True))


class City(SQLModel, table=True):
    __table_args__ = (UniqueConstraint("country_id", "name"),)

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    country_id: uuid.UUID = Field(index=True, foreign_key="country.id", ondelete="CASCADE")
    name: str
    # At most one row may be true; service.py clears the others in the same transaction.
    is_default: bool = False
    created_at: datetime = Field(default_factory=utcnow, sa_column=_ts())
    updated_at: datetime = Field(default_factory=utcnow, sa_column=_ts(onupdate=True))


class RestaurantType(SQLModel, table=True):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    name: str = Field(unique=True)
    emoji: str
    created_at: datetime = Field(default_factory=utcnow, sa_column=_ts())
    updated_at: datetime = Field(default_factory=utcnow, sa_column=_ts(onupdate=True))


class Restaurant(SQLModel, table=True):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    city_id: uuid.UUID = Field(index=True, foreign_key="city.id", ondelete="RESTRICT")

    name: str
    notes: str
    referred_by: Optional[str] = None  # URL or free text
    url: str

    status: RestaurantStatus = Field(
        sa_column=Column(SAEnum(RestaurantStatus, name="restaurant_status"), nullable=False)
    )
    tried_at: Optional[datetime] = Field(default=None, sa_column=_ts(nullable=True))
    disliked_reason: Optional[str] = None
    deleted_at: Optional[datetime] = Field(default=None, sa_column=_ts(nullable=True))

    created_at: datetime = Field(default_factory=utcnow, sa_column=_ts())
    updated_at: datetime = Field(default_factory=utcnow, sa_column=_ts(onupdate=True))


class RestaurantArea(SQLModel, table=True):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    restaurant_id: uuid.UUID = Field(index=True, foreign_key="restaurant.id", ondelete="CASCADE")
    area: str


class RestaurantMeal(SQLModel, table=True):
    restaurant_id: uuid.UUID = Field(primary_key=True, foreign_key="restaurant.id", ondelete="CASCADE")
    meal_type: MealType = Field(
        sa_column=Column(SAEnum(MealType, name="meal_type"), primary_key=True)
    )


class RestaurantToType(SQLModel, table=True):
    restaurant_id: uuid.UUID = Field(primary_key=True, foreign_key="restaurant.id", ondelete="CASCADE")
    restaurant_type_id: uuid.UUID = Field(
        primary_key=True, index=True, foreign_key="restauranttype.id", ondelete="RESTRICT"
    )
