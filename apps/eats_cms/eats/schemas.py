from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional
from urllib.parse import urlparse

import regex
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic_core import PydanticCustomError

from .models import MealType, RestaurantStatus

MAX_AREAS = 20
MAX_MEAL_TYPES = 4

MAP_SERVICE_HOSTS = ("google.com", "www.google.com", "maps.google.com", "maps.app.goo.gl")

EMOJI_PATTERN = regex.compile(r"\p{Extended_Pictographic}|\p{Emoji_Presentation}")
URL_SCHEME_PATTERN = regex.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*:\S")


def is_http_url(value: str) -> bool:
    try:
        parsed = urlparse(value)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def is_map_service_url(value: str) -> bool:
    """True for a URL pointing at one place on a map provider (Google Maps)."""
    if not is_http_url(value):
        return False
    parsed = urlparse(value)
    host = (parsed.hostname or "").lower()
    path = parsed.path.lower()
    if not any(host == h or host.endswith(f".{h}") for h in MAP_SERVICE_HOSTS):
        return False
    return host == "maps.app.goo.gl" or path == "/maps" or path.startswith("/maps/")


def contains_emoji(value: str) -> bool:
    return bool(EMOJI_PATTERN.search(value))


def has_url_scheme(value: str) -> bool:
    """True when ``value`` starts like ``scheme:...``, e.g. ``mailto:`` or ``ftp://``."""
    return bool(URL_SCHEME_PATTERN.match(value))


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------


class CountryInput(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str

    @field_validator("name")
    @classmethod
    def _name_required(cls, v: str) -> str:
        if not v:
            raise ValueError("Country name is required.")
        return v


class CityInput(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str
    country_id: uuid.UUID
    # None leaves the stored flag alone on update.
    is_default: Optional[bool] = None

    @field_validator("name")
    @classmethod
    def _name_required(cls, v: str) -> str:
        if not v:
            raise ValueError("City name is required.")
        return v


class RestaurantTypeInput(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str
    emoji: str

    @field_validator("name")
    @classmethod
    def _name_required(cls, v: str) -> str:
        if not v:
            raise ValueError("Type name is required.")
        return v

    @field_validator("emoji")
    @classmethod
    def _emoji_glyph(cls, v: str) -> str:
        if not v:
            raise ValueError("Emoji is required.")
        if not contains_emoji(v):
            raise ValueError("Type emoji must contain an emoji character.")
        return v


class RestaurantInput(BaseModel):
    """A restaurant submission.

    Field rules run first; the cross-field rules (disliked reason, map URL vs.
    area count) only run once every field is individually valid.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    city_id: uuid.UUID
    areas: list[str] = Field(default_factory=list)
    meal_types: list[MealType]
    name: str
    notes: str
    referred_by: Optional[str] = None
    type_ids: list[uuid.UUID]
    url: str
    status: RestaurantStatus
    disliked_reason: Optional[str] = None

    @field_validator("areas")
    @classmethod
    def _areas(cls, v: list[str]) -> list[str]:
        areas = [a.strip() for a in v]
        if any(not a for a in areas):
            raise ValueError("Areas cannot be blank.")
        if len(areas) > MAX_AREAS:
            raise ValueError(f"Add at most {MAX_AREAS} areas.")
        return areas

    @field_validator("meal_types")
    @classmethod
    def _meal_types(cls, v: list[MealType]) -> list[MealType]:
        if not v:
            raise ValueError("Pick at least one meal type.")
        if len(v) > MAX_MEAL_TYPES:
            raise ValueError("Pick at most four meal types.")
        if len(set(v)) != len(v):
            raise ValueError("Meal types must be unique.")
        return v

    @field_validator("name")
    @classmethod
    def _name_required(cls, v: str) -> str:
        if not v:
            raise ValueError("Restaurant name is required.")
        return v

    @field_validator("notes")
    @classmethod
    def _notes_required(cls, v: str) -> str:
        if not v:
            raise ValueError("Notes are required.")
        return v

    @field_validator("referred_by")
    @classmethod
    def _referred_by(cls, v: Optional[str]) -> Optional[str]:
        if not v:
            return None
        if is_http_url(v):
            return v
        if has_url_scheme(v):
            raise ValueError("Referred by URL must start with http:// or https://.")
        if len(v) < 2:
            raise ValueError("Referred by text is too short.")
        return v

    @field_validator("type_ids")
    @classmethod
    def _type_ids(cls, v: list[uuid.UUID]) -> list[uuid.UUID]:
        if not v:
            raise ValueError("Pick at least one type.")
        return v

    @field_validator("url")
    @classmethod
    def _url(cls, v: str) -> str:
        if not is_http_url(v):
            raise ValueError("URL must start with http:// or https://.")
        return v

    @field_validator("disliked_reason")
    @classmethod
    def _blank_reason(cls, v: Optional[str]) -> Optional[str]:
        return v or None

    @model_validator(mode="after")
    def _cross_field_rules(self) -> "RestaurantInput":
        issues: list[dict[str, str]] = []

        disliked = self.status is RestaurantStatus.disliked
        if disliked and not self.disliked_reason:
            issues.append({
                "field": "disliked_reason",
                "message": "Disliked reason is required when status is disliked.",
            })
        if not disliked and self.disliked_reason:
            issues.append({
                "field": "disliked_reason",
                "message": "Disliked reason can only be set when status is disliked.",
            })

        map_url = is_map_service_url(self.url)
        if len(self.areas) < 2 and not map_url:
            issues.append({
                "field": "url",
                "message": "When there are fewer than two areas, URL must be a Google Maps URL.",
            })
        if len(self.areas) >= 2 and map_url:
            issues.append({
                "field": "url",
                "message": "When there are two or more areas, URL must not be a Google Maps URL.",
            })

        if issues:
            raise PydanticCustomError(
                "restaurant_rules",
                " ".join(i["message"] for i in issues),
                {"issues": issues},
            )
        return self

    def unique_type_ids(self) -> list[uuid.UUID]:
        return list(dict.fromkeys(self.type_ids))


class LoginRequest(BaseModel):
    username: str
    password: str


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


class CountryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str


class CityRead(BaseModel):
    id: uuid.UUID
    name: str
    country_id: uuid.UUID
    country_name: str
    is_default: bool


class RestaurantTypeRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    emoji: str


class RestaurantRead(BaseModel):
    id: uuid.UUID
    city_id: uuid.UUID
    city_name: str
    country_name: str
    name: str
    notes: str
    referred_by: Optional[str]
    url: str
    status: RestaurantStatus
    tried_at: Optional[datetime]
    disliked_reason: Optional[str]
    deleted_at: Optional[datetime] = None
    areas: list[str] = Field(default_factory=list)
    meal_types: list[MealType] = Field(default_factory=list)
    types: list[RestaurantTypeRead] = Field(default_factory=list)


class CmsData(BaseModel):
    countries: list[CountryRead]
    cities: list[CityRead]
    types: list[RestaurantTypeRead]
    restaurants: list[RestaurantRead]
    default_city_name: Optional[str] = None


class CreatedResponse(BaseModel):
    id: uuid.UUID


class LoginResponse(BaseModel):
    ok: bool = True
    username: str
    expires_in: int


class AdminRead(BaseModel):
    username: str
    issued_at: datetime
    expires_at: datetime


class HealthResponse(BaseModel):
    ok: bool
    db: str
