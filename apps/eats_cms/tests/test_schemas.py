from __future__ import annotations

import uuid

import pytest

from eats.errors import ValidationError
from eats.restaurants import validate_restaurant
from eats.schemas import (
    RestaurantTypeInput,
    contains_emoji,
    is_map_service_url,
)
from eats.service import _parse


def _payload(**overrides):
    payload = {
        "city_id": str(uuid.uuid4()),
        "areas": [],
        "meal_types": ["lunch"],
        "name": "Cafe A",
        "notes": "Good coffee",
        "type_ids": [str(uuid.uuid4())],
        "url": "https://maps.google.com/maps?q=x",
        "status": "untried",
    }
    payload.update(overrides)
    return payload


def _fields(exc: ValidationError) -> set[str]:
    return {e.field for e in exc.errors}


@pytest.mark.parametrize(
    "url",
    [
        "https://maps.google.com/maps?q=x",
        "https://www.google.com/maps/place/Somewhere",
        "https://google.com/maps",
        "https://maps.app.goo.gl/abc123",
        "http://www.google.co.uk.google.com/maps/x",
    ],
)
def test_map_service_urls(url):
    assert is_map_service_url(url)


@pytest.mark.parametrize(
    "url",
    [
        "https://www.google.com/search?q=ramen",
        "https://maps.google.com/",
        "https://example.com/maps",
        "https://notgoogle.com/maps",
        "ftp://maps.google.com/maps",
        "not a url",
    ],
)
def test_non_map_service_urls(url):
    assert not is_map_service_url(url)


def test_minimal_payload_is_valid():
    data = validate_restaurant(_payload())
    assert data.name == "Cafe A"
    assert data.referred_by is None
    assert data.disliked_reason is None


def test_fewer_than_two_areas_requires_map_url():
    with pytest.raises(ValidationError) as exc_info:
        validate_restaurant(_payload(areas=["Shibuya"], url="https://example.com"))
    assert _fields(exc_info.value) == {"url"}
    assert "Google Maps" in exc_info.value.message


def test_two_or_more_areas_rejects_map_url():
    with pytest.raises(ValidationError) as exc_info:
        validate_restaurant(_payload(areas=["Shibuya", "Ginza"]))
    assert _fields(exc_info.value) == {"url"}

    data = validate_restaurant(_payload(areas=["Shibuya", "Ginza"], url="https://example.com"))
    assert data.areas == ["Shibuya", "Ginza"]


def test_disliked_requires_reason():
    with pytest.raises(ValidationError) as exc_info:
        validate_restaurant(_payload(status="disliked"))
    assert _fields(exc_info.value) == {"disliked_reason"}

    data = validate_restaurant(_payload(status="disliked", disliked_reason="Cold soup"))
    assert data.disliked_reason == "Cold soup"


@pytest.mark.parametrize("status", ["untried", "liked"])
def test_reason_only_allowed_when_disliked(status):
    with pytest.raises(ValidationError) as exc_info:
        validate_restaurant(_payload(status=status, disliked_reason="Cold soup"))
    assert _fields(exc_info.value) == {"disliked_reason"}


def test_blank_reason_counts_as_absent():
    data = validate_restaurant(_payload(status="liked", disliked_reason="   "))
    assert data.disliked_reason is None


def test_cross_field_errors_are_aggregated():
    with pytest.raises(ValidationError) as exc_info:
        validate_restaurant(_payload(status="liked", disliked_reason="x", url="https://example.com"))
    assert _fields(exc_info.value) == {"url", "disliked_reason"}
    assert len(exc_info.value.errors) == 2


def test_field_errors_are_aggregated():
    with pytest.raises(ValidationError) as exc_info:
        validate_restaurant(
            _payload(name="  ", notes="", meal_types=[], type_ids=[], city_id="nope")
        )
    fields = _fields(exc_info.value)
    assert {"name", "notes", "meal_types", "type_ids", "city_id"} <= fields
    assert "Restaurant name is required." in exc_info.value.message


def test_meal_types_rules():
    with pytest.raises(ValidationError):
        validate_restaurant(_payload(meal_types=["lunch", "lunch"]))
    with pytest.raises(ValidationError):
        validate_restaurant(_payload(meal_types=["brunch"]))
    data = validate_restaurant(_payload(meal_types=["snack", "breakfast", "lunch", "dinner"]))
    assert len(data.meal_types) == 4


def test_areas_rules():
    with pytest.raises(ValidationError):
        validate_restaurant(_payload(areas=["Shibuya", " "], url="https://example.com"))
    with pytest.raises(ValidationError):
        validate_restaurant(_payload(areas=[f"Area {i}" for i in range(21)], url="https://example.com"))
    data = validate_restaurant(_payload(areas=[" Shibuya ", "Ginza"], url="https://example.com"))
    assert data.areas == ["Shibuya", "Ginza"]


def test_url_must_be_http():
    with pytest.raises(ValidationError) as exc_info:
        validate_restaurant(_payload(url="maps.google.com/maps"))
    assert "url" in _fields(exc_info.value)


def test_referred_by_accepts_url_or_text():
    assert validate_restaurant(_payload(referred_by="https://instagram.com/someone")).referred_by == (
        "https://instagram.com/someone"
    )
    assert validate_restaurant(_payload(referred_by="Jo")).referred_by == "Jo"
    assert validate_restaurant(_payload(referred_by="")).referred_by is None
    with pytest.raises(ValidationError) as exc_info:
        validate_restaurant(_payload(referred_by="J"))
    assert _fields(exc_info.value) == {"referred_by"}


@pytest.mark.parametrize("value", ["ftp://friend.example", "mailto:jo@example.com", "javascript:alert(1)"])
def test_referred_by_rejects_other_url_schemes(value):
    with pytest.raises(ValidationError) as exc_info:
        validate_restaurant(_payload(referred_by=value))
    assert _fields(exc_info.value) == {"referred_by"}
    assert exc_info.value.message == "Referred by URL must start with http:// or https://."


def test_referred_by_text_with_colon_is_still_text():
    assert validate_restaurant(_payload(referred_by="Tip: ask Sam")).referred_by == "Tip: ask Sam"


def test_duplicate_type_ids_collapse():
    type_id = str(uuid.uuid4())
    data = validate_restaurant(_payload(type_ids=[type_id, type_id]))
    assert data.unique_type_ids() == [uuid.UUID(type_id)]


def test_type_emoji():
    assert contains_emoji("🍜")
    assert contains_emoji("Noodles ☕")
    assert not contains_emoji("abc")
    with pytest.raises(ValidationError) as exc_info:
        _parse(RestaurantTypeInput, {"name": "Ramen", "emoji": "R"})
    assert exc_info.value.message == "Type emoji must contain an emoji character."


@pytest.mark.parametrize("glyph", ["°", "─", "⠿", "℃"])
def test_plain_symbols_are_not_emoji(glyph):
    assert not contains_emoji(glyph)
    with pytest.raises(ValidationError):
        _parse(RestaurantTypeInput, {"name": "Ramen", "emoji": glyph})
