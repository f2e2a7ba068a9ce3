from __future__ import annotations

import os

# Must be set before anything imports eats.config / eats.db.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ADMIN_USERNAME"] = "admin"
os.environ["ADMIN_PASSWORD"] = "correct horse battery staple"
os.environ["ADMIN_JWT_SECRET"] = "test-secret-0123456789abcdef-0123456789"
os.environ["APP_ENV"] = "test"

from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel

from eats import models  # noqa: F401  (registers tables)
from eats.db import engine
from eats.service import create_city, create_country, create_restaurant_type

ADMIN_USERNAME = os.environ["ADMIN_USERNAME"]
ADMIN_PASSWORD = os.environ["ADMIN_PASSWORD"]
SECRET = os.environ["ADMIN_JWT_SECRET"]


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def _fresh_schema():
    SQLModel.metadata.drop_all(engine)
    SQLModel.metadata.create_all(engine)
    yield


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def session():
    with Session(engine) as s:
        yield s


@pytest.fixture
def refs(session):
    japan = create_country(session, {"name": "Japan"})
    tokyo = create_city(session, {"name": "Tokyo", "country_id": japan})
    osaka = create_city(session, {"name": "Osaka", "country_id": japan})
    ramen = create_restaurant_type(session, {"name": "Ramen", "emoji": "🍜"})
    coffee = create_restaurant_type(session, {"name": "Coffee", "emoji": "☕"})
    return SimpleNamespace(country=japan, city=tokyo, other_city=osaka, ramen=ramen, coffee=coffee)


@pytest.fixture
def make_payload(refs):
    def _make(**overrides):
        payload = {
            "city_id": str(refs.city),
            "areas": [],
            "meal_types": ["lunch"],
            "name": "Cafe A",
            "notes": "Good coffee",
            "type_ids": [str(refs.coffee)],
            "url": "https://maps.google.com/maps?q=x",
            "status": "untried",
        }
        payload.update(overrides)
        return payload

    return _make


@pytest.fixture
def client():
    from eats.main import app, get_session_manager

    get_session_manager.cache_clear()
    with TestClient(app) as c:
        yield c
    get_session_manager.cache_clear()


@pytest.fixture
def admin_client(client):
    resp = client.post("/admin/login", json={"username": ADMIN_USERNAME, "password": ADMIN_PASSWORD})
    assert resp.status_code == 200
    return client
