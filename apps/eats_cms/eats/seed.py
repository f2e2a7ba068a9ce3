"""Seed sample reference data and restaurants.

Everything goes through the same validated write path the admin API uses.

Run:
  python -m eats.seed
"""

from __future__ import annotations

import logging

from sqlmodel import Session, select

from .db import engine, init_db
from .models import Country
from .restaurants import create_restaurant
from .service import create_city, create_country, create_restaurant_type

logger = logging.getLogger(__name__)


def seed(session: Session) -> int:
    """Insert the sample data and return how many restaurants were created."""
    existing = session.exec(select(Country)).first()
    if existing:
        logger.info("DB already has data; skipping seed.")
        return 0

    japan = create_country(session, {"name": "Japan"})
    uk = create_country(session, {"name": "United Kingdom"})

    tokyo = create_city(session, {"name": "Tokyo", "country_id": japan, "is_default": True})
    london = create_city(session, {"name": "London", "country_id": uk})

    ramen = create_restaurant_type(session, {"name": "Ramen", "emoji": "🍜"})
    coffee = create_restaurant_type(session, {"name": "Coffee", "emoji": "☕"})
    sushi = create_restaurant_type(session, {"name": "Sushi", "emoji": "🍣"})
    bakery = create_restaurant_type(session, {"name": "Bakery", "emoji": "🥐"})

    restaurants = [
        {
            "city_id": tokyo,
            "areas": [],
            "meal_types": ["lunch", "dinner"],
            "name": "Fuunji",
            "notes": "Tsukemen with a thick fish broth. Expect a queue.",
            "referred_by": "A friend",
            "type_ids": [ramen],
            "url": "https://www.google.com/maps/place/Fuunji",
            "status": "liked",
        },
        {
            "city_id": tokyo,
            "areas": ["Shibuya", "Shinjuku", "Ginza"],
            "meal_types": ["breakfast", "snack"],
            "name": "Blue Bottle",
            "notes": "Several branches; reliable pour-over.",
            "type_ids": [coffee],
            "url": "https://bluebottlecoffee.jp",
            "status": "untried",
        },
        {
            "city_id": tokyo,
            "areas": ["Tsukiji"],
            "meal_types": ["breakfast"],
            "name": "Sushi Dai",
            "notes": "Omakase counter.",
            "type_ids": [sushi],
            "url": "https://maps.app.goo.gl/sushidai",
            "status": "disliked",
            "disliked_reason": "Three hour wait, not worth it.",
        },
        {
            "city_id": london,
            "areas": [],
            "meal_types": ["breakfast", "snack"],
            "name": "Fortitude Bakehouse",
            "notes": "Sourdough croissants sell out early.",
            "type_ids": [bakery, coffee],
            "url": "https://maps.google.com/maps?q=Fortitude+Bakehouse",
            "status": "untried",
        },
    ]
    for payload in restaurants:
        create_restaurant(session, payload)
    return len(restaurants)


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    init_db()
    with Session(engine) as session:
        count = seed(session)
    if count:
        logger.info("Seeded %d restaurants.", count)


if __name__ == "__main__":
    main()
