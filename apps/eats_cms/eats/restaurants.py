"""Restaurant writes.

A restaurant row and its three child sets (areas, meal types, type links) are
always written together inside one transaction. Updates delete every child row
and insert the submitted ones again, so the stored sets mirror the submission
exactly.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any, Mapping, Optional, Union

import pydantic
from sqlalchemy import delete
from sqlmodel import Session, col, select

from .db import transaction
from .errors import NotFoundError, ValidationError
from .models import (
    City,
    Country,
    Restaurant,
    RestaurantArea,
    RestaurantMeal,
    RestaurantStatus,
    RestaurantToType,
    RestaurantType,
    utcnow,
)
from .schemas import RestaurantInput, RestaurantRead, RestaurantTypeRead

logger = logging.getLogger(__name__)

Payload = Union[RestaurantInput, Mapping[str, Any]]


def validate_restaurant(payload: Payload) -> RestaurantInput:
    if isinstance(payload, RestaurantInput):
        return payload
    try:
        return RestaurantInput.model_validate(payload)
    except pydantic.ValidationError as exc:
        raise ValidationError.from_pydantic(exc) from exc


def _require_city(session: Session, city_id: uuid.UUID) -> City:
    city = session.get(City, city_id)
    if not city:
        raise NotFoundError("City not found.")
    return city


def _require_types(session: Session, type_ids: list[uuid.UUID]) -> None:
    found = set(session.exec(select(RestaurantType.id).where(col(RestaurantType.id).in_(type_ids))))
    missing = [str(t) for t in type_ids if t not in found]
    if missing:
        raise NotFoundError(f"Invalid restaurant type ids: {', '.join(missing)}.")


def _add_children(
    session: Session, restaurant_id: uuid.UUID, data: RestaurantInput, type_ids: list[uuid.UUID]
) -> None:
    for area in data.areas:
        session.add(RestaurantArea(restaurant_id=restaurant_id, area=area))
    for meal_type in data.meal_types:
        session.add(RestaurantMeal(restaurant_id=restaurant_id, meal_type=meal_type))
    for type_id in type_ids:
        session.add(RestaurantToType(restaurant_id=restaurant_id, restaurant_type_id=type_id))


def _delete_children(child, restaurant_id: uuid.UUID):
    # "fetch" evicts the deleted rows from the identity map so re-inserted
    # children with the same primary key do not clash with stale ones.
    return (
        delete(child)
        .where(col(child.restaurant_id) == restaurant_id)
        .execution_options(synchronize_session="fetch")
    )


def _disliked_reason(data: RestaurantInput) -> Optional[str]:
    return data.disliked_reason if data.status is RestaurantStatus.disliked else None


def next_tried_at(
    new_status: RestaurantStatus,
    old_status: RestaurantStatus,
    old_tried_at: Optional[datetime],
    now: datetime,
) -> Optional[datetime]:
    if new_status is RestaurantStatus.untried:
        return None
    if old_status is RestaurantStatus.untried:
        return now
    return old_tried_at or now


def create_restaurant(session: Session, payload: Payload) -> uuid.UUID:
    data = validate_restaurant(payload)
    _require_city(session, data.city_id)
    type_ids = data.unique_type_ids()
    _require_types(session, type_ids)

    with transaction(session):
        restaurant = Restaurant(
            city_id=data.city_id,
            name=data.name,
            notes=data.notes,
            referred_by=data.referred_by,
            url=data.url,
            status=data.status,
            tried_at=None if data.status is RestaurantStatus.untried else utcnow(),
            disliked_reason=_disliked_reason(data),
        )
        session.add(restaurant)
        session.flush()
        _add_children(session, restaurant.id, data, type_ids)
        restaurant_id = restaurant.id

    logger.info("Created restaurant %s (%s)", restaurant_id, data.name)
    return restaurant_id


def update_restaurant(session: Session, restaurant_id: uuid.UUID, payload: Payload) -> uuid.UUID:
    data = validate_restaurant(payload)
    restaurant = session.get(Restaurant, restaurant_id)
    if not restaurant:
        raise NotFoundError("Restaurant not found.")
    _require_city(session, data.city_id)
    type_ids = data.unique_type_ids()
    _require_types(session, type_ids)

    with transaction(session):
        restaurant.tried_at = next_tried_at(data.status, restaurant.status, restaurant.tried_at, utcnow())
        restaurant.city_id = data.city_id
        restaurant.name = data.name
        restaurant.notes = data.notes
        restaurant.referred_by = data.referred_by
        restaurant.url = data.url
        restaurant.status = data.status
        restaurant.disliked_reason = _disliked_reason(data)
        session.add(restaurant)

        for child in (RestaurantArea, RestaurantMeal, RestaurantToType):
            session.exec(_delete_children(child, restaurant_id))
        _add_children(session, restaurant_id, data, type_ids)

    logger.info("Updated restaurant %s", restaurant_id)
    return restaurant_id


def soft_delete_restaurant(session: Session, restaurant_id: uuid.UUID) -> None:
    restaurant = session.get(Restaurant, restaurant_id)
    # Deleting twice is reported rather than ignored so double submissions show up.
    if not restaurant or restaurant.deleted_at is not None:
        raise NotFoundError("Restaurant not found.")
    with transaction(session):
        restaurant.deleted_at = utcnow()
        session.add(restaurant)
    logger.info("Soft-deleted restaurant %s", restaurant_id)


def restore_restaurant(session: Session, restaurant_id: uuid.UUID) -> None:
    restaurant = session.get(Restaurant, restaurant_id)
    if not restaurant or restaurant.deleted_at is None:
        raise NotFoundError("Deleted restaurant not found.")
    with transaction(session):
        restaurant.deleted_at = None
        session.add(restaurant)
    logger.info("Restored restaurant %s", restaurant_id)


def delete_restaurant(session: Session, restaurant_id: uuid.UUID) -> None:
    """Remove the row for good; child rows go with it."""
    restaurant = session.get(Restaurant, restaurant_id)
    if not restaurant:
        raise NotFoundError("Restaurant not found.")
    with transaction(session):
        for child in (RestaurantArea, RestaurantMeal, RestaurantToType):
            session.exec(_delete_children(child, restaurant_id))
        session.delete(restaurant)
    logger.info("Deleted restaurant %s", restaurant_id)


def get_restaurant(session: Session, restaurant_id: uuid.UUID) -> RestaurantRead:
    row = session.exec(
        select(Restaurant, City, Country)
        .join(City, col(Restaurant.city_id) == col(City.id))
        .join(Country, col(City.country_id) == col(Country.id))
        .where(col(Restaurant.id) == restaurant_id)
    ).first()
    if not row:
        raise NotFoundError("Restaurant not found.")
    restaurant, city, country = row

    areas = session.exec(
        select(RestaurantArea.area).where(col(RestaurantArea.restaurant_id) == restaurant_id)
    ).all()
    meals = session.exec(
        select(RestaurantMeal.meal_type).where(col(RestaurantMeal.restaurant_id) == restaurant_id)
    ).all()
    types = session.exec(
        select(RestaurantType)
        .join(RestaurantToType, col(RestaurantToType.restaurant_type_id) == col(RestaurantType.id))
        .where(col(RestaurantToType.restaurant_id) == restaurant_id)
        .order_by(RestaurantType.name)
    ).all()

    return to_read(
        restaurant,
        city,
        country,
        areas=list(areas),
        meal_types=list(meals),
        types=[RestaurantTypeRead.model_validate(t) for t in types],
    )


def to_read(restaurant: Restaurant, city: City, country: Country, **children) -> RestaurantRead:
    return RestaurantRead(
        id=restaurant.id,
        city_id=restaurant.city_id,
        city_name=city.name,
        country_name=country.name,
        name=restaurant.name,
        notes=restaurant.notes,
        referred_by=restaurant.referred_by,
        url=restaurant.url,
        status=restaurant.status,
        tried_at=restaurant.tried_at,
        disliked_reason=restaurant.disliked_reason,
        deleted_at=restaurant.deleted_at,
        **children,
    )
