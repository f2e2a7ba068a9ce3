from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from typing import Any, Mapping, Optional, Type, TypeVar, Union

import pydantic
from sqlalchemy import update
from sqlmodel import Session, col, select

from .db import transaction
from .errors import NotFoundError, ReferentialConflictError, ValidationError
from .models import (
    City,
    Country,
    Restaurant,
    RestaurantArea,
    RestaurantMeal,
    RestaurantToType,
    RestaurantType,
)
from .restaurants import to_read
from .schemas import (
    CityInput,
    CityRead,
    CmsData,
    CountryInput,
    CountryRead,
    RestaurantTypeInput,
    RestaurantTypeRead,
)

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=pydantic.BaseModel)


def _parse(model: Type[M], payload: Union[M, Mapping[str, Any]]) -> M:
    if isinstance(payload, model):
        return payload
    try:
        return model.model_validate(payload)
    except pydantic.ValidationError as exc:
        raise ValidationError.from_pydantic(exc) from exc


def _clear_default_city(session: Session) -> None:
    session.exec(
        update(City)
        .where(col(City.is_default).is_(True))
        .values(is_default=False)
        .execution_options(synchronize_session="fetch")
    )


# ---------------------------------------------------------------------------
# Countries
# ---------------------------------------------------------------------------


def create_country(session: Session, payload) -> uuid.UUID:
    data = _parse(CountryInput, payload)
    with transaction(session):
        country = Country(name=data.name)
        session.add(country)
        country_id = country.id
    logger.info("Created country %s (%s)", country_id, data.name)
    return country_id


def update_country(session: Session, country_id: uuid.UUID, payload) -> None:
    data = _parse(CountryInput, payload)
    country = session.get(Country, country_id)
    if not country:
        raise NotFoundError("Country not found.")
    with transaction(session):
        country.name = data.name
        session.add(country)


def delete_country(session: Session, country_id: uuid.UUID) -> None:
    country = session.get(Country, country_id)
    if not country:
        raise NotFoundError("Country not found.")
    if session.exec(select(City.id).where(col(City.country_id) == country_id)).first():
        raise ReferentialConflictError(
            "Cannot delete this country because it has cities. Delete those cities first."
        )
    with transaction(session):
        session.delete(country)
    logger.info("Deleted country %s", country_id)


# ---------------------------------------------------------------------------
# Cities
# ---------------------------------------------------------------------------


def _require_country(session: Session, country_id: uuid.UUID) -> None:
    if not session.get(Country, country_id):
        raise NotFoundError("Country not found.")


def create_city(session: Session, payload) -> uuid.UUID:
    data = _parse(CityInput, payload)
    _require_country(session, data.country_id)
    with transaction(session):
        if data.is_default:
            _clear_default_city(session)
        city = City(name=data.name, country_id=data.country_id, is_default=bool(data.is_default))
        session.add(city)
        city_id = city.id
    logger.info("Created city %s (%s)", city_id, data.name)
    return city_id


def update_city(session: Session, city_id: uuid.UUID, payload) -> None:
    data = _parse(CityInput, payload)
    city = session.get(City, city_id)
    if not city:
        raise NotFoundError("City not found.")
    _require_country(session, data.country_id)
    with transaction(session):
        if data.is_default:
            _clear_default_city(session)
        city.name = data.name
        city.country_id = data.country_id
        if data.is_default is not None:
            city.is_default = data.is_default
        session.add(city)


def set_default_city(session: Session, city_id: uuid.UUID) -> None:
    """Make ``city_id`` the only default city."""
    city = session.get(City, city_id)
    if not city:
        raise NotFoundError("City not found.")
    with transaction(session):
        _clear_default_city(session)
        city.is_default = True
        session.add(city)
    logger.info("Default city is now %s", city_id)


def delete_city(session: Session, city_id: uuid.UUID) -> None:
    city = session.get(City, city_id)
    if not city:
        raise NotFoundError("City not found.")
    if session.exec(select(Restaurant.id).where(col(Restaurant.city_id) == city_id)).first():
        raise ReferentialConflictError(
            "Cannot delete this city because it has restaurants. "
            "Reassign or delete those restaurants first."
        )
    with transaction(session):
        session.delete(city)
    logger.info("Deleted city %s", city_id)


# ---------------------------------------------------------------------------
# Restaurant types
# ---------------------------------------------------------------------------


def create_restaurant_type(session: Session, payload) -> uuid.UUID:
    data = _parse(RestaurantTypeInput, payload)
    with transaction(session):
        rtype = RestaurantType(name=data.name, emoji=data.emoji)
        session.add(rtype)
        type_id = rtype.id
    logger.info("Created restaurant type %s (%s)", type_id, data.name)
    return type_id


def update_restaurant_type(session: Session, type_id: uuid.UUID, payload) -> None:
    data = _parse(RestaurantTypeInput, payload)
    rtype = session.get(RestaurantType, type_id)
    if not rtype:
        raise NotFoundError("Restaurant type not found.")
    with transaction(session):
        rtype.name = data.name
        rtype.emoji = data.emoji
        session.add(rtype)


def delete_restaurant_type(session: Session, type_id: uuid.UUID) -> None:
    rtype = session.get(RestaurantType, type_id)
    if not rtype:
        raise NotFoundError("Restaurant type not found.")
    in_use = session.exec(
        select(RestaurantToType.restaurant_id).where(col(RestaurantToType.restaurant_type_id) == type_id)
    ).first()
    if in_use:
        raise ReferentialConflictError(
            "Cannot delete this restaurant type because it is used by restaurants. "
            "Remove it from those restaurants first."
        )
    with transaction(session):
        session.delete(rtype)
    logger.info("Deleted restaurant type %s", type_id)


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------


def get_cms_data(session: Session, include_deleted: bool = False) -> CmsData:
    countries = session.exec(select(Country).order_by(Country.name)).all()
    city_rows = session.exec(
        select(City, Country)
        .join(Country, col(City.country_id) == col(Country.id))
        .order_by(Country.name, City.name)
    ).all()
    types = session.exec(select(RestaurantType).order_by(RestaurantType.name)).all()

    restaurant_stmt = (
        select(Restaurant, City, Country)
        .join(City, col(Restaurant.city_id) == col(City.id))
        .join(Country, col(City.country_id) == col(Country.id))
        .order_by(Country.name, City.name, Restaurant.name)
    )
    if not include_deleted:
        restaurant_stmt = restaurant_stmt.where(col(Restaurant.deleted_at).is_(None))
    restaurant_rows = session.exec(restaurant_stmt).all()

    areas = session.exec(select(RestaurantArea)).all()
    meals = session.exec(select(RestaurantMeal)).all()
    type_links = session.exec(
        select(RestaurantToType, RestaurantType)
        .join(RestaurantType, col(RestaurantToType.restaurant_type_id) == col(RestaurantType.id))
        .order_by(RestaurantType.name)
    ).all()

    areas_by_restaurant: dict[uuid.UUID, list[str]] = defaultdict(list)
    for a in areas:
        areas_by_restaurant[a.restaurant_id].append(a.area)

    meals_by_restaurant: dict[uuid.UUID, list] = defaultdict(list)
    for m in meals:
        meals_by_restaurant[m.restaurant_id].append(m.meal_type)

    types_by_restaurant: dict[uuid.UUID, list[RestaurantTypeRead]] = defaultdict(list)
    for link, rtype in type_links:
        types_by_restaurant[link.restaurant_id].append(RestaurantTypeRead.model_validate(rtype))

    default_city_name: Optional[str] = None
    cities = []
    for city, country in city_rows:
        if city.is_default:
            default_city_name = city.name
        cities.append(
            CityRead(
                id=city.id,
                name=city.name,
                country_id=city.country_id,
                country_name=country.name,
                is_default=city.is_default,
            )
        )

    return CmsData(
        countries=[CountryRead.model_validate(c) for c in countries],
        cities=cities,
        types=[RestaurantTypeRead.model_validate(t) for t in types],
        restaurants=[
            to_read(
                r,
                city,
                country,
                areas=areas_by_restaurant[r.id],
                meal_types=meals_by_restaurant[r.id],
                types=types_by_restaurant[r.id],
            )
            for r, city, country in restaurant_rows
        ],
        default_city_name=default_city_name,
    )
