from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from functools import lru_cache
from typing import AsyncIterator, Optional

from fastapi import Cookie, Depends, FastAPI, HTTPException, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlmodel import Session

from . import restaurants as restaurant_ops
from . import service
from .auth import SESSION_COOKIE, AdminIdentity, SessionManager
from .config import get_settings
from .db import engine, get_session, init_db
from .errors import (
    EatsError,
    InvalidCredentialsError,
    MisconfiguredError,
    NotFoundError,
    RateLimitedError,
    ReferentialConflictError,
    TransactionError,
    ValidationError,
)
from .schemas import (
    AdminRead,
    CityInput,
    CmsData,
    CountryInput,
    CreatedResponse,
    HealthResponse,
    LoginRequest,
    LoginResponse,
    RestaurantInput,
    RestaurantRead,
    RestaurantTypeInput,
)

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    logger.info("Starting Eats CMS (env=%s)", settings.app_env)
    init_db()
    logger.info("Database tables created/verified.")
    yield
    engine.dispose()


app = FastAPI(title="Eats CMS", version="0.1.0", lifespan=lifespan)


@lru_cache(maxsize=1)
def get_session_manager() -> SessionManager:
    return SessionManager(get_settings())


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------

_STATUS_BY_ERROR = [
    (ValidationError, 422),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ReferentialConflictError, status.HTTP_409_CONFLICT),
    (TransactionError, status.HTTP_409_CONFLICT),
    (InvalidCredentialsError, status.HTTP_401_UNAUTHORIZED),
    (RateLimitedError, status.HTTP_429_TOO_MANY_REQUESTS),
    (MisconfiguredError, status.HTTP_500_INTERNAL_SERVER_ERROR),
]


def _error_body(exc: EatsError) -> dict:
    body: dict = {"detail": exc.message}
    if isinstance(exc, ValidationError):
        body["errors"] = [{"field": e.field, "message": e.message} for e in exc.errors]
    return body


@app.exception_handler(EatsError)
async def eats_error_handler(request: Request, exc: EatsError) -> JSONResponse:
    code = next((c for cls, c in _STATUS_BY_ERROR if isinstance(exc, cls)), 400)
    if code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=code, content=_error_body(exc))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content=_error_body(ValidationError.from_pydantic(exc)),
    )


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


def require_admin(
    admin_session: Optional[str] = Cookie(default=None),
    manager: SessionManager = Depends(get_session_manager),
) -> AdminIdentity:
    identity = manager.verify(admin_session)
    if identity is None:
        raise HTTPException(status_code=401, detail="Authentication required.")
    return identity


@app.post("/admin/login", response_model=LoginResponse)
def login(
    payload: LoginRequest,
    request: Request,
    response: Response,
    manager: SessionManager = Depends(get_session_manager),
):
    client_address = request.client.host if request.client else "unknown"
    issued = manager.issue(payload.username, payload.password, client_address)
    response.set_cookie(
        SESSION_COOKIE,
        issued.token,
        max_age=issued.ttl_seconds,
        httponly=True,
        samesite="lax",
        secure=settings.is_production,
        path="/",
    )
    return LoginResponse(username=payload.username, expires_in=issued.ttl_seconds)


@app.post("/admin/logout")
def logout(response: Response):
    response.delete_cookie(SESSION_COOKIE, path="/")
    return {"ok": True}


@app.get("/admin/me", response_model=AdminRead)
def me(identity: AdminIdentity = Depends(require_admin)):
    return AdminRead(
        username=identity.username,
        issued_at=datetime.fromtimestamp(identity.issued_at, tz=timezone.utc),
        expires_at=datetime.fromtimestamp(identity.expires_at, tz=timezone.utc),
    )


# ---------------------------------------------------------------------------
# Public
# ---------------------------------------------------------------------------


@app.get("/health", response_model=HealthResponse)
def health():
    return HealthResponse(ok=True, db=engine.url.render_as_string(hide_password=True))


@app.get("/restaurants", response_model=CmsData)
def public_restaurants(session: Session = Depends(get_session)):
    return service.get_cms_data(session)


# ---------------------------------------------------------------------------
# Admin: reference data
# ---------------------------------------------------------------------------


@app.get("/admin/cms", response_model=CmsData)
def admin_cms(session: Session = Depends(get_session), _: AdminIdentity = Depends(require_admin)):
    return service.get_cms_data(session, include_deleted=True)


@app.post("/admin/countries", response_model=CreatedResponse, status_code=201)
def create_country(
    payload: CountryInput,
    session: Session = Depends(get_session),
    _: AdminIdentity = Depends(require_admin),
):
    return CreatedResponse(id=service.create_country(session, payload))


@app.put("/admin/countries/{country_id}", status_code=204)
def update_country(
    country_id: uuid.UUID,
    payload: CountryInput,
    session: Session = Depends(get_session),
    _: AdminIdentity = Depends(require_admin),
):
    service.update_country(session, country_id, payload)


@app.delete("/admin/countries/{country_id}", status_code=204)
def delete_country(
    country_id: uuid.UUID,
    session: Session = Depends(get_session),
    _: AdminIdentity = Depends(require_admin),
):
    service.delete_country(session, country_id)


@app.post("/admin/cities", response_model=CreatedResponse, status_code=201)
def create_city(
    payload: CityInput,
    session: Session = Depends(get_session),
    _: AdminIdentity = Depends(require_admin),
):
    return CreatedResponse(id=service.create_city(session, payload))


@app.put("/admin/cities/{city_id}", status_code=204)
def update_city(
    city_id: uuid.UUID,
    payload: CityInput,
    session: Session = Depends(get_session),
    _: AdminIdentity = Depends(require_admin),
):
    service.update_city(session, city_id, payload)


@app.post("/admin/cities/{city_id}/default", status_code=204)
def make_default_city(
    city_id: uuid.UUID,
    session: Session = Depends(get_session),
    _: AdminIdentity = Depends(require_admin),
):
    service.set_default_city(session, city_id)


@app.delete("/admin/cities/{city_id}", status_code=204)
def delete_city(
    city_id: uuid.UUID,
    session: Session = Depends(get_session),
    _: AdminIdentity = Depends(require_admin),
):
    service.delete_city(session, city_id)


@app.post("/admin/types", response_model=CreatedResponse, status_code=201)
def create_type(
    payload: RestaurantTypeInput,
    session: Session = Depends(get_session),
    _: AdminIdentity = Depends(require_admin),
):
    return CreatedResponse(id=service.create_restaurant_type(session, payload))


@app.put("/admin/types/{type_id}", status_code=204)
def update_type(
    type_id: uuid.UUID,
    payload: RestaurantTypeInput,
    session: Session = Depends(get_session),
    _: AdminIdentity = Depends(require_admin),
):
    service.update_restaurant_type(session, type_id, payload)


@app.delete("/admin/types/{type_id}", status_code=204)
def delete_type(
    type_id: uuid.UUID,
    session: Session = Depends(get_session),
    _: AdminIdentity = Depends(require_admin),
):
    service.delete_restaurant_type(session, type_id)


# ---------------------------------------------------------------------------
# Admin: restaurants
# ---------------------------------------------------------------------------


@app.post("/admin/restaurants", response_model=CreatedResponse, status_code=201)
def create_restaurant(
    payload: RestaurantInput,
    session: Session = Depends(get_session),
    _: AdminIdentity = Depends(require_admin),
):
    return CreatedResponse(id=restaurant_ops.create_restaurant(session, payload))


@app.get("/admin/restaurants/{restaurant_id}", response_model=RestaurantRead)
def get_restaurant(
    restaurant_id: uuid.UUID,
    session: Session = Depends(get_session),
    _: AdminIdentity = Depends(require_admin),
):
    return restaurant_ops.get_restaurant(session, restaurant_id)


@app.put("/admin/restaurants/{restaurant_id}", response_model=CreatedResponse)
def update_restaurant(
    restaurant_id: uuid.UUID,
    payload: RestaurantInput,
    session: Session = Depends(get_session),
    _: AdminIdentity = Depends(require_admin),
):
    return CreatedResponse(id=restaurant_ops.update_restaurant(session, restaurant_id, payload))


@app.delete("/admin/restaurants/{restaurant_id}", status_code=204)
def soft_delete_restaurant(
    restaurant_id: uuid.UUID,
    session: Session = Depends(get_session),
    _: AdminIdentity = Depends(require_admin),
):
    restaurant_ops.soft_delete_restaurant(session, restaurant_id)


@app.post("/admin/restaurants/{restaurant_id}/restore", status_code=204)
def restore_restaurant(
    restaurant_id: uuid.UUID,
    session: Session = Depends(get_session),
    _: AdminIdentity = Depends(require_admin),
):
    restaurant_ops.restore_restaurant(session, restaurant_id)


@app.delete("/admin/restaurants/{restaurant_id}/purge", status_code=204)
def purge_restaurant(
    restaurant_id: uuid.UUID,
    session: Session = Depends(get_session),
    _: AdminIdentity = Depends(require_admin),
):
    """Dangerous: removes the restaurant and its child rows for good."""
    restaurant_ops.delete_restaurant(session, restaurant_id)


def run() -> None:
    import uvicorn

    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    run()
