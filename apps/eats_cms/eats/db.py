from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from .config import DATA_DIR, get_settings
from .errors import TransactionError

logger = logging.getLogger(__name__)


def build_engine(database_url: str, statement_timeout_ms: int = 5000) -> Engine:
    if database_url.startswith("sqlite"):
        kwargs: dict = {
            "connect_args": {
                "check_same_thread": False,
                "timeout": statement_timeout_ms / 1000.0,
            }
        }
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection, otherwise every checkout gets an empty database.
            kwargs["poolclass"] = StaticPool
        else:
            DATA_DIR.mkdir(parents=True, exist_ok=True)
        eng = create_engine(database_url, echo=False, **kwargs)
        event.listen(eng, "connect", _enable_sqlite_foreign_keys)
        return eng

    connect_args = {}
    if database_url.startswith("postgresql") and statement_timeout_ms:
        connect_args["options"] = f"-c statement_timeout={statement_timeout_ms}"
    return create_engine(database_url, echo=False, pool_pre_ping=True, connect_args=connect_args)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


_settings = get_settings()
engine = build_engine(_settings.database_url, _settings.db_statement_timeout_ms)


def init_db() -> None:
    SQLModel.metadata.create_all(engine)


def get_session():
    with Session(engine) as session:
        yield session


@contextmanager
def transaction(session: Session) -> Iterator[Session]:
    """Commit everything done inside the block, or nothing at all."""
    try:
        yield session
        session.commit()
    except IntegrityError as exc:
        session.rollback()
        logger.warning("Transaction rolled back: %s", exc.orig)
        raise TransactionError("The change conflicts with existing data and was not saved.") from exc
    except Exception:
        session.rollback()
        raise
