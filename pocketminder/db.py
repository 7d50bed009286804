from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Generator, Iterator, Optional, Type

from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlmodel import Session, SQLModel, create_engine

from pocketminder.clock import Deadline, check_deadline
from pocketminder.config import get_settings
from pocketminder.errors import ConstraintViolation, EngineError, StoreUnavailable

settings = get_settings()


def make_engine(url: str) -> Engine:
    # SQLite needs a special connect arg; others (e.g., Postgres) don't.
    connect_args = {}
    if url.startswith("sqlite"):
        connect_args = {"check_same_thread": False}
    return create_engine(
        url,
        echo=False,  # set True to see SQL in console
        connect_args=connect_args,
    )


engine = make_engine(settings.database_url)

# Log which DB URL is actually in use (helps avoid “which .db?” confusion).
logger = logging.getLogger("db")
logger.info("DB URL in use: %s", engine.url)


def get_session() -> Generator[Session, None, None]:
    """FastAPI dependency: yields a database session and closes it afterwards."""
    with Session(engine) as session:
        yield session


def create_db_and_tables(bind: Engine | None = None) -> None:
    """
    Optional helper for ad-hoc local setups and tests.
    Prefer Alembic migrations for schema changes.
    """
    import pocketminder.models  # noqa: F401  # registers tables on SQLModel.metadata

    SQLModel.metadata.create_all(bind or engine)


@contextmanager
def session_scope(
    bind: Engine,
    *,
    what: str,
    error_cls: Type[EngineError] = StoreUnavailable,
    deadline: Optional[Deadline] = None,
) -> Iterator[Session]:
    """
    Session for one adapter call.
    - refuses to start once the deadline has passed (DeadlineExceeded)
    - turns constraint failures into ConstraintViolation (not retryable)
    - turns driver/connection failures into `error_cls` (retryable engine errors)
    - keeps loaded objects usable after commit (expire_on_commit=False)
    """
    check_deadline(deadline, what)
    try:
        with Session(bind, expire_on_commit=False) as session:
            yield session
    except IntegrityError as exc:
        logger.warning("%s rejected: %s", what, exc.orig)
        raise ConstraintViolation(f"{what}: {exc.orig}") from exc
    except DBAPIError as exc:  # OperationalError, InterfaceError, ...
        logger.warning("%s failed: %s", what, exc.orig)
        raise error_cls(f"{what}: {exc.orig}") from exc
