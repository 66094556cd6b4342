"""Engine and session factories.

Writes always go to the primary. Reads that tolerate replication lag (the
post-submission visibility poll, listings) may use ``ReadSessionLocal``,
which points at ``DATABASE_READ_URL`` when one is configured.
"""
from collections.abc import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from docflow.core.config import settings


def _make_engine(url: str) -> Engine:
    kwargs = {"echo": settings.APP_ENV == "development", "pool_pre_ping": True}
    if not url.startswith("sqlite"):
        kwargs.update(pool_size=10, max_overflow=20)
    return create_engine(url, **kwargs)


engine = _make_engine(settings.DATABASE_URL)
read_engine = (
    _make_engine(settings.DATABASE_READ_URL) if settings.DATABASE_READ_URL else engine
)

SessionLocal = sessionmaker(
    engine,
    expire_on_commit=False,
    autoflush=False,
)

ReadSessionLocal = sessionmaker(
    read_engine,
    expire_on_commit=False,
    autoflush=False,
)


def get_db() -> Generator[Session, None, None]:
    with SessionLocal() as session:
        try:
            yield session
        except Exception:
            session.rollback()
            raise


def get_read_session_factory() -> sessionmaker:
    """Dependency returning the factory used for replica-tolerant reads."""
    return ReadSessionLocal
