"""Shared fixtures: a throwaway SQLite database per test plus small factories.

Settings are read at import time, so the environment is pinned before any
``docflow`` module is imported.
"""
import os

os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ACTION_RATE_LIMIT", "1000/minute")
os.environ.setdefault("FLOW_VISIBILITY_BACKOFF", "0.01,0.01,0.01,0.01")

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

import docflow.models  # noqa: E402,F401
from docflow.db.base import Base  # noqa: E402
from docflow.models.document import Document, DocumentStatus  # noqa: E402
from docflow.models.user import User  # noqa: E402


@pytest.fixture
def engine(tmp_path):
    eng = create_engine(
        f"sqlite:///{tmp_path / 'docflow.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(engine, expire_on_commit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    with session_factory() as session:
        yield session


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(name: str | None = None, role: str = "USER", department: str | None = None, is_active: bool = True) -> User:
        counter["n"] += 1
        name = name or f"User {counter['n']}"
        user = User(
            email=f"{name.lower().replace(' ', '.')}.{counter['n']}@example.com",
            name=name,
            role=role,
            department=department,
            is_active=is_active,
        )
        db.add(user)
        db.commit()
        return user

    return _make


@pytest.fixture
def make_document(db):
    def _make(owner: User, title: str = "Quarterly budget", status: str = DocumentStatus.draft.value) -> Document:
        document = Document(title=title, owner_id=owner.id, status=status)
        db.add(document)
        db.commit()
        return document

    return _make
