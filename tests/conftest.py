"""
tests/conftest.py

Shared fixtures: an in-memory SQLite store built from the ORM models and a
query cache over the in-memory backend.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import db.models  # noqa: F401 registers all ORM models on Base.metadata
from app.cache.backends import InMemoryKeyValueCache
from app.cache.query_cache import QueryCache
from app.repositories.contract_store import SqlAlchemyContractStore
from db.base import Base


class FakeClock:
    """Monotonic clock the tests advance by hand."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def engine() -> Iterator[Engine]:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture()
def session(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def store(session: Session) -> SqlAlchemyContractStore:
    return SqlAlchemyContractStore(session)


@pytest.fixture()
def store_factory(session_factory: sessionmaker[Session]):
    @contextmanager
    def _open() -> Iterator[SqlAlchemyContractStore]:
        db = session_factory()
        try:
            yield SqlAlchemyContractStore(db)
        finally:
            db.close()

    return _open


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def memory_backend(clock: FakeClock) -> InMemoryKeyValueCache:
    return InMemoryKeyValueCache(clock=clock)


@pytest.fixture()
def cache(memory_backend: InMemoryKeyValueCache) -> QueryCache:
    return QueryCache(memory_backend, namespace="test", default_ttl_seconds=60)
