"""Pytest configuration and fixtures."""

import pytest

from metastore.database.client import Database, DatabaseConfig
from metastore.pagination.cursor import CursorCodec, generate_pagination_key
from metastore.store.metadata_store import MetadataStore


@pytest.fixture
def db():
    """Create a temporary in-memory database with all tables."""
    database = Database.from_config(DatabaseConfig(url="sqlite:///:memory:"))
    database.create_tables()
    try:
        yield database
    finally:
        database.dispose()


@pytest.fixture
def pagination_key():
    return generate_pagination_key()


@pytest.fixture
def codec(pagination_key):
    return CursorCodec(pagination_key)


@pytest.fixture
def store(db, codec):
    return MetadataStore(db, codec)


@pytest.fixture(autouse=True)
def clear_env(monkeypatch):
    """Keep host environment overrides out of config tests."""
    monkeypatch.delenv("METASTORE_DATABASE_URL", raising=False)
    monkeypatch.delenv("METASTORE_PAGINATION_KEY", raising=False)
