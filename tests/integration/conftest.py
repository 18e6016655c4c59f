"""Fixtures for tests against a real PostgreSQL server."""

import dataclasses
from pathlib import Path

import pytest

from rpm_content.application.content_query_service import ContentQueryService
from rpm_content.infrastructure.config import DatabaseConfig
from rpm_content.infrastructure.database import ContentDatabase

SEED_SQL = Path(__file__).with_name("seed.sql")


@pytest.fixture(scope="module")
def content_database():
    """
    A pool holding exactly one connection, seeded with temporary Pulp tables.

    Temporary tables live on the connection that created them, so every
    query in the module reuses that single connection and never sees (or
    touches) real tables of the same name.
    """
    config = dataclasses.replace(DatabaseConfig.from_env(), pool_limit=1)
    database = ContentDatabase(config)
    with database.connection() as conn:
        with conn.cursor() as cur:
            cur.execute(SEED_SQL.read_text(encoding="utf-8"))
    try:
        yield database
    finally:
        database.close()


@pytest.fixture(scope="module")
def service(content_database):
    return ContentQueryService(content_database)
