"""Pytest configuration and fixtures."""

import pytest

from tests.fakes import FakeDatabase


@pytest.fixture
def fake_database():
    """Provide a fresh fake store for each test."""
    return FakeDatabase()
