"""Shared pytest fixtures."""

import pytest

from housing_alerts.logging.context import clear_log_context
from housing_alerts.persistence.database import close_database, init_database


@pytest.fixture
def database():
    """Fresh in-memory database for one test."""
    init_database("sqlite:///:memory:")
    yield
    close_database()


@pytest.fixture(autouse=True)
def reset_log_context():
    clear_log_context()
    yield
    clear_log_context()
