"""Persistence layer shared with the web application.

Public API:
    - init_database / get_session / check_connection / close_database / get_engine
    - ListingRepository, AlertRepository, UserRepository,
      NotificationRepository, TokenRepository
    - PersistenceError and subclasses

Example:
    >>> init_database("sqlite:///./data/housing_alerts.db")
    >>> with get_session() as session:
    ...     summary = ListingRepository(session).insert_many(listings)
"""

from .database import check_connection, close_database, get_engine, get_session, init_database
from .exceptions import (
    DatabaseConnectionError,
    DataIntegrityError,
    PersistenceError,
    RecordNotFoundError,
)
from .repositories import (
    AlertRepository,
    ListingInsertSummary,
    ListingRepository,
    NotificationRepository,
    TokenRepository,
    UserRepository,
)

__all__ = [
    "init_database",
    "get_session",
    "check_connection",
    "close_database",
    "get_engine",
    "ListingRepository",
    "ListingInsertSummary",
    "AlertRepository",
    "UserRepository",
    "NotificationRepository",
    "TokenRepository",
    "PersistenceError",
    "DatabaseConnectionError",
    "RecordNotFoundError",
    "DataIntegrityError",
]
