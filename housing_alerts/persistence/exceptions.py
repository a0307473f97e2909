"""Persistence layer exceptions."""


class PersistenceError(Exception):
    """Base class for storage failures raised by the repositories."""


class DatabaseConnectionError(PersistenceError):
    """The database could not be initialized or reached."""


class RecordNotFoundError(PersistenceError):
    """A row that must exist is missing (optional lookups return None instead)."""


class DataIntegrityError(PersistenceError):
    """A constraint other than an expected duplicate was violated."""
