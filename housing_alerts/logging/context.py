"""Scoped log fields carried through contextvars.

Each asyncio task (and each ``asyncio.to_thread`` call) gets a copy of the
current context, so fields pushed by a job such as ``run_id`` or
``job_type`` show up on every record that job emits, including records from
repositories running in worker threads.
"""

from contextvars import ContextVar, Token
from typing import Any, Dict, Optional

_LOG_CONTEXT: ContextVar[Dict[str, Any]] = ContextVar("log_context", default={})


def get_log_context() -> Dict[str, Any]:
    """Return a copy of the fields active in the current context."""
    return dict(_LOG_CONTEXT.get())


def push_log_context(**fields) -> Token:
    """Layer ``fields`` over the current context and return the reset token."""
    return _LOG_CONTEXT.set({**_LOG_CONTEXT.get(), **fields})


def pop_log_context(token: Token) -> None:
    """Restore the context captured by :func:`push_log_context`."""
    _LOG_CONTEXT.reset(token)


def clear_log_context() -> None:
    """Drop every field (used by tests)."""
    _LOG_CONTEXT.set({})


class log_context:
    """Context manager that scopes log fields to a block.

    Example:
        >>> with log_context(run_id="a1b2", job_type="scraper"):
        ...     logger.info("Harvest started")
    """

    def __init__(self, **fields):
        self.fields = fields
        self._token: Optional[Token] = None

    def __enter__(self):
        self._token = push_log_context(**self.fields)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._token is not None:
            pop_log_context(self._token)
            self._token = None
        return False
