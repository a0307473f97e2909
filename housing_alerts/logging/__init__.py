"""Structured logging helpers.

Every module logs through ``get_logger(__name__, component=...)`` and names
each record with an ``event`` field, e.g.::

    logger = get_logger(__name__, component="harvester")
    logger.info("Region fetched", extra={"event": "harvester.region.fetched", "count": 12})
"""

import logging
from typing import Optional, Union


class ComponentLoggerAdapter(logging.LoggerAdapter):
    """Adds a fixed ``component`` field while keeping per-call ``extra`` values."""

    def process(self, msg, kwargs):
        kwargs["extra"] = {**self.extra, **(kwargs.get("extra") or {})}
        return msg, kwargs


def get_logger(
    name: str, component: Optional[str] = None
) -> Union[logging.Logger, ComponentLoggerAdapter]:
    """Return the named logger, wrapped to tag records with ``component`` if given."""
    logger = logging.getLogger(name)
    if component:
        return ComponentLoggerAdapter(logger, {"component": component})
    return logger
