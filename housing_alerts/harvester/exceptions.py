"""Exceptions raised by listing sources.

The Harvester catches these per region (and per detail page), records them as
partial errors and carries on with the rest of the run.
"""


class SourceError(Exception):
    """Base class for listing source failures."""


class SourceHTTPError(SourceError):
    """The source answered with an error status (or the connection failed)."""

    def __init__(self, message: str, status_code: int, url: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.url = url


class SourceTimeoutError(SourceError):
    """The source did not answer within the request timeout."""

    def __init__(self, message: str, url: str) -> None:
        super().__init__(message)
        self.url = url


class SourceResponseError(SourceError):
    """The page arrived but could not be interpreted."""


class SourceConfigurationError(SourceError):
    """The source was configured with unusable settings (e.g. unknown name)."""
