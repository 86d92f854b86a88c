"""
Exceptions raised by the bulk-add pipeline.
"""
from typing import Optional


class BulkAddError(Exception):
    """Base class for bulk-add failures."""


class ConfigurationError(BulkAddError):
    """Missing or invalid settings; a batch cannot start."""


class APIError(BulkAddError):
    """An HTTP call to the Doof backend failed."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class TransientAPIError(APIError):
    """Timeouts, dropped connections and 5xx responses. Safe to retry."""


class PermanentAPIError(APIError):
    """4xx responses, rejected API keys, exhausted quotas. Never retried."""


class InvalidTransitionError(BulkAddError):
    """A bulk entry was asked to move to a status it cannot reach."""
