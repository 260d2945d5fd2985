"""Exception hierarchy for servicewatch.

Health-check failures are never raised: they are recorded as a ``down``
CheckResult. Only store lookups, notification delivery and persistence
produce exceptions.
"""
from typing import Optional


class ServiceWatchError(Exception):
    """Base class for all servicewatch errors."""

    def __init__(self, message: str = "An error occurred", cause: Optional[Exception] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause


class StoreError(ServiceWatchError):
    """A store operation referenced a missing or duplicate ID."""


class NotFoundError(StoreError):
    """No endpoint (or history) exists with the given ID."""

    def __init__(self, item_id: str, kind: str = "service"):
        super().__init__(f"{kind} not found: {item_id}")
        self.item_id = item_id
        self.kind = kind


class AlreadyExistsError(StoreError):
    """An entry with the given ID is already stored."""

    def __init__(self, item_id: str, kind: str = "service"):
        super().__init__(f"{kind} already exists: {item_id}")
        self.item_id = item_id
        self.kind = kind


class TransportError(ServiceWatchError):
    """Delivering a notification to the messaging API failed."""


class PersistenceError(ServiceWatchError):
    """Loading or saving the persisted dataset failed."""
