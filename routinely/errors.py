"""Typed failures raised by the Routinely engine.

Every operation either completes or raises one of these. The HTTP layer maps
them to status codes; the engine itself knows nothing about transport.
"""

from __future__ import annotations


class RoutinelyError(Exception):
    """Base class. ``errors`` holds the individual validation messages, if any."""

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.errors = list(errors) if errors else [message]


class InvalidFormat(RoutinelyError):
    """Malformed wall-clock time or hex colour."""


class InvalidInput(RoutinelyError):
    """Missing required field, empty patch, unknown category or weekday."""


class InvalidInterval(InvalidInput):
    """End time is not strictly after start time."""


class TimeConflict(RoutinelyError):
    """Interval overlaps another activity on the same day."""


class NotFound(RoutinelyError):
    """Routine, day or activity absent."""


class Forbidden(RoutinelyError):
    """Caller does not own the activity."""


class Transient(RoutinelyError):
    """Conditional write kept losing the race; safe to retry later."""


class VersionConflict(Exception):
    """Raised by the store when a conditional replace sees a newer version."""

    def __init__(self, collection: str, doc_id: str, expected: int, actual: int | None) -> None:
        super().__init__(
            f"{collection}/{doc_id}: expected version {expected}, found {actual}"
        )
        self.collection = collection
        self.doc_id = doc_id
        self.expected = expected
        self.actual = actual
