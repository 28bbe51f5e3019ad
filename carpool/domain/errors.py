"""Lifecycle error taxonomy.

Every error carries a stable ``code`` so that callers (the HTTP layer, the
reconciliation worker's logs) can react to the kind of failure without
matching on message text.
"""


class LifecycleError(Exception):
    code = "LIFECYCLE_ERROR"

    def __init__(self, message: str = ""):
        super().__init__(message or self.code)
        self.message = message or self.code


class InsufficientCapacityError(LifecycleError):
    """Raised when a confirmation would drive ``available_seats`` below zero."""

    code = "INSUFFICIENT_CAPACITY"


class TripUnavailableError(LifecycleError):
    """Raised when the trip is terminal or has already departed."""

    code = "TRIP_UNAVAILABLE"


class InvalidStateTransition(LifecycleError):
    """Raised when a status change violates the state machine."""

    code = "INVALID_STATE_TRANSITION"


class ConflictError(LifecycleError):
    """Raised when a conditional update lost a race with another writer."""

    code = "CONFLICT"


class PersistenceError(LifecycleError):
    """Opaque repository failure."""

    code = "PERSISTENCE_ERROR"


class NotFoundError(LifecycleError):
    code = "NOT_FOUND"
