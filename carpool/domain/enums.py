"""Domain enumerations and state-transition rules."""

import enum


class TripStatus(str, enum.Enum):
    PREPARING = "PREPARING"
    URGENT = "URGENT"
    ON_TRIP = "ON_TRIP"
    FULL = "FULL"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class TripKind(str, enum.Enum):
    OFFER = "OFFER"  # posted by a driver with seats to fill
    REQUEST = "REQUEST"  # posted by a passenger looking for a driver


class BookingStatus(str, enum.Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    PICKED_UP = "PICKED_UP"
    ON_BOARD = "ON_BOARD"
    CANCELLED = "CANCELLED"
    REJECTED = "REJECTED"
    EXPIRED = "EXPIRED"


TERMINAL_TRIP_STATUSES: frozenset[TripStatus] = frozenset(
    {TripStatus.COMPLETED, TripStatus.CANCELLED}
)

TERMINAL_BOOKING_STATUSES: frozenset[BookingStatus] = frozenset(
    {BookingStatus.CANCELLED, BookingStatus.REJECTED, BookingStatus.EXPIRED}
)

# Bookings in these statuses hold seats on their trip.
SEAT_HOLDING_STATUSES: frozenset[BookingStatus] = frozenset(
    {BookingStatus.CONFIRMED, BookingStatus.PICKED_UP, BookingStatus.ON_BOARD}
)

# Statuses the reconciliation worker still has to look at.
RECONCILABLE_BOOKING_STATUSES: frozenset[BookingStatus] = frozenset(
    {BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.PICKED_UP}
)


# State machine: maps current status -> set of valid next statuses
# (manual driver / staff actions).
BOOKING_TRANSITIONS: dict[BookingStatus, set[BookingStatus]] = {
    BookingStatus.PENDING: {
        BookingStatus.CONFIRMED,
        BookingStatus.REJECTED,
        BookingStatus.CANCELLED,
        BookingStatus.EXPIRED,
    },
    BookingStatus.CONFIRMED: {
        BookingStatus.PICKED_UP,
        BookingStatus.CANCELLED,
        BookingStatus.EXPIRED,
    },
    BookingStatus.PICKED_UP: {BookingStatus.ON_BOARD},
    BookingStatus.ON_BOARD: set(),
    BookingStatus.CANCELLED: set(),
    BookingStatus.REJECTED: set(),
    BookingStatus.EXPIRED: set(),
}


class NotificationSeverity(str, enum.Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"


class EntityType(str, enum.Enum):
    TRIP = "trip"
    BOOKING = "booking"


class ChangeKind(str, enum.Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
