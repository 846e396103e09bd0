"""
Application constants and enums.
"""

from datetime import timedelta
from decimal import Decimal
from enum import Enum


class ReservationStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    SEATED = "seated"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"
    EXPIRED = "expired"


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY = "ready"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    UNPAID = "unpaid"
    PARTIAL = "partial"
    PAID = "paid"
    REFUNDED = "refunded"


class PaymentMethod(str, Enum):
    CASH = "cash"
    CARD = "card"
    BANK_TRANSFER = "bank_transfer"
    MOBILE_PAYMENT = "mobile_payment"
    OTHER = "other"


class OrderType(str, Enum):
    RESERVATION = "reservation"
    WALK_IN = "walk-in"


class TableLocation(str, Enum):
    INDOOR = "indoor"
    OUTDOOR = "outdoor"
    VIP = "vip"
    TERRACE = "terrace"

    @classmethod
    def all_values(cls) -> set:
        return {member.value for member in cls}


class TableStatusType(str, Enum):
    AVAILABLE = "available"
    RESERVED = "reserved"
    SEATED = "seated"
    ORDERED = "ordered"
    SERVED = "served"
    AWAITING_PAYMENT = "awaiting_payment"
    OVERDUE = "overdue"
    CLEANING = "cleaning"
    UNAVAILABLE = "unavailable"


class ActorScope(str, Enum):
    CUSTOMER = "customer"
    STAFF = "staff"
    SYSTEM = "system"

    @classmethod
    def all_values(cls) -> set:
        return {member.value for member in cls}


class Collection(str, Enum):
    """Change-feed collections exposed by the document store."""

    TABLES = "tables"
    TIME_SLOTS = "time_slots"
    RESERVATIONS = "reservations"
    ORDERS = "orders"


# Statuses that hold a table for a (date, slot); used for double-booking checks
# and by the partial unique index on reservations.
ACTIVE_RESERVATION_STATUSES = {
    ReservationStatus.PENDING,
    ReservationStatus.CONFIRMED,
    ReservationStatus.SEATED,
}

# Statuses that govern live occupancy of a table.
OCCUPYING_RESERVATION_STATUSES = {
    ReservationStatus.CONFIRMED,
    ReservationStatus.SEATED,
}

# Reservations counted against the per-user limit.
USER_LIMITED_RESERVATION_STATUSES = {
    ReservationStatus.PENDING,
    ReservationStatus.CONFIRMED,
}

TERMINAL_RESERVATION_STATUSES = {
    ReservationStatus.COMPLETED,
    ReservationStatus.CANCELLED,
    ReservationStatus.NO_SHOW,
    ReservationStatus.EXPIRED,
}

OPEN_ORDER_STATUSES = {
    OrderStatus.PENDING,
    OrderStatus.CONFIRMED,
    OrderStatus.PREPARING,
    OrderStatus.READY,
}

ORDER_STATUS_SEQUENCE = [
    OrderStatus.PENDING,
    OrderStatus.CONFIRMED,
    OrderStatus.PREPARING,
    OrderStatus.READY,
    OrderStatus.DELIVERED,
]

_STAFF_AND_SYSTEM = {ActorScope.STAFF.value, ActorScope.SYSTEM.value}

RESERVATION_TRANSITIONS = {
    (ReservationStatus.PENDING, ReservationStatus.CONFIRMED): {
        "action": "confirm",
        "allowed_scopes": _STAFF_AND_SYSTEM,
    },
    (ReservationStatus.PENDING, ReservationStatus.SEATED): {
        "action": "seat",
        "allowed_scopes": _STAFF_AND_SYSTEM,
    },
    (ReservationStatus.CONFIRMED, ReservationStatus.SEATED): {
        "action": "seat",
        "allowed_scopes": _STAFF_AND_SYSTEM,
    },
    (ReservationStatus.SEATED, ReservationStatus.COMPLETED): {
        "action": "complete",
        "allowed_scopes": _STAFF_AND_SYSTEM,
    },
    (ReservationStatus.CONFIRMED, ReservationStatus.COMPLETED): {
        "action": "complete",
        "allowed_scopes": _STAFF_AND_SYSTEM,
    },
    (ReservationStatus.PENDING, ReservationStatus.COMPLETED): {
        "action": "complete",
        "allowed_scopes": _STAFF_AND_SYSTEM,
    },
    (ReservationStatus.PENDING, ReservationStatus.CANCELLED): {
        "action": "cancel",
        "allowed_scopes": ActorScope.all_values(),
    },
    (ReservationStatus.CONFIRMED, ReservationStatus.CANCELLED): {
        "action": "cancel",
        "allowed_scopes": ActorScope.all_values(),
    },
    (ReservationStatus.CONFIRMED, ReservationStatus.NO_SHOW): {
        "action": "mark_no_show",
        "allowed_scopes": _STAFF_AND_SYSTEM,
    },
    (ReservationStatus.PENDING, ReservationStatus.EXPIRED): {
        "action": "expire",
        "allowed_scopes": {ActorScope.SYSTEM.value},
    },
    (ReservationStatus.CONFIRMED, ReservationStatus.EXPIRED): {
        "action": "expire",
        "allowed_scopes": {ActorScope.SYSTEM.value},
    },
    (ReservationStatus.SEATED, ReservationStatus.EXPIRED): {
        "action": "expire",
        "allowed_scopes": {ActorScope.SYSTEM.value},
    },
}

# Flat booking fee multiplied by the table's price multiplier.
RESERVATION_BASE_FEE = Decimal("10.00")

MAX_ACTIVE_RESERVATIONS_PER_USER = 2

# Customers may cancel only while more than this remains before the start.
CUSTOMER_CANCELLATION_CUTOFF = timedelta(hours=2)

DEFAULT_WARNING_MINUTES = 45
DEFAULT_OVERDUE_MINUTES = 90
DEFAULT_MAX_SERVICE_MINUTES = 30

TABLE_STATUS_META_DEFAULT = {
    TableStatusType.AVAILABLE.value: {"label": "Available"},
    TableStatusType.RESERVED.value: {"label": "Reserved"},
    TableStatusType.SEATED.value: {"label": "Seated"},
    TableStatusType.ORDERED.value: {"label": "Order In Progress"},
    TableStatusType.SERVED.value: {"label": "Food Served"},
    TableStatusType.AWAITING_PAYMENT.value: {"label": "Awaiting Payment"},
    TableStatusType.OVERDUE.value: {"label": "OVERDUE"},
    TableStatusType.CLEANING.value: {"label": "Cleaning"},
    TableStatusType.UNAVAILABLE.value: {"label": "Unavailable"},
}
