"""Status vocabulary for bookings and cars.

Stored rows may still carry legacy values (``PENDING``, ``SIMULATED_PAID``). They stay in the
enums so old rows can be read and queried, but :func:`normalize_booking_status` and
:func:`normalize_payment_status` fold them into their canonical member at the storage boundary,
so business code only ever compares against canonical values (plus ``ADMIN_NOTIFIED`` and
``REJECTED``, which have no canonical counterpart).
"""
from enum import Enum


class BookingStatus(str, Enum):
    PENDING_PAYMENT = "PENDING_PAYMENT"
    CONFIRMED = "CONFIRMED"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"

    # legacy
    PENDING = "PENDING"
    ADMIN_NOTIFIED = "ADMIN_NOTIFIED"
    REJECTED = "REJECTED"


class PaymentStatus(str, Enum):
    UNPAID = "UNPAID"
    PAID = "PAID"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"

    # legacy
    SIMULATED_PAID = "SIMULATED_PAID"


class CarStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    RENTED = "RENTED"
    MAINTENANCE = "MAINTENANCE"


class CarAvailabilityStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    SOFT_LOCKED = "SOFT_LOCKED"
    BOOKED = "BOOKED"
    MAINTENANCE = "MAINTENANCE"


BOOKING_STATUS_ALIASES = {BookingStatus.PENDING: BookingStatus.PENDING_PAYMENT}
PAYMENT_STATUS_ALIASES = {PaymentStatus.SIMULATED_PAID: PaymentStatus.PAID}

# Stored values, legacy included, so SQL predicates match rows that predate the backfill.
HARD_BLOCK_STATUSES = (BookingStatus.CONFIRMED, BookingStatus.ACTIVE, BookingStatus.ADMIN_NOTIFIED)
SOFT_LOCK_STATUSES = (BookingStatus.PENDING_PAYMENT, BookingStatus.PENDING)
SOFT_LOCK_PAYMENT_STATUSES = (PaymentStatus.UNPAID, PaymentStatus.FAILED)
PAID_STATUSES = (PaymentStatus.PAID, PaymentStatus.SIMULATED_PAID)
TERMINAL_STATUSES = (
    BookingStatus.COMPLETED,
    BookingStatus.CANCELLED,
    BookingStatus.EXPIRED,
    BookingStatus.REJECTED,
)
CUSTOMER_EDITABLE_STATUSES = (BookingStatus.PENDING_PAYMENT, BookingStatus.PENDING, BookingStatus.CONFIRMED)


def _normalize(enum_cls, aliases, value):
    if value is None:
        return None
    if not isinstance(value, enum_cls):
        raw = str(value).strip().upper().replace("-", "_").replace(" ", "_")
        try:
            value = enum_cls(raw)
        except ValueError:
            raise ValueError(f"Unknown {enum_cls.__name__}: {value!r}") from None
    return aliases.get(value, value)


def normalize_booking_status(value) -> BookingStatus | None:
    return _normalize(BookingStatus, BOOKING_STATUS_ALIASES, value)


def normalize_payment_status(value) -> PaymentStatus | None:
    return _normalize(PaymentStatus, PAYMENT_STATUS_ALIASES, value)


def normalize_car_status(value) -> CarStatus | None:
    return _normalize(CarStatus, {}, value)


def booking_status_aliases(status: BookingStatus) -> list[BookingStatus]:
    """Every stored value that reads back as ``status``."""
    canonical = normalize_booking_status(status)
    return [canonical] + [legacy for legacy, target in BOOKING_STATUS_ALIASES.items() if target == canonical]


def is_terminal(status) -> bool:
    return normalize_booking_status(status) in TERMINAL_STATUSES


def is_paid(payment_status) -> bool:
    return normalize_payment_status(payment_status) in PAID_STATUSES
