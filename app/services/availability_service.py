"""
Availability resolver.

A car is blocked for a date range by any *hard* booking (confirmed/active, legacy admin-notified)
or by a *soft lock*: an unpaid or failed pending-payment booking whose payment window has not yet
lapsed. Ranges are half-open, so back-to-back rentals on the same car are allowed.
"""
import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Dict, Iterable, List, Optional

from app.core.clock import Clock, SystemClock
from app.core.enums import (
    HARD_BLOCK_STATUSES,
    SOFT_LOCK_PAYMENT_STATUSES,
    SOFT_LOCK_STATUSES,
    CarAvailabilityStatus,
    CarStatus,
)
from app.core.exceptions import ConflictError
from app.models.booking import Booking
from app.models.car import Car
from app.repositories.booking_repository import BookingRepository

logger = logging.getLogger(__name__)


@dataclass
class CarAvailability:
    car_id: str
    status: CarAvailabilityStatus
    message: str
    next_available_at: Optional[datetime] = None
    soft_lock_expires_at: Optional[datetime] = None
    blocked_from: Optional[date] = None
    blocked_to: Optional[date] = None


def is_soft_lock_blocking(booking: Booking, as_of: datetime) -> bool:
    return (
        booking.status in SOFT_LOCK_STATUSES
        and booking.payment_status in SOFT_LOCK_PAYMENT_STATUSES
        and booking.payment_expires_at is not None
        and booking.payment_expires_at > as_of
    )


def is_hard_blocking(booking: Booking, today: date) -> bool:
    if booking.status not in HARD_BLOCK_STATUSES:
        return False
    return booking.return_date is None or booking.return_date >= today


class AvailabilityService:
    def __init__(self, bookings: BookingRepository, clock: Clock | None = None):
        self.bookings = bookings
        self.clock = clock or SystemClock()

    def find_conflicts(self, car_id: str, pickup_date: date, return_date: date, as_of: datetime) -> List[Booking]:
        return self.bookings.find_conflicting(car_id, pickup_date, return_date, as_of)

    def ensure_available(self, car_id: str, pickup_date: date, return_date: date, as_of: datetime) -> None:
        conflicts = self.find_conflicts(car_id, pickup_date, return_date, as_of)
        if conflicts:
            summary = ", ".join(f"{b.id}:{b.status.value}" for b in conflicts)
            logger.warning("Car %s not available for %s to %s. Conflicts: %s", car_id, pickup_date, return_date, summary)
            raise ConflictError(
                "Car is not available for the selected dates",
                details={"conflictingBookingIds": [b.id for b in conflicts]},
            )
        logger.debug("Car %s is available for %s to %s", car_id, pickup_date, return_date)

    def resolve_for_cars(self, cars: Iterable[Car], as_of: datetime | None = None) -> Dict[str, CarAvailability]:
        """Availability of many cars from a single query, keyed by car id."""
        cars = list(cars)
        as_of = as_of or self.clock.now()
        by_car: Dict[str, List[Booking]] = defaultdict(list)
        for booking in self.bookings.find_blocking_for_cars([c.id for c in cars], as_of):
            by_car[booking.car_id].append(booking)
        return {car.id: self._describe(car, by_car.get(car.id, []), as_of) for car in cars}

    def resolve_for_car(self, car: Car, as_of: datetime | None = None) -> CarAvailability:
        return self.resolve_for_cars([car], as_of)[car.id]

    def _describe(self, car: Car, bookings: List[Booking], as_of: datetime) -> CarAvailability:
        if car.status == CarStatus.MAINTENANCE:
            return CarAvailability(car.id, CarAvailabilityStatus.MAINTENANCE, "This vehicle is currently under maintenance.")

        today = self.clock.local_date(as_of)
        booked = sorted((b for b in bookings if is_hard_blocking(b, today)), key=lambda b: (b.return_date or date.max, b.id))
        if booked:
            blocker = booked[0]
            return CarAvailability(
                car.id,
                CarAvailabilityStatus.BOOKED,
                f"This vehicle is booked from {blocker.pickup_date} to {blocker.return_date}.",
                next_available_at=datetime.combine(blocker.return_date, time.min, tzinfo=self.clock.tz),
                blocked_from=blocker.pickup_date,
                blocked_to=blocker.return_date,
            )

        soft = sorted((b for b in bookings if is_soft_lock_blocking(b, as_of)), key=lambda b: (b.payment_expires_at, b.id))
        if soft:
            blocker = soft[0]
            return CarAvailability(
                car.id,
                CarAvailabilityStatus.SOFT_LOCKED,
                "This vehicle is temporarily reserved while another customer completes payment.",
                next_available_at=blocker.payment_expires_at,
                soft_lock_expires_at=blocker.payment_expires_at,
                blocked_from=blocker.pickup_date,
                blocked_to=blocker.return_date,
            )

        if car.status == CarStatus.RENTED:
            return CarAvailability(car.id, CarAvailabilityStatus.BOOKED, "This vehicle is currently in an active rental.")
        return CarAvailability(car.id, CarAvailabilityStatus.AVAILABLE, "Available for booking.")
