"""
Booking lifecycle engine.

PENDING_PAYMENT -> CONFIRMED | CANCELLED | EXPIRED
CONFIRMED       -> ACTIVE | COMPLETED | CANCELLED
ACTIVE          -> COMPLETED | CANCELLED
COMPLETED, CANCELLED, EXPIRED (and legacy REJECTED) are terminal.

Every public mutation is one unit of work: the booking row, the car's operational status and
the audit entry are committed together or not at all.
"""
import logging
import uuid
from contextlib import contextmanager
from datetime import date, datetime, timedelta
from typing import List, Optional

from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified
from sqlalchemy.orm.exc import StaleDataError

from app.core.clock import Clock, SystemClock
from app.core.config import settings
from app.core.enums import (
    CUSTOMER_EDITABLE_STATUSES,
    SOFT_LOCK_STATUSES,
    TERMINAL_STATUSES,
    BookingStatus,
    CarStatus,
    PaymentStatus,
    is_paid,
    normalize_booking_status,
)
from app.core.exceptions import (
    AccessDeniedError,
    BookingIntegrityError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from app.core.identity import Actor
from app.models.booking import Booking
from app.repositories.booking_repository import BookingRepository
from app.repositories.car_repository import CarRepository
from app.repositories.user_repository import UserRepository
from app.services.audit_service import log_audit
from app.services.availability_service import AvailabilityService

logger = logging.getLogger(__name__)

SYSTEM_ACTOR_ID = "system"

ALLOWED_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING_PAYMENT: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED, BookingStatus.EXPIRED}),
    BookingStatus.ADMIN_NOTIFIED: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.ACTIVE, BookingStatus.COMPLETED, BookingStatus.CANCELLED}),
    BookingStatus.ACTIVE: frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED}),
}


def allowed_targets(current) -> frozenset[BookingStatus]:
    return ALLOWED_TRANSITIONS.get(normalize_booking_status(current), frozenset())


def normalize_payment_method(method: Optional[str]) -> str:
    if method is None or not method.strip():
        return settings.DEFAULT_PAYMENT_METHOD
    return method.strip().replace("-", "_").replace(" ", "_").upper()


def make_payment_reference(booking_id: int, prefix: str = "PAY") -> str:
    prefix = (prefix or "").strip().upper() or "PAY"
    return f"{prefix}-{booking_id}-{uuid.uuid4().hex[:8].upper()}"


def parse_status(value) -> Optional[BookingStatus]:
    try:
        return normalize_booking_status(value)
    except ValueError as e:
        raise ValidationError(str(e))


class BookingService:
    def __init__(
        self,
        db: Session,
        clock: Clock | None = None,
        cars: CarRepository | None = None,
        bookings: BookingRepository | None = None,
        users: UserRepository | None = None,
        payment_window_minutes: int | None = None,
    ):
        self.db = db
        self.clock = clock or SystemClock()
        self.bookings = bookings or BookingRepository(db)
        self.cars = cars or CarRepository(db)
        self.users = users or UserRepository(db)
        self.availability = AvailabilityService(self.bookings, self.clock)
        if payment_window_minutes is None:
            payment_window_minutes = settings.BOOKING_PAYMENT_WINDOW_MINUTES
        self.payment_window = timedelta(minutes=max(1, int(payment_window_minutes)))

    @contextmanager
    def _unit_of_work(self):
        try:
            yield
            self.db.commit()
        except StaleDataError:
            self.db.rollback()
            logger.warning("Concurrent write detected, rolling back")
            raise ConflictError("Booking was modified by another request. Please retry.")
        except Exception:
            self.db.rollback()
            raise

    # ---------- create ----------

    def create_booking(
        self,
        actor: Actor,
        car_id: str,
        pickup_date: date,
        return_date: date,
        pickup_location: str,
        return_location: Optional[str] = None,
        special_requests: Optional[str] = None,
    ) -> Booking:
        self.expire_pending_payment_bookings()
        logger.info("User %s creating booking for car %s", actor.id, car_id)

        with self._unit_of_work():
            car = self.cars.get_for_update(car_id)
            if not car:
                raise NotFoundError(f"Car not found with ID: {car_id}")
            if car.status == CarStatus.MAINTENANCE:
                raise ConflictError("Car is currently under maintenance")

            user = self.users.get_by_id(actor.id)
            if not user:
                raise NotFoundError(f"User not found with ID: {actor.id}")

            pickup_location = (pickup_location or "").strip()
            if not pickup_location:
                raise ValidationError("Pickup location is required")
            self._validate_dates(pickup_date, return_date)

            now = self.clock.now()
            self.availability.ensure_available(car.id, pickup_date, return_date, now)

            booking = Booking(
                user_id=user.id,
                car_id=car.id,
                pickup_date=pickup_date,
                return_date=return_date,
                pickup_location=pickup_location,
                return_location=(return_location or "").strip() or pickup_location,
                special_requests=special_requests,
                daily_price=int(car.daily_price),
                status=BookingStatus.PENDING_PAYMENT,
                payment_status=PaymentStatus.UNPAID,
                payment_expires_at=now + self.payment_window,
                # nothing to notify about until payment lands
                admin_notification_read=True,
                admin_notified_at=None,
                admin_notification_read_at=None,
                created_at=now,
                updated_at=now,
            )
            booking.recalculate_total_price()
            # every booking bumps the car version, so a racing booking for the same car fails at flush
            car.updated_at = now
            flag_modified(car, "updated_at")
            self.bookings.save(booking)
            log_audit(self.db, actor.id, "booking.create", "booking", booking.id, {
                "carId": car.id,
                "pickupDate": pickup_date.isoformat(),
                "returnDate": return_date.isoformat(),
                "totalPrice": booking.total_price,
            }, at=now)

        logger.info(
            "Booking created with ID: %s - Status: %s - Payment expires at: %s",
            booking.id, booking.status.value, booking.payment_expires_at,
        )
        return booking

    # ---------- reads ----------

    def get_booking(self, actor: Actor, booking_id: int) -> Booking:
        logger.debug("Fetching booking %s", booking_id)
        booking = self._load_booking(booking_id, "view booking")
        self._assert_admin_or_owner(booking, actor, "view")
        return booking

    def list_bookings(self, status=None) -> List[Booking]:
        status = parse_status(status)
        if status is None:
            return self.bookings.find_all()
        logger.debug("Fetching bookings with status: %s", status.value)
        return self.bookings.find_by_status(status)

    def list_customer_bookings(self, actor: Actor) -> List[Booking]:
        logger.debug("Fetching bookings for user %s", actor.id)
        return self.bookings.find_by_user(actor.id)

    def list_car_bookings(self, car_id: str) -> List[Booking]:
        logger.debug("Fetching bookings for car %s", car_id)
        return self.bookings.find_by_car(car_id)

    # ---------- payment ----------

    def simulate_payment(
        self,
        actor: Actor,
        booking_id: int,
        payment_method: Optional[str] = None,
        succeeded: Optional[bool] = None,
    ) -> Booking:
        self.expire_pending_payment_bookings()

        window_expired = False
        with self._unit_of_work():
            booking = self._load_booking(booking_id, "process payment", for_update=True)
            self._assert_admin_or_owner(booking, actor, "simulate payment for")

            if booking.status == BookingStatus.EXPIRED:
                raise ConflictError("Payment window has expired for this booking")
            if booking.status in TERMINAL_STATUSES:
                raise ConflictError(f"Cannot process payment for booking with status: {booking.status.value}")
            if booking.status not in SOFT_LOCK_STATUSES:
                raise ConflictError("Only pending-payment bookings can process payment retries")

            now = self.clock.now()
            if self._payment_window_elapsed(booking, now):
                self._expire(booking, now, "Payment window expired before payment completion", actor.id)
                window_expired = True
            else:
                if is_paid(booking.payment_status):
                    raise ConflictError("Payment has already been completed for this booking")

                successful = succeeded is None or bool(succeeded)
                booking.payment_method = normalize_payment_method(payment_method)
                booking.payment_reference = make_payment_reference(booking.id, "PAY" if successful else "FAIL")
                booking.payment_simulated_at = now

                if successful:
                    booking.payment_status = PaymentStatus.PAID
                    booking.status = BookingStatus.CONFIRMED
                    self._raise_notification(booking, now)
                else:
                    # retry stays possible until the window lapses
                    booking.payment_status = PaymentStatus.FAILED
                    booking.status = BookingStatus.PENDING_PAYMENT

                self._touch(booking, now)
                self.bookings.save(booking)
                log_audit(self.db, actor.id, "booking.payment_simulated", "booking", booking.id, {
                    "successful": successful,
                    "paymentMethod": booking.payment_method,
                    "paymentReference": booking.payment_reference,
                }, at=now)

        if window_expired:
            raise ConflictError("Payment window has expired for this booking")
        if booking.payment_status == PaymentStatus.FAILED:
            logger.warning("Payment failed for booking %s. Retry allowed until %s", booking.id, booking.payment_expires_at)
        else:
            logger.info("Payment completed for booking %s. Booking confirmed.", booking.id)
        return booking

    # ---------- update ----------

    def update_booking(
        self,
        actor: Actor,
        booking_id: int,
        return_location: Optional[str] = None,
        special_requests: Optional[str] = None,
        status=None,
        refund_amount: Optional[int] = None,
    ) -> Booking:
        self.expire_pending_payment_bookings()
        logger.info("Updating booking %s", booking_id)
        target = parse_status(status)

        with self._unit_of_work():
            booking = self._load_booking(booking_id, "update booking", for_update=True)
            self._assert_admin_or_owner(booking, actor, "update")

            if target is not None and not actor.is_admin:
                raise AccessDeniedError("Only admins can change booking status")

            edits_details = return_location is not None or special_requests is not None
            if edits_details and not actor.is_admin and booking.status not in CUSTOMER_EDITABLE_STATUSES:
                raise ConflictError(f"Booking details can no longer be modified in status: {booking.status.value}")

            if target is not None:
                self._validate_transition(booking, target, refund_amount)

            if target is None and not edits_details:
                logger.info("Booking %s update carried no changes", booking_id)
                return booking

            now = self.clock.now()
            previous = booking.status
            if return_location is not None:
                booking.return_location = return_location
            if special_requests is not None:
                booking.special_requests = special_requests
            if target is not None:
                self._apply_transition(booking, target, now)

            self._touch(booking, now)
            self.bookings.save(booking)
            log_audit(self.db, actor.id, "booking.update", "booking", booking.id, {
                "fromStatus": previous.value,
                "toStatus": booking.status.value,
                "returnLocation": return_location,
                "specialRequests": special_requests,
                "refundAmount": refund_amount,
            }, at=now)

        logger.info("Booking %s updated successfully", booking_id)
        return booking

    # ---------- cancel ----------

    def cancel_booking(self, actor: Actor, booking_id: int, reason: Optional[str] = None) -> Booking:
        self.expire_pending_payment_bookings()
        logger.info("Cancelling booking %s", booking_id)

        with self._unit_of_work():
            booking = self._load_booking(booking_id, "cancel booking", for_update=True)
            self._assert_admin_or_owner(booking, actor, "cancel")

            if not booking.can_be_cancelled():
                raise ConflictError(f"Cannot cancel booking with status: {booking.status.value}")

            if not actor.is_admin:
                if booking.status == BookingStatus.ACTIVE:
                    raise AccessDeniedError("Active bookings can only be cancelled by an admin")
                if not booking.pickup_date > self.clock.today():
                    raise ConflictError("Customers may only cancel before the rental start date")

            now = self.clock.now()
            previous = booking.status
            booking.status = BookingStatus.CANCELLED
            self.cars.set_operational_status(booking.car_id, CarStatus.AVAILABLE)
            if is_paid(booking.payment_status):
                booking.payment_status = PaymentStatus.REFUNDED
            self._consume_notification(booking, now)
            self._touch(booking, now)
            self.bookings.save(booking)
            log_audit(self.db, actor.id, "booking.cancel", "booking", booking.id, {
                "fromStatus": previous.value,
                "reason": reason or "",
                "paymentStatus": booking.payment_status.value,
            }, at=now)

        logger.warning("Booking %s cancelled. Reason: %s", booking_id, reason)
        return booking

    # ---------- expiry sweep ----------

    def expire_pending_payment_bookings(self) -> int:
        """Expire every pending-payment booking whose window has lapsed. Safe to call repeatedly."""
        now = self.clock.now()
        with self._unit_of_work():
            expired = self.bookings.find_expired_pending_payment(now)
            for booking in expired:
                self._expire(booking, now, "Payment window elapsed", SYSTEM_ACTOR_ID)
            if expired:
                self.bookings.save_all(expired)
        if expired:
            logger.info("Expired %s pending-payment booking(s)", len(expired))
        return len(expired)

    # ---------- internals ----------

    def _validate_dates(self, pickup_date: date, return_date: date) -> None:
        if pickup_date is None or return_date is None:
            raise ValidationError("Pickup and return dates are required")
        if pickup_date < self.clock.today():
            raise ValidationError("Pickup date cannot be in the past")
        if not return_date > pickup_date:
            raise ValidationError("Return date must be after pickup date")
        if (return_date - pickup_date).days < 1:
            raise ValidationError("Minimum rental period is 1 day")

    def _load_booking(self, booking_id: int, action: str, for_update: bool = False) -> Booking:
        if for_update:
            booking = self.bookings.get_for_update(booking_id)
        else:
            booking = self.bookings.get_by_id(booking_id)
        if not booking:
            raise NotFoundError(f"Booking not found with ID: {booking_id}")
        self._validate_integrity(booking, action)
        return booking

    def _validate_integrity(self, booking: Booking, action: str) -> None:
        if not booking.user_id or not self.users.get_by_id(booking.user_id):
            logger.error("Booking %s has no customer (while trying to %s)", booking.id, action)
            raise BookingIntegrityError("Booking record is missing customer details. Please contact support.")
        if not booking.car_id or not self.cars.get_by_id(booking.car_id):
            logger.error("Booking %s has no vehicle (while trying to %s)", booking.id, action)
            raise BookingIntegrityError("Booking record is missing vehicle details. Please contact support.")
        if booking.status is None:
            raise BookingIntegrityError("Booking status is invalid. Please contact support.")

    def _assert_admin_or_owner(self, booking: Booking, actor: Actor, action: str) -> None:
        if actor.is_admin:
            return
        if not booking.user_id:
            raise BookingIntegrityError("Booking ownership data is missing. Please contact support.")
        if booking.user_id != actor.id:
            raise AccessDeniedError(f"You are not allowed to {action} this booking")

    def _validate_transition(self, booking: Booking, target: BookingStatus, refund_amount: Optional[int]) -> None:
        current = booking.status
        if target not in allowed_targets(current):
            raise ConflictError(f"Invalid status transition: {current.value} -> {target.value}")
        if target == BookingStatus.CONFIRMED and not is_paid(booking.payment_status):
            raise ConflictError("A booking cannot be confirmed before successful payment")
        if target == BookingStatus.EXPIRED and is_paid(booking.payment_status):
            raise ConflictError("A paid booking cannot be marked as expired")
        if target == BookingStatus.CANCELLED and refund_amount is not None and refund_amount < 0:
            raise ValidationError("Refund amount cannot be negative")

    def _apply_transition(self, booking: Booking, target: BookingStatus, now: datetime) -> None:
        current = booking.status
        booking.status = target

        if target == BookingStatus.ACTIVE:
            self.cars.set_operational_status(booking.car_id, CarStatus.RENTED)
        if target in TERMINAL_STATUSES:
            self.cars.set_operational_status(booking.car_id, CarStatus.AVAILABLE)
        if target == BookingStatus.CANCELLED and is_paid(booking.payment_status):
            booking.payment_status = PaymentStatus.REFUNDED

        if target == BookingStatus.CONFIRMED:
            self._raise_notification(booking, now)
        else:
            self._consume_notification(booking, now)

        logger.info("Booking %s status changed: %s -> %s", booking.id, current.value, target.value)

    def _expire(self, booking: Booking, now: datetime, reason: str, actor_id: str) -> None:
        previous = booking.status
        booking.status = BookingStatus.EXPIRED
        self.cars.set_operational_status(booking.car_id, CarStatus.AVAILABLE)
        self._consume_notification(booking, now)
        self._touch(booking, now)
        log_audit(self.db, actor_id, "booking.expire", "booking", booking.id, {
            "fromStatus": previous.value,
            "reason": reason,
            "paymentExpiresAt": booking.payment_expires_at,
        }, at=now)
        logger.warning("Booking %s marked EXPIRED. Reason: %s", booking.id, reason)

    def _payment_window_elapsed(self, booking: Booking, now: datetime) -> bool:
        if booking.status not in SOFT_LOCK_STATUSES or booking.payment_expires_at is None:
            return False
        return booking.payment_expires_at <= now

    @staticmethod
    def _raise_notification(booking: Booking, now: datetime) -> None:
        booking.admin_notified_at = now
        booking.admin_notification_read = False
        booking.admin_notification_read_at = None

    @staticmethod
    def _consume_notification(booking: Booking, now: datetime) -> None:
        if not booking.admin_notification_read:
            booking.admin_notification_read = True
            if booking.admin_notification_read_at is None:
                booking.admin_notification_read_at = now

    @staticmethod
    def _touch(booking: Booking, now: datetime) -> None:
        booking.updated_at = now
