"""
Admin notifications are not a table of their own: a booking carries one when it has been
confirmed (``admin_notified_at`` set), and its read flag says whether an admin has seen it.
"""
import logging
from typing import List

from sqlalchemy.orm import Session

from app.core.clock import Clock, SystemClock
from app.core.exceptions import ConflictError, NotFoundError
from app.models.booking import Booking
from app.repositories.booking_repository import BookingRepository

logger = logging.getLogger(__name__)


def list_unread(db: Session) -> List[Booking]:
    return BookingRepository(db).find_admin_notifications(include_read=False)


def list_all(db: Session) -> List[Booking]:
    return BookingRepository(db).find_admin_notifications(include_read=True)


def mark_read(db: Session, booking_id: int, clock: Clock | None = None) -> Booking:
    clock = clock or SystemClock()
    repo = BookingRepository(db)
    booking = repo.get_for_update(booking_id)
    if not booking:
        raise NotFoundError(f"Booking not found with ID: {booking_id}")
    if booking.admin_notified_at is None:
        raise ConflictError("Booking has no admin notification to mark as read")

    if not booking.admin_notification_read:
        now = clock.now()
        booking.admin_notification_read = True
        if booking.admin_notification_read_at is None:
            booking.admin_notification_read_at = now
        booking.updated_at = now
        repo.save(booking)
        db.commit()
        logger.info("Admin notification for booking %s marked read", booking_id)
    return booking
