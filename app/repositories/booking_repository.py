"""
Booking data access.

All availability and expiry predicates are evaluated in SQL so callers never filter
stale rows in Python: a lapsed soft lock simply stops matching.
"""
import logging
from datetime import date, datetime
from typing import Iterable, List, Optional

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.orm import Session

from app.core.enums import (
    HARD_BLOCK_STATUSES,
    SOFT_LOCK_PAYMENT_STATUSES,
    SOFT_LOCK_STATUSES,
    BookingStatus,
    booking_status_aliases,
)
from app.models.booking import Booking

logger = logging.getLogger(__name__)


def blocking_clause(as_of: datetime):
    """Hard blocks always; soft locks only while unpaid/failed and their payment window is still open."""
    return or_(
        Booking.status.in_(HARD_BLOCK_STATUSES),
        and_(
            Booking.status.in_(SOFT_LOCK_STATUSES),
            Booking.payment_status.in_(SOFT_LOCK_PAYMENT_STATUSES),
            Booking.payment_expires_at.is_not(None),
            Booking.payment_expires_at > as_of,
        ),
    )


def select_for_update(booking_id: int):
    # populate_existing: the locked read replaces whatever this session already had in its identity map
    return (
        select(Booking)
        .where(Booking.id == booking_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )


def select_expired_pending_payment(as_of: datetime):
    return (
        select(Booking)
        .where(
            Booking.status.in_(SOFT_LOCK_STATUSES),
            Booking.payment_status.in_(SOFT_LOCK_PAYMENT_STATUSES),
            Booking.payment_expires_at.is_not(None),
            Booking.payment_expires_at <= as_of,
        )
        .order_by(Booking.id)
        # Concurrent sweeps on Postgres skip rows another sweep is already expiring.
        .with_for_update(skip_locked=True)
    )


class BookingRepository:
    def __init__(self, db: Session):
        self.db = db

    def save(self, booking: Booking) -> Booking:
        self.db.add(booking)
        self.db.flush()
        return booking

    def save_all(self, bookings: Iterable[Booking]) -> None:
        self.db.add_all(list(bookings))
        self.db.flush()

    def get_by_id(self, booking_id: int) -> Optional[Booking]:
        return self.db.get(Booking, booking_id)

    def find_conflicting(self, car_id: str, pickup_date: date, return_date: date, as_of: datetime) -> List[Booking]:
        # Half-open ranges: a booking returning on D does not clash with one picking up on D.
        stmt = select(Booking).where(
            Booking.car_id == car_id,
            blocking_clause(as_of),
            Booking.pickup_date < return_date,
            Booking.return_date > pickup_date,
        ).order_by(Booking.pickup_date)
        return list(self.db.scalars(stmt))

    def find_blocking_for_cars(self, car_ids: Iterable[str], as_of: datetime) -> List[Booking]:
        ids = list(car_ids)
        if not ids:
            return []
        stmt = select(Booking).where(Booking.car_id.in_(ids), blocking_clause(as_of))
        return list(self.db.scalars(stmt))

    def get_for_update(self, booking_id: int) -> Optional[Booking]:
        return self.db.execute(select_for_update(booking_id)).scalar_one_or_none()

    def find_expired_pending_payment(self, as_of: datetime) -> List[Booking]:
        return list(self.db.scalars(select_expired_pending_payment(as_of)))

    def find_by_status(self, status: BookingStatus) -> List[Booking]:
        stmt = (
            select(Booking)
            .where(Booking.status.in_(booking_status_aliases(status)))
            .order_by(Booking.created_at.desc(), Booking.id.desc())
        )
        return list(self.db.scalars(stmt))

    def find_all(self) -> List[Booking]:
        return list(self.db.scalars(select(Booking).order_by(Booking.created_at.desc(), Booking.id.desc())))

    def find_by_user(self, user_id: str) -> List[Booking]:
        stmt = select(Booking).where(Booking.user_id == user_id).order_by(Booking.created_at.desc(), Booking.id.desc())
        return list(self.db.scalars(stmt))

    def find_by_car(self, car_id: str) -> List[Booking]:
        stmt = select(Booking).where(Booking.car_id == car_id).order_by(Booking.pickup_date.desc())
        return list(self.db.scalars(stmt))

    def find_admin_notifications(self, include_read: bool = False) -> List[Booking]:
        stmt = select(Booking).where(Booking.admin_notified_at.is_not(None))
        if not include_read:
            stmt = stmt.where(Booking.admin_notification_read.is_not(True))  # legacy NULL counts as unread
        stmt = stmt.order_by(Booking.admin_notified_at.desc(), Booking.id.desc())
        return list(self.db.scalars(stmt))

    def count_by_status(self, status: BookingStatus) -> int:
        stmt = select(func.count(Booking.id)).where(Booking.status == status)
        return int(self.db.scalar(stmt) or 0)

    def count_all(self) -> int:
        return int(self.db.scalar(select(func.count(Booking.id))) or 0)

    def count_overdue(self, today: date) -> int:
        stmt = select(func.count(Booking.id)).where(
            Booking.status == BookingStatus.ACTIVE,
            Booking.return_date < today,
        )
        return int(self.db.scalar(stmt) or 0)

    def backfill_null_notification_read(self) -> int:
        result = self.db.execute(
            update(Booking)
            .where(Booking.admin_notification_read.is_(None))
            .values(admin_notification_read=False)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount:
            logger.warning("Normalized %s booking rows with NULL admin_notification_read", result.rowcount)
        return int(result.rowcount or 0)
