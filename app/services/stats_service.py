from dataclasses import asdict, dataclass
from datetime import date

from sqlalchemy.orm import Session

from app.core.enums import BookingStatus
from app.repositories.booking_repository import BookingRepository


@dataclass
class BookingStats:
    total: int = 0
    pending_payment: int = 0
    admin_notified: int = 0
    confirmed: int = 0
    active: int = 0
    completed: int = 0
    cancelled: int = 0
    expired: int = 0
    rejected: int = 0
    overdue: int = 0

    def as_dict(self) -> dict:
        return asdict(self)


def booking_stats(db: Session, today: date) -> BookingStats:
    """Dashboard counters. Legacy PENDING rows count as pending payment."""
    repo = BookingRepository(db)
    count = repo.count_by_status
    return BookingStats(
        total=repo.count_all(),
        pending_payment=count(BookingStatus.PENDING_PAYMENT) + count(BookingStatus.PENDING),
        admin_notified=count(BookingStatus.ADMIN_NOTIFIED),
        confirmed=count(BookingStatus.CONFIRMED),
        active=count(BookingStatus.ACTIVE),
        completed=count(BookingStatus.COMPLETED),
        cancelled=count(BookingStatus.CANCELLED),
        expired=count(BookingStatus.EXPIRED),
        rejected=count(BookingStatus.REJECTED),
        overdue=repo.count_overdue(today),
    )
