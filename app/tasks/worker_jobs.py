import logging

from sqlalchemy.orm import Session
from sqlalchemy.exc import ProgrammingError
from app.core.clock import Clock
from app.db.session import SessionLocal
from app.services.booking_service import BookingService

logger = logging.getLogger(__name__)


def expire_pending_payments(clock: Clock | None = None):
    db: Session = SessionLocal()
    try:
        try:
            expired = BookingService(db, clock=clock).expire_pending_payment_bookings()
        except ProgrammingError:
            # DB not migrated yet; don't crash the worker.
            logger.warning("Skipping pending-payment sweep: booking tables are missing")
            return {"skipped": True, "reason": "missing_tables"}
        if expired:
            logger.info("Pending-payment sweep expired %s booking(s)", expired)
        return {"expired": expired}
    finally:
        db.close()
