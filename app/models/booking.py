from datetime import date, datetime, timezone

from sqlalchemy import Boolean, CheckConstraint, Date, ForeignKey, Index, Integer, String, event, false
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.orm.attributes import set_committed_value

from app.core.enums import (
    BookingStatus,
    PaymentStatus,
    TERMINAL_STATUSES,
    normalize_booking_status,
    normalize_payment_status,
)
from app.db.session import Base
from app.db.types import StatusType, UTCDateTime


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        CheckConstraint("return_date > pickup_date", name="ck_bookings_return_after_pickup"),
        CheckConstraint(
            "booking_status IN (%s)" % ", ".join(f"'{s.value}'" for s in BookingStatus),
            name="bookings_booking_status_check",
        ),
        CheckConstraint(
            "payment_status IN (%s)" % ", ".join(f"'{s.value}'" for s in PaymentStatus),
            name="bookings_payment_status_check",
        ),
        Index("ix_bookings_car_dates", "car_id", "pickup_date", "return_date"),
        Index("ix_bookings_status_payment_expiry", "booking_status", "payment_status", "payment_expires_at"),
        {"sqlite_autoincrement": True},  # ids are never reused
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), index=True, nullable=True)  # customer
    car_id: Mapped[str] = mapped_column(String(36), ForeignKey("cars.id"), index=True)

    pickup_date: Mapped[date] = mapped_column(Date)
    return_date: Mapped[date] = mapped_column(Date)
    pickup_location: Mapped[str] = mapped_column(String(100))
    return_location: Mapped[str] = mapped_column(String(100), nullable=True)
    special_requests: Mapped[str] = mapped_column(String(500), nullable=True)

    # Frozen at creation from the car's daily rate
    daily_price: Mapped[int] = mapped_column(Integer)
    total_price: Mapped[int] = mapped_column(Integer)

    status: Mapped[BookingStatus] = mapped_column(
        "booking_status",
        StatusType(BookingStatus, normalize_booking_status),
        default=BookingStatus.PENDING_PAYMENT,
        index=True,
    )
    payment_status: Mapped[PaymentStatus] = mapped_column(
        StatusType(PaymentStatus, normalize_payment_status),
        default=PaymentStatus.UNPAID,
    )
    payment_method: Mapped[str] = mapped_column(String(40), nullable=True)
    payment_reference: Mapped[str] = mapped_column(String(64), nullable=True)
    payment_simulated_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=True)
    payment_expires_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=True, index=True)

    admin_notified_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=True)
    admin_notification_read: Mapped[bool] = mapped_column(Boolean, default=False, server_default=false(), nullable=False)
    admin_notification_read_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=_utcnow, onupdate=_utcnow)
    # Optimistic guard: a flush against a row another transaction already changed raises StaleDataError.
    version: Mapped[int] = mapped_column(Integer, nullable=False, server_default="1")

    __mapper_args__ = {"version_id_col": version}

    @property
    def number_of_days(self) -> int:
        if self.pickup_date is None or self.return_date is None:
            return 0
        return (self.return_date - self.pickup_date).days

    def recalculate_total_price(self) -> None:
        self.total_price = self.number_of_days * int(self.daily_price or 0)

    def can_be_cancelled(self) -> bool:
        return self.status not in TERMINAL_STATUSES

    def is_currently_active(self, today: date) -> bool:
        return self.status == BookingStatus.ACTIVE and self.pickup_date <= today <= self.return_date

    def __repr__(self) -> str:
        return f"<Booking {self.id} car={self.car_id} {self.pickup_date}->{self.return_date} {self.status}>"


@event.listens_for(Booking, "load")
def _coerce_legacy_notification_flag(target, context):
    # Rows written before the read flag became NOT NULL load as unread, without dirtying the row.
    if target.__dict__.get("admin_notification_read") is None:
        set_committed_value(target, "admin_notification_read", False)


@event.listens_for(Booking, "refresh")
def _coerce_legacy_notification_flag_on_refresh(target, context, attrs):
    _coerce_legacy_notification_flag(target, context)
