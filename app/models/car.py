from sqlalchemy import String, Integer
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime, timezone
from app.db.session import Base
from app.db.types import UTCDateTime, StatusType
from app.core.enums import CarStatus, normalize_car_status

class Car(Base):
    __tablename__ = "cars"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    make: Mapped[str] = mapped_column(String(60), index=True)
    model: Mapped[str] = mapped_column(String(60))
    year: Mapped[int] = mapped_column(Integer, nullable=True)
    registration_number: Mapped[str] = mapped_column(String(20), unique=True, index=True)

    daily_price: Mapped[int] = mapped_column(Integer, default=0)  # KES per day
    # Operational status; booking transitions write it through CarRepository.set_operational_status
    status: Mapped[CarStatus] = mapped_column(StatusType(CarStatus, normalize_car_status, length=20), default=CarStatus.AVAILABLE, index=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))
    # Bumped by every booking written against the car, so two bookings racing for it cannot both commit.
    version: Mapped[int] = mapped_column(Integer, nullable=False, server_default="1")

    __mapper_args__ = {"version_id_col": version}
