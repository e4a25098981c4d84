import os

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")

import uuid
from datetime import date, datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.db.session import Base
from app.core.clock import Clock
from app.core.enums import BookingStatus, CarStatus, PaymentStatus
from app.core.identity import ADMIN_ROLE, CUSTOMER_ROLE, Actor
from app.services.booking_service import BookingService

# Import models so Base.metadata is populated for create_all.
from app.models.user import User
from app.models.car import Car
from app.models.booking import Booking
from app.models.audit_log import AuditLog  # noqa: F401

NOW = datetime(2025, 5, 20, 9, 0, tzinfo=timezone.utc)


class FixedClock(Clock):
    """Clock that only moves when a test moves it."""

    def __init__(self, now: datetime = NOW):
        super().__init__()
        self._now = now

    def now(self) -> datetime:
        return self._now

    def set(self, now: datetime) -> None:
        self._now = now

    def advance(self, **delta) -> datetime:
        self._now = self._now + timedelta(**delta)
        return self._now


@pytest.fixture(scope="function")
def engine():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture(scope="function")
def db(session_factory) -> Session:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


def make_user(db: Session, role: str = CUSTOMER_ROLE, name: str = "Customer") -> User:
    u = User(
        id=str(uuid.uuid4()),
        email=f"{uuid.uuid4().hex[:8]}@example.com",
        full_name=name,
        role=role,
        password_hash="x",
        is_active=True,
    )
    db.add(u)
    db.commit()
    return u


def make_car(db: Session, daily_price: int = 3000, status: CarStatus = CarStatus.AVAILABLE, make: str = "Toyota") -> Car:
    c = Car(
        id=str(uuid.uuid4()),
        make=make,
        model="Corolla",
        year=2020,
        registration_number=f"K{uuid.uuid4().hex[:6].upper()}",
        daily_price=daily_price,
        status=status,
    )
    db.add(c)
    db.commit()
    return c


def make_booking(
    db: Session,
    user: User,
    car: Car,
    status: BookingStatus = BookingStatus.PENDING_PAYMENT,
    payment_status: PaymentStatus = PaymentStatus.UNPAID,
    pickup: date = date(2025, 6, 1),
    ret: date = date(2025, 6, 5),
    expires_at: datetime | None = NOW + timedelta(minutes=15),
    notified_at: datetime | None = None,
    read: bool = True,
) -> Booking:
    """Insert a booking row directly, bypassing the engine, to put it in an arbitrary state."""
    b = Booking(
        user_id=user.id,
        car_id=car.id,
        pickup_date=pickup,
        return_date=ret,
        pickup_location="JKIA",
        return_location="JKIA",
        daily_price=car.daily_price,
        status=status,
        payment_status=payment_status,
        payment_expires_at=expires_at,
        admin_notified_at=notified_at,
        admin_notification_read=read,
    )
    b.recalculate_total_price()
    db.add(b)
    db.commit()
    return b


@pytest.fixture
def customer(db) -> User:
    return make_user(db, CUSTOMER_ROLE, "Wanjiru")


@pytest.fixture
def other_customer(db) -> User:
    return make_user(db, CUSTOMER_ROLE, "Otieno")


@pytest.fixture
def admin(db) -> User:
    return make_user(db, ADMIN_ROLE, "Admin")


@pytest.fixture
def car(db) -> Car:
    return make_car(db, daily_price=3000)


@pytest.fixture
def customer_actor(customer) -> Actor:
    return Actor(id=customer.id, role=CUSTOMER_ROLE)


@pytest.fixture
def other_actor(other_customer) -> Actor:
    return Actor(id=other_customer.id, role=CUSTOMER_ROLE)


@pytest.fixture
def admin_actor(admin) -> Actor:
    return Actor(id=admin.id, role=ADMIN_ROLE)


@pytest.fixture
def service(db, clock) -> BookingService:
    return BookingService(db, clock=clock)
