"""
Two requests racing on the same rows.

On Postgres the row locks serialise them; the interleavings below run on SQLite, where
FOR UPDATE is not emitted, so they exercise the version guard that backs the locks.
"""
from datetime import date

import pytest
from sqlalchemy.dialects import postgresql

from app.core.enums import BookingStatus, PaymentStatus
from app.core.exceptions import ConflictError
from app.models.audit_log import AuditLog
from app.models.booking import Booking
from app.models.car import Car
from app.repositories import booking_repository, car_repository
from app.repositories.booking_repository import BookingRepository
from app.services.availability_service import AvailabilityService
from app.services.booking_service import BookingService

from conftest import NOW, make_car


def _pg_sql(stmt) -> str:
    return str(stmt.compile(dialect=postgresql.dialect()))


def _interleave(monkeypatch, cls, name, rival):
    """Run ``rival`` once, right after the first call to ``cls.name`` returns."""
    original = getattr(cls, name)
    fired = []

    def hooked(self, *args, **kwargs):
        result = original(self, *args, **kwargs)
        if not fired:
            fired.append(name)
            rival()
        return result

    monkeypatch.setattr(cls, name, hooked)
    return fired


@pytest.fixture
def rival_service(session_factory, clock):
    session = session_factory()
    try:
        yield BookingService(session, clock=clock)
    finally:
        session.close()


@pytest.fixture
def booking(service, customer_actor, car) -> Booking:
    return service.create_booking(customer_actor, car.id, date(2025, 6, 1), date(2025, 6, 5), "JKIA")


# ---------- emitted locks ----------


def test_car_lock_is_for_update_on_postgres():
    sql = _pg_sql(car_repository.select_for_update("car-1"))
    assert "FROM cars" in sql
    assert sql.rstrip().endswith("FOR UPDATE")


def test_booking_lock_is_for_update_on_postgres():
    sql = _pg_sql(booking_repository.select_for_update(7))
    assert "FROM bookings" in sql
    assert sql.rstrip().endswith("FOR UPDATE")


def test_expiry_sweep_skips_locked_rows_on_postgres():
    sql = _pg_sql(booking_repository.select_expired_pending_payment(NOW))
    assert sql.rstrip().endswith("FOR UPDATE SKIP LOCKED")


@pytest.mark.parametrize("method", ["simulate_payment", "update_booking", "cancel_booking"])
def test_mutations_load_the_booking_under_lock(monkeypatch, service, customer_actor, booking, method):
    locked = []
    original = BookingRepository.get_for_update

    def spy(self, booking_id):
        locked.append(booking_id)
        return original(self, booking_id)

    monkeypatch.setattr(BookingRepository, "get_for_update", spy)
    kwargs = {"special_requests": "GPS"} if method == "update_booking" else {}
    getattr(service, method)(customer_actor, booking.id, **kwargs)
    assert locked == [booking.id]


# ---------- interleavings ----------


def test_second_payment_started_mid_payment_does_not_double_charge(
    monkeypatch, service, rival_service, db, customer_actor, booking
):
    fired = _interleave(
        monkeypatch, BookingService, "_assert_admin_or_owner",
        lambda: rival_service.simulate_payment(customer_actor, booking.id, payment_method="card"),
    )

    with pytest.raises(ConflictError):
        service.simulate_payment(customer_actor, booking.id, payment_method="m-pesa")
    assert fired

    db.expire_all()
    stored = db.get(Booking, booking.id)
    assert stored.status == BookingStatus.CONFIRMED
    assert stored.payment_status == PaymentStatus.PAID
    assert stored.payment_method == "CARD"
    payments = db.query(AuditLog).filter(AuditLog.action == "booking.payment_simulated").all()
    assert len(payments) == 1


def test_cancel_racing_the_sweep_keeps_the_expiry(
    monkeypatch, service, rival_service, db, clock, customer_actor, booking
):
    def sweep_after_window():
        clock.advance(minutes=16)
        assert rival_service.expire_pending_payment_bookings() == 1

    _interleave(monkeypatch, BookingService, "_assert_admin_or_owner", sweep_after_window)

    with pytest.raises(ConflictError):
        service.cancel_booking(customer_actor, booking.id, reason="Change of plans")

    db.expire_all()
    stored = db.get(Booking, booking.id)
    assert stored.status == BookingStatus.EXPIRED
    actions = [a for (a,) in db.query(AuditLog.action).filter(AuditLog.entity_id == str(booking.id))]
    assert "booking.cancel" not in actions
    assert actions.count("booking.expire") == 1


def test_create_racing_another_create_for_the_same_car(
    monkeypatch, service, rival_service, db, customer_actor, other_actor, car
):
    """The rival books between this create's availability check and its insert."""
    _interleave(
        monkeypatch, AvailabilityService, "ensure_available",
        lambda: rival_service.create_booking(other_actor, car.id, date(2025, 6, 3), date(2025, 6, 6), "CBD"),
    )

    with pytest.raises(ConflictError):
        service.create_booking(customer_actor, car.id, date(2025, 6, 1), date(2025, 6, 5), "JKIA")

    db.expire_all()
    bookings = BookingRepository(db).find_by_car(car.id)
    assert [(b.user_id, b.pickup_date) for b in bookings] == [(other_actor.id, date(2025, 6, 3))]


def test_rival_create_on_another_car_does_not_interfere(
    monkeypatch, service, rival_service, db, customer_actor, other_actor, car
):
    other_car = make_car(db, daily_price=4500)
    _interleave(
        monkeypatch, AvailabilityService, "ensure_available",
        lambda: rival_service.create_booking(other_actor, other_car.id, date(2025, 6, 1), date(2025, 6, 5), "CBD"),
    )

    mine = service.create_booking(customer_actor, car.id, date(2025, 6, 1), date(2025, 6, 5), "JKIA")
    assert mine.status == BookingStatus.PENDING_PAYMENT
    assert len(BookingRepository(db).find_by_car(other_car.id)) == 1


def test_sequential_creates_still_bump_the_car_version(service, db, customer_actor, car):
    start = car.version
    service.create_booking(customer_actor, car.id, date(2025, 6, 1), date(2025, 6, 5), "JKIA")
    service.create_booking(customer_actor, car.id, date(2025, 6, 5), date(2025, 6, 8), "JKIA")
    db.expire_all()
    assert db.get(Car, car.id).version == start + 2
