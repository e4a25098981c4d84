import random
from datetime import date, datetime, time, timedelta

import pytest

from app.core.enums import BookingStatus, CarAvailabilityStatus, CarStatus, PaymentStatus
from app.core.exceptions import ConflictError
from app.core.identity import Actor
from app.repositories.booking_repository import BookingRepository
from app.services.availability_service import AvailabilityService

from conftest import NOW, make_booking, make_car, make_user


@pytest.fixture
def availability(db, clock) -> AvailabilityService:
    return AvailabilityService(BookingRepository(db), clock)


@pytest.mark.parametrize(
    "pickup, ret, conflicts",
    [
        (date(2025, 6, 5), date(2025, 6, 8), False),   # starts on the existing return day
        (date(2025, 5, 28), date(2025, 6, 1), False),  # ends on the existing pickup day
        (date(2025, 5, 28), date(2025, 6, 2), True),
        (date(2025, 6, 4), date(2025, 6, 9), True),
        (date(2025, 6, 2), date(2025, 6, 3), True),    # inside
        (date(2025, 5, 30), date(2025, 6, 9), True),   # around
    ],
)
def test_half_open_overlap(availability, db, customer, car, pickup, ret, conflicts):
    make_booking(db, customer, car, status=BookingStatus.CONFIRMED, payment_status=PaymentStatus.PAID)
    found = availability.find_conflicts(car.id, pickup, ret, NOW)
    assert bool(found) is conflicts


@pytest.mark.parametrize("status", [BookingStatus.CONFIRMED, BookingStatus.ACTIVE, BookingStatus.ADMIN_NOTIFIED])
def test_hard_blocks_ignore_payment_window(availability, db, customer, car, status):
    make_booking(db, customer, car, status=status, payment_status=PaymentStatus.PAID, expires_at=NOW - timedelta(hours=1))
    assert availability.find_conflicts(car.id, date(2025, 6, 2), date(2025, 6, 3), NOW)


@pytest.mark.parametrize("payment_status", [PaymentStatus.UNPAID, PaymentStatus.FAILED])
def test_soft_lock_blocks_until_window_lapses(availability, db, customer, car, payment_status):
    expires = NOW + timedelta(minutes=15)
    make_booking(db, customer, car, payment_status=payment_status, expires_at=expires)

    assert availability.find_conflicts(car.id, date(2025, 6, 2), date(2025, 6, 3), NOW)
    assert availability.find_conflicts(car.id, date(2025, 6, 2), date(2025, 6, 3), expires - timedelta(seconds=1))
    # lapsed locks stop matching even before the sweep runs
    assert not availability.find_conflicts(car.id, date(2025, 6, 2), date(2025, 6, 3), expires)


def test_legacy_pending_status_soft_locks(availability, db, customer, car):
    make_booking(db, customer, car, status=BookingStatus.PENDING)
    assert availability.find_conflicts(car.id, date(2025, 6, 2), date(2025, 6, 3), NOW)


def test_pending_booking_without_deadline_does_not_block(availability, db, customer, car):
    make_booking(db, customer, car, expires_at=None)
    assert not availability.find_conflicts(car.id, date(2025, 6, 2), date(2025, 6, 3), NOW)


@pytest.mark.parametrize(
    "status",
    [BookingStatus.COMPLETED, BookingStatus.CANCELLED, BookingStatus.EXPIRED, BookingStatus.REJECTED],
)
def test_terminal_bookings_never_block(availability, db, customer, car, status):
    make_booking(db, customer, car, status=status)
    assert not availability.find_conflicts(car.id, date(2025, 6, 2), date(2025, 6, 3), NOW)


def test_other_cars_do_not_block(availability, db, customer, car):
    other = make_car(db)
    make_booking(db, customer, other, status=BookingStatus.CONFIRMED, payment_status=PaymentStatus.PAID)
    assert not availability.find_conflicts(car.id, date(2025, 6, 2), date(2025, 6, 3), NOW)


def test_ensure_available_reports_conflicting_ids(availability, db, customer, car):
    b = make_booking(db, customer, car, status=BookingStatus.CONFIRMED, payment_status=PaymentStatus.PAID)
    with pytest.raises(ConflictError) as exc:
        availability.ensure_available(car.id, date(2025, 6, 2), date(2025, 6, 3), NOW)
    assert exc.value.details == {"conflictingBookingIds": [b.id]}


def test_resolve_for_cars_in_one_pass(availability, db, customer, clock):
    free = make_car(db, make="Mazda")
    maintenance = make_car(db, status=CarStatus.MAINTENANCE, make="Subaru")
    booked = make_car(db, make="Toyota")
    locked = make_car(db, make="Nissan")
    rented = make_car(db, status=CarStatus.RENTED, make="Honda")

    # maintenance wins even over a confirmed booking
    make_booking(db, customer, maintenance, status=BookingStatus.CONFIRMED, payment_status=PaymentStatus.PAID)
    make_booking(db, customer, booked, status=BookingStatus.CONFIRMED, payment_status=PaymentStatus.PAID,
                 pickup=date(2025, 7, 1), ret=date(2025, 7, 4))
    make_booking(db, customer, booked, status=BookingStatus.ACTIVE, payment_status=PaymentStatus.PAID,
                 pickup=date(2025, 5, 19), ret=date(2025, 5, 22))
    make_booking(db, customer, locked, expires_at=NOW + timedelta(minutes=10))
    make_booking(db, customer, locked, expires_at=NOW + timedelta(minutes=5), pickup=date(2025, 8, 1), ret=date(2025, 8, 2))

    result = availability.resolve_for_cars([free, maintenance, booked, locked, rented])

    assert set(result) == {free.id, maintenance.id, booked.id, locked.id, rented.id}
    assert result[free.id].status == CarAvailabilityStatus.AVAILABLE
    assert result[maintenance.id].status == CarAvailabilityStatus.MAINTENANCE

    b = result[booked.id]
    assert b.status == CarAvailabilityStatus.BOOKED
    assert (b.blocked_from, b.blocked_to) == (date(2025, 5, 19), date(2025, 5, 22))
    assert b.next_available_at == datetime.combine(date(2025, 5, 22), time.min, tzinfo=clock.tz)
    assert b.message == "This vehicle is booked from 2025-05-19 to 2025-05-22."

    s = result[locked.id]
    assert s.status == CarAvailabilityStatus.SOFT_LOCKED
    assert s.soft_lock_expires_at == NOW + timedelta(minutes=5)
    assert s.next_available_at == s.soft_lock_expires_at

    r = result[rented.id]
    assert r.status == CarAvailabilityStatus.BOOKED
    assert r.message == "This vehicle is currently in an active rental."


def test_hard_block_beats_soft_lock(availability, db, customer, car):
    make_booking(db, customer, car, expires_at=NOW + timedelta(minutes=10), pickup=date(2025, 6, 10), ret=date(2025, 6, 12))
    make_booking(db, customer, car, status=BookingStatus.CONFIRMED, payment_status=PaymentStatus.PAID)
    assert availability.resolve_for_car(car).status == CarAvailabilityStatus.BOOKED


def test_finished_hard_blocks_are_not_reported(availability, db, customer, car):
    make_booking(db, customer, car, status=BookingStatus.CONFIRMED, payment_status=PaymentStatus.PAID,
                 pickup=date(2025, 5, 1), ret=date(2025, 5, 3))
    assert availability.resolve_for_car(car).status == CarAvailabilityStatus.AVAILABLE


def test_resolve_for_no_cars(availability):
    assert availability.resolve_for_cars([]) == {}


def test_overlapping_creates_never_both_succeed(db, clock, service):
    """Random ranges on a few cars: a create succeeds exactly when nothing blocking overlaps it."""
    rng = random.Random(20250520)
    cars = [make_car(db, daily_price=1000 * (i + 1)) for i in range(3)]
    users = [make_user(db) for _ in range(4)]
    accepted = {c.id: [] for c in cars}

    for _ in range(60):
        car = rng.choice(cars)
        user = rng.choice(users)
        pickup = date(2025, 6, 1) + timedelta(days=rng.randint(0, 30))
        ret = pickup + timedelta(days=rng.randint(1, 5))
        expected_clash = any(p < ret and r > pickup for p, r in accepted[car.id])
        try:
            booking = service.create_booking(Actor(id=user.id), car.id, pickup, ret, "CBD")
        except ConflictError:
            assert expected_clash
            continue
        assert not expected_clash
        accepted[car.id].append((pickup, ret))
        if rng.random() < 0.5:
            service.simulate_payment(Actor(id=user.id), booking.id)

    for ranges in accepted.values():
        ranges.sort()
        for (p1, r1), (p2, r2) in zip(ranges, ranges[1:]):
            assert r1 <= p2
