from pydantic import BaseModel
from typing import Optional

from app.models.car import Car
from app.services.availability_service import CarAvailability


class AvailabilityOut(BaseModel):
    status: str
    message: str
    nextAvailableAt: Optional[str] = None
    softLockExpiresAt: Optional[str] = None
    blockedFrom: Optional[str] = None
    blockedTo: Optional[str] = None


class CarOut(BaseModel):
    id: str
    make: str
    model: str
    year: Optional[int] = None
    registrationNumber: str
    dailyPrice: int
    status: str
    availability: Optional[AvailabilityOut] = None


def _iso(value) -> Optional[str]:
    return value.isoformat() if value else None


def car_out(car: Car, availability: CarAvailability | None = None) -> CarOut:
    out = CarOut(
        id=car.id,
        make=car.make,
        model=car.model,
        year=car.year,
        registrationNumber=car.registration_number,
        dailyPrice=car.daily_price,
        status=car.status.value,
    )
    if availability is not None:
        out.availability = AvailabilityOut(
            status=availability.status.value,
            message=availability.message,
            nextAvailableAt=_iso(availability.next_available_at),
            softLockExpiresAt=_iso(availability.soft_lock_expires_at),
            blockedFrom=_iso(availability.blocked_from),
            blockedTo=_iso(availability.blocked_to),
        )
    return out
