from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.api.deps import get_clock
from app.core.clock import Clock
from app.repositories.booking_repository import BookingRepository
from app.repositories.car_repository import CarRepository
from app.schemas.car import CarOut, car_out
from app.services.availability_service import AvailabilityService

router = APIRouter(tags=["cars"])


@router.get("/cars", response_model=list[CarOut])
def list_cars(db: Session = Depends(get_db), clock: Clock = Depends(get_clock)):
    cars = CarRepository(db).list_all()
    availability = AvailabilityService(BookingRepository(db), clock).resolve_for_cars(cars)
    return [car_out(c, availability.get(c.id)) for c in cars]


@router.get("/cars/{car_id}", response_model=CarOut)
def get_car(car_id: str, db: Session = Depends(get_db), clock: Clock = Depends(get_clock)):
    car = CarRepository(db).get_by_id(car_id)
    if not car:
        raise HTTPException(status_code=404, detail="Car not found")
    return car_out(car, AvailabilityService(BookingRepository(db), clock).resolve_for_car(car))
