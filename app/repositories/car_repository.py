import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.enums import CarStatus
from app.models.car import Car

logger = logging.getLogger(__name__)


def select_for_update(car_id: str):
    # Row lock serialises bookings on the same car for the rest of the transaction (no-op on SQLite).
    return (
        select(Car)
        .where(Car.id == car_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )


class CarRepository:
    """Vehicle lookup plus the one write the booking engine is allowed: the operational status."""

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, car_id: str) -> Optional[Car]:
        return self.db.get(Car, car_id)

    def get_for_update(self, car_id: str) -> Optional[Car]:
        return self.db.execute(select_for_update(car_id)).scalar_one_or_none()

    def list_all(self) -> List[Car]:
        return list(self.db.scalars(select(Car).order_by(Car.make, Car.model, Car.id)))

    def set_operational_status(self, car_id: str, status: CarStatus) -> Optional[Car]:
        car = self.db.get(Car, car_id)
        if not car:
            logger.warning("Car %s not found while setting status %s", car_id, status.value)
            return None
        if car.status != status:
            logger.debug("Car %s status %s -> %s", car_id, car.status.value if car.status else None, status.value)
            car.status = status
        return car
