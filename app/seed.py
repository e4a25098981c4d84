import logging
import uuid

from sqlalchemy.orm import Session
from sqlalchemy import text
from sqlalchemy.exc import ProgrammingError

from app.db.session import SessionLocal
from app.core.enums import CarStatus
from app.core.identity import ADMIN_ROLE, CUSTOMER_ROLE
from app.core.security import hash_password
from app.models.user import User
from app.models.car import Car

logger = logging.getLogger(__name__)

CARS = [
    # make, model, year, registration, KES per day
    ("Toyota", "Corolla", 2019, "KDA 101A", 3000),
    ("Toyota", "Land Cruiser Prado", 2021, "KDB 202B", 12000),
    ("Nissan", "X-Trail", 2020, "KDC 303C", 6500),
    ("Mazda", "Demio", 2018, "KDD 404D", 2500),
    ("Subaru", "Forester", 2020, "KDE 505E", 7000),
]


def ensure_user(db: Session, email: str, password: str, role: str, name: str):
    u = db.query(User).filter(User.email == email).first()
    if u:
        return u
    u = User(
        id=str(uuid.uuid4()),
        email=email,
        full_name=name,
        role=role,
        password_hash=hash_password(password),
        is_active=True,
    )
    db.add(u)
    db.commit()
    return u


def ensure_car(db: Session, make: str, model: str, year: int, registration: str, daily_price: int):
    c = db.query(Car).filter(Car.registration_number == registration).first()
    if c:
        return c
    c = Car(
        id=str(uuid.uuid4()),
        make=make,
        model=model,
        year=year,
        registration_number=registration,
        daily_price=daily_price,
        status=CarStatus.AVAILABLE,
    )
    db.add(c)
    db.commit()
    return c


def run(db=None):
    if db is None:
        db = SessionLocal()
    try:
        # If migrations haven't been applied yet, seeding must not crash the API.
        try:
            db.execute(text("SELECT 1 FROM users LIMIT 1"))
        except ProgrammingError:
            db.rollback()
            logger.warning("users table not found yet. Skipping seeding (run alembic upgrade head).")
            return

        ensure_user(db, "admin@carhire.co.ke", "admin12345", ADMIN_ROLE, "Admin")
        ensure_user(db, "customer@carhire.co.ke", "customer12345", CUSTOMER_ROLE, "Demo Customer")

        for make, model, year, registration, price in CARS:
            ensure_car(db, make, model, year, registration, price)
    finally:
        db.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    run()
