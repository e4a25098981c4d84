#!/usr/bin/env python3
"""
Container entrypoint: wait for the database, migrate to head, repair legacy booking rows,
seed demo data, then exec uvicorn on API_HOST:API_PORT.
"""
import logging
import os
import sys

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.core.config import settings
from app.repositories.booking_repository import BookingRepository
from app.seed import run as run_seed
from wait_for_db import wait_for_db

logger = logging.getLogger("start_api")


def migrate(database_url: str) -> None:
    cfg = Config(os.path.join(os.path.dirname(os.path.abspath(__file__)), "alembic.ini"))
    cfg.set_main_option("sqlalchemy.url", database_url)
    command.upgrade(cfg, "head")


def backfill_legacy_bookings(session_factory) -> int:
    """Rows restored from a pre-0002 dump can still carry a NULL read flag."""
    db = session_factory()
    try:
        count = BookingRepository(db).backfill_null_notification_read()
        db.commit()
    finally:
        db.close()
    if count:
        logger.warning("Backfilled admin_notification_read on %s legacy booking(s)", count)
    return count


def uvicorn_argv() -> list[str]:
    return [
        sys.executable, "-m", "uvicorn", "app.main:app",
        "--host", settings.API_HOST,
        "--port", str(settings.API_PORT),
        "--log-level", settings.LOG_LEVEL.lower(),
    ]


def main() -> None:
    logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
    wait_for_db(settings.DATABASE_URL, timeout_s=settings.DB_WAIT_TIMEOUT)
    migrate(settings.DATABASE_URL)

    # Engine built after migrations so alembic's env load never shares it.
    engine = create_engine(settings.DATABASE_URL, pool_pre_ping=True)
    session_factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    try:
        backfill_legacy_bookings(session_factory)
        run_seed(session_factory())
    finally:
        engine.dispose()

    argv = uvicorn_argv()
    logger.info("Starting %s on %s:%s", settings.APP_NAME, settings.API_HOST, settings.API_PORT)
    os.execv(argv[0], argv)


if __name__ == "__main__":
    main()
