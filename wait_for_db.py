"""Block until DATABASE_URL accepts connections, or give up after DB_WAIT_TIMEOUT seconds."""
import logging
import time

from sqlalchemy import create_engine, text
from sqlalchemy.engine import make_url
from sqlalchemy.exc import OperationalError

logger = logging.getLogger("wait_for_db")


def wait_for_db(database_url: str, timeout_s: float = 60, interval_s: float = 1.0) -> None:
    url = make_url(database_url)
    engine = create_engine(url, pool_pre_ping=True)
    started = time.monotonic()
    logger.info("Waiting for %s at %s:%s db=%s (timeout=%ss)",
                url.get_backend_name(), url.host or "-", url.port or "-", url.database, timeout_s)
    try:
        while True:
            try:
                with engine.connect() as conn:
                    conn.execute(text("SELECT 1"))
                logger.info("Database is ready")
                return
            except OperationalError as e:
                if time.monotonic() - started >= timeout_s:
                    logger.error("Timed out waiting for database: %s", e.orig)
                    raise
                logger.debug("Database not ready yet: %s", e.orig)
                time.sleep(interval_s)
    finally:
        engine.dispose()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    from app.core.config import settings

    wait_for_db(settings.DATABASE_URL, timeout_s=settings.DB_WAIT_TIMEOUT)
