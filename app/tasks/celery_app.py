from urllib.parse import urlparse, urlunparse, parse_qs, urlencode

from celery import Celery
from celery.signals import after_setup_logger
from app.core.config import settings


def _redis_url_for_celery(url: str) -> str:
    """Celery requires ssl_cert_reqs for rediss:// (e.g. Upstash TLS)."""
    if not url or not url.strip().lower().startswith("rediss://"):
        return url
    parsed = urlparse(url)
    qs = parse_qs(parsed.query)
    if "ssl_cert_reqs" not in qs:
        qs["ssl_cert_reqs"] = ["CERT_NONE"]
        new_query = urlencode(qs, doseq=True)
        return urlunparse(parsed._replace(query=new_query))
    return url


def _sweep_interval_seconds(scan_ms: int) -> float:
    return max(1, int(scan_ms)) / 1000.0


_redis_url = _redis_url_for_celery(settings.REDIS_URL)

celery = Celery(
    "carhire",
    broker=_redis_url,
    backend=_redis_url,
    include=["app.tasks.jobs"],
)

celery.conf.timezone = settings.BUSINESS_TIMEZONE


@after_setup_logger.connect
def on_setup_logger(logger, **kwargs):
    logger.setLevel(settings.LOG_LEVEL.upper())


celery.conf.beat_schedule = {
    "expire-pending-payments": {
        "task": "app.tasks.jobs.expire_pending_payments",
        "schedule": _sweep_interval_seconds(settings.BOOKING_EXPIRY_SCAN_MS),
    },
}
