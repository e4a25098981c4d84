from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from app.core.config import settings


class Clock:
    """Source of the current instant. Swap in a fixed clock to make expiry deterministic."""

    def __init__(self, tz: str | None = None):
        self.tz = ZoneInfo(tz or settings.BUSINESS_TIMEZONE)

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def local_date(self, instant: datetime) -> date:
        return instant.astimezone(self.tz).date()

    def today(self) -> date:
        return self.local_date(self.now())


SystemClock = Clock
