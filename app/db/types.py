"""
Column types that keep stored values honest across Postgres and SQLite.
"""
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import DateTime, String, TypeDecorator


class UTCDateTime(TypeDecorator):
    """Timezone-aware datetime stored in UTC; SQLite (no tz support) reads back as aware UTC."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: Any, dialect: Any) -> Any:
        if value is None:
            return value
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        value = value.astimezone(timezone.utc)
        if dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value: Any, dialect: Any) -> Any:
        if value is None:
            return value
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class StatusType(TypeDecorator):
    """
    Enum stored as its string value.

    ``normalize`` runs on every loaded value, which is where legacy aliases are folded into
    their canonical member. Binding is left raw so queries can still target legacy values.
    """

    impl = String
    cache_ok = True

    def __init__(self, enum_cls, normalize, length: int = 30):
        super().__init__(length=length)
        self.enum_cls = enum_cls
        self.normalize = normalize

    def process_bind_param(self, value: Any, dialect: Any) -> Any:
        if value is None:
            return value
        if isinstance(value, self.enum_cls):
            return value.value
        return self.enum_cls(str(value)).value

    def process_result_value(self, value: Any, dialect: Any) -> Any:
        if value is None:
            return value
        return self.normalize(value)
