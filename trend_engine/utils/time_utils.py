from datetime import datetime, timedelta, timezone

__all__ = ["ensure_dt_utc", "utcnow", "day_start", "day_end", "day_timestamp"]


def ensure_dt_utc(value: datetime | None) -> datetime | None:
    """Преобразует datetime в формат с UTC таймзоной."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def day_start(value: datetime) -> datetime:
    """Начало UTC-суток, в которые попадает ``value``."""
    value = ensure_dt_utc(value)
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def day_timestamp(value: datetime) -> int:
    """Unix timestamp начала суток; используется как суффикс bucket-ключей."""
    return int(day_start(value).timestamp())


def day_end(value: datetime) -> datetime:
    return day_start(value) + timedelta(days=1)
