from datetime import datetime, timezone


def utcnow() -> datetime:
    """Timezone-aware now; used as Python-side column default for sub-second ordering."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
