from datetime import UTC, datetime


def as_utc_aware(value: datetime | None) -> datetime | None:
    """Normalize datetimes to UTC-aware before comparison; naive means UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def utc_now() -> datetime:
    return datetime.now(UTC)
