from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Union

CENT = Decimal("0.01")


def utcnow() -> datetime:
    """Naive UTC timestamp, matching what the TIMESTAMP columns store."""
    return datetime.now(UTC).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        value = value.astimezone(UTC).replace(tzinfo=None)
    return value.replace(microsecond=0)


def parse_iso_datetime(raw: str) -> datetime:
    """Parse an ISO 8601 string (a trailing 'Z' is accepted)."""
    return to_naive_utc(datetime.fromisoformat(raw.replace("Z", "+00:00")))


def minutes_between(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 60


def quantize_money(value: Union[Decimal, int, float, str, None]) -> Optional[Decimal]:
    """Round to the currency minor unit (half-up)."""
    if value is None:
        return None
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)
