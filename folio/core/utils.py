from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP

CENTS = Decimal('0.01')

def utcnow() -> datetime:
    """Naive UTC timestamp; every datetime column stores naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)

def as_utc(value: datetime) -> datetime:
    """Normalizes an incoming datetime to naive UTC."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value

def money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)

def isoformat(value):
    return value.isoformat() if value else None
