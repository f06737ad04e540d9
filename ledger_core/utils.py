"""
Shared helpers for identifiers, timestamps and rounding.

Timestamps are UTC and carry millisecond precision only, because that is
what the gateways persist (epoch milliseconds).
"""

import re
import secrets
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable

GUID_PATTERN = re.compile(r"^[0-9a-f]{32}$")

INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1

Clock = Callable[[], datetime]


def new_guid() -> str:
    """Generate a 128-bit identifier as 32 lowercase hex characters."""
    return secrets.token_hex(16)


def new_invite_id() -> str:
    """Generate a short invite code (8 lowercase hex characters)."""
    return secrets.token_hex(4)


def is_valid_guid(value: str) -> bool:
    return bool(GUID_PATTERN.match(value or ""))


def fits_int64(value: int) -> bool:
    """True when `value` fits a signed 64-bit integer column."""
    return INT64_MIN <= value <= INT64_MAX


def truncate_to_ms(value: datetime) -> datetime:
    """Drop sub-millisecond precision and normalize to UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.replace(microsecond=(value.microsecond // 1000) * 1000)


def utc_now() -> datetime:
    return truncate_to_ms(datetime.now(timezone.utc))


def to_ms(value: datetime) -> int:
    """Convert a datetime to integer epoch milliseconds."""
    value = truncate_to_ms(value)
    epoch = datetime(1970, 1, 1, tzinfo=timezone.utc)
    delta = value - epoch
    return (delta.days * 86_400 + delta.seconds) * 1000 + delta.microseconds // 1000


def from_ms(ms: int) -> datetime:
    """Convert integer epoch milliseconds to a UTC datetime."""
    seconds, millis = divmod(int(ms), 1000)
    return datetime.fromtimestamp(seconds, tz=timezone.utc).replace(
        microsecond=millis * 1000
    )


def round_half_away_from_zero(value: Decimal) -> int:
    """Round to the nearest integer; halves go away from zero (2.5 -> 3, -2.5 -> -3)."""
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
