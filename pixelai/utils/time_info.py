"""
TIME INFORMATION UTILITY
========================

Timestamps for session records. Everything is kept in UTC so guest records
written on one machine sort correctly next to backend-provided
`last_message_at` values.
"""

import datetime
import re
from typing import Optional, Union

# Stand-in for "no activity time known": sorts after every real timestamp
# in a newest-first list.
UNKNOWN_ACTIVITY = datetime.datetime.min.replace(tzinfo=datetime.timezone.utc)

# fromisoformat() on Python < 3.11 only takes exactly 3 or 6 fraction digits
_FRACTION = re.compile(r"(\d{2}:\d{2}:\d{2})\.(\d+)")


def utc_now() -> datetime.datetime:
    """Current time as an aware UTC datetime, without microseconds."""
    return datetime.datetime.now(datetime.timezone.utc).replace(microsecond=0)


def _six_digit_fraction(match: "re.Match") -> str:
    return f"{match.group(1)}.{match.group(2)[:6].ljust(6, '0')}"


def parse_timestamp(
    value: Union[str, int, float, datetime.datetime, None],
) -> Optional[datetime.datetime]:
    """
    Parse a backend timestamp into an aware UTC datetime.

    Accepts ISO 8601 strings (a trailing "Z" and any number of fraction
    digits included), epoch seconds, or a datetime. Naive values are assumed
    to be UTC. Returns None when the value is missing or cannot be parsed.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime.datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        try:
            return datetime.datetime.fromtimestamp(value, tz=datetime.timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        # Pad or cut the fraction to microseconds (e.g. ".5" or ".1234567")
        text = _FRACTION.sub(_six_digit_fraction, text, count=1)
        try:
            parsed = datetime.datetime.fromisoformat(text)
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=datetime.timezone.utc)
    return parsed.astimezone(datetime.timezone.utc)
