"""
Text, date and price helpers used by the EventNormalizer.

All functions are pure; none of them raise on bad input. Unparseable values
come back as None and the caller decides whether that is fatal.
"""

import datetime as dt
import re
import time
from decimal import Decimal, InvalidOperation
from typing import Any, Optional, Tuple

SLUG_MAX_LENGTH = 100
DESCRIPTION_LIMIT = 1000
TRUNCATED_DESCRIPTION_LENGTH = 500
ELLIPSIS = "..."

_NON_SLUG_CHARS = re.compile(r"[^a-z0-9\s-]")
_WHITESPACE = re.compile(r"\s+")
_DASHES = re.compile(r"-+")
_PRICE_NUMBER = re.compile(r"-?\d+(?:[.,]\d+)?")

# Tried in order after ISO-8601 parsing fails.
DATETIME_FORMATS = (
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d %H:%M:%S",
    "%Y/%m/%d %H:%M",
    "%m/%d/%Y %H:%M",
    "%m/%d/%Y %I:%M %p",
    "%d/%m/%Y %H:%M",
    "%B %d, %Y %I:%M %p",
    "%b %d, %Y %I:%M %p",
)
DATE_FORMATS = (
    "%Y/%m/%d",
    "%m/%d/%Y",
    "%d/%m/%Y",
    "%B %d, %Y",
    "%b %d, %Y",
    "%d %B %Y",
)


def fallback_slug() -> str:
    """Timestamp slug used when nothing usable can be derived."""
    return f"event-{int(time.time() * 1000)}"


def create_slug(text: Optional[str], max_length: int = SLUG_MAX_LENGTH) -> str:
    """
    Derive a URL slug from a title.

    Lowercases, strips everything except ``[a-z0-9]``, whitespace and dashes,
    turns whitespace runs into single dashes and caps the length.

    Example:
        >>> create_slug("  Live Jazz Night @ Blue Note! ")
        'live-jazz-night-blue-note'
    """
    if not text or not text.strip():
        return fallback_slug()

    slug = _NON_SLUG_CHARS.sub("", text.lower())
    slug = _WHITESPACE.sub("-", slug.strip())
    slug = _DASHES.sub("-", slug).strip("-")
    slug = slug[:max_length].rstrip("-")
    return slug or fallback_slug()


def truncate_description(
    description: Optional[str],
    limit: int = DESCRIPTION_LIMIT,
    length: int = TRUNCATED_DESCRIPTION_LENGTH,
) -> Optional[str]:
    """Cut descriptions longer than ``limit`` down to ``length`` chars ending in '...'."""
    if description is None:
        return None
    description = description.strip()
    if not description:
        return None
    if len(description) <= limit:
        return description
    return description[: length - len(ELLIPSIS)] + ELLIPSIS


def parse_event_datetime(value: Any) -> Optional[Tuple[dt.date, Optional[dt.time]]]:
    """
    Parse a provider start/end value into (date, time).

    Time is None for date-only inputs. Timezone-aware datetimes are converted
    to UTC before splitting.

    Returns:
        (date, time) tuple, or None if the value cannot be parsed
    """
    if value is None or value == "":
        return None

    if isinstance(value, dt.datetime):
        return _split(value)
    if isinstance(value, dt.date):
        return value, None
    if isinstance(value, (int, float)):
        # Provider timestamps arrive in seconds or milliseconds.
        seconds = value / 1000 if value > 10_000_000_000 else value
        try:
            return _split(dt.datetime.fromtimestamp(seconds, tz=dt.timezone.utc))
        except (OverflowError, OSError, ValueError):
            return None
    if not isinstance(value, str):
        return None

    raw = value.strip()
    if not raw:
        return None

    try:
        if len(raw) == 10 and raw[4] == "-":
            return dt.date.fromisoformat(raw), None
        return _split(dt.datetime.fromisoformat(raw.replace("Z", "+00:00")))
    except ValueError:
        pass

    for fmt in DATETIME_FORMATS:
        try:
            return _split(dt.datetime.strptime(raw, fmt))
        except ValueError:
            continue
    for fmt in DATE_FORMATS:
        try:
            return dt.datetime.strptime(raw, fmt).date(), None
        except ValueError:
            continue
    return None


def _split(value: dt.datetime) -> Tuple[dt.date, dt.time]:
    if value.tzinfo is not None:
        value = value.astimezone(dt.timezone.utc).replace(tzinfo=None)
    return value.date(), value.time()


def parse_price(value: Any) -> Optional[Decimal]:
    """
    Parse a price from a number or a display string ("$20", "Free", "15,50 EUR").
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float)):
        return Decimal(str(value))

    text = str(value).strip().lower()
    if not text:
        return None
    if text in ("free", "gratis", "0"):
        return Decimal("0")

    match = _PRICE_NUMBER.search(text.replace(" ", ""))
    if not match:
        return None
    try:
        return Decimal(match.group(0).replace(",", "."))
    except InvalidOperation:
        return None
