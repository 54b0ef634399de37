"""
Per-event validation rules.

Each rule yields ValidationIssues. ``recoverable=False`` issues reject the
event; recoverable ones are attached to the accepted event as warnings.
"""

import datetime as dt
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from src.schemas.event import CanonicalEvent

MIN_TITLE_LENGTH = 2
MAX_REASONABLE_PRICE = 10_000
PAST_TOLERANCE = dt.timedelta(days=1)


class IssueKind(str, Enum):
    """What a validation issue is about."""

    MISSING_FIELD = "missing_field"
    INVALID_DATE = "invalid_date"
    DATE_RANGE = "date_range"
    PRICE = "price"
    URL = "url"
    PERFORMER = "performer"
    RECURRENCE = "recurrence"


@dataclass(frozen=True)
class ValidationIssue:
    """A single problem found on an event."""

    kind: IssueKind
    message: str
    recoverable: bool
    field: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["kind"] = self.kind.value
        return data


def is_valid_url(value: str) -> bool:
    """Absolute URL with a scheme; http(s) URLs also need a host."""
    if not value or any(c.isspace() for c in value.strip()):
        return False
    parsed = urlparse(value.strip())
    if not parsed.scheme:
        return False
    if parsed.scheme in ("http", "https"):
        return bool(parsed.netloc)
    return bool(parsed.netloc or parsed.path)


def _one_year_after(now: dt.datetime) -> dt.datetime:
    try:
        return now.replace(year=now.year + 1)
    except ValueError:
        # Feb 29
        return now.replace(year=now.year + 1, day=28)


def validate_event(
    event: CanonicalEvent,
    now: Optional[dt.datetime] = None,
) -> List[ValidationIssue]:
    """
    Run all per-event rules.

    Args:
        event: Event to check
        now: Reference time for the date-window rules (defaults to UTC now)

    Returns:
        List of issues, empty when the event is clean
    """
    now = now or dt.datetime.now(dt.timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=dt.timezone.utc)
    issues: List[ValidationIssue] = []

    # Required fields
    if not event.title or len(event.title.strip()) < MIN_TITLE_LENGTH:
        issues.append(
            ValidationIssue(
                IssueKind.MISSING_FIELD,
                "Event title is required and must be at least 2 characters",
                recoverable=False,
                field="title",
            )
        )

    start = event.start_datetime
    if start is None:
        issues.append(
            ValidationIssue(
                IssueKind.INVALID_DATE,
                "Valid event date is required",
                recoverable=False,
                field="date",
            )
        )
    else:
        if start < now - PAST_TOLERANCE:
            issues.append(
                ValidationIssue(
                    IssueKind.DATE_RANGE,
                    "Event date is more than 1 day in the past",
                    recoverable=True,
                    field="date",
                )
            )
        if start > _one_year_after(now):
            issues.append(
                ValidationIssue(
                    IssueKind.DATE_RANGE,
                    "Event date is more than 1 year in the future",
                    recoverable=True,
                    field="date",
                )
            )
        end = event.end_datetime
        if end is not None and end < start:
            issues.append(
                ValidationIssue(
                    IssueKind.DATE_RANGE,
                    "End date cannot be before start date",
                    recoverable=True,
                    field="end_date",
                )
            )

    # Venue
    if not (event.venue_name or "").strip():
        issues.append(
            ValidationIssue(
                IssueKind.MISSING_FIELD,
                "Venue name is required",
                recoverable=False,
                field="venue_name",
            )
        )
    if not (event.city or "").strip():
        issues.append(
            ValidationIssue(
                IssueKind.MISSING_FIELD,
                "Venue city is required",
                recoverable=False,
                field="city",
            )
        )

    issues.extend(_price_issues(event))
    issues.extend(_url_issues(event))
    issues.extend(_performer_issues(event))
    issues.extend(_recurrence_issues(event))
    return issues


def _price_issues(event: CanonicalEvent) -> List[ValidationIssue]:
    issues = []
    low, high = event.price_min, event.price_max
    if low is not None and low < 0:
        issues.append(
            ValidationIssue(
                IssueKind.PRICE,
                "Minimum price cannot be negative",
                recoverable=True,
                field="price_min",
            )
        )
    if low is not None and high is not None and high < low:
        issues.append(
            ValidationIssue(
                IssueKind.PRICE,
                "Maximum price cannot be less than minimum price",
                recoverable=True,
                field="price_max",
            )
        )
    if high is not None and high > MAX_REASONABLE_PRICE:
        issues.append(
            ValidationIssue(
                IssueKind.PRICE,
                "Maximum price seems unreasonably high",
                recoverable=True,
                field="price_max",
            )
        )
    return issues


def _url_issues(event: CanonicalEvent) -> List[ValidationIssue]:
    issues = []
    for field_name, label in (
        ("url", "event"),
        ("ticket_url", "ticket"),
        ("image_url", "image"),
    ):
        value = getattr(event, field_name)
        if value and not is_valid_url(value):
            issues.append(
                ValidationIssue(
                    IssueKind.URL,
                    f"Invalid {label} URL format",
                    recoverable=True,
                    field=field_name,
                )
            )
    return issues


def _performer_issues(event: CanonicalEvent) -> List[ValidationIssue]:
    issues = []
    for index, performer in enumerate(event.performers, start=1):
        if not (performer.name or "").strip():
            issues.append(
                ValidationIssue(
                    IssueKind.PERFORMER,
                    f"Performer {index}: Name is required",
                    recoverable=True,
                    field="performers",
                )
            )
        if performer.website and not is_valid_url(performer.website):
            issues.append(
                ValidationIssue(
                    IssueKind.PERFORMER,
                    f"Performer {index}: Invalid website URL",
                    recoverable=True,
                    field="performers",
                )
            )
    return issues


def _recurrence_issues(event: CanonicalEvent) -> List[ValidationIssue]:
    pattern = event.recurrence
    if not event.is_recurring or pattern is None:
        return []

    issues = []
    if pattern.interval <= 0:
        issues.append(
            ValidationIssue(
                IssueKind.RECURRENCE,
                "Recurring interval must be positive",
                recoverable=True,
                field="recurrence",
            )
        )
    if any(day < 0 or day > 6 for day in pattern.days_of_week):
        issues.append(
            ValidationIssue(
                IssueKind.RECURRENCE,
                "Invalid days of week (must be 0-6)",
                recoverable=True,
                field="recurrence",
            )
        )
    return issues
