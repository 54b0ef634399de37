"""
Batch consistency checks.

These never reject anything; they produce human-readable warnings for the
run report.
"""

import itertools
from decimal import Decimal
from typing import List, Sequence, Set, Tuple

from rapidfuzz.distance import Levenshtein

from src.schemas.event import CanonicalEvent

NEAR_DUPLICATE_THRESHOLD = 0.8
MAX_DATE_SPAN_DAYS = 365
MAX_PRICE_RATIO = 100

NO_EVENTS_WARNING = "No events to validate"


def similarity(a: str, b: str) -> float:
    """
    Edit-distance ratio ``1 - lev(a, b) / max(len(a), len(b))``.

    Symmetric, and 1.0 for identical strings (including two empty ones).
    """
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - Levenshtein.distance(a, b) / longest


def find_exact_duplicates(events: Sequence[CanonicalEvent]) -> List[str]:
    """Titles of events repeating an earlier (venue, title, start) key."""
    seen: Set[Tuple] = set()
    duplicates = []
    for event in events:
        key = (event.venue_id or event.venue_name, event.title, event.start_datetime)
        if key in seen:
            duplicates.append(event.title or "")
        else:
            seen.add(key)
    return duplicates


def find_near_duplicates(
    events: Sequence[CanonicalEvent],
    threshold: float = NEAR_DUPLICATE_THRESHOLD,
) -> List[Tuple[str, str]]:
    """
    Pairs of titles whose lowercase similarity is strictly above threshold.

    Byte-identical titles are left to the exact duplicate check.
    """
    pairs = []
    for first, second in itertools.combinations(events, 2):
        title_a, title_b = first.title or "", second.title or ""
        if title_a == title_b:
            continue
        if similarity(title_a.lower(), title_b.lower()) > threshold:
            pairs.append((title_a, title_b))
    return pairs


def check_batch_consistency(events: Sequence[CanonicalEvent]) -> List[str]:
    """
    Run all batch checks.

    Returns:
        Warning strings; ["No events to validate"] for an empty batch
    """
    if not events:
        return [NO_EVENTS_WARNING]

    warnings: List[str] = []

    duplicates = find_exact_duplicates(events)
    if duplicates:
        warnings.append(f"Duplicate events found: {', '.join(duplicates)}")

    similar = find_near_duplicates(events)
    if similar:
        listed = ", ".join(f'"{a}" and "{b}"' for a, b in similar)
        warnings.append(f"Similar event titles found: {listed}")

    starts = [e.start_datetime for e in events if e.start_datetime is not None]
    if starts and (max(starts) - min(starts)).total_seconds() / 86400 > MAX_DATE_SPAN_DAYS:
        warnings.append("Events span more than 1 year - consider date validation")

    prices: List[Decimal] = [
        p
        for e in events
        for p in (e.price_min, e.price_max)
        if p is not None
    ]
    if prices and max(prices) > min(prices) * MAX_PRICE_RATIO:
        warnings.append("Large price variation detected - verify pricing accuracy")

    return warnings
