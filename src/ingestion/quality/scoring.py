"""
Completeness scoring.

The score is a weighted sum of field presence, normalized to 0-100.
"""

import math
from typing import Dict, Iterable, List, Tuple

from src.schemas.event import CanonicalEvent

# Points per present field; weights sum to 100.
SCORE_WEIGHTS: Dict[str, int] = {
    "title": 25,
    "date": 25,
    "description": 15,
    "price": 10,
    "ticket_url": 10,
    "image": 5,
    "performers": 5,
    "tags": 3,
    "address": 2,
}
MIN_DESCRIPTION_LENGTH = 10

# Inclusive lower bounds, best first
QUALITY_BUCKETS: List[Tuple[str, int]] = [
    ("Excellent (90-100%)", 90),
    ("Good (70-89%)", 70),
    ("Fair (50-69%)", 50),
    ("Poor (0-49%)", 0),
]


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def calculate_quality_score(event: CanonicalEvent) -> int:
    """
    Score how complete an event is.

    Example:
        An event with only a title and a date scores 50.
    """
    present = {
        "title": bool(event.title and event.title.strip()),
        "date": event.date is not None,
        "description": bool(
            event.description
            and len(event.description.strip()) > MIN_DESCRIPTION_LENGTH
        ),
        "price": event.price_min is not None or event.price_max is not None,
        "ticket_url": bool(event.ticket_url),
        "image": bool(event.image_url),
        "performers": len(event.performers) > 0,
        "tags": len(event.tags) > 0,
        "address": bool(event.address),
    }
    score = sum(weight for name, weight in SCORE_WEIGHTS.items() if present[name])
    max_score = sum(SCORE_WEIGHTS.values())
    return round_half_up(score / max_score * 100)


def bucket_for(score: int) -> str:
    for label, lower in QUALITY_BUCKETS:
        if score >= lower:
            return label
    return QUALITY_BUCKETS[-1][0]


def quality_distribution(scores: Iterable[int]) -> Dict[str, int]:
    """Count scores per quality bucket; every bucket is present."""
    distribution = {label: 0 for label, _ in QUALITY_BUCKETS}
    for score in scores:
        distribution[bucket_for(score)] += 1
    return distribution
