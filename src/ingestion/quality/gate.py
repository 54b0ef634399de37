"""
Quality Gate.

Decides per event whether it is committed, and summarizes batches:

    gate = QualityGate()
    decision = gate.evaluate(event)
    if decision.accepted:
        store.upsert(decision.event)   # scored, warnings attached

The recoverable / non-recoverable split of the validation rules is the
contract: only non-recoverable issues reject.
"""

import datetime as dt
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from pydantic import BaseModel, Field

from src.ingestion.quality.consistency import check_batch_consistency
from src.ingestion.quality.scoring import (
    calculate_quality_score,
    quality_distribution,
    round_half_up,
)
from src.ingestion.quality.validators import ValidationIssue, validate_event
from src.schemas.event import CanonicalEvent


def _utc_now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


@dataclass
class GateDecision:
    """Verdict for one event. ``event`` is the scored, annotated copy."""

    event: CanonicalEvent
    accepted: bool
    issues: List[ValidationIssue] = field(default_factory=list)

    @property
    def errors(self) -> List[ValidationIssue]:
        return [i for i in self.issues if not i.recoverable]

    @property
    def warnings(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.recoverable]


class ValidationReport(BaseModel):
    """Batch validation summary."""

    total_events: int = 0
    valid_events: int = 0
    average_quality: int = 0
    errors: List[Dict[str, Any]] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    quality_distribution: Dict[str, int] = Field(default_factory=dict)


class QualityGate:
    """
    Validate, score and accept or reject canonical events.

    Args:
        clock: Source of "now" for the date-window rules
        min_score: Optional score floor; events below it are rejected
    """

    def __init__(
        self,
        clock: Callable[[], dt.datetime] = _utc_now,
        min_score: int = 0,
    ):
        self.clock = clock
        self.min_score = min_score
        self.logger = logging.getLogger("quality_gate")

    def validate_event(
        self,
        event: CanonicalEvent,
        now: Optional[dt.datetime] = None,
    ) -> List[ValidationIssue]:
        return validate_event(event, now or self.clock())

    def calculate_quality_score(self, event: CanonicalEvent) -> int:
        return calculate_quality_score(event)

    def check_batch_consistency(self, events: Sequence[CanonicalEvent]) -> List[str]:
        return check_batch_consistency(events)

    def evaluate(self, event: CanonicalEvent) -> GateDecision:
        """Score one event and attach recoverable issues as warnings."""
        issues = self.validate_event(event)
        score = self.calculate_quality_score(event)
        accepted = all(i.recoverable for i in issues) and score >= self.min_score

        annotated = event.model_copy(
            update={
                "quality_score": score,
                "warnings": [i.message for i in issues if i.recoverable],
            }
        )
        if not accepted:
            reasons = "; ".join(i.message for i in issues if not i.recoverable)
            if not reasons:
                reasons = f"quality score {score} below {self.min_score}"
            self.logger.info(f"Rejected '{event.title}' ({event.source_id}): {reasons}")

        return GateDecision(event=annotated, accepted=accepted, issues=issues)

    def validate_batch(self, events: Sequence[CanonicalEvent]) -> ValidationReport:
        """
        Validate a batch without committing anything.

        Returns:
            ValidationReport with per-issue error entries, consistency
            warnings and the quality distribution
        """
        now = self.clock()
        errors: List[Dict[str, Any]] = []
        scores: List[int] = []
        valid = 0

        for index, event in enumerate(events):
            issues = self.validate_event(event, now)
            for issue in issues:
                errors.append({"index": index, "title": event.title, **issue.as_dict()})
            scores.append(self.calculate_quality_score(event))
            if all(i.recoverable for i in issues):
                valid += 1

        average = round_half_up(sum(scores) / len(scores)) if scores else 0
        return ValidationReport(
            total_events=len(events),
            valid_events=valid,
            average_quality=average,
            errors=errors,
            warnings=self.check_batch_consistency(events),
            quality_distribution=quality_distribution(scores),
        )
