"""
Quality Gate: per-event validation, completeness scoring and batch
consistency checks.
"""

from .consistency import (
    NEAR_DUPLICATE_THRESHOLD,
    check_batch_consistency,
    find_exact_duplicates,
    find_near_duplicates,
    similarity,
)
from .gate import GateDecision, QualityGate, ValidationReport
from .scoring import QUALITY_BUCKETS, calculate_quality_score, quality_distribution
from .validators import IssueKind, ValidationIssue, is_valid_url, validate_event

__all__ = [
    "QualityGate",
    "GateDecision",
    "ValidationReport",
    "IssueKind",
    "ValidationIssue",
    "validate_event",
    "is_valid_url",
    "calculate_quality_score",
    "quality_distribution",
    "QUALITY_BUCKETS",
    "check_batch_consistency",
    "find_exact_duplicates",
    "find_near_duplicates",
    "similarity",
    "NEAR_DUPLICATE_THRESHOLD",
]
