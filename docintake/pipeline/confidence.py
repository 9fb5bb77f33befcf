"""
Confidence model for extracted invoices.

The overall score of a document is the mean of its per-field confidences
(0-100), rounded half-up. Review gating uses a fixed threshold of 85; the
display bands use 90/85 and are for presentation only.
"""

from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Iterable, Optional, Union

from pydantic import BaseModel

Score = Union[int, float, Decimal]

# Fixed policy constant, not a setting
REVIEW_THRESHOLD = 85

HIGH_BAND_FLOOR = 90
MEDIUM_BAND_FLOOR = 85


class ConfidenceBand(str, Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"
    NOT_AVAILABLE = "N/A"


class ConfidenceResult(BaseModel):
    """Outcome of scoring one extraction."""
    overall_confidence: Optional[int] = None
    needs_review: bool = False
    band: ConfidenceBand = ConfidenceBand.NOT_AVAILABLE
    field_scores: dict[str, Optional[float]] = {}


def overall_confidence(scores: Iterable[Optional[Score]]) -> Optional[int]:
    """
    Mean of the present scores, rounded half-up to an integer.
    Returns None (not 0) when no score is present.
    """
    present = [Decimal(str(s)) for s in scores if s is not None]
    if not present:
        return None
    mean = sum(present) / len(present)
    return int(mean.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def needs_review(overall: Optional[Score]) -> bool:
    """True iff a score is present and below the review threshold."""
    return overall is not None and overall < REVIEW_THRESHOLD


def confidence_band(score: Optional[Score]) -> ConfidenceBand:
    if score is None:
        return ConfidenceBand.NOT_AVAILABLE
    if score >= HIGH_BAND_FLOOR:
        return ConfidenceBand.HIGH
    if score >= MEDIUM_BAND_FLOOR:
        return ConfidenceBand.MEDIUM
    return ConfidenceBand.LOW


def score_fields(field_scores: dict[str, Optional[Score]]) -> ConfidenceResult:
    """Score a named set of per-field confidences."""
    overall = overall_confidence(field_scores.values())
    return ConfidenceResult(
        overall_confidence=overall,
        needs_review=needs_review(overall),
        band=confidence_band(overall),
        field_scores={k: float(v) if v is not None else None for k, v in field_scores.items()},
    )
