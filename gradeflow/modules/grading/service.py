"""
Grade computation for subject submissions.

Scores: three continuous assessments (0-3 each) weighted to 20 marks and an
exam (0-100) weighted to 80 marks. The total (0-100) is mapped to a grade
through the school's grading bands.
"""
import logging
import math
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional, Sequence

from pydantic import BaseModel

from gradeflow.core.exceptions import ValidationError
from gradeflow.db.models import GradingBand
from gradeflow.db.supabase import run_query

logger = logging.getLogger(__name__)

ASSESSMENT_MAX = 3.0
EXAM_MAX = 100.0
CA_WEIGHT = 20
EXAM_WEIGHT = 80


class DerivedMarks(BaseModel):
    avg_assessment: Optional[float] = None
    ca_20: Optional[float] = None
    exam_80: Optional[float] = None
    total: Optional[float] = None
    grade: Optional[str] = None
    grade_points: Optional[float] = None
    remark: Optional[str] = None


def _q(x, places: str = "0.1") -> float:
    return float(Decimal(str(x)).quantize(Decimal(places), rounding=ROUND_HALF_UP))


def is_score(value) -> bool:
    """True for a finite int/float; None, NaN, inf, bools and strings are absent."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def compute_derived(a1, a2, a3, exam_score, bands: Sequence[GradingBand]) -> DerivedMarks:
    """
    Compute average, weighted components, total and grade for one record.

    The assessment average is taken over the present scores only (a zero
    counts, a missing score does not). The total exists only when both the
    average and the exam score exist; without a total no grade is returned,
    and callers keep whatever grade the record already carries.
    """
    assessments = [float(v) for v in (a1, a2, a3) if is_score(v)]
    derived = DerivedMarks()

    avg = sum(assessments) / len(assessments) if assessments else None
    if avg is not None:
        derived.avg_assessment = avg
        derived.ca_20 = _q(avg / ASSESSMENT_MAX * CA_WEIGHT)

    if is_score(exam_score):
        derived.exam_80 = _q(float(exam_score) / EXAM_MAX * EXAM_WEIGHT)

    if derived.ca_20 is not None and derived.exam_80 is not None:
        derived.total = _q(derived.ca_20 + derived.exam_80)
        band = resolve_band(derived.total, bands)
        if band:
            derived.grade = band.grade
            derived.grade_points = band.grade_points
            derived.remark = band.remark or None

    return derived


def sort_bands(bands: Sequence[GradingBand]) -> List[GradingBand]:
    return sorted(bands, key=lambda b: b.min_marks, reverse=True)


def resolve_band(total: Optional[float], bands: Sequence[GradingBand]) -> Optional[GradingBand]:
    """
    Return the band for `total`: the first band, by descending min_marks,
    whose inclusive range contains it. A fractional total between two
    integer bands (44.5 between 30-44 and 45-59) falls to the lower band.
    Totals outside 0-100, or above the top band, match nothing.
    """
    if total is None or total < 0 or total > EXAM_MAX:
        return None

    ordered = sort_bands(bands)
    for band in ordered:
        if band.contains(total):
            return band

    # only gaps with a band above them fall through
    if not ordered or ordered[0].min_marks <= total:
        return None
    for band in ordered:
        if band.min_marks <= total:
            return band
    return None


def validate_bands(bands: Sequence[GradingBand]) -> None:
    """
    Check that active bands lie within 0-100 and do not overlap.

    Raises:
        ValidationError: describing the first offending band
    """
    active = sorted((b for b in bands if b.is_active), key=lambda b: b.min_marks)
    for band in active:
        if band.min_marks < 0 or band.max_marks > EXAM_MAX:
            raise ValidationError(f"Band {band.grade} must lie within 0-100")
        if band.min_marks > band.max_marks:
            raise ValidationError(f"Band {band.grade} has min_marks above max_marks")

    for lower, upper in zip(active, active[1:]):
        if upper.min_marks <= lower.max_marks:
            raise ValidationError(f"Bands {lower.grade} and {upper.grade} overlap")


# -------------------------
# grading_config table
# -------------------------
def load_grading_bands(client, include_inactive: bool = False) -> List[GradingBand]:
    query = client.table("grading_config").select("*")
    if not include_inactive:
        query = query.eq("is_active", True)
    rows = run_query(query.order("min_marks", desc=True), "load grading bands")
    return [GradingBand(**row) for row in rows]


def _check_against_existing(client, band: GradingBand, band_id: Optional[str] = None) -> None:
    existing = [b for b in load_grading_bands(client) if b.id != band_id]
    validate_bands(existing + [band])


def create_band(client, band: GradingBand) -> GradingBand:
    _check_against_existing(client, band)
    payload = band.model_dump(exclude={"id"})
    rows = run_query(client.table("grading_config").insert(payload), "create grading band")
    logger.info("Created grading band %s (%s-%s)", band.grade, band.min_marks, band.max_marks)
    return GradingBand(**rows[0])


def update_band(client, band_id: str, changes: dict) -> GradingBand:
    rows = run_query(client.table("grading_config").select("*").eq("id", band_id), "load grading band")
    if not rows:
        raise ValidationError("Grading band not found")

    band = GradingBand(**{**rows[0], **changes})
    _check_against_existing(client, band, band_id=band_id)

    rows = run_query(
        client.table("grading_config").update(band.model_dump(exclude={"id"})).eq("id", band_id),
        "update grading band",
    )
    return GradingBand(**rows[0])


def delete_band(client, band_id: str) -> None:
    rows = run_query(client.table("grading_config").delete().eq("id", band_id), "delete grading band")
    if not rows:
        raise ValidationError("Grading band not found")
