from typing import List

from fastapi import APIRouter, Depends, Query

from gradeflow.core.context import SessionContext
from gradeflow.core.dependencies import get_session_context, require_roles
from gradeflow.db.models import GradingBand
from gradeflow.db.supabase import get_supabase
from gradeflow.modules.grading import service
from gradeflow.schemas.grades import DerivedMarksRequest, GradingBandCreate, GradingBandUpdate

router = APIRouter(tags=["Grading"])

require_admin = require_roles("admin")


@router.get("/bands", response_model=List[GradingBand])
def list_bands(
    include_inactive: bool = Query(False),
    context: SessionContext = Depends(get_session_context),
    client=Depends(get_supabase),
):
    """
    Grading bands, highest first.
    """
    return service.load_grading_bands(client, include_inactive=include_inactive)


@router.post("/bands", response_model=GradingBand)
def create_band(
    band: GradingBandCreate,
    context: SessionContext = Depends(require_admin),
    client=Depends(get_supabase),
):
    """
    Add a grading band. Admin only. Active bands may not overlap.
    """
    return service.create_band(client, GradingBand(**band.model_dump()))


@router.put("/bands/{band_id}", response_model=GradingBand)
def update_band(
    band_id: str,
    band: GradingBandUpdate,
    context: SessionContext = Depends(require_admin),
    client=Depends(get_supabase),
):
    return service.update_band(client, band_id, band.model_dump(exclude_unset=True, exclude_none=True))


@router.patch("/bands/{band_id}/active", response_model=GradingBand)
def set_band_active(
    band_id: str,
    is_active: bool = Query(...),
    context: SessionContext = Depends(require_admin),
    client=Depends(get_supabase),
):
    return service.update_band(client, band_id, {"is_active": is_active})


@router.delete("/bands/{band_id}")
def delete_band(
    band_id: str,
    context: SessionContext = Depends(require_admin),
    client=Depends(get_supabase),
):
    service.delete_band(client, band_id)
    return {"message": "Grading band deleted successfully"}


@router.post("/compute", response_model=service.DerivedMarks)
def compute_marks(
    scores: DerivedMarksRequest,
    context: SessionContext = Depends(get_session_context),
    client=Depends(get_supabase),
):
    """
    Preview average, CA, exam share, total and grade for a set of scores
    without saving anything.
    """
    bands = service.load_grading_bands(client)
    return service.compute_derived(
        scores.assessment_1, scores.assessment_2, scores.assessment_3, scores.exam_score, bands
    )
