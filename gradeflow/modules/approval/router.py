from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from gradeflow.core.context import SessionContext
from gradeflow.core.dependencies import require_reviewer
from gradeflow.db.models import SubmissionStatus
from gradeflow.db.supabase import get_supabase
from gradeflow.modules.approval import service
from gradeflow.schemas.approval import (
    ApprovalFilters,
    GroupAction,
    GroupRejection,
    IdsAction,
    IdsRejection,
    StatusSummary,
    SubmissionGroup,
    TransitionResult,
)

router = APIRouter(tags=["Approval"])


def get_filters(
    status: Optional[SubmissionStatus] = Query("pending"),
    subject_id: Optional[str] = Query(None),
    class_id: Optional[str] = Query(None),
    term: Optional[str] = Query(None),
    search: Optional[str] = Query(None, description="Subject, class or teacher name"),
    context: SessionContext = Depends(require_reviewer),
) -> ApprovalFilters:
    return ApprovalFilters(
        status=status,
        subject_id=subject_id,
        class_id=class_id,
        academic_year_id=context.academic_year_id,
        term=term,
        search=search,
    )


@router.get("/groups", response_model=List[SubmissionGroup])
def list_groups(
    filters: ApprovalFilters = Depends(get_filters),
    client=Depends(get_supabase),
):
    """
    Submissions grouped by subject and submitting teacher.
    """
    return service.load_groups(client, filters)


@router.get("/summary", response_model=StatusSummary)
def status_summary(
    filters: ApprovalFilters = Depends(get_filters),
    client=Depends(get_supabase),
):
    """
    Pending / approved / rejected counts, ignoring the status filter.
    """
    filters = filters.model_copy(update={"status": None})
    return service.summarize_statuses(service.load_submissions(client, filters))


@router.post("/groups/approve", response_model=TransitionResult)
def approve_group(
    action: GroupAction,
    context: SessionContext = Depends(require_reviewer),
    client=Depends(get_supabase),
):
    return service.approve_group(client, context, action)


@router.post("/groups/reject", response_model=TransitionResult)
def reject_group(
    action: GroupRejection,
    context: SessionContext = Depends(require_reviewer),
    client=Depends(get_supabase),
):
    """
    Reject a teacher's subject batch. A reason is required.
    """
    return service.reject_group(client, context, action, action.reason)


@router.post("/approve", response_model=TransitionResult)
def approve_selected(
    action: IdsAction,
    context: SessionContext = Depends(require_reviewer),
    client=Depends(get_supabase),
):
    return service.approve_ids(client, context, action.ids)


@router.post("/reject", response_model=TransitionResult)
def reject_selected(
    action: IdsRejection,
    context: SessionContext = Depends(require_reviewer),
    client=Depends(get_supabase),
):
    return service.reject_ids(client, context, action.ids, action.reason)
