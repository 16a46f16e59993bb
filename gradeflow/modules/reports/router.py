from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from gradeflow.core.context import SessionContext
from gradeflow.core.dependencies import require_reviewer
from gradeflow.db.supabase import get_supabase
from gradeflow.modules.reports import service
from gradeflow.schemas.reports import GenerateRequest, GenerationResult, StudentReadiness

router = APIRouter(tags=["Reports"])


@router.get("/readiness", response_model=List[StudentReadiness])
def get_readiness(
    term: str = Query(...),
    class_id: Optional[str] = Query(None),
    stream_id: Optional[str] = Query(None),
    context: SessionContext = Depends(require_reviewer),
    client=Depends(get_supabase),
):
    """
    Report readiness per enrolled student for the term.
    """
    return service.load_readiness(client, context, term, class_id=class_id, stream_id=stream_id)


@router.post("/generate", response_model=GenerationResult)
def generate_reports(
    request: GenerateRequest,
    strict: bool = Query(False, description="Respond 207 when any report fails"),
    context: SessionContext = Depends(require_reviewer),
    client=Depends(get_supabase),
):
    """
    Generate report cards one student at a time. Individual failures are
    listed in the result and only change the status code when `strict` is set.
    """
    result = service.generate(client, context, request.student_ids, request.term)
    if strict:
        result.raise_for_failures()
    return result
