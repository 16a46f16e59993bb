from typing import List

from fastapi import APIRouter, Depends, Query

from gradeflow.core.context import SessionContext
from gradeflow.core.dependencies import require_teacher
from gradeflow.db.models import SubmissionRecord
from gradeflow.db.supabase import get_supabase
from gradeflow.modules.grading.service import load_grading_bands
from gradeflow.modules.marks import service
from gradeflow.schemas.marks import EligibleStudent, MarksEntry, RosterSave

router = APIRouter(tags=["Marks"])


@router.get("/students", response_model=List[EligibleStudent])
def get_eligible_students(
    class_id: str = Query(...),
    subject_id: str = Query(...),
    term: str = Query(...),
    context: SessionContext = Depends(require_teacher),
    client=Depends(get_supabase),
):
    """
    Students enrolled in both the class and the subject this academic year,
    with any marks already entered. Ordered by admission number.
    """
    return service.load_eligible_students(client, context, class_id, subject_id, term)


@router.post("/draft", response_model=SubmissionRecord)
def save_draft(
    entry: MarksEntry,
    context: SessionContext = Depends(require_teacher),
    client=Depends(get_supabase),
):
    """
    Save one student's marks as a draft. Approved marks cannot be changed.
    """
    bands = load_grading_bands(client)
    return service.save_draft(client, context, entry, bands)


@router.post("/submit", response_model=SubmissionRecord)
def submit_for_approval(
    entry: MarksEntry,
    context: SessionContext = Depends(require_teacher),
    client=Depends(get_supabase),
):
    """
    Submit one student's marks for approval. Both assessment and exam
    scores are required.
    """
    bands = load_grading_bands(client)
    return service.submit_for_approval(client, context, entry, bands)


@router.post("/roster", response_model=List[SubmissionRecord])
def save_roster(
    roster: RosterSave,
    context: SessionContext = Depends(require_teacher),
    client=Depends(get_supabase),
):
    """
    Save or submit marks for a whole class at once.
    """
    bands = load_grading_bands(client)
    return service.save_roster(
        client, context, roster.subject_id, roster.term, roster.entries, bands, submit=roster.submit
    )
