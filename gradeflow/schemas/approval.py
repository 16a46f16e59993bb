from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime

from gradeflow.db.models import SubmissionStatus


class ApprovalFilters(BaseModel):
    status: Optional[SubmissionStatus] = "pending"
    subject_id: Optional[str] = None
    class_id: Optional[str] = None
    academic_year_id: Optional[str] = None
    term: Optional[str] = None
    search: Optional[str] = None

# One teacher's submissions for one subject, reviewed together
class SubmissionGroup(BaseModel):
    subject_id: str
    subject_name: str = ""
    teacher_id: Optional[str] = None
    teacher_name: str = ""
    status: SubmissionStatus
    class_names: List[str] = []
    student_count: int = 0
    average_score: Optional[float] = None
    submitted_at: Optional[datetime] = None
    submission_ids: List[str] = []

class GroupAction(BaseModel):
    subject_id: str
    teacher_id: str
    academic_year_id: Optional[str] = None
    term: Optional[str] = None

class GroupRejection(GroupAction):
    reason: str

class IdsAction(BaseModel):
    ids: List[str]

class IdsRejection(IdsAction):
    reason: str

class StatusSummary(BaseModel):
    pending: int = 0
    approved: int = 0
    rejected: int = 0
    draft: int = 0

class TransitionResult(BaseModel):
    status: SubmissionStatus
    updated: int
    submission_ids: List[str] = []
