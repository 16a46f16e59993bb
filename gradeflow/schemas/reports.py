from pydantic import BaseModel
from typing import List, Literal, Optional
from datetime import datetime

from gradeflow.core.exceptions import PartialBatchFailure


class StudentReadiness(BaseModel):
    student_id: str
    admission_no: str = ""
    name: str = ""
    class_name: str = ""
    approved_count: int = 0
    pending_count: int = 0
    total_subjects: int = 0
    is_ready: bool = False
    report_status: Optional[str] = None
    report_code: Optional[str] = None
    report_date: Optional[datetime] = None

class GenerateRequest(BaseModel):
    student_ids: List[str]
    term: str

RenderStatus = Literal["succeeded", "failed", "cancelled"]

class RenderOutcome(BaseModel):
    student_id: str
    status: RenderStatus
    error: Optional[str] = None

class GenerationResult(BaseModel):
    total: int
    completed: int = 0
    progress: int = 0
    outcomes: List[RenderOutcome] = []

    @property
    def succeeded_ids(self) -> List[str]:
        return [o.student_id for o in self.outcomes if o.status == "succeeded"]

    @property
    def failed_ids(self) -> List[str]:
        return [o.student_id for o in self.outcomes if o.status == "failed"]

    def raise_for_failures(self) -> None:
        if self.failed_ids:
            raise PartialBatchFailure(self)
