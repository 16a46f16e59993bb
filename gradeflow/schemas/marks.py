from pydantic import BaseModel, Field, computed_field
from typing import List, Optional

from gradeflow.db.models import Identifier, SubmissionRecord


class ScoreInput(BaseModel):
    assessment_1: Optional[float] = Field(None, ge=0, le=3)
    assessment_2: Optional[float] = Field(None, ge=0, le=3)
    assessment_3: Optional[float] = Field(None, ge=0, le=3)
    exam_score: Optional[float] = Field(None, ge=0, le=100)
    identifier: Optional[Identifier] = None
    remark: Optional[str] = None

    def has_scores(self) -> bool:
        return any(
            v is not None
            for v in (self.assessment_1, self.assessment_2, self.assessment_3, self.exam_score)
        )

class MarksEntry(ScoreInput):
    student_id: str
    subject_id: str
    term: str

class RosterEntry(ScoreInput):
    student_id: str

class RosterSave(BaseModel):
    subject_id: str
    term: str
    submit: bool = False
    entries: List[RosterEntry]

class EligibleStudent(BaseModel):
    student_id: str
    admission_no: str = ""
    full_name: str = ""
    submission: Optional[SubmissionRecord] = None

    @computed_field  # type: ignore[misc]
    @property
    def editable(self) -> bool:
        return self.submission is None or self.submission.status != "approved"
