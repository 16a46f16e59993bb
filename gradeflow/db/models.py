from pydantic import BaseModel
from typing import Optional, Literal, Tuple
from datetime import datetime

SubmissionStatus = Literal["draft", "pending", "approved", "rejected"]
Identifier = Literal[1, 2, 3]

SUBMISSION_CONFLICT_KEYS = "student_id,subject_id,academic_year_id,term"

# Profile model (extends auth.users)
class Profile(BaseModel):
    id: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    @property
    def initials(self) -> str:
        return f"{(self.first_name or ' ')[0]}{(self.last_name or ' ')[0]}".strip()

# Student model; student_id is the admission number
class Student(BaseModel):
    id: str
    student_id: Optional[str] = None
    profile_id: Optional[str] = None

class Subject(BaseModel):
    id: str
    name: str
    code: Optional[str] = None

class SchoolClass(BaseModel):
    id: str
    name: str

# Class enrollment (student_enrollments)
class ClassEnrollment(BaseModel):
    student_id: str
    class_id: Optional[str] = None
    stream_id: Optional[str] = None
    academic_year_id: Optional[str] = None
    status: Optional[str] = None

# Grading band (grading_config)
class GradingBand(BaseModel):
    id: Optional[str] = None
    name: str = ""
    min_marks: float
    max_marks: float
    grade: str
    grade_points: float
    remark: str = ""
    division_contribution: Optional[float] = None
    is_active: bool = True

    def contains(self, value: float) -> bool:
        return self.min_marks <= value <= self.max_marks

# Marks entry for one (student, subject, academic year, term)
class SubmissionRecord(BaseModel):
    id: Optional[str] = None
    student_id: str
    subject_id: str
    academic_year_id: str
    term: str

    assessment_1: Optional[float] = None
    assessment_2: Optional[float] = None
    assessment_3: Optional[float] = None
    exam_score: Optional[float] = None

    # Derived from the scores above
    avg_assessment: Optional[float] = None
    ca_20: Optional[float] = None
    exam_80: Optional[float] = None
    total: Optional[float] = None

    grade: Optional[str] = None
    grade_points: Optional[float] = None
    identifier: Optional[Identifier] = None
    remark: Optional[str] = None
    teacher_initials: Optional[str] = None

    status: SubmissionStatus = "draft"
    rejection_reason: Optional[str] = None
    submitted_by: Optional[str] = None
    submitted_at: Optional[datetime] = None
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None

    @property
    def key(self) -> Tuple[str, str, str, str]:
        return (self.student_id, self.subject_id, self.academic_year_id, self.term)

    def to_row(self) -> dict:
        """Row payload for upsert. The id is left out; rows are matched on `key`."""
        return self.model_dump(mode="json", exclude={"id"})

# Existing generated report card (generated_reports)
class GeneratedReport(BaseModel):
    student_id: str
    status: Optional[str] = None
    verification_code: Optional[str] = None
    generated_at: Optional[datetime] = None
