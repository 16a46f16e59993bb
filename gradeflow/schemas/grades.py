from pydantic import BaseModel, Field
from typing import Optional


class GradingBandCreate(BaseModel):
    name: str = ""
    min_marks: float = Field(..., ge=0, le=100)
    max_marks: float = Field(..., ge=0, le=100)
    grade: str
    grade_points: float
    remark: str = ""
    division_contribution: Optional[float] = None
    is_active: bool = True

class GradingBandUpdate(BaseModel):
    name: Optional[str] = None
    min_marks: Optional[float] = Field(None, ge=0, le=100)
    max_marks: Optional[float] = Field(None, ge=0, le=100)
    grade: Optional[str] = None
    grade_points: Optional[float] = None
    remark: Optional[str] = None
    division_contribution: Optional[float] = None
    is_active: Optional[bool] = None

class DerivedMarksRequest(BaseModel):
    assessment_1: Optional[float] = Field(None, ge=0, le=3)
    assessment_2: Optional[float] = Field(None, ge=0, le=3)
    assessment_3: Optional[float] = Field(None, ge=0, le=3)
    exam_score: Optional[float] = Field(None, ge=0, le=100)
