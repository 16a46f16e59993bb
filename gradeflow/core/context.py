from pydantic import BaseModel
from typing import Optional

from gradeflow.core.exceptions import ValidationError


class SessionContext(BaseModel):
    """
    Who is acting and in which academic year.

    Passed explicitly into every workflow operation instead of being read
    from ambient state.
    """
    profile_id: str
    role: str
    full_name: str = ""
    initials: str = ""
    academic_year_id: Optional[str] = None

    def require_academic_year(self) -> str:
        if not self.academic_year_id:
            raise ValidationError("No current academic year is set")
        return self.academic_year_id
