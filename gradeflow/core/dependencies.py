from typing import Optional

from fastapi import Depends, HTTPException, Query, status

from gradeflow.core.context import SessionContext
from gradeflow.core.exceptions import RemoteOperationError
from gradeflow.core.security import get_current_user, get_current_academic_year_id
from gradeflow.db.supabase import get_supabase

TEACHER_ROLES = ("teacher", "admin")
REVIEWER_ROLES = ("head_teacher", "principal", "admin")


def get_session_context(
    user_id: str = Query(..., description="User ID of the acting user"),
    academic_year_id: Optional[str] = Query(None, description="Academic year, defaults to the current one"),
    client=Depends(get_supabase),
) -> SessionContext:
    """
    Resolve the acting profile and academic year into a SessionContext.
    """
    profile = get_current_user(client, user_id)

    year_id = academic_year_id
    if not year_id:
        try:
            year_id = get_current_academic_year_id(client)
        except RemoteOperationError as e:
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail=str(e)
            )

    return SessionContext(
        profile_id=profile.id,
        role=profile.role,
        full_name=profile.full_name,
        initials=profile.initials,
        academic_year_id=year_id,
    )


def require_roles(*roles: str):
    """
    Dependency factory checking that the acting user has one of `roles`.
    """
    def role_checker(context: SessionContext = Depends(get_session_context)) -> SessionContext:
        if context.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required role: {' or '.join(roles)}"
            )
        return context
    return role_checker


require_teacher = require_roles(*TEACHER_ROLES)
require_reviewer = require_roles(*REVIEWER_ROLES)
