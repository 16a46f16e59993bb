import logging
from typing import Optional
from uuid import UUID

from fastapi import HTTPException, status

from gradeflow.core.exceptions import RemoteOperationError
from gradeflow.db.models import Profile
from gradeflow.db.supabase import run_query

logger = logging.getLogger(__name__)


def get_current_user(client, user_id: str) -> Profile:
    """
    Fetches the acting user's profile by user ID.

    Args:
        client: Supabase client
        user_id: User ID from query parameter

    Returns:
        Profile: id, first_name, last_name and role

    Raises:
        HTTPException: 401 on a malformed id or missing role, 404 if the
        profile does not exist, 502 if Supabase fails
    """
    try:
        UUID(user_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid user ID format"
        )

    try:
        rows = run_query(
            client.table("profiles").select("id, first_name, last_name, role").eq("id", user_id),
            "fetch profile",
        )
    except RemoteOperationError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=str(e)
        )

    if not rows:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User profile not found"
        )

    profile = Profile(**rows[0])
    if not profile.role:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User profile incomplete. Role information missing."
        )
    return profile


def get_current_academic_year_id(client) -> Optional[str]:
    """Return the id of the academic year flagged is_current, if any."""
    rows = run_query(
        client.table("academic_years").select("id, name").eq("is_current", True).limit(1),
        "fetch current academic year",
    )
    if not rows:
        logger.warning("No academic year is flagged as current")
        return None
    return rows[0]["id"]
