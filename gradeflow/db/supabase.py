import logging
from functools import lru_cache
from typing import Any, List

from supabase import create_client, Client

from gradeflow.core.config import settings
from gradeflow.core.exceptions import RemoteOperationError

logger = logging.getLogger(__name__)


def create_supabase_client() -> Client:
    """
    Create the Supabase client used by every workflow.

    Returns:
        Client: Configured Supabase client

    Raises:
        RuntimeError: If the client cannot be created
    """
    try:
        # Service role key: row-level security is enforced by the role guards
        return create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_KEY)
    except Exception as e:
        error_msg = f"Failed to create Supabase client: {str(e)}"
        logger.error(error_msg)
        raise RuntimeError(error_msg)


@lru_cache
def get_supabase() -> Client:
    """FastAPI dependency returning the shared Supabase client."""
    return create_supabase_client()


def run_query(query: Any, action: str) -> List[dict]:
    """
    Execute a built Supabase query and return its rows.

    Any failure from the client (network, postgrest, permission) is logged
    and re-raised as RemoteOperationError carrying the underlying message.
    """
    try:
        response = query.execute()
    except Exception as e:
        logger.error("Supabase error while trying to %s: %s", action, e)
        raise RemoteOperationError(f"Failed to {action}: {str(e)}") from e

    # Older clients report errors on the response instead of raising
    error = getattr(response, "error", None)
    if error:
        logger.error("Supabase error while trying to %s: %s", action, error)
        raise RemoteOperationError(f"Failed to {action}: {error}")

    return response.data or []
