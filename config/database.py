"""
Database connection management.

Provides Supabase client singletons for table, RPC and storage operations.
"""

from supabase import create_client, Client
from functools import lru_cache
import structlog

from config.settings import settings

logger = structlog.get_logger(__name__)


class DatabaseError(Exception):
    """Base exception for database errors."""
    pass


class ConnectionError(DatabaseError):
    """Failed to connect to database."""
    pass


@lru_cache()
def get_supabase_client() -> Client:
    """
    Get cached Supabase client instance.

    Uses lru_cache to ensure only one client is created.
    Call get_supabase_client.cache_clear() to reconnect.

    Returns:
        Client: Supabase client

    Raises:
        ConnectionError: If connection fails
    """
    try:
        logger.info(
            "connecting_to_supabase",
            url=settings.supabase_url[:30] + "..."  # Log partial URL only
        )

        client = create_client(
            settings.supabase_url,
            settings.supabase_service_key or settings.supabase_key
        )

        logger.info(
            "supabase_connected",
            status="success",
            service_role=bool(settings.supabase_service_key)
        )

        return client

    except Exception as e:
        logger.error(
            "supabase_connection_failed",
            error=str(e),
            error_type=type(e).__name__
        )
        raise ConnectionError(f"Failed to connect to Supabase: {e}") from e


def get_user_client(access_token: str) -> Client:
    """
    Get a Supabase client acting on behalf of an end user.

    RPC calls made through it run with the user's JWT, so database-side
    role checks (admin guard) see the caller, not the service role.

    Args:
        access_token: Bearer token of the calling user (without "Bearer ")

    Returns:
        Client: Supabase client authenticated as the user
    """
    client = create_client(settings.supabase_url, settings.supabase_key)
    client.postgrest.auth(access_token)
    return client


# ===================
# HELPER FUNCTIONS
# ===================

def check_connection() -> dict:
    """
    Check database connection health.

    Returns:
        dict: Connection status with details
    """
    try:
        client = get_supabase_client()

        batches = client.table("import_batches").select("id", count="exact").limit(1).execute()

        return {
            "status": "healthy",
            "import_batches_count": batches.count,
        }

    except Exception as e:
        return {
            "status": "unhealthy",
            "error": str(e)
        }
