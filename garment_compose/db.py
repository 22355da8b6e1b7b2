from typing import Optional

from supabase import create_client, Client

from garment_compose.config import logger
from garment_compose.config import SUPABASE_KEY, SUPABASE_SERVICE_KEY, SUPABASE_URL


_supabase_client: Optional[Client] = None


def supabase_create_client(use_service_key: bool = True) -> Client | None:
    """
    Creates and returns a Supabase client using the configured URL and key.

    Args:
        use_service_key: Prefer SUPABASE_SERVICE_KEY over SUPABASE_KEY.

    Returns:
        Client: Supabase client instance if successful, None otherwise.
    """
    url = SUPABASE_URL
    key = (SUPABASE_SERVICE_KEY if use_service_key else None) or SUPABASE_KEY
    if not url or not key:
        logger.error("SUPABASE_URL or SUPABASE_KEY is not set")
        return None
    try:
        supabase: Client = create_client(url, key)
        logger.info("Supabase client connected successfully!")
        return supabase
    except Exception as e:
        logger.error(f"Failed to create Supabase client: {e}")
        return None


def get_supabase_client() -> Client:
    """
    Get or create the shared Supabase client instance.

    Raises:
        ValueError: If the Supabase URL or keys are not configured
    """
    global _supabase_client

    if _supabase_client is None:
        client = supabase_create_client()
        if client is None:
            raise ValueError("SUPABASE_URL or SUPABASE_SERVICE_KEY is not configured")
        _supabase_client = client

    return _supabase_client
