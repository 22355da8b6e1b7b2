"""
Access token verification via Supabase Auth.
Sessions are issued elsewhere; this module only resolves a token to a user.
"""

from typing import Any, Dict, Optional

from garment_compose.config import logger
from garment_compose.db import get_supabase_client


async def verify_access_token(access_token: str) -> Optional[Dict[str, Any]]:
    """
    Verify a Supabase Auth access token and return user data.

    Args:
        access_token: JWT access token from Supabase Auth

    Returns:
        User dict if token is valid, None otherwise
    """
    try:
        client = get_supabase_client()

        logger.debug("Verifying Supabase Auth access token")

        response = client.auth.get_user(access_token)

        if response and getattr(response, "user", None):
            user_data = {
                "id": response.user.id,
                "email": response.user.email or "",
            }
            logger.debug(f"Token verified for user: {response.user.id}")
            return user_data

        logger.warning("Invalid or expired access token")
        return None

    except Exception as e:
        logger.error(f"Error verifying access token: {e}")
        return None
