"""FastAPI dependencies shared across edit endpoints."""

from typing import Optional

from fastapi import Depends, Header, HTTPException

from garment_compose.config import logger
from garment_compose.core import auth
from garment_compose.services.image_edit_service import (
    ImageEditService,
    build_image_edit_service,
)


async def get_current_user(authorization: Optional[str] = Header(default=None)) -> dict:
    """Retrieve the authenticated user from a Supabase Auth Bearer token."""
    if not authorization:
        raise HTTPException(status_code=401, detail="Authorization header required")

    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(
            status_code=401, detail="Invalid authorization header format"
        )

    user = await auth.verify_access_token(parts[1])
    if not user:
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    return user


async def get_image_edit_service(
    user: dict = Depends(get_current_user),
) -> ImageEditService:
    """Build the edit service bound to the authenticated caller."""
    try:
        return build_image_edit_service(str(user["id"]))
    except ValueError as exc:
        logger.error("Edit service unavailable", extra={"error": str(exc)})
        raise HTTPException(status_code=500, detail=f"Service not configured: {exc}")
