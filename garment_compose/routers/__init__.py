"""Router package exposing all API routers."""

from fastapi import APIRouter

from .edits.router import router as edits_router

router = APIRouter()
router.include_router(edits_router)

__all__ = ["router", "edits_router"]
