"""
Platform Settings Routes

GET   /super-admin/settings           - Full settings document
PATCH /super-admin/settings/{section} - Update one section
POST  /super-admin/settings/reset     - Restore defaults
GET   /settings/public                - Registration toggles and maintenance state (no auth)
"""

from typing import Any, Dict
from fastapi import APIRouter, Depends, Body

from app.core.auth import get_current_super_admin
from app.services.mongo_service import serialize_doc
from app.services.platform_settings import (
    get_platform_settings, update_section, reset_platform_settings, public_settings
)

router = APIRouter(prefix="/super-admin/settings", tags=["Platform Settings"])
public_router = APIRouter(prefix="/settings", tags=["Platform Settings"])


@router.get("")
async def get_settings_document(admin: dict = Depends(get_current_super_admin)):
    return serialize_doc(get_platform_settings())


@router.patch("/{section}")
async def update_settings_section(
    section: str,
    updates: Dict[str, Any] = Body(...),
    admin: dict = Depends(get_current_super_admin)
):
    """
    Partially update one section, e.g. PATCH /super-admin/settings/maintenance_mode
    with {"enabled": true}. Unknown sections or keys answer 400.
    """
    settings = update_section(section, updates, admin["user_id"])
    return {"message": "Settings updated successfully", "settings": serialize_doc(settings)}


@router.post("/reset")
async def reset_settings(admin: dict = Depends(get_current_super_admin)):
    settings = reset_platform_settings(admin["user_id"])
    return {"message": "Settings reset to defaults", "settings": serialize_doc(settings)}


@public_router.get("/public")
async def get_public_settings():
    """Used by the login and register screens before a user has a token."""
    return public_settings()
