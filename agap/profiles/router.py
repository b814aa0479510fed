from typing import Literal, Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile

from .models import ProfileUpdate, ResponderSettingsUpdate
from .manager import (
    get_profile, get_responder_location, get_settings, get_user_history,
    update_profile, update_settings, upload_avatar,
)
from agap.auth.manager import require_roles

router = APIRouter()

citizen = require_roles("user")
responder = require_roles("responder", "admin")

@router.get("/me")
async def my_profile(current_user: dict = Depends(citizen)):
    return await get_profile(current_user)

@router.patch("/me")
async def update_my_profile(request: ProfileUpdate, current_user: dict = Depends(citizen)):
    return await update_profile(request, current_user)

@router.post("/me/avatar")
async def update_my_avatar(image: UploadFile = File(...), current_user: dict = Depends(citizen)):
    return await upload_avatar(image, current_user)

@router.get("/me/history")
async def my_history(
    type: Optional[Literal["alert", "report"]] = Query(None),
    current_user: dict = Depends(citizen),
):
    """Alerts and reports the signed-in citizen has sent"""
    return await get_user_history(current_user, type)

@router.get("/settings")
async def settings(current_user: dict = Depends(responder)):
    return await get_settings(current_user)

@router.patch("/settings")
async def save_settings(request: ResponderSettingsUpdate, current_user: dict = Depends(responder)):
    return await update_settings(request, current_user)

@router.get("/location")
async def responder_location(current_user: dict = Depends(responder)):
    """Where the responder map should be centred"""
    return await get_responder_location(current_user)
