from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query

from .manager import fetch_history, fetch_pending_incidents
from agap.auth.manager import require_approved_responder

router = APIRouter()

@router.get("/pending")
async def pending(current_user: dict = Depends(require_approved_responder)):
    """Dashboard feed: pending alerts and reports"""
    return await fetch_pending_incidents(current_user)

@router.get("/history")
async def history(
    type: Optional[Literal["alert", "report"]] = Query(None),
    current_user: dict = Depends(require_approved_responder),
):
    return await fetch_history(current_user, type)
