from fastapi import APIRouter, Depends, Query

from .manager import approve_responder, list_responder_accounts, reject_responder
from agap.auth.manager import require_roles

router = APIRouter()

admin_only = require_roles("admin")

@router.get("/responders")
async def responders(filter: str = Query("pending"), current_user: dict = Depends(admin_only)):
    """Responder accounts, filtered by approval status (all | pending | approved | rejected)"""
    return await list_responder_accounts(filter)

@router.post("/responders/{responder_id}/approve")
async def approve(responder_id: str, current_user: dict = Depends(admin_only)):
    return await approve_responder(responder_id, current_user)

@router.post("/responders/{responder_id}/reject")
async def reject(responder_id: str, current_user: dict = Depends(admin_only)):
    return await reject_responder(responder_id, current_user)
