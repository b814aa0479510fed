import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect

from .models import AlertCreate
from .manager import (
    cancel_alert, create_alert, fetch_alert_status, get_alert, get_alert_status,
    list_my_alerts, public_status,
)
from agap.auth.manager import get_current_user
from agap.realtime.utils import authenticate_socket, stream_status
from agap.shared.utils import is_valid_uuid

logger = logging.getLogger(__name__)

router = APIRouter()

@router.post("/")
async def create(alert: AlertCreate, current_user: dict = Depends(get_current_user)):
    return await create_alert(alert, current_user)

@router.get("/mine")
async def my_alerts(status: Optional[str] = Query(None), current_user: dict = Depends(get_current_user)):
    return await list_my_alerts(current_user, status)

@router.get("/{alert_id}")
async def get_single_alert(alert_id: str, current_user: dict = Depends(get_current_user)):
    return await get_alert(alert_id, current_user)

@router.post("/{alert_id}/cancel")
async def cancel(alert_id: str, current_user: dict = Depends(get_current_user)):
    return await cancel_alert(alert_id, current_user)

@router.get("/{alert_id}/status")
async def status(alert_id: str, current_user: dict = Depends(get_current_user)):
    return await get_alert_status(alert_id, current_user)

@router.websocket("/{alert_id}/watch")
async def watch_alert_status(websocket: WebSocket, alert_id: str):
    """Push the alert status every poll until a responder answers or the wait times out"""
    async def check():
        current = await fetch_alert_status(alert_id)
        if current is None:
            raise LookupError(f"Alert {alert_id} disappeared")
        return public_status(current)

    try:
        await websocket.accept()
        user = await authenticate_socket(websocket)
        if not user:
            return
        initial = await fetch_alert_status(alert_id) if is_valid_uuid(alert_id) else None
        if not initial or initial["user_id"] != user["id"]:
            await websocket.close(code=4004, reason="Alert not found")
            return
        await stream_status(websocket, check)
    except WebSocketDisconnect:
        logger.info(f"Client stopped watching alert {alert_id}")
