import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect
from pydantic import BaseModel

from agap.auth.manager import get_current_user
from .manager import save_fcm_token
from .utils import (
    EVENTS, InvalidFilter, Subscription, SubscriptionRefused, authenticate_socket, manager, parse_filter,
    subscription_scope,
)

logger = logging.getLogger(__name__)

router = APIRouter()

SUBSCRIBABLE_TABLES = ("alerts", "reports", "responder_assignments", "profiles", "responder_profiles")


class FcmTokenRequest(BaseModel):
    token: str


@router.websocket("/ws")
async def ws_changes(
    websocket: WebSocket,
    table: str = Query(...),
    event: str = Query("*"),
    filter: Optional[str] = Query(None),
):
    """Row change feed for one table; the first client message must carry the token"""
    connected = False
    try:
        await websocket.accept()
        if table not in SUBSCRIBABLE_TABLES or event not in EVENTS:
            await websocket.close(code=4002, reason="Invalid subscription")
            return
        try:
            row_filter = parse_filter(filter)
        except InvalidFilter as e:
            await websocket.close(code=4002, reason=str(e))
            return

        user = await authenticate_socket(websocket)
        if not user:
            return
        try:
            scope = subscription_scope(table, user)
        except SubscriptionRefused as e:
            logger.warning(f"User {user['id']} ({user['role']}) refused realtime access to {table}")
            await websocket.close(code=4003, reason=str(e))
            return

        await manager.connect(websocket, Subscription(table, event, row_filter, scope))
        connected = True
        await websocket.send_json({"event": "SUBSCRIBED", "table": table})
        logger.info(f"User {user['id']} subscribed to {table} ({event}, filter={filter})")

        # Keep connection alive; messages from client are ignored
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        if connected:
            await manager.disconnect(websocket)
        else:
            logger.info(f"Client left {table} feed before subscribing")


@router.post("/fcm-token")
async def register_fcm_token(request: FcmTokenRequest, current_user: dict = Depends(get_current_user)):
    """Store the device token used for push notifications"""
    return await save_fcm_token(request.token, current_user)
