import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile, WebSocket, WebSocketDisconnect

from .models import ReportCreate
from .manager import (
    cancel_report, create_report, fetch_report_status, get_report, get_report_status,
    list_my_reports, public_status, upload_report_image,
)
from agap.auth.manager import get_current_user
from agap.realtime.utils import authenticate_socket, stream_status
from agap.shared.utils import is_valid_uuid

logger = logging.getLogger(__name__)

router = APIRouter()

@router.post("/")
async def create(report: ReportCreate, current_user: dict = Depends(get_current_user)):
    return await create_report(report, current_user)

@router.get("/mine")
async def my_reports(status: Optional[str] = Query(None), current_user: dict = Depends(get_current_user)):
    return await list_my_reports(current_user, status)

@router.post("/{report_id}/image")
async def upload_image(report_id: str, image: UploadFile = File(...), current_user: dict = Depends(get_current_user)):
    """Attach the photo to a report (multipart field `image`)"""
    return await upload_report_image(report_id, image, current_user)

@router.get("/{report_id}")
async def get_single_report(report_id: str, current_user: dict = Depends(get_current_user)):
    return await get_report(report_id, current_user)

@router.post("/{report_id}/cancel")
async def cancel(report_id: str, current_user: dict = Depends(get_current_user)):
    return await cancel_report(report_id, current_user)

@router.get("/{report_id}/status")
async def status(report_id: str, current_user: dict = Depends(get_current_user)):
    return await get_report_status(report_id, current_user)

@router.websocket("/{report_id}/watch")
async def watch_report_status(websocket: WebSocket, report_id: str):
    async def check():
        current = await fetch_report_status(report_id)
        if current is None:
            raise LookupError(f"Report {report_id} disappeared")
        return public_status(current)

    try:
        await websocket.accept()
        user = await authenticate_socket(websocket)
        if not user:
            return
        initial = await fetch_report_status(report_id) if is_valid_uuid(report_id) else None
        if not initial or initial["user_id"] != user["id"]:
            await websocket.close(code=4004, reason="Report not found")
            return
        await stream_status(websocket, check)
    except WebSocketDisconnect:
        logger.info(f"Client stopped watching report {report_id}")
