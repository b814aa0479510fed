import json
import logging

from fastapi import APIRouter, Depends, Request

from .manager import analyze_photo
from agap.auth.manager import get_current_user
from agap.shared.response import error_response

logger = logging.getLogger(__name__)

router = APIRouter()

@router.post("/analyze-photo")
async def analyze_photo_endpoint(request: Request, current_user: dict = Depends(get_current_user)):
    """Describe an emergency photo sent as base64 JSON: {"image": "..."}"""
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return error_response("Invalid JSON body", 400)
    return await analyze_photo(body)
