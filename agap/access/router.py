from fastapi import APIRouter, Depends, Query

from agap.auth.manager import get_route_identity
from agap.shared.response import success_response
from .policy import resolve_route

router = APIRouter()

@router.get("/route")
async def route_decision(path: str = Query(..., min_length=1), identity: dict = Depends(get_route_identity)):
    """Tell the web client whether to render, redirect, or sign out for a page path"""
    user = identity["user"] or {}
    decision = resolve_route(
        path,
        authenticated=identity["authenticated"],
        role=user.get("role"),
        account_status=user.get("account_status"),
    )
    return success_response(decision.as_dict(), "Route resolved")
