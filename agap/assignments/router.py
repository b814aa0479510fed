from typing import Optional

from fastapi import APIRouter, Depends, Query

from .models import AssignmentCreate, AssignmentUpdate
from .manager import create_assignment, list_my_assignments, update_assignment
from agap.auth.manager import require_approved_responder

router = APIRouter()

@router.post("/")
async def create(request: AssignmentCreate, current_user: dict = Depends(require_approved_responder)):
    """Accept or reject a pending alert/report"""
    return await create_assignment(request, current_user)

@router.get("/mine")
async def mine(response_status: Optional[str] = Query(None), current_user: dict = Depends(require_approved_responder)):
    return await list_my_assignments(current_user, response_status)

@router.patch("/{assignment_id}")
async def update(assignment_id: str, request: AssignmentUpdate, current_user: dict = Depends(require_approved_responder)):
    return await update_assignment(assignment_id, request, current_user)
