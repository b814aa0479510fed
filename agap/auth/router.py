from fastapi import APIRouter, Depends
from .models import (
    UserRegister, ResponderRegister, UserLogin, ForgotPasswordRequest,
    ResetPasswordRequest, ChangePasswordRequest,
)
from .manager import (
    register_user, register_responder, login_user, get_current_user,
    forgot_password, reset_password, change_password,
)
from agap.shared.response import success_response

router = APIRouter()

@router.post("/register")
async def register(user: UserRegister):
    """Register new citizen account"""
    return await register_user(user)

@router.post("/register-responder")
async def register_responder_endpoint(request: ResponderRegister):
    """Register new responder account (pending approval)"""
    return await register_responder(request)

@router.post("/login")
async def login(user: UserLogin):
    """Authenticate user"""
    return await login_user(user)

@router.get("/me")
async def get_me(current_user: dict = Depends(get_current_user)):
    """Get current user details"""
    return success_response(current_user, "User details retrieved")

@router.post("/forgot-password")
async def forgot_password_endpoint(request: ForgotPasswordRequest):
    """Request password reset for user"""
    return await forgot_password(request)

@router.post("/reset-password")
async def reset_password_endpoint(request: ResetPasswordRequest):
    """Reset user password with valid token"""
    return await reset_password(request)

@router.post("/change-password")
async def change_password_endpoint(request: ChangePasswordRequest, current_user: dict = Depends(get_current_user)):
    return await change_password(request, current_user)
