import logging
from typing import Optional
from uuid import uuid4

import asyncpg
from fastapi import Depends, HTTPException
from fastapi.security import OAuth2PasswordBearer

from agap.access.policy import home_for_role
from agap.auth.models import (
    ChangePasswordRequest,
    ForgotPasswordRequest,
    ResetPasswordRequest,
    ResponderRegister,
    UserLogin,
    UserRegister,
)
from agap.auth.utils import (
    create_access_token,
    create_reset_token_jwt,
    decode_token,
    hash_password,
    validate_credentials,
    validate_new_password,
    verify_password,
    verify_reset_token,
)
from agap.shared.db import execute_query, transaction
from agap.shared.email_service import send_password_reset_email
from agap.shared.response import error_response, success_response
from agap.shared.utils import to_iso

logger = logging.getLogger("auth.manager")

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/token")
optional_oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/token", auto_error=False)

MOBILE_BLOCKED_MESSAGE = "This account is for responders only. Please use the web application to log in."
WEB_BLOCKED_MESSAGE = "Access denied. Citizen accounts must use the mobile application."
PENDING_MESSAGE = "Your responder account is awaiting admin approval."
REJECTED_MESSAGE = "Your responder account request was rejected."
MOBILE_HOME = "/home"

PROFILE_SELECT = """
    SELECT p.id, p.email, p.full_name, p.role, p.created_at, p.last_login_at,
           r.account_status
    FROM profiles p
    LEFT JOIN responder_profiles r ON r.id = p.id
"""


def _user_payload(row) -> dict:
    return {
        "id": str(row["id"]),
        "email": row["email"],
        "full_name": row["full_name"],
        "role": row["role"],
        "account_status": row["account_status"],
        "created_at": to_iso(row["created_at"]),
        "last_login_at": to_iso(row["last_login_at"]),
    }


async def _email_taken(email: str) -> bool:
    result = await execute_query(
        "SELECT id FROM profiles WHERE email = $1",
        (email,),
        fetch_one=True
    )
    return result is not None


async def register_user(user: UserRegister):
    """Register a citizen account (mobile app)"""
    logger.info(f"Attempting to register user: {user.email}")
    problem = validate_credentials(user.email, user.password) or validate_new_password(user.password)
    if problem:
        logger.warning(f"Registration rejected for '{user.email}': {problem}")
        return error_response(problem, 400)

    email = user.email.strip().lower()
    try:
        if await _email_taken(email):
            logger.warning(f"Registration failed: email '{email}' already exists.")
            return error_response("Email already registered", 409)

        result = await execute_query(
            """
            INSERT INTO profiles (id, email, password_hash, role, created_at)
            VALUES ($1, $2, $3, 'user', NOW())
            RETURNING id, email, role, created_at
            """,
            (str(uuid4()), email, hash_password(user.password)),
            commit=True,
            fetch_one=True
        )
        logger.info(f"User registered successfully: {result['email']} (id: {result['id']})")
        return success_response({
            "id": result["id"],
            "email": result["email"],
            "role": result["role"],
            "created_at": to_iso(result["created_at"])
        }, "Account created! Please log in with your new account.")
    except Exception as e:
        logger.error(f"Error registering user '{email}': {e}")
        return error_response(str(e), 500)


async def register_responder(request: ResponderRegister):
    """Register a responder account; it stays pending until an admin approves it"""
    logger.info(f"Attempting to register responder: {request.email}")
    required = [request.email, request.password, request.confirm_password,
                request.municipality, request.province, request.office_address]
    if not all(v and v.strip() for v in required):
        return error_response("Please fill in all fields", 400)
    if request.password != request.confirm_password:
        return error_response("Passwords do not match", 400)
    problem = validate_credentials(request.email, request.password) or validate_new_password(request.password)
    if problem:
        return error_response(problem, 400)

    email = request.email.strip().lower()
    user_id = str(uuid4())
    try:
        async with transaction() as conn:
            await conn.execute(
                """
                INSERT INTO profiles (id, email, password_hash, full_name, role, created_at)
                VALUES ($1, $2, $3, $4, 'responder', NOW())
                """,
                user_id, email, hash_password(request.password), request.full_name,
            )
            await conn.execute(
                """
                INSERT INTO responder_profiles
                (id, municipality, province, office_address, contact_number, account_status, created_at)
                VALUES ($1, $2, $3, $4, $5, 'pending', NOW())
                """,
                user_id, request.municipality.strip(), request.province.strip(),
                request.office_address.strip(), request.contact_number,
            )
        logger.info(f"Responder registered and pending approval: {email} (id: {user_id})")
        return success_response({
            "id": user_id,
            "email": email,
            "role": "responder",
            "account_status": "pending",
        }, "Registration submitted. An administrator will review your account.")
    except asyncpg.UniqueViolationError:
        logger.warning(f"Responder registration failed: email '{email}' already exists.")
        return error_response("Email already registered", 409)
    except Exception as e:
        logger.error(f"Error registering responder '{email}': {e}")
        return error_response(str(e), 500)


def client_refusal(client: str, role: str, account_status: Optional[str]):
    """Return (message, status) when this role may not sign in from this client."""
    if client == "mobile":
        if role in ("responder", "admin"):
            return MOBILE_BLOCKED_MESSAGE, 403
        return None
    if role == "user":
        return WEB_BLOCKED_MESSAGE, 403
    if role == "responder" and account_status == "pending":
        return PENDING_MESSAGE, 403
    if role == "responder" and account_status == "rejected":
        return REJECTED_MESSAGE, 403
    return None


async def login_user(user: UserLogin):
    """Authenticate user and return JWT and user data"""
    logger.info(f"Attempting {user.client} login for: {user.email}")
    problem = validate_credentials(user.email, user.password)
    if problem:
        return error_response(problem, 400)

    email = user.email.strip().lower()
    try:
        result = await execute_query(
            """
            SELECT p.id, p.email, p.full_name, p.password_hash, p.role, p.created_at, p.last_login_at,
                   r.account_status
            FROM profiles p
            LEFT JOIN responder_profiles r ON r.id = p.id
            WHERE p.email = $1
            """,
            (email,),
            fetch_one=True
        )
        if not result or not verify_password(user.password, result["password_hash"]):
            logger.warning(f"Login failed: invalid credentials for '{email}'.")
            return error_response("Invalid login credentials", 401)

        refusal = client_refusal(user.client, result["role"], result["account_status"])
        if refusal:
            logger.warning(f"Login refused for '{email}' ({result['role']}) on {user.client}: {refusal[0]}")
            return error_response(*refusal)

        token = create_access_token({"sub": str(result["id"]), "role": result["role"]})
        await execute_query(
            "UPDATE profiles SET last_login_at = NOW() WHERE id = $1",
            (result["id"],),
            commit=True
        )
        logger.info(f"User '{email}' authenticated successfully.")
        return success_response({
            "token": token,
            "token_type": "bearer",
            "user": _user_payload(result),
            "redirect_to": home_for_role(result["role"]) if user.client == "web" else MOBILE_HOME,
        }, "Login successful")
    except Exception as e:
        logger.error(f"Error logging in user '{email}': {e}")
        return error_response(str(e), 500)


async def fetch_user(user_id: str) -> Optional[dict]:
    result = await execute_query(
        PROFILE_SELECT + " WHERE p.id = $1",
        (user_id,),
        fetch_one=True
    )
    if not result:
        logger.warning(f"User not found for id: {user_id}")
        return None
    return _user_payload(result)


def _token_subject(token: Optional[str]) -> Optional[str]:
    payload = decode_token(token) if token else None
    if not payload or "sub" not in payload:
        return None
    return payload["sub"]


async def load_user(token: Optional[str]) -> Optional[dict]:
    """Profile behind a bearer token, or None for a bad token or a deleted profile"""
    user_id = _token_subject(token)
    if not user_id:
        return None
    return await fetch_user(user_id)


async def get_current_user(token: str = Depends(oauth2_scheme)) -> dict:
    """Get current user from JWT"""
    user = await load_user(token)
    if not user:
        raise HTTPException(status_code=401, detail="You must be logged in")
    return user


async def get_route_identity(token: Optional[str] = Depends(optional_oauth2_scheme)) -> dict:
    """
    Who is asking for a page.

    `authenticated` follows the token alone; `user` is None when the token is
    valid but its profile row is gone.
    """
    user_id = _token_subject(token)
    if not user_id:
        return {"authenticated": False, "user": None}
    return {"authenticated": True, "user": await fetch_user(user_id)}


def require_roles(*roles):
    """Dependency factory restricting an endpoint to the given roles"""
    async def dependency(current_user: dict = Depends(get_current_user)) -> dict:
        if current_user["role"] not in roles:
            logger.warning(f"Permission denied for user {current_user['id']} ({current_user['role']})")
            raise HTTPException(status_code=403, detail="Permission denied")
        return current_user
    return dependency


async def require_approved_responder(current_user: dict = Depends(get_current_user)) -> dict:
    """Responders whose account an admin approved, and admins"""
    if current_user["role"] == "admin":
        return current_user
    if current_user["role"] != "responder" or current_user.get("account_status") != "approved":
        logger.warning(f"Unapproved access attempt by user {current_user['id']}")
        raise HTTPException(status_code=403, detail="Approved responder account required")
    return current_user


async def forgot_password(request: ForgotPasswordRequest):
    """Generate password reset token and send reset email"""
    logger.info(f"Password reset requested for email: {request.email}")
    generic = "If the email exists, a password reset link has been sent"
    try:
        result = await execute_query(
            "SELECT id, email, full_name FROM profiles WHERE email = $1",
            (request.email.strip().lower(),),
            fetch_one=True
        )
        if not result:
            logger.warning(f"Password reset requested for non-existent email: {request.email}")
            return success_response({}, generic)

        reset_token = create_reset_token_jwt(str(result["id"]))
        await execute_query(
            """
            INSERT INTO password_reset_tokens (user_id, token, created_at, expires_at)
            VALUES ($1, $2, NOW(), NOW() + INTERVAL '1 hour')
            ON CONFLICT (user_id) DO UPDATE SET
                token = EXCLUDED.token,
                created_at = EXCLUDED.created_at,
                expires_at = EXCLUDED.expires_at
            """,
            (result["id"], reset_token),
            commit=True
        )

        email_sent = await send_password_reset_email(result["email"], reset_token, result["full_name"] or result["email"])
        if not email_sent:
            logger.warning(f"Failed to send password reset email to {request.email}")
        return success_response({}, generic)
    except Exception as e:
        logger.error(f"Error processing password reset for {request.email}: {e}")
        return error_response("Failed to process password reset request", 500)


async def reset_password(request: ResetPasswordRequest):
    """Reset user password using valid reset token"""
    logger.info("Password reset attempt with token")
    problem = validate_new_password(request.new_password)
    if problem:
        return error_response(problem, 400)
    payload = verify_reset_token(request.token)
    if not payload:
        return error_response("Invalid or expired reset token", 400)

    user_id = payload["sub"]
    try:
        result = await execute_query(
            """
            SELECT user_id FROM password_reset_tokens
            WHERE user_id = $1 AND token = $2 AND expires_at > NOW()
            """,
            (user_id, request.token),
            fetch_one=True
        )
        if not result:
            logger.warning(f"Reset token not found or expired for user: {user_id}")
            return error_response("Invalid or expired reset token", 400)

        await execute_query(
            "UPDATE profiles SET password_hash = $1, updated_at = NOW() WHERE id = $2",
            (hash_password(request.new_password), user_id),
            commit=True
        )
        await execute_query(
            "DELETE FROM password_reset_tokens WHERE user_id = $1",
            (user_id,),
            commit=True
        )
        logger.info(f"Password successfully reset for user: {user_id}")
        return success_response({}, "Password reset successfully")
    except Exception as e:
        logger.error(f"Error resetting password: {e}")
        return error_response("Failed to reset password", 500)


async def change_password(request: ChangePasswordRequest, current_user: dict):
    """Change the signed-in user's password after checking the current one"""
    logger.info(f"Password change requested by user {current_user['id']}")
    problem = validate_new_password(request.new_password)
    if problem:
        return error_response(problem, 400)
    try:
        result = await execute_query(
            "SELECT password_hash FROM profiles WHERE id = $1",
            (current_user["id"],),
            fetch_one=True
        )
        if not result or not verify_password(request.current_password, result["password_hash"]):
            return error_response("Current password is incorrect", 400)

        await execute_query(
            "UPDATE profiles SET password_hash = $1, updated_at = NOW() WHERE id = $2",
            (hash_password(request.new_password), current_user["id"]),
            commit=True
        )
        return success_response({}, "Password updated successfully")
    except Exception as e:
        logger.error(f"Error changing password for {current_user['id']}: {e}")
        return error_response(str(e), 500)
