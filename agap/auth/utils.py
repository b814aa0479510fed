import logging
import re
from datetime import datetime, timedelta, timezone

from passlib.context import CryptContext
from jose import JWTError, jwt

from agap.shared import config

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
ALGORITHM = "HS256"
MIN_PASSWORD_LENGTH = 6

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

def hash_password(password: str) -> str:
    """Hash password using bcrypt"""
    return pwd_context.hash(password)

def verify_password(plain_password: str, hashed_password: str) -> bool:
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)

def is_valid_email(email: str) -> bool:
    return bool(email) and bool(EMAIL_PATTERN.match(email.strip()))

def validate_credentials(email: str, password: str):
    """Return an error message for unusable sign up / login input, or None."""
    if not email or not email.strip() or not password or not password.strip():
        return "Please fill in all fields"
    if not is_valid_email(email):
        return "Please enter a valid email address"
    return None

def validate_new_password(password: str):
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        return f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
    return None

def _encode(claims: dict, expires_delta: timedelta) -> str:
    expire = datetime.now(timezone.utc) + expires_delta
    return jwt.encode({**claims, "exp": expire}, config.JWT_SECRET, algorithm=ALGORITHM)

def create_access_token(data: dict, expires_delta: timedelta = None):
    """Signed session token carrying `sub` (user id) and `role`"""
    return _encode(data, expires_delta or timedelta(hours=config.ACCESS_TOKEN_HOURS))

def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, config.JWT_SECRET, algorithms=[ALGORITHM])
    except JWTError as e:
        logger.warning(f"Rejected token: {e}")
        return None

def create_reset_token_jwt(user_id: str, expires_delta: timedelta = timedelta(hours=1)) -> str:
    return _encode({"sub": user_id, "type": "password_reset"}, expires_delta)

def verify_reset_token(token: str) -> dict:
    """Claims of a password reset token, or None if expired, forged or of another type"""
    decoded = decode_token(token)
    if not decoded or decoded.get("type") != "password_reset":
        return None
    return decoded
