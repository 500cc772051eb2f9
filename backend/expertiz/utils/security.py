"""Password hashing, JWT handling and webhook signatures."""
import hashlib
import hmac
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt
from passlib.context import CryptContext

from expertiz.config import get_settings

settings = get_settings()

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

ACCESS = "access"
REFRESH = "refresh"


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Generate password hash."""
    return pwd_context.hash(password)


def _encode(user_id: int, token_type: str, expires_delta: timedelta, **claims: Any) -> str:
    to_encode = {
        "sub": str(user_id),
        "exp": datetime.now(timezone.utc) + expires_delta,
        "type": token_type,
        **claims,
    }
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def create_access_token(user_id: int, role: str | None = None) -> str:
    """Create a short-lived access token; `role` is informational only."""
    claims = {"role": role} if role else {}
    return _encode(
        user_id,
        ACCESS,
        timedelta(minutes=settings.access_token_expire_minutes),
        **claims,
    )


def create_refresh_token(user_id: int) -> str:
    return _encode(user_id, REFRESH, timedelta(days=settings.refresh_token_expire_days))


def decode_token(token: str) -> dict | None:
    """Decode and validate JWT token."""
    try:
        return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None


def get_user_id_from_token(token: str, token_type: str = ACCESS) -> int | None:
    """Return the user id of a valid token of the expected type."""
    payload = decode_token(token)
    if payload is None or payload.get("type") != token_type:
        return None
    try:
        return int(payload.get("sub"))
    except (TypeError, ValueError):
        return None


def build_webhook_signature(secret: str, payload: bytes) -> str:
    """HMAC SHA256 hex digest of a webhook body."""
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


def verify_webhook_signature(secret: str, payload: bytes, signature: str | None) -> bool:
    # An unconfigured secret accepts nothing.
    if not secret or not signature:
        return False
    return hmac.compare_digest(build_webhook_signature(secret, payload), signature)
