# farmsales/core/security.py
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
import jwt

from ..config.settings import get_settings
from ..config.logging import get_logger, log_security_event
from .exceptions import UnauthorizedError

logger = get_logger(__name__)
settings = get_settings()

# Security constants
ALGORITHM = settings.JWT_ALGORITHM
SECRET_KEY = settings.JWT_SECRET_KEY
ACCESS_TOKEN_EXPIRE_SECONDS = settings.JWT_ACCESS_TOKEN_EXPIRES


@dataclass(frozen=True)
class Actor:
    """The acting user as supplied by the identity provider."""
    id: str
    role: str
    name: Optional[str] = None


# JWT Token handling
def create_access_token(
    subject: str,
    role: str,
    name: Optional[str] = None,
    expires_delta: Optional[timedelta] = None
) -> str:
    """Create JWT access token carrying the user id and role."""
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(seconds=ACCESS_TOKEN_EXPIRE_SECONDS))

    to_encode = {
        "sub": str(subject),
        "role": role,
        "exp": expire,
        "iat": now,
        "type": "access"
    }
    if name:
        to_encode["name"] = name

    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def verify_token(token: str) -> Optional[Dict[str, Any]]:
    """Verify and decode JWT token."""
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError:
        log_security_event("TOKEN_EXPIRED", details="JWT token has expired")
        return None
    except jwt.InvalidTokenError as e:
        log_security_event("INVALID_TOKEN", details=f"Invalid JWT token: {str(e)}")
        return None


def actor_from_token(token: str) -> Actor:
    """Decode an access token into the acting user."""
    payload = verify_token(token)
    if not payload or payload.get("type") != "access":
        raise UnauthorizedError("Invalid authentication credentials")

    user_id = payload.get("sub")
    role = payload.get("role")
    if not user_id or not role:
        raise UnauthorizedError("Invalid token payload")

    return Actor(id=str(user_id), role=str(role), name=payload.get("name"))


def get_security_headers() -> Dict[str, str]:
    """Get security headers for responses."""
    return {
        "X-Content-Type-Options": "nosniff",
        "X-Frame-Options": "DENY",
        "Referrer-Policy": "strict-origin-when-cross-origin",
    }
