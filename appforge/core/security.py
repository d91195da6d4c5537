"""Bearer token helpers.

AppForge does not verify credentials itself; whoever authenticated the user
issues a signed token whose ``sub`` claim is the user id, and the API trusts
that claim.
"""

from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID
import logging
import uuid

from jose import JWTError, jwt

from appforge.core.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)


def create_access_token(user_id: UUID, expires_delta: Optional[timedelta] = None) -> str:
    """Create a signed access token for a user."""
    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(minutes=settings.access_token_expire_minutes)

    to_encode = {
        "sub": str(user_id),
        "exp": expire,
        "jti": str(uuid.uuid4()),
        "type": "access",
    }
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def decode_token(token: str) -> Optional[UUID]:
    """Decode and validate an access token. Returns the user id if valid."""
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError as e:
        logger.debug("Rejected bearer token: %s", e)
        return None

    if payload.get("type") != "access":
        return None

    user_id = payload.get("sub")
    if user_id is None:
        return None

    try:
        return UUID(user_id)
    except ValueError:
        return None
