from typing import Generator, Optional
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from appforge.db.session import SessionLocal
from appforge.db.models import User
from appforge.core.errors import UnauthenticatedError
from appforge.core.security import decode_token

bearer_scheme = HTTPBearer(auto_error=False)


def get_db() -> Generator:
    """Database session dependency."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_optional_user(
    db: Session = Depends(get_db),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Optional[User]:
    """Resolve the bearer token to an active user, or None."""
    if not credentials:
        return None

    user_id = decode_token(credentials.credentials)
    if not user_id:
        return None

    user = db.query(User).filter(User.id == user_id).first()
    if user and user.is_active:
        return user
    return None


def get_current_user(user: Optional[User] = Depends(get_optional_user)) -> User:
    """Get current authenticated user from the bearer token."""
    if user is None:
        raise UnauthenticatedError("Could not validate credentials")
    return user
