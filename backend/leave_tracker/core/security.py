from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from fastapi import Depends
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from leave_tracker.core.config import settings
from leave_tracker.core.errors import ForbiddenError
from leave_tracker.services.notifications.phone import (
    is_phone_number,
    normalize_phone_number,
)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


async def authenticate_user(db: AsyncSession, identifier: str, password: str):
    """Look up a user by email or phone number and check the password.

    Phone numbers may be typed in any local form (0812..., +62812...) and are
    matched against the stored E.164 number. Returns None on any mismatch.
    """
    from leave_tracker.models.user import User

    identifier = identifier.strip()
    if is_phone_number(identifier):
        query = select(User).where(User.phone == normalize_phone_number(identifier))
    else:
        query = select(User).where(User.email == identifier.lower())

    user = (await db.execute(query)).scalar_one_or_none()
    if user is None or not verify_password(password, user.hashed_password):
        return None
    return user


def create_access_token(
    data: dict[str, Any], expires_delta: Optional[timedelta] = None
) -> str:
    """Create a JWT with sub (user_id) and role claims."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict[str, Any]:
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        raise ValueError("Invalid token")


def require_role(*allowed_roles: str):
    """Dependency factory restricting a route to the given roles.

    Usage:
        current_user = Depends(require_role("admin"))
    """
    from leave_tracker.core.dependencies import get_current_user

    async def role_checker(current_user=Depends(get_current_user)):
        if current_user.role not in allowed_roles:
            raise ForbiddenError(
                f"This action requires the {' or '.join(allowed_roles)} role"
            )
        return current_user

    return role_checker
