from datetime import date
from typing import AsyncGenerator, Optional
from uuid import UUID

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from leave_tracker.core.config import school_today
from leave_tracker.core.database import async_session_factory
from leave_tracker.core.errors import AuthRequiredError
from leave_tracker.core.security import decode_access_token

security_scheme = HTTPBearer(auto_error=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_today() -> date:
    return school_today()


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_scheme),
    db: AsyncSession = Depends(get_db),
):
    """Return the authenticated user, or None when the request is anonymous
    or carries an unusable token."""
    from leave_tracker.models.user import User

    if credentials is None:
        return None

    try:
        payload = decode_access_token(credentials.credentials)
        user_id = UUID(payload.get("sub") or "")
    except ValueError:
        return None

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None or not user.is_active:
        return None
    return user


async def get_current_user(current_user=Depends(get_optional_user)):
    if current_user is None:
        raise AuthRequiredError("Invalid or missing authentication credentials")
    return current_user


def get_document_store():
    from leave_tracker.services.storage import get_document_store as _factory

    return _factory()


def get_leave_service(
    db: AsyncSession = Depends(get_db),
    documents=Depends(get_document_store),
    today: date = Depends(get_today),
):
    from leave_tracker.services.leave.service import LeaveService
    from leave_tracker.services.leave.store import SqlLeaveStore

    return LeaveService(SqlLeaveStore(db), documents, today=today)
