"""Authentication endpoints: login, me."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from leave_tracker.api.v1.schemas import LoginRequest, TokenResponse, UserResponse
from leave_tracker.core.dependencies import get_current_user, get_db
from leave_tracker.core.security import authenticate_user, create_access_token

router = APIRouter(prefix="/auth", tags=["auth"])


# ── POST /login ───────────────────────────────────────────────────────────────


@router.post("/login", response_model=TokenResponse)
async def login(body: LoginRequest, db: AsyncSession = Depends(get_db)):
    """Log in with an email address or a phone number (08..., +62...)."""
    user = await authenticate_user(db, body.identifier, body.password)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid email/phone or password")

    if not user.is_active:
        raise HTTPException(status_code=403, detail="Account is deactivated")

    token = create_access_token({"sub": str(user.id), "role": user.role})
    return TokenResponse(access_token=token)


# ── GET /me ───────────────────────────────────────────────────────────────────


@router.get("/me", response_model=UserResponse)
async def get_me(current_user=Depends(get_current_user)):
    """Return the current authenticated user's profile."""
    return current_user
