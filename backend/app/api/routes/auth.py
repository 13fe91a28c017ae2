"""
Authentication endpoints.

Sign-in is delegated to an external identity provider, which vouches for
the user's ``uid`` and email. The login endpoint trusts that pair and
issues our own JWT. It is a development shortcut and can be switched off
with ``ALLOW_DEV_LOGIN=false``.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.core.clock import utcnow
from app.core.database import get_db
from app.core.errors import ConflictError
from app.core.security import TokenResponse, create_access_token, get_current_user
from app.models.user import User
from app.schemas.user import LoginRequest, UserResponse
from app.services.membership import create_house

logger = logging.getLogger(__name__)
settings = get_settings()

router = APIRouter()

DEFAULT_HOUSE_NAME = "Main House"


class AuthResponse(BaseModel):
    """Authentication response."""
    user: UserResponse
    token: TokenResponse


async def _email_taken(db: AsyncSession, email: str) -> bool:
    result = await db.execute(select(User.id).where(User.email == email))
    return result.first() is not None


@router.post("/login", response_model=AuthResponse)
async def login(
    request: LoginRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Sign in with an identity-provider uid and email.

    First sign-in creates the user together with a default house they own.
    """
    if not settings.allow_dev_login:
        raise HTTPException(
            status_code=status.HTTP_501_NOT_IMPLEMENTED,
            detail="Direct login is disabled",
        )

    result = await db.execute(select(User).where(User.uid == request.uid))
    user = result.scalar_one_or_none()

    if not user:
        if await _email_taken(db, request.email):
            raise ConflictError("An account with this email already exists")

        user = User(
            uid=request.uid,
            email=request.email,
            display_name=request.display_name,
            photo_url=request.photo_url,
            last_login_at=utcnow(),
        )
        db.add(user)
        await db.flush()
        await create_house(db, DEFAULT_HOUSE_NAME, user)

        logger.info(f"Created new user: {user.email}")
    else:
        if request.email != user.email:
            if await _email_taken(db, request.email):
                raise ConflictError("An account with this email already exists")
            user.email = request.email
        if request.display_name is not None:
            user.display_name = request.display_name
        if request.photo_url is not None:
            user.photo_url = request.photo_url
        user.last_login_at = utcnow()
        await db.commit()

    token = create_access_token({
        "sub": user.id,
        "uid": user.uid,
        "email": user.email,
    })

    return AuthResponse(
        user=UserResponse.model_validate(user),
        token=TokenResponse(access_token=token),
    )


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(user: User = Depends(get_current_user)):
    """Get current authenticated user info."""
    return UserResponse.model_validate(user)


@router.post("/logout")
async def logout():
    """
    Logout endpoint.

    JWT tokens are stateless, so this is a no-op on the server.
    Client should discard the token.
    """
    return {"status": "logged_out"}
