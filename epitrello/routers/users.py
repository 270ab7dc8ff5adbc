"""Users API endpoints.

Provides user search, used when adding members to a board, and profile
management for the caller.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..models.user import User
from ..schemas.user import PasswordChange, UserResponse, UserUpdate
from ..services.auth_service import change_password, get_current_user, update_profile

router = APIRouter(prefix="/api/users", tags=["Users"])


@router.get(
    "/search",
    response_model=dict[str, list[UserResponse]],
    summary="Search users by username or email",
    description="Case-insensitive partial match. Excludes the caller.",
)
async def search_users(
    current_user: Annotated[User, Depends(get_current_user)],
    q: str = Query(..., min_length=1, max_length=100, description="Search text"),
    limit: int = Query(10, ge=1, le=50, description="Maximum results to return"),
    db: AsyncSession = Depends(get_db),
) -> dict[str, list[UserResponse]]:
    pattern = f"%{q.strip()}%"
    stmt = (
        select(User)
        .where(or_(User.username.ilike(pattern), User.email.ilike(pattern)))
        .where(User.id != current_user.id)
        .order_by(User.username)
        .limit(limit)
    )
    result = await db.execute(stmt)
    return {"users": [UserResponse.model_validate(user) for user in result.scalars().all()]}


@router.get(
    "/profile",
    response_model=dict[str, UserResponse],
    summary="Get the caller's profile",
)
async def get_profile(
    current_user: Annotated[User, Depends(get_current_user)],
) -> dict[str, UserResponse]:
    return {"user": UserResponse.model_validate(current_user)}


@router.put(
    "/profile",
    response_model=dict[str, UserResponse],
    summary="Update the caller's profile",
    responses={
        400: {"description": "Validation error"},
        409: {"description": "Username or email already taken"},
    },
)
async def put_profile(
    updates: UserUpdate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db),
) -> dict[str, UserResponse]:
    """
    Update the caller's profile.

    - **username**: 3-50 characters, letters, digits, `_ . -`
    - **email**: Valid email address (unique)
    - **removeAvatar**: Clear the avatar URL
    """
    user = await update_profile(db, current_user, updates)
    await db.commit()
    await db.refresh(user)
    return {"user": UserResponse.model_validate(user)}


@router.put(
    "/password",
    summary="Change the caller's password",
    responses={400: {"description": "Current password is incorrect or new password invalid"}},
)
async def put_password(
    data: PasswordChange,
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db),
) -> dict[str, str]:
    await change_password(db, current_user, data)
    await db.commit()
    return {"message": "Password updated successfully"}
