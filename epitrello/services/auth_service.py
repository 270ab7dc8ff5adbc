"""Authentication service with JWT token generation and user management."""

from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from pydantic import BaseModel
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..database import get_db
from ..models.user import User
from ..schemas.user import PasswordChange, UserCreate, UserUpdate
from ..utils.security import get_password_hash, verify_password

# OAuth2 scheme for token-based authentication
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


class Token(BaseModel):
    """Token response schema."""

    access_token: str
    token_type: str = "bearer"


class TokenData(BaseModel):
    """Token payload data schema."""

    user_id: Optional[str] = None
    email: Optional[str] = None


def create_access_token(
    data: dict,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Create a JWT access token.

    Args:
        data: Dictionary of claims to encode in the token
        expires_delta: Optional custom expiration time delta

    Returns:
        Encoded JWT token string
    """
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.jwt_expiration_minutes)
    )
    to_encode.update({"exp": expire})

    return jwt.encode(
        to_encode,
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
    )


def decode_access_token(token: str) -> Optional[TokenData]:
    """
    Decode and validate a JWT access token.

    Returns:
        TokenData with user information, or None if invalid or expired
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError:
        return None

    user_id = payload.get("sub")
    if user_id is None:
        return None
    return TokenData(user_id=user_id, email=payload.get("email"))


async def get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    result = await db.execute(select(User).where(func.lower(User.email) == email.lower()))
    return result.scalar_one_or_none()


async def get_user_by_id(db: AsyncSession, user_id: UUID) -> Optional[User]:
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def authenticate_user(db: AsyncSession, email: str, password: str) -> Optional[User]:
    """
    Authenticate a user with email and password.

    Returns:
        User object if authentication successful, None otherwise
    """
    user = await get_user_by_email(db, email)
    if not user:
        return None
    if not verify_password(password, user.password_hash):
        return None
    return user


async def create_user(db: AsyncSession, user_data: UserCreate) -> User:
    """
    Create a new user in the database.

    Raises:
        HTTPException: If the email or username is already taken
    """
    result = await db.execute(
        select(User).where(
            or_(
                func.lower(User.email) == user_data.email.lower(),
                func.lower(User.username) == user_data.username.lower(),
            )
        )
    )
    if result.scalars().first() is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email or username already registered",
        )

    db_user = User(
        username=user_data.username,
        email=user_data.email.lower(),
        password_hash=get_password_hash(user_data.password),
    )
    db.add(db_user)
    await db.flush()
    return db_user


async def update_profile(db: AsyncSession, user: User, updates: UserUpdate) -> User:
    """
    Change the username and email of a user.

    Raises:
        HTTPException: If the new username or email belongs to another user
    """
    email = updates.email.lower()

    if updates.username != user.username:
        result = await db.execute(
            select(User).where(func.lower(User.username) == updates.username.lower(), User.id != user.id)
        )
        if result.scalars().first() is not None:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Username is already taken")
        user.username = updates.username

    if email != user.email:
        result = await db.execute(select(User).where(func.lower(User.email) == email, User.id != user.id))
        if result.scalars().first() is not None:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email is already in use")
        user.email = email

    if updates.remove_avatar:
        user.avatar_url = None

    await db.flush()
    return user


async def change_password(db: AsyncSession, user: User, data: PasswordChange) -> None:
    """
    Replace the password of a user after checking the current one.

    Raises:
        HTTPException: If the current password does not match
    """
    if not verify_password(data.current_password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Current password is incorrect",
        )
    user.password_hash = get_password_hash(data.new_password)
    await db.flush()


async def resolve_token_user(db: AsyncSession, token: str) -> Optional[User]:
    """Resolve a raw JWT to its user, or None. Shared by HTTP and WebSocket auth."""
    token_data = decode_access_token(token)
    if token_data is None or token_data.user_id is None:
        return None
    try:
        user_id = UUID(token_data.user_id)
    except ValueError:
        return None
    return await get_user_by_id(db, user_id)


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Get the current authenticated user from the JWT token.

    Raises:
        HTTPException: If token is invalid or user not found
    """
    user = await resolve_token_user(db, token)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user
