"""Password hashing, access tokens and the identity dependencies.

The token is accepted either from the ``Authorization: Bearer`` header or from
the session cookie set at login, so browsers following a share link carry
their identity without any extra work on the page.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from fastapi import Depends, Request, Response
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from officeshare.core.config import settings
from officeshare.core.database import get_db
from officeshare.core.errors import ApiError, ErrorCode
from officeshare.models.user import User

logger = logging.getLogger("office-share")

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token", auto_error=False)


@dataclass(frozen=True)
class Identity:
    user_id: str
    email: str
    role: str = "user"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @classmethod
    def from_user(cls, user: User) -> "Identity":
        return cls(user_id=str(user.id), email=user.email, role=user.role or "user")


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        settings.SESSION_COOKIE_NAME,
        token,
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        httponly=True,
        secure=settings.SESSION_COOKIE_SECURE,
        samesite="lax",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(settings.SESSION_COOKIE_NAME)


def _subject_from_token(token: str) -> Optional[str]:
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError as e:
        logger.debug("Rejected access token: %s", e)
        return None
    return payload.get("sub")


async def get_optional_user(
    request: Request,
    bearer: Optional[str] = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> Optional[User]:
    token = bearer or request.cookies.get(settings.SESSION_COOKIE_NAME)
    if not token:
        return None
    email = _subject_from_token(token)
    if not email:
        return None
    try:
        res = await db.execute(select(User).where(User.email == email))
    except SQLAlchemyError as e:
        logger.error("Identity lookup failed: %s", e)
        raise ApiError(503, "Database is temporarily unavailable", ErrorCode.STORE_ERROR)
    user = res.scalars().first()
    if not user or not user.is_active:
        return None
    return user


async def get_current_user(user: Optional[User] = Depends(get_optional_user)) -> User:
    if user is None:
        raise ApiError(
            401,
            "Authentication required",
            ErrorCode.AUTHENTICATION_REQUIRED,
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


async def get_optional_identity(user: Optional[User] = Depends(get_optional_user)) -> Optional[Identity]:
    return Identity.from_user(user) if user else None


async def get_current_admin(user: User = Depends(get_current_user)) -> User:
    if not user.is_admin:
        raise ApiError(403, "Admin access required")
    return user
