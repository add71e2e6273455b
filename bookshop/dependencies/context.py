from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from sqlmodel import Session

from bookshop.config import settings
from bookshop.constants import roles
from bookshop.database import get_session
from bookshop.models.user import User

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


@dataclass(frozen=True)
class RequestContext:
    """Who is acting on this request. Built per request, passed down explicitly."""

    user_id: int
    role: str = roles.CUSTOMER
    actor: str = "user"

    @property
    def is_admin(self) -> bool:
        return (self.role or "").lower() == roles.ADMIN

    @classmethod
    def for_user(cls, user: User) -> "RequestContext":
        return cls(user_id=user.id, role=user.role, actor=user.username)


def create_access_token(user_id: int, expires_delta: Optional[timedelta] = None) -> str:
    expire = datetime.utcnow() + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    return jwt.encode(
        {"user_id": user_id, "exp": expire},
        settings.secret_key,
        algorithm=settings.algorithm,
    )


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_request_context(
    token: str = Depends(oauth2_scheme),
    session: Session = Depends(get_session),
) -> RequestContext:
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        raise _unauthorized("Could not validate credentials")

    user_id = payload.get("user_id")
    if user_id is None:
        raise _unauthorized("Invalid token payload")

    user = session.get(User, int(user_id))
    if user is None:
        raise _unauthorized("User not found")

    if not user.can_login:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is disabled",
        )

    return RequestContext.for_user(user)
