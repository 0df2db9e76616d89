"""Authentication dependencies for FastAPI."""
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session as DbSession

from examprep.database import get_db
from examprep.models.db.user import User
from examprep.services import auth_service
from examprep.services.attempt_service import Caller

# HTTP Bearer scheme for JWT
security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: Annotated[DbSession, Depends(get_db)],
) -> User:
    """Resolve the bearer token into an active user.

    Raises:
        HTTPException: 401 for a missing, invalid or logged-out token.
    """
    if credentials is None:
        raise _unauthorized("Not authenticated")

    claims = auth_service.decode_token(credentials.credentials)
    if claims is None or "sub" not in claims:
        raise _unauthorized("Invalid or expired token")

    jti = claims.get("jti")
    if jti and not auth_service.touch_session(db, jti):
        raise _unauthorized("Session expired or invalidated")

    user = auth_service.get_user(db, int(claims["sub"]))
    if user is None or not user.is_active:
        raise _unauthorized("User not found or inactive")
    return user


async def get_caller(
    current_user: Annotated[User, Depends(get_current_user)],
) -> Caller:
    """Identity and role handed to the attempt services."""
    return Caller(user_id=current_user.id, role=current_user.role)


async def require_elevated(
    current_user: Annotated[User, Depends(get_current_user)],
) -> User:
    """Allow only teachers and admins (403 otherwise)."""
    if not current_user.is_elevated:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Teacher or admin role required",
        )
    return current_user
