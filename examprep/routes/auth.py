"""Authentication routes."""
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session as DbSession

from examprep.config import ACCESS_TOKEN_EXPIRE_MINUTES
from examprep.database import get_db
from examprep.dependencies.auth import get_current_user, security
from examprep.models.auth import (
    MessageResponse,
    TokenResponse,
    UserLogin,
    UserRegister,
    UserResponse,
)
from examprep.models.db.user import User
from examprep.services import auth_service

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def register(
    data: UserRegister,
    db: Annotated[DbSession, Depends(get_db)],
) -> User:
    """Create a student account; teacher and admin roles are granted out of band."""
    clash = auth_service.is_taken(db, data.username, data.email)
    if clash:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"{clash} already registered",
        )
    return auth_service.create_user(db, data.username, data.email, data.password)


@router.post("/login", response_model=TokenResponse)
def login(
    data: UserLogin,
    db: Annotated[DbSession, Depends(get_db)],
) -> TokenResponse:
    """Exchange username (or email) and password for a bearer token."""
    user = auth_service.authenticate(db, data.username, data.password)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
        )

    return TokenResponse(
        access_token=auth_service.open_session(db, user),
        expires_in=ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        role=user.role,
    )


@router.post("/logout", response_model=MessageResponse)
def logout(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: Annotated[DbSession, Depends(get_db)],
) -> MessageResponse:
    if credentials is None:
        return MessageResponse(message="Already logged out")

    claims = auth_service.decode_token(credentials.credentials)
    if claims and claims.get("jti"):
        auth_service.close_session(db, claims["jti"])
    return MessageResponse(message="Logged out successfully")


@router.get("/me", response_model=UserResponse)
async def get_me(
    current_user: Annotated[User, Depends(get_current_user)],
) -> User:
    return current_user
