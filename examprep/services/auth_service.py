"""Accounts, password hashing and JWT-backed login sessions."""
import logging
import uuid
from datetime import timedelta

import bcrypt
from jose import JWTError, jwt
from sqlalchemy import select, update
from sqlalchemy.orm import Session as DbSession

from examprep.config import (
    ACCESS_TOKEN_EXPIRE_MINUTES,
    ALGORITHM,
    SECRET_KEY,
    SESSION_EXTEND_MINUTES,
)
from examprep.models.db.user import Session, User, UserRole
from examprep.utils.time_utils import utc_now

logger = logging.getLogger(__name__)


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))


def create_access_token(user: User) -> tuple[str, str]:
    """Sign a token for the user.

    Returns:
        Tuple of (token, jti); the jti keys the server-side session.
    """
    jti = uuid.uuid4().hex
    claims = {
        "sub": str(user.id),
        "role": user.role,
        "jti": jti,
        "exp": utc_now() + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES),
    }
    return jwt.encode(claims, SECRET_KEY, algorithm=ALGORITHM), jti


def decode_token(token: str) -> dict | None:
    """Decoded claims, or None for a bad signature or an expired token."""
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None


def get_user(db: DbSession, user_id: int) -> User | None:
    return db.get(User, user_id)


def find_user(db: DbSession, login: str) -> User | None:
    """Look a user up by username or email."""
    return db.execute(
        select(User).where((User.username == login) | (User.email == login))
    ).scalars().first()


def is_taken(db: DbSession, username: str, email: str) -> str | None:
    """Name of the field that clashes with an existing account, if any."""
    if db.execute(select(User.id).where(User.username == username)).first():
        return "Username"
    if db.execute(select(User.id).where(User.email == email)).first():
        return "Email"
    return None


def create_user(
    db: DbSession,
    username: str,
    email: str,
    password: str,
    role: UserRole = UserRole.USER,
) -> User:
    user = User(
        username=username,
        email=email,
        hashed_password=hash_password(password),
        role=role.value,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Created %s account %s", user.role, user.username)
    return user


def authenticate(db: DbSession, login: str, password: str) -> User | None:
    """The active user matching these credentials, or None."""
    user = find_user(db, login)
    if user is None or not user.is_active:
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user


def open_session(db: DbSession, user: User) -> str:
    """Issue a token and record its session; returns the token."""
    token, jti = create_access_token(user)
    db.add(
        Session(
            user_id=user.id,
            token_jti=jti,
            expires_at=utc_now() + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES),
        )
    )
    db.commit()
    return token


def touch_session(db: DbSession, jti: str) -> bool:
    """Slide an active session's expiry forward; False if it is gone or expired."""
    now = utc_now()
    result = db.execute(
        update(Session)
        .where(
            Session.token_jti == jti,
            Session.is_active.is_(True),
            Session.expires_at > now,
        )
        .values(
            last_activity=now,
            expires_at=now + timedelta(minutes=SESSION_EXTEND_MINUTES),
        )
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount == 1


def close_session(db: DbSession, jti: str) -> None:
    db.execute(
        update(Session)
        .where(Session.token_jti == jti)
        .values(is_active=False)
        .execution_options(synchronize_session=False)
    )
    db.commit()
