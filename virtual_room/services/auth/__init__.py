from datetime import datetime, timedelta, timezone

from fastapi import Depends, HTTPException
from fastapi.security import OAuth2PasswordBearer
from jose import jwt, JWTError
from passlib.context import CryptContext
from pydantic import BaseModel

from virtual_room.models.user import User
from virtual_room.utils.base import Role
from virtual_room.utils.config import settings


pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/users/login")

CREDENTIALS_ERROR = "Could not validate credentials"


class TokenPair(BaseModel):
    """Access and refresh JWTs handed to the client."""
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


def hash_password(plain: str) -> str:
    return pwd_context.hash(plain)


def create_token(subject: str, token_version: str, role: str, expires_delta: timedelta, token_type: str) -> str:
    """Signed JWT carrying the user id, token version, role and token type."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": subject,
        "iat": int(now.timestamp()),
        "exp": int((now + expires_delta).timestamp()),
        "tv": token_version,
        "role": role,
        "typ": token_type,
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def create_tokens(user: User) -> TokenPair:
    access = create_token(
        subject=str(user.id),
        token_version=user.token_version,
        role=user.role,
        expires_delta=timedelta(minutes=settings.access_token_expires_minutes),
        token_type="access",
    )
    refresh = create_token(
        subject=str(user.id),
        token_version=user.token_version,
        role=user.role,
        expires_delta=timedelta(days=settings.refresh_token_expires_days),
        token_type="refresh",
    )
    return TokenPair(access_token=access, refresh_token=refresh)


def decode_token(token: str, expected_type: str) -> User:
    """Resolve a token of the given type to its user, or raise 401.

    Tokens minted before the user's last logout carry a stale version and are rejected.
    """
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        raise HTTPException(status_code=401, detail=CREDENTIALS_ERROR)
    user_id = payload.get("sub")
    token_version = payload.get("tv")
    if user_id is None or token_version is None or payload.get("typ") != expected_type:
        raise HTTPException(status_code=401, detail=CREDENTIALS_ERROR)

    user = User.objects(id=user_id).first()
    if not user or user.token_version != token_version:
        raise HTTPException(status_code=401, detail=CREDENTIALS_ERROR)
    return user


def get_current_user(token: str = Depends(oauth2_scheme)) -> User:
    return decode_token(token, "access")


def require_staff(current_user: User = Depends(get_current_user)) -> User:
    """Admins and collaborators only."""
    if not current_user.is_staff:
        raise HTTPException(status_code=403, detail="Staff access required")
    return current_user


def require_student(current_user: User = Depends(get_current_user)) -> User:
    if current_user.role_enum is not Role.STUDENT:
        raise HTTPException(status_code=403, detail="Student access required")
    return current_user
