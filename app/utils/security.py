from datetime import timedelta
from typing import Optional

from jose import JWTError, jwt
from passlib.context import CryptContext
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from app import models
from app.config import settings
from app.database import get_db
from app.schemas.auth import TokenData
from app.utils.clock import utcnow

# bcrypt only reads the first 72 bytes of a password.
BCRYPT_MAX_BYTES = 72

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/login")

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


# ==========================
# PASSWORDS
# ==========================

def _bcrypt_safe(password: str) -> str:
    raw = password.encode("utf-8")
    if len(raw) <= BCRYPT_MAX_BYTES:
        return password
    return raw[:BCRYPT_MAX_BYTES].decode("utf-8", errors="ignore")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(_bcrypt_safe(plain_password), hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(_bcrypt_safe(password))


# ==========================
# TOKENS
# ==========================

def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Sign `data` as a JWT.

    Args:
        data: Claims to encode; `sub` carries the user's email.
        expires_delta: Lifetime of the token. Defaults to
            ACCESS_TOKEN_EXPIRE_MINUTES.
    """
    lifetime = expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    claims = dict(data, exp=utcnow() + lifetime)
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def create_user_token(user: models.User) -> str:
    return create_access_token({"sub": user.email, "roles": list(user.roles or [])})


def decode_access_token(token: str) -> Optional[TokenData]:
    """Returns None for a token that is expired, tampered with or has no subject."""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None
    email = payload.get("sub")
    if not email:
        return None
    return TokenData(email=email, roles=payload.get("roles") or [])


# ==========================
# CURRENT USER
# ==========================

def authenticate_user(db: Session, email: str, password: str) -> Optional[models.User]:
    user = db.query(models.User).filter(models.User.email == email.strip().lower()).first()
    if user is None or not verify_password(password, user.password_hash):
        return None
    return user


def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> models.User:
    token_data = decode_access_token(token)
    user = None
    if token_data is not None:
        user = db.query(models.User).filter(models.User.email == token_data.email).first()

    if user is None or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def has_role(user: Optional[models.User], role) -> bool:
    return user is not None and user.has_role(role)


def require_role(role):
    """Dependency factory: the current user must hold `role`."""
    role_value = getattr(role, "value", role)

    def _dependency(current_user: models.User = Depends(get_current_user)):
        if not has_role(current_user, role_value):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"{role_value.title()} role required",
            )
        return current_user

    return _dependency
