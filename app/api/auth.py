import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from app.database import get_db
from app.crud import user as user_crud
from app.models.user import Role
from app.schemas.auth import LoginRequest, RegisterRequest, Token
from app.utils.security import authenticate_user, create_user_token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])

SIGNUP_ROLES = {Role.MENTOR.value, Role.MENTEE.value}


# ===== REGISTER ENDPOINT =====

@router.post("/register", status_code=201)
async def register(user_data: RegisterRequest, db: Session = Depends(get_db)):
    """Register a mentor, a mentee, or a user who is both."""
    requested_roles = sorted({role.strip().upper() for role in user_data.roles})
    if not requested_roles or not set(requested_roles) <= SIGNUP_ROLES:
        raise HTTPException(
            status_code=400,
            detail="Roles must be MENTOR and/or MENTEE"
        )

    normalized_email = user_data.email.strip().lower()
    if user_crud.get_user_by_email(db, normalized_email):
        raise HTTPException(status_code=400, detail="Email already registered")

    try:
        user = user_crud.create_user(
            db,
            name=user_data.name,
            email=normalized_email,
            password=user_data.password,
            roles=requested_roles,
        )
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Registration failed for %s: %r", normalized_email, e)
        raise HTTPException(status_code=500, detail="Internal server error")

    return {"message": "Registration successful", "id": user.id, "roles": user.roles}


# ===== LOGIN ENDPOINT =====

@router.post("/login", response_model=Token)
async def login(credentials: LoginRequest, db: Session = Depends(get_db)):
    """Verify credentials and return access token"""
    user = authenticate_user(db, credentials.email, credentials.password)
    if user is None:
        raise HTTPException(status_code=401, detail="Invalid email or password")
    if not user.is_active:
        raise HTTPException(status_code=403, detail="Account is disabled")

    return {
        "access_token": create_user_token(user),
        "token_type": "bearer",
        "roles": list(user.roles or []),
    }
