# app/api/session.py
"""
Session booking and lifecycle API.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.database import get_db
from app.errors import MarketplaceError, to_http_exception
from app.models.user import User
from app.schemas.payment import TransactionResponse
from app.schemas.pricing import SubscriptionResponse
from app.schemas.session import BookingRequest, BookingResponse, SessionResponse, SessionStatusUpdate
from app.services import booking_service, session_lifecycle
from app.utils.security import get_current_user

router = APIRouter(prefix="/sessions", tags=["sessions"])


# ======================
# BOOKING
# ======================
@router.post("/book", response_model=BookingResponse, status_code=201)
def book_session(
    payload: BookingRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        result = booking_service.book_session(
            db,
            current_user,
            mentor_id=payload.mentor_id,
            pricing_model_id=payload.pricing_model_id,
            start_time=payload.start_time,
            end_time=payload.end_time,
            estimated_minutes=payload.estimated_minutes,
            payment_method=payload.payment_method,
        )
    except MarketplaceError as exc:
        raise to_http_exception(exc)
    return BookingResponse(
        session=SessionResponse.model_validate(result.session),
        transaction=TransactionResponse.model_validate(result.transaction),
        subscription=(
            SubscriptionResponse.model_validate(result.subscription)
            if result.subscription is not None
            else None
        ),
    )


# ======================
# SESSION LISTING
# ======================
@router.get("/my", response_model=List[SessionResponse])
def get_my_sessions(
    status: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Sessions where the current user is mentor or mentee, newest first."""
    try:
        return booking_service.list_user_sessions(db, current_user, status=status, page=page, limit=limit)
    except MarketplaceError as exc:
        raise to_http_exception(exc)


@router.get("/{session_id}", response_model=SessionResponse)
def get_session(
    session_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        return booking_service.get_session_for_participant(db, session_id, current_user)
    except MarketplaceError as exc:
        raise to_http_exception(exc)


# ======================
# STATUS TRANSITIONS
# ======================
@router.patch("/{session_id}/status", response_model=SessionResponse)
def update_session_status(
    session_id: int,
    payload: SessionStatusUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        return session_lifecycle.transition_session(
            db,
            session_id,
            payload.status,
            actor=current_user,
            end_time=payload.end_time,
        )
    except MarketplaceError as exc:
        raise to_http_exception(exc)
