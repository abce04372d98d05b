from datetime import date
from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.database import get_db
from app.errors import MarketplaceError, to_http_exception
from app.models.user import Role, User
from app.schemas.availability import (
    AvailabilitySlotCreate,
    AvailabilitySlotResponse,
    AvailabilitySlotUpdate,
    DayAvailability,
    TimeWindow,
)
from app.services import availability_service
from app.utils.security import require_role

router = APIRouter(prefix="/mentor/availability", tags=["Availability"])
booking_router = APIRouter(prefix="/bookings", tags=["Availability"])


# ======================
# MENTOR SLOTS
# ======================
@router.get("", response_model=List[AvailabilitySlotResponse])
def list_my_slots(
    current_user: User = Depends(require_role(Role.MENTOR)),
    db: Session = Depends(get_db),
):
    return availability_service.list_slots(db, current_user.id)


@router.post("", response_model=AvailabilitySlotResponse, status_code=201)
def create_slot(
    payload: AvailabilitySlotCreate,
    current_user: User = Depends(require_role(Role.MENTOR)),
    db: Session = Depends(get_db),
):
    try:
        return availability_service.create_slot(db, current_user, **payload.model_dump())
    except MarketplaceError as exc:
        raise to_http_exception(exc)


@router.patch("/{slot_id}", response_model=AvailabilitySlotResponse)
def update_slot(
    slot_id: int,
    payload: AvailabilitySlotUpdate,
    current_user: User = Depends(require_role(Role.MENTOR)),
    db: Session = Depends(get_db),
):
    try:
        return availability_service.update_slot(
            db, current_user, slot_id, **payload.model_dump(exclude_unset=True)
        )
    except MarketplaceError as exc:
        raise to_http_exception(exc)


@router.delete("/{slot_id}")
def delete_slot(
    slot_id: int,
    current_user: User = Depends(require_role(Role.MENTOR)),
    db: Session = Depends(get_db),
):
    try:
        availability_service.delete_slot(db, current_user, slot_id)
    except MarketplaceError as exc:
        raise to_http_exception(exc)
    return {"message": "Availability slot deleted", "id": slot_id}


# ======================
# PUBLIC CALENDAR
# ======================
@booking_router.get("/availability", response_model=DayAvailability)
def get_mentor_day(
    mentor_id: int = Query(...),
    day: date = Query(..., alias="date"),
    db: Session = Depends(get_db),
):
    """Booked and still-open windows of a mentor on one date (UTC)."""
    booked = availability_service.get_booked_intervals(db, mentor_id, day)
    open_windows = availability_service.get_open_windows(db, mentor_id, day)
    return DayAvailability(
        mentor_id=mentor_id,
        date=day,
        booked=[TimeWindow(start=s, end=e) for s, e in booked],
        open=[TimeWindow(start=s, end=e) for s, e in open_windows],
    )
