from typing import List, Optional

from sqlalchemy.orm import Session

from app import models


def get_slot(db: Session, slot_id: int) -> Optional[models.AvailabilitySlot]:
    return db.query(models.AvailabilitySlot).filter(models.AvailabilitySlot.id == slot_id).first()


def list_slots(
    db: Session,
    mentor_id: int,
    active_only: bool = False,
    day_of_week: Optional[int] = None,
) -> List[models.AvailabilitySlot]:
    query = db.query(models.AvailabilitySlot).filter(models.AvailabilitySlot.mentor_id == mentor_id)
    if active_only:
        query = query.filter(models.AvailabilitySlot.is_active.is_(True))
    if day_of_week is not None:
        query = query.filter(models.AvailabilitySlot.day_of_week == day_of_week)
    return query.order_by(
        models.AvailabilitySlot.day_of_week.asc(),
        models.AvailabilitySlot.start_time.asc(),
    ).all()


def find_overlapping_slots(
    db: Session,
    mentor_id: int,
    day_of_week: int,
    start_time: str,
    end_time: str,
    exclude_slot_id: Optional[int] = None,
) -> List[models.AvailabilitySlot]:
    """Active slots on the same day overlapping [start_time, end_time).

    "HH:MM" strings compare correctly as text, so the overlap test runs in SQL.
    """
    query = db.query(models.AvailabilitySlot).filter(
        models.AvailabilitySlot.mentor_id == mentor_id,
        models.AvailabilitySlot.day_of_week == day_of_week,
        models.AvailabilitySlot.is_active.is_(True),
        models.AvailabilitySlot.start_time < end_time,
        models.AvailabilitySlot.end_time > start_time,
    )
    if exclude_slot_id is not None:
        query = query.filter(models.AvailabilitySlot.id != exclude_slot_id)
    return query.all()


def create_slot(
    db: Session,
    *,
    mentor_id: int,
    day_of_week: int,
    start_time: str,
    end_time: str,
    is_active: bool = True,
) -> models.AvailabilitySlot:
    slot = models.AvailabilitySlot(
        mentor_id=mentor_id,
        day_of_week=day_of_week,
        start_time=start_time,
        end_time=end_time,
        is_active=is_active,
    )
    db.add(slot)
    db.flush()
    return slot


def delete_slot(db: Session, slot: models.AvailabilitySlot) -> None:
    db.delete(slot)
    db.flush()
