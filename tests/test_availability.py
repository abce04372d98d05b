from datetime import date

import pytest

from app.errors import Conflict, NotFound, PermissionDenied, ValidationError
from app.models.pricing import PricingType
from app.services import availability_service, booking_service

from conftest import NOW, at

TUESDAY = date(2030, 1, 8)


def test_weekday_index_starts_on_sunday():
    assert availability_service.weekday_index(date(2030, 1, 6)) == 0
    assert availability_service.weekday_index(TUESDAY) == 2
    assert availability_service.weekday_index(date(2030, 1, 12)) == 6


def test_create_slot(db, mentor):
    slot = availability_service.create_slot(
        db, mentor, day_of_week=2, start_time="09:00", end_time="12:00"
    )

    assert slot.id is not None
    assert slot.mentor_id == mentor.id
    assert slot.is_active is True
    assert [s.id for s in availability_service.list_slots(db, mentor.id)] == [slot.id]


def test_overlapping_slot_is_rejected(db, mentor):
    availability_service.create_slot(db, mentor, day_of_week=2, start_time="09:00", end_time="12:00")

    with pytest.raises(Conflict):
        availability_service.create_slot(db, mentor, day_of_week=2, start_time="11:00", end_time="13:00")

    assert len(availability_service.list_slots(db, mentor.id)) == 1


def test_adjacent_and_other_day_slots_are_allowed(db, mentor):
    availability_service.create_slot(db, mentor, day_of_week=2, start_time="09:00", end_time="12:00")
    availability_service.create_slot(db, mentor, day_of_week=2, start_time="12:00", end_time="14:00")
    availability_service.create_slot(db, mentor, day_of_week=3, start_time="10:00", end_time="11:00")

    assert len(availability_service.list_slots(db, mentor.id)) == 3


def test_inactive_slot_does_not_block(db, mentor):
    availability_service.create_slot(
        db, mentor, day_of_week=2, start_time="09:00", end_time="12:00", is_active=False
    )
    slot = availability_service.create_slot(db, mentor, day_of_week=2, start_time="10:00", end_time="11:00")

    assert slot.is_active is True


def test_reactivating_into_overlap_is_rejected(db, mentor):
    dormant = availability_service.create_slot(
        db, mentor, day_of_week=2, start_time="09:00", end_time="12:00", is_active=False
    )
    availability_service.create_slot(db, mentor, day_of_week=2, start_time="10:00", end_time="11:00")

    with pytest.raises(Conflict):
        availability_service.update_slot(db, mentor, dormant.id, is_active=True)


def test_update_slot_moves_window(db, mentor):
    slot = availability_service.create_slot(db, mentor, day_of_week=2, start_time="09:00", end_time="10:00")
    availability_service.create_slot(db, mentor, day_of_week=2, start_time="12:00", end_time="13:00")

    updated = availability_service.update_slot(db, mentor, slot.id, end_time="11:00")
    assert updated.end_time == "11:00"

    with pytest.raises(Conflict):
        availability_service.update_slot(db, mentor, slot.id, end_time="12:30")


@pytest.mark.parametrize(
    "day, start, end",
    [
        (7, "09:00", "10:00"),
        (-1, "09:00", "10:00"),
        (2, "9:00", "10:00"),
        (2, "24:00", "10:00"),
        (2, "10:00", "10:00"),
        (2, "11:00", "10:00"),
    ],
)
def test_invalid_slot_times(db, mentor, day, start, end):
    with pytest.raises(ValidationError):
        availability_service.create_slot(db, mentor, day_of_week=day, start_time=start, end_time=end)


def test_only_mentors_manage_slots(db, mentee):
    with pytest.raises(PermissionDenied):
        availability_service.create_slot(db, mentee, day_of_week=2, start_time="09:00", end_time="10:00")


def test_cannot_touch_another_mentors_slot(db, mentor, user_factory):
    slot = availability_service.create_slot(db, mentor, day_of_week=2, start_time="09:00", end_time="10:00")
    other = user_factory("Other Mentor", roles=("MENTOR",))

    with pytest.raises(NotFound):
        availability_service.delete_slot(db, other, slot.id)

    availability_service.delete_slot(db, mentor, slot.id)
    assert availability_service.list_slots(db, mentor.id) == []


def test_open_windows_subtract_booked_sessions(db, mentor, mentee, pricing_factory):
    availability_service.create_slot(db, mentor, day_of_week=2, start_time="09:00", end_time="12:00")
    availability_service.create_slot(db, mentor, day_of_week=2, start_time="14:00", end_time="16:00")
    pricing_model = pricing_factory(mentor)
    booking_service.book_session(
        db, mentee, mentor_id=mentor.id, pricing_model_id=pricing_model.id,
        start_time=at(10), end_time=at(11), now=NOW,
    )

    windows = availability_service.get_open_windows(db, mentor.id, TUESDAY)

    assert windows == [
        (at(9), at(10)),
        (at(11), at(12)),
        (at(14), at(16)),
    ]


def test_open_windows_empty_on_day_without_slots(db, mentor):
    availability_service.create_slot(db, mentor, day_of_week=2, start_time="09:00", end_time="12:00")

    assert availability_service.get_open_windows(db, mentor.id, date(2030, 1, 9)) == []


def test_session_crossing_midnight_blocks_both_days(db, mentor, mentee, pricing_factory):
    wednesday = date(2030, 1, 9)
    availability_service.create_slot(db, mentor, day_of_week=3, start_time="00:00", end_time="02:00")
    pricing_model = pricing_factory(mentor, pricing_type=PricingType.HOURLY, price="60.00")
    booking_service.book_session(
        db, mentee, mentor_id=mentor.id, pricing_model_id=pricing_model.id,
        start_time=at(23, 30), estimated_minutes=120, now=NOW,
    )

    assert availability_service.get_booked_intervals(db, mentor.id, TUESDAY) == [(at(23, 30), at(0, days=2))]
    assert availability_service.get_booked_intervals(db, mentor.id, wednesday) == [(at(0, days=2), at(1, 30, days=2))]
    assert availability_service.get_open_windows(db, mentor.id, wednesday) == [(at(1, 30, days=2), at(2, days=2))]
