from datetime import date, time

import pytest
from fastapi import HTTPException
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError

from fitcoach.models.availability import AvailabilityBlock
from fitcoach.models.user import User
from fitcoach.routes.availability_routes import (
    AvailabilityBlockCreate,
    AvailabilityBlockUpdate,
    create_availability,
    delete_availability,
    get_availability,
    list_availability,
    update_availability,
)

STAFF = User(id=1, name='Admin', email='admin@example.com', role='admin', status='active')


def test_create_request_accepts_recurring_block_without_dates() -> None:
    request = AvailabilityBlockCreate(
        coach_id=1,
        start_time=time(9, 0),
        end_time=time(12, 0),
        is_recurring=True,
        day_of_week=1,
    )

    assert request.start_date is None
    assert request.day_of_week == 1


@pytest.mark.parametrize(
    ('payload', 'message'),
    [
        (
            {'start_date': date(2026, 1, 5), 'start_time': time(10, 0), 'end_time': time(9, 0)},
            'End time must be after start time.',
        ),
        (
            {'start_date': date(2026, 1, 5), 'start_time': time(9, 0), 'end_time': time(9, 0)},
            'End time must be after start time.',
        ),
        (
            {'start_time': time(9, 0), 'end_time': time(10, 0), 'is_recurring': True},
            'Recurring availability requires a day of week.',
        ),
        (
            {'start_time': time(9, 0), 'end_time': time(10, 0)},
            'One-time availability requires a start date.',
        ),
        (
            {
                'start_date': date(2026, 1, 5),
                'end_date': date(2026, 1, 4),
                'start_time': time(9, 0),
                'end_time': time(10, 0),
            },
            'End date must be on or after the start date.',
        ),
    ],
)
def test_create_request_rejects_invalid_blocks(payload: dict, message: str) -> None:
    with pytest.raises(ValidationError) as exception_info:
        AvailabilityBlockCreate(coach_id=1, **payload)

    assert message in str(exception_info.value)


def test_create_request_rejects_day_of_week_out_of_range() -> None:
    with pytest.raises(ValidationError):
        AvailabilityBlockCreate(
            coach_id=1,
            start_time=time(9, 0),
            end_time=time(10, 0),
            is_recurring=True,
            day_of_week=7,
        )


def test_create_availability_persists_block(db, coach) -> None:
    data = AvailabilityBlockCreate(
        coach_id=coach.id,
        start_date=date(2026, 1, 5),
        start_time=time(9, 0),
        end_time=time(11, 0),
    )

    block = create_availability(data=data, db=db, current_user=STAFF)

    stored = db.query(AvailabilityBlock).filter(AvailabilityBlock.id == block.id).first()
    assert stored.coach_id == coach.id
    assert stored.end_date is None
    assert stored.is_recurring is False


def test_create_availability_returns_not_found_for_unknown_coach(db) -> None:
    data = AvailabilityBlockCreate(
        coach_id=404,
        start_date=date(2026, 1, 5),
        start_time=time(9, 0),
        end_time=time(11, 0),
    )

    with pytest.raises(HTTPException) as exception_info:
        create_availability(data=data, db=db, current_user=STAFF)

    assert exception_info.value.status_code == 404
    assert exception_info.value.detail == 'Coach not found.'


def test_list_availability_filters_by_coach_and_date_window(db, coach, make_block) -> None:
    january = make_block(time(9, 0), time(10, 0), start_date=date(2026, 1, 1), end_date=date(2026, 1, 31))
    make_block(time(9, 0), time(10, 0), start_date=date(2026, 3, 1), end_date=date(2026, 3, 31))
    open_ended = make_block(time(13, 0), time(14, 0), start_date=date(2025, 6, 1), end_date=None)

    blocks = list_availability(
        coach_id=coach.id,
        start_date=date(2026, 1, 10),
        end_date=date(2026, 1, 20),
        day_of_week=None,
        db=db,
    )

    assert [block.id for block in blocks] == [open_ended.id, january.id]


def test_list_availability_filters_by_day_of_week(db, make_block) -> None:
    tuesday = make_block(time(9, 0), time(10, 0), is_recurring=True, day_of_week=2, start_date=None)
    make_block(time(9, 0), time(10, 0), is_recurring=True, day_of_week=3, start_date=None)

    blocks = list_availability(coach_id=None, start_date=None, end_date=None, day_of_week=2, db=db)

    assert [block.id for block in blocks] == [tuesday.id]


def test_get_availability_returns_not_found_when_missing(db) -> None:
    with pytest.raises(HTTPException) as exception_info:
        get_availability(block_id=999, db=db)

    assert exception_info.value.status_code == 404
    assert exception_info.value.detail == 'Availability not found.'


def test_update_availability_applies_partial_changes(db, make_block) -> None:
    block = make_block(time(9, 0), time(10, 0))

    updated = update_availability(
        block_id=block.id,
        data=AvailabilityBlockUpdate(end_time=time(12, 0), notes='Extended hours'),
        db=db,
        current_user=STAFF,
    )

    assert updated.start_time == time(9, 0)
    assert updated.end_time == time(12, 0)
    assert updated.notes == 'Extended hours'


def test_update_availability_rechecks_merged_block(db, make_block) -> None:
    block = make_block(time(9, 0), time(10, 0))

    with pytest.raises(RequestValidationError):
        update_availability(
            block_id=block.id,
            data=AvailabilityBlockUpdate(start_time=time(10, 30)),
            db=db,
            current_user=STAFF,
        )

    db.refresh(block)
    assert block.start_time == time(9, 0)


def test_update_availability_converts_block_to_recurring(db, make_block) -> None:
    block = make_block(time(9, 0), time(10, 0))

    updated = update_availability(
        block_id=block.id,
        data=AvailabilityBlockUpdate(is_recurring=True, day_of_week=4),
        db=db,
        current_user=STAFF,
    )

    assert updated.is_recurring is True
    assert updated.day_of_week == 4


def test_delete_availability_removes_block(db, make_block) -> None:
    block = make_block(time(9, 0), time(10, 0))

    delete_availability(block_id=block.id, db=db, current_user=STAFF)

    assert db.query(AvailabilityBlock).filter(AvailabilityBlock.id == block.id).first() is None

    with pytest.raises(HTTPException) as exception_info:
        delete_availability(block_id=block.id, db=db, current_user=STAFF)

    assert exception_info.value.status_code == 404
