import logging
from datetime import date, datetime, time, timedelta

from sqlalchemy import and_, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from fitcoach.core import config
from fitcoach.core.errors import DependencyFailure, NotFoundError
from fitcoach.models.appointment import Appointment
from fitcoach.models.availability import AvailabilityBlock
from fitcoach.models.coach import Coach
from fitcoach.services.slots import Interval, Slot, generate_slots, merge_slots

logger = logging.getLogger(__name__)

CANCELLED_STATUS = 'cancelled'


def day_of_week_index(target_date: date) -> int:
    """Sunday-based weekday index, 0 = Sunday .. 6 = Saturday."""
    return target_date.isoweekday() % 7


def get_coach_or_raise(db: Session, coach_id: int) -> Coach:
    coach = db.query(Coach).filter(Coach.id == coach_id).first()
    if coach is None:
        raise NotFoundError('Coach not found.')
    return coach


def find_applicable_blocks(db: Session, coach_id: int, target_date: date) -> list[AvailabilityBlock]:
    one_time = and_(
        AvailabilityBlock.is_recurring.is_(False),
        AvailabilityBlock.start_date <= target_date,
        or_(AvailabilityBlock.end_date >= target_date, AvailabilityBlock.end_date.is_(None)),
    )
    recurring = and_(
        AvailabilityBlock.is_recurring.is_(True),
        AvailabilityBlock.day_of_week == day_of_week_index(target_date),
    )

    return db.query(AvailabilityBlock).filter(
        AvailabilityBlock.coach_id == coach_id,
        or_(one_time, recurring),
    ).order_by(AvailabilityBlock.start_time.asc(), AvailabilityBlock.id.asc()).all()


def find_booked_intervals(db: Session, coach_id: int, target_date: date) -> list[Interval]:
    day_start = datetime.combine(target_date, time.min)
    day_end = day_start + timedelta(days=1)

    appointments = db.query(Appointment).filter(
        Appointment.coach_id == coach_id,
        Appointment.scheduled_at >= day_start,
        Appointment.scheduled_at < day_end,
        Appointment.status != CANCELLED_STATUS,
    ).all()

    intervals: list[Interval] = []
    for appointment in appointments:
        end_time = appointment.end_time or (
            appointment.scheduled_at + timedelta(minutes=appointment.duration_minutes or 0)
        )
        intervals.append((appointment.scheduled_at, end_time))
    return intervals


def get_available_slots(
    db: Session,
    coach_id: int,
    target_date: date,
    duration_minutes: int = config.DEFAULT_SLOT_DURATION_MINUTES,
) -> list[Slot]:
    try:
        get_coach_or_raise(db, coach_id)
        blocks = find_applicable_blocks(db, coach_id, target_date)
        booked = find_booked_intervals(db, coach_id, target_date)
    except SQLAlchemyError as exc:
        logger.exception(
            'Failed to load availability for coach_id=%s date=%s duration=%s',
            coach_id,
            target_date.isoformat(),
            duration_minutes,
        )
        raise DependencyFailure('Failed to get available slots.') from exc

    return merge_slots(
        generate_slots(target_date, block.start_time, block.end_time, duration_minutes, booked)
        for block in blocks
    )
