import logging
from datetime import date, datetime, time, timedelta

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from fitcoach.auth.dependencies import get_current_user, require_staff
from fitcoach.core import config
from fitcoach.core.errors import ConflictError, FitcoachError
from fitcoach.models.appointment import APPOINTMENT_STATUSES, APPOINTMENT_TYPES, Appointment
from fitcoach.models.user import User
from fitcoach.routes._shared import (
    DATABASE_UNAVAILABLE_DETAIL,
    ensure_database_ready,
    get_db,
    to_http_exception,
    to_local_naive,
)
from fitcoach.services.availability import CANCELLED_STATUS, get_coach_or_raise
from fitcoach.services.channels import EMAIL, ChannelSender, get_channel_senders
from fitcoach.services.reminders import send_upcoming_reminders

router = APIRouter(tags=['appointments'])

logger = logging.getLogger(__name__)

OPEN_STATUS = 'scheduled'
MAX_TITLE_LENGTH = 255
REQUIRED_FIELDS = ('title', 'type')


def _normalize_choice(value: str, choices: tuple[str, ...], label: str) -> str:
    normalized = value.strip().lower()
    if normalized not in choices:
        raise ValueError(f'Invalid {label}.')
    return normalized


class CreateAppointmentRequest(BaseModel):
    coach_id: int
    client_id: int
    title: str = Field(min_length=1, max_length=MAX_TITLE_LENGTH)
    type: str = 'session'
    scheduled_at: datetime
    duration_minutes: int = Field(
        ge=config.MIN_SLOT_DURATION_MINUTES,
        le=config.MAX_SLOT_DURATION_MINUTES,
    )
    location: str | None = Field(default=None, max_length=255)
    notes: str | None = None

    @field_validator('type')
    @classmethod
    def validate_type(cls, value: str) -> str:
        return _normalize_choice(value, APPOINTMENT_TYPES, 'appointment type')

    @field_validator('scheduled_at')
    @classmethod
    def normalize_scheduled_at(cls, value: datetime) -> datetime:
        return to_local_naive(value)


class UpdateAppointmentRequest(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=MAX_TITLE_LENGTH)
    type: str | None = None
    scheduled_at: datetime | None = None
    duration_minutes: int | None = Field(
        default=None,
        ge=config.MIN_SLOT_DURATION_MINUTES,
        le=config.MAX_SLOT_DURATION_MINUTES,
    )
    location: str | None = Field(default=None, max_length=255)
    notes: str | None = None
    status: str | None = None

    @field_validator('type')
    @classmethod
    def validate_type(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return _normalize_choice(value, APPOINTMENT_TYPES, 'appointment type')

    @field_validator('status')
    @classmethod
    def validate_status(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return _normalize_choice(value, APPOINTMENT_STATUSES, 'appointment status')

    @field_validator('scheduled_at')
    @classmethod
    def normalize_scheduled_at(cls, value: datetime | None) -> datetime | None:
        return to_local_naive(value)


class CancelAppointmentRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=1000)


class AppointmentResponse(BaseModel):
    id: int
    coach_id: int
    client_id: int
    title: str
    type: str
    scheduled_at: datetime
    end_time: datetime
    duration_minutes: int
    location: str | None = None
    notes: str | None = None
    status: str
    cancellation_reason: str | None = None
    reminder_sent: bool | None = None

    class Config:
        from_attributes = True


class ReminderSweepResponse(BaseModel):
    message: str
    count: int
    skipped: int


def get_appointment_or_404(db: Session, appointment_id: int) -> Appointment:
    appointment = db.query(Appointment).filter(Appointment.id == appointment_id).first()
    if appointment is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Appointment not found.',
        )
    return appointment


def ensure_open(appointment: Appointment) -> None:
    if appointment.status != OPEN_STATUS:
        raise ConflictError(f'Appointment is already {appointment.status}.')


def ensure_no_overlap(
    db: Session,
    coach_id: int,
    start_time: datetime,
    end_time: datetime,
    exclude_id: int | None = None,
) -> None:
    query = db.query(Appointment).filter(
        Appointment.coach_id == coach_id,
        Appointment.status != CANCELLED_STATUS,
        Appointment.scheduled_at < end_time,
        Appointment.end_time > start_time,
    )
    if exclude_id is not None:
        query = query.filter(Appointment.id != exclude_id)

    if query.first():
        raise ConflictError('This time is already booked.')


@router.post('', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    data: CreateAppointmentRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    start_time = data.scheduled_at.replace(second=0, microsecond=0)
    end_time = start_time + timedelta(minutes=data.duration_minutes)

    if start_time <= datetime.now():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Appointments must be scheduled in the future.',
        )

    ensure_database_ready()

    try:
        get_coach_or_raise(db, data.coach_id)

        client = db.query(User).filter(User.id == data.client_id).first()
        if client is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail='Client not found.',
            )

        ensure_no_overlap(db, data.coach_id, start_time, end_time)

        appointment = Appointment(
            coach_id=data.coach_id,
            client_id=data.client_id,
            title=data.title.strip(),
            type=data.type,
            scheduled_at=start_time,
            end_time=end_time,
            duration_minutes=data.duration_minutes,
            location=data.location,
            notes=data.notes,
            status=OPEN_STATUS,
            reminder_sent=False,
        )
        db.add(appointment)
        db.commit()
        db.refresh(appointment)

        logger.info(
            'Appointment %s booked by user_id=%s for coach_id=%s at %s',
            appointment.id,
            current_user.id,
            appointment.coach_id,
            appointment.scheduled_at.isoformat(),
        )
        return appointment
    except FitcoachError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


@router.get('', response_model=list[AppointmentResponse])
def list_appointments(
    coach_id: int | None = Query(default=None),
    client_id: int | None = Query(default=None),
    status_filter: str | None = Query(default=None, alias='status'),
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    ensure_database_ready()

    try:
        query = db.query(Appointment)

        if coach_id is not None:
            query = query.filter(Appointment.coach_id == coach_id)

        if client_id is not None:
            query = query.filter(Appointment.client_id == client_id)

        if status_filter:
            query = query.filter(Appointment.status == status_filter.strip().lower())

        if start_date is not None:
            query = query.filter(Appointment.scheduled_at >= datetime.combine(start_date, time.min))

        if end_date is not None:
            query = query.filter(Appointment.scheduled_at < datetime.combine(end_date + timedelta(days=1), time.min))

        return query.order_by(Appointment.scheduled_at.asc()).all()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


@router.post('/send-reminders', response_model=ReminderSweepResponse)
def send_reminders(
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff),
    senders: dict[str, ChannelSender] = Depends(get_channel_senders),
):
    ensure_database_ready()

    try:
        result = send_upcoming_reminders(db, senders[EMAIL], background_tasks.add_task)
    except FitcoachError as exc:
        raise to_http_exception(exc) from exc

    logger.info('Reminder sweep run by user_id=%s queued %s reminders', current_user.id, result.queued)
    return ReminderSweepResponse(
        message=f'Sent {result.queued} appointment reminders',
        count=result.queued,
        skipped=result.skipped,
    )


@router.get('/{appointment_id}', response_model=AppointmentResponse)
def get_appointment(
    appointment_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    ensure_database_ready()

    try:
        return get_appointment_or_404(db, appointment_id)
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


@router.patch('/{appointment_id}', response_model=AppointmentResponse)
def update_appointment(
    appointment_id: int,
    data: UpdateAppointmentRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    ensure_database_ready()

    try:
        appointment = get_appointment_or_404(db, appointment_id)
        changes = data.model_dump(exclude_unset=True)
        new_status = changes.pop('status', None)
        status_changed = new_status is not None and new_status != appointment.status
        if status_changed:
            ensure_open(appointment)

        new_start = changes.pop('scheduled_at', None)
        new_duration = changes.pop('duration_minutes', None)
        if new_start is not None or new_duration is not None:
            ensure_open(appointment)
            start_time = (new_start or appointment.scheduled_at).replace(second=0, microsecond=0)
            duration_minutes = new_duration or appointment.duration_minutes
            end_time = start_time + timedelta(minutes=duration_minutes)
            is_reschedule = start_time != appointment.scheduled_at

            if is_reschedule or end_time != appointment.end_time:
                ensure_no_overlap(db, appointment.coach_id, start_time, end_time, exclude_id=appointment.id)

            appointment.scheduled_at = start_time
            appointment.duration_minutes = duration_minutes
            appointment.end_time = end_time

            if is_reschedule:
                appointment.reminder_sent = False
                appointment.reminder_sent_at = None

        for field_name, value in changes.items():
            if value is None and field_name in REQUIRED_FIELDS:
                continue
            setattr(appointment, field_name, value)

        if status_changed:
            appointment.status = new_status

        db.commit()
        db.refresh(appointment)

        return appointment
    except ConflictError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


@router.post('/{appointment_id}/cancel', response_model=AppointmentResponse)
def cancel_appointment(
    appointment_id: int,
    data: CancelAppointmentRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    ensure_database_ready()

    try:
        appointment = get_appointment_or_404(db, appointment_id)
        ensure_open(appointment)

        appointment.status = CANCELLED_STATUS
        appointment.cancellation_reason = data.reason.strip() if data.reason else None
        db.commit()
        db.refresh(appointment)

        logger.info('Appointment %s cancelled by user_id=%s', appointment.id, current_user.id)
        return appointment
    except ConflictError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


@router.post('/{appointment_id}/no-show', response_model=AppointmentResponse)
def mark_no_show(
    appointment_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    ensure_database_ready()

    try:
        appointment = get_appointment_or_404(db, appointment_id)
        ensure_open(appointment)

        appointment.status = 'no-show'
        db.commit()
        db.refresh(appointment)

        return appointment
    except ConflictError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


@router.delete('/{appointment_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_appointment(
    appointment_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff),
):
    ensure_database_ready()

    try:
        appointment = get_appointment_or_404(db, appointment_id)
        db.delete(appointment)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc

    logger.info('Appointment %s deleted by user_id=%s', appointment_id, current_user.id)
