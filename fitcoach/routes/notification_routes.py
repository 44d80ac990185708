from datetime import datetime
from urllib.parse import urlparse

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field, field_validator, model_validator
from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from fitcoach.auth.dependencies import require_admin
from fitcoach.core.errors import FitcoachError
from fitcoach.models.notification import NOTIFICATION_PRIORITIES, NOTIFICATION_TYPES
from fitcoach.models.user import Department, Organization, User
from fitcoach.routes._shared import (
    DATABASE_UNAVAILABLE_DETAIL,
    ensure_database_ready,
    get_db,
    to_http_exception,
    to_local_naive,
)
from fitcoach.services.audience import TARGET_TYPES, TARGETS_REQUIRING_IDS, USER_ROLES, resolve_audience
from fitcoach.services.channels import EMAIL, PUSH, SMS, ChannelSender, get_channel_senders
from fitcoach.services.dispatcher import NotificationDispatcher, NotificationDraft

router = APIRouter(tags=['notifications'])

USER_STATUSES = ('active', 'inactive', 'suspended')


def _check_choice(value: str, choices: tuple[str, ...], label: str) -> str:
    if value not in choices:
        raise ValueError(f'{label} must be one of: {", ".join(choices)}.')
    return value


class SendNotificationRequest(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    message: str = Field(min_length=1, max_length=1000)
    type: str
    priority: str
    target_type: str = Field(alias='targetType')
    target_ids: list[int] | None = Field(default=None, alias='targetIds')
    role_filter: str | None = Field(default=None, alias='roleFilter')
    scheduled_for: datetime | None = Field(default=None, alias='scheduledFor')
    expires_at: datetime | None = Field(default=None, alias='expiresAt')
    action_url: str | None = Field(default=None, alias='actionUrl')
    action_label: str | None = Field(default=None, max_length=50, alias='actionLabel')
    send_email: bool = Field(default=False, alias='sendEmail')
    send_push: bool = Field(default=False, alias='sendPush')
    send_sms: bool = Field(default=False, alias='sendSms')

    class Config:
        populate_by_name = True

    @field_validator('type')
    @classmethod
    def validate_type(cls, value: str) -> str:
        return _check_choice(value, NOTIFICATION_TYPES, 'type')

    @field_validator('priority')
    @classmethod
    def validate_priority(cls, value: str) -> str:
        return _check_choice(value, NOTIFICATION_PRIORITIES, 'priority')

    @field_validator('target_type')
    @classmethod
    def validate_target_type(cls, value: str) -> str:
        return _check_choice(value, TARGET_TYPES, 'targetType')

    @field_validator('role_filter')
    @classmethod
    def validate_role_filter(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return _check_choice(value, USER_ROLES, 'roleFilter')

    @field_validator('scheduled_for', 'expires_at')
    @classmethod
    def normalize_timestamps(cls, value: datetime | None) -> datetime | None:
        return to_local_naive(value)

    @field_validator('action_url')
    @classmethod
    def validate_action_url(cls, value: str | None) -> str | None:
        if value is None:
            return None

        parsed = urlparse(value.strip())
        if parsed.scheme not in {'http', 'https'} or not parsed.netloc:
            raise ValueError('actionUrl must be a valid http(s) URL.')

        return value.strip()

    @model_validator(mode='after')
    def validate_targeting(self) -> 'SendNotificationRequest':
        if self.target_type in TARGETS_REQUIRING_IDS and not self.target_ids:
            raise ValueError(f'targetIds is required when targetType is {self.target_type}.')

        if self.target_type == 'role' and not self.role_filter:
            raise ValueError('roleFilter is required when targetType is role.')

        if self.scheduled_for and self.expires_at and self.expires_at <= self.scheduled_for:
            raise ValueError('expiresAt must be after scheduledFor.')

        return self

    def to_draft(self) -> NotificationDraft:
        return NotificationDraft(
            title=self.title.strip(),
            message=self.message.strip(),
            type=self.type,
            priority=self.priority,
            action_url=self.action_url,
            action_label=self.action_label,
            scheduled_for=self.scheduled_for,
            expires_at=self.expires_at,
            send_email=self.send_email,
            send_push=self.send_push,
            send_sms=self.send_sms,
        )


class NotificationSummary(BaseModel):
    total_recipients: int = Field(serialization_alias='totalRecipients')
    emails_sent: int = Field(serialization_alias='emailsSent')
    push_notifications_sent: int = Field(serialization_alias='pushNotificationsSent')
    sms_sent: int = Field(serialization_alias='smsSent')
    scheduled_for: datetime = Field(serialization_alias='scheduledFor')
    expires_at: datetime | None = Field(default=None, serialization_alias='expiresAt')
    batch_id: str = Field(serialization_alias='batchId')


class SendNotificationResponse(BaseModel):
    success: bool
    message: str
    summary: NotificationSummary


class NamedRef(BaseModel):
    id: int | None = None
    name: str | None = None


class UserOptionResponse(BaseModel):
    id: int
    name: str
    email: str | None = None
    role: str | None = None
    status: str | None = None
    organization: NamedRef
    department: NamedRef
    display_label: str = Field(serialization_alias='displayLabel')


class UserStatsResponse(BaseModel):
    total_users: int = Field(serialization_alias='totalUsers')
    active_users: int = Field(serialization_alias='activeUsers')
    organizations: int
    departments: int


class UserOptionsResponse(BaseModel):
    success: bool
    users: list[UserOptionResponse]
    stats: UserStatsResponse
    total: int


@router.post('/send', response_model=SendNotificationResponse)
def send_notification(
    data: SendNotificationRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
    senders: dict[str, ChannelSender] = Depends(get_channel_senders),
):
    ensure_database_ready()

    try:
        recipients = resolve_audience(db, data.target_type, data.target_ids, data.role_filter)
        dispatcher = NotificationDispatcher(db, senders, background_tasks.add_task)
        result = dispatcher.dispatch(data.to_draft(), recipients, sent_by=current_user.id)
    except FitcoachError as exc:
        raise to_http_exception(exc) from exc

    return SendNotificationResponse(
        success=True,
        message='Notifications sent successfully',
        summary=NotificationSummary(
            total_recipients=result.total_recipients,
            emails_sent=result.queued(EMAIL),
            push_notifications_sent=result.queued(PUSH),
            sms_sent=result.queued(SMS),
            scheduled_for=result.scheduled_for,
            expires_at=result.expires_at,
            batch_id=result.batch_id,
        ),
    )


@router.get('/users', response_model=UserOptionsResponse)
def list_user_options(
    search: str | None = Query(default=None, max_length=255),
    organization_id: int | None = Query(default=None, alias='organizationId'),
    department_id: int | None = Query(default=None, alias='departmentId'),
    role: str | None = Query(default=None),
    user_status: str = Query(default='active', alias='status'),
    limit: int = Query(default=50, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    if role is not None and role not in USER_ROLES:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail='Invalid role.')
    if user_status not in USER_STATUSES:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail='Invalid status.')

    ensure_database_ready()

    try:
        query = db.query(User, Organization.name, Department.name).outerjoin(
            Organization, User.organization_id == Organization.id,
        ).outerjoin(
            Department, User.department_id == Department.id,
        ).filter(User.status == user_status)

        if search and search.strip():
            pattern = f'%{search.strip()}%'
            query = query.filter(or_(
                User.name.ilike(pattern),
                User.email.ilike(pattern),
                User.phone.ilike(pattern),
            ))

        if organization_id is not None:
            query = query.filter(User.organization_id == organization_id)

        if department_id is not None:
            query = query.filter(User.department_id == department_id)

        if role is not None:
            query = query.filter(User.role == role)

        rows = query.order_by(User.name.asc(), User.id.asc()).limit(limit).all()

        users = [
            UserOptionResponse(
                id=user.id,
                name=user.name,
                email=user.email,
                role=user.role,
                status=user.status,
                organization=NamedRef(id=user.organization_id, name=organization_name),
                department=NamedRef(id=user.department_id, name=department_name),
                display_label=f'{user.name} ({user.email})',
            )
            for user, organization_name, department_name in rows
        ]

        stats = UserStatsResponse(
            total_users=db.query(func.count(User.id)).scalar(),
            active_users=db.query(func.count(User.id)).filter(User.status == 'active').scalar(),
            organizations=db.query(func.count(Organization.id)).scalar(),
            departments=db.query(func.count(Department.id)).scalar(),
        )

        return UserOptionsResponse(success=True, users=users, stats=stats, total=len(users))
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc
