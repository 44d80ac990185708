"""Resolve a notification target (type, ids, role filter) to concrete recipients."""

import logging
from datetime import datetime, timedelta
from typing import Iterable

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from fitcoach.core import config
from fitcoach.core.errors import DependencyFailure, EmptyAudienceError
from fitcoach.models.user import User

logger = logging.getLogger(__name__)

TARGET_TYPES = ('all', 'specific', 'organization', 'department', 'role', 'active', 'inactive')
TARGETS_REQUIRING_IDS = ('specific', 'organization', 'department')
USER_ROLES = ('admin', 'user', 'trainer', 'nutritionist')


def _unique_ids(target_ids: Iterable[int] | None) -> list[int]:
    return sorted(set(target_ids or []))


def resolve_audience(
    db: Session,
    target_type: str,
    target_ids: Iterable[int] | None = None,
    role_filter: str | None = None,
    now: datetime | None = None,
) -> list[User]:
    """Return the active users addressed by ``target_type``.

    ``role_filter`` narrows every target type; for ``role`` it is the
    selection itself. Raises ``EmptyAudienceError`` when nobody matches so
    the caller can reject the send instead of silently doing nothing.
    """
    if target_type not in TARGET_TYPES:
        raise ValueError(f'Unknown target type: {target_type}')

    now = now or datetime.now()
    ids = _unique_ids(target_ids)
    query = db.query(User).filter(User.status == 'active')

    if target_type == 'specific':
        query = query.filter(User.id.in_(ids))
    elif target_type == 'organization':
        query = query.filter(User.organization_id.in_(ids))
    elif target_type == 'department':
        query = query.filter(User.department_id.in_(ids))
    elif target_type == 'role':
        query = query.filter(User.role == role_filter)
    elif target_type == 'active':
        query = query.filter(User.last_login >= now - timedelta(days=config.ACTIVE_WINDOW_DAYS))
    elif target_type == 'inactive':
        query = query.filter(or_(
            User.last_login < now - timedelta(days=config.INACTIVE_AFTER_DAYS),
            User.last_login.is_(None),
        ))

    if role_filter and target_type != 'role':
        query = query.filter(User.role == role_filter)

    try:
        users = query.order_by(User.id.asc()).all()
    except SQLAlchemyError as exc:
        logger.exception(
            'Failed to resolve audience target_type=%s target_ids=%s role_filter=%s',
            target_type,
            ids,
            role_filter,
        )
        raise DependencyFailure('Failed to resolve notification audience.') from exc

    if not users:
        raise EmptyAudienceError('No users found matching the target criteria')

    return users
