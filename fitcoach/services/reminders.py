"""Email reminders for appointments starting within the reminder window."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from fitcoach.core import config
from fitcoach.core.errors import DependencyFailure
from fitcoach.models.appointment import Appointment
from fitcoach.models.user import User
from fitcoach.services.channels import ChannelRecipient, ChannelSender

logger = logging.getLogger(__name__)

SCHEDULED_STATUS = 'scheduled'
REMINDER_TITLE = 'Upcoming appointment reminder'


@dataclass
class ReminderResult:
    queued: int
    skipped: int


def find_due_reminders(
    db: Session,
    now: datetime,
    window_hours: int = config.REMINDER_WINDOW_HOURS,
) -> list[tuple[Appointment, User]]:
    return (
        db.query(Appointment, User)
        .join(User, Appointment.client_id == User.id)
        .filter(
            Appointment.status == SCHEDULED_STATUS,
            Appointment.scheduled_at >= now,
            Appointment.scheduled_at <= now + timedelta(hours=window_hours),
            or_(Appointment.reminder_sent.is_(False), Appointment.reminder_sent.is_(None)),
        )
        .order_by(Appointment.scheduled_at.asc(), Appointment.id.asc())
        .all()
    )


def reminder_message(appointment: Appointment, client_name: str | None) -> str:
    greeting = f'Hi {client_name},' if client_name else 'Hi,'
    starts = appointment.scheduled_at.strftime('%A %d %B at %H:%M')
    return f'{greeting} this is a reminder that "{appointment.title}" starts {starts}.'


def send_upcoming_reminders(
    db: Session,
    sender: ChannelSender,
    enqueue: Callable[..., Any],
    now: datetime | None = None,
) -> ReminderResult:
    """Mark due appointments as reminded, then hand one email per client to ``enqueue``.

    The flags are committed before any hand-off so a repeated sweep never
    reminds the same appointment twice.
    """
    now = now or datetime.now()

    try:
        due = find_due_reminders(db, now)
    except SQLAlchemyError as exc:
        logger.exception('Failed to load appointments due for a reminder at %s', now.isoformat())
        raise DependencyFailure('Failed to send reminders') from exc

    outgoing: list[tuple[int, ChannelRecipient, str]] = []
    skipped = 0
    for appointment, client in due:
        if not client.email:
            logger.warning('Appointment %s has no client email; reminder skipped', appointment.id)
            skipped += 1
            continue

        recipient = ChannelRecipient(user_id=client.id, address=client.email, name=client.name)
        outgoing.append((appointment.id, recipient, reminder_message(appointment, client.name)))
        appointment.reminder_sent = True
        appointment.reminder_sent_at = now

    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to mark %s appointment reminders as sent', len(outgoing))
        raise DependencyFailure('Failed to send reminders') from exc

    for appointment_id, recipient, message in outgoing:
        try:
            enqueue(sender.deliver, [recipient], REMINDER_TITLE, message)
        except Exception:
            logger.exception('Failed to enqueue reminder for appointment %s', appointment_id)

    logger.info('Appointment reminders queued: %s (skipped %s)', len(outgoing), skipped)
    return ReminderResult(queued=len(outgoing), skipped=skipped)
