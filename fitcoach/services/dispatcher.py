"""Persist a notification for every recipient and hand delivery off to the channels."""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Sequence

from sqlalchemy import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from fitcoach.core.errors import DependencyFailure
from fitcoach.models.notification import Notification
from fitcoach.models.user import User
from fitcoach.services.channels import EMAIL, PUSH, SMS, ChannelRecipient, ChannelSender

logger = logging.getLogger(__name__)

Enqueue = Callable[..., Any]


@dataclass(frozen=True)
class NotificationDraft:
    title: str
    message: str
    type: str
    priority: str
    action_url: str | None = None
    action_label: str | None = None
    scheduled_for: datetime | None = None
    expires_at: datetime | None = None
    send_email: bool = False
    send_push: bool = False
    send_sms: bool = False


@dataclass
class DispatchResult:
    batch_id: str
    total_recipients: int
    scheduled_for: datetime
    expires_at: datetime | None
    queues: dict[str, list[ChannelRecipient]] = field(default_factory=dict)

    def queued(self, channel: str) -> int:
        return len(self.queues.get(channel, []))


def _unique_recipients(recipients: Sequence[User]) -> list[User]:
    seen: set[int] = set()
    unique: list[User] = []
    for user in recipients:
        if user.id in seen:
            continue
        seen.add(user.id)
        unique.append(user)
    return unique


def build_channel_queues(draft: NotificationDraft, recipients: Sequence[User]) -> dict[str, list[ChannelRecipient]]:
    queues: dict[str, list[ChannelRecipient]] = {EMAIL: [], PUSH: [], SMS: []}
    for user in recipients:
        if draft.send_email and user.email:
            queues[EMAIL].append(ChannelRecipient(user_id=user.id, address=user.email, name=user.name))
        if draft.send_push and user.push_token:
            queues[PUSH].append(ChannelRecipient(user_id=user.id, address=user.push_token, name=user.name))
        if draft.send_sms and user.phone:
            queues[SMS].append(ChannelRecipient(user_id=user.id, address=user.phone, name=user.name))
    return queues


class NotificationDispatcher:
    def __init__(self, db: Session, senders: dict[str, ChannelSender], enqueue: Enqueue):
        self.db = db
        self.senders = senders
        self.enqueue = enqueue

    def dispatch(
        self,
        draft: NotificationDraft,
        recipients: Sequence[User],
        sent_by: int | None,
        now: datetime | None = None,
    ) -> DispatchResult:
        if not recipients:
            raise ValueError('At least one recipient is required.')

        now = now or datetime.now()
        batch_id = str(uuid.uuid4())
        scheduled_for = draft.scheduled_for or now
        unique_recipients = _unique_recipients(recipients)

        rows = [
            {
                'batch_id': batch_id,
                'user_id': user.id,
                'title': draft.title,
                'message': draft.message,
                'type': draft.type,
                'priority': draft.priority,
                'action_url': draft.action_url,
                'action_label': draft.action_label,
                'scheduled_for': scheduled_for,
                'expires_at': draft.expires_at,
                'sent_by': sent_by,
                'is_read': False,
                'created_at': now,
            }
            for user in unique_recipients
        ]

        try:
            self.db.execute(insert(Notification), rows)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception(
                'Failed to store notification batch_id=%s recipients=%s sent_by=%s',
                batch_id,
                len(rows),
                sent_by,
            )
            raise DependencyFailure('Failed to send notifications') from exc

        queues = build_channel_queues(draft, unique_recipients)
        for channel, queue in queues.items():
            if queue:
                self._hand_off(channel, queue, draft, batch_id)

        logger.info(
            'Notification batch_id=%s stored for %s recipients (email=%s push=%s sms=%s)',
            batch_id,
            len(rows),
            len(queues[EMAIL]),
            len(queues[PUSH]),
            len(queues[SMS]),
        )

        return DispatchResult(
            batch_id=batch_id,
            total_recipients=len(rows),
            scheduled_for=scheduled_for,
            expires_at=draft.expires_at,
            queues=queues,
        )

    def _hand_off(self, channel: str, queue: list[ChannelRecipient], draft: NotificationDraft, batch_id: str) -> None:
        sender = self.senders.get(channel)
        if sender is None:
            logger.warning('No sender configured for channel=%s batch_id=%s', channel, batch_id)
            return

        # Rows are already committed; a failed hand-off must not undo them.
        try:
            self.enqueue(sender.deliver, queue, draft.title, draft.message)
        except Exception:
            logger.exception('Failed to enqueue %s delivery for batch_id=%s', channel, batch_id)
