from datetime import datetime
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import SQLAlchemyError

from fitcoach.core.errors import DependencyFailure
from fitcoach.models.notification import Notification
from fitcoach.services.channels import (
    EMAIL,
    PUSH,
    SMS,
    ChannelRecipient,
    ChannelSender,
    get_channel_senders,
)
from fitcoach.services.dispatcher import NotificationDispatcher, NotificationDraft

NOW = datetime(2026, 3, 1, 12, 0)


class RecordingEnqueue:
    def __init__(self) -> None:
        self.calls = []

    def __call__(self, func, *args) -> None:
        self.calls.append((func, args))


def draft(**overrides) -> NotificationDraft:
    values = {
        'title': 'Gym closed',
        'message': 'The gym is closed on Monday.',
        'type': 'announcement',
        'priority': 'high',
    }
    values.update(overrides)
    return NotificationDraft(**values)


def test_dispatch_inserts_one_unread_row_per_recipient(db, make_user) -> None:
    recipients = [make_user(), make_user(), make_user()]
    dispatcher = NotificationDispatcher(db, get_channel_senders(), RecordingEnqueue())

    result = dispatcher.dispatch(draft(), recipients, sent_by=42, now=NOW)

    rows = db.query(Notification).order_by(Notification.user_id).all()
    assert result.total_recipients == 3
    assert [row.user_id for row in rows] == [user.id for user in recipients]
    assert all(row.is_read is False for row in rows)
    assert {row.batch_id for row in rows} == {result.batch_id}
    assert all(row.scheduled_for == NOW and row.sent_by == 42 for row in rows)


def test_dispatch_writes_duplicate_recipients_once(db, make_user) -> None:
    user = make_user()
    dispatcher = NotificationDispatcher(db, get_channel_senders(), RecordingEnqueue())

    result = dispatcher.dispatch(draft(), [user, user], sent_by=None, now=NOW)

    assert result.total_recipients == 1
    assert db.query(Notification).count() == 1


def test_dispatch_partitions_queues_by_requested_channel_and_contact(db, make_user) -> None:
    with_token = make_user(push_token='token-1', phone='+15550001')
    without_token = make_user(push_token=None, phone=None)
    enqueue = RecordingEnqueue()
    senders = get_channel_senders()
    dispatcher = NotificationDispatcher(db, senders, enqueue)

    result = dispatcher.dispatch(
        draft(send_email=True, send_push=True, send_sms=True),
        [with_token, without_token],
        sent_by=1,
        now=NOW,
    )

    assert result.total_recipients == 2
    assert result.queued(EMAIL) == 2
    assert result.queued(PUSH) == 1
    assert result.queued(SMS) == 1
    assert result.queues[PUSH] == [ChannelRecipient(user_id=with_token.id, address='token-1', name=with_token.name)]

    handed_off = {func.__self__.channel: args for func, args in enqueue.calls}
    assert set(handed_off) == {EMAIL, PUSH, SMS}
    assert handed_off[SMS] == (result.queues[SMS], 'Gym closed', 'The gym is closed on Monday.')


def test_dispatch_skips_channels_that_were_not_requested(db, make_user) -> None:
    enqueue = RecordingEnqueue()
    dispatcher = NotificationDispatcher(db, get_channel_senders(), enqueue)

    result = dispatcher.dispatch(draft(send_push=True), [make_user(push_token=None)], sent_by=1, now=NOW)

    assert result.queued(EMAIL) == 0
    assert result.queued(PUSH) == 0
    assert enqueue.calls == []


def test_enqueue_failure_keeps_persisted_rows(db, make_user) -> None:
    def broken_enqueue(func, *args):
        raise RuntimeError('queue unavailable')

    dispatcher = NotificationDispatcher(db, get_channel_senders(), broken_enqueue)

    result = dispatcher.dispatch(draft(send_email=True), [make_user()], sent_by=1, now=NOW)

    assert result.queued(EMAIL) == 1
    assert db.query(Notification).count() == 1


def test_insert_failure_rolls_back_and_raises_dependency_failure(make_user) -> None:
    failing_db = MagicMock()
    failing_db.execute.side_effect = SQLAlchemyError('disk full')
    enqueue = RecordingEnqueue()
    dispatcher = NotificationDispatcher(failing_db, get_channel_senders(), enqueue)

    with pytest.raises(DependencyFailure):
        dispatcher.dispatch(draft(send_email=True), [make_user()], sent_by=1, now=NOW)

    failing_db.rollback.assert_called_once()
    failing_db.commit.assert_not_called()
    assert enqueue.calls == []


def test_dispatch_requires_recipients(db) -> None:
    dispatcher = NotificationDispatcher(db, get_channel_senders(), RecordingEnqueue())

    with pytest.raises(ValueError):
        dispatcher.dispatch(draft(), [], sent_by=1, now=NOW)


def test_channel_sender_continues_after_a_failed_recipient() -> None:
    class FlakySender(ChannelSender):
        channel = 'test'

        def __init__(self) -> None:
            self.sent = []

        def send(self, recipient, title, message) -> None:
            if recipient.user_id == 2:
                raise ConnectionError('unreachable')
            self.sent.append(recipient.user_id)

    sender = FlakySender()
    queue = [ChannelRecipient(user_id=user_id, address=f'user{user_id}@example.com') for user_id in (1, 2, 3)]

    delivered = sender.deliver(queue, 'Title', 'Body')

    assert delivered == 2
    assert sender.sent == [1, 3]
