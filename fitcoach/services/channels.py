"""Delivery channels for notifications.

Each sender receives a queue of recipients that already carry the contact
field the channel needs. Real transports (SMTP, FCM, Twilio) plug in by
overriding ``send``; the defaults only record the hand-off in the log.
"""

import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)

EMAIL = 'email'
PUSH = 'push'
SMS = 'sms'


@dataclass(frozen=True)
class ChannelRecipient:
    user_id: int
    address: str
    name: str | None = None


class ChannelSender:
    channel = ''

    def send(self, recipient: ChannelRecipient, title: str, message: str) -> None:
        raise NotImplementedError

    def deliver(self, queue: list[ChannelRecipient], title: str, message: str) -> int:
        """Send to every recipient in ``queue`` and return how many went out.

        A failure for one recipient is logged and the rest of the queue
        continues.
        """
        delivered = 0
        for recipient in queue:
            try:
                self.send(recipient, title, message)
            except Exception:
                logger.exception('%s delivery failed for user_id=%s', self.channel, recipient.user_id)
                continue
            delivered += 1

        logger.info('%s delivery finished: %s/%s sent for "%s"', self.channel, delivered, len(queue), title)
        return delivered


class EmailSender(ChannelSender):
    channel = EMAIL

    def send(self, recipient: ChannelRecipient, title: str, message: str) -> None:
        logger.info('Email notification queued for %s: %s', recipient.address, title)


class PushSender(ChannelSender):
    channel = PUSH

    def send(self, recipient: ChannelRecipient, title: str, message: str) -> None:
        logger.info('Push notification queued for user %s: %s', recipient.user_id, title)


class SmsSender(ChannelSender):
    channel = SMS

    def send(self, recipient: ChannelRecipient, title: str, message: str) -> None:
        logger.info('SMS notification queued for %s: %s', recipient.address, message)


def get_channel_senders() -> dict[str, ChannelSender]:
    return {
        EMAIL: EmailSender(),
        PUSH: PushSender(),
        SMS: SmsSender(),
    }
