"""Per-recipient notification model definitions."""

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from fitcoach.database import Base

NOTIFICATION_TYPES = ("info", "success", "warning", "error", "announcement")
NOTIFICATION_PRIORITIES = ("low", "medium", "high", "urgent")


class Notification(Base):
    """One in-app notification row; a single send writes one per recipient."""
    __tablename__ = "notifications"
    __table_args__ = (UniqueConstraint("batch_id", "user_id", name="uq_notifications_batch_user"),)

    id = Column(Integer, primary_key=True)
    batch_id = Column(String(36), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(String(1000), nullable=False)
    type = Column(String, nullable=False)
    priority = Column(String, nullable=False)
    action_url = Column(String)
    action_label = Column(String(50))
    scheduled_for = Column(DateTime, nullable=False)
    expires_at = Column(DateTime)
    sent_by = Column(Integer, ForeignKey("users.id"))
    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.now)
