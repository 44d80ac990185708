"""Appointment model definitions."""

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String
from fitcoach.database import Base

APPOINTMENT_TYPES = ("session", "check-in", "consultation", "assessment", "other")
APPOINTMENT_STATUSES = ("scheduled", "completed", "cancelled", "no-show", "rescheduled")


class Appointment(Base):
    """Represents a booked session between a coach and a client."""
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True)
    coach_id = Column(Integer, ForeignKey("coaches.id"), nullable=False, index=True)
    client_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String, nullable=False)
    type = Column(String, default="session")
    scheduled_at = Column(DateTime, nullable=False, index=True)
    end_time = Column(DateTime, nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    location = Column(String)
    notes = Column(String)
    status = Column(String, default="scheduled", nullable=False)
    cancellation_reason = Column(String)
    reminder_sent = Column(Boolean, default=False)
    reminder_sent_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)
