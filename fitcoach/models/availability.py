"""Availability block model definitions."""

from datetime import datetime

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, String, Time
from fitcoach.database import Base


class AvailabilityBlock(Base):
    """A recurring weekly or one-time window in which a coach can be booked."""
    __tablename__ = "availability_blocks"

    id = Column(Integer, primary_key=True)
    coach_id = Column(Integer, ForeignKey("coaches.id"), nullable=False, index=True)
    start_date = Column(Date)
    end_date = Column(Date)  # open-ended when null
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    day_of_week = Column(Integer)  # 0 = Sunday .. 6 = Saturday, recurring blocks only
    is_recurring = Column(Boolean, default=False, nullable=False)
    notes = Column(String)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)
