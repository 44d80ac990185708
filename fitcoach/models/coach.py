"""Coach model definitions."""

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String
from fitcoach.database import Base


class Coach(Base):
    """A bookable coach profile backed by a user account."""
    __tablename__ = "coaches"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"))
    display_name = Column(String, nullable=False)
    is_active = Column(Boolean, default=True)
