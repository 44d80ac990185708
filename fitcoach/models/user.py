"""User, organization and department model definitions."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from fitcoach.database import Base


class Organization(Base):
    """A customer organization whose members can be targeted as a group."""
    __tablename__ = "organizations"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)


class Department(Base):
    """A department inside an organization."""
    __tablename__ = "departments"

    id = Column(Integer, primary_key=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"))
    name = Column(String, nullable=False)


class User(Base):
    """Represents an application user."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, default="")
    email = Column(String, unique=True, index=True)
    phone = Column(String)
    push_token = Column(String)
    hashed_password = Column(String)
    role = Column(String, default="user")  # admin/user/trainer/nutritionist
    status = Column(String, default="active", index=True)  # active/inactive/suspended
    organization_id = Column(Integer, ForeignKey("organizations.id"), index=True)
    department_id = Column(Integer, ForeignKey("departments.id"), index=True)
    last_login = Column(DateTime)
