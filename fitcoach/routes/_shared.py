from datetime import datetime

from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError

from fitcoach.core.errors import (
    ConflictError,
    DependencyFailure,
    EmptyAudienceError,
    FitcoachError,
    NotFoundError,
)
from fitcoach.database import (
    SessionLocal,
    ensure_appointment_schema,
    ensure_availability_schema,
    ensure_notification_schema,
)

DATABASE_UNAVAILABLE_DETAIL = 'Database unavailable. Verify DATABASE_URL and database credentials.'

_ERROR_STATUS_CODES = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ConflictError: status.HTTP_409_CONFLICT,
    EmptyAudienceError: status.HTTP_400_BAD_REQUEST,
    DependencyFailure: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def ensure_database_ready() -> None:
    try:
        ensure_availability_schema()
        ensure_appointment_schema()
        ensure_notification_schema()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


def to_http_exception(exc: FitcoachError) -> HTTPException:
    for error_type, status_code in _ERROR_STATUS_CODES.items():
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


def to_local_naive(value: datetime | None) -> datetime | None:
    """Convert an offset-aware datetime to naive server-local time; naive values pass through."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)
