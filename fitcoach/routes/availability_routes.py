from datetime import date, datetime, time

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel, Field, ValidationError, model_validator
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from fitcoach.auth.dependencies import require_staff
from fitcoach.core.errors import NotFoundError
from fitcoach.models.availability import AvailabilityBlock
from fitcoach.models.user import User
from fitcoach.routes._shared import (
    DATABASE_UNAVAILABLE_DETAIL,
    ensure_database_ready,
    get_db,
    to_http_exception,
)
from fitcoach.services.availability import get_coach_or_raise

router = APIRouter(tags=['availability'])

BLOCK_FIELDS = ('start_date', 'end_date', 'start_time', 'end_time', 'day_of_week', 'is_recurring', 'notes')


class AvailabilityBlockCreate(BaseModel):
    coach_id: int
    start_date: date | None = None
    end_date: date | None = None
    start_time: time
    end_time: time
    day_of_week: int | None = Field(default=None, ge=0, le=6)
    is_recurring: bool = False
    notes: str | None = Field(default=None, max_length=500)

    @model_validator(mode='after')
    def validate_block(self) -> 'AvailabilityBlockCreate':
        if self.end_time <= self.start_time:
            raise ValueError('End time must be after start time.')

        if self.is_recurring and self.day_of_week is None:
            raise ValueError('Recurring availability requires a day of week.')

        if not self.is_recurring and self.start_date is None:
            raise ValueError('One-time availability requires a start date.')

        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError('End date must be on or after the start date.')

        return self


class AvailabilityBlockUpdate(BaseModel):
    start_date: date | None = None
    end_date: date | None = None
    start_time: time | None = None
    end_time: time | None = None
    day_of_week: int | None = Field(default=None, ge=0, le=6)
    is_recurring: bool | None = None
    notes: str | None = Field(default=None, max_length=500)


class AvailabilityBlockResponse(BaseModel):
    id: int
    coach_id: int
    start_date: date | None = None
    end_date: date | None = None
    start_time: time
    end_time: time
    day_of_week: int | None = None
    is_recurring: bool
    notes: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


def get_block_or_404(db: Session, block_id: int) -> AvailabilityBlock:
    block = db.query(AvailabilityBlock).filter(AvailabilityBlock.id == block_id).first()
    if block is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Availability not found.',
        )
    return block


def merge_block_update(block: AvailabilityBlock, data: AvailabilityBlockUpdate) -> AvailabilityBlockCreate:
    """Apply a partial update on top of the stored block and re-check the block rules."""
    merged = {field_name: getattr(block, field_name) for field_name in BLOCK_FIELDS}
    merged.update(data.model_dump(exclude_unset=True))
    merged['coach_id'] = block.coach_id

    try:
        return AvailabilityBlockCreate.model_validate(merged)
    except ValidationError as exc:
        raise RequestValidationError(exc.errors()) from exc


@router.get('', response_model=list[AvailabilityBlockResponse])
def list_availability(
    coach_id: int | None = Query(default=None),
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    day_of_week: int | None = Query(default=None, ge=0, le=6),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        query = db.query(AvailabilityBlock)

        if coach_id is not None:
            query = query.filter(AvailabilityBlock.coach_id == coach_id)

        if start_date is not None:
            query = query.filter(or_(AvailabilityBlock.end_date >= start_date, AvailabilityBlock.end_date.is_(None)))

        if end_date is not None:
            query = query.filter(or_(AvailabilityBlock.start_date <= end_date, AvailabilityBlock.start_date.is_(None)))

        if day_of_week is not None:
            query = query.filter(AvailabilityBlock.day_of_week == day_of_week)

        return query.order_by(
            AvailabilityBlock.start_date.asc(),
            AvailabilityBlock.start_time.asc(),
            AvailabilityBlock.id.asc(),
        ).all()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


@router.post('', response_model=AvailabilityBlockResponse, status_code=status.HTTP_201_CREATED)
def create_availability(
    data: AvailabilityBlockCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff),
):
    ensure_database_ready()

    try:
        get_coach_or_raise(db, data.coach_id)

        block = AvailabilityBlock(**data.model_dump())
        db.add(block)
        db.commit()
        db.refresh(block)

        return block
    except NotFoundError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


@router.get('/{block_id}', response_model=AvailabilityBlockResponse)
def get_availability(block_id: int, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        return get_block_or_404(db, block_id)
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


@router.patch('/{block_id}', response_model=AvailabilityBlockResponse)
def update_availability(
    block_id: int,
    data: AvailabilityBlockUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff),
):
    ensure_database_ready()

    try:
        block = get_block_or_404(db, block_id)
        merged = merge_block_update(block, data)

        for field_name in BLOCK_FIELDS:
            setattr(block, field_name, getattr(merged, field_name))

        db.commit()
        db.refresh(block)

        return block
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


@router.delete('/{block_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_availability(
    block_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff),
):
    ensure_database_ready()

    try:
        block = get_block_or_404(db, block_id)
        db.delete(block)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc
