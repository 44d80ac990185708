from datetime import date

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from fitcoach.core import config
from fitcoach.core.errors import FitcoachError
from fitcoach.routes._shared import ensure_database_ready, get_db, to_http_exception
from fitcoach.services.availability import get_available_slots

router = APIRouter(tags=['coaches'])


class SlotResponse(BaseModel):
    time: str
    datetime: str
    available: bool


class AvailableSlotsResponse(BaseModel):
    date: date
    slots: list[SlotResponse]


@router.get('/{coach_id}/available-slots', response_model=AvailableSlotsResponse)
def list_available_slots(
    coach_id: int,
    date: date = Query(...),
    duration: int = Query(
        default=config.DEFAULT_SLOT_DURATION_MINUTES,
        ge=config.MIN_SLOT_DURATION_MINUTES,
        le=config.MAX_SLOT_DURATION_MINUTES,
    ),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        slots = get_available_slots(db, coach_id, date, duration)
    except FitcoachError as exc:
        raise to_http_exception(exc) from exc

    return AvailableSlotsResponse(
        date=date,
        slots=[
            SlotResponse(time=slot.time_label, datetime=slot.datetime_iso, available=slot.available)
            for slot in slots
        ],
    )
