"""Slot generation for a single availability block on a single date.

Pure functions only: no database access, no clock reads. Given the same
inputs the output is always the same list.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Iterable

Interval = tuple[datetime, datetime]


@dataclass(frozen=True)
class Slot:
    start: datetime
    end: datetime
    available: bool

    @property
    def time_label(self) -> str:
        """Clock time such as ``9:00 AM``."""
        hour = self.start.hour % 12 or 12
        meridiem = 'AM' if self.start.hour < 12 else 'PM'
        return f'{hour}:{self.start.minute:02d} {meridiem}'

    @property
    def datetime_iso(self) -> str:
        return self.start.isoformat()


def overlaps(start: datetime, end: datetime, other_start: datetime, other_end: datetime) -> bool:
    # Half-open intervals: touching endpoints are not an overlap.
    return start < other_end and end > other_start


def generate_slots(
    slot_date: date,
    block_start: time,
    block_end: time,
    duration_minutes: int,
    booked: Iterable[Interval],
) -> list[Slot]:
    if duration_minutes <= 0:
        raise ValueError('Slot duration must be a positive number of minutes.')

    booked_intervals = list(booked)
    step = timedelta(minutes=duration_minutes)
    current = datetime.combine(slot_date, block_start)
    end = datetime.combine(slot_date, block_end)

    slots: list[Slot] = []
    while current + step <= end:
        slot_end = current + step
        is_available = not any(
            overlaps(current, slot_end, booked_start, booked_end)
            for booked_start, booked_end in booked_intervals
        )
        slots.append(Slot(start=current, end=slot_end, available=is_available))
        current = slot_end

    return slots


def merge_slots(slot_lists: Iterable[list[Slot]]) -> list[Slot]:
    """Concatenate per-block slot lists and order them by start time."""
    merged: list[Slot] = []
    for slots in slot_lists:
        merged.extend(slots)
    return sorted(merged, key=lambda slot: slot.start)
