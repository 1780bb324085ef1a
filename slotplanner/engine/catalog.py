from datetime import date, time
from typing import Dict, List

from slotplanner.engine.slot_ids import encode_slot_id
from slotplanner.models.entities import DaySlots, Project, SlotKey, TimeSlot


def build_slot_catalog(project: Project) -> Dict[str, SlotKey]:
    """
    Flatten a project's day-grouped slots into ``slot_id -> SlotKey``.

    Every TimeSlot appears exactly once, in day then start-time order.
    """
    catalog: Dict[str, SlotKey] = {}
    for day in project.time_slots:
        for slot in day.times:
            catalog[encode_slot_id(day.date, slot.start, slot.end)] = SlotKey(day.date, slot.start, slot.end)
    return catalog


def count_slots(project: Project) -> int:
    return sum(len(day.times) for day in project.time_slots)


def _minutes(value: time) -> int:
    return value.hour * 60 + value.minute


def _clock(minutes: int) -> time:
    return time(minutes // 60, minutes % 60)


def generate_time_slots(start: time, end: time, duration_minutes: int, break_minutes: int = 0) -> List[TimeSlot]:
    """
    Cut ``[start, end)`` into back-to-back appointments.

    Each slot lasts ``duration_minutes`` and is followed by ``break_minutes``
    of pause; a trailing remainder shorter than one appointment is dropped.
    """
    if duration_minutes < 1:
        raise ValueError("duration must be at least one minute")
    if break_minutes < 0:
        raise ValueError("break must not be negative")

    slots: List[TimeSlot] = []
    current = _minutes(start)
    limit = _minutes(end)
    while current + duration_minutes <= limit:
        slots.append(TimeSlot(_clock(current), _clock(current + duration_minutes)))
        current += duration_minutes + break_minutes
    return slots


def add_time_slot(days: List[DaySlots], day: date, start: time, end: time) -> List[DaySlots]:
    """Return a new grid with the slot added; exact duplicates are ignored."""
    new_slot = TimeSlot(start, end)
    result: List[DaySlots] = []
    placed = False
    for existing in days:
        if existing.date != day:
            result.append(existing)
            continue
        placed = True
        if new_slot in existing.times:
            result.append(existing)
            continue
        for other in existing.times:
            if new_slot.overlaps(other):
                raise ValueError(f"{day} {start:%H:%M}-{end:%H:%M} overlaps {other.start:%H:%M}-{other.end:%H:%M}")
        result.append(DaySlots(day, sorted(existing.times + [new_slot], key=lambda t: t.start)))
    if not placed:
        result.append(DaySlots(day, [new_slot]))
    return sorted(result, key=lambda d: d.date)


def remove_time_slot(days: List[DaySlots], day: date, start: time, end: time) -> List[DaySlots]:
    result: List[DaySlots] = []
    for existing in days:
        if existing.date == day:
            remaining = [t for t in existing.times if not (t.start == start and t.end == end)]
            if not remaining:
                continue
            existing = DaySlots(day, remaining)
        result.append(existing)
    return result


def validate_day_slots(days: List[DaySlots]) -> None:
    """Raise ValueError unless dates are unique and each day's slots are disjoint."""
    seen_dates = set()
    for day in days:
        if day.date in seen_dates:
            raise ValueError(f"date {day.date} listed more than once")
        seen_dates.add(day.date)
        ordered = sorted(day.times, key=lambda t: t.start)
        for previous, current in zip(ordered, ordered[1:]):
            if previous.overlaps(current) or previous == current:
                raise ValueError(
                    f"{day.date}: {previous.start:%H:%M}-{previous.end:%H:%M} "
                    f"collides with {current.start:%H:%M}-{current.end:%H:%M}"
                )


def normalize_day_slots(days: List[DaySlots]) -> List[DaySlots]:
    """Sort days by date and each day's slots by start time."""
    return sorted(
        (DaySlots(d.date, sorted(d.times, key=lambda t: t.start)) for d in days),
        key=lambda d: d.date,
    )
