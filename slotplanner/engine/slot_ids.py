"""
Slot identifier codec.

A slot id is ``YYYY-MM-DD_HH:MM_HH:MM``. None of the component formats can
contain an underscore, so distinct (date, start, end) triples never collide.
"""

from datetime import date, datetime, time
from typing import Optional, Union

from slotplanner.models.entities import SlotKey

SEPARATOR = "_"
DATE_FORMAT = "%Y-%m-%d"
TIME_FORMAT = "%H:%M"


def format_date(value: Union[date, str]) -> str:
    if isinstance(value, str):
        return value
    return value.strftime(DATE_FORMAT)


def format_time(value: Union[time, str]) -> str:
    if isinstance(value, str):
        return value
    return value.strftime(TIME_FORMAT)


def parse_date(value: str) -> date:
    return datetime.strptime(value, DATE_FORMAT).date()


def parse_time(value: str) -> time:
    return datetime.strptime(value, TIME_FORMAT).time()


def encode_slot_id(day: Union[date, str], start: Union[time, str], end: Union[time, str]) -> str:
    return SEPARATOR.join((format_date(day), format_time(start), format_time(end)))


def decode_slot_id(slot_id: str) -> Optional[SlotKey]:
    """
    Split a slot id back into its components.

    Returns None for anything that is not a recognisable slot reference
    (fewer than three segments, or segments that are not a date and two
    clock times). Segments past the third are ignored.
    """
    parts = slot_id.split(SEPARATOR)
    if len(parts) < 3:
        return None
    try:
        return SlotKey(parse_date(parts[0]), parse_time(parts[1]), parse_time(parts[2]))
    except ValueError:
        return None


def format_slot_id(slot_id: str) -> str:
    """Human-readable label, e.g. ``02.02.26 09:00 - 09:15``; raw id if unrecognised."""
    key = decode_slot_id(slot_id)
    if key is None:
        return slot_id
    return f"{key.date.strftime('%d.%m.%y')} {format_time(key.start)} - {format_time(key.end)}"
