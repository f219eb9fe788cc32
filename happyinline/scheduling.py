"""Half-hour slot generation from a shop's static operating hours.

Slots are computed purely from the configured hours. Existing bookings are
never consulted, so two customers can pick the same slot.
"""
from __future__ import annotations

from datetime import date, datetime, timedelta

DAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]

DEFAULT_OPEN = "09:00"
DEFAULT_CLOSE = "17:00"
SLOT_MINUTES = 30


def day_name(day: date) -> str:
    return DAY_NAMES[day.weekday()]


def parse_date(value: str) -> date:
    """Parse a YYYY-MM-DD string; raises ValueError on anything else."""
    return datetime.strptime(value, "%Y-%m-%d").date()


def normalize_time(value: str) -> str:
    """Accept HH:MM or HH:MM:SS and return HH:MM.

    Raises ValueError when the value is not a valid clock time.
    """
    trimmed = (value or "").strip()[:5]
    return datetime.strptime(trimmed, "%H:%M").strftime("%H:%M")


def hours_for_day(shop, day: date) -> tuple[str, str] | None:
    """Return (open, close) for the given date, or None when closed.

    The per-day map wins over the flat opening/closing times.
    """
    name = day_name(day)
    per_day = shop.operating_hours or {}
    day_hours = per_day.get(name)

    if day_hours:
        if day_hours.get("closed"):
            return None
        if day_hours.get("open") and day_hours.get("close"):
            return normalize_time(day_hours["open"]), normalize_time(day_hours["close"])
    elif shop.opening_time and shop.closing_time:
        return normalize_time(shop.opening_time), normalize_time(shop.closing_time)

    return DEFAULT_OPEN, DEFAULT_CLOSE


def is_open_on(shop, day: date) -> bool:
    name = day_name(day)
    per_day = shop.operating_hours or {}

    if per_day.get(name):
        return not per_day[name].get("closed")
    if shop.operating_days is not None:
        return name in shop.operating_days
    return True


def generate_time_slots(open_time: str, close_time: str, step: int = SLOT_MINUTES) -> list[str]:
    """HH:MM values from open (inclusive) to close (exclusive)."""
    current = datetime.strptime(normalize_time(open_time), "%H:%M")
    end = datetime.strptime(normalize_time(close_time), "%H:%M")

    slots = []
    while current < end:
        slots.append(current.strftime("%H:%M"))
        current += timedelta(minutes=step)
    return slots


def slots_for_date(shop, day: date) -> list[str]:
    if not is_open_on(shop, day):
        return []
    hours = hours_for_day(shop, day)
    if hours is None:
        return []
    return generate_time_slots(*hours)


def available_dates(shop, start: date, days: int = 14) -> list[date]:
    """Open dates in the window starting at ``start``."""
    return [
        start + timedelta(days=offset)
        for offset in range(days)
        if is_open_on(shop, start + timedelta(days=offset))
    ]


def format_time_display(time24: str) -> str:
    """'14:30' -> '2:30 PM'."""
    hours, minutes = time24.split(":")[:2]
    hour = int(hours)
    suffix = "PM" if hour >= 12 else "AM"
    display_hour = hour % 12 or 12
    return f"{display_hour}:{minutes} {suffix}"


def format_date_display(value: str) -> str:
    """'2026-01-27' -> 'Tuesday, January 27, 2026'."""
    day = parse_date(value)
    return f"{day.strftime('%A, %B')} {day.day}, {day.year}"
