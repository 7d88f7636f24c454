"""
Plain-text rendering of computed slots, ready to paste into a message.
"""

from __future__ import annotations

from typing import Dict, List, Sequence

from pendulum import Date, FixedTimezone, Timezone

from .day_walker import weekday_number
from .exceptions import InvalidConfigError
from .models import Slot

# Weekday names indexed 0=Sunday .. 6=Saturday
_LOCALES: Dict[str, Dict[str, object]] = {
    "ja": {
        "empty": "指定期間内に空き時間はありません。",
        "title": "【空き時間一覧】",
        "weekdays": ("日", "月", "火", "水", "木", "金", "土"),
    },
    "en": {
        "empty": "No availability found in the selected period.",
        "title": "[Available times]",
        "weekdays": ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"),
    },
}

SUPPORTED_LOCALES = tuple(_LOCALES)


def _locale_table(locale: str) -> Dict[str, object]:
    try:
        return _LOCALES[locale]
    except KeyError:
        raise InvalidConfigError(
            f"Unsupported locale '{locale}'. Use one of: {', '.join(SUPPORTED_LOCALES)}"
        ) from None


def no_availability_message(locale: str = "ja") -> str:
    return _locale_table(locale)["empty"]


def format_date_header(day: Date, locale: str = "ja") -> str:
    """
    Format a date group header.

    ja: 2025/01/06(月)
    en: Mon, 2025-01-06
    """
    weekday = _locale_table(locale)["weekdays"][weekday_number(day)]
    if locale == "ja":
        return f"{day.year:04d}/{day.month:02d}/{day.day:02d}({weekday})"
    return f"{weekday}, {day.year:04d}-{day.month:02d}-{day.day:02d}"


def group_by_date(slots: Sequence[Slot], tz: Timezone | FixedTimezone) -> Dict[Date, List[Slot]]:
    """Group slots by the date of their start, keeping first-seen order."""
    groups: Dict[Date, List[Slot]] = {}
    for slot in slots:
        groups.setdefault(slot.start.in_timezone(tz).date(), []).append(slot)
    return groups


def format_slots(slots: Sequence[Slot], tz: Timezone | FixedTimezone, locale: str = "ja") -> str:
    """
    Render slots as grouped text.

    Example (ja)::

        【空き時間一覧】

        ■ 2025/01/06(月)
          09:00 - 10:00
          11:00 - 18:00

    """
    table = _locale_table(locale)
    if not slots:
        return table["empty"]

    lines = [table["title"], ""]
    for day, day_slots in group_by_date(slots, tz).items():
        lines.append(f"■ {format_date_header(day, locale)}")
        for slot in day_slots:
            start = slot.start.in_timezone(tz).format("HH:mm")
            end = slot.end.in_timezone(tz).format("HH:mm")
            lines.append(f"  {start} - {end}")
        lines.append("")

    return "\n".join(lines) + "\n"
