"""Parsing of individual spreadsheet/table cells.

Every parser is lenient: a value that cannot be read yields a neutral default
(0, 1, ``None``) instead of raising, so one malformed cell never fails a row.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
import re
import unicodedata

from openpyxl.utils.datetime import CALENDAR_WINDOWS_1900, from_excel

NON_NUMERIC_PATTERN = re.compile(r"[^0-9.,\-]")
DATE_PATTERN = re.compile(r"^(\d{1,2})[/.\-](\d{1,2})[/.\-](\d{2}|\d{4})$")
ISO_DATE_PATTERN = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})")
SLOT_RANGE_PATTERN = re.compile(r"^(\d+)\s*(?:->|→|-|–|~|đến|den)\s*(\d+)$")

# Weekday tokens as they appear in timetables: "Thứ 2".."Thứ 7" plus Sunday as "CN".
SUNDAY_TOKENS = {"cn", "chu nhat", "sunday", "sun"}
ENGLISH_DAYS = {
    "monday": 2,
    "mon": 2,
    "tuesday": 3,
    "tue": 3,
    "wednesday": 4,
    "wed": 4,
    "thursday": 5,
    "thu": 5,
    "friday": 6,
    "fri": 6,
    "saturday": 7,
    "sat": 7,
}


def normalize_text(value) -> str:
    """Lower-case, strip diacritics and collapse whitespace."""
    if value is None:
        return ""
    text = unicodedata.normalize("NFD", str(value))
    text = "".join(ch for ch in text if unicodedata.category(ch) != "Mn")
    text = text.replace("đ", "d").replace("Đ", "D")
    return " ".join(text.lower().split())


def cell_text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def is_blank(value) -> bool:
    return cell_text(value) == ""


def parse_number(value, *, default: float = 0, digits: int = 2) -> float:
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return round(float(value), digits)

    text = str(value).strip()
    if not text or text.startswith("="):
        return default
    cleaned = NON_NUMERIC_PATTERN.sub("", text)
    if "," in cleaned and "." in cleaned:
        cleaned = cleaned.replace(",", "")
    else:
        cleaned = cleaned.replace(",", ".")
    try:
        number = float(cleaned)
    except ValueError:
        return default
    return round(number, digits)


def parse_int(value, *, default: int = 0) -> int:
    return int(round(parse_number(value, default=default, digits=0)))


def parse_multiplier(value) -> float:
    """Coefficients default to unity; a zero coefficient is treated as missing."""
    number = parse_number(value, default=1, digits=2)
    return number if number > 0 else 1.0


def parse_date(value, *, epoch: datetime = CALENDAR_WINDOWS_1900) -> date | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, (int, float)):
        if value <= 0:
            return None
        converted = from_excel(value, epoch=epoch)
        return converted.date() if isinstance(converted, datetime) else None

    text = str(value).strip()
    if not text:
        return None

    iso = ISO_DATE_PATTERN.match(text)
    if iso:
        year, month, day = (int(part) for part in iso.groups())
        return _safe_date(year, month, day)

    match = DATE_PATTERN.match(text)
    if match:
        day, month, year_text = match.groups()
        year = int(year_text) if len(year_text) == 4 else int(f"20{year_text}")
        return _safe_date(year, int(month), int(day))

    if re.fullmatch(r"\d+(\.\d+)?", text):
        return parse_date(float(text), epoch=epoch)
    return None


def _safe_date(year: int, month: int, day: int) -> date | None:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def parse_day_of_week(value) -> int | None:
    """Return 1 (Sunday) .. 7 (Saturday), or ``None`` when the cell is not a weekday."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = int(value)
        if number == 0:
            return 1
        return number if 1 <= number <= 7 else None

    text = normalize_text(value)
    if not text:
        return None
    if text in SUNDAY_TOKENS:
        return 1
    if text in ENGLISH_DAYS:
        return ENGLISH_DAYS[text]

    match = re.fullmatch(r"(?:thu|t)?\s*(\d)", text)
    if match:
        return parse_day_of_week(int(match.group(1)))
    return None


def weekday_of(value: date) -> int:
    """Weekday of a calendar date in the 1=Sunday .. 7=Saturday convention."""
    return value.isoweekday() % 7 + 1


def parse_time_slot_code(value) -> str | None:
    """Normalize period ranges such as ``1-3``, ``1 -> 3`` or ``1,2,3`` to ``"1->3"``."""
    text = cell_text(value)
    if not text:
        return None
    compact = normalize_text(text)

    match = SLOT_RANGE_PATTERN.match(compact)
    if match:
        start, end = int(match.group(1)), int(match.group(2))
        return f"{start}->{end}"

    periods = [int(part) for part in re.split(r"[,;\s]+", compact) if part.isdigit()]
    if periods and len(periods) == len([part for part in re.split(r"[,;\s]+", compact) if part]):
        return f"{min(periods)}->{max(periods)}"
    return None


def time_slot_sort_key(code: str) -> tuple[int, int, str]:
    match = re.fullmatch(r"(\d+)->(\d+)", code or "")
    if not match:
        return (10**6, 10**6, code or "")
    return (int(match.group(1)), int(match.group(2)), code)


def dates_within(first_end: date, second_start: date, gap_days: int) -> bool:
    return second_start <= first_end + timedelta(days=gap_days)
