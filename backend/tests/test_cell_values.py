from datetime import date, datetime

import pytest
from openpyxl.utils.datetime import CALENDAR_MAC_1904

from app.services.cell_values import (
    cell_text,
    normalize_text,
    parse_date,
    parse_day_of_week,
    parse_int,
    parse_multiplier,
    parse_number,
    parse_time_slot_code,
    time_slot_sort_key,
    weekday_of,
)


def test_normalize_text_strips_diacritics_and_whitespace():
    assert normalize_text("  Ngày   BĐ ") == "ngay bd"
    assert normalize_text("Lớp học phần") == "lop hoc phan"
    assert normalize_text(None) == ""


def test_cell_text_renders_integral_floats_without_decimals():
    assert cell_text(3.0) == "3"
    assert cell_text(2.5) == "2.5"
    assert cell_text(None) == ""


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("1,5", 1.5),
        ("45 tiết", 45),
        ("1,234.5", 1234.5),
        ("", 0),
        ("abc", 0),
        (7, 7),
        ("=SUM(A1:A3)", 0),
    ],
)
def test_parse_number(raw, expected):
    assert parse_number(raw) == expected


def test_parse_int_and_multiplier_defaults():
    assert parse_int("62 SV") == 62
    assert parse_multiplier(None) == 1
    assert parse_multiplier("0") == 1
    assert parse_multiplier("1,3") == 1.3


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (datetime(2025, 9, 8, 0, 0), date(2025, 9, 8)),
        (date(2025, 9, 8), date(2025, 9, 8)),
        ("08/09/2025", date(2025, 9, 8)),
        ("8/9/25", date(2025, 9, 8)),
        ("08-09-2025", date(2025, 9, 8)),
        ("2025-09-08", date(2025, 9, 8)),
        (45908, date(2025, 9, 8)),
        ("31/02/2025", None),
        ("", None),
        (None, None),
    ],
)
def test_parse_date(raw, expected):
    assert parse_date(raw) == expected


def test_parse_date_uses_the_workbook_epoch():
    assert parse_date(0.5) is None
    assert parse_date(1, epoch=CALENDAR_MAC_1904) == date(1904, 1, 2)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("CN", 1),
        ("Chủ nhật", 1),
        ("Sunday", 1),
        (0, 1),
        (2, 2),
        (7.0, 7),
        ("Thứ 3", 3),
        ("T5", 5),
        ("6", 6),
        ("Monday", 2),
        (8, None),
        ("sáng", None),
        (None, None),
    ],
)
def test_parse_day_of_week(raw, expected):
    assert parse_day_of_week(raw) == expected


def test_weekday_of_uses_sunday_as_one():
    assert weekday_of(date(2025, 9, 7)) == 1  # Sunday
    assert weekday_of(date(2025, 9, 8)) == 2  # Monday
    assert weekday_of(date(2025, 9, 13)) == 7  # Saturday


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("1-3", "1->3"),
        ("1->3", "1->3"),
        ("1 → 3", "1->3"),
        ("1,2,3", "1->3"),
        ("7 - 9", "7->9"),
        (4, "4->4"),
        ("", None),
        ("sáng", None),
    ],
)
def test_parse_time_slot_code(raw, expected):
    assert parse_time_slot_code(raw) == expected


def test_time_slot_sort_key_orders_numerically():
    codes = ["10->12", "1->3", "4->6", "1->2"]
    assert sorted(codes, key=time_slot_sort_key) == ["1->2", "1->3", "4->6", "10->12"]
