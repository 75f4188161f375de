from __future__ import annotations

from datetime import date
import re

from app.models.academic_year import Semester
from app.services.cell_values import normalize_text

CLASS_SUFFIX_PATTERN = re.compile(r"(-\d+-\d+.*|\(.*)$")
CLASS_YEAR_PATTERN = re.compile(r"-\d+-(\d{2})\s*(?:\(|$)")
YEAR_CODE_PATTERN = re.compile(r"(\d{4})\s*[-/–]\s*(\d{4})")

# (first allowed start month, last allowed end month) -> semester, checked in order.
SEMESTER_MONTH_RANGES: list[tuple[tuple[int, int], Semester]] = [
    ((8, 10), Semester.term_1_1),
    ((10, 12), Semester.term_1_2),
    ((1, 4), Semester.term_2_1),
    ((4, 7), Semester.term_2_2),
    ((8, 12), Semester.term_1_2),
    ((1, 7), Semester.term_2_2),
]

# Minimum enrolment -> crowd class coefficient.
CROWD_COEFFICIENT_STEPS: list[tuple[int, float]] = [
    (101, 1.5),
    (81, 1.4),
    (66, 1.3),
    (51, 1.2),
    (41, 1.1),
]


def canonical_course_name(class_name: str) -> str:
    """Strip the ``-<section>-<year>(<code>)`` or parenthetical suffix off a class name."""
    return CLASS_SUFFIX_PATTERN.sub("", (class_name or "").strip()).strip()


def parse_semester_label(label: str | None) -> Semester | None:
    text = normalize_text(label)
    if not text:
        return None
    for semester in (Semester.term_1_1, Semester.term_1_2, Semester.term_2_1, Semester.term_2_2):
        if semester.value in text:
            return semester
    if re.search(r"\bky\s*1\b|\bhk\s*1\b|\bsemester\s*1\b", text):
        return Semester.term_1_1
    if re.search(r"\bky\s*2\b|\bhk\s*2\b|\bsemester\s*2\b", text):
        return Semester.term_2_1
    return None


def semester_from_dates(start: date, end: date) -> Semester:
    for (start_month, end_month), semester in SEMESTER_MONTH_RANGES:
        if start.month >= start_month and end.month <= end_month:
            return semester
    return Semester.term_2_2


def academic_year_from_date(value: date) -> str:
    if value.month >= 8:
        return f"{value.year}-{value.year + 1}"
    return f"{value.year - 1}-{value.year}"


def academic_year_from_class_name(class_name: str) -> str | None:
    """``Networks-1-25(A1801)`` -> ``2025-2026``."""
    match = CLASS_YEAR_PATTERN.search(class_name or "")
    if not match:
        return None
    start_year = 2000 + int(match.group(1))
    return f"{start_year}-{start_year + 1}"


def normalize_year_code(value) -> str | None:
    match = YEAR_CODE_PATTERN.search(str(value or ""))
    if not match:
        return None
    return f"{match.group(1)}-{match.group(2)}"


def crowd_coefficient_for(student_count: int) -> float:
    for minimum, coefficient in CROWD_COEFFICIENT_STEPS:
        if student_count >= minimum:
            return coefficient
    return 1.0


def compute_standard_hours(
    actual_hours: float,
    crowd_class_coefficient: float,
    overtime_coefficient: float,
    fallback: float = 0,
) -> float:
    if actual_hours and crowd_class_coefficient and overtime_coefficient:
        return round(actual_hours * crowd_class_coefficient * overtime_coefficient, 2)
    return fallback
