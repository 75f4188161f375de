"""Fold raw table rows into schedule records.

Timetable exports put one course offering on several consecutive rows: the
first row carries the course columns, the following rows only add another
weekday/period/room combination. ``fold_row`` walks those rows top to bottom
and ``reduce_rows`` returns the closed records as an immutable tuple.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from functools import partial, reduce
import re
from typing import Any, NamedTuple

from app.models.academic_year import Semester
from app.services import academic_calendar
from app.services.cell_values import (
    cell_text,
    dates_within,
    is_blank,
    parse_date,
    parse_day_of_week,
    parse_int,
    parse_multiplier,
    parse_number,
    parse_time_slot_code,
)
from app.services.tabular_extractor import ExtractedTable

# "503-TA1" in a room column with no building column.
ROOM_WITH_BUILDING_PATTERN = re.compile(r"^(\d+[A-Za-z]?)\s*-\s*([A-Za-z][\w.]*)$")


@dataclass(frozen=True)
class TimeSlot:
    day_of_week: int
    time_slot: str
    room_name: str
    building_name: str | None
    start_date: date
    end_date: date

    @property
    def key(self) -> tuple[int, str, str, str | None]:
        return (self.day_of_week, self.time_slot, self.room_name, self.building_name)


@dataclass(frozen=True)
class ScheduleRecord:
    row_number: int
    class_name: str
    course_code: str | None = None
    credits: int | None = None
    semester: Semester | None = None
    semester_label: str | None = None
    class_type: str = "LT"
    student_count: int = 0
    theory_hours: int = 0
    actual_hours: float = 0
    crowd_class_coefficient: float = 1.0
    overtime_coefficient: float = 1.0
    standard_hours: float = 0
    hours_per_week: int | None = None
    lecturer_name: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    academic_year_token: str | None = None
    notes: str | None = None
    time_slots: tuple[TimeSlot, ...] = ()
    problems: tuple[str, ...] = ()

    @property
    def course_name(self) -> str:
        return academic_calendar.canonical_course_name(self.class_name)

    def summary(self) -> dict[str, Any]:
        """Short identification of the record for import error reports."""
        return {
            "class_name": self.class_name,
            "course_code": self.course_code,
            "semester": self.semester.value if self.semester else self.semester_label,
        }


class ReductionState(NamedTuple):
    completed: tuple[ScheduleRecord, ...] = ()
    open_record: ScheduleRecord | None = None
    last_dates: tuple[date, date] | None = None


@dataclass(frozen=True)
class ReductionContext:
    column_map: dict[str, int]
    epoch: Any
    has_slot_columns: bool
    semester_override: Semester | None = None
    merge_gap_days: int = 2

    def value(self, row: list[Any], field_name: str) -> Any:
        index = self.column_map.get(field_name)
        if index is None or index >= len(row):
            return None
        return row[index]

    def text(self, row: list[Any], field_name: str) -> str:
        return cell_text(self.value(row, field_name))


def merge_time_slot(slots: tuple[TimeSlot, ...], candidate: TimeSlot, gap_days: int = 2) -> tuple[TimeSlot, ...]:
    """Add ``candidate`` to ``slots`` and coalesce every slot sharing its key.

    Same-key slots are walked by start date; a slot starting within
    ``gap_days`` of the previous one's end widens it, so a candidate that
    bridges two existing ranges joins all three. The coalesced slots take the
    position of the first same-key slot.
    """
    same_key = sorted(
        [slot for slot in slots if slot.key == candidate.key] + [candidate],
        key=lambda slot: slot.start_date,
    )
    coalesced: list[TimeSlot] = []
    for slot in same_key:
        if coalesced and dates_within(coalesced[-1].end_date, slot.start_date, gap_days):
            coalesced[-1] = replace(coalesced[-1], end_date=max(coalesced[-1].end_date, slot.end_date))
        else:
            coalesced.append(slot)

    position = next((index for index, slot in enumerate(slots) if slot.key == candidate.key), len(slots))
    others = tuple(slot for slot in slots if slot.key != candidate.key)
    return others[:position] + tuple(coalesced) + others[position:]


def coalesce_time_slots(slots, gap_days: int = 2) -> tuple[TimeSlot, ...]:
    """Fold loose slot values (schemas, ORM rows) into merged ``TimeSlot``s."""
    merged: tuple[TimeSlot, ...] = ()
    for slot in slots:
        candidate = TimeSlot(
            day_of_week=slot.day_of_week,
            time_slot=slot.time_slot,
            room_name=slot.room_name.strip(),
            building_name=(slot.building_name or "").strip() or None,
            start_date=slot.start_date,
            end_date=slot.end_date,
        )
        merged = merge_time_slot(merged, candidate, gap_days)
    return merged


def split_room(room_text: str, building_text: str) -> tuple[str, str | None]:
    room = room_text.strip()
    building = building_text.strip() or None
    if building is None:
        match = ROOM_WITH_BUILDING_PATTERN.match(room)
        if match:
            return match.group(1), match.group(2)
    return room, building


def start_record(row: list[Any], row_number: int, context: ReductionContext, dates) -> ScheduleRecord:
    hours_per_week = context.text(row, "hours_per_week")
    credits = context.text(row, "credits")
    start_date, end_date = dates
    return ScheduleRecord(
        row_number=row_number,
        class_name=context.text(row, "class_name"),
        course_code=context.text(row, "course_code") or None,
        credits=parse_int(credits) if credits else None,
        semester_label=context.text(row, "semester_label") or None,
        class_type=(context.text(row, "class_type") or "LT").upper(),
        student_count=parse_int(context.value(row, "student_count")),
        theory_hours=parse_int(context.value(row, "theory_hours")),
        actual_hours=parse_number(context.value(row, "actual_hours"), digits=1),
        crowd_class_coefficient=parse_multiplier(context.value(row, "crowd_class_coefficient")),
        overtime_coefficient=parse_multiplier(context.value(row, "overtime_coefficient")),
        standard_hours=parse_number(context.value(row, "standard_hours"), digits=2),
        hours_per_week=parse_int(hours_per_week) if hours_per_week else None,
        lecturer_name=context.text(row, "lecturer_name") or None,
        start_date=start_date,
        end_date=end_date,
        academic_year_token=academic_calendar.normalize_year_code(context.value(row, "academic_year")),
        notes=context.text(row, "notes") or None,
    )


def close_record(record: ScheduleRecord, context: ReductionContext) -> ScheduleRecord:
    """Derive the record-level fields that depend on all of its rows."""
    problems = list(record.problems)
    start_date, end_date = record.start_date, record.end_date
    if record.time_slots:
        start_date = min(slot.start_date for slot in record.time_slots)
        end_date = max(slot.end_date for slot in record.time_slots)

    if not record.class_name:
        problems.append("missing class name")

    semester = context.semester_override or academic_calendar.parse_semester_label(record.semester_label)
    if semester is None and start_date and end_date:
        semester = academic_calendar.semester_from_dates(start_date, end_date)
    if semester is None:
        problems.append("missing semester info")

    year_token = academic_calendar.academic_year_from_class_name(record.class_name) or record.academic_year_token
    if year_token is None and start_date:
        year_token = academic_calendar.academic_year_from_date(start_date)

    return replace(
        record,
        semester=semester,
        start_date=start_date,
        end_date=end_date,
        academic_year_token=year_token,
        standard_hours=academic_calendar.compute_standard_hours(
            record.actual_hours,
            record.crowd_class_coefficient,
            record.overtime_coefficient,
            fallback=record.standard_hours,
        ),
        problems=tuple(problems),
    )


def fold_row(state: ReductionState, numbered_row: tuple[int, list[Any]], *, context: ReductionContext) -> ReductionState:
    row_number, row = numbered_row
    if all(is_blank(cell) for cell in row):
        return state

    day_of_week = time_slot = None
    if context.has_slot_columns:
        day_of_week = parse_day_of_week(context.value(row, "day_of_week"))
        time_slot = parse_time_slot_code(context.value(row, "time_slot"))
        if day_of_week is None or time_slot is None:
            return state

    start_date = parse_date(context.value(row, "start_date"), epoch=context.epoch)
    end_date = parse_date(context.value(row, "end_date"), epoch=context.epoch)
    last_dates = state.last_dates
    if start_date and end_date:
        last_dates = (start_date, end_date)
    elif last_dates is not None:
        start_date = start_date or last_dates[0]
        end_date = end_date or last_dates[1]

    completed, record = state.completed, state.open_record
    if context.text(row, "course_code") or context.text(row, "class_name"):
        if record is not None:
            completed = completed + (close_record(record, context),)
        record = start_record(row, row_number, context, (start_date, end_date))
    elif record is None:
        return ReductionState(completed, None, last_dates)

    if context.has_slot_columns:
        if start_date is None or end_date is None:
            problem = f"row {row_number}: time slot {time_slot} has no start/end date"
            record = replace(record, problems=record.problems + (problem,))
        else:
            room_name, building_name = split_room(context.text(row, "room_name"), context.text(row, "building_name"))
            slot = TimeSlot(day_of_week, time_slot, room_name, building_name, start_date, end_date)
            record = replace(record, time_slots=merge_time_slot(record.time_slots, slot, context.merge_gap_days))

    return ReductionState(completed, record, last_dates)


def reduce_rows(
    table: ExtractedTable,
    *,
    semester_override: Semester | None = None,
    merge_gap_days: int = 2,
) -> tuple[ScheduleRecord, ...]:
    context = ReductionContext(
        column_map=table.column_map,
        epoch=table.epoch,
        has_slot_columns=table.has_columns("day_of_week", "time_slot"),
        semester_override=semester_override,
        merge_gap_days=merge_gap_days,
    )
    numbered_rows = enumerate(table.rows, start=table.first_row_number)
    state = reduce(partial(fold_row, context=context), numbered_rows, ReductionState())
    if state.open_record is None:
        return state.completed
    return state.completed + (close_record(state.open_record, context),)
