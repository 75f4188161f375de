from __future__ import annotations

from itertools import chain
import logging
from math import ceil
from typing import Any, Iterable, Protocol

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from app.core.config import Settings
from app.core.exceptions import DuplicateError, ResourceNotFoundError
from app.models.academic_year import Semester
from app.models.building import Building, Classroom
from app.models.timetable import Timetable, TimetableSlot
from app.schemas.timetable import ConflictCheckRequest, TimetableCreate, TimetableUpdate
from app.services.academic_calendar import compute_standard_hours, crowd_coefficient_for
from app.services.batch_committer import ImportReport, commit_records, record_fields
from app.services.cell_values import time_slot_sort_key
from app.services.conflict_detector import check_conflict, is_physical_room
from app.services.reconciler import ResolvedReferences, require_academic_year, require_course
from app.services.row_reducer import ScheduleRecord, coalesce_time_slots, reduce_rows
from app.services.tabular_extractor import DocumentKind, extract_tables

logger = logging.getLogger(__name__)

NULLABLE_UPDATE_FIELDS = {"hours_per_week", "lecturer_name", "notes", "start_date", "end_date"}


class SlotLike(Protocol):
    day_of_week: int
    time_slot: str
    room_name: str
    building_name: str | None
    start_date: Any
    end_date: Any


def ensure_unique(
    db: Session,
    class_name: str,
    semester: Semester,
    academic_year_id: str,
    exclude_id: str | None = None,
) -> None:
    stmt = select(Timetable.id).where(
        Timetable.class_name == class_name,
        Timetable.semester == semester,
        Timetable.academic_year_id == academic_year_id,
    )
    if exclude_id:
        stmt = stmt.where(Timetable.id != exclude_id)
    if db.execute(stmt).first() is not None:
        raise DuplicateError(class_name, semester.value)


def ensure_slots_free(db: Session, slots: Iterable[SlotLike], exclude_id: str | None = None) -> None:
    for slot in slots:
        check_conflict(
            db,
            slot.room_name,
            slot.building_name,
            slot.day_of_week,
            slot.time_slot,
            slot.start_date,
            slot.end_date,
            exclude_id=exclude_id,
        )


def get_or_create_classroom(db: Session, room_name: str, building_name: str | None) -> Classroom | None:
    if not is_physical_room(room_name, building_name):
        return None
    room_name, building_name = room_name.strip(), building_name.strip()

    building = db.execute(select(Building).where(Building.name == building_name)).scalar_one_or_none()
    if building is None:
        building = Building(name=building_name)
        db.add(building)
        db.flush()
        logger.info("Created building %s", building_name)

    classroom = db.execute(
        select(Classroom).where(Classroom.name == room_name, Classroom.building_id == building.id)
    ).scalar_one_or_none()
    if classroom is None:
        classroom = Classroom(name=room_name, building_id=building.id)
        db.add(classroom)
        db.flush()
    return classroom


def build_slots(db: Session, slots: Iterable[SlotLike]) -> list[TimetableSlot]:
    rows: list[TimetableSlot] = []
    for slot in slots:
        classroom = get_or_create_classroom(db, slot.room_name, slot.building_name)
        rows.append(
            TimetableSlot(
                day_of_week=slot.day_of_week,
                time_slot=slot.time_slot,
                room_name=slot.room_name.strip(),
                building_name=(slot.building_name or "").strip() or None,
                classroom_id=classroom.id if classroom else None,
                start_date=slot.start_date,
                end_date=slot.end_date,
            )
        )
    return rows


def add_timetable(db: Session, fields: dict[str, Any], slots: list[SlotLike]) -> Timetable:
    """Insert a timetable and its slots without committing.

    Raises ``DuplicateError`` for an existing class/semester/year and
    ``ConflictError`` when any slot double-books a physical room.
    """
    ensure_unique(db, fields["class_name"], fields["semester"], fields["academic_year_id"])
    ensure_slots_free(db, slots)

    timetable = Timetable(**fields)
    timetable.slots = build_slots(db, slots)
    if timetable.slots:
        timetable.start_date = min(slot.start_date for slot in timetable.slots)
        timetable.end_date = max(slot.end_date for slot in timetable.slots)
    db.add(timetable)
    db.flush()
    return timetable


def create_timetable(db: Session, payload: TimetableCreate, *, merge_gap_days: int = 2) -> Timetable:
    require_course(db, payload.course_id)
    require_academic_year(db, payload.academic_year_id)

    fields = payload.model_dump(exclude={"time_slots"})
    fields["standard_hours"] = compute_standard_hours(
        payload.actual_hours,
        payload.crowd_class_coefficient,
        payload.overtime_coefficient,
        fallback=payload.standard_hours,
    )
    timetable = add_timetable(db, fields, list(coalesce_time_slots(payload.time_slots, merge_gap_days)))
    db.commit()
    logger.info("Created timetable %s for class %s", timetable.id, timetable.class_name)
    return get_timetable(db, timetable.id)


def get_timetable(db: Session, timetable_id: str) -> Timetable:
    timetable = db.execute(
        select(Timetable).options(selectinload(Timetable.slots)).where(Timetable.id == timetable_id)
    ).scalar_one_or_none()
    if timetable is None:
        raise ResourceNotFoundError("Timetable", timetable_id)
    return timetable


def list_timetables(
    db: Session,
    *,
    page: int = 1,
    limit: int = 20,
    class_name: str | None = None,
    course_id: str | None = None,
    academic_year_id: str | None = None,
    semester: Semester | None = None,
    start_date=None,
    end_date=None,
) -> tuple[list[Timetable], dict[str, int]]:
    filters = []
    if class_name:
        filters.append(Timetable.class_name.ilike(f"%{class_name}%"))
    if course_id:
        filters.append(Timetable.course_id == course_id)
    if academic_year_id:
        filters.append(Timetable.academic_year_id == academic_year_id)
    if semester:
        filters.append(Timetable.semester == semester)
    if start_date and end_date:
        filters.append(Timetable.start_date.between(start_date, end_date))

    total = db.execute(select(func.count()).select_from(Timetable).where(*filters)).scalar_one()
    items = list(
        db.execute(
            select(Timetable)
            .options(selectinload(Timetable.slots))
            .where(*filters)
            .order_by(Timetable.class_name)
            .offset((page - 1) * limit)
            .limit(limit)
        ).scalars()
    )
    meta = {"total": total, "page": page, "limit": limit, "total_pages": ceil(total / limit) if limit else 0}
    return items, meta


def update_timetable(
    db: Session,
    timetable_id: str,
    payload: TimetableUpdate,
    *,
    merge_gap_days: int = 2,
) -> Timetable:
    timetable = get_timetable(db, timetable_id)
    data = payload.model_dump(exclude_unset=True, exclude={"time_slots"})
    data = {key: value for key, value in data.items() if value is not None or key in NULLABLE_UPDATE_FIELDS}

    class_name = data.get("class_name", timetable.class_name)
    semester = data.get("semester", timetable.semester)
    academic_year_id = data.get("academic_year_id", timetable.academic_year_id)
    if (class_name, semester, academic_year_id) != (
        timetable.class_name,
        timetable.semester,
        timetable.academic_year_id,
    ):
        ensure_unique(db, class_name, semester, academic_year_id, exclude_id=timetable.id)

    if data.get("academic_year_id") not in (None, timetable.academic_year_id):
        require_academic_year(db, data["academic_year_id"])
    if data.get("course_id") not in (None, timetable.course_id):
        require_course(db, data["course_id"])

    hours_changed = False
    student_count = data.get("student_count")
    if student_count is not None and student_count != timetable.student_count:
        data["crowd_class_coefficient"] = crowd_coefficient_for(student_count)
        hours_changed = True
    for key in ("actual_hours", "overtime_coefficient"):
        if key in data and data[key] != getattr(timetable, key):
            hours_changed = True

    if payload.time_slots is not None:
        slots = coalesce_time_slots(payload.time_slots, merge_gap_days)
        ensure_slots_free(db, slots, exclude_id=timetable.id)
        timetable.slots = build_slots(db, slots)
        if timetable.slots and "start_date" not in data:
            data["start_date"] = min(slot.start_date for slot in timetable.slots)
        if timetable.slots and "end_date" not in data:
            data["end_date"] = max(slot.end_date for slot in timetable.slots)

    for key, value in data.items():
        setattr(timetable, key, value)
    if hours_changed:
        timetable.standard_hours = compute_standard_hours(
            timetable.actual_hours,
            timetable.crowd_class_coefficient,
            timetable.overtime_coefficient,
            fallback=timetable.standard_hours,
        )

    db.commit()
    logger.info("Updated timetable %s (%s)", timetable.id, ", ".join(sorted(data)) or "slots")
    return get_timetable(db, timetable.id)


def delete_timetable(db: Session, timetable_id: str) -> None:
    timetable = get_timetable(db, timetable_id)
    db.delete(timetable)
    db.commit()
    logger.info("Deleted timetable %s", timetable_id)


def list_time_slot_codes(db: Session) -> list[str]:
    codes = db.execute(select(TimetableSlot.time_slot).distinct()).scalars()
    return sorted(codes, key=time_slot_sort_key)


def describe_conflict(db: Session, request: ConflictCheckRequest) -> str:
    room_name, building_name = request.room_name, request.building_name
    if request.classroom_id:
        classroom = db.get(Classroom, request.classroom_id)
        if classroom is None:
            raise ResourceNotFoundError("Classroom", request.classroom_id)
        room_name, building_name = classroom.name, classroom.building.name

    check_conflict(
        db,
        room_name,
        building_name,
        request.day_of_week,
        request.time_slot,
        request.start_date,
        request.end_date,
        exclude_id=request.exclude_id,
    )
    return "No schedule conflict"


class TimetableWriter:
    label = "Timetable"

    def write(self, db: Session, record: ScheduleRecord, refs: ResolvedReferences) -> Timetable:
        return add_timetable(db, record_fields(record, refs), list(record.time_slots))


def import_timetables(
    db: Session,
    content: bytes,
    *,
    filename: str,
    settings: Settings,
    semester: Semester | None = None,
    academic_year_id: str | None = None,
) -> ImportReport:
    logger.info("Timetable import started: %s (%d bytes)", filename, len(content))
    tables = extract_tables(
        content,
        filename=filename,
        kind=DocumentKind.spreadsheet,
        skip_markers=tuple(settings.import_skip_sheet_markers),
    )
    records = tuple(
        chain.from_iterable(
            reduce_rows(table, semester_override=semester, merge_gap_days=settings.slot_merge_gap_days)
            for table in tables
        )
    )
    logger.info("Timetable import: %d record(s) read from %s", len(records), filename)
    return commit_records(
        db,
        records,
        TimetableWriter(),
        academic_year_id=academic_year_id,
        error_limit=settings.import_error_limit,
    )
