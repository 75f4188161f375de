from __future__ import annotations

from itertools import chain
import logging
from math import ceil

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import Settings
from app.core.exceptions import DuplicateError, ResourceNotFoundError
from app.models.academic_year import Semester
from app.models.standard import TeachingStandard
from app.models.timetable import Timetable
from app.schemas.standard import PromotionError, PromotionSummary
from app.services.batch_committer import ImportReport, commit_records, record_fields
from app.services.reconciler import ResolvedReferences
from app.services.row_reducer import ScheduleRecord, reduce_rows
from app.services.tabular_extractor import DocumentKind, extract_tables

logger = logging.getLogger(__name__)

WORD_EXTENSIONS = (".docx", ".doc")

# Columns a promoted standard takes over from its timetable.
PROMOTED_FIELDS = (
    "class_name",
    "semester",
    "class_type",
    "student_count",
    "theory_hours",
    "actual_hours",
    "crowd_class_coefficient",
    "overtime_coefficient",
    "standard_hours",
    "hours_per_week",
    "lecturer_name",
    "start_date",
    "end_date",
    "notes",
    "course_id",
    "academic_year_id",
)


def standard_exists(db: Session, class_name: str, semester: Semester, academic_year_id: str | None) -> bool:
    stmt = select(TeachingStandard.id).where(
        TeachingStandard.class_name == class_name,
        TeachingStandard.semester == semester,
    )
    if academic_year_id is None:
        stmt = stmt.where(TeachingStandard.academic_year_id.is_(None))
    else:
        stmt = stmt.where(TeachingStandard.academic_year_id == academic_year_id)
    return db.execute(stmt).first() is not None


class StandardWriter:
    label = "Standard"

    def write(self, db: Session, record: ScheduleRecord, refs: ResolvedReferences) -> TeachingStandard:
        fields = record_fields(record, refs)
        if standard_exists(db, fields["class_name"], fields["semester"], fields["academic_year_id"]):
            raise DuplicateError(fields["class_name"], fields["semester"].value)
        standard = TeachingStandard(**fields)
        db.add(standard)
        db.flush()
        return standard


def import_standards(
    db: Session,
    content: bytes,
    *,
    filename: str,
    settings: Settings,
    semester: Semester | None = None,
    academic_year_id: str | None = None,
) -> ImportReport:
    kind = DocumentKind.word if (filename or "").lower().endswith(WORD_EXTENSIONS) else DocumentKind.spreadsheet
    logger.info("Standard import started: %s (%s, %d bytes)", filename, kind.value, len(content))
    tables = extract_tables(
        content,
        filename=filename,
        kind=kind,
        skip_markers=tuple(settings.import_skip_sheet_markers),
    )
    records = tuple(
        chain.from_iterable(
            reduce_rows(table, semester_override=semester, merge_gap_days=settings.slot_merge_gap_days)
            for table in tables
        )
    )
    return commit_records(
        db,
        records,
        StandardWriter(),
        academic_year_id=academic_year_id,
        error_limit=settings.import_error_limit,
    )


def get_standard(db: Session, standard_id: str) -> TeachingStandard:
    standard = db.get(TeachingStandard, standard_id)
    if standard is None:
        raise ResourceNotFoundError("Standard", standard_id)
    return standard


def list_standards(
    db: Session,
    *,
    page: int = 1,
    limit: int = 20,
    class_name: str | None = None,
    semester: Semester | None = None,
    academic_year_id: str | None = None,
) -> tuple[list[TeachingStandard], dict[str, int]]:
    filters = []
    if class_name:
        filters.append(TeachingStandard.class_name.ilike(f"%{class_name}%"))
    if semester:
        filters.append(TeachingStandard.semester == semester)
    if academic_year_id:
        filters.append(TeachingStandard.academic_year_id == academic_year_id)

    total = db.execute(select(func.count()).select_from(TeachingStandard).where(*filters)).scalar_one()
    items = list(
        db.execute(
            select(TeachingStandard)
            .where(*filters)
            .order_by(TeachingStandard.class_name)
            .offset((page - 1) * limit)
            .limit(limit)
        ).scalars()
    )
    return items, {"total": total, "page": page, "limit": limit, "total_pages": ceil(total / limit) if limit else 0}


def delete_standard(db: Session, standard_id: str) -> None:
    standard = get_standard(db, standard_id)
    db.delete(standard)
    db.commit()
    logger.info("Deleted standard %s", standard_id)


def promote_timetables(db: Session) -> PromotionSummary:
    """Copy every timetable not yet marked as standard into a standard record.

    A timetable whose class/semester/year already has a standard is only
    marked and counted as skipped.
    """
    summary = PromotionSummary()
    timetables = db.execute(
        select(Timetable).where(Timetable.is_standard.is_(False)).order_by(Timetable.class_name)
    ).scalars().all()

    for timetable in timetables:
        try:
            with db.begin_nested():
                if standard_exists(db, timetable.class_name, timetable.semester, timetable.academic_year_id):
                    timetable.is_standard = True
                    db.flush()
                    summary.skipped += 1
                    continue
                fields = {name: getattr(timetable, name) for name in PROMOTED_FIELDS}
                db.add(TeachingStandard(source_timetable_id=timetable.id, **fields))
                timetable.is_standard = True
                db.flush()
        except SQLAlchemyError as exc:
            logger.warning("Could not promote timetable %s: %s", timetable.id, exc)
            summary.errors.append(
                PromotionError(
                    timetable_id=timetable.id,
                    class_name=timetable.class_name,
                    error=f"database error: {exc.__class__.__name__}",
                )
            )
        else:
            summary.success += 1

    db.commit()
    logger.info(
        "Promoted %d timetable(s) to standards, %d skipped, %d error(s)",
        summary.success,
        summary.skipped,
        len(summary.errors),
    )
    return summary
