"""Commit reduced schedule records with per-row accounting.

An import runs in one transaction. References (courses, academic years) are
resolved record by record, each flush in a SAVEPOINT, before any timetable is
written. Every record is then written inside its own SAVEPOINT so that a
failing record rolls back alone and later records of the same batch see the
ones already written.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Any, Iterable, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import AppError, DuplicateError
from app.schemas.timetable import ImportRowError, ImportSummary
from app.services.reconciler import EntityReconciler, ResolvedReferences, require_academic_year
from app.services.row_reducer import ScheduleRecord

logger = logging.getLogger(__name__)


class RecordWriter(Protocol):
    label: str

    def write(self, db: Session, record: ScheduleRecord, refs: ResolvedReferences) -> Any:
        """Persist one record; raise ``DuplicateError`` when it already exists."""


@dataclass
class ImportReport:
    error_limit: int = 200
    success: int = 0
    skipped: int = 0
    errors: list[ImportRowError] = field(default_factory=list)
    error_count: int = 0

    def add_error(self, row: int | None, data: dict | None, reason: str) -> None:
        self.error_count += 1
        if len(self.errors) < self.error_limit:
            self.errors.append(ImportRowError(row=row, data=data, reason=reason))

    def summary(self) -> ImportSummary:
        return ImportSummary(
            success=self.success,
            skipped=self.skipped,
            errors=list(self.errors),
            error_count=self.error_count,
        )


def record_fields(record: ScheduleRecord, refs: ResolvedReferences) -> dict[str, Any]:
    return {
        "class_name": record.class_name,
        "semester": record.semester,
        "class_type": record.class_type,
        "student_count": record.student_count,
        "theory_hours": record.theory_hours,
        "actual_hours": record.actual_hours,
        "crowd_class_coefficient": record.crowd_class_coefficient,
        "overtime_coefficient": record.overtime_coefficient,
        "standard_hours": record.standard_hours,
        "hours_per_week": record.hours_per_week,
        "lecturer_name": record.lecturer_name,
        "start_date": record.start_date,
        "end_date": record.end_date,
        "notes": record.notes,
        "course_id": refs.course.id,
        "academic_year_id": refs.academic_year.id,
    }


def commit_records(
    db: Session,
    records: Iterable[ScheduleRecord],
    writer: RecordWriter,
    *,
    academic_year_id: str | None = None,
    error_limit: int = 200,
) -> ImportReport:
    records = list(records)
    report = ImportReport(error_limit=error_limit)
    academic_year = require_academic_year(db, academic_year_id) if academic_year_id else None

    reconciler = EntityReconciler(db)
    reconciler.preload(record for record in records if not record.problems)

    planned: list[tuple[ScheduleRecord, ResolvedReferences]] = []
    for record in records:
        if record.problems:
            logger.warning("%s row %s rejected: %s", writer.label, record.row_number, "; ".join(record.problems))
            report.add_error(record.row_number, record.summary(), "; ".join(record.problems))
            continue
        try:
            refs = reconciler.resolve(record, academic_year=academic_year)
            reconciler.flush()
        except AppError as exc:
            report.add_error(record.row_number, record.summary(), exc.message)
        except SQLAlchemyError as exc:
            logger.warning("%s row %s references failed to save: %s", writer.label, record.row_number, exc)
            report.add_error(record.row_number, record.summary(), f"database error: {exc.__class__.__name__}")
        else:
            planned.append((record, refs))

    for record, refs in planned:
        try:
            with db.begin_nested():
                writer.write(db, record, refs)
        except DuplicateError:
            report.skipped += 1
        except AppError as exc:
            logger.warning("%s row %s rejected: %s", writer.label, record.row_number, exc.message)
            report.add_error(record.row_number, record.summary(), exc.message)
        except SQLAlchemyError as exc:
            logger.warning("%s row %s failed to save: %s", writer.label, record.row_number, exc)
            report.add_error(record.row_number, record.summary(), f"database error: {exc.__class__.__name__}")
        else:
            report.success += 1

    db.commit()
    logger.info(
        "%s import finished: %d created, %d skipped, %d error(s)",
        writer.label,
        report.success,
        report.skipped,
        report.error_count,
    )
    return report
