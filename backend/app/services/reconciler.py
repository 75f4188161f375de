from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Iterable
import uuid

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import ReconciliationError, RowError
from app.models.academic_year import AcademicYear, Semester
from app.models.course import Course
from app.services.row_reducer import ScheduleRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedReferences:
    course: Course
    academic_year: AcademicYear


def course_key(name: str, semester: Semester | None, credits: int | None) -> tuple[str, str | None, int]:
    return (name.casefold(), semester.value if semester else None, credits or 0)


def generated_course_code() -> str:
    """Code for a course created from a document row that carries none."""
    return f"AUTO-{uuid.uuid4().hex[:8].upper()}"


class EntityReconciler:
    """Resolve course and academic-year references of a batch of records.

    Everything the batch can refer to is loaded up front with one ``IN`` query
    per entity, missing entities are created once and flushed, and ids are
    handed back per record. Records of the same batch that need the same new
    course share the single created row.

    Every ``flush`` runs in its own SAVEPOINT, so a reference row the database
    refuses costs only the record that asked for it.
    """

    def __init__(self, db: Session):
        self.db = db
        self.courses_by_key: dict[tuple[str, str | None, int], Course] = {}
        self.courses_by_code: dict[str, Course] = {}
        self.years_by_code: dict[str, AcademicYear] = {}
        self.pending: list[Course | AcademicYear] = []

    def preload(self, records: Iterable[ScheduleRecord]) -> None:
        records = list(records)
        codes = {record.course_code for record in records if record.course_code}
        names = {record.course_name for record in records if record.course_name}
        tokens = {record.academic_year_token for record in records if record.academic_year_token}

        if codes:
            for course in self.db.execute(select(Course).where(Course.course_code.in_(codes))).scalars():
                self._index_course(course)
        if names:
            for course in self.db.execute(select(Course).where(Course.course_name.in_(names))).scalars():
                self._index_course(course)
        if tokens:
            for year in self.db.execute(select(AcademicYear).where(AcademicYear.year_code.in_(tokens))).scalars():
                self.years_by_code[year.year_code] = year
        logger.debug(
            "Preloaded %d course(s) and %d academic year(s) for %d record(s)",
            len(self.courses_by_code),
            len(self.years_by_code),
            len(records),
        )

    def _index_course(self, course: Course) -> None:
        self.courses_by_code.setdefault(course.course_code, course)
        self.courses_by_key.setdefault(course_key(course.course_name, course.semester, course.credits), course)

    def _forget(self, entity: Course | AcademicYear) -> None:
        if entity in self.db:
            self.db.expunge(entity)
        if isinstance(entity, AcademicYear):
            if self.years_by_code.get(entity.year_code) is entity:
                del self.years_by_code[entity.year_code]
            return
        for cache in (self.courses_by_code, self.courses_by_key):
            for key in [key for key, cached in cache.items() if cached is entity]:
                del cache[key]

    def course_for(self, record: ScheduleRecord) -> Course:
        key = course_key(record.course_name, record.semester, record.credits)
        course = self.courses_by_key.get(key)
        if course is None and record.course_code:
            course = self.courses_by_code.get(record.course_code)
        if course is not None:
            return course

        course = Course(
            course_code=record.course_code or generated_course_code(),
            course_name=record.course_name,
            credits=record.credits or 0,
            semester=record.semester,
        )
        self.db.add(course)
        self.pending.append(course)
        self._index_course(course)
        return course

    def academic_year_for(self, token: str) -> AcademicYear:
        year = self.years_by_code.get(token)
        if year is None:
            year = AcademicYear(year_code=token)
            self.db.add(year)
            self.pending.append(year)
            self.years_by_code[token] = year
        return year

    def flush(self) -> None:
        if not self.pending:
            return
        pending, self.pending = self.pending, []
        try:
            with self.db.begin_nested():
                self.db.flush()
        except SQLAlchemyError:
            for entity in pending:
                self._forget(entity)
            raise
        logger.info("Created %d reference row(s) during reconciliation", len(pending))

    def resolve(self, record: ScheduleRecord, *, academic_year: AcademicYear | None = None) -> ResolvedReferences:
        """Course and academic year for ``record``, queuing whatever is missing.

        Queued entities get their ids on the next ``flush``.
        """
        if record.course_code and len(record.course_code) > Course.__table__.c.course_code.type.length:
            raise RowError(f"course code {record.course_code!r} is too long", row=record.row_number)
        if academic_year is None:
            if not record.academic_year_token:
                raise RowError("missing academic year info", row=record.row_number)
            academic_year = self.academic_year_for(record.academic_year_token)
        course = self.course_for(record)
        return ResolvedReferences(course=course, academic_year=academic_year)


def require_course(db: Session, course_id: str) -> Course:
    course = db.get(Course, course_id)
    if course is None:
        raise ReconciliationError("Course", course_id)
    return course


def require_academic_year(db: Session, academic_year_id: str) -> AcademicYear:
    year = db.get(AcademicYear, academic_year_id)
    if year is None:
        raise ReconciliationError("AcademicYear", academic_year_id)
    return year
