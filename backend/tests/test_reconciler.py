from datetime import date

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from app.core.exceptions import ReconciliationError, RowError
from app.models.academic_year import AcademicYear, Semester
from app.models.course import Course
from app.services import reconciler as reconciler_module
from app.services.reconciler import EntityReconciler, course_key, require_academic_year, require_course
from app.services.row_reducer import ScheduleRecord


def _record(row_number, class_name, **overrides) -> ScheduleRecord:
    fields = {
        "row_number": row_number,
        "class_name": class_name,
        "course_code": None,
        "credits": 3,
        "semester": Semester.term_1_1,
        "start_date": date(2025, 9, 8),
        "end_date": date(2025, 10, 6),
        "academic_year_token": "2025-2026",
    }
    fields.update(overrides)
    return ScheduleRecord(**fields)


def test_course_key_ignores_case():
    assert course_key("Networks", Semester.term_1_1, 3) == course_key("NETWORKS", Semester.term_1_1, 3)
    assert course_key("Networks", None, None) == ("networks", None, 0)


def test_records_of_one_batch_share_created_course_and_year(db_session):
    records = [
        _record(2, "Databases-1-25(A1801)"),
        _record(5, "Databases-2-25(A1802)"),
    ]
    reconciler = EntityReconciler(db_session)
    reconciler.preload(records)

    first, second = (reconciler.resolve(record) for record in records)
    reconciler.flush()

    assert first.course is second.course
    assert first.course.id is not None
    assert first.course.course_name == "Databases"
    assert first.course.course_code.startswith("AUTO-")
    assert first.academic_year is second.academic_year
    assert first.academic_year.year_code == "2025-2026"
    assert db_session.execute(select(func.count()).select_from(Course)).scalar_one() == 1
    assert db_session.execute(select(func.count()).select_from(AcademicYear)).scalar_one() == 1


def test_existing_course_is_matched_by_code(db_session, course, academic_year):
    record = _record(2, "Computer Networks-1-25", course_code="INT1306", credits=4)
    reconciler = EntityReconciler(db_session)
    reconciler.preload([record])

    refs = reconciler.resolve(record)

    assert refs.course.id == course.id
    assert refs.academic_year.id == academic_year.id
    assert reconciler.pending == []


def test_existing_course_is_matched_by_name_semester_and_credits(db_session, course):
    record = _record(2, "Networks-3-25(A1803)")
    reconciler = EntityReconciler(db_session)
    reconciler.preload([record])

    assert reconciler.resolve(record).course.id == course.id


def test_explicit_academic_year_wins_over_token(db_session, academic_year):
    record = _record(2, "Networks", academic_year_token=None)
    reconciler = EntityReconciler(db_session)

    refs = reconciler.resolve(record, academic_year=academic_year)

    assert refs.academic_year is academic_year


def test_record_without_year_token_is_a_row_error(db_session):
    record = _record(7, "Networks", academic_year_token=None)

    with pytest.raises(RowError) as exc_info:
        EntityReconciler(db_session).resolve(record)

    assert exc_info.value.message == "missing academic year info"
    assert exc_info.value.row == 7


def test_row_error_queues_no_course(db_session):
    reconciler = EntityReconciler(db_session)

    with pytest.raises(RowError):
        reconciler.resolve(_record(7, "Compilers", academic_year_token=None))

    assert reconciler.pending == []
    assert reconciler.courses_by_key == {}


def test_overlong_course_code_is_a_row_error(db_session):
    reconciler = EntityReconciler(db_session)

    with pytest.raises(RowError) as exc_info:
        reconciler.resolve(_record(4, "Networks", course_code="INT" * 20))

    assert exc_info.value.row == 4
    assert "is too long" in exc_info.value.message
    assert reconciler.pending == []


def test_refused_reference_rows_are_forgotten(db_session, course, monkeypatch):
    monkeypatch.setattr(reconciler_module, "generated_course_code", lambda: "INT1306")
    record = _record(2, "Databases-1-25(A1801)")
    reconciler = EntityReconciler(db_session)
    reconciler.preload([record])
    reconciler.resolve(record)

    with pytest.raises(IntegrityError):
        reconciler.flush()

    assert reconciler.pending == []
    assert reconciler.courses_by_code == {}
    assert reconciler.courses_by_key == {}
    assert reconciler.years_by_code == {}

    monkeypatch.setattr(reconciler_module, "generated_course_code", lambda: "AUTO-RETRY")
    refs = reconciler.resolve(record)
    reconciler.flush()

    assert refs.course.course_code == "AUTO-RETRY"
    assert refs.academic_year.id is not None
    assert db_session.execute(select(func.count()).select_from(Course)).scalar_one() == 2


def test_require_helpers_raise_for_unknown_ids(db_session, course, academic_year):
    assert require_course(db_session, course.id) is course
    assert require_academic_year(db_session, academic_year.id) is academic_year

    with pytest.raises(ReconciliationError) as exc_info:
        require_course(db_session, "missing")
    assert exc_info.value.status_code == 404
    with pytest.raises(ReconciliationError):
        require_academic_year(db_session, "missing")
