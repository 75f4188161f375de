from app.core.exceptions import (
    AppError,
    ConflictError,
    DuplicateError,
    ExtractionError,
    ReconciliationError,
    ResourceNotFoundError,
    RowError,
)


def test_app_error_defaults():
    err = AppError("Generic error")
    assert err.status_code == 500
    assert err.details == {}


def test_domain_error_status_codes():
    assert ExtractionError("Header not found in TKB").status_code == 400
    assert RowError("missing semester info", row=7).status_code == 422
    assert DuplicateError("Networks-1-25(A1801)", "1.1").status_code == 409
    assert ConflictError("301", "A", 2, "1->3").status_code == 409
    assert ReconciliationError("Course", "missing").status_code == 404
    assert ResourceNotFoundError("Timetable", "missing").status_code == 404


def test_row_error_keeps_row_number():
    err = RowError("missing semester info", row=12)
    assert err.row == 12
    assert err.details == {"row": 12}
    assert isinstance(err, AppError)


def test_conflict_error_names_room_and_building():
    err = ConflictError("301", "A", 2, "1->3", details={"timetable_id": "t-1"})
    assert "301 (A)" in err.message
    assert err.details["timetable_id"] == "t-1"
