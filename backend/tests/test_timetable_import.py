from datetime import date
from io import BytesIO
from types import SimpleNamespace

from fastapi import HTTPException, UploadFile
import pytest
from sqlalchemy import select
from starlette.datastructures import Headers

from app.api import deps
from app.api.deps import SPREADSHEET_CONTENT_TYPES, SPREADSHEET_EXTENSIONS, read_upload
from app.models.building import Building, Classroom
from app.schemas.timetable import ImportRowError
from app.services.batch_committer import ImportReport
from conftest import XLSX_CONTENT_TYPE, timetable_row

ROWS = [
    timetable_row(1, "INT1306", 3, "Networks-1-25(A1801)", 2, "1-3", "301", "A", date(2025, 9, 8), date(2025, 10, 6), "Dr. An"),
    timetable_row(None, None, None, None, 2, "1-3", "301", "A", date(2025, 10, 7), date(2025, 11, 3)),
    timetable_row(2, "INT1307", 2, "Databases-1-25(A1802)", 4, "4-6", "302", "A", date(2025, 9, 10), date(2025, 11, 5), "Dr. Binh"),
    timetable_row(3, "PHY1001", 2, "Physical Education-1-25(A1803)", 6, "7-9", "Sân bãi", None, date(2025, 9, 12), date(2025, 11, 7)),
]


def _upload(client, content: bytes, filename: str = "tkb.xlsx", content_type: str = XLSX_CONTENT_TYPE, **form):
    return client.post(
        "/api/timetables/upload",
        files={"file": (filename, content, content_type)},
        data=form,
    )


def test_upload_creates_timetables_and_rooms(client, db_session, timetable_workbook):
    content = timetable_workbook(ROWS, preamble=[["THỜI KHÓA BIỂU HỌC KỲ 1"], []])

    response = _upload(client, content)

    assert response.status_code == 201
    assert response.json() == {"success": 3, "skipped": 0, "errors": [], "error_count": 0}

    listing = client.get("/api/timetables/", params={"limit": 10}).json()
    assert listing["meta"]["total"] == 3
    networks = next(item for item in listing["data"] if item["class_name"].startswith("Networks"))
    assert networks["semester"] == "1.2"
    assert networks["lecturer_name"] == "Dr. An"
    assert [(slot["day_of_week"], slot["time_slot"], slot["start_date"], slot["end_date"]) for slot in networks["time_slots"]] == [
        (2, "1->3", "2025-09-08", "2025-11-03")
    ]

    building = db_session.execute(select(Building).where(Building.name == "A")).scalar_one()
    rooms = db_session.execute(select(Classroom.name).where(Classroom.building_id == building.id)).scalars().all()
    assert sorted(rooms) == ["301", "302"]


def test_reimporting_the_same_file_skips_every_record(client, timetable_workbook):
    content = timetable_workbook(ROWS)

    assert _upload(client, content).json()["success"] == 3
    again = _upload(client, content)

    assert again.status_code == 201
    assert again.json() == {"success": 0, "skipped": 3, "errors": [], "error_count": 0}


def test_room_clash_inside_one_batch_rejects_the_later_record(client, timetable_workbook):
    rows = [
        timetable_row(1, "INT1306", 3, "Networks-1-25(A1801)", 2, "1-3", "301", "A", date(2025, 9, 8), date(2025, 10, 6)),
        timetable_row(2, "INT1307", 2, "Databases-1-25(A1802)", 2, "1-3", "301", "A", date(2025, 9, 29), date(2025, 11, 3)),
    ]

    response = _upload(client, timetable_workbook(rows))

    body = response.json()
    assert body["success"] == 1
    assert body["error_count"] == 1
    (error,) = body["errors"]
    assert error["row"] == 3
    assert error["data"]["class_name"] == "Databases-1-25(A1802)"
    assert "Room 301 (A) is already booked on day 2, periods 1->3" in error["reason"]


def test_rows_missing_dates_are_reported_and_others_still_saved(client, timetable_workbook):
    rows = [
        timetable_row(1, "INT1306", 3, "Networks", 2, "1-3", "301", "A", None, None),
        timetable_row(2, "INT1307", 2, "Databases-1-25(A1802)", 3, "1-3", "301", "A", date(2025, 9, 9), date(2025, 10, 7)),
    ]

    body = _upload(client, timetable_workbook(rows)).json()

    assert body["success"] == 1
    (error,) = body["errors"]
    assert error["row"] == 2
    assert error["reason"] == "row 2: time slot 1->3 has no start/end date; missing semester info"


def test_refused_course_row_fails_alone(client, course, timetable_workbook, monkeypatch):
    monkeypatch.setattr("app.services.reconciler.generated_course_code", lambda: "INT1306")
    rows = [
        timetable_row(1, None, 2, "Databases-1-25(A1802)", 3, "1-3", "302", "A", date(2025, 9, 9), date(2025, 10, 7)),
        timetable_row(2, "INT1306", 3, "Networks-1-25(A1801)", 2, "1-3", "301", "A", date(2025, 9, 8), date(2025, 10, 6)),
    ]

    response = _upload(client, timetable_workbook(rows))

    assert response.status_code == 201
    body = response.json()
    assert body["success"] == 1
    (error,) = body["errors"]
    assert error["row"] == 2
    assert error["reason"] == "database error: IntegrityError"
    (item,) = client.get("/api/timetables/").json()["data"]
    assert item["class_name"] == "Networks-1-25(A1801)"
    assert item["course_id"] == course.id


def test_semester_and_academic_year_form_fields(client, academic_year, timetable_workbook):
    rows = [timetable_row(1, "INT1306", 3, "Networks", 2, "1-3", "301", "A", date(2025, 9, 8), date(2025, 10, 6))]

    response = _upload(client, timetable_workbook(rows), semester="2.1", academic_year_id=academic_year.id)

    assert response.json()["success"] == 1
    (item,) = client.get("/api/timetables/").json()["data"]
    assert item["semester"] == "2.1"
    assert item["academic_year_id"] == academic_year.id


def test_unknown_academic_year_aborts_the_import(client, timetable_workbook):
    rows = [timetable_row(1, "INT1306", 3, "Networks", 2, "1-3", "301", "A", date(2025, 9, 8), date(2025, 10, 6))]

    response = _upload(client, timetable_workbook(rows), academic_year_id="missing")

    assert response.status_code == 404
    assert response.json()["details"] == {"resource_type": "AcademicYear", "resource_id": "missing"}
    assert client.get("/api/timetables/").json()["meta"]["total"] == 0


def test_unsupported_file_type_is_rejected(client):
    response = _upload(client, b"TT,Ma HP\n1,INT1306\n", filename="tkb.csv", content_type="text/csv")

    assert response.status_code == 415


def test_workbook_without_header_is_a_bad_request(client, make_workbook):
    content = make_workbook(("Sheet", [["Danh sách lớp"], ["Networks", "301"]]))

    response = _upload(client, content)

    assert response.status_code == 400
    assert response.json()["message"].startswith("Header not found")


def test_empty_upload_is_rejected(client):
    assert _upload(client, b"").status_code == 400


def test_import_report_keeps_counting_past_the_error_limit():
    report = ImportReport(error_limit=2)
    for row in range(5):
        report.add_error(row, None, "missing semester info")

    summary = report.summary()
    assert summary.error_count == 5
    assert summary.errors == [ImportRowError(row=0, reason="missing semester info"), ImportRowError(row=1, reason="missing semester info")]


def _upload_file(content: bytes) -> UploadFile:
    return UploadFile(BytesIO(content), filename="tkb.xlsx", headers=Headers({"content-type": XLSX_CONTENT_TYPE}))


def test_read_upload_returns_the_file_bytes():
    content = read_upload(_upload_file(b"PK\x03\x04"), extensions=SPREADSHEET_EXTENSIONS, content_types=SPREADSHEET_CONTENT_TYPES)

    assert content == b"PK\x03\x04"


def test_read_upload_rejects_files_over_the_limit(monkeypatch):
    monkeypatch.setattr(deps, "get_settings", lambda: SimpleNamespace(max_upload_size_bytes=4))

    with pytest.raises(HTTPException) as exc_info:
        read_upload(_upload_file(b"12345"), extensions=SPREADSHEET_EXTENSIONS, content_types=SPREADSHEET_CONTENT_TYPES)

    assert exc_info.value.status_code == 413
