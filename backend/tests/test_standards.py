from datetime import date
from types import SimpleNamespace

from app.services import tabular_extractor
from conftest import XLSX_CONTENT_TYPE, timetable_row

STANDARD_HEADER = ["TT", "Mã HP", "Số TC", "Lớp học phần", "Số SV", "LL thực", "HS lớp đông", "HS ngoài giờ", "QC"]
STANDARD_ROWS = [
    [1, "INT1306", 3, "Networks-1-25(A1801)", 55, 30, 1.2, 1, 36],
    [2, "INT1307", 2, "Databases-1-25(A1802)", 30, 20, None, 1.5, None],
]
DOCX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


def _upload(client, content: bytes, filename: str, content_type: str, **form):
    return client.post("/api/standards/upload", files={"file": (filename, content, content_type)}, data=form)


def test_standards_upload_from_spreadsheet(client, make_workbook):
    content = make_workbook(("Định mức", [STANDARD_HEADER, *STANDARD_ROWS]))

    response = _upload(client, content, "standards.xlsx", XLSX_CONTENT_TYPE, semester="1.1")

    assert response.status_code == 201
    assert response.json() == {"success": 2, "skipped": 0, "errors": [], "error_count": 0}

    listing = client.get("/api/standards/").json()
    assert listing["meta"]["total"] == 2
    databases, networks = listing["data"]
    assert networks["standard_hours"] == 36.0
    assert networks["student_count"] == 55
    assert databases["standard_hours"] == 30.0
    assert databases["semester"] == "1.1"
    assert databases["source_timetable_id"] is None

    again = _upload(client, content, "standards.xlsx", XLSX_CONTENT_TYPE, semester="1.1")
    assert again.json()["skipped"] == 2


def test_standards_upload_without_semester_reports_rows(client, make_workbook):
    content = make_workbook(("Định mức", [STANDARD_HEADER, *STANDARD_ROWS]))

    body = _upload(client, content, "standards.xlsx", XLSX_CONTENT_TYPE).json()

    assert body["success"] == 0
    assert body["error_count"] == 2
    assert {error["reason"] for error in body["errors"]} == {"missing semester info"}
    assert [error["row"] for error in body["errors"]] == [2, 3]


def test_standards_upload_from_word_document(client, monkeypatch):
    header = "".join(f"<th>{cell}</th>" for cell in STANDARD_HEADER)
    row = "".join(
        f"<td>{cell}</td>" for cell in [1, "INT1306", 3, "Networks-1-25(A1801)", 120, 45, "1,5", 1, ""]
    )
    html = f"<p>BẢNG ĐỊNH MỨC</p><table><tr>{header}</tr><tr>{row}</tr></table>"
    monkeypatch.setattr(
        tabular_extractor.mammoth,
        "convert_to_html",
        lambda _: SimpleNamespace(value=html, messages=[]),
    )

    response = _upload(client, b"PK\x03\x04docx", "standards.docx", DOCX_CONTENT_TYPE, semester="2.1")

    assert response.json()["success"] == 1
    (standard,) = client.get("/api/standards/", params={"semester": "2.1"}).json()["data"]
    assert standard["crowd_class_coefficient"] == 1.5
    assert standard["standard_hours"] == 67.5


def test_legacy_word_document_is_a_bad_request(client):
    response = _upload(client, b"\xd0\xcf\x11\xe0", "standards.doc", "application/msword", semester="1.1")

    assert response.status_code == 400


def test_get_and_delete_standard(client, make_workbook):
    content = make_workbook(("Định mức", [STANDARD_HEADER, STANDARD_ROWS[0]]))
    _upload(client, content, "standards.xlsx", XLSX_CONTENT_TYPE, semester="1.1")
    (standard,) = client.get("/api/standards/").json()["data"]

    assert client.get(f"/api/standards/{standard['id']}").json()["class_name"] == "Networks-1-25(A1801)"
    assert client.delete(f"/api/standards/{standard['id']}").status_code == 204
    assert client.get(f"/api/standards/{standard['id']}").status_code == 404


def _import_timetables(client, timetable_workbook):
    rows = [
        timetable_row(1, "INT1306", 3, "Networks-1-25(A1801)", 2, "1-3", "301", "A", date(2025, 9, 8), date(2025, 10, 6)),
        timetable_row(2, "INT1307", 2, "Databases-1-25(A1802)", 3, "1-3", "301", "A", date(2025, 9, 9), date(2025, 10, 7)),
    ]
    client.post(
        "/api/timetables/upload",
        files={"file": ("tkb.xlsx", timetable_workbook(rows), XLSX_CONTENT_TYPE)},
    )


def test_promote_timetables_copies_each_timetable_once(client, timetable_workbook):
    _import_timetables(client, timetable_workbook)

    first = client.post("/api/standards/from-timetables")
    assert first.status_code == 200
    assert first.json() == {"success": 2, "skipped": 0, "errors": []}

    standards = client.get("/api/standards/").json()["data"]
    assert all(item["source_timetable_id"] for item in standards)
    timetables = client.get("/api/timetables/").json()["data"]
    assert all(item["is_standard"] for item in timetables)

    assert client.post("/api/standards/from-timetables").json() == {"success": 0, "skipped": 0, "errors": []}


def test_promote_skips_timetables_that_already_have_a_standard(client, make_workbook, timetable_workbook):
    _import_timetables(client, timetable_workbook)
    content = make_workbook(("Định mức", [STANDARD_HEADER, STANDARD_ROWS[0]]))
    _upload(client, content, "standards.xlsx", XLSX_CONTENT_TYPE, semester="1.1")

    body = client.post("/api/standards/from-timetables").json()

    assert body == {"success": 1, "skipped": 1, "errors": []}
    assert client.get("/api/standards/").json()["meta"]["total"] == 2
