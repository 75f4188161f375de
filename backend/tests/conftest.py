from datetime import date
from io import BytesIO
import os

# The application engine is built at import time; keep it off PostgreSQL under test.
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite://")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from openpyxl import Workbook  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import app.models  # noqa: E402,F401
from app.api.deps import get_db  # noqa: E402
from app.db.base import Base  # noqa: E402
from app.db.session import enable_sqlite_savepoints  # noqa: E402
from app.main import app  # noqa: E402
from app.models.academic_year import AcademicYear, Semester  # noqa: E402
from app.models.course import Course  # noqa: E402

TIMETABLE_HEADER = [
    "TT",
    "Mã HP",
    "Số TC",
    "Lớp học phần",
    "Thứ",
    "Tiết",
    "Phòng",
    "Tòa nhà",
    "Ngày BĐ",
    "Ngày KT",
    "Giảng viên",
]

XLSX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_savepoints(engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def db_session(engine):
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = TestingSessionLocal()
    yield db
    db.close()


@pytest.fixture()
def client(db_session):
    # Requests share the test session: with one in-memory connection, a second
    # session would issue BEGIN while the first still holds a transaction.
    def override_get_db():
        try:
            yield db_session
        finally:
            db_session.rollback()

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture()
def course(db_session) -> Course:
    course = Course(course_code="INT1306", course_name="Networks", credits=3, semester=Semester.term_1_1)
    db_session.add(course)
    db_session.commit()
    return course


@pytest.fixture()
def academic_year(db_session) -> AcademicYear:
    year = AcademicYear(year_code="2025-2026")
    db_session.add(year)
    db_session.commit()
    return year


def workbook_bytes(*sheets: tuple[str, list[list]]) -> bytes:
    workbook = Workbook()
    workbook.remove(workbook.active)
    for title, rows in sheets:
        worksheet = workbook.create_sheet(title=title)
        for row in rows:
            worksheet.append(row)
    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def timetable_row(
    order,
    course_code,
    credits,
    class_name,
    day,
    slot,
    room,
    building,
    start: date | None,
    end: date | None,
    lecturer=None,
) -> list:
    return [order, course_code, credits, class_name, day, slot, room, building, start, end, lecturer]


@pytest.fixture()
def make_workbook():
    return workbook_bytes


@pytest.fixture()
def timetable_workbook():
    def build(rows: list[list], *, title: str = "TKB", preamble: list[list] | None = None) -> bytes:
        return workbook_bytes((title, [*(preamble or []), TIMETABLE_HEADER, *rows]))

    return build
