from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from io import BytesIO
import logging
from typing import Any, Callable

from bs4 import BeautifulSoup
import mammoth
from openpyxl import load_workbook
from openpyxl.utils.datetime import CALENDAR_MAC_1904, CALENDAR_WINDOWS_1900
import xlrd

from app.core.exceptions import ExtractionError
from app.services.cell_values import cell_text, normalize_text

logger = logging.getLogger(__name__)

WORD_FALLBACK_MIN_COLUMNS = 10


class DocumentKind(str, Enum):
    spreadsheet = "spreadsheet"
    word = "word"


@dataclass(frozen=True)
class ExtractedTable:
    name: str
    header_index: int
    header: list[str]
    rows: list[list[Any]]
    column_map: dict[str, int]
    epoch: datetime = CALENDAR_WINDOWS_1900
    first_row_number: int = field(default=0)

    def has_columns(self, *names: str) -> bool:
        return all(name in self.column_map for name in names)


def _contains(*needles: str) -> Callable[[str], bool]:
    return lambda header: any(needle in header for needle in needles)


def _all_of(*needles: str) -> Callable[[str], bool]:
    return lambda header: all(needle in header for needle in needles)


def _token(*tokens: str) -> Callable[[str], bool]:
    return lambda header: any(token in header.replace("/", " ").split() for token in tokens)


def _exact(*values: str) -> Callable[[str], bool]:
    return lambda header: header in values


# Order matters: each header cell is assigned to the first group it satisfies,
# so the narrower groups ("ll thuc", "hinh thuc") precede the broader ones ("ll", "thu").
COLUMN_KEYWORDS: list[tuple[str, Callable[[str], bool]]] = [
    ("order", _exact("tt", "stt")),
    ("course_code", _contains("ma hp", "ma hoc phan", "ma mon")),
    ("credits", _contains("so tc", "tin chi")),
    ("student_count", lambda h: _all_of("so", "sv")(h) or "si so" in h or "so sinh vien" in h),
    ("actual_hours", _contains("ll thuc", "so tiet thuc", "tiet thuc")),
    ("theory_hours", lambda h: h in ("ll", "ly thuyet", "so tiet ll")),
    ("overtime_coefficient", _contains("ngoai gio")),
    ("crowd_class_coefficient", lambda h: _all_of("hs", "lop")(h) or "lop dong" in h),
    ("standard_hours", lambda h: "qc" in h.split() or "quy chuan" in h),
    ("class_name", _contains("lop hoc phan", "ten lop", "lhp")),
    ("class_type", _contains("hinh thuc")),
    ("hours_per_week", lambda h: _all_of("st", "tuan")(h) or "tiet/tuan" in h),
    ("semester_label", _contains("hoc ky", "ky hoc")),
    ("academic_year", _contains("nam hoc")),
    # "day nha" (building) also holds the token "day".
    ("building_name", _contains("toa nha", "day nha", "building")),
    ("day_of_week", _token("thu", "day")),
    ("time_slot", _contains("tiet", "ca hoc", "period")),
    ("room_name", _contains("phong", "room")),
    ("start_date", _contains("ngay bd", "bat dau", "start date")),
    ("end_date", _contains("ngay kt", "ket thuc", "end date")),
    ("lecturer_name", _contains("giao vien", "giang vien", "lecturer")),
    ("notes", _contains("ghi chu", "note")),
]


def is_header_row(cells: list[Any]) -> bool:
    for cell in cells:
        text = normalize_text(cell)
        if text in ("tt", "stt") or "ma hp" in text or "so tc" in text:
            return True
    return False


def map_columns(header_cells: list[Any]) -> dict[str, int]:
    """Map logical field names to column indexes of a header row."""
    column_map: dict[str, int] = {}
    for index, cell in enumerate(header_cells):
        header = normalize_text(cell)
        if not header:
            continue
        for field_name, matches in COLUMN_KEYWORDS:
            if matches(header):
                column_map.setdefault(field_name, index)
                break
    return column_map


def locate_header(rows: list[list[Any]], *, allow_widest_fallback: bool = False) -> int | None:
    for index, row in enumerate(rows):
        if row and is_header_row(row):
            return index
    if not allow_widest_fallback:
        return None

    best_index, best_count = None, 0
    for index, row in enumerate(rows):
        count = sum(1 for cell in row if cell_text(cell))
        if count > best_count:
            best_index, best_count = index, count
    if best_index is not None and best_count >= WORD_FALLBACK_MIN_COLUMNS:
        return best_index
    return None


def build_table(
    name: str,
    rows: list[list[Any]],
    *,
    epoch: datetime = CALENDAR_WINDOWS_1900,
    allow_widest_fallback: bool = False,
) -> ExtractedTable:
    header_index = locate_header(rows, allow_widest_fallback=allow_widest_fallback)
    if header_index is None:
        raise ExtractionError(f"Header not found in {name}", details={"table": name})
    header = [cell_text(cell) for cell in rows[header_index]]
    column_map = map_columns(header)
    logger.debug("Table %s: header at row %d, columns %s", name, header_index + 1, column_map)
    return ExtractedTable(
        name=name,
        header_index=header_index,
        header=header,
        rows=rows[header_index + 1 :],
        column_map=column_map,
        epoch=epoch,
        first_row_number=header_index + 2,
    )


def _should_skip(sheet_name: str, skip_markers: tuple[str, ...]) -> bool:
    return any(marker and marker in sheet_name for marker in skip_markers)


def read_xlsx_tables(content: bytes, *, skip_markers: tuple[str, ...] = ()) -> list[ExtractedTable]:
    try:
        workbook = load_workbook(BytesIO(content), data_only=True, read_only=True)
    except Exception as exc:
        raise ExtractionError(f"Unreadable spreadsheet: {exc}") from exc

    epoch = CALENDAR_MAC_1904 if workbook.epoch == CALENDAR_MAC_1904 else CALENDAR_WINDOWS_1900
    tables: list[ExtractedTable] = []
    try:
        for worksheet in workbook.worksheets:
            if _should_skip(worksheet.title, skip_markers):
                logger.info("Skipping summary sheet %s", worksheet.title)
                continue
            rows = [list(row) for row in worksheet.iter_rows(values_only=True)]
            if not any(any(cell_text(cell) for cell in row) for row in rows):
                continue
            tables.append(build_table(worksheet.title, rows, epoch=epoch))
    finally:
        workbook.close()
    return tables


def read_xls_tables(content: bytes, *, skip_markers: tuple[str, ...] = ()) -> list[ExtractedTable]:
    try:
        book = xlrd.open_workbook(file_contents=content)
    except Exception as exc:
        raise ExtractionError(f"Unreadable spreadsheet: {exc}") from exc

    epoch = CALENDAR_MAC_1904 if book.datemode == 1 else CALENDAR_WINDOWS_1900
    tables: list[ExtractedTable] = []
    for sheet in book.sheets():
        if _should_skip(sheet.name, skip_markers):
            logger.info("Skipping summary sheet %s", sheet.name)
            continue
        rows: list[list[Any]] = []
        for row_index in range(sheet.nrows):
            row: list[Any] = []
            for cell in sheet.row(row_index):
                if cell.ctype == xlrd.XL_CELL_DATE:
                    row.append(xlrd.xldate.xldate_as_datetime(cell.value, book.datemode))
                elif cell.ctype in (xlrd.XL_CELL_EMPTY, xlrd.XL_CELL_BLANK):
                    row.append(None)
                else:
                    row.append(cell.value)
            rows.append(row)
        if not any(any(cell_text(cell) for cell in row) for row in rows):
            continue
        tables.append(build_table(sheet.name, rows, epoch=epoch))
    return tables


def html_to_rows(html: str) -> list[list[list[str]]]:
    """Return every ``<table>`` of an HTML document as a list of text rows."""
    soup = BeautifulSoup(html, "html.parser")
    tables: list[list[list[str]]] = []
    for table in soup.find_all("table"):
        rows: list[list[str]] = []
        for tr in table.find_all("tr"):
            cells = tr.find_all(["td", "th"])
            row: list[str] = []
            for cell in cells:
                text = cell.get_text(separator=" ", strip=True)
                span = int(cell.get("colspan", 1) or 1)
                row.append(text)
                # Keep column positions aligned with the header under merged cells.
                row.extend([""] * (span - 1))
            rows.append(row)
        if rows:
            tables.append(rows)
    return tables


def read_docx_tables(content: bytes) -> list[ExtractedTable]:
    try:
        result = mammoth.convert_to_html(BytesIO(content))
    except Exception as exc:
        raise ExtractionError(f"Unreadable Word document: {exc}") from exc
    for message in result.messages:
        logger.debug("mammoth: %s", message)

    raw_tables = html_to_rows(result.value)
    if not raw_tables:
        raise ExtractionError("Header not found: the document contains no tables")

    tables: list[ExtractedTable] = []
    for index, rows in enumerate(raw_tables, start=1):
        tables.append(build_table(f"table {index}", rows, allow_widest_fallback=True))
    return tables


def extract_tables(
    content: bytes,
    *,
    filename: str,
    kind: DocumentKind,
    skip_markers: tuple[str, ...] = (),
) -> list[ExtractedTable]:
    """Read every sheet or table of an uploaded document.

    Raises ``ExtractionError`` when the bytes cannot be parsed or when any
    sheet lacks a recognizable header row; either aborts the import.
    """
    lower_name = (filename or "").lower()
    if lower_name.endswith(".docx") or (kind == DocumentKind.word and not lower_name.endswith((".xlsx", ".xls"))):
        if lower_name.endswith(".doc"):
            raise ExtractionError("Legacy .doc documents cannot be read; save the file as .docx")
        tables = read_docx_tables(content)
    elif lower_name.endswith(".xls"):
        tables = read_xls_tables(content, skip_markers=skip_markers)
    else:
        tables = read_xlsx_tables(content, skip_markers=skip_markers)

    if not tables:
        raise ExtractionError("Header not found: the document has no data")
    logger.info(
        "Extracted %d table(s) from %s: %s",
        len(tables),
        filename,
        ", ".join(f"{table.name}={len(table.rows)} rows" for table in tables),
    )
    return tables
