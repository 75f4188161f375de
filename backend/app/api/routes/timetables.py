from datetime import date

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from sqlalchemy.orm import Session

from app.api.deps import SPREADSHEET_CONTENT_TYPES, SPREADSHEET_EXTENSIONS, get_db, read_upload
from app.core.config import get_settings
from app.models.academic_year import Semester
from app.schemas.timetable import (
    ConflictCheckRequest,
    ConflictCheckResult,
    ImportSummary,
    TimeSlotCodes,
    TimetableCreate,
    TimetableOut,
    TimetablePage,
    TimetableUpdate,
)
from app.services import timetables as timetable_service

router = APIRouter()


@router.post("/upload", response_model=ImportSummary, status_code=status.HTTP_201_CREATED)
def upload_timetables(
    file: UploadFile = File(...),
    semester: Semester | None = Form(default=None),
    academic_year_id: str | None = Form(default=None),
    db: Session = Depends(get_db),
) -> ImportSummary:
    content = read_upload(file, extensions=SPREADSHEET_EXTENSIONS, content_types=SPREADSHEET_CONTENT_TYPES)
    report = timetable_service.import_timetables(
        db,
        content,
        filename=file.filename or "upload.xlsx",
        settings=get_settings(),
        semester=semester,
        academic_year_id=academic_year_id or None,
    )
    return report.summary()


@router.get("/time-slots", response_model=TimeSlotCodes)
def list_time_slots(db: Session = Depends(get_db)) -> TimeSlotCodes:
    return TimeSlotCodes(time_slots=timetable_service.list_time_slot_codes(db))


@router.post("/check-conflict", response_model=ConflictCheckResult)
def check_conflict(payload: ConflictCheckRequest, db: Session = Depends(get_db)) -> ConflictCheckResult:
    return ConflictCheckResult(message=timetable_service.describe_conflict(db, payload))


@router.get("/", response_model=TimetablePage)
def list_timetables(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=200),
    class_name: str | None = Query(default=None, max_length=200),
    course_id: str | None = None,
    academic_year_id: str | None = None,
    semester: Semester | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    db: Session = Depends(get_db),
) -> TimetablePage:
    items, meta = timetable_service.list_timetables(
        db,
        page=page,
        limit=limit,
        class_name=class_name,
        course_id=course_id,
        academic_year_id=academic_year_id,
        semester=semester,
        start_date=start_date,
        end_date=end_date,
    )
    return TimetablePage(data=[TimetableOut.model_validate(item) for item in items], meta=meta)


@router.post("/", response_model=TimetableOut, status_code=status.HTTP_201_CREATED)
def create_timetable(payload: TimetableCreate, db: Session = Depends(get_db)) -> TimetableOut:
    return timetable_service.create_timetable(db, payload, merge_gap_days=get_settings().slot_merge_gap_days)


@router.get("/{timetable_id}", response_model=TimetableOut)
def get_timetable(timetable_id: str, db: Session = Depends(get_db)) -> TimetableOut:
    return timetable_service.get_timetable(db, timetable_id)


@router.patch("/{timetable_id}", response_model=TimetableOut)
def update_timetable(timetable_id: str, payload: TimetableUpdate, db: Session = Depends(get_db)) -> TimetableOut:
    return timetable_service.update_timetable(
        db,
        timetable_id,
        payload,
        merge_gap_days=get_settings().slot_merge_gap_days,
    )


@router.delete("/{timetable_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_timetable(timetable_id: str, db: Session = Depends(get_db)) -> None:
    timetable_service.delete_timetable(db, timetable_id)
