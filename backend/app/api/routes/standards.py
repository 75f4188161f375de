from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from sqlalchemy.orm import Session

from app.api.deps import (
    SPREADSHEET_CONTENT_TYPES,
    SPREADSHEET_EXTENSIONS,
    WORD_CONTENT_TYPES,
    WORD_EXTENSIONS,
    get_db,
    read_upload,
)
from app.core.config import get_settings
from app.models.academic_year import Semester
from app.schemas.standard import PromotionSummary, StandardOut, StandardPage
from app.schemas.timetable import ImportSummary
from app.services import standards as standard_service

router = APIRouter()


@router.post("/upload", response_model=ImportSummary, status_code=status.HTTP_201_CREATED)
def upload_standards(
    file: UploadFile = File(...),
    semester: Semester | None = Form(default=None),
    academic_year_id: str | None = Form(default=None),
    db: Session = Depends(get_db),
) -> ImportSummary:
    content = read_upload(
        file,
        extensions=WORD_EXTENSIONS | SPREADSHEET_EXTENSIONS,
        content_types=WORD_CONTENT_TYPES | SPREADSHEET_CONTENT_TYPES,
    )
    report = standard_service.import_standards(
        db,
        content,
        filename=file.filename or "upload.docx",
        settings=get_settings(),
        semester=semester,
        academic_year_id=academic_year_id or None,
    )
    return report.summary()


@router.post("/from-timetables", response_model=PromotionSummary)
def promote_timetables(db: Session = Depends(get_db)) -> PromotionSummary:
    return standard_service.promote_timetables(db)


@router.get("/", response_model=StandardPage)
def list_standards(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=200),
    class_name: str | None = Query(default=None, max_length=200),
    semester: Semester | None = None,
    academic_year_id: str | None = None,
    db: Session = Depends(get_db),
) -> StandardPage:
    items, meta = standard_service.list_standards(
        db,
        page=page,
        limit=limit,
        class_name=class_name,
        semester=semester,
        academic_year_id=academic_year_id,
    )
    return StandardPage(data=[StandardOut.model_validate(item) for item in items], meta=meta)


@router.get("/{standard_id}", response_model=StandardOut)
def get_standard(standard_id: str, db: Session = Depends(get_db)) -> StandardOut:
    return standard_service.get_standard(db, standard_id)


@router.delete("/{standard_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_standard(standard_id: str, db: Session = Depends(get_db)) -> None:
    standard_service.delete_standard(db, standard_id)
