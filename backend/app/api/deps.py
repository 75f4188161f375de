from collections.abc import Generator
import logging
from pathlib import PurePath

from fastapi import HTTPException, UploadFile, status
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.db.session import SessionLocal

logger = logging.getLogger(__name__)

SPREADSHEET_EXTENSIONS = {".xlsx", ".xls"}
WORD_EXTENSIONS = {".docx", ".doc"}
SPREADSHEET_CONTENT_TYPES = {
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.ms-excel",
}
WORD_CONTENT_TYPES = {
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/msword",
}
# Browsers and curl send these for files they do not recognize.
GENERIC_CONTENT_TYPES = {"", "application/octet-stream", "application/zip"}


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def read_upload(
    file: UploadFile,
    *,
    extensions: set[str],
    content_types: set[str],
) -> bytes:
    """Return the bytes of an uploaded document after type and size checks."""
    filename = file.filename or ""
    extension = PurePath(filename).suffix.lower()
    content_type = (file.content_type or "").split(";")[0].strip().lower()
    if extension not in extensions or content_type not in content_types | GENERIC_CONTENT_TYPES:
        raise HTTPException(
            status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
            detail=f"Unsupported file type {filename or content_type!r}; expected {', '.join(sorted(extensions))}",
        )

    max_bytes = get_settings().max_upload_size_bytes
    # Called from sync endpoints, which FastAPI runs in its threadpool.
    content = file.file.read(max_bytes + 1)
    if len(content) > max_bytes:
        logger.warning("Rejected upload %s: larger than %d bytes", filename, max_bytes)
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File exceeds the {max_bytes // (1024 * 1024)} MB upload limit",
        )
    if not content:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Uploaded file is empty")
    return content
