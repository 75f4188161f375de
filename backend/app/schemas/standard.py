from datetime import date, datetime

from pydantic import BaseModel, Field

from app.models.academic_year import Semester
from app.schemas.timetable import PageMeta, ScheduleHoursFields


class StandardOut(ScheduleHoursFields):
    model_config = {"from_attributes": True}

    id: str
    class_name: str
    semester: Semester
    course_id: str | None = None
    academic_year_id: str | None = None
    source_timetable_id: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class StandardPage(BaseModel):
    data: list[StandardOut]
    meta: PageMeta


class PromotionError(BaseModel):
    timetable_id: str
    class_name: str
    error: str


class PromotionSummary(BaseModel):
    success: int = 0
    skipped: int = 0
    errors: list[PromotionError] = Field(default_factory=list)
