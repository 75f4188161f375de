from datetime import date, datetime

from pydantic import AliasChoices, BaseModel, Field, field_validator, model_validator

from app.models.academic_year import Semester
from app.services.cell_values import parse_time_slot_code


def _normalize_time_slot(value: str) -> str:
    code = parse_time_slot_code(value)
    if code is None:
        raise ValueError("time_slot must look like 1->3")
    return code


class TimeSlotBase(BaseModel):
    day_of_week: int = Field(ge=0, le=7, description="1=Sunday, 2=Monday .. 7=Saturday; 0 is read as Sunday")
    time_slot: str = Field(min_length=1, max_length=50)
    room_name: str = Field(min_length=1, max_length=100)
    building_name: str | None = Field(default=None, max_length=100)
    start_date: date
    end_date: date

    @field_validator("day_of_week")
    @classmethod
    def normalize_sunday(cls, value: int) -> int:
        return value or 1

    @field_validator("time_slot")
    @classmethod
    def validate_time_slot(cls, value: str) -> str:
        return _normalize_time_slot(value)

    @field_validator("room_name")
    @classmethod
    def strip_room(cls, value: str) -> str:
        room = value.strip()
        if not room:
            raise ValueError("room_name must not be blank")
        return room

    @field_validator("building_name")
    @classmethod
    def strip_building(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None

    @model_validator(mode="after")
    def validate_range(self) -> "TimeSlotBase":
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class TimeSlotIn(TimeSlotBase):
    pass


class TimeSlotOut(TimeSlotBase):
    model_config = {"from_attributes": True}

    id: str
    classroom_id: str | None = None


class ScheduleHoursFields(BaseModel):
    class_type: str = Field(default="LT", min_length=1, max_length=50)
    student_count: int = Field(default=0, ge=0)
    theory_hours: int = Field(default=0, ge=0)
    actual_hours: float = Field(default=0, ge=0)
    crowd_class_coefficient: float = Field(default=1.0, gt=0)
    overtime_coefficient: float = Field(default=1.0, gt=0)
    standard_hours: float = Field(default=0, ge=0)
    hours_per_week: int | None = Field(default=None, ge=0)
    lecturer_name: str | None = Field(default=None, max_length=255)
    notes: str | None = None


class TimetableCreate(ScheduleHoursFields):
    class_name: str = Field(min_length=1, max_length=500)
    semester: Semester
    course_id: str = Field(min_length=1, max_length=36)
    academic_year_id: str = Field(min_length=1, max_length=36)
    start_date: date | None = None
    end_date: date | None = None
    time_slots: list[TimeSlotIn] = Field(default_factory=list, max_length=200)


class TimetableUpdate(BaseModel):
    class_name: str | None = Field(default=None, min_length=1, max_length=500)
    semester: Semester | None = None
    course_id: str | None = Field(default=None, min_length=1, max_length=36)
    academic_year_id: str | None = Field(default=None, min_length=1, max_length=36)
    class_type: str | None = Field(default=None, min_length=1, max_length=50)
    student_count: int | None = Field(default=None, ge=0)
    theory_hours: int | None = Field(default=None, ge=0)
    actual_hours: float | None = Field(default=None, ge=0)
    overtime_coefficient: float | None = Field(default=None, gt=0)
    hours_per_week: int | None = Field(default=None, ge=0)
    lecturer_name: str | None = Field(default=None, max_length=255)
    notes: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    time_slots: list[TimeSlotIn] | None = Field(default=None, max_length=200)


class TimetableOut(ScheduleHoursFields):
    model_config = {"from_attributes": True}

    id: str
    class_name: str
    semester: Semester
    course_id: str
    academic_year_id: str
    is_standard: bool
    start_date: date | None = None
    end_date: date | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    time_slots: list[TimeSlotOut] = Field(default_factory=list, validation_alias=AliasChoices("slots", "time_slots"))


class PageMeta(BaseModel):
    total: int
    page: int
    limit: int
    total_pages: int


class TimetablePage(BaseModel):
    data: list[TimetableOut]
    meta: PageMeta


class ConflictCheckRequest(BaseModel):
    """A booking to check; the room is given either by id or by name and building."""

    classroom_id: str | None = Field(default=None, max_length=36)
    room_name: str | None = Field(default=None, max_length=100)
    building_name: str | None = Field(default=None, max_length=100)
    day_of_week: int = Field(ge=0, le=7)
    time_slot: str = Field(min_length=1, max_length=50)
    start_date: date
    end_date: date
    exclude_id: str | None = Field(default=None, max_length=36)

    @field_validator("day_of_week")
    @classmethod
    def normalize_sunday(cls, value: int) -> int:
        return value or 1

    @field_validator("time_slot")
    @classmethod
    def validate_time_slot(cls, value: str) -> str:
        return _normalize_time_slot(value)

    @model_validator(mode="after")
    def validate_room(self) -> "ConflictCheckRequest":
        if not self.classroom_id and not (self.room_name or "").strip():
            raise ValueError("classroom_id or room_name is required")
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class ConflictCheckResult(BaseModel):
    message: str


class ImportRowError(BaseModel):
    row: int | None = None
    data: dict | None = None
    reason: str


class ImportSummary(BaseModel):
    success: int = 0
    skipped: int = 0
    errors: list[ImportRowError] = Field(default_factory=list)
    error_count: int = 0


class TimeSlotCodes(BaseModel):
    time_slots: list[str]
