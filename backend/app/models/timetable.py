import uuid
from datetime import date, datetime

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Enum as SAEnum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from app.db.base import Base
from app.models.academic_year import AcademicYear, Semester
from app.models.building import Classroom
from app.models.course import Course


class ScheduleHoursMixin:
    """Columns shared by timetables and standard-hours records."""

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    class_name: Mapped[str] = mapped_column(String(500), index=True, nullable=False)
    semester: Mapped[Semester] = mapped_column(
        SAEnum(Semester, name="semester", values_callable=lambda items: [item.value for item in items]),
        nullable=False,
    )
    class_type: Mapped[str] = mapped_column(String(50), nullable=False, default="LT")
    student_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    theory_hours: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    actual_hours: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    crowd_class_coefficient: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)
    overtime_coefficient: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)
    standard_hours: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    hours_per_week: Mapped[int | None] = mapped_column(Integer, nullable=True)
    lecturer_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())


class Timetable(ScheduleHoursMixin, Base):
    __tablename__ = "timetables"
    __table_args__ = (
        UniqueConstraint("class_name", "semester", "academic_year_id", name="uq_timetables_class_semester_year"),
    )

    course_id: Mapped[str] = mapped_column(String(36), ForeignKey("courses.id"), index=True, nullable=False)
    academic_year_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("academic_years.id"), index=True, nullable=False
    )
    is_standard: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    course: Mapped[Course] = relationship()
    academic_year: Mapped[AcademicYear] = relationship()
    slots: Mapped[list["TimetableSlot"]] = relationship(
        back_populates="timetable",
        cascade="all, delete-orphan",
        order_by=lambda: [TimetableSlot.day_of_week, TimetableSlot.time_slot, TimetableSlot.start_date],
    )


class TimetableSlot(Base):
    __tablename__ = "timetable_slots"
    __table_args__ = (
        Index("ix_timetable_slots_booking", "room_name", "building_name", "day_of_week", "time_slot"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    timetable_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("timetables.id", ondelete="CASCADE"), index=True, nullable=False
    )
    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)
    time_slot: Mapped[str] = mapped_column(String(50), nullable=False)
    room_name: Mapped[str] = mapped_column(String(100), nullable=False)
    building_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    classroom_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("classrooms.id"), nullable=True)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)

    timetable: Mapped[Timetable] = relationship(back_populates="slots")
    classroom: Mapped[Classroom | None] = relationship()
