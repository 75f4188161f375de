from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.models.academic_year import AcademicYear
from app.models.course import Course
from app.models.timetable import ScheduleHoursMixin


class TeachingStandard(ScheduleHoursMixin, Base):
    """Standard lecture hours of one class offering, used for teaching-load accounting."""

    __tablename__ = "teaching_standards"

    course_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("courses.id"), index=True, nullable=True)
    academic_year_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("academic_years.id"), index=True, nullable=True
    )
    source_timetable_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("timetables.id", ondelete="SET NULL"), nullable=True
    )

    course: Mapped[Course | None] = relationship()
    academic_year: Mapped[AcademicYear | None] = relationship()
