from app.models.academic_year import AcademicYear, Semester  # noqa: F401
from app.models.building import Building, Classroom  # noqa: F401
from app.models.course import Course  # noqa: F401
from app.models.standard import TeachingStandard  # noqa: F401
from app.models.timetable import Timetable, TimetableSlot  # noqa: F401
