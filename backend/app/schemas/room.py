from datetime import date

from pydantic import BaseModel


class RoomOccupancy(BaseModel):
    timetable_id: str
    class_name: str
    lecturer_name: str | None = None
    time_slot: str
    start_date: date
    end_date: date


class ClassroomAvailability(BaseModel):
    classroom_id: str
    classroom_name: str
    classroom_type: str
    is_occupied: bool
    occupancy: RoomOccupancy | None = None


class BuildingAvailability(BaseModel):
    building_id: str
    building_name: str
    query_date: date
    day_of_week: int
    time_slot: str
    classrooms: list[ClassroomAvailability]
