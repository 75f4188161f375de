from __future__ import annotations

from datetime import date
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload, selectinload

from app.core.exceptions import ResourceNotFoundError
from app.models.building import Building
from app.models.timetable import TimetableSlot
from app.schemas.room import BuildingAvailability, ClassroomAvailability, RoomOccupancy
from app.services.cell_values import time_slot_sort_key, weekday_of

logger = logging.getLogger(__name__)


def building_availability(
    db: Session,
    building_id: str,
    on_date: date,
    time_slot: str,
) -> BuildingAvailability:
    """Occupancy of every classroom of a building on one date.

    A classroom is occupied when a committed slot in it falls on the weekday
    of ``on_date``, covers the date and uses the ``time_slot`` period code.
    """
    building = db.execute(
        select(Building).options(selectinload(Building.classrooms)).where(Building.id == building_id)
    ).scalar_one_or_none()
    if building is None:
        raise ResourceNotFoundError("Building", building_id)

    day_of_week = weekday_of(on_date)
    stmt = (
        select(TimetableSlot)
        .options(joinedload(TimetableSlot.timetable))
        .where(
            TimetableSlot.building_name == building.name,
            TimetableSlot.day_of_week == day_of_week,
            TimetableSlot.start_date <= on_date,
            TimetableSlot.end_date >= on_date,
            TimetableSlot.time_slot == time_slot,
        )
    )
    slots = sorted(
        db.execute(stmt).scalars().unique(),
        key=lambda slot: (time_slot_sort_key(slot.time_slot), slot.start_date),
    )

    first_by_room: dict[str, TimetableSlot] = {}
    for slot in slots:
        first_by_room.setdefault(slot.room_name, slot)

    classrooms: list[ClassroomAvailability] = []
    for classroom in building.classrooms:
        slot = first_by_room.get(classroom.name)
        occupancy = None
        if slot is not None:
            occupancy = RoomOccupancy(
                timetable_id=slot.timetable_id,
                class_name=slot.timetable.class_name,
                lecturer_name=slot.timetable.lecturer_name,
                time_slot=slot.time_slot,
                start_date=slot.start_date,
                end_date=slot.end_date,
            )
        classrooms.append(
            ClassroomAvailability(
                classroom_id=classroom.id,
                classroom_name=classroom.name,
                classroom_type=classroom.type,
                is_occupied=slot is not None,
                occupancy=occupancy,
            )
        )

    logger.debug(
        "Building %s on %s: %d of %d classroom(s) occupied",
        building.name,
        on_date,
        sum(1 for item in classrooms if item.is_occupied),
        len(classrooms),
    )
    return BuildingAvailability(
        building_id=building.id,
        building_name=building.name,
        query_date=on_date,
        day_of_week=day_of_week,
        time_slot=time_slot,
        classrooms=classrooms,
    )
