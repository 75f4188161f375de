from __future__ import annotations

from datetime import date
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload

from app.core.exceptions import ConflictError
from app.models.timetable import Timetable, TimetableSlot

logger = logging.getLogger(__name__)


def is_physical_room(room_name: str | None, building_name: str | None) -> bool:
    """Only numbered rooms inside a known building can be double-booked.

    Names such as "Online" or "Sân bãi", and rooms listed without a building,
    are placeholders that any number of classes may share.
    """
    room = (room_name or "").strip()
    return bool(room) and room[0].isdigit() and bool((building_name or "").strip())


def find_conflicts(
    db: Session,
    *,
    room_name: str,
    building_name: str | None,
    day_of_week: int,
    time_slot: str,
    start_date: date,
    end_date: date,
    exclude_id: str | None = None,
) -> list[TimetableSlot]:
    if not is_physical_room(room_name, building_name):
        return []

    stmt = (
        select(TimetableSlot)
        .options(joinedload(TimetableSlot.timetable))
        .where(
            TimetableSlot.room_name == room_name.strip(),
            TimetableSlot.building_name == building_name.strip(),
            TimetableSlot.day_of_week == day_of_week,
            TimetableSlot.time_slot == time_slot,
            TimetableSlot.start_date <= end_date,
            TimetableSlot.end_date >= start_date,
        )
        .order_by(TimetableSlot.start_date)
    )
    if exclude_id:
        stmt = stmt.where(TimetableSlot.timetable_id != exclude_id)
    return list(db.execute(stmt).scalars().unique())


def check_conflict(
    db: Session,
    room_name: str,
    building_name: str | None,
    day_of_week: int,
    time_slot: str,
    start_date: date,
    end_date: date,
    exclude_id: str | None = None,
) -> None:
    """Raise ``ConflictError`` when the room is already booked for an overlapping range."""
    clashes = find_conflicts(
        db,
        room_name=room_name,
        building_name=building_name,
        day_of_week=day_of_week,
        time_slot=time_slot,
        start_date=start_date,
        end_date=end_date,
        exclude_id=exclude_id,
    )
    if not clashes:
        return

    clash = clashes[0]
    timetable: Timetable = clash.timetable
    logger.info(
        "Room %s/%s day %s periods %s clashes with timetable %s",
        room_name,
        building_name,
        day_of_week,
        time_slot,
        clash.timetable_id,
    )
    raise ConflictError(
        room_name,
        building_name,
        day_of_week,
        time_slot,
        details={
            "timetable_id": clash.timetable_id,
            "class_name": timetable.class_name if timetable else None,
            "start_date": clash.start_date.isoformat(),
            "end_date": clash.end_date.isoformat(),
        },
    )
