from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_db
from app.schemas.room import BuildingAvailability
from app.services.cell_values import parse_time_slot_code
from app.services.room_availability import building_availability

router = APIRouter()


@router.get("/availability", response_model=BuildingAvailability)
def room_availability(
    building_id: str = Query(min_length=1, max_length=36),
    on_date: date = Query(alias="date"),
    time_slot: str = Query(min_length=1, max_length=50),
    db: Session = Depends(get_db),
) -> BuildingAvailability:
    slot_code = parse_time_slot_code(time_slot)
    if slot_code is None:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"time_slot {time_slot!r} must look like 1->3",
        )
    return building_availability(db, building_id, on_date, slot_code)
