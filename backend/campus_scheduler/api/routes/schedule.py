from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from campus_scheduler.api.deps import get_db
from campus_scheduler.schemas.schedule import (
    ClearWeekResult,
    ScheduleItemOut,
    ScheduleItemUpsert,
    UpsertResult,
    ValidationResult,
    WeekScopeRequest,
)
from campus_scheduler.services.rules import RulesService
from campus_scheduler.services.schedule_service import (
    clear_schedule_week,
    delete_schedule_item,
    list_schedule,
    normalize_room,
    recalc_all,
    upsert_schedule_item,
)

router = APIRouter()


@router.post("/validate", response_model=ValidationResult)
def validate_schedule_item(payload: ScheduleItemUpsert, db: Session = Depends(get_db)) -> ValidationResult:
    return RulesService(db).validate_upsert(normalize_room(db, payload))


@router.get("/", response_model=list[ScheduleItemOut])
def get_schedule(
    date_from: date = Query(...),
    date_to: date = Query(...),
    group_id: int | None = Query(default=None),
    teacher_id: int | None = Query(default=None),
    room_id: int | None = Query(default=None),
    db: Session = Depends(get_db),
) -> list[ScheduleItemOut]:
    return list_schedule(
        db,
        date_from=date_from,
        date_to=date_to,
        group_id=group_id,
        teacher_id=teacher_id,
        room_id=room_id,
    )


@router.post("/", response_model=UpsertResult)
def save_schedule_item(payload: ScheduleItemUpsert, db: Session = Depends(get_db)) -> UpsertResult:
    return upsert_schedule_item(db, payload)


@router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_schedule_item(item_id: int, db: Session = Depends(get_db)) -> None:
    delete_schedule_item(db, item_id)


@router.post("/clear-week", response_model=ClearWeekResult)
def clear_week(payload: WeekScopeRequest, db: Session = Depends(get_db)) -> ClearWeekResult:
    return clear_schedule_week(db, payload)


@router.post("/recalc")
def recalc(db: Session = Depends(get_db)) -> dict:
    recalc_all(db)
    return {"status": "ok"}
