from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from campus_scheduler.api.deps import get_db
from campus_scheduler.schemas.autogen import (
    AutogenCourseRequest,
    AutogenMonthRequest,
    AutogenResult,
    AutogenWeekRequest,
)
from campus_scheduler.schemas.schedule import (
    ApproveWeekRequest,
    ApproveWeekResult,
    ClearWeekResult,
    DraftOut,
    DraftUpsert,
    PublishWeekRequest,
    PublishWeekResult,
    UpsertResult,
    ValidationResult,
    WeekScopeRequest,
)
from campus_scheduler.services.autogen import autogen_course_range, autogen_month, autogen_week
from campus_scheduler.services.drafts import clear_draft_week, delete_draft, list_drafts, upsert_draft
from campus_scheduler.services.publish import approve_week, publish_week
from campus_scheduler.services.rules import RulesService
from campus_scheduler.services.schedule_service import normalize_room

router = APIRouter()


@router.post("/validate", response_model=ValidationResult)
def validate_draft(payload: DraftUpsert, db: Session = Depends(get_db)) -> ValidationResult:
    return RulesService(db).validate_draft(normalize_room(db, payload))


@router.get("/", response_model=list[DraftOut])
def get_drafts(
    week_start: date = Query(...),
    teacher_id: int | None = Query(default=None),
    group_id: int | None = Query(default=None),
    course_id: int | None = Query(default=None),
    db: Session = Depends(get_db),
) -> list[DraftOut]:
    return list_drafts(db, week_start=week_start, teacher_id=teacher_id, group_id=group_id, course_id=course_id)


@router.post("/", response_model=UpsertResult)
def save_draft(payload: DraftUpsert, db: Session = Depends(get_db)) -> UpsertResult:
    return upsert_draft(db, payload)


@router.delete("/{draft_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_draft(
    draft_id: int,
    unrestricted: bool = Query(default=False),
    db: Session = Depends(get_db),
) -> None:
    delete_draft(db, draft_id, unrestricted=unrestricted)


@router.post("/clear-week", response_model=ClearWeekResult)
def clear_week(payload: WeekScopeRequest, db: Session = Depends(get_db)) -> ClearWeekResult:
    return clear_draft_week(db, payload)


@router.post("/autogen/week", response_model=AutogenResult)
def generate_week(payload: AutogenWeekRequest, db: Session = Depends(get_db)) -> AutogenResult:
    return autogen_week(db, payload)


@router.post("/autogen/month", response_model=AutogenResult)
def generate_month(payload: AutogenMonthRequest, db: Session = Depends(get_db)) -> AutogenResult:
    return autogen_month(db, payload)


@router.post("/autogen/course", response_model=AutogenResult)
def generate_course_range(payload: AutogenCourseRequest, db: Session = Depends(get_db)) -> AutogenResult:
    return autogen_course_range(db, payload)


@router.post("/publish-week", response_model=PublishWeekResult)
def publish(payload: PublishWeekRequest, db: Session = Depends(get_db)) -> PublishWeekResult:
    return publish_week(db, payload)


@router.post("/approve-week", response_model=ApproveWeekResult)
def approve(payload: ApproveWeekRequest, db: Session = Depends(get_db)) -> ApproveWeekResult:
    return approve_week(db, payload)
