from datetime import datetime

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from slotforge.api.deps import get_db
from slotforge.core.exceptions import ValidationError
from slotforge.models.tutor import Tutor
from slotforge.schemas.tutor import (
    TutorConflictReport,
    TutorCreate,
    TutorOut,
    UnavailabilityCreate,
    UnavailabilityOut,
)
from slotforge.services.class_schedule import add_tutor_unavailability, get_tutor, register_tutor
from slotforge.services.conflict_service import ConflictChecker
from slotforge.services.recurrence_calendar import as_utc

router = APIRouter()


@router.post("/tutors", response_model=TutorOut, status_code=status.HTTP_201_CREATED)
def create_tutor(payload: TutorCreate, db: Session = Depends(get_db)) -> TutorOut:
    tutor = register_tutor(db, payload)
    db.commit()
    db.refresh(tutor)
    return TutorOut.model_validate(tutor)


@router.get("/tutors", response_model=list[TutorOut])
def list_tutors(db: Session = Depends(get_db)) -> list[TutorOut]:
    tutors = db.execute(select(Tutor).order_by(Tutor.name, Tutor.id)).scalars().all()
    return [TutorOut.model_validate(item) for item in tutors]


@router.post(
    "/tutors/{tutor_id}/unavailability",
    response_model=UnavailabilityOut,
    status_code=status.HTTP_201_CREATED,
)
def create_unavailability(
    tutor_id: str,
    payload: UnavailabilityCreate,
    db: Session = Depends(get_db),
) -> UnavailabilityOut:
    tutor = get_tutor(db, tutor_id)
    block = add_tutor_unavailability(db, tutor, payload)
    db.commit()
    db.refresh(block)
    return UnavailabilityOut.model_validate(block)


@router.get("/tutors/{tutor_id}/conflicts", response_model=TutorConflictReport)
def check_tutor_conflicts(
    tutor_id: str,
    start: datetime = Query(...),
    end: datetime = Query(...),
    exclude_session_id: str | None = Query(default=None),
    db: Session = Depends(get_db),
) -> TutorConflictReport:
    if as_utc(end) <= as_utc(start):
        raise ValidationError("end must be after start")
    get_tutor(db, tutor_id)
    return ConflictChecker(db).report(tutor_id, start, end, exclude_session_id)
