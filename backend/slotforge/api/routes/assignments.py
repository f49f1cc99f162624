from datetime import date, datetime

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from slotforge.api.deps import get_actor_id, get_db, get_now, get_today
from slotforge.models.tutor import Tutor
from slotforge.models.tutor_assignment import TutorAssignment
from slotforge.schemas.assignment import AssignmentCreate, AssignmentOut, AssignmentStatusUpdate
from slotforge.services.class_schedule import (
    create_assignment,
    get_assignment,
    get_time_slot,
    list_assignments,
    remove_assignment,
    update_assignment_status,
)

router = APIRouter()


def _to_out(db: Session, assignments: list[TutorAssignment]) -> list[AssignmentOut]:
    tutor_ids = {item.tutor_id for item in assignments}
    names: dict[str, str] = {}
    if tutor_ids:
        names = {row.id: row.name for row in db.execute(select(Tutor.id, Tutor.name).where(Tutor.id.in_(tutor_ids)))}
    results = []
    for item in assignments:
        out = AssignmentOut.model_validate(item)
        out.tutor_name = names.get(item.tutor_id)
        results.append(out)
    return results


@router.post(
    "/time-slots/{time_slot_id}/assignments",
    response_model=AssignmentOut,
    status_code=status.HTTP_201_CREATED,
)
def assign_tutor(
    time_slot_id: str,
    payload: AssignmentCreate,
    db: Session = Depends(get_db),
    today: date = Depends(get_today),
    actor_id: str | None = Depends(get_actor_id),
) -> AssignmentOut:
    slot = get_time_slot(db, time_slot_id)
    assignment = create_assignment(db, slot, payload, today=today, actor_id=actor_id)
    db.commit()
    db.refresh(assignment)
    return _to_out(db, [assignment])[0]


@router.get("/time-slots/{time_slot_id}/assignments", response_model=list[AssignmentOut])
def list_slot_assignments(
    time_slot_id: str,
    include_removed: bool = Query(default=False),
    db: Session = Depends(get_db),
) -> list[AssignmentOut]:
    slot = get_time_slot(db, time_slot_id)
    return _to_out(db, list_assignments(db, slot.id, include_removed=include_removed))


@router.put("/assignments/{assignment_id}/status", response_model=AssignmentOut)
def respond_to_assignment(
    assignment_id: str,
    payload: AssignmentStatusUpdate,
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
) -> AssignmentOut:
    assignment = get_assignment(db, assignment_id)
    update_assignment_status(db, assignment, payload.status, tutor_id=payload.tutor_id, now=now)
    db.commit()
    db.refresh(assignment)
    return _to_out(db, [assignment])[0]


@router.delete("/assignments/{assignment_id}", response_model=AssignmentOut)
def unassign_tutor(
    assignment_id: str,
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
    actor_id: str | None = Depends(get_actor_id),
) -> AssignmentOut:
    assignment = get_assignment(db, assignment_id)
    remove_assignment(db, assignment, now=now, actor_id=actor_id)
    db.commit()
    db.refresh(assignment)
    return _to_out(db, [assignment])[0]
