from datetime import date, datetime

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from slotforge.api.deps import get_actor_id, get_db, get_now, get_today
from slotforge.schemas.time_slot import (
    SlotCancellationCreate,
    SlotCancellationOut,
    TimeSlotCreate,
    TimeSlotDeactivate,
    TimeSlotDeactivateOut,
    TimeSlotDetailOut,
    TimeSlotOut,
)
from slotforge.schemas.session import MaterializationResult
from slotforge.services.class_schedule import (
    cancel_time_slot_week,
    create_time_slot,
    deactivate_time_slot,
    get_time_slot,
    list_cancellations,
    list_time_slots,
    reinstate_time_slot_week,
)

router = APIRouter()


@router.post(
    "/classes/{class_id}/time-slots",
    response_model=TimeSlotOut,
    status_code=status.HTTP_201_CREATED,
)
def create_class_time_slot(
    class_id: str,
    payload: TimeSlotCreate,
    db: Session = Depends(get_db),
    today: date = Depends(get_today),
    actor_id: str | None = Depends(get_actor_id),
) -> TimeSlotOut:
    slot = create_time_slot(db, class_id, payload, today=today, actor_id=actor_id)
    db.commit()
    db.refresh(slot)
    return TimeSlotOut.model_validate(slot)


@router.get("/classes/{class_id}/time-slots", response_model=list[TimeSlotOut])
def list_class_time_slots(
    class_id: str,
    include_inactive: bool = Query(default=False),
    db: Session = Depends(get_db),
) -> list[TimeSlotOut]:
    return [TimeSlotOut.model_validate(item) for item in list_time_slots(db, class_id, include_inactive=include_inactive)]


@router.get("/time-slots/{time_slot_id}", response_model=TimeSlotDetailOut)
def read_time_slot(time_slot_id: str, db: Session = Depends(get_db)) -> TimeSlotDetailOut:
    slot = get_time_slot(db, time_slot_id)
    detail = TimeSlotDetailOut.model_validate(slot)
    detail.cancellations = [SlotCancellationOut.model_validate(item) for item in list_cancellations(db, slot.id)]
    return detail


@router.post("/time-slots/{time_slot_id}/deactivate", response_model=TimeSlotDeactivateOut)
def deactivate_class_time_slot(
    time_slot_id: str,
    payload: TimeSlotDeactivate | None = None,
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
    actor_id: str | None = Depends(get_actor_id),
) -> TimeSlotDeactivateOut:
    slot = get_time_slot(db, time_slot_id)
    cancelled = deactivate_time_slot(
        db,
        slot,
        now=now,
        reason=payload.reason if payload else None,
        actor_id=actor_id,
    )
    db.commit()
    db.refresh(slot)
    return TimeSlotDeactivateOut(time_slot=TimeSlotOut.model_validate(slot), cancelled_sessions=cancelled)


@router.post(
    "/time-slots/{time_slot_id}/cancellations",
    response_model=SlotCancellationOut,
    status_code=status.HTTP_201_CREATED,
)
def cancel_week(
    time_slot_id: str,
    payload: SlotCancellationCreate,
    db: Session = Depends(get_db),
    actor_id: str | None = Depends(get_actor_id),
) -> SlotCancellationOut:
    slot = get_time_slot(db, time_slot_id)
    cancellation, cancelled = cancel_time_slot_week(
        db,
        slot,
        payload.week_start,
        reason=payload.reason,
        actor_id=actor_id,
    )
    db.commit()
    db.refresh(cancellation)
    out = SlotCancellationOut.model_validate(cancellation)
    out.cancelled_sessions = cancelled
    return out


@router.delete("/time-slots/{time_slot_id}/cancellations/{week_start}", response_model=MaterializationResult)
def reinstate_week(
    time_slot_id: str,
    week_start: date,
    db: Session = Depends(get_db),
    today: date = Depends(get_today),
    now: datetime = Depends(get_now),
    actor_id: str | None = Depends(get_actor_id),
) -> MaterializationResult:
    slot = get_time_slot(db, time_slot_id)
    result = reinstate_time_slot_week(db, slot, week_start, today=today, now=now, actor_id=actor_id)
    db.commit()
    return result
