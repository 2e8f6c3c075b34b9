"""
Waitlist endpoints.

  GET    /admin/waitlist?eventId=            → ordered entries and capacity
  POST   /admin/waitlist                     → join
  DELETE /admin/waitlist?id=                 → leave, renumbering the queue
  POST   /admin/waitlist/promote             → notify the first waiting entry
  POST   /admin/waitlist/{id}/convert        → turn an entry into an assignment
  GET    /admin/waitlist/position?eventId=   → position of a member or guest
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...error_handling.exceptions import ValidationError, WaitlistEntryNotFoundError
from ...models.database import get_db
from ...models.schemas import (
    AssignmentResponse,
    WaitlistConvert,
    WaitlistEntryResponse,
    WaitlistJoin,
    WaitlistPromote,
)
from ...services.waitlist_service import WaitlistService
from ..dependencies import require_admin

router = APIRouter(prefix="/admin/waitlist", tags=["waitlist"], dependencies=[Depends(require_admin)])


@router.get("")
def list_waitlist(
    event_id: Optional[int] = Query(None, alias="eventId"),
    db: Session = Depends(get_db),
):
    if event_id is None:
        raise ValidationError("Event ID is required", field="eventId")

    service = WaitlistService(db)
    return {
        "waitlist": service.list_entries(event_id),
        "capacity": service.assignments.check_capacity(event_id),
    }


@router.post("")
def join_waitlist(payload: WaitlistJoin, db: Session = Depends(get_db)):
    entry = WaitlistService(db).join(
        payload.event_id,
        member_id=payload.user_id,
        guest_name=payload.guest_name,
        guest_email=payload.guest_email,
    )
    return {"entry": WaitlistEntryResponse.model_validate(entry)}


@router.delete("")
def leave_waitlist(
    entry_id: Optional[int] = Query(None, alias="id"),
    db: Session = Depends(get_db),
):
    if entry_id is None:
        raise ValidationError("Waitlist entry ID is required", field="id")

    if not WaitlistService(db).remove(entry_id):
        raise WaitlistEntryNotFoundError(entry_id)
    return {"success": True}


@router.post("/promote")
def promote(payload: WaitlistPromote, db: Session = Depends(get_db)):
    entry = WaitlistService(db).promote_after_cancellation(payload.event_id)
    return {"notified": WaitlistEntryResponse.model_validate(entry) if entry else None}


@router.post("/{entry_id}/convert")
def convert(
    entry_id: int,
    payload: Optional[WaitlistConvert] = None,
    db: Session = Depends(get_db),
):
    table_number = payload.table_number if payload else None
    assignment = WaitlistService(db).convert(entry_id, table_number)
    return {"assignment": AssignmentResponse.model_validate(assignment)}


@router.get("/position")
def waitlist_position(
    event_id: Optional[int] = Query(None, alias="eventId"),
    user_id: Optional[int] = Query(None, alias="userId"),
    email: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    if event_id is None:
        raise ValidationError("Event ID is required", field="eventId")

    position = WaitlistService(db).get_position(event_id, member_id=user_id, guest_email=email)
    return {"position": position}
