"""
Seat assignment endpoints.

  GET    /admin/groups?eventId=   → assignments and members available to seat
  POST   /admin/groups            → seat a member
  PUT    /admin/groups            → move an assignment to another table
  DELETE /admin/groups?id=        → remove an assignment, refund, promote waitlist
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from loguru import logger
from sqlalchemy.orm import Session

from ...error_handling.exceptions import DinnerClubError, ValidationError
from ...error_handling.logging_config import log_error_with_context
from ...models.database import get_db
from ...models.schemas import AssignmentCreate, AssignmentResponse, AssignmentTableUpdate
from ...services.assignment_service import AssignmentService
from ...services.waitlist_service import WaitlistService
from ..dependencies import require_admin

router = APIRouter(prefix="/admin/groups", tags=["groups"], dependencies=[Depends(require_admin)])


@router.get("")
def list_groups(
    event_id: Optional[int] = Query(None, alias="eventId"),
    db: Session = Depends(get_db),
):
    if event_id is None:
        raise ValidationError("Event ID is required", field="eventId")

    service = AssignmentService(db)
    return {
        "assignments": service.list_assignments(event_id),
        "availableMembers": service.list_available_members(event_id),
    }


@router.post("")
def create_assignment(payload: AssignmentCreate, db: Session = Depends(get_db)):
    assignment = AssignmentService(db).create_assignment(
        payload.event_id,
        payload.user_id,
        payload.table_number,
    )
    return {"assignment": AssignmentResponse.model_validate(assignment)}


@router.put("")
def update_table(payload: AssignmentTableUpdate, db: Session = Depends(get_db)):
    assignment = AssignmentService(db).update_table(payload.assignment_id, payload.table_number)
    return {"assignment": AssignmentResponse.model_validate(assignment)}


@router.delete("")
def remove_assignment(
    assignment_id: Optional[int] = Query(None, alias="id"),
    db: Session = Depends(get_db),
):
    """Removing an unknown assignment still succeeds; nothing is refunded."""
    if assignment_id is None:
        raise ValidationError("Assignment ID is required", field="id")

    result = AssignmentService(db).remove_assignment(assignment_id)

    notified_entry_id = None
    if result.removed:
        # The removal is already committed; a failed promotion must not undo it
        try:
            entry = WaitlistService(db).promote_after_cancellation(result.dinner_id)
            notified_entry_id = entry.id if entry else None
        except DinnerClubError as e:
            log_error_with_context(
                e,
                {"operation": "promote_after_cancellation", "dinner_id": result.dinner_id},
                severity="WARNING"
            )

    if notified_entry_id:
        logger.info(f"Assignment {assignment_id} removal promoted waitlist entry {notified_entry_id}")

    return {
        "success": True,
        "refunded": result.refunded,
        "notifiedEntryId": notified_entry_id,
    }
