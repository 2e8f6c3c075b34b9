"""
WaitlistService - ordered per-dinner waitlist with promotion and conversion.

Positions of a dinner's entries always form the dense sequence 1..N.
Every write locks the dinner row first, so joins, removals and
conversions on the same dinner are serialized.
"""
from datetime import datetime
from typing import List, Optional

from loguru import logger
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ..models.database import Assignment, Dinner, Member, WaitlistEntry
from ..models.schemas import WaitlistEntryResponse
from ..error_handling.exceptions import (
    DuplicateAssignmentError,
    DuplicateWaitlistEntryError,
    ValidationError,
    WaitlistEntryNotFoundError,
)
from ..error_handling.handlers import transactional
from ..error_handling.logging_config import log_waitlist_event
from .assignment_service import AssignmentService, DEFAULT_TABLE_NUMBER
from .notification_service import NotificationService


class WaitlistService:
    """
    Service class for waitlist operations.

    Conversion reuses AssignmentService on the same session, so the
    assignment insert, credit debit and waitlist renumbering commit or
    roll back together.
    """

    def __init__(self, session: Session, notifier: Optional[NotificationService] = None):
        """
        Initialize the waitlist service.

        Args:
            session: SQLAlchemy database session
            notifier: Notification dispatcher (log-only by default)
        """
        self.session = session
        self.notifier = notifier or NotificationService()
        self.assignments = AssignmentService(session)

    def _find_entry(self, entry_id: int) -> Optional[WaitlistEntry]:
        return self.session.query(WaitlistEntry).filter(
            WaitlistEntry.id == entry_id
        ).populate_existing().first()

    def _lock_entry_dinner(self, entry_id: int):
        """
        Lock the dinner an entry belongs to, then re-read the entry.

        Returns:
            (dinner, entry) or (None, None) when the entry does not exist
        """
        entry = self._find_entry(entry_id)
        if entry is None:
            return None, None

        dinner = self.assignments._get_dinner(entry.dinner_id, lock=True)
        return dinner, self._find_entry(entry_id)

    def _delete_and_renumber(self, entry: WaitlistEntry) -> None:
        """Delete an entry and close the gap behind it. Does not commit."""
        dinner_id = entry.dinner_id
        position = entry.position

        self.session.query(WaitlistEntry).filter(
            WaitlistEntry.id == entry.id
        ).delete(synchronize_session="fetch")

        self.session.query(WaitlistEntry).filter(
            WaitlistEntry.dinner_id == dinner_id,
            WaitlistEntry.position > position
        ).update(
            {WaitlistEntry.position: WaitlistEntry.position - 1},
            synchronize_session="fetch"
        )

    # ------------------------------------------------------------------
    # Join / remove
    # ------------------------------------------------------------------

    @transactional("add_to_waitlist", "Failed to add to waitlist")
    def join(
        self,
        dinner_id: int,
        member_id: Optional[int] = None,
        guest_name: Optional[str] = None,
        guest_email: Optional[str] = None
    ) -> WaitlistEntry:
        """
        Append a member or a guest to the end of a dinner's waitlist.

        Args:
            dinner_id: Dinner to wait for
            member_id: Waiting member, or None for a guest
            guest_name: Guest display name
            guest_email: Guest email, required when member_id is None

        Returns:
            Created WaitlistEntry

        Raises:
            ValidationError: If neither a member nor a guest email is given
            DinnerNotFoundError: If the dinner does not exist
            MemberNotFoundError: If the member does not exist
            DuplicateWaitlistEntryError: If already waiting for this dinner
            DuplicateAssignmentError: If already seated at this dinner
        """
        if member_id is None and not guest_email:
            raise ValidationError(
                "A member or a guest email is required",
                field="user_id"
            )

        if guest_email:
            guest_email = guest_email.strip().lower()

        self.assignments._get_dinner(dinner_id, lock=True)

        duplicate_query = self.session.query(WaitlistEntry.id).filter(
            WaitlistEntry.dinner_id == dinner_id
        )
        if member_id is not None:
            self.assignments._get_member(member_id)
            duplicate = duplicate_query.filter(WaitlistEntry.member_id == member_id).first()
            who = f"Member {member_id}"
        else:
            duplicate = duplicate_query.filter(WaitlistEntry.guest_email == guest_email).first()
            who = guest_email

        if duplicate:
            raise DuplicateWaitlistEntryError(dinner_id, who)

        if self.assignments._is_seated(dinner_id, member_id=member_id, guest_email=guest_email):
            raise DuplicateAssignmentError(dinner_id, member_id=member_id, guest_email=guest_email)

        last_position = self.session.query(func.max(WaitlistEntry.position)).filter(
            WaitlistEntry.dinner_id == dinner_id
        ).scalar()

        entry = WaitlistEntry(
            dinner_id=dinner_id,
            member_id=member_id,
            guest_name=None if member_id is not None else guest_name,
            guest_email=None if member_id is not None else guest_email,
            position=(last_position or 0) + 1,
            status="waiting",
            joined_at=datetime.utcnow()
        )
        self.session.add(entry)
        self.session.commit()

        log_waitlist_event(
            "JOINED",
            dinner_id=dinner_id,
            entry_id=entry.id,
            details={"position": entry.position, "member_id": member_id}
        )
        return entry

    @transactional("remove_from_waitlist", "Failed to remove from waitlist")
    def remove(self, entry_id: int) -> bool:
        """
        Delete a waitlist entry and shift everyone behind it up by one.

        Returns:
            True if the entry existed, False otherwise
        """
        dinner, entry = self._lock_entry_dinner(entry_id)
        if entry is None:
            self.session.commit()
            return False

        position = entry.position
        self._delete_and_renumber(entry)
        self.session.commit()

        log_waitlist_event(
            "REMOVED",
            dinner_id=dinner.id,
            entry_id=entry_id,
            details={"position": position}
        )
        return True

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @transactional("fetch_waitlist", "Failed to fetch waitlist")
    def list_entries(self, dinner_id: int) -> List[WaitlistEntryResponse]:
        """Entries ordered by position, with member name and email folded in."""
        rows = self.session.query(WaitlistEntry, Member).outerjoin(
            Member, WaitlistEntry.member_id == Member.id
        ).filter(
            WaitlistEntry.dinner_id == dinner_id
        ).order_by(WaitlistEntry.position).all()

        entries = []
        for entry, member in rows:
            response = WaitlistEntryResponse.model_validate(entry)
            if member is not None:
                response = response.model_copy(update={
                    "guest_name": member.name,
                    "guest_email": member.email,
                })
            entries.append(response)
        return entries

    @transactional("fetch_waitlist_position", "Failed to fetch waitlist position")
    def get_position(
        self,
        dinner_id: int,
        member_id: Optional[int] = None,
        guest_email: Optional[str] = None
    ) -> Optional[int]:
        """
        Position of a still-waiting entry, or None.

        Raises:
            ValidationError: If neither a member nor a guest email is given
        """
        if member_id is None and not guest_email:
            raise ValidationError("A member or a guest email is required", field="userId")

        query = self.session.query(WaitlistEntry.position).filter(
            WaitlistEntry.dinner_id == dinner_id,
            WaitlistEntry.status == "waiting"
        )
        if member_id is not None:
            query = query.filter(WaitlistEntry.member_id == member_id)
        else:
            query = query.filter(WaitlistEntry.guest_email == guest_email.strip().lower())

        row = query.first()
        return row[0] if row else None

    # ------------------------------------------------------------------
    # Promotion and conversion
    # ------------------------------------------------------------------

    @transactional("promote_from_waitlist", "Failed to promote from waitlist")
    def promote_after_cancellation(self, dinner_id: int) -> Optional[WaitlistEntry]:
        """
        Notify the first waiting entry if the dinner has a free seat.

        The entry keeps its position; it only moves to ``notified``.

        Returns:
            The notified entry, or None if there was no seat or nobody waiting

        Raises:
            DinnerNotFoundError: If the dinner does not exist
        """
        dinner: Dinner = self.assignments._get_dinner(dinner_id, lock=True)
        capacity = self.assignments._capacity_for(dinner)

        if capacity.available_spots <= 0 or capacity.waitlist_count == 0:
            self.session.commit()
            logger.debug(
                f"No promotion for dinner {dinner_id}: "
                f"{capacity.available_spots} spots, {capacity.waitlist_count} waiting"
            )
            return None

        # Entries whose member or guest email already holds a seat are skipped
        seated = self.session.query(Assignment.id).filter(
            Assignment.dinner_id == WaitlistEntry.dinner_id,
            or_(
                Assignment.member_id == WaitlistEntry.member_id,
                Assignment.guest_email == WaitlistEntry.guest_email
            )
        )
        entry = self.session.query(WaitlistEntry).filter(
            WaitlistEntry.dinner_id == dinner_id,
            WaitlistEntry.status == "waiting",
            ~seated.exists()
        ).order_by(WaitlistEntry.position).first()

        if entry is None:
            self.session.commit()
            logger.debug(f"No promotion for dinner {dinner_id}: every waiting entry is already seated")
            return None

        entry.status = "notified"
        entry.notified_at = datetime.utcnow()
        self.session.commit()

        log_waitlist_event(
            "NOTIFIED",
            dinner_id=dinner_id,
            entry_id=entry.id,
            details={"position": entry.position, "available_spots": capacity.available_spots}
        )
        self.notifier.notify_waitlist_spot(entry, dinner)
        return entry

    @transactional("convert_waitlist_entry", "Failed to convert waitlist entry")
    def convert(self, entry_id: int, table_number: Optional[int] = None) -> Assignment:
        """
        Turn a waitlist entry into a seat assignment.

        Member entries follow the same capacity, duplicate and credit rules
        as a direct assignment. Guest entries get a guest seat without a
        credit debit. The entry is then removed and the queue renumbered,
        all in one transaction.

        Args:
            entry_id: Waitlist entry to convert
            table_number: Table number, defaults to 1

        Returns:
            Created Assignment

        Raises:
            WaitlistEntryNotFoundError: If the entry does not exist
            CapacityExceededError: If the dinner is full
            InsufficientCreditError: If a non-subscriber has no credits
            DuplicateAssignmentError: If the member already has a seat
        """
        dinner, entry = self._lock_entry_dinner(entry_id)
        if entry is None:
            raise WaitlistEntryNotFoundError(entry_id)

        table = table_number or DEFAULT_TABLE_NUMBER
        self.assignments._ensure_capacity(dinner)

        if entry.member_id is not None:
            member = self.assignments._get_member(entry.member_id, lock=True)
            assignment = self.assignments._seat_member(dinner, member, table)
        else:
            assignment = self.assignments._seat_guest(
                dinner, entry.guest_name, entry.guest_email, table
            )

        entry.status = "converted"
        self.session.flush()
        self._delete_and_renumber(entry)
        self.session.commit()

        log_waitlist_event(
            "CONVERTED",
            dinner_id=dinner.id,
            entry_id=entry_id,
            details={"assignment_id": assignment.id, "credit_deducted": assignment.credit_deducted}
        )
        return assignment
