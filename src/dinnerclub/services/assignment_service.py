"""
AssignmentService - seat assignment and credit accounting for dinners.

This service handles:
- Capacity checks (current assignments vs declared seats)
- Seating a member, debiting a credit from non-subscribers
- Removing a seat, refunding the credit only if one was debited
- Table moves and the admin group listing

Every write runs in a single transaction that locks the dinner row
(capacity) and the member row (credit balance) before re-checking its
preconditions.
"""
from datetime import datetime
from typing import List, Optional

from loguru import logger
from sqlalchemy import and_, or_, func, select
from sqlalchemy.orm import Session

from ..models.database import (
    Assignment,
    CreditTransaction,
    Dinner,
    Member,
    SurveyResponse,
    WaitlistEntry,
)
from ..models.schemas import (
    AssignmentDetail,
    AvailableMember,
    CapacityInfo,
    RemovalResult,
)
from ..error_handling.exceptions import (
    AssignmentNotFoundError,
    CapacityExceededError,
    DinnerNotFoundError,
    DuplicateAssignmentError,
    InsufficientCreditError,
    MemberNotFoundError,
)
from ..error_handling.handlers import transactional
from ..error_handling.logging_config import log_ledger_event


DEFAULT_TABLE_NUMBER = 1


class AssignmentService:
    """
    Service class that encapsulates the seat assignment workflow.

    This service is responsible for:
    - Enforcing dinner capacity
    - Debiting and refunding member credits
    - Keeping ``credit_deducted`` truthful for every assignment
    """

    def __init__(self, session: Session):
        """
        Initialize the assignment service with a database session.

        Args:
            session: SQLAlchemy database session
        """
        self.session = session

    # ------------------------------------------------------------------
    # Row access
    # ------------------------------------------------------------------

    def _get_dinner(self, dinner_id: int, lock: bool = False) -> Dinner:
        query = self.session.query(Dinner).filter(Dinner.id == dinner_id)
        if lock:
            query = query.with_for_update()
        dinner = query.first()
        if dinner is None:
            raise DinnerNotFoundError(dinner_id)
        return dinner

    def _get_member(self, member_id: int, lock: bool = False) -> Member:
        query = self.session.query(Member).filter(Member.id == member_id)
        if lock:
            query = query.with_for_update()
        member = query.first()
        if member is None:
            raise MemberNotFoundError(member_id)
        return member

    def _count_assignments(self, dinner_id: int) -> int:
        return self.session.query(func.count(Assignment.id)).filter(
            Assignment.dinner_id == dinner_id
        ).scalar() or 0

    def _capacity_for(self, dinner: Dinner) -> CapacityInfo:
        current = self._count_assignments(dinner.id)
        waiting = self.session.query(func.count(WaitlistEntry.id)).filter(
            WaitlistEntry.dinner_id == dinner.id,
            WaitlistEntry.status == "waiting"
        ).scalar() or 0
        available = max(0, dinner.seats - current)

        return CapacityInfo(
            dinner_id=dinner.id,
            seats=dinner.seats,
            current_assignments=current,
            available_spots=available,
            has_capacity=current < dinner.seats,
            waitlist_count=waiting
        )

    def _ensure_capacity(self, dinner: Dinner) -> None:
        """Raise CapacityExceededError unless the dinner has a free seat. Call with the dinner row locked."""
        current = self._count_assignments(dinner.id)
        if current >= dinner.seats:
            raise CapacityExceededError(
                dinner_id=dinner.id,
                seats=dinner.seats,
                current_assignments=current
            )

    def _record_ledger(self, member_id: int, assignment_id: int, transaction_type: str, credits: int) -> None:
        self.session.add(CreditTransaction(
            member_id=member_id,
            transaction_type=transaction_type,
            amount=0,
            credits=credits,
            assignment_id=assignment_id,
            created_at=datetime.utcnow()
        ))

    # ------------------------------------------------------------------
    # Capacity Checker
    # ------------------------------------------------------------------

    @transactional("check_capacity", "Failed to check event capacity")
    def check_capacity(self, dinner_id: int) -> CapacityInfo:
        """
        Compare the dinner's current assignment count with its seat count.

        Args:
            dinner_id: Dinner to check

        Returns:
            CapacityInfo with the raw numbers and a has_capacity flag

        Raises:
            DinnerNotFoundError: If the dinner does not exist
        """
        dinner = self._get_dinner(dinner_id)
        return self._capacity_for(dinner)

    # ------------------------------------------------------------------
    # Assignment Writer
    # ------------------------------------------------------------------

    def _is_seated(
        self,
        dinner_id: int,
        member_id: Optional[int] = None,
        guest_email: Optional[str] = None
    ) -> bool:
        """Whether the member, or the guest email, already holds a seat at the dinner."""
        query = self.session.query(Assignment.id).filter(Assignment.dinner_id == dinner_id)
        if member_id is not None:
            query = query.filter(Assignment.member_id == member_id)
        else:
            query = query.filter(Assignment.guest_email == guest_email)
        return query.first() is not None

    def _seat_member(self, dinner: Dinner, member: Member, table_number: int) -> Assignment:
        """
        Insert the assignment and settle the credit. Does not commit.

        Expects the dinner and member rows to be locked and capacity checked.
        """
        if self._is_seated(dinner.id, member_id=member.id):
            raise DuplicateAssignmentError(dinner.id, member_id=member.id)

        credit_deducted = not member.has_active_subscription

        assignment = Assignment(
            dinner_id=dinner.id,
            member_id=member.id,
            table_number=table_number,
            assigned_at=datetime.utcnow(),
            credit_deducted=credit_deducted
        )
        self.session.add(assignment)
        self.session.flush()

        if credit_deducted:
            debited = self.session.query(Member).filter(
                Member.id == member.id,
                Member.credit_balance > 0
            ).update(
                {Member.credit_balance: Member.credit_balance - 1},
                synchronize_session="fetch"
            )
            if debited == 0:
                raise InsufficientCreditError(member.id, member.credit_balance)

            self._record_ledger(member.id, assignment.id, "assignment_debit", -1)
            log_ledger_event(
                "DEBIT",
                member_id=member.id,
                assignment_id=assignment.id,
                details={"dinner_id": dinner.id}
            )
        else:
            log_ledger_event(
                "SKIPPED",
                member_id=member.id,
                assignment_id=assignment.id,
                details={"dinner_id": dinner.id, "reason": "active_subscription"}
            )

        return assignment

    def _seat_guest(
        self,
        dinner: Dinner,
        guest_name: Optional[str],
        guest_email: str,
        table_number: int
    ) -> Assignment:
        """Insert a guest assignment. Guests never spend credits. Does not commit."""
        if self._is_seated(dinner.id, guest_email=guest_email):
            raise DuplicateAssignmentError(dinner.id, guest_email=guest_email)

        assignment = Assignment(
            dinner_id=dinner.id,
            member_id=None,
            guest_name=guest_name,
            guest_email=guest_email,
            table_number=table_number,
            assigned_at=datetime.utcnow(),
            credit_deducted=False
        )
        self.session.add(assignment)
        self.session.flush()
        return assignment

    @transactional("add_member_to_dinner", "Failed to add member to dinner")
    def create_assignment(
        self,
        dinner_id: int,
        member_id: int,
        table_number: Optional[int] = None
    ) -> Assignment:
        """
        Seat a member at a dinner.

        This method performs an atomic transaction:
        1. Lock the dinner row and verify a seat is free
        2. Lock the member row and reject duplicates
        3. Insert the assignment
        4. Debit one credit unless the member has an active subscription

        Args:
            dinner_id: Dinner to seat the member at
            member_id: Member to seat
            table_number: Table number, defaults to 1

        Returns:
            Created Assignment instance

        Raises:
            DinnerNotFoundError: If the dinner does not exist
            CapacityExceededError: If every seat is taken
            MemberNotFoundError: If the member does not exist
            DuplicateAssignmentError: If the member already has a seat
            InsufficientCreditError: If a non-subscriber has no credits
            DatabaseError: If database operation fails
        """
        dinner = self._get_dinner(dinner_id, lock=True)
        self._ensure_capacity(dinner)
        member = self._get_member(member_id, lock=True)

        assignment = self._seat_member(dinner, member, table_number or DEFAULT_TABLE_NUMBER)

        self.session.commit()

        logger.info(
            f"Seated member {member_id} at dinner {dinner_id} table {assignment.table_number} "
            f"(assignment {assignment.id}, credit_deducted={assignment.credit_deducted})"
        )
        return assignment

    # ------------------------------------------------------------------
    # Assignment Remover
    # ------------------------------------------------------------------

    @transactional("remove_member_from_dinner", "Failed to remove member from dinner")
    def remove_assignment(self, assignment_id: int) -> RemovalResult:
        """
        Delete an assignment and refund the credit if one was debited.

        An unknown id is a no-op reported as ``removed=False``. The refund
        only happens when this call's DELETE removed the row, so a second
        removal of the same assignment never refunds again.

        Args:
            assignment_id: Assignment to delete

        Returns:
            RemovalResult describing what happened

        Raises:
            DatabaseError: If database operation fails
        """
        assignment = self.session.query(Assignment).filter(
            Assignment.id == assignment_id
        ).with_for_update().first()

        if assignment is None:
            self.session.commit()
            logger.info(f"Assignment {assignment_id} not found, nothing to remove")
            return RemovalResult(assignment_id=assignment_id, removed=False)

        member_id = assignment.member_id
        dinner_id = assignment.dinner_id
        credit_deducted = assignment.credit_deducted

        deleted = self.session.query(Assignment).filter(
            Assignment.id == assignment_id
        ).delete(synchronize_session="fetch")

        refunded = False
        if deleted and credit_deducted and member_id is not None:
            self.session.query(Member).filter(Member.id == member_id).update(
                {Member.credit_balance: Member.credit_balance + 1},
                synchronize_session="fetch"
            )
            self._record_ledger(member_id, assignment_id, "assignment_refund", 1)
            refunded = True

        self.session.commit()

        if refunded:
            log_ledger_event(
                "REFUND",
                member_id=member_id,
                assignment_id=assignment_id,
                details={"dinner_id": dinner_id}
            )
        logger.info(f"Removed assignment {assignment_id} from dinner {dinner_id} (refunded={refunded})")

        return RemovalResult(
            assignment_id=assignment_id,
            removed=bool(deleted),
            refunded=refunded,
            member_id=member_id,
            dinner_id=dinner_id
        )

    # ------------------------------------------------------------------
    # Table moves and listings
    # ------------------------------------------------------------------

    @transactional("update_table_assignment", "Failed to update table assignment")
    def update_table(self, assignment_id: int, table_number: int) -> Assignment:
        """
        Move an assignment to another table.

        Raises:
            AssignmentNotFoundError: If the assignment does not exist
        """
        assignment = self.session.query(Assignment).filter(
            Assignment.id == assignment_id
        ).first()
        if assignment is None:
            raise AssignmentNotFoundError(assignment_id)

        assignment.table_number = table_number
        self.session.commit()
        return assignment

    @transactional("fetch_group_assignments", "Failed to fetch group assignments")
    def list_assignments(self, dinner_id: int) -> List[AssignmentDetail]:
        """
        Assignments of a dinner with member details and survey answers,
        ordered by table then seating time.
        """
        self._get_dinner(dinner_id)

        rows = self.session.query(Assignment, Member, SurveyResponse.responses).outerjoin(
            Member, Assignment.member_id == Member.id
        ).outerjoin(
            SurveyResponse,
            and_(
                SurveyResponse.member_id == Assignment.member_id,
                SurveyResponse.dinner_id == Assignment.dinner_id
            )
        ).filter(
            Assignment.dinner_id == dinner_id
        ).order_by(
            Assignment.table_number, Assignment.assigned_at, Assignment.id
        ).all()

        details = []
        for assignment, member, survey_data in rows:
            details.append(AssignmentDetail(
                id=assignment.id,
                user_id=assignment.member_id,
                table_number=assignment.table_number,
                assigned_at=assignment.assigned_at,
                credit_deducted=assignment.credit_deducted,
                name=member.name if member else assignment.guest_name,
                email=member.email if member else assignment.guest_email,
                phone=member.phone if member else None,
                credit_balance=member.credit_balance if member else None,
                survey_data=survey_data
            ))
        return details

    @transactional("fetch_group_assignments", "Failed to fetch group assignments")
    def list_available_members(self, dinner_id: int) -> List[AvailableMember]:
        """
        Members who could be seated: regular members with credits or an
        active subscription who are not yet assigned to this dinner.
        """
        assigned = select(Assignment.member_id).where(
            Assignment.dinner_id == dinner_id,
            Assignment.member_id.isnot(None)
        )

        members = self.session.query(Member).filter(
            Member.role == "user",
            or_(Member.credit_balance > 0, Member.subscription_status == "active"),
            Member.id.notin_(assigned)
        ).order_by(Member.name).all()

        return [
            AvailableMember(
                id=m.id,
                name=m.name,
                email=m.email,
                credit_balance=m.credit_balance,
                subscription_status=m.subscription_status if m.has_active_subscription else None
            )
            for m in members
        ]
