"""
Unit and integration tests for AssignmentService.

Tests cover:
- Capacity checks and the seat ceiling
- Credit debit for non-subscribers and the subscriber exemption
- Refund on removal, exactly once
- Table moves and the admin group listing
- Storage failures surfacing as DatabaseError
"""
import pytest
from unittest.mock import patch
from sqlalchemy import func
from sqlalchemy.exc import OperationalError

from dinnerclub.models.database import Assignment, CreditTransaction, Member, SurveyResponse
from dinnerclub.error_handling.exceptions import (
    AssignmentNotFoundError,
    CapacityExceededError,
    DatabaseError,
    DinnerNotFoundError,
    DuplicateAssignmentError,
    InsufficientCreditError,
    MemberNotFoundError,
)


def _assignment_count(session, dinner_id: int) -> int:
    return session.query(func.count(Assignment.id)).filter(Assignment.dinner_id == dinner_id).scalar()


class TestCapacityChecker:
    """Test capacity reporting."""

    def test_empty_dinner_has_capacity(self, assignment_service, make_dinner):
        """A dinner without assignments reports every seat free."""
        dinner = make_dinner(seats=6)

        info = assignment_service.check_capacity(dinner.id)

        assert info.seats == 6
        assert info.current_assignments == 0
        assert info.available_spots == 6
        assert info.has_capacity is True

    def test_full_dinner_has_no_capacity(self, assignment_service, make_dinner, make_member):
        """Filling every seat flips has_capacity."""
        dinner = make_dinner(seats=2)
        for _ in range(2):
            assignment_service.create_assignment(dinner.id, make_member(credit_balance=1).id)

        info = assignment_service.check_capacity(dinner.id)

        assert info.current_assignments == 2
        assert info.available_spots == 0
        assert info.has_capacity is False

    def test_unknown_dinner(self, assignment_service):
        """Unknown dinner ids raise DinnerNotFoundError."""
        with pytest.raises(DinnerNotFoundError) as exc_info:
            assignment_service.check_capacity(9999)

        assert exc_info.value.user_message == "Event not found"


class TestCreateAssignment:
    """Test the assignment writer."""

    def test_non_subscriber_is_debited(self, db_session, assignment_service, make_dinner, make_member):
        """Balance 3 without subscription drops to 2 and the flag is set."""
        dinner = make_dinner()
        member = make_member(credit_balance=3)

        assignment = assignment_service.create_assignment(dinner.id, member.id)
        db_session.refresh(member)

        assert assignment.credit_deducted is True
        assert assignment.table_number == 1
        assert member.credit_balance == 2

        ledger = db_session.query(CreditTransaction).filter_by(member_id=member.id).all()
        assert [(t.transaction_type, t.credits) for t in ledger] == [("assignment_debit", -1)]
        assert ledger[0].assignment_id == assignment.id

    def test_subscriber_is_not_debited(self, db_session, assignment_service, make_dinner, make_member):
        """Active subscribers keep their balance, even when it is zero."""
        dinner = make_dinner()
        member = make_member(credit_balance=0, subscription_status="active")

        assignment = assignment_service.create_assignment(dinner.id, member.id, table_number=3)
        db_session.refresh(member)

        assert assignment.credit_deducted is False
        assert assignment.table_number == 3
        assert member.credit_balance == 0
        assert db_session.query(CreditTransaction).count() == 0

    def test_paused_subscription_pays_with_credit(self, db_session, assignment_service, make_dinner, make_member):
        """Only an active subscription skips the debit."""
        dinner = make_dinner()
        member = make_member(credit_balance=1, subscription_status="paused")

        assignment = assignment_service.create_assignment(dinner.id, member.id)
        db_session.refresh(member)

        assert assignment.credit_deducted is True
        assert member.credit_balance == 0

    def test_zero_credit_non_subscriber_rejected(self, db_session, assignment_service, make_dinner, make_member):
        """No credits and no subscription: rejected, nothing written."""
        dinner = make_dinner()
        member = make_member(credit_balance=0)

        with pytest.raises(InsufficientCreditError):
            assignment_service.create_assignment(dinner.id, member.id)

        db_session.refresh(member)
        assert member.credit_balance == 0
        assert _assignment_count(db_session, dinner.id) == 0
        assert db_session.query(CreditTransaction).count() == 0

    def test_seventh_assignment_rejected(self, db_session, assignment_service, make_dinner, make_member):
        """seats=6 with 6 assignments: the 7th cites the seat count."""
        dinner = make_dinner(seats=6)
        for _ in range(6):
            assignment_service.create_assignment(dinner.id, make_member(credit_balance=2).id)

        late = make_member(credit_balance=2)
        with pytest.raises(CapacityExceededError) as exc_info:
            assignment_service.create_assignment(dinner.id, late.id)

        assert "6 seats" in exc_info.value.user_message
        assert _assignment_count(db_session, dinner.id) == 6
        db_session.refresh(late)
        assert late.credit_balance == 2

    def test_capacity_never_exceeded(self, db_session, assignment_service, make_dinner, make_member):
        """Assignments never outnumber seats however many members try."""
        dinner = make_dinner(seats=3)
        rejected = 0
        for _ in range(8):
            try:
                assignment_service.create_assignment(dinner.id, make_member(credit_balance=1).id)
            except CapacityExceededError:
                rejected += 1

        assert _assignment_count(db_session, dinner.id) == 3
        assert rejected == 5

    def test_duplicate_assignment_rejected(self, db_session, assignment_service, make_dinner, make_member):
        """A member cannot hold two seats at one dinner or pay twice."""
        dinner = make_dinner()
        member = make_member(credit_balance=5)
        assignment_service.create_assignment(dinner.id, member.id)

        with pytest.raises(DuplicateAssignmentError):
            assignment_service.create_assignment(dinner.id, member.id)

        db_session.refresh(member)
        assert member.credit_balance == 4
        assert _assignment_count(db_session, dinner.id) == 1

    def test_unknown_dinner_and_member(self, assignment_service, make_dinner, make_member):
        """Bad references raise the matching not-found error."""
        member = make_member(credit_balance=1)
        with pytest.raises(DinnerNotFoundError):
            assignment_service.create_assignment(424242, member.id)

        dinner = make_dinner()
        with pytest.raises(MemberNotFoundError):
            assignment_service.create_assignment(dinner.id, 424242)

    def test_storage_failure_becomes_database_error(self, db_session, assignment_service, make_dinner, make_member):
        """SQLAlchemy failures are rolled back and re-raised with a generic message."""
        dinner = make_dinner()
        member = make_member(credit_balance=1)

        with patch.object(
            db_session, "commit",
            side_effect=OperationalError("COMMIT", {}, Exception("database is locked"))
        ):
            with pytest.raises(DatabaseError) as exc_info:
                assignment_service.create_assignment(dinner.id, member.id)

        assert exc_info.value.user_message == "Failed to add member to dinner"
        assert "locked" not in exc_info.value.user_message
        assert _assignment_count(db_session, dinner.id) == 0
        db_session.refresh(member)
        assert member.credit_balance == 1


class TestRemoveAssignment:
    """Test the assignment remover."""

    def test_remove_refunds_debited_credit(self, db_session, assignment_service, make_dinner, make_member):
        """Balance 3 → assigned (2) → removed (3)."""
        dinner = make_dinner()
        member = make_member(credit_balance=3)
        assignment = assignment_service.create_assignment(dinner.id, member.id)

        result = assignment_service.remove_assignment(assignment.id)
        db_session.refresh(member)

        assert result.removed is True
        assert result.refunded is True
        assert result.dinner_id == dinner.id
        assert member.credit_balance == 3
        types = [t.transaction_type for t in db_session.query(CreditTransaction).order_by(CreditTransaction.id)]
        assert types == ["assignment_debit", "assignment_refund"]

    def test_second_removal_does_not_refund(self, db_session, assignment_service, make_dinner, make_member):
        """Removing the same assignment twice refunds once."""
        dinner = make_dinner()
        member = make_member(credit_balance=3)
        assignment = assignment_service.create_assignment(dinner.id, member.id)

        assignment_service.remove_assignment(assignment.id)
        second = assignment_service.remove_assignment(assignment.id)
        db_session.refresh(member)

        assert second.removed is False
        assert second.refunded is False
        assert member.credit_balance == 3

    def test_subscriber_removal_does_not_refund(self, db_session, assignment_service, make_dinner, make_member):
        """No credit was debited, so none is returned."""
        dinner = make_dinner()
        member = make_member(credit_balance=0, subscription_status="active")
        assignment = assignment_service.create_assignment(dinner.id, member.id)

        result = assignment_service.remove_assignment(assignment.id)
        db_session.refresh(member)

        assert result.removed is True
        assert result.refunded is False
        assert member.credit_balance == 0

    def test_unknown_assignment_is_noop(self, assignment_service):
        """Unknown ids report removed=False without raising."""
        result = assignment_service.remove_assignment(31337)

        assert result.removed is False
        assert result.refunded is False

    def test_removal_frees_a_seat(self, assignment_service, make_dinner, make_member):
        dinner = make_dinner(seats=1)
        assignment = assignment_service.create_assignment(dinner.id, make_member(credit_balance=1).id)
        assignment_service.remove_assignment(assignment.id)

        assert assignment_service.check_capacity(dinner.id).has_capacity is True


class TestTablesAndListings:
    """Test table moves and the group listing."""

    def test_update_table(self, assignment_service, make_dinner, make_member):
        dinner = make_dinner()
        assignment = assignment_service.create_assignment(dinner.id, make_member(credit_balance=1).id)

        updated = assignment_service.update_table(assignment.id, 4)

        assert updated.table_number == 4

    def test_update_table_unknown(self, assignment_service):
        with pytest.raises(AssignmentNotFoundError):
            assignment_service.update_table(999, 2)

    def test_list_assignments_ordered_with_survey_data(self, db_session, assignment_service, make_dinner, make_member):
        """Listing is ordered by table then seating time and carries survey answers."""
        dinner = make_dinner()
        first = make_member(name="Zoe", credit_balance=1)
        second = make_member(name="Yan", credit_balance=1)
        assignment_service.create_assignment(dinner.id, first.id, table_number=2)
        assignment_service.create_assignment(dinner.id, second.id, table_number=1)
        db_session.add(SurveyResponse(member_id=first.id, dinner_id=dinner.id, responses={"diet": "vegan"}))
        db_session.commit()

        details = assignment_service.list_assignments(dinner.id)

        assert [d.name for d in details] == ["Yan", "Zoe"]
        assert details[1].survey_data == {"diet": "vegan"}
        assert details[0].survey_data is None

    def test_available_members(self, assignment_service, make_dinner, make_member):
        """Regular members with credits or a subscription, not yet seated, by name."""
        dinner = make_dinner()
        seated = make_member(name="Carl", credit_balance=2)
        make_member(name="Bea", credit_balance=0, subscription_status="active")
        make_member(name="Abe", credit_balance=1)
        make_member(name="Dot", credit_balance=0)
        make_member(name="Eve", credit_balance=5, role="admin")
        assignment_service.create_assignment(dinner.id, seated.id)

        available = assignment_service.list_available_members(dinner.id)

        assert [m.name for m in available] == ["Abe", "Bea"]
        assert available[1].subscription_status == "active"
        assert available[0].subscription_status is None


class TestCreditLedgerInvariant:
    """Balances never go negative."""

    def test_balance_never_negative(self, db_session, assignment_service, make_dinner, make_member):
        member = make_member(credit_balance=1)
        first = make_dinner()
        second = make_dinner()

        assignment_service.create_assignment(first.id, member.id)
        with pytest.raises(InsufficientCreditError):
            assignment_service.create_assignment(second.id, member.id)

        balance = db_session.query(Member.credit_balance).filter(Member.id == member.id).scalar()
        assert balance == 0
