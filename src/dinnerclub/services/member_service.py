"""
MemberService - member listing and credential checks.
"""
from typing import List, Optional

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..models.database import Assignment, City, Member
from ..models.schemas import MemberSummary
from ..error_handling.exceptions import AuthenticationError, ValidationError
from ..error_handling.handlers import transactional
from ..security import verify_password


class MemberService:
    """
    Service class for member accounts.
    """

    def __init__(self, session: Session):
        self.session = session

    @transactional("fetch_members", "Failed to fetch members")
    def list_members(self) -> List[MemberSummary]:
        """
        Regular (non-admin) members with their city, newest first.

        ``attendance_count`` is the number of dinners the member is seated at.
        """
        attendance = select(func.count(Assignment.id)).where(
            Assignment.member_id == Member.id
        ).correlate(Member).scalar_subquery()

        rows = self.session.query(Member, City.name, attendance).outerjoin(
            City, Member.city_id == City.id
        ).filter(
            Member.role == "user"
        ).order_by(Member.created_at.desc(), Member.id.desc()).all()

        return [
            MemberSummary(
                id=member.id,
                name=member.name,
                email=member.email,
                phone=member.phone,
                credit_balance=member.credit_balance,
                subscription_status=member.subscription_status,
                subscription_renewal_date=member.subscription_renewal_date,
                attendance_count=attendance_count or 0,
                created_at=member.created_at,
                city_name=city_name
            )
            for member, city_name, attendance_count in rows
        ]

    @transactional("fetch_member", "Failed to fetch member")
    def get_member(self, member_id: int) -> Optional[Member]:
        return self.session.query(Member).filter(Member.id == member_id).first()

    @transactional("authenticate", "Internal server error")
    def authenticate(self, email: Optional[str], password: Optional[str]) -> Member:
        """
        Check an email/password pair.

        Raises:
            ValidationError: If either field is missing
            AuthenticationError: If the credentials do not match a member
        """
        if not email or not password:
            raise ValidationError("Email and password are required", field="email")

        email = email.strip().lower()
        member = self.session.query(Member).filter(
            func.lower(Member.email) == email
        ).first()

        if member is None or not verify_password(password, member.password_hash):
            logger.warning(f"Failed login attempt for {email}")
            raise AuthenticationError(
                f"Invalid credentials for {email}",
                user_message="Invalid credentials"
            )

        logger.info(f"Member {member.id} logged in ({member.role})")
        return member
