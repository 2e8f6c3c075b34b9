"""
Models package - SQLAlchemy ORM models and Pydantic schemas.
"""
from .database import (
    Base,
    City,
    Member,
    Restaurant,
    Dinner,
    Assignment,
    WaitlistEntry,
    SurveyQuestion,
    SurveyResponse,
    PromoCode,
    CreditTransaction,
    init_db,
    create_tables,
    check_connection,
    get_db_session,
    get_db,
)

from .schemas import (
    AssignmentCreate,
    AssignmentTableUpdate,
    AssignmentResponse,
    AssignmentDetail,
    AvailableMember,
    CapacityInfo,
    RemovalResult,
    WaitlistJoin,
    WaitlistEntryResponse,
    DinnerCreate,
    DinnerUpdate,
    DinnerSummary,
    MemberSummary,
)

__all__ = [
    # Database models
    "Base",
    "City",
    "Member",
    "Restaurant",
    "Dinner",
    "Assignment",
    "WaitlistEntry",
    "SurveyQuestion",
    "SurveyResponse",
    "PromoCode",
    "CreditTransaction",
    # Database utilities
    "init_db",
    "create_tables",
    "check_connection",
    "get_db_session",
    "get_db",
    # Pydantic schemas
    "AssignmentCreate",
    "AssignmentTableUpdate",
    "AssignmentResponse",
    "AssignmentDetail",
    "AvailableMember",
    "CapacityInfo",
    "RemovalResult",
    "WaitlistJoin",
    "WaitlistEntryResponse",
    "DinnerCreate",
    "DinnerUpdate",
    "DinnerSummary",
    "MemberSummary",
]
