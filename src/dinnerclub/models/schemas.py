"""
Pydantic models for request validation and response serialization.
"""
import re
from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, Field, field_validator, ConfigDict


EMAIL_PATTERN = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'


def _normalize_email(v: Optional[str]) -> Optional[str]:
    if v is None or v.strip() == "":
        return None
    v = v.strip().lower()
    if not re.match(EMAIL_PATTERN, v):
        raise ValueError("Invalid email format")
    return v


# ============================================================================
# Assignments
# ============================================================================

class AssignmentCreate(BaseModel):
    """
    Request body for seating a member at a dinner.
    """
    event_id: int = Field(..., description="Dinner id")
    user_id: int = Field(..., description="Member id")
    table_number: Optional[int] = Field(None, ge=1, description="Table number (defaults to 1)")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {"event_id": 12, "user_id": 40, "table_number": 2}
        }
    )


class AssignmentTableUpdate(BaseModel):
    """
    Request body for moving an assignment to another table.
    """
    assignment_id: int
    table_number: int = Field(..., ge=1)


class AssignmentResponse(BaseModel):
    """
    Seat assignment as returned by the API.
    """
    id: int
    event_id: int = Field(validation_alias="dinner_id")
    user_id: Optional[int] = Field(None, validation_alias="member_id")
    guest_name: Optional[str] = None
    guest_email: Optional[str] = None
    table_number: int
    assigned_at: datetime
    credit_deducted: bool

    model_config = ConfigDict(from_attributes=True)


class AssignmentDetail(BaseModel):
    """
    Assignment row joined with member details and survey answers.
    """
    id: int
    user_id: Optional[int]
    table_number: int
    assigned_at: datetime
    credit_deducted: bool
    name: Optional[str]
    email: Optional[str]
    phone: Optional[str] = None
    credit_balance: Optional[int] = None
    survey_data: Optional[Any] = None


class AvailableMember(BaseModel):
    """
    Member eligible to be seated at a dinner.
    """
    id: int
    name: str
    email: str
    credit_balance: int
    subscription_status: Optional[str]


class CapacityInfo(BaseModel):
    """
    Seat usage of a dinner.
    """
    dinner_id: int
    seats: int
    current_assignments: int
    available_spots: int
    has_capacity: bool
    waitlist_count: int = 0


class RemovalResult(BaseModel):
    """
    Outcome of removing an assignment.
    """
    assignment_id: int
    removed: bool
    refunded: bool = False
    member_id: Optional[int] = None
    dinner_id: Optional[int] = None


# ============================================================================
# Waitlist
# ============================================================================

class WaitlistJoin(BaseModel):
    """
    Request body for adding a member or a guest to a dinner's waitlist.
    """
    event_id: int
    user_id: Optional[int] = None
    guest_name: Optional[str] = Field(None, max_length=255)
    guest_email: Optional[str] = Field(None, max_length=255)

    @field_validator("guest_email")
    @classmethod
    def validate_email_format(cls, v: Optional[str]) -> Optional[str]:
        """Validate email format if provided."""
        return _normalize_email(v)


class WaitlistPromote(BaseModel):
    event_id: int


class WaitlistConvert(BaseModel):
    table_number: Optional[int] = Field(None, ge=1)


class WaitlistEntryResponse(BaseModel):
    """
    Waitlist entry as returned by the API.
    """
    id: int
    event_id: int = Field(validation_alias="dinner_id")
    user_id: Optional[int] = Field(None, validation_alias="member_id")
    guest_name: Optional[str] = None
    guest_email: Optional[str] = None
    position: int
    status: str
    joined_at: datetime
    notified_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# Dinners
# ============================================================================

class DinnerCreate(BaseModel):
    """
    Request body for creating a dinner.
    """
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = ""
    event_date: datetime
    restaurant_id: Optional[int] = None
    city_id: Optional[int] = None
    seats: Optional[int] = Field(None, gt=0)

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        """Validate title is not empty after stripping whitespace."""
        if not v.strip():
            raise ValueError("Title cannot be empty")
        return v.strip()

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Thursday Supper",
                "event_date": "2026-11-05T19:30:00",
                "restaurant_id": 3,
                "seats": 6
            }
        }
    )


class DinnerUpdate(BaseModel):
    """
    Request body for updating a dinner.
    """
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    event_date: Optional[datetime] = None
    restaurant_id: Optional[int] = None
    seats: Optional[int] = Field(None, gt=0)
    status: Optional[str] = Field(None, pattern="^(draft|confirmed|closed|completed)$")


class DinnerSummary(BaseModel):
    """
    Dinner with joined names and current assignment count.
    """
    id: int
    title: str
    description: Optional[str]
    event_date: datetime
    location: Optional[str]
    created_by: Optional[int]
    city_id: Optional[int]
    restaurant_id: Optional[int]
    seats: int
    status: str
    created_at: datetime
    city_name: Optional[str] = None
    restaurant_name: Optional[str] = None
    assigned_count: int = 0


# ============================================================================
# Members and auth
# ============================================================================

class MemberSummary(BaseModel):
    """
    Member row for the admin member list.
    """
    id: int
    name: str
    email: str
    phone: Optional[str]
    credit_balance: int
    subscription_status: str
    subscription_renewal_date: Optional[datetime]
    attendance_count: int = 0
    created_at: datetime
    city_name: Optional[str] = None


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class AuthenticatedUser(BaseModel):
    """
    Public view of the logged-in member.
    """
    id: int
    name: str
    email: str
    role: str

    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# Restaurants
# ============================================================================

class RestaurantCreate(BaseModel):
    """
    Request body for creating a restaurant partner.
    """
    name: str = Field(..., min_length=1, max_length=255)
    address: Optional[str] = None
    city_id: Optional[int] = None
    contact_name: Optional[str] = None
    contact_phone: Optional[str] = None
    contact_email: Optional[str] = None
    capacity: Optional[int] = Field(None, ge=0)
    neighborhood: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("contact_email")
    @classmethod
    def validate_email_format(cls, v: Optional[str]) -> Optional[str]:
        """Validate email format if provided."""
        return _normalize_email(v)


class RestaurantUpdate(RestaurantCreate):
    """
    Request body for updating a restaurant partner (full replacement).
    """
    id: int
    booking_status: str = Field("available", max_length=50)


class RestaurantResponse(BaseModel):
    id: int
    name: str
    address: Optional[str]
    city_id: Optional[int]
    contact_name: Optional[str]
    contact_phone: Optional[str]
    contact_email: Optional[str]
    capacity: Optional[int]
    neighborhood: Optional[str]
    notes: Optional[str]
    booking_status: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RestaurantSummary(RestaurantResponse):
    """
    Restaurant with city name, hosted dinner count and average rating.
    """
    city_name: Optional[str] = None
    dinners_hosted: int = 0
    avg_rating: float = 0.0


# ============================================================================
# Surveys
# ============================================================================

class SurveyQuestionCreate(BaseModel):
    """
    Request body for creating a survey question.
    """
    survey_type: str = Field(..., min_length=1, max_length=50)
    question: str = Field(..., min_length=1)
    question_type: str = Field(..., min_length=1, max_length=50)
    options: Optional[List[Any]] = None
    matching_weight: Optional[int] = None
    is_required: Optional[bool] = None
    display_order: Optional[int] = None


class SurveyQuestionUpdate(BaseModel):
    """
    Request body for updating a survey question (full replacement).
    """
    id: int
    survey_type: str = Field(..., min_length=1, max_length=50)
    question: str = Field(..., min_length=1)
    question_type: str = Field(..., min_length=1, max_length=50)
    options: Optional[List[Any]] = None
    matching_weight: int = 1
    is_required: bool = True
    display_order: int = 0


class SurveyQuestionResponse(BaseModel):
    id: int
    survey_type: str
    question: str
    question_type: str
    options: Optional[List[Any]]
    matching_weight: int
    is_required: bool
    display_order: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# Promo codes, cities
# ============================================================================

class PromoCodeCreate(BaseModel):
    """
    Request body for creating a promo code.
    """
    code: str = Field(..., min_length=1, max_length=64)
    credits: int = Field(..., gt=0)
    max_uses: Optional[int] = Field(None, gt=0)
    expires_at: Optional[datetime] = None

    @field_validator("code")
    @classmethod
    def validate_code(cls, v: str) -> str:
        """Promo codes are stored upper-case without surrounding whitespace."""
        v = v.strip().upper()
        if not v:
            raise ValueError("Code cannot be empty")
        return v


class PromoCodeResponse(BaseModel):
    id: int
    code: str
    credits: int
    max_uses: Optional[int]
    times_used: int
    expires_at: Optional[datetime]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CityResponse(BaseModel):
    id: int
    name: str

    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# Dashboard
# ============================================================================

class DashboardStats(BaseModel):
    """
    Headline numbers for the admin dashboard.
    """
    totalMembers: int
    activeSubscribers: int
    upcomingDinners: int
    totalRevenue: int
    seatFillRate: float
    repeatAttendance: float
    avgCreditsPerMember: float
    waitlistCount: int
    upcomingDinnerGuests: int
    filledTables: int
    seatAssignments: int
