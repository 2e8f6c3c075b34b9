"""
AnalyticsService - dashboard headline numbers and admin reports.

Aggregates are plain SQL counts/sums; month bucketing happens in Python
so the same code runs on PostgreSQL and SQLite.
"""
import calendar
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..models.database import (
    Assignment,
    City,
    CreditTransaction,
    Dinner,
    Member,
    Restaurant,
    SurveyResponse,
    WaitlistEntry,
)
from ..models.schemas import DashboardStats
from ..error_handling.exceptions import ValidationError
from ..error_handling.handlers import log_function_call, transactional


ANALYTICS_TYPES = ("cohort", "city_demand", "revenue", "performance")
UPCOMING_STATUSES = ("confirmed", "draft")
REVENUE_TYPES = ("purchase", "credit_purchase", "subscription")


def _add_months(moment: datetime, months: int) -> datetime:
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def _month_start(moment: datetime) -> datetime:
    return datetime(moment.year, moment.month, 1)


def _percent(part: int, whole: int, digits: int = 1) -> float:
    if whole <= 0:
        return 0.0
    return round(part * 100.0 / whole, digits)


class AnalyticsService:
    """
    Read-only reporting over members, dinners, assignments and revenue.
    """

    def __init__(self, session: Session, now: Optional[datetime] = None):
        """
        Args:
            session: SQLAlchemy database session
            now: Reference time for "upcoming" and trailing windows (defaults to utcnow)
        """
        self.session = session
        self._now = now

    @property
    def now(self) -> datetime:
        return self._now or datetime.utcnow()

    def _assigned_count(self):
        return select(func.count(Assignment.id)).where(
            Assignment.dinner_id == Dinner.id
        ).correlate(Dinner).scalar_subquery()

    # ------------------------------------------------------------------
    # Dashboard
    # ------------------------------------------------------------------

    @transactional("fetch_dashboard_stats", "Failed to fetch dashboard stats")
    def dashboard_stats(self) -> DashboardStats:
        now = self.now
        session = self.session

        total_members = session.query(func.count(Member.id)).filter(Member.role == "user").scalar() or 0
        active_subscribers = session.query(func.count(Member.id)).filter(
            Member.subscription_status == "active"
        ).scalar() or 0
        avg_credits = session.query(func.avg(Member.credit_balance)).filter(
            Member.role == "user"
        ).scalar()

        upcoming_dinners = session.query(func.count(Dinner.id)).filter(
            Dinner.event_date >= now,
            Dinner.status.in_(UPCOMING_STATUSES)
        ).scalar() or 0

        total_revenue = session.query(func.coalesce(func.sum(CreditTransaction.amount), 0)).filter(
            CreditTransaction.transaction_type.in_(("purchase", "credit_purchase"))
        ).scalar() or 0

        dinners = session.query(
            Dinner.seats, Dinner.event_date, Dinner.status, self._assigned_count()
        ).filter(Dinner.seats > 0).all()

        fill_rates = [assigned * 100.0 / seats for seats, _, _, assigned in dinners]
        seat_fill_rate = round(sum(fill_rates) / len(fill_rates), 1) if fill_rates else 0.0

        upcoming = [row for row in dinners if row[1] >= now]
        upcoming_guests = sum(assigned for _, _, _, assigned in upcoming)
        filled_tables = sum(1 for seats, _, _, assigned in upcoming if assigned >= seats)
        seat_assignments = sum(
            assigned for _, _, status, assigned in upcoming if status in UPCOMING_STATUSES
        )

        attendance = session.query(Assignment.member_id, func.count(Assignment.id)).filter(
            Assignment.member_id.isnot(None)
        ).group_by(Assignment.member_id).all()
        repeat_members = sum(1 for _, count in attendance if count > 1)

        waitlist_count = session.query(func.count(WaitlistEntry.id)).filter(
            WaitlistEntry.status == "waiting"
        ).scalar() or 0

        return DashboardStats(
            totalMembers=total_members,
            activeSubscribers=active_subscribers,
            upcomingDinners=upcoming_dinners,
            totalRevenue=int(total_revenue),
            seatFillRate=seat_fill_rate,
            repeatAttendance=_percent(repeat_members, len(attendance)),
            avgCreditsPerMember=round(float(avg_credits), 2) if avg_credits is not None else 0.0,
            waitlistCount=waitlist_count,
            upcomingDinnerGuests=upcoming_guests,
            filledTables=filled_tables,
            seatAssignments=seat_assignments
        )

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    @log_function_call
    def report(self, report_type: Optional[str]) -> List[Dict[str, Any]]:
        """
        Dispatch to one of the analytics reports.

        Raises:
            ValidationError: If the report type is unknown
        """
        if report_type not in ANALYTICS_TYPES:
            raise ValidationError("Invalid analytics type", field="type", value=report_type)
        return getattr(self, f"{report_type}_report")()

    @transactional("fetch_analytics", "Failed to fetch analytics data")
    def cohort_report(self) -> List[Dict[str, Any]]:
        """
        Retention by signup month for the 12 most recent cohorts.

        A member counts as retained at month N when they were seated at
        any dinner at least N months after signing up.
        """
        rows = self.session.query(
            Member.id, Member.created_at, func.max(Assignment.assigned_at)
        ).outerjoin(
            Assignment, Assignment.member_id == Member.id
        ).filter(
            Member.role == "user"
        ).group_by(Member.id, Member.created_at).all()

        cohorts: Dict[datetime, Dict[str, int]] = defaultdict(
            lambda: {"total": 0, "m1": 0, "m2": 0, "m3": 0}
        )
        for _, created_at, last_assigned in rows:
            bucket = cohorts[_month_start(created_at)]
            bucket["total"] += 1
            if last_assigned is None:
                continue
            for months in (1, 2, 3):
                if last_assigned >= _add_months(created_at, months):
                    bucket[f"m{months}"] += 1

        report = []
        for month in sorted(cohorts, reverse=True)[:12]:
            bucket = cohorts[month]
            report.append({
                "signup_month": month.isoformat(),
                "total_signups": bucket["total"],
                "retention_month_1": _percent(bucket["m1"], bucket["total"]),
                "retention_month_2": _percent(bucket["m2"], bucket["total"]),
                "retention_month_3": _percent(bucket["m3"], bucket["total"]),
            })
        return report

    @transactional("fetch_analytics", "Failed to fetch analytics data")
    def city_demand_report(self) -> List[Dict[str, Any]]:
        """Members, dinners and seat demand per city, busiest first."""
        now = self.now

        total_members = select(func.count(Member.id)).where(
            Member.city_id == City.id, Member.role == "user"
        ).correlate(City).scalar_subquery()
        total_dinners = select(func.count(Dinner.id)).where(
            Dinner.city_id == City.id
        ).correlate(City).scalar_subquery()
        total_assignments = select(func.count(Assignment.id)).join(
            Dinner, Assignment.dinner_id == Dinner.id
        ).where(Dinner.city_id == City.id).correlate(City).scalar_subquery()
        avg_seats = select(func.avg(Dinner.seats)).where(
            Dinner.city_id == City.id
        ).correlate(City).scalar_subquery()
        upcoming = select(func.count(Dinner.id)).where(
            Dinner.city_id == City.id, Dinner.event_date >= now
        ).correlate(City).scalar_subquery()

        rows = self.session.query(
            City.id, City.name, total_members, total_dinners, total_assignments, avg_seats, upcoming
        ).all()

        report = [
            {
                "id": city_id,
                "city_name": name,
                "total_members": members or 0,
                "total_dinners": dinners or 0,
                "total_assignments": assignments or 0,
                "avg_seats_per_dinner": round(float(seats), 1) if seats is not None else 0.0,
                "upcoming_dinners": upcoming_count or 0,
            }
            for city_id, name, members, dinners, assignments, seats, upcoming_count in rows
        ]
        report.sort(key=lambda row: (-row["total_members"], row["city_name"]))
        return report

    @transactional("fetch_analytics", "Failed to fetch analytics data")
    def revenue_report(self) -> List[Dict[str, Any]]:
        """Monthly credit and subscription revenue over the trailing 12 months, newest first."""
        since = self.now - timedelta(days=365)
        rows = self.session.query(
            CreditTransaction.member_id,
            CreditTransaction.transaction_type,
            CreditTransaction.amount,
            CreditTransaction.created_at
        ).filter(
            CreditTransaction.created_at >= since,
            CreditTransaction.transaction_type.in_(REVENUE_TYPES)
        ).all()

        months: Dict[datetime, Dict[str, Any]] = {}
        for member_id, transaction_type, amount, created_at in rows:
            bucket = months.setdefault(_month_start(created_at), {
                "credit_revenue": 0,
                "subscription_revenue": 0,
                "credit_buyers": set(),
                "subscribers": set(),
            })
            if transaction_type == "subscription":
                bucket["subscription_revenue"] += amount
                bucket["subscribers"].add(member_id)
            else:
                bucket["credit_revenue"] += amount
                bucket["credit_buyers"].add(member_id)

        return [
            {
                "month": month.isoformat(),
                "credit_revenue": bucket["credit_revenue"],
                "subscription_revenue": bucket["subscription_revenue"],
                "total_revenue": bucket["credit_revenue"] + bucket["subscription_revenue"],
                "credit_buyers": len(bucket["credit_buyers"]),
                "subscribers": len(bucket["subscribers"]),
            }
            for month, bucket in sorted(months.items(), reverse=True)
        ]

    @transactional("fetch_analytics", "Failed to fetch analytics data")
    def performance_report(self) -> List[Dict[str, Any]]:
        """Top 10 restaurants by dinners hosted, with guest count and average rating."""
        dinners_hosted = select(func.count(Dinner.id)).where(
            Dinner.restaurant_id == Restaurant.id
        ).correlate(Restaurant).scalar_subquery()
        total_guests = select(func.count(Assignment.id)).join(
            Dinner, Assignment.dinner_id == Dinner.id
        ).where(Dinner.restaurant_id == Restaurant.id).correlate(Restaurant).scalar_subquery()
        avg_rating = select(func.avg(SurveyResponse.rating)).join(
            Dinner, SurveyResponse.dinner_id == Dinner.id
        ).where(
            Dinner.restaurant_id == Restaurant.id,
            SurveyResponse.rating.isnot(None)
        ).correlate(Restaurant).scalar_subquery()

        hosted = dinners_hosted.label("dinners_hosted")
        rows = self.session.query(
            Restaurant.id, Restaurant.name, City.name, hosted, total_guests, avg_rating
        ).outerjoin(
            City, Restaurant.city_id == City.id
        ).filter(
            dinners_hosted > 0
        ).order_by(hosted.desc(), Restaurant.name).limit(10).all()

        return [
            {
                "id": restaurant_id,
                "restaurant_name": name,
                "city_name": city_name,
                "dinners_hosted": hosted_count or 0,
                "total_guests": guests or 0,
                "avg_rating": round(float(rating), 2) if rating is not None else 0.0,
            }
            for restaurant_id, name, city_name, hosted_count, guests, rating in rows
        ]
