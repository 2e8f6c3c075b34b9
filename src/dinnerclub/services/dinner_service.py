"""
DinnerService - dinner listing, creation and updates, plus the city list.
"""
from typing import List, Optional

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..models.database import Assignment, City, Dinner, Restaurant
from ..models.schemas import CityResponse, DinnerCreate, DinnerSummary, DinnerUpdate
from ..error_handling.exceptions import DinnerNotFoundError, ValidationError
from ..error_handling.handlers import transactional


class DinnerService:
    """
    Service class for dinner management.
    """

    def __init__(self, session: Session, default_seats: int = 6):
        """
        Args:
            session: SQLAlchemy database session
            default_seats: Seat count used when a new dinner omits it
        """
        self.session = session
        self.default_seats = default_seats

    def _assigned_count(self):
        return select(func.count(Assignment.id)).where(
            Assignment.dinner_id == Dinner.id
        ).correlate(Dinner).scalar_subquery()

    def _summary(self, dinner: Dinner, city_name, restaurant_name, assigned_count) -> DinnerSummary:
        return DinnerSummary(
            id=dinner.id,
            title=dinner.title,
            description=dinner.description,
            event_date=dinner.event_date,
            location=dinner.location,
            created_by=dinner.created_by,
            city_id=dinner.city_id,
            restaurant_id=dinner.restaurant_id,
            seats=dinner.seats,
            status=dinner.status,
            created_at=dinner.created_at,
            city_name=city_name,
            restaurant_name=restaurant_name,
            assigned_count=assigned_count or 0
        )

    @transactional("fetch_dinners", "Failed to fetch dinners")
    def list_dinners(self) -> List[DinnerSummary]:
        """All dinners, most recent event date first."""
        rows = self.session.query(
            Dinner, City.name, Restaurant.name, self._assigned_count()
        ).outerjoin(
            City, Dinner.city_id == City.id
        ).outerjoin(
            Restaurant, Dinner.restaurant_id == Restaurant.id
        ).order_by(Dinner.event_date.desc(), Dinner.id.desc()).all()

        return [self._summary(*row) for row in rows]

    @transactional("fetch_dinner", "Failed to fetch dinner")
    def get_dinner(self, dinner_id: int) -> DinnerSummary:
        """
        Raises:
            DinnerNotFoundError: If the dinner does not exist
        """
        row = self.session.query(
            Dinner, City.name, Restaurant.name, self._assigned_count()
        ).outerjoin(
            City, Dinner.city_id == City.id
        ).outerjoin(
            Restaurant, Dinner.restaurant_id == Restaurant.id
        ).filter(Dinner.id == dinner_id).first()

        if row is None:
            raise DinnerNotFoundError(dinner_id)
        return self._summary(*row)

    @transactional("create_dinner", "Failed to create dinner")
    def create_dinner(self, data: DinnerCreate, created_by: Optional[int] = None) -> Dinner:
        """
        Create a draft dinner. The location stays "TBD" until a venue is confirmed.

        Args:
            data: Validated dinner fields
            created_by: Admin member creating the dinner

        Returns:
            Created Dinner instance
        """
        dinner = Dinner(
            title=data.title,
            description=data.description or "",
            event_date=data.event_date,
            location="TBD",
            created_by=created_by,
            city_id=data.city_id,
            restaurant_id=data.restaurant_id,
            seats=data.seats or self.default_seats,
            status="draft"
        )
        self.session.add(dinner)
        self.session.commit()

        logger.info(f"Created dinner {dinner.id} '{dinner.title}' with {dinner.seats} seats")
        return dinner

    @transactional("update_dinner", "Failed to update dinner")
    def update_dinner(self, dinner_id: int, data: DinnerUpdate) -> Dinner:
        """
        Apply the provided fields to a dinner.

        Raises:
            DinnerNotFoundError: If the dinner does not exist
            ValidationError: If seats would drop below the current assignments
        """
        dinner = self.session.query(Dinner).filter(
            Dinner.id == dinner_id
        ).with_for_update().first()
        if dinner is None:
            raise DinnerNotFoundError(dinner_id)

        changes = data.model_dump(exclude_unset=True, exclude_none=True)

        if "seats" in changes:
            current = self.session.query(func.count(Assignment.id)).filter(
                Assignment.dinner_id == dinner_id
            ).scalar() or 0
            if changes["seats"] < current:
                raise ValidationError(
                    f"Cannot reduce seats below current assignments ({current})",
                    field="seats",
                    value=changes["seats"]
                )

        for field, value in changes.items():
            setattr(dinner, field, value)

        self.session.commit()
        logger.info(f"Updated dinner {dinner_id}: {sorted(changes)}")
        return dinner

    @transactional("fetch_cities", "Failed to fetch cities")
    def list_cities(self) -> List[CityResponse]:
        cities = self.session.query(City).order_by(City.name.asc()).all()
        return [CityResponse.model_validate(c) for c in cities]
