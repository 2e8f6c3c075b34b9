"""
RestaurantService - restaurant partner management.
"""
from typing import List, Optional

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..models.database import City, Dinner, Restaurant, SurveyResponse
from ..models.schemas import RestaurantCreate, RestaurantSummary, RestaurantUpdate, RestaurantResponse
from ..error_handling.exceptions import NotFoundError
from ..error_handling.handlers import transactional


class RestaurantService:
    """
    Service class for restaurant partners.
    """

    def __init__(self, session: Session):
        self.session = session

    @transactional("fetch_restaurants", "Failed to fetch restaurants")
    def list_restaurants(self, city_id: Optional[int] = None) -> List[RestaurantSummary]:
        """
        Restaurants ordered by name, with hosted dinner count and the
        average rating left in post-dinner surveys.

        Args:
            city_id: Only restaurants in this city, or all when None
        """
        dinners_hosted = select(func.count(Dinner.id)).where(
            Dinner.restaurant_id == Restaurant.id
        ).correlate(Restaurant).scalar_subquery()

        avg_rating = select(func.avg(SurveyResponse.rating)).join(
            Dinner, SurveyResponse.dinner_id == Dinner.id
        ).where(
            Dinner.restaurant_id == Restaurant.id,
            SurveyResponse.rating.isnot(None)
        ).correlate(Restaurant).scalar_subquery()

        query = self.session.query(Restaurant, City.name, dinners_hosted, avg_rating).outerjoin(
            City, Restaurant.city_id == City.id
        )
        if city_id is not None:
            query = query.filter(Restaurant.city_id == city_id)

        summaries = []
        for restaurant, city_name, hosted, rating in query.order_by(Restaurant.name.asc()).all():
            summary = RestaurantSummary.model_validate(restaurant)
            summaries.append(summary.model_copy(update={
                "city_name": city_name,
                "dinners_hosted": hosted or 0,
                "avg_rating": round(float(rating), 2) if rating is not None else 0.0,
            }))
        return summaries

    @transactional("create_restaurant", "Failed to create restaurant")
    def create_restaurant(self, data: RestaurantCreate) -> RestaurantResponse:
        restaurant = Restaurant(**data.model_dump(), booking_status="available")
        self.session.add(restaurant)
        self.session.commit()

        logger.info(f"Created restaurant {restaurant.id} '{restaurant.name}'")
        return RestaurantResponse.model_validate(restaurant)

    @transactional("update_restaurant", "Failed to update restaurant")
    def update_restaurant(self, data: RestaurantUpdate) -> RestaurantResponse:
        """
        Replace every editable field of a restaurant.

        Raises:
            NotFoundError: If the restaurant does not exist
        """
        restaurant = self.session.query(Restaurant).filter(Restaurant.id == data.id).first()
        if restaurant is None:
            raise NotFoundError("Restaurant", data.id)

        for field, value in data.model_dump(exclude={"id"}).items():
            setattr(restaurant, field, value)

        self.session.commit()
        return RestaurantResponse.model_validate(restaurant)

    @transactional("delete_restaurant", "Failed to delete restaurant")
    def delete_restaurant(self, restaurant_id: int) -> bool:
        """Delete a restaurant. Dinners it hosted keep their row with no venue."""
        self.session.query(Dinner).filter(Dinner.restaurant_id == restaurant_id).update(
            {Dinner.restaurant_id: None}, synchronize_session=False
        )
        deleted = self.session.query(Restaurant).filter(
            Restaurant.id == restaurant_id
        ).delete(synchronize_session=False)
        self.session.commit()

        if deleted:
            logger.info(f"Deleted restaurant {restaurant_id}")
        return bool(deleted)
