"""
Restaurant, survey and settings endpoints.

List filters accept ``all`` to mean no filter.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...error_handling.exceptions import ValidationError
from ...models.database import get_db
from ...models.schemas import (
    PromoCodeCreate,
    RestaurantCreate,
    RestaurantUpdate,
    SurveyQuestionCreate,
    SurveyQuestionUpdate,
)
from ...services.restaurant_service import RestaurantService
from ...services.settings_service import SettingsService
from ...services.survey_service import SurveyService
from ..dependencies import require_admin

router = APIRouter(prefix="/admin", tags=["catalog"], dependencies=[Depends(require_admin)])


def _parse_city_filter(city_id: Optional[str]) -> Optional[int]:
    if city_id is None or city_id == "all":
        return None
    try:
        return int(city_id)
    except ValueError as e:
        raise ValidationError("Invalid city ID", field="cityId", value=city_id) from e


# ----------------------------------------------------------------------------
# Restaurants
# ----------------------------------------------------------------------------

@router.get("/restaurants")
def list_restaurants(
    city_id: Optional[str] = Query(None, alias="cityId"),
    db: Session = Depends(get_db),
):
    return {"restaurants": RestaurantService(db).list_restaurants(_parse_city_filter(city_id))}


@router.post("/restaurants")
def create_restaurant(payload: RestaurantCreate, db: Session = Depends(get_db)):
    return {"restaurant": RestaurantService(db).create_restaurant(payload)}


@router.put("/restaurants")
def update_restaurant(payload: RestaurantUpdate, db: Session = Depends(get_db)):
    return {"restaurant": RestaurantService(db).update_restaurant(payload)}


@router.delete("/restaurants")
def delete_restaurant(
    restaurant_id: Optional[int] = Query(None, alias="id"),
    db: Session = Depends(get_db),
):
    if restaurant_id is None:
        raise ValidationError("Restaurant ID is required", field="id")
    RestaurantService(db).delete_restaurant(restaurant_id)
    return {"success": True}


# ----------------------------------------------------------------------------
# Surveys
# ----------------------------------------------------------------------------

@router.get("/surveys")
def list_surveys(
    survey_type: Optional[str] = Query(None, alias="type"),
    db: Session = Depends(get_db),
):
    if survey_type == "all":
        survey_type = None
    return {"surveys": SurveyService(db).list_questions(survey_type)}


@router.post("/surveys")
def create_survey(payload: SurveyQuestionCreate, db: Session = Depends(get_db)):
    return {"survey": SurveyService(db).create_question(payload)}


@router.put("/surveys")
def update_survey(payload: SurveyQuestionUpdate, db: Session = Depends(get_db)):
    return {"survey": SurveyService(db).update_question(payload)}


@router.delete("/surveys")
def delete_survey(
    survey_id: Optional[int] = Query(None, alias="id"),
    db: Session = Depends(get_db),
):
    if survey_id is None:
        raise ValidationError("Survey ID is required", field="id")
    SurveyService(db).delete_question(survey_id)
    return {"success": True}


# ----------------------------------------------------------------------------
# Settings
# ----------------------------------------------------------------------------

@router.get("/settings")
def get_settings_section(
    section: Optional[str] = Query(None, alias="type"),
    db: Session = Depends(get_db),
):
    service = SettingsService(db)
    if section == "promo_codes":
        return {"promoCodes": service.list_promo_codes()}
    return {"templates": service.email_templates()}


@router.post("/settings")
def create_promo_code(payload: PromoCodeCreate, db: Session = Depends(get_db)):
    return {"promoCode": SettingsService(db).create_promo_code(payload)}


@router.delete("/settings")
def delete_promo_code(
    promo_id: Optional[int] = Query(None, alias="id"),
    db: Session = Depends(get_db),
):
    if promo_id is None:
        raise ValidationError("Promo code ID is required", field="id")
    SettingsService(db).delete_promo_code(promo_id)
    return {"success": True}
