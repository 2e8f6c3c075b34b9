"""
Dashboard and analytics endpoints.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...models.database import get_db
from ...services.analytics_service import AnalyticsService
from ..dependencies import require_admin

router = APIRouter(prefix="/admin", tags=["reports"], dependencies=[Depends(require_admin)])

# Response key for each analytics report type
REPORT_KEYS = {
    "cohort": "cohortData",
    "city_demand": "cityData",
    "revenue": "revenueData",
    "performance": "performanceData",
}


@router.get("/dashboard/stats")
def dashboard_stats(db: Session = Depends(get_db)):
    return {"stats": AnalyticsService(db).dashboard_stats()}


@router.get("/analytics")
def analytics(
    report_type: Optional[str] = Query(None, alias="type"),
    db: Session = Depends(get_db),
):
    data = AnalyticsService(db).report(report_type)
    return {REPORT_KEYS[report_type]: data}
