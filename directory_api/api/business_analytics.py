"""
Business analytics endpoints

Event recording is public so listing pages can report views and clicks
without a session. The reporting views are owner/admin only.
"""
import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.orm import Session

from directory_api.auth.dependencies import get_current_active_user, load_business_for_user
from directory_api.core.exceptions import NotFoundError, ValidationFailedError
from directory_api.db.database import get_db
from directory_api.db.models import User
from directory_api.services.analytics_aggregator import (
    AnalyticsEventRequest,
    get_analytics_aggregator,
    trailing_window,
    utc_today,
)
from directory_api.services.business_directory_service import get_business_directory_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/analytics", tags=["Analytics"])


@router.post("/{business_id}/event")
async def record_event(
    request: AnalyticsEventRequest,
    business_id: str = Path(..., description="Business ID"),
    db: Session = Depends(get_db)
):
    if not get_business_directory_service().find_by_id(db, business_id):
        raise NotFoundError("Business not found")

    get_analytics_aggregator().record_event(db, business_id, request.event_type)
    return {"success": True, "message": "Event recorded successfully"}


@router.get("/{business_id}/overview")
async def get_overview(
    business_id: str = Path(..., description="Business ID"),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    """Weekly and monthly rollups, growth, and a 30-day daily series"""
    load_business_for_user(db, business_id, current_user)
    return {"success": True, "data": get_analytics_aggregator().get_overview(db, business_id)}


@router.get("/{business_id}/detailed")
async def get_detailed(
    business_id: str = Path(..., description="Business ID"),
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    load_business_for_user(db, business_id, current_user)

    default_start, default_end = trailing_window(30, utc_today())
    start = start_date or default_start
    end = end_date or default_end
    if start > end:
        raise ValidationFailedError("startDate must not be after endDate")

    return {"success": True, "data": get_analytics_aggregator().get_detailed(db, business_id, start, end)}


@router.get("/{business_id}/performance")
async def get_performance(
    business_id: str = Path(..., description="Business ID"),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    business = load_business_for_user(db, business_id, current_user)
    return {"success": True, "data": get_analytics_aggregator().get_performance(db, business)}
