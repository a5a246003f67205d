"""
Weekly operating hours and live open/closed status
"""
import logging

from fastapi import APIRouter, Depends, Path
from sqlalchemy.orm import Session

from directory_api.auth.dependencies import get_current_active_user, load_business_for_user
from directory_api.db.database import get_db, get_read_db
from directory_api.db.models import User
from directory_api.services.business_hours_service import (
    WeeklyHoursRequest,
    get_business_hours_service,
    hours_to_dict,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/business-hours", tags=["Business Hours"])


@router.get("/{business_id}")
async def get_business_hours(
    business_id: str = Path(..., description="Business ID"),
    db: Session = Depends(get_read_db)
):
    """Stored week, or the Monday-Friday 9-5 default when none is set"""
    return {"success": True, "data": get_business_hours_service().get_hours(db, business_id)}


@router.post("/{business_id}")
async def set_business_hours(
    request: WeeklyHoursRequest,
    business_id: str = Path(..., description="Business ID"),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    load_business_for_user(db, business_id, current_user)
    rows = get_business_hours_service().replace_week(db, business_id, request.hours)
    return {
        "success": True,
        "message": "Business hours updated successfully",
        "data": {"hours": [hours_to_dict(row) for row in rows]},
    }


@router.get("/{business_id}/current-status")
async def get_current_status(
    business_id: str = Path(..., description="Business ID"),
    db: Session = Depends(get_read_db)
):
    return {"success": True, "data": get_business_hours_service().current_status(db, business_id)}
