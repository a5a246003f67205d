"""
Customer inquiry endpoints

Submission is public. Listing, reading, replying and status changes are
restricted to the business owner or an admin.
"""
import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.orm import Session

from directory_api.auth.dependencies import ensure_business_access, get_current_active_user, load_business_for_user
from directory_api.core.exceptions import NotFoundError
from directory_api.core.pagination import build_pagination
from directory_api.db.database import get_db
from directory_api.db.models import Business, User
from directory_api.services.analytics_aggregator import AnalyticsEventType, get_analytics_aggregator
from directory_api.services.business_directory_service import get_business_directory_service
from directory_api.services.inquiry_lifecycle_service import (
    InquiryCreate,
    InquiryFilters,
    InquiryPriority,
    InquiryRespondRequest,
    InquiryStatus,
    InquiryStatusUpdate,
    InquiryType,
    get_inquiry_lifecycle_service,
)
from directory_api.services.notification_service import get_notification_dispatcher

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/inquiries", tags=["Inquiries"])


def _load_inquiry_for_user(db: Session, inquiry_id: str, user: User):
    inquiry = get_inquiry_lifecycle_service().find_by_id(db, inquiry_id)
    if not inquiry:
        raise NotFoundError("Inquiry not found")

    business = db.get(Business, inquiry.business_id)
    if not business:
        raise NotFoundError("Business not found")
    ensure_business_access(business, user)
    return inquiry


@router.post("/{business_id}", status_code=status.HTTP_201_CREATED)
async def submit_inquiry(
    request: InquiryCreate,
    business_id: str = Path(..., description="Business ID"),
    db: Session = Depends(get_db)
):
    """Public contact form. Counts a contact click and notifies the owner."""
    business = get_business_directory_service().find_by_id(db, business_id, approved_only=True)
    if not business:
        raise NotFoundError("Business not found")

    inquiry = get_inquiry_lifecycle_service().create(db, business.id, request)

    try:
        get_analytics_aggregator().record_event(db, business.id, AnalyticsEventType.CONTACT_CLICK)
    except Exception as e:
        logger.error(f"Failed to record contact click for business {business.id}: {e}")

    get_notification_dispatcher().notify_inquiry_received(inquiry.id)

    return {
        "success": True,
        "message": "Inquiry submitted successfully",
        "data": {"inquiryId": inquiry.id},
    }


@router.get("/business/{business_id}")
async def list_business_inquiries(
    business_id: str = Path(..., description="Business ID"),
    status_filter: Optional[InquiryStatus] = Query(None, alias="status"),
    inquiry_type: Optional[InquiryType] = Query(None, alias="inquiryType"),
    priority: Optional[InquiryPriority] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    sort_by: Literal["newest", "oldest"] = Query("newest", alias="sortBy"),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    load_business_for_user(db, business_id, current_user)

    service = get_inquiry_lifecycle_service()
    filters = InquiryFilters(
        status=status_filter,
        inquiry_type=inquiry_type,
        priority=priority,
        sort_by=sort_by,
        limit=limit,
        offset=(page - 1) * limit,
    )
    inquiries = service.find_by_business_id(db, business_id, filters)
    total = service.count_by_business_id(db, business_id, filters)
    stats = service.get_stats(db, business_id)

    return {
        "success": True,
        "data": {
            "inquiries": [inquiry.to_dict() for inquiry in inquiries],
            "stats": stats.to_response(),
            "pagination": build_pagination(page, limit, total),
        },
    }


@router.get("/{inquiry_id}")
async def get_inquiry(
    inquiry_id: str = Path(..., description="Inquiry ID"),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    """Fetching a new inquiry marks it read"""
    inquiry = _load_inquiry_for_user(db, inquiry_id, current_user)
    inquiry = get_inquiry_lifecycle_service().mark_as_read(db, inquiry)
    return {"success": True, "data": {"inquiry": inquiry.to_dict()}}


@router.put("/{inquiry_id}/respond")
async def respond_to_inquiry(
    request: InquiryRespondRequest,
    inquiry_id: str = Path(..., description="Inquiry ID"),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    inquiry = _load_inquiry_for_user(db, inquiry_id, current_user)
    inquiry = get_inquiry_lifecycle_service().respond(db, inquiry, request.response_message)

    get_notification_dispatcher().notify_inquiry_responded(inquiry.id)

    return {
        "success": True,
        "message": "Response sent successfully",
        "data": {"inquiry": inquiry.to_dict()},
    }


@router.put("/{inquiry_id}/status")
async def update_inquiry_status(
    request: InquiryStatusUpdate,
    inquiry_id: str = Path(..., description="Inquiry ID"),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    service = get_inquiry_lifecycle_service()
    inquiry = _load_inquiry_for_user(db, inquiry_id, current_user)
    inquiry = service.update_status(db, inquiry, request.status)
    if request.priority:
        inquiry = service.update_priority(db, inquiry, request.priority)

    return {
        "success": True,
        "message": "Inquiry updated successfully",
        "data": {"inquiry": inquiry.to_dict()},
    }
