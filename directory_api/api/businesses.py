"""
Business listing endpoints: create, owner's listings, public page, update,
soft delete, public search, admin moderation
"""
import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.orm import Session

from directory_api.auth.dependencies import (
    get_admin_user,
    get_current_active_user,
    get_provider_user,
    load_business_for_user,
)
from directory_api.core.exceptions import NotFoundError
from directory_api.core.pagination import PaginationParams, build_pagination, get_pagination_params
from directory_api.db.database import get_db, get_read_db
from directory_api.db.models import User
from directory_api.services.business_directory_service import (
    BusinessCreate,
    BusinessFilters,
    BusinessPatch,
    BusinessStatusUpdate,
    get_business_directory_service,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/businesses", tags=["Businesses"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_business(
    request: BusinessCreate,
    current_user: User = Depends(get_provider_user),
    db: Session = Depends(get_db)
):
    business = get_business_directory_service().create(db, current_user.id, request)
    return {
        "success": True,
        "message": "Business created successfully and is pending approval",
        "data": {"business": business.to_dict()},
    }


@router.get("")
async def search_businesses(
    category: Optional[str] = Query(None),
    location: Optional[str] = Query(None),
    search: Optional[str] = Query(None, min_length=1, max_length=100),
    verified: Optional[bool] = Query(None),
    sort_by: Literal["newest", "rating"] = Query("newest", alias="sortBy"),
    pagination: PaginationParams = Depends(get_pagination_params),
    db: Session = Depends(get_read_db)
):
    """Approved listings matching the filters, newest or best rated first"""
    filters = BusinessFilters(
        category=category,
        location=location,
        search=search,
        verified=verified,
        sort_by=sort_by,
        page=pagination.page,
        limit=pagination.limit,
    )
    service = get_business_directory_service()
    businesses = service.find_all(db, filters)
    total = service.count_all(db, filters)

    return {
        "success": True,
        "data": {
            "businesses": [b.to_dict() for b in businesses],
            "pagination": build_pagination(pagination.page, pagination.limit, total),
        },
    }


@router.get("/my")
async def get_my_businesses(
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    businesses = get_business_directory_service().find_by_owner_id(db, current_user.id)
    return {"success": True, "data": {"businesses": [b.to_dict() for b in businesses]}}


@router.get("/{category}/{slug}")
async def get_business_page(
    category: str = Path(..., description="Category of the listing"),
    slug: str = Path(..., description="Listing slug"),
    db: Session = Depends(get_db)
):
    """Public listing page; each fetch counts as a view"""
    service = get_business_directory_service()
    business = service.find_by_slug(db, category, slug)
    if not business:
        raise NotFoundError("Business not found")

    service.increment_view_count(db, business.id)
    db.refresh(business)
    return {"success": True, "data": {"business": business.to_dict()}}


@router.put("/{business_id}")
async def update_business(
    request: BusinessPatch,
    business_id: str = Path(..., description="Business ID"),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    business = load_business_for_user(db, business_id, current_user)
    business = get_business_directory_service().update(db, business, request)
    return {
        "success": True,
        "message": "Business updated successfully",
        "data": {"business": business.to_dict()},
    }


@router.delete("/{business_id}")
async def delete_business(
    business_id: str = Path(..., description="Business ID"),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    business = load_business_for_user(db, business_id, current_user)
    get_business_directory_service().delete(db, business)
    return {"success": True, "message": "Business deleted successfully"}


@router.put("/{business_id}/status")
async def update_business_status(
    request: BusinessStatusUpdate,
    business_id: str = Path(..., description="Business ID"),
    current_user: User = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    """Admin moderation: only approved listings are public"""
    service = get_business_directory_service()
    business = service.find_by_id(db, business_id)
    if not business:
        raise NotFoundError("Business not found")

    business = service.update_status(db, business, request.status)
    return {
        "success": True,
        "message": f"Business status updated to {business.status}",
        "data": {"business": business.to_dict()},
    }
