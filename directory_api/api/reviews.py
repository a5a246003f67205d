"""
Business reviews
"""
import logging

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.orm import Session

from directory_api.auth.dependencies import get_current_active_user, load_business_for_user
from directory_api.core.exceptions import NotFoundError
from directory_api.core.pagination import build_pagination
from directory_api.db.database import get_db, get_read_db
from directory_api.db.models import User
from directory_api.services.business_directory_service import get_business_directory_service
from directory_api.services.review_service import (
    ReviewCreate,
    ReviewResponseRequest,
    get_review_service,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/reviews", tags=["Reviews"])


@router.post("/{business_id}", status_code=status.HTTP_201_CREATED)
async def create_review(
    request: ReviewCreate,
    business_id: str = Path(..., description="Business ID"),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    business = get_business_directory_service().find_by_id(db, business_id, approved_only=True)
    if not business:
        raise NotFoundError("Business not found")

    review = get_review_service().create(db, business.id, current_user.id, request)
    return {
        "success": True,
        "message": "Review submitted successfully",
        "data": {"review": review.to_dict()},
    }


@router.get("/business/{business_id}")
async def list_reviews(
    business_id: str = Path(..., description="Business ID"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_read_db)
):
    reviews, total = get_review_service().find_by_business_id(
        db, business_id, limit=limit, offset=(page - 1) * limit
    )
    return {
        "success": True,
        "data": {
            "reviews": [review.to_dict() for review in reviews],
            "pagination": build_pagination(page, limit, total),
        },
    }


@router.put("/{review_id}/respond")
async def respond_to_review(
    request: ReviewResponseRequest,
    review_id: str = Path(..., description="Review ID"),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    service = get_review_service()
    review = service.find_by_id(db, review_id)
    if not review:
        raise NotFoundError("Review not found")

    load_business_for_user(db, review.business_id, current_user)
    review = service.respond(db, review, request.response)
    return {
        "success": True,
        "message": "Response added successfully",
        "data": {"review": review.to_dict()},
    }
