"""
Reviews: one per user per business, with the business rating kept in step
"""
import logging
from typing import Optional, List, Tuple

from pydantic import Field
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from directory_api.core.exceptions import ConflictError
from directory_api.core.metrics import round_half_up
from directory_api.core.schemas import CamelModel
from directory_api.db.models import Review, utcnow
from directory_api.services.business_directory_service import get_business_directory_service

logger = logging.getLogger(__name__)


class ReviewCreate(CamelModel):
    rating: int = Field(..., ge=1, le=5)
    title: Optional[str] = Field(None, max_length=255)
    comment: Optional[str] = None


class ReviewResponseRequest(CamelModel):
    response: str = Field(..., min_length=10)


class ReviewService:

    def __init__(self):
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")
        self.businesses = get_business_directory_service()

    def create(self, db: Session, business_id: str, user_id: str, data: ReviewCreate) -> Review:
        review = Review(business_id=business_id, user_id=user_id, **data.model_dump())
        try:
            db.add(review)
            db.commit()
            db.refresh(review)
        except IntegrityError:
            db.rollback()
            raise ConflictError("You have already reviewed this business")
        except Exception:
            db.rollback()
            raise

        self.refresh_business_rating(db, business_id)
        return review

    def find_by_id(self, db: Session, review_id: str) -> Optional[Review]:
        return db.query(Review).filter(Review.id == review_id, Review.is_active.is_(True)).first()

    def find_by_business_id(self, db: Session, business_id: str, limit: int = 20, offset: int = 0) -> Tuple[List[Review], int]:
        query = db.query(Review).filter(Review.business_id == business_id, Review.is_active.is_(True))
        total = query.count()
        reviews = query.order_by(Review.created_at.desc()).offset(offset).limit(limit).all()
        return reviews, total

    def respond(self, db: Session, review: Review, response: str) -> Review:
        try:
            review.business_response = response
            review.business_response_at = utcnow()
            db.commit()
            db.refresh(review)
        except Exception:
            db.rollback()
            raise
        return review

    def refresh_business_rating(self, db: Session, business_id: str) -> None:
        """Recompute average rating and review count from active reviews"""
        avg_rating, count = db.query(
            func.avg(Review.rating),
            func.count(Review.id)
        ).filter(Review.business_id == business_id, Review.is_active.is_(True)).one()

        rating = round_half_up(avg_rating, 2) if avg_rating is not None else 0.0
        self.businesses.update_rating(db, business_id, rating, count or 0)


def get_review_service() -> ReviewService:
    return ReviewService()
