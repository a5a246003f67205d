"""
Business listings: creation, lookup, filtered search, patching, soft delete
and the denormalized view/rating counters.
"""
import logging
from typing import Optional, List, Literal

from pydantic import BaseModel, EmailStr, Field
from sqlalchemy import or_
from sqlalchemy.orm import Session

from directory_api.core.exceptions import ConflictError, ValidationFailedError
from directory_api.core.schemas import CamelModel
from directory_api.db.models import Business, utcnow
from directory_api.utils.slug import slugify

logger = logging.getLogger(__name__)


class BusinessCreate(CamelModel):
    business_name: str = Field(..., min_length=2, max_length=255)
    category: str = Field(..., min_length=1, max_length=100)
    location: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    website: Optional[str] = None


class BusinessPatch(CamelModel):
    """Owner-editable listing fields; unset fields are left untouched"""
    business_name: Optional[str] = Field(None, min_length=2, max_length=255)
    category: Optional[str] = Field(None, min_length=1, max_length=100)
    location: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    website: Optional[str] = None
    logo_url: Optional[str] = None
    cover_image_url: Optional[str] = None


BusinessStatus = Literal["pending", "approved", "suspended"]


class BusinessStatusUpdate(CamelModel):
    status: BusinessStatus


class BusinessFilters(BaseModel):
    category: Optional[str] = None
    location: Optional[str] = None
    search: Optional[str] = None
    verified: Optional[bool] = None
    sort_by: Literal["newest", "rating"] = "newest"
    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1, le=100)


class BusinessDirectoryService:
    """Mapper for the businesses table"""

    def __init__(self):
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def slug_exists(self, db: Session, slug: str, exclude_id: Optional[str] = None) -> bool:
        query = db.query(Business.id).filter(Business.slug == slug)
        if exclude_id:
            query = query.filter(Business.id != exclude_id)
        return query.first() is not None

    def create(self, db: Session, owner_id: str, data: BusinessCreate) -> Business:
        """
        Create a listing for ``owner_id``.

        One listing per owner. The slug is checked before the insert; two
        concurrent creates with the same name can still race to the unique
        index, which then surfaces as a duplicate-entry error.
        """
        if self.find_by_owner_id(db, owner_id):
            raise ValidationFailedError("User already has a business registered")

        slug = slugify(data.business_name)
        if not slug:
            raise ValidationFailedError("Business name must contain letters or digits")
        if self.slug_exists(db, slug):
            raise ConflictError("A business with this name already exists")

        business = Business(
            owner_id=owner_id,
            slug=slug,
            status="pending",
            **data.model_dump(),
        )
        try:
            db.add(business)
            db.commit()
            db.refresh(business)
        except Exception:
            db.rollback()
            raise

        self.logger.info(f"Created business {business.id} ({slug}) for owner {owner_id}")
        return business

    def find_by_id(self, db: Session, business_id: str, approved_only: bool = False) -> Optional[Business]:
        query = db.query(Business).filter(Business.id == business_id, Business.status != "deleted")
        if approved_only:
            query = query.filter(Business.status == "approved")
        return query.first()

    def find_by_slug(self, db: Session, category: str, slug: str) -> Optional[Business]:
        return db.query(Business).filter(
            Business.slug == slug,
            Business.category == category,
            Business.status == "approved"
        ).first()

    def find_by_owner_id(self, db: Session, owner_id: str) -> List[Business]:
        return db.query(Business).filter(
            Business.owner_id == owner_id,
            Business.status != "deleted"
        ).order_by(Business.created_at.desc()).all()

    def _filtered(self, db: Session, filters: BusinessFilters):
        query = db.query(Business).filter(Business.status == "approved")

        if filters.category:
            query = query.filter(Business.category == filters.category)
        if filters.location:
            query = query.filter(Business.location.ilike(f"%{filters.location}%"))
        if filters.search:
            pattern = f"%{filters.search}%"
            query = query.filter(or_(
                Business.business_name.ilike(pattern),
                Business.description.ilike(pattern)
            ))
        if filters.verified is not None:
            query = query.filter(Business.is_verified == filters.verified)

        return query

    def find_all(self, db: Session, filters: BusinessFilters) -> List[Business]:
        query = self._filtered(db, filters)

        if filters.sort_by == "rating":
            query = query.order_by(Business.rating.desc(), Business.created_at.desc())
        else:
            query = query.order_by(Business.created_at.desc())

        return query.offset((filters.page - 1) * filters.limit).limit(filters.limit).all()

    def count_all(self, db: Session, filters: BusinessFilters) -> int:
        return self._filtered(db, filters).count()

    def update(self, db: Session, business: Business, patch: BusinessPatch) -> Business:
        """Write only the supplied fields; a new name also regenerates the slug"""
        changes = patch.model_dump(exclude_unset=True)

        new_name = changes.get("business_name")
        if new_name and new_name != business.business_name:
            slug = slugify(new_name)
            if not slug:
                raise ValidationFailedError("Business name must contain letters or digits")
            if self.slug_exists(db, slug, exclude_id=business.id):
                raise ConflictError("A business with this name already exists")
            changes["slug"] = slug

        try:
            for field, value in changes.items():
                setattr(business, field, value)
            business.updated_at = utcnow()
            db.commit()
            db.refresh(business)
        except Exception:
            db.rollback()
            raise

        return business

    def update_status(self, db: Session, business: Business, status: str) -> Business:
        """Moderation: approve, suspend or send a listing back to pending"""
        previous = business.status
        try:
            business.status = status
            business.updated_at = utcnow()
            db.commit()
            db.refresh(business)
        except Exception:
            db.rollback()
            raise

        self.logger.info(f"Business {business.id} status {previous} -> {status}")
        return business

    def delete(self, db: Session, business: Business) -> None:
        """Soft delete: inquiries and reviews keep pointing at the row"""
        try:
            business.status = "deleted"
            business.updated_at = utcnow()
            db.commit()
        except Exception:
            db.rollback()
            raise
        self.logger.info(f"Soft-deleted business {business.id}")

    def increment_view_count(self, db: Session, business_id: str) -> None:
        try:
            db.query(Business).filter(Business.id == business_id).update(
                {Business.view_count: Business.view_count + 1},
                synchronize_session=False
            )
            db.commit()
        except Exception:
            db.rollback()
            raise

    def update_rating(self, db: Session, business_id: str, rating: float, review_count: int) -> None:
        try:
            db.query(Business).filter(Business.id == business_id).update(
                {
                    Business.rating: rating,
                    Business.review_count: review_count,
                    Business.updated_at: utcnow(),
                },
                synchronize_session=False
            )
            db.commit()
        except Exception:
            db.rollback()
            raise


def get_business_directory_service() -> BusinessDirectoryService:
    return BusinessDirectoryService()
