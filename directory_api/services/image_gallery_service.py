"""
Business images: stored files under the uploads directory plus their rows
"""
import logging
import os
import time
import uuid
from pathlib import Path
from typing import Optional, List, Literal

from pydantic import Field
from sqlalchemy import func
from sqlalchemy.orm import Session

from directory_api.core.config import get_settings
from directory_api.core.exceptions import ValidationFailedError
from directory_api.core.schemas import CamelModel
from directory_api.db.models import BusinessImage, utcnow

logger = logging.getLogger(__name__)

ALLOWED_CONTENT_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/webp"}
IMAGE_SUBDIR = "business-images"

ImageType = Literal["logo", "cover", "gallery"]


class ImagePatch(CamelModel):
    alt_text: Optional[str] = Field(None, max_length=255)
    display_order: Optional[int] = Field(None, ge=1)


class ImageReorderRequest(CamelModel):
    image_ids: List[str] = Field(..., min_length=1)


class ImageGalleryService:

    def __init__(self, uploads_dir: Optional[str] = None):
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")
        self.uploads_dir = Path(uploads_dir or get_settings().uploads_dir)

    def validate_upload(self, content_type: Optional[str], size: int) -> None:
        max_bytes = get_settings().max_upload_size_mb * 1024 * 1024
        if content_type not in ALLOWED_CONTENT_TYPES:
            raise ValidationFailedError("Invalid file type. Only JPEG, PNG, and WebP images are allowed.")
        if size > max_bytes:
            raise ValidationFailedError(f"File exceeds the {get_settings().max_upload_size_mb}MB limit")

    def store_file(self, business_id: str, original_name: str, content: bytes) -> str:
        """Write the upload to disk and return its public URL path"""
        target_dir = self.uploads_dir / IMAGE_SUBDIR
        target_dir.mkdir(parents=True, exist_ok=True)

        ext = os.path.splitext(original_name or "")[1].lower()
        filename = f"business-{business_id}-{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}{ext}"
        (target_dir / filename).write_bytes(content)

        return f"/uploads/{IMAGE_SUBDIR}/{filename}"

    def next_display_order(self, db: Session, business_id: str, image_type: str) -> int:
        current = db.query(func.max(BusinessImage.display_order)).filter(
            BusinessImage.business_id == business_id,
            BusinessImage.image_type == image_type
        ).scalar()
        return (current or 0) + 1

    def create(
        self,
        db: Session,
        business_id: str,
        image_url: str,
        image_type: str = "gallery",
        alt_text: Optional[str] = None
    ) -> BusinessImage:
        image = BusinessImage(
            business_id=business_id,
            image_url=image_url,
            image_type=image_type,
            alt_text=alt_text,
            display_order=self.next_display_order(db, business_id, image_type),
            is_active=True,
        )
        try:
            db.add(image)
            db.commit()
            db.refresh(image)
        except Exception:
            db.rollback()
            raise
        return image

    def find_by_id(self, db: Session, image_id: str) -> Optional[BusinessImage]:
        return db.query(BusinessImage).filter(
            BusinessImage.id == image_id,
            BusinessImage.is_active.is_(True)
        ).first()

    def find_by_business_id(self, db: Session, business_id: str, image_type: Optional[str] = None) -> List[BusinessImage]:
        query = db.query(BusinessImage).filter(
            BusinessImage.business_id == business_id,
            BusinessImage.is_active.is_(True)
        )
        if image_type:
            query = query.filter(BusinessImage.image_type == image_type)
        return query.order_by(BusinessImage.image_type, BusinessImage.display_order).all()

    def find_logo(self, db: Session, business_id: str) -> Optional[BusinessImage]:
        images = self.find_by_business_id(db, business_id, "logo")
        return images[0] if images else None

    def find_cover_image(self, db: Session, business_id: str) -> Optional[BusinessImage]:
        images = self.find_by_business_id(db, business_id, "cover")
        return images[0] if images else None

    def find_gallery(self, db: Session, business_id: str) -> List[BusinessImage]:
        return self.find_by_business_id(db, business_id, "gallery")

    def update(self, db: Session, image: BusinessImage, patch: ImagePatch) -> BusinessImage:
        changes = patch.model_dump(exclude_unset=True)
        if not changes:
            raise ValidationFailedError("No valid fields to update")
        try:
            for field, value in changes.items():
                setattr(image, field, value)
            image.updated_at = utcnow()
            db.commit()
            db.refresh(image)
        except Exception:
            db.rollback()
            raise
        return image

    def delete(self, db: Session, image: BusinessImage) -> None:
        try:
            image.is_active = False
            image.updated_at = utcnow()
            db.commit()
        except Exception:
            db.rollback()
            raise

    def reorder(self, db: Session, business_id: str, image_ids: List[str]) -> List[BusinessImage]:
        """Assign display orders 1..n following ``image_ids``"""
        try:
            for position, image_id in enumerate(image_ids, start=1):
                db.query(BusinessImage).filter(
                    BusinessImage.id == image_id,
                    BusinessImage.business_id == business_id
                ).update(
                    {BusinessImage.display_order: position, BusinessImage.updated_at: utcnow()},
                    synchronize_session=False
                )
            db.commit()
        except Exception:
            db.rollback()
            raise
        return self.find_by_business_id(db, business_id)


def get_image_gallery_service(uploads_dir: Optional[str] = None) -> ImageGalleryService:
    return ImageGalleryService(uploads_dir)
