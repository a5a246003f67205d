"""
Business image upload and management
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Path, Query, Request, UploadFile, status
from sqlalchemy.orm import Session

from directory_api.auth.dependencies import get_current_active_user, load_business_for_user
from directory_api.core.config import get_settings
from directory_api.core.exceptions import NotFoundError, ValidationFailedError
from directory_api.db.database import get_db, get_read_db
from directory_api.db.models import User
from directory_api.services.image_gallery_service import (
    ImagePatch,
    ImageReorderRequest,
    ImageType,
    get_image_gallery_service,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/business-images", tags=["Business Images"])


@router.post("/{business_id}/upload", status_code=status.HTTP_201_CREATED)
async def upload_images(
    http_request: Request,
    business_id: str = Path(..., description="Business ID"),
    images: List[UploadFile] = File(..., description="Up to 10 JPEG/PNG/WebP files"),
    image_type: ImageType = Form("gallery", alias="imageType"),
    alt_text: Optional[str] = Form(None, alias="altText"),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    load_business_for_user(db, business_id, current_user)

    if not images:
        raise ValidationFailedError("No files uploaded")
    if len(images) > get_settings().max_upload_files:
        raise ValidationFailedError(f"At most {get_settings().max_upload_files} files per upload")

    gallery = get_image_gallery_service(http_request.app.state.uploads_dir)

    # Validate everything before writing anything
    payloads = []
    for upload in images:
        content = await upload.read()
        gallery.validate_upload(upload.content_type, len(content))
        payloads.append((upload.filename, content))

    created = []
    for filename, content in payloads:
        image_url = gallery.store_file(business_id, filename, content)
        created.append(gallery.create(db, business_id, image_url, image_type, alt_text))

    logger.info(f"Uploaded {len(created)} image(s) for business {business_id}")
    return {
        "success": True,
        "message": f"{len(created)} image(s) uploaded successfully",
        "data": {"images": [image.to_dict() for image in created]},
    }


@router.get("/{business_id}")
async def list_images(
    business_id: str = Path(..., description="Business ID"),
    image_type: Optional[ImageType] = Query(None, alias="type"),
    db: Session = Depends(get_read_db)
):
    gallery = get_image_gallery_service()
    images = gallery.find_by_business_id(db, business_id, image_type)
    data = {"images": [image.to_dict() for image in images]}

    if image_type is None:
        logo = gallery.find_logo(db, business_id)
        cover = gallery.find_cover_image(db, business_id)
        data["logo"] = logo.to_dict() if logo else None
        data["cover"] = cover.to_dict() if cover else None
        data["gallery"] = [image.to_dict() for image in gallery.find_gallery(db, business_id)]

    return {"success": True, "data": data}


@router.put("/{business_id}/reorder")
async def reorder_images(
    request: ImageReorderRequest,
    business_id: str = Path(..., description="Business ID"),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    load_business_for_user(db, business_id, current_user)
    images = get_image_gallery_service().reorder(db, business_id, request.image_ids)
    return {
        "success": True,
        "message": "Images reordered successfully",
        "data": {"images": [image.to_dict() for image in images]},
    }


def _load_owned_image(db: Session, image_id: str, user: User):
    image = get_image_gallery_service().find_by_id(db, image_id)
    if not image:
        raise NotFoundError("Image not found")
    load_business_for_user(db, image.business_id, user)
    return image


@router.put("/{image_id}")
async def update_image(
    request: ImagePatch,
    image_id: str = Path(..., description="Image ID"),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    image = _load_owned_image(db, image_id, current_user)
    image = get_image_gallery_service().update(db, image, request)
    return {
        "success": True,
        "message": "Image updated successfully",
        "data": {"image": image.to_dict()},
    }


@router.delete("/{image_id}")
async def delete_image(
    image_id: str = Path(..., description="Image ID"),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    image = _load_owned_image(db, image_id, current_user)
    get_image_gallery_service().delete(db, image)
    return {"success": True, "message": "Image deleted successfully"}
