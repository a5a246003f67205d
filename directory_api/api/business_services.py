"""
Endpoints for the services a business offers
"""
import logging

from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.orm import Session

from directory_api.auth.dependencies import get_current_active_user, load_business_for_user
from directory_api.core.exceptions import NotFoundError
from directory_api.db.database import get_db, get_read_db
from directory_api.db.models import User
from directory_api.services.service_catalog_service import (
    ServiceOfferingCreate,
    ServiceOfferingPatch,
    get_service_catalog_service,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/business-services", tags=["Business Services"])


@router.get("/{business_id}")
async def list_services(
    business_id: str = Path(..., description="Business ID"),
    db: Session = Depends(get_read_db)
):
    services = get_service_catalog_service().find_by_business_id(db, business_id)
    return {"success": True, "data": {"services": [s.to_dict() for s in services]}}


@router.post("/{business_id}", status_code=status.HTTP_201_CREATED)
async def add_service(
    request: ServiceOfferingCreate,
    business_id: str = Path(..., description="Business ID"),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    load_business_for_user(db, business_id, current_user)
    offering = get_service_catalog_service().create(db, business_id, request)
    return {
        "success": True,
        "message": "Service added successfully",
        "data": {"service": offering.to_dict()},
    }


def _load_owned_service(db: Session, service_id: str, user: User):
    catalog = get_service_catalog_service()
    offering = catalog.find_by_id(db, service_id)
    if not offering:
        raise NotFoundError("Service not found")
    load_business_for_user(db, offering.business_id, user)
    return offering


@router.put("/service/{service_id}")
async def update_service(
    request: ServiceOfferingPatch,
    service_id: str = Path(..., description="Service ID"),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    offering = _load_owned_service(db, service_id, current_user)
    offering = get_service_catalog_service().update(db, offering, request)
    return {
        "success": True,
        "message": "Service updated successfully",
        "data": {"service": offering.to_dict()},
    }


@router.delete("/service/{service_id}")
async def delete_service(
    service_id: str = Path(..., description="Service ID"),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    offering = _load_owned_service(db, service_id, current_user)
    get_service_catalog_service().delete(db, offering)
    return {"success": True, "message": "Service deleted successfully"}
