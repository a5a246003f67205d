"""
Services a business offers (the business_services table)
"""
import logging
from typing import Optional, List

from pydantic import Field
from sqlalchemy.orm import Session

from directory_api.core.schemas import CamelModel
from directory_api.db.models import BusinessService, utcnow

logger = logging.getLogger(__name__)


class ServiceOfferingCreate(CamelModel):
    service_name: str = Field(..., min_length=2, max_length=255)
    service_description: Optional[str] = None
    price_range: Optional[str] = Field(None, max_length=100)
    duration: Optional[str] = Field(None, max_length=100)
    is_featured: bool = False
    display_order: int = Field(0, ge=0)


class ServiceOfferingPatch(CamelModel):
    service_name: Optional[str] = Field(None, min_length=2, max_length=255)
    service_description: Optional[str] = None
    price_range: Optional[str] = Field(None, max_length=100)
    duration: Optional[str] = Field(None, max_length=100)
    is_featured: Optional[bool] = None
    display_order: Optional[int] = Field(None, ge=0)


class ServiceCatalogService:

    def __init__(self):
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def create(self, db: Session, business_id: str, data: ServiceOfferingCreate) -> BusinessService:
        offering = BusinessService(business_id=business_id, is_active=True, **data.model_dump())
        try:
            db.add(offering)
            db.commit()
            db.refresh(offering)
        except Exception:
            db.rollback()
            raise
        return offering

    def find_by_business_id(self, db: Session, business_id: str) -> List[BusinessService]:
        """Active offerings in display order"""
        return db.query(BusinessService).filter(
            BusinessService.business_id == business_id,
            BusinessService.is_active.is_(True)
        ).order_by(BusinessService.display_order.asc(), BusinessService.created_at.asc()).all()

    def find_by_id(self, db: Session, service_id: str) -> Optional[BusinessService]:
        return db.query(BusinessService).filter(
            BusinessService.id == service_id,
            BusinessService.is_active.is_(True)
        ).first()

    def update(self, db: Session, offering: BusinessService, patch: ServiceOfferingPatch) -> BusinessService:
        try:
            for field, value in patch.model_dump(exclude_unset=True).items():
                setattr(offering, field, value)
            offering.updated_at = utcnow()
            db.commit()
            db.refresh(offering)
        except Exception:
            db.rollback()
            raise
        return offering

    def delete(self, db: Session, offering: BusinessService) -> None:
        try:
            offering.is_active = False
            offering.updated_at = utcnow()
            db.commit()
        except Exception:
            db.rollback()
            raise


def get_service_catalog_service() -> ServiceCatalogService:
    return ServiceCatalogService()
