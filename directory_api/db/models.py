from sqlalchemy import (
    Column, Integer, String, DateTime, Date, Boolean, Text, ForeignKey, Index,
    UniqueConstraint, CheckConstraint, Numeric
)
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from typing import Dict, Any, Optional
import uuid

from directory_api.db.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _float(value) -> float:
    return float(value) if value is not None else 0.0


USER_ROLES = ("customer", "provider", "admin")
BUSINESS_STATUSES = ("pending", "approved", "suspended", "deleted")
IMAGE_TYPES = ("logo", "cover", "gallery")
INQUIRY_TYPES = ("general", "quote", "service", "complaint", "partnership")
INQUIRY_STATUSES = ("new", "read", "responded", "closed")
INQUIRY_PRIORITIES = ("low", "normal", "high", "urgent")


class User(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=_new_id)
    email = Column(String, unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    phone = Column(String(30), nullable=True)
    role = Column(String(20), nullable=False, default="customer")  # customer, provider, admin
    email_verified = Column(Boolean, default=False)
    is_active = Column(Boolean, default=True)
    profile_image_url = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    businesses = relationship("Business", back_populates="owner")

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def to_dict(self) -> Dict[str, Any]:
        """Public representation; never includes the password hash"""
        return {
            "id": self.id,
            "email": self.email,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "phone": self.phone,
            "role": self.role,
            "emailVerified": self.email_verified,
            "isActive": self.is_active,
            "profileImageUrl": self.profile_image_url,
            "createdAt": _iso(self.created_at),
        }


class Business(Base):
    """
    Directory listing owned by a single provider.

    view/contact counters are denormalized projections of the daily analytics
    rows; response_rate and average_response_time (minutes) are recomputed
    from inquiry history after every response.
    """
    __tablename__ = "businesses"

    id = Column(String, primary_key=True, default=_new_id)
    owner_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    business_name = Column(String(255), nullable=False)
    slug = Column(String(255), unique=True, nullable=False, index=True)
    category = Column(String(100), nullable=False, index=True)
    location = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    address = Column(Text, nullable=True)
    phone = Column(String(30), nullable=True)
    email = Column(String, nullable=True)
    website = Column(String, nullable=True)
    logo_url = Column(String, nullable=True)
    cover_image_url = Column(String, nullable=True)

    status = Column(String(20), nullable=False, default="pending", index=True)  # pending, approved, suspended, deleted
    is_verified = Column(Boolean, default=False)
    is_featured = Column(Boolean, default=False)
    rating = Column(Numeric(3, 2), default=0)
    review_count = Column(Integer, default=0)

    view_count = Column(Integer, nullable=False, default=0)
    contact_count = Column(Integer, nullable=False, default=0)
    monthly_views = Column(Integer, nullable=False, default=0)
    monthly_contacts = Column(Integer, nullable=False, default=0)
    total_inquiries = Column(Integer, nullable=False, default=0)
    response_rate = Column(Numeric(5, 2), nullable=False, default=0)
    average_response_time = Column(Integer, nullable=False, default=0)  # minutes

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    owner = relationship("User", back_populates="businesses")
    services = relationship("BusinessService", back_populates="business", cascade="all, delete-orphan", passive_deletes=True)
    images = relationship("BusinessImage", back_populates="business", cascade="all, delete-orphan", passive_deletes=True)
    inquiries = relationship("CustomerInquiry", back_populates="business", cascade="all, delete-orphan", passive_deletes=True)
    analytics = relationship("BusinessAnalytics", back_populates="business", cascade="all, delete-orphan", passive_deletes=True)
    operating_hours = relationship("BusinessOperatingHours", back_populates="business", cascade="all, delete-orphan", passive_deletes=True)

    __table_args__ = (
        Index('idx_business_category_status', 'category', 'status'),
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "ownerId": self.owner_id,
            "businessName": self.business_name,
            "slug": self.slug,
            "category": self.category,
            "location": self.location,
            "description": self.description,
            "address": self.address,
            "phone": self.phone,
            "email": self.email,
            "website": self.website,
            "logoUrl": self.logo_url,
            "coverImageUrl": self.cover_image_url,
            "status": self.status,
            "isVerified": self.is_verified,
            "isFeatured": self.is_featured,
            "rating": _float(self.rating),
            "reviewCount": self.review_count or 0,
            "viewCount": self.view_count or 0,
            "contactCount": self.contact_count or 0,
            "monthlyViews": self.monthly_views or 0,
            "monthlyContacts": self.monthly_contacts or 0,
            "totalInquiries": self.total_inquiries or 0,
            "responseRate": _float(self.response_rate),
            "averageResponseTime": self.average_response_time or 0,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }


class Review(Base):
    __tablename__ = "reviews"

    id = Column(String, primary_key=True, default=_new_id)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    business_id = Column(String, ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False, index=True)
    rating = Column(Integer, nullable=False)
    title = Column(String(255), nullable=True)
    comment = Column(Text, nullable=True)
    is_verified = Column(Boolean, default=False)
    is_active = Column(Boolean, default=True)
    business_response = Column(Text, nullable=True)
    business_response_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    user = relationship("User")

    __table_args__ = (
        UniqueConstraint('user_id', 'business_id', name='uq_review_user_business'),
        CheckConstraint('rating >= 1 AND rating <= 5', name='ck_review_rating_range'),
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "businessId": self.business_id,
            "rating": self.rating,
            "title": self.title,
            "comment": self.comment,
            "isVerified": self.is_verified,
            "businessResponse": self.business_response,
            "businessResponseAt": _iso(self.business_response_at),
            "createdAt": _iso(self.created_at),
        }


class BusinessService(Base):
    """Service offered by a business (not an application service class)"""
    __tablename__ = "business_services"

    id = Column(String, primary_key=True, default=_new_id)
    business_id = Column(String, ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False, index=True)
    service_name = Column(String(255), nullable=False)
    service_description = Column(Text, nullable=True)
    price_range = Column(String(100), nullable=True)
    duration = Column(String(100), nullable=True)
    is_featured = Column(Boolean, default=False)
    is_active = Column(Boolean, default=True)
    display_order = Column(Integer, default=0)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    business = relationship("Business", back_populates="services")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "businessId": self.business_id,
            "serviceName": self.service_name,
            "serviceDescription": self.service_description,
            "priceRange": self.price_range,
            "duration": self.duration,
            "isFeatured": self.is_featured,
            "isActive": self.is_active,
            "displayOrder": self.display_order,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }


class BusinessImage(Base):
    __tablename__ = "business_images"

    id = Column(String, primary_key=True, default=_new_id)
    business_id = Column(String, ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False, index=True)
    image_url = Column(String, nullable=False)
    image_type = Column(String(20), nullable=False, default="gallery")  # logo, cover, gallery
    alt_text = Column(String(255), nullable=True)
    display_order = Column(Integer, default=0)
    is_active = Column(Boolean, default=True)
    uploaded_at = Column(DateTime(timezone=True), default=utcnow)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    business = relationship("Business", back_populates="images")

    __table_args__ = (
        Index('idx_business_image_type', 'business_id', 'image_type'),
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "businessId": self.business_id,
            "imageUrl": self.image_url,
            "imageType": self.image_type,
            "altText": self.alt_text,
            "displayOrder": self.display_order,
            "isActive": self.is_active,
            "uploadedAt": _iso(self.uploaded_at),
        }


class CustomerInquiry(Base):
    """
    Contact-form message addressed to a business.

    Status moves new -> read on first owner fetch and to responded on reply;
    the generic status update may set any state. response_message and
    responded_at are set together or not at all.
    """
    __tablename__ = "customer_inquiries"

    id = Column(String, primary_key=True, default=_new_id)
    business_id = Column(String, ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False, index=True)
    customer_name = Column(String(255), nullable=False)
    customer_email = Column(String, nullable=False)
    customer_phone = Column(String(30), nullable=True)
    subject = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    inquiry_type = Column(String(20), nullable=False, default="general")
    status = Column(String(20), nullable=False, default="new", index=True)
    priority = Column(String(20), nullable=False, default="normal")
    source = Column(String(50), nullable=False, default="website")
    response_message = Column(Text, nullable=True)
    responded_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    business = relationship("Business", back_populates="inquiries")

    __table_args__ = (
        Index('idx_inquiry_business_status', 'business_id', 'status'),
        Index('idx_inquiry_business_created', 'business_id', 'created_at'),
        CheckConstraint(
            '(response_message IS NULL AND responded_at IS NULL) OR '
            '(response_message IS NOT NULL AND responded_at IS NOT NULL)',
            name='ck_inquiry_response_pair'
        ),
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "businessId": self.business_id,
            "customerName": self.customer_name,
            "customerEmail": self.customer_email,
            "customerPhone": self.customer_phone,
            "subject": self.subject,
            "message": self.message,
            "inquiryType": self.inquiry_type,
            "status": self.status,
            "priority": self.priority,
            "source": self.source,
            "responseMessage": self.response_message,
            "respondedAt": _iso(self.responded_at),
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }


class BusinessAnalytics(Base):
    """One row of event counters per business per calendar day"""
    __tablename__ = "business_analytics"

    id = Column(String, primary_key=True, default=_new_id)
    business_id = Column(String, ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False)
    date = Column(Date, nullable=False)
    page_views = Column(Integer, nullable=False, default=0)
    unique_visitors = Column(Integer, nullable=False, default=0)
    contact_clicks = Column(Integer, nullable=False, default=0)
    phone_clicks = Column(Integer, nullable=False, default=0)
    email_clicks = Column(Integer, nullable=False, default=0)
    website_clicks = Column(Integer, nullable=False, default=0)
    direction_requests = Column(Integer, nullable=False, default=0)
    search_appearances = Column(Integer, nullable=False, default=0)
    search_clicks = Column(Integer, nullable=False, default=0)
    review_views = Column(Integer, nullable=False, default=0)
    photo_views = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    business = relationship("Business", back_populates="analytics")

    __table_args__ = (
        UniqueConstraint('business_id', 'date', name='uq_analytics_business_date'),
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date.isoformat() if self.date else None,
            "pageViews": self.page_views,
            "uniqueVisitors": self.unique_visitors,
            "contactClicks": self.contact_clicks,
            "phoneClicks": self.phone_clicks,
            "emailClicks": self.email_clicks,
            "websiteClicks": self.website_clicks,
            "directionRequests": self.direction_requests,
            "searchAppearances": self.search_appearances,
            "searchClicks": self.search_clicks,
            "reviewViews": self.review_views,
            "photoViews": self.photo_views,
        }


class BusinessOperatingHours(Base):
    """Opening hours for one weekday (0 = Monday); times are HH:MM strings"""
    __tablename__ = "business_operating_hours"

    id = Column(String, primary_key=True, default=_new_id)
    business_id = Column(String, ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False)
    day_of_week = Column(Integer, nullable=False)
    is_open = Column(Boolean, nullable=False, default=True)
    open_time = Column(String(5), nullable=True)
    close_time = Column(String(5), nullable=True)
    break_start_time = Column(String(5), nullable=True)
    break_end_time = Column(String(5), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    business = relationship("Business", back_populates="operating_hours")

    __table_args__ = (
        UniqueConstraint('business_id', 'day_of_week', name='uq_hours_business_day'),
        CheckConstraint('day_of_week >= 0 AND day_of_week <= 6', name='ck_hours_day_range'),
    )


class EmailLog(Base):
    """Audit row for every outbound email attempt"""
    __tablename__ = "email_logs"

    id = Column(String, primary_key=True, default=_new_id)
    recipient = Column(String, nullable=False, index=True)
    subject = Column(String(255), nullable=False)
    status = Column(String(20), nullable=False)  # sent, failed
    message_id = Column(String, nullable=True)
    error_message = Column(Text, nullable=True)
    sent_at = Column(DateTime(timezone=True), default=utcnow)
