"""
Customer inquiry lifecycle

Inquiries start as ``new``. The first owner/admin fetch moves them to
``read`` (only from ``new``), a reply moves any state to ``responded`` and
stamps the response, and the generic status/priority updates overwrite
without ordering checks. Every write is issued as an UPDATE; the ORM object
is refreshed only after the commit succeeds.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field
from sqlalchemy import case, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from directory_api.core.config import get_settings
from directory_api.core.exceptions import OperationFailedError
from directory_api.core.metrics import percentage, round_half_up
from directory_api.core.schemas import CamelModel
from directory_api.db.models import Business, CustomerInquiry, utcnow

logger = logging.getLogger(__name__)

InquiryType = Literal["general", "quote", "service", "complaint", "partnership"]
InquiryStatus = Literal["new", "read", "responded", "closed"]
InquiryPriority = Literal["low", "normal", "high", "urgent"]


class InquiryCreate(CamelModel):
    """Public contact-form submission"""
    customer_name: str = Field(..., min_length=2, max_length=255)
    customer_email: EmailStr
    customer_phone: Optional[str] = Field(None, max_length=30)
    subject: str = Field(..., min_length=3, max_length=255)
    message: str = Field(..., min_length=10)
    inquiry_type: InquiryType = "general"
    source: str = Field("website", max_length=50)


class InquiryRespondRequest(CamelModel):
    response_message: str = Field(..., min_length=10)


class InquiryStatusUpdate(CamelModel):
    status: InquiryStatus
    priority: Optional[InquiryPriority] = None


class InquiryFilters(BaseModel):
    status: Optional[InquiryStatus] = None
    inquiry_type: Optional[InquiryType] = None
    priority: Optional[InquiryPriority] = None
    sort_by: Literal["newest", "oldest"] = "newest"
    limit: int = Field(20, ge=1, le=100)
    offset: int = Field(0, ge=0)


class InquiryStats(BaseModel):
    total_inquiries: int = 0
    new_inquiries: int = 0
    responded_inquiries: int = 0
    response_rate: float = 0.0
    avg_response_time_hours: float = 0.0

    def to_response(self) -> Dict[str, Any]:
        return {
            "totalInquiries": self.total_inquiries,
            "newInquiries": self.new_inquiries,
            "respondedInquiries": self.responded_inquiries,
            "responseRate": self.response_rate,
            "avgResponseTimeHours": self.avg_response_time_hours,
        }


def _hours_between(start: datetime, end: datetime) -> float:
    # SQLite hands back naive datetimes; both ends are stored in UTC
    if start.tzinfo is None:
        start = start.replace(tzinfo=timezone.utc)
    if end.tzinfo is None:
        end = end.replace(tzinfo=timezone.utc)
    return (end - start).total_seconds() / 3600


class InquiryLifecycleService:
    """State transitions and response statistics for customer inquiries"""

    def __init__(self):
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    # Creation and lookup

    def create(self, db: Session, business_id: str, data: InquiryCreate) -> CustomerInquiry:
        """Insert a ``new`` inquiry and bump the business's inquiry total"""
        inquiry = CustomerInquiry(
            business_id=business_id,
            status="new",
            priority="normal",
            **data.model_dump(),
        )
        try:
            db.add(inquiry)
            db.query(Business).filter(Business.id == business_id).update(
                {Business.total_inquiries: Business.total_inquiries + 1},
                synchronize_session=False
            )
            db.commit()
            db.refresh(inquiry)
        except Exception:
            db.rollback()
            raise

        self.logger.info(f"Inquiry {inquiry.id} submitted to business {business_id}")
        return inquiry

    def find_by_id(self, db: Session, inquiry_id: str) -> Optional[CustomerInquiry]:
        return db.query(CustomerInquiry).filter(CustomerInquiry.id == inquiry_id).first()

    def _filtered(self, db: Session, business_id: str, filters: InquiryFilters):
        query = db.query(CustomerInquiry).filter(CustomerInquiry.business_id == business_id)
        if filters.status:
            query = query.filter(CustomerInquiry.status == filters.status)
        if filters.inquiry_type:
            query = query.filter(CustomerInquiry.inquiry_type == filters.inquiry_type)
        if filters.priority:
            query = query.filter(CustomerInquiry.priority == filters.priority)
        return query

    def find_by_business_id(self, db: Session, business_id: str, filters: InquiryFilters) -> List[CustomerInquiry]:
        query = self._filtered(db, business_id, filters)
        if filters.sort_by == "oldest":
            query = query.order_by(CustomerInquiry.created_at.asc())
        else:
            query = query.order_by(CustomerInquiry.created_at.desc())
        return query.offset(filters.offset).limit(filters.limit).all()

    def count_by_business_id(self, db: Session, business_id: str, filters: InquiryFilters) -> int:
        return self._filtered(db, business_id, filters).count()

    # Transitions

    def _apply(self, db: Session, inquiry: CustomerInquiry, values: Dict[str, Any], *criteria) -> bool:
        """
        UPDATE the inquiry row with ``values`` (optionally guarded by extra
        criteria), commit, then refresh ``inquiry``. Returns False when the
        guard matched no row. On failure the session is rolled back and the
        object is left as it was.
        """
        values = dict(values)
        values[CustomerInquiry.updated_at] = utcnow()
        try:
            updated = db.query(CustomerInquiry).filter(
                CustomerInquiry.id == inquiry.id, *criteria
            ).update(values, synchronize_session=False)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            self.logger.error(f"Failed to update inquiry {inquiry.id}: {e}")
            raise OperationFailedError("Failed to update inquiry") from e

        if updated:
            db.refresh(inquiry)
        return bool(updated)

    def mark_as_read(self, db: Session, inquiry: CustomerInquiry) -> CustomerInquiry:
        """new -> read; no-op for any later state"""
        if inquiry.status != "new":
            return inquiry
        self._apply(db, inquiry, {CustomerInquiry.status: "read"}, CustomerInquiry.status == "new")
        return inquiry

    def respond(self, db: Session, inquiry: CustomerInquiry, response_message: str) -> CustomerInquiry:
        """any -> responded, then recompute the business's response metrics"""
        self._apply(db, inquiry, {
            CustomerInquiry.status: "responded",
            CustomerInquiry.response_message: response_message,
            CustomerInquiry.responded_at: utcnow(),
        })
        self.update_business_response_rate(db, inquiry.business_id)
        return inquiry

    def update_status(self, db: Session, inquiry: CustomerInquiry, status: str) -> CustomerInquiry:
        """Unguarded overwrite; any of the four states is accepted"""
        self._apply(db, inquiry, {CustomerInquiry.status: status})
        return inquiry

    def update_priority(self, db: Session, inquiry: CustomerInquiry, priority: str) -> CustomerInquiry:
        self._apply(db, inquiry, {CustomerInquiry.priority: priority})
        return inquiry

    # Statistics

    def _window_start(self, days: int, now: Optional[datetime] = None) -> datetime:
        return (now or utcnow()) - timedelta(days=days)

    def _response_figures(self, db: Session, business_id: str, since: datetime):
        """(total, responded, avg hours) for inquiries created since ``since``"""
        base = db.query(CustomerInquiry).filter(
            CustomerInquiry.business_id == business_id,
            CustomerInquiry.created_at >= since
        )
        total = base.count()
        pairs = base.filter(CustomerInquiry.responded_at.isnot(None)).with_entities(
            CustomerInquiry.created_at, CustomerInquiry.responded_at
        ).all()

        responded = len(pairs)
        avg_hours = 0.0
        if responded:
            avg_hours = round_half_up(
                sum(_hours_between(created, answered) for created, answered in pairs) / responded, 1
            )
        return total, responded, avg_hours

    def get_stats(self, db: Session, business_id: str, date_range: int = 30, now: Optional[datetime] = None) -> InquiryStats:
        since = self._window_start(date_range, now)
        new_count, responded_status = db.query(
            func.coalesce(func.sum(case((CustomerInquiry.status == "new", 1), else_=0)), 0),
            func.coalesce(func.sum(case((CustomerInquiry.status == "responded", 1), else_=0)), 0),
        ).filter(
            CustomerInquiry.business_id == business_id,
            CustomerInquiry.created_at >= since
        ).one()

        total, responded, avg_hours = self._response_figures(db, business_id, since)

        return InquiryStats(
            total_inquiries=total,
            new_inquiries=int(new_count),
            responded_inquiries=int(responded_status),
            response_rate=percentage(responded, total, 2),
            avg_response_time_hours=avg_hours,
        )

    def update_business_response_rate(
        self,
        db: Session,
        business_id: str,
        window_days: Optional[int] = None,
        now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """
        Recompute response rate (percent, two decimals) and average response
        time (stored in minutes) from the inquiries in the trailing window.
        """
        window_days = window_days or get_settings().response_rate_window_days
        total, responded, avg_hours = self._response_figures(
            db, business_id, self._window_start(window_days, now)
        )
        response_rate = percentage(responded, total, 2)
        average_minutes = int(round_half_up(avg_hours * 60, 0))

        try:
            db.query(Business).filter(Business.id == business_id).update(
                {
                    Business.response_rate: response_rate,
                    Business.average_response_time: average_minutes,
                },
                synchronize_session=False
            )
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            self.logger.error(f"Failed to update response rate for business {business_id}: {e}")
            raise OperationFailedError("Failed to update business response rate") from e

        return {"responseRate": response_rate, "averageResponseTime": average_minutes}


def get_inquiry_lifecycle_service() -> InquiryLifecycleService:
    return InquiryLifecycleService()
