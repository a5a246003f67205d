"""
Business analytics aggregation

Per-business daily counters, trailing-window rollups and period-over-period
growth. Events land in two places: the (business, date) fact row and the
lifetime/monthly counters on the business itself. The two writes commit
separately, so a crash in between leaves the business counters one short of
the fact table.
"""
import logging
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel
from sqlalchemy import func
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from directory_api.core.metrics import average, growth_percentage, percentage, round_half_up
from directory_api.core.schemas import CamelModel
from directory_api.db.models import Business, BusinessAnalytics

logger = logging.getLogger(__name__)


class AnalyticsEventType(str, Enum):
    PAGE_VIEW = "page_view"
    UNIQUE_VISITOR = "unique_visitor"
    CONTACT_CLICK = "contact_click"
    PHONE_CLICK = "phone_click"
    EMAIL_CLICK = "email_click"
    WEBSITE_CLICK = "website_click"
    DIRECTION_REQUEST = "direction_request"
    SEARCH_APPEARANCE = "search_appearance"
    SEARCH_CLICK = "search_click"
    REVIEW_VIEW = "review_view"
    PHOTO_VIEW = "photo_view"


EVENT_COUNTERS = {
    AnalyticsEventType.PAGE_VIEW: BusinessAnalytics.page_views,
    AnalyticsEventType.UNIQUE_VISITOR: BusinessAnalytics.unique_visitors,
    AnalyticsEventType.CONTACT_CLICK: BusinessAnalytics.contact_clicks,
    AnalyticsEventType.PHONE_CLICK: BusinessAnalytics.phone_clicks,
    AnalyticsEventType.EMAIL_CLICK: BusinessAnalytics.email_clicks,
    AnalyticsEventType.WEBSITE_CLICK: BusinessAnalytics.website_clicks,
    AnalyticsEventType.DIRECTION_REQUEST: BusinessAnalytics.direction_requests,
    AnalyticsEventType.SEARCH_APPEARANCE: BusinessAnalytics.search_appearances,
    AnalyticsEventType.SEARCH_CLICK: BusinessAnalytics.search_clicks,
    AnalyticsEventType.REVIEW_VIEW: BusinessAnalytics.review_views,
    AnalyticsEventType.PHOTO_VIEW: BusinessAnalytics.photo_views,
}

CONTACT_EVENTS = {
    AnalyticsEventType.CONTACT_CLICK,
    AnalyticsEventType.PHONE_CLICK,
    AnalyticsEventType.EMAIL_CLICK,
}

# Dialects with INSERT ... ON CONFLICT DO NOTHING
_UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}

# Counters reported by period rollups, in response order
ROLLUP_FIELDS = (
    ("totalPageViews", BusinessAnalytics.page_views),
    ("totalUniqueVisitors", BusinessAnalytics.unique_visitors),
    ("totalContactClicks", BusinessAnalytics.contact_clicks),
    ("totalPhoneClicks", BusinessAnalytics.phone_clicks),
    ("totalEmailClicks", BusinessAnalytics.email_clicks),
    ("totalWebsiteClicks", BusinessAnalytics.website_clicks),
    ("totalDirectionRequests", BusinessAnalytics.direction_requests),
)


class AnalyticsEventRequest(CamelModel):
    """Body of the public event endpoint; unknown types fail validation"""
    event_type: AnalyticsEventType


class PeriodStats(BaseModel):
    total_page_views: int = 0
    total_unique_visitors: int = 0
    total_contact_clicks: int = 0
    total_phone_clicks: int = 0
    total_email_clicks: int = 0
    total_website_clicks: int = 0
    total_direction_requests: int = 0
    avg_daily_views: float = 0.0

    def to_response(self) -> Dict[str, Any]:
        return {
            "totalPageViews": self.total_page_views,
            "totalUniqueVisitors": self.total_unique_visitors,
            "totalContactClicks": self.total_contact_clicks,
            "totalPhoneClicks": self.total_phone_clicks,
            "totalEmailClicks": self.total_email_clicks,
            "totalWebsiteClicks": self.total_website_clicks,
            "totalDirectionRequests": self.total_direction_requests,
            "avgDailyViews": self.avg_daily_views,
        }


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def trailing_window(days: int, today: date, periods_back: int = 0):
    """
    Inclusive (start, end) of an n-day window ending today, or the window
    ``periods_back`` whole windows earlier.
    """
    end = today - timedelta(days=days * periods_back)
    start = end - timedelta(days=days - 1)
    return start, end


class AnalyticsAggregator:
    """Records analytics events and rolls them up per period"""

    def __init__(self):
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    # Recording

    def _ensure_daily_row(self, db: Session, business_id: str, day: date) -> None:
        """Create the (business, day) row unless another writer already did"""
        insert = _UPSERT_INSERTS.get(db.get_bind().dialect.name)
        if insert is not None:
            stmt = insert(BusinessAnalytics.__table__).values(
                business_id=business_id, date=day
            ).on_conflict_do_nothing(index_elements=["business_id", "date"])
            db.execute(stmt)
            return

        try:
            with db.begin_nested():
                db.add(BusinessAnalytics(business_id=business_id, date=day))
        except IntegrityError:
            self.logger.debug(f"Daily analytics row for {business_id} on {day} already exists")

    def record_event(
        self,
        db: Session,
        business_id: str,
        event_type: AnalyticsEventType,
        today: Optional[date] = None
    ) -> None:
        """
        Count one event: upsert today's row, bump the mapped counter with a
        relative UPDATE, then bump the business's view or contact counters.
        """
        event_type = AnalyticsEventType(event_type)
        day = today or utc_today()
        counter = EVENT_COUNTERS[event_type]

        try:
            self._ensure_daily_row(db, business_id, day)
            db.query(BusinessAnalytics).filter(
                BusinessAnalytics.business_id == business_id,
                BusinessAnalytics.date == day
            ).update({counter: counter + 1}, synchronize_session=False)
            db.commit()
        except Exception:
            db.rollback()
            raise

        self._update_business_counters(db, business_id, event_type)

    def _update_business_counters(self, db: Session, business_id: str, event_type: AnalyticsEventType) -> None:
        if event_type == AnalyticsEventType.PAGE_VIEW:
            values = {
                Business.view_count: Business.view_count + 1,
                Business.monthly_views: Business.monthly_views + 1,
            }
        elif event_type in CONTACT_EVENTS:
            values = {
                Business.contact_count: Business.contact_count + 1,
                Business.monthly_contacts: Business.monthly_contacts + 1,
            }
        else:
            return

        try:
            db.query(Business).filter(Business.id == business_id).update(values, synchronize_session=False)
            db.commit()
        except Exception:
            db.rollback()
            raise

    # Reading

    def find_by_date_range(self, db: Session, business_id: str, start: date, end: date) -> List[BusinessAnalytics]:
        return db.query(BusinessAnalytics).filter(
            BusinessAnalytics.business_id == business_id,
            BusinessAnalytics.date >= start,
            BusinessAnalytics.date <= end
        ).order_by(BusinessAnalytics.date.asc()).all()

    def _sum_window(self, db: Session, business_id: str, start: date, end: date) -> Dict[str, int]:
        columns = [func.coalesce(func.sum(column), 0) for _, column in ROLLUP_FIELDS]
        row = db.query(*columns).filter(
            BusinessAnalytics.business_id == business_id,
            BusinessAnalytics.date >= start,
            BusinessAnalytics.date <= end
        ).one()
        return {key: int(value or 0) for (key, _), value in zip(ROLLUP_FIELDS, row)}

    def get_period_stats(self, db: Session, business_id: str, days: int, today: Optional[date] = None) -> PeriodStats:
        """Totals over the trailing ``days`` (today included); missing days count as zero"""
        start, end = trailing_window(days, today or utc_today())
        totals = self._sum_window(db, business_id, start, end)
        return PeriodStats(
            total_page_views=totals["totalPageViews"],
            total_unique_visitors=totals["totalUniqueVisitors"],
            total_contact_clicks=totals["totalContactClicks"],
            total_phone_clicks=totals["totalPhoneClicks"],
            total_email_clicks=totals["totalEmailClicks"],
            total_website_clicks=totals["totalWebsiteClicks"],
            total_direction_requests=totals["totalDirectionRequests"],
            avg_daily_views=average(totals["totalPageViews"], days, 1),
        )

    def get_weekly_stats(self, db: Session, business_id: str, today: Optional[date] = None) -> PeriodStats:
        return self.get_period_stats(db, business_id, 7, today)

    def get_monthly_stats(self, db: Session, business_id: str, today: Optional[date] = None) -> PeriodStats:
        return self.get_period_stats(db, business_id, 30, today)

    def _views_and_contacts(self, db: Session, business_id: str, start: date, end: date):
        views, contacts = db.query(
            func.coalesce(func.sum(BusinessAnalytics.page_views), 0),
            func.coalesce(func.sum(BusinessAnalytics.contact_clicks), 0),
        ).filter(
            BusinessAnalytics.business_id == business_id,
            BusinessAnalytics.date >= start,
            BusinessAnalytics.date <= end
        ).one()
        return int(views or 0), int(contacts or 0)

    def get_growth_stats(self, db: Session, business_id: str, today: Optional[date] = None) -> Dict[str, Any]:
        """
        Current vs previous adjacent window, 30 and 7 days, for page views
        and contact clicks.
        """
        today = today or utc_today()

        month_views, month_contacts = self._views_and_contacts(db, business_id, *trailing_window(30, today))
        prev_month_views, prev_month_contacts = self._views_and_contacts(db, business_id, *trailing_window(30, today, 1))
        week_views, week_contacts = self._views_and_contacts(db, business_id, *trailing_window(7, today))
        prev_week_views, prev_week_contacts = self._views_and_contacts(db, business_id, *trailing_window(7, today, 1))

        return {
            "monthlyViewsGrowth": growth_percentage(month_views, prev_month_views),
            "monthlyContactsGrowth": growth_percentage(month_contacts, prev_month_contacts),
            "weeklyViewsGrowth": growth_percentage(week_views, prev_week_views),
            "weeklyContactsGrowth": growth_percentage(week_contacts, prev_week_contacts),
            "currentMonthViews": month_views,
            "currentMonthContacts": month_contacts,
            "currentWeekViews": week_views,
            "currentWeekContacts": week_contacts,
        }

    def daily_series(self, db: Session, business_id: str, start: date, end: date) -> List[Dict[str, Any]]:
        """One entry per calendar day in [start, end], zero-filled"""
        rows = {row.date: row for row in self.find_by_date_range(db, business_id, start, end)}
        series = []
        day = start
        while day <= end:
            row = rows.get(day)
            series.append(row.to_dict() if row else BusinessAnalytics(date=day, **{
                column.key: 0 for column in EVENT_COUNTERS.values()
            }).to_dict())
            day += timedelta(days=1)
        return series

    def get_overview(self, db: Session, business_id: str, today: Optional[date] = None) -> Dict[str, Any]:
        today = today or utc_today()
        weekly = self.get_weekly_stats(db, business_id, today)
        monthly = self.get_monthly_stats(db, business_id, today)
        growth = self.get_growth_stats(db, business_id, today)

        return {
            "weeklyStats": weekly.to_response(),
            "monthlyStats": monthly.to_response(),
            "growthStats": growth,
            "dailyData": self.daily_series(db, business_id, *trailing_window(30, today)),
            "summary": {
                "totalViews": monthly.total_page_views,
                "totalContacts": monthly.total_contact_clicks,
                "avgDailyViews": monthly.avg_daily_views,
                "conversionRate": percentage(monthly.total_contact_clicks, monthly.total_page_views, 2),
            },
        }

    def get_detailed(self, db: Session, business_id: str, start: date, end: date) -> Dict[str, Any]:
        """Stored rows in the range with totals and per-active-day averages"""
        rows = self.find_by_date_range(db, business_id, start, end)
        totals = self._sum_window(db, business_id, start, end)

        return {
            "analyticsData": [row.to_dict() for row in rows],
            "totals": totals,
            "averages": {
                "avgDailyViews": average(totals["totalPageViews"], len(rows), 1),
                "avgDailyContacts": average(totals["totalContactClicks"], len(rows), 1),
                "conversionRate": percentage(totals["totalContactClicks"], totals["totalPageViews"], 2),
            },
            "period": {"startDate": start.isoformat(), "endDate": end.isoformat()},
        }

    def get_performance(self, db: Session, business: Business, today: Optional[date] = None) -> Dict[str, Any]:
        """Business counters plus 30-day activity and search figures"""
        start, end = trailing_window(30, today or utc_today())
        active_days, avg_views, peak_views, appearances, clicks = db.query(
            func.count(func.distinct(BusinessAnalytics.date)),
            func.avg(BusinessAnalytics.page_views),
            func.max(BusinessAnalytics.page_views),
            func.coalesce(func.sum(BusinessAnalytics.search_appearances), 0),
            func.coalesce(func.sum(BusinessAnalytics.search_clicks), 0),
        ).filter(
            BusinessAnalytics.business_id == business.id,
            BusinessAnalytics.date >= start,
            BusinessAnalytics.date <= end
        ).one()

        return {
            "totalViews": business.view_count or 0,
            "totalContacts": business.contact_count or 0,
            "monthlyViews": business.monthly_views or 0,
            "monthlyContacts": business.monthly_contacts or 0,
            "rating": float(business.rating or 0),
            "reviewCount": business.review_count or 0,
            "responseRate": float(business.response_rate or 0),
            "avgResponseTime": business.average_response_time or 0,
            "activeDays": int(active_days or 0),
            "avgDailyViews": round_half_up(avg_views or 0, 1),
            "peakDailyViews": int(peak_views or 0),
            "searchAppearances": int(appearances or 0),
            "searchClicks": int(clicks or 0),
            "searchCTR": percentage(clicks or 0, appearances or 0, 2),
            "conversionRate": percentage(business.monthly_contacts or 0, business.monthly_views or 0, 2),
        }

    def reset_monthly_counters(self, db: Session) -> int:
        """Zero monthly_views/monthly_contacts on every business"""
        try:
            updated = db.query(Business).update(
                {Business.monthly_views: 0, Business.monthly_contacts: 0},
                synchronize_session=False
            )
            db.commit()
        except Exception:
            db.rollback()
            raise
        self.logger.info(f"Reset monthly counters on {updated} businesses")
        return updated


def get_analytics_aggregator() -> AnalyticsAggregator:
    return AnalyticsAggregator()
