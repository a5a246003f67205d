"""
Tests for analytics event recording, period rollups and growth
"""
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import date, timedelta

import pytest

from directory_api.db.database import DatabaseGateway, build_engine
from directory_api.db.models import Business, BusinessAnalytics
from directory_api.services.analytics_aggregator import (
    AnalyticsAggregator,
    AnalyticsEventType,
    trailing_window,
)
from directory_api.tests.conftest import make_business, make_user

TODAY = date(2024, 3, 31)


def _seed(db, business_id, day, **counters):
    db.add(BusinessAnalytics(business_id=business_id, date=day, **counters))
    db.commit()


class TestTrailingWindow:

    def test_current_week_includes_today(self):
        assert trailing_window(7, TODAY) == (date(2024, 3, 25), TODAY)

    def test_previous_window_is_adjacent(self):
        start, end = trailing_window(7, TODAY, periods_back=1)
        assert end == date(2024, 3, 24)
        assert start == date(2024, 3, 18)

    def test_month_window_spans_thirty_days(self):
        start, end = trailing_window(30, TODAY)
        assert (end - start).days == 29


class TestRecordEvent:

    def setup_method(self):
        self.aggregator = AnalyticsAggregator()

    def test_counter_equals_number_of_events(self, test_db, test_business):
        for _ in range(5):
            self.aggregator.record_event(test_db, test_business.id, AnalyticsEventType.PHOTO_VIEW, today=TODAY)

        rows = test_db.query(BusinessAnalytics).filter(BusinessAnalytics.business_id == test_business.id).all()
        assert len(rows) == 1
        assert rows[0].date == TODAY
        assert rows[0].photo_views == 5
        assert rows[0].page_views == 0

    def test_events_on_different_days_get_separate_rows(self, test_db, test_business):
        self.aggregator.record_event(test_db, test_business.id, "page_view", today=TODAY)
        self.aggregator.record_event(test_db, test_business.id, "page_view", today=TODAY - timedelta(days=1))

        assert test_db.query(BusinessAnalytics).filter(
            BusinessAnalytics.business_id == test_business.id
        ).count() == 2

    def test_page_view_bumps_business_view_counters(self, test_db, test_business):
        for _ in range(3):
            self.aggregator.record_event(test_db, test_business.id, AnalyticsEventType.PAGE_VIEW, today=TODAY)

        business = test_db.get(Business, test_business.id)
        test_db.refresh(business)
        assert business.view_count == 3
        assert business.monthly_views == 3
        assert business.contact_count == 0

    @pytest.mark.parametrize("event_type", ["contact_click", "phone_click", "email_click"])
    def test_contact_events_bump_business_contact_counters(self, test_db, test_business, event_type):
        self.aggregator.record_event(test_db, test_business.id, event_type, today=TODAY)

        business = test_db.get(Business, test_business.id)
        test_db.refresh(business)
        assert business.contact_count == 1
        assert business.monthly_contacts == 1
        assert business.view_count == 0

    def test_other_events_leave_business_counters_alone(self, test_db, test_business):
        self.aggregator.record_event(test_db, test_business.id, AnalyticsEventType.WEBSITE_CLICK, today=TODAY)
        self.aggregator.record_event(test_db, test_business.id, AnalyticsEventType.SEARCH_APPEARANCE, today=TODAY)

        business = test_db.get(Business, test_business.id)
        test_db.refresh(business)
        assert business.view_count == 0
        assert business.contact_count == 0

    def test_unknown_event_type_rejected(self, test_db, test_business):
        with pytest.raises(ValueError):
            self.aggregator.record_event(test_db, test_business.id, "hover", today=TODAY)


class TestPeriodStats:

    def setup_method(self):
        self.aggregator = AnalyticsAggregator()

    def test_weekly_and_monthly_totals(self, test_db, test_business):
        for offset in range(14):
            _seed(test_db, test_business.id, TODAY - timedelta(days=offset), page_views=10, contact_clicks=1)
        # outside both windows
        _seed(test_db, test_business.id, TODAY - timedelta(days=40), page_views=500)

        weekly = self.aggregator.get_weekly_stats(test_db, test_business.id, today=TODAY)
        monthly = self.aggregator.get_monthly_stats(test_db, test_business.id, today=TODAY)

        assert weekly.total_page_views == 70
        assert weekly.total_contact_clicks == 7
        assert weekly.avg_daily_views == 10.0
        assert monthly.total_page_views == 140
        # missing days count as zero
        assert monthly.avg_daily_views == 4.7

    def test_empty_window(self, test_db, test_business):
        weekly = self.aggregator.get_weekly_stats(test_db, test_business.id, today=TODAY)
        assert weekly.to_response()["totalPageViews"] == 0
        assert weekly.avg_daily_views == 0.0


class TestGrowthStats:

    def setup_method(self):
        self.aggregator = AnalyticsAggregator()

    def test_week_over_week(self, test_db, test_business):
        _seed(test_db, test_business.id, TODAY, page_views=75, contact_clicks=3)
        _seed(test_db, test_business.id, TODAY - timedelta(days=8), page_views=50, contact_clicks=4)

        growth = self.aggregator.get_growth_stats(test_db, test_business.id, today=TODAY)

        assert growth["weeklyViewsGrowth"] == 50.0
        assert growth["weeklyContactsGrowth"] == -25.0
        assert growth["currentWeekViews"] == 75
        # both rows fall in the current 30-day window, the previous one is empty
        assert growth["monthlyViewsGrowth"] == 100.0
        assert growth["currentMonthViews"] == 125

    def test_no_activity_is_zero_growth(self, test_db, test_business):
        growth = self.aggregator.get_growth_stats(test_db, test_business.id, today=TODAY)
        assert growth["monthlyViewsGrowth"] == 0.0
        assert growth["weeklyContactsGrowth"] == 0.0


class TestReports:

    def setup_method(self):
        self.aggregator = AnalyticsAggregator()

    def test_overview_daily_data_is_zero_filled(self, test_db, test_business):
        _seed(test_db, test_business.id, TODAY - timedelta(days=2), page_views=4, contact_clicks=1)

        overview = self.aggregator.get_overview(test_db, test_business.id, today=TODAY)

        assert len(overview["dailyData"]) == 30
        assert overview["dailyData"][-1]["date"] == TODAY.isoformat()
        assert overview["dailyData"][-1]["pageViews"] == 0
        assert overview["dailyData"][-3]["pageViews"] == 4
        assert overview["summary"]["totalViews"] == 4
        assert overview["summary"]["conversionRate"] == 25.0

    def test_detailed_averages_over_stored_rows(self, test_db, test_business):
        _seed(test_db, test_business.id, date(2024, 3, 1), page_views=10, contact_clicks=1)
        _seed(test_db, test_business.id, date(2024, 3, 5), page_views=5, contact_clicks=2)

        detailed = self.aggregator.get_detailed(test_db, test_business.id, date(2024, 3, 1), date(2024, 3, 31))

        assert len(detailed["analyticsData"]) == 2
        assert detailed["totals"]["totalPageViews"] == 15
        assert detailed["averages"]["avgDailyViews"] == 7.5
        assert detailed["averages"]["avgDailyContacts"] == 1.5
        assert detailed["averages"]["conversionRate"] == 20.0
        assert detailed["period"] == {"startDate": "2024-03-01", "endDate": "2024-03-31"}

    def test_performance(self, test_db, test_business):
        _seed(test_db, test_business.id, TODAY, page_views=9, search_appearances=40, search_clicks=10)
        _seed(test_db, test_business.id, TODAY - timedelta(days=1), page_views=4)

        performance = self.aggregator.get_performance(test_db, test_business, today=TODAY)

        assert performance["activeDays"] == 2
        assert performance["avgDailyViews"] == 6.5
        assert performance["peakDailyViews"] == 9
        assert performance["searchCTR"] == 25.0

    def test_reset_monthly_counters(self, test_db, test_business):
        self.aggregator.record_event(test_db, test_business.id, "page_view", today=TODAY)
        self.aggregator.record_event(test_db, test_business.id, "contact_click", today=TODAY)

        assert self.aggregator.reset_monthly_counters(test_db) == 1

        business = test_db.get(Business, test_business.id)
        test_db.refresh(business)
        assert business.monthly_views == 0
        assert business.monthly_contacts == 0
        assert business.view_count == 1
        assert business.contact_count == 1


class TestConcurrentRecording:
    """Separate sessions on a file database, as separate request workers would use"""

    WRITERS = 8
    EVENTS_PER_WRITER = 5

    @pytest.fixture
    def file_gateway(self, tmp_path):
        engine = build_engine(
            f"sqlite:///{tmp_path / 'analytics.db'}",
            connect_args={"check_same_thread": False, "timeout": 30},
            pool_size=self.WRITERS,
        )
        gateway = DatabaseGateway(engine)
        gateway.create_all()
        yield gateway
        gateway.dispose()

    @pytest.fixture
    def business_id(self, file_gateway):
        db = file_gateway.session()
        try:
            return make_business(db, make_user(db, "owner@example.com")).id
        finally:
            db.close()

    def _run_writers(self, gateway, business_id, events_per_writer):
        aggregator = AnalyticsAggregator()
        start = threading.Barrier(self.WRITERS, timeout=30)

        def writer():
            db = gateway.session()
            try:
                # Every writer reaches the first-of-day upsert together
                start.wait()
                for _ in range(events_per_writer):
                    aggregator.record_event(db, business_id, "page_view", today=TODAY)
            finally:
                db.close()

        with ThreadPoolExecutor(max_workers=self.WRITERS) as pool:
            futures = [pool.submit(writer) for _ in range(self.WRITERS)]
            for future in futures:
                future.result()

    def _rows(self, gateway, business_id):
        db = gateway.session()
        try:
            rows = db.query(BusinessAnalytics).filter(BusinessAnalytics.business_id == business_id).all()
            business = db.get(Business, business_id)
            return rows, business
        finally:
            db.close()

    def test_racing_first_writers_share_one_row(self, file_gateway, business_id):
        self._run_writers(file_gateway, business_id, events_per_writer=1)

        rows, business = self._rows(file_gateway, business_id)
        assert len(rows) == 1
        assert rows[0].page_views == self.WRITERS
        assert business.view_count == self.WRITERS

    def test_no_increment_is_lost(self, file_gateway, business_id):
        self._run_writers(file_gateway, business_id, events_per_writer=self.EVENTS_PER_WRITER)

        total = self.WRITERS * self.EVENTS_PER_WRITER
        rows, business = self._rows(file_gateway, business_id)
        assert len(rows) == 1
        assert rows[0].date == TODAY
        assert rows[0].page_views == total
        assert business.view_count == total
        assert business.monthly_views == total
