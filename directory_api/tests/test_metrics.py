"""
Tests for rounding, percentage and growth helpers
"""
import pytest

from directory_api.core.metrics import average, growth_percentage, percentage, round_half_up
from directory_api.core.pagination import build_pagination
from directory_api.utils.slug import slugify


class TestRounding:

    def test_half_up_not_bankers(self):
        assert round_half_up(2.5, 0) == 3.0
        assert round_half_up(0.125, 2) == 0.13
        assert round_half_up(4.65, 1) == 4.7

    def test_percentage(self):
        assert percentage(4, 10) == 40.0
        assert percentage(1, 3) == 33.33
        assert percentage(2, 3) == 66.67

    def test_percentage_of_zero_is_zero(self):
        assert percentage(5, 0) == 0.0

    def test_average(self):
        assert average(140, 30) == 4.7
        assert average(10, 0) == 0.0


class TestGrowth:

    @pytest.mark.parametrize("current,previous,expected", [
        (5, 0, 100.0),
        (0, 0, 0.0),
        (75, 50, 50.0),
        (50, 75, -33.3),
        (10, 10, 0.0),
        (1, 3, -66.7),
    ])
    def test_growth_percentage(self, current, previous, expected):
        assert growth_percentage(current, previous) == expected


class TestPagination:

    def test_middle_page(self):
        result = build_pagination(page=2, limit=10, total_count=35)
        assert result == {
            "currentPage": 2,
            "pageSize": 10,
            "totalItems": 35,
            "totalPages": 4,
            "hasNext": True,
            "hasPrevious": True,
        }

    def test_empty(self):
        result = build_pagination(page=1, limit=20, total_count=0)
        assert result["totalPages"] == 0
        assert result["hasNext"] is False
        assert result["hasPrevious"] is False


class TestSlugify:

    def test_punctuation_and_spaces(self):
        assert slugify("Kigali Construction Ltd!") == "kigali-construction-ltd"

    def test_runs_collapse_and_edges_trim(self):
        assert slugify("  --Café & Bar  ") == "caf-bar"
        assert slugify("A++B") == "a-b"
