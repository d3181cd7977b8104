"""
Unit Tests for finance and dashboard calculations
"""
from datetime import datetime

from repairflow.services.dashboard_service import bucket_layout, date_range_label
from repairflow.services.finance_service import build_metrics, compare_metrics
from repairflow.utils.dates import DateRange

RANGE = DateRange(datetime(2024, 3, 1), datetime(2024, 3, 31))


class TestBucketLayout:

    def test_week_uses_weekday_labels(self):
        buckets = bucket_layout(datetime(2024, 3, 4), datetime(2024, 3, 10, 18))
        assert [b[0] for b in buckets] == ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
        assert buckets[-1][2] == datetime(2024, 3, 10, 23, 59, 59, 999999)

    def test_month_uses_day_labels(self):
        buckets = bucket_layout(datetime(2024, 3, 1), datetime(2024, 3, 20))
        assert len(buckets) == 20
        assert buckets[0][0] == "01 Mar"
        assert buckets[-1][0] == "20 Mar"

    def test_long_range_uses_weeks(self):
        buckets = bucket_layout(datetime(2024, 1, 1), datetime(2024, 3, 31))
        assert len(buckets) == 13
        assert [b[0] for b in buckets[:3]] == ["01 Jan", "08 Jan", "15 Jan"]
        assert buckets[0][2] == datetime(2024, 1, 7, 23, 59, 59, 999999)

    def test_single_day(self):
        assert len(bucket_layout(datetime(2024, 3, 1, 9), datetime(2024, 3, 1, 17))) == 1

    def test_label(self):
        assert date_range_label(datetime(2024, 3, 1), datetime(2024, 3, 20)) == "01 Mar 2024 to 20 Mar 2024"


class TestMetrics:

    def test_build_metrics(self):
        metrics = build_metrics(1000, 300, 50, 100, 25, 12, RANGE)
        assert metrics["gross_profit"] == 700
        assert metrics["net_profit"] == 525
        assert metrics["gross_margin"] == 70.0
        assert metrics["ticket_count"] == 12
        assert metrics["start_date"] == RANGE.start

    def test_zero_revenue_margin(self):
        metrics = build_metrics(0, 40, 0, 0, 0, 0, RANGE)
        assert metrics["gross_margin"] == 0
        assert metrics["net_profit"] == -40

    def test_compare_metrics(self):
        current = build_metrics(150, 0, 0, 0, 0, 3, RANGE)
        previous = build_metrics(100, 0, 0, 0, 0, 0, RANGE)
        change = compare_metrics(current, previous)
        assert change["revenue"] == 50
        assert change["ticket_count"] == 100
        assert change["refunds"] == 0
        assert "gross_margin" not in change
