"""Tests for KPI rollups and leaderboards."""

from datetime import date, datetime

import pytest

from crm_analytics.analyses.kpis import calculate_kpis, rank_customers
from crm_analytics.foundation.records import Customer, Sale


@pytest.fixture
def customers():
    return [
        Customer("A", "Alpha", "Gold", sales_this_month=30_000.0, avg_6mo_sales=20_000.0,
                 outstanding_balance=1_000.0),
        Customer("B", "Beta", "Silver", sales_this_month=5_000.0, avg_6mo_sales=50_000.0),
        Customer("C", "Gamma", "Bronze", sales_this_month=0.0, avg_6mo_sales=0.0,
                 outstanding_balance=2_500.0),
    ]


class TestCalculateKPIs:
    """Test the KPI row."""

    def test_all_sales_without_range(self, customers):
        sales = [
            Sale("S1", "A", 100.0, datetime(2024, 1, 1)),
            Sale("S2", "B", 50.0, datetime(2024, 3, 1)),
        ]
        kpis = calculate_kpis(customers, sales)
        assert kpis.total_customers == 3
        assert kpis.pending_orders == 1
        assert kpis.total_sales == 150.0
        assert kpis.total_outstanding == 3_500.0

    def test_range_covers_whole_days(self, customers):
        sales = [
            Sale("S1", "A", 100.0, datetime(2024, 1, 31, 23, 59)),
            Sale("S2", "B", 50.0, datetime(2024, 2, 1, 0, 0)),
            Sale("S3", "B", 25.0, datetime(2024, 1, 1, 0, 0)),
        ]
        kpis = calculate_kpis(customers, sales, start=date(2024, 1, 1), end=date(2024, 1, 31))
        assert kpis.total_sales == 125.0

    def test_inverted_range_rejected(self, customers):
        with pytest.raises(ValueError, match="must not be after"):
            calculate_kpis(customers, [], start=date(2024, 2, 1), end=date(2024, 1, 1))

    def test_as_dict(self, customers):
        assert calculate_kpis(customers, []).as_dict() == {
            "totalCustomers": 3,
            "pendingOrders": 1,
            "totalSales": 0,
            "totalOutstanding": 3_500.0,
        }


class TestRankCustomers:
    """Test leaderboard ordering."""

    def test_by_revenue(self, customers):
        assert [c.customer_id for c in rank_customers(customers)] == ["B", "A", "C"]

    def test_by_growth(self, customers):
        ranked = rank_customers(customers, by="growth")
        assert [c.customer_id for c in ranked] == ["A", "C", "B"]

    def test_by_activity_with_limit(self, customers):
        ranked = rank_customers(customers, by="activity", limit=1)
        assert [c.customer_id for c in ranked] == ["A"]

    def test_unknown_metric(self, customers):
        with pytest.raises(ValueError, match="by must be one of"):
            rank_customers(customers, by="loyalty")
