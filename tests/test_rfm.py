"""Tests for RFM (Recency-Frequency-Monetary) scoring."""

from datetime import datetime

import pytest

from crm_analytics.foundation.parallel import map_in_chunks
from crm_analytics.foundation.records import Customer, Sale
from crm_analytics.foundation.rfm import (
    RFMScore,
    calculate_rfm_score,
    calculate_rfm_scores,
    group_sales_by_customer,
    score_frequency,
    score_monetary,
    score_recency,
)


def _sales(customer_id, amounts):
    return [
        Sale(f"{customer_id}-{i}", customer_id, amount, datetime(2024, 1, 1 + i % 28))
        for i, amount in enumerate(amounts)
    ]


class TestRFMScore:
    """Test RFMScore dataclass validation."""

    def test_rfm_score_string(self):
        score = RFMScore("C1", recency=5, frequency=4, monetary=5)
        assert score.rfm_score == "545"

    @pytest.mark.parametrize("field", ["recency", "frequency", "monetary"])
    def test_out_of_range_score_raises(self, field):
        kwargs = {"recency": 3, "frequency": 3, "monetary": 3, field: 6}
        with pytest.raises(ValueError, match=f"{field} must be between 1 and 5"):
            RFMScore("C1", **kwargs)

    def test_as_dict_uses_camel_case(self):
        payload = RFMScore("C1", 1, 2, 3, order_count=2, total_spend=60_000.0).as_dict()
        assert payload["customerId"] == "C1"
        assert payload["rfmScore"] == "123"
        assert payload["totalSpend"] == 60_000.0


class TestBrackets:
    """Bracket boundaries are where off-by-one bugs hide."""

    @pytest.mark.parametrize(
        "days, expected",
        [(0, 5), (30, 5), (31, 4), (60, 4), (61, 3), (120, 3), (121, 2), (180, 2), (181, 1)],
    )
    def test_recency(self, days, expected):
        assert score_recency(days) == expected

    @pytest.mark.parametrize(
        "orders, expected",
        [(0, 1), (1, 1), (2, 2), (4, 2), (5, 3), (9, 3), (10, 4), (19, 4), (20, 5)],
    )
    def test_frequency(self, orders, expected):
        assert score_frequency(orders) == expected

    @pytest.mark.parametrize(
        "spend, expected",
        [
            (0.0, 1),
            (49_999.99, 1),
            (50_000, 2),
            (100_000, 3),
            (199_999, 3),
            (200_000, 4),
            (500_000, 5),
        ],
    )
    def test_monetary(self, spend, expected):
        assert score_monetary(spend) == expected


class TestCalculateRFMScore:
    """Test scoring a single customer."""

    def test_only_matching_sales_count(self):
        customer = Customer("C1", "Acme", "Silver", days_since_last_order=10)
        sales = _sales("C1", [60_000.0, 45_000.0]) + _sales("C2", [900_000.0] * 25)
        score = calculate_rfm_score(customer, sales)
        assert score.order_count == 2
        assert score.total_spend == 105_000.0
        assert score.rfm_score == "523"

    def test_customer_without_sales_scores_lowest_f_and_m(self):
        customer = Customer("C1", "Acme", "Bronze", days_since_last_order=400)
        score = calculate_rfm_score(customer, [])
        assert (score.recency, score.frequency, score.monetary) == (1, 1, 1)
        assert score.total_spend == 0.0


class TestCalculateRFMScores:
    """Test batch scoring."""

    def test_empty_customers(self):
        assert calculate_rfm_scores([], _sales("C1", [10.0])) == []

    def test_preserves_customer_order(self):
        customers = [
            Customer("C2", "Beta", "Gold", days_since_last_order=5),
            Customer("C1", "Acme", "Gold", days_since_last_order=200),
        ]
        sales = _sales("C1", [9_000.0] * 20) + _sales("C2", [300_000.0])
        scores = calculate_rfm_scores(customers, sales)
        assert [s.customer_id for s in scores] == ["C2", "C1"]
        assert scores[0].rfm_score == "514"
        assert scores[1].rfm_score == "153"

    def test_matches_single_customer_scoring(self):
        customers = [
            Customer(f"C{i}", f"Firm {i}", "Silver", days_since_last_order=i * 20)
            for i in range(10)
        ]
        sales = []
        for i in range(10):
            sales.extend(_sales(f"C{i}", [25_000.0] * i))
        batch = calculate_rfm_scores(customers, sales)
        single = [calculate_rfm_score(c, sales) for c in customers]
        assert batch == single

    def test_group_sales_by_customer(self):
        grouped = group_sales_by_customer(_sales("C1", [1.0, 2.0]) + _sales("C2", [5.0]))
        assert grouped == {"C1": (2, 3.0), "C2": (1, 5.0)}


class TestParallelChunks:
    """Test the chunked pool helper used for large customer lists."""

    def test_parallel_matches_serial(self):
        customers = [
            Customer(f"C{i}", f"Firm {i}", "Bronze", days_since_last_order=i)
            for i in range(50)
        ]
        sales = _sales("C3", [70_000.0, 70_000.0])
        serial = calculate_rfm_scores(customers, sales, parallel=False)
        parallel = calculate_rfm_scores(
            customers, sales, parallel=True, parallel_threshold=10, n_workers=2
        )
        assert parallel == serial

    def test_below_threshold_runs_in_process(self):
        calls = []

        def collect(chunk, tag):
            calls.append((len(chunk), tag))
            return [x * 2 for x in chunk]

        # A local function is not picklable, so this only passes in-process.
        assert map_in_chunks(collect, [1, 2, 3], "t", parallel_threshold=10) == [2, 4, 6]
        assert calls == [(3, "t")]
