"""Tests for RFM segmentation."""

from datetime import datetime
from itertools import product

import pytest

from crm_analytics.analyses.segmentation import (
    SEGMENT_RULES,
    Segment,
    SegmentType,
    classify_segment,
    segment_customers,
)
from crm_analytics.foundation.records import Customer, Sale


def _sales(customer_id, count, amount):
    return [
        Sale(f"{customer_id}-{i}", customer_id, amount, datetime(2024, 1, 1 + i % 28))
        for i in range(count)
    ]


class TestClassifySegment:
    """Test the ordered rule table."""

    @pytest.mark.parametrize(
        "rfm, expected",
        [
            ((5, 4, 4), SegmentType.CHAMPIONS),
            ((4, 5, 5), SegmentType.CHAMPIONS),
            ((3, 3, 3), SegmentType.LOYAL),
            ((5, 3, 5), SegmentType.LOYAL),
            ((4, 1, 3), SegmentType.POTENTIAL_LOYALIST),
            ((5, 2, 5), SegmentType.POTENTIAL_LOYALIST),
            ((2, 3, 3), SegmentType.AT_RISK),
            ((2, 2, 2), SegmentType.NEEDS_ATTENTION),
            ((2, 2, 5), SegmentType.NEEDS_ATTENTION),
            ((2, 2, 1), SegmentType.ABOUT_TO_SLEEP),
            ((2, 1, 1), SegmentType.ABOUT_TO_SLEEP),
            ((1, 2, 1), SegmentType.HIBERNATING),
            ((1, 5, 5), SegmentType.HIBERNATING),
            ((1, 1, 5), SegmentType.LOST),
            ((3, 1, 1), SegmentType.LOST),
            ((2, 1, 3), SegmentType.LOST),
        ],
    )
    def test_rules(self, rfm, expected):
        assert classify_segment(*rfm) is expected

    def test_first_match_wins(self):
        """(5,5,5) satisfies both Champions and Loyal; Champions comes first."""
        assert SEGMENT_RULES[1][0](5, 5, 5)
        assert classify_segment(5, 5, 5) is SegmentType.CHAMPIONS

    def test_every_triple_has_a_segment(self):
        for r, f, m in product(range(1, 6), repeat=3):
            assert isinstance(classify_segment(r, f, m), SegmentType)

    def test_display_metadata(self):
        assert SegmentType.POTENTIAL_LOYALIST.segment_id == "potentialLoyalist"
        assert SegmentType.POTENTIAL_LOYALIST.display_name == "Potential Loyalist"
        assert [s.priority for s in SegmentType] == list(range(1, 9))


class TestSegment:
    """Test Segment dataclass validation."""

    def test_empty_segment_raises(self):
        with pytest.raises(ValueError, match="has no customers"):
            Segment(SegmentType.LOST, (), 0.0)

    def test_as_dict(self):
        customer = Customer("C1", "Acme", "Gold", sales_this_month=10.0)
        payload = Segment(SegmentType.LOYAL, (customer,), 10.0).as_dict()
        assert payload == {
            "id": "loyal",
            "name": "Loyal",
            "description": "Regular, consistent buyers",
            "priority": 2,
            "customers": ["C1"],
            "totalRevenue": 10.0,
        }


class TestSegmentCustomers:
    """Test partitioning a customer base."""

    @pytest.fixture
    def snapshot(self):
        customers = [
            # R5 F5 M5 -> Champions
            Customer("CH", "Champ Co", "Platinum", sales_this_month=90_000.0,
                     days_since_last_order=3),
            # R1 F1 M1 -> Lost
            Customer("LO", "Gone Ltd", "Dead", sales_this_month=0.0,
                     days_since_last_order=365),
            # R3 F3 M3 -> Loyal
            Customer("LY", "Steady Inc", "Gold", sales_this_month=25_000.0,
                     days_since_last_order=90),
            # R1 F2 M1 -> Hibernating
            Customer("HB", "Sleepy LLC", "Bronze", sales_this_month=0.0,
                     days_since_last_order=200),
            # R5 F5 M5 -> Champions
            Customer("CH2", "Champ Two", "Gold", sales_this_month=10_000.0,
                     days_since_last_order=1),
        ]
        sales = (
            _sales("CH", 20, 30_000.0)
            + _sales("LY", 5, 20_000.0)
            + _sales("HB", 2, 1_000.0)
            + _sales("CH2", 25, 25_000.0)
        )
        return customers, sales

    def test_segments_partition_customers(self, snapshot):
        customers, sales = snapshot
        segments = segment_customers(customers, sales)
        member_ids = [c.customer_id for s in segments for c in s.customers]
        assert sorted(member_ids) == sorted(c.customer_id for c in customers)
        assert len(member_ids) == len(set(member_ids))

    def test_only_non_empty_segments_in_priority_order(self, snapshot):
        customers, sales = snapshot
        segments = segment_customers(customers, sales)
        assert [s.segment_id for s in segments] == [
            "champions",
            "loyal",
            "hibernating",
            "lost",
        ]
        assert all(s.customers for s in segments)

    def test_members_keep_input_order_and_revenue_sums(self, snapshot):
        customers, sales = snapshot
        champions = segment_customers(customers, sales)[0]
        assert [c.customer_id for c in champions.customers] == ["CH", "CH2"]
        assert champions.total_revenue == 100_000.0

    def test_no_customers(self):
        assert segment_customers([], []) == []
