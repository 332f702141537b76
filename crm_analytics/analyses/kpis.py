"""Headline KPIs and customer leaderboards."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Optional, Sequence

from crm_analytics.foundation.records import Customer, Sale

logger = logging.getLogger(__name__)

LEADERBOARD_METRICS = ("revenue", "growth", "activity")


@dataclass(frozen=True)
class KPISummary:
    """Headline numbers for the dashboard KPI row.

    Attributes
    ----------
    total_customers:
        Customers in the snapshot.
    pending_orders:
        Customers with sales this month who still carry an outstanding
        balance.
    total_sales:
        Sum of sale amounts inside the requested date range.
    total_outstanding:
        Sum of outstanding balances.
    """

    total_customers: int
    pending_orders: int
    total_sales: float
    total_outstanding: float

    def as_dict(self) -> dict:
        return {
            "totalCustomers": self.total_customers,
            "pendingOrders": self.pending_orders,
            "totalSales": self.total_sales,
            "totalOutstanding": self.total_outstanding,
        }


def _day_bounds(start: date, end: date) -> tuple[datetime, datetime]:
    start_d = start.date() if isinstance(start, datetime) else start
    end_d = end.date() if isinstance(end, datetime) else end
    if start_d > end_d:
        raise ValueError(f"start ({start_d}) must not be after end ({end_d})")
    return datetime.combine(start_d, time.min), datetime.combine(end_d, time.max)


def calculate_kpis(
    customers: Sequence[Customer],
    sales: Sequence[Sale],
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> KPISummary:
    """Compute the KPI row.

    When both ``start`` and ``end`` are given, only sales dated within those
    whole days (inclusive) count towards ``total_sales``; otherwise every
    sale counts.
    """
    if start is not None and end is not None:
        lower, upper = _day_bounds(start, end)
        in_range = [s for s in sales if lower <= s.date <= upper]
    else:
        in_range = list(sales)

    return KPISummary(
        total_customers=len(customers),
        pending_orders=sum(
            1 for c in customers if c.sales_this_month > 0 and c.outstanding_balance > 0
        ),
        total_sales=sum(s.amount for s in in_range),
        total_outstanding=sum(c.outstanding_balance for c in customers),
    )


def _growth(customer: Customer) -> float:
    if customer.avg_6mo_sales <= 0:
        return 0.0
    return (customer.sales_this_month - customer.avg_6mo_sales) / customer.avg_6mo_sales


def rank_customers(
    customers: Sequence[Customer],
    by: str = "revenue",
    limit: Optional[int] = 5,
) -> list[Customer]:
    """Rank customers for a leaderboard.

    Parameters
    ----------
    customers:
        Customers to rank.
    by:
        ``"revenue"`` (6-month average), ``"growth"`` (this month against the
        6-month average) or ``"activity"`` (sales this month).
    limit:
        Number of customers to return; ``None`` returns all of them.

    >>> from crm_analytics.foundation.records import Customer
    >>> cs = [Customer("A", "A", "Gold", avg_6mo_sales=10.0),
    ...       Customer("B", "B", "Gold", avg_6mo_sales=30.0)]
    >>> [c.customer_id for c in rank_customers(cs)]
    ['B', 'A']
    """
    if by == "revenue":
        key = lambda c: c.avg_6mo_sales  # noqa: E731
    elif by == "growth":
        key = _growth
    elif by == "activity":
        key = lambda c: c.sales_this_month  # noqa: E731
    else:
        raise ValueError(f"by must be one of {LEADERBOARD_METRICS}, got {by!r}")

    ranked = sorted(customers, key=key, reverse=True)
    return ranked if limit is None else ranked[:limit]
