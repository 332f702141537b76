"""Churn risk scoring.

An additive model with four capped factors, evaluated in a fixed order:

====================  =====  ==========================================
Factor                Max    Fires when
====================  =====  ==========================================
Recency               40     >90 days (+40), >60 (+30), >30 (+15)
Sales trend           30     drop vs 6-month average >0.7 (+30), >0.4 (+15)
Outstanding ratio     20     balance / 6-month average >2 (+20), >1 (+10)
Engagement            10     no remarks on file and >30 days inactive
====================  =====  ==========================================

The sales-trend and outstanding factors are skipped when the 6-month average
is zero. The score is capped at 100 and bucketed into Low (<40),
Medium (40-69) and High (>=70).
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Optional, Sequence

from crm_analytics.cache import SnapshotCache, snapshot_fingerprint
from crm_analytics.foundation.parallel import DEFAULT_PARALLEL_THRESHOLD, map_in_chunks
from crm_analytics.foundation.records import Customer, Remark, Sale

logger = logging.getLogger(__name__)

MAX_SCORE = 100
HIGH_RISK_THRESHOLD = 70
MEDIUM_RISK_THRESHOLD = 40


class RiskLevel(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


def risk_level_for(score: int) -> RiskLevel:
    """Bucket a score; both thresholds are inclusive lower bounds."""
    if score >= HIGH_RISK_THRESHOLD:
        return RiskLevel.HIGH
    if score >= MEDIUM_RISK_THRESHOLD:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


@dataclass(frozen=True)
class ChurnRisk:
    """Churn risk assessment for one customer.

    Attributes
    ----------
    customer_id:
        Customer being assessed.
    customer_name:
        Display name, carried for the presentation layer.
    score:
        Risk score between 0 and 100.
    level:
        Low, Medium or High.
    factors:
        Human-readable reasons, in evaluation order.
    days_since_last_order, outstanding_balance:
        Copied from the customer for display.
    last_order_date:
        ``as_of`` minus ``days_since_last_order``, when ``as_of`` was given.
    """

    customer_id: str
    customer_name: str
    score: int
    level: RiskLevel
    factors: tuple[str, ...] = field(default_factory=tuple)
    days_since_last_order: int = 0
    outstanding_balance: float = 0.0
    last_order_date: Optional[date] = None

    def __post_init__(self) -> None:
        """Validate churn risk constraints."""
        if not 0 <= self.score <= MAX_SCORE:
            raise ValueError(
                f"score must be between 0 and {MAX_SCORE}, got {self.score} (customer_id={self.customer_id})"
            )
        if self.level != risk_level_for(self.score):
            raise ValueError(
                f"level {self.level.value} does not match score {self.score} (customer_id={self.customer_id})"
            )

    def as_dict(self) -> dict:
        return {
            "customerId": self.customer_id,
            "customerName": self.customer_name,
            "score": self.score,
            "level": self.level.value,
            "factors": list(self.factors),
            "daysSinceLastOrder": self.days_since_last_order,
            "outstandingBalance": self.outstanding_balance,
            "lastOrderDate": (
                self.last_order_date.isoformat() if self.last_order_date else None
            ),
        }


def _recency_factor(days: int) -> tuple[int, Optional[str]]:
    if days > 90:
        return 40, f"Inactive for {days} days"
    if days > 60:
        return 30, "No orders in last 2 months"
    if days > 30:
        return 15, "No orders in last 30 days"
    return 0, None


def _sales_trend_factor(customer: Customer) -> tuple[int, Optional[str]]:
    if customer.avg_6mo_sales <= 0:
        return 0, None
    drop = (customer.avg_6mo_sales - customer.sales_this_month) / customer.avg_6mo_sales
    if drop > 0.7:
        return 30, "Significant drop in sales volume"
    if drop > 0.4:
        return 15, "Declining sales trend"
    return 0, None


def _outstanding_factor(customer: Customer) -> tuple[int, Optional[str]]:
    if customer.avg_6mo_sales <= 0:
        return 0, None
    ratio = customer.outstanding_balance / customer.avg_6mo_sales
    if ratio > 2:
        return 20, "High outstanding balance ratio"
    if ratio > 1:
        return 10, "Outstanding balance exceeds monthly average"
    return 0, None


def _engagement_factor(customer: Customer, remark_count: int) -> tuple[int, Optional[str]]:
    if remark_count == 0 and customer.days_since_last_order > 30:
        return 10, "No recent interactions"
    return 0, None


def _assess(
    customer: Customer, remark_count: int, as_of: Optional[date]
) -> ChurnRisk:
    contributions = (
        _recency_factor(customer.days_since_last_order),
        _sales_trend_factor(customer),
        _outstanding_factor(customer),
        _engagement_factor(customer, remark_count),
    )
    total = sum(points for points, _ in contributions)
    factors = tuple(reason for points, reason in contributions if points and reason)
    score = min(MAX_SCORE, total)

    last_order_date = None
    if as_of is not None:
        as_of_date = as_of.date() if isinstance(as_of, datetime) else as_of
        last_order_date = as_of_date - timedelta(days=customer.days_since_last_order)

    return ChurnRisk(
        customer_id=customer.customer_id,
        customer_name=customer.name,
        score=score,
        level=risk_level_for(score),
        factors=factors,
        days_since_last_order=customer.days_since_last_order,
        outstanding_balance=customer.outstanding_balance,
        last_order_date=last_order_date,
    )


def calculate_churn_risk(
    customer: Customer,
    sales: Sequence[Sale],
    remarks: Sequence[Remark],
    as_of: Optional[date] = None,
) -> ChurnRisk:
    """Score churn risk for one customer.

    Parameters
    ----------
    customer:
        Customer to assess.
    sales:
        Sales in the snapshot. Accepted for interface symmetry with the
        other per-customer scorers; the current model reads sales activity
        from the customer's own rollups.
    remarks:
        All remarks in the snapshot; only the customer's count is used.
    as_of:
        Reference date used to derive ``last_order_date``.

    Examples
    --------
    >>> from crm_analytics.foundation.records import Customer
    >>> c = Customer("C1", "Acme", "Silver", days_since_last_order=100)
    >>> risk = calculate_churn_risk(c, [], [])
    >>> risk.score, risk.level.value
    (50, 'Medium')
    """
    remark_count = sum(1 for r in remarks if r.customer_id == customer.customer_id)
    return _assess(customer, remark_count, as_of)


def _assess_chunk(
    customers: list[Customer], remark_counts: Counter, as_of: Optional[date]
) -> list[ChurnRisk]:
    return [_assess(c, remark_counts.get(c.customer_id, 0), as_of) for c in customers]


def analyze_churn_risks(
    customers: Sequence[Customer],
    sales: Sequence[Sale],
    remarks: Sequence[Remark],
    as_of: Optional[date] = None,
    parallel: bool = True,
    parallel_threshold: int = DEFAULT_PARALLEL_THRESHOLD,
    n_workers: Optional[int] = None,
    cache: Optional[SnapshotCache] = None,
) -> list[ChurnRisk]:
    """Score every customer and sort by risk, highest first.

    Ties keep their input order. Remarks are counted once per customer up
    front; large customer lists can be scored in a process pool (see
    :func:`crm_analytics.foundation.parallel.map_in_chunks`).

    ``sales`` is accepted for the same reason as in
    :func:`calculate_churn_risk` and is never sent to pool workers. With a
    ``cache``, results are keyed on customer and remark content plus
    ``as_of``.
    """
    if cache is not None:
        return cache.get_or_compute(
            "churn",
            snapshot_fingerprint(customers, remarks),
            lambda: analyze_churn_risks(
                customers, sales, remarks, as_of, parallel, parallel_threshold, n_workers
            ),
            as_of,
        )

    if not customers:
        return []

    remark_counts = Counter(r.customer_id for r in remarks)
    risks = map_in_chunks(
        _assess_chunk,
        customers,
        remark_counts,
        as_of,
        parallel=parallel,
        parallel_threshold=parallel_threshold,
        n_workers=n_workers,
    )
    risks.sort(key=lambda r: r.score, reverse=True)

    high = sum(1 for r in risks if r.level is RiskLevel.HIGH)
    logger.info(f"Scored churn risk for {len(risks)} customers ({high} high risk)")
    return risks
