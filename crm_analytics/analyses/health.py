"""Executive business-health summary.

Combines five indicators into a single 0-100 score and a letter-style grade,
together with short lists of wins, concerns and recommended actions for the
dashboard's summary card.

====================  ======  ===============================================
Indicator             Points  Brackets
====================  ======  ===============================================
Revenue growth        25      >20%: 25, >10%: 20, >0%: 15, >-10%: 10, else 5
Customer retention    25      >80%: 25, >60%: 20, >40%: 15, else 10
Outstanding ratio     20      <0.1: 20, <0.2: 15, <0.3: 10, else 5
Active customers      15      >100: 15, >50: 12, >20: 8, else 5
Gold customers        15      >20: 15, >10: 10, else 5
====================  ======  ===============================================
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional, Sequence

from crm_analytics.analyses.forecast import monthly_revenue
from crm_analytics.foundation.records import Customer, CustomerTier, Sale

logger = logging.getLogger(__name__)

GRADE_EXCELLENT_THRESHOLD = 80
GRADE_GOOD_THRESHOLD = 60
GRADE_FAIR_THRESHOLD = 40
AT_RISK_INACTIVE_DAYS = 60


def _bracket(value: float, brackets: Sequence[tuple[float, int]], default: int) -> int:
    """Points for the first ``(exclusive lower bound, points)`` exceeded."""
    for bound, points in brackets:
        if value > bound:
            return points
    return default


def _inverse_bracket(value: float, brackets: Sequence[tuple[float, int]], default: int) -> int:
    """Points for the first ``(exclusive upper bound, points)`` not reached."""
    for bound, points in brackets:
        if value < bound:
            return points
    return default


@dataclass(frozen=True)
class HealthSummary:
    """Executive summary of customer-base health.

    Attributes
    ----------
    score:
        Overall health score (0-100).
    grade:
        Excellent, Good, Fair or Needs Attention.
    revenue_growth:
        Month-over-month change in booked sales, in percent.
    retention_rate:
        Percentage of customers with sales this month.
    outstanding_ratio:
        Total outstanding balance over total sales this month.
    active_customers, at_risk_customers, gold_customers:
        Supporting counts.
    wins, concerns, recommendations:
        Display bullet points; never empty.
    """

    score: int
    grade: str
    revenue_growth: float
    retention_rate: float
    outstanding_ratio: float
    active_customers: int
    at_risk_customers: int
    gold_customers: int
    wins: tuple[str, ...] = field(default_factory=tuple)
    concerns: tuple[str, ...] = field(default_factory=tuple)
    recommendations: tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if not 0 <= self.score <= 100:
            raise ValueError(f"score must be between 0 and 100, got {self.score}")

    def as_dict(self) -> dict:
        return {
            "score": self.score,
            "grade": self.grade,
            "revenueGrowth": self.revenue_growth,
            "retentionRate": self.retention_rate,
            "outstandingRatio": self.outstanding_ratio,
            "activeCustomers": self.active_customers,
            "atRiskCustomers": self.at_risk_customers,
            "goldCustomers": self.gold_customers,
            "wins": list(self.wins),
            "concerns": list(self.concerns),
            "recommendations": list(self.recommendations),
        }


def _grade_for(score: int) -> str:
    if score >= GRADE_EXCELLENT_THRESHOLD:
        return "Excellent"
    if score >= GRADE_GOOD_THRESHOLD:
        return "Good"
    if score >= GRADE_FAIR_THRESHOLD:
        return "Fair"
    return "Needs Attention"


def assess_business_health(
    customers: Sequence[Customer],
    sales: Sequence[Sale],
    as_of: Optional[date] = None,
) -> HealthSummary:
    """Score overall business health for the executive summary.

    Parameters
    ----------
    customers:
        All customers in the snapshot.
    sales:
        All sales; only the current and previous calendar month (relative
        to ``as_of``) are used for revenue growth.
    as_of:
        Reference date, defaults to today.
    """
    if isinstance(as_of, datetime):
        as_of = as_of.date()
    last_month_sales, this_month_sales = monthly_revenue(sales, as_of=as_of, months=2)
    revenue_growth = (
        (this_month_sales - last_month_sales) / last_month_sales * 100
        if last_month_sales > 0
        else 0.0
    )

    total_customers = len(customers)
    active_customers = sum(1 for c in customers if c.sales_this_month > 0)
    retention_rate = active_customers / total_customers * 100 if total_customers else 0.0

    total_sales = sum(c.sales_this_month for c in customers)
    total_outstanding = sum(c.outstanding_balance for c in customers)
    outstanding_ratio = total_outstanding / total_sales if total_sales > 0 else 0.0

    at_risk = sum(1 for c in customers if c.days_since_last_order > AT_RISK_INACTIVE_DAYS)
    gold = sum(1 for c in customers if c.tier is CustomerTier.GOLD)

    score = (
        _bracket(revenue_growth, ((20, 25), (10, 20), (0, 15), (-10, 10)), 5)
        + _bracket(retention_rate, ((80, 25), (60, 20), (40, 15)), 10)
        + _inverse_bracket(outstanding_ratio, ((0.1, 20), (0.2, 15), (0.3, 10)), 5)
        + _bracket(active_customers, ((100, 15), (50, 12), (20, 8)), 5)
        + _bracket(gold, ((20, 15), (10, 10)), 5)
    )

    wins: list[str] = []
    if revenue_growth > 10:
        wins.append(f"Revenue up {revenue_growth:.1f}%")
    if gold > 0:
        wins.append(f"{gold} Gold tier customers")
    if retention_rate > 70:
        wins.append(f"{retention_rate:.0f}% customer retention")

    concerns: list[str] = []
    if at_risk > 5:
        concerns.append(f"{at_risk} customers at churn risk")
    if outstanding_ratio > 0.25:
        concerns.append(f"High outstanding ratio ({outstanding_ratio * 100:.0f}%)")
    if revenue_growth < 0:
        concerns.append(f"Revenue declined {abs(revenue_growth):.1f}%")

    recommendations: list[str] = []
    if at_risk > 0:
        recommendations.append("Contact at-risk customers immediately")
    if outstanding_ratio > 0.2:
        recommendations.append("Focus on collecting outstanding payments")
    if gold < 10:
        recommendations.append("Identify customers for tier upgrade")

    logger.debug(f"Business health score {score} from {total_customers} customers")
    return HealthSummary(
        score=score,
        grade=_grade_for(score),
        revenue_growth=revenue_growth,
        retention_rate=retention_rate,
        outstanding_ratio=outstanding_ratio,
        active_customers=active_customers,
        at_risk_customers=at_risk,
        gold_customers=gold,
        wins=tuple(wins) or ("Steady performance maintained",),
        concerns=tuple(concerns) or ("No major concerns",),
        recommendations=tuple(recommendations) or ("Continue current strategy",),
    )
