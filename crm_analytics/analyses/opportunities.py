"""Revenue opportunity detection.

Three independent rules are evaluated for every customer; a customer may fire
any combination of them:

- **tier-upgrade**: the 6-month average sits within 20% below the next tier's
  threshold (Bronze/Dead -> Silver at 50k, Silver -> Gold at 100k,
  Gold -> Platinum at 200k).
- **reactivation**: a high-value account (average above 50k) with nothing
  booked this month and 46-89 days since the last order.
- **consistency**: this month's sales are positive but below half the
  6-month average.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Sequence

from crm_analytics.foundation.records import Customer, CustomerTier

logger = logging.getLogger(__name__)

# current tier -> (next tier, monthly average threshold)
TIER_UPGRADE_PATH: dict[CustomerTier, tuple[CustomerTier, float]] = {
    CustomerTier.DEAD: (CustomerTier.SILVER, 50_000),
    CustomerTier.BRONZE: (CustomerTier.SILVER, 50_000),
    CustomerTier.SILVER: (CustomerTier.GOLD, 100_000),
    CustomerTier.GOLD: (CustomerTier.PLATINUM, 200_000),
}
UPGRADE_PROXIMITY = 0.8

REACTIVATION_MIN_AVERAGE = 50_000
REACTIVATION_MIN_DAYS = 45  # exclusive
REACTIVATION_MAX_DAYS = 90  # exclusive

CONSISTENCY_RATIO = 0.5

CURRENCY_SYMBOL = "₹"


class OpportunityType(str, Enum):
    TIER_UPGRADE = "tier-upgrade"
    REACTIVATION = "reactivation"
    CONSISTENCY = "consistency"


class Difficulty(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


@dataclass(frozen=True)
class Opportunity:
    """A revenue opportunity for one customer.

    Attributes
    ----------
    opportunity_id:
        Stable identifier, e.g. ``"upgrade-C1"``.
    customer_id, customer_name:
        Customer the opportunity belongs to.
    type:
        Which rule fired.
    title, description, action:
        Display copy for the dashboard card.
    potential_revenue:
        Estimated monthly revenue gained by acting on it.
    difficulty:
        Effort estimate.
    """

    opportunity_id: str
    customer_id: str
    customer_name: str
    type: OpportunityType
    title: str
    description: str
    potential_revenue: float
    difficulty: Difficulty
    action: str

    def __post_init__(self) -> None:
        if self.potential_revenue < 0:
            raise ValueError(
                f"potential_revenue must be >= 0, got {self.potential_revenue} ({self.opportunity_id})"
            )

    def as_dict(self) -> dict:
        return {
            "id": self.opportunity_id,
            "customerId": self.customer_id,
            "customerName": self.customer_name,
            "type": self.type.value,
            "title": self.title,
            "description": self.description,
            "potentialRevenue": self.potential_revenue,
            "difficulty": self.difficulty.value,
            "action": self.action,
        }


def _thousands(amount: float) -> str:
    return f"{CURRENCY_SYMBOL}{amount / 1000:.1f}k"


def detect_customer_opportunities(customer: Customer) -> list[Opportunity]:
    """Evaluate the three opportunity rules for a single customer.

    Examples
    --------
    >>> from crm_analytics.foundation.records import Customer
    >>> c = Customer("C1", "Acme", "Silver", avg_6mo_sales=85_000.0)
    >>> [(o.type.value, o.potential_revenue) for o in detect_customer_opportunities(c)]
    [('tier-upgrade', 15000.0)]
    """
    found: list[Opportunity] = []
    avg_sales = customer.avg_6mo_sales

    upgrade = TIER_UPGRADE_PATH.get(customer.tier)
    if upgrade is not None:
        next_tier, threshold = upgrade
        if threshold * UPGRADE_PROXIMITY <= avg_sales < threshold:
            gap = threshold - avg_sales
            found.append(
                Opportunity(
                    opportunity_id=f"upgrade-{customer.customer_id}",
                    customer_id=customer.customer_id,
                    customer_name=customer.name,
                    type=OpportunityType.TIER_UPGRADE,
                    title=f"Upgrade to {next_tier.value}",
                    description=(
                        f"{customer.name} is only {_thousands(gap)} away from "
                        f"{next_tier.value} tier."
                    ),
                    potential_revenue=float(gap),
                    difficulty=Difficulty.LOW,
                    action="Pitch Volume Discount",
                )
            )

    if (
        avg_sales > REACTIVATION_MIN_AVERAGE
        and customer.sales_this_month == 0
        and REACTIVATION_MIN_DAYS < customer.days_since_last_order < REACTIVATION_MAX_DAYS
    ):
        found.append(
            Opportunity(
                opportunity_id=f"reactivate-{customer.customer_id}",
                customer_id=customer.customer_id,
                customer_name=customer.name,
                type=OpportunityType.REACTIVATION,
                title="Win-Back High Value",
                description=(
                    f"Reactivate {customer.name} to restore "
                    f"{_thousands(avg_sales)} monthly revenue."
                ),
                potential_revenue=float(avg_sales),
                difficulty=Difficulty.MEDIUM,
                action="Schedule Visit",
            )
        )

    if 0 < customer.sales_this_month < avg_sales * CONSISTENCY_RATIO:
        found.append(
            Opportunity(
                opportunity_id=f"consistency-{customer.customer_id}",
                customer_id=customer.customer_id,
                customer_name=customer.name,
                type=OpportunityType.CONSISTENCY,
                title="Boost Order Volume",
                description=(
                    f"{customer.name} is ordering 50% below their average this month."
                ),
                potential_revenue=float(avg_sales - customer.sales_this_month),
                difficulty=Difficulty.LOW,
                action="Check Stock",
            )
        )

    return found


def analyze_revenue_opportunities(customers: Sequence[Customer]) -> list[Opportunity]:
    """Collect opportunities for every customer, largest potential first.

    Opportunities with equal potential keep customer order, then rule order.
    """
    opportunities: list[Opportunity] = []
    for customer in customers:
        opportunities.extend(detect_customer_opportunities(customer))
    opportunities.sort(key=lambda o: o.potential_revenue, reverse=True)
    logger.info(
        f"Found {len(opportunities)} revenue opportunities across {len(customers)} customers"
    )
    return opportunities
