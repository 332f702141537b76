"""RFM (Recency-Frequency-Monetary) scoring.

Each customer receives three integer scores between 1 and 5:

- Recency: derived from ``days_since_last_order`` (fewer days = higher score)
- Frequency: number of sale records on file for the customer
- Monetary: total amount across those sale records

Scores use fixed brackets rather than quantiles so that a customer's score
does not depend on who else is in the snapshot. Every lower bound is
inclusive: a customer with exactly 10 orders scores F=4.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Optional, Sequence

from crm_analytics.foundation.parallel import DEFAULT_PARALLEL_THRESHOLD, map_in_chunks
from crm_analytics.foundation.records import Customer, Sale

logger = logging.getLogger(__name__)

# (exclusive lower bound on days, score); checked top-down
RECENCY_BRACKETS: tuple[tuple[int, int], ...] = ((180, 1), (120, 2), (60, 3), (30, 4))
# (inclusive lower bound on order count, score)
FREQUENCY_BRACKETS: tuple[tuple[int, int], ...] = ((20, 5), (10, 4), (5, 3), (2, 2))
# (inclusive lower bound on total spend, score)
MONETARY_BRACKETS: tuple[tuple[float, int], ...] = (
    (500_000, 5),
    (200_000, 4),
    (100_000, 3),
    (50_000, 2),
)


@dataclass(frozen=True)
class RFMScore:
    """RFM scores for a single customer.

    Attributes
    ----------
    customer_id:
        Unique customer identifier
    recency:
        Recency score (1-5, where 5 = ordered within the last 30 days)
    frequency:
        Frequency score (1-5, where 5 = 20 or more orders)
    monetary:
        Monetary score (1-5, where 5 = 500,000 or more in total spend)
    order_count:
        Raw number of sale records behind the frequency score
    total_spend:
        Raw sum of sale amounts behind the monetary score
    """

    customer_id: str
    recency: int
    frequency: int
    monetary: int
    order_count: int = 0
    total_spend: float = 0.0

    def __post_init__(self) -> None:
        """Validate RFM scores."""
        for score_name, score_value in [
            ("recency", self.recency),
            ("frequency", self.frequency),
            ("monetary", self.monetary),
        ]:
            if not 1 <= score_value <= 5:
                raise ValueError(
                    f"{score_name} must be between 1 and 5: {score_value} (customer_id={self.customer_id})"
                )

    @property
    def rfm_score(self) -> str:
        """Combined score string, e.g. ``"545"``."""
        return f"{self.recency}{self.frequency}{self.monetary}"

    def as_dict(self) -> dict:
        return {
            "customerId": self.customer_id,
            "recency": self.recency,
            "frequency": self.frequency,
            "monetary": self.monetary,
            "rfmScore": self.rfm_score,
            "orderCount": self.order_count,
            "totalSpend": self.total_spend,
        }


def score_recency(days_since_last_order: int) -> int:
    """Score recency: >180 days -> 1, >120 -> 2, >60 -> 3, >30 -> 4, else 5.

    >>> score_recency(30), score_recency(31), score_recency(181)
    (5, 4, 1)
    """
    for bound, score in RECENCY_BRACKETS:
        if days_since_last_order > bound:
            return score
    return 5


def score_frequency(order_count: int) -> int:
    """Score frequency: >=20 -> 5, >=10 -> 4, >=5 -> 3, >=2 -> 2, else 1."""
    for bound, score in FREQUENCY_BRACKETS:
        if order_count >= bound:
            return score
    return 1


def score_monetary(total_spend: float) -> int:
    """Score monetary value: >=500k -> 5, >=200k -> 4, >=100k -> 3, >=50k -> 2, else 1."""
    for bound, score in MONETARY_BRACKETS:
        if total_spend >= bound:
            return score
    return 1


def _score(customer: Customer, order_count: int, total_spend: float) -> RFMScore:
    return RFMScore(
        customer_id=customer.customer_id,
        recency=score_recency(customer.days_since_last_order),
        frequency=score_frequency(order_count),
        monetary=score_monetary(total_spend),
        order_count=order_count,
        total_spend=total_spend,
    )


def calculate_rfm_score(customer: Customer, sales: Sequence[Sale]) -> RFMScore:
    """Score one customer against the full sales list.

    Parameters
    ----------
    customer:
        The customer to score.
    sales:
        All sales in the snapshot; only those whose ``customer_id`` matches
        are counted.

    Examples
    --------
    >>> from datetime import datetime
    >>> from crm_analytics.foundation.records import Customer, Sale
    >>> c = Customer("C1", "Acme", "Silver", days_since_last_order=10)
    >>> sales = [Sale("S1", "C1", 60_000.0, datetime(2024, 1, 5)),
    ...          Sale("S2", "C1", 45_000.0, datetime(2024, 2, 5))]
    >>> calculate_rfm_score(c, sales).rfm_score
    '523'
    """
    order_count = 0
    total_spend = 0.0
    for sale in sales:
        if sale.customer_id == customer.customer_id:
            order_count += 1
            total_spend += sale.amount
    return _score(customer, order_count, total_spend)


def group_sales_by_customer(sales: Sequence[Sale]) -> dict[str, tuple[int, float]]:
    """Return ``customer_id -> (order_count, total_spend)`` in a single pass."""
    counts: dict[str, int] = defaultdict(int)
    totals: dict[str, float] = defaultdict(float)
    for sale in sales:
        counts[sale.customer_id] += 1
        totals[sale.customer_id] += sale.amount
    return {customer_id: (counts[customer_id], totals[customer_id]) for customer_id in counts}


def _score_chunk(
    customers: Sequence[Customer], sales_by_customer: dict[str, tuple[int, float]]
) -> list[RFMScore]:
    """Score a chunk of customers. Runs inside pool workers."""
    scores: list[RFMScore] = []
    for customer in customers:
        order_count, total_spend = sales_by_customer.get(customer.customer_id, (0, 0.0))
        scores.append(_score(customer, order_count, total_spend))
    return scores


def calculate_rfm_scores(
    customers: Sequence[Customer],
    sales: Sequence[Sale],
    parallel: bool = True,
    parallel_threshold: int = DEFAULT_PARALLEL_THRESHOLD,
    n_workers: Optional[int] = None,
) -> list[RFMScore]:
    """Score every customer in the snapshot.

    Sales are grouped once up front, so this is linear in
    ``len(customers) + len(sales)`` rather than their product.

    **Parallel Processing**: when ``parallel`` is set and the customer count
    reaches ``parallel_threshold``, customers are split into contiguous
    chunks scored by a ``multiprocessing.Pool``. Chunks are merged back in
    order, so the result is identical to the serial path.

    Parameters
    ----------
    customers:
        Customers to score.
    sales:
        All sales in the snapshot.
    parallel:
        Enable parallel processing for large customer sets (default: True).
    parallel_threshold:
        Customer count at which the pool is used (default: 100,000).
    n_workers:
        Worker processes; defaults to the CPU count.

    Returns
    -------
    list[RFMScore]
        One score per customer, in the same order as ``customers``.
    """
    if not customers:
        return []

    sales_by_customer = group_sales_by_customer(sales)
    unmatched = len(sales_by_customer.keys() - {c.customer_id for c in customers})
    if unmatched:
        logger.debug(f"Ignoring sales for {unmatched} customers not in the scored list")
    logger.debug(
        f"Scoring RFM for {len(customers)} customers from {len(sales)} sales"
    )
    return map_in_chunks(
        _score_chunk,
        customers,
        sales_by_customer,
        parallel=parallel,
        parallel_threshold=parallel_threshold,
        n_workers=n_workers,
    )
