"""RFM segmentation.

Maps each customer's (R, F, M) triple to one of eight named segments using an
ordered rule table. Rules are evaluated top-down and the first match wins, so
a customer who satisfies both the Champions and Loyal predicates is always a
Champion. The final rule matches everything and guarantees the segments
partition the customer set.

Quick Start
-----------
>>> from crm_analytics.analyses.segmentation import classify_segment
>>> classify_segment(5, 4, 4).name
'Champions'
>>> classify_segment(2, 2, 1).name
'About to Sleep'
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Sequence

from crm_analytics.cache import SnapshotCache, snapshot_fingerprint
from crm_analytics.foundation.parallel import DEFAULT_PARALLEL_THRESHOLD
from crm_analytics.foundation.records import Customer, Sale
from crm_analytics.foundation.rfm import calculate_rfm_scores

logger = logging.getLogger(__name__)


class SegmentType(Enum):
    """Named RFM segments as (id, display name, description, priority)."""

    CHAMPIONS = ("champions", "Champions", "Best customers - High value, frequent buyers", 1)
    LOYAL = ("loyal", "Loyal", "Regular, consistent buyers", 2)
    POTENTIAL_LOYALIST = (
        "potentialLoyalist",
        "Potential Loyalist",
        "Recent customers with potential",
        3,
    )
    AT_RISK = ("atRisk", "At Risk", "Declining engagement - Need attention", 4)
    NEEDS_ATTENTION = (
        "needsAttention",
        "Needs Attention",
        "Below average - Require nurturing",
        5,
    )
    ABOUT_TO_SLEEP = ("aboutToSleep", "About to Sleep", "Losing interest - Act now", 6)
    HIBERNATING = ("hibernating", "Hibernating", "Inactive - Need reactivation", 7)
    LOST = ("lost", "Lost", "Require win-back strategy", 8)

    def __init__(self, segment_id: str, display_name: str, description: str, priority: int):
        self.segment_id = segment_id
        self.display_name = display_name
        self.description = description
        self.priority = priority


RFMPredicate = Callable[[int, int, int], bool]

# Order matters: first match wins.
SEGMENT_RULES: tuple[tuple[RFMPredicate, SegmentType], ...] = (
    (lambda r, f, m: r >= 4 and f >= 4 and m >= 4, SegmentType.CHAMPIONS),
    (lambda r, f, m: r >= 3 and f >= 3 and m >= 3, SegmentType.LOYAL),
    (lambda r, f, m: r >= 4 and f <= 2 and m >= 3, SegmentType.POTENTIAL_LOYALIST),
    (lambda r, f, m: r == 2 and f >= 3 and m >= 3, SegmentType.AT_RISK),
    (lambda r, f, m: r == 2 and f == 2 and m >= 2, SegmentType.NEEDS_ATTENTION),
    (lambda r, f, m: r == 2 and f <= 2 and m <= 2, SegmentType.ABOUT_TO_SLEEP),
    (lambda r, f, m: r == 1 and f >= 2, SegmentType.HIBERNATING),
    (lambda r, f, m: True, SegmentType.LOST),
)


def classify_segment(recency: int, frequency: int, monetary: int) -> SegmentType:
    """Return the first segment whose rule matches the RFM triple."""
    for predicate, segment in SEGMENT_RULES:
        if predicate(recency, frequency, monetary):
            return segment
    raise AssertionError("segment rule table has no catch-all")  # pragma: no cover


@dataclass(frozen=True)
class Segment:
    """A non-empty RFM segment and its members.

    Attributes
    ----------
    segment:
        Which of the eight segments this is.
    customers:
        Members, in input order.
    total_revenue:
        Sum of members' ``sales_this_month``.
    """

    segment: SegmentType
    customers: tuple[Customer, ...]
    total_revenue: float

    def __post_init__(self) -> None:
        if not self.customers:
            raise ValueError(f"Segment {self.segment.display_name} has no customers")
        if self.total_revenue < 0:
            raise ValueError(f"total_revenue must be >= 0, got {self.total_revenue}")

    @property
    def segment_id(self) -> str:
        return self.segment.segment_id

    @property
    def name(self) -> str:
        return self.segment.display_name

    @property
    def priority(self) -> int:
        return self.segment.priority

    def as_dict(self) -> dict:
        return {
            "id": self.segment.segment_id,
            "name": self.segment.display_name,
            "description": self.segment.description,
            "priority": self.segment.priority,
            "customers": [c.customer_id for c in self.customers],
            "totalRevenue": self.total_revenue,
        }


def segment_customers(
    customers: Sequence[Customer],
    sales: Sequence[Sale],
    parallel: bool = True,
    parallel_threshold: int = DEFAULT_PARALLEL_THRESHOLD,
    n_workers: Optional[int] = None,
    cache: Optional[SnapshotCache] = None,
) -> list[Segment]:
    """Partition customers into RFM segments.

    Parameters
    ----------
    customers:
        Customers to segment.
    sales:
        All sales in the snapshot, used for the frequency and monetary
        scores.
    parallel, parallel_threshold, n_workers:
        Passed through to :func:`calculate_rfm_scores`.
    cache:
        Optional result cache. The key covers customer and sale content,
        so a changed snapshot is always recomputed.

    Returns
    -------
    list[Segment]
        Non-empty segments in priority order (Champions first, Lost last).
        Every customer appears in exactly one segment.

    Examples
    --------
    >>> from crm_analytics.foundation.records import Customer
    >>> customers = [Customer("C1", "Acme", "Bronze", sales_this_month=500.0,
    ...                       days_since_last_order=200)]
    >>> [s.name for s in segment_customers(customers, [])]
    ['Lost']
    """
    if cache is not None:
        return cache.get_or_compute(
            "segments",
            snapshot_fingerprint(customers, sales),
            lambda: segment_customers(
                customers, sales, parallel, parallel_threshold, n_workers
            ),
        )

    scores = calculate_rfm_scores(
        customers,
        sales,
        parallel=parallel,
        parallel_threshold=parallel_threshold,
        n_workers=n_workers,
    )

    members: dict[SegmentType, list[Customer]] = {segment: [] for segment in SegmentType}
    for customer, score in zip(customers, scores):
        segment = classify_segment(score.recency, score.frequency, score.monetary)
        members[segment].append(customer)

    segments = [
        Segment(
            segment=segment,
            customers=tuple(group),
            total_revenue=sum(c.sales_this_month for c in group),
        )
        for segment, group in sorted(members.items(), key=lambda item: item[0].priority)
        if group
    ]
    logger.info(
        f"Segmented {len(customers)} customers into {len(segments)} non-empty segments"
    )
    return segments
