"""Acquisition-month cohorts and retention matrices.

Customers are grouped by the calendar month of their first sale. For every
cohort the engine tracks, over a fixed 12-month window starting at the
acquisition month, how many members bought again and how much they spent.

Quick Start
-----------
>>> from datetime import datetime
>>> from crm_analytics.foundation.records import Sale
>>> from crm_analytics.foundation.cohorts import build_cohort_matrix
>>>
>>> sales = [
...     Sale("S1", "C1", 100.0, datetime(2024, 1, 5)),
...     Sale("S2", "C2", 200.0, datetime(2024, 1, 20)),
...     Sale("S3", "C1", 300.0, datetime(2024, 3, 2)),
... ]
>>> rows = build_cohort_matrix(sales)
>>> rows[0].cohort_month, rows[0].size, rows[0].retention[:3]
('2024-01', 2, (100.0, 0.0, 50.0))
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Optional, Sequence

from crm_analytics.cache import SnapshotCache, snapshot_fingerprint
from crm_analytics.foundation.records import Sale

logger = logging.getLogger(__name__)

COHORT_WINDOW_MONTHS = 12  # offsets 0..11 are tracked
MAX_COHORTS = 12  # most recent cohorts emitted


def month_key(ts: datetime) -> str:
    """Return the ``YYYY-MM`` calendar month of a timestamp."""
    return f"{ts.year:04d}-{ts.month:02d}"


def month_offset(ts: datetime, cohort_month: str) -> int:
    """Number of calendar months between ``cohort_month`` and ``ts``.

    Day of month is ignored: any sale in the acquisition month is offset 0,
    any sale in the following month is offset 1, and so on.

    >>> month_offset(datetime(2024, 3, 31), "2024-01")
    2
    >>> month_offset(datetime(2023, 12, 1), "2024-01")
    -1
    """
    year, month = (int(part) for part in cohort_month.split("-"))
    return (ts.year - year) * 12 + (ts.month - month)


def acquisition_months(sales: Iterable[Sale]) -> dict[str, str]:
    """Map each customer to the month of their chronologically earliest sale.

    Customers without sales do not appear in the result.
    """
    first_sale: dict[str, datetime] = {}
    for sale in sales:
        current = first_sale.get(sale.customer_id)
        if current is None or sale.date < current:
            first_sale[sale.customer_id] = sale.date
    return {customer_id: month_key(ts) for customer_id, ts in first_sale.items()}


@dataclass(frozen=True)
class CohortRow:
    """Retention and ARPU for one acquisition cohort.

    Attributes
    ----------
    cohort_month:
        Acquisition month in ``YYYY-MM`` form.
    size:
        Distinct customers acquired in that month.
    retention:
        Percentage of the cohort active at each month offset 0..11.
        Offset 0 is the acquisition month.
    revenue:
        Sales at each offset divided by cohort size (ARPU).
    """

    cohort_month: str
    size: int
    retention: tuple[float, ...] = field(default_factory=tuple)
    revenue: tuple[float, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        """Validate cohort row constraints."""
        if self.size <= 0:
            raise ValueError(f"size must be > 0, got {self.size} ({self.cohort_month})")
        if len(self.retention) != COHORT_WINDOW_MONTHS:
            raise ValueError(
                f"retention must have {COHORT_WINDOW_MONTHS} entries, got {len(self.retention)}"
            )
        if len(self.revenue) != COHORT_WINDOW_MONTHS:
            raise ValueError(
                f"revenue must have {COHORT_WINDOW_MONTHS} entries, got {len(self.revenue)}"
            )
        for pct in self.retention:
            if not 0 <= pct <= 100:
                raise ValueError(
                    f"retention values must be between 0 and 100, got {pct} ({self.cohort_month})"
                )

    def as_dict(self) -> dict:
        return {
            "cohortMonth": self.cohort_month,
            "size": self.size,
            "retention": list(self.retention),
            "revenue": list(self.revenue),
        }


@dataclass
class _CohortActivity:
    members: set[str] = field(default_factory=set)
    active: dict[int, set[str]] = field(default_factory=lambda: defaultdict(set))
    revenue: dict[int, float] = field(default_factory=lambda: defaultdict(float))


def build_cohort_matrix(
    sales: Sequence[Sale],
    customer_ids: Optional[Iterable[str]] = None,
    max_cohorts: int = MAX_COHORTS,
    cache: Optional[SnapshotCache] = None,
) -> list[CohortRow]:
    """Build the cohort retention/ARPU matrix.

    Parameters
    ----------
    sales:
        All sales in the snapshot.
    customer_ids:
        Optional set of customers to restrict the analysis to. Sales for
        other customers are ignored.
    max_cohorts:
        Number of most recent cohorts to return (default: 12).
    cache:
        Optional result cache keyed on sale content, the customer filter
        and ``max_cohorts``.

    Returns
    -------
    list[CohortRow]
        Most recent cohorts first. Every row has ``retention[0] == 100``
        because each member's acquisition sale falls at offset 0.

    Notes
    -----
    Sales are processed in chronological order; the order of equal
    timestamps does not affect the result since only sets and sums are
    accumulated.
    """
    if cache is not None:
        if customer_ids is not None:
            customer_ids = sorted(set(customer_ids))
        return cache.get_or_compute(
            "cohorts",
            snapshot_fingerprint(sales),
            lambda: build_cohort_matrix(sales, customer_ids, max_cohorts),
            customer_ids,
            max_cohorts,
        )

    if customer_ids is not None:
        allowed = set(customer_ids)
        sales = [s for s in sales if s.customer_id in allowed]

    if not sales:
        return []

    acquisitions = acquisition_months(sales)
    cohorts: dict[str, _CohortActivity] = defaultdict(_CohortActivity)
    discarded = 0

    for sale in sorted(sales, key=lambda s: s.date):
        cohort_month = acquisitions[sale.customer_id]
        cohort = cohorts[cohort_month]
        cohort.members.add(sale.customer_id)

        offset = month_offset(sale.date, cohort_month)
        if not 0 <= offset < COHORT_WINDOW_MONTHS:
            discarded += 1
            continue
        cohort.active[offset].add(sale.customer_id)
        cohort.revenue[offset] += sale.amount

    if discarded:
        logger.debug(
            f"{discarded} sales fell outside the {COHORT_WINDOW_MONTHS}-month cohort window"
        )

    rows: list[CohortRow] = []
    for cohort_month in sorted(cohorts, reverse=True)[:max_cohorts]:
        cohort = cohorts[cohort_month]
        size = len(cohort.members)
        retention = tuple(
            len(cohort.active[i]) / size * 100 if i in cohort.active else 0.0
            for i in range(COHORT_WINDOW_MONTHS)
        )
        revenue = tuple(
            cohort.revenue[i] / size if i in cohort.revenue else 0.0
            for i in range(COHORT_WINDOW_MONTHS)
        )
        rows.append(
            CohortRow(
                cohort_month=cohort_month,
                size=size,
                retention=retention,
                revenue=revenue,
            )
        )

    logger.debug(f"Built {len(rows)} cohort rows from {len(cohorts)} cohorts")
    return rows
