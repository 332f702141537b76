"""Pandas DataFrame adapters for analysis results."""

from typing import Sequence

import pandas as pd  # type: ignore

from crm_analytics.analyses.churn import ChurnRisk
from crm_analytics.analyses.opportunities import Opportunity
from crm_analytics.analyses.segmentation import Segment
from crm_analytics.foundation.cohorts import COHORT_WINDOW_MONTHS, CohortRow
from crm_analytics.foundation.rfm import RFMScore

RFM_COLUMNS = ["customer_id", "recency", "frequency", "monetary", "rfm_score", "order_count", "total_spend"]
SEGMENT_COLUMNS = ["customer_id", "segment_id", "segment", "priority"]
CHURN_COLUMNS = ["customer_id", "customer_name", "score", "level", "factors", "days_since_last_order", "outstanding_balance"]
OPPORTUNITY_COLUMNS = ["opportunity_id", "customer_id", "customer_name", "type", "potential_revenue", "difficulty", "title", "action"]


def rfm_scores_to_dataframe(scores: Sequence[RFMScore]) -> pd.DataFrame:
    """Convert RFM scores to a DataFrame, one row per customer."""
    rows = [
        {
            "customer_id": s.customer_id,
            "recency": s.recency,
            "frequency": s.frequency,
            "monetary": s.monetary,
            "rfm_score": s.rfm_score,
            "order_count": s.order_count,
            "total_spend": s.total_spend,
        }
        for s in scores
    ]
    return pd.DataFrame(rows, columns=RFM_COLUMNS)


def segments_to_dataframe(segments: Sequence[Segment]) -> pd.DataFrame:
    """Flatten segments into one row per customer membership.

    Since segments partition the customer set, ``customer_id`` is unique in
    the result.
    """
    rows = [
        {
            "customer_id": customer.customer_id,
            "segment_id": segment.segment_id,
            "segment": segment.name,
            "priority": segment.priority,
        }
        for segment in segments
        for customer in segment.customers
    ]
    return pd.DataFrame(rows, columns=SEGMENT_COLUMNS)


def churn_risks_to_dataframe(risks: Sequence[ChurnRisk]) -> pd.DataFrame:
    """Convert churn risks to a DataFrame; ``factors`` is joined with ``"; "``."""
    rows = [
        {
            "customer_id": r.customer_id,
            "customer_name": r.customer_name,
            "score": r.score,
            "level": r.level.value,
            "factors": "; ".join(r.factors),
            "days_since_last_order": r.days_since_last_order,
            "outstanding_balance": r.outstanding_balance,
        }
        for r in risks
    ]
    return pd.DataFrame(rows, columns=CHURN_COLUMNS)


def opportunities_to_dataframe(opportunities: Sequence[Opportunity]) -> pd.DataFrame:
    rows = [
        {
            "opportunity_id": o.opportunity_id,
            "customer_id": o.customer_id,
            "customer_name": o.customer_name,
            "type": o.type.value,
            "potential_revenue": o.potential_revenue,
            "difficulty": o.difficulty.value,
            "title": o.title,
            "action": o.action,
        }
        for o in opportunities
    ]
    return pd.DataFrame(rows, columns=OPPORTUNITY_COLUMNS)


def cohorts_to_dataframe(rows: Sequence[CohortRow], metric: str = "retention") -> pd.DataFrame:
    """Pivot cohort rows into a heatmap-shaped DataFrame.

    Args:
        rows: Cohort rows as returned by ``build_cohort_matrix``
        metric: ``"retention"`` (percent active) or ``"revenue"`` (ARPU)

    Returns:
        DataFrame indexed by cohort month (newest first) with a ``size``
        column followed by month-offset columns ``0`` through ``11``
    """
    if metric not in ("retention", "revenue"):
        raise ValueError(f"metric must be 'retention' or 'revenue', got {metric!r}")

    offsets = list(range(COHORT_WINDOW_MONTHS))
    if not rows:
        df = pd.DataFrame(columns=["size", *offsets])
        df.index.name = "cohort_month"
        return df

    data = {
        row.cohort_month: [row.size, *getattr(row, metric)] for row in rows
    }
    df = pd.DataFrame.from_dict(data, orient="index", columns=["size", *offsets])
    df.index.name = "cohort_month"
    return df
