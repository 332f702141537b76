"""Foundational building blocks for the CRM analytics engine.

This package exposes the input record definitions, RFM scoring and
acquisition-month cohort utilities that the analyses build on.
"""

from .cohorts import CohortRow, acquisition_months, build_cohort_matrix, month_offset
from .records import (
    Customer,
    CustomerTier,
    RecordContract,
    Remark,
    Sale,
    Sentiment,
    Task,
    parse_timestamp,
)
from .rfm import (
    RFMScore,
    calculate_rfm_score,
    calculate_rfm_scores,
    score_frequency,
    score_monetary,
    score_recency,
)

__all__ = [
    "CohortRow",
    "acquisition_months",
    "build_cohort_matrix",
    "month_offset",
    "Customer",
    "CustomerTier",
    "RecordContract",
    "Remark",
    "Sale",
    "Sentiment",
    "Task",
    "parse_timestamp",
    "RFMScore",
    "calculate_rfm_score",
    "calculate_rfm_scores",
    "score_frequency",
    "score_monetary",
    "score_recency",
]
