"""Pandas DataFrame adapters for the CRM analytics engine."""

from .records import (
    dataframe_to_customers,
    dataframe_to_remarks,
    dataframe_to_sales,
)
from .results import (
    churn_risks_to_dataframe,
    cohorts_to_dataframe,
    opportunities_to_dataframe,
    rfm_scores_to_dataframe,
    segments_to_dataframe,
)

__all__ = [
    # Record adapters
    "dataframe_to_customers",
    "dataframe_to_remarks",
    "dataframe_to_sales",
    # Result adapters
    "churn_risks_to_dataframe",
    "cohorts_to_dataframe",
    "opportunities_to_dataframe",
    "rfm_scores_to_dataframe",
    "segments_to_dataframe",
]
