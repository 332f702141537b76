"""Presentation formatting for CRM analytics results.

Converts analysis results into markdown sections used by the batch report.
"""

from __future__ import annotations

from crm_analytics.formatters.markdown_tables import (
    format_churn_table,
    format_cohort_table,
    format_forecast_table,
    format_health_summary,
    format_opportunities_table,
    format_segments_table,
)

__all__ = [
    "format_churn_table",
    "format_cohort_table",
    "format_forecast_table",
    "format_health_summary",
    "format_opportunities_table",
    "format_segments_table",
]
