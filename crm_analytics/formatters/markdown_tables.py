"""Markdown table formatters for analysis results.

Formats analysis results as markdown sections suitable for the batch report
and any markdown renderer.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from crm_analytics.analyses.churn import ChurnRisk
    from crm_analytics.analyses.forecast import ForecastResult
    from crm_analytics.analyses.health import HealthSummary
    from crm_analytics.analyses.opportunities import Opportunity
    from crm_analytics.analyses.segmentation import Segment
    from crm_analytics.foundation.cohorts import CohortRow


def _money(amount: float) -> str:
    return f"{amount:,.2f}"


def format_health_summary(summary: HealthSummary) -> str:
    """Format the executive summary as a metrics table plus bullet lists."""
    table = f"""## Executive Summary

| Metric | Value |
|--------|-------|
| Health Score | {summary.score} / 100 |
| Grade | {summary.grade} |
| Revenue Growth (MoM) | {summary.revenue_growth:.1f}% |
| Active Customer Rate | {summary.retention_rate:.1f}% |
| Outstanding Ratio | {summary.outstanding_ratio:.2f} |
| At-Risk Customers | {summary.at_risk_customers:,} |
| Gold Customers | {summary.gold_customers:,} |
"""
    for heading, items in (
        ("Wins", summary.wins),
        ("Concerns", summary.concerns),
        ("Recommendations", summary.recommendations),
    ):
        table += f"\n**{heading}**\n\n"
        table += "".join(f"- {item}\n" for item in items)
    return table


def format_segments_table(segments: Sequence[Segment]) -> str:
    """Format RFM segments in priority order.

    Examples
    --------
    >>> from crm_analytics.analyses.segmentation import segment_customers
    >>> from crm_analytics.foundation.records import Customer
    >>> segs = segment_customers([Customer("C1", "Acme", "Gold", 1000.0)], [])
    >>> "| Lost | 1 | 1,000.00 |" in format_segments_table(segs)
    True
    """
    table = "## Customer Segments (RFM)\n\n"
    if not segments:
        return table + "_No customers to segment._\n"
    table += "| Segment | Customers | Revenue This Month |\n"
    table += "|---------|-----------|--------------------|\n"
    for segment in segments:
        table += (
            f"| {segment.name} | {len(segment.customers):,} | "
            f"{_money(segment.total_revenue)} |\n"
        )
    return table


def format_churn_table(risks: Sequence[ChurnRisk], limit: int = 10) -> str:
    """Format the highest churn risks, with a count per level."""
    table = "## Churn Risk\n\n"
    counts = {"High": 0, "Medium": 0, "Low": 0}
    for risk in risks:
        counts[risk.level.value] += 1
    table += "| Level | Customers |\n|-------|-----------|\n"
    for level, count in counts.items():
        table += f"| {level} | {count:,} |\n"

    top = [r for r in risks if r.score > 0][:limit]
    if top:
        table += "\n| Customer | Score | Level | Factors |\n"
        table += "|----------|-------|-------|---------|\n"
        for risk in top:
            factors = "; ".join(risk.factors) or "-"
            table += (
                f"| {risk.customer_name} | {risk.score} | {risk.level.value} | {factors} |\n"
            )
    return table


def format_opportunities_table(opportunities: Sequence[Opportunity], limit: int = 10) -> str:
    total = sum(o.potential_revenue for o in opportunities)
    table = f"## Revenue Opportunities\n\nTotal potential: {_money(total)}\n\n"
    if not opportunities:
        return table + "_No opportunities detected._\n"
    table += "| Customer | Type | Potential | Difficulty | Action |\n"
    table += "|----------|------|-----------|------------|--------|\n"
    for opp in opportunities[:limit]:
        table += (
            f"| {opp.customer_name} | {opp.type.value} | {_money(opp.potential_revenue)} | "
            f"{opp.difficulty.value} | {opp.action} |\n"
        )
    return table


def format_cohort_table(rows: Sequence[CohortRow], metric: str = "retention") -> str:
    """Format the cohort matrix as a heatmap-style table.

    ``metric`` selects retention percentages or ARPU values.
    """
    if metric not in ("retention", "revenue"):
        raise ValueError(f"metric must be 'retention' or 'revenue', got {metric!r}")
    title = "Retention %" if metric == "retention" else "Revenue per Customer"
    table = f"## Cohort Analysis ({title})\n\n"
    if not rows:
        return table + "_No cohorts available._\n"

    offsets = range(len(rows[0].retention))
    table += "| Cohort | Size | " + " | ".join(f"M{i}" for i in offsets) + " |\n"
    table += "|--------|------|" + "|".join("----" for _ in offsets) + "|\n"
    for row in rows:
        values = row.retention if metric == "retention" else row.revenue
        cells = " | ".join(f"{v:.0f}" if metric == "retention" else f"{v:,.0f}" for v in values)
        table += f"| {row.cohort_month} | {row.size:,} | {cells} |\n"
    return table


def format_forecast_table(forecast: ForecastResult) -> str:
    table = f"""## Sales Forecast

Trend: **{forecast.trend}** ({forecast.growth_rate:+.1f}% vs trailing 3 months)

| Horizon | Predicted | Range | Confidence |
|---------|-----------|-------|------------|
"""
    for label, horizon in (
        ("Next 30 days", forecast.next_30_days),
        ("Next 60 days", forecast.next_60_days),
        ("Next 90 days", forecast.next_90_days),
    ):
        low, high = horizon.range
        table += (
            f"| {label} | {_money(horizon.predicted)} | "
            f"{_money(low)} - {_money(high)} | {horizon.confidence:.0%} |\n"
        )
    return table
