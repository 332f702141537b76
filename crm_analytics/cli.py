"""Command line entry points for the CRM analytics engine.

Both commands read a JSON snapshot exported from the datastore::

    {
      "customers": [{"id": "C1", "tier": "Gold", "sales_this_month": ..., ...}],
      "sales":     [{"id": "S1", "customer_id": "C1", "amount": ..., "date": "2024-01-05"}],
      "remarks":   [{"customer_id": "C1", "timestamp": "...", "sentiment": "Positive"}],
      "tasks":     [{"id": "T1", "customer_id": "C1", "due_date": "...", "completed": false}]
    }

``remarks`` and ``tasks`` are optional.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Any, Optional

from crm_analytics.analyses.alerts import generate_smart_alerts
from crm_analytics.analyses.churn import analyze_churn_risks
from crm_analytics.analyses.forecast import generate_sales_forecast
from crm_analytics.analyses.health import assess_business_health
from crm_analytics.analyses.kpis import calculate_kpis
from crm_analytics.analyses.opportunities import analyze_revenue_opportunities
from crm_analytics.analyses.segmentation import segment_customers
from crm_analytics.cache import SnapshotCache
from crm_analytics.formatters import (
    format_churn_table,
    format_cohort_table,
    format_forecast_table,
    format_health_summary,
    format_opportunities_table,
    format_segments_table,
)
from crm_analytics.foundation.cohorts import build_cohort_matrix
from crm_analytics.foundation.records import (
    Customer,
    RecordContract,
    Remark,
    Sale,
    Task,
)
from crm_analytics.foundation.rfm import calculate_rfm_scores

logger = logging.getLogger(__name__)


MAX_INPUT_BYTES = 25 * 1024 * 1024  # 25 MiB cap to avoid accidental OOM


@dataclass(frozen=True)
class Snapshot:
    customers: list[Customer]
    sales: list[Sale]
    remarks: list[Remark]
    tasks: list[Task]


def _load_snapshot(path: Path) -> Snapshot:
    resolved = path.resolve()
    size = resolved.stat().st_size
    if size > MAX_INPUT_BYTES:
        raise ValueError(
            f"Input file {resolved} is {size} bytes; exceeds limit of {MAX_INPUT_BYTES} bytes"
        )
    with path.open("r", encoding="utf-8") as fh:
        payload = json.load(fh)
    if not isinstance(payload, dict):
        raise ValueError("Expected a JSON object with customers/sales/remarks/tasks lists")

    contract = RecordContract()
    return Snapshot(
        customers=contract.load_customers(payload.get("customers") or []),
        sales=contract.load_sales(payload.get("sales") or []),
        remarks=contract.load_remarks(payload.get("remarks") or []),
        tasks=contract.load_tasks(payload.get("tasks") or []),
    )


def _parse_as_of(value: Optional[str]) -> date:
    if value is None:
        return date.today()
    return date.fromisoformat(value)


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("input", type=Path, help="Path to JSON snapshot file")
    parser.add_argument(
        "--as-of",
        type=str,
        help="Reference date (ISO format: YYYY-MM-DD). Defaults to today.",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity (default: INFO)",
    )


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _write_output(text: str, output: Optional[Path]) -> None:
    if output is None:  # stdout fallback enables piping in shell usage.
        sys.stdout.write(text)
        if not text.endswith("\n"):
            print()
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    with output.open("w", encoding="utf-8") as fh:
        fh.write(text)


def build_payload(
    snapshot: Snapshot, as_of: date, cache: Optional[SnapshotCache] = None
) -> dict[str, Any]:
    """Run every analysis over a snapshot and return JSON-serialisable data.

    Callers rendering the same snapshot repeatedly can pass a shared
    ``cache``; segments, churn risks, cohorts and the forecast are then
    only recomputed when the snapshot content or ``as_of`` changes.
    """
    customers, sales = snapshot.customers, snapshot.sales
    return {
        "asOf": as_of.isoformat(),
        "kpis": calculate_kpis(customers, sales).as_dict(),
        "health": assess_business_health(customers, sales, as_of=as_of).as_dict(),
        "rfmScores": [s.as_dict() for s in calculate_rfm_scores(customers, sales)],
        "segments": [s.as_dict() for s in segment_customers(customers, sales, cache=cache)],
        "churnRisks": [
            r.as_dict()
            for r in analyze_churn_risks(
                customers, sales, snapshot.remarks, as_of=as_of, cache=cache
            )
        ],
        "opportunities": [o.as_dict() for o in analyze_revenue_opportunities(customers)],
        "cohorts": [row.as_dict() for row in build_cohort_matrix(sales, cache=cache)],
        "forecast": generate_sales_forecast(sales, as_of=as_of, cache=cache).as_dict(),
        "alerts": [
            a.as_dict()
            for a in generate_smart_alerts(
                customers,
                snapshot.tasks,
                as_of=datetime.combine(as_of, datetime.min.time()),
            )
        ],
    }


def export_results_cli(argv: list[str] | None = None) -> int:
    """Export every derived structure for a snapshot as JSON."""

    parser = argparse.ArgumentParser(
        description="Export CRM analytics results for a snapshot as JSON"
    )
    _add_common_arguments(parser)
    parser.add_argument(
        "--output",
        type=Path,
        help="Optional path for the JSON output (defaults to stdout).",
    )
    args = parser.parse_args(argv)
    _configure_logging(args.log_level)

    logger.info(f"Loading snapshot from {args.input}")
    snapshot = _load_snapshot(args.input)
    if not snapshot.customers:
        logger.error("No customers found in snapshot")
        return 1

    as_of = _parse_as_of(args.as_of)
    payload = build_payload(snapshot, as_of)
    _write_output(json.dumps(payload, indent=2, sort_keys=True), args.output)
    if args.output:
        logger.info(f"Analytics results exported to {args.output}")
    return 0


def generate_report_cli(argv: list[str] | None = None) -> int:
    """Generate a Markdown analytics report from a snapshot.

    The report covers, in order: executive summary, RFM segments, churn
    risk, revenue opportunities, cohort retention and the sales forecast.

    Args:
        argv: Command line arguments (defaults to sys.argv)

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    parser = argparse.ArgumentParser(
        description="Generate a Markdown CRM analytics report"
    )
    _add_common_arguments(parser)
    parser.add_argument(
        "--output",
        type=Path,
        help="Path for the Markdown report (defaults to stdout).",
    )
    parser.add_argument(
        "--top",
        type=int,
        default=10,
        help="Rows to show in churn and opportunity tables (default: 10)",
    )
    args = parser.parse_args(argv)
    _configure_logging(args.log_level)

    logger.info(f"Loading snapshot from {args.input}")
    snapshot = _load_snapshot(args.input)
    if not snapshot.customers:
        logger.error("No customers found in snapshot")
        return 1
    if not snapshot.sales:
        logger.warning("Snapshot has no sales; segments, cohorts and forecast will be empty")

    as_of = _parse_as_of(args.as_of)
    customers, sales = snapshot.customers, snapshot.sales

    logger.info(f"Analysing {len(customers)} customers and {len(sales)} sales as of {as_of}")
    health = assess_business_health(customers, sales, as_of=as_of)
    segments = segment_customers(customers, sales)
    risks = analyze_churn_risks(customers, sales, snapshot.remarks, as_of=as_of)
    opportunities = analyze_revenue_opportunities(customers)
    cohorts = build_cohort_matrix(sales)
    forecast = generate_sales_forecast(sales, as_of=as_of)

    report_lines = [
        "# CRM Analytics Report\n",
        f"**As of:** {as_of.isoformat()}  ",
        f"**Customers:** {len(customers):,}  ",
        f"**Sales records:** {len(sales):,}\n",
        format_health_summary(health),
        format_segments_table(segments),
        format_churn_table(risks, limit=args.top),
        format_opportunities_table(opportunities, limit=args.top),
        format_cohort_table(cohorts),
        format_forecast_table(forecast),
    ]
    _write_output("\n".join(report_lines), args.output)

    if args.output:
        logger.info(f"Analytics report exported to {args.output}")
    logger.info(
        f"Report covers {len(segments)} segments, {len(cohorts)} cohorts, "
        f"health grade: {health.grade}"
    )
    return 0


def main() -> None:
    raise SystemExit(generate_report_cli())


def export_main() -> None:
    raise SystemExit(export_results_cli())


if __name__ == "__main__":  # pragma: no cover
    main()
