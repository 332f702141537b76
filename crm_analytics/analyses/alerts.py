"""Rule-based smart alerts for the dashboard header.

Each rule inspects the whole snapshot and emits at most one aggregated alert
(e.g. "12 customers haven't ordered in 75+ days"). Alerts are returned by
priority, 1 being the most urgent.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Sequence

from crm_analytics.foundation.records import Customer, CustomerTier, Task, parse_timestamp

logger = logging.getLogger(__name__)

CHURN_ALERT_INACTIVE_DAYS = 75
UPSELL_MIN_AVERAGE = 100_000
COLLECTION_MIN_OUTSTANDING = 50_000
COLLECTION_MIN_INACTIVE_DAYS = 45


class AlertType(str, Enum):
    CRITICAL = "critical"
    WARNING = "warning"
    OPPORTUNITY = "opportunity"
    INFO = "info"


@dataclass(frozen=True)
class SmartAlert:
    alert_id: str
    type: AlertType
    title: str
    message: str
    action: str
    priority: int
    count: int
    timestamp: datetime

    def __post_init__(self) -> None:
        if not 1 <= self.priority <= 5:
            raise ValueError(f"priority must be between 1 and 5, got {self.priority}")

    def as_dict(self) -> dict:
        return {
            "id": self.alert_id,
            "type": self.type.value,
            "title": self.title,
            "message": self.message,
            "action": self.action,
            "priority": self.priority,
            "count": self.count,
            "timestamp": self.timestamp.isoformat(),
        }


def _is_overdue(task: Task, now: datetime) -> bool:
    return not task.completed and task.due_date < now


def generate_smart_alerts(
    customers: Sequence[Customer],
    tasks: Sequence[Task] = (),
    as_of: Optional[datetime] = None,
) -> list[SmartAlert]:
    """Evaluate the alert rules against a snapshot.

    Parameters
    ----------
    customers:
        All customers in the snapshot.
    tasks:
        Follow-up tasks; incomplete tasks due before ``as_of`` are overdue.
    as_of:
        Evaluation time, defaults to now. Offset-aware values are converted
        to naive UTC to match task due dates.
    """
    now = parse_timestamp(as_of or datetime.now(timezone.utc), field_name="as_of")
    alerts: list[SmartAlert] = []

    def add(alert_id, alert_type, title, message, action, priority, count):
        if count > 0:
            alerts.append(
                SmartAlert(
                    alert_id=alert_id,
                    type=alert_type,
                    title=title,
                    message=message,
                    action=action,
                    priority=priority,
                    count=count,
                    timestamp=now,
                )
            )

    inactive = sum(
        1 for c in customers if c.days_since_last_order > CHURN_ALERT_INACTIVE_DAYS
    )
    add(
        "churn-risk-critical",
        AlertType.CRITICAL,
        "High Churn Risk",
        f"{inactive} customers haven't ordered in {CHURN_ALERT_INACTIVE_DAYS}+ days.",
        "View List",
        1,
        inactive,
    )

    overdue = sum(1 for t in tasks if _is_overdue(t, now))
    add(
        "overdue-tasks",
        AlertType.CRITICAL,
        "Overdue Tasks",
        f"You have {overdue} overdue tasks requiring attention.",
        "View Tasks",
        1,
        overdue,
    )

    upgrade_candidates = sum(
        1
        for c in customers
        if c.tier not in (CustomerTier.GOLD, CustomerTier.PLATINUM)
        and c.avg_6mo_sales > UPSELL_MIN_AVERAGE
    )
    add(
        "upsell-opportunity",
        AlertType.OPPORTUNITY,
        "Tier Upgrade Opportunity",
        f"{upgrade_candidates} customers qualify for Gold Tier upgrade.",
        "Review",
        2,
        upgrade_candidates,
    )

    collection = sum(
        1
        for c in customers
        if c.outstanding_balance > COLLECTION_MIN_OUTSTANDING
        and c.days_since_last_order > COLLECTION_MIN_INACTIVE_DAYS
    )
    add(
        "high-outstanding",
        AlertType.WARNING,
        "Payment Collection",
        f"{collection} customers have high outstanding & low activity.",
        "Collect",
        2,
        collection,
    )

    new_customers = sum(
        1 for c in customers if c.sales_this_month == 0 and c.avg_6mo_sales == 0
    )
    add(
        "new-customers",
        AlertType.INFO,
        "New Customers",
        f"{new_customers} new customers added recently.",
        "Onboard",
        3,
        new_customers,
    )

    alerts.sort(key=lambda a: a.priority)
    logger.debug(f"Generated {len(alerts)} smart alerts")
    return alerts
