"""Input record definitions and loading utilities.

The analytics engine never talks to the datastore itself. The persistence
layer hands over already-fetched rows and this module turns them into
validated, immutable records. Validation is strict: malformed dates,
negative amounts or unknown tiers are caller bugs and raise immediately
instead of being coerced into something plausible.

Quick Start
-----------
>>> from crm_analytics.foundation.records import RecordContract
>>> contract = RecordContract()
>>> customers = contract.load_customers([
...     {"id": "C1", "firm_name": "Acme Traders", "tier": "Gold",
...      "sales_this_month": 120000, "avg_6mo_sales": 150000,
...      "outstanding_balance": 20000, "days_since_last_order": 4},
... ])
>>> customers[0].tier
<CustomerTier.GOLD: 'Gold'>
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Iterable, Mapping, Optional


class CustomerTier(str, Enum):
    """Commercial tier assigned to a customer."""

    PLATINUM = "Platinum"
    GOLD = "Gold"
    SILVER = "Silver"
    BRONZE = "Bronze"
    DEAD = "Dead"


class Sentiment(str, Enum):
    """Sentiment tag attached to a remark, when one was computed."""

    POSITIVE = "Positive"
    NEUTRAL = "Neutral"
    NEGATIVE = "Negative"
    MIXED = "Mixed"


def _naive_utc(ts: datetime) -> datetime:
    if ts.tzinfo is None:
        return ts
    return ts.astimezone(timezone.utc).replace(tzinfo=None)


def parse_timestamp(value: Any, *, field_name: str = "date") -> datetime:
    """Parse an ISO 8601 string (or date/datetime) into a naive datetime.

    A trailing ``Z`` is accepted as UTC. Offset-aware values are converted
    to UTC and returned naive, so timestamps from different sources can be
    compared. Anything else that does not parse raises ``ValueError``.

    >>> parse_timestamp("2024-03-05T10:30:00+05:30")
    datetime.datetime(2024, 3, 5, 5, 0)
    """
    if isinstance(value, datetime):
        return _naive_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if not isinstance(value, str):
        raise TypeError(
            f"{field_name} must be an ISO 8601 string or datetime, got {type(value).__name__}"
        )
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as exc:
        raise ValueError(f"Malformed {field_name}: {value!r}") from exc
    return _naive_utc(parsed)


def _require_amount(value: float, field_name: str, owner: str) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"{field_name} must be numeric, got {value!r} ({owner})")
    if math.isnan(value) or math.isinf(value):
        raise ValueError(f"{field_name} must be finite, got {value} ({owner})")
    if value < 0:
        raise ValueError(f"{field_name} cannot be negative: {value} ({owner})")


@dataclass(frozen=True)
class Customer:
    """Snapshot of a customer as maintained by the CRM.

    Attributes
    ----------
    customer_id:
        Unique identifier in the datastore.
    name:
        Firm name shown on the dashboard.
    tier:
        Current commercial tier.
    sales_this_month:
        Sales booked in the current calendar month.
    avg_6mo_sales:
        Average monthly sales over the trailing six months.
    outstanding_balance:
        Unpaid balance owed by the customer.
    days_since_last_order:
        Whole days since the customer's most recent order.
    state, district:
        Optional territory fields.
    """

    customer_id: str
    name: str
    tier: CustomerTier
    sales_this_month: float = 0.0
    avg_6mo_sales: float = 0.0
    outstanding_balance: float = 0.0
    days_since_last_order: int = 0
    state: Optional[str] = None
    district: Optional[str] = None

    def __post_init__(self) -> None:
        """Validate customer fields."""
        if not self.customer_id:
            raise ValueError("customer_id cannot be empty")
        if not isinstance(self.tier, CustomerTier):
            try:
                object.__setattr__(self, "tier", CustomerTier(self.tier))
            except ValueError:
                raise ValueError(
                    f"Unknown tier {self.tier!r} (customer_id={self.customer_id})"
                ) from None
        owner = f"customer_id={self.customer_id}"
        _require_amount(self.sales_this_month, "sales_this_month", owner)
        _require_amount(self.avg_6mo_sales, "avg_6mo_sales", owner)
        _require_amount(self.outstanding_balance, "outstanding_balance", owner)
        if isinstance(self.days_since_last_order, bool) or not isinstance(
            self.days_since_last_order, int
        ):
            raise TypeError(
                f"days_since_last_order must be an integer, got {self.days_since_last_order!r} ({owner})"
            )
        if self.days_since_last_order < 0:
            raise ValueError(
                f"days_since_last_order cannot be negative: {self.days_since_last_order} ({owner})"
            )


@dataclass(frozen=True)
class Sale:
    """A single recorded sale."""

    sale_id: str
    customer_id: str
    amount: float
    date: datetime

    def __post_init__(self) -> None:
        """Validate sale fields."""
        if not self.customer_id:
            raise ValueError(f"customer_id cannot be empty (sale_id={self.sale_id})")
        _require_amount(self.amount, "amount", f"sale_id={self.sale_id}")
        object.__setattr__(self, "date", parse_timestamp(self.date))


@dataclass(frozen=True)
class Remark:
    """A free-text interaction note logged against a customer."""

    customer_id: str
    timestamp: datetime
    sentiment: Optional[Sentiment] = None
    text: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "timestamp", parse_timestamp(self.timestamp, field_name="timestamp")
        )
        if self.sentiment is not None and not isinstance(self.sentiment, Sentiment):
            try:
                object.__setattr__(self, "sentiment", Sentiment(self.sentiment))
            except ValueError:
                raise ValueError(
                    f"Unknown sentiment {self.sentiment!r} (customer_id={self.customer_id})"
                ) from None


@dataclass(frozen=True)
class Task:
    """A follow-up task assigned against a customer."""

    task_id: str
    customer_id: str
    due_date: datetime
    completed: bool = False
    description: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "due_date", parse_timestamp(self.due_date, field_name="due_date")
        )


class RecordContract:
    """Convert raw datastore rows into validated engine records.

    Rows use the datastore's snake_case column names. Required columns that
    are missing raise ``ValueError`` carrying the record index, so the
    persistence layer can report which row was bad.
    """

    CUSTOMER_FIELDS = {
        "id",
        "tier",
        "sales_this_month",
        "avg_6mo_sales",
        "outstanding_balance",
        "days_since_last_order",
    }
    SALE_FIELDS = {"customer_id", "amount", "date"}
    REMARK_FIELDS = {"customer_id", "timestamp"}
    TASK_FIELDS = {"customer_id", "due_date"}

    @staticmethod
    def _check_required(
        record: Mapping[str, Any], required: set[str], idx: int, kind: str
    ) -> None:
        missing = sorted(name for name in required if record.get(name) is None)
        if missing:
            raise ValueError(
                f"{kind} record missing required fields",
                {"missing_fields": missing, "record_index": idx},
            )

    def load_customers(self, records: Iterable[Mapping[str, Any]]) -> list[Customer]:
        """Validate customer rows and return ``Customer`` records."""
        customers: list[Customer] = []
        seen: set[str] = set()
        for idx, record in enumerate(records):
            self._check_required(record, self.CUSTOMER_FIELDS, idx, "Customer")
            customer_id = str(record["id"])
            if customer_id in seen:
                raise ValueError(
                    f"Duplicate customer id {customer_id!r} at record {idx}"
                )
            seen.add(customer_id)
            name = record.get("firm_name") or record.get("name") or customer_id
            days = record["days_since_last_order"]
            if isinstance(days, float) and days.is_integer():
                days = int(days)
            customers.append(
                Customer(
                    customer_id=customer_id,
                    name=str(name),
                    tier=record["tier"],
                    sales_this_month=record["sales_this_month"],
                    avg_6mo_sales=record["avg_6mo_sales"],
                    outstanding_balance=record["outstanding_balance"],
                    days_since_last_order=days,
                    state=record.get("state"),
                    district=record.get("district"),
                )
            )
        return customers

    def load_sales(self, records: Iterable[Mapping[str, Any]]) -> list[Sale]:
        """Validate sale rows and return ``Sale`` records."""
        sales: list[Sale] = []
        for idx, record in enumerate(records):
            self._check_required(record, self.SALE_FIELDS, idx, "Sale")
            sales.append(
                Sale(
                    sale_id=str(record.get("id", idx)),
                    customer_id=str(record["customer_id"]),
                    amount=record["amount"],
                    date=parse_timestamp(record["date"]),
                )
            )
        return sales

    def load_remarks(self, records: Iterable[Mapping[str, Any]]) -> list[Remark]:
        remarks: list[Remark] = []
        for idx, record in enumerate(records):
            self._check_required(record, self.REMARK_FIELDS, idx, "Remark")
            remarks.append(
                Remark(
                    customer_id=str(record["customer_id"]),
                    timestamp=parse_timestamp(record["timestamp"], field_name="timestamp"),
                    sentiment=record.get("sentiment"),
                    text=str(record.get("remark", "")),
                )
            )
        return remarks

    def load_tasks(self, records: Iterable[Mapping[str, Any]]) -> list[Task]:
        tasks: list[Task] = []
        for idx, record in enumerate(records):
            self._check_required(record, self.TASK_FIELDS, idx, "Task")
            tasks.append(
                Task(
                    task_id=str(record.get("id", idx)),
                    customer_id=str(record["customer_id"]),
                    due_date=parse_timestamp(record["due_date"], field_name="due_date"),
                    completed=bool(record.get("completed", False)),
                    description=str(record.get("task", "")),
                )
            )
        return tasks
