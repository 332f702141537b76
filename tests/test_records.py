"""Tests for input record validation and the datastore row contract."""

from datetime import datetime, timedelta, timezone

import pytest

from crm_analytics.foundation.records import (
    Customer,
    CustomerTier,
    RecordContract,
    Remark,
    Sale,
    Sentiment,
    Task,
    parse_timestamp,
)


def _customer_row(**overrides):
    row = {
        "id": "C1",
        "firm_name": "Acme Traders",
        "tier": "Gold",
        "sales_this_month": 120000,
        "avg_6mo_sales": 150000,
        "outstanding_balance": 20000,
        "days_since_last_order": 4,
    }
    row.update(overrides)
    return row


class TestParseTimestamp:
    """Test ISO 8601 parsing."""

    def test_parses_date_only_string(self):
        assert parse_timestamp("2024-03-05") == datetime(2024, 3, 5)

    def test_trailing_z_is_utc(self):
        """A trailing Z should parse as UTC and come back naive."""
        parsed = parse_timestamp("2024-03-05T10:30:00Z")
        assert parsed == datetime(2024, 3, 5, 10, 30)
        assert parsed.tzinfo is None

    def test_offsets_are_converted_to_utc(self):
        aware = datetime(2024, 3, 5, 1, 0, tzinfo=timezone(timedelta(hours=-5)))
        assert parse_timestamp(aware) == datetime(2024, 3, 5, 6, 0)

    def test_datetime_passes_through(self):
        ts = datetime(2024, 1, 1, 12)
        assert parse_timestamp(ts) is ts

    def test_malformed_string_raises_value_error(self):
        with pytest.raises(ValueError, match="Malformed date"):
            parse_timestamp("05/03/2024")

    def test_non_string_raises_type_error(self):
        with pytest.raises(TypeError, match="ISO 8601"):
            parse_timestamp(20240305)


class TestCustomer:
    """Test Customer dataclass validation."""

    def test_tier_string_is_coerced(self):
        customer = Customer("C1", "Acme", "Silver")
        assert customer.tier is CustomerTier.SILVER

    def test_unknown_tier_raises(self):
        with pytest.raises(ValueError, match="Unknown tier 'Diamond'"):
            Customer("C1", "Acme", "Diamond")

    def test_negative_amount_raises(self):
        with pytest.raises(ValueError, match="outstanding_balance cannot be negative"):
            Customer("C1", "Acme", "Gold", outstanding_balance=-1.0)

    def test_nan_amount_raises(self):
        with pytest.raises(ValueError, match="must be finite"):
            Customer("C1", "Acme", "Gold", sales_this_month=float("nan"))

    def test_negative_days_raises(self):
        with pytest.raises(ValueError, match="days_since_last_order cannot be negative"):
            Customer("C1", "Acme", "Gold", days_since_last_order=-3)

    def test_non_integer_days_raises(self):
        with pytest.raises(TypeError, match="days_since_last_order must be an integer"):
            Customer("C1", "Acme", "Gold", days_since_last_order=2.5)

    def test_empty_id_raises(self):
        with pytest.raises(ValueError, match="customer_id cannot be empty"):
            Customer("", "Acme", "Gold")

    def test_customer_is_frozen(self):
        customer = Customer("C1", "Acme", "Gold")
        with pytest.raises(AttributeError):
            customer.sales_this_month = 10.0


class TestSaleRemarkTask:
    """Test the smaller record types."""

    def test_sale_parses_string_date(self):
        sale = Sale("S1", "C1", 100.0, "2024-02-01")
        assert sale.date == datetime(2024, 2, 1)

    def test_negative_sale_amount_raises(self):
        with pytest.raises(ValueError, match="amount cannot be negative"):
            Sale("S1", "C1", -5.0, datetime(2024, 2, 1))

    def test_boolean_amount_rejected(self):
        with pytest.raises(TypeError, match="amount must be numeric"):
            Sale("S1", "C1", True, datetime(2024, 2, 1))

    def test_remark_sentiment_coerced(self):
        remark = Remark("C1", "2024-02-01T09:00:00", sentiment="Negative")
        assert remark.sentiment is Sentiment.NEGATIVE

    def test_remark_unknown_sentiment_raises(self):
        with pytest.raises(ValueError, match="Unknown sentiment"):
            Remark("C1", datetime(2024, 2, 1), sentiment="Angry")

    def test_task_parses_due_date(self):
        task = Task("T1", "C1", "2024-02-10")
        assert task.due_date == datetime(2024, 2, 10)
        assert task.completed is False


class TestRecordContract:
    """Test loading raw datastore rows."""

    def test_load_customers(self):
        customers = RecordContract().load_customers([_customer_row()])
        assert len(customers) == 1
        customer = customers[0]
        assert customer.customer_id == "C1"
        assert customer.name == "Acme Traders"
        assert customer.tier is CustomerTier.GOLD
        assert customer.days_since_last_order == 4

    def test_name_falls_back_to_id(self):
        row = _customer_row()
        del row["firm_name"]
        customers = RecordContract().load_customers([row])
        assert customers[0].name == "C1"

    def test_whole_float_days_accepted(self):
        customers = RecordContract().load_customers(
            [_customer_row(days_since_last_order=12.0)]
        )
        assert customers[0].days_since_last_order == 12

    def test_missing_fields_report_record_index(self):
        """Missing required fields should raise with the offending row index."""
        rows = [_customer_row(), _customer_row(id="C2", tier=None)]
        with pytest.raises(ValueError) as excinfo:
            RecordContract().load_customers(rows)
        message, details = excinfo.value.args
        assert message == "Customer record missing required fields"
        assert details == {"missing_fields": ["tier"], "record_index": 1}

    def test_duplicate_customer_ids_raise(self):
        with pytest.raises(ValueError, match="Duplicate customer id 'C1'"):
            RecordContract().load_customers([_customer_row(), _customer_row()])

    def test_load_sales_uses_index_when_id_absent(self):
        sales = RecordContract().load_sales(
            [
                {"customer_id": "C1", "amount": 50.0, "date": "2024-01-05"},
                {"id": "S9", "customer_id": "C1", "amount": 70.0, "date": "2024-01-06"},
            ]
        )
        assert [s.sale_id for s in sales] == ["0", "S9"]
        assert sales[0].date == datetime(2024, 1, 5)

    def test_load_sales_malformed_date_raises(self):
        with pytest.raises(ValueError, match="Malformed date"):
            RecordContract().load_sales(
                [{"customer_id": "C1", "amount": 50.0, "date": "not-a-date"}]
            )

    def test_load_remarks_and_tasks(self):
        contract = RecordContract()
        remarks = contract.load_remarks(
            [{"customer_id": "C1", "timestamp": "2024-01-05T10:00:00Z", "remark": "Called"}]
        )
        tasks = contract.load_tasks(
            [{"id": "T1", "customer_id": "C1", "due_date": "2024-01-10", "completed": True}]
        )
        assert remarks[0].text == "Called"
        assert remarks[0].sentiment is None
        assert tasks[0].task_id == "T1"
        assert tasks[0].completed is True
