"""Pandas DataFrame adapters for input records."""

from typing import List

import pandas as pd  # type: ignore

from crm_analytics.foundation.records import Customer, RecordContract, Remark, Sale


def _require_columns(df: pd.DataFrame, required: set, kind: str) -> None:
    missing_cols = required - set(df.columns)
    if missing_cols:
        raise ValueError(f"{kind} DataFrame missing required columns: {sorted(missing_cols)}")

    null_cols = df[sorted(required)].isnull().any()
    if null_cols.any():
        null_col_names = null_cols[null_cols].index.tolist()
        raise ValueError(
            f"Null/NaN values found in columns: {null_col_names}. "
            f"{kind} records require complete data."
        )


def _python_scalars(record: dict) -> dict:
    """Unwrap numpy scalars and pandas timestamps into plain Python values."""
    converted = {}
    for key, value in record.items():
        if isinstance(value, pd.Timestamp):
            converted[key] = value.to_pydatetime()
        elif hasattr(value, "item") and not isinstance(value, (str, bytes)):
            converted[key] = value.item()
        else:
            converted[key] = value
        if isinstance(converted[key], float) and pd.isna(converted[key]):
            converted[key] = None
    return converted


def dataframe_to_customers(customers_df: pd.DataFrame) -> List[Customer]:
    """Convert a DataFrame of customer rows to ``Customer`` records.

    Args:
        customers_df: DataFrame with the datastore's customer columns
            (``id``, ``tier``, ``sales_this_month``, ``avg_6mo_sales``,
            ``outstanding_balance``, ``days_since_last_order`` and optionally
            ``firm_name``, ``state``, ``district``)

    Returns:
        List of validated Customer records, in row order

    Raises:
        ValueError: If required columns are missing, contain nulls, or hold
            invalid values
    """
    _require_columns(customers_df, RecordContract.CUSTOMER_FIELDS, "Customer")
    if customers_df.empty:
        return []

    rows = [_python_scalars(r) for r in customers_df.to_dict("records")]
    return RecordContract().load_customers(rows)


def dataframe_to_sales(
    sales_df: pd.DataFrame,
    customer_id_col: str = "customer_id",
    amount_col: str = "amount",
    date_col: str = "date",
) -> List[Sale]:
    """Convert a DataFrame of sale rows to ``Sale`` records.

    Example with custom column names:
        >>> sales = dataframe_to_sales(df, customer_id_col="client_id",
        ...                            amount_col="revenue")
    """
    _require_columns(sales_df, {customer_id_col, amount_col, date_col}, "Sale")
    if sales_df.empty:
        return []

    rows = []
    for idx, record in enumerate(sales_df.to_dict("records")):
        record = _python_scalars(record)
        rows.append(
            {
                "id": record.get("id") if record.get("id") is not None else idx,
                "customer_id": record[customer_id_col],
                "amount": record[amount_col],
                "date": record[date_col],
            }
        )
    return RecordContract().load_sales(rows)


def dataframe_to_remarks(remarks_df: pd.DataFrame) -> List[Remark]:
    """Convert a DataFrame of remark rows to ``Remark`` records.

    A ``sentiment`` column is optional; nulls in it mean "not analysed".
    """
    _require_columns(remarks_df, RecordContract.REMARK_FIELDS, "Remark")
    if remarks_df.empty:
        return []

    remarks = []
    for record in remarks_df.to_dict("records"):
        record = _python_scalars(record)
        remarks.append(
            Remark(
                customer_id=str(record["customer_id"]),
                timestamp=record["timestamp"],
                sentiment=record.get("sentiment"),
                text=str(record.get("remark") or ""),
            )
        )
    return remarks
