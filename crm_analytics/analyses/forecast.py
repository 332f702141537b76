"""Short-term sales forecasting.

Sales are rolled up into the trailing 12 calendar months (the month of
``as_of`` is the last one) and an ordinary-least-squares trend line is fitted
through them. The line is extrapolated one, two and three months ahead;
predictions are floored at zero so a steep downward trend never forecasts
negative revenue.

The uncertainty band around each horizon is the residual standard deviation of
the fit, widened by 10% per month projected. The confidence attached to each
horizon is a fixed constant, not derived from the residuals.

Quick Start
-----------
>>> from datetime import date, datetime
>>> from crm_analytics.foundation.records import Sale
>>> from crm_analytics.analyses.forecast import generate_sales_forecast
>>> sales = [Sale(f"S{m}", "C1", 1000.0, datetime(2024, m, 10)) for m in range(1, 13)]
>>> result = generate_sales_forecast(sales, as_of=date(2024, 12, 31))
>>> result.trend, round(result.next_30_days.predicted)
('stable', 1000)
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional, Sequence

import numpy as np

from crm_analytics.cache import SnapshotCache, snapshot_fingerprint
from crm_analytics.foundation.records import Sale

logger = logging.getLogger(__name__)

# slopes within this fraction of the largest monthly total are rounding noise
SLOPE_TOLERANCE = 1e-9


@dataclass(frozen=True)
class ForecastConfig:
    """Configuration for the trend forecast.

    Attributes
    ----------
    window_months:
        Number of trailing calendar months fitted (default: 12).
    confidences:
        Confidence reported for the 30, 60 and 90 day horizons. These are
        fixed labels and are not computed from the fit.
    margin_growth:
        Fractional widening of the uncertainty band per month ahead.
    growth_window_months:
        Trailing months compared against the 3-month projection when
        computing ``growth_rate``.
    """

    window_months: int = 12
    confidences: tuple[float, float, float] = (0.85, 0.75, 0.65)
    margin_growth: float = 0.1
    growth_window_months: int = 3

    def __post_init__(self) -> None:
        if self.window_months < 2:
            raise ValueError(f"window_months must be >= 2, got {self.window_months}")
        if len(self.confidences) != 3:
            raise ValueError("confidences must hold exactly three values")
        if not 0 < self.growth_window_months <= self.window_months:
            raise ValueError(
                f"growth_window_months must be in 1..{self.window_months}, "
                f"got {self.growth_window_months}"
            )


DEFAULT_CONFIG = ForecastConfig()


@dataclass(frozen=True)
class ForecastHorizon:
    """Cumulative prediction for one horizon."""

    predicted: float
    confidence: float
    range: tuple[float, float]

    def __post_init__(self) -> None:
        if self.predicted < 0:
            raise ValueError(f"predicted must be >= 0, got {self.predicted}")
        low, high = self.range
        if low < 0 or low > high:
            raise ValueError(f"invalid range {self.range}")

    def as_dict(self) -> dict:
        return {
            "predicted": self.predicted,
            "confidence": self.confidence,
            "range": [self.range[0], self.range[1]],
        }


@dataclass(frozen=True)
class ForecastResult:
    """Forecast over the next 30, 60 and 90 days.

    Attributes
    ----------
    next_30_days, next_60_days, next_90_days:
        Cumulative predictions for the next one, two and three months.
    trend:
        ``"up"``, ``"down"`` or ``"stable"`` from the sign of the slope;
        slopes below ``SLOPE_TOLERANCE`` times the largest monthly total
        count as stable.
    growth_rate:
        Percentage change of the 3-month projection over the trailing
        3 months of actuals (0 when the trailing sum is 0).
    slope, intercept:
        Fitted trend line over month index 0..11.
    monthly_totals:
        The historical monthly totals the line was fitted to, oldest first.
    """

    next_30_days: ForecastHorizon
    next_60_days: ForecastHorizon
    next_90_days: ForecastHorizon
    trend: str
    growth_rate: float
    slope: float = 0.0
    intercept: float = 0.0
    monthly_totals: tuple[float, ...] = ()

    def __post_init__(self) -> None:
        if self.trend not in ("up", "down", "stable"):
            raise ValueError(f"trend must be up, down or stable, got {self.trend!r}")

    def as_dict(self) -> dict:
        return {
            "next30Days": self.next_30_days.as_dict(),
            "next60Days": self.next_60_days.as_dict(),
            "next90Days": self.next_90_days.as_dict(),
            "trend": self.trend,
            "growthRate": self.growth_rate,
        }


def _month_index(year: int, month: int) -> int:
    return year * 12 + (month - 1)


def monthly_revenue(
    sales: Sequence[Sale],
    as_of: Optional[date] = None,
    months: int = 12,
) -> list[float]:
    """Total sale amounts per calendar month, oldest first.

    The window ends with the calendar month containing ``as_of`` (default:
    today) and spans ``months`` months. Sales outside the window are
    ignored.

    >>> from datetime import datetime
    >>> sales = [Sale("S1", "C1", 50.0, datetime(2024, 5, 31)),
    ...          Sale("S2", "C1", 25.0, datetime(2024, 6, 1))]
    >>> monthly_revenue(sales, as_of=date(2024, 6, 15), months=3)
    [0.0, 50.0, 25.0]
    """
    if as_of is None:
        as_of = date.today()
    last = _month_index(as_of.year, as_of.month)
    first = last - months + 1

    totals = [0.0] * months
    skipped = 0
    for sale in sales:
        idx = _month_index(sale.date.year, sale.date.month)
        if first <= idx <= last:
            totals[idx - first] += sale.amount
        else:
            skipped += 1
    if skipped:
        logger.debug(f"{skipped} sales fell outside the {months}-month forecast window")
    return totals


def fit_linear_trend(values: Sequence[float]) -> tuple[float, float]:
    """Ordinary least squares over ``(i, values[i])``.

    Returns ``(slope, intercept)``. Uses the closed-form normal equations
    so that the fit is exact for the small, evenly spaced windows used
    here.

    >>> fit_linear_trend([1.0, 3.0, 5.0])
    (2.0, 1.0)
    """
    y = np.asarray(values, dtype=float)
    n = y.size
    if n < 2:
        raise ValueError(f"At least two points are required for a trend, got {n}")
    x = np.arange(n, dtype=float)

    sum_x = x.sum()
    sum_y = y.sum()
    sum_xy = (x * y).sum()
    sum_xx = (x * x).sum()

    slope = (n * sum_xy - sum_x * sum_y) / (n * sum_xx - sum_x * sum_x)
    intercept = (sum_y - slope * sum_x) / n
    return float(slope), float(intercept)


def generate_sales_forecast(
    sales: Sequence[Sale],
    as_of: Optional[date] = None,
    config: ForecastConfig = DEFAULT_CONFIG,
    cache: Optional[SnapshotCache] = None,
) -> ForecastResult:
    """Project revenue for the next 30, 60 and 90 days.

    Parameters
    ----------
    sales:
        All sales in the snapshot.
    as_of:
        Reference date; its calendar month is the last historical month.
        Defaults to today.
    config:
        Forecast configuration (window length, confidence labels, band
        widening).
    cache:
        Optional result cache keyed on sale content, the resolved
        ``as_of`` date and ``config``.

    Returns
    -------
    ForecastResult
        Cumulative predictions with uncertainty ranges, trend direction
        and growth rate.
    """
    if isinstance(as_of, datetime):
        as_of = as_of.date()
    if as_of is None:
        as_of = date.today()
    if cache is not None:
        return cache.get_or_compute(
            "forecast",
            snapshot_fingerprint(sales),
            lambda: generate_sales_forecast(sales, as_of, config),
            as_of,
            config,
        )

    history = monthly_revenue(sales, as_of=as_of, months=config.window_months)
    slope, intercept = fit_linear_trend(history)

    y = np.asarray(history, dtype=float)
    x = np.arange(y.size, dtype=float)
    residuals = y - (slope * x + intercept)
    variance = float(np.mean(residuals**2))
    std_dev = math.sqrt(variance)

    def predict(idx: int) -> float:
        return max(0.0, slope * idx + intercept)

    n = config.window_months
    month_1, month_2, month_3 = predict(n), predict(n + 1), predict(n + 2)

    def horizon(predicted: float, months_out: int, confidence: float) -> ForecastHorizon:
        margin = std_dev * (1 + months_out * config.margin_growth)
        return ForecastHorizon(
            predicted=predicted,
            confidence=confidence,
            range=(max(0.0, predicted - margin), predicted + margin),
        )

    c30, c60, c90 = config.confidences
    projected_3 = month_1 + month_2 + month_3
    trailing = sum(history[-config.growth_window_months :])
    growth_rate = (projected_3 - trailing) / trailing * 100 if trailing > 0 else 0.0

    scale = max(1.0, float(np.abs(y).max()))
    if abs(slope) <= SLOPE_TOLERANCE * scale:
        trend = "stable"
    elif slope > 0:
        trend = "up"
    else:
        trend = "down"

    logger.debug(
        f"Forecast fit slope={slope:.4f} intercept={intercept:.2f} std_dev={std_dev:.2f}"
    )
    return ForecastResult(
        next_30_days=horizon(month_1, 1, c30),
        next_60_days=horizon(month_1 + month_2, 2, c60),
        next_90_days=horizon(projected_3, 3, c90),
        trend=trend,
        growth_rate=growth_rate,
        slope=slope,
        intercept=intercept,
        monthly_totals=tuple(history),
    )
