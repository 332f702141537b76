"""Tests for the OLS sales forecast."""

from datetime import date, datetime

import pytest

from crm_analytics.analyses.forecast import (
    ForecastConfig,
    ForecastHorizon,
    fit_linear_trend,
    generate_sales_forecast,
    monthly_revenue,
)
from crm_analytics.foundation.records import Sale

AS_OF = date(2024, 12, 31)


def _monthly_sales(amounts, year=2024):
    """One sale per month of ``year``, January first."""
    return [
        Sale(f"S{m}", "C1", amount, datetime(year, m, 10))
        for m, amount in enumerate(amounts, start=1)
    ]


class TestMonthlyRevenue:
    """Test the trailing-window rollup."""

    def test_window_ends_at_as_of_month(self):
        sales = [
            Sale("S1", "C1", 5.0, datetime(2023, 12, 31)),  # outside window
            Sale("S2", "C1", 7.0, datetime(2024, 1, 1)),
            Sale("S3", "C1", 3.0, datetime(2024, 12, 31, 23, 59)),
            Sale("S4", "C1", 11.0, datetime(2025, 1, 1)),  # after as_of month
        ]
        totals = monthly_revenue(sales, as_of=AS_OF)
        assert len(totals) == 12
        assert totals[0] == 7.0
        assert totals[-1] == 3.0
        assert sum(totals) == 10.0

    def test_multiple_sales_in_month_are_summed(self):
        sales = [
            Sale("S1", "C1", 5.0, datetime(2024, 6, 1)),
            Sale("S2", "C2", 6.0, datetime(2024, 6, 30)),
        ]
        assert monthly_revenue(sales, as_of=date(2024, 6, 15), months=2) == [0.0, 11.0]


class TestFitLinearTrend:
    """Test the closed-form least squares fit."""

    def test_exact_line(self):
        slope, intercept = fit_linear_trend([100.0 * (i + 1) for i in range(12)])
        assert slope == pytest.approx(100.0)
        assert intercept == pytest.approx(100.0)

    def test_constant_series_has_zero_slope(self):
        assert fit_linear_trend([1000.0] * 12) == (0.0, 1000.0)

    def test_single_point_rejected(self):
        with pytest.raises(ValueError, match="At least two points"):
            fit_linear_trend([5.0])


class TestGenerateSalesForecast:
    """Test horizons, trend and growth rate."""

    def test_constant_revenue_is_stable(self):
        result = generate_sales_forecast(_monthly_sales([1000.0] * 12), as_of=AS_OF)
        assert result.trend == "stable"
        assert result.slope == pytest.approx(0.0, abs=1e-9)
        assert result.next_30_days.predicted == pytest.approx(1000.0)
        assert result.next_90_days.predicted == pytest.approx(3000.0)
        assert result.growth_rate == pytest.approx(0.0, abs=1e-9)
        assert result.next_30_days.range == pytest.approx((1000.0, 1000.0))

    @pytest.mark.parametrize("amount", [1234.56, 99999.99, 0.1])
    def test_flat_non_round_revenue_is_stable(self, amount):
        """Rounding noise in the fitted slope must not read as a trend."""
        result = generate_sales_forecast(_monthly_sales([amount] * 12), as_of=AS_OF)
        assert result.trend == "stable"

    def test_small_real_slope_is_not_stable(self):
        result = generate_sales_forecast(
            _monthly_sales([100_000.0 + m for m in range(12)]), as_of=AS_OF
        )
        assert result.trend == "up"

    def test_rising_revenue(self):
        result = generate_sales_forecast(
            _monthly_sales([100.0 * m for m in range(1, 13)]), as_of=AS_OF
        )
        assert result.trend == "up"
        assert result.next_30_days.predicted == pytest.approx(1300.0)
        assert result.next_60_days.predicted == pytest.approx(2700.0)
        assert result.next_90_days.predicted == pytest.approx(4200.0)
        assert result.growth_rate == pytest.approx((4200 - 3300) / 3300 * 100)

    def test_steep_decline_never_predicts_negative(self):
        result = generate_sales_forecast(
            _monthly_sales([100.0 * m for m in range(12, 0, -1)]), as_of=AS_OF
        )
        assert result.trend == "down"
        for horizon in (result.next_30_days, result.next_60_days, result.next_90_days):
            assert horizon.predicted == 0.0
            assert horizon.range[0] >= 0.0
        assert result.growth_rate == pytest.approx(-100.0)

    def test_no_sales(self):
        result = generate_sales_forecast([], as_of=AS_OF)
        assert result.trend == "stable"
        assert result.next_90_days.predicted == 0.0
        assert result.growth_rate == 0.0

    def test_fixed_confidence_labels(self):
        result = generate_sales_forecast(_monthly_sales([500.0] * 12), as_of=AS_OF)
        assert (
            result.next_30_days.confidence,
            result.next_60_days.confidence,
            result.next_90_days.confidence,
        ) == (0.85, 0.75, 0.65)

    def test_band_widens_with_horizon(self):
        noisy = [1000.0, 1200.0] * 6
        result = generate_sales_forecast(_monthly_sales(noisy), as_of=AS_OF)

        def margin(h):
            return h.range[1] - h.predicted

        assert margin(result.next_30_days) > 0
        assert margin(result.next_60_days) / margin(result.next_30_days) == pytest.approx(1.2 / 1.1)
        assert margin(result.next_90_days) / margin(result.next_30_days) == pytest.approx(1.3 / 1.1)

    def test_as_of_selects_window(self):
        sales = _monthly_sales([1000.0] * 12, year=2023) + _monthly_sales([0.0] * 12)
        result = generate_sales_forecast(sales, as_of=datetime(2023, 12, 1, 8, 0))
        assert result.monthly_totals == (1000.0,) * 12

    def test_as_dict_keys(self):
        payload = generate_sales_forecast([], as_of=AS_OF).as_dict()
        assert set(payload) == {"next30Days", "next60Days", "next90Days", "trend", "growthRate"}
        assert payload["next30Days"]["range"] == [0.0, 0.0]


class TestForecastConfig:
    """Test configuration validation."""

    def test_custom_window(self):
        config = ForecastConfig(window_months=6, growth_window_months=2)
        sales = _monthly_sales([100.0] * 12)
        result = generate_sales_forecast(sales, as_of=AS_OF, config=config)
        assert len(result.monthly_totals) == 6

    def test_window_too_short(self):
        with pytest.raises(ValueError, match="window_months must be >= 2"):
            ForecastConfig(window_months=1)

    def test_confidences_length(self):
        with pytest.raises(ValueError, match="exactly three"):
            ForecastConfig(confidences=(0.9, 0.8))

    def test_negative_prediction_rejected(self):
        with pytest.raises(ValueError, match="predicted must be >= 0"):
            ForecastHorizon(predicted=-1.0, confidence=0.85, range=(0.0, 1.0))
