"""Customer analyses built on the foundation records.

Each analysis is an independent, pure function over a snapshot of
customers, sales and remarks:

1. Segmentation - RFM segments via an ordered rule table
2. Churn risk - additive four-factor risk score
3. Revenue opportunities - tier upgrade, reactivation and consistency rules
4. Forecast - OLS trend over the trailing 12 months
5. Health, KPIs and alerts - executive summary views
"""

from .alerts import AlertType, SmartAlert, generate_smart_alerts
from .churn import ChurnRisk, RiskLevel, analyze_churn_risks, calculate_churn_risk
from .forecast import (
    ForecastConfig,
    ForecastHorizon,
    ForecastResult,
    fit_linear_trend,
    generate_sales_forecast,
    monthly_revenue,
)
from .health import HealthSummary, assess_business_health
from .kpis import KPISummary, calculate_kpis, rank_customers
from .opportunities import (
    Difficulty,
    Opportunity,
    OpportunityType,
    analyze_revenue_opportunities,
    detect_customer_opportunities,
)
from .segmentation import Segment, SegmentType, classify_segment, segment_customers

__all__ = [
    # Segmentation
    "Segment",
    "SegmentType",
    "classify_segment",
    "segment_customers",
    # Churn
    "ChurnRisk",
    "RiskLevel",
    "analyze_churn_risks",
    "calculate_churn_risk",
    # Opportunities
    "Difficulty",
    "Opportunity",
    "OpportunityType",
    "analyze_revenue_opportunities",
    "detect_customer_opportunities",
    # Forecast
    "ForecastConfig",
    "ForecastHorizon",
    "ForecastResult",
    "fit_linear_trend",
    "generate_sales_forecast",
    "monthly_revenue",
    # Summary views
    "HealthSummary",
    "assess_business_health",
    "KPISummary",
    "calculate_kpis",
    "rank_customers",
    "AlertType",
    "SmartAlert",
    "generate_smart_alerts",
]
