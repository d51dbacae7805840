
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, Literal

RiskCategory = Literal["High Risk", "Medium Risk", "Low Risk"]

class RiskFeatureRow(BaseModel):
    """
    One row of `customer_risk_features` as the classifier consumes it.
    Feature columns reject None and NaN.
    """
    # Identifiers
    customer_id: int

    # Demographics (copied from the customer record, may be missing)
    age: Optional[int] = Field(None, ge=18, le=100)
    customer_segment: Optional[str] = None
    gender: Optional[str] = None

    # Subscriptions
    account_age_days: int
    num_subscriptions: int = Field(..., ge=0)
    active_subscriptions: int = Field(..., ge=0)
    avg_monthly_charges: float = Field(..., ge=0, allow_inf_nan=False)
    total_spent: float = Field(..., ge=0, allow_inf_nan=False)
    has_churned: int = Field(..., ge=0, le=1)
    has_paperless_billing: bool

    # Usage (trailing 3 months)
    avg_data_usage: float = Field(..., ge=0, allow_inf_nan=False)
    avg_call_minutes: float = Field(..., ge=0, allow_inf_nan=False)
    total_support_tickets: int = Field(..., ge=0)
    avg_satisfaction: float = Field(..., ge=1, le=10, allow_inf_nan=False)

    # Payments
    failed_payments_count: int = Field(..., ge=0)
    avg_late_fees: float = Field(..., ge=0, allow_inf_nan=False)

    risk_category: RiskCategory

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "customer_id": 42,
                "age": 37,
                "customer_segment": "Standard",
                "gender": "Female",
                "account_age_days": 412,
                "num_subscriptions": 1,
                "active_subscriptions": 0,
                "avg_monthly_charges": 89.5,
                "total_spent": 1074.0,
                "has_churned": 1,
                "has_paperless_billing": True,
                "avg_data_usage": 231.4,
                "avg_call_minutes": 502.0,
                "total_support_tickets": 4,
                "avg_satisfaction": 3.0,
                "failed_payments_count": 2,
                "avg_late_fees": 0.67,
                "risk_category": "High Risk"
            }
        }
    )

class SegmentChurnSummary(BaseModel):
    customer_segment: Optional[str]
    total_customers: int = Field(..., ge=1)
    churned_customers: int = Field(..., ge=0)
    churn_rate_pct: float = Field(..., ge=0, le=100)
    avg_ltv: Optional[float] = None
    avg_tenure_days: Optional[float] = None
