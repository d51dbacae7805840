
from typing import List, Tuple

import pandas as pd

class FeatureConfig:
    """
    Configuration for the `customer_risk_features` table.
    Acts as the single source of truth for what a churn model may train on.
    """

    # --- 1. Target Variable ---
    TARGET: str = "has_churned"

    # --- 2. Identity Column (Exclude from training) ---
    IDENTIFIER: str = "customer_id"

    # --- 3. Rule-derived label (auxiliary signal, optional input) ---
    LABEL: str = "risk_category"

    # --- 4. Leakage & Irrelevant Columns ---
    EXCLUDE_COLUMNS: List[str] = [
        "customer_id",
        "has_churned",          # Target
        "active_subscriptions", # LEAKAGE: a churned subscription is inactive
        "risk_category",        # Derived from the feature columns themselves
    ]

    # --- 5. Feature Groups ---

    DEMOGRAPHIC_FEATURES: List[str] = [
        "age",
        "gender",
        "customer_segment",
    ]

    ACCOUNT_FEATURES: List[str] = [
        "account_age_days",
        "num_subscriptions",
        "has_paperless_billing",
    ]

    USAGE_FEATURES: List[str] = [
        "avg_data_usage",
        "avg_call_minutes",
        "total_support_tickets",
        "avg_satisfaction",     # 1-10, 7 when no recent usage
    ]

    FINANCIAL_FEATURES: List[str] = [
        "avg_monthly_charges",
        "total_spent",
        "failed_payments_count",
        "avg_late_fees",
    ]

    @classmethod
    def get_all_features(cls) -> List[str]:
        """Returns flattened list of all input features."""
        return (
            cls.DEMOGRAPHIC_FEATURES +
            cls.ACCOUNT_FEATURES +
            cls.USAGE_FEATURES +
            cls.FINANCIAL_FEATURES
        )

    @classmethod
    def get_categorical_features(cls) -> List[str]:
        return ["gender", "customer_segment", "has_paperless_billing"]

    @classmethod
    def get_numeric_features(cls) -> List[str]:
        categorical = set(cls.get_categorical_features())
        return [c for c in cls.get_all_features() if c not in categorical]


def split_features_target(df: pd.DataFrame, include_label: bool = False) -> Tuple[pd.DataFrame, pd.Series]:
    """
    Splits the feature table into model inputs and the churn target.
    With include_label=True the rule-based risk_category is kept as an extra input.
    """
    missing = [c for c in FeatureConfig.get_all_features() + [FeatureConfig.TARGET] if c not in df.columns]
    if missing:
        raise KeyError(f"Feature table is missing columns: {missing}")

    columns = FeatureConfig.get_all_features()
    if include_label:
        columns = columns + [FeatureConfig.LABEL]
    X = df[columns].copy()
    y = df[FeatureConfig.TARGET].astype(int)
    return X, y
