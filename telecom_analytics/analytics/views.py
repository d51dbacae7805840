"""
Derived analytical views over the entity tables.

The three views stack: `customer_ltv` feeds `churn_analysis`, and
`customer_risk_features` is the per-customer feature vector handed to the
churn classifier. Each view is recomputed on every call from plain
DataFrames, so the same functions work on tables read from the database
(`load_tables`) or built by hand in tests.
"""
from datetime import date
from typing import Dict

import numpy as np
import pandas as pd
from sqlalchemy import text
from sqlalchemy.engine import Engine

from telecom_analytics.database.init_db import get_engine
from telecom_analytics.utils.logger import setup_logger

logger = setup_logger("Analytics_Views")

TABLE_DATE_COLUMNS = {
    'customers': ['signup_date'],
    'services': [],
    'subscriptions': ['start_date', 'end_date', 'churn_date'],
    'usage_metrics': ['record_date'],
    'payments': ['payment_date'],
}

USAGE_WINDOW_MONTHS = 3
NEUTRAL_SATISFACTION = 7.0

# Fill values for customers with no matching subscription/usage/payment rows
FEATURE_DEFAULTS = {
    'num_subscriptions': 0,
    'active_subscriptions': 0,
    'avg_monthly_charges': 0.0,
    'total_spent': 0.0,
    'has_churned': 0,
    'avg_data_usage': 0.0,
    'avg_call_minutes': 0.0,
    'total_support_tickets': 0,
    'avg_satisfaction': NEUTRAL_SATISFACTION,
    'failed_payments_count': 0,
    'avg_late_fees': 0.0,
    'has_paperless_billing': False,
}

FEATURE_ROUNDING = {
    'avg_monthly_charges': 2,
    'total_spent': 2,
    'avg_data_usage': 2,
    'avg_call_minutes': 0,
    'avg_late_fees': 2,
}

HIGH_RISK = "High Risk"
MEDIUM_RISK = "Medium Risk"
LOW_RISK = "Low Risk"


def load_tables(engine: Engine = None) -> Dict[str, pd.DataFrame]:
    """Reads every entity table into a DataFrame, with date columns parsed."""
    engine = engine or get_engine()
    tables = {}
    try:
        with engine.connect() as conn:
            for name, date_cols in TABLE_DATE_COLUMNS.items():
                tables[name] = pd.read_sql(text(f"SELECT * FROM {name}"), conn, parse_dates=date_cols)
                logger.info(f"Fetched {len(tables[name])} rows from '{name}'.")
    except Exception as e:
        logger.error(f"Failed to load tables: {e}")
        raise
    return tables


def _as_of(as_of) -> pd.Timestamp:
    return pd.Timestamp(as_of or date.today()).normalize()


def _prepare(df: pd.DataFrame, dates=(), numbers=()) -> pd.DataFrame:
    """Copy with date columns as datetime64 and numeric columns as numbers (Decimal/object safe)."""
    df = df.copy()
    for col in dates:
        if col in df.columns:
            df[col] = pd.to_datetime(df[col])
    for col in numbers:
        if col in df.columns:
            df[col] = pd.to_numeric(df[col], errors='coerce').astype(float)
    return df


def classify_risk(avg_satisfaction: float, total_support_tickets: float,
                  failed_payments_count: float) -> str:
    """Rule-based risk label. High Risk is tested first; the first match wins."""
    if avg_satisfaction < 5 and total_support_tickets > 2:
        return HIGH_RISK
    if avg_satisfaction < 7 or failed_payments_count > 1:
        return MEDIUM_RISK
    return LOW_RISK


def assign_risk_category(df: pd.DataFrame) -> pd.Series:
    """Vectorised `classify_risk` over a feature frame."""
    conditions = [
        (df['avg_satisfaction'] < 5) & (df['total_support_tickets'] > 2),
        (df['avg_satisfaction'] < 7) | (df['failed_payments_count'] > 1),
    ]
    return pd.Series(np.select(conditions, [HIGH_RISK, MEDIUM_RISK], default=LOW_RISK),
                     index=df.index, name='risk_category')


def customer_ltv(customers: pd.DataFrame, subscriptions: pd.DataFrame, as_of=None) -> pd.DataFrame:
    """
    Lifetime value per customer.

    A customer is "Churned" as soon as any of their subscriptions carries a
    churn date. Tenure runs from signup to the latest churn date, or to
    `as_of` for customers who never churned. Customers without
    subscriptions keep a NULL total_revenue, matching SQL SUM semantics.
    """
    as_of = _as_of(as_of)
    customers = _prepare(customers, dates=['signup_date'])
    subs = _prepare(subscriptions, dates=['churn_date'], numbers=['total_charges', 'monthly_charges'])

    agg = subs.groupby('customer_id').agg(
        total_subscriptions=('subscription_id', 'nunique'),
        total_revenue=('total_charges', lambda s: s.sum(min_count=1)),
        avg_monthly_charges=('monthly_charges', 'mean'),
        last_churn_date=('churn_date', 'max'),
    ).reset_index()

    ltv = customers[['customer_id', 'customer_name', 'customer_segment', 'signup_date']].merge(
        agg, on='customer_id', how='left'
    )
    ltv['total_subscriptions'] = ltv['total_subscriptions'].fillna(0).astype(int)
    ltv['last_churn_date'] = pd.to_datetime(ltv['last_churn_date'])
    ltv['current_status'] = np.where(ltv['last_churn_date'].isna(), 'Active', 'Churned')
    ltv['tenure_days'] = (ltv['last_churn_date'].fillna(as_of) - ltv['signup_date']).dt.days
    return ltv


def churn_analysis(ltv: pd.DataFrame) -> pd.DataFrame:
    """Segment-level churn rollup of `customer_ltv`."""
    grouped = ltv.assign(
        is_churned=(ltv['current_status'] == 'Churned').astype(int)
    ).groupby('customer_segment', dropna=False)

    summary = grouped.agg(
        total_customers=('customer_id', 'count'),
        churned_customers=('is_churned', 'sum'),
        avg_ltv=('total_revenue', 'mean'),
        avg_tenure_days=('tenure_days', 'mean'),
    ).reset_index()

    summary['churn_rate_pct'] = (100.0 * summary['churned_customers'] / summary['total_customers']).round(2)
    summary['avg_ltv'] = summary['avg_ltv'].round(2)
    summary['avg_tenure_days'] = summary['avg_tenure_days'].round(0)
    return summary[['customer_segment', 'total_customers', 'churned_customers',
                    'churn_rate_pct', 'avg_ltv', 'avg_tenure_days']]


def customer_risk_features(customers: pd.DataFrame, subscriptions: pd.DataFrame,
                           usage_metrics: pd.DataFrame, payments: pd.DataFrame,
                           as_of=None) -> pd.DataFrame:
    """
    Per-customer feature vector with a rule-derived `risk_category`.

    Each child table is aggregated per customer before joining, so a customer
    with several subscriptions, usage rows and payments is never counted once
    per combination. Usage only covers the trailing three months before
    `as_of`. Every feature column is null-free (see FEATURE_DEFAULTS).
    """
    as_of = _as_of(as_of)
    customers = _prepare(customers, dates=['signup_date'])
    subs = _prepare(subscriptions, dates=['churn_date'], numbers=['total_charges', 'monthly_charges'])
    usage = _prepare(usage_metrics, dates=['record_date'], numbers=[
        'data_usage_gb', 'call_minutes', 'support_tickets', 'satisfaction_score'
    ])
    payments = _prepare(payments, numbers=['late_fee'])

    sub_agg = subs.assign(
        churn_flag=subs['churn_date'].notna().astype(int),
        active_flag=subs['is_active'].fillna(False).astype(bool).astype(int),
        paperless_flag=subs['paperless_billing'].fillna(False).astype(bool),
    ).groupby('customer_id').agg(
        num_subscriptions=('subscription_id', 'nunique'),
        active_subscriptions=('active_flag', 'sum'),
        avg_monthly_charges=('monthly_charges', 'mean'),
        total_spent=('total_charges', 'sum'),
        has_churned=('churn_flag', 'max'),
        has_paperless_billing=('paperless_flag', 'any'),
    ).reset_index()

    window_start = as_of - pd.DateOffset(months=USAGE_WINDOW_MONTHS)
    recent = usage[usage['record_date'] >= window_start]
    usage_agg = recent.groupby('customer_id').agg(
        avg_data_usage=('data_usage_gb', 'mean'),
        avg_call_minutes=('call_minutes', 'mean'),
        total_support_tickets=('support_tickets', 'sum'),
        avg_satisfaction=('satisfaction_score', 'mean'),
    ).reset_index()

    payment_agg = payments.assign(
        failed_flag=(payments['payment_status'] == 'Failed').astype(int)
    ).groupby('customer_id').agg(
        failed_payments_count=('failed_flag', 'sum'),
        avg_late_fees=('late_fee', 'mean'),
    ).reset_index()

    features = customers[['customer_id', 'age', 'customer_segment', 'gender', 'signup_date']].copy()
    features['account_age_days'] = (as_of - features['signup_date']).dt.days
    features = (features.drop(columns=['signup_date'])
                .merge(sub_agg, on='customer_id', how='left')
                .merge(usage_agg, on='customer_id', how='left')
                .merge(payment_agg, on='customer_id', how='left'))

    for col, default in FEATURE_DEFAULTS.items():
        features[col] = features[col].fillna(default).astype(type(default))

    # risk_category must follow from the emitted columns; avg_satisfaction is never rounded
    features['risk_category'] = assign_risk_category(features)
    features = features.round(FEATURE_ROUNDING)

    logger.info(f"Built risk features for {len(features)} customers: "
                f"{features['risk_category'].value_counts().to_dict()}")
    return features[[
        'customer_id', 'age', 'customer_segment', 'gender', 'account_age_days',
        'num_subscriptions', 'active_subscriptions', 'avg_monthly_charges', 'total_spent',
        'has_churned', 'avg_data_usage', 'avg_call_minutes', 'total_support_tickets',
        'avg_satisfaction', 'failed_payments_count', 'avg_late_fees',
        'has_paperless_billing', 'risk_category'
    ]]


def build_views(tables: Dict[str, pd.DataFrame], as_of=None) -> Dict[str, pd.DataFrame]:
    """Computes all three views from a dict of entity tables."""
    ltv = customer_ltv(tables['customers'], tables['subscriptions'], as_of)
    return {
        'customer_ltv': ltv,
        'churn_analysis': churn_analysis(ltv),
        'customer_risk_features': customer_risk_features(
            tables['customers'], tables['subscriptions'],
            tables['usage_metrics'], tables['payments'], as_of
        ),
    }
