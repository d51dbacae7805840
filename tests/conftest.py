"""Shared fixtures: in-memory databases and hand-built entity tables."""

from datetime import date

import pandas as pd
import pytest

from telecom_analytics.database.init_db import get_engine, init_db

AS_OF = date(2025, 6, 15)


@pytest.fixture
def as_of() -> date:
    return AS_OF


@pytest.fixture
def engine():
    """Fresh in-memory SQLite database with the schema created."""
    engine = get_engine("sqlite://")
    init_db(engine)
    yield engine
    engine.dispose()


def make_customers(*rows) -> pd.DataFrame:
    """rows: (customer_id, segment, signup_date[, age])"""
    records = []
    for row in rows:
        customer_id, segment, signup = row[:3]
        records.append({
            'customer_id': customer_id,
            'customer_name': f"Customer_{customer_id}",
            'email': f"customer{customer_id}@gmail.com",
            'age': row[3] if len(row) > 3 else 40,
            'gender': 'Female',
            'customer_segment': segment,
            'signup_date': pd.Timestamp(signup),
        })
    return pd.DataFrame(records, columns=[
        'customer_id', 'customer_name', 'email', 'age', 'gender', 'customer_segment', 'signup_date'
    ])


def make_subscriptions(*rows) -> pd.DataFrame:
    """rows: (subscription_id, customer_id, monthly_charges, total_charges, churn_date, paperless)"""
    records = []
    for sub_id, customer_id, monthly, total, churn, paperless in rows:
        records.append({
            'subscription_id': sub_id,
            'customer_id': customer_id,
            'service_id': 1,
            'start_date': pd.Timestamp('2024-01-01'),
            'end_date': pd.NaT,
            'monthly_charges': monthly,
            'total_charges': total,
            'is_active': churn is None,
            'paperless_billing': paperless,
            'churn_date': pd.Timestamp(churn) if churn else pd.NaT,
        })
    df = pd.DataFrame(records, columns=[
        'subscription_id', 'customer_id', 'service_id', 'start_date', 'end_date',
        'monthly_charges', 'total_charges', 'is_active', 'paperless_billing', 'churn_date'
    ])
    for col in ('start_date', 'end_date', 'churn_date'):
        df[col] = pd.to_datetime(df[col])
    return df


def make_usage(*rows) -> pd.DataFrame:
    """rows: (customer_id, record_date, data_usage_gb, support_tickets, satisfaction_score)"""
    df = pd.DataFrame([
        {
            'customer_id': customer_id,
            'record_date': pd.Timestamp(record_date),
            'data_usage_gb': usage_gb,
            'call_minutes': 100,
            'support_tickets': tickets,
            'website_visits': 5,
            'app_logins': 3,
            'satisfaction_score': score,
        }
        for customer_id, record_date, usage_gb, tickets, score in rows
    ], columns=[
        'customer_id', 'record_date', 'data_usage_gb', 'call_minutes', 'support_tickets',
        'website_visits', 'app_logins', 'satisfaction_score'
    ])
    df['record_date'] = pd.to_datetime(df['record_date'])
    return df


def make_payments(*rows) -> pd.DataFrame:
    """rows: (customer_id, payment_date, amount, status, late_fee)"""
    df = pd.DataFrame([
        {
            'customer_id': customer_id,
            'payment_date': pd.Timestamp(payment_date),
            'amount': amount,
            'payment_status': status,
            'late_fee': late_fee,
        }
        for customer_id, payment_date, amount, status, late_fee in rows
    ], columns=['customer_id', 'payment_date', 'amount', 'payment_status', 'late_fee'])
    df['payment_date'] = pd.to_datetime(df['payment_date'])
    return df
