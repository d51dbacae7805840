
"""
Synthetic data rules for the telecom churn dataset.

Every function takes a numpy Generator and an `as_of` date ("today") so a run
can be reproduced exactly. Frames returned here mirror the table columns in
`telecom_analytics.database.models` minus the autoincrement keys, which the
database assigns at insert time.
"""
from datetime import date, timedelta
from typing import List, Optional

import numpy as np
import pandas as pd

from telecom_analytics.database.models import PAYMENT_METHODS
from telecom_analytics.utils.logger import setup_logger

logger = setup_logger("ETL_Generate")

# --- Reference data ---
SERVICE_CATALOG = [
    # (service_name, service_type, monthly_price, setup_fee, contract_length_months)
    ("Fiber Optic 100Mbps", "Internet", 70.00, 50.00, 12),
    ("Fiber Optic 500Mbps", "Internet", 90.00, 50.00, 12),
    ("Fiber Optic 1Gbps", "Internet", 120.00, 0.00, 24),
    ("Basic TV Package", "TV", 50.00, 30.00, 12),
    ("Premium TV Package", "TV", 85.00, 30.00, 12),
    ("Unlimited Phone", "Phone", 30.00, 20.00, 12),
    ("Triple Play Bundle", "Bundle", 150.00, 100.00, 24),
    ("Double Play Bundle", "Bundle", 110.00, 80.00, 12),
]

CITIES = ['New York', 'Los Angeles', 'Chicago', 'Houston', 'Phoenix',
          'Philadelphia', 'San Antonio', 'San Diego', 'Dallas', 'San Jose']
STATES = ['NY', 'CA', 'IL', 'TX', 'AZ', 'PA', 'TX', 'CA', 'TX', 'CA']

CHURN_REASONS = ['Competitor had better price', 'Service quality issues',
                 'Moved to new location', 'Dont use service enough',
                 'Deceased', 'Unknown']

HEAVY_DATA_SERVICE_TYPES = ('Internet', 'Bundle')

# --- Distribution knobs ---
PREMIUM_THRESHOLD = 0.2     # first draw
STANDARD_THRESHOLD = 0.6    # second, independent draw
CHURN_PROBABILITY = 0.27
PAPERLESS_PROBABILITY = 0.7
USAGE_RETENTION_PROBABILITY = 0.8
DATA_USAGE_NULL_PROBABILITY = 0.1
USAGE_LOOKBACK_MONTHS = 12
PRE_CHURN_WINDOW_DAYS = 30
PAYMENT_SUCCESS_THRESHOLD = 0.85
PAYMENT_FAILED_THRESHOLD = 0.95
LATE_FEE_PROBABILITY = 0.15
LATE_FEE_RATE = 0.05


def to_date(value) -> Optional[date]:
    """Normalizes Timestamp/datetime/str/None (as read back from a DB) to a date."""
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return None
    return pd.Timestamp(value).date()


def months_between(start: date, end: date) -> int:
    """Whole calendar months elapsed from start to end (negative if end < start)."""
    months = (end.year - start.year) * 12 + (end.month - start.month)
    if months > 0 and end.day < start.day:
        months -= 1
    elif months < 0 and end.day > start.day:
        months += 1
    return months


def compute_total_charges(monthly_charges: float, start: date, end: date) -> float:
    """monthly_charges x elapsed whole months, never billing less than one month."""
    return round(monthly_charges * max(1, months_between(start, end)), 2)


def monthly_dates(start: date, end: date) -> List[date]:
    """Dates stepping one calendar month at a time from start up to end inclusive."""
    if start > end:
        return []
    stamps = pd.date_range(start=pd.Timestamp(start), end=pd.Timestamp(end),
                           freq=pd.DateOffset(months=1))
    return [ts.date() for ts in stamps]


def assign_segments(rng: np.random.Generator, n: int) -> np.ndarray:
    """
    Chained-threshold segment assignment: each branch takes its own draw, so
    Standard is 0.8 * 0.6 = 48% of customers and Basic the remaining 32%.
    """
    first = rng.random(n)
    second = rng.random(n)
    return np.where(first < PREMIUM_THRESHOLD, 'Premium',
                    np.where(second < STANDARD_THRESHOLD, 'Standard', 'Basic'))


def generate_services() -> pd.DataFrame:
    return pd.DataFrame(SERVICE_CATALOG, columns=[
        'service_name', 'service_type', 'monthly_price', 'setup_fee', 'contract_length_months'
    ])


def generate_customers(rng: np.random.Generator, n: int, as_of: date) -> pd.DataFrame:
    logger.info(f"Generating {n} customers...")
    idx = np.arange(1, n + 1)

    area = rng.integers(200, 1001, n)
    exchange = rng.integers(200, 1001, n)
    line = rng.integers(1000, 10001, n)
    signup_offsets = rng.integers(30, 1126, n)

    df = pd.DataFrame({
        'customer_name': [f"Customer_{i}" for i in idx],
        'email': [f"customer{i}@gmail.com" for i in idx],
        'phone': [f"({a}){b}-{c}" for a, b, c in zip(area, exchange, line)],
        'age': rng.integers(18, 81, n),
        'gender': np.where(rng.random(n) < 0.5, 'Male', 'Female'),
        # City and state are drawn independently, as in the reference data
        'city': rng.choice(CITIES, n),
        'state': rng.choice(STATES, n),
        'signup_date': [as_of - timedelta(days=int(d)) for d in signup_offsets],
        'customer_segment': assign_segments(rng, n),
    })
    return df


def generate_subscriptions(rng: np.random.Generator, customers: pd.DataFrame,
                           services: pd.DataFrame, as_of: date) -> pd.DataFrame:
    """
    One subscription per customer row. `customers` needs customer_id and
    signup_date; `services` needs service_id.
    """
    n = len(customers)
    logger.info(f"Generating {n} subscriptions...")

    service_ids = rng.choice(services['service_id'].to_numpy(), n)
    monthly_charges = np.round(rng.random(n) * 100 + 50, 2)
    methods = rng.choice(PAYMENT_METHODS, n)
    paperless = rng.random(n) < PAPERLESS_PROBABILITY
    churned = rng.random(n) < CHURN_PROBABILITY
    churn_offsets = rng.integers(30, 531, n)
    reasons = rng.choice(CHURN_REASONS, n)

    start_dates = [to_date(d) for d in customers['signup_date']]
    churn_dates = [
        start + timedelta(days=int(offset)) if is_churned else None
        for start, offset, is_churned in zip(start_dates, churn_offsets, churned)
    ]
    total_charges = [
        compute_total_charges(float(charge), start, churn or as_of)
        for charge, start, churn in zip(monthly_charges, start_dates, churn_dates)
    ]

    df = pd.DataFrame({
        'customer_id': customers['customer_id'].to_numpy(),
        'service_id': service_ids,
        'start_date': start_dates,
        'monthly_charges': monthly_charges,
        'total_charges': total_charges,
        'payment_method': methods,
        'paperless_billing': paperless,
        'is_active': ~churned,
        'churn_date': churn_dates,
        'churn_reason': [r if c else None for r, c in zip(reasons, churned)],
    })
    return df


def generate_usage_metrics(rng: np.random.Generator, subscriptions: pd.DataFrame,
                           as_of: date) -> pd.DataFrame:
    """
    Monthly usage rows for the last 12 months of each subscription.
    `subscriptions` needs customer_id, start_date, churn_date and service_type.

    Two independent missingness mechanisms apply: a whole month is dropped
    with probability 0.2, and data_usage_gb is NULL with probability 0.1.
    """
    window_start = (pd.Timestamp(as_of) - pd.DateOffset(months=USAGE_LOOKBACK_MONTHS)).date()
    records = []

    for sub in subscriptions.itertuples(index=False):
        start = to_date(sub.start_date)
        churn = to_date(sub.churn_date)
        dates = monthly_dates(max(start, window_start), min(churn or as_of, as_of))
        k = len(dates)
        if k == 0:
            continue

        kept = rng.random(k) < USAGE_RETENTION_PROBABILITY
        missing_data = rng.random(k) < DATA_USAGE_NULL_PROBABILITY
        if sub.service_type in HEAVY_DATA_SERVICE_TYPES:
            data_usage = rng.random(k) * 500 + 10
        else:
            data_usage = rng.random(k) * 50
        call_minutes = rng.integers(0, 1001, k)
        tickets = rng.integers(0, 6, k)
        visits = rng.integers(0, 51, k)
        logins = rng.integers(0, 31, k)
        low_scores = rng.integers(1, 4, k)
        high_scores = rng.integers(3, 11, k)

        for i, record_date in enumerate(dates):
            if not kept[i]:
                continue
            near_churn = churn is not None and record_date > churn - timedelta(days=PRE_CHURN_WINDOW_DAYS)
            records.append({
                'customer_id': sub.customer_id,
                'record_date': record_date,
                'data_usage_gb': None if missing_data[i] else round(float(data_usage[i]), 2),
                'call_minutes': int(call_minutes[i]),
                'support_tickets': int(tickets[i]),
                'website_visits': int(visits[i]),
                'app_logins': int(logins[i]),
                'satisfaction_score': int(low_scores[i] if near_churn else high_scores[i]),
            })

    df = pd.DataFrame(records, columns=[
        'customer_id', 'record_date', 'data_usage_gb', 'call_minutes', 'support_tickets',
        'website_visits', 'app_logins', 'satisfaction_score'
    ])
    # A customer holding several subscriptions still gets one row per month
    df = df.drop_duplicates(subset=['customer_id', 'record_date'], keep='first')
    logger.info(f"Generated {len(df)} usage metric rows.")
    return df


def generate_payments(rng: np.random.Generator, subscriptions: pd.DataFrame,
                      as_of: date) -> pd.DataFrame:
    """
    One payment per month from subscription start to churn (or as_of).
    `subscriptions` needs customer_id, start_date, churn_date and monthly_charges.
    """
    records = []
    for sub in subscriptions.itertuples(index=False):
        churn = to_date(sub.churn_date)
        dates = monthly_dates(to_date(sub.start_date), churn or as_of)
        k = len(dates)
        if k == 0:
            continue

        amount = round(float(sub.monthly_charges), 2)
        status_draw = rng.random(k)
        late = rng.random(k) < LATE_FEE_PROBABILITY
        statuses = np.where(status_draw < PAYMENT_SUCCESS_THRESHOLD, 'Success',
                            np.where(status_draw < PAYMENT_FAILED_THRESHOLD, 'Failed', 'Pending'))

        for i, payment_date in enumerate(dates):
            records.append({
                'customer_id': sub.customer_id,
                'payment_date': payment_date,
                'amount': amount,
                'payment_status': str(statuses[i]),
                'late_fee': round(amount * LATE_FEE_RATE, 2) if late[i] else 0.0,
            })

    df = pd.DataFrame(records, columns=[
        'customer_id', 'payment_date', 'amount', 'payment_status', 'late_fee'
    ])
    logger.info(f"Generated {len(df)} payment rows.")
    return df
