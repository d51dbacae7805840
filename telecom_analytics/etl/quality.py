
"""
Data quality checks for the seeded tables and the emitted views.

`check_dataset` measures the structural properties the schema is meant to
guarantee (ranges, uniqueness, referential integrity) plus the derived
total_charges rule, and reports violation counts instead of raising.
`check_feature_table` enforces the classifier's input contract and raises.
"""
import math
from datetime import date
from typing import Dict

import pandas as pd
from pydantic import BaseModel, Field, ValidationError

from telecom_analytics.analytics.schemas import RiskFeatureRow, SegmentChurnSummary
from telecom_analytics.database.models import PAYMENT_STATUSES
from telecom_analytics.etl.generate import compute_total_charges, to_date
from telecom_analytics.utils.logger import setup_logger

logger = setup_logger("Data_Quality")


class FeatureContractError(ValueError):
    """A view row breaks the contract its downstream consumer relies on."""


class QualityReport(BaseModel):
    row_counts: Dict[str, int] = Field(default_factory=dict)
    invalid_ages: int = 0
    duplicate_emails: int = 0
    invalid_subscription_dates: int = 0
    total_charges_mismatches: int = 0
    invalid_satisfaction_scores: int = 0
    duplicate_usage_records: int = 0
    invalid_payment_statuses: int = 0
    orphan_rows: Dict[str, int] = Field(default_factory=dict)
    # Not a violation: the schema does not constrain churn_date
    churn_before_start: int = 0
    null_rates: Dict[str, Dict[str, float]] = Field(default_factory=dict)

    @property
    def violations(self) -> Dict[str, int]:
        found = {
            'invalid_ages': self.invalid_ages,
            'duplicate_emails': self.duplicate_emails,
            'invalid_subscription_dates': self.invalid_subscription_dates,
            'total_charges_mismatches': self.total_charges_mismatches,
            'invalid_satisfaction_scores': self.invalid_satisfaction_scores,
            'duplicate_usage_records': self.duplicate_usage_records,
            'invalid_payment_statuses': self.invalid_payment_statuses,
        }
        found.update({f"orphan_{table}": count for table, count in self.orphan_rows.items()})
        return {name: count for name, count in found.items() if count}

    @property
    def is_valid(self) -> bool:
        return not self.violations


def _expected_total(row, as_of: date) -> float:
    start = to_date(row.start_date)
    end = to_date(row.churn_date) or as_of
    return compute_total_charges(float(row.monthly_charges), start, end)


def check_dataset(tables: Dict[str, pd.DataFrame], as_of: date = None) -> QualityReport:
    """
    Runs every structural check over the entity tables.

    `as_of` must be the date the data was generated with, since
    total_charges of never-churned subscriptions is billed up to it.
    """
    as_of = to_date(as_of) or date.today()
    customers = tables['customers']
    subs = tables['subscriptions']
    usage = tables['usage_metrics']
    payments = tables['payments']
    report = QualityReport(row_counts={name: len(df) for name, df in tables.items()})

    ages = customers['age'].dropna()
    report.invalid_ages = int(((ages < 18) | (ages > 100)).sum())
    emails = customers['email'].dropna()
    report.duplicate_emails = int(emails.duplicated().sum())

    start = pd.to_datetime(subs['start_date'])
    end = pd.to_datetime(subs['end_date'])
    churn = pd.to_datetime(subs['churn_date'])
    report.invalid_subscription_dates = int((end.notna() & (end < start)).sum())
    report.churn_before_start = int((churn.notna() & (churn < start)).sum())

    billed = subs.dropna(subset=['total_charges'])
    mismatches = [
        abs(float(row.total_charges) - _expected_total(row, as_of)) > 0.01
        for row in billed.itertuples(index=False)
    ]
    report.total_charges_mismatches = int(sum(mismatches))

    scores = usage['satisfaction_score'].dropna()
    report.invalid_satisfaction_scores = int(((scores < 1) | (scores > 10)).sum())
    usage_keys = usage[['customer_id', 'record_date']].assign(record_date=pd.to_datetime(usage['record_date']))
    report.duplicate_usage_records = int(usage_keys.duplicated().sum())

    statuses = payments['payment_status'].dropna()
    report.invalid_payment_statuses = int((~statuses.isin(PAYMENT_STATUSES)).sum())

    known = set(customers['customer_id'])
    for name in ('subscriptions', 'usage_metrics', 'payments'):
        ids = tables[name]['customer_id'].dropna()
        report.orphan_rows[name] = int((~ids.isin(known)).sum())
    if 'services' in tables:
        service_ids = subs['service_id'].dropna()
        report.orphan_rows['subscription_services'] = int(
            (~service_ids.isin(set(tables['services']['service_id']))).sum()
        )

    for name, df in tables.items():
        rates = df.isnull().mean().round(4).to_dict() if len(df) else {}
        report.null_rates[name] = {col: float(rate) for col, rate in rates.items() if rate > 0}

    if report.is_valid:
        logger.info(f"Data quality checks passed: {report.row_counts}")
    else:
        logger.warning(f"Data quality violations detected: {report.violations}")
    if report.churn_before_start:
        logger.warning(f"{report.churn_before_start} subscriptions churn before they start.")
    return report


def _clean_record(record: dict) -> dict:
    # NaN -> None so missing values fail as missing rather than as bad floats
    return {k: (None if isinstance(v, float) and math.isnan(v) else v) for k, v in record.items()}


def check_feature_table(df: pd.DataFrame) -> int:
    """
    Validates every row of `customer_risk_features` against RiskFeatureRow.
    Returns the number of rows checked; raises FeatureContractError on the first bad row.
    """
    for record in df.to_dict(orient='records'):
        try:
            RiskFeatureRow.model_validate(_clean_record(record))
        except ValidationError as e:
            logger.error(f"Feature contract broken for customer {record.get('customer_id')}")
            raise FeatureContractError(
                f"customer_risk_features row for customer {record.get('customer_id')} is invalid: {e}"
            ) from e
    logger.info(f"Feature table contract holds for {len(df)} rows.")
    return len(df)


def check_churn_summary(df: pd.DataFrame) -> int:
    """Same as `check_feature_table`, for `churn_analysis` rows."""
    for record in df.to_dict(orient='records'):
        try:
            SegmentChurnSummary.model_validate(_clean_record(record))
        except ValidationError as e:
            raise FeatureContractError(
                f"churn_analysis row for segment {record.get('customer_segment')} is invalid: {e}"
            ) from e
    return len(df)
