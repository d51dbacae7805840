"""Tests for the derived views: customer_ltv, churn_analysis, customer_risk_features."""

from datetime import date, timedelta

import pandas as pd
import pytest

from conftest import make_customers, make_payments, make_subscriptions, make_usage
from telecom_analytics.analytics.views import (
    FEATURE_DEFAULTS, assign_risk_category, build_views, churn_analysis,
    classify_risk, customer_ltv, customer_risk_features, load_tables
)
from telecom_analytics.etl.seed import seed_database

NON_NULL_FEATURES = [
    'avg_satisfaction', 'avg_monthly_charges', 'total_spent', 'avg_data_usage',
    'failed_payments_count', 'avg_late_fees', 'has_paperless_billing',
]


def _features(customers, subs=None, usage=None, payments=None, as_of=date(2025, 6, 15)):
    return customer_risk_features(
        customers,
        subs if subs is not None else make_subscriptions(),
        usage if usage is not None else make_usage(),
        payments if payments is not None else make_payments(),
        as_of,
    ).set_index('customer_id')


class TestClassifyRisk:
    """Rule order of the risk label."""

    @pytest.mark.parametrize("satisfaction,tickets,failed,expected", [
        (3.0, 4, 0, "High Risk"),
        (4.99, 3, 5, "High Risk"),        # High wins over Medium
        (4.0, 2, 0, "Medium Risk"),       # not enough tickets for High
        (5.0, 10, 0, "Medium Risk"),      # satisfaction not < 5
        (6.5, 0, 0, "Medium Risk"),
        (7.0, 0, 2, "Medium Risk"),       # failed payments alone
        (7.0, 9, 1, "Low Risk"),
        (9.5, 0, 0, "Low Risk"),
    ])
    def test_rules(self, satisfaction, tickets, failed, expected) -> None:
        assert classify_risk(satisfaction, tickets, failed) == expected

    def test_vectorised_matches_scalar(self) -> None:
        df = pd.DataFrame({
            'avg_satisfaction': [3.0, 4.0, 6.5, 7.0, 8.0],
            'total_support_tickets': [4, 2, 0, 0, 3],
            'failed_payments_count': [0, 0, 0, 2, 1],
        })
        expected = [classify_risk(*row) for row in df.itertuples(index=False)]
        assert assign_risk_category(df).tolist() == expected


class TestCustomerLTV:
    """Per-customer lifetime value."""

    @pytest.fixture
    def ltv(self, as_of):
        customers = make_customers(
            (1, 'Premium', '2024-01-01'),
            (2, 'Premium', '2025-06-01'),
            (3, 'Basic', '2024-03-01'),
        )
        subs = make_subscriptions(
            (10, 1, 50.0, 300.0, '2024-07-01', True),
            (11, 1, 70.0, 140.0, '2024-05-01', False),
            (12, 2, 80.0, 80.0, None, False),
        )
        return customer_ltv(customers, subs, as_of).set_index('customer_id')

    def test_aggregates(self, ltv) -> None:
        assert ltv.loc[1, 'total_subscriptions'] == 2
        assert ltv.loc[1, 'total_revenue'] == pytest.approx(440.0)
        assert ltv.loc[1, 'avg_monthly_charges'] == pytest.approx(60.0)
        assert ltv.loc[1, 'last_churn_date'] == pd.Timestamp('2024-07-01')

    def test_status(self, ltv) -> None:
        assert ltv.loc[1, 'current_status'] == 'Churned'
        assert ltv.loc[2, 'current_status'] == 'Active'
        assert ltv.loc[3, 'current_status'] == 'Active'

    def test_tenure(self, ltv) -> None:
        assert ltv.loc[1, 'tenure_days'] == 182   # signup -> last churn
        assert ltv.loc[2, 'tenure_days'] == 14    # signup -> as_of

    def test_customer_without_subscriptions(self, ltv) -> None:
        assert ltv.loc[3, 'total_subscriptions'] == 0
        assert pd.isna(ltv.loc[3, 'total_revenue'])


class TestChurnAnalysis:
    """Segment rollup consistency with customer_ltv."""

    def test_rates(self, as_of) -> None:
        customers = make_customers(
            (1, 'Premium', '2024-01-01'), (2, 'Premium', '2024-01-01'),
            (3, 'Basic', '2024-01-01'), (4, 'Basic', '2024-01-01'), (5, 'Basic', '2024-01-01'),
        )
        subs = make_subscriptions(
            (1, 1, 50.0, 100.0, '2024-03-01', False),
            (2, 2, 50.0, 200.0, None, False),
            (3, 3, 50.0, 300.0, '2024-02-01', False),
            (4, 4, 50.0, 400.0, None, False),
            (5, 5, 50.0, 500.0, None, False),
        )
        ltv = customer_ltv(customers, subs, as_of)
        summary = churn_analysis(ltv).set_index('customer_segment')

        assert summary.loc['Premium', 'total_customers'] == 2
        assert summary.loc['Premium', 'churned_customers'] == 1
        assert summary.loc['Premium', 'churn_rate_pct'] == 50.0
        assert summary.loc['Premium', 'avg_ltv'] == 150.0
        assert summary.loc['Basic', 'churn_rate_pct'] == 33.33
        assert summary.loc['Basic', 'avg_ltv'] == 400.0

        for segment, row in summary.iterrows():
            seg = ltv[ltv['customer_segment'] == segment]
            expected = round(100.0 * (seg['current_status'] == 'Churned').sum() / len(seg), 2)
            assert row['churn_rate_pct'] == expected

    def test_columns(self, as_of) -> None:
        ltv = customer_ltv(make_customers((1, 'Standard', '2024-01-01')), make_subscriptions(), as_of)
        assert list(churn_analysis(ltv).columns) == [
            'customer_segment', 'total_customers', 'churned_customers',
            'churn_rate_pct', 'avg_ltv', 'avg_tenure_days'
        ]


class TestCustomerRiskFeatures:
    """Feature vector, null-safe defaults and risk label."""

    def test_high_risk_scenario(self) -> None:
        customers = make_customers((1, 'Standard', '2023-01-01'))
        subs = make_subscriptions((1, 1, 80.0, 960.0, '2025-06-10', True))
        usage = make_usage(
            (1, '2025-04-01', 20.0, 2, 2),
            (1, '2025-05-01', 30.0, 1, 3),
            (1, '2025-06-01', None, 1, 4),
        )
        row = _features(customers, subs, usage).loc[1]
        assert row['avg_satisfaction'] == 3.0
        assert row['total_support_tickets'] == 4
        assert row['has_churned'] == 1
        assert row['avg_data_usage'] == 25.0
        assert row['risk_category'] == "High Risk"

    def test_customer_with_no_activity_uses_defaults(self) -> None:
        row = _features(make_customers((7, 'Basic', '2025-01-01'))).loc[7]
        for col in NON_NULL_FEATURES:
            assert not pd.isna(row[col]), col
            assert row[col] == FEATURE_DEFAULTS[col], col
        assert row['avg_satisfaction'] == 7
        assert row['num_subscriptions'] == 0
        assert row['has_churned'] == 0
        assert not row['has_paperless_billing']
        assert row['risk_category'] == "Low Risk"

    def test_medium_risk_from_satisfaction_alone(self) -> None:
        customers = make_customers((2, 'Premium', '2024-01-01'))
        subs = make_subscriptions((1, 2, 60.0, 600.0, None, False))
        usage = make_usage((2, '2025-05-01', 10.0, 0, 6), (2, '2025-06-01', 10.0, 0, 7))
        payments = make_payments((2, '2025-05-01', 60.0, 'Success', 0.0))
        row = _features(customers, subs, usage, payments).loc[2]
        assert row['avg_satisfaction'] == 6.5
        assert row['failed_payments_count'] == 0
        assert row['risk_category'] == "Medium Risk"

    def test_usage_window_is_last_three_months(self) -> None:
        customers = make_customers((3, 'Basic', '2023-01-01'))
        usage = make_usage(
            (3, '2025-03-14', 100.0, 5, 1),   # one day outside the window
            (3, '2025-03-15', 40.0, 1, 9),    # window boundary, included
        )
        row = _features(customers, usage=usage).loc[3]
        assert row['avg_satisfaction'] == 9.0
        assert row['total_support_tickets'] == 1
        assert row['avg_data_usage'] == 40.0

    def test_only_old_usage_falls_back_to_neutral(self) -> None:
        customers = make_customers((4, 'Basic', '2023-01-01'))
        usage = make_usage((4, '2025-01-01', 100.0, 5, 1))
        row = _features(customers, usage=usage).loc[4]
        assert row['avg_satisfaction'] == 7
        assert row['total_support_tickets'] == 0
        assert row['risk_category'] == "Low Risk"

    def test_all_null_data_usage_defaults_to_zero(self) -> None:
        customers = make_customers((5, 'Basic', '2023-01-01'))
        usage = make_usage((5, '2025-06-01', None, 0, 8))
        row = _features(customers, usage=usage).loc[5]
        assert row['avg_data_usage'] == 0.0

    def test_joins_do_not_multiply_rows(self) -> None:
        customers = make_customers((6, 'Standard', '2024-01-01'))
        subs = make_subscriptions(
            (1, 6, 50.0, 100.0, None, False),
            (2, 6, 100.0, 200.0, None, True),
        )
        usage = make_usage((6, '2025-05-01', 10.0, 1, 8), (6, '2025-06-01', 20.0, 1, 8))
        payments = make_payments(
            (6, '2025-04-01', 150.0, 'Success', 0.0),
            (6, '2025-05-01', 150.0, 'Failed', 0.0),
            (6, '2025-06-01', 150.0, 'Success', 3.0),
        )
        row = _features(customers, subs, usage, payments).loc[6]
        assert row['num_subscriptions'] == 2
        assert row['active_subscriptions'] == 2
        assert row['total_spent'] == 300.0
        assert row['avg_monthly_charges'] == 75.0
        assert row['total_support_tickets'] == 2
        assert row['failed_payments_count'] == 1
        assert row['avg_late_fees'] == 1.0
        assert bool(row['has_paperless_billing']) is True
        assert row['risk_category'] == "Low Risk"

    def test_failed_payments_trigger_medium_risk(self) -> None:
        customers = make_customers((8, 'Basic', '2024-01-01'))
        payments = make_payments(
            (8, '2025-04-01', 50.0, 'Failed', 0.0),
            (8, '2025-05-01', 50.0, 'Failed', 0.0),
            (8, '2025-06-01', 50.0, 'Pending', 0.0),
        )
        row = _features(customers, payments=payments).loc[8]
        assert row['failed_payments_count'] == 2
        assert row['risk_category'] == "Medium Risk"

    @pytest.mark.parametrize("base, last, tickets, expected", [
        (5, 4, 3, "High Risk"),     # mean 124/25 = 4.96
        (7, 6, 0, "Medium Risk"),   # mean 174/25 = 6.96
    ])
    def test_label_matches_emitted_values(self, base, last, tickets, expected) -> None:
        customers = make_customers((9, 'Basic', '2024-01-01'))
        start = date(2025, 5, 1)
        rows = [(9, start + timedelta(days=i), 1.0, 0, base) for i in range(24)]
        rows.append((9, start + timedelta(days=24), 1.0, tickets, last))
        row = _features(customers, usage=make_usage(*rows)).loc[9]
        assert row['avg_satisfaction'] == pytest.approx((24 * base + last) / 25)
        assert row['risk_category'] == expected
        assert classify_risk(row['avg_satisfaction'], row['total_support_tickets'],
                             row['failed_payments_count']) == row['risk_category']

    def test_every_emitted_row_satisfies_risk_rule(self, engine, as_of) -> None:
        seed_database(engine, n_customers=120, seed=13, as_of=as_of)
        df = build_views(load_tables(engine), as_of)['customer_risk_features']
        relabelled = [
            classify_risk(r.avg_satisfaction, r.total_support_tickets, r.failed_payments_count)
            for r in df.itertuples(index=False)
        ]
        assert relabelled == df['risk_category'].tolist()

    def test_account_age_and_columns(self) -> None:
        df = customer_risk_features(
            make_customers((1, 'Basic', '2025-06-05', 33)),
            make_subscriptions(), make_usage(), make_payments(), date(2025, 6, 15),
        )
        assert df.loc[0, 'account_age_days'] == 10
        assert df.loc[0, 'age'] == 33
        assert df.columns[-1] == 'risk_category'
        assert df[NON_NULL_FEATURES].notna().all().all()


def test_build_views_keys(as_of) -> None:
    tables = {
        'customers': make_customers((1, 'Basic', '2024-01-01')),
        'subscriptions': make_subscriptions((1, 1, 50.0, 100.0, None, False)),
        'usage_metrics': make_usage(),
        'payments': make_payments(),
    }
    views = build_views(tables, as_of)
    assert set(views) == {'customer_ltv', 'churn_analysis', 'customer_risk_features'}
    assert len(views['customer_risk_features']) == 1
