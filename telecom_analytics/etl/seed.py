
from datetime import date

import numpy as np
import pandas as pd
from sqlalchemy import text
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Engine

from telecom_analytics.database.init_db import get_engine
from telecom_analytics.etl.generate import (
    generate_services, generate_customers, generate_subscriptions,
    generate_usage_metrics, generate_payments
)
from telecom_analytics.utils.config import settings
from telecom_analytics.utils.logger import setup_logger

logger = setup_logger("ETL_Seed")

_UPSERT_DIALECTS = {
    'postgresql': postgresql.insert,
    'sqlite': sqlite.insert,
}

def skip_conflicts_on(*columns):
    """
    Builds a `DataFrame.to_sql(method=...)` callable that inserts with
    ON CONFLICT (columns) DO NOTHING. Only the named unique key is tolerated;
    CHECK and foreign key violations still raise IntegrityError.
    """
    def _insert(table, conn, keys, data_iter):
        rows = [dict(zip(keys, row)) for row in data_iter]
        if not rows:
            return 0
        dialect = conn.dialect.name
        if dialect not in _UPSERT_DIALECTS:
            raise ValueError(f"Skip-on-conflict inserts are not supported for dialect '{dialect}'")
        stmt = _UPSERT_DIALECTS[dialect](table.table).values(rows)
        stmt = stmt.on_conflict_do_nothing(index_elements=list(columns))
        result = conn.execute(stmt)
        skipped = len(rows) - result.rowcount
        if skipped:
            logger.warning(f"Skipped {skipped} rows conflicting on {columns} in '{table.name}'.")
        return result.rowcount
    return _insert

def _count(conn, table_name: str) -> int:
    return conn.execute(text(f"SELECT COUNT(*) FROM {table_name}")).scalar()

def seed_database(engine: Engine = None, n_customers: int = None, seed: int = None,
                  as_of: date = None) -> dict:
    """
    Populates an initialised schema with synthetic data, in referential order.
    Returns the number of rows inserted per table.

    Re-running against a seeded database is safe: the service catalog is only
    loaded once, duplicate emails are skipped, and only customers without a
    subscription get one.
    """
    engine = engine or get_engine()
    n_customers = settings.CUSTOMER_COUNT if n_customers is None else n_customers
    seed = settings.RANDOM_SEED if seed is None else seed
    as_of = as_of or date.today()
    rng = np.random.default_rng(seed)
    inserted = {}

    try:
        with engine.connect() as conn:
            logger.info(f"Seeding database (customers={n_customers}, seed={seed}, as_of={as_of})")

            # --- 1. SERVICES (static catalog) ---
            if _count(conn, 'services') == 0:
                services_df = generate_services()
                services_df.to_sql('services', con=conn, if_exists='append', index=False)
                inserted['services'] = len(services_df)
            else:
                logger.info("Service catalog already present, skipping.")
                inserted['services'] = 0
            services = pd.read_sql(text("SELECT service_id, service_type FROM services"), conn)

            # --- 2. CUSTOMERS ---
            customers_df = generate_customers(rng, n_customers, as_of)
            inserted['customers'] = customers_df.to_sql(
                'customers', con=conn, if_exists='append', index=False,
                method=skip_conflicts_on('email'), chunksize=500
            ) or 0
            logger.info(f"Loaded {inserted['customers']} customers.")

            # --- 3. FETCH CUSTOMER IDs FOR SUBSCRIPTIONS ---
            max_sub_id = conn.execute(
                text("SELECT COALESCE(MAX(subscription_id), 0) FROM subscriptions")
            ).scalar()
            pending = pd.read_sql(text("""
                SELECT c.customer_id, c.signup_date
                FROM customers c
                WHERE NOT EXISTS (SELECT 1 FROM subscriptions s WHERE s.customer_id = c.customer_id)
                ORDER BY c.customer_id
            """), conn)

            # --- 4. SUBSCRIPTIONS ---
            subs_df = generate_subscriptions(rng, pending, services, as_of)
            subs_df.to_sql('subscriptions', con=conn, if_exists='append', index=False, chunksize=500)
            inserted['subscriptions'] = len(subs_df)
            logger.info(f"Loaded {len(subs_df)} subscriptions.")

            # --- 5. FETCH NEW SUBSCRIPTIONS WITH SERVICE TYPE ---
            new_subs = pd.read_sql(text("""
                SELECT s.subscription_id, s.customer_id, s.start_date, s.churn_date,
                       s.monthly_charges, sv.service_type
                FROM subscriptions s
                JOIN services sv ON s.service_id = sv.service_id
                WHERE s.subscription_id > :max_id
                ORDER BY s.subscription_id
            """), conn, params={"max_id": max_sub_id})

            # --- 6. USAGE METRICS ---
            usage_df = generate_usage_metrics(rng, new_subs, as_of)
            usage_df.to_sql('usage_metrics', con=conn, if_exists='append', index=False, chunksize=500)
            inserted['usage_metrics'] = len(usage_df)

            # --- 7. PAYMENTS ---
            payments_df = generate_payments(rng, new_subs, as_of)
            payments_df.to_sql('payments', con=conn, if_exists='append', index=False, chunksize=500)
            inserted['payments'] = len(payments_df)

            conn.commit()
            logger.info(f"Seeding completed: {inserted}")

    except Exception as e:
        logger.error(f"Database seeding failed: {e}")
        raise

    return inserted

if __name__ == "__main__":
    seed_database()
