
import os
from datetime import date
from typing import Dict

import pandas as pd
from sqlalchemy.engine import Engine

from telecom_analytics.analytics.views import load_tables, build_views
from telecom_analytics.database.init_db import get_engine, init_db, reset_db
from telecom_analytics.etl.quality import check_dataset, check_feature_table, check_churn_summary
from telecom_analytics.etl.seed import seed_database
from telecom_analytics.utils.config import settings
from telecom_analytics.utils.logger import setup_logger

logger = setup_logger("ETL_Pipeline")

def write_outputs(frames: Dict[str, pd.DataFrame], output_dir: str) -> Dict[str, str]:
    """Writes each frame to <output_dir>/<name>.csv and returns the paths."""
    os.makedirs(output_dir, exist_ok=True)
    paths = {}
    for name, df in frames.items():
        path = os.path.join(output_dir, f"{name}.csv")
        df.to_csv(path, index=False)
        paths[name] = path
        logger.info(f"Wrote {len(df)} rows to {path}")
    return paths

def run_pipeline(engine: Engine = None, as_of: date = None, output_dir: str = None,
                 reset: bool = True, n_customers: int = None, seed: int = None) -> Dict[str, pd.DataFrame]:
    """
    Batch job: schema -> seed -> validate -> aggregate -> emit.

    Returns the raw tables and the three views keyed by name. Pass
    output_dir=False to skip writing CSVs.
    """
    engine = engine or get_engine()
    as_of = as_of or date.today()
    if output_dir is None:
        output_dir = settings.PROCESSED_DIR

    # 1. Schema
    if reset:
        reset_db(engine)
    else:
        init_db(engine)

    # 2. Seed
    seed_database(engine, n_customers=n_customers, seed=seed, as_of=as_of)

    # 3. Validate raw tables
    tables = load_tables(engine)
    report = check_dataset(tables, as_of=as_of)
    if not report.is_valid:
        logger.warning(f"Continuing with data quality violations: {report.violations}")

    # 4. Aggregate
    views = build_views(tables, as_of=as_of)
    check_feature_table(views['customer_risk_features'])
    check_churn_summary(views['churn_analysis'])

    frames = {**tables, **views}

    # 5. Emit
    if output_dir:
        write_outputs(frames, output_dir)

    logger.info("Pipeline completed successfully.")
    return frames

if __name__ == "__main__":
    try:
        run_pipeline()
    except Exception as e:
        logger.error(f"Pipeline failed: {e}")
        raise
