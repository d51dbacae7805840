
import os
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from telecom_analytics.utils.config import settings
from telecom_analytics.database.models import Base
from telecom_analytics.utils.logger import setup_logger

logger = setup_logger("DB_Init")

def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # SQLite ignores REFERENCES clauses unless this is set per connection
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()

def get_engine(url: str = None) -> Engine:
    """Creates an engine for the configured database (or the given URL)."""
    if url is None and settings.DB_URL is None:
        os.makedirs(settings.DATA_DIR, exist_ok=True)
    engine = create_engine(url or settings.DATABASE_URL)
    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine

def init_db(engine: Engine = None) -> Engine:
    engine = engine or get_engine()
    logger.info(f"Initializing database at: {engine.url}")

    logger.info("Creating tables...")
    Base.metadata.create_all(engine)
    logger.info("Tables created successfully.")
    return engine

def reset_db(engine: Engine = None) -> Engine:
    """Drops every table and recreates the schema from scratch."""
    engine = engine or get_engine()
    logger.info("Dropping existing tables...")
    Base.metadata.drop_all(engine)
    return init_db(engine)

if __name__ == "__main__":
    init_db()
