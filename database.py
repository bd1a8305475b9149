import os
from sqlalchemy import create_engine, event, text
from sqlalchemy.orm import sessionmaker, declarative_base

DEFAULT_DB_PATH = os.getenv("PERF_TESTS_DB", "performance_tests.db")

Base = declarative_base()


def _enable_foreign_keys(dbapi_connection, connection_record):
    # sqlite leaves FK enforcement (and ON DELETE CASCADE) off per connection
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_db_engine(db_path: str = DEFAULT_DB_PATH):
    engine = create_engine(f"sqlite:///{db_path}")
    event.listen(engine, "connect", _enable_foreign_keys)

    # fail early if the file cannot be opened at all
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))

    return engine


def make_session_factory(engine):
    return sessionmaker(autoflush=False, bind=engine)
