"""Database DDL beyond the ORM tables: views, the touch trigger and metadata rows.

Every statement is guarded with IF NOT EXISTS / OR IGNORE so ``init_schema``
can be run against an existing database.
"""
from sqlalchemy import text

import models  # noqa: F401  registers every table on Base.metadata
from database import Base

SCHEMA_VERSION = "1.0.0"

VIEWS = (
    # latest run per suite
    """
    CREATE VIEW IF NOT EXISTS v_latest_tests AS
    SELECT
        t.id,
        t.test_suite,
        t.url,
        t.status,
        t.overall_score,
        t.timestamp,
        t.report_location
    FROM test_runs t
    INNER JOIN (
        SELECT test_suite, MAX(timestamp) AS max_timestamp
        FROM test_runs
        GROUP BY test_suite
    ) latest ON t.test_suite = latest.test_suite AND t.timestamp = latest.max_timestamp
    """,
    # one row per Core Web Vitals run with LCP/FID/CLS pivoted into columns
    """
    CREATE VIEW IF NOT EXISTS v_cwv_summary AS
    SELECT
        t.id AS test_run_id,
        t.url,
        t.timestamp,
        t.overall_score,
        MAX(CASE WHEN cwv.metric_name = 'LCP' THEN cwv.average END) AS lcp_avg,
        MAX(CASE WHEN cwv.metric_name = 'LCP' THEN cwv.rating END) AS lcp_rating,
        MAX(CASE WHEN cwv.metric_name = 'FID' THEN cwv.average END) AS fid_avg,
        MAX(CASE WHEN cwv.metric_name = 'FID' THEN cwv.rating END) AS fid_rating,
        MAX(CASE WHEN cwv.metric_name = 'CLS' THEN cwv.average END) AS cls_avg,
        MAX(CASE WHEN cwv.metric_name = 'CLS' THEN cwv.rating END) AS cls_rating
    FROM test_runs t
    LEFT JOIN core_web_vitals cwv ON t.id = cwv.test_run_id
    WHERE t.test_suite = 'Core Web Vitals'
    GROUP BY t.id, t.url, t.timestamp, t.overall_score
    """,
    # daily score trend
    """
    CREATE VIEW IF NOT EXISTS v_performance_trends AS
    SELECT
        DATE(timestamp) AS test_date,
        test_suite,
        url,
        AVG(overall_score) AS avg_score,
        MIN(overall_score) AS min_score,
        MAX(overall_score) AS max_score,
        COUNT(*) AS test_count
    FROM test_runs
    GROUP BY DATE(timestamp), test_suite, url
    ORDER BY test_date DESC
    """,
)

TRIGGERS = (
    """
    CREATE TRIGGER IF NOT EXISTS update_test_runs_timestamp
    AFTER UPDATE ON test_runs
    BEGIN
        UPDATE test_runs SET updated_at = CURRENT_TIMESTAMP WHERE id = NEW.id;
    END
    """,
)

METADATA_ROWS = (
    ("schema_version", SCHEMA_VERSION, "Database schema version"),
    ("schema_type", "PerformanceTest", "Primary schema.org type"),
    ("created_date", "2025-11-01", "Schema creation date"),
    ("compatible_with", "schema.org/TestAction", "Schema.org vocabulary compatibility"),
    ("database_engine", "SQLite", "Database engine"),
    (
        "description",
        "Performance testing database schema compatible with schema.org vocabulary",
        "Schema description",
    ),
)


def init_schema(engine):
    Base.metadata.create_all(bind=engine)

    with engine.begin() as conn:
        for ddl in VIEWS + TRIGGERS:
            conn.execute(text(ddl))
        conn.execute(
            text(
                "INSERT OR IGNORE INTO schema_metadata (key, value, description) "
                "VALUES (:key, :value, :description)"
            ),
            [
                {"key": key, "value": value, "description": description}
                for key, value, description in METADATA_ROWS
            ],
        )
