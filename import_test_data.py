"""Import JSON performance test reports into the SQLite results database.

Examples:

    # initialise the database and import every report in a directory
    import-test-data --init --reports ./performance-reports

    # import a single file
    import-test-data --file ./performance-reports/load-report.json

    # clear and re-import
    import-test-data --clear --reports ./performance-reports
"""
import argparse
import logging
import os
import sys

from sqlalchemy.exc import SQLAlchemyError

from database import DEFAULT_DB_PATH
from importer import TestDataImporter

DEFAULT_REPORTS_DIR = os.getenv("PERF_REPORTS_DIR", "./performance-reports")

logger = logging.getLogger("performance_db")


def configure_logging(verbose: bool = False):
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
        logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Performance test data import utility",
        epilog=__doc__,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--db",
        default=DEFAULT_DB_PATH,
        help=f"Database file path (default: {DEFAULT_DB_PATH})",
    )
    parser.add_argument(
        "--reports",
        default=DEFAULT_REPORTS_DIR,
        help=f"Reports directory (default: {DEFAULT_REPORTS_DIR})",
    )
    parser.add_argument("--file", help="Import a single file instead of a directory")
    parser.add_argument("--init", action="store_true", help="Initialize database schema")
    parser.add_argument("--clear", action="store_true", help="Clear all data before import")
    parser.add_argument("--verbose", action="store_true", help="Log every import step")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    configure_logging(args.verbose)

    importer = TestDataImporter(args.db)
    try:
        importer.connect()

        if args.init:
            importer.init_schema()

        if args.clear:
            importer.clear_data()

        if args.file:
            importer.import_file(args.file)
        else:
            importer.import_directory(args.reports)

        logger.info("Import completed successfully")
        return 0
    except (OSError, SQLAlchemyError):
        logger.exception("Import failed")
        return 1
    finally:
        importer.close()


if __name__ == "__main__":
    sys.exit(main())
