"""
Command-line interface for the medallion anomaly pipeline.

Usage:
    medallion-etl import --input <file_path> [--source <label>]
    medallion-etl bronze-to-silver
    medallion-etl silver-to-gold [--uploaded-by <user_id>]
    medallion-etl run [--uploaded-by <user_id>]
    medallion-etl import-and-run --input <file_path>
    medallion-etl logs [--limit N] [--job <job_name>]
"""

import argparse
import sys
from contextlib import contextmanager
from datetime import datetime

from dotenv import load_dotenv

from medallion_etl.config import load_settings
from medallion_etl.core.models import ImportResult, PipelineResult, StageResult
from medallion_etl.exceptions import MedallionError
from medallion_etl.observability.logger import get_logger
from medallion_etl.observability.metrics import start_metrics_server
from medallion_etl.pipeline import MedallionPipeline
from medallion_etl.warehouse import DatabaseConnectionPool, PostgresAnomalyStore

logger = get_logger(__name__)


def format_timestamp(ts: datetime | None) -> str:
    """Format timestamp for display."""
    return ts.strftime("%Y-%m-%d %H:%M:%S") if ts else "N/A"


@contextmanager
def open_pipeline(args):
    """
    Build a pipeline over PostgreSQL from command-line arguments.

    Yields:
        MedallionPipeline
    """
    settings = load_settings(args.config)
    pool = DatabaseConnectionPool(
        host=args.db_host,
        port=args.db_port,
        database=args.db_name,
        user=args.db_user,
        password=args.db_password,
    )
    pool.open()
    store = PostgresAnomalyStore(pool)
    try:
        store.verify_schema()
    except Exception:
        pool.close()
        raise
    pipeline = MedallionPipeline(store, settings=settings)
    try:
        yield pipeline
    finally:
        pipeline.close()
        pool.close()


def log_import_result(result: ImportResult) -> None:
    logger.info("=" * 60)
    logger.info("IMPORT COMPLETE")
    logger.info("=" * 60)
    logger.info(f"Total rows: {result.total_rows}")
    logger.info(f"Rows stored in bronze: {result.success_count}")
    logger.info(f"Rows failed: {result.error_count}")
    for error in result.errors:
        logger.info(f"  - {error}")
    logger.info(f"Processing log: {result.processing_log_id}")
    logger.info("=" * 60)


def log_stage_result(name: str, result: StageResult) -> None:
    logger.info("=" * 60)
    logger.info(f"{name.upper()} COMPLETE")
    logger.info("=" * 60)
    logger.info(f"Records processed: {result.records_processed}")
    logger.info(f"Records succeeded: {result.records_succeeded}")
    logger.info(f"Records failed: {result.records_failed}")
    for key, value in result.metadata.items():
        logger.info(f"{key}: {value}")
    logger.info(f"Processing log: {result.processing_log_id}")
    logger.info("=" * 60)


def log_pipeline_result(result: PipelineResult) -> None:
    log_stage_result("bronze to silver", result.bronze_to_silver)
    log_stage_result("silver to gold", result.silver_to_gold)
    logger.info(f"Pipeline success: {result.success}")


def import_command(args):
    """
    Load an export file into the bronze layer.

    Args:
        args: Command-line arguments
    """
    logger.info(f"Importing {args.input} into bronze")
    with open_pipeline(args) as pipeline:
        result = pipeline.ingest_file(args.input, args.source)
    log_import_result(result)
    if not result.success:
        sys.exit(1)


def bronze_to_silver_command(args):
    with open_pipeline(args) as pipeline:
        result = pipeline.run_bronze_to_silver()
    log_stage_result("bronze to silver", result)
    if not result.success:
        sys.exit(1)


def silver_to_gold_command(args):
    with open_pipeline(args) as pipeline:
        result = pipeline.run_silver_to_gold(args.uploaded_by)
    log_stage_result("silver to gold", result)
    if not result.success:
        sys.exit(1)


def run_command(args):
    with open_pipeline(args) as pipeline:
        result = pipeline.run_complete_pipeline(args.uploaded_by)
    log_pipeline_result(result)
    if not result.success:
        sys.exit(1)


def import_and_run_command(args):
    """
    Import a file then run the complete pipeline on the new bronze rows.

    Args:
        args: Command-line arguments
    """
    with open_pipeline(args) as pipeline:
        import_result, pipeline_result = pipeline.import_and_process(
            args.input, args.source, args.uploaded_by
        )
    log_import_result(import_result)
    if pipeline_result is None:
        logger.error("No rows were imported, pipeline not run")
        sys.exit(1)
    log_pipeline_result(pipeline_result)
    if not pipeline_result.success:
        sys.exit(1)


def logs_command(args):
    """
    Show recent processing logs.

    Args:
        args: Command-line arguments
    """
    with open_pipeline(args) as pipeline:
        runs = pipeline.list_processing_logs(limit=args.limit, job_name=args.job)

    if not runs:
        print("\nNo processing logs found")
        return

    print(f"\n{'=' * 100}")
    print("PROCESSING LOGS")
    print(f"{'=' * 100}\n")
    print(
        f"{'Started':<20} {'Job':<28} {'Status':<22} "
        f"{'Processed':>9} {'Succeeded':>9} {'Failed':>7}"
    )
    print("-" * 100)
    for run in runs:
        print(
            f"{format_timestamp(run.start_time):<20} {run.job_name:<28} {run.status.value:<22} "
            f"{run.records_processed:>9} {run.records_succeeded:>9} {run.records_failed:>7}"
        )
        if run.error_message:
            print(f"{'':<20} error: {run.error_message}")
    print()


COMMANDS = {
    "import": import_command,
    "bronze-to-silver": bronze_to_silver_command,
    "silver-to-gold": silver_to_gold_command,
    "run": run_command,
    "import-and-run": import_and_run_command,
    "logs": logs_command,
}


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        default=None,
        help="Path to pipeline YAML config (default: $PIPELINE_CONFIG or config/pipeline.yaml)"
    )
    common.add_argument(
        "--metrics-port",
        type=int,
        default=None,
        help="Expose Prometheus metrics on this port while the command runs"
    )
    common.add_argument("--db-host", default=None, help="Database host (default: $DB_HOST or localhost)")
    common.add_argument("--db-port", type=int, default=None, help="Database port (default: $DB_PORT or 5432)")
    common.add_argument("--db-name", default=None, help="Database name (default: $DB_NAME or medallion)")
    common.add_argument("--db-user", default=None, help="Database user (default: $DB_USER or pipeline)")
    common.add_argument("--db-password", default=None, help="Database password (default: $DB_PASSWORD)")

    parser = argparse.ArgumentParser(
        prog="medallion-etl",
        description="Medallion ETL pipeline for equipment anomalies",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Load an export into bronze
  medallion-etl import --input data/anomalies.csv

  # Run bronze -> silver -> gold on everything not yet processed
  medallion-etl run --uploaded-by 42

  # Import an Excel export and process it in one go
  medallion-etl import-and-run --input data/anomalies.xlsx

  # Show the last 10 silver -> gold runs
  medallion-etl logs --limit 10 --job silver_to_gold_anomalies
        """
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    import_parser = subparsers.add_parser("import", parents=[common], help="Load a CSV/XLSX file into bronze")
    import_parser.add_argument("--input", required=True, help="Path to input file")
    import_parser.add_argument("--source", default=None, help="Source label (default: file name)")

    subparsers.add_parser("bronze-to-silver", parents=[common], help="Cleanse unprocessed bronze rows")

    gold_parser = subparsers.add_parser("silver-to-gold", parents=[common], help="Promote silver records to gold")
    gold_parser.add_argument("--uploaded-by", default=None, help="User id recorded as reporter")

    run_parser = subparsers.add_parser("run", parents=[common], help="Run bronze -> silver -> gold")
    run_parser.add_argument("--uploaded-by", default=None, help="User id recorded as reporter")

    both_parser = subparsers.add_parser("import-and-run", parents=[common], help="Import a file then run the pipeline")
    both_parser.add_argument("--input", required=True, help="Path to input file")
    both_parser.add_argument("--source", default=None, help="Source label (default: file name)")
    both_parser.add_argument("--uploaded-by", default=None, help="User id recorded as reporter")

    logs_parser = subparsers.add_parser("logs", parents=[common], help="Show recent processing logs")
    logs_parser.add_argument("--limit", type=int, default=20, help="Number of runs to show (default: 20)")
    logs_parser.add_argument("--job", default=None, help="Only show runs of this job")

    return parser


def main(argv: list[str] | None = None):
    """Main CLI entry point."""
    load_dotenv()

    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    if args.metrics_port:
        start_metrics_server(args.metrics_port)
        logger.info(f"Serving metrics on port {args.metrics_port}")

    try:
        COMMANDS[args.command](args)
    except KeyboardInterrupt:
        print("\n\nInterrupted by user")
        sys.exit(130)
    except (MedallionError, ValueError, OSError) as e:
        logger.error(f"{args.command} failed: {e}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Error during {args.command}: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
