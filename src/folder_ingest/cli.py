"""
Command-line interface for folder ingestion.

This module handles CLI argument parsing, logging configuration and the
mapping of job outcomes to exit codes.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from folder_ingest.config_models import IngestSettings
from folder_ingest.exceptions import FileProcessingError
from folder_ingest.models import FolderKind, JobStatus, LogStatus
from folder_ingest.observability import ObservabilityManager, build_hooks
from folder_ingest.service import IngestService

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="folder-ingest",
        description="Ingest CSV/XML files dropped in per-configuration folders",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Create the EMPLOYEES configuration with folders under ./data
  folder-ingest seed --base-dir ./data

  # Place files in the inbound folder
  folder-ingest upload employees.csv employees.xml

  # Process everything waiting in the inbound folder
  folder-ingest run --config-id EMPLOYEES

  # Inspect folders and import logs
  folder-ingest status
  folder-ingest logs --status PARTIALLY_TRAITED
        """
    )
    parser.add_argument("--settings", type=Path, help="Settings JSON file")
    parser.add_argument("--config-dir", help="Directory of configuration documents")
    parser.add_argument("--database-url", help="SQLAlchemy database URL")
    parser.add_argument("--config-id", help="Configuration id (default: EMPLOYEES)")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        help="Logging level")
    parser.add_argument("--metrics", default="log", choices=["none", "log", "prometheus", "statsd"],
                        help="Metrics backend")
    parser.add_argument("--statsd-host", default="localhost", help="StatsD host")
    parser.add_argument("--statsd-port", type=int, default=8125, help="StatsD port")
    parser.add_argument("--prometheus-port", type=int, help="Expose Prometheus metrics on this port")

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("run", help="Process all files waiting in the inbound folder")

    upload = sub.add_parser("upload", help="Copy files into the inbound folder")
    upload.add_argument("files", nargs="+", type=Path, help="CSV or XML files")

    sub.add_parser("status", help="List the four lifecycle folders")

    delete = sub.add_parser("delete", help="Delete inbound files")
    delete.add_argument("names", nargs="*", help="File names in the inbound folder")
    delete.add_argument("--all", action="store_true", help="Delete every inbound file")

    logs = sub.add_parser("logs", help="Show import logs")
    logs.add_argument("--id", type=int, help="Show one log with its line details")
    logs.add_argument("--file-name", help="Case-insensitive file name filter")
    logs.add_argument("--status", choices=[s.value for s in LogStatus], help="Status filter")

    seed = sub.add_parser("seed", help="Create the default EMPLOYEES configuration")
    seed.add_argument("--base-dir", required=True, help="Root directory of the DATA folders")

    return parser


def load_settings(args) -> IngestSettings:
    data = {}
    if args.settings:
        data = IngestSettings.from_json_file(str(args.settings)).model_dump()
    if args.config_dir:
        data["config_dir"] = args.config_dir
    if args.database_url:
        data["database_url"] = args.database_url
    return IngestSettings.from_dict(data)


def exit_code(treated: int, failed: int) -> int:
    """0 = every file succeeded, 1 = every file failed, 2 = partial failure."""
    if failed == 0:
        return 0
    if treated == 0:
        return 1
    return 2


def _log_summary(log) -> dict:
    return {
        "id": log.id,
        "file_name": log.file_name,
        "status": log.status,
        "created_at": log.created_at.isoformat() if log.created_at else None,
        "total_lines": log.total_lines,
        "success_lines": log.success_lines,
        "failed_lines": log.failed_lines,
    }


def cmd_run(service: IngestService, args) -> int:
    job_id = service.launch(args.config_id)
    status = service.wait(job_id)
    progress = service.get_progress(job_id)
    result = service.get_result(job_id)

    logger.info("=" * 80)
    logger.info(f"JOB {job_id} {status.value if status else 'UNKNOWN'}")
    logger.info("=" * 80)
    logger.info(f"Records: {progress.processed_records:,} processed of {progress.total_records:,}")
    logger.info(f"Duration: {progress.elapsed_seconds}s")
    for name in result.files_treated:
        logger.info(f"  treated: {name}")
    if result.files_failed:
        logger.error(f"FILE PROCESSING ERRORS ({len(result.files_failed)} files failed):")
        for failed in result.files_failed:
            logger.error(f"  {failed.file_name}: {failed.detail}")
    logger.info("=" * 80)

    if status != JobStatus.FINISHED:
        return 1
    return exit_code(len(result.files_treated), len(result.files_failed))


def cmd_upload(service: IngestService, args) -> int:
    saved = failed = 0
    for path in args.files:
        try:
            dest = service.save_inbound(path.read_bytes(), path.name, args.config_id)
            logger.info(f"Uploaded {path} -> {dest}")
            saved += 1
        except (OSError, FileProcessingError) as e:
            logger.error(f"Upload failed for {path}: {e}")
            failed += 1
    return exit_code(saved, failed)


def cmd_status(service: IngestService, args) -> int:
    print(json.dumps(service.folder_status(args.config_id), indent=2))
    return 0


def cmd_delete(service: IngestService, args) -> int:
    if args.all:
        deleted = service.delete_all_inbound(args.config_id)
        logger.info(f"Deleted {len(deleted)} inbound file(s)")
        return 0
    if not args.names:
        logger.error("Nothing to delete: give file names or --all")
        return 1
    missing = [name for name in args.names if not service.delete_inbound(name, args.config_id)]
    for name in missing:
        logger.warning(f"Not found in inbound folder: {name}")
    return exit_code(len(args.names) - len(missing), len(missing))


def cmd_logs(service: IngestService, args) -> int:
    if args.id is not None:
        log = service.get_log(args.id)
        payload = _log_summary(log)
        payload["details"] = [
            {"line_number": d.line_number, "status": d.status, "detail_problem": d.detail_problem}
            for d in log.details
        ]
        print(json.dumps(payload, indent=2))
        return 0
    if args.file_name or args.status:
        logs = service.search_logs(args.file_name, args.status)
    else:
        logs = service.list_logs()
    print(json.dumps([_log_summary(log) for log in logs], indent=2))
    return 0


def cmd_seed(service: IngestService, args) -> int:
    config = service.config_store.seed_default(args.base_dir)
    if config is None:
        logger.info("Default configuration already present")
    else:
        folders = service.folders.ensure_folders(config.config_id)
        logger.info(f"Seeded '{config.config_id}', inbound folder: {folders[FolderKind.INBOUND]}")
    return 0


COMMANDS = {
    "run": cmd_run,
    "upload": cmd_upload,
    "status": cmd_status,
    "delete": cmd_delete,
    "logs": cmd_logs,
    "seed": cmd_seed,
}


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point.

    Returns:
        Exit code: 0 = success, 1 = failure, 2 = partial failure
    """
    args = build_parser().parse_args(argv)
    logging.getLogger().setLevel(args.log_level)

    try:
        settings = load_settings(args)
        observability = ObservabilityManager(build_hooks(
            args.metrics,
            statsd_host=args.statsd_host,
            statsd_port=args.statsd_port,
            prometheus_port=args.prometheus_port,
        ))
        with IngestService(settings, observability=observability) as service:
            return COMMANDS[args.command](service, args)

    except FileNotFoundError as e:
        logger.error(f"File not found: {e}")
        return 1
    except ValidationError as e:
        logger.error(f"Validation error: {e}")
        return 1
    except FileProcessingError as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 1
    except ImportError as e:
        logger.error(f"Missing optional dependency: {e}")
        return 1
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
