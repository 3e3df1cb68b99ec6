#!/usr/bin/env python3
"""
Community CMS Migration Tool - Main CLI Entry Point

This script migrates the legacy community export (guilds, projects and
submissions) into the CMS, resuming from the persisted id mapping of any
previous run.
"""

import argparse
import logging
import sys
from pathlib import Path

# Add project root to Python path for relative imports
current_dir = Path(__file__).parent
sys.path.insert(0, str(current_dir))

from config_loader import ConfigLoader
from fetchers import ImageCacheStore, MediaFetcher, SnapshotError, load_snapshot_from_config
from importers import CmsClient, IdMappingTracker
from logger import log_config, log_section, setup_logging
from orchestrator import MigrationOrchestrator, MigrationReport, StateGuard

# Version
__version__ = "1.0.0"

EXIT_OK = 0
EXIT_PROBLEMS = 1
EXIT_CONFIG_ERROR = 2
EXIT_INTERRUPTED = 130


def create_argument_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser for CLI."""
    parser = argparse.ArgumentParser(
        description="Migrate legacy communities, projects and submissions to the CMS",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run with a config file
  python migrate.py --config config.yaml

  # Preview without creating anything
  python migrate.py --config config.yaml --dry-run -v

  # Use another data and image directory
  python migrate.py --data-dir ./export --images-dir ./export/images

Environment:
  CMS_URL, API_KEY, BYPASS_KEY and DEFAULT_MEDIA are used when the
  corresponding cms.* values are not set in the config file.
"""
    )

    parser.add_argument(
        '--config',
        default='config.yaml',
        help='Path to configuration file (default: config.yaml)'
    )
    parser.add_argument(
        '--data-dir',
        help='Directory holding the legacy export and state files'
    )
    parser.add_argument(
        '--images-dir',
        help='Directory holding the cache/ and orig/ image folders'
    )
    parser.add_argument(
        '--dry-run',
        action=argparse.BooleanOptionalAction,
        default=None,
        help='Log what would be created without calling the CMS or changing state'
    )
    parser.add_argument(
        '--autosave-interval',
        type=float,
        help='Seconds between auto-saves of the id mapping (default: 5)'
    )
    parser.add_argument(
        '-v', '--verbose',
        action='count',
        default=0,
        help='Increase verbosity (-v for INFO, -vv for DEBUG)'
    )
    parser.add_argument(
        '--log-file',
        help='Also write logs to this file'
    )
    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}'
    )

    return parser


def run_migration(config: dict, logger: logging.Logger) -> int:
    """Load inputs, walk the legacy hierarchy and report."""
    migration_config = config.get('migration', {})
    dry_run = migration_config.get('dry_run', False)

    try:
        snapshot = load_snapshot_from_config(config)
        tracker = IdMappingTracker.from_config(config)
    except (SnapshotError, ValueError) as e:
        logger.error(f"Failed to load migration inputs: {e}")
        return EXIT_CONFIG_ERROR

    cache = ImageCacheStore.from_config(config)
    fetcher = MediaFetcher.from_config(config, cache)
    client = CmsClient.from_config(config)

    orchestrator = MigrationOrchestrator(config, snapshot, tracker, client, fetcher, logger=logger, dry_run=dry_run)

    try:
        if dry_run:
            report = orchestrator.run()
        else:
            with StateGuard(tracker, interval=migration_config.get('autosave_interval', StateGuard.DEFAULT_INTERVAL)):
                report = orchestrator.run()
    except KeyboardInterrupt:
        logger.error("Migration interrupted, state written to disk")
        return EXIT_INTERRUPTED

    report_generator = MigrationReport(logger)
    print("\n" + report_generator.format_console_report(report))

    report_path = config.get('paths', {}).get('report')
    if report_path:
        report_generator.export_json_report(report, report_path)

    problems = report.get('summary', {}).get('total_problems', 0)
    if problems > 0:
        logger.warning(f"Migration completed with {problems} problems")
        return EXIT_PROBLEMS

    logger.info("Migration completed successfully")
    return EXIT_OK


def main() -> int:
    """Main entry point for the CLI."""
    parser = create_argument_parser()
    args = parser.parse_args()

    try:
        logger = setup_logging(verbosity=args.verbose, log_file=args.log_file)

        log_section("Community CMS Migration Tool")
        logger.info(f"Version: {__version__}")

        logger.info(f"Loading configuration from {args.config}")
        config = ConfigLoader.load(args.config)

        # CLI takes precedence
        config = ConfigLoader.merge_with_args(config, args)
        ConfigLoader.validate(config)

        # Reconfigure logging with config file settings
        logging_config = config.get('logging', {})
        if logging_config.get('level') or logging_config.get('file') != args.log_file:
            logger = setup_logging(
                verbosity=args.verbose,
                log_file=logging_config.get('file'),
                level=logging_config.get('level')
            )

        log_config(config)

        return run_migration(config, logger)

    except ValueError as e:
        print(f"ERROR: Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR
    except KeyboardInterrupt:
        print("\nMigration interrupted by user", file=sys.stderr)
        return EXIT_INTERRUPTED


if __name__ == "__main__":
    sys.exit(main())
