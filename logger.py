"""Structured logging infrastructure with verbosity levels and progress tracking."""

import copy
import logging
import logging.handlers
import time
from collections import Counter
from typing import Any, Dict, Optional

import colorlog

LOGGER_NAME = 'community_cms_migrator'


def setup_logging(
    verbosity: int = 0,
    log_file: Optional[str] = None,
    log_format: Optional[str] = None,
    date_format: Optional[str] = None,
    level: Optional[str] = None
) -> logging.Logger:
    """
    Set up structured logging with configurable verbosity levels.

    Args:
        verbosity: Verbosity level (0=WARNING, 1=INFO, 2+=DEBUG)
        log_file: Optional path to log file
        log_format: Optional custom log format string
        date_format: Optional custom date format string
        level: Optional explicit log level string

    Returns:
        Configured logger instance
    """
    if level:
        allowed_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        level_upper = level.upper()
        if level_upper not in allowed_levels:
            raise ValueError(
                f"Invalid log level '{level}'. Must be one of: {sorted(allowed_levels)}"
            )
        log_level = getattr(logging, level_upper)
    else:
        if verbosity >= 2:
            log_level = logging.DEBUG
        elif verbosity >= 1:
            log_level = logging.INFO
        else:
            log_level = logging.WARNING

    if log_format is None:
        log_format = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

    if date_format is None:
        date_format = '%Y-%m-%d %H:%M:%S'

    # Root stays at WARNING to keep requests/urllib3 quiet
    logging.basicConfig(
        level=logging.WARNING,
        format=log_format,
        datefmt=date_format
    )

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(log_level)
    logger.propagate = False

    logger.handlers.clear()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(colorlog.ColoredFormatter(
        fmt='%(log_color)s' + log_format,
        datefmt=date_format,
        log_colors={
            'DEBUG': 'cyan',
            'INFO': 'green',
            'WARNING': 'yellow',
            'ERROR': 'red',
            'CRITICAL': 'red,bg_white',
        }
    ))
    logger.addHandler(console_handler)

    if log_file:
        try:
            file_handler = logging.handlers.RotatingFileHandler(
                log_file,
                maxBytes=10 * 1024 * 1024,  # 10MB
                backupCount=5,
                encoding='utf-8'
            )
            file_handler.setLevel(log_level)
            file_handler.setFormatter(logging.Formatter(fmt=log_format, datefmt=date_format))
            logger.addHandler(file_handler)

            logger.info(f"Logging to file: {log_file}")
            logger.info(f"Log level: {logging.getLevelName(log_level)}")
        except OSError as e:
            logger.warning(f"Failed to set up file logging: {str(e)}")
    else:
        logger.info(f"Console logging only. Level: {logging.getLevelName(log_level)}")

    return logger


PROGRESS_LOG_EVERY = 10


class ProgressTracker:
    """Counts walk outcomes for one entity level and logs a summary on exit."""

    def __init__(self, total_items: int, item_type: str = "items"):
        self.total_items = total_items
        self.item_type = item_type
        self.processed_items = 0
        self.problem_items = 0
        self.outcomes: Counter = Counter()
        self.start_time: Optional[float] = None
        self.logger = logging.getLogger(LOGGER_NAME)

    def __enter__(self) -> 'ProgressTracker':
        self.start_time = time.time()
        self.logger.info(f"Walking {self.total_items} {self.item_type}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        elapsed = time.time() - (self.start_time or time.time())
        counts = ", ".join(f"{outcome}={count}" for outcome, count in sorted(self.outcomes.items())) or "none"

        if exc_type is not None:
            self.logger.warning(
                f"Stopped after {self.processed_items}/{self.total_items} {self.item_type} "
                f"({exc_type.__name__}); outcomes: {counts}"
            )
            return

        log_method = self.logger.warning if self.problem_items else self.logger.info
        log_method(
            f"Finished {self.processed_items}/{self.total_items} {self.item_type} "
            f"in {elapsed:.1f}s; outcomes: {counts}"
        )

    def increment(self, outcome: str, problem: bool = False) -> None:
        """
        Count one finished item.

        Args:
            outcome: Outcome label, e.g. 'created' or 'skipped'
            problem: Whether the item stopped its branch of the walk
        """
        self.processed_items += 1
        self.outcomes[outcome] += 1
        if problem:
            self.problem_items += 1

        if self.processed_items % PROGRESS_LOG_EVERY == 0 or problem:
            self.logger.info(
                f"{self.processed_items}/{self.total_items} {self.item_type} done, last: {outcome}"
            )


def log_section(title: str) -> None:
    """
    Log a decorative section header.

    Args:
        title: Section title to display
    """
    logger = logging.getLogger(LOGGER_NAME)

    separator = "=" * 60
    logger.info("")
    logger.info(separator)
    logger.info(f"  {title.upper()}")
    logger.info(separator)
    logger.info("")


def log_config(config: Dict[str, Any]) -> None:
    """
    Log sanitized configuration for debugging.

    Args:
        config: Configuration dictionary to log
    """
    logger = logging.getLogger(LOGGER_NAME)

    sanitized_config = sanitize_config(config)

    log_section("Configuration")

    cms = sanitized_config.get('cms', {})
    logger.info(f"CMS Base URL: {cms.get('base_url', 'Not Set')}")
    logger.info(f"API Key: {cms.get('api_key', 'Not Set')}")
    logger.info(f"Bypass Key: {cms.get('bypass_key', 'Not Set')}")
    logger.info(f"Default Media: {cms.get('default_media', 'Not Set')}")

    logger.info("")

    paths = sanitized_config.get('paths', {})
    logger.info(f"Data Files: {paths.get('communities')}, {paths.get('projects')}, {paths.get('submissions')}")
    logger.info(f"Mapping: {paths.get('mapping')}")
    logger.info(f"Image Cache: {paths.get('cache_dir')}")
    logger.info(f"Originals: {paths.get('originals_dir')}")

    logger.info("")

    migration = sanitized_config.get('migration', {})
    logger.info(f"Legacy Host: {migration.get('legacy_host')}")
    logger.info(f"Dry Run: {migration.get('dry_run', False)}")
    logger.info(f"Auto-save Interval: {migration.get('autosave_interval', 5)}s")
    logger.info(f"Max Media Workers: {migration.get('max_media_workers', 8)}")


def sanitize_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Create a sanitized copy of configuration with sensitive fields masked.

    Args:
        config: Configuration dictionary

    Returns:
        Sanitized configuration copy
    """
    sanitized = copy.deepcopy(config)

    sensitive_fields = {
        'password', 'secret', 'api_key', 'bypass_key', 'token', 'auth_header'
    }

    def mask_sensitive(data: Any) -> Any:
        """Recursively mask sensitive fields."""
        if isinstance(data, dict):
            masked = {}
            for key, value in data.items():
                is_sensitive = any(sensitive in key.lower() for sensitive in sensitive_fields)

                if is_sensitive and isinstance(value, str):
                    masked[key] = "***REDACTED***"
                else:
                    masked[key] = mask_sensitive(value)

            return masked
        elif isinstance(data, list):
            return [mask_sensitive(item) for item in data]
        else:
            return data

    return mask_sensitive(sanitized)


__all__ = [
    'LOGGER_NAME',
    'setup_logging',
    'ProgressTracker',
    'log_section',
    'log_config',
    'sanitize_config'
]
