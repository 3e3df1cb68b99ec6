"""Configuration loader with YAML support and environment variable substitution."""

import copy
import os
import re
from typing import Any, Dict, Optional
from urllib.parse import urlparse

import yaml

# Legacy .env variable names -> configuration paths
ENV_FALLBACKS = {
    'CMS_URL': 'cms.base_url',
    'API_KEY': 'cms.api_key',
    'BYPASS_KEY': 'cms.bypass_key',
    'DEFAULT_MEDIA': 'cms.default_media'
}

DEFAULT_CONFIG: Dict[str, Any] = {
    'cms': {
        'base_url': None,
        'api_key': None,
        'bypass_key': None,
        'default_media': None
    },
    'paths': {
        'communities': './data/guilds.json',
        'projects': './data/projects.json',
        'submissions': './data/submissions.json',
        'mapping': './data/idmap.json',
        'failed': './data/failed.json',
        'missing': './data/missing.json',
        'mapping_autosave': './data/idmap_auto.json',
        'missing_autosave': './data/missing_auto.json',
        'cache_dir': './images/cache',
        'originals_dir': './images/orig',
        'report': './data/migration_report.json'
    },
    'migration': {
        'legacy_host': 's3.fr-par.scw.cloud',
        'dry_run': False,
        'autosave_interval': 5,
        'max_media_workers': 8,
        'progress_bars': True
    },
    'advanced': {
        'request_timeout': 60,
        'fetch_timeout': 60,
        'verify_ssl': True
    },
    'logging': {
        'level': None,
        'file': None
    }
}


class ConfigurationError(ValueError):
    """Raised when required configuration is missing or invalid."""
    pass


class ConfigLoader:
    """Handles loading and validation of configuration files."""

    ENV_VAR_PATTERN = re.compile(r'\$\{([A-Za-z_][A-Za-z0-9_]*)\}')

    @classmethod
    def load(cls, config_path: Optional[str] = None) -> Dict[str, Any]:
        """
        Load configuration from YAML file with environment variable substitution.

        Defaults are applied first, then the file (if given and present),
        then the legacy environment variables for values still unset.

        Args:
            config_path: Path to YAML configuration file

        Returns:
            Parsed configuration dictionary

        Raises:
            ConfigurationError: If the file is not a YAML mapping
        """
        config = copy.deepcopy(DEFAULT_CONFIG)

        if config_path and os.path.exists(config_path):
            with open(config_path, 'r', encoding='utf-8') as f:
                try:
                    config_data = yaml.safe_load(f) or {}
                except yaml.YAMLError as e:
                    raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

            if not isinstance(config_data, dict):
                raise ConfigurationError("Configuration file must contain a dictionary")

            config = _deep_merge(config, cls._substitute_env_vars_recursive(config_data))

        for env_name, path in ENV_FALLBACKS.items():
            env_value = os.getenv(env_name)
            if env_value and not get_nested(config, path):
                set_nested(config, path, env_value)

        return config

    @classmethod
    def validate(cls, config: Dict[str, Any]) -> None:
        """
        Validate configuration for required fields and correct values.

        Args:
            config: Configuration dictionary to validate

        Raises:
            ConfigurationError: If validation fails
        """
        for field in ('cms.base_url', 'cms.api_key', 'cms.bypass_key', 'cms.default_media'):
            cls._validate_required_field(config, field)

        cls._validate_url(get_nested(config, 'cms.base_url'), 'cms.base_url')

        for field in ('advanced.request_timeout', 'advanced.fetch_timeout', 'migration.autosave_interval'):
            value = get_nested(config, field)
            if not isinstance(value, (int, float)) or isinstance(value, bool) or value <= 0:
                raise ConfigurationError(f"{field} must be a positive number")

        workers = get_nested(config, 'migration.max_media_workers')
        if not isinstance(workers, int) or isinstance(workers, bool) or workers < 1:
            raise ConfigurationError("migration.max_media_workers must be a positive integer")

        legacy_host = get_nested(config, 'migration.legacy_host')
        if not legacy_host or not isinstance(legacy_host, str):
            raise ConfigurationError("migration.legacy_host must be a host name")

    @classmethod
    def merge_with_args(cls, config: Dict[str, Any], args) -> Dict[str, Any]:
        """
        Merge configuration file with CLI arguments.
        CLI arguments take precedence over config file values.

        Args:
            config: Base configuration dictionary
            args: CLI arguments with attributes matching config keys

        Returns:
            Merged configuration dictionary
        """
        merged = copy.deepcopy(config)
        for section in ('cms', 'paths', 'migration', 'logging'):
            merged.setdefault(section, {})

        if getattr(args, 'data_dir', None):
            data_dir = args.data_dir
            for key, filename in (
                ('communities', 'guilds.json'),
                ('projects', 'projects.json'),
                ('submissions', 'submissions.json'),
                ('mapping', 'idmap.json'),
                ('failed', 'failed.json'),
                ('missing', 'missing.json'),
                ('mapping_autosave', 'idmap_auto.json'),
                ('missing_autosave', 'missing_auto.json'),
                ('report', 'migration_report.json')
            ):
                merged['paths'][key] = os.path.join(data_dir, filename)

        if getattr(args, 'images_dir', None):
            merged['paths']['cache_dir'] = os.path.join(args.images_dir, 'cache')
            merged['paths']['originals_dir'] = os.path.join(args.images_dir, 'orig')

        if getattr(args, 'dry_run', None) is not None:
            merged['migration']['dry_run'] = args.dry_run

        if getattr(args, 'autosave_interval', None):
            merged['migration']['autosave_interval'] = args.autosave_interval

        if getattr(args, 'log_file', None):
            merged['logging']['file'] = args.log_file

        return merged

    @classmethod
    def _substitute_env_vars_recursive(cls, data: Any) -> Any:
        """Recursively substitute environment variables in data structure."""
        if isinstance(data, dict):
            return {key: cls._substitute_env_vars_recursive(value) for key, value in data.items()}
        elif isinstance(data, list):
            return [cls._substitute_env_vars_recursive(item) for item in data]
        elif isinstance(data, str):
            return cls._substitute_env_vars(data)
        else:
            return data

    @classmethod
    def _substitute_env_vars(cls, value: str) -> str:
        """Substitute environment variables in a string value."""
        def replace_match(match):
            var_name = match.group(1)
            env_value = os.getenv(var_name)
            return env_value if env_value is not None else match.group(0)

        return cls.ENV_VAR_PATTERN.sub(replace_match, value)

    @staticmethod
    def _validate_required_field(config: dict, field: str) -> None:
        """Validate that a required field exists and has a value."""
        value = get_nested(config, field)
        if value is None or value == '':
            raise ConfigurationError(f"Missing required configuration: {field}")

        if isinstance(value, str) and '${' in value:
            match = ConfigLoader.ENV_VAR_PATTERN.search(value)
            var_name = match.group(1) if match else value
            raise ConfigurationError(
                f"Configuration field '{field}' contains unsubstituted environment variable: {value}. "
                f"Please set the {var_name} environment variable or provide a value in config file."
            )

    @staticmethod
    def _validate_url(url: str, field_name: str) -> None:
        """Validate URL format."""
        parsed = urlparse(url)
        if not parsed.scheme or parsed.scheme not in ['http', 'https']:
            raise ConfigurationError(f"{field_name} must use http or https scheme: {url}")
        if not parsed.netloc:
            raise ConfigurationError(f"{field_name} missing hostname: {url}")


def get_nested(config: dict, path: str, default: Any = None) -> Any:
    """Safely retrieve nested configuration values using dot notation.

    Args:
        config: Configuration dictionary
        path: Dot-separated path (e.g., "cms.base_url")
        default: Default value if path doesn't exist

    Returns:
        Value at the nested path or default
    """
    keys = path.split('.')
    value = config

    for key in keys:
        if isinstance(value, dict) and key in value:
            value = value[key]
        else:
            return default

    return value


def set_nested(config: dict, path: str, value: Any) -> None:
    """Set a nested configuration value using dot notation, creating sections as needed."""
    keys = path.split('.')
    target = config
    for key in keys[:-1]:
        target = target.setdefault(key, {})
    target[keys[-1]] = value


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


__all__ = ['ConfigLoader', 'ConfigurationError', 'DEFAULT_CONFIG', 'get_nested', 'set_nested']
