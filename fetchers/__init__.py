"""Fetchers package for reading the legacy export and its media."""

from .image_cache import ImageCacheStore
from .media_fetcher import (
    DEFAULT_LEGACY_HOST,
    FetchError,
    MediaFetcher,
    filename_from_url,
    is_legacy_host,
    upload_filename
)
from .snapshot_loader import LegacySnapshot, SnapshotError, load_snapshot, load_snapshot_from_config

__all__ = [
    'DEFAULT_LEGACY_HOST',
    'FetchError',
    'ImageCacheStore',
    'LegacySnapshot',
    'MediaFetcher',
    'SnapshotError',
    'filename_from_url',
    'is_legacy_host',
    'load_snapshot',
    'load_snapshot_from_config',
    'upload_filename'
]
