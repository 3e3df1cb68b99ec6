"""Filesystem-backed image cache with a read-only originals fallback."""

import logging
import os
from typing import Any, Dict, Optional
from urllib.parse import unquote

logger = logging.getLogger('community_cms_migrator.fetcher.cache')


class ImageCacheStore:
    """
    Resolves cached media by ``(folder, filename)``.

    Lookup order is the writable cache directory, then the pre-seeded
    originals directory (raw and URL-decoded filename). Hits outside the
    cache are written back into it.
    """

    def __init__(self, cache_dir: str = './images/cache', originals_dir: str = './images/orig'):
        """
        Initialize image cache store.

        Args:
            cache_dir: Writable cache directory root
            originals_dir: Read-only directory of pre-seeded original files
        """
        self.cache_dir = os.path.abspath(cache_dir)
        self.originals_dir = os.path.abspath(originals_dir)

        self.stats = {
            'hits': 0,
            'original_hits': 0,
            'misses': 0,
            'invalidations': 0,
            'writes': 0
        }

        logger.debug(f"Image cache: cache={self.cache_dir}, originals={self.originals_dir}")

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'ImageCacheStore':
        """Create store from the ``paths`` section of the configuration."""
        paths = config.get('paths', {})
        return cls(
            cache_dir=paths.get('cache_dir', './images/cache'),
            originals_dir=paths.get('originals_dir', './images/orig')
        )

    def resolve(self, folder: str, filename: str, force_invalidate: bool = False) -> Optional[bytes]:
        """
        Look up an image locally.

        Args:
            folder: Legacy community or project id the image belongs to
            filename: Final path segment of the image URL
            force_invalidate: Drop any cached copy; only an original or a
                fresh download may then satisfy the lookup

        Returns:
            Image bytes, or None when nothing usable is stored locally
        """
        cache_file = self.cache_path(folder, filename)

        if os.path.isfile(cache_file) and force_invalidate:
            os.remove(cache_file)
            self.stats['invalidations'] += 1
            logger.info(f"Invalidated cached image: {folder}/{filename}")
        elif os.path.isfile(cache_file):
            self.stats['hits'] += 1
            logger.debug(f"Cache hit: {folder}/{filename}")
            with open(cache_file, 'rb') as f:
                return f.read()

        for candidate in self._original_candidates(folder, filename):
            if not os.path.isfile(candidate):
                continue

            with open(candidate, 'rb') as f:
                data = f.read()

            self.stats['original_hits'] += 1
            logger.debug(f"Original hit: {candidate}")
            self.store(folder, filename, data)
            return data

        self.stats['misses'] += 1
        logger.debug(f"Cache miss: {folder}/{filename}")
        return None

    def store(self, folder: str, filename: str, data: bytes) -> str:
        """
        Write image bytes into the cache directory.

        Returns:
            Path of the cached file
        """
        folder_path = os.path.join(self.cache_dir, folder)
        os.makedirs(folder_path, exist_ok=True)

        cache_file = os.path.join(folder_path, filename)
        with open(cache_file, 'wb') as f:
            f.write(data)

        self.stats['writes'] += 1
        logger.debug(f"Cached {len(data)} bytes at {cache_file}")
        return cache_file

    def cache_path(self, folder: str, filename: str) -> str:
        return os.path.join(self.cache_dir, folder, filename)

    def _original_candidates(self, folder: str, filename: str):
        raw = os.path.join(self.originals_dir, folder, filename)
        yield raw

        decoded = unquote(filename)
        if decoded != filename:
            yield os.path.join(self.originals_dir, folder, decoded)

    def get_stats(self) -> Dict[str, int]:
        """Get cache statistics."""
        return dict(self.stats)


__all__ = ['ImageCacheStore']
