"""Fetching of legacy media by URL through the local image cache."""

import logging
from typing import Any, Dict, Optional
from urllib.parse import quote, unquote, urlparse

import requests
from requests.adapters import HTTPAdapter

from .image_cache import ImageCacheStore

logger = logging.getLogger('community_cms_migrator.fetcher.media')

DEFAULT_LEGACY_HOST = 's3.fr-par.scw.cloud'

# Characters left untouched by JavaScript's encodeURI
_ENCODE_URI_SAFE = ";,/?:@&=+$-_.!~*'()#"


class FetchError(Exception):
    """Raised when legacy media cannot be downloaded."""

    def __init__(self, url: str, message: str, status_code: Optional[int] = None):
        self.url = url
        self.status_code = status_code
        super().__init__(f"Failed to fetch {url}: {message}")


def is_legacy_host(url: Optional[str], legacy_host: str = DEFAULT_LEGACY_HOST) -> bool:
    """
    Check whether a media URL is served from the legacy object storage.

    Args:
        url: Media URL
        legacy_host: Host name of the legacy object storage

    Returns:
        True if the URL's host equals the legacy host
    """
    if not url:
        return False
    return urlparse(url).netloc == legacy_host


def filename_from_url(url: str) -> str:
    """Return the final path segment of a URL, as used for cache keys."""
    return urlparse(url).path.split('/')[-1]


def upload_filename(url: str) -> str:
    """Return the decoded filename used when uploading media fetched from ``url``."""
    return unquote(filename_from_url(url)).replace('#', '-')


def encode_uri(url: str) -> str:
    """Percent-encode a URL while keeping its reserved characters and existing escapes."""
    return quote(url, safe=_ENCODE_URI_SAFE + '%')


class MediaFetcher:
    """Resolves media URLs to bytes, preferring the local cache over a download."""

    DEFAULT_TIMEOUT = 60

    def __init__(
        self,
        cache: ImageCacheStore,
        timeout: int = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize media fetcher.

        Args:
            cache: Image cache store consulted before any download
            timeout: Request timeout in seconds
            session: Optional preconfigured session (no auth headers are sent)
        """
        self.cache = cache
        self.timeout = timeout

        if session is None:
            session = requests.Session()
            adapter = HTTPAdapter(pool_maxsize=16)
            session.mount('http://', adapter)
            session.mount('https://', adapter)
        self.session = session

        self.downloads = 0

    @classmethod
    def from_config(cls, config: Dict[str, Any], cache: ImageCacheStore) -> 'MediaFetcher':
        return cls(
            cache=cache,
            timeout=config.get('advanced', {}).get('fetch_timeout', cls.DEFAULT_TIMEOUT)
        )

    def fetch_or_cache(self, folder: str, url: str, force_invalidate: bool = False) -> bytes:
        """
        Return the bytes for ``url``, downloading and caching them on a local miss.

        Args:
            folder: Cache folder (legacy community or project id)
            url: Media URL
            force_invalidate: Discard any cached copy before resolving

        Returns:
            Media bytes

        Raises:
            FetchError: If the download fails
        """
        filename = filename_from_url(url)

        cached = self.cache.resolve(folder, filename, force_invalidate=force_invalidate)
        if cached is not None:
            return cached

        data = self._download(url)
        self.cache.store(folder, filename, data)
        return data

    def find_cached(self, folder: str, url: str) -> Optional[bytes]:
        """Look up ``url`` locally only; never issues a request."""
        return self.cache.resolve(folder, filename_from_url(url))

    def _download(self, url: str) -> bytes:
        encoded = encode_uri(url)
        logger.debug(f"GET {encoded}")

        try:
            response = self.session.get(encoded, timeout=self.timeout)
        except requests.RequestException as e:
            raise FetchError(url, str(e)) from e

        if not 200 <= response.status_code < 300:
            raise FetchError(url, f"HTTP {response.status_code}", status_code=response.status_code)

        self.downloads += 1
        logger.info(f"Downloaded {len(response.content)} bytes from {url}")
        return response.content


__all__ = [
    'DEFAULT_LEGACY_HOST',
    'FetchError',
    'MediaFetcher',
    'encode_uri',
    'filename_from_url',
    'is_legacy_host',
    'upload_filename'
]
