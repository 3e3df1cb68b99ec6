"""
REST API client for the target content-management system.

This module wraps the authenticated CMS endpoints used by the migration:
media uploads (general and submission-specific) and creation of
communities, projects and submissions.
"""

import logging
import mimetypes
from typing import Any, Dict, Optional

import requests
from requests.adapters import HTTPAdapter

logger = logging.getLogger('community_cms_migrator.importers.cms_client')


class CmsApiError(Exception):
    """Base exception for failed CMS API calls."""

    def __init__(self, message: str, status_code: Optional[int] = None, response_text: str = ''):
        self.status_code = status_code
        self.response_text = response_text
        super().__init__(message)


class UploadError(CmsApiError):
    """Raised when a media upload fails."""
    pass


class EntityCreationError(CmsApiError):
    """Raised when creating a community, project or submission fails."""
    pass


class CmsClient:
    """CMS REST client authenticated with a user API key."""

    DEFAULT_TIMEOUT = 60
    DEFAULT_ENDPOINTS = {
        'media': '/api/media',
        'submission_media': '/api/submission-media',
        'communities': '/api/guilds',
        'projects': '/api/projects',
        'submissions': '/api/submissions'
    }

    def __init__(
        self,
        base_url: str,
        api_key: str,
        bypass_key: str,
        verify_ssl: bool = True,
        timeout: int = DEFAULT_TIMEOUT,
        endpoints: Optional[Dict[str, str]] = None,
        pool_size: int = 16
    ):
        """
        Initialize CMS client.

        Args:
            base_url: CMS base URL
            api_key: User API key
            bypass_key: Rate-limit bypass key
            verify_ssl: Whether to verify SSL certificates
            timeout: Request timeout in seconds
            endpoints: Overrides for endpoint paths
            pool_size: Connection pool size (project media uploads run in parallel)
        """
        self.base_url = base_url.rstrip('/')
        self.verify_ssl = verify_ssl
        self.timeout = timeout
        self.endpoints = dict(self.DEFAULT_ENDPOINTS)
        if endpoints:
            self.endpoints.update(endpoints)

        # No retry strategy: failed calls are retried by the next run
        self.session = requests.Session()
        self.session.headers.update({
            'Authorization': f'User API-Key {api_key}',
            'X-RateLimit-Bypass': bypass_key,
            'Accept': 'application/json'
        })

        adapter = HTTPAdapter(pool_connections=pool_size, pool_maxsize=pool_size)
        self.session.mount('http://', adapter)
        self.session.mount('https://', adapter)

        logger.debug(f"Initialized CMS client for {base_url}")

    def _make_request(
        self,
        method: str,
        endpoint: str,
        error_class: type,
        json: Optional[Dict[str, Any]] = None,
        files: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Make an HTTP request and unwrap the created-object envelope.

        Args:
            method: HTTP method
            endpoint: Key into ``self.endpoints``
            error_class: CmsApiError subclass raised on failure
            json: JSON payload
            files: Files for multipart uploads

        Returns:
            The ``doc`` object of the ``{message, doc}`` envelope

        Raises:
            CmsApiError: As ``error_class`` for transport, HTTP or envelope errors
        """
        url = f"{self.base_url}{self.endpoints[endpoint]}"
        logger.debug(f"{method} {url}")

        try:
            response = self.session.request(
                method=method,
                url=url,
                json=json,
                files=files,
                verify=self.verify_ssl,
                timeout=self.timeout
            )
        except requests.RequestException as e:
            logger.error(f"Request failed: {method} {url} - {str(e)}")
            raise error_class(f"{method} {url} failed: {e}") from e

        logger.debug(f"Response status: {response.status_code}")

        if not 200 <= response.status_code < 300:
            logger.error(f"Request failed: {method} {url} - HTTP {response.status_code}")
            logger.error(f"Response: {response.text}")
            raise error_class(
                f"{method} {url} returned HTTP {response.status_code}",
                status_code=response.status_code,
                response_text=response.text
            )

        try:
            body = response.json()
        except ValueError as e:
            raise error_class(
                f"{method} {url} returned a non-JSON body",
                status_code=response.status_code,
                response_text=response.text
            ) from e

        doc = body.get('doc') if isinstance(body, dict) else None
        if not isinstance(doc, dict) or not doc.get('id'):
            raise error_class(
                f"{method} {url} returned no created document",
                status_code=response.status_code,
                response_text=response.text
            )

        logger.debug(f"{body.get('message', 'Created')}: {doc['id']}")
        return doc

    def _upload(self, endpoint: str, filename: str, data: bytes) -> str:
        mime_type, _ = mimetypes.guess_type(filename)
        files = {
            'file': (filename, data, mime_type or 'application/octet-stream')
        }
        doc = self._make_request('POST', endpoint, UploadError, files=files)
        logger.info(f"Uploaded media '{filename}' -> {doc['id']}")
        return doc['id']

    def upload_media(self, filename: str, data: bytes) -> str:
        """
        Upload a general media file (community icons, project images).

        Returns:
            ID of the created media document
        """
        return self._upload('media', filename, data)

    def upload_submission_media(self, filename: str, data: bytes) -> str:
        """
        Upload a file to the submission media collection.

        Returns:
            ID of the created media document
        """
        return self._upload('submission_media', filename, data)

    def create_community(self, payload: Dict[str, Any]) -> str:
        """Create a community and return its ID."""
        return self._make_request('POST', 'communities', EntityCreationError, json=payload)['id']

    def create_project(self, payload: Dict[str, Any]) -> str:
        """Create a project and return its ID."""
        return self._make_request('POST', 'projects', EntityCreationError, json=payload)['id']

    def create_submission(self, payload: Dict[str, Any]) -> str:
        """Create a submission and return its ID."""
        return self._make_request('POST', 'submissions', EntityCreationError, json=payload)['id']

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'CmsClient':
        """
        Create client from configuration dictionary.

        Args:
            config: Configuration dict with 'cms' section

        Returns:
            Configured CmsClient instance
        """
        cms_config = config.get('cms', {})
        advanced_config = config.get('advanced', {})

        return cls(
            base_url=cms_config.get('base_url'),
            api_key=cms_config.get('api_key'),
            bypass_key=cms_config.get('bypass_key'),
            verify_ssl=advanced_config.get('verify_ssl', True),
            timeout=advanced_config.get('request_timeout', cls.DEFAULT_TIMEOUT),
            endpoints=cms_config.get('endpoints'),
            pool_size=config.get('migration', {}).get('max_media_workers', 16)
        )


__all__ = ['CmsApiError', 'CmsClient', 'EntityCreationError', 'UploadError']
