"""
Media uploader for legacy project galleries.

Resolves every media item of a project in parallel (fetch-or-cache, then
upload) and returns the entries accepted by the CMS project ``media`` field.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Optional

from fetchers.media_fetcher import FetchError, MediaFetcher, upload_filename
from models import LegacyMedia, LegacyProject
from .cms_client import CmsApiError, CmsClient

logger = logging.getLogger('community_cms_migrator.importers.media_uploader')


class ProjectMediaUploader:
    """
    Uploads a project's media list as one fan-out/fan-in batch.

    Videos pass through as URL references. Images not hosted on the legacy
    object storage are fetched (or read from cache) and uploaded. Items that
    yield nothing are dropped from the result.
    """

    def __init__(
        self,
        fetcher: MediaFetcher,
        client: CmsClient,
        is_legacy_host: Callable[[Optional[str]], bool],
        max_workers: int = 8,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the media uploader.

        Args:
            fetcher: MediaFetcher used to resolve image bytes
            client: CmsClient used for uploads
            is_legacy_host: Predicate telling whether a URL is on the legacy storage
            max_workers: Upper bound on parallel resolutions for one project
            logger: Logger instance
        """
        self.fetcher = fetcher
        self.client = client
        self.is_legacy_host = is_legacy_host
        self.max_workers = max_workers
        self.logger = logger or logging.getLogger('community_cms_migrator.importers.media_uploader')

    def upload_project_media(self, project: LegacyProject) -> List[Dict[str, Any]]:
        """
        Resolve all media items of a project.

        All tasks complete (success or drop) before this returns.

        Args:
            project: Legacy project

        Returns:
            List of ``{'type': 'image', 'media': id}`` or ``{'type': 'video', 'url': url}``
        """
        if not project.media:
            return []

        workers = max(1, min(self.max_workers, len(project.media)))

        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [executor.submit(self._resolve_item, project, item) for item in project.media]

            results = []
            for future, item in zip(futures, project.media):
                try:
                    entry = future.result()
                except Exception as e:
                    self.logger.error(f"Media task for project {project.id} item {item.id} crashed: {e}", exc_info=True)
                    continue
                if entry is not None:
                    results.append(entry)

        self.logger.info(f"Resolved {len(results)}/{len(project.media)} media items for project {project.id}")
        return results

    def _resolve_item(self, project: LegacyProject, item: LegacyMedia) -> Optional[Dict[str, Any]]:
        if item.type == 'video':
            return {'type': 'video', 'url': item.src}

        if item.type != 'image' or not item.src:
            return None

        if self.is_legacy_host(item.src):
            self.logger.debug(f"Skipping legacy-hosted image for project {project.id}: {item.src}")
            return None

        try:
            data = self.fetcher.fetch_or_cache(project.key, item.src)
            media_id = self.client.upload_media(upload_filename(item.src), data)
        except (FetchError, CmsApiError, OSError) as e:
            self.logger.error(f"Error fetching project media for {project.id} ({item.src}): {e}")
            return None

        return {'type': 'image', 'media': media_id}


__all__ = ['ProjectMediaUploader']
