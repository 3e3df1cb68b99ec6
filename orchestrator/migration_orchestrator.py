"""
Migration orchestrator walking the legacy community hierarchy.

This module sequences the migration: every community in export order, then
its projects, then each project's submissions. Each entity migration returns
a MigrationResult and the orchestrator decides from its outcome whether to
descend into the children.
"""

import json
import logging
import time
from functools import partial
from typing import Any, Callable, Dict, List, Optional

from tqdm import tqdm

from fetchers.media_fetcher import DEFAULT_LEGACY_HOST, FetchError, MediaFetcher, is_legacy_host, upload_filename
from fetchers.snapshot_loader import LegacySnapshot
from importers.cms_client import CmsApiError, CmsClient
from importers.content_transformer import ContentTransformer
from importers.id_mapping_tracker import IdMappingTracker
from importers.media_uploader import ProjectMediaUploader
from logger import ProgressTracker, log_section
from models import (
    EntityKind,
    LegacyCommunity,
    LegacyProject,
    LegacySubmission,
    MigrationOutcome,
    MigrationResult,
    legacy_date_to_iso
)
from orchestrator.migration_report import MigrationReport

logger = logging.getLogger('community_cms_migrator.orchestrator')

COMMUNITY_ICON_FOLDER = 'guilds'


class MigrationOrchestrator:
    """Walks communities, projects and submissions and migrates each one."""

    def __init__(
        self,
        config: Dict[str, Any],
        snapshot: LegacySnapshot,
        tracker: IdMappingTracker,
        client: CmsClient,
        fetcher: MediaFetcher,
        transformer: Optional[ContentTransformer] = None,
        media_uploader: Optional[ProjectMediaUploader] = None,
        legacy_host_predicate: Optional[Callable[[Optional[str]], bool]] = None,
        logger: Optional[logging.Logger] = None,
        dry_run: bool = False
    ):
        """
        Initialize migration orchestrator.

        Args:
            config: Configuration dictionary
            snapshot: Loaded legacy export
            tracker: Id mapping and run state
            client: CMS client
            fetcher: Media fetcher backed by the image cache
            transformer: Markdown to rich-text transformer (created if omitted)
            media_uploader: Project media fan-out (created if omitted)
            legacy_host_predicate: Tells whether a URL lives on the legacy storage
            logger: Optional logger instance
            dry_run: Log what would be created without remote calls or state changes
        """
        self.config = config
        self.snapshot = snapshot
        self.tracker = tracker
        self.client = client
        self.fetcher = fetcher
        self.logger = logger or logging.getLogger('community_cms_migrator.orchestrator')
        self.dry_run = dry_run

        migration_config = config.get('migration', {})
        self.default_media = config.get('cms', {}).get('default_media')
        self.show_progress = migration_config.get('progress_bars', True)

        if legacy_host_predicate is None:
            legacy_host_predicate = partial(
                is_legacy_host, legacy_host=migration_config.get('legacy_host', DEFAULT_LEGACY_HOST)
            )
        self.is_legacy_host = legacy_host_predicate

        self.transformer = transformer or ContentTransformer()
        self.media_uploader = media_uploader or ProjectMediaUploader(
            fetcher,
            client,
            self.is_legacy_host,
            max_workers=migration_config.get('max_media_workers', 8)
        )

        self.report = MigrationReport()

        self.logger.info(f"MigrationOrchestrator initialized (dry_run={self.dry_run})")

    def run(self) -> Dict[str, Any]:
        """
        Migrate every community of the snapshot, sequentially and in order.

        Returns:
            Migration report dictionary
        """
        log_section("Migrating communities")
        start_time = time.time()

        communities = self.snapshot.communities

        with ProgressTracker(len(communities), "communities") as progress:
            iterator = communities
            if self.show_progress:
                iterator = tqdm(communities, desc="Communities", unit="community")

            for community in iterator:
                result = self._guarded(EntityKind.COMMUNITY, community.id, self.migrate_community, community)
                progress.increment(result.outcome.value, problem=not result.descend)

                if result.descend:
                    for project in self.snapshot.projects_for(community):
                        self._walk_project(project)
                        self.logger.info(f"Migrated project {project.title}")

                if result.outcome == MigrationOutcome.CREATED:
                    self.logger.info(f"Migrated guild {community.name}")

        duration = time.time() - start_time
        self.logger.info(f"Migration walk complete in {duration:.2f}s")

        return self.report.generate_report(
            duration,
            state_stats=self.tracker.get_statistics(),
            cache_stats=self.fetcher.cache.get_stats(),
            dry_run=self.dry_run
        )

    def _walk_project(self, project: LegacyProject) -> None:
        result = self._guarded(EntityKind.PROJECT, project.key, self.migrate_project, project)
        if not result.descend:
            return

        for submission in self.snapshot.submissions_for(project):
            self._guarded(EntityKind.SUBMISSION, submission.id, self.migrate_submission, submission)
        self.logger.info(f"Migrated all submissions for: {project.title}")

    def _guarded(self, kind: EntityKind, legacy_id: str, migrate: Callable, entity) -> MigrationResult:
        """Run one entity migration; an unexpected error becomes SKIPPED so siblings continue."""
        try:
            result = migrate(entity)
        except Exception as e:
            self.logger.error(f"Unexpected error migrating {kind.value} {legacy_id}: {e}", exc_info=True)
            result = MigrationResult(kind, str(legacy_id), MigrationOutcome.SKIPPED, message=str(e))

        self.report.record(result)
        return result

    def migrate_community(self, community: LegacyCommunity) -> MigrationResult:
        """
        Migrate one community.

        Returns:
            MigrationResult; children are walked only when ``descend`` is true
        """
        if self.tracker.is_processed(community.id):
            if self.tracker.get_community_id(community.id) is None:
                return self._result(
                    EntityKind.COMMUNITY, community.id, MigrationOutcome.SKIPPED,
                    message="Processed but not mapped"
                )
            return self._result(
                EntityKind.COMMUNITY, community.id, MigrationOutcome.ALREADY_PROCESSED,
                new_id=self.tracker.get_community_id(community.id)
            )

        payload = self.build_community_payload(community)

        if self.dry_run:
            self.logger.info(f"[dry run] Would create guild {community.name}")
            return self._result(EntityKind.COMMUNITY, community.id, MigrationOutcome.DRY_RUN)

        if community.image and not self.is_legacy_host(community.image):
            try:
                payload['icon'] = self._upload_image(COMMUNITY_ICON_FOLDER, community.image)
            except (FetchError, CmsApiError, OSError) as e:
                self.logger.error(f"Error fetching guild icon for {community.id}: {e}")
                return self._result(EntityKind.COMMUNITY, community.id, MigrationOutcome.SKIPPED, message=str(e))

        try:
            new_id = self.client.create_community(payload)
        except CmsApiError as e:
            self.logger.error(f"Failed to create guild {community.id}: {e}")
            return self._result(EntityKind.COMMUNITY, community.id, MigrationOutcome.SKIPPED, message=str(e))

        self.tracker.map_community(community.id, new_id)
        self.tracker.record_processed(community.id)
        return self._result(EntityKind.COMMUNITY, community.id, MigrationOutcome.CREATED, new_id=new_id)

    def migrate_project(self, project: LegacyProject) -> MigrationResult:
        """
        Migrate one project with its description, ogImage and media list.

        Returns:
            MigrationResult; submissions are walked only when ``descend`` is true
        """
        if self.tracker.is_processed(project.id):
            new_id = self.tracker.get_project_id(project.id)
            if new_id is None:
                return self._result(
                    EntityKind.PROJECT, project.key, MigrationOutcome.SKIPPED,
                    message="Processed but not mapped"
                )
            return self._result(EntityKind.PROJECT, project.key, MigrationOutcome.ALREADY_PROCESSED, new_id=new_id)

        payload = self.build_project_payload(project)

        if self.dry_run:
            self.logger.info(f"[dry run] Would create project {project.title}")
            return self._result(EntityKind.PROJECT, project.key, MigrationOutcome.DRY_RUN)

        if project.og_image and not self.is_legacy_host(project.og_image):
            try:
                payload['ogImage'] = self._upload_image(project.key, project.og_image)
            except (FetchError, CmsApiError, OSError) as e:
                self.logger.error(f"Error fetching project ogImage for {project.id}: {e}")
                return self._result(EntityKind.PROJECT, project.key, MigrationOutcome.SKIPPED, message=str(e))

        payload['media'] = self.media_uploader.upload_project_media(project)

        try:
            new_id = self.client.create_project(payload)
        except CmsApiError as e:
            self.logger.error(f"Failed to create project {project.id}: {e}")
            return self._result(EntityKind.PROJECT, project.key, MigrationOutcome.SKIPPED, message=str(e))

        self.tracker.map_project(project.id, new_id)
        self.tracker.record_processed(project.id)
        return self._result(EntityKind.PROJECT, project.key, MigrationOutcome.CREATED, new_id=new_id)

    def migrate_submission(self, submission: LegacySubmission) -> MigrationResult:
        """
        Migrate one submission.

        Outcomes:
            ALREADY_PROCESSED: nothing to do
            MISSING: legacy-hosted media not available locally, recorded for backfill
            SKIPPED: author icon could not be resolved
            FAILED: media or creation error, cache invalidated on the next run
            CREATED: submission created and recorded as processed
        """
        sid = submission.id

        if self.tracker.is_processed(sid):
            return self._result(EntityKind.SUBMISSION, sid, MigrationOutcome.ALREADY_PROCESSED)

        if self.dry_run:
            self.logger.info(f"[dry run] Would create submission {sid}")
            return self._result(EntityKind.SUBMISSION, sid, MigrationOutcome.DRY_RUN)

        payload: Dict[str, Any] = {
            'project': self.tracker.get_project_id(submission.project_id),
            'type': submission.type,
            'author': submission.author or 'Anonymous',
            '_status': 'published'
        }
        if submission.subtype:
            payload['subtype'] = submission.subtype
        if submission.message:
            payload['message'] = submission.message

        if submission.type == 'video' and submission.src:
            if self.is_legacy_host(submission.src):
                self.logger.error(f"Missing video for {sid}")
                return self._missing(submission, "Video on legacy storage")
            payload['url'] = submission.src

        invalidate = self.tracker.is_failed(sid)
        folder = submission.project_key

        if submission.src_icon and not self.is_legacy_host(submission.src_icon):
            try:
                data = self.fetcher.fetch_or_cache(folder, submission.src_icon, force_invalidate=invalidate)
                payload['srcIcon'] = self.client.upload_submission_media(upload_filename(submission.src_icon), data)
            except (FetchError, CmsApiError, OSError) as e:
                self.logger.error(f"Error fetching submission author icon for {sid}: {e}")
                return self._result(EntityKind.SUBMISSION, sid, MigrationOutcome.SKIPPED, message=str(e))

        if submission.type == 'image':
            if not submission.src:
                self.logger.warning(f"Nothing found for submission: {sid}")
                return self._missing(submission, "Image submission without src")

            try:
                if self.is_legacy_host(submission.src):
                    data = self.fetcher.find_cached(folder, submission.src)
                    if data is None:
                        self.logger.warning(f"Nothing found for submission: {sid}")
                        return self._missing(submission, "Legacy image not in cache or originals")
                else:
                    data = self.fetcher.fetch_or_cache(folder, submission.src, force_invalidate=invalidate)

                payload['media'] = self.client.upload_submission_media(upload_filename(submission.src), data)
            except (FetchError, CmsApiError, OSError) as e:
                self.logger.error(f"Error fetching submission image for {sid}: {e}")
                self.tracker.mark_failed(sid)
                return self._result(EntityKind.SUBMISSION, sid, MigrationOutcome.FAILED, message=str(e))

        try:
            new_id = self.client.create_submission(payload)
        except CmsApiError as e:
            self.logger.error(f"Submission creation failed for: {sid}: {e}")
            self.tracker.mark_failed(sid)
            return self._result(EntityKind.SUBMISSION, sid, MigrationOutcome.FAILED, message=str(e))

        self.tracker.record_processed(sid)
        return self._result(EntityKind.SUBMISSION, sid, MigrationOutcome.CREATED, new_id=new_id)

    def build_community_payload(self, community: LegacyCommunity) -> Dict[str, Any]:
        """Build the community payload with the default icon; the icon upload happens separately."""
        payload = {
            'name': community.name,
            'description': community.description,
            'debutDate': legacy_date_to_iso(community.debut_date),
            'invite': community.invite,
            'icon': self.default_media,
            '_status': 'published'
        }
        if community.color:
            payload['color'] = community.color
        return payload

    def build_project_payload(self, project: LegacyProject) -> Dict[str, Any]:
        """Build the project payload; ogImage and media are filled in by ``migrate_project``."""
        devprops: List[Dict[str, str]] = []
        if project.background_music:
            devprops.append({'key': 'backgroundMusic', 'value': project.background_music})
        if project.credits:
            devprops.append({'key': 'credits', 'value': json.dumps(project.credits)})
        if project.flags:
            devprops.append({'key': 'flags', 'value': json.dumps(project.flags)})

        payload = {
            'image': self.default_media,
            'organizer': self.tracker.get_community_id(project.community_id),
            'shortDescription': project.short_description,
            'slug': project.key,
            'status': project.status,
            'title': project.title,
            'description': self.transformer.transform_markdown(project.description),
            'date': legacy_date_to_iso(project.date),
            'devprops': devprops,
            '_status': 'published'
        }
        if project.links is not None:
            payload['links'] = [{'name': link.name, 'url': link.link} for link in project.links]
        return payload

    def _upload_image(self, folder: str, url: str) -> str:
        data = self.fetcher.fetch_or_cache(folder, url)
        return self.client.upload_media(upload_filename(url), data)

    def _missing(self, submission: LegacySubmission, message: str) -> MigrationResult:
        self.tracker.record_missing(submission)
        return self._result(EntityKind.SUBMISSION, submission.id, MigrationOutcome.MISSING, message=message)

    @staticmethod
    def _result(
        kind: EntityKind,
        legacy_id: Any,
        outcome: MigrationOutcome,
        new_id: Optional[str] = None,
        message: Optional[str] = None
    ) -> MigrationResult:
        return MigrationResult(kind, str(legacy_id), outcome, new_id=new_id, message=message)


__all__ = ['MigrationOrchestrator']
