"""
ID mapping tracker for the community migration.

This module tracks the mapping between legacy and CMS identifiers, the set
of legacy ids already fully processed, submissions whose media failed and
submissions whose media could not be found. State is loaded from and
flushed to JSON files so an interrupted run can be resumed.
"""

import json
import logging
import os
import tempfile
import threading
from typing import Any, Dict, List, Optional, Tuple, Union

from models import LegacySubmission

logger = logging.getLogger('community_cms_migrator.importers.id_mapping')

LegacyId = Union[str, int]


def _processed_key(legacy_id: LegacyId) -> Tuple[str, str]:
    return type(legacy_id).__name__, str(legacy_id)


def write_json_atomic(path: str, data: Any) -> None:
    """Write ``data`` as indented JSON, replacing ``path`` in one step."""
    directory = os.path.dirname(os.path.abspath(path))
    os.makedirs(directory, exist_ok=True)

    fd, tmp_path = tempfile.mkstemp(prefix='.tmp-', suffix='.json', dir=directory)
    try:
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=4, ensure_ascii=False)
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise


class IdMappingTracker:
    """Tracks legacy -> CMS id mappings plus processed, failed and missing state."""

    def __init__(
        self,
        mapping_path: str = './data/idmap.json',
        failed_path: str = './data/failed.json',
        missing_path: str = './data/missing.json',
        autosave_mapping_path: str = './data/idmap_auto.json',
        autosave_missing_path: str = './data/missing_auto.json'
    ):
        """
        Initialize an empty tracker.

        Args:
            mapping_path: Primary location of the id mapping snapshot
            failed_path: Location of the failed submission id list
            missing_path: Location of the missing submissions report
            autosave_mapping_path: Auto-save location for the mapping
            autosave_missing_path: Auto-save location for the missing report
        """
        self.mapping_path = mapping_path
        self.failed_path = failed_path
        self.missing_path = missing_path
        self.autosave_mapping_path = autosave_mapping_path
        self.autosave_missing_path = autosave_missing_path

        # Legacy community id -> CMS id
        self._communities: Dict[str, str] = {}

        # Legacy project id -> CMS id
        self._projects: Dict[str, str] = {}

        # Processed ids keep their JSON type; "1" and 1 are different entries
        self._processed: List[LegacyId] = []
        self._processed_keys = set()

        self._failed: List[str] = []
        self._failed_keys = set()

        self._missing: List[Dict[str, Any]] = []
        self._missing_keys = set()

        # Flushes may come from the main thread, the auto-save timer or a signal handler
        self._lock = threading.RLock()

    @classmethod
    def load(
        cls,
        mapping_path: str = './data/idmap.json',
        failed_path: str = './data/failed.json',
        missing_path: str = './data/missing.json',
        autosave_mapping_path: str = './data/idmap_auto.json',
        autosave_missing_path: str = './data/missing_auto.json'
    ) -> 'IdMappingTracker':
        """
        Create a tracker from the persisted mapping and failed list.

        Absent files are treated as empty state. The missing report is
        rebuilt on every run, so it is not loaded.

        Raises:
            ValueError: If a state file exists but is not valid JSON of the expected shape
        """
        tracker = cls(
            mapping_path=mapping_path,
            failed_path=failed_path,
            missing_path=missing_path,
            autosave_mapping_path=autosave_mapping_path,
            autosave_missing_path=autosave_missing_path
        )

        mapping = _read_state(mapping_path, {})
        if not isinstance(mapping, dict):
            raise ValueError(f"{mapping_path} must contain a JSON object")

        communities = mapping.get('guilds', mapping.get('communities', {})) or {}
        for legacy_id, new_id in communities.items():
            tracker._communities[str(legacy_id)] = new_id
        for legacy_id, new_id in (mapping.get('projects') or {}).items():
            tracker._projects[str(legacy_id)] = new_id
        for legacy_id in mapping.get('successfullyProcessed') or []:
            tracker.record_processed(legacy_id)

        failed = _read_state(failed_path, [])
        if not isinstance(failed, list):
            raise ValueError(f"{failed_path} must contain a JSON array")
        for legacy_id in failed:
            tracker.mark_failed(legacy_id)

        logger.info(
            f"Loaded id mapping: {len(tracker._communities)} communities, "
            f"{len(tracker._projects)} projects, {len(tracker._processed)} processed, "
            f"{len(tracker._failed)} failed"
        )
        return tracker

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'IdMappingTracker':
        """Load a tracker using the file locations in the ``paths`` section."""
        paths = config.get('paths', {})
        return cls.load(
            mapping_path=paths.get('mapping', './data/idmap.json'),
            failed_path=paths.get('failed', './data/failed.json'),
            missing_path=paths.get('missing', './data/missing.json'),
            autosave_mapping_path=paths.get('mapping_autosave', './data/idmap_auto.json'),
            autosave_missing_path=paths.get('missing_autosave', './data/missing_auto.json')
        )

    def is_processed(self, legacy_id: LegacyId) -> bool:
        """Check whether a legacy community, project or submission was fully processed."""
        return _processed_key(legacy_id) in self._processed_keys

    def record_processed(self, legacy_id: LegacyId) -> None:
        """Mark a legacy id as fully processed."""
        with self._lock:
            key = _processed_key(legacy_id)
            if key in self._processed_keys:
                return
            self._processed_keys.add(key)
            self._processed.append(legacy_id)
        logger.debug(f"Processed: {legacy_id}")

    def map_community(self, legacy_id: str, new_id: str) -> None:
        """Store the CMS id created for a legacy community."""
        with self._lock:
            self._communities[str(legacy_id)] = new_id
        logger.debug(f"Community mapping added: {legacy_id} -> {new_id}")

    def get_community_id(self, legacy_id: str) -> Optional[str]:
        """Get the CMS id for a legacy community, or None if not mapped."""
        return self._communities.get(str(legacy_id))

    def map_project(self, legacy_id: LegacyId, new_id: str) -> None:
        """Store the CMS id created for a legacy project."""
        with self._lock:
            self._projects[str(legacy_id)] = new_id
        logger.debug(f"Project mapping added: {legacy_id} -> {new_id}")

    def get_project_id(self, legacy_id: LegacyId) -> Optional[str]:
        """Get the CMS id for a legacy project, or None if not mapped."""
        return self._projects.get(str(legacy_id))

    def mark_failed(self, legacy_submission_id: str) -> None:
        """Record a submission whose media failed; its cache is invalidated next time."""
        with self._lock:
            key = str(legacy_submission_id)
            if key in self._failed_keys:
                return
            self._failed_keys.add(key)
            self._failed.append(key)

    def is_failed(self, legacy_submission_id: str) -> bool:
        return str(legacy_submission_id) in self._failed_keys

    def record_missing(self, submission: LegacySubmission) -> None:
        """Add a submission to the missing report for manual follow-up."""
        with self._lock:
            if submission.id in self._missing_keys:
                return
            self._missing_keys.add(submission.id)
            self._missing.append(submission.to_dict())

    def is_missing(self, legacy_submission_id: str) -> bool:
        return str(legacy_submission_id) in self._missing_keys

    @property
    def missing(self) -> List[Dict[str, Any]]:
        return list(self._missing)

    @property
    def failed(self) -> List[str]:
        return list(self._failed)

    def to_dict(self) -> Dict[str, Any]:
        """
        Get the mapping snapshot.

        Returns:
            Dict with 'guilds', 'projects' and 'successfullyProcessed' keys
        """
        with self._lock:
            return {
                'guilds': dict(self._communities),
                'projects': dict(self._projects),
                'successfullyProcessed': list(self._processed)
            }

    def flush(self, include_failed: bool = False) -> None:
        """
        Write mapping and missing report to their primary locations.

        Safe to call repeatedly and from a signal handler or timer thread.

        Args:
            include_failed: Also rewrite the failed id list (done at the end of a run)
        """
        with self._lock:
            write_json_atomic(self.mapping_path, self.to_dict())
            write_json_atomic(self.missing_path, self.missing)
            if include_failed:
                write_json_atomic(self.failed_path, self.failed)
        logger.info("Written id map to disk")

    def autosave(self) -> None:
        """Write mapping and missing report to the auto-save locations."""
        with self._lock:
            write_json_atomic(self.autosave_mapping_path, self.to_dict())
            write_json_atomic(self.autosave_missing_path, self.missing)
        logger.debug("Auto-saved id map")

    def get_statistics(self) -> Dict[str, int]:
        """
        Get mapping statistics.

        Returns:
            Dict with counts of mapped, processed, failed and missing items
        """
        return {
            'communities': len(self._communities),
            'projects': len(self._projects),
            'processed': len(self._processed),
            'failed': len(self._failed),
            'missing': len(self._missing)
        }


def _read_state(path: str, default: Any) -> Any:
    if not os.path.exists(path):
        logger.info(f"No state file at {path}, starting empty")
        return default

    with open(path, 'r', encoding='utf-8') as f:
        try:
            return json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in {path}: {e}") from e


__all__ = ['IdMappingTracker', 'write_json_atomic']
