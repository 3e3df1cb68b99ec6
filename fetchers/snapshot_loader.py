"""Loading of the static legacy export snapshot."""

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List

from models import LegacyCommunity, LegacyProject, LegacySubmission

logger = logging.getLogger('community_cms_migrator.fetcher.snapshot')


class SnapshotError(Exception):
    """Raised when a snapshot file is missing or malformed."""
    pass


@dataclass
class LegacySnapshot:
    """Communities, projects and submissions read from the legacy export."""

    communities: List[LegacyCommunity] = field(default_factory=list)
    projects: List[LegacyProject] = field(default_factory=list)
    submissions: List[LegacySubmission] = field(default_factory=list)

    def projects_for(self, community: LegacyCommunity) -> List[LegacyProject]:
        """Projects owned by ``community``, in export order."""
        return [project for project in self.projects if project.community_id == community.id]

    def submissions_for(self, project: LegacyProject) -> List[LegacySubmission]:
        """Submissions attached to ``project``, in export order."""
        return [submission for submission in self.submissions if submission.project_key == project.key]

    def get_statistics(self) -> Dict[str, int]:
        return {
            'communities': len(self.communities),
            'projects': len(self.projects),
            'submissions': len(self.submissions)
        }


def read_json(path: str) -> Any:
    """
    Read a JSON document.

    Raises:
        SnapshotError: If the file is missing or not valid JSON
    """
    if not os.path.exists(path):
        raise SnapshotError(f"Snapshot file not found: {path}")

    try:
        with open(path, 'r', encoding='utf-8') as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise SnapshotError(f"Failed to read {path}: {e}") from e


def _read_collection(path: str) -> List[Dict[str, Any]]:
    data = read_json(path)
    if not isinstance(data, list):
        raise SnapshotError(f"{path} must contain a JSON array")
    return data


def load_snapshot(communities_path: str, projects_path: str, submissions_path: str) -> LegacySnapshot:
    """
    Load the three legacy collections.

    Args:
        communities_path: Path to the guilds collection
        projects_path: Path to the projects collection
        submissions_path: Path to the submissions collection

    Returns:
        LegacySnapshot

    Raises:
        SnapshotError: If any file is unreadable or a record lacks required fields
    """
    try:
        snapshot = LegacySnapshot(
            communities=[LegacyCommunity.from_dict(item) for item in _read_collection(communities_path)],
            projects=[LegacyProject.from_dict(item) for item in _read_collection(projects_path)],
            submissions=[LegacySubmission.from_dict(item) for item in _read_collection(submissions_path)]
        )
    except (KeyError, TypeError) as e:
        raise SnapshotError(f"Malformed legacy record: missing field {e}") from e

    stats = snapshot.get_statistics()
    logger.info(
        f"Loaded {stats['communities']} communities, {stats['projects']} projects, "
        f"{stats['submissions']} submissions"
    )
    return snapshot


def load_snapshot_from_config(config: Dict[str, Any]) -> LegacySnapshot:
    """Load the snapshot from the file locations in the ``paths`` section."""
    paths = config.get('paths', {})
    return load_snapshot(
        paths.get('communities', './data/guilds.json'),
        paths.get('projects', './data/projects.json'),
        paths.get('submissions', './data/submissions.json')
    )


__all__ = ['LegacySnapshot', 'SnapshotError', 'load_snapshot', 'load_snapshot_from_config', 'read_json']
