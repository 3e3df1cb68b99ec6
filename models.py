"""Data models for the legacy community export and migration outcomes."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union

logger = logging.getLogger('community_cms_migrator')

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class EntityKind(Enum):
    """Kinds of legacy entities walked by the migration."""
    COMMUNITY = "community"
    PROJECT = "project"
    SUBMISSION = "submission"


class MigrationOutcome(Enum):
    """Result of migrating a single entity."""
    CREATED = "created"
    ALREADY_PROCESSED = "already_processed"
    SKIPPED = "skipped"      # recoverable, retried on the next run
    MISSING = "missing"      # media unresolvable, needs manual backfill
    FAILED = "failed"        # submission marked failed, cache invalidated next run
    DRY_RUN = "dry_run"


@dataclass
class MigrationResult:
    """Outcome of one entity migration, matched on by the orchestrator."""

    kind: EntityKind
    legacy_id: str
    outcome: MigrationOutcome
    new_id: Optional[str] = None
    message: Optional[str] = None

    @property
    def descend(self) -> bool:
        """Whether children of this entity should be walked."""
        return self.outcome in (
            MigrationOutcome.CREATED,
            MigrationOutcome.ALREADY_PROCESSED,
            MigrationOutcome.DRY_RUN
        )


def legacy_date_to_iso(value: Union[Dict[str, Any], str, int]) -> str:
    """
    Convert a legacy date into an ISO-8601 UTC string with millisecond precision.

    Accepts the nested export form ``{"$date": {"$numberLong": "1609459200000"}}``
    or a bare epoch-millisecond string/int.

    Args:
        value: Legacy date value

    Returns:
        ISO-8601 string such as ``2021-01-01T00:00:00.000Z``

    Raises:
        ValueError: If the value cannot be interpreted as epoch milliseconds
    """
    raw = value
    if isinstance(raw, dict):
        raw = raw.get('$date', raw)
        if isinstance(raw, dict):
            raw = raw.get('$numberLong')

    if raw is None or isinstance(raw, bool):
        raise ValueError(f"Unsupported legacy date: {value!r}")

    try:
        millis = int(raw)
    except (TypeError, ValueError):
        raise ValueError(f"Unsupported legacy date: {value!r}")

    moment = EPOCH + timedelta(milliseconds=millis)
    return moment.strftime('%Y-%m-%dT%H:%M:%S.') + f"{moment.microsecond // 1000:03d}Z"


def _oid(value: Any) -> str:
    """Unwrap ``{"$oid": ...}`` identifiers."""
    if isinstance(value, dict):
        return str(value.get('$oid', ''))
    return str(value)


@dataclass
class LegacyMedia:
    """A media entry attached to a legacy project."""

    id: str
    type: str  # "image", "video" or "text"
    src: Optional[str] = None
    message: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LegacyMedia':
        return cls(
            id=_oid(data.get('_id', '')),
            type=data['type'],
            src=data.get('src'),
            message=data.get('message')
        )


@dataclass
class LegacyLink:
    """A named link on a legacy project."""

    name: str
    link: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LegacyLink':
        return cls(name=data['name'], link=data['link'])


@dataclass
class LegacyCommunity:
    """A community (guild) from the legacy export."""

    id: str
    name: str
    description: str
    image: str
    invite: str
    debut_date: Any
    color: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LegacyCommunity':
        """Build from a record of the legacy guilds collection."""
        return cls(
            id=str(data['_id']),
            name=data['name'],
            description=data.get('description', ''),
            image=data.get('image', ''),
            invite=data.get('invite', ''),
            debut_date=data.get('debutDate'),
            color=data.get('color'),
            raw=data
        )


@dataclass
class LegacyProject:
    """A project from the legacy export, owned by one community."""

    id: int
    community_id: str
    status: str
    title: str
    short_description: str
    description: str
    date: Any
    media: List[LegacyMedia] = field(default_factory=list)
    links: Optional[List[LegacyLink]] = None
    flags: Optional[List[str]] = None
    og_image: Optional[str] = None
    background_music: Optional[str] = None
    credits: Optional[List[Dict[str, Any]]] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def key(self) -> str:
        """Identifier as used in mapping files and cache folders."""
        return str(self.id)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LegacyProject':
        """Build from a record of the legacy projects collection."""
        links = data.get('links')
        return cls(
            id=data['_id'],
            community_id=str(data['guild']),
            status=data.get('status', 'ongoing'),
            title=data.get('title', ''),
            short_description=data.get('shortDescription', ''),
            description=data.get('description', ''),
            date=data.get('date'),
            media=[LegacyMedia.from_dict(item) for item in data.get('media') or []],
            links=[LegacyLink.from_dict(link) for link in links] if links is not None else None,
            flags=data.get('flags'),
            og_image=data.get('ogImage'),
            background_music=data.get('backgroundMusic'),
            credits=data.get('credits'),
            raw=data
        )


@dataclass
class LegacySubmission:
    """A fan submission attached to a legacy project."""

    id: str
    project_id: int
    type: str  # "image", "video" or "text"
    author: Optional[str] = None
    src_icon: Optional[str] = None
    subtype: Optional[str] = None
    src: Optional[str] = None
    message: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def project_key(self) -> str:
        return str(self.project_id)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LegacySubmission':
        """Build from a record of the legacy submissions collection."""
        return cls(
            id=_oid(data['_id']),
            project_id=data['project'],
            type=data['type'],
            author=data.get('author'),
            src_icon=data.get('srcIcon'),
            subtype=data.get('subtype'),
            src=data.get('src'),
            message=data.get('message'),
            raw=data
        )

    def to_dict(self) -> Dict[str, Any]:
        """Return the original legacy record, as written to the missing report."""
        if self.raw:
            return dict(self.raw)

        data: Dict[str, Any] = {
            '_id': {'$oid': self.id},
            'project': self.project_id,
            'type': self.type
        }
        for key, value in (
            ('author', self.author),
            ('srcIcon', self.src_icon),
            ('subtype', self.subtype),
            ('src', self.src),
            ('message', self.message)
        ):
            if value is not None:
                data[key] = value
        return data


__all__ = [
    'EntityKind',
    'MigrationOutcome',
    'MigrationResult',
    'LegacyMedia',
    'LegacyLink',
    'LegacyCommunity',
    'LegacyProject',
    'LegacySubmission',
    'legacy_date_to_iso'
]
