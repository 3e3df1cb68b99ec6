"""Import package for writing migrated communities to the CMS.

Package Structure:
- cms_client: REST client for media uploads and entity creation
- id_mapping_tracker: Persisted legacy -> CMS id mapping and run state
- content_transformer: Converts markdown to rich-text editor nodes
- media_uploader: Parallel upload of a project's media list

Configuration Referenced:
- cms.*: CMS base URL, credentials, default media and endpoint paths
- paths.*: State file locations
- migration.max_media_workers: Parallelism of project media uploads
"""

from .cms_client import CmsApiError, CmsClient, EntityCreationError, UploadError
from .content_transformer import PLATE_NODE_TYPES, ContentTransformer
from .id_mapping_tracker import IdMappingTracker
from .media_uploader import ProjectMediaUploader

__all__ = [
    'CmsApiError',
    'CmsClient',
    'ContentTransformer',
    'EntityCreationError',
    'IdMappingTracker',
    'PLATE_NODE_TYPES',
    'ProjectMediaUploader',
    'UploadError'
]
