"""Content domain: topics, drafts, sanitization and the SQL store.

Topics and drafts are independent aggregates joined by a nullable
``topic_id``.  All coordination state lives in the database behind
``ContentStore``; ``TopicClaimCoordinator`` is the one place that
serialises concurrent callers.
"""

from inkpress.content.claims import TopicClaimCoordinator
from inkpress.content.completeness import compute_completeness
from inkpress.content.models import (
    BuildMode,
    Completeness,
    Draft,
    DraftStatus,
    ReferenceImage,
    Topic,
    TopicSource,
    TopicStatus,
)
from inkpress.content.sanitize import sanitize_body
from inkpress.content.slugs import slugify
from inkpress.content.store import ContentStore

__all__ = [
    "BuildMode",
    "Completeness",
    "ContentStore",
    "Draft",
    "DraftStatus",
    "ReferenceImage",
    "Topic",
    "TopicClaimCoordinator",
    "TopicSource",
    "TopicStatus",
    "compute_completeness",
    "sanitize_body",
    "slugify",
]
