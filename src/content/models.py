"""Content domain models as plain Pydantic v2 data types.

Two independent aggregates flow through the pipeline: a Topic is a
candidate article subject, and a Draft is a generated or hand-written
article on its way to publication.  A Draft may point back at the Topic
it was generated from via ``topic_id``.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field

from inkpress.content.sanitize import sanitize_body


def utcnow() -> datetime:
    return datetime.now(tz=UTC)


class TopicStatus(StrEnum):
    """Lifecycle status of a topic.

    Moves preparing → ready → in_progress → completed.  A failed
    generation returns an in_progress topic to ready.
    """

    PREPARING = "preparing"
    READY = "ready"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class TopicSource(StrEnum):
    """Who proposed a topic."""

    USER = "user"
    AI = "ai"


class DraftStatus(StrEnum):
    """Lifecycle status of a draft."""

    DRAFT = "draft"
    REVIEW = "review"
    SCHEDULED = "scheduled"
    PUBLISHED = "published"
    FAILED = "failed"


class BuildMode(StrEnum):
    """Value of the ``article_build_mode`` setting."""

    MANUAL = "manual"
    CRON = "cron"


class ReferenceImage(BaseModel):
    """An image the article should embed."""

    url: str
    description: str = ""


class Completeness(BaseModel):
    """Advisory per-field completeness, 0–100 each."""

    title: int = 0
    body: int = 0
    meta_description: int = 0
    image: int = 0
    category: int = 0
    structured_data: int = 0

    @property
    def overall(self) -> int:
        values = [
            self.title,
            self.body,
            self.meta_description,
            self.image,
            self.category,
            self.structured_data,
        ]
        return round(sum(values) / len(values))


class Topic(BaseModel):
    """A candidate subject for an article."""

    id: str = ""
    title: str
    description: str = ""
    keywords: list[str] = Field(default_factory=list)
    research_notes: str | None = None
    reference_images: list[ReferenceImage] = Field(default_factory=list)
    status: TopicStatus = TopicStatus.PREPARING
    source: TopicSource = TopicSource.USER
    priority: int = 0
    progress_status: str | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Draft(BaseModel):
    """An article under preparation.

    ``structured_data`` is an opaque bag carried through to front-matter
    (``imageCaption``, ``layout``, ``showArticleSummary``).  ``completeness``
    is derived from the content and recomputed by the store on every save.
    """

    id: str = ""
    topic_id: str | None = None
    slug: str
    title: str = ""
    meta_description: str = ""
    body: str = ""
    category: str = ""
    featured_image: str = ""
    read_time: str = ""
    structured_data: dict[str, Any] = Field(default_factory=dict)
    status: DraftStatus = DraftStatus.DRAFT
    scheduled_publish_at: datetime | None = None
    published_at: datetime | None = None
    commit_url: str | None = None
    pr_url: str | None = None
    completeness: Completeness = Field(default_factory=Completeness)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def missing_required_fields(self) -> list[str]:
        """Names of the fields publication requires but are blank.

        The body is checked after sanitization, so a body made only of
        leaked generation artifacts counts as missing.
        """
        missing: list[str] = []
        if not (self.title or "").strip():
            missing.append("title")
        if not (sanitize_body(self.body or "") or "").strip():
            missing.append("body")
        if not (self.slug or "").strip():
            missing.append("slug")
        return missing
