"""Turn a generated article into a stored draft.

The materializer owns the end of a topic's write: on success the topic is
completed, on any failure it goes back to ready with the error recorded
in its progress marker, and the error is re-raised.
"""

from __future__ import annotations

import logging
from datetime import datetime
from enum import StrEnum

from inkpress.content.models import Draft, DraftStatus, Topic, utcnow
from inkpress.content.sanitize import sanitize_body
from inkpress.content.slugs import slugify
from inkpress.content.store import ContentStore
from inkpress.generation.models import ArticleResult

logger = logging.getLogger(__name__)

PROGRESS_RESEARCHING = "Researching topic and gathering information..."
PROGRESS_GENERATING = "Generating blog content with AI..."
PROGRESS_SAVING = "Saving draft to database..."
PROGRESS_DONE = "Draft saved"

# Suffixes tried before giving up on a free slug.
MAX_SLUG_SUFFIX = 50


def error_marker(exc: BaseException) -> str:
    """Progress marker recorded on a topic whose write failed."""
    return f"Failed: {exc}"[:500]


class PublishAction(StrEnum):
    """What to do with a freshly written draft."""

    DRAFT = "draft"
    SCHEDULE = "schedule"
    PUBLISH_NOW = "publish_now"


def derive_slug(title: str, topic: Topic) -> str:
    """Slug from the article title, falling back to the topic."""
    slug = slugify(title) or slugify(topic.title)
    if slug:
        return slug
    return f"untitled-{(topic.id or 'topic')[:8]}"


class DraftMaterializer:
    """Upserts drafts by slug and finishes the topic lifecycle."""

    def __init__(self, store: ContentStore) -> None:
        self.store = store

    def _free_slug(self, base: str) -> str:
        """First slug at or after *base* that does not belong to a published draft."""
        for n in range(1, MAX_SLUG_SUFFIX + 1):
            slug = base if n == 1 else f"{base}-{n}"
            existing = self.store.get_draft_by_slug(slug)
            if existing is None or existing.status != DraftStatus.PUBLISHED:
                return slug
        raise ValueError(f"No free slug for {base!r} after {MAX_SLUG_SUFFIX} attempts")

    @staticmethod
    def _placement(
        action: PublishAction, scheduled_publish_at: datetime | None
    ) -> tuple[DraftStatus, datetime | None]:
        if action == PublishAction.SCHEDULE:
            if scheduled_publish_at is None:
                raise ValueError("Scheduling a draft requires a publish time")
            return DraftStatus.SCHEDULED, scheduled_publish_at
        if action == PublishAction.PUBLISH_NOW:
            return DraftStatus.SCHEDULED, utcnow()
        return DraftStatus.DRAFT, None

    def materialize(
        self,
        topic: Topic,
        result: ArticleResult,
        action: PublishAction = PublishAction.DRAFT,
        scheduled_publish_at: datetime | None = None,
    ) -> Draft:
        """Store *result* as the draft for *topic* and complete the topic.

        Raises:
            Exception: Whatever the store raised; the topic has been
                returned to ready before it propagates.
        """
        try:
            self.store.update_progress(topic.id, PROGRESS_SAVING)
            status, when = self._placement(action, scheduled_publish_at)
            slug = self._free_slug(derive_slug(result.title, topic))

            draft = Draft(
                topic_id=topic.id or None,
                slug=slug,
                title=result.title,
                meta_description=result.meta_description,
                body=sanitize_body(result.content),
                category=result.category,
                featured_image=result.featured_image,
                read_time=result.read_time,
                structured_data=result.structured_data,
                status=status,
                scheduled_publish_at=when,
            )
            stored, created = self.store.upsert_draft_by_slug(draft)
            self.store.complete_topic(topic.id, f"{PROGRESS_DONE} ({stored.status})")
        except Exception as exc:
            logger.error("Saving draft for topic %s failed: %s", topic.id, exc)
            try:
                self.store.release_topic(topic.id, error_marker(exc))
            except Exception:
                logger.exception("Could not release topic %s", topic.id)
            raise

        logger.info(
            "%s draft %s (%s) for topic %s",
            "Created" if created else "Updated",
            stored.id,
            stored.slug,
            topic.id,
        )
        return stored
