"""Tests for DraftMaterializer."""

from datetime import UTC, datetime, timedelta
from unittest.mock import patch

import pytest

from inkpress.content.models import Draft, DraftStatus, Topic, TopicStatus
from inkpress.content.store import ContentStore
from inkpress.generation.models import ArticleResult
from inkpress.pipeline.materializer import (
    DraftMaterializer,
    PublishAction,
    derive_slug,
    error_marker,
)
from inkpress.shared.errors import StoreError


@pytest.fixture
def store():
    s = ContentStore.from_url("sqlite://")
    s.init_schema()
    return s


def _claimed_topic(store: ContentStore, title: str = "Fence Posts") -> Topic:
    return store.add_topic(Topic(title=title, status=TopicStatus.IN_PROGRESS))


def _make_result(**kwargs: object) -> ArticleResult:
    kwargs.setdefault("title", "How Deep Should Fence Posts Be?")
    kwargs.setdefault("content", "# How Deep Should Fence Posts Be?\n\n## Rule\n\nBury a third.")
    kwargs.setdefault("meta_description", "Fence post depth explained.")
    kwargs.setdefault("category", "Installation")
    return ArticleResult(**kwargs)  # type: ignore[arg-type]


class TestDeriveSlug:
    def test_from_title(self):
        assert derive_slug("Vinyl vs. Wood", Topic(title="x")) == "vinyl-vs-wood"

    def test_falls_back_to_topic(self):
        assert derive_slug("!!!", Topic(title="Gate Hinges")) == "gate-hinges"

    def test_last_resort(self):
        assert derive_slug("", Topic(id="abcdef123456", title="???")) == "untitled-abcdef12"


class TestMaterialize:
    def test_creates_draft_and_completes_topic(self, store):
        topic = _claimed_topic(store)
        draft = DraftMaterializer(store).materialize(topic, _make_result(image_caption="Posts"))

        assert draft.slug == "how-deep-should-fence-posts-be"
        assert draft.status == DraftStatus.DRAFT
        assert draft.topic_id == topic.id
        assert draft.body == "## Rule\n\nBury a third."
        assert draft.structured_data == {"imageCaption": "Posts"}
        assert draft.completeness.title == 100

        stored_topic = store.get_topic(topic.id)
        assert stored_topic.status == TopicStatus.COMPLETED
        assert stored_topic.progress_status == "Draft saved (draft)"

    def test_schedule_action(self, store):
        when = datetime.now(UTC) + timedelta(days=1)
        draft = DraftMaterializer(store).materialize(
            _claimed_topic(store), _make_result(), PublishAction.SCHEDULE, when
        )
        assert draft.status == DraftStatus.SCHEDULED
        assert draft.scheduled_publish_at is not None

    def test_publish_now_is_due_immediately(self, store):
        draft = DraftMaterializer(store).materialize(
            _claimed_topic(store), _make_result(), PublishAction.PUBLISH_NOW
        )
        assert draft.status == DraftStatus.SCHEDULED
        assert store.find_due_draft() is not None

    def test_existing_unpublished_slug_is_updated(self, store):
        existing = store.save_draft(Draft(slug="how-deep-should-fence-posts-be", title="Old"))
        draft = DraftMaterializer(store).materialize(_claimed_topic(store), _make_result())
        assert draft.id == existing.id
        assert draft.title == "How Deep Should Fence Posts Be?"
        assert len(store.list_drafts()) == 1

    def test_published_slug_is_never_overwritten(self, store):
        published = store.save_draft(
            Draft(slug="how-deep-should-fence-posts-be", title="Old", status=DraftStatus.PUBLISHED)
        )
        draft = DraftMaterializer(store).materialize(_claimed_topic(store), _make_result())
        assert draft.slug == "how-deep-should-fence-posts-be-2"
        assert store.get_draft(published.id).title == "Old"


class TestFailure:
    def test_schedule_without_time_releases_topic(self, store):
        topic = _claimed_topic(store)
        with pytest.raises(ValueError):
            DraftMaterializer(store).materialize(topic, _make_result(), PublishAction.SCHEDULE)

        stored = store.get_topic(topic.id)
        assert stored.status == TopicStatus.READY
        assert stored.progress_status.startswith("Failed: Scheduling a draft requires")
        assert store.list_drafts() == []

    def test_store_failure_releases_topic(self, store):
        topic = _claimed_topic(store)
        with patch.object(store, "upsert_draft_by_slug", side_effect=StoreError("disk full")):
            with pytest.raises(StoreError):
                DraftMaterializer(store).materialize(topic, _make_result())

        stored = store.get_topic(topic.id)
        assert stored.status == TopicStatus.READY
        assert stored.progress_status == "Failed: disk full"

    def test_error_marker_truncated(self):
        assert len(error_marker(RuntimeError("x" * 1000))) == 500
