"""Tests for the FastAPI triggers."""

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from inkpress.api import create_app
from inkpress.config import GitHubConfig, InkpressConfig
from inkpress.content.models import Draft, DraftStatus, Topic, TopicStatus
from inkpress.content.store import ContentStore
from inkpress.generation.client import GenerationClient
from inkpress.generation.models import ArticleEdit, ArticleResult, EditKind, TopicInvestigation
from inkpress.pipeline.scheduler import SchedulerOrchestrator
from inkpress.publishing.committer import PublicationCommitter
from inkpress.publishing.github import CommitRef, GitHubContentStore, PullRequestRef
from inkpress.shared.errors import ConfigurationError, GenerationError


@pytest.fixture
def store():
    s = ContentStore.from_url("sqlite://")
    s.init_schema()
    return s


@pytest.fixture
def generator():
    gen = MagicMock(spec=GenerationClient)
    gen.generate_article.return_value = ArticleResult(
        title="Vinyl vs. Wood", content="## Cost\n\nMore.", meta_description="Compare."
    )
    return gen


def _make_github() -> MagicMock:
    github = MagicMock(spec=GitHubContentStore)
    github.config = GitHubConfig(token="t", owner="acme", repo="site")
    github.get_branch_sha.return_value = "basesha"
    github.get_file_sha.return_value = None
    github.put_file.return_value = CommitRef(sha="abc123", url="https://github.com/acme/site/commit/abc123")
    github.open_pull_request.return_value = PullRequestRef(number=7, url="https://github.com/acme/site/pull/7")
    return github


def _make_client(store, generator, cron_secret: str = "", github: MagicMock | None = None) -> TestClient:
    github = github or _make_github()
    orchestrator = SchedulerOrchestrator(store, generator, PublicationCommitter(store, github))
    config = InkpressConfig()
    config.scheduler.cron_secret = cron_secret
    return TestClient(create_app(config, orchestrator))


class TestHealth:
    def test_health(self, store, generator):
        response = _make_client(store, generator).get("/api/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"


class TestCronAuth:
    def test_missing_bearer_rejected(self, store, generator):
        client = _make_client(store, generator, cron_secret="s3cret")
        assert client.get("/api/cron/write-blogs").status_code == 401
        generator.generate_article.assert_not_called()

    def test_wrong_bearer_rejected(self, store, generator):
        client = _make_client(store, generator, cron_secret="s3cret")
        response = client.get("/api/cron/publish-blogs", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401

    def test_correct_bearer(self, store, generator):
        client = _make_client(store, generator, cron_secret="s3cret")
        response = client.get("/api/cron/write-blogs", headers={"Authorization": "Bearer s3cret"})
        assert response.status_code == 200

    def test_open_without_secret(self, store, generator):
        assert _make_client(store, generator).get("/api/cron/write-blogs").status_code == 200


class TestWriteBlogs:
    def test_idle_summary(self, store, generator):
        body = _make_client(store, generator).get("/api/cron/write-blogs").json()
        assert body == {
            "success": True,
            "processed": 0,
            "message": "No ready topics to process",
            "scheduledPublish": {"processed": 0, "message": "No scheduled drafts ready to publish"},
        }

    def test_processed_topic(self, store, generator):
        topic = store.add_topic(Topic(title="Fences", status=TopicStatus.READY))
        body = _make_client(store, generator).get("/api/cron/write-blogs").json()
        assert body["processed"] == 1
        assert body["topicId"] == topic.id
        assert body["slug"] == "vinyl-vs-wood"

    def test_generation_failure_is_500(self, store, generator):
        store.add_topic(Topic(title="Fences", status=TopicStatus.READY))
        generator.generate_article.side_effect = GenerationError("All generation endpoints failed")
        response = _make_client(store, generator).get("/api/cron/write-blogs")
        assert response.status_code == 500
        assert response.json()["success"] is False
        assert response.json()["errorKind"] == "transient"


class TestTopicHelpers:
    def test_investigate(self, store, generator):
        generator.investigate_topic.return_value = TopicInvestigation(
            suggested_title="Fence Permits 101", description="Rules.", keywords=["permit"]
        )
        response = _make_client(store, generator).post("/api/topics/investigate", json={"idea": "permits"})
        assert response.status_code == 200
        assert response.json() == {
            "suggestedTitle": "Fence Permits 101",
            "description": "Rules.",
            "keywords": ["permit"],
        }
        generator.investigate_topic.assert_called_once_with("permits")

    def test_investigate_requires_idea(self, store, generator):
        response = _make_client(store, generator).post("/api/topics/investigate", json={"idea": "  "})
        assert response.status_code == 400

    def test_investigate_unconfigured(self, store, generator):
        generator.investigate_topic.side_effect = ConfigurationError("GEMINI_API_KEY is not set")
        response = _make_client(store, generator).post("/api/topics/investigate", json={"idea": "x"})
        assert response.status_code == 500
        assert "GEMINI_API_KEY" in response.json()["detail"]

    def test_suggest_ideas(self, store, generator):
        generator.suggest_topic_ideas.return_value = ["Gate latches", "Post caps"]
        response = _make_client(store, generator).post("/api/topics/suggest-ideas")
        assert response.json() == {"ideas": ["Gate latches", "Post caps"]}


class TestPublish:
    def test_requires_draft_id(self, store, generator):
        response = _make_client(store, generator).post("/api/publish", json={})
        assert response.status_code == 400

    def test_unknown_draft(self, store, generator):
        response = _make_client(store, generator).post("/api/publish", json={"draftId": "nope"})
        assert response.status_code == 404

    def test_opens_pull_request(self, store, generator):
        draft = store.save_draft(Draft(slug="gate-latches", title="Gate Latches", body="## Kinds\n\nThree."))
        github = _make_github()
        response = _make_client(store, generator, github=github).post(
            "/api/publish", json={"draftId": draft.id}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["prUrl"] == "https://github.com/acme/site/pull/7"
        assert github.put_file.call_args[1]["branch"] == "blog/gate-latches"
        assert store.get_draft(draft.id).pr_url == "https://github.com/acme/site/pull/7"

    def test_incomplete_draft_is_400(self, store, generator):
        draft = store.save_draft(Draft(slug="empty", title="Empty", body=""))
        github = _make_github()
        response = _make_client(store, generator, github=github).post(
            "/api/publish", json={"draftId": draft.id}
        )
        assert response.status_code == 400
        assert response.json()["errorKind"] == "precondition"
        github.put_file.assert_not_called()
        assert store.get_draft(draft.id).status == DraftStatus.FAILED


class TestAiEdit:
    def test_edit(self, store, generator):
        generator.edit_article.return_value = ArticleEdit(kind=EditKind.EDIT, content="## Shorter\n\nDone.")
        response = _make_client(store, generator).post(
            "/api/ai-edit",
            json={"instruction": "Make it shorter", "bodyMdx": "## Long\n\nText.", "title": "Gates"},
        )
        assert response.status_code == 200
        assert response.json() == {"type": "edit", "content": "## Shorter\n\nDone."}
        generator.edit_article.assert_called_once_with(
            "## Long\n\nText.", "Make it shorter", title="Gates", meta_description=""
        )

    def test_note(self, store, generator):
        generator.edit_article.return_value = ArticleEdit(kind=EditKind.NOTE, content="About 900 words.")
        response = _make_client(store, generator).post(
            "/api/ai-edit", json={"instruction": "How long is this?", "bodyMdx": "x"}
        )
        assert response.json() == {"type": "note", "message": "About 900 words."}

    def test_requires_instruction(self, store, generator):
        response = _make_client(store, generator).post("/api/ai-edit", json={"instruction": " ", "bodyMdx": "x"})
        assert response.status_code == 400
        generator.edit_article.assert_not_called()

    def test_generation_failure_is_500(self, store, generator):
        generator.edit_article.side_effect = GenerationError("All generation endpoints failed")
        response = _make_client(store, generator).post(
            "/api/ai-edit", json={"instruction": "Fix typos", "bodyMdx": "x"}
        )
        assert response.status_code == 500
