"""Smoke tests for the CLI."""

from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from inkpress import __version__
from inkpress.cli import app
from inkpress.content import ContentStore, Draft, DraftStatus, TopicStatus
from inkpress.generation.client import GenerationClient
from inkpress.generation.models import ArticleEdit, EditKind


@pytest.fixture
def runner() -> CliRunner:
    """Create a CLI test runner."""
    return CliRunner()


@pytest.fixture
def db_url(tmp_path, monkeypatch) -> str:
    """Point the CLI at a fresh SQLite file with no backend credentials."""
    url = f"sqlite:///{tmp_path / 'cli.db'}"
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("inkpress.config.GLOBAL_CONFIG_PATH", tmp_path / "missing.toml")
    monkeypatch.setenv("DATABASE_URL", url)
    for var in ("GEMINI_API_KEY", "GITHUB_TOKEN", "GITHUB_REPO_OWNER", "GITHUB_REPO_NAME", "INKPRESS_BUILD_MODE"):
        monkeypatch.delenv(var, raising=False)
    return url


def _store(url: str) -> ContentStore:
    store = ContentStore.from_url(url)
    store.init_schema()
    return store


class TestCLI:
    """Tests for the CLI entry point."""

    def test_main_help(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "add-topic" in result.stdout
        assert "tick" in result.stdout

    def test_version(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.stdout

    def test_missing_database_url(self, runner: CliRunner, db_url: str, monkeypatch) -> None:
        monkeypatch.delenv("DATABASE_URL")
        result = runner.invoke(app, ["topics"])
        assert result.exit_code == 1
        assert "DATABASE_URL" in result.stdout


class TestTopicCommands:
    def test_add_topic_ready(self, runner: CliRunner, db_url: str) -> None:
        result = runner.invoke(
            app, ["add-topic", "Fence Posts", "-k", "depth", "-k", "concrete", "--priority", "3"]
        )
        assert result.exit_code == 0
        assert "Added topic" in result.stdout

        [topic] = _store(db_url).list_topics()
        assert topic.status == TopicStatus.READY
        assert topic.keywords == ["depth", "concrete"]
        assert topic.priority == 3

    def test_preparing_then_ready(self, runner: CliRunner, db_url: str) -> None:
        runner.invoke(app, ["add-topic", "Gate Hinges", "--preparing"])
        [topic] = _store(db_url).list_topics()
        assert topic.status == TopicStatus.PREPARING

        result = runner.invoke(app, ["ready", topic.id])
        assert result.exit_code == 0
        assert _store(db_url).get_topic(topic.id).status == TopicStatus.READY

        again = runner.invoke(app, ["ready", topic.id])
        assert again.exit_code == 1

    def test_topics_empty(self, runner: CliRunner, db_url: str) -> None:
        result = runner.invoke(app, ["topics"])
        assert result.exit_code == 0
        assert "No topics" in result.stdout


class TestDraftCommands:
    def test_drafts_empty(self, runner: CliRunner, db_url: str) -> None:
        result = runner.invoke(app, ["drafts"])
        assert result.exit_code == 0
        assert "No drafts" in result.stdout

    def test_schedule(self, runner: CliRunner, db_url: str) -> None:
        draft = _store(db_url).save_draft(Draft(slug="gate-latches", title="Gate Latches", body="x"))
        result = runner.invoke(app, ["schedule", draft.id, "2026-11-01T09:00"])
        assert result.exit_code == 0

        stored = _store(db_url).get_draft(draft.id)
        assert stored.status == DraftStatus.SCHEDULED
        assert stored.scheduled_publish_at.hour == 9

    def test_schedule_bad_date(self, runner: CliRunner, db_url: str) -> None:
        result = runner.invoke(app, ["schedule", "some-id", "next tuesday"])
        assert result.exit_code == 1
        assert "Not an ISO date/time" in result.stdout


class TestSchedulerCommands:
    def test_mode_round_trip(self, runner: CliRunner, db_url: str) -> None:
        assert "cron" in runner.invoke(app, ["mode"]).stdout
        result = runner.invoke(app, ["mode", "manual"])
        assert result.exit_code == 0
        assert "manual" in result.stdout
        assert "manual" in runner.invoke(app, ["mode"]).stdout

    def test_write_without_api_key_fails(self, runner: CliRunner, db_url: str) -> None:
        runner.invoke(app, ["add-topic", "Fence Posts"])
        result = runner.invoke(app, ["write"])
        assert result.exit_code == 1
        assert "GEMINI_API_KEY" in result.stdout

        [topic] = _store(db_url).list_topics()
        assert topic.status == TopicStatus.READY

    def test_publish_nothing_due(self, runner: CliRunner, db_url: str, monkeypatch) -> None:
        monkeypatch.setenv("GITHUB_TOKEN", "ghp")
        monkeypatch.setenv("GITHUB_REPO_OWNER", "acme")
        monkeypatch.setenv("GITHUB_REPO_NAME", "site")
        result = runner.invoke(app, ["publish"])
        assert result.exit_code == 0
        assert "No scheduled drafts ready to publish" in result.stdout

    def test_edit_saves_revised_body(self, runner: CliRunner, db_url: str) -> None:
        draft = _store(db_url).save_draft(Draft(slug="gates", title="Gates", body="## Gatse"))
        revised = ArticleEdit(kind=EditKind.EDIT, content="## Gates\n\nFixed.")
        with patch.object(GenerationClient, "edit_article", return_value=revised) as mock_edit:
            result = runner.invoke(app, ["edit", draft.id, "Fix typos", "--save"])

        assert result.exit_code == 0
        assert mock_edit.call_args[0] == ("## Gatse", "Fix typos")
        assert _store(db_url).get_draft(draft.id).body == "## Gates\n\nFixed."

    def test_edit_note_leaves_draft(self, runner: CliRunner, db_url: str) -> None:
        draft = _store(db_url).save_draft(Draft(slug="gates", title="Gates", body="## Gates"))
        note = ArticleEdit(kind=EditKind.NOTE, content="It has one section.")
        with patch.object(GenerationClient, "edit_article", return_value=note):
            result = runner.invoke(app, ["edit", draft.id, "How many sections?", "--save"])

        assert result.exit_code == 0
        assert "It has one section." in result.stdout
        assert _store(db_url).get_draft(draft.id).body == "## Gates"

    def test_edit_unknown_draft(self, runner: CliRunner, db_url: str) -> None:
        result = runner.invoke(app, ["edit", "missing", "Fix typos"])
        assert result.exit_code == 1
        assert "not found" in result.stdout
