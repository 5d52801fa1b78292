"""Scheduler orchestrator: the write flow and the publish flow.

Each invocation is short and stateless.  The write flow claims at most
one ready topic, generates an article for it and stores the draft.  The
publish flow commits at most one draft whose scheduled time has passed.
A tick runs both, and a failure in one never keeps the other from running.
Every entry point returns a ``FlowResult`` instead of raising.
"""

from __future__ import annotations

import logging
from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel

from inkpress.config import InkpressConfig
from inkpress.content.claims import TopicClaimCoordinator
from inkpress.content.models import BuildMode, Draft, DraftStatus, Topic
from inkpress.content.store import ContentStore
from inkpress.generation.client import GenerationClient
from inkpress.pipeline.materializer import (
    PROGRESS_GENERATING,
    PROGRESS_RESEARCHING,
    DraftMaterializer,
    PublishAction,
    error_marker,
)
from inkpress.publishing.committer import PublicationCommitter
from inkpress.publishing.github import GitHubContentStore
from inkpress.publishing.notify import Notifier
from inkpress.shared.errors import ConfigurationError, PreconditionError

logger = logging.getLogger(__name__)

BUILD_MODE_SETTING = "article_build_mode"


class Outcome(StrEnum):
    NO_WORK = "no_work"
    PROCESSED = "processed"
    FAILED = "failed"


class ErrorKind(StrEnum):
    CONFIGURATION = "configuration"
    TRANSIENT = "transient"
    PRECONDITION = "precondition"


def classify_error(exc: BaseException) -> ErrorKind:
    if isinstance(exc, ConfigurationError):
        return ErrorKind.CONFIGURATION
    if isinstance(exc, PreconditionError):
        return ErrorKind.PRECONDITION
    return ErrorKind.TRANSIENT


class FlowResult(BaseModel):
    """Outcome of one flow invocation."""

    flow: str
    outcome: Outcome
    message: str = ""
    topic_id: str | None = None
    draft_id: str | None = None
    slug: str | None = None
    commit_url: str | None = None
    pr_url: str | None = None
    error: str | None = None
    error_kind: ErrorKind | None = None

    @property
    def processed(self) -> int:
        return 1 if self.outcome == Outcome.PROCESSED else 0

    @property
    def ok(self) -> bool:
        return self.outcome != Outcome.FAILED

    @classmethod
    def idle(cls, flow: str, message: str) -> FlowResult:
        return cls(flow=flow, outcome=Outcome.NO_WORK, message=message)

    @classmethod
    def failure(cls, flow: str, exc: BaseException, **ids: Any) -> FlowResult:
        return cls(
            flow=flow,
            outcome=Outcome.FAILED,
            message=f"{flow} flow failed",
            error=str(exc),
            error_kind=classify_error(exc),
            **ids,
        )

    def to_summary(self) -> dict[str, Any]:
        """Camel-cased dict for the HTTP triggers, without empty fields."""
        summary: dict[str, Any] = {"processed": self.processed, "message": self.message}
        optional = {
            "topicId": self.topic_id,
            "draftId": self.draft_id,
            "slug": self.slug,
            "commitUrl": self.commit_url,
            "prUrl": self.pr_url,
            "error": self.error,
            "errorKind": self.error_kind.value if self.error_kind else None,
        }
        summary.update({k: v for k, v in optional.items() if v is not None})
        return summary


class TickResult(BaseModel):
    """Both flows of one scheduler tick."""

    write: FlowResult
    publish: FlowResult

    @property
    def ok(self) -> bool:
        return self.write.ok and self.publish.ok

    def to_summary(self) -> dict[str, Any]:
        summary = self.write.to_summary()
        summary["scheduledPublish"] = self.publish.to_summary()
        return summary


class SchedulerOrchestrator:
    """Ties claim, generation, materialization and publication together."""

    def __init__(
        self,
        store: ContentStore,
        generator: GenerationClient,
        committer: PublicationCommitter,
        *,
        coordinator: TopicClaimCoordinator | None = None,
        materializer: DraftMaterializer | None = None,
        default_build_mode: BuildMode = BuildMode.CRON,
        write_action: PublishAction = PublishAction.DRAFT,
    ) -> None:
        self.store = store
        self.generator = generator
        self.committer = committer
        self.coordinator = coordinator or TopicClaimCoordinator(store)
        self.materializer = materializer or DraftMaterializer(store)
        self.default_build_mode = default_build_mode
        self.write_action = write_action

    # ── Build mode ───────────────────────────────────────────────

    def build_mode(self) -> BuildMode:
        raw = self.store.get_setting(BUILD_MODE_SETTING)
        if raw is None:
            return self.default_build_mode
        try:
            return BuildMode(raw)
        except ValueError:
            logger.warning("Unknown %s %r, using %s", BUILD_MODE_SETTING, raw, self.default_build_mode)
            return self.default_build_mode

    def set_build_mode(self, mode: BuildMode) -> None:
        self.store.set_setting(BUILD_MODE_SETTING, mode.value)

    # ── Write flow ───────────────────────────────────────────────

    def run_write_flow(self) -> FlowResult:
        """Claim the next ready topic and write a draft for it."""
        mode = self.build_mode()
        if mode == BuildMode.MANUAL:
            return FlowResult.idle("write", "Build mode is manual, scheduled writes are off")

        try:
            self.generator.ensure_configured()
        except ConfigurationError as exc:
            logger.error("Write flow not configured: %s", exc)
            return FlowResult.failure("write", exc)

        try:
            topic = self.coordinator.claim_next_topic()
        except Exception as exc:
            logger.error("Claiming a topic failed: %s", exc, exc_info=True)
            return FlowResult.failure("write", exc)

        if topic is None:
            return FlowResult.idle("write", "No ready topics to process")
        return self._write(topic, self.write_action)

    def write_topic(
        self,
        topic_id: str,
        action: PublishAction = PublishAction.DRAFT,
        scheduled_publish_at: datetime | None = None,
    ) -> FlowResult:
        """Write one specific ready topic now, regardless of build mode."""
        try:
            self.generator.ensure_configured()
        except ConfigurationError as exc:
            return FlowResult.failure("write", exc, topic_id=topic_id)

        try:
            topic = self.coordinator.claim_topic(topic_id)
        except Exception as exc:
            logger.error("Claiming topic %s failed: %s", topic_id, exc, exc_info=True)
            return FlowResult.failure("write", exc, topic_id=topic_id)

        if topic is None:
            existing = self.store.get_topic(topic_id)
            if existing is None:
                reason = f"Topic {topic_id} not found"
            else:
                reason = f"Topic {topic_id} is {existing.status}, not ready"
            return FlowResult.failure("write", PreconditionError(reason), topic_id=topic_id)

        return self._write(topic, action, scheduled_publish_at)

    def _write(
        self,
        topic: Topic,
        action: PublishAction,
        scheduled_publish_at: datetime | None = None,
    ) -> FlowResult:
        logger.info("Writing topic %s: %s", topic.id, topic.title)
        try:
            self.store.update_progress(topic.id, PROGRESS_RESEARCHING)
            self.store.update_progress(topic.id, PROGRESS_GENERATING)
            result = self.generator.generate_article(
                topic.title,
                topic.keywords,
                notes=topic.research_notes,
                scope_description=topic.description or None,
                reference_images=topic.reference_images,
            )
        except Exception as exc:
            logger.error("Generation for topic %s failed: %s", topic.id, exc)
            try:
                self.store.release_topic(topic.id, error_marker(exc))
            except Exception:
                logger.exception("Could not release topic %s", topic.id)
            return FlowResult.failure("write", exc, topic_id=topic.id)

        try:
            draft = self.materializer.materialize(topic, result, action, scheduled_publish_at)
        except Exception as exc:
            return FlowResult.failure("write", exc, topic_id=topic.id)

        return FlowResult(
            flow="write",
            outcome=Outcome.PROCESSED,
            message=f"Wrote blog post: {draft.title}",
            topic_id=topic.id,
            draft_id=draft.id,
            slug=draft.slug,
        )

    # ── Publish flow ─────────────────────────────────────────────

    def run_publish_flow(self, now: datetime | None = None) -> FlowResult:
        """Commit the earliest scheduled draft that is due."""
        try:
            self.committer.github.ensure_configured()
        except ConfigurationError as exc:
            logger.error("Publish flow not configured: %s", exc)
            return FlowResult.failure("publish", exc)

        try:
            draft = self.store.find_due_draft(now)
        except Exception as exc:
            logger.error("Looking up due drafts failed: %s", exc, exc_info=True)
            return FlowResult.failure("publish", exc)

        if draft is None:
            return FlowResult.idle("publish", "No scheduled drafts ready to publish")
        return self._publish(draft, scheduled=True)

    def publish_draft(self, draft_id: str) -> FlowResult:
        """Publish one draft now, whatever its schedule."""
        draft = self.store.get_draft(draft_id)
        if draft is None:
            return FlowResult.failure(
                "publish", PreconditionError(f"Draft {draft_id} not found"), draft_id=draft_id
            )
        if draft.status == DraftStatus.PUBLISHED:
            return FlowResult.failure(
                "publish",
                PreconditionError(f"Draft {draft_id} is already published"),
                draft_id=draft_id,
                slug=draft.slug,
                commit_url=draft.commit_url,
                pr_url=draft.pr_url,
            )
        return self._publish(draft, scheduled=False)

    def _publish(self, draft: Draft, *, scheduled: bool) -> FlowResult:
        try:
            commit = self.committer.commit(draft, scheduled=scheduled)
        except PreconditionError as exc:
            logger.warning("Draft %s cannot be published: %s", draft.id, exc)
            return FlowResult.failure("publish", exc, draft_id=draft.id, slug=draft.slug or None)
        except Exception as exc:
            logger.error("Publishing draft %s failed: %s", draft.id, exc)
            return FlowResult.failure("publish", exc, draft_id=draft.id, slug=draft.slug or None)

        return FlowResult(
            flow="publish",
            outcome=Outcome.PROCESSED,
            message=f"Published: {draft.title}",
            draft_id=draft.id,
            slug=draft.slug,
            commit_url=commit.commit_url,
            pr_url=commit.pr_url,
        )

    # ── Tick ─────────────────────────────────────────────────────

    def run_tick(self, now: datetime | None = None) -> TickResult:
        """Run the write flow, then the publish flow, each isolated."""
        try:
            write = self.run_write_flow()
        except Exception as exc:
            logger.error("Write flow crashed: %s", exc, exc_info=True)
            write = FlowResult.failure("write", exc)

        try:
            publish = self.run_publish_flow(now)
        except Exception as exc:
            logger.error("Publish flow crashed: %s", exc, exc_info=True)
            publish = FlowResult.failure("publish", exc)

        logger.info(
            "Tick finished: write=%s publish=%s", write.outcome.value, publish.outcome.value
        )
        return TickResult(write=write, publish=publish)


def build_orchestrator(config: InkpressConfig, store: ContentStore | None = None) -> SchedulerOrchestrator:
    """Wire an orchestrator from configuration.

    Raises:
        ConfigurationError: If no database URL is configured and no store
            was given.
    """
    if store is None:
        store = ContentStore.from_url(config.database.url)
    notifier = Notifier(config.notifications)
    committer = PublicationCommitter(
        store, GitHubContentStore(config.github), notifier=notifier, site=config.site
    )
    return SchedulerOrchestrator(
        store,
        GenerationClient(config.generation, config.site),
        committer,
        default_build_mode=config.scheduler.default_build_mode,
    )
