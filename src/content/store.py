"""SQLAlchemy-backed content store for topics, drafts and settings.

Every method opens its own short transaction; nothing is cached between
calls, so several processes can share one database.  Status transitions
are single-row conditional updates that report whether they applied.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime

from sqlalchemy import Engine, select, update
from sqlalchemy.exc import IntegrityError

from inkpress.content.completeness import compute_completeness
from inkpress.content.engine import make_engine, make_session_factory, session_scope
from inkpress.content.models import Draft, DraftStatus, Topic, TopicStatus, utcnow
from inkpress.content.orm import (
    Base,
    DraftORM,
    SettingORM,
    TopicORM,
    apply_draft_fields,
    draft_orm_to_model,
    new_id,
    topic_model_to_orm,
    topic_orm_to_model,
)
from inkpress.shared.errors import StoreError

logger = logging.getLogger(__name__)

# Alias to avoid shadowing by the list_* return annotations
_list = list


class ContentStore:
    """CRUD and lifecycle operations over the pipeline tables."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        self._factory = make_session_factory(engine)

    @classmethod
    def from_url(cls, url: str | None) -> ContentStore:
        return cls(make_engine(url))

    @property
    def engine(self) -> Engine:
        return self._engine

    def init_schema(self) -> None:
        """Create all tables that do not exist yet."""
        Base.metadata.create_all(self._engine)

    def session(self):
        return session_scope(self._factory)

    # ── Topics ───────────────────────────────────────────────────

    def add_topic(self, topic: Topic) -> Topic:
        """Insert a topic and return it with its assigned id."""
        orm = topic_model_to_orm(topic)
        with self.session() as session:
            session.add(orm)
            session.flush()
            return topic_orm_to_model(orm)

    def get_topic(self, topic_id: str) -> Topic | None:
        with self.session() as session:
            orm = session.get(TopicORM, topic_id)
            return topic_orm_to_model(orm) if orm is not None else None

    def list_topics(self, status: TopicStatus | None = None) -> _list[Topic]:
        """Return topics in claim order (priority desc, oldest first)."""
        stmt = select(TopicORM).order_by(
            TopicORM.priority.desc().nulls_last(), TopicORM.created_at.asc()
        )
        if status is not None:
            stmt = stmt.where(TopicORM.status == status.value)
        with self.session() as session:
            return [topic_orm_to_model(o) for o in session.execute(stmt).scalars().all()]

    def set_topic_status(
        self,
        topic_id: str,
        status: TopicStatus,
        *,
        expected: Iterable[TopicStatus] | None = None,
        progress_status: str | None = None,
    ) -> bool:
        """Move a topic to *status*, optionally only from *expected* states.

        Returns True when a row changed.
        """
        values: dict[str, object] = {"status": status.value, "updated_at": utcnow()}
        if progress_status is not None:
            values["progress_status"] = progress_status
        stmt = update(TopicORM).where(TopicORM.id == topic_id)
        if expected is not None:
            stmt = stmt.where(TopicORM.status.in_([s.value for s in expected]))
        stmt = stmt.values(**values).execution_options(synchronize_session=False)
        with self.session() as session:
            return session.execute(stmt).rowcount == 1

    def update_progress(self, topic_id: str, progress_status: str | None) -> None:
        """Record a human-readable phase marker on a topic."""
        stmt = (
            update(TopicORM)
            .where(TopicORM.id == topic_id)
            .values(progress_status=progress_status, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        with self.session() as session:
            session.execute(stmt)

    def complete_topic(self, topic_id: str, progress_status: str | None = None) -> bool:
        """Mark an in-progress topic completed."""
        return self.set_topic_status(
            topic_id,
            TopicStatus.COMPLETED,
            expected=[TopicStatus.IN_PROGRESS],
            progress_status=progress_status,
        )

    def release_topic(self, topic_id: str, progress_status: str | None = None) -> bool:
        """Return an in-progress topic to ready so the next run retries it."""
        released = self.set_topic_status(
            topic_id,
            TopicStatus.READY,
            expected=[TopicStatus.IN_PROGRESS],
            progress_status=progress_status,
        )
        if not released:
            logger.warning("Topic %s was not in progress, nothing to release", topic_id)
        return released

    # ── Drafts ───────────────────────────────────────────────────

    def get_draft(self, draft_id: str) -> Draft | None:
        with self.session() as session:
            orm = session.get(DraftORM, draft_id)
            return draft_orm_to_model(orm) if orm is not None else None

    def get_draft_by_slug(self, slug: str) -> Draft | None:
        with self.session() as session:
            orm = session.execute(
                select(DraftORM).where(DraftORM.slug == slug)
            ).scalar_one_or_none()
            return draft_orm_to_model(orm) if orm is not None else None

    def list_drafts(self, status: DraftStatus | None = None) -> _list[Draft]:
        """Return drafts, most recently updated first."""
        stmt = select(DraftORM).order_by(DraftORM.updated_at.desc())
        if status is not None:
            stmt = stmt.where(DraftORM.status == status.value)
        with self.session() as session:
            return [draft_orm_to_model(o) for o in session.execute(stmt).scalars().all()]

    def save_draft(self, draft: Draft) -> Draft:
        """Insert a new draft or update the one with the same id.

        Completeness is recomputed from the content on every save.

        Raises:
            StoreError: If the slug already belongs to another draft.
        """
        draft = draft.model_copy(update={"completeness": compute_completeness(draft)})
        try:
            with self.session() as session:
                orm = session.get(DraftORM, draft.id) if draft.id else None
                if orm is None:
                    orm = DraftORM(id=draft.id or new_id(), created_at=draft.created_at)
                    session.add(orm)
                apply_draft_fields(orm, draft)
                orm.updated_at = utcnow()
                session.flush()
                return draft_orm_to_model(orm)
        except IntegrityError as exc:
            raise StoreError(f"Slug {draft.slug!r} is already taken") from exc

    def upsert_draft_by_slug(self, draft: Draft) -> tuple[Draft, bool]:
        """Insert a draft, or update the existing draft with the same slug.

        Returns the stored draft and whether it was newly created.  The
        existing row keeps its id and creation time.
        """
        existing = self.get_draft_by_slug(draft.slug)
        if existing is None:
            return self.save_draft(draft.model_copy(update={"id": ""})), True
        merged = draft.model_copy(update={"id": existing.id, "created_at": existing.created_at})
        return self.save_draft(merged), False

    def find_due_draft(self, now: datetime | None = None) -> Draft | None:
        """Return the earliest scheduled draft whose publish time has passed."""
        now = now or utcnow()
        stmt = (
            select(DraftORM)
            .where(
                DraftORM.status == DraftStatus.SCHEDULED.value,
                DraftORM.scheduled_publish_at.is_not(None),
                DraftORM.scheduled_publish_at <= now,
            )
            .order_by(DraftORM.scheduled_publish_at.asc())
            .limit(1)
        )
        with self.session() as session:
            orm = session.execute(stmt).scalars().first()
            return draft_orm_to_model(orm) if orm is not None else None

    def _transition_draft(
        self,
        draft_id: str,
        expected: Iterable[DraftStatus] | None,
        **values: object,
    ) -> bool:
        stmt = update(DraftORM).where(DraftORM.id == draft_id)
        if expected is not None:
            stmt = stmt.where(DraftORM.status.in_([s.value for s in expected]))
        stmt = stmt.values(updated_at=utcnow(), **values).execution_options(
            synchronize_session=False
        )
        with self.session() as session:
            return session.execute(stmt).rowcount == 1

    def schedule_draft(self, draft_id: str, when: datetime) -> bool:
        """Queue an unpublished draft for the publish flow at *when*."""
        return self._transition_draft(
            draft_id,
            [DraftStatus.DRAFT, DraftStatus.REVIEW, DraftStatus.SCHEDULED, DraftStatus.FAILED],
            status=DraftStatus.SCHEDULED.value,
            scheduled_publish_at=when,
        )

    def mark_draft_published(
        self,
        draft_id: str,
        commit_url: str,
        published_at: datetime,
        *,
        expected: DraftStatus = DraftStatus.SCHEDULED,
        pr_url: str | None = None,
    ) -> bool:
        """Record a confirmed commit on a draft still in *expected*.

        *pr_url* is set when the commit went to a pull request branch.
        """
        return self._transition_draft(
            draft_id,
            [expected],
            status=DraftStatus.PUBLISHED.value,
            published_at=published_at,
            commit_url=commit_url,
            pr_url=pr_url,
        )

    def mark_draft_failed(self, draft_id: str) -> bool:
        """Flag a draft that cannot be published without human correction."""
        return self._transition_draft(
            draft_id,
            [DraftStatus.DRAFT, DraftStatus.REVIEW, DraftStatus.SCHEDULED],
            status=DraftStatus.FAILED.value,
        )

    # ── Settings ─────────────────────────────────────────────────

    def get_setting(self, key: str, default: str | None = None) -> str | None:
        with self.session() as session:
            orm = session.get(SettingORM, key)
            return orm.value if orm is not None else default

    def set_setting(self, key: str, value: str) -> None:
        with self.session() as session:
            orm = session.get(SettingORM, key)
            if orm is None:
                session.add(SettingORM(key=key, value=value, updated_at=utcnow()))
            else:
                orm.value = value
                orm.updated_at = utcnow()
