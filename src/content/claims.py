"""Atomic topic claiming for concurrent scheduler runs.

Two overlapping scheduler invocations must never process the same topic.
On PostgreSQL the claim is one statement that locks the candidate row with
``FOR UPDATE SKIP LOCKED`` and flips it to in_progress, so a racing caller
skips to the next candidate instead of waiting.  Other dialects fall back
to compare-and-swap: a conditional update that only succeeds while the row
is still ready, retried against the next candidate when it loses the race.
"""

from __future__ import annotations

import logging

from sqlalchemy import select, update

from inkpress.content.models import Topic, TopicStatus, utcnow
from inkpress.content.orm import TopicORM, topic_orm_to_model
from inkpress.content.store import ContentStore

logger = logging.getLogger(__name__)

# Upper bound on compare-and-swap retries within one claim call.
MAX_CLAIM_ATTEMPTS = 25


class TopicClaimCoordinator:
    """Hands out ready topics to at most one caller each."""

    def __init__(self, store: ContentStore, *, max_attempts: int = MAX_CLAIM_ATTEMPTS) -> None:
        self._store = store
        self._max_attempts = max_attempts

    @property
    def supports_skip_locked(self) -> bool:
        return self._store.engine.dialect.name == "postgresql"

    def claim_next_topic(self) -> Topic | None:
        """Claim the highest-priority, oldest ready topic.

        Returns the topic already flipped to in_progress, or None when no
        topic is ready (or every candidate was taken by a racing caller).
        """
        if self.supports_skip_locked:
            topic = self._claim_skip_locked()
        else:
            topic = self._claim_compare_and_swap()
        if topic is not None:
            logger.info("Claimed topic %s (%s)", topic.id, topic.title)
        return topic

    def claim_topic(self, topic_id: str) -> Topic | None:
        """Claim one specific topic if it is still ready."""
        if not self._swap_to_in_progress(topic_id):
            return None
        logger.info("Claimed topic %s", topic_id)
        return self._store.get_topic(topic_id)

    @staticmethod
    def skip_locked_statement():
        """``UPDATE ... WHERE id = (SELECT ... FOR UPDATE SKIP LOCKED) RETURNING``."""
        candidate = (
            select(TopicORM.id)
            .where(TopicORM.status == TopicStatus.READY.value)
            .order_by(TopicORM.priority.desc().nulls_last(), TopicORM.created_at.asc())
            .limit(1)
            .with_for_update(skip_locked=True)
            .scalar_subquery()
        )
        return (
            update(TopicORM)
            .where(TopicORM.id == candidate)
            .values(status=TopicStatus.IN_PROGRESS.value, updated_at=utcnow())
            .returning(TopicORM)
        )

    def _claim_skip_locked(self) -> Topic | None:
        with self._store.session() as session:
            orm = session.execute(self.skip_locked_statement()).scalars().first()
            return topic_orm_to_model(orm) if orm is not None else None

    def _next_candidate(self) -> str | None:
        stmt = (
            select(TopicORM.id)
            .where(TopicORM.status == TopicStatus.READY.value)
            .order_by(TopicORM.priority.desc().nulls_last(), TopicORM.created_at.asc())
            .limit(1)
        )
        with self._store.session() as session:
            return session.execute(stmt).scalar_one_or_none()

    def _swap_to_in_progress(self, topic_id: str) -> bool:
        stmt = (
            update(TopicORM)
            .where(TopicORM.id == topic_id, TopicORM.status == TopicStatus.READY.value)
            .values(status=TopicStatus.IN_PROGRESS.value, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        with self._store.session() as session:
            return session.execute(stmt).rowcount == 1

    def _claim_compare_and_swap(self) -> Topic | None:
        for _attempt in range(self._max_attempts):
            candidate = self._next_candidate()
            if candidate is None:
                return None
            if self._swap_to_in_progress(candidate):
                return self._store.get_topic(candidate)
            logger.debug("Lost the race for topic %s, trying the next one", candidate)
        logger.warning("Gave up claiming after %d contended attempts", self._max_attempts)
        return None
