"""SQLAlchemy ORM models for topics, drafts and app settings.

These models are internal to the store.  The public interface uses the
Pydantic models from ``inkpress.content.models``; conversion happens here.
"""

from __future__ import annotations

import json
import uuid
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import DateTime, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

from inkpress.content.models import (
    Completeness,
    Draft,
    DraftStatus,
    ReferenceImage,
    Topic,
    TopicSource,
    TopicStatus,
    utcnow,
)


def new_id() -> str:
    return str(uuid.uuid4())


class UTCDateTime(TypeDecorator):
    """Stores aware datetimes as naive UTC and hands them back aware.

    SQLite drops tzinfo on the way in; normalising to UTC keeps range
    comparisons (``scheduled_publish_at <= now``) correct on every dialect.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is not None:
            value = value.astimezone(UTC)
        return value.replace(tzinfo=None)

    def process_result_value(self, value: datetime | None, dialect) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)


class JSONEncodedList(TypeDecorator):
    """Represents a list as a JSON-encoded string."""

    impl = Text
    cache_ok = True

    def process_bind_param(self, value: list | None, dialect) -> str | None:
        if value is None or value == []:
            return None
        return json.dumps(value)

    def process_result_value(self, value: str | None, dialect) -> list:
        if value is None:
            return []
        return json.loads(value)


class JSONEncodedDict(TypeDecorator):
    """Represents a dict as a JSON-encoded string."""

    impl = Text
    cache_ok = True

    def process_bind_param(self, value: dict | None, dialect) -> str | None:
        if value is None or value == {}:
            return None
        return json.dumps(value)

    def process_result_value(self, value: str | None, dialect) -> dict:
        if value is None:
            return {}
        return json.loads(value)


class Base(DeclarativeBase):
    pass


class TopicORM(Base):
    """SQLAlchemy model for the blog_topics table."""

    __tablename__ = "blog_topics"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    keywords: Mapped[list[str]] = mapped_column(JSONEncodedList, nullable=True)
    research_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    reference_images: Mapped[list[dict[str, Any]]] = mapped_column(JSONEncodedList, nullable=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default=TopicStatus.PREPARING.value)
    source: Mapped[str] = mapped_column(String(16), nullable=False, default=TopicSource.USER.value)
    priority: Mapped[int | None] = mapped_column(Integer, nullable=True, default=0)
    progress_status: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)

    __table_args__ = (
        Index("idx_blog_topics_status", "status"),
        Index("idx_blog_topics_priority", "priority"),
    )


class DraftORM(Base):
    """SQLAlchemy model for the blog_drafts table."""

    __tablename__ = "blog_drafts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    topic_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    slug: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    title: Mapped[str] = mapped_column(Text, nullable=False, default="")
    meta_description: Mapped[str | None] = mapped_column(Text, nullable=True, default="")
    body: Mapped[str | None] = mapped_column(Text, nullable=True, default="")
    category: Mapped[str | None] = mapped_column(Text, nullable=True, default="")
    featured_image: Mapped[str | None] = mapped_column(Text, nullable=True, default="")
    read_time: Mapped[str | None] = mapped_column(Text, nullable=True, default="")
    structured_data: Mapped[dict[str, Any]] = mapped_column(JSONEncodedDict, nullable=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default=DraftStatus.DRAFT.value)
    completeness: Mapped[dict[str, Any]] = mapped_column(JSONEncodedDict, nullable=True)
    scheduled_publish_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    published_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    commit_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    pr_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)

    __table_args__ = (
        Index("idx_blog_drafts_scheduled_publish", "status", "scheduled_publish_at"),
    )


class SettingORM(Base):
    """SQLAlchemy model for the app_settings key/value table."""

    __tablename__ = "app_settings"

    key: Mapped[str] = mapped_column(String(128), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)


# Conversion functions between ORM models and Pydantic models


def topic_orm_to_model(orm: TopicORM) -> Topic:
    """Convert a TopicORM row to a Topic."""
    return Topic(
        id=orm.id,
        title=orm.title,
        description=orm.description or "",
        keywords=orm.keywords or [],
        research_notes=orm.research_notes,
        reference_images=[ReferenceImage.model_validate(i) for i in orm.reference_images or []],
        status=TopicStatus(orm.status),
        source=TopicSource(orm.source),
        priority=orm.priority or 0,
        progress_status=orm.progress_status,
        created_at=orm.created_at,
        updated_at=orm.updated_at,
    )


def topic_model_to_orm(topic: Topic) -> TopicORM:
    """Convert a Topic to a new TopicORM row."""
    return TopicORM(
        id=topic.id or new_id(),
        title=topic.title,
        description=topic.description or None,
        keywords=list(topic.keywords) or None,
        research_notes=topic.research_notes,
        reference_images=[i.model_dump() for i in topic.reference_images] or None,
        status=topic.status.value,
        source=topic.source.value,
        priority=topic.priority,
        progress_status=topic.progress_status,
        created_at=topic.created_at,
        updated_at=topic.updated_at,
    )


def draft_orm_to_model(orm: DraftORM) -> Draft:
    """Convert a DraftORM row to a Draft."""
    return Draft(
        id=orm.id,
        topic_id=orm.topic_id,
        slug=orm.slug,
        title=orm.title or "",
        meta_description=orm.meta_description or "",
        body=orm.body or "",
        category=orm.category or "",
        featured_image=orm.featured_image or "",
        read_time=orm.read_time or "",
        structured_data=orm.structured_data or {},
        status=DraftStatus(orm.status),
        scheduled_publish_at=orm.scheduled_publish_at,
        published_at=orm.published_at,
        commit_url=orm.commit_url,
        pr_url=orm.pr_url,
        completeness=Completeness.model_validate(orm.completeness or {}),
        created_at=orm.created_at,
        updated_at=orm.updated_at,
    )


def apply_draft_fields(orm: DraftORM, draft: Draft) -> None:
    """Copy the editable fields of a Draft onto an ORM row."""
    orm.topic_id = draft.topic_id
    orm.slug = draft.slug
    orm.title = draft.title
    orm.meta_description = draft.meta_description
    orm.body = draft.body
    orm.category = draft.category
    orm.featured_image = draft.featured_image
    orm.read_time = draft.read_time
    orm.structured_data = dict(draft.structured_data) or None
    orm.status = draft.status.value
    orm.scheduled_publish_at = draft.scheduled_publish_at
    orm.published_at = draft.published_at
    orm.commit_url = draft.commit_url
    orm.pr_url = draft.pr_url
    orm.completeness = draft.completeness.model_dump()
