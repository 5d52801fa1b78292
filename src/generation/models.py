"""Result types returned by the generation client."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field


class ParseVariant(StrEnum):
    """Which rung of the parsing ladder produced a result."""

    WELL_FORMED = "well_formed"
    RECOVERED_FROM_FENCE = "recovered_from_fence"
    RECOVERED_FROM_SUBSTRING = "recovered_from_substring"
    HEURISTIC_FALLBACK = "heuristic_fallback"
    PLACEHOLDER_RAW_JSON = "placeholder_raw_json"


class ParsedResponse(BaseModel):
    """Raw backend text after the parsing ladder.

    ``fields`` holds whatever keys could be recovered; for the heuristic and
    placeholder variants it carries at most ``title`` and ``content``.
    """

    variant: ParseVariant
    fields: dict[str, Any] = Field(default_factory=dict)
    raw_text: str = ""

    @property
    def is_structured(self) -> bool:
        return self.variant in (
            ParseVariant.WELL_FORMED,
            ParseVariant.RECOVERED_FROM_FENCE,
            ParseVariant.RECOVERED_FROM_SUBSTRING,
        )


class ArticleResult(BaseModel):
    """A normalized generated article, ready for the materializer."""

    title: str
    content: str
    meta_description: str
    category: str = ""
    read_time: str = "5 min read"
    featured_image: str = ""
    image_caption: str | None = None
    layout: str | None = None
    show_article_summary: bool | None = None
    parse_variant: ParseVariant = ParseVariant.WELL_FORMED

    @property
    def structured_data(self) -> dict[str, Any]:
        """Presentation hints carried through to front-matter."""
        data: dict[str, Any] = {}
        if self.image_caption:
            data["imageCaption"] = self.image_caption
        if self.layout:
            data["layout"] = self.layout
        if self.show_article_summary is not None:
            data["showArticleSummary"] = self.show_article_summary
        return data


class TopicInvestigation(BaseModel):
    """A rough idea expanded into a topic proposal."""

    suggested_title: str
    description: str = ""
    keywords: list[str] = Field(default_factory=list)


class EditKind(StrEnum):
    """Whether an edit request came back as a rewrite or an answer."""

    EDIT = "edit"
    NOTE = "note"


class ArticleEdit(BaseModel):
    """Reply to an editing instruction.

    ``content`` is the full revised body for an edit, or the short answer
    for a note.
    """

    kind: EditKind
    content: str
