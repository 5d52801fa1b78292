"""Defensive parsing of generation backend output.

The backend is asked for a bare JSON object but regularly wraps it in a
code fence, prefixes it with chatter, truncates it, or ignores the format
entirely.  ``parse_article_response`` walks a fixed ladder of recovery
strategies and tags the result with the rung that succeeded, so each
branch can be tested on its own.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from inkpress.generation.models import ArticleResult, ParsedResponse, ParseVariant

logger = logging.getLogger(__name__)

RETRY_PLACEHOLDER = (
    "Content could not be extracted from the AI response. Please retry generation."
)
DEFAULT_READ_TIME = "5 min read"

_JSON_FENCE_RE = re.compile(r"```(?:json|JSON)?[ \t]*\n?(.*?)\n?```", re.DOTALL)
_OPEN_FENCE_RE = re.compile(r"^```(?:json|JSON)?[ \t]*\n?")
_TITLE_FIELD_RE = re.compile(r'(?<![A-Za-z])"?title"?\s*:\s*"([^"]+)"', re.IGNORECASE)
_HEADING_RE = re.compile(r"^#\s+(.+)$", re.MULTILINE)
_MARKDOWN_FENCE_RE = re.compile(
    r"\A```(?:markdown|mdx|md)?[ \t]*\n(.*?)\n?```\s*\Z", re.DOTALL | re.IGNORECASE
)


def strip_json_fences(text: str) -> tuple[str, bool]:
    """Remove a Markdown code fence around JSON output.

    Returns the inner text and whether a fence was found.  An opening
    fence with no closing one (a truncated response) still counts.
    """
    text = text.strip()
    match = _JSON_FENCE_RE.search(text)
    if match:
        return match.group(1).strip(), True
    if text.startswith("```"):
        return _OPEN_FENCE_RE.sub("", text, count=1).strip(), True
    return text, False


def strip_markdown_fences(text: str) -> str:
    """Remove a code fence wrapped around a whole Markdown reply."""
    text = text.strip()
    match = _MARKDOWN_FENCE_RE.match(text)
    return match.group(1).strip() if match else text


def _loads_object(text: str) -> dict[str, Any] | None:
    try:
        value = json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return None
    return value if isinstance(value, dict) else None


def _brace_substring(text: str) -> str | None:
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return None
    return text[start : end + 1]


def parse_json_response(text: str) -> ParsedResponse | None:
    """Run the structured rungs of the ladder.

    Returns None when no JSON object could be recovered.
    """
    inner, fenced = strip_json_fences(text)

    data = _loads_object(inner)
    if data is not None:
        variant = ParseVariant.RECOVERED_FROM_FENCE if fenced else ParseVariant.WELL_FORMED
        return ParsedResponse(variant=variant, fields=data, raw_text=text)

    substring = _brace_substring(inner)
    if substring is not None:
        data = _loads_object(substring)
        if data is not None:
            return ParsedResponse(
                variant=ParseVariant.RECOVERED_FROM_SUBSTRING, fields=data, raw_text=text
            )
    return None


def parse_article_response(text: str) -> ParsedResponse:
    """Parse the backend's article output, never raising.

    Ladder: code fence → direct JSON → first ``{`` to last ``}`` →
    heuristic title plus raw text.  When the raw text itself looks like
    JSON that could not be parsed, the content becomes a retry placeholder
    rather than leaking JSON into an article.
    """
    parsed = parse_json_response(text)
    if parsed is not None:
        return parsed

    inner, _fenced = strip_json_fences(text)
    fields: dict[str, Any] = {}
    title_match = _TITLE_FIELD_RE.search(text) or _HEADING_RE.search(text)
    if title_match:
        fields["title"] = title_match.group(1).strip()

    if text.strip().startswith("{") or inner.startswith("{"):
        logger.warning("Generation output looked like broken JSON, using retry placeholder")
        fields["content"] = RETRY_PLACEHOLDER
        return ParsedResponse(variant=ParseVariant.PLACEHOLDER_RAW_JSON, fields=fields, raw_text=text)

    logger.info("Generation output was not JSON, using raw text as content")
    fields["content"] = text.strip()
    return ParsedResponse(variant=ParseVariant.HEURISTIC_FALLBACK, fields=fields, raw_text=text)


def _text_field(fields: dict[str, Any], key: str) -> str:
    value = fields.get(key)
    if value is None:
        return ""
    return str(value).strip()


def _bool_field(fields: dict[str, Any], key: str) -> bool | None:
    value = fields.get(key)
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    return None


def normalize_article(parsed: ParsedResponse, topic: str) -> ArticleResult:
    """Apply defaults to a parsed response.

    Missing title falls back to the topic, missing read time to
    ``"5 min read"`` and missing meta description to ``"Learn about
    <topic>"``.  Content that is empty or still starts with ``{`` is
    replaced with the retry placeholder.
    """
    fields = parsed.fields
    content = _text_field(fields, "content")
    if not content or content.startswith("{"):
        content = RETRY_PLACEHOLDER

    return ArticleResult(
        title=_text_field(fields, "title") or topic,
        content=content,
        meta_description=_text_field(fields, "metaDescription") or f"Learn about {topic.lower()}",
        category=_text_field(fields, "category"),
        read_time=_text_field(fields, "readTime") or DEFAULT_READ_TIME,
        featured_image=_text_field(fields, "featuredImage"),
        image_caption=_text_field(fields, "imageCaption") or None,
        layout=_text_field(fields, "layout") or None,
        show_article_summary=_bool_field(fields, "showArticleSummary"),
        parse_variant=parsed.variant,
    )
