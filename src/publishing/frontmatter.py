"""Front-matter rendering for published article files."""

from __future__ import annotations

from datetime import date

from inkpress.content.models import Draft
from inkpress.content.sanitize import sanitize_body

DEFAULT_READ_TIME = "5 min read"


def escape_value(value: object) -> str:
    """Escape a value for a double-quoted front-matter string."""
    return str(value).replace("\\", "\\\\").replace('"', '\\"').replace("\n", " ")


def _quoted(key: str, value: object) -> str:
    return f'{key}: "{escape_value(value)}"'


def build_frontmatter(draft: Draft, keywords: list[str] | None = None, today: date | None = None) -> str:
    """Render the ``---`` delimited header block for *draft*.

    Field order is fixed: title, description, slug, category, image,
    readTime, the three date fields, keywords, then the structured-data
    presentation hints.  Optional fields are omitted when empty.
    """
    today = today or date.today()
    lines = [
        "---",
        _quoted("title", draft.title),
        _quoted("description", draft.meta_description or ""),
        _quoted("slug", draft.slug),
        _quoted("category", draft.category or ""),
    ]
    if draft.featured_image:
        lines.append(_quoted("image", draft.featured_image))
    lines.extend(
        [
            _quoted("readTime", draft.read_time or DEFAULT_READ_TIME),
            _quoted("publishDate", f"{today:%B %Y}"),
            _quoted("datePublished", today.isoformat()),
            _quoted("dateModified", today.isoformat()),
        ]
    )
    if keywords:
        lines.append(_quoted("keywords", ", ".join(keywords)))

    data = draft.structured_data or {}
    if data.get("layout"):
        lines.append(_quoted("layout", data["layout"]))
    show_summary = data.get("showArticleSummary")
    if isinstance(show_summary, str):
        show_summary = show_summary.strip().lower() == "true"
    if show_summary is not None:
        lines.append(f"showArticleSummary: {'true' if show_summary else 'false'}")
    if data.get("imageCaption"):
        lines.append(_quoted("imageCaption", data["imageCaption"]))

    lines.append("---")
    return "\n".join(lines)


def render_document(draft: Draft, keywords: list[str] | None = None, today: date | None = None) -> str:
    """Front-matter, a blank line, then the sanitized body."""
    frontmatter = build_frontmatter(draft, keywords, today)
    return f"{frontmatter}\n\n{sanitize_body(draft.body)}\n"
