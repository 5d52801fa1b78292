"""Advisory completeness scoring for drafts."""

from __future__ import annotations

from inkpress.content.models import Completeness, Draft

BODY_TARGET_CHARS = 2000
META_DESCRIPTION_TARGET_CHARS = 120


def _ratio(text: str, target: int) -> int:
    if not text.strip():
        return 0
    if len(text) >= target:
        return 100
    return round(len(text) / target * 100)


def compute_completeness(draft: Draft) -> Completeness:
    """Score each publishable field of a draft from 0 to 100."""
    has_title = bool(draft.title.strip())
    has_meta = bool(draft.meta_description.strip())
    has_category = bool(draft.category.strip())
    return Completeness(
        title=100 if has_title else 0,
        body=_ratio(draft.body, BODY_TARGET_CHARS),
        meta_description=_ratio(draft.meta_description, META_DESCRIPTION_TARGET_CHARS),
        image=100 if draft.featured_image.strip() else 0,
        category=100 if has_category else 0,
        structured_data=100 if has_title and has_meta and has_category else 0,
    )
