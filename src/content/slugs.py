"""Slug derivation for drafts and published file names."""

from __future__ import annotations

import re

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")


def slugify(title: str) -> str:
    """Derive a path-safe slug from a title.

    Lower-cases, collapses every run of non-alphanumeric characters into a
    single hyphen, and trims hyphens from both ends::

        >>> slugify("Steel vs. Wood: What's Best?")
        'steel-vs-wood-what-s-best'
    """
    return _NON_ALNUM_RE.sub("-", (title or "").lower()).strip("-")
