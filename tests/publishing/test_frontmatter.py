"""Tests for front-matter rendering."""

from datetime import date

from inkpress.content.models import Draft
from inkpress.publishing.frontmatter import build_frontmatter, escape_value, render_document

_TODAY = date(2026, 10, 18)


def _make_draft(**kwargs: object) -> Draft:
    kwargs.setdefault("slug", "vinyl-vs-wood")
    kwargs.setdefault("title", "Vinyl vs. Wood")
    kwargs.setdefault("meta_description", "Which fence lasts longer?")
    kwargs.setdefault("body", "## Cost\n\nVinyl costs more.")
    kwargs.setdefault("category", "Materials")
    return Draft(**kwargs)  # type: ignore[arg-type]


class TestEscape:
    def test_quotes(self):
        assert escape_value('The "best" fence') == 'The \\"best\\" fence'

    def test_backslash_before_quote(self):
        assert escape_value('C:\\path "x"') == 'C:\\\\path \\"x\\"'

    def test_newlines_flattened(self):
        assert escape_value("a\nb") == "a b"


class TestBuildFrontmatter:
    def test_minimal_field_order(self):
        fm = build_frontmatter(_make_draft(read_time=""), today=_TODAY)
        assert fm.splitlines() == [
            "---",
            'title: "Vinyl vs. Wood"',
            'description: "Which fence lasts longer?"',
            'slug: "vinyl-vs-wood"',
            'category: "Materials"',
            'readTime: "5 min read"',
            'publishDate: "October 2026"',
            'datePublished: "2026-10-18"',
            'dateModified: "2026-10-18"',
            "---",
        ]

    def test_optional_fields(self):
        draft = _make_draft(
            featured_image="https://img.example.com/hero.jpg",
            read_time="8 min read",
            structured_data={"layout": "wide", "showArticleSummary": False, "imageCaption": 'A "rail" fence'},
        )
        lines = build_frontmatter(draft, ["vinyl", "wood"], today=_TODAY).splitlines()
        assert lines[5] == 'image: "https://img.example.com/hero.jpg"'
        assert lines[6] == 'readTime: "8 min read"'
        assert 'keywords: "vinyl, wood"' in lines
        assert lines[-4:] == [
            'layout: "wide"',
            "showArticleSummary: false",
            'imageCaption: "A \\"rail\\" fence"',
            "---",
        ]

    def test_title_with_quotes_escaped(self):
        fm = build_frontmatter(_make_draft(title='The "Only" Guide'), today=_TODAY)
        assert 'title: "The \\"Only\\" Guide"' in fm

    def test_no_keywords_line_without_keywords(self):
        assert "keywords:" not in build_frontmatter(_make_draft(), [], today=_TODAY)


class TestRenderDocument:
    def test_frontmatter_blank_line_body(self):
        doc = render_document(_make_draft(), today=_TODAY)
        head, body = doc.split("---\n\n", 1)
        assert head.startswith("---\ntitle:")
        assert body == "## Cost\n\nVinyl costs more.\n"

    def test_body_is_sanitized(self):
        draft = _make_draft(body="# Vinyl vs. Wood\n\n!broken\n## Cost\n\n\n\n\nText")
        doc = render_document(draft, today=_TODAY)
        assert doc.endswith("---\n\n## Cost\n\nText\n")
