"""Tests for sanitize_body: cleanup of generated article bodies."""

import pytest

from inkpress.content.sanitize import extract_content_field, sanitize_body

_SAMPLES = [
    "",
    "Plain paragraph.",
    "# Title\n\n## Section\n\nText.",
    '```json\n{"content":"# Title\\n\\nBody text"}\n```',
    '{"title": "X", "content": "## Intro\\n\\nCut off mid',
    "layout: wide\nshowArticleSummary: true\n\nParagraph",
    "Intro\n\n\n\n\n\nOutro",
    "!broken\n![ok](a.jpg)\n\n# Not a title because it is not first",
    "# A\n# B\n\n# C\nbody",
    "```yaml\nlayout: wide\n```\n\n!inside",
]


class TestIdempotence:
    @pytest.mark.parametrize("raw", _SAMPLES)
    def test_second_pass_is_noop(self, raw: str):
        once = sanitize_body(raw)
        assert sanitize_body(once) == once


class TestUnwrap:
    def test_fenced_json_envelope(self):
        raw = '```json\n{"content":"# Title\\n\\nBody text"}\n```'
        assert sanitize_body(raw) == "Body text"

    def test_bare_json_envelope(self):
        raw = '{"title": "Gates", "content": "## Hinges\\n\\nUse \\"heavy\\" hinges.", "category": "DIY"}'
        assert sanitize_body(raw) == '## Hinges\n\nUse "heavy" hinges.'

    def test_truncated_envelope(self):
        raw = '{"title": "X", "content": "## Intro\\n\\nThe response was cut'
        assert sanitize_body(raw) == "## Intro\n\nThe response was cut"

    def test_brace_without_content_field_unchanged(self):
        raw = "{this is just a brace}"
        assert sanitize_body(raw) == raw

    def test_fence_without_content_field_unchanged(self):
        raw = '```json\n{"title": "only a title"}\n```'
        assert sanitize_body(raw) == raw

    def test_extract_returns_none_for_empty_content(self):
        assert extract_content_field('{"content": ""}') is None

    def test_extract_unicode_escape(self):
        assert extract_content_field('{"content": "caf\\u00e9"}') == "café"


class TestTitleLine:
    def test_leading_title_removed(self):
        assert sanitize_body("# Title\n\n## Section\ntext") == "## Section\ntext"

    def test_second_level_heading_kept(self):
        assert sanitize_body("## Section\ntext") == "## Section\ntext"

    def test_title_later_in_body_kept(self):
        raw = "Intro\n\n# Later heading"
        assert sanitize_body(raw) == raw


class TestLineFilter:
    def test_malformed_image_removed_valid_kept(self):
        raw = "Before\n!Broken image no brackets\n![Valid](url.jpg)\nAfter"
        assert sanitize_body(raw) == "Before\n![Valid](url.jpg)\nAfter"

    def test_metadata_lines_removed(self):
        raw = 'Intro\nlayout: wide\nshowArticleSummary: true\nimageCaption: "A gate"\nfeaturedImage: x.jpg\nOutro'
        assert sanitize_body(raw) == "Intro\nOutro"

    def test_code_block_lines_kept(self):
        raw = "Config example:\n\n```yaml\nlayout: wide\n!not an image\n```"
        assert sanitize_body(raw) == raw

    def test_metadata_word_mid_line_kept(self):
        raw = "Pick a layout: open or closed."
        assert sanitize_body(raw) == raw


class TestWhitespace:
    def test_three_blank_lines_collapse(self):
        assert sanitize_body("a\n\n\n\nb") == "a\n\nb"

    def test_two_blank_lines_kept(self):
        assert sanitize_body("a\n\n\nb") == "a\n\n\nb"

    def test_trimmed(self):
        assert sanitize_body("\n\n  text  \n\n") == "text"


class TestNonStringInput:
    @pytest.mark.parametrize("raw", [None, "", 0, 42, ["a"]])
    def test_returned_unchanged(self, raw):
        assert sanitize_body(raw) == raw
