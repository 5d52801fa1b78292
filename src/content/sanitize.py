"""Clean generated article bodies before they are stored or published.

The generation backend occasionally leaks pieces of its own response
protocol into the article body: the whole JSON envelope (sometimes inside a
code fence, sometimes truncated), the title repeated as a level-1 heading,
scalar metadata fields on their own lines, and ``!`` lines that were meant
to be Markdown images.  ``sanitize_body`` undoes all of that and never
raises.
"""

from __future__ import annotations

import re
from typing import Any

_CONTENT_FIELD_RE = re.compile(r'"content"\s*:\s*"')
_FENCE_OPEN_RE = re.compile(r"^```[\w+-]*[ \t]*\n?")
_ESCAPE_RE = re.compile(r"\\(u[0-9a-fA-F]{4}|.)", re.DOTALL)
_TITLE_LINE_RE = re.compile(r"^#[ \t]+\S")
_METADATA_LINE_RE = re.compile(
    r'^\s*"?(?:layout|showArticleSummary|imageCaption|featuredImage|metaDescription|readTime)"?\s*:'
)
_MALFORMED_IMAGE_RE = re.compile(r"^\s*!(?!\[)")
_EXCESS_BLANK_LINES_RE = re.compile(r"\n(?:[ \t]*\n){3,}")

_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "",
    '"': '"',
    "\\": "\\",
    "/": "/",
}


def _unescape(value: str) -> str:
    def replace(match: re.Match[str]) -> str:
        token = match.group(1)
        if token.startswith("u") and len(token) == 5:
            return chr(int(token[1:], 16))
        return _ESCAPES.get(token, match.group(0))

    return _ESCAPE_RE.sub(replace, value)


def _looks_wrapped(text: str) -> bool:
    stripped = text.lstrip()
    if stripped.startswith("```"):
        inner = _FENCE_OPEN_RE.sub("", stripped, count=1).lstrip()
        return inner.startswith("{")
    return stripped.startswith("{") and bool(_CONTENT_FIELD_RE.search(stripped))


def extract_content_field(text: str) -> str | None:
    """Pull the ``content`` string out of a (possibly truncated) JSON object.

    Scans from the opening quote of the value to the first unescaped
    closing quote, or to the end of the text when the fragment was cut
    off.  Returns None when there is no usable ``content`` value.
    """
    match = _CONTENT_FIELD_RE.search(text)
    if match is None:
        return None

    chars: list[str] = []
    i = match.end()
    while i < len(text):
        char = text[i]
        if char == "\\":
            if i + 1 < len(text):
                chars.append(text[i : i + 2])
            i += 2
            continue
        if char == '"':
            break
        chars.append(char)
        i += 1

    value = _unescape("".join(chars))
    if not value.strip():
        return None
    return value


def _unwrap(text: str) -> str:
    if not _looks_wrapped(text):
        return text
    content = extract_content_field(text)
    return text if content is None else content


def _strip_title_lines(text: str) -> str:
    lines = text.split("\n")
    start = 0
    removed = False
    while True:
        i = start
        while i < len(lines) and not lines[i].strip():
            i += 1
        if i < len(lines) and _TITLE_LINE_RE.match(lines[i]):
            start = i + 1
            removed = True
            continue
        break
    return "\n".join(lines[start:]) if removed else text


def _filter_lines(text: str) -> str:
    kept: list[str] = []
    in_code_block = False
    for line in text.split("\n"):
        if line.lstrip().startswith("```"):
            in_code_block = not in_code_block
            kept.append(line)
            continue
        if not in_code_block and (
            _METADATA_LINE_RE.match(line) or _MALFORMED_IMAGE_RE.match(line)
        ):
            continue
        kept.append(line)
    return "\n".join(kept)


def _normalize_whitespace(text: str) -> str:
    return _EXCESS_BLANK_LINES_RE.sub("\n\n", text).strip()


def _sanitize_once(text: str) -> str:
    text = _unwrap(text)
    text = _strip_title_lines(text)
    text = _filter_lines(text)
    return _normalize_whitespace(text)


def sanitize_body(raw: Any) -> Any:
    """Return a cleaned copy of a generated article body.

    Non-string or empty input is returned unchanged.  Every transform only
    ever shortens the text, so the pass is repeated until nothing changes;
    the result is therefore stable under a second call.
    """
    if not raw or not isinstance(raw, str):
        return raw

    text = raw
    while True:
        cleaned = _sanitize_once(text)
        if cleaned == text:
            return cleaned
        text = cleaned
