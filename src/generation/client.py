"""Gemini ``generateContent`` client with endpoint fallback.

The backend's model and API-version availability shifts without notice,
so every call walks an ordered list of (model, api_version) endpoints and
returns the first response that carries candidate text.  Only when every
endpoint has failed does the caller see a ``GenerationError``, which keeps
the full list of attempts.
"""

from __future__ import annotations

import json
import logging
import re
import urllib.error
import urllib.request
from typing import Any

from inkpress.config import EndpointConfig, GenerationConfig, SiteConfig
from inkpress.content.models import ReferenceImage
from inkpress.generation.models import (
    ArticleEdit,
    ArticleResult,
    EditKind,
    TopicInvestigation,
)
from inkpress.generation.parsing import (
    normalize_article,
    parse_article_response,
    parse_json_response,
    strip_markdown_fences,
)
from inkpress.generation.prompts import (
    build_article_prompt,
    build_edit_prompt,
    build_ideas_prompt,
    build_investigate_prompt,
)
from inkpress.shared.errors import ConfigurationError, EndpointAttempt, GenerationError

logger = logging.getLogger(__name__)

_LIST_MARKER_RE = re.compile(r"^(?:[-*•]|\d+[.)])\s*")
_NOTE_PREFIX_RE = re.compile(r"^NOTE:\s*", re.IGNORECASE)
EDIT_TEMPERATURE = 0.3


class GenerationClient:
    """Calls the generation backend and turns its output into typed results."""

    def __init__(self, config: GenerationConfig, site: SiteConfig | None = None) -> None:
        self.config = config
        self.site = site or SiteConfig()
        self.base_url = config.base_url.rstrip("/")

    def ensure_configured(self) -> None:
        """Raise before any network traffic when no API key is set."""
        if not self.config.api_key:
            raise ConfigurationError(
                "GEMINI_API_KEY is not set. Export it or add [generation] api_key to .inkpress.toml"
            )

    # ── Transport ────────────────────────────────────────────────

    def _endpoint_url(self, endpoint: EndpointConfig) -> str:
        return f"{self.base_url}/{endpoint.api_version}/models/{endpoint.model}:generateContent"

    def _payload(self, prompt: str, temperature: float | None = None) -> dict[str, Any]:
        return {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": self.config.temperature if temperature is None else temperature,
                "topK": self.config.top_k,
                "topP": self.config.top_p,
                "maxOutputTokens": self.config.max_output_tokens,
            },
        }

    def _post(self, endpoint: EndpointConfig, payload: dict[str, Any]) -> dict[str, Any]:
        """POST one request; HTTP and network errors propagate."""
        req = urllib.request.Request(
            self._endpoint_url(endpoint),
            data=json.dumps(payload).encode("utf-8"),
            method="POST",
            headers={
                "Content-Type": "application/json",
                "x-goog-api-key": self.config.api_key,
            },
        )
        # No timeout unless configured; the socket default applies otherwise.
        kwargs: dict[str, Any] = {}
        if self.config.timeout:
            kwargs["timeout"] = self.config.timeout
        with urllib.request.urlopen(req, **kwargs) as resp:
            return json.loads(resp.read().decode("utf-8"))

    @staticmethod
    def _error_message(exc: urllib.error.HTTPError) -> str:
        """Pull ``error.message`` out of an error body when there is one."""
        fallback = f"HTTP {exc.code}: {exc.reason}"
        try:
            body = exc.read().decode("utf-8")
        except (OSError, AttributeError):
            return fallback
        try:
            data = json.loads(body)
        except (json.JSONDecodeError, ValueError):
            return body.strip()[:500] or fallback
        if isinstance(data, dict):
            error = data.get("error")
            if isinstance(error, dict) and error.get("message"):
                return str(error["message"])
            if data.get("message"):
                return str(data["message"])
        return fallback

    @staticmethod
    def _candidate_text(data: dict[str, Any]) -> str | None:
        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            return None
        return text if isinstance(text, str) and text.strip() else None

    def generate_text(
        self, prompt: str, *, label: str = "generation", temperature: float | None = None
    ) -> str:
        """Send *prompt* to each endpoint in turn and return the first text.

        *temperature* overrides the configured sampling temperature.

        Raises:
            ConfigurationError: If no API key is configured.
            GenerationError: If every endpoint failed.
        """
        self.ensure_configured()
        payload = self._payload(prompt, temperature)
        attempts: list[EndpointAttempt] = []

        for endpoint in self.config.endpoints:
            logger.debug("Calling %s (%s)", endpoint.label, label)
            try:
                data = self._post(endpoint, payload)
            except urllib.error.HTTPError as exc:
                message = self._error_message(exc)
                logger.warning("Endpoint %s returned %s: %s", endpoint.label, exc.code, message)
                attempts.append(EndpointAttempt(endpoint.label, message, exc.code))
                continue
            except (urllib.error.URLError, TimeoutError, OSError, ValueError) as exc:
                logger.warning("Endpoint %s unreachable: %s", endpoint.label, exc)
                attempts.append(EndpointAttempt(endpoint.label, str(exc)))
                continue

            text = self._candidate_text(data)
            if text is None:
                logger.warning("Endpoint %s returned no candidate text", endpoint.label)
                attempts.append(EndpointAttempt(endpoint.label, "Response had no candidate text"))
                continue

            if attempts:
                logger.info("Endpoint %s succeeded after %d failures", endpoint.label, len(attempts))
            return text

        raise GenerationError(f"All generation endpoints failed ({label})", attempts)

    # ── Operations ───────────────────────────────────────────────

    def generate_article(
        self,
        topic: str,
        keywords: list[str],
        notes: str | None = None,
        scope_description: str | None = None,
        reference_images: list[ReferenceImage] | None = None,
        target_length: int | None = None,
    ) -> ArticleResult:
        """Write one article about *topic*."""
        prompt = build_article_prompt(
            self.site,
            topic,
            keywords,
            notes=notes,
            scope_description=scope_description,
            reference_images=reference_images,
            target_length=target_length or self.config.target_length,
        )
        text = self.generate_text(prompt, label="article")
        parsed = parse_article_response(text)
        result = normalize_article(parsed, topic)
        logger.info("Generated article %r (%s)", result.title, result.parse_variant)
        return result

    def investigate_topic(self, idea: str) -> TopicInvestigation:
        """Expand a rough idea into a title, description and keywords."""
        text = self.generate_text(build_investigate_prompt(self.site, idea), label="investigate")
        parsed = parse_json_response(text)
        fields = parsed.fields if parsed is not None else {}

        raw_keywords = fields.get("keywords") or []
        if isinstance(raw_keywords, str):
            raw_keywords = raw_keywords.split(",")
        keywords = [str(k).strip() for k in raw_keywords if str(k).strip()]

        return TopicInvestigation(
            suggested_title=str(fields.get("suggestedTitle") or fields.get("title") or idea).strip(),
            description=str(fields.get("description") or "").strip(),
            keywords=keywords,
        )

    def suggest_topic_ideas(self, count: int = 8) -> list[str]:
        """Brainstorm short topic ideas for the configured site."""
        text = self.generate_text(build_ideas_prompt(self.site, count), label="ideas")
        parsed = parse_json_response(text)
        if parsed is not None:
            ideas = parsed.fields.get("ideas") or []
            return [str(i).strip() for i in ideas if str(i).strip()]

        # Plain list output, one idea per line
        ideas = []
        for line in text.splitlines():
            line = _LIST_MARKER_RE.sub("", line.strip()).strip()
            if line:
                ideas.append(line)
        return ideas[:count]

    def edit_article(
        self,
        body: str,
        instruction: str,
        *,
        title: str = "",
        meta_description: str = "",
    ) -> ArticleEdit:
        """Apply an editor's *instruction* to an article body.

        Questions about the article come back as a ``NOTE`` with the answer
        and leave the body alone; anything else is a full revised body.

        Raises:
            ValueError: If *instruction* is blank.
        """
        instruction = instruction.strip()
        if not instruction:
            raise ValueError("instruction is required")

        prompt = build_edit_prompt(self.site, body, instruction, title, meta_description)
        text = self.generate_text(prompt, label="edit", temperature=EDIT_TEMPERATURE).strip()
        if _NOTE_PREFIX_RE.match(text):
            return ArticleEdit(kind=EditKind.NOTE, content=_NOTE_PREFIX_RE.sub("", text, count=1).strip())
        return ArticleEdit(kind=EditKind.EDIT, content=strip_markdown_fences(text))
