"""Generation backend client and output parsing."""

from inkpress.generation.client import GenerationClient
from inkpress.generation.models import (
    ArticleEdit,
    ArticleResult,
    EditKind,
    ParsedResponse,
    ParseVariant,
    TopicInvestigation,
)
from inkpress.generation.parsing import (
    RETRY_PLACEHOLDER,
    normalize_article,
    parse_article_response,
)

__all__ = [
    "RETRY_PLACEHOLDER",
    "ArticleEdit",
    "ArticleResult",
    "EditKind",
    "GenerationClient",
    "ParseVariant",
    "ParsedResponse",
    "TopicInvestigation",
    "normalize_article",
    "parse_article_response",
]
