"""Prompts sent to the generation backend."""

from __future__ import annotations

from inkpress.config import SiteConfig
from inkpress.content.models import ReferenceImage

_FORMAT_CONTRACT = (
    "FORMATTING RULES for the content field:\n"
    "- Do NOT start with a # Title line. The title is stored separately.\n"
    "- Use ## for sections and ### for subsections. Never use a single #.\n"
    "- Callouts are blockquotes that start with a bold label, e.g."
    ' "> **Tip:** Seal the posts before winter."\n'
    "- Comparisons go in Markdown tables with a header row.\n"
    "- Images must use the full syntax ![alt text](url) on their own line."
    " Never write an exclamation mark without the brackets.\n"
    "- Do not put layout, imageCaption, featuredImage or other metadata"
    " lines inside the content.\n"
)

_JSON_CONTRACT = (
    "Respond with ONLY a JSON object, no code fences and no commentary,"
    " with exactly these fields:\n"
    "{\n"
    '  "title": "Blog post title",\n'
    '  "content": "Full MDX article body",\n'
    '  "metaDescription": "SEO meta description, 120-160 characters",\n'
    '  "category": "One of the allowed categories",\n'
    '  "readTime": "X min read",\n'
    '  "featuredImage": "URL of the hero image, or empty string",\n'
    '  "imageCaption": "Caption for the hero image, or empty string",\n'
    '  "layout": "standard",\n'
    '  "showArticleSummary": true\n'
    "}\n"
    "Escape newlines inside string values as \\n."
)


def _format_images(images: list[ReferenceImage]) -> str:
    lines = []
    for image in images:
        label = image.description or "reference image"
        lines.append(f"- {label}: {image.url}")
    return "\n".join(lines)


def build_article_prompt(
    site: SiteConfig,
    topic: str,
    keywords: list[str],
    *,
    notes: str | None = None,
    scope_description: str | None = None,
    reference_images: list[ReferenceImage] | None = None,
    target_length: int = 1500,
) -> str:
    """Build the single instruction used to write one article."""
    keyword_list = ", ".join(keywords) if keywords else f"general {site.niche} topics"
    categories = ", ".join(f'"{c}"' for c in site.categories)

    sections = [
        f"You are an expert blog writer specializing in {site.niche}"
        f" for {site.audience}, writing for {site.name}.",
        f"Write a comprehensive, SEO-optimized blog post about: {topic}",
        f"Keywords to focus on: {keyword_list}",
    ]
    if scope_description:
        sections.append(f"Scope of the article:\n{scope_description}")
    if notes:
        sections.append(f"Additional research context:\n{notes}")
    if reference_images:
        sections.append(
            "Embed these images where they fit the text, using their URLs"
            " exactly as given:\n" + _format_images(reference_images)
        )

    sections.append(
        "Requirements:\n"
        f"- Target approximately {target_length} words\n"
        "- Engaging, informative content with practical, actionable advice\n"
        "- A friendly, professional tone\n"
        f"- A category chosen from: {categories}\n"
        '- An estimated read time such as "5 min read"'
    )
    sections.append(_FORMAT_CONTRACT)
    sections.append(_JSON_CONTRACT)
    return "\n\n".join(sections)


def build_investigate_prompt(site: SiteConfig, idea: str) -> str:
    """Build the prompt that expands a rough idea into a topic proposal."""
    return (
        f"You help plan a {site.niche} blog for {site.audience}.\n\n"
        f"Rough idea from the editor: {idea}\n\n"
        "Turn it into a concrete blog topic. Respond with ONLY a JSON object:\n"
        "{\n"
        '  "suggestedTitle": "A specific, search-friendly title",\n'
        '  "description": "Two or three sentences on what the article should cover",\n'
        '  "keywords": ["5 to 8", "search keywords"]\n'
        "}"
    )


def build_ideas_prompt(site: SiteConfig, count: int = 8) -> str:
    """Build the prompt that brainstorms fresh topic ideas."""
    return (
        f"Suggest {count} fresh blog post ideas for a {site.niche} blog"
        f" read by {site.audience}. Mix evergreen guides, cost questions,"
        " and seasonal advice. Each idea is one short sentence.\n\n"
        'Respond with ONLY a JSON object: {"ideas": ["idea one", "idea two"]}'
    )


def build_edit_prompt(
    site: SiteConfig,
    body: str,
    instruction: str,
    title: str = "",
    meta_description: str = "",
) -> str:
    """Build the prompt that applies an editor's instruction to an article."""
    return (
        f"You are an expert editor for a {site.niche} blog written for {site.audience}.\n\n"
        f"Article title: {title or '(untitled)'}\n"
        f"Meta description: {meta_description or '(none)'}\n\n"
        f"Current article body:\n---\n{body}\n---\n\n"
        f"Instruction: {instruction}\n\n"
        "RULES:\n"
        "- Apply the instruction and return the COMPLETE revised article body.\n"
        "- Keep everything the instruction does not ask you to change.\n"
        "- Keep the existing Markdown structure: ## sections, ### subsections,"
        " blockquote callouts, tables and ![alt](url) images.\n"
        "- Do not add a # Title line or frontmatter.\n"
        "- Return only the article body, with no code fences and no commentary.\n"
        "- If the instruction asks a question about the article instead of"
        " requesting a change, do not rewrite anything. Reply with a brief"
        ' answer that starts with "NOTE: ".'
    )
