"""Unified configuration loaded from .inkpress.toml, env vars, and CLI flags.

Loading order: defaults → TOML file → env vars → CLI flags.
"""

from __future__ import annotations

import logging
import os
import tomllib
from enum import StrEnum
from pathlib import Path

from pydantic import BaseModel, Field

from inkpress.content.models import BuildMode

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".inkpress.toml"
CONFIG_SEARCH_PATHS = [
    Path("."),
]
GLOBAL_CONFIG_PATH = Path.home() / ".config" / "inkpress" / "config.toml"


class DatabaseConfig(BaseModel):
    """[database] section."""

    url: str = ""
    echo: bool = False


class EndpointConfig(BaseModel):
    """One model/API-version combination of the generation backend."""

    model: str
    api_version: str = "v1beta"

    @property
    def label(self) -> str:
        return f"{self.api_version}/{self.model}"


def _default_endpoints() -> list[EndpointConfig]:
    return [
        EndpointConfig(model="gemini-2.5-flash", api_version="v1beta"),
        EndpointConfig(model="gemini-2.5-flash", api_version="v1"),
        EndpointConfig(model="gemini-2.0-flash", api_version="v1beta"),
    ]


class GenerationConfig(BaseModel):
    """[generation] section."""

    api_key: str = ""
    base_url: str = "https://generativelanguage.googleapis.com"
    endpoints: list[EndpointConfig] = Field(default_factory=_default_endpoints)
    temperature: float = 0.7
    top_k: int = 40
    top_p: float = 0.95
    max_output_tokens: int = 8192
    target_length: int = 1500
    timeout: int | None = None

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)


class ManualPublishMode(StrEnum):
    """How a hand-triggered publish reaches the repository."""

    PULL_REQUEST = "pull_request"
    DIRECT = "direct"


class GitHubConfig(BaseModel):
    """[github] section.

    Scheduled publishes always commit to ``default_branch``.  Manual
    publishes open a pull request from ``<pr_branch_prefix><slug>`` unless
    ``manual_publish_mode`` is ``direct``.
    """

    token: str = ""
    owner: str = ""
    repo: str = ""
    default_branch: str = "main"
    content_dir: str = "content/blog"
    extension: str = "mdx"
    api_url: str = "https://api.github.com"
    web_url: str = "https://github.com"
    manual_publish_mode: ManualPublishMode = ManualPublishMode.PULL_REQUEST
    pr_branch_prefix: str = "blog/"

    @property
    def is_configured(self) -> bool:
        return bool(self.token and self.owner and self.repo)


class SchedulerConfig(BaseModel):
    """[scheduler] section."""

    cron_secret: str = ""
    default_build_mode: BuildMode = BuildMode.CRON


class SiteConfig(BaseModel):
    """[site] section: who the articles are written for."""

    name: str = "our blog"
    niche: str = "home improvement"
    audience: str = "homeowners and contractors"
    base_url: str = ""
    categories: list[str] = Field(
        default_factory=lambda: [
            "Pricing",
            "Materials",
            "Legal",
            "Maintenance",
            "Installation",
            "DIY",
            "Design",
        ]
    )


class NotificationConfig(BaseModel):
    """[notifications] section."""

    slack_webhook: str = ""
    ntfy_url: str = ""
    ntfy_topic: str = "inkpress"
    enabled: bool = True
    timeout: int = 10

    @property
    def is_configured(self) -> bool:
        return self.enabled and bool(self.slack_webhook or self.ntfy_url)


class InkpressConfig(BaseModel):
    """Top-level configuration model for the publication pipeline."""

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    generation: GenerationConfig = Field(default_factory=GenerationConfig)
    github: GitHubConfig = Field(default_factory=GitHubConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    site: SiteConfig = Field(default_factory=SiteConfig)
    notifications: NotificationConfig = Field(default_factory=NotificationConfig)


def load_config(path: str | Path | None = None) -> InkpressConfig:
    """Load configuration from a TOML file.

    Search order:
    1. Explicit path (if provided)
    2. .inkpress.toml in CWD
    3. ~/.config/inkpress/config.toml

    Then overlay environment variables.

    Args:
        path: Explicit path to a TOML file.

    Returns:
        Merged InkpressConfig.
    """
    data: dict[str, object] = {}

    if path is not None:
        toml_path = Path(path)
        if toml_path.exists():
            data = _load_toml(toml_path)
        else:
            logger.warning("Config file not found: %s", toml_path)
    else:
        for search_dir in CONFIG_SEARCH_PATHS:
            candidate = search_dir / CONFIG_FILENAME
            if candidate.exists():
                data = _load_toml(candidate)
                logger.info("Loaded config from %s", candidate)
                break
        if not data and GLOBAL_CONFIG_PATH.exists():
            data = _load_toml(GLOBAL_CONFIG_PATH)
            logger.info("Loaded config from %s", GLOBAL_CONFIG_PATH)

    config = InkpressConfig.model_validate(data) if data else InkpressConfig()

    return _apply_env_vars(config)


def merge_cli_overrides(config: InkpressConfig, **cli_kwargs: object) -> InkpressConfig:
    """Overlay explicitly-set CLI flags onto the config.

    Only overrides values where the CLI flag was explicitly provided
    (i.e., not None).
    """
    data = config.model_dump()

    mapping: dict[str, tuple[str, str]] = {
        "database_url": ("database", "url"),
        "target_length": ("generation", "target_length"),
        "branch": ("github", "default_branch"),
    }

    for key, value in cli_kwargs.items():
        if value is None or key not in mapping:
            continue
        section, field = mapping[key]
        data[section][field] = value

    return InkpressConfig.model_validate(data)


def _load_toml(path: Path) -> dict[str, object]:
    """Load a TOML file and return the data dict."""
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (tomllib.TOMLDecodeError, OSError) as exc:
        logger.warning("Failed to parse %s: %s", path, exc)
        return {}


def _apply_env_vars(config: InkpressConfig) -> InkpressConfig:
    """Apply environment variable overrides to config."""
    data = config.model_dump()

    env_mapping: dict[str, tuple[str, str]] = {
        "DATABASE_URL": ("database", "url"),
        "GEMINI_API_KEY": ("generation", "api_key"),
        "GEMINI_BASE_URL": ("generation", "base_url"),
        "GITHUB_TOKEN": ("github", "token"),
        "GITHUB_REPO_OWNER": ("github", "owner"),
        "GITHUB_REPO_NAME": ("github", "repo"),
        "GITHUB_DEFAULT_BRANCH": ("github", "default_branch"),
        "GITHUB_CONTENT_DIR": ("github", "content_dir"),
        "GITHUB_MANUAL_PUBLISH_MODE": ("github", "manual_publish_mode"),
        "CRON_SECRET": ("scheduler", "cron_secret"),
        "INKPRESS_SITE_URL": ("site", "base_url"),
        "INKPRESS_SLACK_WEBHOOK": ("notifications", "slack_webhook"),
        "INKPRESS_NTFY_URL": ("notifications", "ntfy_url"),
        "INKPRESS_NTFY_TOPIC": ("notifications", "ntfy_topic"),
    }

    for env_var, (section, field) in env_mapping.items():
        value = os.environ.get(env_var)
        if value is not None:
            data[section][field] = value

    # Comma-separated "model@version" list, e.g. "gemini-2.5-flash@v1beta,gemini-2.0-flash@v1"
    endpoints_raw = os.environ.get("GEMINI_ENDPOINTS")
    if endpoints_raw is not None:
        endpoints = []
        for item in endpoints_raw.split(","):
            item = item.strip()
            if not item:
                continue
            model, _, version = item.partition("@")
            endpoints.append({"model": model, "api_version": version or "v1beta"})
        if endpoints:
            data["generation"]["endpoints"] = endpoints

    mode_raw = os.environ.get("INKPRESS_BUILD_MODE")
    if mode_raw is not None:
        data["scheduler"]["default_build_mode"] = mode_raw.strip().lower()

    return InkpressConfig.model_validate(data)
