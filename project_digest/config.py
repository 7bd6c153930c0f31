"""
Configuration management using YAML files and dataclasses.

This module defines all configuration dataclasses and provides loading
from YAML files with defaults, plus environment-variable overrides.
Configuration sections:
- GitHubConfig: GitHub source settings
- StateConfig: Persisted state location
- PipelineConfig: Windowing, title, time zone and watch interval
- PublisherConfig: Publisher selection and its settings
- SummaryConfig: LLM summary settings
- ProviderConfig: LLM provider settings
- LoggingConfig: Logging behavior
- LangfuseConfig: Langfuse tracing settings
- AppConfig: Root configuration container
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
import logging
import os
from typing import Any, Mapping
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

logger = logging.getLogger("project_digest")

PUBLISHER_KINDS = ("fs", "gh-pages", "none")


@dataclass
class GitHubConfig:
    """Configuration for the GitHub source.

    Attributes:
        token: Inline API token (prefer ``token_env``)
        token_env: Environment variable holding the token
        repos: Repositories as ``owner/repo`` or ``owner/repo@branch``
        api_url: REST API root
        timeout_seconds: HTTP request timeout
        retries: Total attempts for rate-limited requests
        per_page: Page size for list endpoints
        trust_env: Whether to respect system proxy settings
    """

    token: str | None = None
    token_env: str = "GITHUB_TOKEN"
    repos: list[str] = field(default_factory=list)
    api_url: str = "https://api.github.com"
    timeout_seconds: float = 30.0
    retries: int = 3
    per_page: int = 100
    trust_env: bool = True


@dataclass
class StateConfig:
    """Location of the persisted state file; logs are written next to it."""

    path: str = ".project_digest/state.json"


@dataclass
class PipelineConfig:
    """Configuration for batching and scheduling.

    Attributes:
        window_hours: Maximum span of one update batch
        title: Title given to every assembled draft
        timezone: IANA time zone passed to the summarizer prompt
        interval_minutes: Sleep between runs in watch mode
    """

    window_hours: float = 12.0
    title: str = "Project Update"
    timezone: str = "UTC"
    interval_minutes: float = 60.0


@dataclass
class PublisherConfig:
    """Configuration for publishing drafts.

    Attributes:
        kind: "fs", "gh-pages" or "none"
        out_dir: Output directory for the filesystem publisher
        base_url: Public URL prefix for published files
        token: Inline token for the GitHub Pages publisher
        token_env: Environment variable holding the Pages token
        owner: Pages repository owner
        repo: Pages repository name
        branch: Pages branch
        dir: Jekyll collection directory
        site_title: Site header title
        site_subtitle: Site header subtitle
    """

    kind: str = "fs"
    out_dir: str = "updates"
    base_url: str | None = None
    token: str | None = None
    token_env: str = "GHPAGES_TOKEN"
    owner: str | None = None
    repo: str | None = None
    branch: str = "gh-pages"
    dir: str = "updates"
    site_title: str | None = None
    site_subtitle: str | None = None


@dataclass
class SummaryConfig:
    """Configuration for the optional LLM summary.

    Attributes:
        enabled: Whether to summarize each batch when an API key is available
        publish: Whether to publish the summary as its own update
        system_prompt: System prompt override
        include_bodies: Include issue/PR bodies in the detail context
        max_comments: Recent comments fetched per issue/PR
        max_context_chars: Per-fact character cap for detail text
        temperature: Sampling temperature
        max_output_tokens: Output token cap
    """

    enabled: bool = True
    publish: bool = False
    system_prompt: str | None = None
    include_bodies: bool = True
    max_comments: int = 3
    max_context_chars: int = 2000
    temperature: float = 0.5
    max_output_tokens: int = 400


@dataclass
class ProviderConfig:
    """Configuration for pluggable LLM providers.

    ``model`` left unset uses the selected provider's default model.
    """

    name: str = "openai"
    model: str | None = None
    api_key_env: str | None = None
    base_url: str | None = None
    api_key: str | None = None
    trust_env: bool = True
    timeout_seconds: float = 60.0


@dataclass
class LoggingConfig:
    """Configuration for logging behavior.

    Attributes:
        level: Logging level ("DEBUG", "INFO", "WARNING", "ERROR")
        console: Whether to log to console
        file: Whether to log to file
        format: Log file format ("jsonl" or "plain")
        filename: Name of the main log file
        llm_log_enabled: Whether to enable separate LLM interaction logging
        llm_log_detail: LLM log detail level ("response_only", "prompt_response")
        llm_log_redaction: Redaction mode for LLM logs ("none", "redact_content", "redact_urls_authors")
        llm_log_file: Name of the LLM log file
    """

    level: str = "INFO"
    console: bool = True
    file: bool = True
    format: str = "jsonl"
    filename: str = "run.jsonl"
    llm_log_enabled: bool = True
    llm_log_detail: str = "response_only"
    llm_log_redaction: str = "redact_urls_authors"
    llm_log_file: str = "llm.jsonl"


@dataclass
class LangfuseConfig:
    """Configuration for Langfuse tracing.

    Attributes:
        enabled: Whether to enable Langfuse tracing
        public_key: Langfuse public key (optional)
        secret_key: Langfuse secret key (optional)
        base_url: Langfuse base URL (optional)
        environment: Langfuse environment label (optional)
        release: Langfuse release identifier (optional)
        timeout_seconds: Timeout for Langfuse ingestion requests
        redaction: Redaction mode for prompt/response payloads
        max_text_chars: Maximum characters for prompt/response payloads
    """

    enabled: bool = False
    public_key: str | None = None
    secret_key: str | None = None
    base_url: str | None = None
    environment: str | None = None
    release: str | None = None
    timeout_seconds: int = 30
    redaction: str = "redact_urls_authors"
    max_text_chars: int = 20000


@dataclass
class AppConfig:
    """Root configuration container aggregating all config sections."""

    github: GitHubConfig = field(default_factory=GitHubConfig)
    state: StateConfig = field(default_factory=StateConfig)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    publisher: PublisherConfig = field(default_factory=PublisherConfig)
    summary: SummaryConfig = field(default_factory=SummaryConfig)
    provider: ProviderConfig = field(default_factory=ProviderConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    langfuse: LangfuseConfig = field(default_factory=LangfuseConfig)


DEFAULT_CONFIG = AppConfig()

_SECTION_TYPES: dict[str, type] = {f.name: f.default_factory for f in fields(AppConfig)}  # type: ignore[misc]


def load_config(path: str | None) -> AppConfig:
    """Load configuration from a YAML file with defaults."""
    if not path:
        return _fromdict(_asdict(DEFAULT_CONFIG))

    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    return _merge_config(DEFAULT_CONFIG, raw)


def _merge_config(base: AppConfig, raw: dict[str, Any]) -> AppConfig:
    """Merge raw YAML config into base AppConfig."""
    data = _asdict(base)
    for key, value in raw.items():
        if key not in data:
            continue
        if isinstance(value, dict) and isinstance(data[key], dict):
            known = {f.name for f in fields(_SECTION_TYPES[key])}
            data[key].update({k: v for k, v in value.items() if k in known})
        else:
            data[key] = value
    return _fromdict(data)


def _asdict(cfg: AppConfig) -> dict[str, Any]:
    """Convert AppConfig to nested dictionary."""
    return asdict(cfg)


def _fromdict(data: dict[str, Any]) -> AppConfig:
    """Reconstruct AppConfig from nested dictionary."""
    sections = {name: section(**data.get(name, {})) for name, section in _SECTION_TYPES.items()}
    cfg = AppConfig(**sections)
    validate_timezone(cfg.pipeline.timezone)
    return cfg


def validate_timezone(name: str) -> str:
    """Return ``name`` when it is a valid IANA time zone.

    Raises:
        ValueError: If the zone is unknown
    """
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Invalid IANA time zone: {name!r}") from exc
    return name


def apply_env_overrides(cfg: AppConfig, env: Mapping[str, str] | None = None) -> AppConfig:
    """Apply deployment environment variables on top of file configuration.

    Only variables that are set and non-empty override the config.
    """
    env = os.environ if env is None else env

    def get(name: str) -> str | None:
        value = env.get(name)
        if value is None or not value.strip():
            return None
        return value.strip()

    if (value := get("GITHUB_TOKEN")) is not None:
        cfg.github.token = value
    if (value := get("GITHUB_REPOS")) is not None:
        cfg.github.repos = [repo.strip() for repo in value.split(",") if repo.strip()]
    if (value := get("STATE_FILE")) is not None:
        cfg.state.path = value
    if (value := get("TIMEZONE")) is not None:
        cfg.pipeline.timezone = validate_timezone(value)
    if (value := get("WINDOW_HOURS")) is not None:
        cfg.pipeline.window_hours = float(value)

    if (value := get("PUBLISHER")) is not None:
        cfg.publisher.kind = value.lower()
    if (value := get("PUBLISH_OUT_DIR")) is not None:
        cfg.publisher.out_dir = value
    if (value := get("PUBLISH_BASE_URL")) is not None:
        cfg.publisher.base_url = value
    if (value := get("GHPAGES_TOKEN")) is not None:
        cfg.publisher.token = value
    if (value := get("GHPAGES_OWNER")) is not None:
        cfg.publisher.owner = value
    if (value := get("GHPAGES_REPO")) is not None:
        cfg.publisher.repo = value
    if (value := get("GHPAGES_BRANCH")) is not None:
        cfg.publisher.branch = value
    if (value := get("GHPAGES_DIR")) is not None:
        cfg.publisher.dir = value
    if (value := get("GHPAGES_BASE_URL")) is not None and cfg.publisher.kind == "gh-pages":
        cfg.publisher.base_url = value
    if (value := get("SITE_TITLE")) is not None:
        cfg.publisher.site_title = value
    if (value := get("SITE_SUBTITLE")) is not None:
        cfg.publisher.site_subtitle = value

    if (value := get("AI_SUMMARY_MODEL")) is not None:
        cfg.provider.model = value
    if (value := get("AI_SUMMARY_PROMPT")) is not None:
        cfg.summary.system_prompt = value
    if (value := get("PUBLISH_AI_SUMMARY")) is not None:
        cfg.summary.publish = value.lower() == "true"
    if (value := get("AI_INCLUDE_BODIES")) is not None:
        cfg.summary.include_bodies = value.lower() != "false"
    if (value := get("AI_MAX_COMMENTS")) is not None:
        cfg.summary.max_comments = int(value)
    if (value := get("AI_MAX_CONTEXT_CHARS")) is not None:
        cfg.summary.max_context_chars = int(value)

    cfg.publisher.kind = normalize_publisher_kind(cfg.publisher.kind)
    return cfg


def normalize_publisher_kind(kind: str) -> str:
    """Return a known publisher kind, falling back to ``fs`` with a warning."""
    normalized = (kind or "fs").strip().lower()
    if normalized in PUBLISHER_KINDS:
        return normalized
    logger.warning('Unknown publisher "%s", defaulting to "fs"', kind)
    return "fs"


def get_api_key(cfg: ProviderConfig) -> str | None:
    """Get API key from inline config or environment variable."""
    if cfg.api_key:
        return cfg.api_key
    if cfg.api_key_env:
        return os.getenv(cfg.api_key_env)
    defaults = {
        "gemini": "GOOGLE_API_KEY",
        "openai": "OPENAI_API_KEY",
        "openai_compatible": "OPENAI_API_KEY",
        "openai-compatible": "OPENAI_API_KEY",
    }
    env_name = defaults.get(cfg.name.lower(), "OPENAI_API_KEY")
    return os.getenv(env_name)


def get_github_token(cfg: GitHubConfig) -> str | None:
    """Get the GitHub token from inline config or environment variable."""
    if cfg.token:
        return cfg.token
    return os.getenv(cfg.token_env) if cfg.token_env else None


def get_pages_token(cfg: PublisherConfig, github_cfg: GitHubConfig) -> str | None:
    """Get the Pages token, falling back to the GitHub source token."""
    if cfg.token:
        return cfg.token
    if cfg.token_env and os.getenv(cfg.token_env):
        return os.getenv(cfg.token_env)
    return get_github_token(github_cfg)
