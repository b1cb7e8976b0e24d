"""repolens configuration system.

Configuration is YAML-based with a handful of CLI overrides (--ref, --no-cache,
--skip-*). Supports environment variable substitution (${VAR}) in config files.

Configuration file discovery (in priority order):
1. CLI --config argument
2. ./.repolens/config.yaml
3. ./repolens.yaml
"""

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from repolens.models.llm_config import LLMConfig
from repolens.progress import DEFAULT_STAGE_WEIGHTS, PIPELINE_STAGES, validate_stage_weights

VALID_CACHE_BACKENDS = frozenset({"memory", "redis"})

# =============================================================================
# Configuration Dataclasses
# =============================================================================


@dataclass
class GitHubConfig:
    """Repository provider configuration.

    Attributes:
        token: API token (falls back to the GITHUB_TOKEN environment variable)
        api_url: REST API base URL
        max_files: Maximum number of file bodies fetched per run
        max_file_size: Bodies larger than this (bytes) are not fetched
        concurrency: Maximum in-flight content requests
        max_commits: Most recent commits listed per run
        commit_details: Most recent commits whose changed files are fetched
        max_contributor_pages: Contributor pages (100 each) listed per run
        timeout: Per-request timeout in seconds
    """

    token: str | None = None
    api_url: str = "https://api.github.com"
    max_files: int = 200
    max_file_size: int = 200 * 1024
    concurrency: int = 8
    timeout: float = 30.0
    max_commits: int = 200
    commit_details: int = 30
    max_contributor_pages: int = 5

    def __post_init__(self) -> None:
        if not self.token:
            self.token = os.environ.get("GITHUB_TOKEN") or None
        if self.max_files <= 0:
            raise ValueError(f"github.max_files must be positive (got {self.max_files})")
        if self.concurrency <= 0:
            raise ValueError(f"github.concurrency must be positive (got {self.concurrency})")
        if self.max_commits < 0 or self.commit_details < 0:
            raise ValueError("github.max_commits and github.commit_details must not be negative")


@dataclass
class CacheConfig:
    """Analysis cache configuration.

    Attributes:
        backend: Backing store (memory, redis)
        url: Redis connection URL (redis backend only)
        max_entries: Access-log bound; older entries are evicted on set
        ttl: Entry lifetime in seconds
        key_prefix: Prefix for every key (REPOLENS_CACHE_PREFIX when unset)
        enabled: Whether caching is enabled at all
    """

    backend: str = "memory"
    url: str = "redis://localhost:6379/0"
    max_entries: int = 10
    ttl: int = 300
    key_prefix: str = ""
    enabled: bool = True

    def __post_init__(self) -> None:
        if self.backend not in VALID_CACHE_BACKENDS:
            raise ValueError(
                f"Invalid cache backend: {self.backend}. Valid: {sorted(VALID_CACHE_BACKENDS)}"
            )
        if self.max_entries <= 0:
            raise ValueError(f"cache.max_entries must be positive (got {self.max_entries})")
        if self.ttl <= 0:
            raise ValueError(f"cache.ttl must be positive (got {self.ttl})")
        if not self.key_prefix:
            self.key_prefix = os.environ.get("REPOLENS_CACHE_PREFIX", "")


@dataclass
class PipelineConfig:
    """Pipeline policy knobs.

    Attributes:
        large_repo_threshold: Catalogs with more fetched source files skip straight to the fallback graph
        architecture_timeout: Deadline (seconds) for graph building and classification
        fallback_subset: Number of source files used by the fallback graph
        hotspot_complexity: Files above this complexity are reported as hotspots
        stage_weights: Progress weight per pipeline stage (every stage, summing to 100)
    """

    large_repo_threshold: int = 200
    architecture_timeout: float = 45.0
    fallback_subset: int = 50
    hotspot_complexity: int = 20
    stage_weights: dict[str, int] = field(default_factory=lambda: dict(DEFAULT_STAGE_WEIGHTS))

    def __post_init__(self) -> None:
        if self.architecture_timeout <= 0:
            raise ValueError(
                f"pipeline.architecture_timeout must be positive (got {self.architecture_timeout})"
            )
        if self.fallback_subset <= 0:
            raise ValueError(
                f"pipeline.fallback_subset must be positive (got {self.fallback_subset})"
            )
        if self.hotspot_complexity <= 0:
            raise ValueError(
                f"pipeline.hotspot_complexity must be positive (got {self.hotspot_complexity})"
            )
        validate_stage_weights(self.stage_weights, PIPELINE_STAGES)


@dataclass
class ServiceConfig:
    """HTTP service configuration.

    Attributes:
        host: Bind address
        port: Bind port
        keepalive_interval: Seconds between keep-alive events on a stream
    """

    host: str = "127.0.0.1"
    port: int = 8000
    keepalive_interval: float = 30.0


@dataclass
class RepolensConfig:
    """Top-level repolens configuration.

    Attributes:
        github: Repository provider settings
        llm: LLM settings (disabled by default)
        cache: Cache backend and bounds
        pipeline: Pipeline policy
        service: HTTP service settings
    """

    github: GitHubConfig = field(default_factory=GitHubConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    service: ServiceConfig = field(default_factory=ServiceConfig)

    # Set by load_config()
    _config_path: Path | None = field(default=None, repr=False)

    @property
    def config_path(self) -> Path | None:
        """Get the path to the config file that was loaded."""
        return self._config_path


# =============================================================================
# Environment Variable Substitution
# =============================================================================

_ENV_PATTERN = re.compile(r"\$\{([^}]+)\}")


def substitute_env_vars(value: Any) -> Any:
    """Substitute environment variables in config values.

    Supports ${VAR} syntax for environment variable substitution.
    Example: ${OPENAI_API_KEY} -> value of OPENAI_API_KEY

    Args:
        value: Config value (string, dict, list, or other)

    Returns:
        Value with environment variables substituted

    Raises:
        ValueError: If a referenced variable is not set
    """
    if isinstance(value, str):

        def replace_var(match: re.Match[str]) -> str:
            var_name = match.group(1)
            env_value = os.environ.get(var_name)
            if env_value is None:
                raise ValueError(f"Environment variable not set: {var_name}")
            return env_value

        return _ENV_PATTERN.sub(replace_var, value)

    elif isinstance(value, dict):
        return {k: substitute_env_vars(v) for k, v in value.items()}

    elif isinstance(value, list):
        return [substitute_env_vars(v) for v in value]

    return value


# =============================================================================
# Config File Discovery
# =============================================================================


def find_config_file(start_path: Path | None = None) -> Path | None:
    """Find configuration file in standard locations.

    Search order:
    1. ./.repolens/config.yaml
    2. ./repolens.yaml

    Args:
        start_path: Starting directory for search (defaults to cwd)

    Returns:
        Path to config file if found, None otherwise
    """
    if start_path is None:
        start_path = Path.cwd()

    start_path = start_path.resolve()

    candidates = [
        start_path / ".repolens" / "config.yaml",
        start_path / "repolens.yaml",
    ]

    for candidate in candidates:
        if candidate.exists():
            return candidate

    return None


# =============================================================================
# Config Loading
# =============================================================================


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    value = data.get(name) or {}
    if not isinstance(value, dict):
        raise ValueError(f"Config section '{name}' must be a mapping")
    return value


def load_config_from_dict(data: dict[str, Any]) -> RepolensConfig:
    """Load configuration from a dictionary.

    Unknown keys inside a section are rejected so typos surface early.

    Args:
        data: Configuration dictionary

    Returns:
        RepolensConfig instance

    Raises:
        ValueError: If a value is invalid or a key is unknown
    """
    data = substitute_env_vars(data)
    config = RepolensConfig()

    try:
        if "github" in data:
            config.github = GitHubConfig(**_section(data, "github"))

        if "llm" in data:
            config.llm = LLMConfig.from_dict(_section(data, "llm"))

        if "cache" in data:
            config.cache = CacheConfig(**_section(data, "cache"))

        if "pipeline" in data:
            pipeline_data = dict(_section(data, "pipeline"))
            if "stage_weights" in pipeline_data:
                # Partial overrides merge onto the defaults
                weights = dict(DEFAULT_STAGE_WEIGHTS)
                weights.update(pipeline_data["stage_weights"] or {})
                pipeline_data["stage_weights"] = weights
            config.pipeline = PipelineConfig(**pipeline_data)

        if "service" in data:
            config.service = ServiceConfig(**_section(data, "service"))
    except TypeError as e:
        # dataclass __init__ rejects unknown keys with TypeError
        raise ValueError(f"Invalid configuration: {e}") from e

    return config


def load_config(
    config_path: Path | None = None,
    auto_discover: bool = True,
) -> RepolensConfig:
    """Load configuration from file.

    Args:
        config_path: Explicit path to config file
        auto_discover: Whether to search for config file if not specified

    Returns:
        RepolensConfig instance (defaults when no file is found)

    Raises:
        FileNotFoundError: If config_path specified but doesn't exist
    """
    if config_path is not None:
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
        found_path = config_path
    elif auto_discover:
        found_path = find_config_file()
    else:
        found_path = None

    if found_path is not None:
        with open(found_path) as f:
            data = yaml.safe_load(f) or {}
        config = load_config_from_dict(data)
        config._config_path = found_path
    else:
        config = RepolensConfig()

    return config


def create_default_config() -> str:
    """Create default configuration YAML content.

    Returns:
        YAML string with default configuration and comments
    """
    return '''# repolens configuration

# Repository provider
github:
  # token: "${GITHUB_TOKEN}"   # falls back to the GITHUB_TOKEN env var
  api_url: "https://api.github.com"
  max_files: 200               # file bodies fetched per run
  max_file_size: 204800        # bytes; larger files are listed but not fetched
  concurrency: 8
  timeout: 30
  max_commits: 200             # commit history listed per run
  commit_details: 30           # recent commits whose changed files are fetched
  max_contributor_pages: 5

# Optional LLM for summaries and architecture descriptions
llm:
  enabled: false
  provider: "ollama"           # ollama (local), openai, claude, gemini, bedrock
  model: "llama3.2"
  # api_key: "${OPENAI_API_KEY}"   # required for openai/claude/gemini
  api_base: "http://localhost:11434"
  temperature: 0.2
  max_tokens: 2048

# Analysis cache
cache:
  backend: "memory"            # memory, redis
  url: "redis://localhost:6379/0"
  max_entries: 10
  ttl: 300                     # seconds
  # key_prefix: "repolens:"    # or REPOLENS_CACHE_PREFIX

# Pipeline policy
pipeline:
  large_repo_threshold: 200    # files; larger catalogs use the fallback graph
  architecture_timeout: 45     # seconds
  fallback_subset: 50
  hotspot_complexity: 20       # files above this complexity are hotspots
  # stage_weights:             # every stage, summing to 100
  #   init: 1
  #   repo_info: 4
  #   history: 5
  #   files: 25
  #   dependencies: 5
  #   architecture: 15
  #   quality: 10
  #   heuristics: 20
  #   finalizing: 15

# HTTP service (repolens serve)
service:
  host: "127.0.0.1"
  port: 8000
  keepalive_interval: 30
'''
