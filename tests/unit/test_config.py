"""Unit tests for the configuration system."""

from pathlib import Path

import pytest

from repolens.config import (
    CacheConfig,
    GitHubConfig,
    PipelineConfig,
    RepolensConfig,
    create_default_config,
    find_config_file,
    load_config,
    load_config_from_dict,
    substitute_env_vars,
)
from repolens.progress import DEFAULT_STAGE_WEIGHTS


class TestSubstituteEnvVars:
    """Tests for environment variable substitution."""

    def test_substitute_string(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test substituting an env var inside a string."""
        monkeypatch.setenv("TEST_VAR", "test_value")

        assert substitute_env_vars("prefix_${TEST_VAR}_suffix") == "prefix_test_value_suffix"

    def test_substitute_nested(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test substitution recurses into dicts and lists."""
        monkeypatch.setenv("VAR1", "one")

        result = substitute_env_vars({"a": ["${VAR1}", 2], "b": {"c": "${VAR1}"}})

        assert result == {"a": ["one", 2], "b": {"c": "one"}}

    def test_missing_var_raises_error(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test a missing variable raises ValueError."""
        monkeypatch.delenv("REPOLENS_MISSING_VAR", raising=False)

        with pytest.raises(ValueError, match="REPOLENS_MISSING_VAR"):
            substitute_env_vars("${REPOLENS_MISSING_VAR}")


class TestFindConfigFile:
    """Tests for config file discovery."""

    def test_find_in_repolens_dir(self, tmp_path: Path) -> None:
        """Test .repolens/config.yaml takes priority."""
        (tmp_path / ".repolens").mkdir()
        preferred = tmp_path / ".repolens" / "config.yaml"
        preferred.write_text("cache: {}\n")
        (tmp_path / "repolens.yaml").write_text("cache: {}\n")

        assert find_config_file(tmp_path) == preferred.resolve()

    def test_find_root_file(self, tmp_path: Path) -> None:
        """Test repolens.yaml at the root."""
        (tmp_path / "repolens.yaml").write_text("cache: {}\n")

        assert find_config_file(tmp_path) == (tmp_path / "repolens.yaml").resolve()

    def test_not_found(self, tmp_path: Path) -> None:
        """Test None when no config exists."""
        assert find_config_file(tmp_path) is None


class TestSectionConfigs:
    """Tests for per-section validation."""

    def test_github_token_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test the token falls back to GITHUB_TOKEN."""
        monkeypatch.setenv("GITHUB_TOKEN", "ghp_env")

        assert GitHubConfig().token == "ghp_env"
        assert GitHubConfig(token="explicit").token == "explicit"

    def test_github_limits(self) -> None:
        """Test non-positive limits are rejected."""
        with pytest.raises(ValueError, match="max_files"):
            GitHubConfig(max_files=0)
        with pytest.raises(ValueError, match="concurrency"):
            GitHubConfig(concurrency=0)
        with pytest.raises(ValueError, match="max_commits"):
            GitHubConfig(max_commits=-1)

    def test_cache_backend(self) -> None:
        """Test unknown cache backends are rejected."""
        with pytest.raises(ValueError, match="Invalid cache backend"):
            CacheConfig(backend="memcached")

    def test_cache_bounds(self) -> None:
        """Test max_entries and ttl must be positive."""
        with pytest.raises(ValueError, match="max_entries"):
            CacheConfig(max_entries=0)
        with pytest.raises(ValueError, match="ttl"):
            CacheConfig(ttl=0)

    def test_cache_prefix_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test the key prefix falls back to REPOLENS_CACHE_PREFIX."""
        monkeypatch.setenv("REPOLENS_CACHE_PREFIX", "ci:")

        assert CacheConfig().key_prefix == "ci:"

    def test_pipeline_weights(self) -> None:
        """Test stage weights must sum to 100."""
        weights = dict(DEFAULT_STAGE_WEIGHTS, init=50)

        with pytest.raises(ValueError, match="sum to 100"):
            PipelineConfig(stage_weights=weights)

    def test_pipeline_weights_unknown_stages(self) -> None:
        """Test weights naming stages the pipeline never reports are rejected."""
        with pytest.raises(ValueError, match="Unknown progress stages"):
            PipelineConfig(stage_weights={"fetch": 50, "analyze": 50})

    def test_pipeline_weights_missing_stage(self) -> None:
        """Test every pipeline stage needs a weight."""
        weights = dict(DEFAULT_STAGE_WEIGHTS)
        moved = weights.pop("history")
        weights["files"] += moved

        with pytest.raises(ValueError, match=r"Missing progress stages: \['history'\]"):
            PipelineConfig(stage_weights=weights)

    def test_hotspot_threshold(self) -> None:
        """Test the hotspot threshold must be positive."""
        with pytest.raises(ValueError, match="hotspot_complexity"):
            PipelineConfig(hotspot_complexity=0)

    def test_pipeline_timeout(self) -> None:
        """Test the architecture deadline must be positive."""
        with pytest.raises(ValueError, match="architecture_timeout"):
            PipelineConfig(architecture_timeout=0)


class TestLoadConfig:
    """Tests for loading configuration."""

    def test_defaults(self) -> None:
        """Test an empty dictionary gives the defaults."""
        config = load_config_from_dict({})

        assert isinstance(config, RepolensConfig)
        assert config.llm.enabled is False
        assert config.cache.backend == "memory"
        assert config.pipeline.stage_weights == DEFAULT_STAGE_WEIGHTS

    def test_sections(self) -> None:
        """Test each section is applied."""
        config = load_config_from_dict(
            {
                "github": {"token": "t", "max_files": 50},
                "llm": {"provider": "openai", "model": "gpt-4o-mini", "api_key": "k", "enabled": True},
                "cache": {"backend": "redis", "ttl": 60},
                "pipeline": {"large_repo_threshold": 10},
                "service": {"port": 9000},
            }
        )

        assert config.github.max_files == 50
        assert config.llm.enabled is True
        assert config.cache.backend == "redis"
        assert config.pipeline.large_repo_threshold == 10
        assert config.service.port == 9000

    def test_partial_stage_weights_merge(self) -> None:
        """Test a partial weight override merges onto the defaults."""
        moved = DEFAULT_STAGE_WEIGHTS["finalizing"]
        weights = {"files": DEFAULT_STAGE_WEIGHTS["files"] + moved, "finalizing": 0}

        config = load_config_from_dict({"pipeline": {"stage_weights": weights}})

        assert config.pipeline.stage_weights["finalizing"] == 0
        assert sum(config.pipeline.stage_weights.values()) == 100

    def test_unknown_stage_weight_rejected_at_load(self) -> None:
        """Test a stage name typo fails when the file is loaded."""
        weights = {"fetch": DEFAULT_STAGE_WEIGHTS["files"]}

        with pytest.raises(ValueError, match="Unknown progress stages: \\['fetch'\\]"):
            load_config_from_dict({"pipeline": {"stage_weights": weights}})

    def test_unknown_key(self) -> None:
        """Test unknown keys inside a section are rejected."""
        with pytest.raises(ValueError, match="Invalid configuration"):
            load_config_from_dict({"cache": {"size": 3}})

    def test_section_must_be_mapping(self) -> None:
        """Test scalar sections are rejected."""
        with pytest.raises(ValueError, match="must be a mapping"):
            load_config_from_dict({"cache": "redis"})

    def test_load_file(self, tmp_path: Path) -> None:
        """Test loading YAML from an explicit path."""
        path = tmp_path / "config.yaml"
        path.write_text("cache:\n  max_entries: 3\n")

        config = load_config(path)

        assert config.cache.max_entries == 3
        assert config.config_path == path

    def test_missing_explicit_file(self, tmp_path: Path) -> None:
        """Test an explicit missing path raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.yaml")

    def test_default_config_is_loadable(self, tmp_path: Path) -> None:
        """Test the generated default configuration parses cleanly."""
        path = tmp_path / "config.yaml"
        path.write_text(create_default_config())

        config = load_config(path)

        assert config.github.max_files == 200
        assert config.service.port == 8000
