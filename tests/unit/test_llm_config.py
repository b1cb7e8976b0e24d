"""Unit tests for LLMConfig validation."""

import pytest

from repolens.models.llm_config import CLOUD_PROVIDERS, DEFAULT_OLLAMA_BASE, VALID_PROVIDERS, LLMConfig


class TestLLMConfig:
    """Tests for the LLMConfig entity."""

    def test_defaults(self) -> None:
        """Test the default configuration is a disabled local model."""
        config = LLMConfig()

        assert config.enabled is False
        assert config.provider == "ollama"
        assert config.api_base == DEFAULT_OLLAMA_BASE
        assert config.is_local

    def test_create_claude_config(self) -> None:
        """Test creating an enabled Claude configuration."""
        config = LLMConfig(provider="claude", model="claude-3-5-sonnet", api_key="test-key", enabled=True)

        assert config.provider == "claude"
        assert config.api_key == "test-key"
        assert not config.is_local

    def test_provider_normalized_to_lowercase(self) -> None:
        """Test provider is normalized to lowercase."""
        assert LLMConfig(provider=" OpenAI ", model="gpt-4o-mini").provider == "openai"

    def test_invalid_provider_raises_error(self) -> None:
        """Test invalid provider raises ValueError."""
        with pytest.raises(ValueError, match="Invalid provider"):
            LLMConfig(provider="invalid_provider", model="some-model")

    @pytest.mark.parametrize("model", ["", "   "])
    def test_empty_model_raises_error(self, model: str) -> None:
        """Test empty or whitespace models raise ValueError."""
        with pytest.raises(ValueError, match="Model identifier cannot be empty"):
            LLMConfig(model=model)

    @pytest.mark.parametrize("temperature", [-0.1, 2.5])
    def test_temperature_range(self, temperature: float) -> None:
        """Test temperature must lie in [0, 2]."""
        with pytest.raises(ValueError, match="temperature"):
            LLMConfig(temperature=temperature)

    @pytest.mark.parametrize("max_tokens", [0, -100])
    def test_max_tokens_must_be_positive(self, max_tokens: int) -> None:
        """Test non-positive max_tokens raise ValueError."""
        with pytest.raises(ValueError, match="max_tokens must be positive"):
            LLMConfig(max_tokens=max_tokens)

    @pytest.mark.parametrize("provider", sorted(CLOUD_PROVIDERS))
    def test_enabled_cloud_provider_requires_key(self, provider: str) -> None:
        """Test cloud providers need an API key only when enabled."""
        with pytest.raises(ValueError, match=f"api_key is required for {provider}"):
            LLMConfig(provider=provider, model="m", enabled=True)

        assert LLMConfig(provider=provider, model="m").enabled is False

    def test_bedrock_without_key(self) -> None:
        """Test Bedrock relies on ambient AWS credentials."""
        assert LLMConfig(provider="bedrock", model="anthropic.claude-v2", enabled=True).api_key is None

    def test_validate_returns_warnings(self) -> None:
        """Test validate warns on low max_tokens and odd api_base."""
        config = LLMConfig(max_tokens=100, api_base="localhost:11434")

        warnings = config.validate()

        assert any("max_tokens is set to 100" in w for w in warnings)
        assert any("does not start with http" in w for w in warnings)

    def test_to_dict_masks_key(self) -> None:
        """Test the API key never appears in serialized form."""
        data = LLMConfig(provider="openai", model="gpt-4o-mini", api_key="sk-secret").to_dict()

        assert data["api_key"] == "***"
        assert "sk-secret" not in str(data)

    def test_from_dict(self) -> None:
        """Test creating config from a dictionary with defaults."""
        config = LLMConfig.from_dict({"provider": "gemini", "model": "gemini-pro", "max_tokens": 3000})

        assert config.provider == "gemini"
        assert config.max_tokens == 3000
        assert config.temperature == 0.2
        assert config.enabled is False

    @pytest.mark.parametrize(
        ("provider", "expected"),
        [
            ("claude", "anthropic/m"),
            ("ollama", "ollama/m"),
            ("gemini", "gemini/m"),
            ("bedrock", "bedrock/m"),
            ("openai", "openai/m"),
        ],
    )
    def test_get_litellm_model_name(self, provider: str, expected: str) -> None:
        """Test LiteLLM provider prefixes."""
        assert LLMConfig(provider=provider, model="m").get_litellm_model_name() == expected

    def test_valid_providers_constant(self) -> None:
        """Test VALID_PROVIDERS contains the supported providers."""
        assert VALID_PROVIDERS == {"openai", "claude", "gemini", "ollama", "bedrock"}
