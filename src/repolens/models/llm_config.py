"""LLM configuration entity for repolens.

Defines the configuration for the optional LLM collaborator used for
repository summaries, architecture descriptions and extra findings.
Supports multiple providers: OpenAI, Claude, Gemini, Ollama, and Bedrock.
"""

from dataclasses import dataclass, field

VALID_PROVIDERS = frozenset({"openai", "claude", "gemini", "ollama", "bedrock"})

# Providers that authenticate with an API key
CLOUD_PROVIDERS = frozenset({"openai", "claude", "gemini"})

DEFAULT_OLLAMA_BASE = "http://localhost:11434"


@dataclass
class LLMConfig:
    """Configuration for the LLM provider.

    The LLM is optional: when ``enabled`` is False the pipeline keeps its
    rule-based summaries and never calls out.

    Attributes:
        provider: LLM provider (openai, claude, gemini, ollama, bedrock)
        model: Model identifier (e.g., "gpt-4o-mini", "claude-3-5-sonnet")
        api_key: API key (not required for Ollama or Bedrock)
        api_base: API base URL (defaults to localhost for Ollama)
        temperature: Sampling temperature, between 0 and 2
        max_tokens: Maximum response tokens
        enabled: Whether LLM generation is enabled
    """

    provider: str = "ollama"
    model: str = "llama3.2"
    api_key: str | None = None
    api_base: str | None = None
    temperature: float = field(default=0.2)
    max_tokens: int = field(default=2048)
    enabled: bool = field(default=False)

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        self.provider = self.provider.lower().strip()

        if self.provider not in VALID_PROVIDERS:
            raise ValueError(
                f"Invalid provider '{self.provider}'. "
                f"Must be one of: {sorted(VALID_PROVIDERS)}"
            )

        if not self.model or not self.model.strip():
            raise ValueError("Model identifier cannot be empty")
        self.model = self.model.strip()

        if not 0.0 <= self.temperature <= 2.0:
            raise ValueError(f"temperature must be between 0 and 2. Got: {self.temperature}")

        if self.max_tokens <= 0:
            raise ValueError(f"max_tokens must be positive. Got: {self.max_tokens}")

        if self.provider == "ollama" and not self.api_base:
            self.api_base = DEFAULT_OLLAMA_BASE

        # Bedrock reads AWS credentials from the environment
        if self.enabled and self.provider in CLOUD_PROVIDERS and not self.api_key:
            raise ValueError(f"api_key is required for {self.provider} provider")

    @property
    def is_local(self) -> bool:
        """Return True if using a local LLM (no code leaves the machine)."""
        return self.provider == "ollama"

    def validate(self) -> list[str]:
        """Return warnings for settings that are legal but likely mistakes."""
        warnings: list[str] = []

        if self.max_tokens < 256:
            warnings.append(
                f"max_tokens is set to {self.max_tokens}, which may truncate responses"
            )

        if self.api_base and not self.api_base.startswith(("http://", "https://")):
            warnings.append(
                f"api_base '{self.api_base}' does not start with http:// or https://"
            )

        return warnings

    def to_dict(self) -> dict[str, str | int | float | bool | None]:
        """Convert to dictionary for serialization (the API key is masked)."""
        return {
            "provider": self.provider,
            "model": self.model,
            "api_key": "***" if self.api_key else None,
            "api_base": self.api_base,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "enabled": self.enabled,
        }

    @classmethod
    def from_dict(cls, data: dict[str, str | int | float | bool | None]) -> "LLMConfig":
        """Create LLMConfig from a config dictionary.

        Args:
            data: Dictionary with configuration values

        Returns:
            LLMConfig instance
        """
        return cls(
            provider=str(data.get("provider") or "ollama"),
            model=str(data.get("model") or "llama3.2"),
            api_key=data.get("api_key") or None,  # type: ignore[arg-type]
            api_base=data.get("api_base") or None,  # type: ignore[arg-type]
            temperature=float(data.get("temperature", 0.2)),  # type: ignore[arg-type]
            max_tokens=int(data.get("max_tokens", 2048)),  # type: ignore[arg-type]
            enabled=bool(data.get("enabled", False)),
        )

    def get_litellm_model_name(self) -> str:
        """Get the model name in LiteLLM ``provider/model`` format."""
        if self.provider == "ollama":
            return f"ollama/{self.model}"
        elif self.provider == "bedrock":
            return f"bedrock/{self.model}"
        elif self.provider == "gemini":
            return f"gemini/{self.model}"
        elif self.provider == "openai":
            return f"openai/{self.model}"
        else:
            # Claude uses the anthropic/ prefix in LiteLLM
            return f"anthropic/{self.model}"
