"""Unified async LLM client using LiteLLM.

Provides a consistent interface for multiple LLM providers. Temperature comes
from configuration (default 0.2); summaries do not need to be reproducible
byte for byte, only grounded in the deterministic analysis.
"""

import logging
from dataclasses import dataclass
from typing import Any

import litellm

from repolens.models.llm_config import LLMConfig

logger = logging.getLogger(__name__)


@dataclass
class LLMResponse:
    """Response from LLM completion.

    Attributes:
        content: Generated text content
        model: Model that generated the response
        usage: Token usage statistics
        finish_reason: Reason for completion (stop, length, etc.)
    """

    content: str
    model: str
    usage: dict[str, int]
    finish_reason: str | None = None


class LLMError(Exception):
    """Exception raised for LLM-related errors.

    Attributes:
        reason: One of "authentication", "rate_limit", "connection", "other"
    """

    def __init__(self, message: str, reason: str = "other") -> None:
        self.reason = reason
        super().__init__(message)


class LLMClient:
    """Async LLM client on litellm.acompletion.

    Supports:
    - OpenAI
    - Claude (Anthropic)
    - Gemini (Google)
    - Ollama (local)
    - Bedrock (AWS)
    """

    def __init__(self, config: LLMConfig) -> None:
        """Initialize LLM client with configuration.

        Args:
            config: LLM configuration with provider, model, and credentials
        """
        self.config = config

    def is_configured(self) -> bool:
        """Whether the client can make calls (enabled and credentialed)."""
        if not self.config.enabled:
            return False
        return self.config.is_local or bool(self.config.api_key) or self.config.provider == "bedrock"

    async def complete(
        self,
        prompt: str,
        system_prompt: str | None = None,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        """Generate a completion from the LLM.

        Args:
            prompt: User prompt for the LLM
            system_prompt: Optional system prompt
            max_tokens: Override max_tokens from config

        Returns:
            LLMResponse with generated content

        Raises:
            LLMError: If the completion fails
        """
        messages: list[dict[str, str]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        completion_kwargs: dict[str, Any] = {
            "model": self.config.get_litellm_model_name(),
            "messages": messages,
            "temperature": self.config.temperature,
            "max_tokens": max_tokens or self.config.max_tokens,
        }
        if self.config.api_key:
            completion_kwargs["api_key"] = self.config.api_key
        if self.config.api_base:
            completion_kwargs["api_base"] = self.config.api_base

        try:
            response = await litellm.acompletion(**completion_kwargs)
        except litellm.exceptions.AuthenticationError as e:
            raise LLMError(
                f"Authentication failed for {self.config.provider}: {e}", "authentication"
            ) from e
        except litellm.exceptions.RateLimitError as e:
            raise LLMError(f"Rate limit exceeded for {self.config.provider}: {e}", "rate_limit") from e
        except litellm.exceptions.APIConnectionError as e:
            raise LLMError(f"Connection failed to {self.config.provider}: {e}", "connection") from e
        except Exception as e:
            raise LLMError(f"LLM completion failed: {e}") from e

        choice = response.choices[0]
        content = choice.message.content or ""

        usage = {}
        if getattr(response, "usage", None):
            usage = {
                "prompt_tokens": response.usage.prompt_tokens or 0,
                "completion_tokens": response.usage.completion_tokens or 0,
                "total_tokens": response.usage.total_tokens or 0,
            }

        logger.debug("LLM call used %d tokens", usage.get("total_tokens", 0))
        return LLMResponse(
            content=content,
            model=response.model or self.config.model,
            usage=usage,
            finish_reason=choice.finish_reason,
        )

    async def generate_text(self, prompt: str, system_prompt: str | None = None) -> str:
        """Generate text and return only the content.

        Raises:
            LLMError: If the completion fails or returns nothing
        """
        response = await self.complete(prompt, system_prompt=system_prompt)
        text = response.content.strip()
        if not text:
            raise LLMError(f"{self.config.provider} returned an empty response")
        return text

    async def check_available(self) -> bool:
        """Check if the LLM provider is reachable with a minimal call."""
        try:
            await self.complete("Say 'ok'", max_tokens=10)
            return True
        except LLMError:
            return False


def create_client(config: LLMConfig) -> LLMClient | None:
    """Create an LLM client from configuration.

    Returns:
        Configured LLMClient, or None when the LLM is disabled
    """
    if not config.enabled:
        return None
    return LLMClient(config)
