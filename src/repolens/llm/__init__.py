"""LLM integration for optional report summaries."""

from repolens.llm.client import LLMClient, LLMError, LLMResponse, create_client
from repolens.llm.prompts import (
    ARCHITECTURE_SYSTEM_PROMPT,
    FINDINGS_SYSTEM_PROMPT,
    SUMMARY_SYSTEM_PROMPT,
    build_architecture_prompt,
    build_findings_prompt,
    build_summary_prompt,
)

__all__ = [
    "ARCHITECTURE_SYSTEM_PROMPT",
    "FINDINGS_SYSTEM_PROMPT",
    "LLMClient",
    "LLMError",
    "LLMResponse",
    "SUMMARY_SYSTEM_PROMPT",
    "build_architecture_prompt",
    "build_findings_prompt",
    "build_summary_prompt",
    "create_client",
]
