"""
Adapters - External service integrations.

All external API calls are wrapped here to isolate domains from third-party changes.
"""

from .llm import LLMResponse, LLMService, TransientProviderError

__all__ = [
    # Backend model invocation (OpenAI-style, DeepSeek, Ollama, Gemini)
    "LLMService",
    "LLMResponse",
    "TransientProviderError",
]
