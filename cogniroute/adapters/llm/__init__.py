"""
LLM Adapter - Backend model invocation over HTTP.

Supports:
- OpenAI-style chat completions (OpenAI, DeepSeek)
- Ollama for local/fallback (no auth needed)
- Gemini generateContent with an API key

Usage:
    from cogniroute.adapters.llm import LLMService

    llm = LLMService.from_settings()
    result = await llm.invoke(agent, "Summarize the quarterly report", {})
"""

from .service import LLMResponse, LLMService, TransientProviderError

__all__ = ["LLMService", "LLMResponse", "TransientProviderError"]
