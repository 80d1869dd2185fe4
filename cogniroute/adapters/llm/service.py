"""
LLM Service - Backend model invocation for orchestrator agents.

Each agent names a provider and a model. Three wire shapes are supported:
- OpenAI-style chat completions (``openai``, ``deepseek``)
- Ollama ``/api/generate`` (local, no auth)
- Gemini ``generateContent`` with an API key

An agent whose provider is unsupported or has no credentials configured is
served by the default provider (``settings.llm_provider``) and its default
model. Transient failures (HTTP 429, 5xx, connect errors, timeouts) are
retried with exponential backoff; anything else becomes a ``ProviderError``.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from cogniroute.config import ErrorCode, ProviderError, Settings, get_settings
from cogniroute.domains.orchestration import InvocationResult
from cogniroute.domains.routing import AgentCapability

logger = logging.getLogger(__name__)

__all__ = [
    "LLMService",
    "LLMResponse",
    "TransientProviderError",
    "GEMINI_API_URL",
    "SUPPORTED_PROVIDERS",
    "estimate_cost",
]

GEMINI_API_URL = "https://generativelanguage.googleapis.com/v1beta"
SUPPORTED_PROVIDERS = ("openai", "deepseek", "ollama", "gemini")


class TransientProviderError(ProviderError):
    """Backend failure worth retrying (rate limit, 5xx, network)."""


@dataclass
class LLMResponse:
    """Response from one provider call."""

    text: str
    model: str
    provider: str
    finish_reason: str | None = None
    prompt_tokens: int = 0
    cached_tokens: int = 0
    completion_tokens: int = 0

    @property
    def tokens_used(self) -> int:
        return self.prompt_tokens + self.completion_tokens

    @property
    def finished(self) -> bool:
        """True when the provider stopped normally rather than on a limit or filter."""
        return (self.finish_reason or "").lower() == "stop"


def estimate_cost(agent: AgentCapability, response: LLMResponse) -> float | None:
    """
    Price a response with the agent's per-million token prices.

    Cache-hit input tokens are billed at the cached price when the agent has
    one. Returns None when the agent has no input or output price.
    """
    if agent.input_price_per_million is None or agent.output_price_per_million is None:
        return None

    cached_price = agent.cached_input_price_per_million
    if cached_price is None:
        cached_price = agent.input_price_per_million

    cached = min(response.cached_tokens, response.prompt_tokens)
    fresh = response.prompt_tokens - cached
    total = (
        fresh * agent.input_price_per_million
        + cached * cached_price
        + response.completion_tokens * agent.output_price_per_million
    )
    return total / 1_000_000


# Turns a provider JSON body into an LLMResponse
_Parser = Callable[[dict[str, Any], str], LLMResponse]


class LLMService:
    """
    ``ModelInvoker`` implementation over ``httpx``.

    Usage:
        llm = LLMService.from_settings(settings)
        orchestrator = CognitiveOrchestrator.from_settings(settings, llm)
    """

    def __init__(
        self,
        settings: Settings | None = None,
        client: httpx.AsyncClient | None = None,
        max_retries: int | None = None,
        backoff_seconds: float = 1.0,
        timeout_seconds: float | None = None,
    ) -> None:
        """
        Initialize the service.

        Args:
            settings: Provider URLs, keys and defaults
            client: Shared HTTP client (owned by the caller); a short-lived
                client is opened per call when omitted
            max_retries: Attempts per call, including the first
            backoff_seconds: Exponential backoff multiplier (0 disables waiting)
            timeout_seconds: HTTP timeout for calls made without a shared client
        """
        self.settings = settings or get_settings()
        self._client = client
        self.max_retries = max_retries or self.settings.llm_max_retries
        self.backoff_seconds = backoff_seconds
        self.timeout_seconds = timeout_seconds or self.settings.backend_timeout_seconds

    @classmethod
    def from_settings(cls, settings: Settings | None = None, **kwargs: Any) -> LLMService:
        return cls(settings=settings or get_settings(), **kwargs)

    # --- ModelInvoker ---

    async def invoke(
        self,
        agent: AgentCapability,
        prompt: str,
        context: Mapping[str, Any],
    ) -> InvocationResult:
        """Run one prompt on the agent's backend."""
        provider, model = self.resolve(agent)
        metadata = context.get("metadata") or {}
        temperature = float(metadata.get("temperature", self.settings.llm_temperature))

        response = await self.generate(
            prompt,
            provider=provider,
            model=model,
            temperature=temperature,
            agent_id=agent.id,
        )

        # Prices belong to the agent's own model, not a fallback
        cost = estimate_cost(agent, response) if model == agent.model else None

        return InvocationResult(
            text=response.text,
            confidence=agent.reliability,
            verified=response.finished,
            cost=cost,
            usage={
                "prompt_tokens": response.prompt_tokens,
                "cached_tokens": response.cached_tokens,
                "completion_tokens": response.completion_tokens,
            },
        )

    def resolve(self, agent: AgentCapability) -> tuple[str, str]:
        """Pick the (provider, model) that will serve an agent."""
        if self.is_available(agent.provider):
            return agent.provider, agent.model

        fallback = self.settings.llm_provider
        if not self.is_available(fallback):
            raise ProviderError(
                f"No usable provider for agent {agent.id}: "
                f"'{agent.provider}' and default '{fallback}' are unavailable",
                agent_id=agent.id,
            )
        logger.debug(
            "Agent %s provider %s unavailable, using %s",
            agent.id,
            agent.provider,
            fallback,
        )
        return fallback, self.default_model(fallback)

    def is_available(self, provider: str) -> bool:
        """Supported and credentialed."""
        if provider == "ollama":
            return True
        if provider == "openai":
            return bool(self.settings.openai_api_key)
        if provider == "deepseek":
            return bool(self.settings.deepseek_api_key)
        if provider == "gemini":
            return bool(self.settings.gemini_api_key)
        return False

    def default_model(self, provider: str) -> str:
        return {
            "ollama": self.settings.ollama_model,
            "openai": self.settings.openai_model,
            "deepseek": self.settings.deepseek_model,
            "gemini": self.settings.gemini_model,
        }[provider]

    # --- Generation ---

    async def generate(
        self,
        prompt: str,
        provider: str | None = None,
        model: str | None = None,
        temperature: float | None = None,
        agent_id: str | None = None,
    ) -> LLMResponse:
        """
        Generate text, retrying transient failures.

        Raises:
            TransientProviderError: Retries exhausted
            ProviderError: Non-retryable failure or unusable response
        """
        provider = provider or self.settings.llm_provider
        model = model or self.default_model(provider)
        if temperature is None:
            temperature = self.settings.llm_temperature

        retrying = AsyncRetrying(
            retry=retry_if_exception_type(TransientProviderError),
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=self.backoff_seconds, max=30),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        return await retrying(
            self._generate_once, prompt, provider, model, temperature, agent_id
        )

    async def _generate_once(
        self,
        prompt: str,
        provider: str,
        model: str,
        temperature: float,
        agent_id: str | None,
    ) -> LLMResponse:
        if provider in ("openai", "deepseek"):
            url, headers, payload, parse = self._chat_request(provider, prompt, model, temperature)
        elif provider == "ollama":
            url, headers, payload, parse = self._ollama_request(prompt, model, temperature)
        elif provider == "gemini":
            url, headers, payload, parse = self._gemini_request(prompt, model, temperature)
        else:
            raise ProviderError(f"Unsupported provider: {provider}", agent_id=agent_id)

        data = await self._post(provider, url, headers, payload, agent_id)
        try:
            return parse(data, model)
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderError(
                f"Unexpected {provider} response shape: {e}",
                agent_id=agent_id,
                code=ErrorCode.PROVIDER_INVALID_RESPONSE,
            ) from e

    async def _post(
        self,
        provider: str,
        url: str,
        headers: dict[str, str],
        payload: dict[str, Any],
        agent_id: str | None,
    ) -> dict[str, Any]:
        try:
            if self._client is not None:
                response = await self._client.post(url, json=payload, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                    response = await client.post(url, json=payload, headers=headers)
        except httpx.ConnectError as e:
            message = (
                "Ollama not running. Start with: ollama serve"
                if provider == "ollama"
                else f"Cannot reach {provider}: {e}"
            )
            raise TransientProviderError(message, agent_id=agent_id) from e
        except httpx.TimeoutException as e:
            raise TransientProviderError(
                f"{provider} request timed out",
                agent_id=agent_id,
                code=ErrorCode.PROVIDER_TIMEOUT,
            ) from e
        except httpx.HTTPError as e:
            raise ProviderError(f"{provider} request failed: {e}", agent_id=agent_id) from e

        status = response.status_code
        if status == 429:
            raise TransientProviderError(
                f"{provider} quota exceeded",
                agent_id=agent_id,
                details={"status": status},
                code=ErrorCode.PROVIDER_RATE_LIMITED,
            )
        if status >= 500:
            raise TransientProviderError(
                f"{provider} server error {status}",
                agent_id=agent_id,
                details={"status": status},
            )
        if status != 200:
            logger.error("%s error %d: %s", provider, status, response.text[:200])
            raise ProviderError(
                f"{provider} returned {status}",
                agent_id=agent_id,
                details={"status": status, "body": response.text[:200]},
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError(
                f"{provider} returned invalid JSON",
                agent_id=agent_id,
                code=ErrorCode.PROVIDER_INVALID_RESPONSE,
            ) from e
        if not isinstance(data, dict):
            raise ProviderError(
                f"{provider} returned {type(data).__name__}, expected an object",
                agent_id=agent_id,
                code=ErrorCode.PROVIDER_INVALID_RESPONSE,
            )
        return data

    # --- Wire shapes ---

    def _chat_request(
        self, provider: str, prompt: str, model: str, temperature: float
    ) -> tuple[str, dict[str, str], dict[str, Any], _Parser]:
        if provider == "deepseek":
            base_url, api_key = self.settings.deepseek_base_url, self.settings.deepseek_api_key
        else:
            base_url, api_key = self.settings.openai_base_url, self.settings.openai_api_key

        url = f"{base_url.rstrip('/')}/chat/completions"
        headers = {"Authorization": f"Bearer {api_key}"}
        payload = {
            "model": model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": temperature,
        }

        def parse(data: dict[str, Any], model: str) -> LLMResponse:
            choice = data["choices"][0]
            usage = data.get("usage") or {}
            # DeepSeek reports cache hits at the top level, OpenAI under details
            cached = usage.get("prompt_cache_hit_tokens")
            if cached is None:
                cached = (usage.get("prompt_tokens_details") or {}).get("cached_tokens", 0)
            return LLMResponse(
                text=choice["message"]["content"] or "",
                model=data.get("model", model),
                provider=provider,
                finish_reason=choice.get("finish_reason"),
                prompt_tokens=usage.get("prompt_tokens", 0),
                cached_tokens=cached or 0,
                completion_tokens=usage.get("completion_tokens", 0),
            )

        return url, headers, payload, parse

    def _ollama_request(
        self, prompt: str, model: str, temperature: float
    ) -> tuple[str, dict[str, str], dict[str, Any], _Parser]:
        url = f"{self.settings.ollama_url.rstrip('/')}/api/generate"
        payload = {
            "model": model,
            "prompt": prompt,
            "stream": False,
            "options": {"temperature": temperature},
        }

        def parse(data: dict[str, Any], model: str) -> LLMResponse:
            return LLMResponse(
                text=data["response"],
                model=model,
                provider="ollama",
                finish_reason=data.get("done_reason", "stop" if data.get("done") else None),
                prompt_tokens=data.get("prompt_eval_count", 0),
                completion_tokens=data.get("eval_count", 0),
            )

        return url, {}, payload, parse

    def _gemini_request(
        self, prompt: str, model: str, temperature: float
    ) -> tuple[str, dict[str, str], dict[str, Any], _Parser]:
        url = f"{GEMINI_API_URL}/models/{model}:generateContent"
        headers = {"x-goog-api-key": self.settings.gemini_api_key or ""}
        payload = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {"temperature": temperature},
        }

        def parse(data: dict[str, Any], model: str) -> LLMResponse:
            candidate = data["candidates"][0]
            parts = candidate["content"]["parts"]
            usage = data.get("usageMetadata") or {}
            return LLMResponse(
                text="".join(part.get("text", "") for part in parts),
                model=model,
                provider="gemini",
                finish_reason=candidate.get("finishReason"),
                prompt_tokens=usage.get("promptTokenCount", 0),
                cached_tokens=usage.get("cachedContentTokenCount", 0),
                completion_tokens=usage.get("candidatesTokenCount", 0),
            )

        return url, headers, payload, parse
