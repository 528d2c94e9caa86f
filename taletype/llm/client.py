"""
LLM client abstraction for the story, quest and scene oracles.

Provides async interface for LLM calls with:
- Structured logging of requests/responses
- Timeout handling with one retry on timeout or rate limit
- Usage tracking (tokens)
- One client per role (story, quest, scene)

Supported providers:
- gemini: Gemini models via the OpenAI-compatible endpoint
- openai: OpenAI chat completions
- anthropic: Claude models via the Messages API
"""

import asyncio
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Literal, Optional

import httpx
import structlog

from taletype.core.config import settings
from taletype.core.exceptions import LLMRateLimitError, LLMTimeoutError

log = structlog.get_logger(__name__)


LLMClientRole = Literal["story", "quest", "scene"]

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai"
OPENAI_BASE_URL = "https://api.openai.com/v1"
ANTHROPIC_BASE_URL = "https://api.anthropic.com/v1"

MAX_RETRIES = 1  # 2 total attempts
BASE_RETRY_DELAY = 1.0  # seconds


# =============================================================================
# Default configurations for each role
# =============================================================================

STORY_DEFAULTS = dict(
    provider="gemini",
    model="gemini-2.5-flash",
    temperature=0.8,  # Varied continuations
    max_tokens=256,
    timeout=30.0,
)

QUEST_DEFAULTS = dict(
    provider="gemini",
    model="gemini-2.5-flash",
    temperature=0.4,  # Judgement should be stable
    max_tokens=512,
    timeout=30.0,
)

SCENE_DEFAULTS = dict(
    provider="gemini",
    model="gemini-2.5-flash",
    temperature=0.5,
    max_tokens=1024,  # Entity lists grow with the story
    timeout=30.0,
)

DEFAULTS_MAP: Dict[LLMClientRole, Dict[str, Any]] = {
    "story": STORY_DEFAULTS,
    "quest": QUEST_DEFAULTS,
    "scene": SCENE_DEFAULTS,
}

PROVIDER_MODELS = {
    "gemini": "gemini-2.5-flash",
    "openai": "gpt-4o-mini",
    "anthropic": "claude-sonnet-4-6",
}


# =============================================================================
# Response and Base Classes
# =============================================================================


@dataclass
class LLMResponse:
    """Standardized LLM response."""

    content: str
    model: str
    usage: Dict[str, int] = field(default_factory=dict)
    latency_ms: float = 0.0
    raw_response: Optional[Dict[str, Any]] = None


class LLMClient(ABC):
    """Abstract base for LLM providers."""

    @abstractmethod
    async def complete(
        self,
        prompt: str,
        system: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        json_mode: bool = False,
        timeout: Optional[float] = None,
    ) -> LLMResponse:
        """
        Generate a completion from the LLM.

        Args:
            prompt: User message/prompt
            system: Optional system prompt
            temperature: Sampling temperature (0.0-2.0)
            max_tokens: Maximum tokens in response
            json_mode: Ask the provider for a JSON object response
            timeout: Optional timeout override in seconds

        Returns:
            LLMResponse with content and metadata
        """
        pass


async def post_with_retry(
    url: str,
    headers: Dict[str, str],
    payload: Dict[str, Any],
    timeout: float,
    provider: str,
    role: str,
) -> Dict[str, Any]:
    """POST a JSON payload, retrying once on timeout or HTTP 429.

    Returns:
        Decoded JSON body of the successful response

    Raises:
        LLMTimeoutError: After all retries exhausted on timeout
        LLMRateLimitError: After all retries exhausted on rate limit (429)
        httpx.HTTPStatusError: On other API errors (no retry)
    """
    for attempt in range(MAX_RETRIES + 1):
        try:
            async with httpx.AsyncClient(timeout=timeout) as client:
                response = await client.post(url, headers=headers, json=payload)
                response.raise_for_status()
                return response.json()

        except httpx.TimeoutException as e:
            log.warning(
                "llm_timeout",
                provider=provider,
                role=role,
                attempt=attempt + 1,
                timeout_seconds=timeout,
            )
            if attempt >= MAX_RETRIES:
                raise LLMTimeoutError(
                    f"LLM call timed out after {MAX_RETRIES + 1} attempts "
                    f"(timeout={timeout}s)"
                ) from e

        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            if status_code != 429:
                log.error("llm_http_error", provider=provider, status_code=status_code)
                raise
            log.warning("llm_rate_limit", provider=provider, attempt=attempt + 1)
            if attempt >= MAX_RETRIES:
                raise LLMRateLimitError(
                    f"Rate limit exceeded after {MAX_RETRIES + 1} attempts"
                ) from e

        delay = BASE_RETRY_DELAY * (2**attempt)
        log.info("llm_retry", delay_seconds=delay, next_attempt=attempt + 2)
        await asyncio.sleep(delay)

    # Unreachable: loop either returns or raises
    assert False, "unreachable"


# =============================================================================
# Anthropic Client
# =============================================================================


class AnthropicClient(LLMClient):
    """Anthropic Claude API client.

    Uses httpx for async HTTP calls to the Messages API. The Messages API has
    no JSON mode; json_mode appends an instruction to the system prompt.
    """

    def __init__(
        self,
        model: str,
        temperature: float,
        max_tokens: int,
        timeout: float,
        role: LLMClientRole,
        api_key: Optional[str] = None,
    ):
        """
        Initialize Anthropic client.

        Args:
            model: Model ID (e.g., claude-sonnet-4-6)
            temperature: Sampling temperature
            max_tokens: Maximum tokens in response
            timeout: Request timeout in seconds
            role: Client role for logging
            api_key: API key (defaults to settings.anthropic_api_key)

        Raises:
            ValueError: If API key is not configured
        """
        self.api_key = api_key or settings.anthropic_api_key
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout
        self.role = role
        self.base_url = ANTHROPIC_BASE_URL

        if not self.api_key:
            raise ValueError("ANTHROPIC_API_KEY not configured. Set it in .env.")

        log.info(
            "anthropic_client_initialized",
            role=self.role,
            model=self.model,
            timeout=self.timeout,
        )

    async def complete(
        self,
        prompt: str,
        system: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        json_mode: bool = False,
        timeout: Optional[float] = None,
    ) -> LLMResponse:
        if json_mode:
            suffix = "Respond with a single JSON object and nothing else."
            system = f"{system}\n\n{suffix}" if system else suffix

        payload: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": max_tokens if max_tokens is not None else self.max_tokens,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": temperature if temperature is not None else self.temperature,
        }
        if system:
            payload["system"] = system

        headers = {
            "x-api-key": self.api_key,
            "content-type": "application/json",
            "anthropic-version": "2023-06-01",
        }

        log.debug(
            "llm_call_start",
            provider="anthropic",
            role=self.role,
            model=self.model,
            prompt_length=len(prompt),
        )

        start = time.perf_counter()
        data = await post_with_retry(
            f"{self.base_url}/messages",
            headers=headers,
            payload=payload,
            timeout=timeout if timeout is not None else self.timeout,
            provider="anthropic",
            role=self.role,
        )
        latency_ms = (time.perf_counter() - start) * 1000

        content = ""
        if data.get("content"):
            content = data["content"][0].get("text", "")

        usage = {
            "input_tokens": data.get("usage", {}).get("input_tokens", 0),
            "output_tokens": data.get("usage", {}).get("output_tokens", 0),
        }

        log.info(
            "llm_call_complete",
            provider="anthropic",
            role=self.role,
            model=self.model,
            latency_ms=round(latency_ms, 2),
            input_tokens=usage["input_tokens"],
            output_tokens=usage["output_tokens"],
        )

        return LLMResponse(
            content=content,
            model=data.get("model", self.model),
            usage=usage,
            latency_ms=latency_ms,
            raw_response=data,
        )


# =============================================================================
# OpenAI-Compatible Client
# =============================================================================


class OpenAICompatibleClient(LLMClient):
    """
    Client for OpenAI-compatible chat completion APIs.

    Used by:
    - Gemini: https://generativelanguage.googleapis.com/v1beta/openai
    - OpenAI: https://api.openai.com/v1
    """

    def __init__(
        self,
        model: str,
        temperature: float,
        max_tokens: int,
        timeout: float,
        role: LLMClientRole,
        base_url: str,
        provider_name: str,
        api_key: str,
    ):
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout
        self.role = role
        self.base_url = base_url
        self.provider_name = provider_name
        self.api_key = api_key

        log.info(
            "openai_compatible_client_initialized",
            provider=self.provider_name,
            role=self.role,
            model=self.model,
            timeout=self.timeout,
        )

    async def complete(
        self,
        prompt: str,
        system: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        json_mode: bool = False,
        timeout: Optional[float] = None,
    ) -> LLMResponse:
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": temperature if temperature is not None else self.temperature,
            "max_tokens": max_tokens if max_tokens is not None else self.max_tokens,
        }
        if json_mode:
            payload["response_format"] = {"type": "json_object"}

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        log.debug(
            "llm_call_start",
            provider=self.provider_name,
            role=self.role,
            model=self.model,
            prompt_length=len(prompt),
            json_mode=json_mode,
        )

        start = time.perf_counter()
        data = await post_with_retry(
            f"{self.base_url}/chat/completions",
            headers=headers,
            payload=payload,
            timeout=timeout if timeout is not None else self.timeout,
            provider=self.provider_name,
            role=self.role,
        )
        latency_ms = (time.perf_counter() - start) * 1000

        content = ""
        if data.get("choices"):
            content = data["choices"][0].get("message", {}).get("content") or ""

        usage = {
            "input_tokens": data.get("usage", {}).get("prompt_tokens", 0),
            "output_tokens": data.get("usage", {}).get("completion_tokens", 0),
        }

        log.info(
            "llm_call_complete",
            provider=self.provider_name,
            role=self.role,
            model=self.model,
            latency_ms=round(latency_ms, 2),
            input_tokens=usage["input_tokens"],
            output_tokens=usage["output_tokens"],
        )

        return LLMResponse(
            content=content,
            model=data.get("model", self.model),
            usage=usage,
            latency_ms=latency_ms,
            raw_response=data,
        )


class GeminiClient(OpenAICompatibleClient):
    """
    Gemini API client through Google's OpenAI-compatible endpoint.

    API Docs: https://ai.google.dev/gemini-api/docs/openai
    """

    def __init__(
        self,
        model: str,
        temperature: float,
        max_tokens: int,
        timeout: float,
        role: LLMClientRole,
        api_key: Optional[str] = None,
    ):
        """Initialize Gemini client."""
        api_key = api_key or settings.gemini_api_key
        if not api_key:
            raise ValueError("GEMINI_API_KEY not configured. Set it in .env.")

        super().__init__(
            model=model,
            temperature=temperature,
            max_tokens=max_tokens,
            timeout=timeout,
            role=role,
            base_url=GEMINI_BASE_URL,
            provider_name="gemini",
            api_key=api_key,
        )


class OpenAIClient(OpenAICompatibleClient):
    """OpenAI chat completions client."""

    def __init__(
        self,
        model: str,
        temperature: float,
        max_tokens: int,
        timeout: float,
        role: LLMClientRole,
        api_key: Optional[str] = None,
    ):
        """Initialize OpenAI client."""
        api_key = api_key or settings.openai_api_key
        if not api_key:
            raise ValueError("OPENAI_API_KEY not configured. Set it in .env.")

        super().__init__(
            model=model,
            temperature=temperature,
            max_tokens=max_tokens,
            timeout=timeout,
            role=role,
            base_url=OPENAI_BASE_URL,
            provider_name="openai",
            api_key=api_key,
        )


# =============================================================================
# Client Factory Functions
# =============================================================================


def get_llm_client(role: LLMClientRole) -> LLMClient:
    """
    Factory for LLM client based on role.

    Uses hardcoded defaults for each role, with optional environment
    variable overrides (LLM_STORY_PROVIDER, etc.). When the provider is
    overridden, that provider's default model is used.

    Args:
        role: "story", "quest", or "scene"

    Returns:
        LLMClient instance configured for the role

    Raises:
        ValueError: If unknown provider configured or API key missing
    """
    defaults = DEFAULTS_MAP[role]

    override = getattr(settings, f"llm_{role}_provider", None)
    provider = override or defaults["provider"]
    model = PROVIDER_MODELS.get(provider) if override else defaults["model"]

    kwargs = dict(
        model=model,
        temperature=defaults["temperature"],
        max_tokens=defaults["max_tokens"],
        timeout=defaults["timeout"],
        role=role,
    )

    if provider == "gemini":
        return GeminiClient(**kwargs)
    elif provider == "openai":
        return OpenAIClient(**kwargs)
    elif provider == "anthropic":
        return AnthropicClient(**kwargs)
    else:
        raise ValueError(
            f"Unknown LLM provider '{provider}' for {role}. "
            f"Supported providers: gemini, openai, anthropic"
        )


def get_story_llm_client() -> LLMClient:
    """Factory for the story segment client."""
    return get_llm_client("story")


def get_quest_llm_client() -> LLMClient:
    """Factory for the quest generation and judgement client."""
    return get_llm_client("quest")


def get_scene_llm_client() -> LLMClient:
    """Factory for the scene tracking and image prompt client."""
    return get_llm_client("scene")
