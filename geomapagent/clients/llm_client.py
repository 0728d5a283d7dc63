"""Text-understanding service client for GeoMapAgent.

Provides a backend-agnostic generate() interface that dispatches to the
Gemini REST API (default), the Anthropic API, or Ollama depending on
MapAgentConfig.llm_backend.

Agent code calls generate() or call(). It never imports anthropic or
ollama directly.

Rules:
- One bounded timeout per request; a timeout raises ServiceTimeout.
- HTTP 429 is retried with exponential backoff starting from the service's
  retry hint, up to llm_max_rate_limit_retries, then QuotaExceeded is raised.
- An empty reply is retried once with doubled max_tokens before failing.
- max_tokens is never set below llm_min_max_tokens for structured extraction.
"""

from __future__ import annotations

import logging
import re
import time
from typing import Any, Dict, Optional, Tuple

import requests
from requests import Session
from requests.adapters import HTTPAdapter

from config.defaults import (
    ANTHROPIC_MODEL,
    GEMINI_API_BASE,
    GEMINI_MODEL,
    LLM_BACKOFF_BASE,
    LLM_DEFAULT_MAX_TOKENS,
    LLM_MAX_RATE_LIMIT_RETRIES,
    LLM_MIN_MAX_TOKENS,
    LLM_REQUEST_TIMEOUT,
    LLM_TEMPERATURE,
    OLLAMA_HOST,
    OLLAMA_MODEL,
)
from geomapagent.errors import MalformedResponse, QuotaExceeded, ServiceError, ServiceTimeout

logger = logging.getLogger(__name__)

_RETRY_DELAY_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*s?\s*$")

SUPPORTED_BACKENDS = ("gemini", "anthropic", "ollama")


def _parse_retry_hint(response: requests.Response) -> Optional[float]:
    """Extract the service's suggested wait (seconds) from a 429 response.

    Looks at the ``Retry-After`` header first, then at a Google RPC
    ``RetryInfo`` detail (``"retryDelay": "17s"``) in the JSON body.
    """
    header = response.headers.get("Retry-After")
    if header:
        match = _RETRY_DELAY_RE.match(header)
        if match:
            return float(match.group(1))

    try:
        body = response.json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None
    details = (body.get("error") or {}).get("details") or []
    for detail in details:
        if not isinstance(detail, dict):
            continue
        if str(detail.get("@type", "")).endswith("RetryInfo"):
            match = _RETRY_DELAY_RE.match(str(detail.get("retryDelay", "")))
            if match:
                return float(match.group(1))
    return None


def _gemini_text(payload: Any) -> str:
    """Pull the reply text out of a generateContent response body."""
    try:
        return payload["candidates"][0]["content"]["parts"][0]["text"] or ""
    except (KeyError, IndexError, TypeError):
        return ""


class LLMClient:
    """Backend-agnostic text-understanding client.

    Args:
        backend: "gemini", "anthropic" or "ollama".
        gemini_model: Gemini model id used in the REST path.
        gemini_api_key: Gemini API key (sent as the ``key`` query parameter).
        gemini_api_base: Base URL of the models endpoint.
        gemini_proxy_endpoint: Optional proxy accepting the generateContent
            body; when set it replaces the public endpoint and no key is sent.
        anthropic_model: Anthropic model id.
        anthropic_api_key: Anthropic API key.
        ollama_model: Ollama model name.
        ollama_host: Ollama server URL.
        ollama_api_key: Bearer token for hosted Ollama; empty for local servers.
        request_timeout: Per-request deadline in seconds.
        max_rate_limit_retries: Retries after HTTP 429 before QuotaExceeded.
        backoff_base: Wait used when a 429 carries no retry hint.
        min_max_tokens: Floor for max_tokens.
        temperature: Default sampling temperature.
        max_tokens: Default max_tokens.
    """

    def __init__(
        self,
        backend: str = "gemini",
        gemini_model: str = GEMINI_MODEL,
        gemini_api_key: Optional[str] = None,
        gemini_api_base: str = GEMINI_API_BASE,
        gemini_proxy_endpoint: str = "",
        anthropic_model: str = ANTHROPIC_MODEL,
        anthropic_api_key: Optional[str] = None,
        ollama_model: str = OLLAMA_MODEL,
        ollama_host: str = OLLAMA_HOST,
        ollama_api_key: str = "",
        request_timeout: float = LLM_REQUEST_TIMEOUT,
        max_rate_limit_retries: int = LLM_MAX_RATE_LIMIT_RETRIES,
        backoff_base: float = LLM_BACKOFF_BASE,
        min_max_tokens: int = LLM_MIN_MAX_TOKENS,
        temperature: float = LLM_TEMPERATURE,
        max_tokens: int = LLM_DEFAULT_MAX_TOKENS,
    ) -> None:
        self.backend = backend.lower()
        if self.backend not in SUPPORTED_BACKENDS:
            raise ValueError(
                f"Unsupported LLM backend '{backend}'. Expected one of {SUPPORTED_BACKENDS}"
            )
        self.gemini_model = gemini_model
        self.gemini_api_key = gemini_api_key
        self.gemini_api_base = gemini_api_base.rstrip("/")
        self.gemini_proxy_endpoint = gemini_proxy_endpoint
        self.anthropic_model = anthropic_model
        self.anthropic_api_key = anthropic_api_key
        self.ollama_model = ollama_model
        self.ollama_host = ollama_host
        self.ollama_api_key = ollama_api_key
        self.request_timeout = request_timeout
        self.max_rate_limit_retries = max_rate_limit_retries
        self.backoff_base = backoff_base
        self.min_max_tokens = min_max_tokens
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._anthropic_client: Optional[Any] = None
        self._ollama_client: Optional[Any] = None

        self._session = Session()
        adapter = HTTPAdapter(max_retries=0)   # 429 handling is done here
        self._session.mount("https://", adapter)
        self._session.mount("http://", adapter)

    @classmethod
    def from_config(cls, config: Any) -> "LLMClient":
        """Build a client from a MapAgentConfig."""
        return cls(
            backend=config.llm_backend,
            gemini_model=config.gemini_model,
            gemini_api_key=config.gemini_api_key,
            gemini_api_base=config.gemini_api_base,
            gemini_proxy_endpoint=config.gemini_proxy_endpoint,
            anthropic_model=config.anthropic_model,
            anthropic_api_key=config.anthropic_api_key,
            ollama_model=config.ollama_model,
            ollama_host=config.ollama_host,
            ollama_api_key=config.ollama_api_key,
            request_timeout=config.llm_request_timeout,
            max_rate_limit_retries=config.llm_max_rate_limit_retries,
            backoff_base=config.llm_backoff_base,
            min_max_tokens=config.llm_min_max_tokens,
            temperature=config.llm_temperature,
            max_tokens=config.llm_max_tokens,
        )

    # ── Gemini (REST) ──────────────────────────────────────────────────────────

    def _gemini_endpoint(self) -> Tuple[str, Dict[str, str]]:
        if self.gemini_proxy_endpoint:
            return self.gemini_proxy_endpoint, {}
        if not self.gemini_api_key:
            raise ServiceError(
                "Gemini API key is not set. Export GEMINI_API_KEY or configure "
                "GEMINI_PROXY_ENDPOINT"
            )
        url = f"{self.gemini_api_base}/{self.gemini_model}:generateContent"
        return url, {"key": self.gemini_api_key}

    def _call_gemini(self, system: str, prompt: str, max_tokens: int, temperature: float) -> str:
        """POST one generateContent request, backing off on HTTP 429."""
        url, params = self._gemini_endpoint()
        body: Dict[str, Any] = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {"temperature": temperature, "maxOutputTokens": max_tokens},
        }
        if system:
            body["systemInstruction"] = {"parts": [{"text": system}]}

        attempt = 0
        while True:
            try:
                resp = self._session.post(
                    url, params=params, json=body, timeout=self.request_timeout
                )
            except requests.exceptions.Timeout as exc:
                raise ServiceTimeout(
                    f"Gemini request timed out after {self.request_timeout:.0f}s"
                ) from exc
            except requests.exceptions.RequestException as exc:
                raise ServiceError(f"Gemini request failed: {exc}") from exc

            if resp.status_code == 429:
                if attempt >= self.max_rate_limit_retries:
                    raise QuotaExceeded(
                        f"Gemini rate limit persisted after {attempt} retries",
                        attempts=attempt + 1,
                    )
                hint = _parse_retry_hint(resp)
                wait = (hint if hint is not None else self.backoff_base) * (2 ** attempt)
                logger.warning(
                    "Gemini rate limit (429), backing off %.1fs (retry %d/%d)",
                    wait, attempt + 1, self.max_rate_limit_retries,
                )
                time.sleep(wait)
                attempt += 1
                continue

            if resp.status_code != 200:
                raise ServiceError(
                    f"Gemini API error: HTTP {resp.status_code}: {resp.text[:200]}",
                    status_code=resp.status_code,
                )

            try:
                payload = resp.json()
            except ValueError as exc:
                raise MalformedResponse(
                    "Gemini returned a non-JSON body", raw=resp.text[:500]
                ) from exc
            return _gemini_text(payload)

    # ── Anthropic ──────────────────────────────────────────────────────────────

    def _get_anthropic_client(self) -> Any:
        """anthropic.Anthropic instance, built on first use."""
        if self._anthropic_client is None:
            try:
                import anthropic  # type: ignore[import]
            except ImportError as exc:
                raise ImportError(
                    "anthropic package is required for the Anthropic backend. "
                    "Install with: pip install geomapagent[anthropic]"
                ) from exc
            self._anthropic_client = anthropic.Anthropic(
                api_key=self.anthropic_api_key,
                timeout=self.request_timeout,
                max_retries=0,
            )
        return self._anthropic_client

    def _call_anthropic(self, system: str, prompt: str, max_tokens: int, temperature: float) -> str:
        import anthropic  # type: ignore[import]

        client = self._get_anthropic_client()
        attempt = 0
        while True:
            try:
                kwargs: Dict[str, Any] = {
                    "model": self.anthropic_model,
                    "max_tokens": max_tokens,
                    "temperature": temperature,
                    "messages": [{"role": "user", "content": prompt}],
                }
                if system:
                    kwargs["system"] = system
                response = client.messages.create(**kwargs)
            except anthropic.APITimeoutError as exc:
                raise ServiceTimeout(
                    f"Anthropic request timed out after {self.request_timeout:.0f}s"
                ) from exc
            except anthropic.RateLimitError as exc:
                if attempt >= self.max_rate_limit_retries:
                    raise QuotaExceeded(
                        f"Anthropic rate limit persisted after {attempt} retries",
                        attempts=attempt + 1,
                    ) from exc
                hint = None
                retry_after = exc.response.headers.get("retry-after") if exc.response else None
                if retry_after and _RETRY_DELAY_RE.match(retry_after):
                    hint = float(_RETRY_DELAY_RE.match(retry_after).group(1))
                wait = (hint if hint is not None else self.backoff_base) * (2 ** attempt)
                logger.warning("Anthropic rate limit (429), backing off %.1fs", wait)
                time.sleep(wait)
                attempt += 1
                continue
            except anthropic.APIError as exc:
                raise ServiceError(f"Anthropic API error: {exc}") from exc

            if response.content:
                return response.content[0].text or ""
            return ""

    # ── Ollama ─────────────────────────────────────────────────────────────────

    def _get_ollama_client(self) -> Any:
        """ollama.Client instance, built on first use.

        A hosted Ollama endpoint gets the API key as a Bearer token.
        """
        if self._ollama_client is None:
            try:
                import ollama  # type: ignore[import]
            except ImportError as exc:
                raise ImportError(
                    "ollama package is required for the Ollama backend. "
                    "Install with: pip install geomapagent[ollama]"
                ) from exc
            kwargs: Dict[str, Any] = {"host": self.ollama_host, "timeout": self.request_timeout}
            if self.ollama_api_key:
                kwargs["headers"] = {"Authorization": f"Bearer {self.ollama_api_key}"}
            self._ollama_client = ollama.Client(**kwargs)
        return self._ollama_client

    def _call_ollama(self, system: str, prompt: str, max_tokens: int, temperature: float) -> str:
        import httpx
        import ollama  # type: ignore[import]

        client = self._get_ollama_client()
        messages = [{"role": "user", "content": prompt}]
        if system:
            messages.insert(0, {"role": "system", "content": system})

        attempt = 0
        while True:
            try:
                response = client.chat(
                    model=self.ollama_model,
                    messages=messages,
                    options={"num_predict": max_tokens, "temperature": temperature},
                )
            except httpx.TimeoutException as exc:
                raise ServiceTimeout(
                    f"Ollama request timed out after {self.request_timeout:.0f}s"
                ) from exc
            except ollama.ResponseError as exc:
                if exc.status_code != 429:
                    raise ServiceError(
                        f"Ollama error: {exc.error}", status_code=exc.status_code
                    ) from exc
                if attempt >= self.max_rate_limit_retries:
                    raise QuotaExceeded(
                        f"Ollama rate limit persisted after {attempt} retries",
                        attempts=attempt + 1,
                    ) from exc
                wait = self.backoff_base * (2 ** attempt)
                logger.warning("Ollama rate limit (429), backing off %.1fs", wait)
                time.sleep(wait)
                attempt += 1
                continue

            if response and getattr(response, "message", None):
                return response.message.content or ""
            return ""

    # ── Public interface ───────────────────────────────────────────────────────

    def _dispatch(self, system: str, prompt: str, max_tokens: int, temperature: float) -> str:
        if self.backend == "anthropic":
            return self._call_anthropic(system, prompt, max_tokens, temperature)
        if self.backend == "ollama":
            return self._call_ollama(system, prompt, max_tokens, temperature)
        return self._call_gemini(system, prompt, max_tokens, temperature)

    def call(
        self,
        system: str,
        prompt: str,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> str:
        """Execute one service call, retrying once on an empty reply.

        Service errors (ServiceTimeout, QuotaExceeded, ServiceError) propagate.

        Args:
            system: System instruction (may be empty).
            prompt: User prompt.
            max_tokens: Maximum tokens to generate (floored at min_max_tokens).
            temperature: Sampling temperature.

        Returns:
            Non-empty reply text.

        Raises:
            MalformedResponse: If both attempts return an empty reply.
        """
        max_tokens = max(max_tokens or self.max_tokens, self.min_max_tokens)
        temperature = self.temperature if temperature is None else temperature

        for attempt in range(2):
            result = self._dispatch(system, prompt, max_tokens, temperature)
            if result and result.strip():
                return result
            if attempt == 0:
                logger.warning(
                    "LLM returned empty response, retrying with max_tokens=%d",
                    max_tokens * 2,
                )
                max_tokens *= 2

        logger.error("LLMClient: still no text after a retry with a larger token budget")
        raise MalformedResponse("The analysis service returned an empty reply")

    def generate(self, prompt: str) -> str:
        """Send a single prompt and return the reply text."""
        return self.call("", prompt)
