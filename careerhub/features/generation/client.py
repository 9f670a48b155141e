"""
careerhub/features/generation/client.py

Chat-completions client for the LLM provider (Groq, OpenAI-compatible).

The client is built from an explicit ProviderConfig and never reads the
environment itself. Tests pass an httpx transport (httpx.MockTransport) to
stand in for the provider endpoint.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import httpx

from careerhub.core.config import Settings, settings
from careerhub.core.errors import ProviderError
from careerhub.core.metrics import provider_attempts_total
from careerhub.core.retry import RetryPolicy

logger = logging.getLogger("careerhub")


@dataclass(frozen=True)
class ProviderConfig:
    api_key: Optional[str]
    base_url: str = "https://api.groq.com/openai/v1"
    model: str = "llama-3.3-70b-versatile"
    timeout: float = 60.0
    max_retries: int = 2
    backoff_base: float = 1.0


def provider_config_from_settings(cfg: Optional[Settings] = None) -> ProviderConfig:
    cfg = cfg or settings
    return ProviderConfig(
        api_key=cfg.GROQ_API_KEY,
        base_url=cfg.GROQ_BASE_URL,
        model=cfg.GROQ_MODEL,
        timeout=cfg.LLM_TIMEOUT_SECONDS,
        max_retries=max(0, cfg.LLM_MAX_RETRIES),
        backoff_base=cfg.LLM_BACKOFF_BASE_SECONDS,
    )


@dataclass(frozen=True)
class Completion:
    text: str
    model: str
    usage: Dict[str, int] = field(default_factory=dict)
    attempts: int = 1

    @property
    def tokens_used(self) -> int:
        return int(self.usage.get("total_tokens") or 0)


def _is_transient(exc: Exception) -> bool:
    return isinstance(exc, ProviderError) and exc.transient


def _provider_message(response: httpx.Response) -> str:
    """Best-effort error text from an OpenAI-style error body."""
    try:
        body = response.json()
    except ValueError:
        return response.text[:500]
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])[:500]
        if isinstance(error, str):
            return error[:500]
    return response.text[:500]


class GenerationClient:
    def __init__(
        self,
        config: ProviderConfig,
        *,
        transport: Optional[httpx.BaseTransport] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        self.config = config
        self._transport = transport
        self._retry = retry_policy or RetryPolicy(
            max_retries=config.max_retries,
            base_delay=config.backoff_base,
        )

    def complete(
        self,
        prompt: str,
        *,
        system: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 4000,
        json_mode: bool = True,
        top_p: Optional[float] = None,
    ) -> Completion:
        """
        Run one chat completion, retrying transient failures.

        Transient: network errors, timeouts, HTTP 5xx and 429, empty content.
        Anything else (auth, other 4xx) raises ProviderError immediately.
        """
        if not self.config.api_key:
            raise ProviderError("GROQ_API_KEY is not configured", transient=False)

        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        body: Dict[str, Any] = {
            "model": self.config.model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if top_p is not None:
            body["top_p"] = top_p
        if json_mode:
            body["response_format"] = {"type": "json_object"}

        with httpx.Client(
            base_url=self.config.base_url,
            timeout=self.config.timeout,
            transport=self._transport,
            headers={
                "Authorization": f"Bearer {self.config.api_key}",
                "Content-Type": "application/json",
            },
        ) as http:
            return self._retry.call(
                lambda attempt: self._send_once(http, body, attempt),
                should_retry=_is_transient,
                on_retry=self._log_retry,
            )

    def _send_once(self, http: httpx.Client, body: Dict[str, Any], attempt: int) -> Completion:
        try:
            response = http.post("/chat/completions", json=body)
        except httpx.TimeoutException as e:
            provider_attempts_total.inc(labels={"outcome": "timeout"})
            raise ProviderError(f"Provider request timed out: {e}", transient=True)
        except httpx.TransportError as e:
            provider_attempts_total.inc(labels={"outcome": "network_error"})
            raise ProviderError(f"Provider request failed: {e}", transient=True)

        status = response.status_code
        if status >= 400:
            provider_attempts_total.inc(labels={"outcome": "http_error"})
            message = _provider_message(response)
            raise ProviderError(
                f"Provider returned HTTP {status}: {message}",
                provider_status=status,
                provider_message=message,
                transient=status >= 500 or status == 429,
            )

        try:
            data = response.json()
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError):
            provider_attempts_total.inc(labels={"outcome": "bad_body"})
            raise ProviderError("Provider returned an unexpected response body", provider_status=status, transient=True)

        if not content or not str(content).strip():
            provider_attempts_total.inc(labels={"outcome": "empty"})
            raise ProviderError("Provider returned empty content", provider_status=status, transient=True)

        provider_attempts_total.inc(labels={"outcome": "success"})
        usage = data.get("usage") or {}
        return Completion(
            text=str(content),
            model=data.get("model") or self.config.model,
            usage={k: int(v) for k, v in usage.items() if isinstance(v, (int, float))},
            attempts=attempt + 1,
        )

    @staticmethod
    def _log_retry(attempt: int, exc: Exception, delay: float) -> None:
        logger.warning(
            f"provider: attempt {attempt + 1} failed ({exc}); retrying in {delay:.1f}s",
            extra={"attempt": attempt + 1, "error_code": getattr(exc, "code", None)},
        )
