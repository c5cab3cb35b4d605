"""
Async client for the chat completion service.

Uses httpx against an OpenAI-compatible `/chat/completions` API (Together
by default). No SDKs and no retries: a failed call surfaces as
`LLMClientError` and the calling agent decides what to do.

Configuration (see app.core.config):
- TOGETHER_API_KEY: bearer token
- LLM_API_BASE: base URL (default: https://api.together.xyz/v1)
- LLM_INSIGHT_MODEL: model name (default: deepseek-ai/DeepSeek-V3)
- LLM_TIMEOUT_SECONDS: request timeout in seconds (default: 60)
"""
import time
from typing import Any, Dict, List, Optional

import httpx

from app.core.config import get_settings
from app.core.logging import get_logger
from app.core.metrics import (
    record_llm_error,
    record_llm_request,
    record_llm_tokens,
)

logger = get_logger(__name__)


class LLMClientError(Exception):
    """Raised when a completion call fails."""

    def __init__(self, message: str, error_type: str = "http_error"):
        super().__init__(message)
        self.error_type = error_type


class LLMNotConfiguredError(LLMClientError):
    """Raised when no API key is configured."""

    def __init__(self, message: str = "LLM API key not configured"):
        super().__init__(message, error_type="missing_api_key")


class LLMClient:
    """Async HTTP client for chat completion calls."""

    def __init__(
        self,
        api_base: str,
        api_key: Optional[str],
        model: str,
        timeout_seconds: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_base = api_base.rstrip("/")
        self.api_key = api_key
        self.model = model
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    async def _post(self, path: str, json_payload: Dict[str, Any]) -> httpx.Response:
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }
        url = f"{self.api_base}{path}"
        async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
            return await client.post(url, headers=headers, json=json_payload)

    async def chat(
        self,
        agent: str,
        messages: List[Dict[str, str]],
        max_tokens: int = 400,
        temperature: float = 0.7,
        top_p: float = 0.7,
        top_k: int = 50,
        repetition_penalty: float = 1.0,
        stop: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        """
        Call the chat completion endpoint.

        Args:
            agent: Logical agent name ("insight"), used for metrics and logs
            messages: OpenAI-style chat messages
            max_tokens: Max tokens for completion
            temperature, top_p, top_k, repetition_penalty: sampling parameters
            stop: Stop sequences

        Returns:
            Raw JSON response from the API.

        Raises:
            LLMNotConfiguredError if no API key is set.
            LLMClientError on timeout, transport error, HTTP error status or
            a non-JSON response body.
        """
        if not self.api_key:
            record_llm_error(agent, "missing_api_key")
            raise LLMNotConfiguredError()

        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "top_p": top_p,
            "top_k": top_k,
            "repetition_penalty": repetition_penalty,
        }
        if stop:
            payload["stop"] = stop

        start = time.time()
        try:
            response = await self._post("/chat/completions", json_payload=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException as exc:
            record_llm_error(agent, "timeout")
            logger.warning(
                "llm_timeout",
                agent=agent,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            raise LLMClientError(f"LLM request timed out: {exc}", error_type="timeout") from exc
        except httpx.HTTPStatusError as exc:
            record_llm_error(agent, "http_status")
            logger.warning(
                "llm_http_status_error",
                agent=agent,
                status_code=exc.response.status_code,
                error=str(exc),
            )
            raise LLMClientError(
                f"LLM request failed with status {exc.response.status_code}",
                error_type="http_status",
            ) from exc
        except httpx.HTTPError as exc:
            record_llm_error(agent, "http_error")
            logger.warning(
                "llm_http_error",
                agent=agent,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            raise LLMClientError(f"LLM request failed: {exc}") from exc
        except ValueError as exc:
            record_llm_error(agent, "invalid_json")
            logger.warning("llm_invalid_response_body", agent=agent, error=str(exc))
            raise LLMClientError("LLM response body is not JSON", error_type="invalid_json") from exc
        finally:
            duration_ms = (time.time() - start) * 1000.0
            record_llm_request(agent, self.model, duration_ms)

        self._record_usage(agent, data)
        return data

    def _record_usage(self, agent: str, data: Any) -> None:
        """Record token usage if the response reports it; malformed usage is skipped."""
        usage = data.get("usage") if isinstance(data, dict) else None
        if not isinstance(usage, dict):
            return
        try:
            input_tokens = int(usage.get("prompt_tokens") or 0)
            output_tokens = int(usage.get("completion_tokens") or 0)
        except (TypeError, ValueError):
            logger.warning("llm_usage_malformed", agent=agent)
            return
        record_llm_tokens(
            agent=agent,
            model=self.model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )


def extract_message_content(response: Dict[str, Any]) -> str:
    """
    Return `choices[0].message.content` from a chat completion response.

    Raises:
        ValueError if the response does not have that shape.
    """
    try:
        content = response["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as exc:
        raise ValueError("Completion response has no choices[0].message.content") from exc
    if not isinstance(content, str):
        raise ValueError("Completion message content is not a string")
    return content


_llm_client: Optional[LLMClient] = None


def get_llm_client() -> LLMClient:
    """
    Get global LLM client instance.

    The client holds configuration only; every call opens its own
    httpx.AsyncClient.
    """
    global _llm_client
    if _llm_client is None:
        settings = get_settings()
        _llm_client = LLMClient(
            api_base=settings.llm_api_base,
            api_key=settings.together_api_key,
            model=settings.llm_insight_model,
            timeout_seconds=settings.llm_timeout_seconds,
        )
    return _llm_client
