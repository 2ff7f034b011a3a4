"""
Async client for the Anthropic Messages API with tool calling.

Design constraints:
- Do NOT use the vendor SDK; plain HTTP through httpx
- One call = one model turn; the conversation loop owns the history
- Timeouts, transport errors, 5xx responses and an open circuit surface as
  BackendUnavailableError (fatal for the request, no retry) and count
  against the circuit breaker
- 4xx responses are handled outside the breaker: 400/413/422 become
  ChatValidationError, 429 is BackendUnavailableError, anything else is
  ModelRequestError
"""
import time
from typing import Any, Dict, List, Optional, Sequence

import httpx

from bizfinder.core.circuit_breaker import CircuitBreaker, CircuitBreakerOpenError
from bizfinder.core.config import Settings
from bizfinder.core.errors import BackendUnavailableError, ChatValidationError, ModelRequestError
from bizfinder.core.logging import get_logger
from bizfinder.core.metrics import record_llm_error, record_llm_request, record_llm_tokens
from bizfinder.core.tracing import get_tracer

from .schema import ModelResponse, Turn

logger = get_logger(__name__)

KNOWN_BLOCK_TYPES = {"text", "tool_use"}
INVALID_REQUEST_STATUSES = {400, 413, 422}


class LLMClient:
    """HTTP client for the model service."""

    def __init__(
        self,
        api_base: str,
        api_key: Optional[str],
        model: str,
        api_version: str = "2023-06-01",
        max_tokens: int = 1024,
        timeout_seconds: float = 30.0,
        circuit_breaker: Optional[CircuitBreaker] = None,
    ):
        self.api_base = api_base.rstrip("/")
        self.api_key = api_key
        self.model = model
        self.api_version = api_version
        self.max_tokens = max_tokens
        self.timeout_seconds = timeout_seconds
        self.circuit_breaker = circuit_breaker or CircuitBreaker(
            name="llm_messages",
            failure_threshold=0.5,
            time_window_seconds=60,
            open_duration_seconds=30,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "LLMClient":
        return cls(
            api_base=settings.llm_api_base,
            api_key=settings.llm_api_key,
            model=settings.llm_model,
            api_version=settings.llm_api_version,
            max_tokens=settings.llm_max_tokens,
            timeout_seconds=settings.llm_timeout_seconds,
        )

    async def _post(self, path: str, json_payload: Dict[str, Any]) -> httpx.Response:
        """Low-level POST helper (isolated for circuit breaker)."""
        headers = {
            "Content-Type": "application/json",
            "x-api-key": self.api_key or "",
            "anthropic-version": self.api_version,
        }
        url = f"{self.api_base}{path}"
        async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
            response = await client.post(url, headers=headers, json=json_payload)
        # Only server-side failures count against the breaker.
        if response.status_code >= 500:
            response.raise_for_status()
        return response

    def _raise_for_client_error(self, response: httpx.Response) -> None:
        status_code = response.status_code
        record_llm_error("http_status")
        logger.warning(
            "llm_request_rejected",
            status_code=status_code,
            body=response.text[:500],
        )
        details = {"status_code": status_code}
        if status_code in INVALID_REQUEST_STATUSES:
            raise ChatValidationError("Model service rejected the request", details=details)
        if status_code == 429:
            raise BackendUnavailableError(
                "Model service rate limit exceeded", backend="llm", details=details
            )
        raise ModelRequestError(f"Model service returned HTTP {status_code}", details=details)

    async def converse(
        self,
        system: str,
        tools: Sequence[Dict[str, Any]],
        turns: Sequence[Turn],
    ) -> ModelResponse:
        """
        Send the full history and tool catalog, return the model's next turn.

        Raises:
            BackendUnavailableError: key missing, circuit open, timeout, 5xx/429 or payload error
            ChatValidationError: the model service rejected the request as malformed
            ModelRequestError: any other 4xx (bad credentials, unknown model)
        """
        if not self.api_key:
            record_llm_error("missing_api_key")
            raise BackendUnavailableError("Model API key not configured", backend="llm")

        payload: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "system": system,
            "messages": [turn.to_api() for turn in turns],
        }
        if tools:
            payload["tools"] = list(tools)

        tracer = get_tracer()
        start = time.time()
        with tracer.start_as_current_span("llm.converse") as span:
            span.set_attribute("llm.model", self.model)
            span.set_attribute("llm.turns", len(turns))
            try:
                response: httpx.Response = await self.circuit_breaker.call_async(
                    self._post,
                    "/messages",
                    json_payload=payload,
                )
            except CircuitBreakerOpenError as exc:
                record_llm_error("circuit_open")
                logger.warning("llm_circuit_open")
                raise BackendUnavailableError("Model service circuit open", backend="llm") from exc
            except httpx.TimeoutException as exc:
                record_llm_error("timeout")
                logger.warning(
                    "llm_timeout",
                    timeout_seconds=self.timeout_seconds,
                    error_type=type(exc).__name__,
                )
                raise BackendUnavailableError("Model service timed out", backend="llm") from exc
            except httpx.HTTPStatusError as exc:
                record_llm_error("http_status")
                logger.warning(
                    "llm_http_status_error",
                    status_code=exc.response.status_code,
                    body=exc.response.text[:500],
                )
                raise BackendUnavailableError(
                    f"Model service returned HTTP {exc.response.status_code}",
                    backend="llm",
                    details={"status_code": exc.response.status_code},
                ) from exc
            except httpx.HTTPError as exc:
                record_llm_error("http_error")
                logger.warning(
                    "llm_http_error",
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                raise BackendUnavailableError("Model service unreachable", backend="llm") from exc
            finally:
                record_llm_request(self.model, time.time() - start)

            if response.is_error:
                self._raise_for_client_error(response)

            try:
                data = response.json()
                result = parse_response(data)
            except ValueError as exc:
                record_llm_error("invalid_payload")
                logger.error("llm_invalid_payload", error=str(exc))
                raise BackendUnavailableError(
                    "Model service returned an invalid payload", backend="llm"
                ) from exc

            span.set_attribute("llm.stop_reason", result.stop_reason or "")

        usage = result.usage
        record_llm_tokens(
            self.model,
            int(usage.get("input_tokens") or 0),
            int(usage.get("output_tokens") or 0),
        )
        logger.info(
            "llm_response_received",
            model=self.model,
            stop_reason=result.stop_reason,
            tool_uses=len(result.tool_uses),
            latency_ms=int((time.time() - start) * 1000),
        )
        return result


def parse_response(data: Dict[str, Any]) -> ModelResponse:
    """
    Build a ModelResponse from a Messages API body.

    Block types the loop does not handle are dropped.

    Raises:
        ValueError (pydantic ValidationError) on a malformed body.
    """
    if not isinstance(data, dict):
        raise ValueError("response body is not an object")
    blocks: List[Dict[str, Any]] = [
        b for b in data.get("content") or [] if isinstance(b, dict) and b.get("type") in KNOWN_BLOCK_TYPES
    ]
    return ModelResponse.model_validate({
        "id": data.get("id"),
        "model": data.get("model"),
        "stop_reason": data.get("stop_reason"),
        "content": blocks,
        "usage": data.get("usage") or {},
    })
