"""
Provider Gateway: one async entry point for every generative-provider call.

Responsibilities:
- Provider selection through the ProviderRegistry (primary, else backup)
- Prompt construction via src.assessment.prompts
- Per-call deadline (asyncio.wait_for)
- Retry with exponential backoff and jitter (tenacity) for transient errors
- Caller-supplied fallback values once retries are exhausted

Usage:
    gateway = ProviderGateway(ProviderRegistry())
    raw = await gateway.call(Operation.CONVERSATION_TURN, request)
    question = await gateway.call(Operation.CONTEXTUAL_QUESTION, request, fallback=FALLBACK_QUESTION)
"""

import asyncio
from typing import Any, Awaitable, Callable, List, Optional

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from src.assessment.prompts import build_messages
from src.assessment.types import ProviderRequest
from src.common.error_handling import ConfigurationError, ProviderError
from src.common.llm_config import Operation, OperationConfig, get_operation_config
from src.common.llm_factory import ProviderRegistry
from src.common.logger import get_logger

# HTTP status codes worth retrying (5xx is retried as a class)
RETRYABLE_STATUS_CODES = {408, 425, 429}

# SDK exception class names that signal a transient failure
RETRYABLE_ERROR_NAMES = {
    "RateLimitError",
    "APITimeoutError",
    "APIConnectionError",
    "InternalServerError",
    "ServiceUnavailableError",
    "OverloadedError",
    "ReadTimeout",
    "ConnectTimeout",
    "RemoteProtocolError",
}

RETRYABLE_MESSAGE_MARKERS = (
    "rate limit",
    "overloaded",
    "service unavailable",
    "temporarily unavailable",
    "timed out",
    "timeout",
    "connection reset",
    "connection error",
)

_NO_FALLBACK = object()


def _status_code(exc: BaseException) -> Optional[int]:
    status = getattr(exc, "status_code", None)
    if status is None:
        status = getattr(getattr(exc, "response", None), "status_code", None)
    return status if isinstance(status, int) else None


def is_retryable_error(exc: BaseException) -> bool:
    """
    Classify a provider failure as transient (retry) or terminal (fail fast).

    Cancellation and configuration errors are never retried.
    """
    if isinstance(exc, (asyncio.CancelledError, ConfigurationError)):
        return False
    if isinstance(exc, ProviderError):
        return exc.retryable
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError, ConnectionError)):
        return True

    status = _status_code(exc)
    if status is not None:
        return status in RETRYABLE_STATUS_CODES or 500 <= status < 600

    if any(cls.__name__ in RETRYABLE_ERROR_NAMES for cls in type(exc).__mro__):
        return True

    message = str(exc).lower()
    return any(marker in message for marker in RETRYABLE_MESSAGE_MARKERS)


def response_text(response: Any) -> str:
    """Extract plain text from a chat-model reply (string or content blocks)."""
    content = getattr(response, "content", response)
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                parts.append(block.get("text", ""))
        return "".join(parts)
    return "" if content is None else str(content)


class ProviderGateway:
    """
    Uniform async interface over the configured generative provider.

    Attributes:
        registry: Provider registry used to select and build chat models
    """

    def __init__(
        self,
        registry: Optional[ProviderRegistry] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        """
        Initialize the gateway.

        Args:
            registry: Provider registry (a default one is built when omitted)
            sleep: Coroutine used between retries (asyncio.sleep by default)
        """
        self.registry = registry or ProviderRegistry()
        self._sleep = sleep or asyncio.sleep
        self._provider: Optional[str] = None

    @property
    def provider(self) -> str:
        """Provider chosen for this gateway (selected once, on first use)."""
        if self._provider is None:
            self._provider = self.registry.select_provider()
        return self._provider

    async def call(
        self,
        operation: Operation,
        request: ProviderRequest,
        fallback: Any = _NO_FALLBACK,
    ) -> str:
        """
        Execute one provider operation.

        Args:
            operation: Gateway operation
            request: History plus context
            fallback: Value returned when transient failures exhaust the retries

        Returns:
            Raw reply text (or the fallback)

        Raises:
            ConfigurationError: No usable provider (never retried)
            ProviderError: Terminal failure, or exhaustion without a fallback
        """
        operation = Operation(operation)
        op_config = get_operation_config(operation)
        provider = self.provider
        model = self.registry.chat_model(provider, op_config)
        messages = build_messages(operation, request)
        log = get_logger(__name__, session_id=request.context.session_id, component="gateway")

        attempts = 0
        try:
            async for attempt in self._retrying(op_config, operation, log):
                with attempt:
                    attempts = attempt.retry_state.attempt_number
                    text = await self._invoke(model, messages, op_config, provider, operation)
        except ConfigurationError:
            raise
        except Exception as e:
            retryable = is_retryable_error(e)
            if retryable and fallback is not _NO_FALLBACK:
                log.warning(
                    f"{operation.value} failed after {attempts} attempt(s) via {provider}: {e}; using fallback"
                )
                return fallback
            log.error(
                f"{operation.value} failed after {attempts} attempt(s) via {provider} "
                f"({'retries exhausted' if retryable else 'terminal error'}): {e}"
            )
            raise ProviderError(
                f"{operation.value} failed via {provider}: {e}",
                provider=provider,
                operation=operation.value,
                attempts=attempts,
                retryable=retryable,
            ) from e

        log.debug(f"{operation.value} succeeded via {provider} on attempt {attempts} ({len(text)} chars)")
        return text

    def _retrying(self, op_config: OperationConfig, operation: Operation, log) -> AsyncRetrying:
        def before_sleep(retry_state: RetryCallState) -> None:
            exc = retry_state.outcome.exception() if retry_state.outcome else None
            delay = retry_state.next_action.sleep if retry_state.next_action else 0
            log.warning(
                f"{operation.value} attempt {retry_state.attempt_number}/{op_config.max_attempts} "
                f"failed ({type(exc).__name__}: {exc}), retrying in {delay:.2f}s"
            )

        # delay = base * 2^(attempt-1), capped, plus uniform jitter
        wait = wait_exponential(
            multiplier=op_config.base_delay_seconds,
            max=op_config.max_delay_seconds,
        ) + wait_random(0, op_config.jitter_seconds)

        return AsyncRetrying(
            stop=stop_after_attempt(op_config.max_attempts),
            wait=wait,
            retry=retry_if_exception(is_retryable_error),
            before_sleep=before_sleep,
            sleep=self._sleep,
            reraise=True,
        )

    @staticmethod
    async def _invoke(
        model: Any,
        messages: List[Any],
        op_config: OperationConfig,
        provider: str,
        operation: Operation,
    ) -> str:
        response = await asyncio.wait_for(model.ainvoke(messages), timeout=op_config.timeout_seconds)
        text = response_text(response)
        if not text.strip():
            raise ProviderError(
                f"Empty reply from {provider}",
                provider=provider,
                operation=operation.value,
                retryable=True,
            )
        return text
