"""
Centralized error handling for the vocational assessment engine.

Defines the engine's exception taxonomy and small utilities for consistent
error logging across components.

Propagation policy:
- ProviderError: retried inside the gateway; reaches the caller only after
  retry exhaustion with no fallback configured.
- ParseError: raised when no structured payload can be recovered from a reply.
- ValidationError: never raised for dropped career references; recorded on
  the validated response instead.
- ConfigurationError: fatal and immediate, never retried.
"""

import logging
from typing import Optional


class EngineError(Exception):
    """Base class for all engine errors."""


class ConfigurationError(EngineError):
    """Raised when no usable provider credential or setting is available."""


class ProviderError(EngineError):
    """
    Failure talking to a generative provider.

    Attributes:
        provider: Provider name (e.g. "openai")
        operation: Gateway operation being executed
        attempts: Number of attempts made before giving up
        retryable: Whether the underlying failure was classified as transient
    """

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        operation: Optional[str] = None,
        attempts: int = 0,
        retryable: bool = False,
    ):
        self.provider = provider
        self.operation = operation
        self.attempts = attempts
        self.retryable = retryable
        super().__init__(message)


class ParseError(EngineError):
    """Raised when extraction and repair produce no structured payload."""

    def __init__(self, message: str, raw_text: Optional[str] = None, user_message: Optional[str] = None):
        self.raw_text = raw_text
        self.user_message = user_message
        super().__init__(message)


class ValidationError(EngineError):
    """
    A proposed career reference that does not exist in the catalog.

    Instances are collected on ValidatedResponse.validation_errors, not raised.
    """

    def __init__(self, career_id: str, name: Optional[str] = None):
        self.career_id = career_id
        self.name = name
        super().__init__(f"Unknown career reference '{career_id}' ({name or 'no name'})")


class SessionNotFoundError(EngineError):
    """Raised when a session id is not present in the store."""


class SessionClosedError(EngineError):
    """Raised when a mutating operation targets a completed session."""


def log_on_exception(
    logger: logging.Logger,
    operation: str,
    level: int = logging.WARNING,
    include_traceback: bool = False,
):
    """
    Context manager for logging exceptions without swallowing them silently.

    Usage:
        with log_on_exception(self.logger, "session save", level=logging.ERROR, include_traceback=True):
            repository.save(record)

    Args:
        logger: Logger instance to use
        operation: Operation description for the log message
        level: Log level (default: WARNING)
        include_traceback: Whether to include stack trace in log
    """

    class ExceptionLogger:
        def __enter__(self):
            return self

        def __exit__(self, exc_type, exc_val, exc_tb):
            if exc_val is not None:
                if include_traceback:
                    logger.log(level, f"[{operation}] Failed: {exc_val}", exc_info=True)
                else:
                    logger.log(level, f"[{operation}] Failed: {exc_val}")
            # Return False to not suppress the exception
            return False

    return ExceptionLogger()
