"""
Per-Operation LLM Configuration System.

Provides call settings (temperature, token budget, deadline, retry policy) for
each gateway operation, with environment variable overrides for tuning.

Usage:
    from src.common.llm_config import Operation, get_operation_config

    config = get_operation_config(Operation.CONVERSATION_TURN)
    print(config.max_attempts)  # 3

    # Environment variable overrides:
    # LLM_TIMEOUT_conversation_turn=90       -> per-call deadline in seconds
    # LLM_ATTEMPTS_conversation_turn=5       -> max attempts (first call included)
    # LLM_TEMPERATURE_riasec_assessment=0.1  -> sampling temperature
    # LLM_BASE_DELAY_conversation_turn=0.5   -> backoff base in seconds
    # LLM_MAX_TOKENS_conversation_turn=1500  -> completion token budget
"""

import logging
import os
from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, Optional

from src.common.config import Config

logger = logging.getLogger(__name__)


class Operation(str, Enum):
    """Operations the provider gateway can execute."""
    CONVERSATION_TURN = "conversation_turn"
    RIASEC_ASSESSMENT = "riasec_assessment"
    CONTEXTUAL_QUESTION = "contextual_question"
    DISCRIMINATING_QUESTIONS = "discriminating_questions"


@dataclass
class OperationConfig:
    """
    Configuration for a single gateway operation.

    Attributes:
        temperature: Sampling temperature
        max_tokens: Completion token budget
        timeout_seconds: Deadline for one provider call
        max_attempts: Attempts before giving up (first call included)
        base_delay_seconds: Backoff base; delay = base * 2^(attempt-1) + jitter
        max_delay_seconds: Cap applied to the exponential part of the delay
        jitter_seconds: Upper bound of the uniform random jitter
        json_mode: Ask the provider for a JSON-only reply where supported
    """

    temperature: float = 0.7
    max_tokens: int = 1000
    timeout_seconds: float = 60.0
    max_attempts: int = 3
    base_delay_seconds: float = 1.0
    max_delay_seconds: float = 10.0
    jitter_seconds: float = 0.5
    json_mode: bool = True


# ===== DEFAULT OPERATION CONFIGURATIONS =====

OPERATION_CONFIGS: Dict[Operation, OperationConfig] = {
    Operation.CONVERSATION_TURN: OperationConfig(
        temperature=Config.CONVERSATIONAL_TEMPERATURE,
        max_tokens=1000,
    ),
    Operation.RIASEC_ASSESSMENT: OperationConfig(
        temperature=Config.ANALYTICAL_TEMPERATURE,
        max_tokens=400,
    ),
    Operation.CONTEXTUAL_QUESTION: OperationConfig(
        temperature=Config.CONVERSATIONAL_TEMPERATURE,
        max_tokens=100,
        timeout_seconds=30.0,
        json_mode=False,
    ),
    Operation.DISCRIMINATING_QUESTIONS: OperationConfig(
        temperature=Config.CONVERSATIONAL_TEMPERATURE,
        max_tokens=1200,
        # Array payloads cannot use the provider JSON-object mode
        json_mode=False,
    ),
}


def _get_env_override(operation: Operation, setting: str) -> Optional[str]:
    """
    Get environment variable override for an operation setting.

    Checks for environment variable in format: LLM_{SETTING}_{operation}
    Example: LLM_TIMEOUT_conversation_turn
    """
    env_var = f"LLM_{setting}_{operation.value}"
    value = os.getenv(env_var)
    if value:
        logger.debug(f"Using env override {env_var}={value}")
    return value


def _apply_numeric_override(config: OperationConfig, operation: Operation, setting: str, field_name: str, cast) -> OperationConfig:
    raw = _get_env_override(operation, setting)
    if not raw:
        return config
    try:
        return replace(config, **{field_name: cast(raw)})
    except ValueError:
        logger.warning(f"Invalid {setting.lower()} override for {operation.value}: {raw}")
        return config


def get_operation_config(operation: Operation) -> OperationConfig:
    """
    Get configuration for an operation, with environment variable overrides.

    The registered default is copied, never mutated, so overrides do not leak
    between calls.

    Args:
        operation: Gateway operation

    Returns:
        OperationConfig with all settings resolved
    """
    operation = Operation(operation)
    config = replace(OPERATION_CONFIGS.get(operation, OperationConfig()))

    config = _apply_numeric_override(config, operation, "TIMEOUT", "timeout_seconds", float)
    config = _apply_numeric_override(config, operation, "ATTEMPTS", "max_attempts", int)
    config = _apply_numeric_override(config, operation, "TEMPERATURE", "temperature", float)
    config = _apply_numeric_override(config, operation, "BASE_DELAY", "base_delay_seconds", float)
    config = _apply_numeric_override(config, operation, "MAX_TOKENS", "max_tokens", int)

    if config.max_attempts < 1:
        logger.warning(f"max_attempts for {operation.value} must be >= 1, using 1")
        config = replace(config, max_attempts=1)

    return config


def get_all_operation_configs() -> Dict[Operation, OperationConfig]:
    """Get all operation configurations with environment overrides applied."""
    return {operation: get_operation_config(operation) for operation in Operation}
