"""
Configuration loader for the vocational assessment engine.

Loads all settings from environment variables (.env file).
Validates required settings and provides type-safe access.
"""

import os
from typing import Dict, Optional
from dotenv import load_dotenv

from src.common.error_handling import ConfigurationError

# Load environment variables from .env file
load_dotenv()


class Config:
    """
    Centralized configuration for all engine components.

    All values loaded from environment variables - NO SECRETS IN CODE.
    """

    # ===== LLM APIs =====
    OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "")
    ANTHROPIC_API_KEY: str = os.getenv("ANTHROPIC_API_KEY", "")
    OPENROUTER_API_KEY: str = os.getenv("OPENROUTER_API_KEY", "")
    OPENROUTER_BASE_URL: str = os.getenv("OPENROUTER_BASE_URL", "https://openrouter.ai/api/v1")

    # Provider selection
    # The backup provider is only used when the primary has no credential.
    AI_PROVIDER: str = os.getenv("AI_PROVIDER", "openai").lower()
    AI_BACKUP_PROVIDER: str = os.getenv("AI_BACKUP_PROVIDER", "anthropic").lower()

    # ===== LLM Model Configuration =====
    OPENAI_MODEL: str = os.getenv("OPENAI_MODEL", "gpt-4o")
    ANTHROPIC_MODEL: str = os.getenv("ANTHROPIC_MODEL", "claude-sonnet-4-5-20250929")
    OPENROUTER_MODEL: str = os.getenv("OPENROUTER_MODEL", "anthropic/claude-3-5-haiku-20241022")

    # Temperature settings
    CONVERSATIONAL_TEMPERATURE: float = float(os.getenv("CONVERSATIONAL_TEMPERATURE", "0.7"))
    ANALYTICAL_TEMPERATURE: float = float(os.getenv("ANALYTICAL_TEMPERATURE", "0.3"))

    # ===== Interview Flow =====
    # six_phase: greeting → exploration → career_matching → reality_check → final_results → complete
    # five_phase: same path without final_results
    PHASE_FLOW: str = os.getenv("PHASE_FLOW", "six_phase")

    # Messages (not pairs) allowed in reality_check before completion is forced
    REALITY_CHECK_TURN_LIMIT: int = int(os.getenv("REALITY_CHECK_TURN_LIMIT", "12"))

    # keep_phase | user_signal | complete
    RECOMMENDATION_PHASE_POLICY: str = os.getenv("RECOMMENDATION_PHASE_POLICY", "user_signal")

    # Number of deterministic career rankings kept on the session
    MATCH_LIMIT: int = int(os.getenv("MATCH_LIMIT", "10"))

    # Language the interviewer speaks to the student
    INTERVIEW_LANGUAGE: str = os.getenv("INTERVIEW_LANGUAGE", "Spanish")

    # Whole-turn deadline in seconds (0 disables)
    TURN_TIMEOUT_SECONDS: float = float(os.getenv("TURN_TIMEOUT_SECONDS", "180"))

    @classmethod
    def provider_api_keys(cls) -> Dict[str, str]:
        """Map provider name to its configured API key."""
        return {
            "openai": cls.OPENAI_API_KEY,
            "anthropic": cls.ANTHROPIC_API_KEY,
            "openrouter": cls.OPENROUTER_API_KEY,
        }

    @classmethod
    def get_provider_api_key(cls, provider: str) -> str:
        """Get the API key for a provider ("" when not configured)."""
        return cls.provider_api_keys().get(provider, "")

    @classmethod
    def get_provider_model(cls, provider: str) -> str:
        """Get the model name used for a provider."""
        models = {
            "openai": cls.OPENAI_MODEL,
            "anthropic": cls.ANTHROPIC_MODEL,
            "openrouter": cls.OPENROUTER_MODEL,
        }
        return models.get(provider, cls.OPENAI_MODEL)

    @classmethod
    def get_provider_base_url(cls, provider: str) -> Optional[str]:
        """
        Get the base URL for a provider.

        Returns:
            - OPENROUTER_BASE_URL when using OpenRouter
            - None when using direct Anthropic or OpenAI APIs
        """
        if provider == "openrouter":
            return cls.OPENROUTER_BASE_URL
        return None

    @classmethod
    def validate(cls) -> None:
        """
        Validate that all required configuration is present.
        Raises ConfigurationError if critical settings are missing.
        """
        if not any(cls.provider_api_keys().values()):
            raise ConfigurationError(
                "Missing required configuration: no LLM provider API key "
                "(OPENAI_API_KEY, ANTHROPIC_API_KEY or OPENROUTER_API_KEY). "
                "Please check your .env file."
            )

        if cls.PHASE_FLOW not in ("six_phase", "five_phase"):
            raise ConfigurationError(
                f"PHASE_FLOW must be 'six_phase' or 'five_phase', got '{cls.PHASE_FLOW}'"
            )

        if cls.RECOMMENDATION_PHASE_POLICY not in ("keep_phase", "user_signal", "complete"):
            raise ConfigurationError(
                "RECOMMENDATION_PHASE_POLICY must be one of keep_phase, user_signal, complete"
            )

        if cls.REALITY_CHECK_TURN_LIMIT < 1:
            raise ConfigurationError("REALITY_CHECK_TURN_LIMIT must be at least 1")

    @classmethod
    def summary(cls) -> str:
        """Return a summary of the current configuration (safe for logging)."""
        keys = cls.provider_api_keys()
        return f"""
Configuration Summary:
  Primary provider: {cls.AI_PROVIDER} {'✓' if keys.get(cls.AI_PROVIDER) else '✗ Missing'}
  Backup provider: {cls.AI_BACKUP_PROVIDER} {'✓' if keys.get(cls.AI_BACKUP_PROVIDER) else '✗ Missing'}
  OpenAI model: {cls.OPENAI_MODEL}
  Anthropic model: {cls.ANTHROPIC_MODEL}
  Phase flow: {cls.PHASE_FLOW}
  Reality check limit: {cls.REALITY_CHECK_TURN_LIMIT} messages
  Recommendation policy: {cls.RECOMMENDATION_PHASE_POLICY}
  Interview language: {cls.INTERVIEW_LANGUAGE}
        """.strip()


# Validate configuration on import (fail fast if misconfigured)
# Comment this out during development if you want to test without all keys
# Config.validate()
