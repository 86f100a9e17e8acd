"""
Services module for calls to external generative providers.

The ProviderGateway wraps every provider operation with a per-call
deadline, retry with backoff and caller-supplied fallbacks.
"""

from src.services.provider_gateway import ProviderGateway, is_retryable_error

__all__ = [
    "ProviderGateway",
    "is_retryable_error",
]
