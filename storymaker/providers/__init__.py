"""Provider adapters for text generation and speech synthesis.

This package defines the uniform adapter protocol, the shared HTTP transport,
API key validation, and the factory that builds adapters from configuration.
"""

from .base import ProviderKind, SpeechAdapter, TextAdapter
from .factory import ProviderFactory
from .http_client import ProviderCallError, ProviderHttpClient
from .rate_limiter import RateLimiter
from .status import ProviderStatus, provider_status

__all__ = [
    "ProviderCallError",
    "ProviderFactory",
    "ProviderHttpClient",
    "ProviderKind",
    "ProviderStatus",
    "RateLimiter",
    "SpeechAdapter",
    "TextAdapter",
    "provider_status",
]
