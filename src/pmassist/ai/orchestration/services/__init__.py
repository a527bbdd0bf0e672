"""Services for the orchestration engine.

This package contains the resilience primitives shared by the dispatcher,
the confirmation gate and the request handler.

Services:
    - KeyValueStore: TTL-aware storage injected into every stateful service
    - ResponseCache: Short-TTL cache of read tool responses
    - RateLimiter: Fixed-window per-identity request limiting
    - RetryPolicy: Bounded exponential backoff for transient data errors
    - ErrorTranslator: User-safe error messages
    - Services: Container holding all service instances
"""

from .container import (
    Services,
    create_services,
)
from .error_translator import (
    GENERIC_MESSAGE,
    ErrorTranslator,
    TranslatedError,
)
from .kv_store import (
    Clock,
    InMemoryKeyValueStore,
    KeyValueStore,
    StoreStats,
)
from .rate_limiter import (
    RateLimitDecision,
    RateLimiter,
    RateLimitRecord,
)
from .response_cache import ResponseCache
from .retry import (
    TRANSIENT_STATUS_CODES,
    RetryPolicy,
    SleepFn,
    is_transient,
)

__all__ = [
    # Services Container
    "Services",
    "create_services",
    # Key-value store
    "Clock",
    "KeyValueStore",
    "InMemoryKeyValueStore",
    "StoreStats",
    # Response cache
    "ResponseCache",
    # Rate limiting
    "RateLimiter",
    "RateLimitDecision",
    "RateLimitRecord",
    # Retry
    "RetryPolicy",
    "SleepFn",
    "TRANSIENT_STATUS_CODES",
    "is_transient",
    # Error translation
    "ErrorTranslator",
    "TranslatedError",
    "GENERIC_MESSAGE",
]
