"""
POSSync Integrations: the HTTP side of the adapter framework.

Provides vendor-agnostic integration infrastructure:
- ConnectionConfig / credentials: typed, immutable connection settings
- HttpOrchestrator: one authenticated exchange with structured errors
- RateLimiter: per-host fixed-window admission
- TokenCache: OAuth2 client-credentials tokens
- RetryController: exponential backoff with jitter and 429 handling
- Pagination strategies: offset, cursor, page number
- RestService: the composed stack handed to vendor adapters
- Adapter contract: capabilities, sync and connection-test results
"""
from possync.errors import (
    ErrorCode,
    POSAdapterError,
    normalize_error,
)
from possync.integrations.contracts import (
    AdapterCapabilities,
    ConnectionTestResult,
    EntityType,
    POSAdapter,
    SyncIssue,
    SyncResult,
    collect,
)
from possync.integrations.credentials import (
    APIKeyCredentials,
    AuthType,
    BasicCredentials,
    CertificateCredentials,
    ConnectionConfig,
    Credentials,
    NoCredentials,
    OAuth2Credentials,
)
from possync.integrations.http_client import (
    HttpOrchestrator,
    HttpResponse,
    RequestDescriptor,
)
from possync.integrations.oauth import CachedToken, TokenCache
from possync.integrations.pagination import (
    CursorPagination,
    OffsetPagination,
    Page,
    PageNumberPagination,
    get_strategy,
)
from possync.integrations.rate_limiter import (
    RateLimitPolicy,
    RateLimitState,
    RateLimiter,
)
from possync.integrations.retry import (
    AttemptState,
    RetryAttempt,
    RetryController,
    RetryPolicy,
)
from possync.integrations.service import RestService

__all__ = [
    # Errors
    "ErrorCode",
    "POSAdapterError",
    "normalize_error",
    # Contract
    "AdapterCapabilities",
    "ConnectionTestResult",
    "EntityType",
    "POSAdapter",
    "SyncIssue",
    "SyncResult",
    "collect",
    # Config
    "APIKeyCredentials",
    "AuthType",
    "BasicCredentials",
    "CertificateCredentials",
    "ConnectionConfig",
    "Credentials",
    "NoCredentials",
    "OAuth2Credentials",
    # HTTP
    "HttpOrchestrator",
    "HttpResponse",
    "RequestDescriptor",
    "CachedToken",
    "TokenCache",
    # Pagination
    "CursorPagination",
    "OffsetPagination",
    "Page",
    "PageNumberPagination",
    "get_strategy",
    # Rate limiting / retry
    "RateLimitPolicy",
    "RateLimitState",
    "RateLimiter",
    "AttemptState",
    "RetryAttempt",
    "RetryController",
    "RetryPolicy",
    # Composition
    "RestService",
]
