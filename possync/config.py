"""Framework-wide defaults as frozen dataclasses.

Every tunable the adapter framework relies on lives here, grouped by
concern. Vendor adapters read these defaults and may override them per
connection (for example a vendor's documented rate limit):
- RetrySettings: backoff budget and jitter band
- RateLimitSettings: fixed-window capacity
- HttpSettings: timeouts and user agent
- PaginationSettings: page size and item cap
- FileExchangeSettings: NAXML directory conventions
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field


# ---------------------------------------------------------------------------
# Nested config sections
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RetrySettings:
    """Retry/backoff budget for one logical request."""

    max_retries: int = 3
    base_delay: float = 1.0  # seconds
    max_delay: float = 30.0
    jitter_min: float = 0.85
    jitter_max: float = 1.15
    default_rate_limit_delay: float = 1.0
    max_rate_limit_waits: int = 10


@dataclass(frozen=True)
class RateLimitSettings:
    """Fixed-window admission defaults, applied per remote host."""

    max_requests: int = 100
    window_seconds: float = 60.0
    queue_requests: bool = True


@dataclass(frozen=True)
class HttpSettings:
    timeout: float = 30.0  # seconds
    token_timeout: float = 15.0
    user_agent_template: str = "POSSync-Adapter/{pos_type}/1.0"

    def user_agent(self, pos_type: str) -> str:
        return self.user_agent_template.format(pos_type=pos_type)


@dataclass(frozen=True)
class PaginationSettings:
    page_size: int = 100
    max_items: int = 10000


@dataclass(frozen=True)
class FileExchangeSettings:
    """Directory names under the NAXML base path."""

    import_dir: str = "Import"
    export_dir: str = "Export"
    processed_dir: str = "Processed"
    error_dir: str = "Error"


@dataclass(frozen=True)
class ApiSettings:
    """Operator API settings: allowed browser origins and log level."""

    cors_origins: tuple[str, ...] = ("http://localhost:3000",)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, prefix: str = "POSSYNC_") -> "ApiSettings":
        """POSSYNC_CORS_ORIGINS is comma separated; POSSYNC_LOG_LEVEL is a level name."""
        origins = os.getenv(f"{prefix}CORS_ORIGINS")
        level = os.getenv(f"{prefix}LOG_LEVEL")
        return cls(
            cors_origins=tuple(o.strip() for o in origins.split(",") if o.strip())
            if origins else cls.cors_origins,
            log_level=level.upper() if level else cls.log_level,
        )


# ---------------------------------------------------------------------------
# Top-level framework config
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FrameworkConfig:
    """Complete configuration for the adapter framework.

    Usage::

        config = FrameworkConfig.from_env()
        limiter = RateLimiter.from_settings(config.rate_limit)
    """

    retry: RetrySettings = field(default_factory=RetrySettings)
    rate_limit: RateLimitSettings = field(default_factory=RateLimitSettings)
    http: HttpSettings = field(default_factory=HttpSettings)
    pagination: PaginationSettings = field(default_factory=PaginationSettings)
    file_exchange: FileExchangeSettings = field(default_factory=FileExchangeSettings)

    @classmethod
    def default(cls) -> "FrameworkConfig":
        """Create config with all defaults."""
        return cls()

    @classmethod
    def from_env(cls, prefix: str = "POSSYNC_") -> "FrameworkConfig":
        """Create config from environment variables.

        Example: POSSYNC_MAX_RETRIES=5 POSSYNC_RATE_LIMIT_MAX_REQUESTS=60
        """
        retry = RetrySettings()
        max_retries = os.getenv(f"{prefix}MAX_RETRIES")
        base_delay = os.getenv(f"{prefix}RETRY_BASE_DELAY")
        if max_retries or base_delay:
            retry = RetrySettings(
                max_retries=int(max_retries) if max_retries else retry.max_retries,
                base_delay=float(base_delay) if base_delay else retry.base_delay,
            )

        rate_limit = RateLimitSettings()
        max_requests = os.getenv(f"{prefix}RATE_LIMIT_MAX_REQUESTS")
        window = os.getenv(f"{prefix}RATE_LIMIT_WINDOW_SECONDS")
        queue = os.getenv(f"{prefix}RATE_LIMIT_QUEUE")
        if max_requests or window or queue:
            rate_limit = RateLimitSettings(
                max_requests=int(max_requests) if max_requests else rate_limit.max_requests,
                window_seconds=float(window) if window else rate_limit.window_seconds,
                queue_requests=(queue.lower() == "true") if queue else rate_limit.queue_requests,
            )

        http = HttpSettings()
        timeout = os.getenv(f"{prefix}HTTP_TIMEOUT")
        if timeout:
            http = HttpSettings(timeout=float(timeout))

        pagination = PaginationSettings()
        page_size = os.getenv(f"{prefix}PAGE_SIZE")
        max_items = os.getenv(f"{prefix}MAX_ITEMS")
        if page_size or max_items:
            pagination = PaginationSettings(
                page_size=int(page_size) if page_size else pagination.page_size,
                max_items=int(max_items) if max_items else pagination.max_items,
            )

        return cls(retry=retry, rate_limit=rate_limit, http=http, pagination=pagination)
