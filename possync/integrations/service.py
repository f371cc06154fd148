"""
POSSync REST Service.

The composition root vendor adapters are handed instead of a base class:
Rate Limiter -> Retry/Backoff -> HTTP Orchestration Core -> Pagination.
One instance per adapter; its rate-limit map and token cache live exactly
as long as the adapter does.
"""
from __future__ import annotations
from typing import Any, Awaitable, Callable, TypeVar
import asyncio
import logging
import random
import time

import httpx

from possync.config import FrameworkConfig
from possync.errors import POSAdapterError
from possync.integrations.credentials import ConnectionConfig
from possync.integrations.http_client import HttpOrchestrator, HttpResponse, RequestDescriptor
from possync.integrations.oauth import TokenCache
from possync.integrations.pagination import ExtractPage, get_strategy
from possync.integrations.rate_limiter import RateLimitPolicy, RateLimiter
from possync.integrations.retry import RetryAttempt, RetryController, RetryPolicy
from possync.mapping.models import JSONEntityMapping

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RestService:
    """Authenticated, rate-limited, retried HTTP for one adapter instance."""

    def __init__(
        self,
        settings: FrameworkConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.time,
        random_unit: Callable[[], float] = random.random,
    ):
        self.settings = settings or FrameworkConfig.default()
        self.token_cache = TokenCache(
            transport=transport, timeout=self.settings.http.token_timeout, clock=clock
        )
        self.orchestrator = HttpOrchestrator(
            token_cache=self.token_cache, transport=transport, settings=self.settings.http
        )
        self.rate_limiter = RateLimiter.from_settings(
            self.settings.rate_limit, clock=clock, sleep=sleep
        )
        self.retry = RetryController(
            RetryPolicy.from_settings(self.settings.retry), sleep=sleep, random_unit=random_unit
        )

    # --- Lifecycle ---

    def configure_rate_limit(self, config: ConnectionConfig, policy: RateLimitPolicy) -> None:
        self.rate_limiter.configure(config.host_key, policy)

    def clear_token_cache(self) -> None:
        self.token_cache.clear()

    def reset_rate_limits(self) -> None:
        self.rate_limiter.reset()

    # --- Requests ---

    async def request(
        self,
        config: ConnectionConfig,
        req: RequestDescriptor,
        history: list[RetryAttempt] | None = None,
    ) -> HttpResponse:
        """Execute ``req`` with admission control and retries."""
        host = config.host_key

        async def attempt() -> HttpResponse:
            if not req.skip_rate_limit:
                await self.rate_limiter.acquire(host)
            try:
                resp = await self.orchestrator.execute(config, req)
            except POSAdapterError as exc:
                if exc.headers:
                    self.rate_limiter.update_from_headers(host, exc.headers)
                raise
            self.rate_limiter.update_from_headers(host, resp.headers)
            return resp

        return await self.retry.run(
            attempt,
            max_retries=req.max_retries,
            base_delay=req.base_delay,
            history=history,
            label=f"{req.method.upper()} {req.path}",
        )

    async def get(
        self, config: ConnectionConfig, path: str, params: dict[str, Any] | None = None, **kwargs: Any
    ) -> HttpResponse:
        return await self.request(config, RequestDescriptor(path=path, params=params or {}, **kwargs))

    async def post(
        self, config: ConnectionConfig, path: str, body: Any = None, **kwargs: Any
    ) -> HttpResponse:
        return await self.request(config, RequestDescriptor(path=path, method="POST", body=body, **kwargs))

    # --- Pagination ---

    async def fetch_all(
        self,
        config: ConnectionConfig,
        mapping: JSONEntityMapping,
        extract: ExtractPage[T],
        headers: dict[str, str] | None = None,
    ) -> list[T]:
        """Walk every page of ``mapping.endpoint`` and return the extracted items."""

        async def fetch_page(page_params: dict[str, Any]) -> Any:
            req = RequestDescriptor(
                path=mapping.endpoint,
                method=mapping.method,
                params={**mapping.query, **page_params},
                body=mapping.request_body if mapping.method == "POST" else None,
                headers=dict(headers or {}),
            )
            resp = await self.request(config, req)
            return resp.data

        strategy = get_strategy(mapping.pagination)
        items = await strategy.fetch_all(fetch_page, extract)
        logger.info("Fetched %d item(s) from %s", len(items), mapping.endpoint)
        return items
