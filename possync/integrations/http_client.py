"""
POSSync HTTP Orchestration Core.

Executes one HTTP exchange against a POS system. Provides:
- URL normalization (leading slash, None query values dropped)
- Default headers merged with caller and auth headers
- Auth: API key, Basic, OAuth2 bearer (via TokenCache), mutual TLS
- Hard timeout mapped to a retryable TIMEOUT error
- JSON-or-text body parsing
- Structured errors synthesized from vendor error bodies on HTTP >= 400
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any
import asyncio
import base64
import logging
import ssl
import time

import httpx

from possync.config import HttpSettings
from possync.errors import (
    POSAdapterError,
    extract_error_code,
    extract_error_message,
    is_retryable_status,
    normalize_error,
)
from possync.integrations.credentials import (
    APIKeyCredentials,
    BasicCredentials,
    CertificateCredentials,
    ConnectionConfig,
    OAuth2Credentials,
)
from possync.integrations.oauth import TokenCache
from possync.integrations.rate_limiter import parse_retry_after
from possync.observability.logging_setup import redact_headers, redact_mapping

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Request / Response envelope
# ---------------------------------------------------------------------------

@dataclass
class RequestDescriptor:
    """One outbound call. Constructed per call, never reused."""
    path: str
    method: str = "GET"
    params: dict[str, Any] = field(default_factory=dict)
    body: Any = None
    headers: dict[str, str] = field(default_factory=dict)
    timeout: float | None = None  # overrides ConnectionConfig.timeout
    max_retries: int | None = None
    base_delay: float | None = None
    skip_rate_limit: bool = False


@dataclass
class HttpResponse:
    """Parsed inbound response."""
    status_code: int
    data: Any = None
    headers: dict[str, str] = field(default_factory=dict)
    duration_ms: float = 0.0
    text: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------

class HttpOrchestrator:
    """Builds, authenticates, executes and parses a single request."""

    def __init__(
        self,
        token_cache: TokenCache | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        settings: HttpSettings | None = None,
    ):
        self.settings = settings or HttpSettings()
        self.token_cache = token_cache or TokenCache(transport=transport)
        self._transport = transport

    # --- URL & headers ---

    @staticmethod
    def build_url(config: ConnectionConfig, path: str, params: dict[str, Any] | None = None) -> str:
        """Join base URL and path; drop query parameters whose value is None."""
        normalized = path if path.startswith("/") else f"/{path}"
        url = httpx.URL(f"{config.resolved_base_url}{normalized}")
        query = {
            k: (str(v).lower() if isinstance(v, bool) else v)
            for k, v in (params or {}).items()
            if v is not None
        }
        if query:
            url = url.copy_merge_params(query)
        return str(url)

    def default_headers(self, config: ConnectionConfig) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": self.settings.user_agent(config.pos_type),
        }

    async def auth_headers(self, config: ConnectionConfig) -> dict[str, str]:
        """Build auth headers for the connection's credential variant."""
        creds = config.credentials

        if isinstance(creds, APIKeyCredentials):
            key = creds.api_key.get_secret_value()
            value = f"{creds.prefix} {key}" if creds.prefix else key
            return {creds.header_name: value}

        if isinstance(creds, BasicCredentials):
            raw = f"{creds.username}:{creds.password.get_secret_value()}"
            return {"Authorization": f"Basic {base64.b64encode(raw.encode()).decode()}"}

        if isinstance(creds, OAuth2Credentials):
            token = await self.token_cache.get_token(creds)
            return {"Authorization": f"Bearer {token}"}

        return {}

    @staticmethod
    def ssl_context(config: ConnectionConfig) -> ssl.SSLContext | bool:
        """Client TLS context for certificate credentials; default verification otherwise."""
        creds = config.credentials
        if not isinstance(creds, CertificateCredentials):
            return True
        context = ssl.create_default_context(cafile=creds.ca_path)
        context.load_cert_chain(
            creds.cert_path,
            keyfile=creds.key_path,
            password=creds.key_password.get_secret_value() if creds.key_password else None,
        )
        return context

    # --- Execution ---

    async def execute(self, config: ConnectionConfig, req: RequestDescriptor) -> HttpResponse:
        """Run one exchange. Raises POSAdapterError on any failure."""
        url = self.build_url(config, req.path)
        params = {k: v for k, v in req.params.items() if v is not None}
        headers = {
            **self.default_headers(config),
            **req.headers,
            **(await self.auth_headers(config)),
        }
        timeout = req.timeout or config.timeout
        method = req.method.upper()

        kwargs: dict[str, Any] = {"params": params or None, "headers": headers}
        if isinstance(req.body, (dict, list)):
            kwargs["json"] = req.body
        elif req.body is not None:
            kwargs["content"] = req.body

        logger.debug(
            "%s %s params=%s headers=%s",
            method, url, redact_mapping(params), redact_headers(headers),
        )
        start = time.perf_counter()
        try:
            async with httpx.AsyncClient(
                transport=self._transport,
                verify=self.ssl_context(config),
                timeout=timeout,
            ) as client:
                resp = await asyncio.wait_for(client.request(method, url, **kwargs), timeout)
        except POSAdapterError:
            raise
        except Exception as exc:
            error = normalize_error(exc)
            error.details.setdefault("url", url)
            logger.debug("%s %s failed: %s", method, url, error.error_code)
            raise error from exc

        duration_ms = (time.perf_counter() - start) * 1000
        response_headers = dict(resp.headers)
        data = self.parse_body(resp)
        logger.debug("%s %s -> %d in %.1fms", method, url, resp.status_code, duration_ms)

        if resp.status_code >= 400:
            if resp.status_code == 401 and isinstance(config.credentials, OAuth2Credentials):
                self.token_cache.invalidate(config.credentials)
            raise self.error_from_response(resp.status_code, resp.reason_phrase, data, response_headers, url)

        return HttpResponse(
            status_code=resp.status_code,
            data=data,
            headers=response_headers,
            duration_ms=duration_ms,
            text=resp.text,
        )

    @staticmethod
    def parse_body(resp: httpx.Response) -> Any:
        """JSON when the content type says so, otherwise ``{"text": raw}``."""
        content_type = resp.headers.get("content-type", "")
        if "json" in content_type.lower():
            try:
                return resp.json()
            except ValueError:
                pass
        return {"text": resp.text}

    @staticmethod
    def error_from_response(
        status_code: int,
        reason: str,
        data: Any,
        headers: dict[str, str],
        url: str,
    ) -> POSAdapterError:
        message = extract_error_message(data, reason or f"HTTP {status_code}")
        details: dict[str, Any] = {"url": url, "body": data}
        retry_after = headers.get("retry-after")
        if retry_after is not None:
            delay = parse_retry_after(retry_after)
            if delay is not None:
                details["retry_after_seconds"] = delay
        return POSAdapterError(
            message,
            status_code,
            extract_error_code(data, status_code),
            details=details,
            retryable=is_retryable_status(status_code),
            headers=headers,
        )
