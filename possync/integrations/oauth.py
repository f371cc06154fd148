"""
POSSync OAuth2 Token Cache.

Client-credentials bearer tokens cached per (token endpoint, client id):
- Cached token returned while its expiry is in the future
- Pre-issued tokens on the credentials are adopted when still valid
- Expiry computed as now + expires_in - 60s to absorb clock skew
- Explicitly clearable for tests and credential rotation
"""
from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable
import logging
import time

import httpx

from possync.errors import ErrorCode, POSAdapterError, normalize_error
from possync.integrations.credentials import OAuth2Credentials

logger = logging.getLogger(__name__)

EXPIRY_MARGIN_SECONDS = 60
DEFAULT_EXPIRES_IN = 3600


@dataclass
class CachedToken:
    """Bearer token plus the instant it stops being usable (epoch seconds)."""
    access_token: str
    expires_at: float
    token_type: str = "Bearer"
    scope: str | None = None

    def is_valid(self, now: float) -> bool:
        return now < self.expires_at

    def to_dict(self) -> dict[str, Any]:
        return {
            "token_type": self.token_type,
            "expires_at": self.expires_at,
            "scope": self.scope,
        }


class TokenCache:
    """Caches client-credentials tokens for the lifetime of one adapter."""

    def __init__(
        self,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 15.0,
        clock: Callable[[], float] = time.time,
    ):
        self._transport = transport
        self._timeout = timeout
        self._clock = clock
        self._tokens: dict[str, CachedToken] = {}  # key: {token_url}:{client_id}
        self.grant_count = 0

    async def get_token(self, credentials: OAuth2Credentials) -> str:
        """Return a valid bearer token, performing a grant only when needed."""
        key = credentials.cache_key
        now = self._clock()

        cached = self._tokens.get(key)
        if cached and cached.is_valid(now):
            return cached.access_token

        if credentials.access_token and credentials.token_expires_at:
            expires_at = _to_epoch(credentials.token_expires_at)
            if expires_at > now:
                self._tokens[key] = CachedToken(
                    access_token=credentials.access_token.get_secret_value(),
                    expires_at=expires_at,
                )
                return self._tokens[key].access_token

        token = await self._grant(credentials)
        self._tokens[key] = token
        return token.access_token

    def invalidate(self, credentials: OAuth2Credentials) -> None:
        """Drop the cached token for one client (e.g. after a 401)."""
        self._tokens.pop(credentials.cache_key, None)

    def clear(self) -> None:
        self._tokens.clear()

    def peek(self, credentials: OAuth2Credentials) -> CachedToken | None:
        return self._tokens.get(credentials.cache_key)

    async def _grant(self, credentials: OAuth2Credentials) -> CachedToken:
        form = {
            "grant_type": "client_credentials",
            "client_id": credentials.client_id,
            "client_secret": credentials.client_secret.get_secret_value(),
        }
        if credentials.scope:
            form["scope"] = credentials.scope

        logger.debug("Requesting client-credentials grant from %s", credentials.token_url)
        self.grant_count += 1
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self._timeout) as client:
                resp = await client.post(
                    credentials.token_url,
                    data=form,
                    headers={"Accept": "application/json"},
                )
            if resp.status_code >= 400:
                raise POSAdapterError(
                    f"OAuth token request failed with HTTP {resp.status_code}",
                    resp.status_code,
                    ErrorCode.OAUTH_REFRESH_FAILED,
                    details={"token_url": credentials.token_url},
                    retryable=False,
                )
            try:
                data = resp.json()
            except ValueError:
                data = {}
            access_token = data.get("access_token") if isinstance(data, dict) else None
            if not access_token:
                raise POSAdapterError(
                    "OAuth token response did not include an access_token",
                    resp.status_code,
                    ErrorCode.OAUTH_REFRESH_FAILED,
                    details={"token_url": credentials.token_url},
                    retryable=False,
                )
        except POSAdapterError:
            raise
        except Exception as exc:
            cause = normalize_error(exc)
            raise POSAdapterError(
                f"OAuth token request failed: {cause.message}",
                500,
                ErrorCode.OAUTH_REFRESH_FAILED,
                details={"token_url": credentials.token_url, "cause": cause.error_code},
                retryable=False,
            ) from exc

        try:
            expires_in = float(data.get("expires_in") or DEFAULT_EXPIRES_IN)
        except (TypeError, ValueError):
            expires_in = DEFAULT_EXPIRES_IN
        return CachedToken(
            access_token=access_token,
            expires_at=self._clock() + expires_in - EXPIRY_MARGIN_SECONDS,
            token_type=data.get("token_type") or "Bearer",
            scope=data.get("scope"),
        )


def _to_epoch(value: datetime) -> float:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.timestamp()
