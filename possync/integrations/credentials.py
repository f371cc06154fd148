"""
POSSync Connection Configuration and Credentials.

Typed, immutable connection settings supplied by the calling sync service.
Credentials are a tagged union discriminated on ``type``; secrets are
SecretStr so they never render in reprs or logs.
"""
from __future__ import annotations
from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

import httpx
from pydantic import BaseModel, ConfigDict, Field, SecretStr


class AuthType(str, Enum):
    NONE = "none"
    API_KEY = "api_key"
    BASIC = "basic"
    OAUTH2 = "oauth2"
    CERTIFICATE = "certificate"


# ---------------------------------------------------------------------------
# Credential variants
# ---------------------------------------------------------------------------

class _FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True)


class NoCredentials(_FrozenModel):
    type: Literal["none"] = "none"


class APIKeyCredentials(_FrozenModel):
    type: Literal["api_key"] = "api_key"
    api_key: SecretStr
    header_name: str = "X-API-Key"
    prefix: Optional[str] = None  # e.g. "Bearer" for vendors that want it


class BasicCredentials(_FrozenModel):
    type: Literal["basic"] = "basic"
    username: str = Field(..., min_length=1)
    password: SecretStr


class OAuth2Credentials(_FrozenModel):
    """Client-credentials grant; token state lives in the TokenCache."""
    type: Literal["oauth2"] = "oauth2"
    client_id: str = Field(..., min_length=1)
    client_secret: SecretStr
    token_url: str = Field(..., min_length=1)
    scope: Optional[str] = None
    access_token: Optional[SecretStr] = None
    token_expires_at: Optional[datetime] = None

    @property
    def cache_key(self) -> str:
        return f"{self.token_url}:{self.client_id}"


class CertificateCredentials(_FrozenModel):
    """Mutual-TLS client certificate."""
    type: Literal["certificate"] = "certificate"
    cert_path: str
    key_path: Optional[str] = None
    key_password: Optional[SecretStr] = None
    ca_path: Optional[str] = None


Credentials = Annotated[
    Union[
        NoCredentials,
        APIKeyCredentials,
        BasicCredentials,
        OAuth2Credentials,
        CertificateCredentials,
    ],
    Field(discriminator="type"),
]


# ---------------------------------------------------------------------------
# Connection config
# ---------------------------------------------------------------------------

class ConnectionConfig(_FrozenModel):
    """How to reach one POS system. Immutable for the duration of a sync."""

    pos_type: str = "generic"
    host: str = ""
    port: Optional[int] = Field(None, ge=1, le=65535)
    use_ssl: bool = True
    timeout: float = Field(30.0, gt=0)  # seconds
    credentials: Credentials = Field(default_factory=NoCredentials)
    base_url: Optional[str] = None
    extensions: dict[str, Any] = Field(default_factory=dict)  # e.g. merchant id

    @property
    def auth_type(self) -> AuthType:
        return AuthType(self.credentials.type)

    @property
    def resolved_base_url(self) -> str:
        """Explicit base_url wins; otherwise scheme://host[:port]."""
        if self.base_url:
            return self.base_url.rstrip("/")
        scheme = "https" if self.use_ssl else "http"
        if self.port and self.port not in (80, 443):
            return f"{scheme}://{self.host}:{self.port}"
        return f"{scheme}://{self.host}"

    @property
    def host_key(self) -> str:
        """Rate-limit key for this connection's remote host."""
        if self.base_url:
            return httpx.URL(self.base_url).host or self.base_url
        return self.host
