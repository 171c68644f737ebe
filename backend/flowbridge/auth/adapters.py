# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Outbound authentication adapters.

Each adapter knows how to obtain a fresh credential (fetch_fresh_token)
and how to put a cached credential on a request (apply_outbound). Caching
and refresh coordination live in TokenCache, not here.
"""

import re
import secrets
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import httpx
import jwt

from flowbridge.core.errors import AuthenticationError, ConfigurationError
from flowbridge.models.interface import AuthAdapterConfig, AuthAdapterType, TokenCacheEntry


@dataclass
class FreshToken:
    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[float] = None  # seconds
    session_data: Dict[str, Any] = field(default_factory=dict)


@dataclass
class OutboundAuth:
    """What an adapter adds to an outbound request"""
    headers: Dict[str, str] = field(default_factory=dict)
    query_params: Dict[str, str] = field(default_factory=dict)


class BaseAuthAdapter(ABC):
    """Common base for OAuth2, JWT, cookie and API key adapters"""

    required_settings: tuple = ()
    required_credentials: tuple = ()

    def __init__(self, config: AuthAdapterConfig, http_client: Optional[httpx.AsyncClient] = None):
        self.config = config
        self.http_client = http_client
        self._check_config()

    @property
    def adapter_id(self) -> str:
        return self.config.id

    @property
    def settings(self) -> Dict[str, Any]:
        return self.config.settings

    @property
    def credentials(self) -> Dict[str, Any]:
        return self.config.credentials

    @property
    def idle_timeout(self) -> Optional[float]:
        """Seconds a cached credential may sit unused; None for no limit."""
        return None

    def _check_config(self) -> None:
        missing = [key for key in self.required_settings if not self.settings.get(key)]
        missing += [key for key in self.required_credentials if not self.credentials.get(key)]
        if missing:
            raise ConfigurationError(
                f"Auth adapter '{self.config.id}' ({self.config.type.value}) is missing: {', '.join(missing)}"
            )

    def _client(self) -> httpx.AsyncClient:
        if self.http_client is None:
            raise ConfigurationError(f"Auth adapter '{self.config.id}' needs an HTTP client")
        return self.http_client

    @abstractmethod
    async def fetch_fresh_token(self, cached: Optional[TokenCacheEntry] = None) -> FreshToken:
        """Obtain a new credential from the provider."""

    @abstractmethod
    def apply_outbound(self, entry: TokenCacheEntry) -> OutboundAuth:
        """Turn a cached credential into request headers/params."""


class OAuth2Adapter(BaseAuthAdapter):
    """
    OAuth2 client-credentials grant, with optional refresh-token grant.

    settings: token_url, scope, audience, grant_type
        ("client_credentials" | "refresh_token"), header_name, token_type
    credentials: client_id, client_secret
    """

    required_settings = ("token_url",)
    required_credentials = ("client_id", "client_secret")

    async def fetch_fresh_token(self, cached: Optional[TokenCacheEntry] = None) -> FreshToken:
        grant_type = self.settings.get("grant_type", "client_credentials")
        if grant_type == "refresh_token" and cached is not None and cached.refresh_token:
            token = await self._refresh(cached.refresh_token)
            if token is not None:
                return token
        return await self._client_credentials()

    async def _client_credentials(self) -> FreshToken:
        form = {
            "grant_type": "client_credentials",
            "client_id": self.credentials["client_id"],
            "client_secret": self.credentials["client_secret"],
        }
        if self.settings.get("scope"):
            form["scope"] = self.settings["scope"]
        if self.settings.get("audience"):
            form["audience"] = self.settings["audience"]

        response = await self._post_token(form)
        if response.status_code >= 400:
            raise AuthenticationError(
                f"OAuth2 token request failed: {response.status_code} {response.text[:200]}",
                adapter_id=self.adapter_id
            )
        return self._parse(response)

    async def _refresh(self, refresh_token: str) -> Optional[FreshToken]:
        form = {
            "grant_type": "refresh_token",
            "client_id": self.credentials["client_id"],
            "client_secret": self.credentials["client_secret"],
            "refresh_token": refresh_token,
        }
        response = await self._post_token(form)
        if response.status_code >= 400:
            # Refresh token rejected; caller falls back to client credentials
            return None
        token = self._parse(response)
        if token.refresh_token is None:
            token.refresh_token = refresh_token
        return token

    async def _post_token(self, form: Dict[str, str]) -> httpx.Response:
        try:
            return await self._client().post(
                self.settings["token_url"],
                data=form,
                headers={"Accept": "application/json"},
            )
        except httpx.HTTPError as e:
            raise AuthenticationError(f"OAuth2 token endpoint unreachable: {e}", adapter_id=self.adapter_id)

    def _parse(self, response: httpx.Response) -> FreshToken:
        try:
            data = response.json()
        except ValueError:
            raise AuthenticationError("OAuth2 token response is not JSON", adapter_id=self.adapter_id)
        if not data.get("access_token"):
            raise AuthenticationError("OAuth2 token response has no access_token", adapter_id=self.adapter_id)
        return FreshToken(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            expires_in=data.get("expires_in"),
            session_data={"scope": data.get("scope"), "token_type": data.get("token_type")},
        )

    def apply_outbound(self, entry: TokenCacheEntry) -> OutboundAuth:
        header = self.settings.get("header_name", "Authorization")
        token_type = self.settings.get("token_type", "Bearer")
        return OutboundAuth(headers={header: f"{token_type} {entry.access_token}"})


_DURATION = re.compile(r"^\s*(\d+)\s*([smhd]?)\s*$")
_DURATION_UNITS = {"": 1, "s": 1, "m": 60, "h": 3600, "d": 86400}


def parse_duration(value: Any, default: int = 3600) -> int:
    """Seconds from 3600, "3600", "60m", "1h" or "1d"."""
    if value is None:
        return default
    if isinstance(value, (int, float)):
        return int(value)
    match = _DURATION.match(str(value))
    if not match:
        raise ConfigurationError(f"Invalid duration: {value!r}")
    return int(match.group(1)) * _DURATION_UNITS[match.group(2)]


class JWTAdapter(BaseAuthAdapter):
    """
    Self-signed JWTs.

    settings: algorithm (HS256, HS512, RS256, RS512), expires_in, claims,
        issuer, audience, key_id, header_name, header_prefix
    credentials: secret (HS*) or private_key (RS*, PEM)
    """

    ALGORITHMS = ("HS256", "HS512", "RS256", "RS512")

    def _check_config(self) -> None:
        algorithm = self.algorithm
        if algorithm not in self.ALGORITHMS:
            raise ConfigurationError(f"Unsupported JWT algorithm: {algorithm}")
        key_name = "secret" if algorithm.startswith("HS") else "private_key"
        if not self.credentials.get(key_name):
            raise ConfigurationError(f"JWT {algorithm} adapter '{self.config.id}' requires '{key_name}'")

    @property
    def algorithm(self) -> str:
        return str(self.settings.get("algorithm", "HS256")).upper()

    async def fetch_fresh_token(self, cached: Optional[TokenCacheEntry] = None) -> FreshToken:
        expires_in = parse_duration(self.settings.get("expires_in"))
        now = int(time.time())
        claims: Dict[str, Any] = {"iat": now, "exp": now + expires_in}
        claims.update(self.settings.get("claims") or {})
        if "iss" not in claims and self.settings.get("issuer"):
            claims["iss"] = self.settings["issuer"]
        if "aud" not in claims and self.settings.get("audience"):
            claims["aud"] = self.settings["audience"]

        headers = {}
        if self.algorithm.startswith("RS") and self.settings.get("key_id"):
            headers["kid"] = self.settings["key_id"]

        key = self.credentials["secret"] if self.algorithm.startswith("HS") else self.credentials["private_key"]
        try:
            token = jwt.encode(claims, key, algorithm=self.algorithm, headers=headers or None)
        except (jwt.PyJWTError, ValueError, TypeError) as e:
            raise AuthenticationError(f"JWT signing failed: {e}", adapter_id=self.adapter_id)

        return FreshToken(access_token=token, expires_in=expires_in, session_data={"claims": claims})

    def apply_outbound(self, entry: TokenCacheEntry) -> OutboundAuth:
        header = self.settings.get("header_name", "Authorization")
        prefix = self.settings.get("header_prefix", "Bearer")
        value = f"{prefix} {entry.access_token}" if prefix else entry.access_token
        return OutboundAuth(headers={header: value})


class CookieAdapter(BaseAuthAdapter):
    """
    Session cookie obtained from a login endpoint.

    settings: login_url, cookie_name (default "session"), login_format
        ("json" | "form"), username_field, password_field,
        idle_timeout_minutes (default 60), max_age_hours (default 24)
    credentials: username, password
    """

    required_settings = ("login_url",)
    required_credentials = ("username", "password")

    @property
    def cookie_name(self) -> str:
        return self.settings.get("cookie_name", "session")

    @property
    def idle_timeout(self) -> Optional[float]:
        return float(self.settings.get("idle_timeout_minutes", 60)) * 60

    async def fetch_fresh_token(self, cached: Optional[TokenCacheEntry] = None) -> FreshToken:
        body = {
            self.settings.get("username_field", "username"): self.credentials["username"],
            self.settings.get("password_field", "password"): self.credentials["password"],
        }
        try:
            if self.settings.get("login_format", "json") == "form":
                response = await self._client().post(self.settings["login_url"], data=body)
            else:
                response = await self._client().post(self.settings["login_url"], json=body)
        except httpx.HTTPError as e:
            raise AuthenticationError(f"Login endpoint unreachable: {e}", adapter_id=self.adapter_id)

        if response.status_code >= 400:
            raise AuthenticationError(f"Login failed: HTTP {response.status_code}", adapter_id=self.adapter_id)

        session_id = response.cookies.get(self.cookie_name)
        if not session_id:
            raise AuthenticationError(
                f"Login response did not set cookie '{self.cookie_name}'",
                adapter_id=self.adapter_id
            )

        return FreshToken(
            access_token=session_id,
            expires_in=float(self.settings.get("max_age_hours", 24)) * 3600,
            session_data={"cookie_name": self.cookie_name},
        )

    def apply_outbound(self, entry: TokenCacheEntry) -> OutboundAuth:
        return OutboundAuth(
            headers={"Cookie": f"{self.cookie_name}={entry.access_token}"}
        )


class ApiKeyAdapter(BaseAuthAdapter):
    """
    Static API key.

    settings: header_name (default "X-API-Key") or query_param
    credentials: api_key
    """

    required_credentials = ("api_key",)

    async def fetch_fresh_token(self, cached: Optional[TokenCacheEntry] = None) -> FreshToken:
        return FreshToken(access_token=self.credentials["api_key"])

    def apply_outbound(self, entry: TokenCacheEntry) -> OutboundAuth:
        if self.settings.get("query_param"):
            return OutboundAuth(query_params={self.settings["query_param"]: entry.access_token})
        return OutboundAuth(headers={self.settings.get("header_name", "X-API-Key"): entry.access_token})


ADAPTER_TYPES = {
    AuthAdapterType.OAUTH2: OAuth2Adapter,
    AuthAdapterType.JWT: JWTAdapter,
    AuthAdapterType.COOKIE: CookieAdapter,
    AuthAdapterType.API_KEY: ApiKeyAdapter,
}


def build_adapter(config: AuthAdapterConfig, http_client: Optional[httpx.AsyncClient] = None) -> BaseAuthAdapter:
    adapter_class = ADAPTER_TYPES.get(config.type)
    if adapter_class is None:
        raise ConfigurationError(f"Unsupported auth adapter type: {config.type}")
    return adapter_class(config, http_client)


def emulated_auth(run_id: str) -> OutboundAuth:
    """Mock credential for emulation mode; never a real secret."""
    return OutboundAuth(headers={
        "Authorization": f"Bearer emulated-{run_id}-{secrets.token_hex(4)}",
        "X-FlowBridge-Test-Call": "true",
    })
