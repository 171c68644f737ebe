# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Interface Dispatcher

Performs the network call behind interface source/destination nodes:
lookup, request building, authentication, timeout and retry.

Auth resolution order:
    1. emulation mode - mock credential, request flagged as a test call
    2. auth adapter on the interface - token from OutboundTokenProvider
    3. legacy inline secret (api key / bearer / basic)
    4. none

A 401/403 while using an adapter invalidates the cached token and retries
once with a fresh one without consuming a retry attempt.
"""

import asyncio
import base64
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx

from flowbridge.auth.adapters import OutboundAuth, emulated_auth
from flowbridge.auth.provider import OutboundTokenProvider
from flowbridge.core.errors import (
    AuthenticationError,
    ConfigurationError,
    ConnectivityError,
    DisabledError,
)
from flowbridge.core.logging import get_service_logger
from flowbridge.models.interface import HTTP_PROTOCOLS, AuthType, InterfaceConfig
from .repository import InterfaceRepository

logger = get_service_logger("dispatcher")

SOURCE = "source"
DESTINATION = "destination"

AUTH_REJECTED_STATUSES = (401, 403)


@dataclass
class PreparedRequest:
    method: str
    url: str
    headers: Dict[str, str]
    params: Dict[str, Any]
    body: Any = None
    timeout: float = 30.0
    retry_attempts: int = 3
    retry_delay: float = 1.0


@dataclass
class DispatchResult:
    output: Any
    status_code: int
    attempt: int
    attempts: List[Dict[str, Any]] = field(default_factory=list)
    test_call: bool = False
    auth_refreshed: bool = False


class InterfaceDispatcher:
    def __init__(
        self,
        repository: InterfaceRepository,
        token_provider: Optional[OutboundTokenProvider] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
        retry_attempts: int = 3,
        retry_delay: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        self.repository = repository
        self.token_provider = token_provider
        self.client = http_client or httpx.AsyncClient()
        self.timeout = timeout
        self.retry_attempts = retry_attempts
        self.retry_delay = retry_delay
        self.sleep = sleep

    async def dispatch(
        self,
        interface_id: str,
        payload: Any = None,
        direction: str = DESTINATION,
        overrides: Optional[Dict[str, Any]] = None,
        emulation_mode: bool = False,
        run_id: str = ""
    ) -> DispatchResult:
        """
        Call an interface and return its normalized response.

        Raises:
            NotFoundError: Unknown interface
            DisabledError: Interface switched off
            ConfigurationError: Protocol or auth type not dispatchable
            AuthenticationError: Credentials could not be resolved
            ConnectivityError: Every attempt failed
        """
        interface = self.repository.get_interface(interface_id)
        if not interface.enabled:
            raise DisabledError("Interface", interface_id)
        if interface.protocol not in HTTP_PROTOCOLS:
            raise ConfigurationError(
                f"Protocol not supported for dispatch: {interface.protocol.value} (interface '{interface.id}')"
            )

        request = self._build_request(interface, direction, payload, overrides or {})
        auth = await self._resolve_auth(interface, emulation_mode, run_id)

        attempts: List[Dict[str, Any]] = []
        auth_refreshed = False
        attempt = 0
        while attempt < request.retry_attempts:
            attempt += 1
            error: Optional[str] = None
            try:
                response = await self._send(request, auth)
            except httpx.HTTPError as e:
                error = f"{e.__class__.__name__}: {e}".rstrip(": ")
                attempts.append({"attempt": attempt, "status_code": None, "error": error})
            else:
                if (
                    response.status_code in AUTH_REJECTED_STATUSES
                    and interface.auth_adapter_id
                    and not emulation_mode
                    and not auth_refreshed
                ):
                    logger.warning(
                        f"Interface {interface.id} rejected credentials (HTTP {response.status_code}); refreshing"
                    )
                    auth_refreshed = True
                    await self.token_provider.handle_auth_error(interface.auth_adapter_id)
                    auth = await self._resolve_auth(interface, emulation_mode, run_id)
                    # Credential refresh does not count as an attempt
                    attempt -= 1
                    continue

                if response.status_code >= 400:
                    error = f"HTTP {response.status_code}: {response.reason_phrase}"
                    attempts.append({"attempt": attempt, "status_code": response.status_code, "error": error})
                else:
                    attempts.append({"attempt": attempt, "status_code": response.status_code, "error": None})
                    return DispatchResult(
                        output=self._normalize(response, direction),
                        status_code=response.status_code,
                        attempt=attempt,
                        attempts=attempts,
                        test_call=emulation_mode,
                        auth_refreshed=auth_refreshed,
                    )

            logger.warning(
                f"Interface {interface.id} attempt {attempt}/{request.retry_attempts} failed: {error}"
            )
            if attempt < request.retry_attempts:
                await self.sleep(request.retry_delay)

        last_error = attempts[-1]["error"] if attempts else "no attempt made"
        raise ConnectivityError(
            f"Failed after {request.retry_attempts} attempts: {last_error}",
            attempts=attempts,
            details={"interface_id": interface.id, "url": request.url},
        )

    def _build_request(
        self,
        interface: InterfaceConfig,
        direction: str,
        payload: Any,
        overrides: Dict[str, Any]
    ) -> PreparedRequest:
        http = interface.http_config
        default_method = "GET" if direction == SOURCE else "POST"
        method = str(overrides.get("method") or http.method or default_method).upper()

        path = overrides.get("path") or interface.path or ""
        url = interface.endpoint
        if path:
            if url.endswith("/") and path.startswith("/"):
                url = url[:-1]
            elif not url.endswith("/") and not path.startswith("/"):
                url = url + "/"
            url = url + path

        if direction == SOURCE:
            body = overrides.get("body")
        else:
            body = payload

        headers: Dict[str, str] = {}
        if body is not None:
            headers["Content-Type"] = "text/xml" if isinstance(body, str) else "application/json"
        headers.update(http.headers)
        headers.update(overrides.get("headers") or {})

        params: Dict[str, Any] = dict(http.query_params)
        params.update(overrides.get("query_params") or {})

        retry_attempts = overrides.get("retry_attempts") or http.retry_attempts or self.retry_attempts
        retry_delay = overrides.get("retry_delay")
        if retry_delay is None:
            retry_delay = http.retry_delay if http.retry_delay is not None else self.retry_delay

        return PreparedRequest(
            method=method,
            url=url,
            headers=headers,
            params=params,
            body=body,
            timeout=float(overrides.get("timeout") or http.timeout or self.timeout),
            retry_attempts=max(1, int(retry_attempts)),
            retry_delay=float(retry_delay),
        )

    async def _resolve_auth(self, interface: InterfaceConfig, emulation_mode: bool, run_id: str) -> OutboundAuth:
        if emulation_mode:
            return emulated_auth(run_id or "run")

        if interface.auth_adapter_id:
            if self.token_provider is None:
                raise ConfigurationError(
                    f"Interface '{interface.id}' uses auth adapter '{interface.auth_adapter_id}' "
                    "but no token provider is configured"
                )
            return await self.token_provider.provide_auth(interface.auth_adapter_id)

        if interface.auth_type == AuthType.NONE:
            return OutboundAuth()

        secret = self.repository.get_secret(interface.id)

        if interface.auth_type == AuthType.API_KEY:
            if secret is None or not secret.api_key:
                raise AuthenticationError(f"No API key configured for interface '{interface.id}'")
            header = interface.metadata.get("api_key_header", "X-API-Key")
            return OutboundAuth(headers={header: secret.api_key})

        if interface.auth_type == AuthType.BEARER_TOKEN:
            if secret is None or not secret.bearer_token:
                raise AuthenticationError(f"No bearer token configured for interface '{interface.id}'")
            return OutboundAuth(headers={"Authorization": f"Bearer {secret.bearer_token}"})

        if interface.auth_type == AuthType.BASIC_AUTH:
            if secret is None or not secret.username or secret.password is None:
                raise AuthenticationError(f"No basic auth credentials configured for interface '{interface.id}'")
            encoded = base64.b64encode(f"{secret.username}:{secret.password}".encode("utf-8")).decode("ascii")
            return OutboundAuth(headers={"Authorization": f"Basic {encoded}"})

        if interface.auth_type == AuthType.OAUTH2:
            raise AuthenticationError(
                f"Interface '{interface.id}' uses OAuth2 but has no auth adapter configured"
            )

        raise ConfigurationError(
            f"Auth type {interface.auth_type.value} is not supported for HTTP dispatch (interface '{interface.id}')"
        )

    async def _send(self, request: PreparedRequest, auth: OutboundAuth) -> httpx.Response:
        headers = dict(request.headers)
        headers.update(auth.headers)
        params = dict(request.params)
        params.update(auth.query_params)

        kwargs: Dict[str, Any] = {
            "headers": headers,
            "params": params or None,
            "timeout": request.timeout,
        }
        if request.body is not None:
            if isinstance(request.body, (str, bytes)):
                kwargs["content"] = request.body
            else:
                kwargs["json"] = request.body

        return await self.client.request(request.method, request.url, **kwargs)

    def _normalize(self, response: httpx.Response, direction: str) -> Any:
        content_type = response.headers.get("content-type", "")
        if "json" in content_type:
            try:
                return response.json()
            except ValueError:
                return response.text
        if content_type.startswith("text/") or "xml" in content_type:
            return response.text
        if direction == DESTINATION:
            return {"status": "success", "status_code": response.status_code}
        return response.text
