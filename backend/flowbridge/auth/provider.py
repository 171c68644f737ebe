# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Outbound Token Provider

Front door for interface dispatch: turns an auth adapter id into request
credentials, going through the shared TokenCache.
"""

from typing import Dict, Optional, Tuple

import httpx

from flowbridge.core.errors import DisabledError
from flowbridge.core.logging import get_service_logger
from flowbridge.interfaces.repository import InterfaceRepository
from flowbridge.models.interface import AuthAdapterConfig
from .adapters import BaseAuthAdapter, OutboundAuth, build_adapter
from .token_cache import TokenCache

logger = get_service_logger("token-provider")


def _same_config(a: AuthAdapterConfig, b: AuthAdapterConfig) -> bool:
    return a.model_dump(exclude={"last_used_at"}) == b.model_dump(exclude={"last_used_at"})


class OutboundTokenProvider:
    def __init__(
        self,
        repository: InterfaceRepository,
        token_cache: TokenCache,
        http_client: Optional[httpx.AsyncClient] = None
    ):
        self.repository = repository
        self.token_cache = token_cache
        self.http_client = http_client
        # adapter id -> (config the adapter was built from, adapter)
        self._adapters: Dict[str, Tuple[AuthAdapterConfig, BaseAuthAdapter]] = {}

    def _get_adapter(self, adapter_id: str) -> BaseAuthAdapter:
        config = self.repository.get_auth_adapter(adapter_id)
        if not config.enabled:
            raise DisabledError("Auth adapter", adapter_id)

        cached = self._adapters.get(adapter_id)
        if cached is not None and _same_config(cached[0], config):
            return cached[1]

        adapter = build_adapter(config, self.http_client)
        self._adapters[adapter_id] = (config, adapter)
        return adapter

    async def provide_auth(self, adapter_id: str) -> OutboundAuth:
        """
        Credentials for an outbound request.

        Raises:
            NotFoundError: Unknown adapter
            DisabledError: Adapter switched off
            AuthenticationError: Provider refused or returned no token
            ConfigurationError: Adapter is misconfigured
        """
        adapter = self._get_adapter(adapter_id)
        entry = await self.token_cache.get_token(
            adapter_id,
            adapter.fetch_fresh_token,
            idle_timeout=adapter.idle_timeout
        )
        self.repository.touch_auth_adapter(adapter_id)
        logger.debug(f"Provided outbound auth for adapter {adapter_id}")
        return adapter.apply_outbound(entry)

    async def handle_auth_error(self, adapter_id: str) -> bool:
        """
        React to a 401/403 from the remote side.

        Returns True when the cached token was dropped and the caller
        should retry with fresh credentials.
        """
        logger.warning(f"Remote rejected credentials from adapter {adapter_id}; invalidating cache")
        await self.token_cache.invalidate(adapter_id)
        return True
