# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Interface Repository

In-memory registry of interfaces, their secrets and auth adapters. One
instance is created at start-up and injected into the dispatcher, the
token provider and the conditional executor; tests build their own.

Registry file layout (YAML):

    interfaces:
      - id: erp
        name: ERP Orders
        endpoint: https://erp.example.com/api
        auth_adapter_id: erp-oauth
    secrets:
      - interface_id: erp
        api_key: ...
    auth_adapters:
      - id: erp-oauth
        name: ERP OAuth
        type: oauth2
        settings: {token_url: https://erp.example.com/oauth/token}
        credentials: {client_id: ..., client_secret: ...}
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from pydantic import ValidationError as PydanticValidationError

from flowbridge.core.errors import ConfigurationError, NotFoundError
from flowbridge.core.logging import get_service_logger
from flowbridge.models.interface import AuthAdapterConfig, InterfaceConfig, InterfaceSecret

logger = get_service_logger("interfaces")


class InterfaceRepository:
    """
    Owns InterfaceConfig, InterfaceSecret and AuthAdapterConfig records.

    Read-mostly: flows look records up by id at dispatch time, and all
    mutation goes through the explicit CRUD methods below.
    """

    def __init__(self):
        self._interfaces: Dict[str, InterfaceConfig] = {}
        self._secrets: Dict[str, InterfaceSecret] = {}
        self._adapters: Dict[str, AuthAdapterConfig] = {}

    # -- Interfaces --

    def list_interfaces(self) -> List[InterfaceConfig]:
        return list(self._interfaces.values())

    def get_interface(self, interface_id: str) -> InterfaceConfig:
        interface = self._interfaces.get(interface_id)
        if interface is None:
            raise NotFoundError("Interface", interface_id)
        return interface

    def save_interface(self, interface: InterfaceConfig) -> InterfaceConfig:
        self._interfaces[interface.id] = interface
        logger.info(f"Saved interface: {interface.id}")
        return interface

    def delete_interface(self, interface_id: str) -> None:
        if interface_id not in self._interfaces:
            raise NotFoundError("Interface", interface_id)
        del self._interfaces[interface_id]
        self._secrets.pop(interface_id, None)
        logger.info(f"Deleted interface: {interface_id}")

    # -- Secrets --

    def get_secret(self, interface_id: str) -> Optional[InterfaceSecret]:
        return self._secrets.get(interface_id)

    def save_secret(self, secret: InterfaceSecret) -> InterfaceSecret:
        self._secrets[secret.interface_id] = secret
        logger.info(f"Saved secret for interface: {secret.interface_id}")
        return secret

    def delete_secret(self, interface_id: str) -> None:
        self._secrets.pop(interface_id, None)

    # -- Auth adapters --

    def list_auth_adapters(self) -> List[AuthAdapterConfig]:
        return list(self._adapters.values())

    def get_auth_adapter(self, adapter_id: str) -> AuthAdapterConfig:
        adapter = self._adapters.get(adapter_id)
        if adapter is None:
            raise NotFoundError("Auth adapter", adapter_id)
        return adapter

    def save_auth_adapter(self, adapter: AuthAdapterConfig) -> AuthAdapterConfig:
        self._adapters[adapter.id] = adapter
        logger.info(f"Saved auth adapter: {adapter.id} ({adapter.type.value})")
        return adapter

    def delete_auth_adapter(self, adapter_id: str) -> None:
        if adapter_id not in self._adapters:
            raise NotFoundError("Auth adapter", adapter_id)
        del self._adapters[adapter_id]

    def touch_auth_adapter(self, adapter_id: str) -> None:
        """Record that an adapter was just used."""
        adapter = self._adapters.get(adapter_id)
        if adapter is not None:
            self._adapters[adapter_id] = adapter.model_copy(
                update={"last_used_at": datetime.now(timezone.utc).isoformat()}
            )

    # -- Loading --

    def load_file(self, path: Path) -> int:
        """
        Load a YAML registry file. Returns the number of records loaded.

        Raises:
            ConfigurationError: If the file is unreadable or a record is invalid
        """
        path = Path(path)
        try:
            data = yaml.safe_load(path.read_text()) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Cannot read interface registry: {e}", config_file=str(path))

        count = 0
        try:
            for item in data.get("interfaces", []):
                self.save_interface(InterfaceConfig(**item))
                count += 1
            for item in data.get("secrets", []):
                self.save_secret(InterfaceSecret(**item))
                count += 1
            for item in data.get("auth_adapters", []):
                self.save_auth_adapter(AuthAdapterConfig(**item))
                count += 1
        except (PydanticValidationError, TypeError) as e:
            raise ConfigurationError(f"Invalid interface registry entry: {e}", config_file=str(path))

        logger.info(f"Loaded {count} interface registry records from {path}")
        return count
