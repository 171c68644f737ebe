# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Interface Models

Registered external systems, their credentials, auth adapters and the
token cache entries those adapters produce.
"""

from enum import Enum
from typing import List, Dict, Any, Optional
from pydantic import BaseModel, Field


class ProtocolType(str, Enum):
    REST_API = "rest_api"
    SOAP = "soap"
    GRAPHQL = "graphql"
    SFTP = "sftp"
    DATABASE = "database"
    MESSAGE_QUEUE = "message_queue"


HTTP_PROTOCOLS = frozenset([ProtocolType.REST_API, ProtocolType.SOAP, ProtocolType.GRAPHQL])


class AuthType(str, Enum):
    NONE = "none"
    API_KEY = "api_key"
    BEARER_TOKEN = "bearer_token"
    BASIC_AUTH = "basic_auth"
    OAUTH2 = "oauth2"
    CERTIFICATE = "certificate"
    SSH_KEY = "ssh_key"


class HttpConfig(BaseModel):
    """Interface-level HTTP defaults; node config may override each"""
    method: Optional[str] = None  # source defaults to GET, destination to POST
    headers: Dict[str, str] = Field(default_factory=dict)
    query_params: Dict[str, Any] = Field(default_factory=dict)
    timeout: Optional[float] = None  # seconds
    retry_attempts: Optional[int] = None
    retry_delay: Optional[float] = None  # seconds


class ConditionField(BaseModel):
    name: str
    type: str = "string"  # string, number, boolean, enum
    values: Optional[List[Any]] = None


class ConditionSchema(BaseModel):
    """Fields and operators a conditional node may use for an interface"""
    fields: List[ConditionField] = Field(default_factory=list)
    operators: Optional[List[str]] = None

    def get_field(self, name: str) -> Optional[ConditionField]:
        for field in self.fields:
            if field.name == name:
                return field
        return None


class InterfaceConfig(BaseModel):
    id: str
    name: str
    protocol: ProtocolType = ProtocolType.REST_API
    endpoint: str
    path: Optional[str] = None
    http_config: HttpConfig = Field(default_factory=HttpConfig)
    auth_type: AuthType = AuthType.NONE
    auth_adapter_id: Optional[str] = None
    enabled: bool = True
    condition_schema: Optional[ConditionSchema] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class InterfaceSecret(BaseModel):
    """Credential material; never part of a flow definition"""
    interface_id: str
    api_key: Optional[str] = None
    bearer_token: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    certificate: Optional[str] = None
    private_key: Optional[str] = None


class AuthAdapterType(str, Enum):
    OAUTH2 = "oauth2"
    JWT = "jwt"
    COOKIE = "cookie"
    API_KEY = "api_key"


class AuthAdapterConfig(BaseModel):
    """
    Reusable authentication strategy.

    `settings` holds non-secret options (token URL, scopes, algorithm,
    header names, idle timeout). `credentials` holds secret material
    (client secret, signing key, password).
    """
    id: str
    name: str
    type: AuthAdapterType
    settings: Dict[str, Any] = Field(default_factory=dict)
    credentials: Dict[str, Any] = Field(default_factory=dict)
    enabled: bool = True
    last_used_at: Optional[str] = None


class TokenCacheEntry(BaseModel):
    adapter_id: str
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    session_data: Dict[str, Any] = Field(default_factory=dict)
    expires_at: Optional[float] = None  # epoch seconds
    issued_at: Optional[float] = None
    last_used_at: Optional[float] = None
    refresh_in_flight: bool = False
    refresh_started_at: Optional[float] = None
    version: int = 0
    last_refresh_error: Optional[str] = None
