# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

from .flow import (
    NodeKind,
    FlowNode,
    FlowEdge,
    FlowDefinition,
    ExecutionContext,
    NodeExecutionResult,
    NodeExecutionRecord,
    RunStatus,
    TriggerSource,
    FlowRun,
    FlowRunRequest,
)
from .interface import (
    ProtocolType,
    HTTP_PROTOCOLS,
    AuthType,
    HttpConfig,
    ConditionField,
    ConditionSchema,
    InterfaceConfig,
    InterfaceSecret,
    AuthAdapterType,
    AuthAdapterConfig,
    TokenCacheEntry,
)
