# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Custom code executor - DISABLED.

Running user-supplied code inside the engine process is remote code
execution. This executor always refuses; there is no configuration
switch. User transformation logic belongs in a separate, sandboxed,
administrator-gated subsystem.
"""

from typing import Any

from flowbridge.core.errors import DisabledFeatureError
from flowbridge.models.flow import ExecutionContext, FlowNode, NodeExecutionResult, NodeKind
from .base import BaseExecutor

CUSTOM_CODE_DISABLED_MESSAGE = (
    "Custom code execution is disabled: running arbitrary code inside the "
    "flow engine is a remote code execution risk. Use object_mapper or "
    "json_builder for field transformations, or ask an administrator for a "
    "sandboxed transformation service."
)


class CustomCodeExecutor(BaseExecutor):
    kind = NodeKind.CUSTOM_CODE

    async def execute(self, node: FlowNode, input_data: Any, context: ExecutionContext) -> NodeExecutionResult:
        raise DisabledFeatureError(CUSTOM_CODE_DISABLED_MESSAGE, feature="custom_code")
