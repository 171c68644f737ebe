# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""Trigger executors: pass the initiating payload through."""

from typing import Any

from flowbridge.models.flow import ExecutionContext, FlowNode, NodeExecutionResult, NodeKind
from .base import BaseExecutor


class ManualTriggerExecutor(BaseExecutor):
    kind = NodeKind.MANUAL_TRIGGER

    async def execute(self, node: FlowNode, input_data: Any, context: ExecutionContext) -> NodeExecutionResult:
        return NodeExecutionResult(output=input_data, metadata={"trigger": self.kind.value})


class WebhookTriggerExecutor(ManualTriggerExecutor):
    kind = NodeKind.WEBHOOK_TRIGGER
