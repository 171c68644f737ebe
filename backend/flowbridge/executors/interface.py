# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""Interface source/destination executors."""

from typing import Any, Dict

from flowbridge.interfaces.dispatcher import DESTINATION, SOURCE, DispatchResult, InterfaceDispatcher
from flowbridge.models.flow import ExecutionContext, FlowNode, NodeExecutionResult, NodeKind
from .base import BaseExecutor

OVERRIDE_KEYS = ("method", "path", "headers", "query_params", "body", "timeout", "retry_attempts", "retry_delay")


class InterfaceDestinationExecutor(BaseExecutor):
    """
    Send the node input to a registered interface.

    Config: interface_id plus optional call-time overrides (method, path,
    headers, query_params, timeout, retry_attempts, retry_delay).
    """

    kind = NodeKind.INTERFACE_DESTINATION
    direction = DESTINATION

    def __init__(self, dispatcher: InterfaceDispatcher):
        self.dispatcher = dispatcher

    async def execute(self, node: FlowNode, input_data: Any, context: ExecutionContext) -> NodeExecutionResult:
        interface_id = self.require(node, "interface_id")
        overrides: Dict[str, Any] = {
            key: node.config[key] for key in OVERRIDE_KEYS if node.config.get(key) is not None
        }
        if self.direction == DESTINATION:
            overrides.pop("body", None)

        result = await self.dispatcher.dispatch(
            interface_id,
            payload=input_data,
            direction=self.direction,
            overrides=overrides,
            emulation_mode=context.emulation_mode,
            run_id=context.run_id,
        )
        return NodeExecutionResult(output=result.output, metadata=self._metadata(interface_id, result))

    def _metadata(self, interface_id: str, result: DispatchResult) -> Dict[str, Any]:
        interface = self.dispatcher.repository.get_interface(interface_id)
        return {
            "interface_id": interface.id,
            "interface_name": interface.name,
            "protocol": interface.protocol.value,
            "status_code": result.status_code,
            "attempt": result.attempt,
            "attempts": result.attempts,
            "test_call": result.test_call,
            "auth_refreshed": result.auth_refreshed,
        }


class InterfaceSourceExecutor(InterfaceDestinationExecutor):
    """
    Fetch data from a registered interface. Defaults to GET; `body` may be
    set in config for POST-style queries (GraphQL, SOAP).
    """

    kind = NodeKind.INTERFACE_SOURCE
    direction = SOURCE
