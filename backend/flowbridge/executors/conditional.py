# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""Conditional branch executor: routes, never transforms."""

from typing import Any, Optional

from flowbridge.condition_evaluator import evaluate_condition
from flowbridge.core.errors import ConfigurationError
from flowbridge.models.flow import ExecutionContext, FlowNode, NodeExecutionResult, NodeKind
from .base import BaseExecutor


class ConditionalExecutor(BaseExecutor):
    """
    Evaluate a declarative condition and report it as `condition_met`.

    Config is either simple mode (`field`, `operator`, `value`) or
    `conditions` holding a condition/group as a mapping or YAML text.
    With `interface_id` set, the interface's condition schema (if any)
    is enforced before evaluation.
    """

    kind = NodeKind.CONDITIONAL

    def __init__(self, interfaces=None):
        self.interfaces = interfaces

    async def execute(self, node: FlowNode, input_data: Any, context: ExecutionContext) -> NodeExecutionResult:
        config = node.config
        if config.get("field") and config.get("operator"):
            condition = {
                "field": config["field"],
                "operator": config["operator"],
                "value": config.get("value"),
            }
        elif config.get("conditions"):
            condition = config["conditions"]
        else:
            raise ConfigurationError(
                f"Conditional node '{node.id}' has no condition. "
                "Set field/operator/value or provide conditions."
            )

        schema, interface_name = self._schema_for(config.get("interface_id"))
        result = evaluate_condition(condition, input_data, schema=schema, interface_name=interface_name)

        return NodeExecutionResult(
            output=input_data,
            metadata={
                "condition_met": result,
                "next_branch": "true" if result else "false",
            },
        )

    def _schema_for(self, interface_id: Optional[str]):
        if not interface_id:
            return None, "interface"
        if self.interfaces is None:
            raise ConfigurationError("Interface-scoped condition requires an interface repository")
        interface = self.interfaces.get_interface(interface_id)
        return interface.condition_schema, f"interface '{interface.name}'"
