# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Executor contract and registry.

Every node kind is handled by one BaseExecutor subclass. The orchestrator
resolves all executors for a flow before the first node runs, so an
unknown kind fails the run without any side effect.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List

from flowbridge.core.errors import ConfigurationError, UnknownNodeKindError
from flowbridge.models.flow import ExecutionContext, FlowNode, NodeExecutionResult


class BaseExecutor(ABC):
    """Uniform executor signature: node + input + context -> result"""

    kind: str = ""

    @abstractmethod
    async def execute(
        self,
        node: FlowNode,
        input_data: Any,
        context: ExecutionContext
    ) -> NodeExecutionResult:
        """Run the node. Raise a FlowBridgeError subclass on failure."""

    @staticmethod
    def require(node: FlowNode, key: str) -> Any:
        """Fetch a mandatory config value or fail with ConfigurationError."""
        value = node.config.get(key)
        if value is None or value == "":
            raise ConfigurationError(
                f"Node '{node.id}' ({node.kind}) requires '{key}' configuration"
            )
        return value


class ExecutorRegistry:
    """Maps node kinds to their executors"""

    def __init__(self, executors: Iterable[BaseExecutor] = ()):
        self._executors: Dict[str, BaseExecutor] = {}
        for executor in executors:
            self.register(executor)

    def register(self, executor: BaseExecutor) -> None:
        kind = getattr(executor.kind, "value", executor.kind)
        if not kind:
            raise ConfigurationError(f"Executor {executor.__class__.__name__} has no kind")
        self._executors[kind] = executor

    def resolve(self, kind: str, node_id: str = None) -> BaseExecutor:
        """
        Get the executor for a node kind.

        Raises:
            UnknownNodeKindError: If no executor is registered
        """
        executor = self._executors.get(kind)
        if executor is None:
            raise UnknownNodeKindError(kind, node_id)
        return executor

    def kinds(self) -> List[str]:
        return sorted(self._executors)

    def __contains__(self, kind: str) -> bool:
        return kind in self._executors
