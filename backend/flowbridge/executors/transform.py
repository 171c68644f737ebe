# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Shape-changing executors: object mapper and JSON builder.
"""

import copy
import json
from typing import Any, Dict, List, Tuple

from flowbridge.core.errors import ConfigurationError, MissingFieldError
from flowbridge.paths import MISSING, has_nested_value, resolve_path, set_nested_value
from flowbridge.models.flow import ExecutionContext, FlowNode, NodeExecutionResult, NodeKind
from .base import BaseExecutor


class ObjectMapperExecutor(BaseExecutor):
    """
    Build a new object from a mapping table.

    Config:
        mappings: {"target.path": "source.path"} or
            [{"source": "source.path", "target": "target.path"}, ...]
        default_values: {"target.path": value} applied to targets that
            the mappings left unset
        strict: fail if a mapped target ends up absent or null
    """

    kind = NodeKind.OBJECT_MAPPER

    async def execute(self, node: FlowNode, input_data: Any, context: ExecutionContext) -> NodeExecutionResult:
        mappings = self._normalize_mappings(node)
        defaults = node.config.get("default_values") or {}
        strict = bool(node.config.get("strict", False))

        if isinstance(input_data, list):
            output = [self._map_one(item, mappings, defaults, strict) for item in input_data]
        else:
            output = self._map_one(input_data, mappings, defaults, strict)

        return NodeExecutionResult(output=output, metadata={"mapped_fields": len(mappings)})

    def _normalize_mappings(self, node: FlowNode) -> List[Tuple[str, str]]:
        raw = self.require(node, "mappings")
        if isinstance(raw, dict):
            return [(str(source), str(target)) for target, source in raw.items()]
        if isinstance(raw, list):
            pairs = []
            for entry in raw:
                if not isinstance(entry, dict) or "source" not in entry or "target" not in entry:
                    raise ConfigurationError(
                        f"Node '{node.id}': each mapping needs 'source' and 'target'"
                    )
                pairs.append((str(entry["source"]), str(entry["target"])))
            return pairs
        raise ConfigurationError(f"Node '{node.id}': mappings must be a mapping or a list")

    def _map_one(
        self,
        item: Any,
        mappings: List[Tuple[str, str]],
        defaults: Dict[str, Any],
        strict: bool
    ) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        for source, target in mappings:
            value = resolve_path(item, source)
            if value is not MISSING:
                set_nested_value(result, target, copy.deepcopy(value))

        for target, value in defaults.items():
            if not has_nested_value(result, target):
                set_nested_value(result, target, copy.deepcopy(value))

        if strict:
            for _, target in mappings:
                value = resolve_path(result, target)
                if value is MISSING or value is None:
                    raise MissingFieldError(target)

        return result


def _remove_nulls(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _remove_nulls(v) for k, v in value.items() if v is not None}
    if isinstance(value, list):
        return [_remove_nulls(v) for v in value if v is not None]
    return value


def _remove_empty(value: Any) -> Any:
    if isinstance(value, dict):
        cleaned = {k: _remove_empty(v) for k, v in value.items()}
        return {k: v for k, v in cleaned.items() if not (isinstance(v, (dict, list)) and not v)}
    if isinstance(value, list):
        cleaned = [_remove_empty(v) for v in value]
        return [v for v in cleaned if not (isinstance(v, (dict, list)) and not v)]
    return value


class JsonBuilderExecutor(BaseExecutor):
    """
    Clean up and serialize the input.

    Config: remove_null, remove_empty, sort_keys, indent (default 2),
    output_format ("object" | "string" | "pretty").
    """

    kind = NodeKind.JSON_BUILDER

    async def execute(self, node: FlowNode, input_data: Any, context: ExecutionContext) -> NodeExecutionResult:
        output_format = node.config.get("output_format", "object")
        if output_format not in ("object", "string", "pretty"):
            raise ConfigurationError(f"Node '{node.id}': unknown output_format {output_format!r}")

        data = copy.deepcopy(input_data)
        if node.config.get("remove_null"):
            data = _remove_nulls(data)
        if node.config.get("remove_empty"):
            data = _remove_empty(data)

        sort_keys = bool(node.config.get("sort_keys", False))
        if sort_keys and output_format == "object":
            # Round-trip through json so nested dicts keep sorted insertion order
            data = json.loads(json.dumps(data, sort_keys=True, default=str))

        if output_format == "string":
            output = json.dumps(data, sort_keys=sort_keys, separators=(",", ":"), default=str)
        elif output_format == "pretty":
            output = json.dumps(data, sort_keys=sort_keys, indent=node.config.get("indent", 2), default=str)
        else:
            output = data

        return NodeExecutionResult(output=output, metadata={"output_format": output_format})
