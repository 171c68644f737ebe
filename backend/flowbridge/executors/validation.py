# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Validation executor.

Checks one item or a list of items against per-field rules and splits
them into a valid and an invalid channel:

    outputs[0] -> valid items
    outputs[1] -> {"data": item, "errors": [...]} for each invalid item

Rules (mapping or YAML text), keyed by field name:

    age:
      type: number
      min: 0
    email:
      required: true
      pattern: "^[^@]+@[^@]+$"
"""

import re
from typing import Any, Dict, List, Tuple

import yaml

from flowbridge.core.errors import ConfigurationError, ValidationError
from flowbridge.models.flow import ExecutionContext, FlowNode, NodeExecutionResult, NodeKind
from .base import BaseExecutor


_TYPE_CHECKS = {
    "string": lambda v: isinstance(v, str),
    "number": lambda v: isinstance(v, (int, float)) and not isinstance(v, bool),
    "integer": lambda v: isinstance(v, int) and not isinstance(v, bool),
    "boolean": lambda v: isinstance(v, bool),
    "array": lambda v: isinstance(v, list),
    "object": lambda v: isinstance(v, dict),
}


def _type_name(value: Any) -> str:
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


def load_rules(raw: Any, node_id: str) -> Dict[str, Dict[str, Any]]:
    """Accept rules as a mapping or YAML text and sanity-check them."""
    if isinstance(raw, str):
        try:
            raw = yaml.safe_load(raw)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in validation rules for node '{node_id}': {e}")

    if not isinstance(raw, dict) or not raw:
        raise ConfigurationError(f"Validation node '{node_id}' requires a non-empty rules mapping")

    for field, rule in raw.items():
        if not isinstance(rule, dict):
            raise ConfigurationError(f"Rule for field '{field}' must be a mapping")
        rule_type = rule.get("type")
        if rule_type is not None and rule_type not in _TYPE_CHECKS:
            raise ConfigurationError(f"Unknown type '{rule_type}' in rule for field '{field}'")
        if rule.get("pattern") is not None:
            try:
                re.compile(str(rule["pattern"]))
            except re.error as e:
                raise ConfigurationError(f"Invalid pattern for field '{field}': {e}")
    return raw


def validate_item(item: Any, rules: Dict[str, Dict[str, Any]], strict: bool = False) -> List[str]:
    """Return the list of rule violations for one item (empty when valid)."""
    if not isinstance(item, dict):
        return ["Input must be an object"]

    errors: List[str] = []
    for field, rule in rules.items():
        value = item.get(field)

        if rule.get("required") and (value is None or value == ""):
            errors.append(f"Field '{field}' is required")
            continue

        if value is None:
            continue

        rule_type = rule.get("type")
        if rule_type and not _TYPE_CHECKS[rule_type](value):
            errors.append(f"Field '{field}' must be of type {rule_type}, got {_type_name(value)}")
            continue

        if _TYPE_CHECKS["number"](value):
            if rule.get("min") is not None and value < rule["min"]:
                errors.append(f"Field '{field}' must be at least {rule['min']}")
            if rule.get("max") is not None and value > rule["max"]:
                errors.append(f"Field '{field}' must be at most {rule['max']}")

        if isinstance(value, (str, list)):
            unit = "characters" if isinstance(value, str) else "items"
            if rule.get("min_length") is not None and len(value) < rule["min_length"]:
                errors.append(f"Field '{field}' must be at least {rule['min_length']} {unit}")
            if rule.get("max_length") is not None and len(value) > rule["max_length"]:
                errors.append(f"Field '{field}' must be at most {rule['max_length']} {unit}")

        if isinstance(value, str) and rule.get("pattern") is not None:
            if not re.search(str(rule["pattern"]), value):
                errors.append(f"Field '{field}' does not match required pattern")

        enum_values = rule.get("enum")
        if isinstance(enum_values, list) and value not in enum_values:
            errors.append(
                f"Field '{field}' must be one of: {', '.join(str(v) for v in enum_values)}"
            )

    if strict:
        extra = [key for key in item if key not in rules]
        if extra:
            errors.append(f"Unexpected fields in strict mode: {', '.join(extra)}")

    return errors


class ValidationExecutor(BaseExecutor):
    """
    Config:
        rules: per-field rules (mapping or YAML text)
        strict: reject fields that have no rule
        continue_on_error: route invalid items to outputs[1] instead of
            failing the node
    """

    kind = NodeKind.VALIDATION

    async def execute(self, node: FlowNode, input_data: Any, context: ExecutionContext) -> NodeExecutionResult:
        rules = load_rules(self.require(node, "rules"), node.id)
        strict = bool(node.config.get("strict", False))
        continue_on_error = bool(node.config.get("continue_on_error", False))

        items = input_data if isinstance(input_data, list) else [input_data]
        valid, invalid = self._split(items, rules, strict)

        if invalid and not continue_on_error:
            messages = []
            for index, entry in invalid:
                messages.append(f"item {index}: {', '.join(entry['errors'])}")
            raise ValidationError(
                f"Validation failed: {'; '.join(messages)}",
                details={"invalid_count": len(invalid), "invalid_items": [e for _, e in invalid]}
            )

        invalid_channel = [entry for _, entry in invalid]
        return NodeExecutionResult(
            output=valid,
            outputs=[valid, invalid_channel],
            metadata={"valid_count": len(valid), "invalid_count": len(invalid_channel)},
        )

    def _split(
        self,
        items: List[Any],
        rules: Dict[str, Dict[str, Any]],
        strict: bool
    ) -> Tuple[List[Any], List[Tuple[int, Dict[str, Any]]]]:
        valid: List[Any] = []
        invalid: List[Tuple[int, Dict[str, Any]]] = []
        for index, item in enumerate(items):
            errors = validate_item(item, rules, strict)
            if errors:
                invalid.append((index, {"data": item, "errors": errors}))
            else:
                valid.append(item)
        return valid, invalid
