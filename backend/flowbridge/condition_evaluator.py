# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Safe Condition Evaluator

Declarative boolean conditions for conditional flow nodes. A condition is
plain data, never code:

    {"field": "order.total", "operator": "greater_than", "value": 100}

or a group:

    {"conditions": [...], "logic": "AND" | "OR"}

Operators are a closed whitelist and are checked for the whole condition
tree before any input data is read.
"""

from typing import Dict, Any, List, Optional, Union

import yaml

from flowbridge.core.errors import (
    ConfigurationError,
    SchemaViolationError,
    UnsafeOperatorError,
)
from flowbridge.models.interface import ConditionSchema
from flowbridge.paths import get_nested_value


SAFE_OPERATORS = (
    "equals",
    "not_equals",
    "greater_than",
    "less_than",
    "in",
    "contains",
    "starts_with",
    "ends_with",
)

LOGIC_VALUES = ("AND", "OR")


def parse_condition(raw: Union[str, Dict[str, Any]]) -> Dict[str, Any]:
    """
    Normalize a condition given as a mapping or as YAML text.

    Raises:
        ConfigurationError: If the text is not valid YAML or the shape is
            neither a single condition nor a condition group
    """
    if isinstance(raw, str):
        try:
            raw = yaml.safe_load(raw)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in condition: {e}")

    if not isinstance(raw, dict):
        raise ConfigurationError(
            "Invalid condition format. Expected field/operator/value or conditions list."
        )

    if "conditions" in raw:
        if not isinstance(raw["conditions"], list) or not raw["conditions"]:
            raise ConfigurationError("Condition group must contain a non-empty 'conditions' list")
        return {
            "conditions": [parse_condition(item) for item in raw["conditions"]],
            "logic": str(raw.get("logic", "AND")).upper(),
        }

    if "field" in raw and "operator" in raw:
        return {
            "field": str(raw["field"]),
            "operator": raw["operator"],
            "value": raw.get("value"),
        }

    raise ConfigurationError(
        "Invalid condition format. Expected field/operator/value or conditions list."
    )


def iter_conditions(condition: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Flatten a condition tree into its leaf conditions."""
    if "conditions" in condition:
        leaves = []
        for item in condition["conditions"]:
            leaves.extend(iter_conditions(item))
        return leaves
    return [condition]


def check_condition(condition: Dict[str, Any]) -> None:
    """
    Static checks on a parsed condition. Never looks at input data.

    Raises:
        UnsafeOperatorError: If any operator is outside SAFE_OPERATORS
        ConfigurationError: If a group has unknown logic or an `in`
            condition does not compare against a literal list
    """
    if "conditions" in condition:
        if condition.get("logic") not in LOGIC_VALUES:
            raise ConfigurationError(
                f"Invalid condition logic: {condition.get('logic')!r}. Expected AND or OR"
            )
        for item in condition["conditions"]:
            check_condition(item)
        return

    operator = condition.get("operator")
    if not isinstance(operator, str) or operator not in SAFE_OPERATORS:
        raise UnsafeOperatorError(str(operator), list(SAFE_OPERATORS))

    if operator == "in" and not isinstance(condition.get("value"), list):
        raise ConfigurationError(
            f"Operator 'in' requires a list value for field '{condition.get('field')}'"
        )


def validate_condition_schema(
    condition: Dict[str, Any],
    schema: Optional[ConditionSchema],
    interface_name: str = "interface"
) -> None:
    """
    Enforce an interface's condition schema on every leaf condition.

    An interface without a schema is open and accepts any field.

    Raises:
        SchemaViolationError: On a field, operator or value the schema
            does not allow
    """
    if schema is None:
        return

    allowed_operators = schema.operators or list(SAFE_OPERATORS)

    for leaf in iter_conditions(condition):
        field_name = leaf.get("field")
        field = schema.get_field(field_name)
        if field is None:
            allowed_fields = ", ".join(f.name for f in schema.fields)
            raise SchemaViolationError(
                f"Field '{field_name}' is not allowed for {interface_name}. "
                f"Allowed fields: {allowed_fields}",
                field=field_name
            )

        operator = leaf.get("operator")
        if operator not in SAFE_OPERATORS or operator not in allowed_operators:
            raise SchemaViolationError(
                f"Operator '{operator}' is not allowed for {interface_name}. "
                f"Allowed: {', '.join(o for o in allowed_operators if o in SAFE_OPERATORS)}",
                field=field_name
            )

        value = leaf.get("value")
        if field.type == "number":
            values = value if operator == "in" and isinstance(value, list) else [value]
            if any(isinstance(v, bool) or not isinstance(v, (int, float)) for v in values):
                raise SchemaViolationError(
                    f"Field '{field_name}' expects a number, got: {type(value).__name__}",
                    field=field_name
                )

        if field.values:
            allowed_values = [str(v) for v in field.values]
            values = value if operator == "in" and isinstance(value, list) else [value]
            for v in values:
                if str(v) not in allowed_values:
                    raise SchemaViolationError(
                        f"Value '{v}' is not valid for field '{field_name}'. "
                        f"Allowed values: {', '.join(allowed_values)}",
                        field=field_name
                    )


def _to_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def _loose_equals(left: Any, right: Any) -> bool:
    if left == right:
        return True
    if left is None or right is None:
        return False
    left_num, right_num = _to_number(left), _to_number(right)
    if left_num is not None and right_num is not None:
        return left_num == right_num
    return str(left) == str(right)


def _compare(field_value: Any, operator: str, value: Any) -> bool:
    if operator == "equals":
        return _loose_equals(field_value, value)
    if operator == "not_equals":
        return not _loose_equals(field_value, value)
    if operator in ("greater_than", "less_than"):
        left, right = _to_number(field_value), _to_number(value)
        if left is None or right is None:
            return False
        return left > right if operator == "greater_than" else left < right
    if operator == "in":
        return any(_loose_equals(field_value, item) for item in value)

    if field_value is None:
        return False
    if operator == "contains":
        if isinstance(field_value, list):
            return any(_loose_equals(item, value) for item in field_value)
        return str(value) in str(field_value)
    if operator == "starts_with":
        return str(field_value).startswith(str(value))
    if operator == "ends_with":
        return str(field_value).endswith(str(value))
    return False


def _evaluate(condition: Dict[str, Any], data: Any) -> bool:
    if "conditions" in condition:
        results = (_evaluate(item, data) for item in condition["conditions"])
        return all(results) if condition["logic"] == "AND" else any(results)
    field_value = get_nested_value(data, condition["field"])
    return _compare(field_value, condition["operator"], condition.get("value"))


def evaluate_condition(
    condition: Union[str, Dict[str, Any]],
    data: Any,
    schema: Optional[ConditionSchema] = None,
    interface_name: str = "interface"
) -> bool:
    """
    Safely evaluate a declarative condition against input data.

    Args:
        condition: Condition mapping or YAML text
        data: Input value the field paths are resolved against
        schema: Optional interface schema that restricts fields/values
        interface_name: Used in schema error messages

    Returns:
        Boolean result of evaluation

    Raises:
        UnsafeOperatorError: Operator outside the whitelist
        SchemaViolationError: Condition breaks the interface schema
        ConfigurationError: Malformed condition

    Examples:
        >>> evaluate_condition({"field": "quantity", "operator": "greater_than", "value": 100}, {"quantity": 150})
        True
    """
    parsed = parse_condition(condition)
    check_condition(parsed)
    validate_condition_schema(parsed, schema, interface_name)
    return _evaluate(parsed, data)
