# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Unit tests for the safe condition evaluator
"""

import pytest

from flowbridge.condition_evaluator import (
    SAFE_OPERATORS,
    evaluate_condition,
    parse_condition,
    validate_condition_schema,
)
from flowbridge.core.errors import ConfigurationError, SchemaViolationError, UnsafeOperatorError
from flowbridge.models.interface import ConditionField, ConditionSchema


class TrackingDict(dict):
    """Dict that records every read."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.reads = 0

    def __getitem__(self, key):
        self.reads += 1
        return super().__getitem__(key)

    def __contains__(self, key):
        self.reads += 1
        return super().__contains__(key)

    def get(self, key, default=None):
        self.reads += 1
        return super().get(key, default)


@pytest.fixture
def region_schema():
    """Schema that only allows status and region"""
    return ConditionSchema(
        fields=[
            ConditionField(name="status", values=["open", "closed"]),
            ConditionField(name="region"),
        ],
        operators=["equals", "in"],
    )


class TestSingleConditions:
    """Test field/operator/value conditions"""

    def test_greater_than_true(self):
        condition = {"field": "quantity", "operator": "greater_than", "value": 100}
        assert evaluate_condition(condition, {"quantity": 150}) is True

    def test_greater_than_false(self):
        condition = {"field": "quantity", "operator": "greater_than", "value": 100}
        assert evaluate_condition(condition, {"quantity": 50}) is False

    def test_numeric_strings_are_coerced(self):
        condition = {"field": "total", "operator": "less_than", "value": "10.5"}
        assert evaluate_condition(condition, {"total": "9"}) is True

    def test_non_numeric_comparison_is_false(self):
        condition = {"field": "total", "operator": "greater_than", "value": 1}
        assert evaluate_condition(condition, {"total": "abc"}) is False

    def test_nested_field_path(self):
        condition = {"field": "order.customer.tier", "operator": "equals", "value": "gold"}
        data = {"order": {"customer": {"tier": "gold"}}}
        assert evaluate_condition(condition, data) is True

    def test_missing_path_resolves_to_absent(self):
        """A missing field never raises"""
        assert evaluate_condition({"field": "a.b.c", "operator": "equals", "value": None}, {}) is True
        assert evaluate_condition({"field": "a.b.c", "operator": "contains", "value": "x"}, {}) is False

    def test_in_operator(self):
        condition = {"field": "region", "operator": "in", "value": ["eu", "us"]}
        assert evaluate_condition(condition, {"region": "eu"}) is True
        assert evaluate_condition(condition, {"region": "apac"}) is False

    def test_in_requires_literal_list(self):
        condition = {"field": "region", "operator": "in", "value": "eu"}
        with pytest.raises(ConfigurationError):
            evaluate_condition(condition, {"region": "eu"})

    def test_string_operators(self):
        data = {"sku": "ABC-123"}
        assert evaluate_condition({"field": "sku", "operator": "starts_with", "value": "ABC"}, data)
        assert evaluate_condition({"field": "sku", "operator": "ends_with", "value": "123"}, data)
        assert evaluate_condition({"field": "sku", "operator": "contains", "value": "C-1"}, data)
        assert evaluate_condition({"field": "sku", "operator": "not_equals", "value": "XYZ"}, data)

    def test_contains_on_list(self):
        condition = {"field": "tags", "operator": "contains", "value": "urgent"}
        assert evaluate_condition(condition, {"tags": ["urgent", "eu"]}) is True


class TestConditionGroups:
    """Test AND/OR groups"""

    def test_and_group(self):
        condition = {
            "logic": "AND",
            "conditions": [
                {"field": "quantity", "operator": "greater_than", "value": 10},
                {"field": "status", "operator": "equals", "value": "open"},
            ],
        }
        assert evaluate_condition(condition, {"quantity": 20, "status": "open"}) is True
        assert evaluate_condition(condition, {"quantity": 20, "status": "closed"}) is False

    def test_or_group_lowercase_logic(self):
        condition = {
            "logic": "or",
            "conditions": [
                {"field": "a", "operator": "equals", "value": 1},
                {"field": "b", "operator": "equals", "value": 2},
            ],
        }
        assert evaluate_condition(condition, {"a": 0, "b": 2}) is True

    def test_yaml_text(self):
        text = """
conditions:
  - field: quantity
    operator: greater_than
    value: 5
  - field: region
    operator: in
    value: [eu, us]
logic: AND
"""
        assert evaluate_condition(text, {"quantity": 6, "region": "us"}) is True

    def test_unknown_logic(self):
        condition = {"logic": "XOR", "conditions": [{"field": "a", "operator": "equals", "value": 1}]}
        with pytest.raises(ConfigurationError):
            evaluate_condition(condition, {"a": 1})

    def test_invalid_shape(self):
        with pytest.raises(ConfigurationError):
            parse_condition({"value": 3})

    def test_invalid_yaml(self):
        with pytest.raises(ConfigurationError):
            parse_condition("field: [unclosed")


class TestOperatorWhitelist:
    """Operators outside the whitelist never touch the data"""

    @pytest.mark.parametrize("operator", ["__proto__", "eval", "exec", "__class__", ""])
    def test_unsafe_operator_rejected_before_reading_data(self, operator):
        data = TrackingDict({"quantity": 5})
        with pytest.raises(UnsafeOperatorError):
            evaluate_condition({"field": "quantity", "operator": operator, "value": 1}, data)
        assert data.reads == 0

    def test_unsafe_operator_inside_group(self):
        data = TrackingDict({"a": 1})
        condition = {
            "logic": "AND",
            "conditions": [
                {"field": "a", "operator": "equals", "value": 1},
                {"field": "a", "operator": "__import__", "value": "os"},
            ],
        }
        with pytest.raises(UnsafeOperatorError):
            evaluate_condition(condition, data)
        assert data.reads == 0

    def test_whitelist_contents(self):
        assert set(SAFE_OPERATORS) == {
            "equals", "not_equals", "greater_than", "less_than",
            "in", "contains", "starts_with", "ends_with",
        }


class TestSchemaValidation:
    """Interface-scoped schema enforcement"""

    def test_field_outside_schema(self, region_schema):
        condition = {"field": "secretFlag", "operator": "equals", "value": True}
        with pytest.raises(SchemaViolationError) as exc_info:
            evaluate_condition(condition, {"secretFlag": True}, schema=region_schema, interface_name="ERP")
        assert "secretFlag" in str(exc_info.value)

    def test_operator_outside_schema(self, region_schema):
        condition = {"field": "region", "operator": "contains", "value": "e"}
        with pytest.raises(SchemaViolationError):
            evaluate_condition(condition, {"region": "eu"}, schema=region_schema)

    def test_enumerated_value_enforced(self, region_schema):
        condition = {"field": "status", "operator": "equals", "value": "deleted"}
        with pytest.raises(SchemaViolationError):
            evaluate_condition(condition, {"status": "deleted"}, schema=region_schema)

    def test_enumerated_values_checked_for_in(self, region_schema):
        condition = {"field": "status", "operator": "in", "value": ["open", "archived"]}
        with pytest.raises(SchemaViolationError):
            evaluate_condition(condition, {"status": "open"}, schema=region_schema)

    def test_allowed_condition_evaluates(self, region_schema):
        condition = {"field": "status", "operator": "equals", "value": "open"}
        assert evaluate_condition(condition, {"status": "open"}, schema=region_schema) is True

    def test_number_field_type(self):
        schema = ConditionSchema(fields=[ConditionField(name="qty", type="number")])
        with pytest.raises(SchemaViolationError):
            validate_condition_schema(
                parse_condition({"field": "qty", "operator": "greater_than", "value": "ten"}),
                schema,
            )

    def test_no_schema_is_open(self):
        condition = {"field": "anything", "operator": "equals", "value": 1}
        assert evaluate_condition(condition, {"anything": 1}, schema=None) is True
