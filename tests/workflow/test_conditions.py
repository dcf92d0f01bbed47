"""Tests for condition rule evaluation."""

from __future__ import annotations

import pytest

from flowkit.errors import ValidationFailure
from flowkit.workflow.conditions import (
    OPERATORS,
    describe_rule,
    evaluate_rules,
    operators_for,
)
from flowkit.workflow.models import ConditionRule


def rule(field: str, operator: str, value: str = "", logic: str = "AND") -> ConditionRule:
    return ConditionRule(field=field, operator=operator, value=value, logic=logic)


class TestOperatorCatalog:
    """Tests for the operator catalog."""

    def test_number_operators(self):
        names = [op.name for op in operators_for("number")]
        assert names == [
            "equals",
            "not_equals",
            "greater_than",
            "less_than",
            "greater_equal",
            "less_equal",
        ]

    def test_boolean_operators(self):
        names = [op.name for op in operators_for("boolean")]
        assert names == ["equals", "not_equals", "is_true", "is_false"]

    def test_unary_operators_take_no_value(self):
        unary = {name for name, op in OPERATORS.items() if not op.takes_value}
        assert unary == {"exists", "not_exists", "is_true", "is_false"}

    def test_unknown_type_has_no_operators(self):
        assert operators_for("date") == []


class TestDescribeRule:
    def test_with_value(self):
        text = describe_rule(rule("{{trigger.email}}", "contains", "@gmail.com"))
        assert text == '({{trigger.email}} Contains "@gmail.com")'

    def test_without_value(self):
        assert describe_rule(rule("{{trigger.data}}", "exists")) == "({{trigger.data}} Exists (Not Empty))"


class TestEvaluateRules:
    """Tests for evaluate_rules()."""

    def test_string_operators(self):
        values = {"trigger.email": "ann@acme.io"}

        assert evaluate_rules([rule("{{trigger.email}}", "ends_with", "@acme.io")], values)
        assert evaluate_rules([rule("{{trigger.email}}", "starts_with", "ann")], values)
        assert evaluate_rules([rule("{{trigger.email}}", "contains", "@")], values)
        assert not evaluate_rules([rule("{{trigger.email}}", "not_contains", "acme")], values)

    def test_number_comparison_coerces_text(self):
        """Rule values are text; they are compared numerically against numbers."""
        values = {"trigger.total": 120}

        assert evaluate_rules([rule("{{trigger.total}}", "greater_than", "100")], values)
        assert evaluate_rules([rule("{{trigger.total}}", "equals", "120")], values)
        assert evaluate_rules([rule("{{trigger.total}}", "less_equal", "120")], values)
        assert not evaluate_rules([rule("{{trigger.total}}", "less_than", "50")], values)

    def test_boolean_equality_coerces_text(self):
        values = {"condition_1.result": True}
        assert evaluate_rules([rule("{{condition_1.result}}", "equals", "true")], values)
        assert evaluate_rules([rule("{{condition_1.result}}", "is_true")], values)
        assert not evaluate_rules([rule("{{condition_1.result}}", "is_false")], values)

    def test_exists_on_missing_variable(self):
        """An unknown variable counts as empty."""
        assert not evaluate_rules([rule("{{trigger.missing}}", "exists")], {})
        assert evaluate_rules([rule("{{trigger.missing}}", "not_exists")], {})

    def test_exists_on_empty_collection(self):
        assert not evaluate_rules([rule("{{trigger.items}}", "exists")], {"trigger.items": []})

    def test_embedded_tokens_compare_as_text(self):
        values = {"trigger.first": "Ann", "trigger.last": "Lee"}
        assert evaluate_rules(
            [rule("{{trigger.first}} {{trigger.last}}", "equals", "Ann Lee")], values
        )

    def test_value_side_can_bind_a_variable(self):
        values = {"trigger.email": "ann@acme.io", "trigger.domain": "acme.io"}
        assert evaluate_rules([rule("{{trigger.email}}", "ends_with", "{{trigger.domain}}")], values)

    def test_non_numeric_comparison_is_false(self):
        """A comparison that cannot be made evaluates to false instead of raising."""
        values = {"trigger.total": "lots"}
        assert not evaluate_rules([rule("{{trigger.total}}", "greater_than", "10")], values)

    def test_uncoercible_equality_compares_as_is(self):
        """Text that is not a number never equals a number, so not_equals holds."""
        values = {"trigger.total": 5}

        assert evaluate_rules([rule("{{trigger.total}}", "not_equals", "abc")], values)
        assert not evaluate_rules([rule("{{trigger.total}}", "equals", "abc")], values)

    def test_rules_combine_left_to_right(self):
        """'a OR b AND c' means '(a OR b) AND c'."""
        values = {"trigger.x": "1"}
        a_false = rule("{{trigger.x}}", "equals", "0")
        b_true = rule("{{trigger.x}}", "equals", "1", logic="OR")
        c_false = rule("{{trigger.x}}", "equals", "2", logic="AND")

        assert evaluate_rules([a_false, b_true], values)
        assert not evaluate_rules([a_false, b_true, c_false], values)

    def test_first_rule_logic_is_ignored(self):
        values = {"trigger.x": "1"}
        assert not evaluate_rules([rule("{{trigger.x}}", "equals", "0", logic="OR")], values)

    def test_no_rules_is_true(self):
        assert evaluate_rules([], {}) is True

    def test_unknown_operator_raises(self):
        """Rules built without validation still cannot use unknown operators."""
        bogus = ConditionRule.model_construct(
            field="{{trigger.x}}", operator="matches", value="", logic="AND"
        )
        with pytest.raises(ValidationFailure) as exc_info:
            evaluate_rules([bogus], {})

        assert exc_info.value.field == "rules[0].operator"
