"""Condition rule evaluation.

Supports:
- The operator catalog shown by condition editors, with the variable types
  each operator applies to
- Evaluating an ordered rule list against concrete values

Rules combine strictly left to right: each rule after the first carries a
logic of AND/OR that merges it with the cumulative result so far. There is no
precedence and no grouping, so "a OR b AND c" means "(a OR b) AND c".
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from flowkit.errors import ValidationFailure
from flowkit.workflow.tokens import extract_tokens, is_single_token, render_tokens

if TYPE_CHECKING:
    from flowkit.workflow.models import ConditionRule

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Operator:
    """Operator catalog entry.

    Attributes:
        name: Machine name stored in rules.
        label: Human-readable label.
        types: Variable types the operator applies to.
        takes_value: False for unary operators (exists, is_true, ...).
    """

    name: str
    label: str
    types: tuple[str, ...]
    takes_value: bool = True


_CATALOG = [
    Operator("equals", "Equals", ("string", "number", "boolean")),
    Operator("not_equals", "Not Equals", ("string", "number", "boolean")),
    Operator("contains", "Contains", ("string",)),
    Operator("not_contains", "Does Not Contain", ("string",)),
    Operator("starts_with", "Starts With", ("string",)),
    Operator("ends_with", "Ends With", ("string",)),
    Operator("greater_than", "Greater Than", ("number",)),
    Operator("less_than", "Less Than", ("number",)),
    Operator("greater_equal", "Greater Than or Equal", ("number",)),
    Operator("less_equal", "Less Than or Equal", ("number",)),
    Operator("exists", "Exists (Not Empty)", ("string", "object", "array"), takes_value=False),
    Operator("not_exists", "Does Not Exist (Empty)", ("string", "object", "array"), takes_value=False),
    Operator("is_true", "Is True", ("boolean",), takes_value=False),
    Operator("is_false", "Is False", ("boolean",), takes_value=False),
]

OPERATORS: dict[str, Operator] = {op.name: op for op in _CATALOG}


def operators_for(variable_type: str) -> list[Operator]:
    """List the operators applicable to a variable type, in catalog order."""
    return [op for op in _CATALOG if variable_type in op.types]


def describe_rule(rule: ConditionRule) -> str:
    """Render a rule as text, e.g. '({{trigger.email}} Contains "@gmail.com")'."""
    op = OPERATORS[rule.operator]
    if op.takes_value:
        return f'({rule.field} {op.label} "{rule.value}")'
    return f"({rule.field} {op.label})"


def evaluate_rules(rules: Sequence[ConditionRule], values: Mapping[str, Any]) -> bool:
    """Evaluate rules left to right against variable values.

    Args:
        rules: Ordered rules; the first rule's logic is ignored.
        values: Variable name to value (e.g. {"trigger.email": "a@b.c"}).

    Returns:
        The combined result. An empty rule list is true.

    Raises:
        ValidationFailure: If a rule uses an unknown operator.
    """
    result: bool | None = None

    for index, rule in enumerate(rules):
        if rule.operator not in OPERATORS:
            raise ValidationFailure(
                f"Unknown operator: {rule.operator}",
                field=f"rules[{index}].operator",
                value=rule.operator,
            )

        actual = _resolve_operand(rule.field, values)
        expected = _resolve_operand(rule.value, values)
        passed = _evaluate_rule(actual, rule.operator, expected)

        if result is None:
            result = passed
        elif rule.logic == "OR":
            result = result or passed
        else:
            result = result and passed

    if result is None:
        logger.warning("No rules specified, defaulting to true")
        return True
    return result


def _resolve_operand(text: str, values: Mapping[str, Any]) -> Any:
    """Resolve tokens in an operand; a lone unknown token resolves to None."""
    if is_single_token(text) and extract_tokens(text)[0] not in values:
        return None
    return render_tokens(text, values)


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (str, list, dict)):
        return len(value) == 0
    return False


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    return bool(value)


def _coerce_like(actual: Any, expected: Any) -> Any:
    """Coerce a textual expected value to the type of the actual value."""
    if not isinstance(expected, str):
        return expected
    if isinstance(actual, bool):
        return _as_bool(expected)
    if isinstance(actual, (int, float)):
        return float(expected)
    return expected


def _coerce_or_keep(actual: Any, expected: Any) -> Any:
    """Like _coerce_like, but an uncoercible value is compared as-is."""
    try:
        return _coerce_like(actual, expected)
    except (TypeError, ValueError):
        return expected


def _evaluate_rule(actual: Any, operator: str, expected: Any) -> bool:
    """Evaluate a single rule."""
    try:
        if operator == "equals":
            return actual == _coerce_or_keep(actual, expected)
        elif operator == "not_equals":
            return actual != _coerce_or_keep(actual, expected)
        elif operator == "contains":
            return str(expected) in str(actual)
        elif operator == "not_contains":
            return str(expected) not in str(actual)
        elif operator == "starts_with":
            return str(actual).startswith(str(expected))
        elif operator == "ends_with":
            return str(actual).endswith(str(expected))
        elif operator == "greater_than":
            return float(actual) > float(expected)
        elif operator == "less_than":
            return float(actual) < float(expected)
        elif operator == "greater_equal":
            return float(actual) >= float(expected)
        elif operator == "less_equal":
            return float(actual) <= float(expected)
        elif operator == "exists":
            return not _is_empty(actual)
        elif operator == "not_exists":
            return _is_empty(actual)
        elif operator == "is_true":
            return _as_bool(actual) is True
        elif operator == "is_false":
            return _as_bool(actual) is False
        else:
            logger.warning(f"Unknown operator: {operator}")
            return False
    except (TypeError, ValueError) as e:
        logger.warning(f"Rule evaluation failed: {e}")
        return False
