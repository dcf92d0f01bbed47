"""Draft builders for step payloads.

A draft is the ephemeral state of one editing session: it can be changed
freely, discarded on cancel, and only turns into a payload through build(),
which validates it. Drafts never touch the registry; the caller hands the
built payload to WorkflowController.configure_step().

Usage:
    draft = ConditionDraft(name="Gmail senders")
    draft.bind_variable(0, "field", "trigger.email")
    draft.update_rule(0, operator="ends_with", value="@gmail.com")
    controller.configure_step(step_id, draft.build())
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from typing import Any, cast

from flowkit.errors import InvalidStateError, ValidationFailure
from flowkit.workflow.conditions import Operator, operators_for
from flowkit.workflow.models import (
    ActionPayload,
    ConditionPayload,
    StepKind,
    TriggerPayload,
    Variable,
    VariableType,
    parse_payload,
)
from flowkit.workflow.tokens import extract_tokens, make_token

TRIGGER_TYPES = {
    "webhook": "Receive HTTP requests from external services",
    "schedule": "Run on a specific time or interval",
    "database": "Trigger when data changes",
    "api_poll": "Check an API endpoint regularly",
    "file_watch": "Monitor file system changes",
}


def _variable_type(value: VariableType | str) -> VariableType:
    try:
        return VariableType(value)
    except ValueError:
        raise ValidationFailure(
            f"Unknown variable type '{value}'", field="type", value=value
        ) from None


def _check_index(items: Sequence[Any], index: int, what: str) -> int:
    """Return index if it addresses an existing item."""
    if not 0 <= index < len(items):
        raise ValidationFailure(f"No {what} at index {index}", field=what, value=index)
    return index


@dataclass
class FieldSpec:
    """One editable field of an action draft.

    Attributes:
        name: Field name in the action's field mapping.
        value: Bound value (literal text and/or variable tokens).
        type: Expected variable type of the value.
        required: Whether build() insists on a non-empty value.
    """

    name: str
    value: str = ""
    type: VariableType = VariableType.STRING
    required: bool = False


_STRING = VariableType.STRING
_OBJECT = VariableType.OBJECT

# Action type to (description, template fields)
ACTION_TEMPLATES: dict[str, tuple[str, list[FieldSpec]]] = {
    "webhook": (
        "Send data to any API endpoint",
        [
            FieldSpec("url", "", _STRING, True),
            FieldSpec("method", "POST", _STRING, True),
            FieldSpec("headers", '{"Content-Type": "application/json"}', _OBJECT),
            FieldSpec("body", "", _OBJECT),
        ],
    ),
    "email": (
        "Send personalized emails",
        [
            FieldSpec("to", "", _STRING, True),
            FieldSpec("subject", "", _STRING, True),
            FieldSpec("body", "", _STRING, True),
            FieldSpec("from", "", _STRING),
        ],
    ),
    "database": (
        "Create, update, or delete records",
        [
            FieldSpec("table", "", _STRING, True),
            FieldSpec("operation", "insert", _STRING, True),
            FieldSpec("data", "", _OBJECT, True),
            FieldSpec("condition", "", _STRING),
        ],
    ),
    "api_call": (
        "Call external service APIs",
        [
            FieldSpec("endpoint", "", _STRING, True),
            FieldSpec("method", "GET", _STRING, True),
            FieldSpec("params", "", _OBJECT),
            FieldSpec("auth", "", _OBJECT),
        ],
    ),
    "file_operation": ("Create, read, or modify files", []),
}


@dataclass
class OutputField:
    """One output field of a trigger draft."""

    name: str = ""
    type: VariableType = VariableType.STRING
    description: str = ""


@dataclass
class TriggerDraft:
    """Editable trigger configuration.

    Attributes:
        name: Trigger name.
        description: Trigger description.
        source_app: App the trigger belongs to.
        trigger_type: One of TRIGGER_TYPES, or None.
        config: Type-specific settings (cron, endpoint, ...).
        output_fields: Declared output fields; blank names are dropped on build.
    """

    name: str = ""
    description: str = ""
    source_app: str = "Custom"
    icon: str | None = None
    trigger_type: str | None = None
    config: dict[str, Any] = field(default_factory=dict)
    output_fields: list[OutputField] = field(default_factory=lambda: [OutputField()])

    def add_output_field(
        self, name: str = "", type: VariableType | str = VariableType.STRING, description: str = ""
    ) -> None:
        self.output_fields.append(OutputField(name, _variable_type(type), description))

    def remove_output_field(self, index: int) -> None:
        del self.output_fields[_check_index(self.output_fields, index, "output_fields")]

    def update_output_field(self, index: int, **changes: Any) -> None:
        current = self.output_fields[_check_index(self.output_fields, index, "output_fields")]
        if "type" in changes:
            changes["type"] = _variable_type(changes["type"])
        self.output_fields[index] = OutputField(
            name=changes.get("name", current.name),
            type=changes.get("type", current.type),
            description=changes.get("description", current.description),
        )

    def build(self) -> TriggerPayload:
        """Validate the draft and produce a trigger payload.

        Raises:
            ValidationFailure: If the name is blank or the trigger type is unknown.
        """
        if self.trigger_type is not None and self.trigger_type not in TRIGGER_TYPES:
            raise ValidationFailure(
                f"Unknown trigger type '{self.trigger_type}'",
                field="trigger_type",
                value=self.trigger_type,
            )

        schema = {f.name.strip(): f.type for f in self.output_fields if f.name.strip()}
        payload = parse_payload(
            StepKind.TRIGGER,
            {
                "name": self.name,
                "description": self.description,
                "source_app": self.source_app,
                "icon": self.icon,
                "output_schema": schema or None,
                "trigger_type": self.trigger_type,
                "config": dict(self.config),
            },
        )
        return cast(TriggerPayload, payload)


@dataclass
class ConditionDraft:
    """Editable condition configuration.

    Rules are plain dicts with field/operator/value/logic keys. A draft starts
    with one empty rule; rules without a field are dropped on build.
    """

    name: str = ""
    description: str = ""
    rules: list[dict[str, str]] = field(default_factory=lambda: [_blank_rule()])

    def add_rule(self, logic: str = "AND") -> None:
        rule = _blank_rule()
        rule["logic"] = logic.upper()
        self.rules.append(rule)

    def remove_rule(self, index: int) -> None:
        _check_index(self.rules, index, "rules")
        if len(self.rules) == 1:
            raise InvalidStateError("A condition needs at least one rule")
        del self.rules[index]

    def update_rule(self, index: int, **changes: str) -> None:
        unknown = set(changes) - {"field", "operator", "value", "logic"}
        if unknown:
            raise ValidationFailure(f"Unknown rule attribute(s): {', '.join(sorted(unknown))}")
        self.rules[_check_index(self.rules, index, "rules")].update(changes)

    def bind_variable(self, index: int, side: str, variable_name: str) -> None:
        """Put a variable token into a rule's field or value."""
        if side not in ("field", "value"):
            raise ValidationFailure("side must be 'field' or 'value'", field="side", value=side)
        self.rules[_check_index(self.rules, index, "rules")][side] = make_token(variable_name)

    def field_type(self, index: int, variables: Sequence[Variable]) -> str:
        """Type of the variable bound in a rule's field ("string" if unknown)."""
        tokens = extract_tokens(self.rules[_check_index(self.rules, index, "rules")]["field"])
        if tokens:
            for variable in variables:
                if variable.name == tokens[0]:
                    return variable.type.value
        return VariableType.STRING.value

    def operators_for_rule(self, index: int, variables: Sequence[Variable]) -> list[Operator]:
        """Operators applicable to the variable bound in a rule's field."""
        return operators_for(self.field_type(index, variables))

    def build(self) -> ConditionPayload:
        """Validate the draft and produce a condition payload.

        Raises:
            ValidationFailure: If the name is blank, no rule is complete, or an
                operator is unknown.
        """
        rules = [dict(r) for r in self.rules if r.get("field", "").strip() and r.get("operator")]
        description = self.description or f"Custom condition with {len(rules)} rules"
        payload = parse_payload(
            StepKind.CONDITION,
            {"name": self.name, "description": description, "rules": rules},
        )
        return cast(ConditionPayload, payload)


def _blank_rule() -> dict[str, str]:
    return {"field": "", "operator": "equals", "value": "", "logic": "AND"}


@dataclass
class ActionDraft:
    """Editable action configuration.

    Choosing an action type loads its template fields (url/method/... for
    webhook, to/subject/body/from for email, ...).
    """

    name: str = ""
    description: str = ""
    target_app: str = "Custom"
    icon: str | None = None
    action_type: str | None = None
    config: dict[str, Any] = field(default_factory=dict)
    fields: list[FieldSpec] = field(default_factory=list)

    def set_type(self, action_type: str) -> None:
        """Switch the action type, replacing the fields with its template."""
        if action_type not in ACTION_TEMPLATES:
            raise ValidationFailure(
                f"Unknown action type '{action_type}'", field="action_type", value=action_type
            )
        self.action_type = action_type
        _, specs = ACTION_TEMPLATES[action_type]
        self.fields = [replace(spec) for spec in specs]

    def add_field(self, name: str, value: str = "", *, required: bool = False) -> None:
        if self._find(name) is not None:
            raise ValidationFailure(f"Field '{name}' already exists", field=name)
        self.fields.append(FieldSpec(name=name, value=value, required=required))

    def remove_field(self, name: str) -> None:
        spec = self._require(name)
        self.fields.remove(spec)

    def set_value(self, name: str, value: str) -> None:
        self._require(name).value = value

    def bind_variable(self, name: str, variable_name: str) -> None:
        """Set a field's value to a variable token."""
        self.set_value(name, make_token(variable_name))

    def build(self) -> ActionPayload:
        """Validate the draft and produce an action payload.

        Raises:
            ValidationFailure: If the name is blank or a required field is empty.
        """
        for spec in self.fields:
            if spec.required and not spec.value.strip():
                raise ValidationFailure(
                    f"Required field '{spec.name}' is empty", field=f"field_mapping.{spec.name}"
                )

        mapping = {f.name: f.value for f in self.fields if f.name.strip()}
        description = self.description
        if not description and self.action_type in ACTION_TEMPLATES:
            description = ACTION_TEMPLATES[self.action_type][0]

        payload = parse_payload(
            StepKind.ACTION,
            {
                "name": self.name,
                "description": description,
                "target_app": self.target_app,
                "icon": self.icon,
                "field_mapping": mapping,
                "action_type": self.action_type,
                "config": dict(self.config),
            },
        )
        return cast(ActionPayload, payload)

    def _find(self, name: str) -> FieldSpec | None:
        for spec in self.fields:
            if spec.name == name:
                return spec
        return None

    def _require(self, name: str) -> FieldSpec:
        spec = self._find(name)
        if spec is None:
            raise ValidationFailure(f"Unknown field '{name}'", field=name)
        return spec
