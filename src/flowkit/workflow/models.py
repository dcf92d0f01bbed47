"""Workflow data models.

This module defines the records the rest of flowkit passes around:
- Step: one node of the linear workflow (trigger, condition or action)
- TriggerPayload/ConditionPayload/ActionPayload: kind-specific configuration
- Variable: a typed datum a step exposes to the steps after it
- StepResult/RunStatus: what a test run reports per step
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from flowkit.errors import ValidationFailure
from flowkit.workflow.conditions import OPERATORS


class StepKind(str, Enum):
    """The three step kinds of a workflow."""

    TRIGGER = "trigger"
    CONDITION = "condition"
    ACTION = "action"


class VariableType(str, Enum):
    """Types a variable can declare."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    OBJECT = "object"
    ARRAY = "array"


class RunStatus(str, Enum):
    """Per-step status reported by a test run."""

    PENDING = "pending"
    SUCCESS = "success"
    FAILURE = "failure"


class _Payload(BaseModel):
    """Fields shared by every payload kind.

    Accepts both snake_case and the camelCase spelling used by UI clients.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    name: str
    description: str = ""

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        """Reject empty or whitespace-only names."""
        v = v.strip()
        if not v:
            raise ValueError("name must not be blank")
        return v


class TriggerPayload(_Payload):
    """Configuration of a trigger step.

    Attributes:
        source_app: Name of the app that fires the trigger ("Custom" for built triggers).
        name: Display name of the trigger.
        description: Human-readable description.
        icon: Optional icon token for rendering.
        output_schema: Fields the trigger produces (None means the default id/timestamp/data set).
        trigger_type: Kind of custom trigger (webhook, schedule, ...), if any.
        config: Type-specific configuration, passed through untouched.
    """

    source_app: str = Field(default="Custom", alias="sourceApp")
    icon: str | None = None
    output_schema: dict[str, VariableType] | None = Field(default=None, alias="outputSchema")
    trigger_type: str | None = Field(default=None, alias="triggerType")
    config: dict[str, Any] = Field(default_factory=dict)


class ConditionRule(BaseModel):
    """Single rule of a condition.

    Attributes:
        field: Left-hand operand, usually a variable token like "{{trigger.email}}".
        operator: Operator name from the operator catalog.
        value: Right-hand operand (ignored by value-less operators).
        logic: How this rule combines with the rules before it.
    """

    model_config = ConfigDict(frozen=True)

    field: str
    operator: str = "equals"
    value: str = ""
    logic: Literal["AND", "OR"] = "AND"

    @field_validator("field")
    @classmethod
    def field_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("field must not be blank")
        return v

    @field_validator("operator")
    @classmethod
    def known_operator(cls, v: str) -> str:
        if v not in OPERATORS:
            raise ValueError(f"unknown operator '{v}'")
        return v

    @field_validator("logic", mode="before")
    @classmethod
    def upper_logic(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v


class ConditionPayload(_Payload):
    """Configuration of a condition step."""

    rules: list[ConditionRule] = Field(min_length=1)


class ActionPayload(_Payload):
    """Configuration of an action step.

    Attributes:
        target_app: Name of the app the action addresses.
        name: Display name of the action.
        description: Human-readable description.
        icon: Optional icon token for rendering.
        field_mapping: Action field name to bound value (may contain variable tokens).
        action_type: Kind of custom action (webhook, email, ...), if any.
        config: Type-specific configuration, passed through untouched.
    """

    target_app: str = Field(default="Custom", alias="targetApp")
    icon: str | None = None
    field_mapping: dict[str, str] = Field(default_factory=dict, alias="fieldMapping")
    action_type: str | None = Field(default=None, alias="actionType")
    config: dict[str, Any] = Field(default_factory=dict)


Payload = TriggerPayload | ConditionPayload | ActionPayload

PAYLOAD_TYPES: dict[StepKind, type[_Payload]] = {
    StepKind.TRIGGER: TriggerPayload,
    StepKind.CONDITION: ConditionPayload,
    StepKind.ACTION: ActionPayload,
}


class Step(BaseModel):
    """One node of the workflow.

    Steps are immutable; configuring a step replaces the record in the registry.

    Attributes:
        id: Opaque identifier, stable for the step's lifetime.
        kind: Trigger, condition or action.
        configured: True once a payload has been saved.
        payload: Kind-specific configuration (None while unconfigured).
    """

    model_config = ConfigDict(frozen=True)

    id: str
    kind: StepKind
    configured: bool = False
    payload: Payload | None = None

    @property
    def label(self) -> str:
        """Display label, e.g. "Trigger: Email Received"."""
        if self.payload is None:
            return f"{self.kind.value.title()}: (not configured)"
        return f"{self.kind.value.title()}: {self.payload.name}"


class Variable(BaseModel):
    """A named, typed value available for binding.

    Attributes:
        name: Dotted name (e.g. "trigger.email", "condition_2.result").
        type: Declared type of the value.
        source: Label of the step that produces it (e.g. "Trigger: New Signup").
        description: Optional help text.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    type: VariableType
    source: str
    description: str | None = None


class StepResult(BaseModel):
    """One emission of a test run."""

    model_config = ConfigDict(frozen=True)

    step_id: str
    status: RunStatus


def parse_payload(kind: StepKind, payload: Payload | dict[str, Any]) -> Payload:
    """Validate a payload for the given step kind.

    Args:
        kind: Kind of the step the payload is meant for.
        payload: A payload model or a raw dictionary.

    Returns:
        The validated payload model.

    Raises:
        ValidationFailure: If the payload does not fit the step kind.
    """
    payload_type = PAYLOAD_TYPES[kind]

    if isinstance(payload, BaseModel):
        if not isinstance(payload, payload_type):
            raise ValidationFailure(
                f"{type(payload).__name__} cannot configure a {kind.value} step",
                field="payload",
            )
        return payload

    if not isinstance(payload, dict):
        raise ValidationFailure(
            f"Payload must be an object, got {type(payload).__name__}",
            field="payload",
        )

    try:
        return payload_type.model_validate(payload)
    except ValidationError as e:
        first = e.errors()[0]
        loc = ".".join(str(p) for p in first["loc"]) or "payload"
        raise ValidationFailure(
            f"Invalid {kind.value} payload: {first['msg']}",
            field=loc,
            value=first.get("input"),
        ) from e
