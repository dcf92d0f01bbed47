"""Variable catalog and binding resolution.

The catalog is the set of variables a step can bind against. It is derived,
never stored: every call recomputes it from the configured steps strictly
before the step in question, so it can never go stale after a mutation.

Naming:
    trigger.<field>        one per trigger output field (or id/timestamp/data)
    condition_<i>.result   boolean, i = position in the full sequence
    action_<i>.result      object, i = position in the full sequence
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass

from flowkit.errors import InvalidStateError
from flowkit.workflow.models import (
    ActionPayload,
    ConditionPayload,
    Step,
    StepKind,
    TriggerPayload,
    Variable,
    VariableType,
)
from flowkit.workflow.tokens import extract_tokens

# Fields exposed by a trigger that declares no output schema
DEFAULT_TRIGGER_FIELDS: list[tuple[str, VariableType, str]] = [
    ("id", VariableType.STRING, "Unique identifier of the event"),
    ("timestamp", VariableType.STRING, "When the event occurred (ISO 8601)"),
    ("data", VariableType.OBJECT, "Raw event data"),
]

_REF_PATTERN = re.compile(r"^(?:(trigger)|(condition|action)_(\d+))\.(.+)$")

MOVED_REASON = "refers to a step that was removed or moved"


def build_catalog(steps: Sequence[Step], upto_index: int) -> list[Variable]:
    """Build the variables available to the step at upto_index.

    Only configured steps in steps[0:upto_index] contribute.

    Args:
        steps: The full ordered step sequence.
        upto_index: Index of the step the catalog is for.

    Returns:
        Variables in step order, then schema field order.

    Raises:
        InvalidStateError: If upto_index is not a valid index into steps.
    """
    if not 0 <= upto_index < len(steps):
        raise InvalidStateError(
            f"Index {upto_index} is outside the workflow",
            context={"upto_index": upto_index, "steps": len(steps)},
        )

    variables: list[Variable] = []
    for index, step in enumerate(steps[:upto_index]):
        if not step.configured or step.payload is None:
            continue
        variables.extend(step_variables(step, index))
    return variables


def step_variables(step: Step, index: int) -> list[Variable]:
    """Variables produced by a single configured step at the given index."""
    payload = step.payload
    source = step.label

    if isinstance(payload, TriggerPayload):
        if payload.output_schema:
            return [
                Variable(name=f"trigger.{field}", type=field_type, source=source)
                for field, field_type in payload.output_schema.items()
            ]
        return [
            Variable(
                name=f"trigger.{field}",
                type=field_type,
                source=source,
                description=description,
            )
            for field, field_type, description in DEFAULT_TRIGGER_FIELDS
        ]

    if isinstance(payload, ConditionPayload):
        return [
            Variable(
                name=f"condition_{index}.result",
                type=VariableType.BOOLEAN,
                source=source,
                description="Whether the condition passed",
            )
        ]

    if isinstance(payload, ActionPayload):
        return [
            Variable(
                name=f"action_{index}.result",
                type=VariableType.OBJECT,
                source=source,
                description="Response returned by the action",
            )
        ]

    return []


def search_variables(variables: Sequence[Variable], term: str) -> list[Variable]:
    """Filter variables by a case-insensitive term.

    Matches against name, source label and description.
    """
    needle = term.strip().lower()
    if not needle:
        return list(variables)
    return [
        v
        for v in variables
        if needle in v.name.lower()
        or needle in v.source.lower()
        or (v.description is not None and needle in v.description.lower())
    ]


def group_by_source(variables: Sequence[Variable]) -> dict[str, list[Variable]]:
    """Group variables by source label, keeping first-seen order."""
    groups: dict[str, list[Variable]] = {}
    for variable in variables:
        groups.setdefault(variable.source, []).append(variable)
    return groups


@dataclass(frozen=True)
class VariableRef:
    """Explicit reference from a binding to an upstream step output.

    Attributes:
        kind: Kind of the referenced step.
        step_index: Position of the referenced step (None for trigger refs,
            which resolve to the first trigger in the sequence).
        field_name: Output field of the referenced step.
    """

    kind: StepKind
    step_index: int | None
    field_name: str

    @classmethod
    def parse(cls, name: str) -> VariableRef | None:
        """Parse a dotted variable name; returns None if it is not one."""
        match = _REF_PATTERN.match(name.strip())
        if not match:
            return None
        trigger, kind, index, field_name = match.groups()
        if trigger:
            return cls(kind=StepKind.TRIGGER, step_index=None, field_name=field_name)
        return cls(kind=StepKind(kind), step_index=int(index), field_name=field_name)

    def resolve_index(self, steps: Sequence[Step]) -> int | None:
        """Find the index of the referenced step, or None if it is gone."""
        if self.step_index is None:
            for index, step in enumerate(steps):
                if step.kind == StepKind.TRIGGER:
                    return index
            return None
        if self.step_index < len(steps) and steps[self.step_index].kind == self.kind:
            return self.step_index
        return None


@dataclass(frozen=True)
class BindingIssue:
    """A binding token that does not resolve against its step's catalog.

    Attributes:
        step_id: Step holding the binding.
        location: Where in the payload the token sits (e.g. "field_mapping.to").
        token: The referenced variable name.
        reason: Why the token does not resolve.
    """

    step_id: str
    location: str
    token: str
    reason: str

    def __str__(self) -> str:
        return f"Step '{self.step_id}' {self.location}: {{{{{self.token}}}}} {self.reason}"


def step_bindings(step: Step) -> list[tuple[str, str]]:
    """List (location, variable name) for every token a step binds."""
    payload = step.payload
    found: list[tuple[str, str]] = []

    if isinstance(payload, ConditionPayload):
        for i, rule in enumerate(payload.rules):
            found.extend((f"rules[{i}].field", t) for t in extract_tokens(rule.field))
            found.extend((f"rules[{i}].value", t) for t in extract_tokens(rule.value))
    elif isinstance(payload, ActionPayload):
        for field, value in payload.field_mapping.items():
            found.extend((f"field_mapping.{field}", t) for t in extract_tokens(value))

    return found


def check_step_bindings(steps: Sequence[Step], index: int) -> list[BindingIssue]:
    """Check the bindings of the step at index against its catalog."""
    step = steps[index]
    bindings = step_bindings(step)
    if not bindings:
        return []

    available = {v.name for v in build_catalog(steps, index)}
    issues: list[BindingIssue] = []
    for location, token in bindings:
        if token in available:
            continue
        issues.append(
            BindingIssue(
                step_id=step.id,
                location=location,
                token=token,
                reason=_explain_unresolved(steps, index, token),
            )
        )
    return issues


def find_dangling_bindings(steps: Sequence[Step]) -> list[BindingIssue]:
    """Check every configured step's bindings, in sequence order."""
    issues: list[BindingIssue] = []
    for index, step in enumerate(steps):
        if step.configured:
            issues.extend(check_step_bindings(steps, index))
    return issues


def shifted_bindings(steps: Sequence[Step], index: int) -> list[BindingIssue]:
    """Indexed bindings that address position index or later.

    Call this on the sequence before a step is inserted or removed at index:
    every binding returned will point at a different step afterwards, even
    where the new target happens to produce a variable of the same name.
    """
    issues: list[BindingIssue] = []
    for step in steps:
        if not step.configured:
            continue
        for location, token in step_bindings(step):
            ref = VariableRef.parse(token)
            if ref is None or ref.step_index is None or ref.step_index < index:
                continue
            issues.append(BindingIssue(step.id, location, token, MOVED_REASON))
    return issues


def _explain_unresolved(steps: Sequence[Step], index: int, token: str) -> str:
    ref = VariableRef.parse(token)
    if ref is None:
        return "is not a known variable name"

    target = ref.resolve_index(steps)
    if target is None:
        return "refers to a step that no longer exists"
    if target >= index:
        return "refers to a step that does not come before it"
    if not steps[target].configured:
        return "refers to a step that is not configured"
    return f"is not produced by {steps[target].label}"
