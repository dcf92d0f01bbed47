"""Step registry: the ordered step sequence of one workflow.

The registry is the single piece of mutable state in a workflow session.
Every mutation builds a new tuple and swaps it in with one assignment, so a
reader never observes a half-applied insert or delete.

Usage:
    registry = StepRegistry()                      # [trigger (unconfigured)]
    trigger = registry.steps[0]
    registry.configure(trigger.id, {"name": "Form Submitted"})
    action = registry.insert(StepKind.ACTION, after_id=trigger.id)
    registry.configure(action.id, {"name": "Send Email", "target_app": "Gmail"})
    registry.is_ready()                            # True
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable, Iterator
from typing import Any

from flowkit.errors import InvalidStateError, NotFoundError, ValidationFailure
from flowkit.workflow.models import Payload, Step, StepKind, parse_payload

logger = logging.getLogger(__name__)


def coerce_kind(kind: StepKind | str) -> StepKind:
    """Convert a kind name to StepKind.

    Raises:
        ValidationFailure: If the name is not a step kind.
    """
    if isinstance(kind, StepKind):
        return kind
    try:
        return StepKind(str(kind).lower())
    except ValueError:
        raise ValidationFailure(
            f"Unknown step kind '{kind}'", field="kind", value=kind
        ) from None


class StepRegistry:
    """Ordered sequence of steps with insert/configure/delete.

    Args:
        steps: Initial steps. Defaults to a single unconfigured trigger.

    Raises:
        InvalidStateError: If the initial steps are empty or contain duplicate ids.
    """

    def __init__(self, steps: Iterable[Step] | None = None) -> None:
        if steps is None:
            self._steps: tuple[Step, ...] = (
                Step(id=self._new_id(StepKind.TRIGGER, set()), kind=StepKind.TRIGGER),
            )
            return

        initial = tuple(steps)
        if not initial:
            raise InvalidStateError("A workflow must contain at least one step")
        ids = [s.id for s in initial]
        if len(set(ids)) != len(ids):
            raise InvalidStateError("Step ids must be unique", context={"ids": ids})
        self._steps = initial

    @property
    def steps(self) -> tuple[Step, ...]:
        """Immutable snapshot of the current sequence."""
        return self._steps

    @property
    def ids(self) -> list[str]:
        return [s.id for s in self._steps]

    def __len__(self) -> int:
        return len(self._steps)

    def __iter__(self) -> Iterator[Step]:
        return iter(self._steps)

    def index_of(self, step_id: str) -> int:
        """Position of a step in the sequence.

        Raises:
            NotFoundError: If no step has this id.
        """
        for index, step in enumerate(self._steps):
            if step.id == step_id:
                return index
        raise NotFoundError(step_id, self.ids)

    def get(self, step_id: str) -> Step:
        """Get a step by id.

        Raises:
            NotFoundError: If no step has this id.
        """
        return self._steps[self.index_of(step_id)]

    def has_trigger(self) -> bool:
        return any(s.kind == StepKind.TRIGGER for s in self._steps)

    def insert(self, kind: StepKind | str, after_id: str | None = None) -> Step:
        """Create a new unconfigured step right after another step.

        Triggers are only inserted at the head (after_id=None) and only when
        the workflow has none; conditions and actions always follow an
        existing step.

        Args:
            kind: Kind of the new step.
            after_id: Id of the step to insert after, or None for the head.

        Returns:
            The new step.

        Raises:
            NotFoundError: If after_id does not exist.
            InvalidStateError: If the placement would break the trigger-first rule.
            ValidationFailure: If kind is not a step kind.
        """
        kind = coerce_kind(kind)

        if kind == StepKind.TRIGGER:
            if self.has_trigger():
                raise InvalidStateError("The workflow already has a trigger")
            if after_id is not None:
                raise InvalidStateError(
                    "A trigger can only be inserted at the start of the workflow",
                    context={"after_id": after_id},
                )
            position = 0
        else:
            if after_id is None:
                raise InvalidStateError(
                    f"A {kind.value} step must be inserted after an existing step"
                )
            position = self.index_of(after_id) + 1

        step = Step(id=self._new_id(kind, set(self.ids)), kind=kind)
        steps = list(self._steps)
        steps.insert(position, step)
        self._steps = tuple(steps)

        logger.info(f"Inserted {kind.value} step {step.id} at position {position}")
        return step

    def configure(self, step_id: str, payload: Payload | dict[str, Any]) -> Step:
        """Set a step's payload and mark it configured.

        Re-configuring replaces the payload; the step keeps its id and position.

        Returns:
            The updated step.

        Raises:
            NotFoundError: If step_id does not exist.
            ValidationFailure: If the payload does not fit the step kind.
        """
        index = self.index_of(step_id)
        current = self._steps[index]
        parsed = parse_payload(current.kind, payload)

        updated = current.model_copy(update={"configured": True, "payload": parsed})
        steps = list(self._steps)
        steps[index] = updated
        self._steps = tuple(steps)

        logger.info(f"Configured {current.kind.value} step {step_id}: {parsed.name}")
        return updated

    def delete(self, step_id: str) -> Step:
        """Remove a step.

        Bindings in other steps that referenced the removed step are left as-is.

        Returns:
            The removed step.

        Raises:
            NotFoundError: If step_id does not exist.
            InvalidStateError: If it is the only remaining step.
        """
        index = self.index_of(step_id)
        if len(self._steps) == 1:
            raise InvalidStateError(
                "Cannot delete the only step of the workflow",
                context={"step_id": step_id},
            )

        removed = self._steps[index]
        self._steps = self._steps[:index] + self._steps[index + 1 :]

        logger.info(f"Deleted {removed.kind.value} step {step_id}")
        return removed

    def is_ready(self) -> bool:
        """True iff a configured trigger and a configured action both exist."""
        has_trigger = any(s.kind == StepKind.TRIGGER and s.configured for s in self._steps)
        has_action = any(s.kind == StepKind.ACTION and s.configured for s in self._steps)
        return has_trigger and has_action

    @staticmethod
    def _new_id(kind: StepKind, taken: set[str]) -> str:
        while True:
            candidate = f"{kind.value}-{uuid.uuid4().hex[:12]}"
            if candidate not in taken:
                return candidate
