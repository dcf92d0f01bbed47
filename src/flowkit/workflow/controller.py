"""Workflow controller: the operations a presentation layer calls.

The controller owns one StepRegistry and one RunSimulator. Every mutation
validates first and only then touches the registry, so a call either applies
fully or raises a FlowkitError without changing anything.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict

from flowkit.errors import InvalidStateError, ValidationFailure
from flowkit.settings import FlowkitSettings
from flowkit.workflow.catalog import (
    BindingIssue,
    build_catalog,
    check_step_bindings,
    find_dangling_bindings,
    shifted_bindings,
    step_bindings,
)
from flowkit.workflow.conditions import evaluate_rules
from flowkit.workflow.models import (
    ConditionPayload,
    Payload,
    Step,
    StepKind,
    StepResult,
    Variable,
    parse_payload,
)
from flowkit.workflow.registry import StepRegistry
from flowkit.workflow.simulator import RunSimulator, SimulatorConfig

logger = logging.getLogger(__name__)


class WorkflowSnapshot(BaseModel):
    """Everything a renderer needs, captured at one point in time.

    Attributes:
        name: Workflow name.
        steps: The step sequence.
        catalogs: Step id to the variables available to that step.
        is_ready: Whether the workflow can be saved.
        enabled: The automation on/off flag.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    steps: tuple[Step, ...]
    catalogs: dict[str, list[Variable]]
    is_ready: bool
    enabled: bool


class WorkflowController:
    """Single-owner editing session for one linear workflow.

    Args:
        settings: Session settings (defaults from FlowkitSettings()).
        simulator: Run simulator (defaults to always-succeed with the settings' delay).
        registry: Step registry (defaults to a single unconfigured trigger).
        name: Display name of the workflow.
    """

    def __init__(
        self,
        settings: FlowkitSettings | None = None,
        simulator: RunSimulator | None = None,
        registry: StepRegistry | None = None,
        name: str = "Untitled automation",
    ) -> None:
        self.settings = settings or FlowkitSettings()
        self.registry = registry or StepRegistry()
        self.simulator = simulator or RunSimulator(
            SimulatorConfig(step_delay_ms=self.settings.step_delay_ms)
        )
        self.name = name
        self._enabled = False
        # Indexed bindings whose target moved; cleared when the step is reconfigured
        self._moved: list[BindingIssue] = []

    @property
    def steps(self) -> tuple[Step, ...]:
        return self.registry.steps

    @property
    def enabled(self) -> bool:
        return self._enabled

    def add_step(self, kind: StepKind | str, after_id: str | None = None) -> Step:
        """Insert a new unconfigured step after after_id (None = head, triggers only)."""
        before = self.registry.steps
        step = self.registry.insert(kind, after_id)

        moved = self._track_moved(shifted_bindings(before, self.registry.index_of(step.id)))
        if moved:
            logger.warning(f"{moved} binding(s) now point at a different step after adding {step.id}")
        return step

    def configure_step(self, step_id: str, payload: Payload | dict[str, Any]) -> Step:
        """Validate and save a step's payload.

        With strict bindings on, every variable token in the payload must be
        in the step's catalog.

        Raises:
            NotFoundError: If the step does not exist.
            ValidationFailure: If the payload is invalid or binds unknown variables.
        """
        index = self.registry.index_of(step_id)
        current = self.registry.steps[index]
        parsed = parse_payload(current.kind, payload)

        if self.settings.strict_bindings:
            candidate = list(self.registry.steps)
            candidate[index] = current.model_copy(update={"configured": True, "payload": parsed})
            issues = check_step_bindings(candidate, index)
            if issues:
                first = issues[0]
                raise ValidationFailure(str(first), field=first.location, value=first.token)

        step = self.registry.configure(step_id, parsed)
        self._moved = [issue for issue in self._moved if issue.step_id != step_id]
        return step

    def delete_step(self, step_id: str) -> Step:
        """Remove a step; bindings that referenced it or a later step are flagged, not rewritten."""
        index = self.registry.index_of(step_id)
        before = self.registry.steps
        removed = self.registry.delete(step_id)
        self._track_moved(i for i in shifted_bindings(before, index) if i.step_id != step_id)

        dangling = self.dangling_bindings()
        if dangling:
            logger.warning(
                f"{len(dangling)} binding(s) no longer resolve after deleting {step_id}"
            )
        return removed

    def available_variables_for(self, step_id: str) -> list[Variable]:
        """Variables the step can bind, from the configured steps before it."""
        return build_catalog(self.registry.steps, self.registry.index_of(step_id))

    def can_save(self) -> bool:
        return self.registry.is_ready()

    def start_test_run(self) -> Iterator[StepResult]:
        """Start a simulated test run over the configured steps.

        Raises:
            InvalidStateError: If no step is configured.
        """
        return self.simulator.run(self.registry.steps)

    def set_enabled(self, enabled: bool) -> None:
        """Toggle the automation on/off flag; the steps are not touched."""
        if not isinstance(enabled, bool):
            raise ValidationFailure("enabled must be a boolean", field="enabled", value=enabled)
        self._enabled = enabled
        logger.info(f"Automation {'enabled' if self._enabled else 'disabled'}")

    def dangling_bindings(self) -> list[BindingIssue]:
        """Bindings in configured steps that no longer resolve.

        Besides tokens missing from their step's catalog, this includes indexed
        tokens (condition_<i>, action_<i>) whose target shifted because a step
        was inserted or deleted before it, until that step is reconfigured.
        """
        steps = self.registry.steps
        positions = {step.id: i for i, step in enumerate(steps)}
        issues = find_dangling_bindings(steps)
        seen = {(i.step_id, i.location, i.token) for i in issues}

        for issue in self._moved:
            key = (issue.step_id, issue.location, issue.token)
            if key in seen or issue.step_id not in positions:
                continue
            if (issue.location, issue.token) not in step_bindings(steps[positions[issue.step_id]]):
                continue
            seen.add(key)
            issues.append(issue)

        return sorted(issues, key=lambda issue: positions[issue.step_id])

    def _track_moved(self, issues: Iterable[BindingIssue]) -> int:
        """Remember shifted bindings; returns how many were new."""
        known = {(i.step_id, i.location, i.token) for i in self._moved}
        added = 0
        for issue in issues:
            key = (issue.step_id, issue.location, issue.token)
            if key not in known:
                known.add(key)
                self._moved.append(issue)
                added += 1
        return added

    def evaluate_condition(self, step_id: str, values: Mapping[str, Any]) -> bool:
        """Evaluate a configured condition step against variable values.

        Raises:
            NotFoundError: If the step does not exist.
            InvalidStateError: If the step is not a configured condition.
        """
        step = self.registry.get(step_id)
        if not isinstance(step.payload, ConditionPayload):
            raise InvalidStateError(
                "Only configured condition steps can be evaluated",
                context={"step_id": step_id, "kind": step.kind.value},
            )
        return evaluate_rules(step.payload.rules, values)

    def snapshot(self) -> WorkflowSnapshot:
        steps = self.registry.steps
        return WorkflowSnapshot(
            name=self.name,
            steps=steps,
            catalogs={step.id: build_catalog(steps, i) for i, step in enumerate(steps)},
            is_ready=self.registry.is_ready(),
            enabled=self._enabled,
        )

    def validate(self) -> list[str]:
        """Check the workflow for problems.

        Returns:
            List of error messages (empty if valid).
        """
        errors: list[str] = []
        steps = self.registry.steps

        if not self.registry.has_trigger():
            errors.append("Workflow has no trigger")
        elif steps[0].kind != StepKind.TRIGGER:
            errors.append("The first step must be a trigger")

        for step in steps:
            if not step.configured:
                errors.append(f"Step '{step.id}' ({step.kind.value}) is not configured")

        if not self.registry.is_ready():
            errors.append("Workflow needs a configured trigger and a configured action")

        errors.extend(str(issue) for issue in self.dangling_bindings())
        return errors
