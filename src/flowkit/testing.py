"""Testing utilities for flowkit workflows.

Provides helpers for building configured workflows and draining test runs in
unit tests, without writing session files.

Example:
    controller = build_workflow(["trigger", "condition", "action"])
    assert controller.can_save()
    assert final_statuses(controller.start_test_run()) == {
        step.id: RunStatus.SUCCESS for step in controller.steps
    }
"""

from __future__ import annotations

import copy
from collections.abc import Iterable, Sequence
from typing import Any

from flowkit.settings import FlowkitSettings
from flowkit.workflow.controller import WorkflowController
from flowkit.workflow.models import RunStatus, StepKind, StepResult
from flowkit.workflow.registry import coerce_kind
from flowkit.workflow.simulator import RunSimulator

SAMPLE_TRIGGER: dict[str, Any] = {
    "name": "New Signup",
    "source_app": "Forms",
    "output_schema": {"email": "string", "id": "number"},
}

SAMPLE_CONDITION: dict[str, Any] = {
    "name": "Company Email",
    "rules": [{"field": "{{trigger.email}}", "operator": "ends_with", "value": "@acme.io"}],
}

SAMPLE_ACTION: dict[str, Any] = {
    "name": "Send Welcome",
    "target_app": "Gmail",
    "field_mapping": {"to": "{{trigger.email}}", "subject": "Welcome #{{trigger.id}}"},
}

_SAMPLES = {
    StepKind.TRIGGER: SAMPLE_TRIGGER,
    StepKind.CONDITION: SAMPLE_CONDITION,
    StepKind.ACTION: SAMPLE_ACTION,
}


def sample_payload(kind: StepKind | str) -> dict[str, Any]:
    """Return a fresh copy of a valid payload for the given step kind."""
    return copy.deepcopy(_SAMPLES[coerce_kind(kind)])


def build_workflow(
    kinds: Sequence[StepKind | str],
    *,
    configure: bool | Sequence[bool] = True,
    settings: FlowkitSettings | None = None,
    simulator: RunSimulator | None = None,
) -> WorkflowController:
    """Build a controller whose steps have the given kinds, in order.

    The first kind must be a trigger; it reuses the controller's initial
    trigger. Each later step is inserted after the previous one.

    Args:
        kinds: Step kinds in sequence order.
        configure: True/False for all steps, or one flag per step. Configured
            steps get the sample payload of their kind.
        settings: Controller settings.
        simulator: Run simulator to attach.

    Returns:
        The populated controller.
    """
    if not kinds or coerce_kind(kinds[0]) != StepKind.TRIGGER:
        raise ValueError("build_workflow needs a trigger as its first kind")

    flags = [configure] * len(kinds) if isinstance(configure, bool) else list(configure)
    if len(flags) != len(kinds):
        raise ValueError("configure needs one flag per step")

    controller = WorkflowController(settings=settings, simulator=simulator)
    previous = controller.steps[0]
    if flags[0]:
        controller.configure_step(previous.id, sample_payload(StepKind.TRIGGER))

    for kind, flag in zip(kinds[1:], flags[1:]):
        step = controller.add_step(kind, after_id=previous.id)
        if flag:
            controller.configure_step(step.id, sample_payload(kind))
        previous = step

    return controller


def collect_results(results: Iterable[StepResult]) -> list[tuple[str, RunStatus]]:
    """Drain a result stream into (step_id, status) pairs."""
    return [(r.step_id, r.status) for r in results]


def final_statuses(results: Iterable[StepResult]) -> dict[str, RunStatus]:
    """Drain a result stream and keep the last status reported per step."""
    statuses: dict[str, RunStatus] = {}
    for result in results:
        statuses[result.step_id] = result.status
    return statuses
