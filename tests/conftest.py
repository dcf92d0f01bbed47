"""Pytest fixtures for flowkit tests."""

from __future__ import annotations

from typing import Any

import pytest

from flowkit.settings import FlowkitSettings
from flowkit.testing import build_workflow, sample_payload
from flowkit.workflow.controller import WorkflowController
from flowkit.workflow.simulator import RunSimulator, SimulatorConfig


class FakeSleep:
    """Records sleep calls instead of sleeping."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def settings() -> FlowkitSettings:
    """Default settings: no delay, strict bindings."""
    return FlowkitSettings()


@pytest.fixture
def lenient_settings() -> FlowkitSettings:
    """Settings that allow unresolved bindings on configure."""
    return FlowkitSettings(strict_bindings=False)


@pytest.fixture
def fake_sleep() -> FakeSleep:
    return FakeSleep()


@pytest.fixture
def controller(settings: FlowkitSettings) -> WorkflowController:
    """A fresh controller holding a single unconfigured trigger."""
    return WorkflowController(settings=settings)


@pytest.fixture
def ready_workflow(settings: FlowkitSettings) -> WorkflowController:
    """Configured trigger -> condition -> action workflow."""
    return build_workflow(["trigger", "condition", "action"], settings=settings)


@pytest.fixture
def trigger_payload() -> dict[str, Any]:
    return sample_payload("trigger")


@pytest.fixture
def condition_payload() -> dict[str, Any]:
    return sample_payload("condition")


@pytest.fixture
def action_payload() -> dict[str, Any]:
    return sample_payload("action")


@pytest.fixture
def make_simulator(fake_sleep: FakeSleep):
    """Factory for simulators that never really sleep."""

    def _make(policy=None, step_delay_ms: int = 0) -> RunSimulator:
        kwargs: dict[str, Any] = {"step_delay_ms": step_delay_ms, "sleep": fake_sleep}
        if policy is not None:
            kwargs["outcome_policy"] = policy
        return RunSimulator(SimulatorConfig(**kwargs))

    return _make
