"""Test-run simulator.

Walks the configured steps of a workflow one at a time and reports each one
as PENDING, then SUCCESS or FAILURE. The first failure ends the run: later
steps are never attempted and never reported.

Step outcomes come from an injectable outcome policy, so tests can script
exactly which steps pass. Nothing here is random; a demo front end that
wants a flaky 80% success rate supplies its own policy.

Usage:
    simulator = RunSimulator(SimulatorConfig(outcome_policy=always_succeed))
    for result in simulator.run(registry.steps):
        print(result.step_id, result.status)
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable, Iterator, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from flowkit.errors import InvalidStateError, ValidationFailure
from flowkit.settings import MAX_STEP_DELAY_MS
from flowkit.workflow.models import RunStatus, Step, StepResult

logger = logging.getLogger(__name__)


OutcomePolicy = Callable[[Step], "RunStatus | bool"]


def always_succeed(step: Step) -> RunStatus:
    """Outcome policy where every step succeeds."""
    return RunStatus.SUCCESS


def always_fail(step: Step) -> RunStatus:
    """Outcome policy where every step fails."""
    return RunStatus.FAILURE


def scripted_policy(outcomes: Iterable[RunStatus | bool]) -> OutcomePolicy:
    """Outcome policy that replays a fixed sequence of outcomes.

    The n-th attempted step gets the n-th outcome. Steps beyond the script fail.

    Example:
        scripted_policy([True, False, True])  # success, failure, (never reached)
    """
    remaining = iter(list(outcomes))

    def _policy(step: Step) -> RunStatus | bool:
        return next(remaining, RunStatus.FAILURE)

    return _policy


@dataclass(frozen=True)
class SimulatorConfig:
    """Run simulator configuration.

    Attributes:
        outcome_policy: Decides each step's outcome (RunStatus or bool).
        step_delay_ms: Simulated latency per step, 0..MAX_STEP_DELAY_MS.
        sleep: Sleep function (injectable for testing).
    """

    outcome_policy: OutcomePolicy = always_succeed
    step_delay_ms: int = 0
    sleep: Callable[[float], None] = field(default=time.sleep)


def _to_status(outcome: RunStatus | bool) -> RunStatus:
    if isinstance(outcome, RunStatus):
        if outcome == RunStatus.PENDING:
            raise ValueError("Outcome policy returned PENDING")
        return outcome
    return RunStatus.SUCCESS if outcome else RunStatus.FAILURE


class RunSimulator:
    """Sequential, fail-fast test run over configured steps.

    Args:
        config: Simulator configuration (defaults: always succeed, no delay).
    """

    def __init__(self, config: SimulatorConfig | None = None) -> None:
        self.config = config or SimulatorConfig()

    def run(self, steps: Sequence[Step]) -> Iterator[StepResult]:
        """Start a test run.

        Validation happens immediately; results are produced lazily. The step
        list is snapshotted here, so later registry mutations do not affect a
        run in progress. Closing the iterator stops the run at its current
        suspension point.

        Args:
            steps: The full step sequence (unconfigured steps are skipped).

        Returns:
            Iterator of StepResult: PENDING then SUCCESS/FAILURE per step.

        Raises:
            InvalidStateError: If no step is configured.
            ValidationFailure: If the configured delay is out of bounds.
        """
        delay_ms = self.config.step_delay_ms
        if not 0 <= delay_ms <= MAX_STEP_DELAY_MS:
            raise ValidationFailure(
                f"step_delay_ms must be between 0 and {MAX_STEP_DELAY_MS}",
                field="step_delay_ms",
                value=delay_ms,
            )

        configured = tuple(s for s in steps if s.configured)
        if not configured:
            raise InvalidStateError("Cannot start a test run with no configured steps")

        logger.info(f"Starting test run over {len(configured)} configured steps")
        return self._iterate(configured)

    def _iterate(self, steps: tuple[Step, ...]) -> Iterator[StepResult]:
        for step in steps:
            yield StepResult(step_id=step.id, status=RunStatus.PENDING)

            if self.config.step_delay_ms:
                self.config.sleep(self.config.step_delay_ms / 1000)

            status = self._attempt(step)
            yield StepResult(step_id=step.id, status=status)

            if status == RunStatus.FAILURE:
                logger.warning(f"Test run stopping due to step failure: {step.id}")
                return

        logger.info("Test run completed successfully")

    def _attempt(self, step: Step) -> RunStatus:
        try:
            status = _to_status(self.config.outcome_policy(step))
        except Exception as e:
            logger.exception(f"Outcome policy raised for step {step.id}: {e}")
            return RunStatus.FAILURE

        if status == RunStatus.SUCCESS:
            logger.info(f"Step {step.id} succeeded")
        else:
            logger.error(f"Step {step.id} failed")
        return status


class TestRunSummary:
    """Outcome of a completed (or abandoned) test run.

    Attributes:
        result: "Succeeded" if every reported step succeeded, else "Failed".
        step_results: Final status per step id, in run order.
        attempted: Number of steps that reached a final status.
        skipped: Configured steps never attempted because of a failure.
        start_time: When the summary started collecting.
        end_time: When the result stream was exhausted.
    """

    __test__ = False  # not a pytest test class

    def __init__(self) -> None:
        self.result: str = "Succeeded"
        self.step_results: dict[str, RunStatus] = {}
        self.skipped: list[str] = []
        self.start_time: datetime | None = None
        self.end_time: datetime | None = None

    @property
    def attempted(self) -> int:
        return sum(1 for s in self.step_results.values() if s != RunStatus.PENDING)

    @property
    def failed_step(self) -> str | None:
        for step_id, status in self.step_results.items():
            if status == RunStatus.FAILURE:
                return step_id
        return None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "result": self.result,
            "step_results": {k: v.value for k, v in self.step_results.items()},
            "attempted": self.attempted,
            "skipped": list(self.skipped),
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "end_time": self.end_time.isoformat() if self.end_time else None,
        }


def summarize(
    results: Iterable[StepResult],
    steps: Sequence[Step] | None = None,
    on_result: Callable[[StepResult], None] | None = None,
) -> TestRunSummary:
    """Drain a result stream into a summary.

    Args:
        results: Result stream from RunSimulator.run().
        steps: The step sequence the run was started with (used to list skipped steps).
        on_result: Optional callback invoked for every result as it arrives.

    Returns:
        The run summary.
    """
    summary = TestRunSummary()
    summary.start_time = datetime.now(UTC)

    for result in results:
        if on_result is not None:
            on_result(result)
        summary.step_results[result.step_id] = result.status
        if result.status == RunStatus.FAILURE:
            summary.result = "Failed"

    if summary.step_results and any(s == RunStatus.PENDING for s in summary.step_results.values()):
        # Stream ended mid-step (consumer closed it)
        summary.result = "Failed"

    if steps is not None:
        summary.skipped = [
            s.id for s in steps if s.configured and s.id not in summary.step_results
        ]

    summary.end_time = datetime.now(UTC)
    return summary
