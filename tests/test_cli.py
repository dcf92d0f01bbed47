"""Tests for the flowkit CLI."""

from __future__ import annotations

from pathlib import Path

import pytest
import typer
from typer.testing import CliRunner

from flowkit.cli import app, parse_outcomes, random_policy
from flowkit.workflow.models import Step, StepKind

SESSION = """
name: Signup Flow
steps:
  - kind: trigger
    payload:
      name: New Signup
      output_schema: {email: string, plan: string}
  - kind: condition
    payload:
      name: Paid Plan
      rules:
        - {field: "{{trigger.plan}}", operator: not_equals, value: free}
  - kind: action
    payload:
      name: Send Welcome
      field_mapping: {to: "{{trigger.email}}"}
"""

DANGLING_SESSION = """
name: Broken Flow
steps:
  - kind: trigger
    payload: {name: Webhook}
  - kind: action
    payload:
      name: Send
      field_mapping: {to: "{{trigger.email}}"}
"""


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def session_file(tmp_path: Path) -> Path:
    path = tmp_path / "signup.yaml"
    path.write_text(SESSION)
    return path


class TestRunCommand:
    """Tests for `flowkit run`."""

    def test_successful_run(self, runner, session_file):
        result = runner.invoke(app, ["run", "-w", str(session_file)])

        assert result.exit_code == 0
        assert "Signup Flow" in result.stdout
        assert "Test run Succeeded" in result.stdout

    def test_scripted_failure(self, runner, session_file):
        """A failing step ends the run with exit code 1."""
        result = runner.invoke(app, ["run", "-w", str(session_file), "--outcomes", "ok,fail"])

        assert result.exit_code == 1
        assert "Test run Failed" in result.stdout
        assert "Not attempted" in result.stdout

    def test_json_summary(self, runner, session_file):
        result = runner.invoke(
            app, ["run", "-w", str(session_file), "--outcomes", "fail", "--json"]
        )

        assert result.exit_code == 1
        assert '"result": "Failed"' in result.stdout
        assert '"attempted": 1' in result.stdout

    def test_outcomes_and_demo_are_exclusive(self, runner, session_file):
        result = runner.invoke(
            app, ["run", "-w", str(session_file), "--outcomes", "ok", "--demo"]
        )
        assert result.exit_code == 2

    def test_demo_mode_is_seeded(self, runner, session_file):
        args = ["run", "-w", str(session_file), "--demo", "--seed", "7", "--json"]

        first = runner.invoke(app, args)
        second = runner.invoke(app, args)

        assert first.exit_code == second.exit_code
        assert '"result"' in first.stdout

    def test_missing_file(self, runner, tmp_path):
        result = runner.invoke(app, ["run", "-w", str(tmp_path / "missing.yaml")])

        assert result.exit_code == 2
        assert "not found" in result.stdout

    def test_invalid_session(self, runner, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("name: Bad\nsteps: []\n")

        result = runner.invoke(app, ["run", "-w", str(path)])

        assert result.exit_code == 2
        assert "Invalid session file" in result.stdout

    def test_invalid_delay_setting(self, runner, session_file):
        result = runner.invoke(
            app, ["run", "-w", str(session_file)], env={"FLOWKIT_STEP_DELAY_MS": "soon"}
        )

        assert result.exit_code == 2
        assert "Configuration Error" in result.stdout


class TestCatalogCommand:
    """Tests for `flowkit catalog`."""

    def test_lists_variables(self, runner, session_file):
        result = runner.invoke(app, ["catalog", "-w", str(session_file)])

        assert result.exit_code == 0
        assert "{{trigger.email}}" in result.stdout
        assert "{{condition_1.result}}" in result.stdout
        assert "No variables available" in result.stdout

    def test_search(self, runner, session_file):
        result = runner.invoke(app, ["catalog", "-w", str(session_file), "-s", "plan"])

        assert result.exit_code == 0
        assert "{{trigger.plan}}" in result.stdout
        assert "{{trigger.email}}" not in result.stdout

    def test_unknown_step(self, runner, session_file):
        result = runner.invoke(app, ["catalog", "-w", str(session_file), "--step", "nope"])

        assert result.exit_code == 1
        assert "not found" in result.stdout


class TestValidateCommand:
    """Tests for `flowkit validate`."""

    def test_valid(self, runner, session_file):
        result = runner.invoke(app, ["validate", "-w", str(session_file)])

        assert result.exit_code == 0
        assert "is valid" in result.stdout

    def test_reports_dangling_bindings(self, runner, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text(DANGLING_SESSION)

        result = runner.invoke(app, ["validate", "-w", str(path)])

        assert result.exit_code == 1
        assert "Validation failed" in result.stdout
        assert "trigger.email" in result.stdout

    def test_malformed_yaml(self, runner, tmp_path):
        """A file that is not YAML is an input error, not a crash."""
        path = tmp_path / "bad.yaml"
        path.write_text("name: Bad\nsteps: [\n")

        result = runner.invoke(app, ["validate", "-w", str(path)])

        assert result.exit_code == 2
        assert "Invalid YAML" in result.stdout


class TestInfoCommands:
    """Tests for `flowkit operators` and `flowkit env`."""

    def test_operators(self, runner):
        result = runner.invoke(app, ["operators", "--type", "number"])

        assert result.exit_code == 0
        assert "greater_than" in result.stdout
        assert "starts_with" not in result.stdout

    def test_operators_unknown_type(self, runner):
        result = runner.invoke(app, ["operators", "--type", "date"])

        assert result.exit_code == 2
        assert "Unknown variable type" in result.stdout

    def test_env(self, runner):
        result = runner.invoke(app, ["env"])

        assert result.exit_code == 0
        assert "FLOWKIT_STEP_DELAY_MS" in result.stdout
        assert "FLOWKIT_STRICT_BINDINGS" in result.stdout


class TestHelpers:
    """Tests for CLI helper functions."""

    def test_parse_outcomes(self):
        assert parse_outcomes("ok, fail,success,,f") == [True, False, True, False]

    def test_parse_outcomes_rejects_unknown(self):
        with pytest.raises(typer.BadParameter):
            parse_outcomes("ok,maybe")

    def test_random_policy_bounds(self):
        step = Step(id="t", kind=StepKind.TRIGGER)

        assert all(random_policy(1.0, seed=1)(step) for _ in range(20))
        assert not any(random_policy(0.0, seed=1)(step) for _ in range(20))
