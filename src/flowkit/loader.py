"""Load a scripted editing session from YAML.

A session file lists the steps of a workflow in order. Loading replays it
through a WorkflowController (add, then configure), so every invariant and
payload validation applies exactly as for interactive edits. Nothing is ever
written back.

Example session file:
    name: Gmail to Slack
    enabled: true
    steps:
      - kind: trigger
        payload:
          name: Email Received
          source_app: Gmail
          output_schema: {email: string, subject: string}
      - kind: condition
        payload:
          name: From Gmail
          rules:
            - {field: "{{trigger.email}}", operator: ends_with, value: "@gmail.com"}
      - kind: action
        payload:
          name: Send Message
          target_app: Slack
          field_mapping: {text: "New mail: {{trigger.subject}}"}
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from flowkit.errors import ValidationFailure
from flowkit.schema import validate
from flowkit.settings import FlowkitSettings
from flowkit.workflow.controller import WorkflowController
from flowkit.workflow.models import StepKind
from flowkit.workflow.simulator import RunSimulator

logger = logging.getLogger(__name__)


def read_session_file(path: str | Path) -> dict[str, Any]:
    """Read and schema-check a session file.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        ValueError: If the file is not valid YAML or not a YAML object.
        SchemaValidationError: If the document does not match the session schema.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Session file not found: {path}")

    with open(path) as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in session file {path}: {e}") from e

    if not isinstance(data, dict):
        raise ValueError(f"Session file must contain a YAML object: {path}")

    validate(data)
    return data


def build_controller(
    data: dict[str, Any],
    settings: FlowkitSettings | None = None,
    simulator: RunSimulator | None = None,
) -> WorkflowController:
    """Replay a session document into a new controller.

    Args:
        data: Session document (see module docstring).
        settings: Session settings.
        simulator: Run simulator to attach.

    Returns:
        A controller holding the replayed workflow.

    Raises:
        ValidationFailure: If the first step is not a trigger or a payload is invalid.
        InvalidStateError: If a step cannot be placed.
    """
    validate(data)
    entries = data["steps"]
    if entries[0]["kind"] != StepKind.TRIGGER.value:
        raise ValidationFailure("The first step must be a trigger", field="steps.0.kind")

    controller = WorkflowController(
        settings=settings, simulator=simulator, name=data["name"]
    )

    previous = controller.steps[0]
    if "payload" in entries[0]:
        controller.configure_step(previous.id, entries[0]["payload"])

    for entry in entries[1:]:
        step = controller.add_step(entry["kind"], after_id=previous.id)
        if "payload" in entry:
            controller.configure_step(step.id, entry["payload"])
        previous = step

    controller.set_enabled(data.get("enabled", False))
    logger.info(f"Loaded session '{controller.name}' with {len(controller.steps)} steps")
    return controller


def load_session(
    path: str | Path,
    settings: FlowkitSettings | None = None,
    simulator: RunSimulator | None = None,
) -> WorkflowController:
    """Read a session file and replay it into a controller."""
    return build_controller(read_session_file(path), settings=settings, simulator=simulator)
