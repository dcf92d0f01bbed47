"""JSON Schema validation for workflow session files."""

from __future__ import annotations

from typing import Any

import jsonschema
from jsonschema import Draft202012Validator

# Shape of a session file; payload contents are validated by the step models
SESSION_SCHEMA: dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "required": ["name", "steps"],
    "properties": {
        "name": {"type": "string", "minLength": 1},
        "enabled": {"type": "boolean"},
        "steps": {
            "type": "array",
            "minItems": 1,
            "items": {
                "type": "object",
                "required": ["kind"],
                "properties": {
                    "kind": {"enum": ["trigger", "condition", "action"]},
                    "payload": {"type": "object"},
                },
                "additionalProperties": False,
            },
        },
    },
    "additionalProperties": False,
}


class SchemaValidationError(Exception):
    """Raised when a document fails schema validation."""

    def __init__(self, message: str, errors: list[str]) -> None:
        super().__init__(message)
        self.errors = errors


def validate(instance: Any, schema: dict[str, Any] = SESSION_SCHEMA) -> None:
    """Validate an instance against a JSON schema.

    Args:
        instance: The data to validate.
        schema: The JSON schema to validate against (defaults to the session schema).

    Raises:
        SchemaValidationError: If validation fails.
    """
    validator = Draft202012Validator(schema)
    errors = list(validator.iter_errors(instance))

    if errors:
        error_messages = [_format_validation_error(e) for e in errors]
        raise SchemaValidationError(
            f"Schema validation failed with {len(errors)} error(s)",
            error_messages,
        )


def _format_validation_error(error: jsonschema.ValidationError) -> str:
    """Format a validation error into a human-readable string."""
    path = ".".join(str(p) for p in error.absolute_path) or "(root)"
    return f"At '{path}': {error.message}"
