"""Environment configuration for flowkit.

Parses FLOWKIT_* environment variables into a typed FlowkitSettings object.
This is the only place where env vars are read.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator

from flowkit.errors import ValidationFailure

# Upper bound on the simulated per-step latency of a test run
MAX_STEP_DELAY_MS = 10_000


class FlowkitSettings(BaseModel):
    """Settings for a workflow editing session."""

    step_delay_ms: int = Field(
        default=0,
        ge=0,
        le=MAX_STEP_DELAY_MS,
        description="FLOWKIT_STEP_DELAY_MS - Simulated latency per test-run step",
    )
    strict_bindings: bool = Field(
        default=True,
        description="FLOWKIT_STRICT_BINDINGS - Reject payloads with unresolved variable tokens",
    )
    log_level: str = Field(default="INFO", description="FLOWKIT_LOG_LEVEL - Logging level")

    @field_validator("step_delay_ms", mode="before")
    @classmethod
    def parse_int(cls, v: Any) -> Any:
        """Parse string to int."""
        if isinstance(v, str) and v.strip():
            try:
                return int(v)
            except ValueError:
                raise ValueError(f"not an integer: {v!r}") from None
        return v

    @field_validator("strict_bindings", mode="before")
    @classmethod
    def parse_bool(cls, v: Any) -> Any:
        """Parse "true"/"false"/"1"/"0" strings."""
        if isinstance(v, str):
            return v.strip().lower() in ("1", "true", "yes", "on")
        return v

    @field_validator("log_level")
    @classmethod
    def upper_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"unknown log level {v!r}")
        return level


# Environment variable names (single source of truth)
ENV_VARS = {
    "step_delay_ms": "FLOWKIT_STEP_DELAY_MS",
    "strict_bindings": "FLOWKIT_STRICT_BINDINGS",
    "log_level": "FLOWKIT_LOG_LEVEL",
}


def load_settings(environ: Mapping[str, str] | None = None) -> FlowkitSettings:
    """Load settings from environment variables.

    Args:
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Parsed FlowkitSettings

    Raises:
        ValidationFailure: If a variable holds an invalid value
    """
    if environ is None:
        environ = dict(os.environ)

    kwargs: dict[str, Any] = {}
    for field_name, env_var in ENV_VARS.items():
        value = environ.get(env_var)
        if value is not None and value != "":
            kwargs[field_name] = value

    try:
        return FlowkitSettings(**kwargs)
    except ValidationError as e:
        first = e.errors()[0]
        field_name = str(first["loc"][0]) if first["loc"] else ""
        raise ValidationFailure(
            f"Invalid setting {ENV_VARS.get(field_name, field_name)}: {first['msg']}",
            field=ENV_VARS.get(field_name, field_name),
            value=first.get("input"),
        ) from e
