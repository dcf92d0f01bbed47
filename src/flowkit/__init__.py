"""flowkit: Linear automation workflows with variable binding and simulated test runs."""

__version__ = "0.1.0"

from flowkit.errors import (
    ErrorKind,
    FlowkitError,
    InvalidStateError,
    NotFoundError,
    ValidationFailure,
)
from flowkit.loader import build_controller, load_session
from flowkit.settings import FlowkitSettings, load_settings
from flowkit.workflow import (
    RunSimulator,
    RunStatus,
    SimulatorConfig,
    Step,
    StepKind,
    StepRegistry,
    StepResult,
    Variable,
    WorkflowController,
    build_catalog,
)

__all__ = [
    # Core
    "RunSimulator",
    "SimulatorConfig",
    "StepRegistry",
    "WorkflowController",
    "build_catalog",
    # Models
    "RunStatus",
    "Step",
    "StepKind",
    "StepResult",
    "Variable",
    # Configuration
    "FlowkitSettings",
    "load_settings",
    # Sessions
    "build_controller",
    "load_session",
    # Errors
    "ErrorKind",
    "FlowkitError",
    "InvalidStateError",
    "NotFoundError",
    "ValidationFailure",
]
