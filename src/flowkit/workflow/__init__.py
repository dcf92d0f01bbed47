"""Linear workflow model and test-run simulation.

This module provides:
- Step/StepKind and the kind-specific payload models
- StepRegistry: the ordered step sequence with insert/configure/delete
- build_catalog: variables available to a step from the configured steps before it
- RunSimulator: sequential, fail-fast test runs with injectable outcome policies
- WorkflowController: the operations a presentation layer calls
- TriggerDraft/ConditionDraft/ActionDraft: editors that build validated payloads

Example:
    controller = WorkflowController()
    trigger = controller.steps[0]
    controller.configure_step(trigger.id, {"name": "New Signup",
                                           "output_schema": {"email": "string"}})
    action = controller.add_step("action", after_id=trigger.id)
    controller.configure_step(action.id, {"name": "Send Email",
                                          "field_mapping": {"to": "{{trigger.email}}"}})
    for result in controller.start_test_run():
        print(result.step_id, result.status.value)
"""

from flowkit.workflow.catalog import (
    DEFAULT_TRIGGER_FIELDS,
    MOVED_REASON,
    BindingIssue,
    VariableRef,
    build_catalog,
    check_step_bindings,
    find_dangling_bindings,
    group_by_source,
    search_variables,
    shifted_bindings,
    step_bindings,
    step_variables,
)
from flowkit.workflow.conditions import (
    OPERATORS,
    Operator,
    describe_rule,
    evaluate_rules,
    operators_for,
)
from flowkit.workflow.controller import WorkflowController, WorkflowSnapshot
from flowkit.workflow.drafts import (
    ACTION_TEMPLATES,
    TRIGGER_TYPES,
    ActionDraft,
    ConditionDraft,
    FieldSpec,
    OutputField,
    TriggerDraft,
)
from flowkit.workflow.models import (
    ActionPayload,
    ConditionPayload,
    ConditionRule,
    Payload,
    RunStatus,
    Step,
    StepKind,
    StepResult,
    TriggerPayload,
    Variable,
    VariableType,
    parse_payload,
)
from flowkit.workflow.registry import StepRegistry, coerce_kind
from flowkit.workflow.simulator import (
    OutcomePolicy,
    RunSimulator,
    SimulatorConfig,
    TestRunSummary,
    always_fail,
    always_succeed,
    scripted_policy,
    summarize,
)
from flowkit.workflow.tokens import extract_tokens, make_token, render_tokens

__all__ = [
    # Models
    "ActionPayload",
    "ConditionPayload",
    "ConditionRule",
    "Payload",
    "RunStatus",
    "Step",
    "StepKind",
    "StepResult",
    "TriggerPayload",
    "Variable",
    "VariableType",
    "parse_payload",
    # Registry
    "StepRegistry",
    "coerce_kind",
    # Catalog and bindings
    "DEFAULT_TRIGGER_FIELDS",
    "MOVED_REASON",
    "BindingIssue",
    "VariableRef",
    "build_catalog",
    "check_step_bindings",
    "find_dangling_bindings",
    "group_by_source",
    "search_variables",
    "shifted_bindings",
    "step_bindings",
    "step_variables",
    "extract_tokens",
    "make_token",
    "render_tokens",
    # Conditions
    "OPERATORS",
    "Operator",
    "describe_rule",
    "evaluate_rules",
    "operators_for",
    # Simulator
    "OutcomePolicy",
    "RunSimulator",
    "SimulatorConfig",
    "TestRunSummary",
    "always_fail",
    "always_succeed",
    "scripted_policy",
    "summarize",
    # Controller
    "WorkflowController",
    "WorkflowSnapshot",
    # Drafts
    "ACTION_TEMPLATES",
    "TRIGGER_TYPES",
    "ActionDraft",
    "ConditionDraft",
    "FieldSpec",
    "OutputField",
    "TriggerDraft",
]
