"""Tests for the step registry."""

from __future__ import annotations

import pytest

from flowkit.errors import ErrorKind, InvalidStateError, NotFoundError, ValidationFailure
from flowkit.workflow.models import ActionPayload, Step, StepKind, TriggerPayload
from flowkit.workflow.registry import StepRegistry, coerce_kind


@pytest.fixture
def registry() -> StepRegistry:
    return StepRegistry()


class TestInitialState:
    """Tests for a new registry."""

    def test_starts_with_unconfigured_trigger(self, registry):
        """A new workflow holds exactly one unconfigured trigger."""
        assert len(registry) == 1
        step = registry.steps[0]
        assert step.kind == StepKind.TRIGGER
        assert step.configured is False
        assert step.payload is None

    def test_initial_steps(self):
        steps = [Step(id="t", kind=StepKind.TRIGGER), Step(id="a", kind=StepKind.ACTION)]
        assert StepRegistry(steps).ids == ["t", "a"]

    def test_empty_initial_steps_rejected(self):
        with pytest.raises(InvalidStateError):
            StepRegistry([])

    def test_duplicate_ids_rejected(self):
        steps = [Step(id="x", kind=StepKind.TRIGGER), Step(id="x", kind=StepKind.ACTION)]
        with pytest.raises(InvalidStateError, match="unique"):
            StepRegistry(steps)


class TestInsert:
    """Tests for StepRegistry.insert()."""

    def test_insert_after_step(self, registry):
        trigger = registry.steps[0]
        action = registry.insert(StepKind.ACTION, after_id=trigger.id)
        condition = registry.insert("condition", after_id=trigger.id)

        assert registry.ids == [trigger.id, condition.id, action.id]
        assert condition.configured is False

    def test_new_ids_are_unique(self, registry):
        trigger = registry.steps[0]
        for _ in range(20):
            registry.insert(StepKind.ACTION, after_id=trigger.id)

        assert len(set(registry.ids)) == 21

    def test_insert_after_unknown_id(self, registry):
        with pytest.raises(NotFoundError) as exc_info:
            registry.insert(StepKind.ACTION, after_id="nope")

        assert exc_info.value.kind == ErrorKind.NOT_FOUND
        assert exc_info.value.step_id == "nope"
        assert exc_info.value.available == registry.ids

    def test_condition_needs_anchor(self, registry):
        """Only a trigger may be placed at the head."""
        with pytest.raises(InvalidStateError):
            registry.insert(StepKind.CONDITION, after_id=None)

    def test_second_trigger_rejected(self, registry):
        with pytest.raises(InvalidStateError, match="already has a trigger"):
            registry.insert(StepKind.TRIGGER)

    def test_trigger_not_after_step(self, registry):
        trigger = registry.steps[0]
        action = registry.insert(StepKind.ACTION, after_id=trigger.id)
        registry.delete(trigger.id)

        with pytest.raises(InvalidStateError, match="start of the workflow"):
            registry.insert(StepKind.TRIGGER, after_id=action.id)

    def test_reinsert_trigger_at_head(self, registry):
        trigger = registry.steps[0]
        action = registry.insert(StepKind.ACTION, after_id=trigger.id)
        registry.delete(trigger.id)

        new_trigger = registry.insert(StepKind.TRIGGER)

        assert registry.ids == [new_trigger.id, action.id]
        assert new_trigger.id != trigger.id

    def test_unknown_kind(self, registry):
        with pytest.raises(ValidationFailure, match="Unknown step kind"):
            registry.insert("filter", after_id=registry.steps[0].id)

    def test_failed_insert_leaves_sequence_untouched(self, registry):
        before = registry.steps
        with pytest.raises(NotFoundError):
            registry.insert(StepKind.ACTION, after_id="nope")
        assert registry.steps is before


class TestConfigure:
    """Tests for StepRegistry.configure()."""

    def test_configure_sets_payload(self, registry):
        trigger = registry.steps[0]

        updated = registry.configure(trigger.id, {"name": "Form Submitted"})

        assert updated.configured is True
        assert isinstance(updated.payload, TriggerPayload)
        assert updated.id == trigger.id
        assert registry.get(trigger.id) == updated

    def test_reconfigure_replaces_payload(self, registry):
        """Configuring twice keeps one step holding the second payload."""
        trigger = registry.steps[0]
        action = registry.insert(StepKind.ACTION, after_id=trigger.id)
        payload_a = ActionPayload(name="Send Email")
        payload_b = ActionPayload(name="Send SMS", target_app="Twilio")

        registry.configure(action.id, payload_a)
        registry.configure(action.id, payload_b)

        assert len(registry) == 2
        assert registry.ids == [trigger.id, action.id]
        assert registry.get(action.id).payload == payload_b
        assert registry.get(action.id).configured is True

    def test_configure_unknown_step(self, registry):
        with pytest.raises(NotFoundError):
            registry.configure("nope", {"name": "X"})

    def test_invalid_payload_leaves_step_unconfigured(self, registry):
        trigger = registry.steps[0]
        with pytest.raises(ValidationFailure):
            registry.configure(trigger.id, {"name": ""})

        assert registry.get(trigger.id).configured is False

    def test_payload_of_wrong_kind(self, registry):
        with pytest.raises(ValidationFailure):
            registry.configure(registry.steps[0].id, ActionPayload(name="Send"))


class TestDelete:
    """Tests for StepRegistry.delete()."""

    def test_delete_returns_removed_step(self, registry):
        trigger = registry.steps[0]
        action = registry.insert(StepKind.ACTION, after_id=trigger.id)

        removed = registry.delete(action.id)

        assert removed == action
        assert registry.ids == [trigger.id]

    def test_delete_unknown_step(self, registry):
        with pytest.raises(NotFoundError):
            registry.delete("nope")

    def test_cannot_delete_last_step(self, registry):
        with pytest.raises(InvalidStateError, match="only step"):
            registry.delete(registry.steps[0].id)
        assert len(registry) == 1

    def test_delete_trigger_allowed_when_others_remain(self, registry):
        trigger = registry.steps[0]
        registry.insert(StepKind.ACTION, after_id=trigger.id)

        registry.delete(trigger.id)

        assert not registry.has_trigger()


class TestIsReady:
    """Tests for StepRegistry.is_ready()."""

    def test_lone_unconfigured_trigger_not_ready(self, registry):
        assert registry.is_ready() is False

    def test_ready_needs_trigger_and_action(self, registry):
        trigger = registry.steps[0]
        action = registry.insert(StepKind.ACTION, after_id=trigger.id)

        registry.configure(trigger.id, {"name": "Webhook"})
        assert registry.is_ready() is False

        registry.configure(action.id, {"name": "Send Email"})
        assert registry.is_ready() is True

    def test_condition_never_changes_readiness(self, registry):
        trigger = registry.steps[0]
        registry.configure(trigger.id, {"name": "Webhook"})
        condition = registry.insert(StepKind.CONDITION, after_id=trigger.id)
        assert registry.is_ready() is False

        registry.configure(condition.id, {"name": "Filter", "rules": [{"field": "{{trigger.id}}"}]})
        assert registry.is_ready() is False

        action = registry.insert(StepKind.ACTION, after_id=condition.id)
        registry.configure(action.id, {"name": "Send Email"})
        assert registry.is_ready() is True

        registry.delete(condition.id)
        assert registry.is_ready() is True


class TestCoerceKind:
    def test_accepts_names(self):
        assert coerce_kind("Action") == StepKind.ACTION
        assert coerce_kind(StepKind.TRIGGER) is StepKind.TRIGGER
