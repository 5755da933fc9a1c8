# /tests/test_dispatch.py
import pytest
from pydantic import ValidationError

from stepengine.core.models import ActionKind, ParsedTestStep
from stepengine.execution.dispatch import ACTION_HANDLERS, dispatch


def test_every_action_kind_has_a_handler():
    assert set(ACTION_HANDLERS) == set(ActionKind)


def test_unknown_action_fails_validation():
    with pytest.raises(ValidationError):
        ParsedTestStep.model_validate({"action": "teleport"})


def test_camel_case_fields_are_accepted():
    step = ParsedTestStep.model_validate({
        "action": "dragAndDrop", "target": "#a", "destinationTarget": "#b", "originalStep": "drag a to b",
    })
    assert step.action is ActionKind.DRAG_AND_DROP
    assert step.destination_target == "#b"
    assert step.original_step == "drag a to b"


def test_steps_are_immutable():
    step = ParsedTestStep(action=ActionKind.CLICK, target="#a")
    with pytest.raises(ValidationError):
        step.target = "#b"


def test_dispatch_routes_to_handler(ctx, step_log):
    dispatch(ctx, ParsedTestStep(action=ActionKind.SKIP, value="flaky on CI"))
    assert step_log.lines() == ["[Skip] Step intentionally skipped: flaky on CI"]
