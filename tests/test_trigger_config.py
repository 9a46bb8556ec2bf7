"""Tests for trigger configuration parsing, validation, and evaluation."""

from __future__ import annotations

import pytest

from triggerbrew.conditions.models import FilterCondition, TriggerCondition
from triggerbrew.conditions.trigger_config import (
    InputTrigger,
    TriggerConfig,
    evaluate_trigger_config,
    validate_trigger_config,
)


def _title_trigger(logic="0 AND 1", value="bug", trigger_id="it1"):
    return InputTrigger(
        id=trigger_id,
        input_id="task_title",
        conditions=[
            TriggerCondition(id="t", trigger_type="on_update"),
            FilterCondition(id="f", operator="contains", value=value),
        ],
        condition_logic=logic,
    )


def test_defaults():
    config = TriggerConfig()
    assert config.enabled is False
    assert config.strategy == "any_match"
    assert config.input_triggers == []


def test_round_trip_through_stored_shape():
    stored = {
        "enabled": True,
        "strategy": "all_match",
        "intervalMinutes": 15,
        "inputTriggers": [{
            "id": "it1",
            "inputId": "task_title",
            "conditions": [{"id": "c", "type": "filter", "operator": "is_not_empty"}],
            "conditionLogic": "0",
        }],
    }
    config = TriggerConfig.from_dict(stored)
    assert config.interval_minutes == 15
    assert config.input_triggers[0].input_id == "task_title"
    assert config.to_dict() == stored


def test_from_dict_accepts_none():
    assert TriggerConfig.from_dict(None) == TriggerConfig()


@pytest.mark.parametrize("data,message", [
    ("enabled", "must be an object"),
    ({"inputTriggers": "oops"}, "must be a list"),
    ({"inputTriggers": ["oops"]}, "Input trigger must be an object"),
    ({"inputTriggers": [{"id": "x", "conditions": {"type": "filter"}}]}, "Conditions must be a list"),
    ({"inputTriggers": [{"id": "x", "conditions": [7]}]}, "Condition must be an object"),
    ({"inputTriggers": [{"id": "x", "conditionLogic": 5}]}, "conditionLogic"),
    ({"inputTriggers": [{"id": "x", "inputId": ["task_title"]}]}, "inputId"),
    ({"intervalMinutes": "soon"}, "intervalMinutes"),
    ({"intervalMinutes": 1.5}, "intervalMinutes"),
    ({"intervalMinutes": True}, "intervalMinutes"),
])
def test_from_dict_rejects_malformed_shapes(data, message):
    with pytest.raises(ValueError, match=message):
        TriggerConfig.from_dict(data)


# ------------------------------------------------------------------
# Validation
# ------------------------------------------------------------------


def test_empty_config_only_warns():
    report = validate_trigger_config(TriggerConfig(enabled=True))
    assert report.valid
    assert report.warnings[0]["field"] == "inputTriggers"


def test_missing_input_and_conditions():
    config = TriggerConfig(input_triggers=[InputTrigger(id="x", input_id=None)])
    report = validate_trigger_config(config)
    fields = [e["field"] for e in report.errors]
    assert fields == ["inputTriggers[0].inputId", "inputTriggers[0].conditions"]
    assert report.errors[0]["message"].startswith("Trigger 1:")


def test_logic_errors_are_reported_per_trigger():
    config = TriggerConfig(input_triggers=[_title_trigger(logic="0 AND 5")])
    report = validate_trigger_config(config)
    assert not report.valid
    assert report.errors[0]["field"] == "inputTriggers[0].conditionLogic"
    assert "out of range" in report.errors[0]["message"]


def test_single_condition_skips_logic_check():
    trigger = InputTrigger(
        id="x",
        input_id="task_title",
        conditions=[FilterCondition(id="f", operator="is_not_empty")],
        condition_logic="garbage (",
    )
    assert validate_trigger_config(TriggerConfig(input_triggers=[trigger])).valid


def test_condition_problems_and_strategy():
    trigger = InputTrigger(
        id="x",
        input_id="task_title",
        conditions=[FilterCondition(id="f", operator="equals")],
    )
    report = validate_trigger_config(TriggerConfig(input_triggers=[trigger], strategy="most"))
    fields = [e["field"] for e in report.errors]
    assert fields == ["inputTriggers[0].conditions[0]", "strategy"]
    assert report.to_dict()["valid"] is False


@pytest.mark.parametrize("interval", [0, -5])
def test_non_positive_interval_is_an_error(interval):
    report = validate_trigger_config(TriggerConfig(interval_minutes=interval))
    assert [e["field"] for e in report.errors] == ["intervalMinutes"]


def test_positive_interval_is_accepted():
    assert validate_trigger_config(TriggerConfig(interval_minutes=15)).valid


# ------------------------------------------------------------------
# Evaluation
# ------------------------------------------------------------------


def test_disabled_config_never_fires():
    config = TriggerConfig(enabled=False, input_triggers=[_title_trigger()])
    assert not evaluate_trigger_config(config, "on_update", {"task_title": "bug"}).fired


def test_no_input_triggers_never_fires():
    assert not evaluate_trigger_config(TriggerConfig(enabled=True), "on_update").fired


def test_fires_when_logic_met():
    config = TriggerConfig(enabled=True, input_triggers=[_title_trigger()])
    evaluation = evaluate_trigger_config(config, "on_update", {"task_title": "login bug"})
    assert evaluation.fired
    assert evaluation.trigger_results == {"it1": True}
    assert not evaluate_trigger_config(config, "on_create", {"task_title": "bug"}).fired


def test_strategies():
    triggers = [
        _title_trigger(value="bug", trigger_id="a"),
        _title_trigger(value="crash", trigger_id="b"),
    ]
    inputs = {"task_title": "bug report"}
    any_cfg = TriggerConfig(enabled=True, input_triggers=triggers, strategy="any_match")
    all_cfg = TriggerConfig(enabled=True, input_triggers=triggers, strategy="all_match")
    assert evaluate_trigger_config(any_cfg, "on_update", inputs).fired
    result = evaluate_trigger_config(all_cfg, "on_update", inputs)
    assert not result.fired
    assert result.to_dict() == {"fired": False, "trigger_results": {"a": True, "b": False}}
