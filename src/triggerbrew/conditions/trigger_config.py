"""Agent trigger configuration: input triggers, strategy, validation."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from triggerbrew.conditions.evaluator import TriggerContext, evaluate_conditions
from triggerbrew.conditions.logic import validate_condition_logic
from triggerbrew.conditions.models import (
    Condition,
    conditions_from_list,
    conditions_to_list,
    validate_condition,
)

logger = logging.getLogger(__name__)

STRATEGIES = ("all_match", "any_match")


@dataclass
class InputTrigger:
    """Conditions watching one agent input (e.g. ``task_title``)."""

    id: str
    input_id: str | None
    conditions: list[Condition] = field(default_factory=list)
    condition_logic: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> InputTrigger:
        """Parse one stored input trigger.

        Raises ``ValueError`` when *data* does not have the stored shape.
        """
        if not isinstance(data, dict):
            raise ValueError(f"Input trigger must be an object, got {type(data).__name__}")
        input_id = data.get("inputId", data.get("input_id"))
        if input_id is not None and not isinstance(input_id, str):
            raise ValueError("inputId must be a string")
        logic = data.get("conditionLogic", data.get("condition_logic"))
        if logic is not None and not isinstance(logic, str):
            raise ValueError("conditionLogic must be a string")
        return cls(
            id=str(data.get("id", "")),
            input_id=input_id,
            conditions=conditions_from_list(data.get("conditions")),
            condition_logic=logic or "",
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "inputId": self.input_id,
            "conditions": conditions_to_list(self.conditions),
            "conditionLogic": self.condition_logic,
        }


@dataclass
class TriggerConfig:
    enabled: bool = False
    input_triggers: list[InputTrigger] = field(default_factory=list)
    strategy: str = "any_match"
    interval_minutes: int | None = None
    activate_module_id: str | None = None
    correct_activate_module_id: str | None = None
    not_correct_activate_module_id: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> TriggerConfig:
        """Parse the stored camelCase shape (snake_case keys also accepted).

        Raises
        ------
        ValueError
            If the structure does not match the stored shape or
            ``intervalMinutes`` is not an integer.
        """
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ValueError(f"Trigger config must be an object, got {type(data).__name__}")
        raw_triggers = data.get("inputTriggers", data.get("input_triggers"))
        if raw_triggers is None:
            raw_triggers = []
        if not isinstance(raw_triggers, list):
            raise ValueError("inputTriggers must be a list")
        interval = data.get("intervalMinutes", data.get("interval_minutes"))
        if interval is not None and (isinstance(interval, bool) or not isinstance(interval, int)):
            raise ValueError(f"intervalMinutes must be an integer, got {interval!r}")
        return cls(
            enabled=bool(data.get("enabled", False)),
            input_triggers=[InputTrigger.from_dict(t) for t in raw_triggers],
            strategy=data.get("strategy") or "any_match",
            interval_minutes=interval,
            activate_module_id=data.get("activateModuleId"),
            correct_activate_module_id=data.get("correctActivateModuleId"),
            not_correct_activate_module_id=data.get("notCorrectActivateModuleId"),
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "enabled": self.enabled,
            "inputTriggers": [t.to_dict() for t in self.input_triggers],
            "strategy": self.strategy,
        }
        optional = {
            "intervalMinutes": self.interval_minutes,
            "activateModuleId": self.activate_module_id,
            "correctActivateModuleId": self.correct_activate_module_id,
            "notCorrectActivateModuleId": self.not_correct_activate_module_id,
        }
        data.update({k: v for k, v in optional.items() if v is not None})
        return data


@dataclass
class ConfigValidation:
    errors: list[dict[str, str]] = field(default_factory=list)
    warnings: list[dict[str, str]] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict[str, Any]:
        return {"valid": self.valid, "errors": self.errors, "warnings": self.warnings}


def validate_trigger_config(config: TriggerConfig) -> ConfigValidation:
    """Collect every problem in *config*; nothing is raised."""
    result = ConfigValidation()

    if not config.input_triggers:
        result.warnings.append({
            "field": "inputTriggers",
            "message": "No input triggers configured",
        })

    for idx, trigger in enumerate(config.input_triggers):
        label = f"Trigger {idx + 1}"
        prefix = f"inputTriggers[{idx}]"
        if not trigger.input_id:
            result.errors.append({
                "field": f"{prefix}.inputId",
                "message": f"{label}: no input selected",
            })
        if not trigger.conditions:
            result.errors.append({
                "field": f"{prefix}.conditions",
                "message": f"{label}: no conditions added",
            })

        # A single condition needs no combining logic.
        if trigger.condition_logic and len(trigger.conditions) > 1:
            logic_result = validate_condition_logic(
                trigger.condition_logic, len(trigger.conditions)
            )
            for error in logic_result.errors:
                result.errors.append({
                    "field": f"{prefix}.conditionLogic",
                    "message": f"{label}: {error.message}",
                })

        for cond_idx, condition in enumerate(trigger.conditions):
            for problem in validate_condition(condition):
                result.errors.append({
                    "field": f"{prefix}.conditions[{cond_idx}]",
                    "message": f"{label}, condition {cond_idx + 1}: {problem}",
                })

    if config.strategy not in STRATEGIES:
        result.errors.append({
            "field": "strategy",
            "message": "Invalid strategy. Use all_match or any_match",
        })

    if config.interval_minutes is not None and (
        isinstance(config.interval_minutes, bool)
        or not isinstance(config.interval_minutes, int)
        or config.interval_minutes < 1
    ):
        result.errors.append({
            "field": "intervalMinutes",
            "message": "Interval must be a whole number of minutes, at least 1",
        })

    return result


@dataclass
class TriggerEvaluation:
    fired: bool
    trigger_results: dict[str, bool] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"fired": self.fired, "trigger_results": dict(self.trigger_results)}


def evaluate_trigger_config(
    config: TriggerConfig,
    trigger_type: str,
    inputs: dict[str, Any] | None = None,
) -> TriggerEvaluation:
    """Decide whether an agent with *config* fires for this event.

    *inputs* maps input ids (``task_title`` ...) to their current values.
    """
    if not config.enabled or not config.input_triggers:
        return TriggerEvaluation(fired=False)

    inputs = inputs or {}
    results: dict[str, bool] = {}
    met_flags: list[bool] = []
    for trigger in config.input_triggers:
        context = TriggerContext(
            trigger_type=trigger_type,
            value=inputs.get(trigger.input_id or ""),
        )
        met, _ = evaluate_conditions(trigger.conditions, trigger.condition_logic, context)
        results[trigger.id] = met
        met_flags.append(met)

    if config.strategy == "all_match":
        fired = all(met_flags)
    else:
        fired = any(met_flags)
    logger.debug("Trigger evaluation for %s: %s -> %s", trigger_type, results, fired)
    return TriggerEvaluation(fired=fired, trigger_results=results)
