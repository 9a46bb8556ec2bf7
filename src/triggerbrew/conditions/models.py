"""Condition types referenced by agent trigger logic expressions.

A trigger configuration holds an ordered list of conditions.  Each
condition's position in that list is its *index*, which is how the logic
expression (``"(0 OR 1) AND 2"``) refers to it.  Indices are positional, so
the list and the expression must be edited together (see
:mod:`triggerbrew.conditions.editing`).
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, replace
from typing import Any, Union


TRIGGER_TYPES = ("on_create", "on_update", "scheduled", "on_demand")

FILTER_OPERATORS = (
    "is_empty",
    "is_not_empty",
    "equals",
    "contains",
    "not_contains",
    "starts_with",
    "ends_with",
)

# Operators that test the input on its own and take no comparison value.
VALUELESS_OPERATORS = frozenset({"is_empty", "is_not_empty"})


@dataclass(frozen=True)
class TriggerCondition:
    """Gate on the kind of event that woke the agent."""

    id: str
    trigger_type: str | None = "on_update"
    scheduled_time: str | None = None
    scheduled_timezone: str | None = None

    type = "trigger"

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"id": self.id, "type": self.type}
        if self.trigger_type is not None:
            data["triggerType"] = self.trigger_type
        if self.scheduled_time is not None:
            data["scheduledTime"] = self.scheduled_time
        if self.scheduled_timezone is not None:
            data["scheduledTimezone"] = self.scheduled_timezone
        return data


@dataclass(frozen=True)
class FilterCondition:
    """Gate on the value of the input the trigger watches."""

    id: str
    operator: str | None = "is_not_empty"
    value: str | None = None

    type = "filter"

    @property
    def requires_value(self) -> bool:
        return self.operator not in VALUELESS_OPERATORS

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"id": self.id, "type": self.type}
        if self.operator is not None:
            data["operator"] = self.operator
        if self.value is not None:
            data["value"] = self.value
        return data


Condition = Union[TriggerCondition, FilterCondition]


def condition_from_dict(data: dict[str, Any]) -> Condition:
    """Build a condition from its stored JSON shape.

    Accepts both the camelCase keys written by the editor and snake_case
    keys.

    Raises
    ------
    ValueError
        If *data* is not a mapping, or ``type`` is missing or not
        ``"trigger"`` / ``"filter"``.
    """
    if not isinstance(data, dict):
        raise ValueError(f"Condition must be an object, got {type(data).__name__}")
    kind = data.get("type")
    cond_id = str(data.get("id") or _new_condition_id())
    if kind == "trigger":
        return TriggerCondition(
            id=cond_id,
            trigger_type=data.get("triggerType", data.get("trigger_type")),
            scheduled_time=data.get("scheduledTime", data.get("scheduled_time")),
            scheduled_timezone=data.get(
                "scheduledTimezone", data.get("scheduled_timezone")
            ),
        )
    if kind == "filter":
        value = data.get("value")
        return FilterCondition(
            id=cond_id,
            operator=data.get("operator"),
            value=None if value is None else str(value),
        )
    raise ValueError(f"Unknown condition type: {kind!r}")


def conditions_from_list(items: list[dict[str, Any]] | None) -> list[Condition]:
    if items is None:
        return []
    if not isinstance(items, list):
        raise ValueError(f"Conditions must be a list, got {type(items).__name__}")
    return [condition_from_dict(item) for item in items]


def conditions_to_list(conditions: list[Condition]) -> list[dict[str, Any]]:
    return [c.to_dict() for c in conditions]


def validate_condition(condition: Condition) -> list[str]:
    """Return the problems that would stop *condition* from being evaluated."""
    problems: list[str] = []
    if isinstance(condition, TriggerCondition):
        if not condition.trigger_type:
            problems.append("trigger type is not selected")
        elif condition.trigger_type not in TRIGGER_TYPES:
            problems.append(f"unknown trigger type {condition.trigger_type!r}")
        elif condition.trigger_type == "scheduled" and not condition.scheduled_time:
            problems.append("scheduled trigger has no scheduled time")
    else:
        if not condition.operator:
            problems.append("filter operator is not selected")
        elif condition.operator not in FILTER_OPERATORS:
            problems.append(f"unknown filter operator {condition.operator!r}")
        elif condition.requires_value and condition.value is None:
            problems.append(f"operator {condition.operator!r} requires a value")
    return problems


def _new_condition_id() -> str:
    return f"condition_{int(time.time() * 1000)}_{uuid.uuid4().hex[:6]}"


def default_condition(kind: str) -> Condition:
    """Return the condition the editor inserts for a fresh *kind* row."""
    if kind == "trigger":
        return TriggerCondition(id=_new_condition_id(), trigger_type="on_update")
    if kind == "filter":
        return FilterCondition(id=_new_condition_id(), operator="is_not_empty")
    raise ValueError(f"Unknown condition type: {kind!r}")


def with_changes(condition: Condition, **changes: Any) -> Condition:
    """Return a copy of *condition* with *changes* applied."""
    return replace(condition, **changes)
