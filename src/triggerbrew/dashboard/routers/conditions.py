"""Condition-logic editing endpoints.

These are stateless: the editor posts its current conditions and logic
string and receives the updated pair (or the validation report) back.
"""

from __future__ import annotations

from fastapi import APIRouter, HTTPException

from triggerbrew.conditions.editing import append_condition, remove_condition
from triggerbrew.conditions.evaluator import evaluate_condition_logic
from triggerbrew.conditions.logic import validate_condition_logic
from triggerbrew.conditions.models import (
    condition_from_dict,
    conditions_from_list,
    conditions_to_list,
)
from triggerbrew.dashboard.models import (
    AppendConditionBody,
    EvaluateLogicBody,
    RemoveConditionBody,
    ValidateLogicBody,
)

router = APIRouter(prefix="/api/conditions")


def _parse_conditions(items):
    try:
        return conditions_from_list(items)
    except ValueError as e:
        raise HTTPException(422, str(e))


@router.post("/validate")
async def validate_logic(body: ValidateLogicBody):
    return validate_condition_logic(body.logic, body.conditions_count).to_dict()


@router.post("/append")
async def append(body: AppendConditionBody):
    conditions = _parse_conditions(body.conditions)
    try:
        new_condition = condition_from_dict(body.condition) if body.condition else None
        new_conditions, logic = append_condition(
            conditions, body.condition_logic, new_condition, kind=body.kind,
        )
    except ValueError as e:
        raise HTTPException(422, str(e))
    return {"conditions": conditions_to_list(new_conditions), "condition_logic": logic}


@router.post("/remove")
async def remove(body: RemoveConditionBody):
    conditions = _parse_conditions(body.conditions)
    new_conditions, logic = remove_condition(conditions, body.condition_logic, body.index)
    return {"conditions": conditions_to_list(new_conditions), "condition_logic": logic}


@router.post("/evaluate")
async def evaluate(body: EvaluateLogicBody):
    validation = validate_condition_logic(body.condition_logic, len(body.results))
    return {
        "result": evaluate_condition_logic(body.condition_logic, body.results),
        "is_valid": validation.is_valid,
    }
