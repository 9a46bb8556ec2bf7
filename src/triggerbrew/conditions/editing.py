"""Keep a condition list and its logic expression in step.

Both helpers return new values and never touch their arguments.  They do
not validate: a malformed result is left for
:func:`~triggerbrew.conditions.logic.validate_condition_logic` to report.
"""

from __future__ import annotations

import logging
from typing import Any

from triggerbrew.conditions.logic import (
    INDEX,
    LPAREN,
    RPAREN,
    Token,
    index_token,
    serialize,
    tokenize,
)
from triggerbrew.conditions.models import Condition, default_condition, with_changes

logger = logging.getLogger(__name__)


def append_condition(
    conditions: list[Condition],
    logic: str,
    condition: Condition | None = None,
    kind: str = "trigger",
) -> tuple[list[Condition], str]:
    """Add *condition* (or a default one of *kind*) and AND it into *logic*.

    Existing logic is kept exactly as written and ``" AND n"`` is appended.
    When *logic* is empty but the list already has conditions, the
    expression is rebuilt as ``"0 AND 1 AND ... AND n"`` so every condition
    is referenced again.
    """
    if condition is None:
        condition = default_condition(kind)
    new_conditions = [*conditions, condition]
    new_index = len(new_conditions) - 1

    if tokenize(logic):
        return new_conditions, f"{logic.rstrip()} AND {new_index}"

    if new_index == 0:
        return new_conditions, "0"
    logger.debug(
        "Logic was empty with %d existing conditions; regenerating", new_index
    )
    return new_conditions, " AND ".join(str(i) for i in range(len(new_conditions)))


def remove_condition(
    conditions: list[Condition],
    logic: str,
    target_index: int,
) -> tuple[list[Condition], str]:
    """Drop the condition at *target_index* and its references in *logic*.

    Higher indices are shifted down by one.  Operators and brackets left
    dangling by the removal are tidied away.  An out-of-range index returns
    the inputs unchanged; removing the last condition clears the logic.
    """
    if not 0 <= target_index < len(conditions):
        return list(conditions), logic

    new_conditions = [c for i, c in enumerate(conditions) if i != target_index]
    if not new_conditions:
        return new_conditions, ""

    tokens = tokenize(logic)
    if not tokens:
        return new_conditions, logic

    kept = [t for t in tokens if not (t.kind == INDEX and t.value == target_index)]
    kept = _tidy(kept)
    renumbered = [
        index_token(t.value - 1) if t.kind == INDEX and t.value > target_index else t
        for t in kept
    ]
    return new_conditions, serialize(renumbered)


def remove_condition_by_id(
    conditions: list[Condition],
    logic: str,
    condition_id: str,
) -> tuple[list[Condition], str]:
    for idx, cond in enumerate(conditions):
        if cond.id == condition_id:
            return remove_condition(conditions, logic, idx)
    return list(conditions), logic


def update_condition(
    conditions: list[Condition],
    condition_id: str,
    **changes: Any,
) -> list[Condition]:
    """Replace the condition with *condition_id*; positions are unchanged."""
    return [
        with_changes(c, **changes) if c.id == condition_id else c
        for c in conditions
    ]


def _tidy(tokens: list[Token]) -> list[Token]:
    """Remove operators and brackets that no longer join anything.

    Repeats until stable:

    * ``X Y`` where both are operators collapses to ``Y``;
    * an operator at the start, right after ``(``, right before ``)`` or
      at the end is dropped;
    * an empty ``( )`` pair is dropped.
    """
    changed = True
    while changed:
        changed = False
        out: list[Token] = []
        for tok in tokens:
            prev = out[-1] if out else None
            if tok.is_operator:
                if prev is not None and prev.is_operator:
                    out[-1] = tok
                    changed = True
                    continue
                if prev is None or prev.kind == LPAREN:
                    changed = True
                    continue
            elif tok.kind == RPAREN and prev is not None:
                if prev.is_operator:
                    out.pop()
                    changed = True
                    prev = out[-1] if out else None
                if prev is not None and prev.kind == LPAREN:
                    out.pop()
                    changed = True
                    continue
            out.append(tok)
        while out and out[-1].is_operator:
            out.pop()
            changed = True
        tokens = out
    return tokens
