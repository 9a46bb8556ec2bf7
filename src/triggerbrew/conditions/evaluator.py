"""Evaluate conditions and logic expressions against an incoming event."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from triggerbrew.conditions.logic import (
    AND,
    INDEX,
    LPAREN,
    OR,
    RPAREN,
    Token,
    tokenize,
    validate_condition_logic,
)
from triggerbrew.conditions.models import Condition, TriggerCondition

logger = logging.getLogger(__name__)


@dataclass
class TriggerContext:
    """What happened, and the value of the input being watched."""

    trigger_type: str
    value: Any = None


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return ", ".join(_as_text(v) for v in value)
    return str(value)


def evaluate_condition(condition: Condition, context: TriggerContext) -> bool:
    if isinstance(condition, TriggerCondition):
        return condition.trigger_type == context.trigger_type

    text = _as_text(context.value)
    expected = condition.value or ""
    op = condition.operator
    if op == "is_empty":
        return not text.strip()
    if op == "is_not_empty":
        return bool(text.strip())
    if op == "equals":
        return text == expected
    if op == "contains":
        return expected in text
    if op == "not_contains":
        return expected not in text
    if op == "starts_with":
        return text.startswith(expected)
    if op == "ends_with":
        return text.endswith(expected)
    logger.warning("Unknown filter operator %r on condition %s", op, condition.id)
    return False


class _Parser:
    """Recursive-descent evaluator; AND binds tighter than OR."""

    def __init__(self, tokens: list[Token], results: list[bool]) -> None:
        self._tokens = tokens
        self._results = results
        self._pos = 0

    def _peek(self) -> Token | None:
        if self._pos < len(self._tokens):
            return self._tokens[self._pos]
        return None

    def _at(self, kind: str) -> bool:
        tok = self._peek()
        return tok is not None and tok.kind == kind

    def _take(self) -> Token:
        tok = self._tokens[self._pos]
        self._pos += 1
        return tok

    def parse(self) -> bool:
        value = self._expr()
        if self._peek() is not None:
            raise ValueError(f"Unexpected token {self._peek().text!r}")
        return value

    def _expr(self) -> bool:
        value = self._term()
        while self._at(OR):
            self._take()
            rhs = self._term()
            value = value or rhs
        return value

    def _term(self) -> bool:
        value = self._factor()
        while self._at(AND):
            self._take()
            rhs = self._factor()
            value = value and rhs
        return value

    def _factor(self) -> bool:
        tok = self._peek()
        if tok is None:
            raise ValueError("Unexpected end of expression")
        self._take()
        if tok.kind == INDEX:
            return self._results[tok.value]
        if tok.kind == LPAREN:
            value = self._expr()
            closing = self._peek()
            if closing is None or closing.kind != RPAREN:
                raise ValueError("Missing closing bracket")
            self._take()
            return value
        raise ValueError(f"Unexpected token {tok.text!r}")


def evaluate_condition_logic(logic: str | None, results: list[bool]) -> bool:
    """Combine per-condition *results* according to *logic*.

    Empty logic requires every condition.  Invalid logic also falls back
    to requiring every condition, with a warning.
    """
    tokens = tokenize(logic)
    if not tokens:
        return all(results)

    validation = validate_condition_logic(logic, len(results))
    if not validation.is_valid:
        logger.warning(
            "Invalid condition logic %r (%d errors); requiring all conditions",
            logic, len(validation.errors),
        )
        return all(results)

    try:
        return _Parser(tokens, results).parse()
    except ValueError as exc:
        logger.warning(
            "Could not evaluate condition logic %r: %s; requiring all conditions",
            logic, exc,
        )
        return all(results)


def evaluate_conditions(
    conditions: list[Condition],
    logic: str | None,
    context: TriggerContext,
) -> tuple[bool, list[bool]]:
    """Evaluate every condition, then the logic; returns ``(met, results)``."""
    results = [evaluate_condition(c, context) for c in conditions]
    return evaluate_condition_logic(logic, results), results
