"""Condition-logic expressions: tokenizer and validator.

A logic expression combines condition indices with ``AND`` / ``OR`` and
parentheses, e.g. ``"(0 OR 1) AND 2"``.  Tokens are separated by
whitespace, and each bracket is a token of its own whether or not it is
spaced, so ``"(0"`` reads as ``"( 0"``.

Index tokens are optionally-signed decimal integer literals.  Anything
else that merely *looks* numeric (``1e2``, ``0x10``, ``1.5``) is reported
as an unknown operator rather than being coerced into an index.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

INDEX = "index"
AND = "and"
OR = "or"
LPAREN = "lparen"
RPAREN = "rparen"
WORD = "word"

OPERATOR_KINDS = frozenset({AND, OR})

_INDEX_RE = re.compile(r"[+-]?[0-9]+")
_TOKEN_RE = re.compile(r"[()]|[^\s()]+")

_KIND_LABELS = {
    "brackets": "()",
    "index": "#",
    "syntax": "!",
    "operator": "OP",
}


@dataclass(frozen=True)
class Token:
    """One token of a logic expression: a bracket, an index or a word.

    ``text`` keeps the original spelling (``"and"`` stays lowercase) so that
    re-serialising an unedited token list keeps every token as written.
    ``value`` is only set for :data:`INDEX` tokens.
    """

    kind: str
    text: str
    value: int | None = None

    @property
    def is_operator(self) -> bool:
        return self.kind in OPERATOR_KINDS


def classify(text: str) -> Token:
    if text == "(":
        return Token(LPAREN, text)
    if text == ")":
        return Token(RPAREN, text)
    if _INDEX_RE.fullmatch(text):
        return Token(INDEX, text, int(text))
    upper = text.upper()
    if upper == "AND":
        return Token(AND, text)
    if upper == "OR":
        return Token(OR, text)
    return Token(WORD, text)


def tokenize(logic: str | None) -> list[Token]:
    """Split *logic* into brackets and whitespace-delimited words."""
    if not logic:
        return []
    return [classify(part) for part in _TOKEN_RE.findall(logic)]


def index_token(value: int) -> Token:
    return Token(INDEX, str(value), value)


def serialize(tokens: list[Token]) -> str:
    """Join tokens with single spaces, keeping brackets tight: ``(0 OR 1)``."""
    parts: list[str] = []
    prev: Token | None = None
    for tok in tokens:
        if prev is not None and prev.kind != LPAREN and tok.kind != RPAREN:
            parts.append(" ")
        parts.append(tok.text)
        prev = tok
    return "".join(parts)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ValidationError:
    kind: str
    message: str
    position: int | None = None

    def to_dict(self) -> dict:
        return {"type": self.kind, "message": self.message, "position": self.position}


@dataclass
class ValidationResult:
    errors: list[ValidationError] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict:
        return {
            "is_valid": self.is_valid,
            "errors": [e.to_dict() for e in self.errors],
        }


def validate_condition_logic(logic: str | None, conditions_count: int) -> ValidationResult:
    """Check *logic* against a list of *conditions_count* conditions.

    Every rule runs on every input; errors are accumulated in the order
    brackets, indices, unknown operators, adjacent pairs, start/end.  An
    empty or whitespace-only expression is valid.
    """
    result = ValidationResult()
    tokens = tokenize(logic)
    if not tokens:
        return result

    errors = result.errors

    # Brackets
    depth = 0
    for pos, tok in enumerate(tokens):
        if tok.kind == LPAREN:
            depth += 1
        elif tok.kind == RPAREN:
            if depth == 0:
                errors.append(ValidationError(
                    "brackets", f"Unexpected closing bracket at position {pos}", pos,
                ))
            else:
                depth -= 1
    if depth > 0:
        errors.append(ValidationError("brackets", f"Unclosed brackets: {depth}"))

    # Index bounds
    for pos, tok in enumerate(tokens):
        if tok.kind != INDEX:
            continue
        if tok.value < 0:
            errors.append(ValidationError(
                "index", f"Negative index {tok.value} at position {pos}", pos,
            ))
        elif tok.value >= conditions_count:
            errors.append(ValidationError(
                "index",
                f"Index {tok.value} is out of range for {conditions_count} "
                f"condition(s) at position {pos}",
                pos,
            ))

    # Unknown operators
    for pos, tok in enumerate(tokens):
        if tok.kind == WORD:
            errors.append(ValidationError(
                "operator",
                f'Unknown operator "{tok.text}" at position {pos}. Use AND or OR',
                pos,
            ))

    # Adjacent pairs
    for pos, (cur, nxt) in enumerate(zip(tokens, tokens[1:])):
        if cur.is_operator and nxt.is_operator:
            errors.append(ValidationError(
                "syntax",
                f'Two operators in a row: "{cur.text} {nxt.text}" at position {pos}',
                pos,
            ))
        if cur.kind == INDEX and nxt.kind == INDEX:
            errors.append(ValidationError(
                "syntax",
                f'Two indices without an operator: "{cur.text} {nxt.text}" '
                f"at position {pos}",
                pos,
            ))
        if cur.kind == LPAREN and nxt.is_operator:
            errors.append(ValidationError(
                "syntax", f"Operator after opening bracket at position {pos}", pos,
            ))
        if cur.is_operator and nxt.kind == RPAREN:
            errors.append(ValidationError(
                "syntax", f"Operator before closing bracket at position {pos}", pos,
            ))

    # Start / end
    first, last = tokens[0], tokens[-1]
    if first.is_operator:
        errors.append(ValidationError(
            "syntax", f'Expression cannot start with operator "{first.text}"', 0,
        ))
    if last.is_operator:
        errors.append(ValidationError(
            "syntax",
            f'Expression cannot end with operator "{last.text}"',
            len(tokens) - 1,
        ))

    return result


def error_kind_label(kind: str) -> str:
    """Short badge shown next to an error of *kind*."""
    return _KIND_LABELS.get(kind, "!")
