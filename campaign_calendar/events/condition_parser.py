"""
Conditional event expression language.

A deliberately small grammar over a flat registry of already-evaluated
events. It supports boolean logic, comparisons and list membership, and
nothing else:

    or_expr    := and_expr ('||' and_expr)*
    and_expr   := comparison ('&&' comparison)*
    comparison := unary (('==' | '!=' | '<' | '<=' | '>' | '>=' | 'in') unary)?
    unary      := '!' unary | primary
    primary    := '(' or_expr ')' | 'true' | 'false' | NUMBER | STRING
                | '[' [primary (',' primary)*] ']' | event_ref
    event_ref  := 'events' '[' STRING ']' '.' ('active' | 'state'
                | 'effects' '[' STRING ']')

Examples:
    events['full-moon'].active
    events['weather'].state == 'Storm' && !events['festival'].active
    events['weather'].state in ['Storm', 'Blizzard']
    events['market'].effects['price_mult_global'] > 1

An event id missing from the registry reads as inactive with an empty state
and no effects, and is reported in ConditionResult.missing_event_ids.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

logger = logging.getLogger(__name__)


class ConditionParseError(Exception):
    """Raised internally for malformed condition expressions."""


@dataclass(frozen=True)
class EventSnapshot:
    """What a condition can see of one event."""
    active: bool = False
    state: str = ""
    effects: Mapping[str, Any] = field(default_factory=dict)


MISSING_EVENT = EventSnapshot()


@dataclass
class ConditionResult:
    """Outcome of evaluating a condition."""
    success: bool
    value: bool
    error: Optional[str] = None
    missing_event_ids: list[str] = field(default_factory=list)


# =============================================================================
# TOKENIZER
# =============================================================================

TOKEN_SPEC = [
    ("ws", r"\s+"),
    ("string", r"'(?:[^'\\]|\\.)*'|\"(?:[^\"\\]|\\.)*\""),
    ("number", r"-?\d+(?:\.\d+)?"),
    ("op", r"&&|\|\||==|!=|<=|>=|<|>|!"),
    ("punct", r"[\[\]().,]"),
    ("name", r"[A-Za-z_][A-Za-z0-9_]*"),
    ("invalid", r"."),
]
TOKEN_PATTERN = re.compile("|".join(f"(?P<{name}>{regex})" for name, regex in TOKEN_SPEC))
KEYWORDS = {"true", "false", "in", "events", "active", "state", "effects"}


@dataclass(frozen=True)
class Token:
    kind: str
    value: str
    position: int


def tokenize(expression: str) -> list[Token]:
    tokens = []
    for match in TOKEN_PATTERN.finditer(expression):
        kind = match.lastgroup
        text = match.group()
        if kind == "ws":
            continue
        if kind == "invalid":
            raise ConditionParseError(f"Unexpected character '{text}' at position {match.start()}")
        if kind == "string":
            text = re.sub(r"\\(.)", r"\1", text[1:-1])
        elif kind == "name" and text not in KEYWORDS:
            raise ConditionParseError(f"Unknown identifier '{text}' at position {match.start()}")
        tokens.append(Token(kind, text, match.start()))
    return tokens


# =============================================================================
# PARSER / EVALUATOR
# =============================================================================


class _Parser:
    """Recursive-descent parser that evaluates as it parses."""

    def __init__(self, tokens: list[Token], registry: Mapping[str, EventSnapshot]):
        self.tokens = tokens
        self.pos = 0
        self.registry = registry
        self.missing: list[str] = []

    # Token helpers

    def _peek(self) -> Optional[Token]:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def _at(self, value: str) -> bool:
        token = self._peek()
        return token is not None and token.kind != "string" and token.value == value

    def _take(self) -> Token:
        token = self._peek()
        if token is None:
            raise ConditionParseError("Unexpected end of expression")
        self.pos += 1
        return token

    def _expect(self, value: str) -> Token:
        token = self._take()
        if token.kind == "string" or token.value != value:
            raise ConditionParseError(f"Expected '{value}' at position {token.position}, got '{token.value}'")
        return token

    def _expect_string(self) -> str:
        token = self._take()
        if token.kind != "string":
            raise ConditionParseError(f"Expected a quoted string at position {token.position}")
        return token.value

    # Grammar

    def parse(self) -> Any:
        value = self._or()
        token = self._peek()
        if token is not None:
            raise ConditionParseError(f"Unexpected '{token.value}' at position {token.position}")
        return value

    def _or(self) -> Any:
        value = self._and()
        while self._at("||"):
            self._take()
            right = self._and()
            value = bool(value) or bool(right)
        return value

    def _and(self) -> Any:
        value = self._comparison()
        while self._at("&&"):
            self._take()
            right = self._comparison()
            value = bool(value) and bool(right)
        return value

    def _comparison(self) -> Any:
        left = self._unary()
        for op in ("==", "!=", "<=", ">=", "<", ">", "in"):
            if self._at(op):
                self._take()
                return _compare(op, left, self._unary())
        return left

    def _unary(self) -> Any:
        if self._at("!"):
            self._take()
            return not bool(self._unary())
        return self._primary()

    def _primary(self) -> Any:
        token = self._take()
        if token.kind == "string":
            return token.value
        if token.kind == "number":
            return float(token.value) if "." in token.value else int(token.value)
        if token.value == "(":
            value = self._or()
            self._expect(")")
            return value
        if token.value == "[":
            items = []
            if not self._at("]"):
                items.append(self._primary())
                while self._at(","):
                    self._take()
                    items.append(self._primary())
            self._expect("]")
            return items
        if token.value == "true":
            return True
        if token.value == "false":
            return False
        if token.value == "events":
            return self._event_ref()
        raise ConditionParseError(f"Unexpected '{token.value}' at position {token.position}")

    def _event_ref(self) -> Any:
        self._expect("[")
        event_id = self._expect_string()
        self._expect("]")
        self._expect(".")

        snapshot = self.registry.get(event_id)
        if snapshot is None:
            if event_id not in self.missing:
                self.missing.append(event_id)
            snapshot = MISSING_EVENT

        attribute = self._take()
        if attribute.value == "active":
            return snapshot.active
        if attribute.value == "state":
            return snapshot.state
        if attribute.value == "effects":
            self._expect("[")
            key = self._expect_string()
            self._expect("]")
            return snapshot.effects.get(key)
        raise ConditionParseError(
            f"Unknown event attribute '{attribute.value}' at position {attribute.position}"
        )


def _compare(op: str, left: Any, right: Any) -> bool:
    if op == "==":
        return left == right
    if op == "!=":
        return left != right
    if op == "in":
        if not isinstance(right, list):
            raise ConditionParseError("Right side of 'in' must be a list")
        return left in right

    # Ordering comparisons are numeric only; missing values compare false
    if left is None or right is None:
        return False
    if isinstance(left, bool) or isinstance(right, bool):
        raise ConditionParseError(f"Cannot order booleans with '{op}'")
    if not isinstance(left, (int, float)) or not isinstance(right, (int, float)):
        raise ConditionParseError(f"Operator '{op}' needs numbers, got {left!r} and {right!r}")
    return {
        "<": left < right,
        "<=": left <= right,
        ">": left > right,
        ">=": left >= right,
    }[op]


# =============================================================================
# PUBLIC API
# =============================================================================


def evaluate_condition(expression: str, registry: Mapping[str, EventSnapshot]) -> ConditionResult:
    """
    Evaluate a condition against an event registry.

    Never raises: malformed expressions produce success=False, value=False.
    """
    try:
        parser = _Parser(tokenize(expression), registry)
        if not parser.tokens:
            raise ConditionParseError("Condition is empty")
        value = parser.parse()
    except ConditionParseError as e:
        logger.warning(f"Failed to evaluate condition '{expression}': {e}")
        return ConditionResult(success=False, value=False, error=str(e))

    return ConditionResult(
        success=True,
        value=bool(value),
        missing_event_ids=parser.missing,
    )


def extract_event_references(expression: str) -> list[str]:
    """Event ids referenced by an expression, in order of first appearance."""
    try:
        tokens = tokenize(expression)
    except ConditionParseError:
        return []
    ids: list[str] = []
    for i, token in enumerate(tokens[:-2]):
        if (
            token.value == "events"
            and tokens[i + 1].value == "["
            and tokens[i + 2].kind == "string"
            and tokens[i + 2].value not in ids
        ):
            ids.append(tokens[i + 2].value)
    return ids


def validate_condition(expression: str) -> tuple[bool, Optional[str]]:
    """Check syntax by evaluating against an empty registry."""
    result = evaluate_condition(expression, {})
    return result.success, result.error
