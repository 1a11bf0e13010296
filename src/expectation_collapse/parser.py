"""Recursive-descent parser for condition text.

Grammar::

    expr     := or_expr
    or_expr  := and_expr ("or" and_expr)*
    and_expr := unary ("and" unary)*
    unary    := "not" unary | atom
    atom     := "(" expr ")" | comparison | bare_dimension

``dim != value`` is accepted and parsed as ``not (dim == value)``. Every
dimension and literal is checked against the registry while parsing.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from expectation_collapse.conditions import And, Compare, Condition, Not, Or, Value
from expectation_collapse.errors import ConditionParseError, UnknownDimensionError

if TYPE_CHECKING:
    from expectation_collapse.registry import DimensionRegistry

KEYWORDS = {"and", "or", "not"}
BOOLEANS = {"true": True, "True": True, "false": False, "False": False}

_IDENT_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_NUMBER_RE = re.compile(r"-?[0-9]+(?![A-Za-z0-9_.])")
_ESCAPES = {"n": "\n", "t": "\t", "\\": "\\", '"': '"', "'": "'"}


@dataclass(frozen=True)
class Token:
    kind: str
    value: object
    position: int


def tokenize(text: str) -> list[Token]:
    tokens: list[Token] = []
    pos = 0
    length = len(text)
    while pos < length:
        ch = text[pos]
        if ch.isspace():
            pos += 1
            continue
        if ch in "()":
            tokens.append(Token("LPAREN" if ch == "(" else "RPAREN", ch, pos))
            pos += 1
            continue
        if text.startswith("==", pos):
            tokens.append(Token("EQ", "==", pos))
            pos += 2
            continue
        if text.startswith("!=", pos):
            tokens.append(Token("NE", "!=", pos))
            pos += 2
            continue
        if ch in "\"'":
            value, end = _read_string(text, pos)
            tokens.append(Token("STRING", value, pos))
            pos = end
            continue
        number = _NUMBER_RE.match(text, pos)
        if number:
            tokens.append(Token("NUMBER", int(number.group()), pos))
            pos = number.end()
            continue
        ident = _IDENT_RE.match(text, pos)
        if ident:
            word = ident.group()
            if word in KEYWORDS:
                tokens.append(Token(word.upper(), word, pos))
            elif word in BOOLEANS:
                tokens.append(Token("BOOL", BOOLEANS[word], pos))
            else:
                tokens.append(Token("IDENT", word, pos))
            pos = ident.end()
            continue
        raise ConditionParseError(reason="unexpected_character", text=text, position=pos)
    tokens.append(Token("END", None, length))
    return tokens


def _read_string(text: str, start: int) -> tuple[str, int]:
    quote = text[start]
    chars: list[str] = []
    pos = start + 1
    while pos < len(text):
        ch = text[pos]
        if ch == "\\":
            if pos + 1 >= len(text):
                break
            nxt = text[pos + 1]
            chars.append(_ESCAPES.get(nxt, nxt))
            pos += 2
            continue
        if ch == quote:
            return "".join(chars), pos + 1
        chars.append(ch)
        pos += 1
    raise ConditionParseError(reason="unterminated_string", text=text, position=start)


class _Parser:
    def __init__(self, text: str, registry: "DimensionRegistry"):
        self.text = text
        self.registry = registry
        self.tokens = tokenize(text)
        self.index = 0

    def peek(self) -> Token:
        return self.tokens[self.index]

    def advance(self) -> Token:
        token = self.tokens[self.index]
        self.index += 1
        return token

    def fail(self, reason: str, token: Token | None = None) -> ConditionParseError:
        position = (token or self.peek()).position
        return ConditionParseError(reason=reason, text=self.text, position=position)

    def parse(self) -> Condition:
        if self.peek().kind == "END":
            raise self.fail("empty_condition")
        condition = self.parse_or()
        token = self.peek()
        if token.kind == "RPAREN":
            raise self.fail("unbalanced_parentheses", token)
        if token.kind != "END":
            raise self.fail("unexpected_token", token)
        return condition

    def parse_or(self) -> Condition:
        left = self.parse_and()
        while self.peek().kind == "OR":
            self.advance()
            left = Or(left, self.parse_and())
        return left

    def parse_and(self) -> Condition:
        left = self.parse_unary()
        while self.peek().kind == "AND":
            self.advance()
            left = And(left, self.parse_unary())
        return left

    def parse_unary(self) -> Condition:
        if self.peek().kind == "NOT":
            self.advance()
            return Not(self.parse_unary())
        return self.parse_atom()

    def parse_atom(self) -> Condition:
        token = self.peek()
        if token.kind == "LPAREN":
            self.advance()
            if self.peek().kind == "END":
                raise self.fail("unbalanced_parentheses", token)
            inner = self.parse_or()
            if self.peek().kind != "RPAREN":
                raise self.fail("unbalanced_parentheses", token)
            self.advance()
            return inner
        if token.kind == "IDENT":
            return self.parse_reference()
        if token.kind == "END":
            raise self.fail("unexpected_end", token)
        raise self.fail("expected_condition", token)

    def parse_reference(self) -> Condition:
        token = self.advance()
        name = str(token.value)
        dimension = self.registry.get(name)
        if dimension is None:
            raise UnknownDimensionError(dimension=name, text=self.text, position=token.position)

        op = self.peek()
        if op.kind not in {"EQ", "NE"}:
            if not dimension.is_boolean:
                raise self.fail("bare_reference_to_non_boolean", token)
            return Compare(name, True)

        self.advance()
        literal = self.advance()
        if literal.kind not in {"STRING", "NUMBER", "BOOL"}:
            raise self.fail("expected_literal", literal)
        value: Value = literal.value  # type: ignore[assignment]
        if value not in dimension:
            raise ConditionParseError(
                reason="value_not_in_domain",
                text=self.text,
                position=literal.position,
                ctx={"dimension": name, "value": value},
            )
        compare = Compare(name, value)
        return Not(compare) if op.kind == "NE" else compare


def parse_condition(text: str, registry: "DimensionRegistry") -> Condition:
    """Parse ``text`` into a :data:`Condition` checked against ``registry``."""
    return _Parser(text, registry).parse()


__all__ = ["Token", "tokenize", "parse_condition"]
