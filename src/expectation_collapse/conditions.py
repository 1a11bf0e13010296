"""Condition AST: a closed set of frozen node shapes.

Consumers dispatch with ``match`` over :data:`Condition`; there are no
per-node ``evaluate``/``render`` methods.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

Value = Union[str, int, bool]


@dataclass(frozen=True)
class Compare:
    """``dimension == value``."""

    dimension: str
    value: Value


@dataclass(frozen=True)
class And:
    left: "Condition"
    right: "Condition"


@dataclass(frozen=True)
class Or:
    left: "Condition"
    right: "Condition"


@dataclass(frozen=True)
class Not:
    operand: "Condition"


@dataclass(frozen=True)
class Always:
    """Matches every point."""


Condition = Union[Compare, And, Or, Not, Always]

ALWAYS = Always()


def conjunction(parts: list[Condition]) -> Condition:
    """Left-fold ``parts`` with ``And``; an empty list is :data:`ALWAYS`."""
    if not parts:
        return ALWAYS
    result = parts[0]
    for part in parts[1:]:
        result = And(result, part)
    return result


def referenced_dimensions(condition: Condition) -> frozenset[str]:
    match condition:
        case Compare(dimension=dimension):
            return frozenset((dimension,))
        case And(left=left, right=right) | Or(left=left, right=right):
            return referenced_dimensions(left) | referenced_dimensions(right)
        case Not(operand=operand):
            return referenced_dimensions(operand)
        case Always():
            return frozenset()
    raise TypeError(f"not a condition: {condition!r}")


__all__ = [
    "Value",
    "Compare",
    "And",
    "Or",
    "Not",
    "Always",
    "ALWAYS",
    "Condition",
    "conjunction",
    "referenced_dimensions",
]
