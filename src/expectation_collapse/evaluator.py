"""Evaluate conditions and clause lists at a configuration point."""

from __future__ import annotations

from enum import Enum, auto
from typing import TYPE_CHECKING, Mapping

from expectation_collapse.conditions import Always, And, Compare, Condition, Not, Or, Value
from expectation_collapse.errors import CollapseError, Err
from expectation_collapse.registry import same_value

if TYPE_CHECKING:
    from expectation_collapse.models import ClauseList, Outcome

Point = Mapping[str, Value]


class _Sentinel(Enum):
    """Outcome of a clause list where no clause matches and there is no default."""

    UNMATCHED = auto()

    def __repr__(self) -> str:
        return "UNMATCHED"


UNMATCHED = _Sentinel.UNMATCHED


def evaluate(condition: Condition, point: Point) -> bool:
    match condition:
        case Compare(dimension=dimension, value=value):
            try:
                actual = point[dimension]
            except KeyError as exc:
                raise CollapseError(
                    Err.INTERNAL,
                    ctx={"error": "point does not cover dimension", "dimension": dimension},
                    cause=exc,
                )
            return same_value(actual, value)
        case And(left=left, right=right):
            return evaluate(left, point) and evaluate(right, point)
        case Or(left=left, right=right):
            return evaluate(left, point) or evaluate(right, point)
        case Not(operand=operand):
            return not evaluate(operand, point)
        case Always():
            return True
    raise CollapseError(Err.INTERNAL, ctx={"error": "not a condition", "condition": repr(condition)})


def evaluate_clauses(clause_list: "ClauseList", point: Point) -> "Outcome | _Sentinel":
    """First-match-wins evaluation; :data:`UNMATCHED` when nothing applies."""
    for clause in clause_list.clauses:
        if evaluate(clause.condition, point):
            return clause.outcome
    if clause_list.default is not None:
        return clause_list.default
    return UNMATCHED


__all__ = ["Point", "UNMATCHED", "evaluate", "evaluate_clauses"]
