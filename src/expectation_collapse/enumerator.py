"""Enumerate the configuration points a clause list is judged against."""

from __future__ import annotations

from itertools import product
from typing import Iterable, Sequence

from expectation_collapse.conditions import Value, referenced_dimensions as condition_dimensions
from expectation_collapse.errors import CollapseError, Err
from expectation_collapse.evaluator import Point, evaluate
from expectation_collapse.models import ClauseList
from expectation_collapse.registry import Constraint, DimensionRegistry


def referenced_dimensions(clause_list: ClauseList, registry: DimensionRegistry) -> tuple[str, ...]:
    """Dimensions used anywhere in ``clause_list``, in registry order."""
    names: set[str] = set()
    for clause in clause_list.clauses:
        names |= condition_dimensions(clause.condition)
    return registry.order(names)


def _linked_constraints(
    registry: DimensionRegistry, dimensions: Iterable[str]
) -> tuple[tuple[str, ...], list[Constraint]]:
    linked = set(dimensions)
    changed = True
    while changed:
        changed = False
        for constraint in registry.constraints:
            dims = constraint.dimensions
            if dims & linked and not dims <= linked:
                linked |= dims
                changed = True
    relevant = [c for c in registry.constraints if c.dimensions & linked]
    return registry.order(linked), relevant


def _cartesian(registry: DimensionRegistry, dimensions: Sequence[str]) -> Iterable[tuple[Value, ...]]:
    return product(*(registry.dimensions[name].values for name in dimensions))


def is_valid(point: Point, constraints: Iterable[Constraint]) -> bool:
    for constraint in constraints:
        if constraint.when is not None and not evaluate(constraint.when, point):
            continue
        if not evaluate(constraint.require, point):
            return False
    return True


def enumerate_points(registry: DimensionRegistry, dimensions: Iterable[str]) -> tuple[Point, ...]:
    """Cross product over ``dimensions`` restricted to valid configurations.

    Dimensions not listed are "don't care": when constraints tie a listed
    dimension to an unlisted one, the product is taken over both, filtered,
    and projected back so points differing only in unlisted dimensions
    collapse into one.
    """

    requested = set(dimensions)
    dims = registry.order(requested)
    if len(dims) != len(requested):
        raise CollapseError(
            Err.INTERNAL,
            ctx={"error": "unknown dimensions", "dimensions": sorted(requested - set(dims))},
        )

    full, constraints = _linked_constraints(registry, dims)
    if not constraints:
        return tuple(dict(zip(dims, combo)) for combo in _cartesian(registry, dims))

    projected: set[tuple[Value, ...]] = set()
    for combo in _cartesian(registry, full):
        point = dict(zip(full, combo))
        if is_valid(point, constraints):
            projected.add(tuple((type(point[d]), point[d]) for d in dims))  # type: ignore[misc]

    return tuple(
        dict(zip(dims, combo))
        for combo in _cartesian(registry, dims)
        if tuple((type(v), v) for v in combo) in projected
    )


__all__ = ["referenced_dimensions", "enumerate_points", "is_valid"]
