"""Decision-list minimization.

A clause list is judged only by what it returns at each point of its
enumerated configuration space. The minimizer materializes that table,
picks a default outcome, and covers every other outcome class with
conjunctive terms, emitting classes so that each clause only ever matches
points of its own class or points already claimed by an earlier clause.
The result is re-evaluated everywhere before it is accepted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from itertools import combinations, permutations, product
from typing import Sequence

from expectation_collapse.conditions import Compare, Condition, Not, Value, conjunction
from expectation_collapse.enumerator import enumerate_points, referenced_dimensions
from expectation_collapse.errors import ValidationFailure
from expectation_collapse.evaluator import UNMATCHED, Point, evaluate_clauses
from expectation_collapse.models import Clause, ClauseList, KeyStatus, Outcome
from expectation_collapse.registry import DimensionRegistry, same_value

logger = logging.getLogger(__name__)

# Above this many candidate terms per seed the exhaustive search gives way
# to greedy attribute elimination.
SEARCH_LIMIT = 50_000
# Class emission orders are tried exhaustively up to this many classes.
MAX_PERMUTED_CLASSES = 3

# (dimension index, positive, value): ``dim == value`` or ``dim != value``.
Literal = tuple[int, bool, Value]
Term = tuple[Literal, ...]


@dataclass(frozen=True)
class MinimizeResult:
    clause_list: ClauseList
    status: KeyStatus
    points: int
    original_size: int
    detail: str | None = None

    @property
    def changed(self) -> bool:
        return self.status is KeyStatus.COLLAPSED


def _matches(term: Term, point: Sequence[Value]) -> bool:
    return all(same_value(point[index], value) == positive for index, positive, value in term)


def _literal_options(index: int, seed_value: Value, present: Sequence[Value]) -> list[Literal | None]:
    options: list[Literal | None] = [None, (index, True, seed_value)]
    if len(present) > 2:
        options.extend((index, False, v) for v in present if not same_value(v, seed_value))
    return options


def _search_size(options: Sequence[Sequence[object]]) -> int:
    total = 1
    for opts in options:
        total *= len(opts)
    return total


def _best_term(
    seed: Sequence[Value],
    present: Sequence[Sequence[Value]],
    forbidden: Sequence[Sequence[Value]],
    uncovered: Sequence[Sequence[Value]],
) -> Term:
    """Smallest term matching ``seed`` and no forbidden point.

    Within the smallest size the term covering the most ``uncovered``
    points wins, then the one with fewer negations; remaining ties go to
    the first candidate in dimension and domain order.
    """

    options = [_literal_options(i, seed[i], present[i])[1:] for i in range(len(seed))]
    if _search_size([[None, *opts] for opts in options]) > SEARCH_LIMIT:
        return _eliminate(seed, forbidden)

    for size in range(len(seed) + 1):
        best: Term | None = None
        best_key: tuple[int, int] | None = None
        for indexes in combinations(range(len(seed)), size):
            for literals in product(*(options[i] for i in indexes)):
                term: Term = tuple(literals)  # type: ignore[arg-type]
                if any(_matches(term, point) for point in forbidden):
                    continue
                key = (
                    sum(1 for point in uncovered if _matches(term, point)),
                    -sum(1 for _, positive, _ in term if not positive),
                )
                if best_key is None or key > best_key:
                    best, best_key = term, key
        if best is not None:
            return best
    raise AssertionError("seed point is itself forbidden")


def _eliminate(seed: Sequence[Value], forbidden: Sequence[Sequence[Value]]) -> Term:
    """Greedy attribute elimination from the fully specific term for ``seed``."""
    term: list[Literal] = [(i, True, value) for i, value in enumerate(seed)]
    for literal in list(term):
        candidate = tuple(t for t in term if t != literal)
        if not any(_matches(candidate, point) for point in forbidden):
            term = list(candidate)
    return tuple(term)


def _cover(
    target: Sequence[Sequence[Value]],
    forbidden: Sequence[Sequence[Value]],
    present: Sequence[Sequence[Value]],
) -> list[Term]:
    terms: list[Term] = []
    uncovered = list(target)
    while uncovered:
        term = _best_term(uncovered[0], present, forbidden, uncovered)
        terms.append(term)
        uncovered = [point for point in uncovered if not _matches(term, point)]
    return terms


def _term_condition(term: Term, dims: Sequence[str], registry: DimensionRegistry) -> Condition:
    parts: list[Condition] = []
    for index, positive, value in sorted(term, key=lambda lit: lit[0]):
        name = dims[index]
        if registry.dimensions[name].is_boolean:
            # Booleans are always written as ``dim`` / ``not dim``.
            truthy = bool(value) == positive
            parts.append(Compare(name, True) if truthy else Not(Compare(name, True)))
        elif positive:
            parts.append(Compare(name, value))
        else:
            parts.append(Not(Compare(name, value)))
    return conjunction(parts)


def _select_default(
    classes: dict[object, list[int]], original: ClauseList
) -> object:
    if original.default is None and classes.get(UNMATCHED):
        return UNMATCHED
    candidates = [o for o in classes if o is not UNMATCHED]
    candidates.sort(key=lambda o: (-len(classes[o]), o != original.default, str(o)))
    return candidates[0]


def _synthesize(
    order: Sequence[Outcome],
    classes: dict[object, list[int]],
    table: Sequence[object],
    rows: Sequence[tuple[Value, ...]],
    present: Sequence[Sequence[Value]],
    dims: Sequence[str],
    registry: DimensionRegistry,
) -> list[Clause]:
    clauses: list[Clause] = []
    captured: set[int] = set()
    for outcome in order:
        members = classes[outcome]
        forbidden = [rows[i] for i in range(len(rows)) if i not in captured and table[i] != outcome]
        for term in _cover([rows[i] for i in members], forbidden, present):
            if not term:
                # Only reachable if nothing is forbidden, i.e. the class could
                # have been the default; such a clause cannot be written.
                raise ValidationFailure(mismatches=0, ctx={"error": "empty term", "outcome": outcome})
            clauses.append(Clause(_term_condition(term, dims, registry), outcome))
        captured.update(members)
    return clauses


def validate(candidate: ClauseList, points: Sequence[Point], expected: Sequence[object]) -> None:
    """Raise :class:`ValidationFailure` unless ``candidate`` reproduces ``expected``."""
    mismatched = [
        point for point, want in zip(points, expected, strict=True) if evaluate_clauses(candidate, point) != want
    ]
    if mismatched:
        raise ValidationFailure(
            mismatches=len(mismatched),
            ctx={"first_mismatch": dict(mismatched[0])},
        )


def minimize(clause_list: ClauseList, registry: DimensionRegistry) -> MinimizeResult:
    """Return the smallest equivalent clause list found, or the original."""

    dims = referenced_dimensions(clause_list, registry)
    points = enumerate_points(registry, dims)
    size = clause_list.size

    def unchanged(status: KeyStatus = KeyStatus.UNCHANGED, detail: str | None = None) -> MinimizeResult:
        return MinimizeResult(clause_list, status, len(points), size, detail)

    if not clause_list.clauses:
        return unchanged()
    if not points:
        return unchanged(detail="no valid configurations")

    rows = [tuple(point[d] for d in dims) for point in points]
    table = [evaluate_clauses(clause_list, point) for point in points]

    classes: dict[object, list[int]] = {}
    for index, outcome in enumerate(table):
        classes.setdefault(outcome, []).append(index)

    default = _select_default(classes, clause_list)
    present = [
        [v for v in registry.dimensions[name].values if any(same_value(row[i], v) for row in rows)]
        for i, name in enumerate(dims)
    ]

    first_seen: dict[object, int] = {}
    for i, clause in enumerate(clause_list.clauses):
        first_seen.setdefault(clause.outcome, i)
    remaining = sorted(
        (o for o in classes if o != default),
        key=lambda o: (len(classes[o]), first_seen.get(o, len(first_seen)), str(o)),
    )
    orders = [remaining]
    if 1 < len(remaining) <= MAX_PERMUTED_CLASSES:
        orders.extend(list(p) for p in permutations(remaining) if list(p) != remaining)

    best: ClauseList | None = None
    try:
        for order in orders:
            clauses = _synthesize(order, classes, table, rows, present, dims, registry)
            candidate = ClauseList(tuple(clauses), None if default is UNMATCHED else default)
            validate(candidate, points, table)
            if best is None or candidate.size < best.size:
                best = candidate
    except ValidationFailure as exc:
        logger.debug(f"Synthesized clause list rejected: {exc}")
        return unchanged(KeyStatus.VALIDATION_FAILED, str(exc))

    assert best is not None
    if best.size >= size:
        return unchanged()
    return MinimizeResult(best, KeyStatus.COLLAPSED, len(points), size)


__all__ = ["MinimizeResult", "minimize", "validate", "SEARCH_LIMIT"]
