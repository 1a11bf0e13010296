"""Data structures shared by the minimizer, serializer and driver."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping

from expectation_collapse.conditions import Condition

# Outcomes are opaque tokens compared by equality, e.g. "FAIL" or "[PASS, TIMEOUT]".
Outcome = str


@dataclass(frozen=True)
class Clause:
    condition: Condition
    outcome: Outcome
    # Source text of the condition when it came from a file.
    text: str | None = field(default=None, compare=False)


@dataclass(frozen=True)
class ClauseList:
    """Ordered clauses evaluated first-match-wins, plus an optional default."""

    clauses: tuple[Clause, ...] = ()
    default: Outcome | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "clauses", tuple(self.clauses))

    @property
    def size(self) -> int:
        """Number of entries, counting the default as one."""
        return len(self.clauses) + (0 if self.default is None else 1)


@dataclass(frozen=True)
class TestRecord:
    """A test (``path`` of one element) or subtest and its conditional properties."""

    __test__ = False  # keep pytest from collecting this class

    path: tuple[str, ...]
    properties: Mapping[str, ClauseList]

    @property
    def test(self) -> str | None:
        return self.path[0] if self.path else None

    @property
    def subtest(self) -> str | None:
        return self.path[-1] if len(self.path) > 1 else None


class KeyStatus(str, Enum):
    COLLAPSED = "collapsed"
    UNCHANGED = "unchanged"
    VALIDATION_FAILED = "validation_failed"
    PARSE_FAILED = "parse_failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class KeyReport:
    """Per-property diagnostic produced by the driver."""

    section: tuple[str, ...]
    key: str
    line: int
    status: KeyStatus
    clauses_before: int
    clauses_after: int
    points: int = 0
    detail: str | None = None

    @property
    def label(self) -> str:
        return " > ".join((*self.section, self.key)) if self.section else self.key


__all__ = [
    "Outcome",
    "Clause",
    "ClauseList",
    "TestRecord",
    "KeyStatus",
    "KeyReport",
]
