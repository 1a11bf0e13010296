"""Error types for expectation collapsing.

Fatal errors (anything that makes a file unparseable) propagate to the
caller; per-key failures are reported and the key is left untouched.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Any


class Err(Enum):
    INVALID_CONFIG = auto()
    PARSE_ERROR = auto()
    UNKNOWN_DIMENSION = auto()
    VALIDATION_FAILED = auto()
    IO_ERROR = auto()
    INTERNAL = auto()


@dataclass(eq=False)
class CollapseError(Exception):
    code: Err
    ctx: dict[str, Any] | None = None
    cause: Exception | None = None

    def __post_init__(self) -> None:
        if self.ctx is None:
            self.ctx = {}
        if self.cause is not None:
            self.__cause__ = self.cause
        super().__init__(self.code.name)

    def __str__(self) -> str:
        if not self.ctx:
            return self.code.name
        parts = ", ".join(f"{k}={v!r}" for k, v in self.ctx.items())
        return f"{self.code.name}: {parts}"


class ConditionParseError(CollapseError):
    """Raised when condition text cannot be turned into a Condition."""

    def __init__(
        self,
        *,
        reason: str,
        text: str,
        position: int,
        code: Err = Err.PARSE_ERROR,
        ctx: dict[str, Any] | None = None,
    ):
        base_ctx: dict[str, Any] = {"reason": reason, "text": text, "position": position}
        if ctx:
            base_ctx.update(ctx)
        super().__init__(code, ctx=base_ctx)

    @property
    def position(self) -> int:
        return self.ctx["position"]

    @property
    def reason(self) -> str:
        return self.ctx["reason"]


class UnknownDimensionError(ConditionParseError):
    """A condition references a dimension the registry does not declare."""

    def __init__(self, *, dimension: str, text: str, position: int):
        super().__init__(
            reason="unknown_dimension",
            text=text,
            position=position,
            code=Err.UNKNOWN_DIMENSION,
            ctx={"dimension": dimension},
        )

    @property
    def dimension(self) -> str:
        return self.ctx["dimension"]


class ManifestParseError(CollapseError):
    """Structural problem in an annotation file (1-based ``line``)."""

    def __init__(self, *, reason: str, line: int, ctx: dict[str, Any] | None = None):
        base_ctx: dict[str, Any] = {"reason": reason, "line": line}
        if ctx:
            base_ctx.update(ctx)
        super().__init__(Err.PARSE_ERROR, ctx=base_ctx)

    @property
    def line(self) -> int:
        return self.ctx["line"]


class ValidationFailure(CollapseError):
    """A synthesized clause list disagreed with the original somewhere."""

    def __init__(self, *, mismatches: int, ctx: dict[str, Any] | None = None):
        base_ctx: dict[str, Any] = {"mismatches": mismatches}
        if ctx:
            base_ctx.update(ctx)
        super().__init__(Err.VALIDATION_FAILED, ctx=base_ctx)


__all__ = [
    "Err",
    "CollapseError",
    "ConditionParseError",
    "UnknownDimensionError",
    "ManifestParseError",
    "ValidationFailure",
]
