"""Collapse conditional test expectations into minimal equivalent decision lists."""

from .conditions import ALWAYS, Always, And, Compare, Condition, Not, Or
from .driver import CollapseResult, FileOutcome, collapse_file, collapse_files, collapse_text
from .errors import (
    CollapseError,
    ConditionParseError,
    Err,
    ManifestParseError,
    UnknownDimensionError,
    ValidationFailure,
)
from .evaluator import UNMATCHED, evaluate, evaluate_clauses
from .enumerator import enumerate_points, referenced_dimensions
from .minimizer import MinimizeResult, minimize
from .models import Clause, ClauseList, KeyReport, KeyStatus, TestRecord
from .parser import parse_condition
from .registry import (
    Constraint,
    Dimension,
    DimensionRegistry,
    default_registry,
    load_registry,
    parse_registry_mapping,
)
from .serializer import render_condition, render_property
from .settings import CollapseSettings

__all__ = [
    "ALWAYS",
    "Always",
    "And",
    "Compare",
    "Condition",
    "Not",
    "Or",
    "CollapseResult",
    "FileOutcome",
    "collapse_file",
    "collapse_files",
    "collapse_text",
    "CollapseError",
    "ConditionParseError",
    "Err",
    "ManifestParseError",
    "UnknownDimensionError",
    "ValidationFailure",
    "UNMATCHED",
    "evaluate",
    "evaluate_clauses",
    "enumerate_points",
    "referenced_dimensions",
    "MinimizeResult",
    "minimize",
    "Clause",
    "ClauseList",
    "KeyReport",
    "KeyStatus",
    "TestRecord",
    "parse_condition",
    "Constraint",
    "Dimension",
    "DimensionRegistry",
    "default_registry",
    "load_registry",
    "parse_registry_mapping",
    "render_condition",
    "render_property",
    "CollapseSettings",
]
