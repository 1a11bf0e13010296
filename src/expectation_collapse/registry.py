"""Dimension registry: the configuration variables conditions may reference.

A registry is loaded once and passed explicitly to the parser, evaluator,
enumerator and minimizer. It is immutable; ``with_dimensions`` and
``with_constraints`` return new registries.
"""

from __future__ import annotations

import json
from collections import OrderedDict
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Mapping

import yaml

from expectation_collapse.conditions import Condition, Value, referenced_dimensions
from expectation_collapse.errors import CollapseError, Err
from expectation_collapse.parser import parse_condition

BOOLEAN_DOMAIN: tuple[bool, bool] = (True, False)


def same_value(a: Value, b: Value) -> bool:
    """Equality that keeps ``True`` and ``1`` apart."""
    return type(a) is type(b) and a == b


@dataclass(frozen=True)
class Dimension:
    """A named configuration variable with a finite ordered domain."""

    name: str
    values: tuple[Value, ...]

    @property
    def is_boolean(self) -> bool:
        return len(self.values) == 2 and all(isinstance(v, bool) for v in self.values)

    def __contains__(self, value: object) -> bool:
        return any(same_value(v, value) for v in self.values)  # type: ignore[arg-type]


@dataclass(frozen=True)
class Constraint:
    """``when`` implies ``require`` for every valid configuration.

    ``when`` of ``None`` makes the constraint unconditional.
    """

    require: Condition
    when: Condition | None = None
    source: str = ""

    @property
    def dimensions(self) -> frozenset[str]:
        dims = referenced_dimensions(self.require)
        if self.when is not None:
            dims |= referenced_dimensions(self.when)
        return dims


@dataclass(frozen=True)
class DimensionRegistry:
    dimensions: Mapping[str, Dimension]
    constraints: tuple[Constraint, ...] = field(default=())

    def __post_init__(self) -> None:
        object.__setattr__(self, "dimensions", OrderedDict(self.dimensions))
        object.__setattr__(self, "constraints", tuple(self.constraints))
        for constraint in self.constraints:
            missing = sorted(constraint.dimensions - set(self.dimensions))
            if missing:
                raise CollapseError(
                    Err.INVALID_CONFIG,
                    ctx={"error": "constraint references unknown dimension", "dimensions": missing},
                )

    def __contains__(self, name: object) -> bool:
        return name in self.dimensions

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(self.dimensions)

    def get(self, name: str) -> Dimension | None:
        return self.dimensions.get(name)

    def order(self, names: Iterable[str]) -> tuple[str, ...]:
        """Return ``names`` sorted by declaration order."""
        wanted = set(names)
        return tuple(name for name in self.dimensions if name in wanted)

    def with_dimensions(self, *dimensions: Dimension) -> "DimensionRegistry":
        merged = OrderedDict(self.dimensions)
        for dimension in dimensions:
            merged[dimension.name] = dimension
        return DimensionRegistry(merged, self.constraints)

    def with_constraints(self, *constraints: Constraint) -> "DimensionRegistry":
        return DimensionRegistry(self.dimensions, self.constraints + tuple(constraints))


def _parse_domain(name: Any, payload: Any, *, source: str) -> Dimension:
    if not isinstance(name, str) or not name.isidentifier():
        raise CollapseError(
            Err.INVALID_CONFIG,
            ctx={"path": source, "dimension": name, "error": "dimension name must be an identifier"},
        )
    if payload == "boolean":
        return Dimension(name, BOOLEAN_DOMAIN)
    if not isinstance(payload, list) or not payload:
        raise CollapseError(
            Err.INVALID_CONFIG,
            ctx={"path": source, "dimension": name, "error": "domain must be non-empty list or 'boolean'"},
        )

    values: list[Value] = []
    for value in payload:
        if not isinstance(value, (str, int)):
            raise CollapseError(
                Err.INVALID_CONFIG,
                ctx={"path": source, "dimension": name, "error": "values must be strings or integers", "value": value},
            )
        if any(same_value(value, seen) for seen in values):
            raise CollapseError(
                Err.INVALID_CONFIG,
                ctx={"path": source, "dimension": name, "error": "duplicate value", "value": value},
            )
        values.append(value)
    return Dimension(name, tuple(values))


def _parse_constraint(entry: Any, registry: DimensionRegistry, *, source: str) -> Constraint:
    if isinstance(entry, str):
        when_text, require_text = None, entry
    elif isinstance(entry, Mapping) and isinstance(entry.get("require"), str):
        when_text, require_text = entry.get("when"), entry["require"]
        if when_text is not None and not isinstance(when_text, str):
            raise CollapseError(
                Err.INVALID_CONFIG,
                ctx={"path": source, "error": "constraint.when must be string"},
            )
    else:
        raise CollapseError(
            Err.INVALID_CONFIG,
            ctx={"path": source, "error": "constraint must be string or mapping with 'require'"},
        )

    try:
        when = parse_condition(when_text, registry) if when_text is not None else None
        require = parse_condition(require_text, registry)
    except CollapseError as exc:
        raise CollapseError(
            Err.INVALID_CONFIG,
            ctx={"path": source, "error": "invalid constraint", "constraint": entry},
            cause=exc,
        )
    label = f"{when_text} => {require_text}" if when_text is not None else require_text
    return Constraint(require=require, when=when, source=label)


def parse_registry_mapping(data: Any, *, source: str = "<mapping>") -> DimensionRegistry:
    """Build a registry from ``{"dimensions": ..., "constraints": [...]}``."""

    if not isinstance(data, Mapping):
        raise CollapseError(
            Err.INVALID_CONFIG,
            ctx={"path": source, "error": "top-level must be mapping"},
        )
    dims_section = data.get("dimensions")
    if not isinstance(dims_section, Mapping) or not dims_section:
        raise CollapseError(
            Err.INVALID_CONFIG,
            ctx={"path": source, "error": "dimensions must be non-empty mapping"},
        )

    dimensions: OrderedDict[str, Dimension] = OrderedDict()
    for name, payload in dims_section.items():
        dimensions[name] = _parse_domain(name, payload, source=source)
    registry = DimensionRegistry(dimensions)

    raw_constraints = data.get("constraints") or []
    if not isinstance(raw_constraints, list):
        raise CollapseError(
            Err.INVALID_CONFIG,
            ctx={"path": source, "error": "constraints must be list"},
        )
    constraints = [_parse_constraint(entry, registry, source=source) for entry in raw_constraints]
    return registry.with_constraints(*constraints)


def load_registry(path: Path | str) -> DimensionRegistry:
    """Load a registry from a ``.yaml``/``.yml`` or ``.json`` file."""

    registry_path = Path(path)
    try:
        raw = registry_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise CollapseError(Err.IO_ERROR, ctx={"path": str(registry_path)}, cause=exc)

    suffix = registry_path.suffix.lower()
    if suffix in {".yaml", ".yml"}:
        data = yaml.safe_load(raw)
    elif suffix == ".json":
        data = json.loads(raw)
    else:
        raise CollapseError(
            Err.INVALID_CONFIG,
            ctx={"path": str(registry_path), "error": "unsupported registry format"},
        )
    return parse_registry_mapping(data or {}, source=str(registry_path))


# Firefox CI platforms as seen by web-platform-tests metadata. The
# constraints rule out configurations that never run on CI, which is what
# lets e.g. an ``e10s`` check next to ``os == "mac"`` be dropped.
DEFAULT_REGISTRY: dict[str, Any] = {
    "dimensions": {
        "os": ["android", "linux", "mac", "win"],
        "version": ["6.1.7601", "10.0.15063", "OS X 10.10.5", "Ubuntu 16.04"],
        "processor": ["x86", "x86_64"],
        "bits": [32, 64],
        "debug": "boolean",
        "e10s": "boolean",
        "webrender": "boolean",
    },
    "constraints": [
        {"when": 'os == "mac"', "require": 'version == "OS X 10.10.5"'},
        {"when": 'os == "mac"', "require": 'processor == "x86_64" and bits == 64'},
        {"when": 'os == "mac"', "require": "e10s and not webrender"},
        {"when": 'os == "win" and version == "6.1.7601"', "require": 'processor == "x86" and bits == 32'},
        {"when": 'os == "win" and version == "6.1.7601"', "require": "e10s and not webrender"},
        {"when": 'os == "win" and version == "10.0.15063"', "require": 'processor == "x86_64" and bits == 64'},
        {"when": 'os == "win" and version == "10.0.15063"', "require": "e10s"},
        {"when": 'os == "win" and webrender', "require": 'version == "10.0.15063"'},
        {"when": 'os == "win"', "require": 'version == "6.1.7601" or version == "10.0.15063"'},
        {"when": 'os == "linux"', "require": 'version == "Ubuntu 16.04"'},
        {"when": 'os == "linux" and processor == "x86_64"', "require": "bits == 64"},
        {"when": 'os == "linux" and processor == "x86"', "require": "bits == 32 and not webrender"},
        {"when": 'os == "linux" and webrender', "require": 'processor == "x86_64" and e10s'},
        {"when": 'os == "android"', "require": "not webrender and not e10s"},
    ],
}


def default_registry() -> DimensionRegistry:
    return parse_registry_mapping(DEFAULT_REGISTRY, source="<default>")


__all__ = [
    "BOOLEAN_DOMAIN",
    "Constraint",
    "Dimension",
    "DimensionRegistry",
    "DEFAULT_REGISTRY",
    "default_registry",
    "load_registry",
    "parse_registry_mapping",
    "same_value",
]
