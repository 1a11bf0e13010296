"""Render conditions and clause lists back into annotation-file syntax."""

from __future__ import annotations

from expectation_collapse.conditions import Always, And, Compare, Condition, Not, Or, Value
from expectation_collapse.models import ClauseList
from expectation_collapse.registry import DimensionRegistry


def render_literal(value: Value) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _is_boolean(name: str, registry: DimensionRegistry) -> bool:
    dimension = registry.get(name)
    return dimension is not None and dimension.is_boolean


def _is_comparison(condition: Condition, registry: DimensionRegistry) -> bool:
    """True for conditions written with ``==`` or ``!=``."""
    match condition:
        case Compare(dimension=name):
            return not _is_boolean(name, registry)
        case Not(operand=Compare(dimension=name)):
            return not _is_boolean(name, registry)
    return False


def _operand(condition: Condition, parent: type, registry: DimensionRegistry, *, right: bool) -> str:
    text = render_condition(condition, registry)
    if _is_comparison(condition, registry):
        return f"({text})"
    if isinstance(condition, Or) and parent is And:
        return f"({text})"
    if right and isinstance(condition, parent):
        return f"({text})"
    return text


def render_condition(condition: Condition, registry: DimensionRegistry) -> str:
    match condition:
        case Compare(dimension=name, value=value):
            if _is_boolean(name, registry) and isinstance(value, bool):
                return name if value else f"not {name}"
            return f"{name} == {render_literal(value)}"
        case Not(operand=Compare(dimension=name, value=value)) if not _is_boolean(name, registry):
            return f"{name} != {render_literal(value)}"
        case Not(operand=operand):
            inner = render_condition(operand, registry)
            if isinstance(operand, (And, Or)):
                inner = f"({inner})"
            return f"not {inner}"
        case And(left=left, right=right):
            return f"{_operand(left, And, registry, right=False)} and {_operand(right, And, registry, right=True)}"
        case Or(left=left, right=right):
            return f"{_operand(left, Or, registry, right=False)} or {_operand(right, Or, registry, right=True)}"
        case Always():
            raise ValueError("an unconditional clause has no textual form")
    raise TypeError(f"not a condition: {condition!r}")


def render_property(
    key: str,
    clause_list: ClauseList,
    registry: DimensionRegistry,
    *,
    indent: str = "",
    entry_indent: str | None = None,
    newline: str = "\n",
) -> list[str]:
    """Lines (with ``newline`` endings) for ``key`` holding ``clause_list``.

    A list without clauses collapses to ``key: default``; one with neither
    clauses nor default renders as no lines at all.
    """

    if not clause_list.clauses:
        if clause_list.default is None:
            return []
        return [f"{indent}{key}: {clause_list.default}{newline}"]

    inner = entry_indent if entry_indent is not None else indent + "  "
    lines = [f"{indent}{key}:{newline}"]
    for clause in clause_list.clauses:
        text = clause.text if clause.text is not None else render_condition(clause.condition, registry)
        lines.append(f"{inner}if {text}: {clause.outcome}{newline}")
    if clause_list.default is not None:
        lines.append(f"{inner}{clause_list.default}{newline}")
    return lines


__all__ = ["render_literal", "render_condition", "render_property"]
