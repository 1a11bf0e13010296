"""Collapse whole annotation files.

A file is read completely, every conditional property block is minimized
independently, and the output is reassembled with every byte outside the
rewritten blocks preserved. Structural errors are fatal for the file;
validation failures only leave the affected key untouched.
"""

from __future__ import annotations

import logging
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Sequence

from expectation_collapse.errors import CollapseError, ConditionParseError, Err
from expectation_collapse.manifest import PropertyBlock, parse_manifest
from expectation_collapse.minimizer import minimize
from expectation_collapse.models import Clause, ClauseList, KeyReport, KeyStatus, TestRecord
from expectation_collapse.parser import parse_condition
from expectation_collapse.registry import DimensionRegistry
from expectation_collapse.serializer import render_property
from expectation_collapse.settings import CollapseSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CollapseResult:
    original: str
    content: str
    reports: tuple[KeyReport, ...]
    records: tuple[TestRecord, ...]

    @property
    def changed(self) -> bool:
        return self.content != self.original

    def count(self, status: KeyStatus) -> int:
        return sum(1 for report in self.reports if report.status is status)


@dataclass(frozen=True)
class FileOutcome:
    path: Path
    result: CollapseResult | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.result is not None


def block_clause_list(block: PropertyBlock, registry: DimensionRegistry) -> ClauseList:
    """Parse the conditions of ``block``; errors carry the 1-based line."""
    clauses: list[Clause] = []
    for entry in block.entries:
        try:
            condition = parse_condition(entry.condition, registry)
        except ConditionParseError as exc:
            exc.ctx.update({"line": entry.line, "key": block.key})
            raise
        clauses.append(Clause(condition, entry.outcome, text=entry.condition))
    return ClauseList(tuple(clauses), block.default)


def _report(block: PropertyBlock, status: KeyStatus, before: int, after: int, points: int = 0, detail: str | None = None) -> KeyReport:
    return KeyReport(
        section=block.section,
        key=block.key,
        line=block.line,
        status=status,
        clauses_before=before,
        clauses_after=after,
        points=points,
        detail=detail,
    )


def collapse_text(
    text: str,
    registry: DimensionRegistry,
    settings: CollapseSettings | None = None,
    *,
    source: str = "<text>",
) -> CollapseResult:
    settings = settings or CollapseSettings()
    manifest = parse_manifest(text)

    replacements: dict[int, tuple[int, list[str]]] = {}
    reports: list[KeyReport] = []
    properties: dict[tuple[str, ...], dict[str, ClauseList]] = {}

    for block in manifest.blocks:
        size = len(block.entries) + (block.default is not None)
        if not settings.wants(block.key):
            continue
        if block.has_comments:
            logger.info(f"{source}:{block.line}: skipping {block.key!r}, block contains comments")
            reports.append(_report(block, KeyStatus.SKIPPED, size, size, detail="comments inside block"))
            continue

        try:
            clause_list = block_clause_list(block, registry)
        except ConditionParseError as exc:
            if settings.strict:
                raise
            logger.warning(f"{source}:{exc.ctx['line']}: leaving {block.key!r} unchanged: {exc}")
            reports.append(_report(block, KeyStatus.PARSE_FAILED, size, size, detail=str(exc)))
            continue

        result = minimize(clause_list, registry)
        if result.status is KeyStatus.VALIDATION_FAILED:
            logger.warning(f"{source}:{block.line}: validation failed for {block.key!r}, kept original: {result.detail}")
        else:
            logger.debug(
                f"{source}:{block.line}: {block.key!r} {result.status.value} "
                f"({size} -> {result.clause_list.size} over {result.points} points)"
            )

        if result.changed:
            lines = render_property(
                block.key,
                result.clause_list,
                registry,
                indent=block.indent,
                entry_indent=block.entry_indent,
                newline=manifest.newline,
            )
            last = manifest.lines[block.end - 1]
            if lines and not last.endswith("\n"):
                lines[-1] = lines[-1].rstrip("\r\n")
            replacements[block.start] = (block.end, lines)

        properties.setdefault(block.section, {})[block.key] = result.clause_list
        reports.append(_report(block, result.status, size, result.clause_list.size, result.points, result.detail))

    content = _assemble(manifest.lines, replacements)
    if content != text:
        try:
            parse_manifest(content)
        except CollapseError as exc:
            raise CollapseError(Err.INTERNAL, ctx={"error": "collapsed output does not parse", "path": source}, cause=exc)

    records = tuple(TestRecord(path=section, properties=props) for section, props in properties.items())
    collapsed = sum(1 for r in reports if r.status is KeyStatus.COLLAPSED)
    logger.info(f"{source}: collapsed {collapsed} of {len(reports)} conditional properties")
    return CollapseResult(original=text, content=content, reports=tuple(reports), records=records)


def _assemble(lines: Sequence[str], replacements: dict[int, tuple[int, list[str]]]) -> str:
    out: list[str] = []
    index = 0
    while index < len(lines):
        if index in replacements:
            end, new_lines = replacements[index]
            out.extend(new_lines)
            index = end
            continue
        out.append(lines[index])
        index += 1
    return "".join(out)


def collapse_file(
    path: Path | str,
    registry: DimensionRegistry,
    settings: CollapseSettings | None = None,
) -> CollapseResult:
    """Read ``path`` fully and return its collapsed content; never writes."""
    file_path = Path(path)
    try:
        text = file_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise CollapseError(Err.IO_ERROR, ctx={"path": str(file_path)}, cause=exc)
    return collapse_text(text, registry, settings, source=str(file_path))


def _collapse_one(path: Path, registry: DimensionRegistry, settings: CollapseSettings) -> FileOutcome:
    try:
        return FileOutcome(path, collapse_file(path, registry, settings))
    except CollapseError as exc:
        logger.error(f"{path}: {exc}")
        return FileOutcome(path, error=str(exc))


def collapse_files(
    paths: Iterable[Path | str],
    registry: DimensionRegistry,
    settings: CollapseSettings | None = None,
) -> list[FileOutcome]:
    """Collapse files independently, in parallel when ``settings.jobs > 1``.

    Results come back in input order. A file that fails to parse yields a
    :class:`FileOutcome` with ``error`` set; other files are unaffected.
    """

    settings = settings or CollapseSettings()
    file_paths = [Path(p) for p in paths]
    if settings.jobs == 1 or len(file_paths) <= 1:
        return [_collapse_one(path, registry, settings) for path in file_paths]

    workers = min(settings.jobs, len(file_paths))
    with ProcessPoolExecutor(max_workers=workers) as executor:
        return list(
            executor.map(
                _collapse_one,
                file_paths,
                [registry] * len(file_paths),
                [settings] * len(file_paths),
            )
        )


__all__ = [
    "CollapseResult",
    "FileOutcome",
    "block_clause_list",
    "collapse_text",
    "collapse_file",
    "collapse_files",
]
