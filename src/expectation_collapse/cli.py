"""Command-line entry point for collapsing annotation files."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Iterable

from expectation_collapse.driver import collapse_files
from expectation_collapse.errors import CollapseError
from expectation_collapse.report import reports_to_frame, status_counts, write_summary
from expectation_collapse.settings import CollapseSettings

LOG_LEVELS = (logging.WARNING, logging.INFO, logging.DEBUG)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Collapse conditional expectations in annotation files without changing their meaning",
    )
    parser.add_argument("paths", nargs="+", help="Annotation files to collapse")
    parser.add_argument(
        "--out-dir",
        help="Write collapsed copies here (required for more than one path; default prints to stdout)",
    )
    parser.add_argument("--registry", help="YAML/JSON file declaring dimensions and constraints")
    parser.add_argument(
        "--property",
        action="append",
        dest="properties",
        default=None,
        help="Only collapse this property key (may be repeated)",
    )
    parser.add_argument(
        "--lenient",
        action="store_true",
        help="Leave keys with unparseable conditions unchanged instead of failing the file",
    )
    parser.add_argument("--jobs", type=int, help="Worker processes for multiple files")
    parser.add_argument("--summary", help="Write a per-key CSV summary to this path")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="Increase diagnostic output")
    return parser


def common_parent(paths: Iterable[Path]) -> Path:
    """Deepest directory containing every path in ``paths``."""
    return Path(os.path.commonpath([str(path.resolve().parent) for path in paths]))


def output_path(out_dir: Path, path: Path, base: Path) -> Path:
    """Mirror ``path`` under ``out_dir`` relative to ``base``."""
    return out_dir / path.resolve().relative_to(base)


def configure_logging(verbosity: int) -> None:
    level = LOG_LEVELS[min(verbosity, len(LOG_LEVELS) - 1)]
    logging.basicConfig(level=level, stream=sys.stderr, format="%(levelname)s %(name)s: %(message)s", force=True)


def main(argv: Iterable[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    if len(args.paths) > 1 and not args.out_dir:
        parser.error("--out-dir is required when collapsing more than one file")

    settings = CollapseSettings.from_env(
        registry_path=args.registry,
        properties=tuple(args.properties) if args.properties else None,
        strict=not args.lenient,
        jobs=args.jobs,
        verbosity=args.verbose,
    )
    configure_logging(settings.verbosity)
    registry = settings.load_registry()
    outcomes = collapse_files(args.paths, registry, settings)
    base = common_parent(Path(p) for p in args.paths)

    for outcome in outcomes:
        if outcome.result is None:
            print(f"error: {outcome.path}: {outcome.error}", file=sys.stderr)
            continue
        if args.out_dir:
            target = output_path(Path(args.out_dir), outcome.path, base)
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(outcome.result.content, encoding="utf-8", newline="")
        else:
            sys.stdout.write(outcome.result.content)

    if args.summary:
        frame = reports_to_frame(outcomes)
        write_summary(frame, args.summary)
        logging.getLogger(__name__).info(f"Summary written to {args.summary}: {status_counts(frame)}")

    return 0 if all(outcome.ok for outcome in outcomes) else 1


def entrypoint() -> None:  # pragma: no cover - console entry
    try:
        raise SystemExit(main())
    except CollapseError as exc:  # pragma: no cover - console behavior
        raise SystemExit(f"error: {exc}")


__all__ = ["main", "entrypoint", "configure_logging", "common_parent", "output_path"]
