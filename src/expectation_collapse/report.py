"""Tabular summary of a collapse run."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable

import pandas as pd

from expectation_collapse.driver import FileOutcome

SUMMARY_COLUMNS = [
    "path",
    "section",
    "key",
    "line",
    "status",
    "clauses_before",
    "clauses_after",
    "points",
    "detail",
]


def reports_to_frame(outcomes: Iterable[FileOutcome]) -> pd.DataFrame:
    """One row per property block; files that failed get a single ``error`` row."""

    rows: list[dict[str, object]] = []
    for outcome in outcomes:
        if outcome.result is None:
            rows.append(
                {
                    "path": str(outcome.path),
                    "section": "",
                    "key": "",
                    "line": 0,
                    "status": "error",
                    "clauses_before": 0,
                    "clauses_after": 0,
                    "points": 0,
                    "detail": outcome.error,
                }
            )
            continue
        for report in outcome.result.reports:
            rows.append(
                {
                    "path": str(outcome.path),
                    "section": " > ".join(report.section),
                    "key": report.key,
                    "line": report.line,
                    "status": report.status.value,
                    "clauses_before": report.clauses_before,
                    "clauses_after": report.clauses_after,
                    "points": report.points,
                    "detail": report.detail,
                }
            )
    return pd.DataFrame(rows, columns=SUMMARY_COLUMNS)


def status_counts(frame: pd.DataFrame) -> dict[str, int]:
    if frame.empty:
        return {}
    return {str(k): int(v) for k, v in frame["status"].value_counts().sort_index().items()}


def write_summary(frame: pd.DataFrame, path: Path | str) -> Path:
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    frame.to_csv(out, index=False)
    return out


__all__ = ["SUMMARY_COLUMNS", "reports_to_frame", "status_counts", "write_summary"]
