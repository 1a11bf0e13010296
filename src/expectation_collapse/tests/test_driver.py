from __future__ import annotations

from pathlib import Path

import pytest

from expectation_collapse import minimizer
from expectation_collapse.conditions import Compare
from expectation_collapse.driver import collapse_file, collapse_files, collapse_text
from expectation_collapse.errors import (
    CollapseError,
    ConditionParseError,
    Err,
    ManifestParseError,
    UnknownDimensionError,
)
from expectation_collapse.models import Clause, ClauseList, KeyStatus
from expectation_collapse.registry import parse_registry_mapping
from expectation_collapse.settings import CollapseSettings

SCENARIO_A = """\
# leading comment
[test.html]
  bug: 1234
  expected:
    if os == "win" and debug: FAIL
    if os == "win" and not debug: FAIL
    if os == "linux": PASS

  [subtest]
    expected: FAIL
"""

SCENARIO_A_COLLAPSED = """\
# leading comment
[test.html]
  bug: 1234
  expected:
    if os == "win": FAIL
    if os == "linux": PASS

  [subtest]
    expected: FAIL
"""


def test_collapse_text_rewrites_only_the_block(registry) -> None:
    result = collapse_text(SCENARIO_A, registry)

    assert result.content == SCENARIO_A_COLLAPSED
    assert result.changed
    (report,) = result.reports
    assert report.status is KeyStatus.COLLAPSED
    assert (report.clauses_before, report.clauses_after, report.points) == (3, 2, 6)
    assert report.line == 4
    assert report.label == "test.html > expected"
    (record,) = result.records
    assert record.test == "test.html"
    assert record.subtest is None
    assert record.properties["expected"] == ClauseList(
        (Clause(Compare("os", "win"), "FAIL"), Clause(Compare("os", "linux"), "PASS"))
    )


def test_collapse_text_is_idempotent(registry) -> None:
    once = collapse_text(SCENARIO_A, registry)
    twice = collapse_text(once.content, registry)

    assert twice.content == once.content
    assert not twice.changed
    assert twice.count(KeyStatus.UNCHANGED) == 1


def test_block_collapses_to_single_line(registry) -> None:
    text = "[a.html]\n  [sub]\n    expected:\n      if bits == 32: TIMEOUT\n      if bits == 64: TIMEOUT\n"

    result = collapse_text(text, registry)

    assert result.content == "[a.html]\n  [sub]\n    expected: TIMEOUT\n"
    assert result.records[0].subtest == "sub"


def test_missing_trailing_newline_and_crlf_preserved(registry) -> None:
    text = "[a.html]\r\n  expected:\r\n    if bits == 32: TIMEOUT\r\n    if bits == 64: TIMEOUT"

    result = collapse_text(text, registry)

    assert result.content == "[a.html]\r\n  expected: TIMEOUT"


def test_unreachable_block_is_removed() -> None:
    registry = parse_registry_mapping(
        {
            "dimensions": {"os": ["linux", "mac"], "e10s": "boolean"},
            "constraints": [{"when": 'os == "mac"', "require": "e10s"}],
        }
    )
    text = "[a.html]\n  expected:\n    if os == \"mac\" and not e10s: FAIL\n  bug: 1\n"

    result = collapse_text(text, registry)

    assert result.content == "[a.html]\n  bug: 1\n"


def test_minimal_file_is_byte_identical(registry) -> None:
    text = "[a.html]\n  expected:\n    if debug: FAIL\n    PASS\n"

    result = collapse_text(text, registry)

    assert result.content == text
    assert not result.changed
    assert result.reports[0].status is KeyStatus.UNCHANGED


def test_strict_mode_condition_error_is_fatal(registry) -> None:
    text = "[a.html]\n  expected:\n    if debug: FAIL\n    if os == win: PASS\n"

    with pytest.raises(ConditionParseError) as exc:
        collapse_text(text, registry)

    assert exc.value.code is Err.PARSE_ERROR
    assert exc.value.ctx["line"] == 4
    assert exc.value.ctx["key"] == "expected"


def test_unknown_dimension_is_fatal(registry) -> None:
    text = "[a.html]\n  expected:\n    if arch == \"arm\": FAIL\n"

    with pytest.raises(UnknownDimensionError) as exc:
        collapse_text(text, registry)

    assert exc.value.code is Err.UNKNOWN_DIMENSION
    assert exc.value.ctx["line"] == 3


def test_lenient_mode_keeps_only_the_bad_key(registry) -> None:
    text = (
        "[a.html]\n"
        "  expected:\n"
        "    if os == win: PASS\n"
        "  [sub]\n"
        "    expected:\n"
        "      if bits == 32: TIMEOUT\n"
        "      if bits == 64: TIMEOUT\n"
    )

    result = collapse_text(text, registry, CollapseSettings(strict=False))

    assert result.content == (
        "[a.html]\n"
        "  expected:\n"
        "    if os == win: PASS\n"
        "  [sub]\n"
        "    expected: TIMEOUT\n"
    )
    assert [r.status for r in result.reports] == [KeyStatus.PARSE_FAILED, KeyStatus.COLLAPSED]
    assert "expected_literal" in result.reports[0].detail


def test_structural_errors_propagate(registry) -> None:
    with pytest.raises(ManifestParseError):
        collapse_text("[a.html]\n  expected:\n    FAIL\n    if debug: PASS\n", registry)


def test_blocks_with_comments_are_skipped(registry) -> None:
    text = "[a.html]\n  expected:\n    # bug 1\n    if bits == 32: TIMEOUT\n    if bits == 64: TIMEOUT\n"

    result = collapse_text(text, registry)

    assert result.content == text
    assert result.reports[0].status is KeyStatus.SKIPPED


def test_property_filter(registry) -> None:
    text = (
        "[a.html]\n"
        "  expected:\n"
        "    if bits == 32: TIMEOUT\n"
        "    if bits == 64: TIMEOUT\n"
        "  disabled:\n"
        "    if bits == 32: flaky\n"
        "    if bits == 64: flaky\n"
    )

    result = collapse_text(text, registry, CollapseSettings(properties=("disabled",)))

    assert result.content == (
        "[a.html]\n"
        "  expected:\n"
        "    if bits == 32: TIMEOUT\n"
        "    if bits == 64: TIMEOUT\n"
        "  disabled: flaky\n"
    )
    assert [r.key for r in result.reports] == ["disabled"]


def test_validation_failure_keeps_key(registry, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(minimizer, "_term_condition", lambda term, dims, registry: Compare("os", "mac"))

    result = collapse_text(SCENARIO_A, registry)

    assert result.content == SCENARIO_A
    assert result.reports[0].status is KeyStatus.VALIDATION_FAILED


def test_collapse_file_reads_without_writing(tmp_path: Path, registry) -> None:
    path = tmp_path / "test.html.ini"
    path.write_text(SCENARIO_A, encoding="utf-8")

    result = collapse_file(path, registry)

    assert result.content == SCENARIO_A_COLLAPSED
    assert path.read_text(encoding="utf-8") == SCENARIO_A


def test_collapse_file_missing_is_io_error(tmp_path: Path, registry) -> None:
    with pytest.raises(CollapseError) as exc:
        collapse_file(tmp_path / "missing.ini", registry)
    assert exc.value.code is Err.IO_ERROR


@pytest.mark.parametrize("jobs", [1, 2])
def test_collapse_files_isolates_failures(tmp_path: Path, registry, jobs: int) -> None:
    good = tmp_path / "good.ini"
    good.write_text(SCENARIO_A, encoding="utf-8")
    bad = tmp_path / "bad.ini"
    bad.write_text("[a.html]\n  expected:\n    if nope: FAIL\n", encoding="utf-8")
    other = tmp_path / "other.ini"
    other.write_text(SCENARIO_A_COLLAPSED, encoding="utf-8")

    outcomes = collapse_files([good, bad, other], registry, CollapseSettings(jobs=jobs))

    assert [o.path for o in outcomes] == [good, bad, other]
    assert [o.ok for o in outcomes] == [True, False, True]
    assert outcomes[0].result.content == SCENARIO_A_COLLAPSED
    assert "UNKNOWN_DIMENSION" in outcomes[1].error
    assert not outcomes[2].result.changed
