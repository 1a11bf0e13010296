from __future__ import annotations

import logging
from pathlib import Path

import pandas as pd
import pytest

from expectation_collapse.cli import main
from expectation_collapse.errors import CollapseError, Err
from expectation_collapse.settings import JOBS_ENV, REGISTRY_ENV

FLAKY = """\
[test.html]
  expected:
    if os == "win" and debug: FAIL
    if os == "win" and not debug: FAIL
    if os == "linux": PASS
"""

FLAKY_COLLAPSED = """\
[test.html]
  expected:
    if os == "win": FAIL
    if os == "linux": PASS
"""

REGISTRY_YAML = """\
dimensions:
  os: [win, linux, mac]
  debug: boolean
  bits: [32, 64]
"""


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(REGISTRY_ENV, raising=False)
    monkeypatch.delenv(JOBS_ENV, raising=False)


def write(path: Path, text: str) -> Path:
    path.write_text(text, encoding="utf-8")
    return path


def registry_file(tmp_path: Path) -> Path:
    return write(tmp_path / "registry.yaml", REGISTRY_YAML)


def test_single_file_prints_to_stdout(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    path = write(tmp_path / "test.html.ini", FLAKY)

    exit_code = main([str(path), "--registry", str(registry_file(tmp_path))])

    assert exit_code == 0
    assert capsys.readouterr().out == FLAKY_COLLAPSED
    assert path.read_text(encoding="utf-8") == FLAKY


def test_multiple_files_require_out_dir(tmp_path: Path) -> None:
    first = write(tmp_path / "a.ini", FLAKY)
    second = write(tmp_path / "b.ini", FLAKY)

    with pytest.raises(SystemExit) as exc:
        main([str(first), str(second)])

    assert exc.value.code == 2


def test_out_dir_summary_and_failures(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    good = write(tmp_path / "good.ini", FLAKY)
    bad = write(tmp_path / "bad.ini", "[test.html]\n  expected:\n    FAIL\n    if debug: PASS\n")
    out_dir = tmp_path / "out"
    summary = tmp_path / "summary.csv"

    exit_code = main(
        [
            str(good),
            str(bad),
            "--out-dir",
            str(out_dir),
            "--registry",
            str(registry_file(tmp_path)),
            "--summary",
            str(summary),
        ]
    )

    assert exit_code == 1
    assert (out_dir / "good.ini").read_text(encoding="utf-8") == FLAKY_COLLAPSED
    assert not (out_dir / "bad.ini").exists()
    assert "bad.ini" in capsys.readouterr().err
    frame = pd.read_csv(summary)
    assert frame["status"].tolist() == ["collapsed", "error"]


def test_lenient_and_property_flags(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    text = (
        "[test.html]\n"
        "  expected:\n"
        "    if os == mac: FAIL\n"
        "  disabled:\n"
        "    if bits == 32: flaky\n"
        "    if bits == 64: flaky\n"
    )
    path = write(tmp_path / "test.html.ini", text)

    exit_code = main(
        [str(path), "--registry", str(registry_file(tmp_path)), "--lenient", "--property", "disabled", "--property", "expected"]
    )

    assert exit_code == 0
    assert capsys.readouterr().out == (
        "[test.html]\n"
        "  expected:\n"
        "    if os == mac: FAIL\n"
        "  disabled: flaky\n"
    )


def test_strict_condition_error_fails_file(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    path = write(tmp_path / "test.html.ini", "[test.html]\n  expected:\n    if os == mac: FAIL\n")

    exit_code = main([str(path), "--registry", str(registry_file(tmp_path))])

    captured = capsys.readouterr()
    assert exit_code == 1
    assert captured.out == ""
    assert "expected_literal" in captured.err


def test_default_registry_uses_ci_constraints(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    text = (
        "[test.html]\n"
        "  expected:\n"
        "    if os == \"mac\" and e10s: FAIL\n"
        "    if os == \"mac\" and not e10s: PASS\n"
        "    FAIL\n"
    )
    path = write(tmp_path / "test.html.ini", text)

    assert main([str(path)]) == 0
    assert capsys.readouterr().out == "[test.html]\n  expected: FAIL\n"


def test_registry_from_environment(
    tmp_path: Path, capsys: pytest.CaptureFixture[str], monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv(REGISTRY_ENV, str(registry_file(tmp_path)))
    path = write(tmp_path / "test.html.ini", FLAKY)

    assert main([str(path), "-vv"]) == 0
    assert capsys.readouterr().out == FLAKY_COLLAPSED


def test_invalid_jobs_is_config_error(tmp_path: Path) -> None:
    path = write(tmp_path / "test.html.ini", FLAKY)

    with pytest.raises(CollapseError) as exc:
        main([str(path), "--jobs", "0"])

    assert exc.value.code is Err.INVALID_CONFIG


def test_out_dir_mirrors_directories_of_same_named_files(tmp_path: Path) -> None:
    first = tmp_path / "wpt" / "x" / "__dir__.ini"
    second = tmp_path / "wpt" / "y" / "__dir__.ini"
    first.parent.mkdir(parents=True)
    second.parent.mkdir(parents=True)
    write(first, FLAKY)
    write(second, FLAKY.replace("test.html", "b.html"))
    out_dir = tmp_path / "out"

    exit_code = main(
        [str(first), str(second), "--out-dir", str(out_dir), "--registry", str(registry_file(tmp_path))]
    )

    assert exit_code == 0
    assert sorted(p.relative_to(out_dir).as_posix() for p in out_dir.rglob("*.ini")) == [
        "x/__dir__.ini",
        "y/__dir__.ini",
    ]
    assert (out_dir / "x" / "__dir__.ini").read_text(encoding="utf-8") == FLAKY_COLLAPSED
    assert (out_dir / "y" / "__dir__.ini").read_text(encoding="utf-8") == FLAKY_COLLAPSED.replace("test.html", "b.html")


@pytest.mark.parametrize("flags,level", [([], logging.WARNING), (["-v"], logging.INFO), (["-vvv"], logging.DEBUG)])
def test_verbosity_sets_log_level(tmp_path: Path, flags: list[str], level: int) -> None:
    path = write(tmp_path / "test.html.ini", FLAKY)

    assert main([str(path), "--registry", str(registry_file(tmp_path)), *flags]) == 0
    assert logging.getLogger().level == level
