import functools
import json
from pathlib import Path

import pytest

from llvm_src import Build
from llvm_src.cli import main

from fakes import FakeToolchain


@pytest.fixture
def patched_build(monkeypatch: pytest.MonkeyPatch, toolchain: FakeToolchain) -> FakeToolchain:
    monkeypatch.setattr("llvm_src.cli.Build", functools.partial(Build, runner=toolchain))
    return toolchain


def test_build_prints_cargo_metadata(
    tmp_path: Path,
    patched_build: FakeToolchain,
    capsys: pytest.CaptureFixture[str],
) -> None:
    exit_code = main(["--cache-dir", str(tmp_path), "build", "--component", "lld"])

    lines = capsys.readouterr().out.splitlines()
    assert exit_code == 0
    assert "cargo:rustc-link-lib=static=lldCommon" in lines
    assert lines[-1] == "cargo:version=16.0.0"


def test_build_forwards_options_and_jobs(
    tmp_path: Path,
    patched_build: FakeToolchain,
) -> None:
    argv = [
        "--cache-dir",
        str(tmp_path),
        "build",
        "-D",
        "LLVM_ENABLE_ASSERTIONS",
        "--option=LLVM_USE_LINKER=lld",
        "--option=-Wno-dev",
        "--jobs",
        "3",
    ]

    assert main(argv) == 0

    configure = patched_build.calls_for("cmake")[0]
    assert "-DLLVM_ENABLE_ASSERTIONS=ON" in configure
    assert "-DLLVM_USE_LINKER=lld" in configure
    assert "-Wno-dev" in configure
    assert patched_build.calls_for("ninja")[0][-3:] == ("-j", "3", "install")


def test_build_json_format_and_log_file(
    tmp_path: Path,
    patched_build: FakeToolchain,
    capsys: pytest.CaptureFixture[str],
) -> None:
    log_path = tmp_path / "logs" / "llvm-src.jsonl"

    exit_code = main(
        [
            "--cache-dir",
            str(tmp_path / "cache"),
            "build",
            "--format",
            "json",
            "--log-json",
            str(log_path),
        ]
    )

    payload = json.loads(capsys.readouterr().out)
    assert exit_code == 0
    assert payload["version"] == "16.0.0"
    records = [json.loads(line) for line in log_path.read_text(encoding="utf-8").splitlines()]
    assert records[0]["operation"] == "lock_start"
    assert records[-1]["operation"] == "locate_complete"


def test_failure_exits_nonzero_with_message(
    tmp_path: Path,
    patched_build: FakeToolchain,
    capsys: pytest.CaptureFixture[str],
) -> None:
    patched_build.fail("cmake", exit_code=1, stderr="CMake Error: generator mismatch\n")

    exit_code = main(["--cache-dir", str(tmp_path), "build"])

    captured = capsys.readouterr()
    assert exit_code == 1
    assert captured.out == ""
    assert captured.err.startswith("error: configure step failed.")


def test_clear_reports_removed_directories(
    tmp_path: Path,
    patched_build: FakeToolchain,
    capsys: pytest.CaptureFixture[str],
) -> None:
    assert main(["--cache-dir", str(tmp_path), "build"]) == 0
    capsys.readouterr()

    assert main(["--cache-dir", str(tmp_path), "clear", "--builds-only"]) == 0

    assert capsys.readouterr().out == f"removed {tmp_path / 'build'}\n"
    assert (tmp_path / "src").exists()


def test_clear_rejects_conflicting_flags(
    tmp_path: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    exit_code = main(["--cache-dir", str(tmp_path), "clear", "--sources-only", "--builds-only"])

    assert exit_code == 1
    assert "mutually exclusive" in capsys.readouterr().err
