import json
from pathlib import Path

import pytest

from llvm_src.errors import ToolFailed
from llvm_src.observability import StructuredLogger


def test_stage_logs_start_and_completion_with_elapsed_time() -> None:
    logger = StructuredLogger()

    with logger.stage("acquire", revision="llvmorg-16.0.0", config_hash="abc"):
        pass

    records = logger.records_for_stage("acquire")
    assert [record["operation"] for record in records] == ["acquire_start", "acquire_complete"]
    assert records[-1]["extra"]["elapsed_s"] >= 0
    assert logger.stage_outcomes() == {"acquire": "complete"}


def test_stage_logs_failure_payload_and_reraises() -> None:
    logger = StructuredLogger()

    with pytest.raises(ToolFailed):
        with logger.stage("build", revision="llvmorg-16.0.0", config_hash="abc"):
            raise ToolFailed("build step failed.", exit_code=2, stderr_tail="ld: error")

    failure = logger.records[-1]
    assert failure["operation"] == "build_failed"
    assert failure["level"] == "error"
    assert failure["extra"]["code"] == "E_BUILD"
    assert failure["extra"]["context"]["returncode"] == "2"
    assert logger.stage_outcomes() == {"build": "failed"}


def test_stage_outcomes_track_unfinished_stages() -> None:
    logger = StructuredLogger()
    with logger.stage("lock", revision=None, config_hash=None):
        pass
    logger.log(
        operation="build_start",
        stage="build",
        revision=None,
        config_hash=None,
        message="Starting build stage.",
    )

    assert logger.stage_outcomes() == {"lock": "complete", "build": "running"}


def test_records_export_as_json_lines(tmp_path: Path) -> None:
    logger = StructuredLogger()
    with logger.stage("locate", revision="r", config_hash="k"):
        pass

    path = logger.to_json_lines(tmp_path / "logs" / "run.jsonl")

    lines = [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]
    assert [line["operation"] for line in lines] == ["locate_start", "locate_complete"]
