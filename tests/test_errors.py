from llvm_src.errors import (
    AcquireError,
    BuildError,
    Cancelled,
    ContendedBuild,
    CorruptLocalTree,
    ErrorCode,
    LocateError,
    MissingExpectedArtifact,
    NetworkFailure,
    RevisionNotFound,
    ToolFailed,
    ToolMissing,
    ValidationError,
)


def test_error_codes_are_stable_and_machine_readable() -> None:
    errors = [
        ValidationError("bad input"),
        NetworkFailure("offline"),
        RevisionNotFound("no such tag"),
        CorruptLocalTree("broken"),
        ToolMissing("cmake"),
        ToolFailed("failed", exit_code=2),
        Cancelled("stopped"),
        ContendedBuild("busy"),
        MissingExpectedArtifact("LLVMSupport"),
    ]
    assert [error.code for error in errors] == [
        ErrorCode.VALIDATION.value,
        ErrorCode.ACQUIRE.value,
        ErrorCode.ACQUIRE.value,
        ErrorCode.ACQUIRE.value,
        ErrorCode.BUILD.value,
        ErrorCode.BUILD.value,
        ErrorCode.BUILD.value,
        ErrorCode.BUILD.value,
        ErrorCode.LOCATE.value,
    ]


def test_error_families_share_stage_base_classes() -> None:
    assert isinstance(RevisionNotFound("x"), AcquireError)
    assert isinstance(ContendedBuild("x"), BuildError)
    assert isinstance(MissingExpectedArtifact("x"), LocateError)


def test_tool_failed_preserves_exit_code_and_stderr_tail() -> None:
    error = ToolFailed("build step failed.", exit_code=3, stderr_tail="ld: undefined symbol")

    assert error.exit_code == 3
    assert error.stderr_tail == "ld: undefined symbol"
    assert error.context["returncode"] == "3"
    assert "ld: undefined symbol" in str(error)


def test_annotate_adds_context_without_overwriting() -> None:
    error = ToolMissing("ninja", context={"operation": "build"})
    error.annotate(stage="build", operation="other", config_hash="abc")

    assert error.stage == "build"
    assert error.context["operation"] == "build"
    assert error.context["config_hash"] == "abc"


def test_to_dict_includes_kind_hint_and_context() -> None:
    payload = MissingExpectedArtifact("clang").to_dict()

    assert payload["code"] == "E_LOCATE"
    assert payload["kind"] == "MissingExpectedArtifact"
    assert payload["context"] == {"artifact": "clang"}
    assert "hint" in payload
