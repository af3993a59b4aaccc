"""Typed error model with stable, machine-readable error codes."""

from __future__ import annotations

from collections.abc import Mapping
from enum import StrEnum


class ErrorCode(StrEnum):
    """Stable error identifiers used across API surfaces."""

    VALIDATION = "E_VALIDATION"
    ACQUIRE = "E_ACQUIRE"
    BUILD = "E_BUILD"
    LOCATE = "E_LOCATE"


class LlvmSrcError(Exception):
    """Base error class that carries code, optional hint, and context."""

    code: str
    hint: str | None
    context: dict[str, str]

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code.value
        self.hint = hint
        self.context = dict(context or {})

    @property
    def stage(self) -> str | None:
        return self.context.get("stage")

    def annotate(self, **context: str) -> None:
        """Add diagnostic context without overwriting what the raiser recorded."""
        for key, value in context.items():
            self.context.setdefault(key, value)

    def __str__(self) -> str:
        parts = [super().__str__()]
        if self.hint:
            parts.append(f"Hint: {self.hint}")
        if self.context:
            for k, v in self.context.items():
                if v:
                    parts.append(f"  {k}: {v}")
        return "\n".join(parts)

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "code": self.code,
            "kind": type(self).__name__,
            "message": str(self),
            "context": dict(self.context),
        }
        if self.hint is not None:
            payload["hint"] = self.hint
        return payload


class ValidationError(LlvmSrcError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.VALIDATION, hint=hint, context=context)


# ── Source acquisition ──────────────────────────────────────────────


class AcquireError(LlvmSrcError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.ACQUIRE, hint=hint, context=context)


class NetworkFailure(AcquireError):
    """The source repository could not be reached."""


class RevisionNotFound(AcquireError):
    """The repository does not carry the requested revision."""


class CorruptLocalTree(AcquireError):
    """A cached source tree exists but is not a valid checkout."""


# ── Build invocation ────────────────────────────────────────────────


class BuildError(LlvmSrcError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.BUILD, hint=hint, context=context)


class ToolMissing(BuildError):
    def __init__(
        self,
        tool: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(
            f"Required tool `{tool}` was not found.",
            hint=hint or f"Install `{tool}` or point the build at it explicitly.",
            context={"tool": tool, **(context or {})},
        )
        self.tool = tool


class ToolFailed(BuildError):
    def __init__(
        self,
        message: str,
        *,
        exit_code: int,
        stderr_tail: str = "",
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(
            message,
            hint=hint,
            context={
                "returncode": str(exit_code),
                "stderr": stderr_tail,
                **(context or {}),
            },
        )
        self.exit_code = exit_code
        self.stderr_tail = stderr_tail


class Cancelled(BuildError):
    """The caller cancelled a running external process."""


class ContendedBuild(BuildError):
    """Another builder held the cache lock past the configured timeout."""


# ── Artifact discovery ──────────────────────────────────────────────


class LocateError(LlvmSrcError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.LOCATE, hint=hint, context=context)


class MissingExpectedArtifact(LocateError):
    def __init__(
        self,
        name: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(
            f"Expected artifact `{name}` is missing from the build output.",
            hint=hint or "Check the enabled components and the build log for this output.",
            context={"artifact": name, **(context or {})},
        )
        self.name = name


__all__ = [
    "AcquireError",
    "BuildError",
    "Cancelled",
    "ContendedBuild",
    "CorruptLocalTree",
    "ErrorCode",
    "LlvmSrcError",
    "LocateError",
    "MissingExpectedArtifact",
    "NetworkFailure",
    "RevisionNotFound",
    "ToolFailed",
    "ToolMissing",
    "ValidationError",
]
