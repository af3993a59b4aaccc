"""Public package entrypoint for the LLVM source build helper."""

from .build import Build
from .config import ArtifactLayout, BuildConfig
from .errors import (
    AcquireError,
    BuildError,
    Cancelled,
    ContendedBuild,
    CorruptLocalTree,
    ErrorCode,
    LlvmSrcError,
    LocateError,
    MissingExpectedArtifact,
    NetworkFailure,
    RevisionNotFound,
    ToolFailed,
    ToolMissing,
    ValidationError,
)
from .models import Artifacts, BuildOutput, SourceTree
from .process import CancelToken, SubprocessRunner, ToolResult, ToolRunner

__all__ = [
    "AcquireError",
    "ArtifactLayout",
    "Artifacts",
    "Build",
    "BuildConfig",
    "BuildError",
    "BuildOutput",
    "Cancelled",
    "CancelToken",
    "ContendedBuild",
    "CorruptLocalTree",
    "ErrorCode",
    "LlvmSrcError",
    "LocateError",
    "MissingExpectedArtifact",
    "NetworkFailure",
    "RevisionNotFound",
    "SourceTree",
    "SubprocessRunner",
    "ToolFailed",
    "ToolMissing",
    "ToolResult",
    "ToolRunner",
    "ValidationError",
]
