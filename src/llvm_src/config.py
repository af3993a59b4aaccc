"""Immutable build configuration and its optional environment layer."""

from __future__ import annotations

import os
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Union

from llvm_src.cache.keys import config_key
from llvm_src.errors import ValidationError

DEFAULT_REPOSITORY = "https://github.com/llvm/llvm-project.git"
DEFAULT_REVISION = "llvmorg-16.0.0"
DEFAULT_CACHE_ROOT = Path("llvm-build")
DEFAULT_LOCK_TIMEOUT = 600.0

OptionValue = Union[str, int, bool, tuple[str, ...]]

_PROFILES = {
    "debug": "Debug",
    "release": "Release",
    "relwithdebinfo": "RelWithDebInfo",
    "minsizerel": "MinSizeRel",
}

_TRUTHY = {"1", "true", "yes", "on"}


def normalize_profile(value: str) -> str:
    """Map Rust/CMake profile spellings onto CMake build types.

    Unknown names pass through untouched so custom build types keep working.
    """
    return _PROFILES.get(value.strip().lower(), value.strip())


@dataclass(frozen=True, slots=True)
class ArtifactLayout:
    """Well-known subdirectories of the install prefix scanned for artifacts."""

    lib_dirs: tuple[str, ...] = ("lib",)
    include_dirs: tuple[str, ...] = ("include",)
    bin_dirs: tuple[str, ...] = ("bin",)


@dataclass(frozen=True, slots=True)
class BuildConfig:
    revision: str = DEFAULT_REVISION
    cache_root: Path = DEFAULT_CACHE_ROOT
    repository: str = DEFAULT_REPOSITORY
    source_dir: Path | None = None
    components: tuple[str, ...] = ()
    targets: tuple[str, ...] = ("host",)
    profile: str = "Release"
    host: str | None = None
    target: str | None = None
    shared: bool = False
    jobs: int | None = None
    options: Mapping[str, OptionValue] = field(default_factory=dict, hash=False)
    git: str = "git"
    cmake: str = "cmake"
    ninja: str = "ninja"
    lock_timeout: float = DEFAULT_LOCK_TIMEOUT
    layout: ArtifactLayout = field(default_factory=ArtifactLayout)
    required_libraries: tuple[str, ...] = ("LLVMSupport",)

    def __post_init__(self) -> None:
        if not self.revision or not self.revision.strip():
            raise ValidationError("BuildConfig requires a non-empty revision.")
        if self.jobs is not None and self.jobs < 1:
            raise ValidationError(
                "jobs must be a positive integer.",
                context={"jobs": str(self.jobs)},
            )
        if self.lock_timeout < 0:
            raise ValidationError(
                "lock_timeout must not be negative.",
                context={"lock_timeout": str(self.lock_timeout)},
            )
        options: dict[str, OptionValue] = {}
        for key, value in sorted(self.options.items()):
            if not key or "=" in key or key.strip() != key:
                raise ValidationError(
                    "Generator option keys must be non-empty and contain no `=` or padding.",
                    hint="Pass values through the option value, e.g. option('LLVM_ENABLE_RTTI', True).",
                    context={"key": key},
                )
            options[key] = _normalize_option(value)
        object.__setattr__(self, "options", MappingProxyType(options))
        object.__setattr__(self, "cache_root", Path(self.cache_root))
        if self.source_dir is not None:
            object.__setattr__(self, "source_dir", Path(self.source_dir))
        object.__setattr__(self, "components", tuple(self.components))
        object.__setattr__(self, "targets", tuple(self.targets))
        object.__setattr__(self, "required_libraries", tuple(self.required_libraries))
        object.__setattr__(self, "profile", normalize_profile(self.profile))

    def config_hash(self) -> str:
        """Return the content hash that keys this configuration's build output."""
        return config_key(self)

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        **overrides: object,
    ) -> BuildConfig:
        """Build a config from build-script environment variables.

        Reads ``HOST``, ``TARGET``, ``PROFILE``, ``OUT_DIR`` and ``NUM_JOBS`` as
        set by a parent cargo build, plus the ``LLVM_SRC_*`` variables.
        Explicit keyword overrides win over the environment.
        """
        env = os.environ if environ is None else environ
        values: dict[str, object] = {}
        if env.get("HOST"):
            values["host"] = env["HOST"]
        if env.get("TARGET"):
            values["target"] = env["TARGET"]
        if env.get("PROFILE"):
            values["profile"] = env["PROFILE"]
        if env.get("OUT_DIR"):
            values["cache_root"] = Path(env["OUT_DIR"]) / "llvm-build"
        if env.get("NUM_JOBS"):
            values["jobs"] = _parse_int("NUM_JOBS", env["NUM_JOBS"])
        if env.get("LLVM_SRC_REVISION"):
            values["revision"] = env["LLVM_SRC_REVISION"]
        if env.get("LLVM_SRC_DIR"):
            values["source_dir"] = Path(env["LLVM_SRC_DIR"])
        if env.get("LLVM_SRC_REPOSITORY"):
            values["repository"] = env["LLVM_SRC_REPOSITORY"]
        if env.get("LLVM_SRC_COMPONENTS"):
            values["components"] = _split_list(env["LLVM_SRC_COMPONENTS"])
        if env.get("LLVM_SRC_TARGETS"):
            values["targets"] = _split_list(env["LLVM_SRC_TARGETS"])
        if env.get("LLVM_SRC_SHARED"):
            values["shared"] = env["LLVM_SRC_SHARED"].strip().lower() in _TRUTHY
        values.update(overrides)
        return cls(**values)  # type: ignore[arg-type]


def _normalize_option(value: object) -> OptionValue:
    if isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, Sequence):
        return tuple(str(item) for item in value)
    raise ValidationError(
        "Unsupported generator option value.",
        hint="Use str, int, bool, or a sequence of strings.",
        context={"type": type(value).__name__},
    )


def _split_list(raw: str) -> tuple[str, ...]:
    return tuple(item.strip() for item in raw.replace(",", ";").split(";") if item.strip())


def _parse_int(name: str, raw: str) -> int:
    try:
        return int(raw)
    except ValueError as exc:
        raise ValidationError(
            f"Environment variable {name} must be an integer.",
            context={name: raw},
        ) from exc


__all__ = [
    "ArtifactLayout",
    "BuildConfig",
    "DEFAULT_CACHE_ROOT",
    "DEFAULT_REPOSITORY",
    "DEFAULT_REVISION",
    "OptionValue",
    "normalize_profile",
]
