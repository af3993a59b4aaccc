"""Core typed dataclasses passed between the pipeline stages."""

from __future__ import annotations

import json
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Literal, TextIO

import cbor2

from llvm_src.config import BuildConfig
from llvm_src.metadata import render_metadata

LinkKind = Literal["static", "dylib"]

MARKER_NAME = "llvm-src-complete.json"


@dataclass(frozen=True, slots=True)
class SourceTree:
    path: Path
    revision: str
    commit: str | None = None
    cache_hit: bool = False

    @property
    def cmake_source(self) -> Path:
        """Directory holding LLVM's top-level ``CMakeLists.txt``.

        The monorepo keeps it in ``llvm/``; standalone source tarballs keep
        it at the root.
        """
        nested = self.path / "llvm"
        if (nested / "CMakeLists.txt").exists():
            return nested
        return self.path


@dataclass(frozen=True, slots=True)
class BuildOutput:
    path: Path
    config: BuildConfig
    config_hash: str
    reused: bool = False

    @property
    def build_dir(self) -> Path:
        return self.path / "build"

    @property
    def install_dir(self) -> Path:
        return self.path / "install"

    @property
    def logs_dir(self) -> Path:
        return self.path / "logs"

    @property
    def marker_path(self) -> Path:
        return self.path / MARKER_NAME

    @property
    def link_kind(self) -> LinkKind:
        return "dylib" if self.config.shared else "static"


@dataclass(frozen=True, slots=True)
class Artifacts:
    """Discovered libraries, headers and tools of one finished build."""

    libraries: tuple[Path, ...]
    include_dirs: tuple[Path, ...]
    tools: tuple[Path, ...]
    version: str
    lib_dirs: tuple[Path, ...] = ()
    kind: LinkKind = "static"

    @property
    def link_names(self) -> tuple[str, ...]:
        names: list[str] = []
        for library in self.libraries:
            name = link_name(library)
            if name not in names:
                names.append(name)
        return tuple(names)

    def include(self) -> Path:
        return self.include_dirs[0]

    def lib(self) -> Path:
        return self.lib_dirs[0]

    def libs(self) -> tuple[str, ...]:
        return self.link_names

    def render(self, fmt: str = "cargo") -> str:
        return "".join(f"{line}\n" for line in render_metadata(self, fmt))

    def print_cargo_metadata(self, file: TextIO | None = None) -> None:
        (file or sys.stdout).write(self.render("cargo"))

    def to_json(self, path: str | Path | None = None) -> str:
        encoded = json.dumps(self._payload(), indent=2, sort_keys=True) + "\n"
        if path is not None:
            Path(path).write_text(encoded, encoding="utf-8")
        return encoded

    def to_cbor(self, path: str | Path | None = None) -> bytes:
        encoded = cbor2.dumps(self._payload(), canonical=True)
        if path is not None:
            Path(path).write_bytes(encoded)
        return encoded

    def _payload(self) -> dict[str, object]:
        return {
            "version": self.version,
            "kind": self.kind,
            "libraries": [str(p) for p in self.libraries],
            "link_names": list(self.link_names),
            "lib_dirs": [str(p) for p in self.lib_dirs],
            "include_dirs": [str(p) for p in self.include_dirs],
            "tools": [str(p) for p in self.tools],
        }


_LIBRARY_SUFFIXES = (".a", ".lib", ".so", ".dylib", ".dll")


def link_name(path: Path) -> str:
    """Return the linker name of a library file (``libLLVMCore.a`` -> ``LLVMCore``)."""
    name = path.name
    if ".so." in name:
        name = name[: name.index(".so.")]
    else:
        for suffix in _LIBRARY_SUFFIXES:
            if name.endswith(suffix):
                name = name[: -len(suffix)]
                if suffix == ".lib":
                    return name
                break
    if name.startswith("lib") and len(name) > 3:
        name = name[3:]
    return name


__all__ = [
    "Artifacts",
    "BuildOutput",
    "LinkKind",
    "MARKER_NAME",
    "SourceTree",
    "link_name",
]
