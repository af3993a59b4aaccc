"""Artifact discovery over a finished build's install prefix."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path

from llvm_src.errors import MissingExpectedArtifact
from llvm_src.models import Artifacts, BuildOutput, LinkKind, link_name

# Library name prefix each LLVM project is expected to install.
COMPONENT_LIBRARY_PREFIXES: dict[str, str] = {
    "bolt": "LLVMBOLT",
    "clang": "clang",
    "flang": "Fortran",
    "lld": "lld",
    "lldb": "lldb",
    "mlir": "MLIR",
    "polly": "Polly",
}

_LIBRARY_PATTERNS: dict[LinkKind, tuple[str, ...]] = {
    "static": (".a", ".lib"),
    "dylib": (".so", ".dylib", ".dll"),
}

_VERSION_HEADER = Path("llvm") / "Config" / "llvm-config.h"
_VERSION_CMAKE = Path("cmake") / "llvm" / "LLVMConfigVersion.cmake"
_HEADER_VERSION = re.compile(r'^#define\s+LLVM_VERSION_STRING\s+"([^"]+)"', re.MULTILINE)
_CMAKE_VERSION = re.compile(r'set\(\s*PACKAGE_VERSION\s+"([^"]+)"\s*\)')


@dataclass(slots=True)
class ArtifactLocator:
    """Enumerate libraries, headers and tools in fixed install subdirectories.

    Only the layout's top-level directories are listed, never walked, and every
    sequence is sorted so repeated calls yield identical :class:`Artifacts`.
    """

    def locate(self, output: BuildOutput) -> Artifacts:
        layout = output.config.layout
        prefix = output.install_dir
        kind = output.link_kind

        lib_dirs = _existing_dirs(prefix, layout.lib_dirs)
        include_dirs = _existing_dirs(prefix, layout.include_dirs)
        bin_dirs = _existing_dirs(prefix, layout.bin_dirs)

        libraries = tuple(
            sorted(path for lib_dir in lib_dirs for path in _list_libraries(lib_dir, kind))
        )
        tools = tuple(sorted(path for bin_dir in bin_dirs for path in _list_tools(bin_dir)))
        context = {"install_dir": str(prefix), "config_hash": output.config_hash}

        if not libraries:
            raise MissingExpectedArtifact(
                f"{kind} libraries",
                hint="The build claimed success but installed no libraries.",
                context=context,
            )
        names = {link_name(path) for path in libraries}
        for required in output.config.required_libraries:
            if required not in names:
                raise MissingExpectedArtifact(required, context=context)
        for component in output.config.components:
            prefix_name = COMPONENT_LIBRARY_PREFIXES.get(component)
            if prefix_name is None:
                continue
            if not any(name.startswith(prefix_name) for name in names):
                raise MissingExpectedArtifact(
                    component,
                    hint=f"No `{prefix_name}*` library was installed for enabled component.",
                    context=context,
                )

        version = _resolve_version(include_dirs, lib_dirs)
        if version is None:
            raise MissingExpectedArtifact(
                str(_VERSION_HEADER),
                hint="Unable to resolve the LLVM version from installed headers or CMake files.",
                context=context,
            )
        return Artifacts(
            libraries=libraries,
            include_dirs=include_dirs,
            tools=tools,
            version=version,
            lib_dirs=lib_dirs,
            kind=kind,
        )


def _existing_dirs(prefix: Path, names: tuple[str, ...]) -> tuple[Path, ...]:
    return tuple(prefix / name for name in names if (prefix / name).is_dir())


def _list_libraries(lib_dir: Path, kind: LinkKind) -> list[Path]:
    suffixes = _LIBRARY_PATTERNS[kind]
    found: list[Path] = []
    for entry in lib_dir.iterdir():
        if not entry.is_file():
            continue
        name = entry.name
        if name.endswith(suffixes) or (kind == "dylib" and ".so." in name):
            found.append(entry)
    return found


def _list_tools(bin_dir: Path) -> list[Path]:
    return [entry for entry in bin_dir.iterdir() if entry.is_file() and os.access(entry, os.X_OK)]


def _resolve_version(include_dirs: tuple[Path, ...], lib_dirs: tuple[Path, ...]) -> str | None:
    for include_dir in include_dirs:
        header = include_dir / _VERSION_HEADER
        if header.is_file():
            match = _HEADER_VERSION.search(header.read_text(encoding="utf-8", errors="replace"))
            if match:
                return match.group(1)
    for lib_dir in lib_dirs:
        cmake_file = lib_dir / _VERSION_CMAKE
        if cmake_file.is_file():
            match = _CMAKE_VERSION.search(cmake_file.read_text(encoding="utf-8", errors="replace"))
            if match:
                return match.group(1)
    return None
