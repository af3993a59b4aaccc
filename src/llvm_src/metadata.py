"""Line-oriented metadata renderers for consuming build systems.

The line syntax belongs to the parent build system, so each convention is a
named renderer rather than a hard-coded format. ``cargo`` matches the
``cargo:`` build-script directives; ``env`` emits ``KEY=VALUE`` lines for
shell or CMake consumers.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING

from llvm_src.errors import ValidationError

if TYPE_CHECKING:
    from llvm_src.models import Artifacts

Renderer = Callable[["Artifacts"], list[str]]


def render_cargo(artifacts: Artifacts) -> list[str]:
    lines = [f"cargo:rustc-link-search=native={d}" for d in artifacts.lib_dirs]
    lines.extend(f"cargo:rustc-link-lib={artifacts.kind}={name}" for name in artifacts.link_names)
    lines.extend(f"cargo:include={d}" for d in artifacts.include_dirs)
    if artifacts.lib_dirs:
        lines.append(f"cargo:lib={artifacts.lib_dirs[0]}")
    lines.append(f"cargo:version={artifacts.version}")
    return lines


def render_env(artifacts: Artifacts) -> list[str]:
    lines = [f"LLVM_SRC_LIB_DIR={d}" for d in artifacts.lib_dirs]
    lines.extend(f"LLVM_SRC_LIBRARY={p}" for p in artifacts.libraries)
    lines.extend(f"LLVM_SRC_INCLUDE={d}" for d in artifacts.include_dirs)
    lines.extend(f"LLVM_SRC_TOOL={p}" for p in artifacts.tools)
    lines.append(f"LLVM_SRC_VERSION={artifacts.version}")
    return lines


_RENDERERS: dict[str, Renderer] = {
    "cargo": render_cargo,
    "env": render_env,
}


def register_renderer(name: str, renderer: Renderer) -> None:
    if not name:
        raise ValidationError("Renderer names must be non-empty.")
    _RENDERERS[name] = renderer


def available_formats() -> tuple[str, ...]:
    return tuple(sorted(_RENDERERS))


def render_metadata(artifacts: Artifacts, fmt: str = "cargo") -> list[str]:
    renderer = _RENDERERS.get(fmt)
    if renderer is None:
        raise ValidationError(
            f"Unknown metadata format: {fmt}",
            hint=f"Use one of: {', '.join(available_formats())}.",
            context={"format": fmt},
        )
    return renderer(artifacts)


__all__ = [
    "Renderer",
    "available_formats",
    "register_renderer",
    "render_cargo",
    "render_env",
    "render_metadata",
]
