"""CMake/Ninja build invocation for LLVM source trees.

Configures an out-of-tree build under ``<cache_root>/build/<config-hash>/``,
then runs ``ninja install`` into the sibling ``install/`` prefix. A completion
marker is written only after the install step succeeds, so an interrupted or
failed attempt is always redone from scratch on the next call.
"""

from __future__ import annotations

import shutil
from dataclasses import dataclass, field
from pathlib import Path

from llvm_src.builders.base import clear_marker, marker_matches, write_marker
from llvm_src.cache.layout import CacheLayout
from llvm_src.config import BuildConfig, OptionValue
from llvm_src.errors import ToolFailed, ToolMissing
from llvm_src.models import BuildOutput, SourceTree
from llvm_src.observability import StructuredLogger
from llvm_src.process import CancelToken, SubprocessRunner, ToolResult, ToolRunner

GENERATOR = "Ninja"


def format_option(key: str, value: OptionValue) -> str:
    """Render one option in CMake's command-line syntax.

    Keys that already look like flags (``-Wno-dev``, ``--log-level``) are
    forwarded verbatim; everything else becomes a ``-D`` cache entry.
    """
    if key.startswith("-"):
        if value is True or value == "":
            return key
        return f"{key}={_render_value(value)}"
    return f"-D{key}={_render_value(value)}"


def _render_value(value: OptionValue) -> str:
    if isinstance(value, bool):
        return "ON" if value else "OFF"
    if isinstance(value, tuple):
        return ";".join(value)
    return str(value)


def _llvm_targets(targets: tuple[str, ...]) -> str:
    return ";".join("Native" if target == "host" else target for target in targets)


def configure_command(
    *,
    cmake: str,
    ninja: str,
    tree: SourceTree,
    output: BuildOutput,
) -> list[str]:
    config = output.config
    command = [
        cmake,
        "-G",
        GENERATOR,
        "-S",
        str(tree.cmake_source),
        "-B",
        str(output.build_dir),
        f"-DCMAKE_MAKE_PROGRAM={ninja}",
        f"-DCMAKE_BUILD_TYPE={config.profile}",
        f"-DCMAKE_INSTALL_PREFIX={output.install_dir}",
        f"-DBUILD_SHARED_LIBS={_render_value(config.shared)}",
    ]
    if config.targets:
        command.append(f"-DLLVM_TARGETS_TO_BUILD={_llvm_targets(config.targets)}")
    if config.components:
        command.append(f"-DLLVM_ENABLE_PROJECTS={';'.join(config.components)}")
    if config.target and config.target != config.host:
        command.append(f"-DLLVM_HOST_TRIPLE={config.target}")
        command.append(f"-DLLVM_DEFAULT_TARGET_TRIPLE={config.target}")
    # Later -D entries win, so caller options override the defaults above.
    command.extend(format_option(key, value) for key, value in config.options.items())
    return command


def build_command(*, ninja: str, output: BuildOutput) -> list[str]:
    command = [ninja, "-C", str(output.build_dir)]
    if output.config.jobs is not None:
        command.extend(["-j", str(output.config.jobs)])
    command.append("install")
    return command


@dataclass(slots=True)
class BuildInvoker:
    runner: ToolRunner = field(default_factory=SubprocessRunner)
    logger: StructuredLogger = field(default_factory=StructuredLogger)

    def output_for(self, config: BuildConfig) -> BuildOutput:
        key = config.config_hash()
        return BuildOutput(
            path=CacheLayout(config.cache_root).build_dir(key),
            config=config,
            config_hash=key,
        )

    def build(
        self,
        tree: SourceTree,
        config: BuildConfig,
        *,
        cancel: CancelToken | None = None,
    ) -> BuildOutput:
        output = self.output_for(config)
        if marker_matches(output):
            return BuildOutput(
                path=output.path,
                config=config,
                config_hash=output.config_hash,
                reused=True,
            )

        cmake = self._resolve(config.cmake)
        ninja = self._resolve(config.ninja)
        clear_marker(output)
        self._discard_partial(output, revision=tree.revision)
        output.path.mkdir(parents=True, exist_ok=True)

        self._configure(cmake=cmake, ninja=ninja, tree=tree, output=output, cancel=cancel)
        result = self.runner.run(
            build_command(ninja=ninja, output=output),
            cwd=output.path,
            cancel=cancel,
            log_path=output.logs_dir / "build.log",
        )
        _check(result, step="build", output=output)
        write_marker(output)
        return output

    def _configure(
        self,
        *,
        cmake: str,
        ninja: str,
        tree: SourceTree,
        output: BuildOutput,
        cancel: CancelToken | None,
    ) -> None:
        argv = configure_command(cmake=cmake, ninja=ninja, tree=tree, output=output)
        log_path = output.logs_dir / "configure.log"
        result = self.runner.run(argv, cwd=output.path, cancel=cancel, log_path=log_path)
        _check(result, step="configure", output=output)

    def _discard_partial(self, output: BuildOutput, *, revision: str) -> None:
        """Remove build and install trees left by an attempt that never finished."""
        leftovers = [d for d in (output.build_dir, output.install_dir) if d.exists()]
        if not leftovers:
            return
        self.logger.log(
            operation="discard_partial_build",
            stage="build",
            revision=revision,
            config_hash=output.config_hash,
            message="Discarding output of an incomplete build before rebuilding.",
            level="warning",
            extra={"paths": [str(path) for path in leftovers]},
        )
        for directory in leftovers:
            shutil.rmtree(directory, ignore_errors=True)

    def _resolve(self, tool: str) -> str:
        resolved = self.runner.which(tool)
        if resolved is None:
            raise ToolMissing(tool, context={"operation": "build"})
        return resolved


def _check(result: ToolResult, *, step: str, output: BuildOutput) -> None:
    if result.ok:
        return
    raise ToolFailed(
        f"{step} step failed.",
        exit_code=result.returncode,
        stderr_tail=result.stderr_tail,
        hint="Check the step log and the forwarded generator options.",
        context={
            "step": step,
            "command": " ".join(result.argv),
            "log": str(result.log_path) if result.log_path is not None else "",
            "build_dir": str(output.path),
        },
    )
