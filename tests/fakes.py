"""In-process stand-ins for git, cmake and ninja."""

from __future__ import annotations

import hashlib
import threading
import time
from collections.abc import Iterable, Mapping, Sequence
from pathlib import Path

from llvm_src.errors import Cancelled
from llvm_src.process import CancelToken, ToolResult

COMPONENT_LIBRARIES = {
    "clang": ("clangAST", "clangBasic"),
    "lld": ("lldCommon",),
}
COMPONENT_TOOLS = {"clang": ("clang",), "lld": ("ld.lld",)}


def fake_commit(revision: str) -> str:
    return hashlib.sha1(revision.encode("utf-8")).hexdigest()


def populate_install(
    prefix: Path,
    *,
    version: str | None = "16.0.0",
    libraries: Iterable[str] = ("LLVMCore", "LLVMSupport"),
    tools: Iterable[str] = ("llvm-config",),
    shared: bool = False,
) -> None:
    lib_dir = prefix / "lib"
    bin_dir = prefix / "bin"
    include_dir = prefix / "include"
    lib_dir.mkdir(parents=True, exist_ok=True)
    bin_dir.mkdir(parents=True, exist_ok=True)
    (include_dir / "llvm" / "Config").mkdir(parents=True, exist_ok=True)
    for name in libraries:
        filename = f"lib{name}.so" if shared else f"lib{name}.a"
        (lib_dir / filename).write_bytes(f"archive {name}\n".encode())
    for name in tools:
        tool = bin_dir / name
        tool.write_text("#!/bin/sh\n", encoding="utf-8")
        tool.chmod(0o755)
    if version is not None:
        (include_dir / "llvm" / "Config" / "llvm-config.h").write_text(
            f'#define LLVM_VERSION_STRING "{version}"\n',
            encoding="utf-8",
        )


class FakeToolchain:
    """Recording ``ToolRunner`` that simulates git, cmake and ninja in-process."""

    def __init__(
        self,
        *,
        missing: Iterable[str] = (),
        revisions: Iterable[str] | None = None,
    ) -> None:
        self.calls: list[tuple[str, ...]] = []
        self.missing = set(missing)
        self.revisions = set(revisions) if revisions is not None else None
        self.failures: dict[str, list[tuple[int, str]]] = {}
        self.block_build: threading.Event | None = None
        self.build_started = threading.Event()

    def fail(self, tool: str, *, exit_code: int = 1, stderr: str = "boom", times: int = 1) -> None:
        self.failures.setdefault(tool, []).extend([(exit_code, stderr)] * times)

    def calls_for(self, tool: str) -> list[tuple[str, ...]]:
        return [call for call in self.calls if Path(call[0]).name == tool]

    def which(self, tool: str) -> str | None:
        if tool in self.missing:
            return None
        return f"/usr/bin/{tool}"

    def run(
        self,
        argv: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        cancel: CancelToken | None = None,
        log_path: Path | None = None,
    ) -> ToolResult:
        command = tuple(argv)
        if cancel is not None and cancel.cancelled:
            raise Cancelled("External tool was cancelled.")
        self.calls.append(command)
        tool = Path(command[0]).name
        queued = self.failures.get(tool)
        if queued:
            exit_code, stderr = queued.pop(0)
            result = ToolResult(argv=command, returncode=exit_code, stderr=stderr)
        elif tool == "git":
            result = self._git(command, cwd=cwd)
        elif tool == "cmake":
            result = self._cmake(command)
        elif tool == "ninja":
            result = self._ninja(command, cancel=cancel)
        else:
            raise AssertionError(f"unexpected tool invocation: {command}")
        if log_path is not None:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            log_path.write_text(f"$ {' '.join(command)}\n{result.stderr}", encoding="utf-8")
        return ToolResult(
            argv=command,
            returncode=result.returncode,
            stdout=result.stdout,
            stderr=result.stderr,
            log_path=log_path,
        )

    def _git(self, command: tuple[str, ...], *, cwd: Path | None) -> ToolResult:
        verb = command[1]
        if verb == "init":
            (Path(command[-1]) / ".git").mkdir(parents=True, exist_ok=True)
        elif verb == "fetch":
            assert cwd is not None
            revision = command[-1]
            if self.revisions is not None and revision not in self.revisions:
                return ToolResult(
                    argv=command,
                    returncode=128,
                    stderr=f"fatal: couldn't find remote ref {revision}\n",
                )
            (cwd / ".git" / "FETCH_HEAD").write_text(
                f"{fake_commit(revision)}\n{revision}\n",
                encoding="utf-8",
            )
        elif verb == "checkout":
            assert cwd is not None
            commit, revision = (cwd / ".git" / "FETCH_HEAD").read_text(encoding="utf-8").split()
            (cwd / ".git" / "HEAD").write_text(f"{commit}\n", encoding="utf-8")
            (cwd / "llvm").mkdir(exist_ok=True)
            (cwd / "llvm" / "CMakeLists.txt").write_text(f"# {revision}\n", encoding="utf-8")
        elif verb == "rev-parse":
            assert cwd is not None
            head = (cwd / ".git" / "HEAD").read_text(encoding="utf-8").strip()
            return ToolResult(argv=command, returncode=0, stdout=f"{head}\n")
        return ToolResult(argv=command, returncode=0)

    def _cmake(self, command: tuple[str, ...]) -> ToolResult:
        source = Path(command[command.index("-S") + 1])
        build_dir = Path(command[command.index("-B") + 1])
        defines = dict(
            arg[2:].split("=", 1) for arg in command if arg.startswith("-D") and "=" in arg
        )
        header = (source / "CMakeLists.txt").read_text(encoding="utf-8")
        revision = header.removeprefix("# ").strip()
        build_dir.mkdir(parents=True, exist_ok=True)
        lines = [
            f"CMAKE_INSTALL_PREFIX:PATH={defines['CMAKE_INSTALL_PREFIX']}",
            f"LLVM_ENABLE_PROJECTS:STRING={defines.get('LLVM_ENABLE_PROJECTS', '')}",
            f"BUILD_SHARED_LIBS:BOOL={defines.get('BUILD_SHARED_LIBS', 'OFF')}",
            f"LLVM_VERSION:STRING={revision.removeprefix('llvmorg-')}",
        ]
        (build_dir / "CMakeCache.txt").write_text("\n".join(lines) + "\n", encoding="utf-8")
        (build_dir / "build.ninja").write_text("# generated\n", encoding="utf-8")
        return ToolResult(argv=command, returncode=0)

    def _ninja(self, command: tuple[str, ...], *, cancel: CancelToken | None) -> ToolResult:
        build_dir = Path(command[command.index("-C") + 1])
        self.build_started.set()
        if self.block_build is not None:
            while not self.block_build.is_set():
                if cancel is not None and cancel.cancelled:
                    raise Cancelled("External tool was cancelled.")
                time.sleep(0.01)
        cache: dict[str, str] = {}
        for line in (build_dir / "CMakeCache.txt").read_text(encoding="utf-8").splitlines():
            entry, _, value = line.partition("=")
            cache[entry.split(":", 1)[0]] = value
        projects = [name for name in cache["LLVM_ENABLE_PROJECTS"].split(";") if name]
        libraries = ["LLVMCore", "LLVMSupport"]
        tools = ["llvm-config"]
        for project in projects:
            libraries.extend(COMPONENT_LIBRARIES.get(project, ()))
            tools.extend(COMPONENT_TOOLS.get(project, ()))
        populate_install(
            Path(cache["CMAKE_INSTALL_PREFIX"]),
            version=cache["LLVM_VERSION"],
            libraries=libraries,
            tools=tools,
            shared=cache["BUILD_SHARED_LIBS"] == "ON",
        )
        return ToolResult(argv=command, returncode=0)
