"""External tool execution with captured status and prompt cancellation.

Every git/cmake/ninja invocation goes through a :class:`ToolRunner`. The
default :class:`SubprocessRunner` starts each tool in its own process group so
a cancellation can take down the whole tree of compile jobs, not just the
top-level driver.
"""

from __future__ import annotations

import contextlib
import os
import shutil
import signal
import subprocess
import tempfile
import threading
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Protocol

from llvm_src.errors import Cancelled, ToolMissing

STDERR_TAIL_CHARS = 2000


class CancelToken:
    """Caller-owned cancellation signal shared with running tools."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        return self._event.wait(timeout)


@dataclass(frozen=True, slots=True)
class ToolResult:
    argv: tuple[str, ...]
    returncode: int
    stdout: str = ""
    stderr: str = ""
    log_path: Path | None = None

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def stderr_tail(self) -> str:
        return self.stderr[-STDERR_TAIL_CHARS:].strip()


class ToolRunner(Protocol):
    def which(self, tool: str) -> str | None:
        """Resolve *tool* to an executable path, or ``None`` if unavailable."""

    def run(
        self,
        argv: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        cancel: CancelToken | None = None,
        log_path: Path | None = None,
    ) -> ToolResult:
        """Run *argv* to completion; nonzero exit is reported, not raised."""


@dataclass(slots=True)
class SubprocessRunner:
    poll_interval: float = 0.1
    terminate_grace: float = 5.0

    def which(self, tool: str) -> str | None:
        return shutil.which(tool)

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
            raise _cancelled(command)
        full_env = dict(os.environ)
        if env:
            full_env.update(env)

        with tempfile.TemporaryFile() as out, tempfile.TemporaryFile() as err:
            try:
                process = subprocess.Popen(
                    list(command),
                    cwd=str(cwd) if cwd is not None else None,
                    env=full_env,
                    stdin=subprocess.DEVNULL,
                    stdout=out,
                    stderr=err,
                    start_new_session=True,
                )
            except FileNotFoundError as exc:
                raise ToolMissing(command[0], context={"command": " ".join(command)}) from exc

            try:
                returncode = self._wait(process, cancel, command)
            except BaseException:
                self._terminate(process)
                stdout, stderr = _read(out), _read(err)
                if log_path is not None:
                    _write_log(log_path, command, stdout, stderr, returncode=None)
                raise
            stdout, stderr = _read(out), _read(err)

        if log_path is not None:
            _write_log(log_path, command, stdout, stderr, returncode=returncode)
        return ToolResult(
            argv=command,
            returncode=returncode,
            stdout=stdout,
            stderr=stderr,
            log_path=log_path,
        )

    def _wait(
        self,
        process: subprocess.Popen[bytes],
        cancel: CancelToken | None,
        command: tuple[str, ...],
    ) -> int:
        while True:
            try:
                return process.wait(timeout=self.poll_interval)
            except subprocess.TimeoutExpired:
                if cancel is not None and cancel.cancelled:
                    raise _cancelled(command) from None

    def _terminate(self, process: subprocess.Popen[bytes]) -> None:
        if process.poll() is not None:
            return
        with contextlib.suppress(ProcessLookupError):
            os.killpg(process.pid, signal.SIGTERM)
        try:
            process.wait(timeout=self.terminate_grace)
        except subprocess.TimeoutExpired:
            with contextlib.suppress(ProcessLookupError):
                os.killpg(process.pid, signal.SIGKILL)
            process.wait()


def _cancelled(command: tuple[str, ...]) -> Cancelled:
    return Cancelled(
        "External tool was cancelled.",
        hint="The step is left incomplete and will be redone on the next build.",
        context={"command": " ".join(command)},
    )


def _read(handle: IO[bytes]) -> str:
    handle.seek(0)
    return handle.read().decode("utf-8", errors="replace")


def _write_log(
    path: Path,
    command: tuple[str, ...],
    stdout: str,
    stderr: str,
    *,
    returncode: int | None,
) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    status = "interrupted" if returncode is None else f"exit {returncode}"
    path.write_text(
        f"$ {' '.join(command)}\n{stdout}{stderr}\n[{status}]\n",
        encoding="utf-8",
    )


__all__ = [
    "CancelToken",
    "STDERR_TAIL_CHARS",
    "SubprocessRunner",
    "ToolResult",
    "ToolRunner",
]
