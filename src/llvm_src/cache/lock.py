"""Advisory inter-process lock guarding a cache root."""

from __future__ import annotations

import fcntl
import os
import time
from pathlib import Path
from types import TracebackType

from llvm_src.errors import ContendedBuild


class CacheLock:
    """Exclusive ``flock`` on a lock file, acquired with a bounded wait.

    The holder's pid is written into the file so a contended builder can
    report who it was waiting on.
    """

    def __init__(
        self,
        path: str | Path,
        *,
        timeout: float,
        poll_interval: float = 0.1,
    ) -> None:
        self.path = Path(path)
        self.timeout = timeout
        self.poll_interval = poll_interval
        self._fd: int | None = None

    @property
    def locked(self) -> bool:
        return self._fd is not None

    def acquire(self) -> None:
        if self._fd is not None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(self.path, os.O_RDWR | os.O_CREAT, 0o644)
        deadline = time.monotonic() + self.timeout
        while True:
            try:
                fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
                break
            except BlockingIOError:
                if time.monotonic() >= deadline:
                    holder = _read_holder(fd)
                    os.close(fd)
                    raise ContendedBuild(
                        "Timed out waiting for the cache lock.",
                        hint="Another build is using this cache directory; wait for it, "
                        "raise lock_timeout, or use a separate cache root.",
                        context={
                            "lock": str(self.path),
                            "timeout": f"{self.timeout:g}s",
                            "holder_pid": holder,
                        },
                    ) from None
                time.sleep(self.poll_interval)
        os.ftruncate(fd, 0)
        os.write(fd, f"{os.getpid()}\n".encode("ascii"))
        self._fd = fd

    def release(self) -> None:
        if self._fd is None:
            return
        fd, self._fd = self._fd, None
        try:
            os.ftruncate(fd, 0)
            fcntl.flock(fd, fcntl.LOCK_UN)
        finally:
            os.close(fd)

    def __enter__(self) -> CacheLock:
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()


def _read_holder(fd: int) -> str:
    os.lseek(fd, 0, os.SEEK_SET)
    return os.read(fd, 32).decode("ascii", errors="replace").strip()
