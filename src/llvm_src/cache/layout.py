"""On-disk layout of the source/build cache."""

from __future__ import annotations

import re
import shutil
from dataclasses import dataclass
from pathlib import Path

from llvm_src.cache.keys import short_key

LOCK_NAME = ".llvm-src.lock"

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")


def revision_dirname(revision: str) -> str:
    """Return a filesystem-safe directory name for *revision*."""
    name = _UNSAFE_CHARS.sub("_", revision.strip())
    return name.lstrip(".") or "_"


@dataclass(frozen=True, slots=True)
class CacheLayout:
    """Paths under ``<root>``: ``src/<revision>/`` and ``build/<config-hash>/``."""

    root: Path

    @property
    def sources_root(self) -> Path:
        return self.root / "src"

    @property
    def builds_root(self) -> Path:
        return self.root / "build"

    @property
    def logs_dir(self) -> Path:
        return self.root / "logs"

    @property
    def lock_path(self) -> Path:
        return self.root / LOCK_NAME

    def source_dir(self, revision: str) -> Path:
        return self.sources_root / revision_dirname(revision)

    def build_dir(self, key: str) -> Path:
        return self.builds_root / short_key(key)

    def clear(self, *, sources: bool = True, builds: bool = True) -> list[Path]:
        """Delete cached trees and return the directories that were removed.

        The lock file itself is kept so concurrent builders keep sharing it.
        """
        removed: list[Path] = []
        targets = []
        if sources:
            targets.append(self.sources_root)
        if builds:
            targets.append(self.builds_root)
        if sources and builds:
            targets.append(self.logs_dir)
        for target in targets:
            if target.exists():
                shutil.rmtree(target)
                removed.append(target)
        return removed
