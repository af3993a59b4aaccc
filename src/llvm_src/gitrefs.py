"""Read git metadata straight from a working copy, without running git."""

from __future__ import annotations

import re
from pathlib import Path

COMMIT_PATTERN = re.compile(r"^[0-9a-f]{40}([0-9a-f]{24})?$")


def read_head(path: Path) -> str | None:
    """Resolve the working copy's ``HEAD`` to a commit, or ``None``.

    Handles a detached ``HEAD``, loose refs and ``packed-refs``.
    """
    git_dir = path / ".git"
    try:
        head = (git_dir / "HEAD").read_text(encoding="utf-8").strip()
    except OSError:
        return None
    if not head.startswith("ref: "):
        return head if COMMIT_PATTERN.fullmatch(head) else None

    ref = head.removeprefix("ref: ")
    try:
        value = (git_dir / ref).read_text(encoding="utf-8").strip()
        return value if COMMIT_PATTERN.fullmatch(value) else None
    except OSError:
        pass
    try:
        packed = (git_dir / "packed-refs").read_text(encoding="utf-8")
    except OSError:
        return None
    for line in packed.splitlines():
        parts = line.split()
        if len(parts) == 2 and parts[1] == ref and COMMIT_PATTERN.fullmatch(parts[0]):
            return parts[0]
    return None
