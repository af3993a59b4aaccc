"""Cache key derivation."""

from __future__ import annotations

import hashlib
import json
from typing import TYPE_CHECKING, Any

from llvm_src.gitrefs import read_head

if TYPE_CHECKING:
    from llvm_src.config import BuildConfig

SHORT_KEY_LENGTH = 16


def config_key(config: BuildConfig) -> str:
    canonical = json.dumps(config_payload(config), sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def short_key(key: str) -> str:
    return key[:SHORT_KEY_LENGTH]


def config_payload(config: BuildConfig) -> dict[str, Any]:
    """Return every input that changes what the external build produces.

    Cache location, lock timeout, job count and discovery policy are left
    out: they never change the bytes that land in the install prefix. A
    local ``source_dir`` contributes its checked-out commit when it is a git
    working copy; uncommitted edits in it are not tracked.
    """
    return {
        "revision": config.revision,
        "repository": config.repository,
        "source_dir": str(config.source_dir) if config.source_dir is not None else None,
        "source_head": read_head(config.source_dir) if config.source_dir is not None else None,
        "components": list(config.components),
        "targets": list(config.targets),
        "profile": config.profile,
        "host": config.host,
        "target": config.target,
        "shared": config.shared,
        "options": {
            key: list(value) if isinstance(value, tuple) else value
            for key, value in sorted(config.options.items())
        },
        "toolchain": {"cmake": config.cmake, "ninja": config.ninja},
    }
