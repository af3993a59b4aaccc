"""Builder contract and completion-marker handling."""

from __future__ import annotations

import json
import os
from typing import Any, Protocol

from llvm_src.cache.keys import config_payload
from llvm_src.config import BuildConfig
from llvm_src.models import BuildOutput, SourceTree
from llvm_src.process import CancelToken

MARKER_VERSION = 1


class Builder(Protocol):
    def build(
        self,
        tree: SourceTree,
        config: BuildConfig,
        *,
        cancel: CancelToken | None = None,
    ) -> BuildOutput:
        """Compile *tree* into an isolated output directory."""


def marker_payload(output: BuildOutput) -> dict[str, Any]:
    return {
        "version": MARKER_VERSION,
        "key": output.config_hash,
        "inputs": config_payload(output.config),
    }


def marker_matches(output: BuildOutput) -> bool:
    """Return whether *output* carries a completion marker for its exact config.

    Unreadable or foreign markers count as absent: the build is redone.
    """
    try:
        parsed = json.loads(output.marker_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        return False
    if not isinstance(parsed, dict):
        return False
    return parsed == marker_payload(output)


def write_marker(output: BuildOutput) -> None:
    temp_path = output.marker_path.with_suffix(".tmp")
    temp_path.write_text(
        json.dumps(marker_payload(output), indent=2, sort_keys=True) + "\n",
        encoding="utf-8",
    )
    os.replace(temp_path, output.marker_path)


def clear_marker(output: BuildOutput) -> None:
    output.marker_path.unlink(missing_ok=True)
