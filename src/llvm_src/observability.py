"""Structured logging for pipeline stages, exportable as JSON lines."""

from __future__ import annotations

import json
import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from llvm_src.errors import LlvmSrcError


@dataclass(slots=True)
class StructuredLogger:
    records: list[dict[str, Any]] = field(default_factory=list)

    def log(
        self,
        *,
        operation: str,
        stage: str | None,
        revision: str | None,
        config_hash: str | None,
        message: str,
        level: str = "info",
        extra: dict[str, Any] | None = None,
    ) -> None:
        record: dict[str, Any] = {
            "level": level,
            "operation": operation,
            "stage": stage,
            "revision": revision,
            "config_hash": config_hash,
            "message": message,
        }
        if extra is not None:
            record["extra"] = extra
        self.records.append(record)

    @contextmanager
    def stage(
        self,
        stage: str,
        *,
        revision: str | None,
        config_hash: str | None,
    ) -> Iterator[None]:
        """Log ``<stage>_start`` and then ``<stage>_complete`` or ``<stage>_failed``.

        Both closing records carry ``elapsed_s``. A failing package error is
        logged with its ``to_dict()`` payload; the exception always propagates.
        """
        self.log(
            operation=f"{stage}_start",
            stage=stage,
            revision=revision,
            config_hash=config_hash,
            message=f"Starting {stage} stage.",
        )
        started = time.monotonic()
        try:
            yield
        except BaseException as exc:
            extra = exc.to_dict() if isinstance(exc, LlvmSrcError) else {"kind": type(exc).__name__}
            extra["elapsed_s"] = round(time.monotonic() - started, 3)
            self.log(
                operation=f"{stage}_failed",
                stage=stage,
                revision=revision,
                config_hash=config_hash,
                message=f"{stage} stage failed.",
                level="error",
                extra=extra,
            )
            raise
        self.log(
            operation=f"{stage}_complete",
            stage=stage,
            revision=revision,
            config_hash=config_hash,
            message=f"Completed {stage} stage.",
            extra={"elapsed_s": round(time.monotonic() - started, 3)},
        )

    def records_for_stage(self, stage: str) -> list[dict[str, Any]]:
        return [record for record in self.records if record.get("stage") == stage]

    def stage_outcomes(self) -> dict[str, str]:
        """Map each stage seen so far to ``running``, ``complete`` or ``failed``."""
        outcomes: dict[str, str] = {}
        for record in self.records:
            stage = record.get("stage")
            if stage is None:
                continue
            operation = record["operation"]
            if operation == f"{stage}_start":
                outcomes[stage] = "running"
            elif operation == f"{stage}_complete":
                outcomes[stage] = "complete"
            elif operation == f"{stage}_failed":
                outcomes[stage] = "failed"
        return outcomes

    def operations(self) -> list[str]:
        return [record["operation"] for record in self.records]

    def to_json_lines(self, path: str | Path) -> Path:
        output_path = Path(path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        lines = [json.dumps(record, sort_keys=True) for record in self.records]
        output_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return output_path
