"""Git source acquisition with revision records and cached working copies."""

from __future__ import annotations

import json
import shutil
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

from llvm_src.cache.layout import CacheLayout, revision_dirname
from llvm_src.config import BuildConfig
from llvm_src.errors import (
    AcquireError,
    CorruptLocalTree,
    NetworkFailure,
    RevisionNotFound,
    ToolMissing,
)
from llvm_src.gitrefs import read_head
from llvm_src.models import SourceTree
from llvm_src.observability import StructuredLogger
from llvm_src.process import CancelToken, SubprocessRunner, ToolResult, ToolRunner

RECORD_NAME = ".llvm-src-revision.json"
FETCH_DEPTH = 1

_NOT_FOUND_MARKERS = (
    "couldn't find remote ref",
    "no such remote ref",
    "not our ref",
    "invalid refspec",
    "unadvertised object",
    "did not match any",
)

_GIT_ENV = {"GIT_TERMINAL_PROMPT": "0"}


@dataclass(frozen=True, slots=True)
class RevisionRecord:
    revision: str
    commit: str
    repository: str | None = None


@dataclass(slots=True)
class SourceAcquirer:
    """Ensure ``<cache_root>/src/<revision>`` holds a checkout of the revision."""

    runner: ToolRunner = field(default_factory=SubprocessRunner)
    logger: StructuredLogger = field(default_factory=StructuredLogger)

    def acquire(self, config: BuildConfig, *, cancel: CancelToken | None = None) -> SourceTree:
        if config.source_dir is not None:
            return _use_local_tree(config.source_dir, config.revision)

        path = CacheLayout(config.cache_root).source_dir(config.revision)
        if path.exists():
            try:
                return self._reuse(path, config, cancel)
            except CorruptLocalTree as exc:
                self.logger.log(
                    operation="evict_source",
                    stage="acquire",
                    revision=config.revision,
                    config_hash=None,
                    message="Evicting corrupted source tree before re-fetch.",
                    level="warning",
                    extra={"path": str(path), "reason": exc.args[0]},
                )
                shutil.rmtree(path)
        return self._fetch_fresh(path, config, cancel)

    def _reuse(self, path: Path, config: BuildConfig, cancel: CancelToken | None) -> SourceTree:
        record = _read_record(path)
        head = read_head(path)
        if record is None or head is None:
            raise CorruptLocalTree(
                "Cached source tree is not a valid checkout.",
                context={"path": str(path)},
            )
        if (
            record.revision == config.revision
            and record.repository == config.repository
            and record.commit == head
        ):
            return SourceTree(path=path, revision=record.revision, commit=head, cache_hit=True)

        self.logger.log(
            operation="resync_source",
            stage="acquire",
            revision=config.revision,
            config_hash=None,
            message="Cached source tree is stale; updating in place.",
            extra={
                "path": str(path),
                "recorded_revision": record.revision,
                "recorded_repository": record.repository,
                "recorded_commit": record.commit,
                "head": head,
            },
        )
        if record.repository != config.repository:
            self._git(
                config,
                ["remote", "set-url", "origin", config.repository],
                cwd=path,
                failure=CorruptLocalTree,
            )
        commit = self._checkout(path, config, cancel)
        return self._verify(path, config.revision, commit)

    def _fetch_fresh(
        self,
        path: Path,
        config: BuildConfig,
        cancel: CancelToken | None,
    ) -> SourceTree:
        path.parent.mkdir(parents=True, exist_ok=True)
        temp_root = Path(tempfile.mkdtemp(prefix=".fetch-", dir=str(path.parent)))
        try:
            self._git(config, ["init", "--quiet", str(temp_root)], failure=AcquireError)
            self._git(
                config,
                ["remote", "add", "origin", config.repository],
                cwd=temp_root,
                failure=AcquireError,
            )
            commit = self._checkout(temp_root, config, cancel)
            temp_root.rename(path)
        finally:
            if temp_root.exists():
                shutil.rmtree(temp_root, ignore_errors=True)
        return self._verify(path, config.revision, commit)

    def _checkout(self, path: Path, config: BuildConfig, cancel: CancelToken | None) -> str:
        """Fetch the revision into *path*, check it out, and record it."""
        logs_dir = CacheLayout(config.cache_root).logs_dir
        log_path = logs_dir / f"fetch-{revision_dirname(config.revision)}.log"
        result = self._git(
            config,
            ["fetch", "--quiet", f"--depth={FETCH_DEPTH}", "origin", config.revision],
            cwd=path,
            cancel=cancel,
            log_path=log_path,
        )
        if not result.ok:
            raise _classify_fetch_failure(result, config)
        self._git(
            config,
            ["checkout", "--quiet", "--force", "--detach", "FETCH_HEAD"],
            cwd=path,
            failure=CorruptLocalTree,
        )
        commit = self._git(config, ["rev-parse", "HEAD"], cwd=path, failure=CorruptLocalTree)
        resolved = commit.stdout.strip()
        record = RevisionRecord(
            revision=config.revision,
            commit=resolved,
            repository=config.repository,
        )
        _write_record(path, record)
        return resolved

    def _verify(self, path: Path, revision: str, commit: str) -> SourceTree:
        record = _read_record(path)
        head = read_head(path)
        if record is None or head != commit or record.commit != commit:
            raise CorruptLocalTree(
                "Fetched source tree does not match its revision record.",
                hint="Clear the source cache and retry.",
                context={
                    "path": str(path),
                    "expected_commit": commit,
                    "actual_commit": head or "",
                },
            )
        return SourceTree(path=path, revision=revision, commit=commit)

    def _git(
        self,
        config: BuildConfig,
        argv: list[str],
        *,
        cwd: Path | None = None,
        cancel: CancelToken | None = None,
        log_path: Path | None = None,
        failure: type[AcquireError] | None = None,
    ) -> ToolResult:
        git = self.runner.which(config.git)
        if git is None:
            raise ToolMissing(config.git, context={"operation": "acquire"})
        result = self.runner.run(
            [git, *argv],
            cwd=cwd,
            env=_GIT_ENV,
            cancel=cancel,
            log_path=log_path,
        )
        if failure is not None and not result.ok:
            raise failure(
                "Git command failed.",
                hint="Inspect the repository, revision, and git installation.",
                context={
                    "operation": "acquire",
                    "argv": " ".join(result.argv),
                    "returncode": str(result.returncode),
                    "stderr": result.stderr_tail,
                },
            )
        return result


def _classify_fetch_failure(result: ToolResult, config: BuildConfig) -> AcquireError:
    context = {
        "operation": "acquire",
        "repository": config.repository,
        "revision": config.revision,
        "returncode": str(result.returncode),
        "stderr": result.stderr_tail,
    }
    stderr = result.stderr.lower()
    if any(marker in stderr for marker in _NOT_FOUND_MARKERS):
        return RevisionNotFound(
            "Requested revision does not exist in the repository.",
            hint="Use an existing tag, branch, or full commit hash.",
            context=context,
        )
    return NetworkFailure(
        "Unable to fetch from the source repository.",
        hint="Check network access and the repository URL.",
        context=context,
    )


def _use_local_tree(source_dir: Path, revision: str) -> SourceTree:
    tree = SourceTree(
        path=source_dir,
        revision=revision,
        commit=read_head(source_dir),
        cache_hit=True,
    )
    if not (tree.cmake_source / "CMakeLists.txt").exists():
        raise CorruptLocalTree(
            "Configured source directory does not contain LLVM's CMakeLists.txt.",
            hint="Point source_dir at an llvm-project checkout or an llvm source tarball.",
            context={"path": str(source_dir)},
        )
    return tree


def _read_record(path: Path) -> RevisionRecord | None:
    try:
        payload = json.loads((path / RECORD_NAME).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        return None
    if not isinstance(payload, dict):
        return None
    revision = payload.get("revision")
    commit = payload.get("commit")
    repository = payload.get("repository")
    if not isinstance(revision, str) or not isinstance(commit, str):
        return None
    if not isinstance(repository, str):
        repository = None
    return RevisionRecord(revision=revision, commit=commit, repository=repository)


def _write_record(path: Path, record: RevisionRecord) -> None:
    payload = {
        "revision": record.revision,
        "commit": record.commit,
        "repository": record.repository,
    }
    (path / RECORD_NAME).write_text(
        json.dumps(payload, indent=2, sort_keys=True) + "\n",
        encoding="utf-8",
    )

