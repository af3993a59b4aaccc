"""Fluent build facade composing acquisition, build, and artifact discovery."""

from __future__ import annotations

import dataclasses
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Self

from llvm_src.builders import BuildInvoker, Builder
from llvm_src.cache import CacheLayout, CacheLock
from llvm_src.config import ArtifactLayout, BuildConfig, OptionValue
from llvm_src.errors import LlvmSrcError
from llvm_src.fetch import SourceAcquirer
from llvm_src.locate import ArtifactLocator
from llvm_src.models import Artifacts
from llvm_src.observability import StructuredLogger
from llvm_src.process import CancelToken, SubprocessRunner, ToolRunner


@dataclass(slots=True)
class Build:
    """Builder for an LLVM build; call :meth:`build` to produce :class:`Artifacts`.

    ``Build()`` starts from library defaults, ``Build.new()`` from the build
    script environment (``HOST``, ``TARGET``, ``PROFILE``, ``OUT_DIR``).
    """

    config: BuildConfig = field(default_factory=BuildConfig)
    runner: ToolRunner = field(default_factory=SubprocessRunner)
    logger: StructuredLogger = field(default_factory=StructuredLogger)

    @classmethod
    def new(cls, environ: Mapping[str, str] | None = None, **kwargs: object) -> Build:
        return cls(config=BuildConfig.from_env(environ), **kwargs)  # type: ignore[arg-type]

    # ── Fluent configuration ────────────────────────────────────────

    def revision(self, revision: str) -> Self:
        return self._update(revision=revision)

    def repository(self, url: str) -> Self:
        return self._update(repository=url)

    def source_dir(self, path: str | Path) -> Self:
        """Build an existing source tree instead of fetching ``revision``.

        The build is keyed by the path and, for a git working copy, its
        ``HEAD`` commit. Uncommitted edits do not trigger a rebuild; clear the
        build cache after changing files in place.
        """
        return self._update(source_dir=Path(path))

    def cache_dir(self, path: str | Path) -> Self:
        return self._update(cache_root=Path(path))

    def out_dir(self, path: str | Path) -> Self:
        """Use ``<path>/llvm-build`` as the cache root, like a cargo ``OUT_DIR``."""
        return self._update(cache_root=Path(path) / "llvm-build")

    def host(self, triple: str) -> Self:
        return self._update(host=triple)

    def target(self, triple: str) -> Self:
        return self._update(target=triple)

    def profile(self, profile: str) -> Self:
        return self._update(profile=profile)

    def component(self, *names: str) -> Self:
        merged = tuple(dict.fromkeys((*self.config.components, *names)))
        return self._update(components=merged)

    def llvm_target(self, *names: str) -> Self:
        """Replace the LLVM backends to build (``host`` means the native one)."""
        return self._update(targets=tuple(names))

    def option(self, key: str, value: OptionValue = True) -> Self:
        options = dict(self.config.options)
        options[key] = value
        return self._update(options=options)

    def shared(self, enabled: bool = True) -> Self:
        return self._update(shared=enabled)

    def jobs(self, count: int | None) -> Self:
        return self._update(jobs=count)

    def tools(
        self,
        *,
        git: str | None = None,
        cmake: str | None = None,
        ninja: str | None = None,
    ) -> Self:
        changes = {
            name: value
            for name, value in (("git", git), ("cmake", cmake), ("ninja", ninja))
            if value
        }
        return self._update(**changes)

    def lock_timeout(self, seconds: float) -> Self:
        return self._update(lock_timeout=seconds)

    def layout(self, layout: ArtifactLayout) -> Self:
        return self._update(layout=layout)

    def require_library(self, *names: str) -> Self:
        merged = tuple(dict.fromkeys((*self.config.required_libraries, *names)))
        return self._update(required_libraries=merged)

    # ── Execution ───────────────────────────────────────────────────

    def build(self, *, cancel: CancelToken | None = None) -> Artifacts:
        """Acquire sources, build them, and locate the installed artifacts.

        Holds the cache lock for the whole sequence. The first failing stage
        raises; its error carries ``stage``, ``config_hash`` and ``cache_root``
        in its context.
        """
        config = self.config
        key = config.config_hash()
        layout = CacheLayout(config.cache_root)
        lock = CacheLock(layout.lock_path, timeout=config.lock_timeout)

        with self._stage("lock", config=config, key=key):
            lock.acquire()
        try:
            with self._stage("acquire", config=config, key=key):
                tree = SourceAcquirer(runner=self.runner, logger=self.logger).acquire(
                    config,
                    cancel=cancel,
                )
            self._log_reuse("acquire", config, key, hit=tree.cache_hit, path=tree.path)

            with self._stage("build", config=config, key=key):
                invoker: Builder = BuildInvoker(runner=self.runner, logger=self.logger)
                output = invoker.build(tree, config, cancel=cancel)
            self._log_reuse("build", config, key, hit=output.reused, path=output.path)

            with self._stage("locate", config=config, key=key):
                artifacts = ArtifactLocator().locate(output)
        finally:
            lock.release()
        return artifacts

    def clear_cache(self, *, sources: bool = True, builds: bool = True) -> list[Path]:
        """Explicitly delete cached source trees and/or build outputs."""
        layout = CacheLayout(self.config.cache_root)
        with CacheLock(layout.lock_path, timeout=self.config.lock_timeout):
            removed = layout.clear(sources=sources, builds=builds)
        self.logger.log(
            operation="clear_cache",
            stage=None,
            revision=None,
            config_hash=None,
            message="Cleared cache directories.",
            extra={"removed": [str(path) for path in removed]},
        )
        return removed

    def _update(self, **changes: object) -> Self:
        self.config = dataclasses.replace(self.config, **changes)  # type: ignore[arg-type]
        return self

    @contextmanager
    def _stage(self, stage: str, *, config: BuildConfig, key: str) -> Iterator[None]:
        with self.logger.stage(stage, revision=config.revision, config_hash=key):
            try:
                yield
            except LlvmSrcError as exc:
                exc.annotate(stage=stage, config_hash=key, cache_root=str(config.cache_root))
                raise

    def _log_reuse(
        self,
        stage: str,
        config: BuildConfig,
        key: str,
        *,
        hit: bool,
        path: Path,
    ) -> None:
        self.logger.log(
            operation="cache_hit" if hit else "cache_miss",
            stage=stage,
            revision=config.revision,
            config_hash=key,
            message="Reused cached result." if hit else "Produced a fresh result.",
            extra={"path": str(path)},
        )
