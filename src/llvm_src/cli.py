"""Command-line entrypoint: build LLVM and print metadata, or clear the cache."""

from __future__ import annotations

import argparse
import sys
from collections.abc import Sequence

from llvm_src.build import Build
from llvm_src.config import BuildConfig, OptionValue
from llvm_src.errors import LlvmSrcError, ValidationError
from llvm_src.metadata import available_formats


def _parse_option(raw: str) -> tuple[str, OptionValue]:
    key, sep, value = raw.partition("=")
    if not key:
        raise argparse.ArgumentTypeError(f"invalid option `{raw}`, expected KEY[=VALUE]")
    if not sep:
        return key, True
    return key, value


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="llvm-src",
        description="Fetch, build, and locate LLVM for a parent build.",
    )
    parser.add_argument(
        "--cache-dir",
        help="Cache root (default: $OUT_DIR/llvm-build or ./llvm-build)",
    )
    parser.add_argument("--lock-timeout", type=float, help="Seconds to wait for the cache lock")
    subcommands = parser.add_subparsers(dest="command", required=True)

    build = subcommands.add_parser("build", help="Build LLVM and print metadata")
    build.add_argument("--revision", help="Tag, branch, or commit to build")
    build.add_argument("--repository", help="Git repository URL")
    build.add_argument("--source-dir", help="Use an existing source tree instead of fetching")
    build.add_argument("--component", action="append", default=[], help="LLVM project to enable")
    build.add_argument("--llvm-target", action="append", default=[], help="LLVM backend to build")
    build.add_argument("--profile", help="Build type (Debug, Release, ...)")
    build.add_argument("--host", help="Host triple")
    build.add_argument("--target", help="Target triple")
    build.add_argument("--jobs", type=int, help="Parallel compile jobs")
    build.add_argument("--shared", action="store_true", help="Build shared libraries")
    build.add_argument(
        "-D",
        "--option",
        action="append",
        default=[],
        type=_parse_option,
        metavar="KEY[=VALUE]",
        help="Generator option passed through verbatim",
    )
    build.add_argument("--format", default="cargo", choices=[*available_formats(), "json"])
    build.add_argument("--log-json", help="Write structured logs as JSON lines to this path")

    clear = subcommands.add_parser("clear", help="Delete cached sources and builds")
    clear.add_argument("--sources-only", action="store_true")
    clear.add_argument("--builds-only", action="store_true")
    return parser


def _configure(args: argparse.Namespace) -> Build:
    builder = Build(config=BuildConfig.from_env())
    if args.cache_dir:
        builder.cache_dir(args.cache_dir)
    if args.lock_timeout is not None:
        builder.lock_timeout(args.lock_timeout)
    if args.command != "build":
        return builder
    if args.revision:
        builder.revision(args.revision)
    if args.repository:
        builder.repository(args.repository)
    if args.source_dir:
        builder.source_dir(args.source_dir)
    if args.component:
        builder.component(*args.component)
    if args.llvm_target:
        builder.llvm_target(*args.llvm_target)
    if args.profile:
        builder.profile(args.profile)
    if args.host:
        builder.host(args.host)
    if args.target:
        builder.target(args.target)
    if args.jobs is not None:
        builder.jobs(args.jobs)
    if args.shared:
        builder.shared()
    for key, value in args.option:
        builder.option(key, value)
    return builder


def main(argv: Sequence[str] | None = None) -> int:
    args = _parser().parse_args(argv)
    try:
        builder = _configure(args)
        if args.command == "clear":
            if args.sources_only and args.builds_only:
                raise ValidationError("--sources-only and --builds-only are mutually exclusive.")
            removed = builder.clear_cache(
                sources=not args.builds_only,
                builds=not args.sources_only,
            )
            for path in removed:
                print(f"removed {path}")
            return 0

        try:
            artifacts = builder.build()
        finally:
            if args.log_json:
                builder.logger.to_json_lines(args.log_json)
    except LlvmSrcError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    if args.format == "json":
        sys.stdout.write(artifacts.to_json())
    else:
        sys.stdout.write(artifacts.render(args.format))
    return 0
