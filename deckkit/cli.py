"""
命令行入口 - deckkit --build / --install / --version

使用方式：
    deckkit --build                  # 打包为 dist/<package>.asar
    deckkit --install                # 打包并复制到 ~/deckboard/extensions
    deckkit -b --project ./my-ext --config config/deckkit_runtime.yaml
"""

from __future__ import annotations

import argparse
import sys

from . import __version__
from .config import get_config, reload_config
from .interfaces import PipelineConfigError, PipelineError
from .logging_setup import setup_logging
from .models import EventLevel, ProgressEvent
from .pipeline import PipelineExecutor


def _print_event(event: ProgressEvent) -> None:
    stream = sys.stderr if event.level == EventLevel.ERROR else sys.stdout
    prefix = "WARN " if event.level == EventLevel.WARNING else ""
    print(f"[{event.stage}] {event.progress:>3}% {prefix}{event.message}", file=stream)


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="deckkit", description="Deckboard extension packager")
    command = ap.add_mutually_exclusive_group()
    command.add_argument("-b", "--build", action="store_true", help="Package the extension into an asar file")
    command.add_argument(
        "-i",
        "--install",
        action="store_true",
        help="Execute --build then copy the asar file into extension folder",
    )
    command.add_argument("-v", "--version", action="store_true", help="Show version number")
    ap.add_argument("--project", default=".", help="Extension project root (default: current directory)")
    ap.add_argument("--config", default=None, help="Runtime config YAML path")
    ap.add_argument("--verbose", action="store_true", help="Print log records to the console")
    return ap


def main(argv: list[str] | None = None) -> int:
    ap = build_parser()
    args = ap.parse_args(argv)

    if args.version:
        print(__version__)
        return 0
    if not (args.build or args.install):
        ap.print_help()
        return 0

    config = reload_config(args.config) if args.config else get_config()
    setup_logging(config.logging, verbose=args.verbose)

    try:
        executor = PipelineExecutor(config.pipeline_paths(args.project), config=config, sink=_print_event)
    except PipelineConfigError as e:
        print(f"ERROR {e}", file=sys.stderr)
        return 1

    try:
        run = executor.build_and_install() if args.install else executor.build()
    except PipelineError as e:
        print(f"FAILED {e}", file=sys.stderr)
        return 1

    print(f"DONE Packaging finished! {run.artifacts.archive}")
    if run.artifacts.installed:
        print(f"Installed to {run.artifacts.installed}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
