# main.py
# SPDX-License-Identifier: MIT

from __future__ import annotations

import argparse
import json
import sys
from typing import Optional, Sequence

from ..core.config import FilePulseConfig, load_config_from_path
from ..core.log import PACKAGE_LOGGER_NAME, configure_logging
from ..core.registries import default_registries
from ..core.runner import run_files
from ..sinks.sinks import JSONLSink


def _build_parser() -> argparse.ArgumentParser:
    """Build the ``filepulse`` argument parser with its subcommands."""
    parser = argparse.ArgumentParser(prog="filepulse", description="Run record filter pipelines over local files")
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (e.g., DEBUG, INFO, WARNING). Overrides the config's [logging] level.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_p = subparsers.add_parser("run", help="Filter files using a config file")
    run_p.add_argument("-c", "--config", help="Path to config file (TOML or JSON). Defaults to a passthrough pipeline.")
    run_p.add_argument("-o", "--output", help="Output JSONL path (defaults to stdout).")
    run_p.add_argument("--batch-size", type=int, help="Override reader.batch_size.")
    run_p.add_argument("--dry-run", action="store_true", help="Validate and print config, then exit.")
    run_p.add_argument("paths", nargs="*", help="Files to process.")

    subparsers.add_parser("list", help="List registered filter and reader kinds")
    return parser


def _load_config(path: Optional[str]) -> FilePulseConfig:
    if not path:
        return FilePulseConfig()
    return load_config_from_path(path)


def _cmd_run(args: argparse.Namespace) -> int:
    cfg = _load_config(args.config)
    if args.batch_size is not None:
        cfg.reader.batch_size = int(args.batch_size)
    cfg.validate()
    cfg.logging.apply()
    if args.log_level:
        configure_logging(
            level=args.log_level,
            propagate=cfg.logging.propagate,
            logger_name=cfg.logging.logger_name or PACKAGE_LOGGER_NAME,
        )
    if args.dry_run:
        print(json.dumps(cfg.to_dict(), indent=2))
        return 0
    if not args.paths:
        print("No input files given.", file=sys.stderr)
        return 1

    stats = run_files(cfg, args.paths, JSONLSink(args.output))
    # keep stdout clean for records when they are streamed there
    out = sys.stdout if args.output else sys.stderr
    print(json.dumps(stats.as_dict(), indent=2), file=out)
    return 1 if stats.failed_files else 0


def _cmd_list(args: argparse.Namespace) -> int:
    regs = default_registries()
    print(json.dumps({"filters": regs.filters.kinds(), "readers": regs.readers.kinds()}, indent=2))
    return 0


def _dispatch(args: argparse.Namespace) -> int:
    configure_logging(level=args.log_level or "INFO")
    if args.command == "run":
        return _cmd_run(args)
    if args.command == "list":
        return _cmd_list(args)
    print(f"Unknown command: {args.command}", file=sys.stderr)
    return 1


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Entry point for the ``filepulse`` console script.

    Args:
        argv (Sequence[str] | None): Arguments to parse instead of
            ``sys.argv[1:]``.

    Returns:
        int: 0 on success, 1 when the command failed or any file failed.
    """
    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    try:
        return _dispatch(args)
    except Exception as exc:  # noqa: BLE001
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
