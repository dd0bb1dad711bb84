"""CLI entrypoints for complywatch commands."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .config import ConfigError, load_config
from .engine import Engine
from .logging import configure_logging
from .models import EffectivenessSnapshot, RunningCounters
from .watch import WatcherError


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    kwargs["default"] = argparse.SUPPRESS if suppress_default else False
    parser.add_argument("-v", "--verbose", **kwargs)


def _add_path_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Path to the project root (defaults to current directory).",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="complywatch",
        description="Validate code changes against standards as files are saved.",
    )
    _add_verbose_option(parser)
    subparsers = parser.add_subparsers(dest="command", required=True)

    watch_parser = subparsers.add_parser(
        "watch",
        help="Watch a project and validate changed files until interrupted.",
    )
    _add_verbose_option(watch_parser, suppress_default=True)
    _add_path_argument(watch_parser)
    watch_parser.add_argument(
        "--serve",
        action="store_true",
        help="Expose live metrics over HTTP while watching.",
    )
    watch_parser.add_argument("--host", default=None, help="Metrics API bind host.")
    watch_parser.add_argument("--port", type=int, default=None, help="Metrics API port.")

    check_parser = subparsers.add_parser(
        "check",
        help="Validate every tracked file once and print a summary.",
    )
    _add_verbose_option(check_parser, suppress_default=True)
    _add_path_argument(check_parser)

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for complywatch commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose))

    root = Path(args.path).expanduser().resolve()
    if not root.is_dir():
        parser.exit(1, f"{root} is not a directory\n")
    try:
        config = load_config(root)
    except ConfigError as exc:
        parser.exit(1, f"{exc}\n")

    engine = Engine(root, config=config)

    if args.command == "watch":
        _run_watch(parser, engine, args)
    elif args.command == "check":
        try:
            counters = engine.check()
        finally:
            engine.close()
        print(_format_summary(counters, engine.current_effectiveness()))
        if counters.critical_violations:
            parser.exit(1, f"{counters.critical_violations} critical violation(s) found\n")
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


def _run_watch(parser: argparse.ArgumentParser, engine: Engine, args: argparse.Namespace) -> None:
    try:
        engine.start()
    except WatcherError as exc:
        parser.exit(1, f"complywatch watch failed: {exc}\n")

    try:
        if args.serve:
            from .service import run_service

            service = engine.config.service
            run_service(engine, host=args.host or service.host, port=args.port or service.port)
        else:
            print(f"Watching {engine.root} (Ctrl+C to stop)")
            while engine.running:
                engine.wait(timeout=1.0)
            engine.wait()
    except KeyboardInterrupt:
        pass
    except Exception as exc:
        engine.stop()
        parser.exit(1, f"complywatch watch failed: {exc}\nRun with --verbose for more details.\n")
    engine.stop()
    print(_format_summary(engine.current_counters(), engine.current_effectiveness()))


def _format_summary(counters: RunningCounters, snapshot: EffectivenessSnapshot) -> str:
    lines = [
        f"Files validated:     {counters.files_changed}",
        f"Violations:          {counters.violations_detected}"
        f" (critical={counters.critical_violations}, warnings={counters.warnings},"
        f" info={counters.info_violations}, suggestions={counters.suggestions})",
        f"Effectiveness score: {snapshot.effectiveness_score}/100",
        f"Time saved:          {snapshot.time_saved_hours:.2f}h",
        f"Compliance rate:     {snapshot.compliance_rate_pct:.1f}%",
    ]
    return "\n".join(lines)


if __name__ == "__main__":
    main(sys.argv[1:])
