"""CLI entrypoints for tartan commands."""

from __future__ import annotations

import argparse
import dataclasses
import sys
from pathlib import Path

from .config import DEFAULT_CONFIG_BASENAME, load_config
from .errors import TartanError
from .logging import configure_logging
from .project import TartanProject


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=argparse.SUPPRESS if suppress_default else 0,
        help="Increase log verbosity; repeat for per-path tracing.",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tartan",
        description="Build a static site from a directory tree of cascading contexts.",
    )
    _add_verbose_option(parser)
    subparsers = parser.add_subparsers(dest="command", required=True)

    build_parser = subparsers.add_parser(
        "build",
        help="Build the project described by a tartan config file.",
    )
    _add_verbose_option(build_parser, suppress_default=True)
    build_parser.add_argument(
        "--config-file",
        default=DEFAULT_CONFIG_BASENAME,
        help="Path to the config file; the extension may be omitted (default: tartan.config).",
    )
    build_parser.add_argument(
        "-o",
        "--output",
        default=None,
        help="Override the output directory from the config file.",
    )
    build_parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write DEBUG-level logs to this file.",
    )

    serve_parser = subparsers.add_parser(
        "serve",
        help="Run the build service over HTTP.",
    )
    _add_verbose_option(serve_parser, suppress_default=True)
    serve_parser.add_argument("--host", default="127.0.0.1", help="Interface to bind.")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port to listen on.")

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for tartan commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=int(args.verbose), log_file=getattr(args, "log_file", None))

    if args.command == "build":
        try:
            config = load_config(args.config_file)
            if args.output:
                config = dataclasses.replace(config, output_dir=Path(args.output))
            report = TartanProject(config).build()
        except FileNotFoundError as exc:
            parser.exit(1, f"{exc}\n")
        except TartanError as exc:
            parser.exit(1, f"tartan build failed: {exc}\nRun with --verbose for more details.\n")
        except Exception as exc:  # pragma: no cover - collaborator failures
            parser.exit(1, f"tartan build failed: {exc}\nRun with --verbose for more details.\n")
        print(
            f"Built {len(report.pages)} pages and {len(report.assets)} assets "
            f"into {_relativize(config.output_dir)}"
        )
    elif args.command == "serve":
        from .service import run_service

        try:
            run_service(host=args.host, port=args.port)
        except RuntimeError as exc:
            parser.exit(1, f"{exc}\n")
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


def _relativize(path: Path) -> str:
    try:
        return str(path.relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    main(sys.argv[1:])
