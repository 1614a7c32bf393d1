"""CLI entrypoints for doccatalog commands."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .aggregator import AggregateResult, aggregate_content
from .config import DocCatalogConfig, load_config
from .errors import AggregationError, DocCatalogError, InvalidResourceIdSyntaxError
from .logging import configure_logging, get_logger
from .models import ResourceIdContext
from .resource_id import resolve_resource

_logger = get_logger("cli")


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument(
        "-v",
        "--verbose",
        **kwargs,
    )


def _add_config_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        dest="path",
        default=".",
        help="Path to doccatalog.yml or the directory containing it (defaults to current directory).",
    )
    parser.add_argument(
        "--fetch",
        action="store_true",
        help="Fetch updates for cached repositories before reading them.",
    )
    parser.add_argument(
        "--cache-dir",
        default=None,
        help="Directory for repository mirrors (overrides runtime.cache_dir).",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="doccatalog",
        description="Aggregate versioned documentation from git repositories into one catalog.",
    )
    _add_verbose_option(parser)
    parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Only report warnings and errors on the console.",
    )
    parser.add_argument(
        "--log-file",
        default=None,
        help="Also write log records to this file.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    aggregate_parser = subparsers.add_parser(
        "aggregate",
        help="Build the content catalog and print a summary.",
    )
    _add_verbose_option(aggregate_parser, suppress_default=True)
    _add_config_options(aggregate_parser)

    resolve_parser = subparsers.add_parser(
        "resolve",
        help="Resolve a resource ID against the content catalog.",
    )
    _add_verbose_option(resolve_parser, suppress_default=True)
    _add_config_options(resolve_parser)
    resolve_parser.add_argument("resource_id", help="Resource ID, e.g. 2.0@server::intro.adoc")
    resolve_parser.add_argument("--component", default=None, help="Context component.")
    resolve_parser.add_argument("--version", default=None, help="Context version.")
    resolve_parser.add_argument("--module", default=None, help="Context module.")
    resolve_parser.add_argument(
        "--family",
        default="page",
        help="Family used when the resource ID does not name one (default: page).",
    )

    serve_parser = subparsers.add_parser(
        "serve",
        help="Serve catalog lookups over HTTP.",
    )
    _add_verbose_option(serve_parser, suppress_default=True)
    _add_config_options(serve_parser)
    serve_parser.add_argument("--host", default="127.0.0.1", help="Interface to bind.")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port to listen on.")

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for doccatalog commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(
        verbose=bool(args.verbose),
        quiet=args.quiet,
        log_file=Path(args.log_file) if args.log_file else None,
    )

    try:
        config = _load(args)
    except DocCatalogError as exc:
        parser.exit(2, f"Invalid configuration: {exc}\n")

    if args.command == "serve":
        from .service import run_service

        run_service(config, host=args.host, port=args.port)
        return

    try:
        result = aggregate_content(config, progress=_log_progress)
    except AggregationError as exc:
        parser.exit(1, f"doccatalog {args.command} failed: {exc}\n")
    except DocCatalogError as exc:
        parser.exit(1, f"doccatalog {args.command} failed: {exc}\nRun with --verbose for more details.\n")

    if args.command == "aggregate":
        _print_summary(result)
    elif args.command == "resolve":
        ctx = ResourceIdContext(component=args.component, version=args.version, module=args.module)
        try:
            file = resolve_resource(args.resource_id, result.catalog, ctx, default_family=args.family)
        except InvalidResourceIdSyntaxError as exc:
            parser.exit(2, f"{exc}\n")
        if file is None:
            parser.exit(1, f"Unresolved resource ID: {args.resource_id}\n")
        print(f"{file.key}")
        if file.origin is not None:
            print(f"  source: {file.origin} {file.src_path}")
        if file.edit_url:
            print(f"  edit: {file.edit_url}")
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


def _load(args: argparse.Namespace) -> DocCatalogConfig:
    config = load_config(Path(args.path))
    if args.fetch:
        config.runtime.fetch = True
    if args.cache_dir:
        config.runtime.cache_dir = Path(args.cache_dir).expanduser().resolve()
    return config


def _log_progress(url: str, phase: str, percent: int) -> None:
    _logger.debug("%s: %s %d%%", url, phase, percent)


def _print_summary(result: AggregateResult) -> None:
    for component in result.catalog.get_components():
        latest = component.latest
        print(f"{component.name} ({component.title})")
        for component_version in component.versions:
            markers = []
            if component_version is latest:
                markers.append("latest")
            if component_version.is_prerelease:
                markers.append("prerelease")
            suffix = f" [{', '.join(markers)}]" if markers else ""
            print(f"  {component_version.display_version}{suffix}")
    print(f"{len(result.catalog)} file(s) from {result.work_items} work item(s)")
    for warning in result.warnings:
        print(f"warning: {warning}")
    for error in result.errors:
        print(f"error: {error}")


if __name__ == "__main__":
    main(sys.argv[1:])
