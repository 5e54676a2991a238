"""Command-line entry point for runtimescout scans.

* Scan a directory (or an ordered stack of unpacked image layers).
* Render the classifications as a compact table or as JSON.
* List the built-in classifiers for auditing.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from .config import OUTPUT_FORMATS, load_config
from .core.cataloger import ClassificationCataloger
from .core.classifiers import classifier_summary
from .core.errors import ConfigurationError, ResolutionError
from .logging_config import setup_logging
from .reporting import render_json, render_table
from .source.resolver import Scope, Source

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="runtimescout",
        description="Identify embedded runtimes and binaries in a filesystem tree",
    )
    parser.add_argument(
        "paths",
        nargs="*",
        type=Path,
        help="Directory to scan, or layer directories (lowest first) with --layers.",
    )
    parser.add_argument(
        "--layers",
        action="store_true",
        help="Treat the paths as unpacked container image layers.",
    )
    parser.add_argument(
        "-s",
        "--scope",
        choices=[scope.value for scope in Scope],
        default=None,
        help="View of a layered source to catalog (default: squashed).",
    )
    parser.add_argument(
        "-o",
        "--output",
        choices=OUTPUT_FORMATS,
        default=None,
        help="Report format (default: table).",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Concurrent content probes (default: 4).",
    )
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=None,
        help="Application config file (JSON).",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase log verbosity (-v info, -vv debug).",
    )
    parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Suppress all logging output.",
    )
    parser.add_argument(
        "--list-classifiers",
        action="store_true",
        help="Print the built-in classifiers as JSON and exit.",
    )
    return parser


def _source_description(source: Source, scope: Scope) -> Dict[str, Any]:
    return {
        "kind": "layers" if source.layered else "directory",
        "paths": [path.as_posix() for path in source.layers],
        "scope": scope.value,
    }


def main(argv: Optional[Sequence[str]] = None) -> int:
    if argv is None:
        argv = list(sys.argv[1:])
    else:
        argv = list(argv)

    parser = _build_parser()
    args = parser.parse_args(argv)

    overrides = {
        "output": args.output,
        "scope": args.scope,
        "workers": args.workers,
        "quiet": True if args.quiet else None,
    }
    try:
        config = load_config(args.config, verbosity=args.verbose, overrides=overrides)
    except ConfigurationError as exc:
        parser.error(str(exc))
        return 2
    setup_logging(
        config.log.level_opt,
        structured=config.log.structured,
        colors=config.log.colors,
        log_file=config.log.file,
    )
    if config.config_path is not None:
        logger.debug("Loaded configuration from %s", config.config_path)

    if args.list_classifiers:
        print(json.dumps(list(classifier_summary()), indent=2, sort_keys=True))
        return 0

    if not args.paths:
        parser.error("a path to scan is required")
        return 2
    if len(args.paths) > 1 and not args.layers:
        parser.error("scanning several paths requires --layers")
        return 2

    try:
        if args.layers:
            source = Source.from_layers(args.paths)
        else:
            source = Source.from_directory(args.paths[0])
    except ResolutionError as exc:
        parser.error(str(exc))
        return 2

    resolver = source.file_resolver(config.scope_opt)
    try:
        result = ClassificationCataloger(workers=config.workers).catalog(resolver)
    except ResolutionError as exc:
        logger.debug("Catalog run failed", exc_info=True)
        print(f"runtimescout: catalog failed: {exc}", file=sys.stderr)
        return 1

    if config.output == "json":
        print(render_json(result, source=_source_description(source, config.scope_opt)))
    else:
        print(render_table(result))
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry
    sys.exit(main())


def console_main() -> None:
    """Entry point for ``runtimescout`` console script."""

    sys.exit(main())
