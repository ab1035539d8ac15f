"""Command line interface for the entity parser."""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Sequence

from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler

from entityfold.errors import ConfigurationError
from entityfold.extraction import (
    LocationOccurrence,
    LocationResolver,
    get_demonym_map,
    load_demonym_map,
)
from entityfold.extraction.places import HeuristicLocationStrategy
from entityfold.extraction.service import error_payload, location_payload, response_payload
from entityfold.services.app import ParserConfig, build_parser_container, run_api
from entityfold.settings import get_geoindex_path, get_log_level, get_max_hit_depth


def positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected an integer, got {value!r}") from exc
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="entityfold - entity extraction and geocoding")
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (default: ENTITYFOLD_LOG_LEVEL or INFO)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    extract = subparsers.add_parser(
        "extract", help="Extract, disambiguate and geocode the entities of a text"
    )
    extract.add_argument(
        "path",
        nargs="?",
        type=Path,
        help="Text file to parse; reads standard input when omitted",
    )
    extract.add_argument("--language", default="en", help="Language code of the text")
    extract.add_argument(
        "--replace-demonyms",
        action="store_true",
        help="Rewrite demonyms to place names before extraction",
    )
    extract.add_argument("--fuzzy", action="store_true", help="Enable fuzzy gazetteer matching")
    extract.add_argument(
        "--sentences",
        action="store_true",
        help="Input is a JSON mapping of sentence id to tagged tokens",
    )

    resolve = subparsers.add_parser("resolve", help="Geocode place names against the gazetteer")
    resolve.add_argument("names", nargs="+", help="Place names to resolve")
    resolve.add_argument("--fuzzy", action="store_true", help="Enable fuzzy gazetteer matching")
    resolve.add_argument(
        "--max-hit-depth",
        type=positive_int,
        default=None,
        help="Number of gazetteer candidates considered per name",
    )
    resolve.add_argument(
        "--heuristic",
        action="store_true",
        help="Pick candidates using the other names as context (countries, states, colocated cities)",
    )

    normalize = subparsers.add_parser(
        "normalize", help="Replace demonyms in a text by their place names"
    )
    normalize.add_argument("text", help="Text to normalize")
    normalize.add_argument("--ignore-case", action="store_true", help="Match demonyms ignoring case")

    subparsers.add_parser("serve", help="Run the HTTP API")

    return parser.parse_args(argv)


def _read_input(path: Path | None) -> str:
    if path is None:
        return sys.stdin.read()
    return path.read_text(encoding="utf-8")


def main(argv: Sequence[str] | None = None) -> None:
    load_dotenv()
    args = parse_args(argv)
    console = Console()
    level_name = args.log_level or get_log_level()
    # JSON results go to stdout, logs to stderr.
    handler = RichHandler(console=Console(stderr=True), markup=True, rich_tracebacks=True)
    logging.basicConfig(
        level=getattr(logging, str(level_name).upper(), logging.INFO),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[handler],
        force=True,
    )
    logger = logging.getLogger("entityfold.cli")

    if args.command == "serve":
        run_api()
        return

    if args.command == "normalize":
        demonyms = get_demonym_map()
        if args.ignore_case and not demonyms.ignore_case:
            demonyms = load_demonym_map(ignore_case=True)
        if not demonyms.available:
            console.print("[yellow]Demonym list unavailable; text left unchanged.[/yellow]")
        console.print(demonyms.normalize(args.text), markup=False, highlight=False)
        return

    if args.command == "resolve":
        blank = [name for name in args.names if not name.strip()]
        if blank:
            console.print(f"[red]Place names must not be blank (got {len(blank)} blank)[/red]")
            sys.exit(1)
        strategy = HeuristicLocationStrategy() if args.heuristic else None
        resolver = LocationResolver.from_directory(get_geoindex_path(), strategy=strategy)
        if not resolver.available:
            console.print("[red]Gazetteer unavailable; set ENTITYFOLD_GEOINDEX_PATH.[/red]")
            sys.exit(1)
        occurrences = [LocationOccurrence(name) for name in args.names]
        resolved = resolver.resolve(
            occurrences,
            get_max_hit_depth() if args.max_hit_depth is None else args.max_hit_depth,
            -1,
            args.fuzzy,
        )
        resolver.log_stats()
        missing = len(occurrences) - len(resolved)
        if missing:
            logger.info("%d name(s) without a gazetteer match", missing)
        console.print_json(
            data=response_payload({"places": [location_payload(item) for item in resolved]})
        )
        return

    try:
        config = ParserConfig.from_env()
        if args.fuzzy:
            config.fuzzy = True
        container = build_parser_container(config)
    except ConfigurationError as exc:
        console.print(f"[red]{exc}[/red]")
        sys.exit(1)

    text = _read_input(args.path)
    replace_demonyms = args.replace_demonyms or config.replace_demonyms
    if args.sentences:
        try:
            result = container.parser.extract_and_resolve_from_sentences(
                args.language, text, replace_demonyms
            )
        except ValueError as exc:
            console.print_json(data=error_payload(f"Invalid tagged sentences: {exc}"))
            sys.exit(1)
    else:
        result = container.parser.extract_and_resolve(args.language, text, replace_demonyms)
    console.print_json(data=result.to_payload())


if __name__ == "__main__":
    main()
