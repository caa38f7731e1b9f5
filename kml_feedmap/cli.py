"""Batch entry point: process one KML/KMZ file into a JSON payload.

Usage::

    python -m kml_feedmap INPUT OUTPUT [--cache-dir DIR] [-v]

The result is written to OUTPUT atomically.  On failure OUTPUT receives
``{"error": reason}`` and the process exits with status 1, so callers can
tell an empty map from a file that could not be processed.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import TYPE_CHECKING

from kml_feedmap.core.config import ConfigValidationError, PipelineConfig
from kml_feedmap.core.result_cache import FileResultCache, atomic_write_text
from kml_feedmap.orchestrators.feed_pipeline import run_pipeline

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger("kml_feedmap.cli")

EXIT_OK = 0
EXIT_FAILED = 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="kml_feedmap",
        description="Classify, simplify and deduplicate the placemarks of a KML/KMZ file.",
    )
    parser.add_argument("input", help="input .kml or .kmz file")
    parser.add_argument("output", help="output JSON file (written atomically)")
    parser.add_argument(
        "--cache-dir",
        default=None,
        help="result cache directory (default: $RESULT_CACHE_DIR, disabled if empty)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        config = PipelineConfig.from_env()
    except (ConfigValidationError, ValueError) as exc:
        logger.error("Invalid configuration: %s", exc)
        _write_error(args.output, "config_invalid")
        return EXIT_FAILED

    cache_dir = args.cache_dir if args.cache_dir is not None else config.result_cache_dir
    cache = FileResultCache(cache_dir, ttl_s=config.result_cache_ttl_s) if cache_dir else None

    result = run_pipeline(args.input, config=config, cache=cache)
    if not result.ok:
        reason = result.error.reason if result.error is not None else "pipeline_failed"
        _write_error(args.output, reason)
        return EXIT_FAILED

    try:
        atomic_write_text(args.output, result.document.to_json())  # type: ignore[union-attr]
    except OSError as exc:
        logger.error("Cannot write output to %s: %s", args.output, exc)
        return EXIT_FAILED
    logger.info(
        "Output written | path=%s | stats=%s | from_cache=%s",
        args.output,
        result.document.stats,  # type: ignore[union-attr]
        result.from_cache,
    )
    return EXIT_OK


def _write_error(output: str, reason: str) -> None:
    try:
        atomic_write_text(output, json.dumps({"error": reason}))
    except OSError as exc:
        logger.error("Cannot write error payload to %s: %s", output, exc)
