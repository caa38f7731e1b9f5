"""Feed-map pipeline orchestrator.

Coordinates the stages for one input document:

1. Result cache lookup (input path + content identity)
2. Resolve archive: KML bytes from a KML or KMZ input
3. Scan placemarks: one record per point / line ring / polygon ring
4. Per record: classify feed; simplify lines and polygons into LODs
5. Deduplicate lines, assemble the document
6. Result cache store

The loop owns all per-run state (spatial index, seen signatures, group
boxes) and shares nothing with other runs except the result cache.

Between placemarks, once per ``yield_interval_ms`` of wall-clock time,
the loop reaches a yield point: the optional progress callback receives
``(placemarks_done, placemarks_total)``, the thread yields its time
slice and the optional cancel event is checked.  A cancelled run returns
a structured failure and never touches the cache.

``run_pipeline`` never raises a ``PipelineError``: fatal errors come back
as ``PipelineResult.error``; recovered errors are tallied in
``PipelineResult.counters``.
"""

from __future__ import annotations

import logging
import time
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from kml_feedmap.activities.assemble_output import OutputAssembler
from kml_feedmap.activities.classify_feed import (
    FeedClassifier,
    extract_power,
    is_feed_code,
    post_group_by_name,
)
from kml_feedmap.activities.deduplicate_lines import LineDeduplicator
from kml_feedmap.activities.resolve_archive import NotFoundError, resolve_markup
from kml_feedmap.activities.scan_placemarks import (
    count_placemarks,
    iter_placemark_groups,
    namespace_prefix,
    parse_markup,
)
from kml_feedmap.activities.simplify_lines import build_lods
from kml_feedmap.core.config import PipelineConfig
from kml_feedmap.core.exceptions import ContractError, PermanentError, PipelineError
from kml_feedmap.core.result_cache import CacheIOError, content_identity, utc_now
from kml_feedmap.models.document import CacheInfo, MarkerEntry
from kml_feedmap.models.placemark import GeometryKind

if TYPE_CHECKING:
    import threading
    from collections.abc import Callable

    from kml_feedmap.core.result_cache import ResultCache
    from kml_feedmap.models.document import ProcessedDocument
    from kml_feedmap.models.placemark import PlacemarkRecord

    ProgressCallback = Callable[[int, int], None]

logger = logging.getLogger("kml_feedmap.orchestrators.feed_pipeline")

MIN_POLYGON_POINTS = 3


class PipelineCancelledError(PermanentError):
    """Raised at a yield point when the caller cancelled the run."""

    default_stage = "feed_pipeline"
    default_code = "PIPELINE_CANCELLED"


@dataclass(slots=True)
class PipelineResult:
    """Outcome of one pipeline run: a document or a structured failure.

    Attributes:
        document: The processed document (``None`` on failure).
        error: The fatal error (``None`` on success).
        from_cache: Whether the document came from the result cache.
        cache_error: Message of a failed cache write, ``""`` otherwise.
        counters: Recovered-error and dedup tallies.
    """

    document: ProcessedDocument | None = None
    error: PipelineError | None = None
    from_cache: bool = False
    cache_error: str = ""
    counters: dict[str, int] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.error is None and self.document is not None

    def error_dict(self) -> dict[str, object] | None:
        return self.error.to_error_dict() if self.error is not None else None


# ---------------------------------------------------------------------------
# Core loop
# ---------------------------------------------------------------------------


def process_markup(
    markup: bytes,
    *,
    config: PipelineConfig | None = None,
    identity: str = "",
    progress: ProgressCallback | None = None,
    cancel: threading.Event | None = None,
    counters: Counter[str] | None = None,
    clock: Callable[[], float] = time.monotonic,
) -> ProcessedDocument:
    """Run scan → classify → simplify → dedup → assemble over KML bytes.

    Raises:
        ParseError: If the markup is not well-formed XML.
        PipelineCancelledError: If *cancel* is set at a yield point.
    """
    config = config or PipelineConfig()
    counters = counters if counters is not None else Counter()

    root = parse_markup(markup)
    total = count_placemarks(root, namespace_prefix(root))

    classifier = FeedClassifier(max_distance_m=config.nearest_max_distance_m)
    deduplicator = LineDeduplicator()
    assembler = OutputAssembler()

    interval_s = config.yield_interval_ms / 1000.0
    last_yield = clock()
    done = 0
    for records in iter_placemark_groups(root, counters):
        for record in records:
            _process_record(record, config, classifier, deduplicator, assembler, counters)
        done += 1

        now = clock()
        if now - last_yield >= interval_s:
            _yield_point(done, total, progress, cancel)
            last_yield = clock()

    counters["duplicate_lines"] += deduplicator.duplicates
    document = assembler.build(CacheInfo(identity=identity, produced_at=utc_now().isoformat()))
    if progress is not None:
        progress(done, total)
    return document


def _process_record(
    record: PlacemarkRecord,
    config: PipelineConfig,
    classifier: FeedClassifier,
    deduplicator: LineDeduplicator,
    assembler: OutputAssembler,
    counters: Counter[str],
) -> None:
    classification = classifier.classify(record)
    if not is_feed_code(classification.code):
        counters["literal_feeds"] += 1

    if record.kind is GeometryKind.POINT:
        assembler.add_marker(
            MarkerEntry(
                name=record.name,
                group=post_group_by_name(record.name, record.metadata),
                coords=record.position,
                alim=classification.code,
                power=extract_power(record.metadata),
            )
        )
        return

    lods = build_lods(
        record.coordinates,
        config.lod_tolerances,
        min_skip_m=config.min_skip_m,
        max_points=config.max_points_per_geom,
    )

    if record.kind is GeometryKind.LINE:
        if deduplicator.admit(classification.code, lods.fine):
            assembler.add_line(classification.code, lods)
        return

    if len(lods.fine) < MIN_POLYGON_POINTS:
        counters["rings_dropped"] += 1
        return
    assembler.add_polygon(classification.code, lods)


def _yield_point(
    done: int,
    total: int,
    progress: ProgressCallback | None,
    cancel: threading.Event | None,
) -> None:
    if progress is not None:
        progress(done, total)
    time.sleep(0)
    if cancel is not None and cancel.is_set():
        msg = f"Run cancelled after {done} of {total} placemark(s)"
        raise PipelineCancelledError(msg)


# ---------------------------------------------------------------------------
# Public entry points
# ---------------------------------------------------------------------------


def process_input(
    content: bytes,
    filename_hint: str = "",
    *,
    config: PipelineConfig | None = None,
    identity: str = "",
    progress: ProgressCallback | None = None,
    cancel: threading.Event | None = None,
    clock: Callable[[], float] = time.monotonic,
) -> PipelineResult:
    """Process raw KML/KMZ bytes without touching any cache."""
    counters: Counter[str] = Counter()
    try:
        markup = resolve_markup(content, filename_hint)
        document = process_markup(
            markup,
            config=config,
            identity=identity,
            progress=progress,
            cancel=cancel,
            counters=counters,
            clock=clock,
        )
    except PipelineError as exc:
        logger.error(
            "Pipeline failed | source=%s | stage=%s | code=%s | error=%s",
            filename_hint or "<bytes>",
            exc.stage,
            exc.code,
            exc.message,
        )
        return PipelineResult(error=exc, counters=dict(counters))

    logger.info(
        "Pipeline finished | source=%s | markers=%d | lines=%d | polygons=%d | "
        "duplicates=%d | coordinate_errors=%d",
        filename_hint or "<bytes>",
        len(document.markers),
        len(document.lines),
        len(document.polygons),
        counters["duplicate_lines"],
        counters["coordinate_errors"],
    )
    return PipelineResult(document=document, counters=dict(counters))


def run_pipeline(
    input_path: Path | str,
    *,
    config: PipelineConfig | None = None,
    cache: ResultCache | None = None,
    progress: ProgressCallback | None = None,
    cancel: threading.Event | None = None,
    clock: Callable[[], float] = time.monotonic,
) -> PipelineResult:
    """Process the KML/KMZ file at *input_path*, memoised by *cache*.

    Args:
        input_path: Input file; ``.kmz``/``.zip`` are opened as containers.
        config: Pipeline configuration (defaults when ``None``).
        cache: Optional result cache consulted before and filled after the run.
        progress: Optional ``(placemarks_done, placemarks_total)`` callback.
        cancel: Optional event checked at every yield point.
        clock: Monotonic clock driving the yield interval.

    Returns:
        A ``PipelineResult`` holding either the document or the error.
    """
    path = Path(input_path)
    cache_counters: Counter[str] = Counter()

    try:
        identity = content_identity(path)
    except OSError as exc:
        error = NotFoundError(f"Input file not found: {path} ({exc})", code="INPUT_FILE_MISSING")
        logger.error("Pipeline failed | source=%s | code=%s", path, error.code)
        return PipelineResult(error=error)

    key = str(path.resolve())
    if cache is not None:
        try:
            cached = cache.get(key, identity)
        except CacheIOError as exc:
            logger.warning("Cache read failed, running pipeline | source=%s | error=%s", path, exc)
            cache_counters["cache_read_errors"] += 1
            cached = None
        except ContractError as exc:
            logger.warning("Cache entry corrupt, dropping it | source=%s | error=%s", path, exc)
            cache_counters["cache_read_errors"] += 1
            cached = None
            try:
                cache.invalidate(key)
            except CacheIOError as drop_exc:
                logger.warning("Cache entry not removed | source=%s | error=%s", path, drop_exc)
        if cached is not None:
            logger.info("Cache hit | source=%s | identity=%s", path, identity)
            return PipelineResult(document=cached, from_cache=True, counters=dict(cache_counters))

    try:
        content = path.read_bytes()
    except OSError as exc:
        error = NotFoundError(f"Cannot read input file {path}: {exc}", code="INPUT_FILE_MISSING")
        logger.error("Pipeline failed | source=%s | code=%s", path, error.code)
        return PipelineResult(error=error, counters=dict(cache_counters))

    result = process_input(
        content,
        path.name,
        config=config,
        identity=identity,
        progress=progress,
        cancel=cancel,
        clock=clock,
    )
    result.counters.update(cache_counters)
    if not result.ok or cache is None:
        return result

    try:
        cache.put(key, identity, result.document)  # type: ignore[arg-type]
    except (CacheIOError, ContractError) as exc:
        logger.warning("Cache write failed | source=%s | error=%s", path, exc)
        result.cache_error = str(exc)
        result.counters["cache_write_errors"] = result.counters.get("cache_write_errors", 0) + 1
    return result
