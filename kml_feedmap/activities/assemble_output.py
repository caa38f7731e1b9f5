"""Output assembly activity: merge stage results into a ProcessedDocument.

Collects classified markers, deduplicated lines and polygon rings in
document order, and grows one bounding box per group from every kept
coordinate assigned to it.  Groups that never receive a geometry do not
appear in the output.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from shapely.geometry import LineString

from kml_feedmap.models.document import (
    CacheInfo,
    GroupBoundingBox,
    LineEntry,
    MarkerEntry,
    ProcessedDocument,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from kml_feedmap.models.document import GeometryLOD
    from kml_feedmap.models.placemark import Coordinate

logger = logging.getLogger("kml_feedmap.activities.assemble_output")


class OutputAssembler:
    """Accumulates the entries of one run and builds the final document."""

    def __init__(self) -> None:
        self._markers: list[MarkerEntry] = []
        self._lines: list[LineEntry] = []
        self._polygons: list[LineEntry] = []
        self._bounds: dict[str, GroupBoundingBox] = {}

    @property
    def stats(self) -> dict[str, int]:
        return {
            "lines": len(self._lines),
            "markers": len(self._markers),
            "polygons": len(self._polygons),
        }

    def add_marker(self, marker: MarkerEntry) -> None:
        self._markers.append(marker)
        lat, lon = marker.coords
        self._box(marker.group).extend(lat, lon)

    def add_line(self, group: str, lods: GeometryLOD) -> None:
        self._lines.append(LineEntry(group=group, lods=lods))
        self._extend_path(group, lods.fine)

    def add_polygon(self, group: str, lods: GeometryLOD) -> None:
        self._polygons.append(LineEntry(group=group, lods=lods))
        self._extend_path(group, lods.fine)

    def build(self, cache: CacheInfo | None = None) -> ProcessedDocument:
        """Return the assembled document; empty groups are omitted."""
        bounds = {group: box for group, box in self._bounds.items() if not box.is_empty}
        document = ProcessedDocument(
            markers=tuple(self._markers),
            lines=tuple(self._lines),
            polygons=tuple(self._polygons),
            bounds=bounds,
            cache=cache or CacheInfo(),
        )
        logger.debug(
            "Document assembled | markers=%d | lines=%d | polygons=%d | groups=%d",
            len(self._markers),
            len(self._lines),
            len(self._polygons),
            len(bounds),
        )
        return document

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _box(self, group: str) -> GroupBoundingBox:
        box = self._bounds.get(group)
        if box is None:
            box = self._bounds[group] = GroupBoundingBox()
        return box

    def _extend_path(self, group: str, coords: Sequence[Coordinate]) -> None:
        if not coords:
            return
        if len(coords) == 1:
            self._box(group).extend(*coords[0])
            return

        min_lon, min_lat, max_lon, max_lat = LineString([(lon, lat) for lat, lon in coords]).bounds
        self._box(group).extend_bounds(min_lat, min_lon, max_lat, max_lon)
