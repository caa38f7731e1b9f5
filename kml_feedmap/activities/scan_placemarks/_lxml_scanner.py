"""lxml-based placemark scanner.

Walks the element tree and turns every ``<Placemark>`` into one record
per geometry: the first point coordinate, each ``<LineString>`` ring and
each ``<Polygon>`` outer-boundary ring.  Rings left with fewer than two
valid points are dropped.
"""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import TYPE_CHECKING

from kml_feedmap.activities.scan_placemarks._constants import MIN_PATH_POINTS
from kml_feedmap.activities.scan_placemarks._normalization import (
    ancestor_names,
    child_name,
    extract_extended_data,
    parse_coordinates_text,
)
from kml_feedmap.models.placemark import GeometryKind, PlacemarkRecord

if TYPE_CHECKING:
    from collections import Counter
    from collections.abc import Iterator

    from lxml.etree import _Element

logger = logging.getLogger("kml_feedmap.activities.scan_placemarks")


def iter_placemark_elements(root: _Element, prefix: str) -> Iterator[_Element]:
    """Yield ``<Placemark>`` elements in document order."""
    return root.iter(f"{prefix}Placemark")


def count_placemarks(root: _Element, prefix: str) -> int:
    return sum(1 for _ in iter_placemark_elements(root, prefix))


def records_from_placemark(
    pm: _Element, prefix: str, counters: Counter[str] | None = None
) -> list[PlacemarkRecord]:
    """Build every record carried by one placemark element."""
    name = child_name(pm, prefix)
    metadata = MappingProxyType(extract_extended_data(pm, prefix))
    ancestors = ancestor_names(pm, prefix)
    records: list[PlacemarkRecord] = []

    point_elem = pm.find(f".//{prefix}Point/{prefix}coordinates")
    if point_elem is not None:
        coords = parse_coordinates_text(point_elem.text, counters)
        if coords:
            records.append(
                PlacemarkRecord(
                    kind=GeometryKind.POINT,
                    name=name,
                    coordinates=(coords[0],),
                    metadata=metadata,
                    ancestors=ancestors,
                )
            )
        else:
            _count_dropped(counters, name, "point")

    ring_paths = (
        (GeometryKind.LINE, f".//{prefix}LineString/{prefix}coordinates"),
        (
            GeometryKind.POLYGON,
            f".//{prefix}Polygon/{prefix}outerBoundaryIs/{prefix}LinearRing/{prefix}coordinates",
        ),
    )
    for kind, path in ring_paths:
        for coords_elem in pm.findall(path):
            ring = parse_coordinates_text(coords_elem.text, counters)
            if len(ring) < MIN_PATH_POINTS:
                _count_dropped(counters, name, kind.value.lower())
                continue
            records.append(
                PlacemarkRecord(
                    kind=kind,
                    name=name,
                    coordinates=tuple(ring),
                    metadata=metadata,
                    ancestors=ancestors,
                )
            )

    return records


def _count_dropped(counters: Counter[str] | None, name: str, what: str) -> None:
    logger.debug("Dropping %s without enough valid coordinates in Placemark '%s'", what, name)
    if counters is not None:
        counters["rings_dropped"] += 1
