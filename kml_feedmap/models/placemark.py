"""Data model for a scanned placemark geometry.

A PlacemarkRecord is one point, one line ring or one polygon outer ring
taken from a KML ``<Placemark>``.  A placemark with several rings yields
several records sharing name, metadata and ancestors.  This is the
output of the scan_placemarks activity and the input to classification
and simplification.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping

Coordinate = tuple[float, float]
"""A ``(lat, lon)`` pair in WGS 84 degrees."""


class GeometryKind(enum.Enum):
    """Geometry type of a scanned record.

    Values:
        POINT:   A single marker position.
        LINE:    One ``<LineString>`` coordinate ring.
        POLYGON: One ``<Polygon>`` outer-boundary ring.
    """

    POINT = "Point"
    LINE = "Line"
    POLYGON = "Polygon"


@dataclass(frozen=True, slots=True)
class PlacemarkRecord:
    """A single geometry extracted from a KML placemark.

    Attributes:
        kind: Point, line or polygon.
        name: Direct ``<name>`` of the placemark (``""`` if absent).
        coordinates: ``(lat, lon)`` pairs; exactly one for a point.
        metadata: ``ExtendedData`` key/value pairs, read-only.
        ancestors: Names of enclosing ``<Folder>``/``<Document>`` elements,
            nearest first.
    """

    kind: GeometryKind
    name: str = ""
    coordinates: tuple[Coordinate, ...] = ()
    metadata: Mapping[str, str] = field(default_factory=dict)
    ancestors: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not isinstance(self.metadata, MappingProxyType):
            object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))

    @property
    def is_point(self) -> bool:
        return self.kind is GeometryKind.POINT

    @property
    def position(self) -> Coordinate:
        """First coordinate (the marker position for points)."""
        return self.coordinates[0]
