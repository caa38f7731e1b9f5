"""Data models and schemas.

Defines the data structures passed between pipeline stages:
- PlacemarkRecord: One geometry ring/point scanned from the markup
- GeometryLOD: Three nested levels of detail of a path
- GroupBoundingBox: Running extent of one feed group
- ProcessedDocument: The final render-ready payload
"""

from kml_feedmap.models.document import (
    CacheInfo,
    GeometryLOD,
    GroupBoundingBox,
    LineEntry,
    MarkerEntry,
    ProcessedDocument,
)
from kml_feedmap.models.placemark import Coordinate, GeometryKind, PlacemarkRecord

__all__ = [
    "CacheInfo",
    "Coordinate",
    "GeometryKind",
    "GeometryLOD",
    "GroupBoundingBox",
    "LineEntry",
    "MarkerEntry",
    "PlacemarkRecord",
    "ProcessedDocument",
]
