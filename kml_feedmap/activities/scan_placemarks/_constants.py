"""Shared constants for placemark scanning."""

from __future__ import annotations

# KML 2.2 namespace
KML_NAMESPACE = "http://www.opengis.net/kml/2.2"

# WGS 84 coordinate bounds
MIN_LONGITUDE = -180.0
MAX_LONGITUDE = 180.0
MIN_LATITUDE = -90.0
MAX_LATITUDE = 90.0

# Elements whose <name> participates in classification fallback
CONTAINER_TAGS = frozenset({"Folder", "Document"})

# A path needs two points to be drawable
MIN_PATH_POINTS = 2
