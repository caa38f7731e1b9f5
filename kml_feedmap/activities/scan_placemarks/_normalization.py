"""Coordinate and metadata normalization helpers for placemark scanning.

Responsibilities:
- Parse KML coordinate text into ``(lat, lon)`` pairs, skipping bad tokens
- Extract ExtendedData metadata (untyped ``Data`` and typed ``SimpleData``)
- Collect enclosing container names
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from kml_feedmap.activities.scan_placemarks._constants import CONTAINER_TAGS
from kml_feedmap.activities.scan_placemarks._validation import (
    CoordinateError,
    parse_coordinate_token,
)

if TYPE_CHECKING:
    from collections import Counter

    from lxml.etree import _Element

    from kml_feedmap.models.placemark import Coordinate

logger = logging.getLogger("kml_feedmap.activities.scan_placemarks")


# ---------------------------------------------------------------------------
# KML coordinate text parsing
# ---------------------------------------------------------------------------


def parse_coordinates_text(
    text: str | None, counters: Counter[str] | None = None
) -> list[Coordinate]:
    """Parse KML coordinate text (``lon,lat,alt lon,lat,alt ...``) to ``(lat, lon)`` pairs.

    Malformed tokens are skipped and counted under ``coordinate_errors``.
    """
    coords: list[Coordinate] = []
    if not text:
        return coords
    for token in text.split():
        try:
            coords.append(parse_coordinate_token(token))
        except CoordinateError as exc:
            logger.debug("Skipping coordinate: %s", exc)
            if counters is not None:
                counters["coordinate_errors"] += 1
    return coords


# ---------------------------------------------------------------------------
# Metadata extraction
# ---------------------------------------------------------------------------


def extract_extended_data(placemark_elem: _Element, prefix: str) -> dict[str, str]:
    """Extract ExtendedData metadata from a Placemark element.

    Handles both KML metadata patterns:
    - ``ExtendedData/Data/value``: untyped key-value pairs.
    - ``ExtendedData/SchemaData/SimpleData``: typed fields.
    """
    metadata: dict[str, str] = {}

    for data_elem in placemark_elem.findall(f"{prefix}ExtendedData/{prefix}Data"):
        key = data_elem.get("name", "")
        value_elem = data_elem.find(f"{prefix}value")
        if key and value_elem is not None and value_elem.text:
            metadata[key] = value_elem.text.strip()

    for schema_data in placemark_elem.findall(f"{prefix}ExtendedData/{prefix}SchemaData"):
        for simple_data in schema_data.findall(f"{prefix}SimpleData"):
            key = simple_data.get("name", "")
            if key and simple_data.text:
                metadata[key] = simple_data.text.strip()

    return metadata


def child_name(elem: _Element, prefix: str) -> str:
    """Return the stripped text of *elem*'s direct ``<name>`` child."""
    name_elem = elem.find(f"{prefix}name")
    if name_elem is None or not name_elem.text:
        return ""
    return name_elem.text.strip()


def ancestor_names(placemark_elem: _Element, prefix: str) -> tuple[str, ...]:
    """Names of enclosing Folder/Document elements, nearest first.

    Containers without a name are skipped.
    """
    container_tags = {f"{prefix}{tag}" for tag in CONTAINER_TAGS}
    names: list[str] = []
    for ancestor in placemark_elem.iterancestors():
        if ancestor.tag in container_tags:
            name = child_name(ancestor, prefix)
            if name:
                names.append(name)
    return tuple(names)
