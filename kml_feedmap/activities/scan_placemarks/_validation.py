"""Validation helpers for placemark scanning.

Responsibilities:
- Well-formed XML check and tree construction
- Single coordinate token validation (format, finiteness, WGS 84 bounds)
"""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING

from kml_feedmap.activities.scan_placemarks._constants import (
    KML_NAMESPACE,
    MAX_LATITUDE,
    MAX_LONGITUDE,
    MIN_LATITUDE,
    MIN_LONGITUDE,
)
from kml_feedmap.core.exceptions import ValidationError

if TYPE_CHECKING:
    from lxml.etree import _Element

    from kml_feedmap.models.placemark import Coordinate

logger = logging.getLogger("kml_feedmap.activities.scan_placemarks")


# ---------------------------------------------------------------------------
# Exceptions (public API, re-exported from __init__)
# ---------------------------------------------------------------------------


class ParseError(ValidationError):
    """Raised when the markup cannot be parsed as well-formed XML."""

    default_stage = "scan_placemarks"
    default_code = "KML_PARSE_FAILED"


class CoordinateError(ParseError):
    """Raised for a single malformed coordinate token (recovered by the scanner)."""

    default_code = "KML_COORDINATE_INVALID"


# ---------------------------------------------------------------------------
# XML parsing
# ---------------------------------------------------------------------------


def parse_markup(content: bytes) -> _Element:
    """Parse *content* into an lxml element tree root.

    Entity resolution and network access are disabled; ``huge_tree`` is
    enabled because exported network maps carry very large coordinate
    text nodes.

    Raises:
        ParseError: If the content is empty or not well-formed XML.
    """
    from lxml import etree  # type: ignore[attr-defined]

    if not content.strip():
        msg = "KML document is empty"
        raise ParseError(msg)

    parser = etree.XMLParser(resolve_entities=False, no_network=True, huge_tree=True)
    try:
        root = etree.fromstring(content, parser=parser)
    except etree.XMLSyntaxError as exc:
        msg = f"Not valid XML: {exc}"
        raise ParseError(msg) from exc

    if root is None:
        msg = "KML document has no root element"
        raise ParseError(msg)

    tag = str(root.tag)
    if f"{{{KML_NAMESPACE}}}" not in tag and "kml" not in tag.lower():
        logger.warning("Root element is <%s>, not <kml>; scanning for placemarks anyway", tag)
    return root


def namespace_prefix(root: _Element) -> str:
    """Return the ``{namespace}`` tag prefix used by *root* (``""`` if none)."""
    tag = str(root.tag)
    if tag.startswith("{"):
        return tag[: tag.index("}") + 1]
    return ""


# ---------------------------------------------------------------------------
# Coordinate validation
# ---------------------------------------------------------------------------


def parse_coordinate_token(token: str) -> Coordinate:
    """Parse one ``lon,lat[,alt]`` token into a ``(lat, lon)`` pair.

    Raises:
        CoordinateError: If the token is malformed, non-finite or outside
            WGS 84 bounds.
    """
    parts = token.split(",")
    if len(parts) < 2:
        msg = f"Coordinate token {token!r} has fewer than 2 components"
        raise CoordinateError(msg)
    try:
        lon = float(parts[0])
        lat = float(parts[1])
    except ValueError as exc:
        msg = f"Coordinate token {token!r} is not numeric"
        raise CoordinateError(msg) from exc

    if not (math.isfinite(lat) and math.isfinite(lon)):
        msg = f"Coordinate token {token!r} is not finite"
        raise CoordinateError(msg)
    if not (MIN_LONGITUDE <= lon <= MAX_LONGITUDE):
        msg = f"Longitude {lon} out of WGS 84 range [{MIN_LONGITUDE}, {MAX_LONGITUDE}]"
        raise CoordinateError(msg)
    if not (MIN_LATITUDE <= lat <= MAX_LATITUDE):
        msg = f"Latitude {lat} out of WGS 84 range [{MIN_LATITUDE}, {MAX_LATITUDE}]"
        raise CoordinateError(msg)
    return (lat, lon)
