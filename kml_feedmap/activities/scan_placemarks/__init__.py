"""Placemark scanning activity: lazy, single-pass placemark records.

Parses a KML document with lxml and yields one ``PlacemarkRecord`` per
point, line ring or polygon outer ring, carrying the placemark name,
its ExtendedData metadata and the names of its enclosing containers.

The scanning stage is split into focused modules:
- **_validation**: well-formed XML check, coordinate token validation
- **_normalization**: coordinate text, metadata and container names
- **_lxml_scanner**: element walk producing the records

Malformed coordinate tokens are skipped (``CoordinateError`` is
recovered locally); a document that is not well-formed XML aborts with
``ParseError``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from kml_feedmap.activities.scan_placemarks._constants import (
    KML_NAMESPACE,
    MIN_PATH_POINTS,
)
from kml_feedmap.activities.scan_placemarks._lxml_scanner import (
    count_placemarks,
    iter_placemark_elements,
    records_from_placemark,
)
from kml_feedmap.activities.scan_placemarks._normalization import (
    ancestor_names,
    extract_extended_data,
    parse_coordinates_text,
)
from kml_feedmap.activities.scan_placemarks._validation import (
    CoordinateError,
    ParseError,
    namespace_prefix,
    parse_coordinate_token,
    parse_markup,
)

if TYPE_CHECKING:
    from collections import Counter
    from collections.abc import Iterator

    from lxml.etree import _Element

    from kml_feedmap.models.placemark import PlacemarkRecord

logger = logging.getLogger("kml_feedmap.activities.scan_placemarks")

# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

__all__ = [
    "KML_NAMESPACE",
    "MIN_PATH_POINTS",
    "CoordinateError",
    "ParseError",
    "ancestor_names",
    "count_placemarks",
    "extract_extended_data",
    "iter_placemark_groups",
    "namespace_prefix",
    "parse_coordinate_token",
    "parse_coordinates_text",
    "parse_markup",
    "records_from_placemark",
    "scan_placemarks",
]


def iter_placemark_groups(
    root: _Element, counters: Counter[str] | None = None
) -> Iterator[list[PlacemarkRecord]]:
    """Yield the records of each placemark, one list per ``<Placemark>``.

    Placemarks without any usable geometry yield an empty list so that
    callers can still count them for progress reporting.
    """
    prefix = namespace_prefix(root)
    for pm in iter_placemark_elements(root, prefix):
        yield records_from_placemark(pm, prefix, counters)


def scan_placemarks(
    content: bytes, *, counters: Counter[str] | None = None
) -> Iterator[PlacemarkRecord]:
    """Scan KML bytes and lazily yield every placemark record.

    Args:
        content: KML document bytes.
        counters: Optional counter receiving ``coordinate_errors`` and
            ``rings_dropped`` tallies.

    Yields:
        ``PlacemarkRecord`` objects in document order.

    Raises:
        ParseError: On the first ``next()`` if the document is not
            well-formed XML.
    """
    root = parse_markup(content)
    for records in iter_placemark_groups(root, counters):
        yield from records
