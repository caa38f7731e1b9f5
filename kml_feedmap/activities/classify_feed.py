"""Feed classification activity: assign a feed group code to each record.

A feed code is a 2-6 letter prefix followed by a zero-padded number of at
least two digits (``ARA03``, ``FD07``).  Classification is an ordered list
of strategies, each a pure function ``(record, context) -> str | None``;
the first one that answers wins:

1. feed pattern in the placemark name
2. feed pattern in any metadata value
3. feed pattern in the nearest enclosing container name, then outwards
4. points only: code of the nearest point already classified in this run
5. literal feed metadata value, uppercased (``Alimentador = "Norte"``)
6. ``"AUTO"``

Explicit signals in the document always outrank spatial inference.
Lines and polygons never consult the spatial index; they fall straight
through to the literal value and ``"AUTO"``.

The module also derives the marker-only attributes: the post group from
the name suffix (``-FU``, ``-FA``, ``-RE``) and the transformer rating.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from kml_feedmap.core.constants import (
    AUTO_FEED,
    EARTH_RADIUS_M,
    FEED_METADATA_KEYS,
    POST_GROUP_OTHER,
    POST_GROUP_POWER,
    POST_GROUPS,
    POWER_METADATA_KEYS,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence

    from kml_feedmap.models.placemark import PlacemarkRecord

logger = logging.getLogger("kml_feedmap.activities.classify_feed")

# 2-6 letters, optional separators, leading zeros, 1-4 digits
FEED_PATTERN = re.compile(r"\b([A-Z]{2,6})\s*[-_:.\s]*0*([0-9]{1,4})\b")

FEED_CODE_PATTERN = re.compile(r"^[A-Z]{2,6}[0-9]{2,}$")

_POST_GROUP_TOKENS = tuple((group, f"-{group}") for group in POST_GROUPS)

_KVA = re.compile(r"kva", re.IGNORECASE)


# ---------------------------------------------------------------------------
# Feed code extraction
# ---------------------------------------------------------------------------


def extract_feed_code(text: str | None) -> str | None:
    """Extract a normalised feed code from free text.

    >>> extract_feed_code("ARA03-T15")
    'ARA03'
    >>> extract_feed_code("fd7")
    'FD07'
    """
    if not text:
        return None
    match = FEED_PATTERN.search(text.upper())
    if match is None:
        return None
    return f"{match.group(1)}{int(match.group(2)):02d}"


def is_feed_code(value: str) -> bool:
    """Whether *value* is a canonical feed code (not a literal fallback)."""
    return FEED_CODE_PATTERN.match(value) is not None


# ---------------------------------------------------------------------------
# Spatial index
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SpatialIndexEntry:
    lat: float
    lon: float
    code: str


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in metres."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = phi2 - phi1
    d_lambda = math.radians(lon2 - lon1)
    h = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.asin(min(1.0, math.sqrt(h)))


class SpatialIndex:
    """Classified points of one pipeline run, queried by nearest neighbour.

    Owned by a single run and discarded with it.  ``max_distance_m`` of
    ``0`` means the search radius is unbounded.
    """

    def __init__(self, max_distance_m: float = 0.0) -> None:
        self._entries: list[SpatialIndexEntry] = []
        self._max_distance_m = max_distance_m

    def __len__(self) -> int:
        return len(self._entries)

    def add(self, lat: float, lon: float, code: str) -> None:
        self._entries.append(SpatialIndexEntry(lat, lon, code))

    def nearest(self, lat: float, lon: float) -> SpatialIndexEntry | None:
        """Return the closest entry, or ``None`` if none is within range."""
        best: SpatialIndexEntry | None = None
        best_distance = math.inf
        for entry in self._entries:
            distance = haversine_m(lat, lon, entry.lat, entry.lon)
            if distance < best_distance:
                best, best_distance = entry, distance
        if best is not None and self._max_distance_m and best_distance > self._max_distance_m:
            return None
        return best


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class ClassificationContext:
    """Per-run state visible to the strategies."""

    index: SpatialIndex = field(default_factory=SpatialIndex)


def code_from_name(record: PlacemarkRecord, context: ClassificationContext) -> str | None:
    return extract_feed_code(record.name)


def code_from_metadata(record: PlacemarkRecord, context: ClassificationContext) -> str | None:
    for value in record.metadata.values():
        code = extract_feed_code(value)
        if code:
            return code
    return None


def code_from_ancestors(record: PlacemarkRecord, context: ClassificationContext) -> str | None:
    for name in record.ancestors:
        code = extract_feed_code(name)
        if code:
            return code
    return None


def code_from_nearest_point(
    record: PlacemarkRecord, context: ClassificationContext
) -> str | None:
    if not record.is_point:
        return None
    lat, lon = record.position
    entry = context.index.nearest(lat, lon)
    return entry.code if entry is not None else None


def feed_literal(record: PlacemarkRecord, context: ClassificationContext) -> str | None:
    """Raw value of a feed-naming metadata key, uppercased."""
    for key, value in record.metadata.items():
        lowered = key.lower()
        if value and any(fragment in lowered for fragment in FEED_METADATA_KEYS):
            return value.upper()
    return None


def auto_feed(record: PlacemarkRecord, context: ClassificationContext) -> str | None:
    return AUTO_FEED


DEFAULT_STRATEGIES: tuple[Callable[[PlacemarkRecord, ClassificationContext], str | None], ...] = (
    code_from_name,
    code_from_metadata,
    code_from_ancestors,
    code_from_nearest_point,
    feed_literal,
    auto_feed,
)

# Strategies whose answer is a guess of last resort; their codes do not
# seed the spatial index.
LITERAL_STRATEGIES = frozenset({feed_literal, auto_feed})


@dataclass(frozen=True, slots=True)
class Classification:
    code: str
    strategy: str


class FeedClassifier:
    """Runs the strategy cascade and feeds the spatial index.

    One classifier (and one index) per pipeline run.
    """

    def __init__(
        self,
        *,
        max_distance_m: float = 0.0,
        strategies: Sequence[
            Callable[[PlacemarkRecord, ClassificationContext], str | None]
        ] = DEFAULT_STRATEGIES,
    ) -> None:
        self.context = ClassificationContext(index=SpatialIndex(max_distance_m))
        self._strategies = tuple(strategies)

    @property
    def index(self) -> SpatialIndex:
        return self.context.index

    def classify(self, record: PlacemarkRecord) -> Classification:
        """Classify *record*; classified points are added to the index."""
        for strategy in self._strategies:
            code = strategy(record, self.context)
            if code is None:
                continue
            if record.is_point and strategy not in LITERAL_STRATEGIES:
                lat, lon = record.position
                self.context.index.add(lat, lon, code)
            return Classification(code=code, strategy=strategy.__name__)
        return Classification(code=AUTO_FEED, strategy=auto_feed.__name__)


# ---------------------------------------------------------------------------
# Marker attributes
# ---------------------------------------------------------------------------


def extract_power(metadata: Mapping[str, str]) -> str | None:
    """Transformer rating from metadata with every ``kva`` spelled ``kVA``.

    ``"75kva"`` → ``"75kVA"``, ``"75 KVA trif."`` → ``"75 kVA trif."``.
    """
    for key, value in metadata.items():
        lowered = key.lower()
        if value and any(fragment in lowered for fragment in POWER_METADATA_KEYS):
            return _KVA.sub("kVA", value)
    return None


def post_group_by_name(name: str, metadata: Mapping[str, str]) -> str:
    """Post group of a marker from a group token in its name.

    The token may run straight into the rest of the name: ``"Posto-FU-12"``
    and ``"ET-FA01"`` give ``"FU"`` and ``"FA"``.  Markers without a token
    are ``"KVA"`` when a rating is known, ``"OUTROS"`` otherwise.
    """
    upper = (name or "").upper()
    for group, token in _POST_GROUP_TOKENS:
        if token in upper:
            return group
    if extract_power(metadata):
        return POST_GROUP_POWER
    return POST_GROUP_OTHER
