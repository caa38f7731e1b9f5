"""Shared pipeline constants: single source of truth.

Centralises the string literals and numeric defaults that more than one
stage needs: markup/container naming, geodesy, feed fallbacks and the
level-of-detail names.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Archive / markup naming
# ---------------------------------------------------------------------------

MARKUP_SUFFIX: str = ".kml"
"""Suffix (case-insensitive) of the markup document inside a container."""

CONTAINER_SUFFIXES: tuple[str, ...] = (".kmz", ".zip")
"""Filename hints that identify a compressed container."""

ZIP_MAGIC: bytes = b"PK\x03\x04"
"""Local-file-header signature of a ZIP container."""

RESERVED_ARCHIVE_PREFIX: str = "__MACOSX"
"""Platform metadata directory that never holds the real document."""

# ---------------------------------------------------------------------------
# Geodesy
# ---------------------------------------------------------------------------

EARTH_RADIUS_M: float = 6_371_000.0
"""Mean Earth radius in metres (equirectangular and haversine)."""

# ---------------------------------------------------------------------------
# Level of detail
# ---------------------------------------------------------------------------

LOD_LEVELS: tuple[str, ...] = ("coarse", "mid", "fine")
"""Serialisation order of the three levels of detail."""

DEFAULT_LOD_FINE_M: float = 8.0
DEFAULT_LOD_MID_M: float = 15.0
DEFAULT_LOD_COARSE_M: float = 35.0
DEFAULT_MIN_SKIP_M: float = 2.0
DEFAULT_MAX_POINTS_PER_GEOM: int = 800

# ---------------------------------------------------------------------------
# Feed classification
# ---------------------------------------------------------------------------

AUTO_FEED: str = "AUTO"
"""Literal group used when nothing in the document names a feed."""

FEED_METADATA_KEYS: tuple[str, ...] = ("alimentador", "feeder")
"""Metadata key fragments whose value names the feed literally."""

POWER_METADATA_KEYS: tuple[str, ...] = ("kva", "pot", "potencia")
"""Metadata key fragments whose value carries a transformer rating."""

POST_GROUPS: tuple[str, ...] = ("FU", "FA", "RE")
"""Name suffix tokens that assign a marker to a post group."""

POST_GROUP_POWER: str = "KVA"
POST_GROUP_OTHER: str = "OUTROS"

# ---------------------------------------------------------------------------
# Result cache
# ---------------------------------------------------------------------------

DEFAULT_CACHE_TTL_S: float = 3600.0
DEFAULT_YIELD_INTERVAL_MS: float = 16.0
