"""Data models for the processed, render-ready document.

``ProcessedDocument`` is the output of the pipeline and the value stored
in the result cache.  ``to_dict()`` produces the JSON payload consumed by
map clients; ``from_dict()`` restores a cached payload and rejects
anything that does not match the schema with ``ContractError``.
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass, field

from kml_feedmap.core.constants import LOD_LEVELS
from kml_feedmap.core.exceptions import ContractError
from kml_feedmap.models.placemark import Coordinate


class DocumentContractError(ContractError):
    """Raised when a serialised document does not match the payload schema."""

    default_stage = "result_cache"
    default_code = "CACHE_ENTRY_INVALID"


# ---------------------------------------------------------------------------
# Geometry
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class GeometryLOD:
    """Three nested levels of detail of one path.

    ``mid`` is simplified from ``fine`` and ``coarse`` from ``mid``, so
    point counts never increase from fine to coarse.
    """

    coarse: tuple[Coordinate, ...]
    mid: tuple[Coordinate, ...]
    fine: tuple[Coordinate, ...]

    def to_dict(self) -> dict[str, list[list[float]]]:
        return {level: [[lat, lon] for lat, lon in getattr(self, level)] for level in LOD_LEVELS}

    @classmethod
    def from_dict(cls, data: object) -> GeometryLOD:
        if not isinstance(data, dict):
            msg = f"lods must be a dict, got {type(data).__name__}"
            raise DocumentContractError(msg)
        levels = {level: _coords_from_list(data.get(level), level) for level in LOD_LEVELS}
        return cls(**levels)


@dataclass(slots=True)
class GroupBoundingBox:
    """Running min/max extent of the geometries assigned to one group."""

    min_lat: float = math.inf
    min_lon: float = math.inf
    max_lat: float = -math.inf
    max_lon: float = -math.inf

    @property
    def is_empty(self) -> bool:
        return self.min_lat > self.max_lat

    def extend(self, lat: float, lon: float) -> None:
        self.min_lat = min(self.min_lat, lat)
        self.min_lon = min(self.min_lon, lon)
        self.max_lat = max(self.max_lat, lat)
        self.max_lon = max(self.max_lon, lon)

    def extend_bounds(self, min_lat: float, min_lon: float, max_lat: float, max_lon: float) -> None:
        self.extend(min_lat, min_lon)
        self.extend(max_lat, max_lon)

    def to_dict(self) -> dict[str, float]:
        return {
            "min_lat": self.min_lat,
            "min_lon": self.min_lon,
            "max_lat": self.max_lat,
            "max_lon": self.max_lon,
        }

    @classmethod
    def from_dict(cls, data: object) -> GroupBoundingBox:
        if not isinstance(data, dict):
            msg = f"bounds entry must be a dict, got {type(data).__name__}"
            raise DocumentContractError(msg)
        try:
            return cls(
                min_lat=float(data["min_lat"]),
                min_lon=float(data["min_lon"]),
                max_lat=float(data["max_lat"]),
                max_lon=float(data["max_lon"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            msg = f"Malformed bounds entry: {exc}"
            raise DocumentContractError(msg) from exc


# ---------------------------------------------------------------------------
# Entries
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class MarkerEntry:
    """A classified point placemark.

    Attributes:
        name: Placemark name.
        group: Post group (``FU``, ``FA``, ``RE``, ``KVA`` or ``OUTROS``).
        coords: ``(lat, lon)`` position.
        alim: Feed code of the point (classifier output).
        power: Transformer rating (``"75 kVA"``) if the metadata carries one.
    """

    name: str
    group: str
    coords: Coordinate
    alim: str | None = None
    power: str | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "name": self.name,
            "group": self.group,
            "coords": [self.coords[0], self.coords[1]],
            "extra": {"Alim": self.alim, "Potência": self.power},
        }

    @classmethod
    def from_dict(cls, data: object) -> MarkerEntry:
        if not isinstance(data, dict):
            msg = f"marker must be a dict, got {type(data).__name__}"
            raise DocumentContractError(msg)
        extra = data.get("extra") or {}
        if not isinstance(extra, dict):
            msg = f"marker extra must be a dict, got {type(extra).__name__}"
            raise DocumentContractError(msg)
        coords = _coords_from_list([data.get("coords")], "coords")[0]
        return cls(
            name=str(data.get("name", "")),
            group=str(data.get("group", "")),
            coords=coords,
            alim=_optional_str(extra.get("Alim")),
            power=_optional_str(extra.get("Potência")),
        )


@dataclass(frozen=True, slots=True)
class LineEntry:
    """A classified path (line or polygon ring) with its levels of detail."""

    group: str
    lods: GeometryLOD

    def to_dict(self) -> dict[str, object]:
        return {"group": self.group, "lods": self.lods.to_dict()}

    @classmethod
    def from_dict(cls, data: object) -> LineEntry:
        if not isinstance(data, dict):
            msg = f"line must be a dict, got {type(data).__name__}"
            raise DocumentContractError(msg)
        return cls(group=str(data.get("group", "")), lods=GeometryLOD.from_dict(data.get("lods")))


@dataclass(frozen=True, slots=True)
class CacheInfo:
    """Identity of the input a document was produced from, and when."""

    identity: str = ""
    produced_at: str = ""

    def to_dict(self) -> dict[str, str]:
        return {"identity": self.identity, "producedAt": self.produced_at}


# ---------------------------------------------------------------------------
# Document
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ProcessedDocument:
    """The final payload of one pipeline run.

    Attributes:
        markers: Classified point placemarks, in document order.
        lines: Deduplicated line paths, in document order.
        polygons: Polygon outer rings, in document order.
        bounds: Extent per group; groups without geometry are absent.
        cache: Identity/production metadata.
    """

    markers: tuple[MarkerEntry, ...] = ()
    lines: tuple[LineEntry, ...] = ()
    polygons: tuple[LineEntry, ...] = ()
    bounds: dict[str, GroupBoundingBox] = field(default_factory=dict)
    cache: CacheInfo = field(default_factory=CacheInfo)

    @property
    def stats(self) -> dict[str, int]:
        return {
            "lines": len(self.lines),
            "markers": len(self.markers),
            "polygons": len(self.polygons),
        }

    def to_dict(self) -> dict[str, object]:
        """Serialise to the JSON payload shape."""
        return {
            "markers": [m.to_dict() for m in self.markers],
            "lines": [line.to_dict() for line in self.lines],
            "polygons": [p.to_dict() for p in self.polygons],
            "bounds": {group: box.to_dict() for group, box in self.bounds.items()},
            "stats": self.stats,
            "cache": self.cache.to_dict(),
        }

    def to_json(self) -> str:
        """Compact, deterministic JSON encoding (UTF-8, no ASCII escaping)."""
        return json.dumps(self.to_dict(), ensure_ascii=False, separators=(",", ":"))

    @classmethod
    def from_dict(cls, data: object) -> ProcessedDocument:
        """Restore a document from its ``to_dict()`` form.

        Raises:
            DocumentContractError: If *data* does not match the schema.
        """
        if not isinstance(data, dict):
            msg = f"document must be a dict, got {type(data).__name__}"
            raise DocumentContractError(msg)

        markers = data.get("markers", [])
        lines = data.get("lines", [])
        polygons = data.get("polygons", [])
        bounds = data.get("bounds", {})
        cache = data.get("cache", {})
        for key, value, expected in (
            ("markers", markers, list),
            ("lines", lines, list),
            ("polygons", polygons, list),
            ("bounds", bounds, dict),
            ("cache", cache, dict),
        ):
            if not isinstance(value, expected):
                msg = f"{key} must be a {expected.__name__}, got {type(value).__name__}"
                raise DocumentContractError(msg)

        return cls(
            markers=tuple(MarkerEntry.from_dict(m) for m in markers),
            lines=tuple(LineEntry.from_dict(line) for line in lines),
            polygons=tuple(LineEntry.from_dict(p) for p in polygons),
            bounds={str(g): GroupBoundingBox.from_dict(b) for g, b in bounds.items()},
            cache=CacheInfo(
                identity=str(cache.get("identity", "")),
                produced_at=str(cache.get("producedAt", "")),
            ),
        )

    @classmethod
    def from_json(cls, text: str | bytes) -> ProcessedDocument:
        try:
            data = json.loads(text)
        except ValueError as exc:
            msg = f"Cached document is not valid JSON: {exc}"
            raise DocumentContractError(msg) from exc
        return cls.from_dict(data)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _coords_from_list(raw: object, label: str) -> tuple[Coordinate, ...]:
    if not isinstance(raw, list):
        msg = f"{label} must be a list, got {type(raw).__name__}"
        raise DocumentContractError(msg)
    coords: list[Coordinate] = []
    for idx, pair in enumerate(raw):
        if not isinstance(pair, list | tuple) or len(pair) != 2:
            msg = f"Malformed coordinate at {label}[{idx}]: {pair!r}"
            raise DocumentContractError(msg)
        try:
            coords.append((float(pair[0]), float(pair[1])))
        except (TypeError, ValueError) as exc:
            msg = f"Malformed coordinate at {label}[{idx}]: {pair!r}"
            raise DocumentContractError(msg) from exc
    return tuple(coords)


def _optional_str(value: object) -> str | None:
    return None if value is None else str(value)
