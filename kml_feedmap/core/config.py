"""Pipeline configuration loaded from environment variables.

All values have defaults tuned for interactive rendering (8/15/35 m
level-of-detail tolerances, one-hour result cache).  ``from_env()``
raises ``ConfigValidationError`` as soon as a value is out of range so
a bad deployment fails at startup rather than halfway through a run.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from kml_feedmap.core.constants import (
    DEFAULT_CACHE_TTL_S,
    DEFAULT_LOD_COARSE_M,
    DEFAULT_LOD_FINE_M,
    DEFAULT_LOD_MID_M,
    DEFAULT_MAX_POINTS_PER_GEOM,
    DEFAULT_MIN_SKIP_M,
    DEFAULT_YIELD_INTERVAL_MS,
)
from kml_feedmap.core.exceptions import PipelineError


class ConfigValidationError(PipelineError):
    """Raised when configuration values are out of valid range.

    Attributes:
        key: The configuration key that failed validation.
        value: The invalid value.
        message: Human-readable description of the valid range.
    """

    default_stage = "config"
    default_code = "CONFIG_VALIDATION_FAILED"

    def __init__(self, key: str, value: object, message: str) -> None:
        self.key = key
        self.value = value
        self.message = message
        super().__init__(f"Invalid configuration {key}={value!r}: {message}")


@dataclass(frozen=True, slots=True)
class PipelineConfig:
    """Immutable pipeline configuration.

    Attributes:
        lod_fine_m: Tolerance of the ``fine`` level of detail, in metres.
        lod_mid_m: Tolerance of the ``mid`` level (built from ``fine``).
        lod_coarse_m: Tolerance of the ``coarse`` level (built from ``mid``).
        min_skip_m: Points closer than this to the last kept point are
            dropped before simplification.
        max_points_per_geom: Hard cap on points per level; longer paths
            are downsampled by stride.
        result_cache_dir: Directory of the on-disk result cache.  Empty
            disables the file cache.
        result_cache_ttl_s: Freshness window of a cached document, seconds.
        yield_interval_ms: Wall-clock budget between cooperative yields.
        nearest_max_distance_m: Search radius of the spatial fallback.
            ``0`` means unbounded.
    """

    lod_fine_m: float = DEFAULT_LOD_FINE_M
    lod_mid_m: float = DEFAULT_LOD_MID_M
    lod_coarse_m: float = DEFAULT_LOD_COARSE_M
    min_skip_m: float = DEFAULT_MIN_SKIP_M
    max_points_per_geom: int = DEFAULT_MAX_POINTS_PER_GEOM
    result_cache_dir: str = ""
    result_cache_ttl_s: float = DEFAULT_CACHE_TTL_S
    yield_interval_ms: float = DEFAULT_YIELD_INTERVAL_MS
    nearest_max_distance_m: float = 0.0

    @property
    def lod_tolerances(self) -> tuple[float, float, float]:
        """``(fine, mid, coarse)`` tolerances in build order."""
        return (self.lod_fine_m, self.lod_mid_m, self.lod_coarse_m)

    @classmethod
    def from_env(cls) -> PipelineConfig:
        """Load and validate configuration from environment variables.

        Raises:
            ConfigValidationError: If a numeric value is out of range.
            ValueError: If a numeric environment variable cannot be
                parsed (e.g. ``LOD_FINE_M=abc``).
        """
        config = cls(
            lod_fine_m=float(os.getenv("LOD_FINE_M", str(DEFAULT_LOD_FINE_M))),
            lod_mid_m=float(os.getenv("LOD_MID_M", str(DEFAULT_LOD_MID_M))),
            lod_coarse_m=float(os.getenv("LOD_COARSE_M", str(DEFAULT_LOD_COARSE_M))),
            min_skip_m=float(os.getenv("MIN_SKIP_M", str(DEFAULT_MIN_SKIP_M))),
            max_points_per_geom=int(
                os.getenv("MAX_POINTS_PER_GEOM", str(DEFAULT_MAX_POINTS_PER_GEOM))
            ),
            result_cache_dir=os.getenv("RESULT_CACHE_DIR", ""),
            result_cache_ttl_s=float(os.getenv("RESULT_CACHE_TTL_S", str(DEFAULT_CACHE_TTL_S))),
            yield_interval_ms=float(
                os.getenv("YIELD_INTERVAL_MS", str(DEFAULT_YIELD_INTERVAL_MS))
            ),
            nearest_max_distance_m=float(os.getenv("NEAREST_MAX_DISTANCE_M", "0")),
        )
        validate_config(config)
        return config


def validate_config(config: PipelineConfig) -> None:
    """Validate configuration ranges.  Raises ``ConfigValidationError``."""
    if config.lod_fine_m <= 0:
        raise ConfigValidationError("LOD_FINE_M", config.lod_fine_m, "must be > 0 (metres)")

    if config.lod_mid_m < config.lod_fine_m:
        raise ConfigValidationError(
            "LOD_MID_M",
            config.lod_mid_m,
            f"must be >= LOD_FINE_M ({config.lod_fine_m})",
        )

    if config.lod_coarse_m < config.lod_mid_m:
        raise ConfigValidationError(
            "LOD_COARSE_M",
            config.lod_coarse_m,
            f"must be >= LOD_MID_M ({config.lod_mid_m})",
        )

    if config.min_skip_m < 0:
        raise ConfigValidationError("MIN_SKIP_M", config.min_skip_m, "must be >= 0 (metres)")

    if config.max_points_per_geom < 2:
        raise ConfigValidationError(
            "MAX_POINTS_PER_GEOM",
            config.max_points_per_geom,
            "must be >= 2 (first and last point are always kept)",
        )

    if config.result_cache_ttl_s <= 0:
        raise ConfigValidationError(
            "RESULT_CACHE_TTL_S",
            config.result_cache_ttl_s,
            "must be > 0 (seconds)",
        )

    if config.yield_interval_ms <= 0:
        raise ConfigValidationError(
            "YIELD_INTERVAL_MS",
            config.yield_interval_ms,
            "must be > 0 (milliseconds)",
        )

    if config.nearest_max_distance_m < 0:
        raise ConfigValidationError(
            "NEAREST_MAX_DISTANCE_M",
            config.nearest_max_distance_m,
            "must be >= 0 (metres, 0 = unbounded)",
        )
