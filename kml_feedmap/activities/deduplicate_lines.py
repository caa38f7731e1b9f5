"""Line deduplication activity: emit each geometric path once per group.

Exported network maps often carry the same conductor twice (once per
circuit folder, or digitised in both directions).  A path's identity is a
signature built from its group code plus a sample of its coordinates
rounded to five decimals (about one metre); the signature of the reversed
path is computed too and the lexicographically smaller of the two is the
canonical one, so traversal direction does not matter.
"""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from kml_feedmap.models.placemark import Coordinate

logger = logging.getLogger("kml_feedmap.activities.deduplicate_lines")

SIGNATURE_SAMPLES = 8
SIGNATURE_DECIMALS = 5


def _rounded(value: float) -> str:
    # + 0.0 folds -0.0 into 0.0
    return f"{round(value, SIGNATURE_DECIMALS) + 0.0:.{SIGNATURE_DECIMALS}f}"


def _sample(coords: Sequence[Coordinate]) -> str:
    n = len(coords)
    step = max(1, math.ceil(n / SIGNATURE_SAMPLES))
    return ";".join(
        f"{_rounded(lat)},{_rounded(lon)}"
        for i, (lat, lon) in enumerate(coords)
        if i == 0 or i == n - 1 or i % step == 0
    )


def line_signature(group: str, coords: Sequence[Coordinate]) -> str:
    """Direction-independent signature of a path within *group*."""
    forward = f"{group}|{_sample(coords)}"
    backward = f"{group}|{_sample(list(reversed(coords)))}"
    return min(forward, backward)


class LineDeduplicator:
    """Remembers the signatures seen during one run."""

    def __init__(self) -> None:
        self._seen: set[str] = set()
        self.duplicates = 0

    def __len__(self) -> int:
        return len(self._seen)

    def admit(self, group: str, coords: Sequence[Coordinate]) -> bool:
        """Return ``True`` the first time a path is seen, ``False`` afterwards."""
        signature = line_signature(group, coords)
        if signature in self._seen:
            self.duplicates += 1
            logger.debug("Duplicate line discarded | group=%s | points=%d", group, len(coords))
            return False
        self._seen.add(signature)
        return True
