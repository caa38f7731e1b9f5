"""KML Feed Map Pipeline.

Turns a KML/KMZ document of distribution-network placemarks into a
compact, render-ready payload: classified markers, deduplicated lines
with three levels of detail, per-feed bounding boxes and summary counts.
"""

__version__ = "0.1.0"
