"""Shared pytest fixtures for the KML Feed Map test suite."""

from __future__ import annotations

import zipfile
from pathlib import Path

import pytest

# ---------------------------------------------------------------------------
# Sample documents
# ---------------------------------------------------------------------------

SAMPLE_KML = """<?xml version="1.0" encoding="UTF-8"?>
<kml xmlns="http://www.opengis.net/kml/2.2">
  <Document>
    <name>Rede Araraquara</name>
    <Folder>
      <name>Alimentador ARA03</name>
      <Placemark>
        <name>Posto-FU-12</name>
        <ExtendedData>
          <Data name="Potencia"><value>75kva</value></Data>
        </ExtendedData>
        <Point><coordinates>-48.1780,-21.7947,0</coordinates></Point>
      </Placemark>
      <Placemark>
        <name>Trecho principal</name>
        <LineString>
          <coordinates>
            -48.1780,-21.7947,0 -48.1770,-21.7947,0 -48.1760,-21.7950,0
          </coordinates>
        </LineString>
      </Placemark>
      <Placemark>
        <name>Trecho reverso</name>
        <LineString>
          <coordinates>
            -48.1760,-21.7950,0 -48.1770,-21.7947,0 -48.1780,-21.7947,0
          </coordinates>
        </LineString>
      </Placemark>
    </Folder>
    <Folder>
      <name>Outros</name>
      <Placemark>
        <name>Chave</name>
        <Point><coordinates>-48.1781,-21.7948</coordinates></Point>
      </Placemark>
      <Placemark>
        <name>Area</name>
        <Polygon>
          <outerBoundaryIs>
            <LinearRing>
              <coordinates>
                -48.1800,-21.8000 -48.1790,-21.8000 -48.1790,-21.7990
                -48.1800,-21.7990 -48.1800,-21.8000
              </coordinates>
            </LinearRing>
          </outerBoundaryIs>
        </Polygon>
      </Placemark>
      <Placemark>
        <name>Ramal</name>
        <ExtendedData>
          <Data name="Alimentador"><value>Norte</value></Data>
        </ExtendedData>
        <LineString>
          <coordinates>-48.1700,-21.7900 -48.1690,-21.7900</coordinates>
        </LineString>
      </Placemark>
      <Placemark>
        <name>Ruim</name>
        <LineString><coordinates>abc -48.1600,-21.7800</coordinates></LineString>
      </Placemark>
    </Folder>
  </Document>
</kml>
"""

NO_NAMESPACE_KML = """<?xml version="1.0" encoding="UTF-8"?>
<kml>
  <Folder>
    <name>FD7</name>
    <Placemark>
      <name>Poste</name>
      <Point><coordinates>-46.6,-23.5</coordinates></Point>
    </Placemark>
  </Folder>
</kml>
"""

EMPTY_KML = """<?xml version="1.0" encoding="UTF-8"?>
<kml xmlns="http://www.opengis.net/kml/2.2"><Document><name>Vazio</name></Document></kml>
"""


def make_kmz(path: Path, entries: dict[str, str]) -> Path:
    """Write a ZIP container holding *entries* (name → text) in order."""
    with zipfile.ZipFile(path, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for name, text in entries.items():
            archive.writestr(name, text)
    return path


# ---------------------------------------------------------------------------
# File fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def sample_kml_bytes() -> bytes:
    return SAMPLE_KML.encode("utf-8")


@pytest.fixture()
def sample_kml_path(tmp_path: Path) -> Path:
    """Path to the sample network document (markers, lines, polygon)."""
    path = tmp_path / "araraquara.kml"
    path.write_text(SAMPLE_KML, encoding="utf-8")
    return path


@pytest.fixture()
def sample_kmz_path(tmp_path: Path) -> Path:
    """KMZ whose first .kml entry is macOS metadata, followed by the real document."""
    return make_kmz(
        tmp_path / "araraquara.kmz",
        {
            "__MACOSX/._doc.kml": "junk",
            "images/readme.txt": "not markup",
            "doc.KML": SAMPLE_KML,
        },
    )


@pytest.fixture()
def not_xml_path(tmp_path: Path) -> Path:
    path = tmp_path / "broken.kml"
    path.write_text("this is <not> xml <kml", encoding="utf-8")
    return path


@pytest.fixture()
def empty_kml_path(tmp_path: Path) -> Path:
    path = tmp_path / "empty.kml"
    path.write_text(EMPTY_KML, encoding="utf-8")
    return path


@pytest.fixture()
def no_namespace_kml_bytes() -> bytes:
    return NO_NAMESPACE_KML.encode("utf-8")


@pytest.fixture()
def empty_kml_bytes() -> bytes:
    return EMPTY_KML.encode("utf-8")


@pytest.fixture()
def kmz_factory(tmp_path: Path):
    """Return ``build(name, entries) -> Path`` writing a container under tmp_path."""

    def build(name: str, entries: dict[str, str]) -> Path:
        return make_kmz(tmp_path / name, entries)

    return build


@pytest.fixture()
def corrupt_deflate_kmz_path(tmp_path: Path) -> Path:
    """KMZ with a readable directory but a damaged deflate stream for ``doc.kml``."""
    path = make_kmz(tmp_path / "damaged.kmz", {"doc.kml": SAMPLE_KML})
    raw = bytearray(path.read_bytes())
    # local header: 30 fixed bytes + file name, no extra field from writestr
    start = 30 + len("doc.kml") + 10
    for i in range(start, start + 20):
        raw[i] ^= 0xFF
    path.write_bytes(bytes(raw))
    return path
