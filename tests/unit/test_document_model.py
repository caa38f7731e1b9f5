"""Tests for the processed document model and its JSON payload."""

from __future__ import annotations

import json

import pytest

from kml_feedmap.models.document import (
    CacheInfo,
    DocumentContractError,
    GeometryLOD,
    GroupBoundingBox,
    LineEntry,
    MarkerEntry,
    ProcessedDocument,
)


@pytest.fixture()
def document() -> ProcessedDocument:
    path = ((-21.79, -48.17), (-21.79, -48.16))
    lods = GeometryLOD(coarse=path, mid=path, fine=path)
    return ProcessedDocument(
        markers=(
            MarkerEntry(
                name="Posto-FU-12",
                group="FU",
                coords=(-21.7947, -48.178),
                alim="FU12",
                power="75kVA",
            ),
        ),
        lines=(LineEntry(group="ARA03", lods=lods),),
        polygons=(),
        bounds={"FU": GroupBoundingBox(-21.7947, -48.178, -21.7947, -48.178)},
        cache=CacheInfo(identity="1-2", produced_at="2026-10-18T12:00:00+00:00"),
    )


class TestPayloadShape:
    def test_top_level_keys(self, document: ProcessedDocument) -> None:
        payload = document.to_dict()
        assert set(payload) == {"markers", "lines", "polygons", "bounds", "stats", "cache"}
        assert payload["stats"] == {"lines": 1, "markers": 1, "polygons": 0}

    def test_marker_shape(self, document: ProcessedDocument) -> None:
        marker = document.to_dict()["markers"][0]
        assert marker == {
            "name": "Posto-FU-12",
            "group": "FU",
            "coords": [-21.7947, -48.178],
            "extra": {"Alim": "FU12", "Potência": "75kVA"},
        }

    def test_line_levels(self, document: ProcessedDocument) -> None:
        line = document.to_dict()["lines"][0]
        assert line["group"] == "ARA03"
        assert set(line["lods"]) == {"coarse", "mid", "fine"}
        assert line["lods"]["fine"] == [[-21.79, -48.17], [-21.79, -48.16]]

    def test_cache_key_names(self, document: ProcessedDocument) -> None:
        assert document.to_dict()["cache"] == {
            "identity": "1-2",
            "producedAt": "2026-10-18T12:00:00+00:00",
        }

    def test_json_is_compact_utf8(self, document: ProcessedDocument) -> None:
        text = document.to_json()
        assert "Potência" in text
        assert ", " not in text
        assert json.loads(text)["stats"]["markers"] == 1


class TestRestore:
    def test_json_restores_equal_document(self, document: ProcessedDocument) -> None:
        assert ProcessedDocument.from_json(document.to_json()) == document

    def test_missing_optional_extras(self) -> None:
        marker = MarkerEntry.from_dict({"name": "P", "group": "OUTROS", "coords": [1, 2]})
        assert marker.alim is None
        assert marker.power is None
        assert marker.coords == (1.0, 2.0)

    @pytest.mark.parametrize(
        "payload",
        [
            "[]",
            '{"markers": {}}',
            '{"lines": [{"group": "G", "lods": []}]}',
            '{"lines": [{"group": "G", "lods": {"coarse": [[1]], "mid": [], "fine": []}}]}',
            '{"markers": [{"coords": ["a", "b"]}]}',
            '{"bounds": {"G": {"min_lat": 1}}}',
            "not json",
        ],
    )
    def test_schema_violations(self, payload: str) -> None:
        with pytest.raises(DocumentContractError):
            ProcessedDocument.from_json(payload)


class TestGroupBoundingBox:
    def test_new_box_is_empty(self) -> None:
        assert GroupBoundingBox().is_empty

    def test_extend(self) -> None:
        box = GroupBoundingBox()
        box.extend(1.0, 2.0)
        box.extend(-1.0, 5.0)
        assert not box.is_empty
        assert box.to_dict() == {"min_lat": -1.0, "min_lon": 2.0, "max_lat": 1.0, "max_lon": 5.0}
