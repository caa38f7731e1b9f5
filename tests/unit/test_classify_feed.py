"""Tests for feed classification, the spatial fallback and marker attributes."""

from __future__ import annotations

import pytest

from kml_feedmap.activities.classify_feed import (
    FeedClassifier,
    SpatialIndex,
    auto_feed,
    code_from_ancestors,
    extract_feed_code,
    extract_power,
    haversine_m,
    is_feed_code,
    post_group_by_name,
)
from kml_feedmap.models.placemark import GeometryKind, PlacemarkRecord


def _point(
    name: str = "",
    lat: float = -21.79,
    lon: float = -48.17,
    metadata: dict[str, str] | None = None,
    ancestors: tuple[str, ...] = (),
) -> PlacemarkRecord:
    return PlacemarkRecord(
        kind=GeometryKind.POINT,
        name=name,
        coordinates=((lat, lon),),
        metadata=metadata or {},
        ancestors=ancestors,
    )


def _line(
    name: str = "",
    metadata: dict[str, str] | None = None,
    ancestors: tuple[str, ...] = (),
) -> PlacemarkRecord:
    return PlacemarkRecord(
        kind=GeometryKind.LINE,
        name=name,
        coordinates=((-21.79, -48.17), (-21.79, -48.16)),
        metadata=metadata or {},
        ancestors=ancestors,
    )


# ===========================================================================
# Feed code extraction
# ===========================================================================


class TestExtractFeedCode:
    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("ARA03-T15", "ARA03"),
            ("FD7", "FD07"),
            ("fd7", "FD07"),
            ("Alimentador ARA 3", "ARA03"),
            ("SCA-0012", "SCA12"),
            ("ARA_003", "ARA03"),
            ("ABCDEF1234", "ABCDEF1234"),
            ("Posto-FU-12", "FU12"),
        ],
    )
    def test_codes(self, text: str, expected: str) -> None:
        assert extract_feed_code(text) == expected

    @pytest.mark.parametrize("text", [None, "", "Trecho principal", "A1", "75"])
    def test_no_code(self, text: str | None) -> None:
        assert extract_feed_code(text) is None

    def test_canonical_shape(self) -> None:
        assert is_feed_code("ARA03")
        assert not is_feed_code("NORTE")
        assert not is_feed_code("AUTO")


# ===========================================================================
# Spatial index
# ===========================================================================


class TestSpatialIndex:
    def test_empty(self) -> None:
        assert SpatialIndex().nearest(0.0, 0.0) is None

    def test_nearest_entry(self) -> None:
        index = SpatialIndex()
        index.add(-21.79, -48.17, "ARA03")
        index.add(-21.70, -48.10, "FD07")
        entry = index.nearest(-21.791, -48.171)
        assert entry is not None
        assert entry.code == "ARA03"
        assert len(index) == 2

    def test_radius_limits_search(self) -> None:
        index = SpatialIndex(max_distance_m=100.0)
        index.add(-21.79, -48.17, "ARA03")
        assert index.nearest(-21.80, -48.17) is None
        assert index.nearest(-21.7901, -48.17) is not None

    def test_haversine_one_degree_latitude(self) -> None:
        assert haversine_m(0.0, 0.0, 1.0, 0.0) == pytest.approx(111_195, rel=1e-3)


# ===========================================================================
# Strategy cascade
# ===========================================================================


class TestFeedClassifier:
    def test_name_wins_over_ancestors(self) -> None:
        result = FeedClassifier().classify(_point("ARA03-T15", ancestors=("FD7",)))
        assert result.code == "ARA03"
        assert result.strategy == "code_from_name"

    def test_name_wins_over_metadata(self) -> None:
        record = PlacemarkRecord(
            kind=GeometryKind.POINT,
            name="ARA03-T15",
            coordinates=((-21.79, -48.17),),
            metadata={"Alimentador": "FD7"},
        )
        result = FeedClassifier().classify(record)
        assert result.code == "ARA03"
        assert result.strategy == "code_from_name"

    def test_metadata_before_ancestors(self) -> None:
        record = _line(metadata={"circuito": "SCA 12"}, ancestors=("ARA03",))
        assert FeedClassifier().classify(record).code == "SCA12"

    def test_nearest_ancestor_first(self) -> None:
        record = _line(ancestors=("Ramal FD7", "Rede ARA03"))
        result = FeedClassifier().classify(record)
        assert result.code == "FD07"
        assert result.strategy == "code_from_ancestors"

    def test_point_falls_back_to_nearest_point(self) -> None:
        classifier = FeedClassifier()
        classifier.classify(_point("ARA03-P1", lat=-21.79, lon=-48.17))
        classifier.classify(_point("FD07-P1", lat=-21.50, lon=-48.00))
        result = classifier.classify(_point("Chave", lat=-21.7901, lon=-48.1701))
        assert result.code == "ARA03"
        assert result.strategy == "code_from_nearest_point"

    def test_spatially_classified_point_joins_index(self) -> None:
        classifier = FeedClassifier()
        classifier.classify(_point("ARA03-P1"))
        classifier.classify(_point("Chave"))
        assert len(classifier.index) == 2

    def test_lines_never_use_spatial_index(self) -> None:
        classifier = FeedClassifier()
        classifier.classify(_point("ARA03-P1"))
        result = classifier.classify(_line("Trecho"))
        assert result.code == "AUTO"

    def test_literal_feed_value(self) -> None:
        result = FeedClassifier().classify(_line(metadata={"Alimentador": "Norte"}))
        assert result.code == "NORTE"
        assert result.strategy == "feed_literal"

    def test_literal_does_not_seed_index(self) -> None:
        classifier = FeedClassifier()
        classifier.classify(_point("Poste", metadata={"Feeder": "Norte"}))
        classifier.classify(_point("Outro"))
        assert len(classifier.index) == 0

    def test_auto_when_nothing_matches(self) -> None:
        classifier = FeedClassifier()
        result = classifier.classify(_point("Poste"))
        assert result.code == "AUTO"
        assert result.strategy == "auto_feed"
        assert len(classifier.index) == 0

    def test_nearest_respects_radius(self) -> None:
        classifier = FeedClassifier(max_distance_m=50.0)
        classifier.classify(_point("ARA03-P1", lat=-21.79))
        assert classifier.classify(_point("Longe", lat=-21.80)).code == "AUTO"

    def test_custom_strategy_order(self) -> None:
        classifier = FeedClassifier(strategies=(code_from_ancestors, auto_feed))
        assert classifier.classify(_point("ARA03", ancestors=("FD7",))).code == "FD07"


# ===========================================================================
# Marker attributes
# ===========================================================================


class TestMarkerAttributes:
    @pytest.mark.parametrize(
        ("name", "group"),
        [
            ("Posto-FU-12", "FU"),
            ("posto-fa", "FA"),
            ("P-RE-3", "RE"),
            ("Poste-FUSE", "FU"),
            ("ET-FA01", "FA"),
            ("Posto-FU12", "FU"),
            ("Chave", "OUTROS"),
        ],
    )
    def test_post_group_from_suffix(self, name: str, group: str) -> None:
        assert post_group_by_name(name, {}) == group

    def test_rating_without_suffix(self) -> None:
        assert post_group_by_name("Trafo 7", {"Pot": "45"}) == "KVA"

    def test_suffix_wins_over_rating(self) -> None:
        assert post_group_by_name("T-FA-1", {"kVA": "45"}) == "FA"

    @pytest.mark.parametrize(
        ("metadata", "power"),
        [
            ({"Potencia": "75kva"}, "75kVA"),
            ({"POT_TRAFO": "112.5 KVA"}, "112.5 kVA"),
            ({"Potencia": "75 KVA trif. kva"}, "75 kVA trif. kVA"),
            ({"kva": "30"}, "30"),
            ({"obs": "75kva"}, None),
            ({}, None),
        ],
    )
    def test_power(self, metadata: dict[str, str], power: str | None) -> None:
        assert extract_power(metadata) == power
