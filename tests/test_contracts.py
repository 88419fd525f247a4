"""Tests for polygon parsing and gate configuration."""
import json
import math

import pytest

from ghost_gates.contracts import (
    GateConfig,
    GateResult,
    MaskPolygon,
    MetricsResult,
    RegionKind,
    load_gate_config,
    polygons_from_payload,
)


class TestRegionKind:
    """Test region name mapping."""

    @pytest.mark.parametrize(
        "name, kind",
        [
            ("garment", RegionKind.GARMENT),
            (" Garment ", RegionKind.GARMENT),
            ("neck", RegionKind.NECK),
            ("sleeve_l", RegionKind.SLEEVE_LEFT),
            ("SLEEVE_R", RegionKind.SLEEVE_RIGHT),
            ("hood", RegionKind.OTHER),
            ("other", RegionKind.OTHER),
        ],
    )
    def test_from_name(self, name, kind):
        assert RegionKind.from_name(name) is kind

    def test_other_keeps_original_name(self):
        polygon = MaskPolygon(name="placket", points=((0, 0), (1, 0), (1, 1)))
        assert polygon.kind is RegionKind.OTHER
        assert polygon.name == "placket"


class TestMaskPolygon:
    """Test payload parsing."""

    def test_service_keys(self):
        polygon = MaskPolygon.from_dict(
            {"name": "neck", "pts": [[1, 2], [3, 4], [5, 0]], "isHole": True}
        )
        assert polygon.points == ((1.0, 2.0), (3.0, 4.0), (5.0, 0.0))
        assert polygon.is_hole is True
        assert polygon.kind is RegionKind.NECK

    def test_snake_case_keys(self):
        polygon = MaskPolygon.from_dict({"name": "garment", "points": [[0, 0], [1, 0], [1, 1]]})
        assert polygon.is_hole is False
        assert len(polygon.points) == 3

    def test_to_dict_uses_service_keys(self, neck_hole):
        payload = neck_hole.to_dict()
        assert payload["isHole"] is True
        assert payload["pts"][0] == [40, 0]
        assert MaskPolygon.from_dict(payload) == MaskPolygon(
            name="neck",
            points=((40.0, 0.0), (60.0, 0.0), (60.0, 15.0), (40.0, 15.0)),
            is_hole=True,
        )

    def test_malformed_point_raises(self):
        with pytest.raises(ValueError, match="malformed point"):
            MaskPolygon.from_dict({"name": "garment", "pts": [[0, 0, 0]]})

    @pytest.mark.parametrize("bad", ["nan", "inf", "-Infinity", math.nan])
    def test_non_finite_point_raises(self, bad):
        with pytest.raises(ValueError, match="non-finite point"):
            MaskPolygon.from_dict({"name": "garment", "pts": [[0, 0], [bad, 0], [1, 1]]})

    def test_payload_rejects_nan_tokens(self):
        payload = json.loads('[{"name": "garment", "pts": [[0, 0], [NaN, 0], [1, 1]]}]')
        with pytest.raises(ValueError):
            polygons_from_payload(payload)

    def test_missing_name_raises(self):
        with pytest.raises(ValueError, match="name"):
            MaskPolygon.from_dict({"pts": [[0, 0]]})

    def test_to_shapely(self, square_garment):
        assert square_garment.to_shapely().area == pytest.approx(10000.0)
        assert MaskPolygon(name="neck", points=((0, 0), (1, 1))).to_shapely().is_empty

    def test_payload_object_or_list(self, garment_polygons):
        as_list = [p.to_dict() for p in garment_polygons]
        assert len(polygons_from_payload(as_list)) == 4
        assert len(polygons_from_payload({"polygons": as_list})) == 4

    def test_payload_rejects_scalar(self):
        with pytest.raises(ValueError):
            polygons_from_payload("garment")


class TestGateConfig:
    """Test configuration defaults and loading."""

    def test_defaults(self):
        config = GateConfig()
        assert config.min_symmetry == 0.95
        assert config.max_edge_roughness_px == 2.0
        assert config.neck_ratio_default == 0.16
        assert config.symmetry_weights == (0.4, 0.4, 0.2)

    def test_from_dict_ignores_unknown(self):
        config = GateConfig.from_dict({"min_symmetry": 0.9, "mystery": 1})
        assert config.min_symmetry == 0.9

    def test_from_dict_coerces_lists(self):
        config = GateConfig.from_dict({"neck_ratio_range": [0.01, 0.4]})
        assert config.neck_ratio_range == (0.01, 0.4)

    def test_from_dict_coerces_strings(self):
        config = GateConfig.from_dict({
            "require_silhouette": "false",
            "min_symmetry": "0.9",
            "expected_region_count": "3",
        })
        assert config.require_silhouette is False
        assert config.min_symmetry == 0.9
        assert config.expected_region_count == 3

    @pytest.mark.parametrize("payload", [
        {"min_symmetry": "high"},
        {"min_symmetry": True},
        {"require_silhouette": "maybe"},
        {"neck_ratio_range": 0.2},
        {"max_edge_roughness_px": "inf"},
    ])
    def test_from_dict_rejects_wrong_types(self, payload):
        with pytest.raises(ValueError, match=next(iter(payload))):
            GateConfig.from_dict(payload)

    def test_non_finite_threshold_rejected(self):
        with pytest.raises(ValueError, match="max_edge_roughness_px"):
            GateConfig(max_edge_roughness_px=math.inf)

    def test_inverted_range_rejected(self):
        with pytest.raises(ValueError, match="neck_ratio_range"):
            GateConfig(neck_ratio_range=(0.3, 0.02))

    def test_out_of_range_symmetry_rejected(self):
        with pytest.raises(ValueError):
            GateConfig(min_symmetry=1.2)

    def test_load_from_file(self, tmp_path):
        path = tmp_path / "gate.json"
        path.write_text(json.dumps({"max_edge_roughness_px": 3.5}), encoding="utf-8")
        assert load_gate_config(path).max_edge_roughness_px == 3.5

    def test_load_rejects_non_object(self, tmp_path):
        path = tmp_path / "gate.json"
        path.write_text("[1, 2]", encoding="utf-8")
        with pytest.raises(TypeError):
            load_gate_config(path)

    def test_to_dict_round_trip(self):
        config = GateConfig(min_symmetry=0.9, require_silhouette=False)
        assert GateConfig.from_dict(config.to_dict()) == config


class TestResultSerialisation:
    """Test report payloads."""

    def test_non_finite_metrics_become_null(self):
        payload = MetricsResult(math.nan, 1.0, 0.5, 0.16).to_dict()
        assert payload["symmetry"] is None
        assert payload["edge_roughness_px"] == 1.0

    def test_gate_result_payload(self, good_metrics):
        result = GateResult(
            passed=False,
            failure_codes=("edges_too_rough",),
            recommendations=("Apply smoothing or morphological operations to edges",),
            metrics=good_metrics,
        )
        payload = result.to_dict()
        assert payload["failure_codes"] == ["edges_too_rough"]
        assert payload["metrics"]["symmetry"] == 0.99
        assert payload["structural_error"] is None
