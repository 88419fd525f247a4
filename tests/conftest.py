"""
Shared test fixtures for mask metrics and quality gate tests.
"""
import json
import sys
from pathlib import Path

import pytest

# Add src/ to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from ghost_gates.contracts import GateConfig, MaskPolygon, MetricsResult


@pytest.fixture
def gate_config():
    """Default gate thresholds."""
    return GateConfig()


@pytest.fixture
def square_garment():
    """A 100x100 solid garment outline."""
    return MaskPolygon(
        name="garment",
        points=((0, 0), (100, 0), (100, 100), (0, 100)),
        is_hole=False,
    )


@pytest.fixture
def neck_hole():
    """Small neck cavity at the top centre of the square garment."""
    return MaskPolygon(
        name="neck",
        points=((40, 0), (60, 0), (60, 15), (40, 15)),
        is_hole=True,
    )


@pytest.fixture
def sleeve_holes():
    """Sleeve cavities mirrored about x=50."""
    left = MaskPolygon(
        name="sleeve_l",
        points=((0, 20), (15, 20), (15, 40), (0, 40)),
        is_hole=True,
    )
    right = MaskPolygon(
        name="sleeve_r",
        points=((85, 20), (100, 20), (100, 40), (85, 40)),
        is_hole=True,
    )
    return left, right


@pytest.fixture
def garment_polygons(square_garment, neck_hole, sleeve_holes):
    """Complete, well-formed polygon set: garment, neck and both sleeves."""
    return [square_garment, neck_hole, *sleeve_holes]


@pytest.fixture
def good_metrics():
    """Metrics comfortably inside every threshold and plausibility band."""
    return MetricsResult(
        symmetry=0.99,
        edge_roughness_px=0.5,
        shoulder_width_ratio=0.48,
        neck_inner_ratio=0.12,
    )


@pytest.fixture
def silhouette_url():
    return "https://example.com/silhouette.png"


@pytest.fixture
def polygons_file(tmp_path, garment_polygons, silhouette_url):
    """Segmentation payload on disk in the service's JSON shape."""
    path = tmp_path / "polygons.json"
    payload = {
        "refined_silhouette_url": silhouette_url,
        "polygons": [p.to_dict() for p in garment_polygons],
    }
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path
