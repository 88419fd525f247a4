"""
Geometry metrics for segmented garment masks.

Turns a set of labelled mask polygons into the four scalars the quality
gate consumes: bilateral symmetry, edge roughness, shoulder width ratio and
neck inner ratio. Pure polygon math; no pixels are touched.
"""
import logging
import math
from typing import List, Optional, Sequence

import numpy as np

from ghost_gates.contracts import (
    GateConfig,
    InvalidGeometry,
    MaskPolygon,
    MetricsResult,
    RegionKind,
    find_region,
)
from ghost_gates.geometry import (
    as_array,
    mirror_x,
    polygon_bounds,
    shoelace_area,
    turning_angles,
    vertex_centroid,
)

logger = logging.getLogger(__name__)

_EPS = 1e-9


def compute_metrics(
    polygons: Sequence[MaskPolygon],
    config: Optional[GateConfig] = None,
) -> MetricsResult:
    """Compute quality metrics for a polygon set.

    Never raises for missing or degenerate regions. When the garment outline
    cannot be measured at all, returns fallback metrics with
    ``measured=False`` so the gate can reject the input.

    Args:
        polygons: Mask polygons from segmentation.
        config: Calibration constants; defaults to GateConfig().

    Returns:
        A fully populated MetricsResult.
    """
    if config is None:
        config = GateConfig()
    try:
        return measure_garment(polygons, config)
    except InvalidGeometry as exc:
        logger.warning("Garment not measurable (%s); using fallback metrics", exc)
        return fallback_metrics(config, reason=str(exc))


def fallback_metrics(config: GateConfig, reason: str = "") -> MetricsResult:
    """Worst-case metrics used when no garment outline is available.

    symmetry 0.0 and roughness ``roughness_sentinel_px`` both fail the gate;
    the proportion ratios take their neutral defaults.
    """
    notes = ("garment_unmeasured" + (f": {reason}" if reason else ""),)
    return MetricsResult(
        symmetry=0.0,
        edge_roughness_px=config.roughness_sentinel_px,
        shoulder_width_ratio=config.shoulder_ratio_default,
        neck_inner_ratio=config.neck_ratio_default,
        measured=False,
        notes=notes,
    )


def solid_garment(polygons: Sequence[MaskPolygon]) -> MaskPolygon:
    """Return the solid garment outline or raise InvalidGeometry."""
    garments = [p for p in polygons if p.kind is RegionKind.GARMENT]
    solid = [p for p in garments if not p.is_hole]
    if not solid:
        if garments:
            raise InvalidGeometry("garment polygon is marked as a hole")
        raise InvalidGeometry("no garment polygon")
    garment = solid[0]
    if len(garment.points) < 3:
        raise InvalidGeometry(
            f"garment polygon has {len(garment.points)} points, need at least 3"
        )
    return garment


def measure_garment(
    polygons: Sequence[MaskPolygon],
    config: Optional[GateConfig] = None,
) -> MetricsResult:
    """Strict variant of compute_metrics.

    Raises:
        InvalidGeometry: if the garment polygon is absent, a hole, or has
            fewer than 3 points.
    """
    if config is None:
        config = GateConfig()
    garment = solid_garment(polygons)
    notes: List[str] = []

    left_sleeve = _usable_region(polygons, RegionKind.SLEEVE_LEFT, notes)
    right_sleeve = _usable_region(polygons, RegionKind.SLEEVE_RIGHT, notes)
    neck = find_region(polygons, RegionKind.NECK)

    symmetry = _sanitize(
        bilateral_symmetry(garment, left_sleeve, right_sleeve, config),
        0.0, "symmetry", notes,
    )
    roughness = _sanitize(
        edge_roughness_px(garment, config),
        config.roughness_sentinel_px, "edge_roughness_px", notes,
    )
    shoulder = _sanitize(
        shoulder_width_ratio(garment, config),
        config.shoulder_ratio_range[0], "shoulder_width_ratio", notes,
    )
    if neck is None:
        notes.append("neck_absent: neck_inner_ratio is the default placeholder")
        neck_ratio = config.neck_ratio_default
    else:
        neck_ratio = _sanitize(
            neck_inner_ratio(garment, neck, config),
            config.neck_ratio_default, "neck_inner_ratio", notes,
        )

    result = MetricsResult(
        symmetry=symmetry,
        edge_roughness_px=roughness,
        shoulder_width_ratio=shoulder,
        neck_inner_ratio=neck_ratio,
        measured=True,
        notes=tuple(notes),
    )
    logger.debug(
        "Metrics: symmetry=%.3f roughness=%.2fpx shoulder=%.3f neck=%.3f",
        result.symmetry, result.edge_roughness_px,
        result.shoulder_width_ratio, result.neck_inner_ratio,
    )
    return result


# ─── Individual metrics ─────────────────────────────────────────────────────


def bilateral_symmetry(
    garment: MaskPolygon,
    left_sleeve: Optional[MaskPolygon],
    right_sleeve: Optional[MaskPolygon],
    config: GateConfig,
) -> float:
    """Left/right mirror similarity of the garment about its bbox midline.

    Combines position symmetry (vertex centroids of the two halves), area
    symmetry (shoelace area of each half) and, when both sleeves are
    present, sleeve symmetry (mirrored sleeve centroids). Returns NaN for a
    zero-width outline.
    """
    pts = as_array(garment.points)
    min_x, _, max_x, _ = polygon_bounds(pts)
    width = max_x - min_x
    if not math.isfinite(width) or width <= _EPS:
        return math.nan
    axis_x = (min_x + max_x) / 2.0

    # Vertices on the axis belong to both halves.
    left_half = pts[pts[:, 0] <= axis_x]
    mirrored_right = mirror_x(pts[pts[:, 0] >= axis_x], axis_x)

    position = _centroid_symmetry(left_half, mirrored_right, width)

    left_area = shoelace_area(left_half)
    right_area = shoelace_area(mirrored_right)
    mean_area = (left_area + right_area) / 2.0
    if mean_area <= _EPS:
        area = 1.0
    else:
        area = _clamp(1.0 - abs(left_area - right_area) / mean_area, 0.0, 1.0)

    if left_sleeve is not None and right_sleeve is not None:
        sleeve = _centroid_symmetry(
            as_array(left_sleeve.points),
            mirror_x(right_sleeve.points, axis_x),
            width,
        )
    else:
        sleeve = 1.0

    w_position, w_area, w_sleeve = config.symmetry_weights
    combined = w_position * position + w_area * area + w_sleeve * sleeve
    return _clamp(combined, 0.0, 1.0)


def edge_roughness_px(garment: MaskPolygon, config: GateConfig) -> float:
    """Pixel-scale roughness estimate from outline turning angles.

    A closed outline must turn through 2*pi in total; only the mean absolute
    turning beyond that share counts as roughness, so convex outlines score
    zero and zig-zag edges score high. ``roughness_scale_px_per_rad`` maps
    radians to pixels. Returns NaN if no segments can be measured.
    """
    angles = turning_angles(garment.points)
    if len(angles) == 0:
        return math.nan
    mean_abs = float(np.mean(np.abs(angles)))
    closure_share = abs(float(np.sum(angles))) / len(angles)
    return max(0.0, (mean_abs - closure_share) * config.roughness_scale_px_per_rad)


def shoulder_width_ratio(garment: MaskPolygon, config: GateConfig) -> float:
    """Width of the shoulder band relative to the full garment width.

    The shoulder band is the top ``shoulder_band_fraction`` of the bounding
    box (smallest y). Fewer than two vertices in the band falls back to the
    full width.
    """
    pts = as_array(garment.points)
    min_x, min_y, max_x, max_y = polygon_bounds(pts)
    width = max_x - min_x
    if not math.isfinite(width) or width <= _EPS:
        return math.nan

    band_limit = min_y + (max_y - min_y) * config.shoulder_band_fraction
    band = pts[pts[:, 1] <= band_limit]
    if len(band) < 2:
        shoulder = width
    else:
        shoulder = float(band[:, 0].max() - band[:, 0].min())

    low, high = config.shoulder_ratio_range
    return _clamp(shoulder / width, low, high)


def neck_inner_ratio(
    garment: MaskPolygon,
    neck: MaskPolygon,
    config: GateConfig,
) -> float:
    """Neck cavity area over garment area, clamped to ``neck_ratio_range``."""
    garment_area = shoelace_area(garment.points)
    if garment_area <= _EPS:
        return math.nan
    low, high = config.neck_ratio_range
    return _clamp(shoelace_area(neck.points) / garment_area, low, high)


# ─── Helpers ────────────────────────────────────────────────────────────────


def _centroid_symmetry(
    left: np.ndarray,
    mirrored_right: np.ndarray,
    width: float,
) -> float:
    lx, ly = vertex_centroid(left)
    rx, ry = vertex_centroid(mirrored_right)
    distance = math.hypot(lx - rx, ly - ry)
    return _clamp(1.0 - distance / width, 0.0, 1.0)


def _usable_region(
    polygons: Sequence[MaskPolygon],
    kind: RegionKind,
    notes: List[str],
) -> Optional[MaskPolygon]:
    region = find_region(polygons, kind)
    if region is not None and not region.points:
        notes.append(f"{region.name}_empty: ignored for symmetry")
        return None
    return region


def _sanitize(value: float, sentinel: float, label: str, notes: List[str]) -> float:
    if math.isfinite(value):
        return float(value)
    logger.warning("Non-finite %s from degenerate geometry; using %.3f", label, sentinel)
    notes.append(f"{label}_degenerate: replaced with {sentinel}")
    return float(sentinel)


def _clamp(value: float, low: float, high: float) -> float:
    # Non-finite values pass through so _sanitize can replace them.
    if not math.isfinite(value):
        return value
    return max(low, min(high, value))
