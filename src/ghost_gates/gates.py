"""
Pre-generation quality gates for garment masks.

Checks polygon topology (garment present, cavities cut out) and metric
magnitudes (symmetry, edge roughness) before the expensive generation step
is allowed to run. Every rule is evaluated; failures accumulate so a single
call reports every problem.
"""
import logging
import math
from typing import Dict, List, Optional, Sequence

from ghost_gates.contracts import (
    CAVITY_KINDS,
    GateConfig,
    GateResult,
    MaskPolygon,
    MetricsResult,
    QualityGateFailed,
    RegionKind,
    find_region,
)
from ghost_gates.metrics import compute_metrics

logger = logging.getLogger(__name__)

GARMENT_POLYGON_MISSING = "garment_polygon_missing"
SILHOUETTE_MISSING = "silhouette_missing"
SYMMETRY_BELOW_THRESHOLD = "symmetry_below_threshold"
EDGES_TOO_ROUGH = "edges_too_rough"

_CAVITY_CONVERSION = "Convert affected regions to holes for ghost mannequin effect"

RECOMMENDATIONS: Dict[str, str] = {
    GARMENT_POLYGON_MISSING: "Ensure main garment polygon is generated",
    SILHOUETTE_MISSING: "Generate refined silhouette before proceeding",
    SYMMETRY_BELOW_THRESHOLD: "Apply bilateral symmetry correction to mask",
    EDGES_TOO_ROUGH: "Apply smoothing or morphological operations to edges",
    "neck_must_be_hole": _CAVITY_CONVERSION,
    "sleeve_l_must_be_hole": _CAVITY_CONVERSION,
    "sleeve_r_must_be_hole": _CAVITY_CONVERSION,
}


def cavity_failure_code(kind: RegionKind) -> str:
    return f"{kind.value}_must_be_hole"


def recommendations_for(failure_codes: Sequence[str]) -> List[str]:
    """One remediation string per failure code, with a generic fallback."""
    return [
        RECOMMENDATIONS.get(code, f"Address quality issue: {code}")
        for code in failure_codes
    ]


def validate_metric(value: float, threshold: float, operator: str = "gte") -> bool:
    """Compare a metric against a threshold; non-finite values never pass.

    Args:
        value: Measured metric.
        threshold: Boundary value, inclusive for ``gte``/``lte``.
        operator: ``gte``, ``lte`` or ``eq`` (1e-4 tolerance).
    """
    if value is None or not math.isfinite(value):
        return False
    if operator == "gte":
        return value >= threshold
    if operator == "lte":
        return value <= threshold
    if operator == "eq":
        return abs(value - threshold) < 1e-4
    raise ValueError(f"Unknown operator: {operator}")


def evaluate(
    polygons: Sequence[MaskPolygon],
    metrics: Optional[MetricsResult],
    silhouette_url: Optional[str] = None,
    config: Optional[GateConfig] = None,
) -> GateResult:
    """Apply the gate rules to a polygon set and its metrics.

    Args:
        polygons: Mask polygons from segmentation.
        metrics: Output of compute_metrics, or None if it could not be run.
        silhouette_url: Handle to the refined silhouette raster.
        config: Thresholds; defaults to GateConfig().

    Returns:
        GateResult; ``structural_error`` is set when the garment could not be
        measured, distinguishing it from ordinary threshold failures.
    """
    if config is None:
        config = GateConfig()
    codes: List[str] = []

    structural_error = _check_garment(polygons)
    if structural_error is not None:
        codes.append(GARMENT_POLYGON_MISSING)
    elif metrics is not None and not metrics.measured:
        structural_error = "garment metrics could not be measured"

    if config.require_silhouette and not (silhouette_url and str(silhouette_url).strip()):
        codes.append(SILHOUETTE_MISSING)

    symmetry = metrics.symmetry if metrics is not None else None
    if not (_in_unit_range(symmetry) and validate_metric(symmetry, config.min_symmetry, "gte")):
        codes.append(SYMMETRY_BELOW_THRESHOLD)

    roughness = metrics.edge_roughness_px if metrics is not None else None
    if not (
        roughness is not None
        and roughness >= 0.0
        and validate_metric(roughness, config.max_edge_roughness_px, "lte")
    ):
        codes.append(EDGES_TOO_ROUGH)

    for kind in CAVITY_KINDS:
        region = find_region(polygons, kind)
        if region is not None and not region.is_hole:
            codes.append(cavity_failure_code(kind))

    codes = list(dict.fromkeys(codes))
    warnings = collect_warnings(polygons, metrics, config)
    result = GateResult(
        passed=not codes,
        failure_codes=tuple(codes),
        recommendations=tuple(recommendations_for(codes)),
        warnings=tuple(warnings),
        structural_error=structural_error,
        metrics=metrics,
    )

    if result.passed:
        logger.info("Quality gates passed (%d warnings)", len(warnings))
    else:
        logger.warning("Quality gates failed: %s", ", ".join(codes))
    for warning in warnings:
        logger.debug("Gate warning: %s", warning)
    return result


def run_quality_gate(
    polygons: Sequence[MaskPolygon],
    silhouette_url: Optional[str] = None,
    config: Optional[GateConfig] = None,
) -> GateResult:
    """Compute metrics and evaluate them in one call."""
    if config is None:
        config = GateConfig()
    metrics = compute_metrics(polygons, config)
    logger.info(gate_summary(polygons, metrics))
    return evaluate(polygons, metrics, silhouette_url, config)


def enforce_quality_gate(
    polygons: Sequence[MaskPolygon],
    silhouette_url: Optional[str] = None,
    config: Optional[GateConfig] = None,
) -> GateResult:
    """Run the gate and block on failure.

    Raises:
        QualityGateFailed: if any rule fails; the exception carries the result.
    """
    result = run_quality_gate(polygons, silhouette_url, config)
    if not result.passed:
        raise QualityGateFailed(result)
    return result


def gate_summary(polygons: Sequence[MaskPolygon], metrics: MetricsResult) -> str:
    """One-line summary for logs."""
    holes = sum(1 for p in polygons if p.is_hole)
    return " | ".join(
        [
            f"Symmetry: {metrics.symmetry * 100:.1f}%",
            f"Edge roughness: {metrics.edge_roughness_px:.1f}px",
            f"Shoulder ratio: {metrics.shoulder_width_ratio:.2f}",
            f"Neck ratio: {metrics.neck_inner_ratio:.2f}",
            f"Polygons: {len(polygons)}",
            f"Holes: {holes}",
        ]
    )


# ─── Advisory checks ────────────────────────────────────────────────────────


def collect_warnings(
    polygons: Sequence[MaskPolygon],
    metrics: Optional[MetricsResult],
    config: GateConfig,
) -> List[str]:
    """Non-blocking observations; these never change ``passed``."""
    warnings: List[str] = []

    if metrics is not None and metrics.measured:
        symmetry = metrics.symmetry
        if (
            validate_metric(symmetry, config.min_symmetry, "gte")
            and symmetry < config.min_symmetry + config.symmetry_marginal_tolerance
        ):
            warnings.append(f"Symmetry {symmetry * 100:.1f}% is marginal")

        roughness = metrics.edge_roughness_px
        if validate_metric(roughness, config.max_edge_roughness_px, "lte") and (
            roughness > config.max_edge_roughness_px * config.roughness_warning_fraction
        ):
            warnings.append(f"Edge roughness {roughness:.1f}px is near threshold")

        low, high = config.plausible_shoulder_range
        if not low <= metrics.shoulder_width_ratio <= high:
            warnings.append(
                f"Shoulder width ratio {metrics.shoulder_width_ratio:.2f} may be unrealistic"
            )
        low, high = config.plausible_neck_range
        if not low <= metrics.neck_inner_ratio <= high:
            warnings.append(
                f"Neck inner ratio {metrics.neck_inner_ratio:.2f} may be unrealistic"
            )

    if config.expected_region_count > 0:
        completeness = min(len(polygons) / config.expected_region_count, 1.0)
        if completeness < 1.0:
            warnings.append(
                f"Silhouette completeness {completeness * 100:.1f}% "
                f"({len(polygons)}/{config.expected_region_count} regions)"
            )

    garments = [p for p in polygons if p.kind is RegionKind.GARMENT and not p.is_hole]
    if len(garments) > 1:
        warnings.append(f"{len(garments)} garment polygons found; only the first is measured")

    warnings.extend(_topology_warnings(polygons, garments[0] if garments else None))
    return warnings


def _topology_warnings(
    polygons: Sequence[MaskPolygon],
    garment: Optional[MaskPolygon],
) -> List[str]:
    warnings: List[str] = []
    for polygon in polygons:
        if len(polygon.points) >= 3 and not polygon.to_shapely().is_valid:
            warnings.append(f"Polygon '{polygon.name}' is not a simple polygon")

    if garment is None or len(garment.points) < 3:
        return warnings
    outline = garment.to_shapely()
    if not outline.is_valid or outline.is_empty:
        return warnings
    for kind in CAVITY_KINDS:
        region = find_region(polygons, kind)
        if region is None or not region.is_hole or len(region.points) < 3:
            continue
        cavity = region.to_shapely()
        if cavity.is_valid and not outline.covers(cavity):
            warnings.append(f"Cavity '{region.name}' extends outside garment outline")
    return warnings


def _check_garment(polygons: Sequence[MaskPolygon]) -> Optional[str]:
    if not polygons:
        return "empty polygon set"
    for polygon in polygons:
        if polygon.kind is RegionKind.GARMENT and not polygon.is_hole:
            if len(polygon.points) >= 3:
                return None
            return f"garment polygon has {len(polygon.points)} points, need at least 3"
    return "no solid garment polygon"


def _in_unit_range(value: Optional[float]) -> bool:
    return value is not None and math.isfinite(value) and 0.0 <= value <= 1.0
