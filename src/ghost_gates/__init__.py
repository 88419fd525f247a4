"""Public API for garment mask metrics and pre-generation quality gates."""

from ghost_gates.contracts import (
    GateConfig,
    GateResult,
    InvalidGeometry,
    MaskPolygon,
    MetricsResult,
    QualityGateFailed,
    RegionKind,
    load_gate_config,
    polygons_from_payload,
)
from ghost_gates.gates import (
    enforce_quality_gate,
    evaluate,
    gate_summary,
    recommendations_for,
    run_quality_gate,
    validate_metric,
)
from ghost_gates.metrics import compute_metrics, measure_garment

__all__ = [
    "GateConfig",
    "GateResult",
    "InvalidGeometry",
    "MaskPolygon",
    "MetricsResult",
    "QualityGateFailed",
    "RegionKind",
    "compute_metrics",
    "enforce_quality_gate",
    "evaluate",
    "gate_summary",
    "load_gate_config",
    "measure_garment",
    "polygons_from_payload",
    "recommendations_for",
    "run_quality_gate",
    "validate_metric",
]
