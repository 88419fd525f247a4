"""Contracts for garment mask quality gating."""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, field, fields
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from shapely.geometry import Polygon

logger = logging.getLogger(__name__)

Vec2 = Tuple[float, float]


class RegionKind(Enum):
    """Structural region a mask polygon represents."""

    GARMENT = "garment"
    NECK = "neck"
    SLEEVE_LEFT = "sleeve_l"
    SLEEVE_RIGHT = "sleeve_r"
    OTHER = "other"

    @classmethod
    def from_name(cls, name: str) -> "RegionKind":
        key = str(name).strip().lower()
        for kind in cls:
            if kind is not cls.OTHER and kind.value == key:
                return kind
        return cls.OTHER


# Regions that must be cut out of the silhouette for the ghost effect.
CAVITY_KINDS: Tuple[RegionKind, ...] = (
    RegionKind.NECK,
    RegionKind.SLEEVE_LEFT,
    RegionKind.SLEEVE_RIGHT,
)


class InvalidGeometry(ValueError):
    """The garment outline is absent or too degenerate to measure."""


@dataclass(frozen=True)
class MaskPolygon:
    """A named region from the segmentation service."""

    name: str
    points: Tuple[Vec2, ...]
    is_hole: bool = False

    @property
    def kind(self) -> RegionKind:
        return RegionKind.from_name(self.name)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "MaskPolygon":
        """Build from a segmentation payload entry.

        Accepts both the service keys (``pts``, ``isHole``) and snake_case
        (``points``, ``is_hole``).
        """
        if not isinstance(payload, Mapping):
            raise ValueError(f"Polygon entry must be an object, got {type(payload).__name__}")
        name = payload.get("name")
        if not name:
            raise ValueError("Polygon entry is missing 'name'")
        raw_points = payload.get("pts", payload.get("points", []))
        points: List[Vec2] = []
        for raw in raw_points or []:
            if not isinstance(raw, Sequence) or len(raw) != 2:
                raise ValueError(f"Polygon '{name}' has malformed point {raw!r}")
            x, y = float(raw[0]), float(raw[1])
            if not (math.isfinite(x) and math.isfinite(y)):
                raise ValueError(f"Polygon '{name}' has non-finite point {raw!r}")
            points.append((x, y))
        is_hole = payload.get("isHole", payload.get("is_hole", False))
        return cls(name=str(name), points=tuple(points), is_hole=bool(is_hole))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "pts": [[x, y] for x, y in self.points],
            "isHole": self.is_hole,
        }

    def to_shapely(self) -> Polygon:
        """Shapely polygon for topology checks (empty below 3 points)."""
        if len(self.points) < 3:
            return Polygon()
        return Polygon(self.points)


def polygons_from_payload(payload: Any) -> List[MaskPolygon]:
    """Parse a polygon list, or an object holding one under ``polygons``."""
    if isinstance(payload, Mapping):
        payload = payload.get("polygons", [])
    if not isinstance(payload, Sequence) or isinstance(payload, (str, bytes)):
        raise ValueError("Polygon payload must be a list of polygon objects")
    return [MaskPolygon.from_dict(entry) for entry in payload]


def find_region(
    polygons: Sequence[MaskPolygon],
    kind: RegionKind,
) -> Optional[MaskPolygon]:
    """First polygon of the given kind, or None."""
    for polygon in polygons:
        if polygon.kind is kind:
            return polygon
    return None


@dataclass(frozen=True)
class GateConfig:
    """Thresholds and calibration constants for metrics and gating."""

    min_symmetry: float = 0.95
    max_edge_roughness_px: float = 2.0
    symmetry_marginal_tolerance: float = 0.02
    roughness_warning_fraction: float = 0.8
    symmetry_weights: Tuple[float, float, float] = (0.4, 0.4, 0.2)  # position, area, sleeve
    # Calibration constants, not physical quantities.
    roughness_scale_px_per_rad: float = 10.0
    roughness_sentinel_px: float = 10.0
    shoulder_band_fraction: float = 0.2
    shoulder_ratio_range: Tuple[float, float] = (0.2, 0.8)
    shoulder_ratio_default: float = 0.5  # midpoint of shoulder_ratio_range
    neck_ratio_range: Tuple[float, float] = (0.02, 0.30)
    # Midpoint of neck_ratio_range; a placeholder, not a measurement.
    neck_ratio_default: float = 0.16
    plausible_shoulder_range: Tuple[float, float] = (0.3, 0.7)
    plausible_neck_range: Tuple[float, float] = (0.05, 0.25)
    expected_region_count: int = 4  # garment + neck + two sleeves
    require_silhouette: bool = True

    def __post_init__(self) -> None:
        for f in fields(self):
            value = getattr(self, f.name)
            numbers = value if isinstance(value, tuple) else (value,)
            if any(isinstance(v, float) and not math.isfinite(v) for v in numbers):
                raise ValueError(f"{f.name} must be finite, got {value!r}")
        if not 0.0 <= self.min_symmetry <= 1.0:
            raise ValueError(f"min_symmetry must be within [0, 1], got {self.min_symmetry}")
        if self.max_edge_roughness_px < 0.0:
            raise ValueError("max_edge_roughness_px must be non-negative")
        if self.roughness_scale_px_per_rad <= 0.0:
            raise ValueError("roughness_scale_px_per_rad must be positive")
        if not 0.0 < self.shoulder_band_fraction <= 1.0:
            raise ValueError("shoulder_band_fraction must be within (0, 1]")
        if len(self.symmetry_weights) != 3 or any(w < 0 for w in self.symmetry_weights):
            raise ValueError("symmetry_weights must be three non-negative numbers")
        for name in (
            "shoulder_ratio_range",
            "neck_ratio_range",
            "plausible_shoulder_range",
            "plausible_neck_range",
        ):
            low, high = getattr(self, name)
            if low > high:
                raise ValueError(f"{name} lower bound {low} exceeds upper bound {high}")
        if not self.neck_ratio_range[0] <= self.neck_ratio_default <= self.neck_ratio_range[1]:
            raise ValueError("neck_ratio_default must lie within neck_ratio_range")
        if not (
            self.shoulder_ratio_range[0]
            <= self.shoulder_ratio_default
            <= self.shoulder_ratio_range[1]
        ):
            raise ValueError("shoulder_ratio_default must lie within shoulder_ratio_range")

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "GateConfig":
        known = {f.name: f for f in fields(cls)}
        kwargs: Dict[str, Any] = {}
        for key, value in payload.items():
            if key not in known:
                logger.warning("Ignoring unknown gate config key: %s", key)
                continue
            kwargs[key] = _coerce_field(key, known[key].default, value)
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            out[f.name] = list(value) if isinstance(value, tuple) else value
        return out


def load_gate_config(path: str | Path) -> GateConfig:
    """Load a GateConfig from a JSON object on disk."""
    config_path = Path(path)
    with config_path.open("r", encoding="utf-8") as stream:
        payload = json.load(stream)
    if not isinstance(payload, Mapping):
        raise TypeError(f"Gate config '{config_path}' must be a JSON object.")
    return GateConfig.from_dict(payload)


@dataclass(frozen=True)
class MetricsResult:
    """Scalar quality metrics derived from a polygon set."""

    symmetry: float
    edge_roughness_px: float
    shoulder_width_ratio: float
    neck_inner_ratio: float
    measured: bool = True
    notes: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "symmetry": _json_float(self.symmetry),
            "edge_roughness_px": _json_float(self.edge_roughness_px),
            "shoulder_width_ratio": _json_float(self.shoulder_width_ratio),
            "neck_inner_ratio": _json_float(self.neck_inner_ratio),
            "measured": self.measured,
            "notes": list(self.notes),
        }


@dataclass(frozen=True)
class GateResult:
    """Aggregated pass/fail verdict of the quality gate."""

    passed: bool
    failure_codes: Tuple[str, ...] = ()
    recommendations: Tuple[str, ...] = ()
    warnings: Tuple[str, ...] = ()
    structural_error: Optional[str] = None
    metrics: Optional[MetricsResult] = field(default=None, compare=False)

    @property
    def is_structural_failure(self) -> bool:
        """True when the garment could not be measured at all."""
        return self.structural_error is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "passed": self.passed,
            "failure_codes": list(self.failure_codes),
            "recommendations": list(self.recommendations),
            "warnings": list(self.warnings),
            "structural_error": self.structural_error,
            "metrics": self.metrics.to_dict() if self.metrics is not None else None,
        }


class QualityGateFailed(RuntimeError):
    """Raised when a hard gate blocks downstream generation."""

    def __init__(self, result: GateResult):
        self.result = result
        super().__init__(
            "Pre-generation quality gates failed: " + ", ".join(result.failure_codes)
        )


def _json_float(value: float) -> Optional[float]:
    # JSON has no NaN/inf
    return float(value) if math.isfinite(value) else None


_TRUE_STRINGS = ("true", "1", "yes", "on")
_FALSE_STRINGS = ("false", "0", "no", "off")


def _coerce_field(name: str, default: Any, value: Any) -> Any:
    """Convert a JSON config value to the type of the field's default."""
    if isinstance(default, bool):
        if isinstance(value, bool):
            return value
        key = str(value).strip().lower()
        if key in _TRUE_STRINGS:
            return True
        if key in _FALSE_STRINGS:
            return False
        raise ValueError(f"Gate config '{name}' must be a boolean, got {value!r}")
    if isinstance(default, tuple):
        if not isinstance(value, (list, tuple)):
            raise ValueError(f"Gate config '{name}' must be a list, got {value!r}")
        return tuple(_coerce_number(name, float, v) for v in value)
    if isinstance(default, int):
        return _coerce_number(name, int, value)
    if isinstance(default, float):
        return _coerce_number(name, float, value)
    return value


def _coerce_number(name: str, kind: type, value: Any) -> Any:
    if isinstance(value, bool):
        raise ValueError(f"Gate config '{name}' must be a number, got {value!r}")
    try:
        number = kind(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Gate config '{name}' must be a number, got {value!r}") from exc
    if not math.isfinite(number):
        raise ValueError(f"Gate config '{name}' must be finite, got {value!r}")
    return number
