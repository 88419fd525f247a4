"""Run-folder output for quality gate runs.

Each run gets ``<runs_root>/<utc-stamp>_<slug>/`` holding a copy of the
input polygons, ``metrics.json``, ``gate.json``, ``manifest.json`` and
``summary.md``. ``<runs_root>/latest`` points at the newest run.
"""

from __future__ import annotations

import json
import os
import re
import shutil
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from ghost_gates.contracts import GateResult, MaskPolygon


@dataclass
class RunPaths:
    run_id: str
    run_dir: Path
    input_dir: Path
    manifest_path: Path
    metrics_path: Path
    gate_path: Path
    summary_path: Path


def slugify(value: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", value.strip().lower()).strip("-")
    return slug or "gate"


def prepare_run_dir(
    runs_root: str | Path,
    name: str,
    now: Optional[datetime] = None,
) -> RunPaths:
    """Create a fresh run folder; a numeric suffix avoids same-second clashes."""
    runs_path = Path(runs_root)
    runs_path.mkdir(parents=True, exist_ok=True)

    stamp = (now or datetime.now(timezone.utc)).strftime("%Y%m%d_%H%M%S")
    base_id = f"{stamp}_{slugify(name)}"
    run_dir = runs_path / base_id
    suffix = 1
    while run_dir.exists():
        suffix += 1
        run_dir = runs_path / f"{base_id}_{suffix}"
    input_dir = run_dir / "input"
    input_dir.mkdir(parents=True)

    return RunPaths(
        run_id=run_dir.name,
        run_dir=run_dir,
        input_dir=input_dir,
        manifest_path=run_dir / "manifest.json",
        metrics_path=run_dir / "metrics.json",
        gate_path=run_dir / "gate.json",
        summary_path=run_dir / "summary.md",
    )


def copy_input_file(path: str | Path, input_dir: Path) -> Path:
    """Snapshot the polygon file into the run folder."""
    source = Path(path)
    target = input_dir / source.name
    if source.resolve() != target.resolve():
        shutil.copy2(source, target)
    return target


def write_text(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def write_json(path: Path, payload: Dict[str, Any]) -> None:
    """Write strict JSON (no NaN/Infinity tokens) with a trailing newline."""
    write_text(path, json.dumps(payload, indent=2, allow_nan=False) + "\n")


def update_latest_pointer(runs_root: str | Path, run_dir: Path) -> None:
    """Point ``latest`` at run_dir; falls back to a text file without symlinks."""
    runs_path = Path(runs_root)
    latest = runs_path / "latest"

    if latest.is_symlink() or latest.is_file():
        latest.unlink()
    elif latest.exists():
        shutil.rmtree(latest)

    try:
        latest.symlink_to(os.path.relpath(run_dir, runs_path))
    except OSError:
        latest.mkdir(parents=True, exist_ok=True)
        write_text(latest / "latest_run.txt", run_dir.name + "\n")


def build_summary(
    *,
    run_id: str,
    result: GateResult,
    polygons: Sequence[MaskPolygon],
    elapsed_s: float,
) -> str:
    """Markdown summary of a gate run."""
    status = "PASS" if result.passed else "FAIL"
    lines = [
        f"# Gate run {run_id}",
        "",
        f"- Status: **{status}**",
        f"- Duration: {elapsed_s * 1000:.1f}ms",
        f"- Polygons: {len(polygons)} ({sum(1 for p in polygons if p.is_hole)} holes)",
    ]
    if result.structural_error:
        lines.append(f"- Structural error: {result.structural_error}")
    metrics = result.metrics
    if metrics is not None:
        lines += [
            "",
            "## Metrics",
            f"- Symmetry: {metrics.symmetry:.3f}",
            f"- Edge roughness: {metrics.edge_roughness_px:.2f}px",
            f"- Shoulder width ratio: {metrics.shoulder_width_ratio:.3f}",
            f"- Neck inner ratio: {metrics.neck_inner_ratio:.3f}",
        ]
    if result.failure_codes:
        lines += ["", "## Failures"]
        for code, recommendation in zip(result.failure_codes, result.recommendations):
            lines.append(f"- `{code}`: {recommendation}")
    if result.warnings:
        lines += ["", "## Warnings"]
        lines += [f"- {warning}" for warning in result.warnings]
    lines.append("")
    return "\n".join(lines)
