#!/usr/bin/env python3
"""Run the pre-generation quality gate on a segmentation polygon file."""

from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import sys
import time
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from ghost_gates import GateConfig, load_gate_config, polygons_from_payload, run_quality_gate
from ghost_gates.report import (
    build_summary,
    copy_input_file,
    prepare_run_dir,
    update_latest_pointer,
    write_json,
    write_text,
)

logger = logging.getLogger("run_quality_gate")

EXIT_FAILED = 1
EXIT_BAD_INPUT = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Check garment mask polygons against ghost mannequin quality gates"
    )
    parser.add_argument(
        "--polygons",
        required=True,
        help="JSON file with a polygon list or an object with 'polygons'",
    )
    parser.add_argument(
        "--silhouette-url",
        default=None,
        help="Refined silhouette handle (defaults to 'refined_silhouette_url' in the input)",
    )
    parser.add_argument("--config", default=None, help="Gate config JSON file")
    parser.add_argument(
        "--min-symmetry", type=float, default=None, help="Override symmetry threshold"
    )
    parser.add_argument(
        "--max-roughness-px",
        type=float,
        default=None,
        help="Override edge roughness threshold in pixels",
    )
    parser.add_argument(
        "--no-silhouette-check",
        action="store_true",
        help="Do not require a refined silhouette handle",
    )
    parser.add_argument("--name", default="quality_gate", help="Run name")
    parser.add_argument("--runs-dir", default="runs", help="Runs output root")
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logs"
    )
    return parser


def _build_config(args: argparse.Namespace) -> GateConfig:
    config = load_gate_config(args.config) if args.config else GateConfig()
    overrides = {}
    if args.min_symmetry is not None:
        overrides["min_symmetry"] = float(args.min_symmetry)
    if args.max_roughness_px is not None:
        overrides["max_edge_roughness_px"] = float(args.max_roughness_px)
    if args.no_silhouette_check:
        overrides["require_silhouette"] = False
    return dataclasses.replace(config, **overrides) if overrides else config


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    polygons_path = Path(args.polygons)
    try:
        payload = json.loads(polygons_path.read_text(encoding="utf-8"))
        polygons = polygons_from_payload(payload)
        config = _build_config(args)
    except (OSError, ValueError, TypeError) as exc:
        logger.error("Cannot load gate input: %s", exc)
        return EXIT_BAD_INPUT

    silhouette_url = args.silhouette_url
    if silhouette_url is None and isinstance(payload, dict):
        silhouette_url = payload.get("refined_silhouette_url")

    started = time.perf_counter()
    run_paths = prepare_run_dir(args.runs_dir, args.name)
    copied_input = copy_input_file(polygons_path, run_paths.input_dir)

    result = run_quality_gate(polygons, silhouette_url=silhouette_url, config=config)
    elapsed = time.perf_counter() - started

    metrics_payload = {
        "run_id": run_paths.run_id,
        "elapsed_s": round(elapsed, 6),
        "metrics": result.metrics.to_dict() if result.metrics is not None else None,
        "counts": {
            "polygons": len(polygons),
            "holes": sum(1 for p in polygons if p.is_hole),
            "failures": len(result.failure_codes),
            "warnings": len(result.warnings),
        },
    }
    write_json(run_paths.metrics_path, metrics_payload)
    write_json(run_paths.gate_path, result.to_dict())
    write_text(
        run_paths.summary_path,
        build_summary(
            run_id=run_paths.run_id,
            result=result,
            polygons=polygons,
            elapsed_s=elapsed,
        ),
    )
    manifest = {
        "run_id": run_paths.run_id,
        "name": args.name,
        "created_utc": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        "input_polygons": str(copied_input),
        "silhouette_url": silhouette_url,
        "status": "pass" if result.passed else "fail",
        "config": config.to_dict(),
        "artifacts": {
            "metrics": str(run_paths.metrics_path),
            "gate": str(run_paths.gate_path),
            "summary": str(run_paths.summary_path),
        },
    }
    write_json(run_paths.manifest_path, manifest)
    update_latest_pointer(args.runs_dir, run_paths.run_dir)

    print(f"Run ID: {run_paths.run_id}")
    print(f"Run dir: {run_paths.run_dir}")
    print(f"Status: {'PASS' if result.passed else 'FAIL'}")
    if result.structural_error:
        print(f"Structural error: {result.structural_error}")
    for code, recommendation in zip(result.failure_codes, result.recommendations):
        print(f"  {code}: {recommendation}")
    print(f"Warnings: {len(result.warnings)}")
    print(f"Gate: {run_paths.gate_path}")
    return 0 if result.passed else EXIT_FAILED


if __name__ == "__main__":
    raise SystemExit(main())
