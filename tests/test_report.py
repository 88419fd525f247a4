"""Tests for run-folder output."""
import json
import math
from datetime import datetime, timezone

import pytest

from ghost_gates.contracts import GateResult
from ghost_gates.report import build_summary, prepare_run_dir, slugify, write_json


class TestRunFolder:
    """Test run ids and folder layout."""

    def test_slug_falls_back_to_gate(self):
        assert slugify("  Summer Dress #2 ") == "summer-dress-2"
        assert slugify("***") == "gate"

    def test_same_second_runs_get_suffix(self, tmp_path):
        now = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)
        first = prepare_run_dir(tmp_path, "Dress", now=now)
        second = prepare_run_dir(tmp_path, "Dress", now=now)
        assert first.run_id == "20260301_120000_dress"
        assert second.run_id == "20260301_120000_dress_2"
        assert second.input_dir.is_dir()
        assert second.gate_path == second.run_dir / "gate.json"


class TestWriters:
    """Test artifact writers."""

    def test_json_is_strict_with_trailing_newline(self, tmp_path):
        path = tmp_path / "nested" / "gate.json"
        write_json(path, {"passed": True, "codes": []})
        text = path.read_text(encoding="utf-8")
        assert text.endswith("}\n")
        assert json.loads(text) == {"passed": True, "codes": []}

    def test_json_rejects_nan(self, tmp_path):
        with pytest.raises(ValueError):
            write_json(tmp_path / "metrics.json", {"symmetry": math.nan})

    def test_summary_lists_failures(self, square_garment, good_metrics):
        result = GateResult(
            passed=False,
            failure_codes=("silhouette_missing",),
            recommendations=("Generate refined silhouette before proceeding",),
            metrics=good_metrics,
        )
        summary = build_summary(
            run_id="r1", result=result, polygons=[square_garment], elapsed_s=0.002
        )
        assert "- Status: **FAIL**" in summary
        assert "- `silhouette_missing`: Generate refined silhouette before proceeding" in summary
        assert summary.endswith("\n")
