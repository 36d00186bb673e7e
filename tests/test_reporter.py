"""Tests for JSON and console reporting."""

import io
import json

import pytest

from loadtest_core import ConsoleReporter, ReportGenerator


@pytest.fixture
def result():
    return {
        "status": "FAIL",
        "checks_ok": False,
        "faults_ok": False,
        "checks": {
            "total": 5,
            "passed": 4,
            "failed": 1,
            "by_label": {
                "status is 200": {"passed": 2, "failed": 0},
                "value is blank in response": {"passed": 2, "failed": 1},
            },
        },
        "by_step": {"Get key and value again": {"passed": 2, "failed": 1}},
        "faults": {
            "total": 1,
            "by_scenario": {"Cache/Can set and get": 1},
            "samples": [{
                "feature": "Cache", "scenario": "Can set and get", "vu_id": 2, "iteration": 5,
                "phase": "when", "step": "Set key and value", "error": "ConnectError: refused",
            }],
        },
        "feature_errors": [],
        "iterations": {"Cache/Can set and get": 4},
        "failed_samples": [{
            "label": "value is blank in response", "passed": False, "feature": "Cache",
            "scenario": "Can set and get", "step": "Get key and value again", "vu_id": 1,
            "iteration": 3, "value": "False", "error": None,
        }],
        "features": [{"feature": "Cache", "setup_ok": True, "teardown_ok": True,
                      "invocations": 4, "faults": 1, "duration_ms": 2010}],
        "total_duration_ms": 2012,
        "base_url": "http://localhost:8080",
        "vus": 2,
        "iterations_per_scenario": 4,
    }


class TestReportGenerator:
    """Tests for ReportGenerator."""

    def test_summary_separates_checks_and_faults(self, result):
        report = ReportGenerator(result, run_id="run-1").to_dict()
        summary = report["summary"]
        assert summary["status"] == "FAIL"
        assert summary["checks_ok"] is False
        assert summary["faults_ok"] is False
        assert summary["checks_total"] == 5
        assert summary["checks_failed"] == 1
        assert summary["faults"] == 1

    def test_details_and_metadata(self, result):
        report = ReportGenerator(result, run_id="run-1").to_dict()
        assert report["version"] == "1.0"
        assert report["metadata"]["run_id"] == "run-1"
        assert report["metadata"]["base_url"] == "http://localhost:8080"
        assert report["checks"]["status is 200"] == {"passed": 2, "failed": 0}
        assert report["steps"] == result["by_step"]
        assert report["faults"]["samples"][0]["step"] == "Set key and value"

    def test_generated_run_id(self, result):
        assert ReportGenerator(result).run_id.startswith("loadtest-")

    def test_write_json(self, result, tmp_path):
        path = ReportGenerator(result).write_json(str(tmp_path / "reports" / "run.json"))
        data = json.loads(path.read_text())
        assert data["summary"]["checks_passed"] == 4


class TestConsoleReporter:
    """Tests for ConsoleReporter."""

    def _render(self, result, verbose=False):
        out = io.StringIO()
        ConsoleReporter(result, verbose=verbose, output=out).print_full_report()
        return out.getvalue()

    def test_one_line_per_label(self, result):
        text = self._render(result)
        assert "✓ status is 200" in text
        assert "✗ value is blank in response" in text
        assert "66.7%" in text

    def test_faults_and_status(self, result):
        text = self._render(result)
        assert "Faults: 1" in text
        assert "Cache/Can set and get" in text
        assert "LOADTEST SUMMARY" in text
        assert "Status: FAIL" in text
        assert "Iterations completed: 4" in text

    def test_verbose_sections(self, result):
        text = self._render(result, verbose=True)
        assert "Checks by step:" in text
        assert "Failed check samples:" in text
        assert "vu=2 it=5 when 'Set key and value'" in text

    def test_empty_result(self):
        text = self._render({"status": "PASS"})
        assert "No checks recorded" in text
        assert "Status: PASS" in text

    def test_feature_errors(self, result):
        result["feature_errors"] = [{"feature": "Cache", "hook": "setup", "error": "RuntimeError: x"}]
        assert "Cache (setup): RuntimeError: x" in self._render(result)
