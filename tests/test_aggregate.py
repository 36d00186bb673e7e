"""Tests for CheckAggregator."""

import threading

from loadtest_core import CheckAggregator, CheckResult, FaultRecord
from loadtest_core.aggregate import pass_rate


def _check(label, passed, step=None, vu_id=1):
    return CheckResult(label=label, passed=passed, feature="F", scenario="S", step=step, vu_id=vu_id)


def _fault(scenario="S", vu_id=1, iteration=0):
    return FaultRecord(
        feature="F", scenario=scenario, vu_id=vu_id, iteration=iteration,
        phase="when", step="Set key and value", error="ConnectError: refused",
    )


class TestAggregatorCounts:
    """Tests for counting by label and step."""

    def test_empty_summary_passes(self):
        summary = CheckAggregator().summary()
        assert summary["status"] == "PASS"
        assert summary["checks"]["total"] == 0
        assert summary["faults"]["total"] == 0

    def test_counts_by_label(self):
        aggregator = CheckAggregator()
        aggregator.record_check(_check("status is 200", True))
        aggregator.record_check(_check("status is 200", False))
        aggregator.record_check(_check("response is JSON", True))

        summary = aggregator.summary()
        assert summary["checks"]["by_label"] == {
            "response is JSON": {"passed": 1, "failed": 0},
            "status is 200": {"passed": 1, "failed": 1},
        }
        assert summary["checks"]["passed"] == 2
        assert summary["checks"]["failed"] == 1
        assert summary["status"] == "FAIL"
        assert summary["checks_ok"] is False
        assert summary["faults_ok"] is True

    def test_counts_by_step(self):
        aggregator = CheckAggregator()
        aggregator.record_check(_check("a", True, step="Get key and value"))
        aggregator.record_check(_check("b", False, step="Get key and value"))
        aggregator.record_check(_check("c", True))

        assert aggregator.summary()["by_step"] == {"Get key and value": {"passed": 1, "failed": 1}}

    def test_failed_samples_capped(self):
        aggregator = CheckAggregator(sample_limit=3)
        for _ in range(10):
            aggregator.record_check(_check("x", False))
        summary = aggregator.summary()
        assert len(summary["failed_samples"]) == 3
        assert summary["checks"]["failed"] == 10

    def test_label_counts_unknown_label(self):
        assert CheckAggregator().label_counts("nope") == {"passed": 0, "failed": 0}


class TestAggregatorFaults:
    """Tests for faults, iterations and feature errors."""

    def test_fault_fails_run_with_all_checks_passing(self):
        aggregator = CheckAggregator()
        aggregator.record_check(_check("status is 200", True))
        aggregator.record_fault(_fault())

        summary = aggregator.summary()
        assert summary["status"] == "FAIL"
        assert summary["checks_ok"] is True
        assert summary["faults_ok"] is False
        assert summary["faults"]["by_scenario"] == {"F/S": 1}
        assert summary["faults"]["samples"][0]["step"] == "Set key and value"
        assert aggregator.fault_count == 1

    def test_feature_error_fails_run(self):
        aggregator = CheckAggregator()
        aggregator.record_feature_error("F", "teardown", "RuntimeError: boom")

        summary = aggregator.summary()
        assert summary["faults_ok"] is False
        assert summary["feature_errors"] == [{"feature": "F", "hook": "teardown", "error": "RuntimeError: boom"}]

    def test_iterations_by_scenario(self):
        aggregator = CheckAggregator()
        aggregator.record_iteration("Cache", "Can set and get")
        aggregator.record_iteration("Cache", "Can set and get")
        aggregator.record_iteration("Hello World", "Basic scenario")

        assert aggregator.summary()["iterations"] == {
            "Cache/Can set and get": 2,
            "Hello World/Basic scenario": 1,
        }


class TestAggregatorConcurrency:
    """Concurrent recording must neither lose nor double-count results."""

    def test_concurrent_records_exact(self):
        aggregator = CheckAggregator()
        threads_n = 16
        per_thread = 500
        barrier = threading.Barrier(threads_n)

        def worker(vu_id):
            barrier.wait()
            for i in range(per_thread):
                aggregator.record_check(_check("status is 200", i % 5 != 0, step="step", vu_id=vu_id))
                aggregator.record_check(_check(f"label-{vu_id % 4}", True, vu_id=vu_id))
                if i % 50 == 0:
                    aggregator.record_fault(_fault(vu_id=vu_id, iteration=i))
                aggregator.record_iteration("F", "S")

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(threads_n)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        summary = aggregator.summary()
        total_ops = threads_n * per_thread
        assert summary["checks"]["by_label"]["status is 200"] == {
            "passed": total_ops * 4 // 5,
            "failed": total_ops // 5,
        }
        for n in range(4):
            assert summary["checks"]["by_label"][f"label-{n}"]["passed"] == total_ops // 4
        assert summary["checks"]["total"] == 2 * total_ops
        assert summary["by_step"]["step"]["passed"] + summary["by_step"]["step"]["failed"] == total_ops
        assert summary["faults"]["total"] == threads_n * (per_thread // 50)
        assert summary["iterations"]["F/S"] == total_ops

    def test_summary_while_recording(self):
        """Snapshots taken mid-run are internally consistent."""
        aggregator = CheckAggregator()
        stop = threading.Event()

        def writer():
            while not stop.is_set():
                aggregator.record_check(_check("x", True))

        thread = threading.Thread(target=writer)
        thread.start()
        try:
            for _ in range(50):
                summary = aggregator.summary()
                checks = summary["checks"]
                assert checks["total"] == checks["passed"] + checks["failed"]
                if "x" in checks["by_label"]:
                    assert checks["by_label"]["x"]["passed"] == checks["passed"]
        finally:
            stop.set()
            thread.join()


class TestPassRate:
    def test_pass_rate(self):
        assert pass_rate({"passed": 3, "failed": 1}) == 0.75
        assert pass_rate({"passed": 0, "failed": 0}) is None
