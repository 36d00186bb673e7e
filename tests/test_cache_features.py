"""Tests for the shipped Hello World and Cache features against the reference target."""

import itertools

import httpx
from fastapi.testclient import TestClient

from loadtest_core import (
    CheckAggregator,
    FeatureRunner,
    LoadTestConfig,
    LoadTestRunner,
    RunEnvironment,
)
from loadtest_core.cache_features import (
    CACHE_EXPIRY_WAIT_SECONDS,
    HELLO_PAUSE_SECONDS,
    registry,
)
from loadtest_core.target import create_app

from conftest import BASE_URL


def _run(feature_name, env, iterations=1, vus=1):
    aggregator = CheckAggregator()
    result = FeatureRunner(
        registry.get(feature_name), env, vus=vus, iterations=iterations, aggregator=aggregator
    ).run()
    return result, aggregator.summary()


class TestHelloWorld:
    """Tests for the Hello World feature."""

    def test_passes_against_target(self, env, clock):
        result, summary = _run("Hello World", env, iterations=3)

        assert result.faults == 0
        assert summary["status"] == "PASS"
        by_label = summary["checks"]["by_label"]
        assert by_label["status is 200"] == {"passed": 3, "failed": 0}
        assert by_label["response is JSON"] == {"passed": 3, "failed": 0}
        assert by_label["name is in greeting"] == {"passed": 3, "failed": 0}
        assert clock.sleeps == [HELLO_PAUSE_SECONDS] * 3

    def test_checks_attributed_to_then_step(self, env):
        _, summary = _run("Hello World", env)
        assert summary["by_step"] == {"Expected outcome in english": {"passed": 3, "failed": 0}}

    def test_wrong_greeting_fails_check_not_run(self, clock):
        """A target answering 200 with the wrong text fails only the value check."""
        def bonjour(request):
            return httpx.Response(200, json={"message": "Bonjour, ahmed!"})

        with httpx.Client(transport=httpx.MockTransport(bonjour)) as http:
            env = RunEnvironment(BASE_URL, http, sleep=clock.sleep)
            result, summary = _run("Hello World", env)

        assert result.faults == 0
        assert summary["checks"]["by_label"]["status is 200"] == {"passed": 1, "failed": 0}
        assert summary["checks"]["by_label"]["name is in greeting"] == {"passed": 0, "failed": 1}
        assert summary["checks_ok"] is False
        assert summary["faults_ok"] is True


class TestCache:
    """Tests for the Cache feature."""

    def test_set_get_and_expire(self, env, clock):
        result, summary = _run("Cache", env, iterations=4)

        assert result.faults == 0
        assert summary["status"] == "PASS"
        by_label = summary["checks"]["by_label"]
        assert by_label["value is in response"] == {"passed": 4, "failed": 0}
        assert by_label["value is blank in response"] == {"passed": 4, "failed": 0}
        assert by_label["status is 200"] == {"passed": 8, "failed": 0}
        assert clock.sleeps == [CACHE_EXPIRY_WAIT_SECONDS] * 4

    def test_each_invocation_reads_its_own_key(self, env, target_app):
        _run("Cache", env, iterations=3)
        cache = target_app.state.cache
        stats = cache.stats()
        assert stats["hits"] == 3
        assert stats["expired"] == 3

    def test_value_not_expired_fails_blank_check(self, env, target_app, monkeypatch):
        """If the target ignores the TTL the second read fails its check."""
        cache = target_app.state.cache
        original_set = cache.set
        monkeypatch.setattr(
            cache, "set", lambda b, k, v, ttl_seconds=0, policy=None: original_set(b, k, v, policy=policy)
        )

        result, summary = _run("Cache", env, iterations=2)
        assert result.faults == 0
        assert summary["checks"]["by_label"]["value is in response"] == {"passed": 2, "failed": 0}
        assert summary["checks"]["by_label"]["value is blank in response"] == {"passed": 0, "failed": 2}

    def test_unreachable_target_faults_each_invocation(self, clock):
        """Transport errors abort the invocation at the faulting step."""
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        with httpx.Client(transport=httpx.MockTransport(refuse)) as http:
            env = RunEnvironment(BASE_URL, http, sleep=clock.sleep)
            result, summary = _run("Cache", env, iterations=3)

        assert result.faults == 3
        assert summary["checks"]["total"] == 0
        assert summary["faults"]["samples"][0]["step"] == "Set key and value"
        assert clock.sleeps == []


class TestConcurrentRun:
    """The Cache feature with several virtual users on a real clock."""

    def test_concurrent_cache_run(self):
        """Concurrent invocations never see each other's keys (one TTL round, about 2s)."""
        config = LoadTestConfig(base_url=BASE_URL, vus=4, iterations=4, features=["Cache"])
        with TestClient(create_app()) as http:
            result = LoadTestRunner(config, registry=registry, http=http).run()

        assert result["status"] == "PASS"
        assert result["iterations"] == {"Cache/Can set and get": 4}
        assert result["checks"]["by_label"]["value is in response"] == {"passed": 4, "failed": 0}
        assert result["checks"]["by_label"]["value is blank in response"] == {"passed": 4, "failed": 0}

    def test_invocation_identity_from_vu_ids(self, env):
        seen = []

        def record(result):
            seen.append((result.vu_id, result.iteration))

        FeatureRunner(
            registry.get("Cache"), env, vus=1, iterations=5,
            vu_ids=itertools.count(10), on_invocation_complete=record,
        ).run()
        assert sorted(seen) == [(10, i) for i in range(5)]
