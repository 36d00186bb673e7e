"""
Reference target service: in-memory TTL cache plus a greeting endpoint.

Serves the HTTP surface the shipped features exercise, so they can run
locally or in-process through ``fastapi.testclient.TestClient``.

Endpoints:
    GET  /v1/hello?name=<name>        - {"message": "Hello, <name>! Ya filthy animal."}
    POST /v1/set                      - store a value (optional ttlSeconds, evictionPolicy)
    GET  /v1/get/{bucket}/{key}       - {"value": "..."}, "" once expired or absent
    GET  /v1/stats                    - hit/miss/eviction/expired counters
    GET  /health                      - liveness

Usage:
    # Run standalone
    loadtest target --port 8080

    # Or via factory
    from loadtest_core.target import create_app
    app = create_app()
"""

import itertools
import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional, Union

from fastapi import FastAPI
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 255


# =============================================================================
# Cache
# =============================================================================


class EvictionPolicy(str, Enum):
    """Which entry a full bucket gives up to make room for a new key."""
    LRU = "LRU"
    MRU = "MRU"
    OLDEST = "OLDEST"
    NEWEST = "NEWEST"


def parse_eviction_policy(value: Union[str, EvictionPolicy, None]) -> EvictionPolicy:
    """
    Resolve a policy name, accepting ``LRU`` and ``EVICTION_LRU`` spellings.

    Missing, unspecified and unknown names fall back to LRU.
    """
    if isinstance(value, EvictionPolicy):
        return value
    if not value:
        return EvictionPolicy.LRU
    name = value.upper()
    if name.startswith("EVICTION_"):
        name = name[len("EVICTION_"):]
    try:
        return EvictionPolicy(name)
    except ValueError:
        if name != "UNSPECIFIED":
            logger.warning("Unknown eviction policy %r, using LRU", value)
        return EvictionPolicy.LRU


@dataclass
class _Entry:
    value: str
    expires_at: Optional[float]
    inserted: int
    accessed: int


class TTLCache:
    """
    Bucketed in-memory cache with per-entry TTL.

    Each bucket holds at most ``capacity`` keys. Setting a new key into a
    full bucket evicts one entry chosen by the eviction policy passed to
    ``set`` (LRU by default). An entry whose TTL has elapsed reads as
    absent and is dropped on access.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY, clock: Callable[[], float] = time.monotonic):
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self.capacity = capacity
        self.clock = clock
        self._buckets: Dict[str, Dict[str, _Entry]] = {}
        self._lock = threading.Lock()
        self._seq = itertools.count()
        self.hits = 0
        self.misses = 0
        self.evictions = 0
        self.expired = 0

    def set(
        self,
        bucket: str,
        key: str,
        value: str,
        ttl_seconds: float = 0,
        policy: Union[str, EvictionPolicy, None] = EvictionPolicy.LRU,
    ) -> None:
        """Store value; ``ttl_seconds <= 0`` means no expiry."""
        policy = parse_eviction_policy(policy)
        expires_at = self.clock() + ttl_seconds if ttl_seconds > 0 else None
        with self._lock:
            entries = self._buckets.setdefault(bucket, {})
            if key not in entries and len(entries) >= self.capacity:
                evicted = self._victim(entries, policy)
                del entries[evicted]
                self.evictions += 1
                logger.debug("Evicted %s/%s (%s)", bucket, evicted, policy.value)
            seq = next(self._seq)
            entries[key] = _Entry(value=value, expires_at=expires_at, inserted=seq, accessed=seq)

    @staticmethod
    def _victim(entries: Dict[str, _Entry], policy: EvictionPolicy) -> str:
        if policy is EvictionPolicy.LRU:
            return min(entries, key=lambda k: entries[k].accessed)
        if policy is EvictionPolicy.MRU:
            return max(entries, key=lambda k: entries[k].accessed)
        if policy is EvictionPolicy.OLDEST:
            return min(entries, key=lambda k: entries[k].inserted)
        return max(entries, key=lambda k: entries[k].inserted)

    def get(self, bucket: str, key: str) -> Optional[str]:
        """Return the stored value, or None if absent or expired."""
        with self._lock:
            entries = self._buckets.get(bucket)
            entry = entries.get(key) if entries is not None else None
            if entry is None:
                self.misses += 1
                return None
            if entry.expires_at is not None and self.clock() >= entry.expires_at:
                del entries[key]
                self.expired += 1
                self.misses += 1
                return None
            entry.accessed = next(self._seq)
            self.hits += 1
            return entry.value

    def delete(self, bucket: str, key: str) -> bool:
        with self._lock:
            entries = self._buckets.get(bucket)
            if entries is None or key not in entries:
                return False
            del entries[key]
            return True

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {
                "hits": self.hits,
                "misses": self.misses,
                "evictions": self.evictions,
                "expired": self.expired,
            }


# =============================================================================
# Pydantic Models for Request/Response
# =============================================================================


class SetOptions(BaseModel):
    """Options for a set request."""

    ttlSeconds: float = Field(0, description="Seconds until expiry (<= 0: never)")
    evictionPolicy: Optional[str] = Field(
        None, description="LRU, MRU, OLDEST or NEWEST (EVICTION_ prefix accepted; default LRU)"
    )


class SetRequest(BaseModel):
    """Request to store a value."""

    bucket: str
    key: str
    value: str
    options: Optional[SetOptions] = None


class GetResponse(BaseModel):
    value: str


class HelloResponse(BaseModel):
    message: str


class StatsResponse(BaseModel):
    hits: int
    misses: int
    evictions: int
    expired: int


# =============================================================================
# FastAPI Application Factory
# =============================================================================


def greeting(name: str) -> str:
    return f"Hello, {name}! Ya filthy animal."


def create_app(
    capacity: int = DEFAULT_CAPACITY,
    clock: Callable[[], float] = time.monotonic,
    cache: Optional[TTLCache] = None,
) -> FastAPI:
    """Create the reference target application.

    Args:
        capacity: Keys per bucket before eviction.
        clock: Monotonic clock in seconds (injectable for tests).
        cache: Pre-built cache to serve (overrides capacity and clock).

    Returns:
        Configured FastAPI application. The cache is at ``app.state.cache``.
    """
    app = FastAPI(title="loadtest-core reference target", version="1.0")
    app.state.cache = cache or TTLCache(capacity=capacity, clock=clock)

    @app.get("/health")
    def health() -> Dict[str, str]:
        return {"status": "ok"}

    @app.get("/v1/hello", response_model=HelloResponse)
    def hello(name: str = "") -> HelloResponse:
        return HelloResponse(message=greeting(name))

    @app.post("/v1/set")
    def set_value(request: SetRequest) -> Dict[str, str]:
        options = request.options or SetOptions()
        app.state.cache.set(
            request.bucket,
            request.key,
            request.value,
            ttl_seconds=options.ttlSeconds,
            policy=options.evictionPolicy,
        )
        return {}

    @app.get("/v1/get/{bucket}/{key}", response_model=GetResponse)
    def get_value(bucket: str, key: str) -> GetResponse:
        value = app.state.cache.get(bucket, key)
        return GetResponse(value=value if value is not None else "")

    @app.get("/v1/stats", response_model=StatsResponse)
    def stats() -> StatsResponse:
        return StatsResponse(**app.state.cache.stats())

    return app


def serve(host: str = "127.0.0.1", port: int = 8080) -> None:
    """Run the reference target with uvicorn."""
    import uvicorn

    app = create_app()
    logger.info("Starting reference target at http://%s:%d", host, port)
    uvicorn.run(app, host=host, port=port)
