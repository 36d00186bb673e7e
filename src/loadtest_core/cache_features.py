"""
Features for the cache API target.

- Hello World: the greeting endpoint returns the expected message
- Cache: a value set with a 1s TTL is readable at once and blank after 2s

Keys are derived from (vu, iteration) so concurrent invocations never
collide on the shared target.
"""

from typing import Any, Dict

from .feature import ScenarioContext
from .registry import FeatureRegistry

registry = FeatureRegistry()

# Think time at the end of a hello iteration
HELLO_PAUSE_SECONDS = 3
CACHE_BUCKET = "default"
CACHE_TTL_SECONDS = 1
CACHE_EXPIRY_WAIT_SECONDS = 2


def hello_basic(ctx: ScenarioContext) -> None:
    state: Dict[str, Any] = {}

    @ctx.bdd.given("A name ahmed")
    def _():
        state["name"] = "ahmed"

    @ctx.bdd.when("Ahmed")
    def _():
        state["response"] = ctx.env.http.get(ctx.url("/v1/hello"), params={"name": state["name"]})

    @ctx.bdd.then("Expected outcome in english")
    def _():
        response = state["response"]
        ctx.checks.is_200(response)
        ctx.checks.is_json(response)
        ctx.checks.assert_(
            response,
            "name is in greeting",
            lambda r: r.json()["message"],
            "Hello, ahmed! Ya filthy animal.",
        )

    ctx.sleep(HELLO_PAUSE_SECONDS)


def cache_set_and_get(ctx: ScenarioContext) -> None:
    bucket = CACHE_BUCKET
    key = ctx.unique_key("mykey")
    value = f'myvalue"-{ctx.vu_id}'
    get_url = ctx.url(f"/v1/get/{bucket}/{key}")

    @ctx.bdd.when("Set key and value")
    def _():
        ctx.env.http.post(
            ctx.url("/v1/set"),
            json={
                "bucket": bucket,
                "key": key,
                "value": value,
                "options": {"ttlSeconds": CACHE_TTL_SECONDS},
            },
        )

    @ctx.bdd.then("Get key and value")
    def _():
        response = ctx.env.http.get(get_url)
        ctx.checks.is_200(response)
        ctx.checks.is_json(response)
        ctx.checks.assert_(response, "value is in response", lambda r: r.json()["value"] == value)

    ctx.bdd.then("Wait", lambda: ctx.sleep(CACHE_EXPIRY_WAIT_SECONDS))

    @ctx.bdd.then("Get key and value again")
    def _():
        response = ctx.env.http.get(get_url)
        ctx.checks.is_200(response)
        ctx.checks.assert_(response, "value is blank in response", lambda r: r.json()["value"] == "")


@registry.feature("Hello World")
def hello_world():
    """Greeting endpoint answers in english."""
    return {"Basic scenario": hello_basic}


@registry.feature("Cache")
def cache():
    """Values are stored until their TTL elapses."""
    return {"Can set and get": cache_set_and_get}
