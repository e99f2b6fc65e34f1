import pytest

from appforge.services.generation.schema_cache import (
    SchemaCache,
    canonical_schema,
    fingerprint,
    normalize_prompt,
    word_overlap,
)

from tests.fakes import build_schema


class Clock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def cache(settings, clock):
    return SchemaCache(settings, clock=clock)


# ---------------------------------------------------------------------------
# fingerprints
# ---------------------------------------------------------------------------

def test_fingerprint_layout():
    key = fingerprint("schema", "webapp", prompt="Build a bakery site")

    kind, platform, version, digest = key.split(":")
    assert (kind, platform, version) == ("schema", "webapp", "2.0.0")
    assert len(digest) == 32


def test_prompt_normalization_collapses_case_and_whitespace():
    assert normalize_prompt("  Build   a\nBakery ") == "build a bakery"
    assert fingerprint("schema", "webapp", prompt="Build  a Bakery") == fingerprint(
        "schema", "webapp", prompt="build a bakery"
    )


def test_platform_is_part_of_the_key():
    assert fingerprint("schema", "webapp", prompt="x") != fingerprint("schema", "mobile", prompt="x")


def test_schema_key_ignores_order_and_metadata():
    schema = build_schema()
    reordered = dict(reversed(list(schema.items())))
    reordered["$updatedAt"] = "2024-01-01T00:00:00Z"

    assert canonical_schema(schema) == canonical_schema(reordered)
    assert fingerprint("codegen", "webapp", schema=schema) == fingerprint("codegen", "webapp", schema=reordered)


def test_schema_version_changes_the_key():
    schema = build_schema()
    versioned = {**schema, "$schemaVersion": "2.0.0"}

    assert fingerprint("codegen", "webapp", schema=schema).split(":")[2] == "1.0.0"
    assert fingerprint("codegen", "webapp", schema=schema) != fingerprint("codegen", "webapp", schema=versioned)


# ---------------------------------------------------------------------------
# get / set
# ---------------------------------------------------------------------------

async def test_schema_round_trip_returns_copies(cache):
    await cache.set_schema("Build a bakery site", "webapp", {"schema": build_schema()})

    first = await cache.get_schema("build a  bakery site", "webapp")
    first["schema"]["meta"]["name"] = "Mutated"
    second = await cache.get_schema("build a bakery site", "webapp")

    assert second["schema"]["meta"]["name"] == "Bakery Co"
    assert cache.stats["hits"] == 2


async def test_miss_on_other_platform(cache):
    await cache.set_schema("Build a bakery site", "webapp", {"schema": {}})

    assert await cache.get_schema("Build a bakery site", "mobile") is None
    assert cache.stats["misses"] == 1


async def test_fuzzy_match_on_similar_prompt(cache):
    await cache.set_schema("Build a modern landing page for my family bakery", "webapp", {"schema": {"meta": {}}})

    result = await cache.get_schema("build a modern landing page for our family bakery", "webapp")

    assert result == {"schema": {"meta": {}}}
    assert cache.stats["fuzzy_hits"] == 1


async def test_richer_prompt_does_not_reuse_smaller_plan(cache):
    await cache.set_schema("Build a todo app", "webapp", {"schema": {"meta": {"name": "Todo"}}})

    result = await cache.get_schema("Build a todo app with user login, team sharing and a dark theme", "webapp")

    assert result is None
    assert cache.stats["fuzzy_hits"] == 0


def test_word_overlap_is_jaccard_on_longer_words():
    assert word_overlap("Build a todo app", "build the todo app") == 75.0
    assert word_overlap("landing page for my bakery", "Build a landing page for my bakery") == 80.0
    assert word_overlap("a b", "c d") == 0.0


async def test_fuzzy_ignores_unrelated_prompt(cache):
    await cache.set_schema("Build a landing page for my bakery", "webapp", {"schema": {}})

    assert await cache.get_schema("mobile game about dragons", "webapp") is None


async def test_fuzzy_can_be_disabled(settings, clock):
    settings.schema_cache_fuzzy_enabled = False
    cache = SchemaCache(settings, clock=clock)
    await cache.set_schema("Build a landing page for my bakery", "webapp", {"schema": {}})

    assert await cache.get_schema("landing page for my bakery", "webapp") is None


async def test_entries_expire(cache, clock):
    await cache.set("k", {"v": 1})

    clock.now += cache.ttl + 1

    assert await cache.get("k") is None
    assert cache.stats["expired"] == 1


async def test_lru_eviction(settings, clock):
    settings.schema_cache_max_size = 2
    cache = SchemaCache(settings, clock=clock)

    await cache.set("a", 1)
    await cache.set("b", 2)
    await cache.get("a")
    await cache.set("c", 3)

    assert await cache.get("b") is None
    assert await cache.get("a") == 1
    assert await cache.get("c") == 3
    assert cache.stats["evictions"] == 1


async def test_with_schema_cache_computes_once(cache):
    calls = []

    async def compute():
        calls.append(1)
        return {"answer": 42}

    assert await cache.with_schema_cache("k", compute) == {"answer": 42}
    assert await cache.with_schema_cache("k", compute) == {"answer": 42}
    assert len(calls) == 1


async def test_codegen_cache_keyed_by_schema(cache):
    schema = build_schema()
    await cache.set_codegen(schema, "webapp", {"files": []})

    assert await cache.get_codegen(dict(reversed(list(schema.items()))), "webapp") == {"files": []}
    assert await cache.get_codegen(build_schema(features={"pwa": {"enabled": True}}), "webapp") is None


async def test_invalidate_platform_and_clear(cache):
    await cache.set_schema("one", "webapp", {"schema": 1})
    await cache.set_schema("two", "mobile", {"schema": 2})

    assert await cache.invalidate_platform("webapp") == 1
    assert cache.get_stats()["entries"] == 1

    await cache.clear()
    assert cache.get_stats()["entries"] == 0


async def test_stats_hit_rate(cache):
    await cache.set("k", 1)
    await cache.get("k")
    await cache.get("missing")

    stats = cache.get_stats()

    assert stats["hit_rate"] == 0.5
    assert stats["remote_enabled"] is False
