"""
Schema Cache - reuses Controller and CodeGen results for equivalent requests.

Two tiers:
- in-process LRU with TTL (always on)
- Redis through ``CacheManager`` (optional, shared across workers)

Keys come from ``fingerprint``: the platform and schema version are part of
every key, the prompt is lower-cased and whitespace-collapsed, and schemas
are serialized canonically (sorted keys, ``$`` metadata dropped), so requests
that differ only in formatting land on the same entry.

Entries are immutable. A write replaces the whole entry; readers get deep
copies, so a concurrent request can never observe a half-written value.
"""
import copy
import hashlib
import json
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

from rapidfuzz import process

from appforge.config import Settings, settings as default_settings
from appforge.core.cache import CacheManager
from appforge.services.generation.schema_version import CURRENT_SCHEMA_VERSION, schema_version_of
from appforge.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

SCHEMA_KIND = "schema"
CODEGEN_KIND = "codegen"
REMOTE_PREFIX = "schema_cache:"


def normalize_prompt(prompt: str) -> str:
    return " ".join((prompt or "").lower().split())


def prompt_words(prompt: str) -> frozenset:
    return frozenset(word for word in (prompt or "").lower().split() if len(word) > 2)


def word_overlap(query: str, choice: str, **kwargs: Any) -> float:
    """
    Jaccard similarity of the two word sets, scaled to 0..100.

    Words of two characters or fewer are ignored. A prompt that contains
    the other plus many extra words scores low.
    """
    left, right = prompt_words(query), prompt_words(choice)
    union = left | right
    if not union:
        return 0.0
    return 100.0 * len(left & right) / len(union)


def canonical_schema(schema: Optional[Dict[str, Any]]) -> str:
    """Stable JSON for a schema, ignoring key order and ``$`` metadata."""
    if not isinstance(schema, dict):
        return "null"
    relevant = {key: value for key, value in schema.items() if not str(key).startswith("$")}
    return json.dumps(relevant, sort_keys=True, separators=(",", ":"), default=str)


def fingerprint(
    kind: str,
    platform: str,
    prompt: Optional[str] = None,
    schema: Optional[Dict[str, Any]] = None,
) -> str:
    """
    Cache key for one request.

    Format: ``<kind>:<platform>:<schema version>:<digest>``
    """
    version = schema_version_of(schema) if schema is not None else CURRENT_SCHEMA_VERSION
    material = json.dumps(
        {"prompt": normalize_prompt(prompt) if prompt is not None else None, "schema": canonical_schema(schema)},
        sort_keys=True,
    )
    digest = hashlib.sha256(material.encode("utf-8")).hexdigest()[:32]
    return f"{kind}:{platform}:{version}:{digest}"


def _key_prefix(key: str) -> str:
    return key.rsplit(":", 1)[0]


@dataclass(frozen=True)
class CacheEntry:
    value: Any
    expires_at: float
    prompt: Optional[str] = None


class SchemaCache:
    """
    Two-tier cache for planning and code generation results.

    Usage:
        cache = SchemaCache(settings, remote=cache_manager)
        plan = await cache.with_schema_cache(fp, lambda: controller_call())
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        remote: Optional[CacheManager] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.settings = settings or default_settings
        self.remote = remote if self.settings.remote_cache_enabled else None
        self.clock = clock
        self.max_size = self.settings.schema_cache_max_size
        self.ttl = self.settings.schema_cache_ttl
        self.similarity_threshold = self.settings.schema_cache_similarity_threshold
        self.fuzzy_enabled = self.settings.schema_cache_fuzzy_enabled
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()

        self.stats = {
            "hits": 0,
            "fuzzy_hits": 0,
            "remote_hits": 0,
            "misses": 0,
            "sets": 0,
            "evictions": 0,
            "expired": 0,
        }

    # ------------------------------------------------------------------
    # Core get / set
    # ------------------------------------------------------------------

    def _get_local(self, key: str) -> Optional[CacheEntry]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at <= self.clock():
            self._entries.pop(key, None)
            self.stats["expired"] += 1
            return None
        self._entries.move_to_end(key)
        return entry

    def _set_local(self, key: str, value: Any, prompt: Optional[str]) -> None:
        self._entries[key] = CacheEntry(copy.deepcopy(value), self.clock() + self.ttl, prompt)
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_size:
            self._entries.popitem(last=False)
            self.stats["evictions"] += 1

    async def get(self, key: str) -> Optional[Any]:
        entry = self._get_local(key)
        if entry is not None:
            self.stats["hits"] += 1
            logger.debug("schema_cache.hit", extra={"key": key, "tier": "memory"})
            return copy.deepcopy(entry.value)

        if self.remote is not None:
            remote_value = await self.remote.get(REMOTE_PREFIX + key)
            if remote_value is not None:
                value = remote_value.get("value") if isinstance(remote_value, dict) else None
                if value is not None:
                    self._set_local(key, value, remote_value.get("prompt"))
                    self.stats["remote_hits"] += 1
                    logger.debug("schema_cache.hit", extra={"key": key, "tier": "remote"})
                    return copy.deepcopy(value)

        self.stats["misses"] += 1
        logger.debug("schema_cache.miss", extra={"key": key})
        return None

    async def set(self, key: str, value: Any, prompt: Optional[str] = None) -> None:
        self._set_local(key, value, normalize_prompt(prompt) if prompt else None)
        self.stats["sets"] += 1
        if self.remote is not None:
            await self.remote.set(REMOTE_PREFIX + key, {"value": value, "prompt": prompt}, ttl=self.ttl)

    async def with_schema_cache(self, key: str, compute_fn: Callable[[], Awaitable[T]]) -> T:
        """Return the cached value for ``key`` or compute, store and return it."""
        cached = await self.get(key)
        if cached is not None:
            return cached
        value = await compute_fn()
        if value is not None:
            await self.set(key, value)
        return value

    # ------------------------------------------------------------------
    # Fuzzy prompt lookup
    # ------------------------------------------------------------------

    def find_similar(self, prompt: str, kind: str, platform: str) -> Optional[Any]:
        """
        Closest cached prompt of the same kind, platform and schema version.

        Scores are word-set Jaccard similarity against the configured threshold.
        """
        if not self.fuzzy_enabled:
            return None

        prefix = f"{kind}:{platform}:{CURRENT_SCHEMA_VERSION}"
        now = self.clock()
        candidates = {
            key: entry.prompt
            for key, entry in list(self._entries.items())
            if entry.prompt and entry.expires_at > now and _key_prefix(key) == prefix
        }
        if not candidates:
            return None

        match = process.extractOne(
            normalize_prompt(prompt),
            candidates,
            scorer=word_overlap,
            score_cutoff=self.similarity_threshold * 100,
        )
        if match is None:
            return None

        _, score, key = match
        entry = self._get_local(key)
        if entry is None:
            return None
        self.stats["fuzzy_hits"] += 1
        logger.info("schema_cache.fuzzy_hit", extra={"key": key, "similarity": round(score / 100, 3)})
        return copy.deepcopy(entry.value)

    # ------------------------------------------------------------------
    # Typed helpers
    # ------------------------------------------------------------------

    async def get_schema(self, prompt: str, platform: str) -> Optional[Dict[str, Any]]:
        """Cached Controller result for a fresh (no existing schema) request."""
        cached = await self.get(fingerprint(SCHEMA_KIND, platform, prompt=prompt))
        if cached is not None:
            return cached
        return self.find_similar(prompt, SCHEMA_KIND, platform)

    async def set_schema(self, prompt: str, platform: str, result: Dict[str, Any]) -> None:
        await self.set(fingerprint(SCHEMA_KIND, platform, prompt=prompt), result, prompt=prompt)

    async def get_codegen(self, schema: Dict[str, Any], platform: str) -> Optional[Dict[str, Any]]:
        return await self.get(fingerprint(CODEGEN_KIND, platform, schema=schema))

    async def set_codegen(self, schema: Dict[str, Any], platform: str, output: Dict[str, Any]) -> None:
        await self.set(fingerprint(CODEGEN_KIND, platform, schema=schema), output)

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    async def invalidate_platform(self, platform: str) -> int:
        doomed = [key for key in list(self._entries) if key.split(":")[1:2] == [platform]]
        for key in doomed:
            self._entries.pop(key, None)
        removed = len(doomed)
        if self.remote is not None:
            for kind in (SCHEMA_KIND, CODEGEN_KIND):
                removed += await self.remote.clear_pattern(f"{REMOTE_PREFIX}{kind}:{platform}:*")
        logger.info("schema_cache.platform.invalidated", extra={"platform": platform, "removed": removed})
        return removed

    async def clear(self) -> None:
        self._entries = OrderedDict()
        if self.remote is not None:
            await self.remote.clear_pattern(f"{REMOTE_PREFIX}*")
        logger.info("schema_cache.cleared")

    def get_stats(self) -> Dict[str, Any]:
        lookups = self.stats["hits"] + self.stats["remote_hits"] + self.stats["misses"]
        return {
            **self.stats,
            "entries": len(self._entries),
            "hit_rate": round((self.stats["hits"] + self.stats["remote_hits"]) / lookups, 3) if lookups else 0.0,
            "max_size": self.max_size,
            "ttl": self.ttl,
            "similarity_threshold": self.similarity_threshold,
            "remote_enabled": self.remote is not None,
        }
