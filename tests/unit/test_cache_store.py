"""Unit tests for the content-addressed cache store."""

from __future__ import annotations

from decimal import Decimal

import pytest
from conftest import FrozenClock, InMemoryCacheRepository

from medgen.services.cache import CacheStore, compute_cache_key

CONTEXT = {"specialty": "Cardiology", "parent_grouping": "Heart failure", "title": "Chronic heart failure"}


def test_cache_key_ignores_key_order() -> None:
  reordered = {"title": "Chronic heart failure", "parent_grouping": "Heart failure", "specialty": "Cardiology"}
  assert compute_cache_key("fulltext", "opus", CONTEXT) == compute_cache_key("fulltext", "opus", reordered)


def test_cache_key_ignores_whitespace_and_null_fields() -> None:
  noisy = {**CONTEXT, "title": "  Chronic heart failure ", "description": None, "full_text": ""}
  assert compute_cache_key("fulltext", "opus", CONTEXT) == compute_cache_key("fulltext", "opus", noisy)


def test_cache_key_changes_with_mode_model_and_context() -> None:
  base = compute_cache_key("fulltext", "opus", CONTEXT)
  assert base != compute_cache_key("deep_dive", "opus", CONTEXT)
  assert base != compute_cache_key("fulltext", "sonnet", CONTEXT)
  assert base != compute_cache_key("fulltext", "opus", {**CONTEXT, "title": "Acute heart failure"})
  assert len(base) == 64


@pytest.mark.anyio
async def test_first_lookup_misses_then_store_then_hit_increments(cache_store: CacheStore, cache_repo: InMemoryCacheRepository, clock: FrozenClock) -> None:
  assert await cache_store.lookup("fulltext", "opus", CONTEXT) is None

  await cache_store.store("fulltext", "opus", CONTEXT, {"payload": {"full_text": "x"}}, model="opus", tokens_used=1500, cost=Decimal("0.0175"))
  assert len(cache_repo.entries) == 1

  clock.advance(30)
  first = await cache_store.lookup("fulltext", "opus", CONTEXT)
  second = await cache_store.lookup("fulltext", "opus", dict(reversed(list(CONTEXT.items()))))

  assert first is not None and second is not None
  assert first.response == {"payload": {"full_text": "x"}}
  assert first.hits == 1
  assert second.hits == 2
  assert first.age_seconds == pytest.approx(30.0)


@pytest.mark.anyio
async def test_expired_entry_is_a_miss_and_is_evicted(cache_store: CacheStore, cache_repo: InMemoryCacheRepository, clock: FrozenClock) -> None:
  await cache_store.store("high_yield", "flash", CONTEXT, {"payload": {}}, model="flash", tokens_used=10, cost=Decimal("0"))
  clock.advance(7 * 24 * 3600 + 1)

  assert await cache_store.lookup("high_yield", "flash", CONTEXT) is None
  assert cache_repo.entries == {}


@pytest.mark.anyio
async def test_upsert_overwrites_response_without_resetting_hits(cache_store: CacheStore, cache_repo: InMemoryCacheRepository) -> None:
  await cache_store.store("mcq", "sonnet", CONTEXT, {"v": 1}, model="sonnet", tokens_used=1, cost=Decimal("0.1"))
  await cache_store.lookup("mcq", "sonnet", CONTEXT)
  await cache_store.store("mcq", "sonnet", CONTEXT, {"v": 2}, model="sonnet", tokens_used=2, cost=Decimal("0.2"))

  (record,) = cache_repo.entries.values()
  assert record.response == {"v": 2}
  assert record.hits == 1


@pytest.mark.anyio
async def test_store_failures_are_swallowed(cache_store: CacheStore, cache_repo: InMemoryCacheRepository) -> None:
  cache_repo.fail = True
  await cache_store.store("fulltext", "opus", CONTEXT, {"v": 1}, model="opus", tokens_used=1, cost=Decimal("0"))
  assert await cache_store.lookup("fulltext", "opus", CONTEXT) is None


@pytest.mark.anyio
async def test_stats_report_saved_cost_per_mode(cache_store: CacheStore) -> None:
  await cache_store.store("fulltext", "opus", CONTEXT, {"v": 1}, model="opus", tokens_used=1, cost=Decimal("0.5"))
  await cache_store.lookup("fulltext", "opus", CONTEXT)
  await cache_store.lookup("fulltext", "opus", CONTEXT)

  stats = await cache_store.stats()
  assert stats["by_mode"]["fulltext"] == {"entries": 1, "hits": 2, "cost": 0.5, "saved": 1.0}
  assert stats["totals"]["saved"] == 1.0


@pytest.mark.anyio
async def test_clear_by_mode_and_purge_expired(cache_store: CacheStore, cache_repo: InMemoryCacheRepository, clock: FrozenClock) -> None:
  await cache_store.store("fulltext", "opus", CONTEXT, {}, model="opus", tokens_used=1, cost=Decimal("0"))
  await cache_store.store("mcq", "sonnet", CONTEXT, {}, model="sonnet", tokens_used=1, cost=Decimal("0"))

  assert await cache_store.clear("mcq") == 1
  assert {record.mode for record in cache_repo.entries.values()} == {"fulltext"}

  clock.advance(8 * 24 * 3600)
  assert await cache_store.purge_expired() == 1
  assert cache_repo.entries == {}
