"""
Unit tests for the validated asset cache.
"""

import asyncio
import pytest
from unittest.mock import AsyncMock, patch

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_emotes.app.caching.asset_cache import AssetCache
from service_emotes.app.caching.refresh_engine import BatchRefreshEngine
from service_emotes.app.catalog.models import SubmissionStatus
from service_emotes.app.catalog.registry import CandidateRegistry
from service_emotes.tests.helpers import FakeClock, StubValidator, TestDataFactory
from shared.metrics import MetricsCollector


SEED = [
    ("1", "Griddy", "Dance"),
    ("2", "Orange Justice", "Dance"),
    ("3", "Wave", "Gesture"),
    ("4", "Penguin", "Funny"),
    ("5", "Off Sale", "Dance"),
]


def build_cache(validator, clock=None, seed=SEED, metrics=None):
    registry = CandidateRegistry(TestDataFactory.candidates(*seed))
    engine = BatchRefreshEngine(validator, sleep=AsyncMock())
    return AssetCache(registry, engine, clock=clock or FakeClock(), metrics=metrics)


class TestAssetCache:
    """Test cases for AssetCache."""

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def validator(self):
        """Stub marketplace with one limited emote and one off-sale id."""
        return StubValidator(assets={
            "1": TestDataFactory.asset("1", name="Griddy"),
            "2": TestDataFactory.asset("2", name="Orange Justice", can_resell=False),
            "3": TestDataFactory.asset("3", name="Wave"),
            "4": TestDataFactory.asset("4", name="Penguin"),
            "42": TestDataFactory.asset("42", name="Submitted"),
        })

    @pytest.fixture
    def cache(self, validator, clock):
        return build_cache(validator, clock)

    @pytest.mark.asyncio
    async def test_first_query_refreshes(self, cache, validator, clock):
        """Test an empty cache is filled before answering."""
        result = await cache.query()

        assert {e.id for e in result.emotes} == {"1", "2", "3", "4"}
        assert result.cached == 4
        assert result.total == 4
        assert result.last_updated == clock.now
        assert cache.refresh_count == 1

    @pytest.mark.asyncio
    async def test_query_idempotent_within_ttl(self, cache, validator, clock):
        """Test repeated queries inside the TTL reuse the snapshot."""
        first = await cache.query()
        clock.advance(299)
        second = await cache.query()

        assert first.emotes == second.emotes
        assert first.last_updated == second.last_updated
        assert cache.refresh_count == 1
        assert len(validator.calls) == 5

    @pytest.mark.asyncio
    async def test_query_after_ttl_refreshes(self, cache, clock):
        """Test a snapshot older than the TTL is rebuilt."""
        await cache.query()
        clock.advance(301)

        assert cache.is_stale() is True
        result = await cache.query()

        assert cache.refresh_count == 2
        assert result.last_updated == clock.now

    @pytest.mark.asyncio
    async def test_concurrent_stale_queries_share_one_refresh(self, validator, clock):
        """Test simultaneous stale reads collapse into one refresh pass."""
        validator.delay = 0.01
        cache = build_cache(validator, clock)

        with patch.object(cache.engine, "refresh_with_report", wraps=cache.engine.refresh_with_report) as spy:
            results = await asyncio.gather(*(cache.query() for _ in range(10)))

        assert spy.await_count == 1
        assert cache.refresh_count == 1
        assert len(validator.calls) == 5
        assert all(r.emotes == results[0].emotes for r in results)

    @pytest.mark.asyncio
    async def test_readers_see_old_snapshot_during_refresh(self, validator, clock):
        """Test the previous snapshot stays visible until the new one is swapped in."""
        cache = build_cache(validator, clock)
        await cache.query()
        old = cache.snapshot

        validator.delay = 0.01
        clock.advance(301)
        refresh = asyncio.ensure_future(cache.refresh())
        await asyncio.sleep(0)

        assert cache.refreshing is True
        assert cache.snapshot is old

        new = await refresh
        assert cache.snapshot is new
        assert new is not old

    @pytest.mark.asyncio
    async def test_category_filter_case_insensitive(self, cache):
        """Test category matching ignores case."""
        result = await cache.query(category="dance")

        assert {e.id for e in result.emotes} == {"1", "2"}
        assert all(e.category == "Dance" for e in result.emotes)

    @pytest.mark.asyncio
    async def test_category_and_limit_compose(self, cache):
        """Test limit truncates after category filtering."""
        result = await cache.query(category="Dance", limit=1)

        assert len(result.emotes) == 1
        assert result.emotes[0].category == "Dance"
        assert result.cached == 4

    @pytest.mark.asyncio
    async def test_resellable_only(self, cache):
        """Test the resellable predicate runs after the category filter."""
        result = await cache.query(category="Dance", resellable_only=True)

        assert [e.id for e in result.emotes] == ["1"]

    @pytest.mark.asyncio
    async def test_unknown_category_is_empty(self, cache):
        """Test unknown categories are not an error."""
        result = await cache.query(category="Backflip")

        assert result.emotes == ()
        assert result.cached == 4

    @pytest.mark.asyncio
    @pytest.mark.parametrize("limit", [0, -3])
    async def test_non_positive_limit_is_empty(self, cache, limit):
        """Test zero and negative limits return nothing."""
        result = await cache.query(limit=limit)

        assert result.emotes == ()

    @pytest.mark.asyncio
    async def test_default_limit(self, validator, clock):
        """Test the default limit applies when none is given."""
        seed = [(str(i), f"E{i}", "Dance") for i in range(1, 61)]
        validator.assets = {i: TestDataFactory.asset(i) for i, _, _ in seed}
        cache = build_cache(validator, clock, seed=seed)

        result = await cache.query()

        assert result.total == 50
        assert result.cached == 60

    @pytest.mark.asyncio
    async def test_empty_refresh_retried_on_next_query(self, clock):
        """Test an empty snapshot counts as stale."""
        validator = StubValidator(unavailable={"1", "2", "3", "4", "5"})
        cache = build_cache(validator, clock)

        await cache.query()
        await cache.query()

        assert cache.refresh_count == 2

    @pytest.mark.asyncio
    async def test_refresh_failure_keeps_old_snapshot(self, cache):
        """Test an exception during refresh propagates and leaves the snapshot intact."""
        await cache.query()
        old = cache.snapshot

        with patch.object(cache.engine, "refresh_with_report", new_callable=AsyncMock) as broken:
            broken.side_effect = RuntimeError("boom")
            with pytest.raises(RuntimeError):
                await cache.refresh()

        assert cache.snapshot is old

    @pytest.mark.asyncio
    async def test_warm_logs_and_swallows_failure(self, cache):
        """Test the startup warm-up never raises."""
        with patch.object(cache.engine, "refresh_with_report", new_callable=AsyncMock) as broken:
            broken.side_effect = RuntimeError("boom")
            await cache.warm()

        assert len(cache.snapshot) == 0

    @pytest.mark.asyncio
    async def test_close_cancels_shielded_refresh(self, validator, clock):
        """Test closing stops a refresh whose caller was already cancelled."""
        validator.delay = 0.05
        cache = build_cache(validator, clock)
        warm = asyncio.ensure_future(cache.warm())
        await asyncio.sleep(0)

        warm.cancel()
        await asyncio.gather(warm, return_exceptions=True)
        assert cache.refreshing is True

        await cache.close()

        assert cache.refreshing is False
        assert cache.refresh_count == 0
        assert len(cache.snapshot) == 0

    @pytest.mark.asyncio
    async def test_close_without_refresh(self, cache):
        """Test closing an idle cache is a no-op."""
        await cache.close()

        assert cache.refreshing is False

    @pytest.mark.asyncio
    async def test_submit_new_valid_emote(self, cache, clock):
        """Test a valid submission extends registry and snapshot without a rebuild."""
        await cache.query()
        built_at = cache.last_refresh
        clock.advance(10)

        result = await cache.submit_candidate("42", "Action")

        assert result.status is SubmissionStatus.ACCEPTED
        assert result.asset.category == "Action"
        assert "42" in cache.registry
        assert next(e for e in cache.registry.snapshot() if e.id == "42").category == "Action"
        assert cache.snapshot.find("42") == result.asset
        assert cache.last_refresh == built_at

    @pytest.mark.asyncio
    async def test_submit_twice_is_idempotent(self, cache):
        """Test resubmitting returns the same asset and registers once."""
        await cache.query()
        size = len(cache.registry)

        first = await cache.submit_candidate("42", "Action")
        second = await cache.submit_candidate("42", "Dance")

        assert first.asset == second.asset
        assert second.status is SubmissionStatus.ALREADY_KNOWN
        assert len(cache.registry) == size + 1
        assert len(cache.snapshot) == 5

    @pytest.mark.asyncio
    async def test_concurrent_submissions_register_once(self, cache, validator):
        """Test racing submissions of one id add a single entry."""
        validator.delay = 0.01
        size = len(cache.registry)

        results = await asyncio.gather(
            cache.submit_candidate("42", "Action"),
            cache.submit_candidate("42", "Action"),
        )

        assert len(cache.registry) == size + 1
        assert [a.id for a in cache.snapshot.assets].count("42") == 1
        assert {r.status for r in results} == {SubmissionStatus.ACCEPTED, SubmissionStatus.ALREADY_KNOWN}

    @pytest.mark.asyncio
    async def test_submit_rejected_leaves_state_unchanged(self, cache, validator):
        """Test a failed validation modifies neither registry nor snapshot."""
        await cache.query()
        snapshot = cache.snapshot
        size = len(cache.registry)

        result = await cache.submit_candidate("77", "Dance")

        assert result.status is SubmissionStatus.REJECTED
        assert "77" not in cache.registry
        assert len(cache.registry) == size
        assert cache.snapshot is snapshot

    @pytest.mark.asyncio
    async def test_submit_known_but_unvalidated(self, cache, validator):
        """Test a registered id absent from the snapshot reports as unvalidated."""
        await cache.query()
        calls = len(validator.calls)

        result = await cache.submit_candidate("5", "Dance")

        assert result.status is SubmissionStatus.KNOWN_UNVALIDATED
        assert result.asset is None
        assert len(validator.calls) == calls

    @pytest.mark.asyncio
    async def test_submit_known_returns_cached_asset(self, cache):
        """Test a validated seed id returns its cached asset."""
        await cache.query()

        result = await cache.submit_candidate("3")

        assert result.status is SubmissionStatus.ALREADY_KNOWN
        assert result.asset.id == "3"
        assert result.asset.category == "Gesture"

    @pytest.mark.asyncio
    async def test_submit_default_category(self, cache):
        """Test submissions without a category land in the community bucket."""
        result = await cache.submit_candidate("42", "  ")

        assert result.asset.category == "Community"

    @pytest.mark.asyncio
    async def test_submission_during_refresh_survives_swap(self, cache, validator, clock):
        """Test an emote submitted mid-refresh is kept in the new snapshot."""
        validator.delay = 0.01
        refresh = asyncio.ensure_future(cache.refresh())
        await asyncio.sleep(0)

        await cache.submit_candidate("42", "Action")
        snapshot = await refresh

        assert snapshot.find("42") is not None
        assert len(snapshot) == 5

    @pytest.mark.asyncio
    async def test_next_refresh_can_drop_submitted_emote(self, cache, validator, clock):
        """Test a full refresh re-derives the set from the marketplace."""
        await cache.submit_candidate("42", "Action")
        del validator.assets["42"]
        clock.advance(301)

        result = await cache.query()

        assert "42" not in {e.id for e in result.emotes}
        assert "42" in cache.registry

    @pytest.mark.asyncio
    async def test_stats(self, cache, clock):
        """Test health statistics."""
        stats = cache.stats()
        assert stats["emote_count"] == 0
        assert stats["database_size"] == 5
        assert stats["last_cache_update"] == "1970-01-01T00:00:00.000Z"

        await cache.query()
        stats = cache.stats()
        assert stats["emote_count"] == 4
        assert stats["refresh_count"] == 1
        assert stats["refreshing"] is False

    @pytest.mark.asyncio
    async def test_metrics_recorded(self, validator, clock):
        """Test refresh and submission metrics."""
        metrics = MetricsCollector("emotes")
        cache = build_cache(validator, clock, metrics=metrics)

        await cache.query()
        await cache.submit_candidate("42")
        await cache.submit_candidate("99")

        registry = metrics.registry
        assert registry.get_sample_value("emote_cache_refresh_total", {"trigger": "stale"}) == 1.0
        assert registry.get_sample_value("emote_cache_size") == 5.0
        assert registry.get_sample_value("emote_submissions_total", {"result": "accepted"}) == 1.0
        assert registry.get_sample_value("emote_submissions_total", {"result": "rejected"}) == 1.0


class TestScenarios:
    """End-to-end scenarios over the cache with a stubbed marketplace."""

    @pytest.mark.asyncio
    async def test_single_resellable_dance_emote(self):
        """Test seed [1/A/Dance] with a for-sale, non-limited marketplace entry."""
        validator = StubValidator(assets={"1": TestDataFactory.asset("1", name="A")})
        cache = build_cache(validator, seed=[("1", "A", "Dance")])

        result = await cache.query()

        assert len(result.emotes) == 1
        assert result.emotes[0].can_resell is True
        assert result.emotes[0].category == "Dance"

    @pytest.mark.asyncio
    async def test_off_sale_submission_rejected(self):
        """Test submitting an off-sale id changes nothing."""
        validator = StubValidator(assets={"1": TestDataFactory.asset("1", name="A")})
        cache = build_cache(validator, seed=[("1", "A", "Dance")])
        await cache.query()
        entries = cache.registry.snapshot()
        snapshot = cache.snapshot

        result = await cache.submit_candidate("2", "Dance")

        assert result.status is SubmissionStatus.REJECTED
        assert cache.registry.snapshot() == entries
        assert cache.snapshot is snapshot
