"""
Validated emote cache.
"""

import asyncio
import time
from typing import Any, Callable, Dict, Optional, TYPE_CHECKING

from shared.logging import get_logger
from ..catalog.models import (
    CacheSnapshot,
    CandidateEntry,
    QueryResult,
    SubmissionResult,
    SubmissionStatus,
    format_timestamp,
)
from ..catalog.registry import CandidateRegistry
from .refresh_engine import BatchRefreshEngine

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from ..adapters.marketplace_client import MarketplaceValidator
    from shared.metrics import MetricsCollector


DEFAULT_TTL_SECONDS = 300.0
DEFAULT_QUERY_LIMIT = 50
DEFAULT_SUBMISSION_CATEGORY = "Community"


class AssetCache:
    """Holds the current validated snapshot and refreshes it when stale.

    Readers always get a complete snapshot: a refresh builds the replacement
    off to the side and swaps the reference once it is assembled. Concurrent
    readers that find the cache stale share a single in-flight refresh.
    """

    def __init__(
        self,
        registry: CandidateRegistry,
        engine: BatchRefreshEngine,
        *,
        validator: Optional["MarketplaceValidator"] = None,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        default_limit: int = DEFAULT_QUERY_LIMIT,
        clock: Callable[[], float] = time.time,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.registry = registry
        self.engine = engine
        self.validator = validator if validator is not None else engine.validator
        self.ttl_seconds = ttl_seconds
        self.default_limit = default_limit
        self.metrics = metrics
        self.logger = get_logger("emotes.asset_cache")
        self._clock = clock
        self._snapshot = CacheSnapshot()
        self._refresh_task: Optional[asyncio.Task] = None
        self._refresh_count = 0

    @property
    def snapshot(self) -> CacheSnapshot:
        return self._snapshot

    @property
    def last_refresh(self) -> float:
        return self._snapshot.built_at

    @property
    def refreshing(self) -> bool:
        return self._refresh_task is not None and not self._refresh_task.done()

    @property
    def refresh_count(self) -> int:
        return self._refresh_count

    def is_stale(self) -> bool:
        """Empty, or older than the TTL."""
        snapshot = self._snapshot
        if not snapshot.assets:
            return True
        return self._clock() - snapshot.built_at > self.ttl_seconds

    async def query(
        self,
        category: Optional[str] = None,
        limit: Optional[int] = None,
        resellable_only: bool = False,
    ) -> QueryResult:
        """Filter the snapshot by category, then resellability, then truncate."""
        if self.is_stale():
            await self.refresh(trigger="stale")

        snapshot = self._snapshot
        emotes = snapshot.assets

        if category:
            wanted = category.lower()
            emotes = tuple(e for e in emotes if (e.category or "").lower() == wanted)

        if resellable_only:
            emotes = tuple(e for e in emotes if e.can_resell)

        if limit is None:
            limit = self.default_limit
        emotes = emotes[:max(0, limit)]

        return QueryResult(emotes=emotes, cached=len(snapshot), last_updated=snapshot.built_at)

    async def refresh(self, trigger: str = "manual") -> CacheSnapshot:
        """Run a full refresh, or join the one already in flight."""
        task = self._refresh_task
        if task is None or task.done():
            task = asyncio.get_running_loop().create_task(self._run_refresh(trigger))
            self._refresh_task = task
        else:
            self.logger.debug("Joining in-flight catalog refresh", trigger=trigger)

        # Shielded so a cancelled request does not abort the shared pass
        return await asyncio.shield(task)

    async def close(self) -> None:
        """Cancel an in-flight refresh and wait for it to unwind."""
        task = self._refresh_task
        if task is None or task.done():
            return
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        self.logger.info("Cancelled in-flight catalog refresh")

    async def _run_refresh(self, trigger: str) -> CacheSnapshot:
        candidates = self.registry.snapshot()
        borrowed_ids = {entry.id for entry in candidates}
        started = time.perf_counter()

        assets, report = await self.engine.refresh_with_report(candidates)

        # Keep anything submitted while the pass was running
        carried = [a for a in self._snapshot.assets if a.id not in borrowed_ids]
        snapshot = CacheSnapshot(assets=tuple(assets) + tuple(carried), built_at=self._clock())
        self._snapshot = snapshot
        self._refresh_count += 1

        if self.metrics:
            self.metrics.increment_counter("emote_cache_refresh_total", trigger=trigger)
            self.metrics.observe_histogram("emote_cache_refresh_duration_seconds", time.perf_counter() - started)
            self.metrics.set_gauge("emote_cache_size", len(snapshot))

        self.logger.info(
            "Emote cache updated",
            trigger=trigger,
            valid_emotes=len(snapshot),
            rejected=report.rejected,
            unavailable=report.unavailable,
        )
        return snapshot

    async def warm(self) -> None:
        """Initial load; failures are logged and left for the next reader to retry."""
        try:
            snapshot = await self.refresh(trigger="startup")
            self.logger.info("Service ready", validated_emotes=len(snapshot))
        except Exception as exc:
            self.logger.error("Error during initial cache load", error=str(exc), exc_info=True)

    async def submit_candidate(self, asset_id: str, category: Optional[str] = None) -> SubmissionResult:
        """Register and validate a new candidate id.

        Known ids never touch the registry. A new id is validated once; on
        success it is appended to both the registry and the current snapshot
        without moving the refresh timestamp.
        """
        category = (category or "").strip() or DEFAULT_SUBMISSION_CATEGORY

        if asset_id in self.registry:
            return self._record_submission(self._known(asset_id))

        result = await self.validator.check(asset_id)
        if not result.accepted or result.asset is None:
            return self._record_submission(SubmissionResult(
                status=SubmissionStatus.REJECTED,
                asset_id=asset_id,
                reason=result.reason,
            ))

        asset = result.asset.with_category(category)
        if not self.registry.add(CandidateEntry(id=asset_id, name=asset.name, category=category)):
            # Lost a race with a concurrent submission of the same id
            return self._record_submission(self._known(asset_id))

        self._snapshot = self._snapshot.extended(asset)
        if self.metrics:
            self.metrics.set_gauge("emote_cache_size", len(self._snapshot))

        self.logger.info("Emote submitted", emote_id=asset_id, category=category, name=asset.name)
        return self._record_submission(SubmissionResult(
            status=SubmissionStatus.ACCEPTED,
            asset_id=asset_id,
            asset=asset,
        ))

    def _known(self, asset_id: str) -> SubmissionResult:
        asset = self._snapshot.find(asset_id)
        if asset is None:
            return SubmissionResult(status=SubmissionStatus.KNOWN_UNVALIDATED, asset_id=asset_id)
        return SubmissionResult(status=SubmissionStatus.ALREADY_KNOWN, asset_id=asset_id, asset=asset)

    def _record_submission(self, result: SubmissionResult) -> SubmissionResult:
        if self.metrics:
            self.metrics.increment_counter("emote_submissions_total", result=result.status.value)
        return result

    def stats(self) -> Dict[str, Any]:
        """Cache statistics for health reporting."""
        return {
            "emote_count": len(self._snapshot),
            "database_size": len(self.registry),
            "last_cache_update": format_timestamp(self._snapshot.built_at),
            "refreshing": self.refreshing,
            "refresh_count": self._refresh_count,
        }
