"""
Batch refresh engine for the emote catalog.
"""

import asyncio
import time
from typing import Awaitable, Callable, List, Sequence, Tuple, TYPE_CHECKING

from shared.logging import get_logger
from ..catalog.models import (
    CandidateEntry,
    RefreshReport,
    ValidatedAsset,
    ValidationOutcome,
    ValidationResult,
)

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from ..adapters.marketplace_client import MarketplaceValidator


DEFAULT_BATCH_SIZE = 5
DEFAULT_BATCH_DELAY_SECONDS = 1.0


class BatchRefreshEngine:
    """Validates a candidate list in paced, concurrent batches.

    Each batch fans out one validation per candidate and waits for all of them
    before sleeping ``batch_delay`` seconds and moving on. No sleep follows the
    last batch.
    """

    def __init__(
        self,
        validator: "MarketplaceValidator",
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
        batch_delay: float = DEFAULT_BATCH_DELAY_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.validator = validator
        self.batch_size = batch_size
        self.batch_delay = max(0.0, batch_delay)
        self._sleep = sleep
        self.logger = get_logger("emotes.refresh_engine")

    def _batches(self, candidates: Sequence[CandidateEntry]) -> List[Sequence[CandidateEntry]]:
        return [
            candidates[start:start + self.batch_size]
            for start in range(0, len(candidates), self.batch_size)
        ]

    async def refresh(self, candidates: Sequence[CandidateEntry]) -> List[ValidatedAsset]:
        """Validate every candidate and return the accepted assets."""
        assets, _ = await self.refresh_with_report(candidates)
        return assets

    async def refresh_with_report(
        self,
        candidates: Sequence[CandidateEntry],
    ) -> Tuple[List[ValidatedAsset], RefreshReport]:
        """Validate every candidate; return accepted assets plus a pass summary."""
        start = time.perf_counter()
        candidates = tuple(candidates)
        batches = self._batches(candidates)
        report = RefreshReport(candidates=len(candidates), batches=len(batches))
        assets: List[ValidatedAsset] = []

        self.logger.info(
            "Refreshing emote catalog",
            candidates=len(candidates),
            batches=len(batches),
            batch_size=self.batch_size,
        )

        for index, batch in enumerate(batches):
            results = await asyncio.gather(
                *(self._validate_entry(entry) for entry in batch),
                return_exceptions=True,
            )

            for entry, outcome in zip(batch, results):
                if isinstance(outcome, BaseException):
                    if not isinstance(outcome, Exception):
                        raise outcome
                    self.logger.error(
                        "Emote validation task failed",
                        emote_id=entry.id,
                        error=str(outcome),
                    )
                    report.record(ValidationOutcome.UNAVAILABLE)
                    continue

                report.record(outcome.outcome)
                if outcome.asset is not None:
                    assets.append(outcome.asset.with_category(entry.category))

            if index < len(batches) - 1 and self.batch_delay > 0:
                await self._sleep(self.batch_delay)

        report.duration_seconds = time.perf_counter() - start
        self.logger.info(
            "Emote catalog refresh completed",
            candidates=report.candidates,
            accepted=report.accepted,
            rejected=report.rejected,
            unavailable=report.unavailable,
            duration_ms=round(report.duration_seconds * 1000, 2),
        )
        if report.candidates and report.unavailable == report.candidates:
            self.logger.warning(
                "Marketplace unreachable for every candidate; catalog will be empty",
                candidates=report.candidates,
            )
        return assets, report

    async def _validate_entry(self, entry: CandidateEntry) -> ValidationResult:
        return await self.validator.check(entry.id)
