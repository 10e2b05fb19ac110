"""
Emote Catalog service.
"""

import asyncio
import re
import time
from typing import Any, Callable, Dict, Optional

from fastapi import Depends, Request, Response
from fastapi.responses import JSONResponse

from shared.base_service import BaseService
from shared.config import ServiceConfig
from shared.errors import EmoteRejectedError, InvalidEmoteIdError, RateLimitError
from .adapters.marketplace_client import MarketplaceValidator
from .caching.asset_cache import AssetCache
from .caching.refresh_engine import BatchRefreshEngine
from .catalog.models import SubmissionStatus, SubmitEmoteRequest, format_timestamp
from .catalog.registry import CandidateRegistry
from .ratelimit.fixed_window import AdmissionDecision, FixedWindowRateLimiter, RateLimitMiddleware


EMOTE_ID_PATTERN = re.compile(r"[0-9]+")


class EmoteService(BaseService):
    """Emote catalog service implementation."""

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        *,
        validator: Optional[MarketplaceValidator] = None,
        registry: Optional[CandidateRegistry] = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Any] = asyncio.sleep,
    ):
        super().__init__("emotes", config)

        self.validator = validator or MarketplaceValidator(
            self.config.marketplace_url,
            timeout=self.config.marketplace_timeout_seconds,
            user_agent=self.config.marketplace_user_agent,
            metrics=self.metrics,
        )
        self.registry = registry if registry is not None else CandidateRegistry()
        self.refresh_engine = BatchRefreshEngine(
            self.validator,
            batch_size=self.config.refresh_batch_size,
            batch_delay=self.config.refresh_batch_delay_seconds,
            sleep=sleep,
        )
        self.cache = AssetCache(
            self.registry,
            self.refresh_engine,
            ttl_seconds=self.config.cache_ttl_seconds,
            default_limit=self.config.default_query_limit,
            clock=clock,
            metrics=self.metrics,
        )
        self.rate_limiter = FixedWindowRateLimiter(
            self.config.rate_limit_requests,
            self.config.rate_limit_window_seconds,
            clock=clock,
            metrics=self.metrics,
        )
        self.rate_limit_middleware = RateLimitMiddleware(self.rate_limiter)
        self._background_tasks: Dict[str, asyncio.Task] = {}

        self._setup_emote_routes()

        # Expose service instance via app state for introspection/testing
        self.app.state.emote_service = self

    async def startup(self):
        """Warm the catalog and start limiter maintenance."""
        self.logger.info(
            "Emote Discovery Service starting",
            port=self.config.port,
            database_size=len(self.registry),
        )
        loop = asyncio.get_running_loop()
        if self.config.warm_cache_on_startup:
            self._background_tasks["warm"] = loop.create_task(self.cache.warm())
        self._background_tasks["rate_limit_sweep"] = loop.create_task(
            self.rate_limiter.run_sweeper(self.config.rate_limit_sweep_interval_seconds)
        )

    async def shutdown(self):
        """Stop background tasks and close the marketplace client."""
        for task in self._background_tasks.values():
            task.cancel()
        await asyncio.gather(*self._background_tasks.values(), return_exceptions=True)
        self._background_tasks.clear()
        await self.cache.close()
        await self.validator.close()
        self.logger.info("Emote Discovery Service stopped")

    async def _health_details(self) -> Dict[str, Any]:
        stats = self.cache.stats()
        return {
            "emote_count": stats["emote_count"],
            "database_size": stats["database_size"],
            "last_cache_update": stats["last_cache_update"],
        }

    def _enforce_rate_limit(self, request: Request, response: Response) -> AdmissionDecision:
        """Admit the caller or raise a 429."""
        decision = self.rate_limit_middleware.check_request(request)
        if not decision.allowed:
            raise RateLimitError(retry_after=decision.reset_in_seconds, headers=decision.headers())

        response.headers.update(decision.headers())
        return decision

    def _parse_limit(self, raw: Optional[str]) -> int:
        """Non-numeric limits fall back to the default."""
        if raw is None:
            return self.config.default_query_limit
        try:
            return int(raw.strip())
        except ValueError:
            self.logger.debug("Ignoring non-numeric limit", limit=raw)
            return self.config.default_query_limit

    def _normalize_emote_id(self, value: Any) -> str:
        if isinstance(value, int) and not isinstance(value, bool):
            value = str(value)
        if not isinstance(value, str) or not EMOTE_ID_PATTERN.fullmatch(value):
            raise InvalidEmoteIdError()
        return value

    def _setup_emote_routes(self):
        """Set up catalog routes."""
        rate_limited = Depends(self._enforce_rate_limit)

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "Roblox Emote Discovery API",
                "version": self.version,
                "endpoints": {
                    "GET /api/emotes": "Get all emotes with optional filters",
                    "POST /api/submit-emote": "Submit a new emote for validation",
                    "GET /health": "Health check",
                },
            }

        @self.app.get("/api/emotes", dependencies=[rate_limited])
        async def get_emotes(
            category: Optional[str] = None,
            limit: Optional[str] = None,
            resellable_only: Optional[str] = None,
        ):
            """Return validated emotes, refreshing the catalog first when stale."""
            try:
                result = await self.cache.query(
                    category=category or None,
                    limit=self._parse_limit(limit),
                    resellable_only=(resellable_only or "").lower() == "true",
                )
            except Exception as e:
                self.logger.error("Error serving emotes", error=str(e), exc_info=True)
                self.metrics.record_error("EMOTE_QUERY_FAILED")
                return JSONResponse(
                    status_code=500,
                    content={
                        "success": False,
                        "error": "Internal server error",
                        "emotes": [],
                        "message": "Service temporarily unavailable",
                    },
                )

            self.logger.info("Returning emotes to client", returned=result.total, cached=result.cached)
            return {
                "success": True,
                "emotes": [emote.to_dict() for emote in result.emotes],
                "total": result.total,
                "cached": result.cached,
                "lastUpdated": format_timestamp(result.last_updated),
                "filters_applied": {
                    "category": category,
                    "limit": limit if limit is not None else self.config.default_query_limit,
                    "resellable_only": resellable_only,
                },
            }

        @self.app.post("/api/submit-emote", dependencies=[rate_limited])
        async def submit_emote(payload: SubmitEmoteRequest):
            """Validate a user-submitted emote id and add it to the catalog."""
            emote_id = self._normalize_emote_id(payload.emote_id)
            self.logger.info(
                "Emote submission received",
                emote_id=emote_id,
                submitted_by=payload.submitted_by or "anonymous",
                category=payload.category,
            )

            result = await self.cache.submit_candidate(emote_id, payload.category)

            if result.status is SubmissionStatus.REJECTED:
                raise EmoteRejectedError(details={"emoteId": emote_id})

            if result.status is SubmissionStatus.ACCEPTED:
                return {
                    "success": True,
                    "emote": result.asset.to_dict(),
                    "message": "Emote validated and added to catalog",
                }

            if result.status is SubmissionStatus.ALREADY_KNOWN:
                message = "Emote already exists in database"
            else:
                message = "Emote already known but not currently validated"
            return {
                "success": True,
                "message": message,
                "emote": result.asset.to_dict() if result.asset else None,
            }


def create_app():
    """Create emote service application."""
    service = EmoteService()
    return service.app


def main():
    service = EmoteService()
    service.run()


if __name__ == "__main__":
    main()
