"""
Marketplace client used to validate emote candidates.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional, TYPE_CHECKING

import httpx

from shared.logging import get_logger
from ..catalog.models import (
    EMOTE_ASSET_TYPE_ID,
    ValidatedAsset,
    ValidationOutcome,
    ValidationResult,
)

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


DEFAULT_MARKETPLACE_URL = "https://api.roblox.com/marketplace/productinfo"
DEFAULT_TIMEOUT_SECONDS = 5.0
DEFAULT_USER_AGENT = "EmoteDiscoveryService/1.0"


class MarketplaceValidator:
    """Checks candidate ids against the marketplace product-info endpoint.

    Holds no catalog state. Every failure mode (timeout, transport error,
    non-2xx, unreadable body, wrong asset type, not for sale) comes back as an
    absent asset; ``check`` additionally says whether the marketplace rejected
    the asset or could not be reached.
    """

    def __init__(
        self,
        product_info_url: str = DEFAULT_MARKETPLACE_URL,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        user_agent: str = DEFAULT_USER_AGENT,
        client: Optional[httpx.AsyncClient] = None,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.product_info_url = product_info_url
        self.timeout = timeout
        self.user_agent = user_agent
        self.metrics = metrics
        self.logger = get_logger("emotes.marketplace")
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        """Get the shared HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                headers={"User-Agent": self.user_agent},
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def validate(self, asset_id: str) -> Optional[ValidatedAsset]:
        """Return the enriched asset, or None when it is not a purchasable emote."""
        result = await self.check(asset_id)
        return result.asset

    async def check(self, asset_id: str) -> ValidationResult:
        """Validate ``asset_id`` and classify the outcome."""
        result = await self._check(asset_id)
        self._record(result)
        return result

    async def _check(self, asset_id: str) -> ValidationResult:
        try:
            response = await self._get_client().get(
                self.product_info_url,
                params={"assetId": asset_id},
                headers={"User-Agent": self.user_agent},
                timeout=self.timeout,
            )
        except httpx.TimeoutException:
            return self._unavailable(asset_id, "timeout")
        except httpx.HTTPError as exc:
            return self._unavailable(asset_id, f"transport error: {exc.__class__.__name__}")

        if not response.is_success:
            return self._unavailable(asset_id, f"HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError:
            return self._unavailable(asset_id, "malformed response body")

        if not isinstance(data, dict):
            return self._unavailable(asset_id, "malformed response body")

        if data.get("AssetTypeId") != EMOTE_ASSET_TYPE_ID:
            return ValidationResult(
                asset_id, ValidationOutcome.REJECTED,
                reason=f"asset type {data.get('AssetTypeId')!r} is not an emote",
            )
        if not data.get("IsForSale"):
            return ValidationResult(asset_id, ValidationOutcome.REJECTED, reason="not for sale")

        return ValidationResult(asset_id, ValidationOutcome.ACCEPTED, asset=self._enrich(asset_id, data))

    def _enrich(self, asset_id: str, data: Dict[str, Any]) -> ValidatedAsset:
        """Map product info onto a ValidatedAsset, filling in defaults."""
        creator = data.get("Creator") or {}
        if not isinstance(creator, dict):
            creator = {}
        is_for_sale = bool(data.get("IsForSale"))
        limited = bool(data.get("IsLimited")) or bool(data.get("IsLimitedUnique"))

        return ValidatedAsset(
            id=asset_id,
            name=data.get("Name") or "Unknown Emote",
            description=data.get("Description") or "",
            price=_coerce_price(data.get("PriceInRobux")),
            creator_name=creator.get("Name") or "Roblox",
            creator_type=creator.get("CreatorType") or "Group",
            is_for_sale=is_for_sale,
            can_resell=is_for_sale and not limited,
            asset_type=EMOTE_ASSET_TYPE_ID,
            last_validated_at=datetime.now(timezone.utc),
        )

    def _unavailable(self, asset_id: str, reason: str) -> ValidationResult:
        return ValidationResult(asset_id, ValidationOutcome.UNAVAILABLE, reason=reason)

    def _record(self, result: ValidationResult) -> None:
        if result.outcome is ValidationOutcome.UNAVAILABLE:
            self.logger.warning("Marketplace unavailable for emote", emote_id=result.asset_id, reason=result.reason)
        elif result.outcome is ValidationOutcome.REJECTED:
            self.logger.info("Emote rejected by marketplace", emote_id=result.asset_id, reason=result.reason)
        else:
            self.logger.debug("Emote validated", emote_id=result.asset_id)

        if self.metrics:
            self.metrics.increment_counter("emote_validations_total", outcome=result.outcome.value)


def _coerce_price(value: Any) -> int:
    try:
        price = int(value or 0)
    except (TypeError, ValueError):
        return 0
    return max(0, price)
