"""
Test helper stubs and factory methods for the Emote service tests.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Set

from service_emotes.app.catalog.models import (
    EMOTE_ASSET_TYPE_ID,
    CandidateEntry,
    ValidatedAsset,
    ValidationOutcome,
    ValidationResult,
)


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class TestDataFactory:
    """Factory for creating test data."""

    __test__ = False

    @staticmethod
    def product_info(
        name: str = "Test Emote",
        asset_type_id: int = EMOTE_ASSET_TYPE_ID,
        is_for_sale: bool = True,
        is_limited: bool = False,
        is_limited_unique: bool = False,
        price: Optional[int] = 100,
        creator: Optional[Dict[str, Any]] = None,
        description: Optional[str] = "An emote",
    ) -> Dict[str, Any]:
        """Marketplace product-info payload."""
        return {
            "Name": name,
            "Description": description,
            "AssetTypeId": asset_type_id,
            "IsForSale": is_for_sale,
            "IsLimited": is_limited,
            "IsLimitedUnique": is_limited_unique,
            "PriceInRobux": price,
            "Creator": creator if creator is not None else {"Name": "Roblox", "CreatorType": "User"},
        }

    @staticmethod
    def asset(
        asset_id: str,
        name: str = "Test Emote",
        category: Optional[str] = None,
        is_for_sale: bool = True,
        can_resell: bool = True,
        price: int = 100,
    ) -> ValidatedAsset:
        """Validated asset as the marketplace validator would build it."""
        return ValidatedAsset(
            id=asset_id,
            name=name,
            description="",
            price=price,
            creator_name="Roblox",
            creator_type="Group",
            is_for_sale=is_for_sale,
            can_resell=can_resell,
            asset_type=EMOTE_ASSET_TYPE_ID,
            last_validated_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
            category=category,
        )

    @staticmethod
    def candidates(*rows: Iterable[str]) -> List[CandidateEntry]:
        """Build candidate entries from ``(id, name, category)`` tuples."""
        return [CandidateEntry(*row) for row in rows]


@dataclass
class StubValidator:
    """In-memory stand-in for the marketplace validator.

    ``assets`` maps ids to the asset returned on acceptance; ids listed in
    ``unavailable`` behave like an unreachable marketplace and anything else is
    rejected. ``delay`` makes each call yield to the event loop.
    """

    assets: Dict[str, ValidatedAsset] = field(default_factory=dict)
    unavailable: Set[str] = field(default_factory=set)
    failing: Set[str] = field(default_factory=set)
    delay: float = 0.0
    calls: List[str] = field(default_factory=list)
    in_flight: int = 0
    max_in_flight: int = 0

    async def check(self, asset_id: str) -> ValidationResult:
        self.calls.append(asset_id)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            if asset_id in self.failing:
                raise RuntimeError(f"validator exploded for {asset_id}")
            if asset_id in self.unavailable:
                return ValidationResult(asset_id, ValidationOutcome.UNAVAILABLE, reason="timeout")
            asset = self.assets.get(asset_id)
            if asset is None:
                return ValidationResult(asset_id, ValidationOutcome.REJECTED, reason="not for sale")
            return ValidationResult(asset_id, ValidationOutcome.ACCEPTED, asset=asset)
        finally:
            self.in_flight -= 1

    async def validate(self, asset_id: str) -> Optional[ValidatedAsset]:
        return (await self.check(asset_id)).asset

    async def close(self) -> None:
        return None
