"""
Catalog data models for the Emote service.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, Field


EMOTE_ASSET_TYPE_ID = 61


class ValidationOutcome(str, Enum):
    """Outcome of a single marketplace validation."""
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class CandidateEntry:
    """A known asset id that may or may not currently be a valid emote."""
    id: str
    name: str
    category: str


@dataclass(frozen=True)
class ValidatedAsset:
    """Candidate confirmed against the marketplace and enriched with its metadata."""
    id: str
    name: str
    description: str
    price: int
    creator_name: str
    creator_type: str
    is_for_sale: bool
    can_resell: bool
    asset_type: int
    last_validated_at: datetime
    category: Optional[str] = None

    def with_category(self, category: str) -> "ValidatedAsset":
        return replace(self, category=category)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize using the field names game clients expect."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "price": self.price,
            "creatorName": self.creator_name,
            "creatorType": self.creator_type,
            "isForSale": self.is_for_sale,
            "canResell": self.can_resell,
            "assetType": self.asset_type,
            "lastValidatedAt": format_timestamp(self.last_validated_at),
            "category": self.category,
        }


@dataclass(frozen=True)
class ValidationResult:
    """Validation outcome plus the asset when accepted."""
    asset_id: str
    outcome: ValidationOutcome
    asset: Optional[ValidatedAsset] = None
    reason: Optional[str] = None

    @property
    def accepted(self) -> bool:
        return self.outcome is ValidationOutcome.ACCEPTED


@dataclass(frozen=True)
class CacheSnapshot:
    """Complete result of one refresh pass. Never mutated; replaced wholesale."""
    assets: Tuple[ValidatedAsset, ...] = ()
    built_at: float = 0.0

    def __len__(self) -> int:
        return len(self.assets)

    def find(self, asset_id: str) -> Optional[ValidatedAsset]:
        for asset in self.assets:
            if asset.id == asset_id:
                return asset
        return None

    def extended(self, asset: ValidatedAsset) -> "CacheSnapshot":
        """Return a snapshot with ``asset`` appended and the same build time."""
        return CacheSnapshot(assets=self.assets + (asset,), built_at=self.built_at)


@dataclass
class RefreshReport:
    """Summary of a refresh pass."""
    candidates: int = 0
    accepted: int = 0
    rejected: int = 0
    unavailable: int = 0
    batches: int = 0
    duration_seconds: float = 0.0

    def record(self, outcome: ValidationOutcome) -> None:
        if outcome is ValidationOutcome.ACCEPTED:
            self.accepted += 1
        elif outcome is ValidationOutcome.REJECTED:
            self.rejected += 1
        else:
            self.unavailable += 1


@dataclass(frozen=True)
class QueryResult:
    """Filtered view over the current snapshot."""
    emotes: Tuple[ValidatedAsset, ...]
    cached: int
    last_updated: float

    @property
    def total(self) -> int:
        return len(self.emotes)


class SubmissionStatus(str, Enum):
    """Result of a candidate submission."""
    ACCEPTED = "accepted"
    ALREADY_KNOWN = "already_known"
    KNOWN_UNVALIDATED = "known_unvalidated"
    REJECTED = "rejected"


@dataclass(frozen=True)
class SubmissionResult:
    """Submission outcome; ``asset`` is set for accepted and cached known ids."""
    status: SubmissionStatus
    asset_id: str
    asset: Optional[ValidatedAsset] = None
    reason: Optional[str] = None


class SubmitEmoteRequest(BaseModel):
    """Request body for emote submission."""
    emote_id: Any = Field(None, alias="emoteId", description="Marketplace asset id")
    submitted_by: Optional[str] = Field(None, alias="submittedBy", description="Free-form submitter name")
    category: Optional[str] = Field(None, description="Catalog category for the emote")

    model_config = {"populate_by_name": True}


def format_timestamp(value: Any) -> str:
    """Format an epoch timestamp or datetime as ISO-8601 UTC with millisecond precision."""
    if isinstance(value, datetime):
        moment = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    else:
        moment = datetime.fromtimestamp(float(value), tz=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")
