"""
Catalog domain package.

Holds the candidate registry (seed ids plus submissions) and the data
models shared by the validator, refresh engine and asset cache.
"""

from .models import (
    CacheSnapshot,
    CandidateEntry,
    QueryResult,
    RefreshReport,
    SubmissionResult,
    SubmissionStatus,
    ValidatedAsset,
    ValidationOutcome,
    ValidationResult,
)
from .registry import CandidateRegistry, SEED_CANDIDATES

__all__ = [
    "CacheSnapshot",
    "CandidateEntry",
    "CandidateRegistry",
    "QueryResult",
    "RefreshReport",
    "SEED_CANDIDATES",
    "SubmissionResult",
    "SubmissionStatus",
    "ValidatedAsset",
    "ValidationOutcome",
    "ValidationResult",
]
