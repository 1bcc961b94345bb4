"""Pydantic models for Memswap data structures."""

from solver.models.intent import Authorization, Intent, Solution
from solver.models.jobs import (
    AuthorizationSubmission,
    CachedSolution,
    FillJob,
    IntentSubmission,
    SolutionSubmission,
)
from solver.models.types import Address, Bps, Bytes, Hash32, Uint32, Uint128

__all__ = [
    # Types
    "Address",
    "Bps",
    "Bytes",
    "Hash32",
    "Uint32",
    "Uint128",
    # Protocol models
    "Authorization",
    "Intent",
    "Solution",
    # Queue and API payloads
    "AuthorizationSubmission",
    "CachedSolution",
    "FillJob",
    "IntentSubmission",
    "SolutionSubmission",
]
