"""Fill attempt result types.

A fill job never signals its outcome by raising. Void outcomes (nothing to do,
or not worth doing) end the attempt; failures carry a kind that tells the
queue whether to spend another attempt.
"""

from dataclasses import dataclass
from enum import Enum


class Outcome(Enum):
    """What a completed attempt achieved."""

    ALREADY_FILLED = "already_filled"
    RELAYED = "relayed"
    AUTHORIZATION_REQUESTED = "authorization_requested"
    VOID = "void"


class VoidReason(Enum):
    """Why an attempt ended without producing a fill."""

    WRAP_UNWRAP = "wrap_unwrap"
    EXPIRED = "expired"
    UNSUPPORTED_MATCHMAKER = "unsupported_matchmaker"
    NO_ROUTE = "no_route"
    SOLUTION_INSUFFICIENT = "solution_insufficient"
    INSUFFICIENT_PROFIT = "insufficient_profit"
    AUTHORIZATION_EXPIRED = "authorization_expired"
    HANDSHAKE_EXPIRED = "handshake_expired"


class FailureKind(Enum):
    """Whether a failed attempt may be retried."""

    RETRYABLE = "retryable"
    TERMINAL = "terminal"


@dataclass(frozen=True)
class FillResult:
    """Result of one fill attempt.

    Attributes:
        outcome: What the attempt achieved, or None if it failed
        void_reason: Set when ``outcome`` is VOID
        failure: Failure kind, or None if the attempt completed
        detail: Human-readable context for logs
    """

    outcome: Outcome | None
    void_reason: VoidReason | None = None
    failure: FailureKind | None = None
    detail: str | None = None

    @property
    def is_success(self) -> bool:
        return self.failure is None

    @property
    def is_retryable(self) -> bool:
        return self.failure == FailureKind.RETRYABLE

    @classmethod
    def completed(cls, outcome: Outcome, detail: str | None = None) -> "FillResult":
        return cls(outcome=outcome, detail=detail)

    @classmethod
    def void(cls, reason: VoidReason, detail: str | None = None) -> "FillResult":
        return cls(outcome=Outcome.VOID, void_reason=reason, detail=detail)

    @classmethod
    def retryable(cls, detail: str) -> "FillResult":
        return cls(outcome=None, failure=FailureKind.RETRYABLE, detail=detail)

    @classmethod
    def terminal(cls, detail: str) -> "FillResult":
        return cls(outcome=None, failure=FailureKind.TERMINAL, detail=detail)
