"""Time-decay pricing for intents.

An intent's required output starts at ``endAmountOut`` plus a
``startAmountBps`` premium and decays toward ``endAmountOut`` at the deadline.
All arithmetic is integer, in the token's base units, matching on-chain math.
"""

from __future__ import annotations

from solver.constants import BPS_BASE
from solver.models.intent import Intent


class IntentExpired(ValueError):
    """The intent's deadline has been reached."""

    def __init__(self, deadline: int, now: int) -> None:
        super().__init__(f"Intent expired (now={now}, deadline={deadline})")
        self.deadline = deadline
        self.now = now


def is_expired(intent: Intent, now: int) -> bool:
    """True once ``now`` has reached the intent's deadline."""
    return intent.deadline <= now


def start_amount_out(intent: Intent) -> int:
    """Most generous required output: ``endAmountOut * (1 + startAmountBps / 10000)``."""
    end_amount = intent.end_amount_out_int
    return end_amount + end_amount * intent.start_amount_bps // BPS_BASE


def required_output(intent: Intent, at_timestamp: int, *, now: int | None = None) -> int:
    """Minimum output a fill must deliver if mined at ``at_timestamp``.

    Uses the present-moment form of the decay curve:

        minOut = startAmount - (startAmount - endAmountOut) // (deadline - at_timestamp)

    Once ``at_timestamp`` reaches the deadline the floor is ``endAmountOut``.

    Args:
        intent: The intent being priced
        at_timestamp: Estimated timestamp of the block the fill lands in
        now: Current time; defaults to ``at_timestamp``

    Returns:
        Required output amount in ``tokenOut`` base units

    Raises:
        IntentExpired: If ``now`` is at or past the deadline
    """
    now = at_timestamp if now is None else now
    if is_expired(intent, now):
        raise IntentExpired(intent.deadline, now)

    start_amount = start_amount_out(intent)
    end_amount = intent.end_amount_out_int

    remaining = intent.deadline - at_timestamp
    if remaining <= 0:
        return end_amount

    return start_amount - (start_amount - end_amount) // remaining
