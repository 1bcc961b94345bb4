"""Route source interface consumed by the fill orchestrator."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol


@dataclass(frozen=True)
class Route:
    """Best-effort swap route for an intent's input amount.

    Attributes:
        target: Contract to call for the swap
        calldata: Encoded swap call
        amount_out: Estimated output in tokenOut base units
        token_out_to_native_rate: Native-asset wei per tokenOut base unit
    """

    target: str
    calldata: str
    amount_out: int
    token_out_to_native_rate: Decimal


class RouteSolver(Protocol):
    """Protocol for liquidity sources.

    Implementations search for a route and return ``None`` when no viable
    route exists. Routing internals are opaque to the caller.
    """

    def solve(self, token_in: str, token_out: str, amount_in: int) -> Route | None:
        """Find a route swapping ``amount_in`` of ``token_in`` into ``token_out``.

        Args:
            token_in: Input token address
            token_out: Output token address
            amount_in: Input amount in base units

        Returns:
            Route, or None if no viable route exists
        """
        ...
