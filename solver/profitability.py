"""Solver profitability gate.

A route must deliver at least the intent's current floor price, and the
surplus above that floor, valued in the native asset, must cover gas with a
margin to spare. Both rejections end the attempt without retrying.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from solver.constants import DEFAULT_MIN_NET_PROFIT_WEI, WEI_PER_ETHER
from solver.routing.route import Route


class ProfitError(Enum):
    """Why a route was rejected."""

    SOLUTION_INSUFFICIENT = "solution_insufficient"
    INSUFFICIENT_PROFIT = "insufficient_profit"


@dataclass(frozen=True)
class ProfitResult:
    """Outcome of evaluating a route against the floor price and gas cost.

    Attributes:
        gross_profit_wei: Surplus over the floor, in native wei (None if not computed)
        gas_cost_wei: Maximum gas spend for the fill
        error: Rejection reason, or None if accepted
    """

    gross_profit_wei: int | None
    gas_cost_wei: int
    error: ProfitError | None = None

    @property
    def is_accepted(self) -> bool:
        return self.error is None

    @property
    def net_profit_wei(self) -> int | None:
        if self.gross_profit_wei is None:
            return None
        return self.gross_profit_wei - self.gas_cost_wei


def evaluate_route(
    route: Route,
    min_out: int,
    base_fee: int,
    priority_fee: int,
    gas_limit: int,
    min_net_profit_wei: int = DEFAULT_MIN_NET_PROFIT_WEI,
) -> ProfitResult:
    """Evaluate a candidate route.

    gross = (amountOut - minOut) * tokenOutToNativeRate
    net = gross - (baseFee + priorityFee) * gasLimit

    Args:
        route: Candidate route from the route source
        min_out: Required output from the pricing engine
        base_fee: Pending block base fee (wei)
        priority_fee: Priority fee (wei)
        gas_limit: Gas limit of the fill transaction
        min_net_profit_wei: Net profit floor

    Returns:
        ProfitResult; rejected when the route is below the floor or net
        profit is below ``min_net_profit_wei``
    """
    gas_cost = (base_fee + priority_fee) * gas_limit

    if route.amount_out < min_out:
        return ProfitResult(
            gross_profit_wei=None,
            gas_cost_wei=gas_cost,
            error=ProfitError.SOLUTION_INSUFFICIENT,
        )

    # Rate scaled to 1e18 fixed point so the product stays integer
    rate = int(route.token_out_to_native_rate * WEI_PER_ETHER)
    gross = (route.amount_out - min_out) * rate // WEI_PER_ETHER

    if gross - gas_cost < min_net_profit_wei:
        return ProfitResult(
            gross_profit_wei=gross,
            gas_cost_wei=gas_cost,
            error=ProfitError.INSUFFICIENT_PROFIT,
        )

    return ProfitResult(gross_profit_wei=gross, gas_cost_wei=gas_cost)


def accept(
    route: Route,
    min_out: int,
    base_fee: int,
    priority_fee: int,
    gas_limit: int,
    min_net_profit_wei: int = DEFAULT_MIN_NET_PROFIT_WEI,
) -> bool:
    """True if the route clears the floor price and leaves enough margin."""
    return evaluate_route(
        route, min_out, base_fee, priority_fee, gas_limit, min_net_profit_wei
    ).is_accepted
