"""Test helpers: shared constants, factories and fakes."""

from tests.helpers.constants import (
    DAI,
    MAKER,
    MATCHMAKER_ADDRESS,
    PROTOCOL,
    PROXY,
    ROUTER,
    SOLVER_PK,
    T0,
    USDC,
    WETH,
)
from tests.helpers.factories import (
    make_approval_tx,
    make_authorization,
    make_intent,
    make_route,
    make_solution,
)

__all__ = [
    "DAI",
    "MAKER",
    "MATCHMAKER_ADDRESS",
    "PROTOCOL",
    "PROXY",
    "ROUTER",
    "SOLVER_PK",
    "T0",
    "USDC",
    "WETH",
    "make_approval_tx",
    "make_authorization",
    "make_intent",
    "make_route",
    "make_solution",
]
