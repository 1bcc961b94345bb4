"""Runtime configuration for the solver service."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum

from solver.constants import (
    BLOCK_TIME,
    DEFAULT_FLASHBOTS_RELAY_URL,
    DEFAULT_GAS_LIMIT,
    DEFAULT_MAX_PRIORITY_FEE_PER_GAS,
    DEFAULT_MIN_NET_PROFIT_WEI,
    DEFAULT_ZEROEX_API_URL,
    GWEI,
    MATCHMAKER,
    MEMETH,
    MEMSWAP,
    SOLUTION_PROXY,
    WETH9,
)

TRUTHY = ("true", "1", "yes")


class SolutionShape(str, Enum):
    """How a route is turned into the intent's fill call."""

    PROXY = "proxy"  # wrap the route in the solver's solution proxy `fill`
    ROUTER = "router"  # call the route target directly


def _required(env: Mapping[str, str], name: str) -> str:
    value = env.get(name, "")
    if not value:
        raise ValueError(f"{name} must be set")
    return value


def _int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError as err:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from err
    if value < 0:
        raise ValueError(f"{name} cannot be negative: {value}")
    return value


@dataclass(frozen=True)
class SolverConfig:
    """Centralized configuration for the solver.

    Holds connection settings, chain addresses and the fill policy constants.
    Gas limit and priority fee are fixed policy values, not estimated per call.

    Attributes:
        chain_id: Chain the solver operates on
        json_url: Chain node JSON-RPC URL
        solver_pk: Private key used to sign fill transactions
        flashbots_signer_pk: Private key authenticating bundle relay requests
        relay_directly_when_possible: Allow Direct relay when no approval is pending
        gas_limit: Gas limit for every fill transaction
        max_priority_fee_per_gas: Priority fee (wei) for every fill transaction
        min_net_profit_wei: Net profit floor below which fills are skipped
        block_time: Seconds per block
        max_handshake_reschedules: Cap on matchmaker handshake retries per intent
        queue_concurrency: Number of fill jobs processed in parallel
        queue_attempts: Attempts per job before it is surfaced as failed
    """

    chain_id: int = 1
    json_url: str = "http://localhost:8545"
    solver_pk: str = ""
    flashbots_signer_pk: str = ""
    flashbots_relay_url: str = DEFAULT_FLASHBOTS_RELAY_URL
    matchmaker_base_url: str = "http://localhost:3000"
    solver_base_url: str = "http://localhost:8000"
    redis_url: str = "redis://localhost:6379/0"
    zeroex_api_url: str = DEFAULT_ZEROEX_API_URL
    zeroex_api_key: str = ""

    relay_directly_when_possible: bool = False
    solution_shape: SolutionShape = SolutionShape.PROXY

    gas_limit: int = DEFAULT_GAS_LIMIT
    max_priority_fee_per_gas: int = DEFAULT_MAX_PRIORITY_FEE_PER_GAS
    min_net_profit_wei: int = DEFAULT_MIN_NET_PROFIT_WEI
    block_time: int = BLOCK_TIME
    max_handshake_reschedules: int = 5

    queue_concurrency: int = 10
    queue_attempts: int = 2

    @property
    def memswap(self) -> str:
        return MEMSWAP[self.chain_id]

    @property
    def matchmaker(self) -> str:
        return MATCHMAKER[self.chain_id]

    @property
    def solution_proxy(self) -> str:
        return SOLUTION_PROXY[self.chain_id]

    @property
    def weth9(self) -> str:
        return WETH9[self.chain_id]

    @property
    def memeth(self) -> str:
        return MEMETH[self.chain_id]

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> SolverConfig:
        """Load configuration from environment variables.

        Raises:
            ValueError: If a signing key is missing, a value is malformed or
                the chain is unsupported
        """
        env = os.environ if env is None else env

        chain_id = _int(env, "CHAIN_ID", 1)
        if chain_id not in MEMSWAP:
            raise ValueError(f"Unsupported CHAIN_ID: {chain_id}")

        shape = env.get("SOLUTION_SHAPE", SolutionShape.PROXY.value).lower()
        try:
            solution_shape = SolutionShape(shape)
        except ValueError as err:
            raise ValueError(f"SOLUTION_SHAPE must be 'proxy' or 'router', got {shape!r}") from err

        return cls(
            chain_id=chain_id,
            json_url=env.get("JSON_URL", cls.json_url),
            solver_pk=_required(env, "SOLVER_PK"),
            flashbots_signer_pk=_required(env, "FLASHBOTS_SIGNER_PK"),
            flashbots_relay_url=env.get("FLASHBOTS_RELAY_URL", DEFAULT_FLASHBOTS_RELAY_URL),
            matchmaker_base_url=env.get("MATCHMAKER_BASE_URL", cls.matchmaker_base_url),
            solver_base_url=env.get("SOLVER_BASE_URL", cls.solver_base_url),
            redis_url=env.get("REDIS_URL", cls.redis_url),
            zeroex_api_url=env.get("ZEROEX_API_URL", DEFAULT_ZEROEX_API_URL),
            zeroex_api_key=env.get("ZEROEX_API_KEY", ""),
            relay_directly_when_possible=(
                env.get("RELAY_DIRECTLY_WHEN_POSSIBLE", "false").lower() in TRUTHY
            ),
            solution_shape=solution_shape,
            gas_limit=_int(env, "GAS_LIMIT", DEFAULT_GAS_LIMIT),
            max_priority_fee_per_gas=(
                _int(env, "MAX_PRIORITY_FEE_GWEI", DEFAULT_MAX_PRIORITY_FEE_PER_GAS // GWEI) * GWEI
            ),
            min_net_profit_wei=_int(env, "MIN_NET_PROFIT_WEI", DEFAULT_MIN_NET_PROFIT_WEI),
            block_time=_int(env, "BLOCK_TIME", BLOCK_TIME),
            max_handshake_reschedules=_int(env, "MAX_HANDSHAKE_RESCHEDULES", 5),
            queue_concurrency=max(_int(env, "QUEUE_CONCURRENCY", 10), 1),
            queue_attempts=max(_int(env, "QUEUE_ATTEMPTS", 2), 1),
        )
