"""Pytest configuration and fixtures."""

from dataclasses import dataclass, field
from unittest.mock import MagicMock

import pytest

from solver.chain import BlockInfo, CallRequest
from solver.config import SolverConfig
from solver.hashing import get_tx_hash
from solver.jobs.result import FillResult
from solver.matchmaker.client import MatchmakerClient
from solver.matchmaker.handshake import MatchmakerHandshake
from solver.matchmaker.store import InMemoryRendezvousStore
from solver.models.jobs import FillJob
from solver.orchestrator import FillOrchestrator, OrchestratorContext
from solver.relay.dispatcher import RelayDispatcher
from solver.relay.flashbots import (
    BundleResolution,
    BundleSimulation,
    BundleSubmission,
    BundleTransaction,
)
from solver.routing.route import Route
from solver.transactions import TransactionBuilder
from tests.helpers.constants import FLASHBOTS_SIGNER_PK, SOLVER_PK, T0
from tests.helpers.factories import make_route

# =============================================================================
# Fakes for dependency injection
# =============================================================================


class FakeChain:
    """In-memory stand-in for ChainClient.

    Usage:
        chain = FakeChain(block_number=100, timestamp=T0 + 18)
        chain.filled[intent_hash] = amount   # mark an intent filled
        chain.included.add(tx_hash)          # mark a transaction mined
    """

    def __init__(
        self,
        block_number: int = 100,
        timestamp: int = T0 + 18,
        base_fee: int = 0,
        chain_id: int = 1,
    ) -> None:
        self.block = BlockInfo(number=block_number, timestamp=timestamp)
        self.base_fee = base_fee
        self.chain_id = chain_id
        self.filled: dict[str, int] = {}
        self.included: set[str] = set()
        self.raw_transactions: dict[str, str] = {}
        self.nonces: dict[str, int] = {}
        self.simulate_ok = True
        self.simulations: list[CallRequest] = []
        self.sent: list[str] = []

    def is_intent_filled(self, intent_hash: str, amount_in: int) -> bool:
        return self.filled.get(intent_hash, 0) >= amount_in

    def is_tx_included(self, tx_hash: str) -> bool:
        return tx_hash in self.included

    def latest_block(self) -> BlockInfo:
        return self.block

    def block_number(self) -> int:
        return self.block.number

    def pending_base_fee(self) -> int:
        return self.base_fee

    def transaction_count(self, address: str) -> int:
        return self.nonces.get(address.lower(), 0)

    def simulate(self, call: CallRequest) -> bool:
        self.simulations.append(call)
        return self.simulate_ok

    def send_raw_transaction(self, raw: str) -> str:
        self.sent.append(raw)
        return get_tx_hash(raw)

    def get_raw_transaction(self, tx_hash: str) -> str:
        return self.raw_transactions[tx_hash]

    def token_decimals(self, token: str) -> int:
        return 18


class StaticRouteSolver:
    """Route source returning a fixed route (or None) and recording calls."""

    def __init__(self, route: Route | None) -> None:
        self.route = route
        self.calls: list[tuple[str, str, int]] = []

    def solve(self, token_in: str, token_out: str, amount_in: int) -> Route | None:
        self.calls.append((token_in, token_out, amount_in))
        return self.route


class RecordingQueue:
    """JobQueue that records what was enqueued instead of running it."""

    def __init__(self) -> None:
        self.jobs: list[tuple[FillJob, float]] = []

    def enqueue(self, job: FillJob, delay_seconds: float = 0) -> str:
        self.jobs.append((job, delay_seconds))
        return f"job-{len(self.jobs)}"


class FakeRelay:
    """Bundle relay whose bundles land (or not) as configured.

    When ``lands`` is True, waiting on a submission marks every bundled
    transaction as included on the fake chain.
    """

    def __init__(self, chain: FakeChain, lands: bool = True) -> None:
        self.chain = chain
        self.lands = lands
        self.simulation = BundleSimulation(results=[{"txHash": "0x"}])
        self.sent: list[tuple[list[BundleTransaction], int]] = []

    def simulate(self, txs: list[BundleTransaction], target_block: int) -> BundleSimulation:
        return self.simulation

    def send_bundle(self, txs: list[BundleTransaction], target_block: int) -> BundleSubmission:
        self.sent.append((list(txs), target_block))
        return BundleSubmission(
            bundle_hash="0x" + "bb" * 32,
            target_block=target_block,
            transactions=tuple(txs),
        )

    def wait(self, submission: BundleSubmission) -> BundleResolution:
        if not self.lands:
            return BundleResolution.BLOCK_PASSED_WITHOUT_INCLUSION
        for tx in submission.transactions:
            self.chain.included.add(tx.tx_hash)
        return BundleResolution.BUNDLE_INCLUDED


@dataclass
class Harness:
    """A fully wired orchestrator over fakes, with handles to every fake."""

    orchestrator: FillOrchestrator
    context: OrchestratorContext
    chain: FakeChain
    relay: FakeRelay
    queue: RecordingQueue
    store: InMemoryRendezvousStore
    matchmaker_client: MagicMock
    route_solver: StaticRouteSolver
    handled: list[FillResult] = field(default_factory=list)

    def handle(self, job: FillJob) -> FillResult:
        result = self.orchestrator.handle(job)
        self.handled.append(result)
        return result


def make_config(**overrides) -> SolverConfig:
    """Mainnet config with zero gas costs and zero profit floor by default."""
    values = {
        "chain_id": 1,
        "solver_pk": SOLVER_PK,
        "flashbots_signer_pk": FLASHBOTS_SIGNER_PK,
        "relay_directly_when_possible": True,
        "max_priority_fee_per_gas": 0,
        "min_net_profit_wei": 0,
        "solver_base_url": "http://solver.test",
        "matchmaker_base_url": "http://matchmaker.test",
    }
    values.update(overrides)
    return SolverConfig(**values)


def make_harness(
    config: SolverConfig | None = None,
    route: Route | None = None,
    chain: FakeChain | None = None,
    now: int = T0 + 18,
    bundles_land: bool = True,
) -> Harness:
    """Wire an orchestrator over fakes.

    Args:
        config: Solver config (default: make_config())
        route: Route the route source returns (default: 329 out at rate 1)
        chain: Fake chain (default: block 100 at T0 + 18, zero base fee)
        now: Fixed clock value
        bundles_land: Whether submitted bundles are included
    """
    config = config or make_config()
    chain = chain or FakeChain()
    relay = FakeRelay(chain, lands=bundles_land)
    queue = RecordingQueue()
    store = InMemoryRendezvousStore()
    matchmaker_client = MagicMock(spec=MatchmakerClient)
    route_solver = StaticRouteSolver(route if route is not None else make_route())

    builder = TransactionBuilder(
        config.solver_pk,
        protocol=config.memswap,
        matchmaker=config.matchmaker,
        gas_limit=config.gas_limit,
        max_priority_fee_per_gas=config.max_priority_fee_per_gas,
    )
    handshake = MatchmakerHandshake(
        store=store,
        client=matchmaker_client,
        queue=queue,
        solver_base_url=config.solver_base_url,
        ttl_seconds=config.block_time,
        retry_delay_seconds=config.block_time,
        max_reschedules=config.max_handshake_reschedules,
    )
    context = OrchestratorContext(
        config=config,
        chain=chain,  # type: ignore[arg-type]
        route_solver=route_solver,
        builder=builder,
        dispatcher=RelayDispatcher(
            chain,  # type: ignore[arg-type]
            relay,  # type: ignore[arg-type]
            relay_directly_when_possible=config.relay_directly_when_possible,
        ),
        handshake=handshake,
        queue=queue,
        clock=lambda: now,
    )
    return Harness(
        orchestrator=FillOrchestrator(context),
        context=context,
        chain=chain,
        relay=relay,
        queue=queue,
        store=store,
        matchmaker_client=matchmaker_client,
        route_solver=route_solver,
    )


@pytest.fixture
def fake_chain() -> FakeChain:
    return FakeChain()


@pytest.fixture
def recording_queue() -> RecordingQueue:
    return RecordingQueue()


@pytest.fixture
def harness() -> Harness:
    """Orchestrator over fakes with Direct relay allowed."""
    return make_harness()
