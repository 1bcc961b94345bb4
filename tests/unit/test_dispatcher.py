"""Tests for relay strategy selection and execution."""

from unittest.mock import MagicMock

import pytest

from solver.relay.dispatcher import (
    RelayDispatcher,
    RelayState,
    RelayStrategy,
    bundle_transactions,
    choose_strategy,
)
from solver.relay.flashbots import BundleResolution, BundleSimulation
from solver.transactions import ApprovalTx, TransactionBuilder
from tests.conftest import FakeChain, FakeRelay
from tests.helpers import MATCHMAKER_ADDRESS, PROTOCOL, SOLVER_PK, make_intent, make_solution

APPROVAL = ApprovalTx(raw="0x02aa", tx_hash="0x" + "aa" * 32)


@pytest.fixture
def fill_tx():
    builder = TransactionBuilder(
        SOLVER_PK,
        protocol=PROTOCOL,
        matchmaker=MATCHMAKER_ADDRESS,
        gas_limit=1_000_000,
        max_priority_fee_per_gas=0,
    )
    return builder.build(make_intent(), make_solution(), None, nonce=3, chain_id=1, base_fee=0)


class TestChooseStrategy:
    @pytest.mark.parametrize(
        "approval_pending,direct_allowed,expected",
        [
            (False, True, RelayStrategy.DIRECT),
            (False, False, RelayStrategy.BUNDLE),
            (True, True, RelayStrategy.BUNDLE),
            (True, False, RelayStrategy.BUNDLE),
        ],
    )
    def test_direct_only_without_pending_approval(self, approval_pending, direct_allowed, expected):
        assert choose_strategy(approval_pending, direct_allowed) == expected


class TestBundleTransactions:
    def test_pending_approval_goes_first(self, fill_tx):
        txs = bundle_transactions(fill_tx, APPROVAL, approval_pending=True)
        assert [tx.tx_hash for tx in txs] == [APPROVAL.tx_hash, fill_tx.tx_hash]
        assert txs[0].raw == APPROVAL.raw
        assert txs[1].sender == fill_tx.sender
        assert txs[1].nonce == 3

    def test_included_approval_is_dropped(self, fill_tx):
        txs = bundle_transactions(fill_tx, APPROVAL, approval_pending=False)
        assert [tx.tx_hash for tx in txs] == [fill_tx.tx_hash]


class TestDirectRelay:
    """Tests for Direct relay through the chain node."""

    def test_simulates_then_sends(self, fill_tx):
        chain = FakeChain()
        dispatcher = RelayDispatcher(chain, MagicMock(), relay_directly_when_possible=True)  # type: ignore[arg-type]

        report = dispatcher.dispatch("0xintent", fill_tx, None, False, 101)

        assert report.strategy == RelayStrategy.DIRECT
        assert report.state == RelayState.SENT
        assert report.is_success
        assert report.tx_hash == fill_tx.tx_hash
        assert chain.sent == [fill_tx.raw]
        assert chain.simulations[0].data == fill_tx.data
        assert chain.simulations[0].sender == fill_tx.sender

    def test_failed_simulation_sends_nothing(self, fill_tx):
        chain = FakeChain()
        chain.simulate_ok = False
        dispatcher = RelayDispatcher(chain, MagicMock(), relay_directly_when_possible=True)  # type: ignore[arg-type]

        report = dispatcher.dispatch("0xintent", fill_tx, None, False, 101)

        assert report.state == RelayState.FAILED
        assert report.detail == "Simulation failed"
        assert not report.is_success
        assert chain.sent == []

    def test_included_approval_still_allows_direct(self, fill_tx):
        chain = FakeChain()
        dispatcher = RelayDispatcher(chain, MagicMock(), relay_directly_when_possible=True)  # type: ignore[arg-type]
        report = dispatcher.dispatch("0xintent", fill_tx, APPROVAL, True, 101)
        assert report.strategy == RelayStrategy.DIRECT
        assert chain.sent == [fill_tx.raw]


class TestBundleRelay:
    """Tests for Bundle relay through the private relay."""

    def test_pending_approval_forces_bundle(self, fill_tx):
        chain = FakeChain()
        relay = FakeRelay(chain)
        dispatcher = RelayDispatcher(chain, relay, relay_directly_when_possible=True)  # type: ignore[arg-type]

        report = dispatcher.dispatch("0xintent", fill_tx, APPROVAL, False, 101)

        assert report.strategy == RelayStrategy.BUNDLE
        assert report.state == RelayState.INCLUDED
        assert report.target_block == 101
        txs, target_block = relay.sent[0]
        assert [tx.raw for tx in txs] == [APPROVAL.raw, fill_tx.raw]
        assert target_block == 101
        assert chain.sent == []

    def test_not_included(self, fill_tx):
        chain = FakeChain()
        dispatcher = RelayDispatcher(chain, FakeRelay(chain, lands=False))  # type: ignore[arg-type]

        report = dispatcher.dispatch("0xintent", fill_tx, None, False, 101)

        assert report.state == RelayState.NOT_INCLUDED
        assert report.detail == "Bundle not included"
        assert not report.is_success

    def test_simulation_errors_stop_submission(self, fill_tx):
        chain = FakeChain()
        relay = FakeRelay(chain)
        relay.simulation = BundleSimulation(error="insufficient funds")
        dispatcher = RelayDispatcher(chain, relay)  # type: ignore[arg-type]

        report = dispatcher.dispatch("0xintent", fill_tx, None, False, 101)

        assert report.state == RelayState.FAILED
        assert report.detail == "Bundle simulation failed"
        assert relay.sent == []

    def test_nonce_too_high_requires_fill_on_chain(self, fill_tx):
        """A consumed nonce only counts as success if our fill is the one that landed."""
        chain = FakeChain()
        relay = MagicMock()
        relay.simulate.return_value = BundleSimulation()
        relay.wait.return_value = BundleResolution.ACCOUNT_NONCE_TOO_HIGH
        dispatcher = RelayDispatcher(chain, relay)  # type: ignore[arg-type]

        report = dispatcher.dispatch("0xintent", fill_tx, None, False, 101)
        assert report.state == RelayState.NOT_INCLUDED

        chain.included.add(fill_tx.tx_hash)
        report = dispatcher.dispatch("0xintent", fill_tx, None, False, 101)
        assert report.state == RelayState.INCLUDED
