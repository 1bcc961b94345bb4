"""End-to-end tests for fill attempts over fake chain, relay and matchmaker."""

from unittest.mock import MagicMock

import pytest

from solver.config import SolutionShape
from solver.encoding import (
    SOLVE_SELECTOR,
    SOLVE_WITH_SIGNATURE_AUTHORIZATION_CHECK_SELECTOR,
)
from solver.hashing import get_intent_hash, get_tx_hash
from solver.jobs.result import FailureKind, Outcome, VoidReason
from solver.models.jobs import FillJob
from solver.models.types import ZERO_ADDRESS
from tests.conftest import FakeChain, make_config, make_harness
from tests.helpers import (
    MATCHMAKER_ADDRESS,
    PROXY,
    ROUTER,
    T0,
    USDC,
    WETH,
    make_approval_tx,
    make_authorization,
    make_intent,
    make_route,
    make_solution,
)
from tests.helpers.constants import MEMETH_MAINNET


def selector_of(calldata: str) -> str:
    return calldata[:10]


class TestEndToEndScenarios:
    """The four reference scenarios for a 300 -> 330 decaying intent."""

    def test_a_route_below_floor_is_void(self):
        """minOut at t0+30 is 329, so a 320 route is rejected before profitability."""
        h = make_harness(route=make_route(amount_out=320))

        result = h.handle(FillJob(intent=make_intent()))

        assert result.outcome == Outcome.VOID
        assert result.void_reason == VoidReason.SOLUTION_INSUFFICIENT
        assert not result.is_retryable
        assert h.chain.sent == []
        assert h.relay.sent == []

    def test_b_route_at_floor_is_relayed_directly(self):
        h = make_harness(route=make_route(amount_out=329))

        result = h.handle(FillJob(intent=make_intent()))

        assert result.outcome == Outcome.RELAYED
        [raw] = h.chain.sent
        assert result.detail == get_tx_hash(raw)
        assert selector_of(h.chain.simulations[0].data) == "0x" + SOLVE_SELECTOR.hex()
        assert h.relay.sent == []
        assert h.route_solver.calls == [(WETH, USDC, 10**18)]

    def test_c_matchmaker_intent_requests_authorization(self):
        h = make_harness()
        intent = make_intent(matchmaker=MATCHMAKER_ADDRESS)

        result = h.handle(FillJob(intent=intent))

        assert result.outcome == Outcome.AUTHORIZATION_REQUESTED
        request_id = result.detail

        h.matchmaker_client.submit_solution.assert_called_once()
        submission = h.matchmaker_client.submit_solution.call_args.args[0]
        assert submission.uuid == request_id
        assert submission.intent == intent
        assert len(submission.txs) == 1

        [(retry, delay)] = h.queue.jobs
        assert delay == h.context.config.block_time
        assert retry.handshake_attempts == 1
        assert retry.existing_solution is not None

        assert h.chain.sent == []
        assert h.relay.sent == []
        assert h.store.consume(request_id) is not None

    def test_d_authorization_callback_fills_with_signature_check(self):
        h = make_harness()
        requested = h.handle(FillJob(intent=make_intent(matchmaker=MATCHMAKER_ADDRESS)))

        job = h.context.handshake.resolve(requested.detail, make_authorization(block_deadline=101))
        result = h.handle(job)

        assert result.outcome == Outcome.RELAYED
        assert selector_of(h.chain.simulations[-1].data) == (
            "0x" + SOLVE_WITH_SIGNATURE_AUTHORIZATION_CHECK_SELECTOR.hex()
        )
        # The cached solution is reused, not re-solved
        assert len(h.route_solver.calls) == 1
        h.matchmaker_client.submit_solution.assert_called_once()

    def test_d_bundle_targets_authorization_deadline(self):
        h = make_harness(config=make_config(relay_directly_when_possible=False))
        requested = h.handle(FillJob(intent=make_intent(matchmaker=MATCHMAKER_ADDRESS)))

        job = h.context.handshake.resolve(requested.detail, make_authorization(block_deadline=105))
        result = h.handle(job)

        assert result.outcome == Outcome.RELAYED
        [(txs, target_block)] = h.relay.sent
        assert target_block == 105
        assert len(txs) == 1


class TestEligibility:
    """Attempts that end before any route is requested."""

    def test_already_filled(self):
        h = make_harness()
        intent = make_intent()
        h.chain.filled[get_intent_hash(intent)] = intent.amount_in_int

        result = h.handle(FillJob(intent=intent))

        assert result.outcome == Outcome.ALREADY_FILLED
        assert h.route_solver.calls == []

    def test_partially_filled_is_still_solved(self):
        h = make_harness()
        intent = make_intent()
        h.chain.filled[get_intent_hash(intent)] = intent.amount_in_int - 1

        assert h.handle(FillJob(intent=intent)).outcome == Outcome.RELAYED

    def test_expired(self):
        h = make_harness(now=T0 + 60)
        result = h.handle(FillJob(intent=make_intent(deadline=T0 + 60)))
        assert result.void_reason == VoidReason.EXPIRED
        assert h.route_solver.calls == []

    def test_expired_with_cached_solution(self):
        h = make_harness(now=T0 + 61)
        job = FillJob(
            intent=make_intent(deadline=T0 + 60),
            existing_solution=make_solution(),
        )
        assert h.handle(job).void_reason == VoidReason.EXPIRED

    @pytest.mark.parametrize(
        "token_in,token_out",
        [(MEMETH_MAINNET, WETH), (WETH, ZERO_ADDRESS)],
    )
    def test_wrap_unwrap_pairs(self, token_in, token_out):
        h = make_harness()
        result = h.handle(FillJob(intent=make_intent(token_in=token_in, token_out=token_out)))
        assert result.void_reason == VoidReason.WRAP_UNWRAP
        assert h.route_solver.calls == []

    def test_unsupported_matchmaker(self):
        h = make_harness()
        intent = make_intent(matchmaker="0x00000000000000000000000000000000000000ff")
        assert h.handle(FillJob(intent=intent)).void_reason == VoidReason.UNSUPPORTED_MATCHMAKER

    def test_solver_exclusive_intent_is_solved(self):
        h = make_harness()
        intent = make_intent(matchmaker=h.context.builder.address)
        result = h.handle(FillJob(intent=intent))
        assert result.outcome == Outcome.RELAYED
        assert selector_of(h.chain.simulations[0].data) == "0x" + SOLVE_SELECTOR.hex()

    def test_authorization_past_block_deadline(self):
        h = make_harness(chain=FakeChain(block_number=100))
        job = FillJob(
            intent=make_intent(matchmaker=MATCHMAKER_ADDRESS),
            authorization=make_authorization(block_deadline=100),
        )
        assert h.handle(job).void_reason == VoidReason.AUTHORIZATION_EXPIRED
        assert h.chain.sent == []


class TestSolving:
    def test_no_route(self):
        h = make_harness()
        h.route_solver.route = None
        assert h.handle(FillJob(intent=make_intent())).void_reason == VoidReason.NO_ROUTE

    def test_insufficient_profit(self):
        """With the default 0.00001 ETH floor a zero-surplus route is skipped."""
        h = make_harness(config=make_config(min_net_profit_wei=10**13))
        result = h.handle(FillJob(intent=make_intent()))
        assert result.void_reason == VoidReason.INSUFFICIENT_PROFIT
        assert h.chain.sent == []

    def test_gas_priced_from_pending_base_fee(self):
        """Surplus of 1e15 wei exactly covers 1 gwei * 1M gas."""
        h = make_harness(
            route=make_route(amount_out=329 + 1_000, rate=str(10**12)),
            chain=FakeChain(base_fee=10**9),
        )
        result = h.handle(FillJob(intent=make_intent()))
        assert result.outcome == Outcome.RELAYED
        assert h.chain.simulations[0].max_fee_per_gas == 10**9

    def test_proxy_shape_targets_solution_proxy(self):
        h = make_harness()
        h.handle(FillJob(intent=make_intent()))
        assert PROXY[2:] in h.chain.simulations[0].data

    def test_router_shape_targets_route(self):
        h = make_harness(config=make_config(solution_shape=SolutionShape.ROUTER))
        h.handle(FillJob(intent=make_intent()))
        data = h.chain.simulations[0].data
        assert ROUTER[2:] in data
        assert PROXY[2:] not in data


class TestApprovals:
    """Maker approval transactions travel ahead of the fill when still pending."""

    def test_pending_approval_by_hash_is_bundled_first(self):
        h = make_harness()
        approval = make_approval_tx()
        approval_hash = get_tx_hash(approval)
        h.chain.raw_transactions[approval_hash] = approval

        result = h.handle(FillJob(intent=make_intent(), approval_tx_or_tx_hash=approval_hash))

        assert result.outcome == Outcome.RELAYED
        [(txs, target_block)] = h.relay.sent
        assert [tx.raw for tx in txs][0] == approval
        assert len(txs) == 2
        assert target_block == 101
        assert h.chain.sent == []

    def test_pending_raw_approval_is_bundled_first(self):
        h = make_harness()
        approval = make_approval_tx()

        h.handle(FillJob(intent=make_intent(), approval_tx_or_tx_hash=approval))

        [(txs, _)] = h.relay.sent
        assert txs[0].raw == approval
        assert txs[0].tx_hash == get_tx_hash(approval)

    def test_included_approval_allows_direct(self):
        h = make_harness()
        approval = make_approval_tx()
        h.chain.included.add(get_tx_hash(approval))

        result = h.handle(FillJob(intent=make_intent(), approval_tx_or_tx_hash=approval))

        assert result.outcome == Outcome.RELAYED
        assert h.relay.sent == []
        assert len(h.chain.sent) == 1

    def test_matchmaker_submission_carries_pending_approval(self):
        h = make_harness()
        approval = make_approval_tx()
        approval_hash = get_tx_hash(approval)
        h.chain.raw_transactions[approval_hash] = approval

        result = h.handle(
            FillJob(
                intent=make_intent(matchmaker=MATCHMAKER_ADDRESS),
                approval_tx_or_tx_hash=approval_hash,
            )
        )

        submission = h.matchmaker_client.submit_solution.call_args.args[0]
        assert submission.txs[0] == approval
        assert len(submission.txs) == 2
        record = h.store.consume(result.detail)
        assert record is not None
        assert record.approval_tx == approval
        assert record.approval_tx_hash == approval_hash
        # The retry carries the original signed bytes
        [(retry, _)] = h.queue.jobs
        assert retry.approval_tx_or_tx_hash == approval


class TestHandshakeBound:
    def test_gives_up_after_max_reschedules(self):
        h = make_harness(config=make_config(max_handshake_reschedules=2))
        job = FillJob(intent=make_intent(matchmaker=MATCHMAKER_ADDRESS))

        first = h.handle(job)
        [(retry, _)] = h.queue.jobs
        second = h.handle(retry)
        [_, (last, _)] = h.queue.jobs
        third = h.handle(last)

        assert first.outcome == Outcome.AUTHORIZATION_REQUESTED
        assert second.outcome == Outcome.AUTHORIZATION_REQUESTED
        assert third.void_reason == VoidReason.HANDSHAKE_EXPIRED
        assert h.matchmaker_client.submit_solution.call_count == 2
        # Retries reuse the first solution
        assert len(h.route_solver.calls) == 1


class TestFailures:
    """Network trouble surfaces as retryable results, never as exceptions."""

    def test_relay_not_included_is_retryable(self):
        h = make_harness(config=make_config(relay_directly_when_possible=False), bundles_land=False)
        result = h.handle(FillJob(intent=make_intent()))
        assert result.failure == FailureKind.RETRYABLE
        assert result.detail == "Bundle not included"

    def test_failed_simulation_is_retryable(self):
        h = make_harness()
        h.chain.simulate_ok = False
        result = h.handle(FillJob(intent=make_intent()))
        assert result.is_retryable
        assert result.detail == "Simulation failed"
        assert h.chain.sent == []

    def test_chain_error_is_retryable(self):
        h = make_harness()
        h.chain.latest_block = MagicMock(side_effect=ConnectionError("node down"))  # type: ignore[method-assign]

        result = h.handle(FillJob(intent=make_intent()))

        assert result.is_retryable
        assert "node down" in result.detail

    def test_matchmaker_error_is_retryable(self):
        h = make_harness()
        h.matchmaker_client.submit_solution.side_effect = ConnectionError("matchmaker down")

        result = h.handle(FillJob(intent=make_intent(matchmaker=MATCHMAKER_ADDRESS)))

        assert result.is_retryable
        assert h.queue.jobs == []
