"""Fill orchestration.

The FillOrchestrator is the fill queue's job handler. For every attempt it:

1. Checks on-chain whether the intent is already filled (the only guard
   against double fills, since attempts for one intent may overlap).
2. Checks eligibility: expiry, wrap/unwrap-only pairs, supported matchmaker,
   and the authorization's block deadline when one is held.
3. Prices the intent at the next block, asks the route source for a route and
   gates it on solver profit (or reuses a solution cached by the handshake).
4. Builds and signs the fill call variant matching the intent.
5. Hands matchmaker-governed intents without an authorization to the
   handshake; relays everything else directly or as a bundle.

Domain rejections are returned as void results. Any exception from a network
call is logged here and returned as a retryable failure.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field

import redis
import structlog

from solver.chain import BlockInfo, ChainClient
from solver.config import SolverConfig
from solver.hashing import get_intent_hash, get_tx_hash
from solver.jobs.queue import FillQueue, JobQueue
from solver.jobs.result import FillResult, Outcome, VoidReason
from solver.matchmaker.client import MatchmakerClient
from solver.matchmaker.handshake import MatchmakerHandshake
from solver.matchmaker.store import RedisRendezvousStore
from solver.models.intent import Intent, Solution
from solver.models.jobs import FillJob, is_tx_hash
from solver.models.types import ZERO_ADDRESS, same_address
from solver.pricing import is_expired, required_output
from solver.profitability import ProfitError, evaluate_route
from solver.relay.dispatcher import RelayDispatcher
from solver.relay.flashbots import FlashbotsRelay
from solver.routing.route import RouteSolver
from solver.routing.zero_ex import ZeroExRouteSolver
from solver.transactions import (
    ApprovalTx,
    TransactionBuilder,
    build_solution,
    is_matchmaker_governed,
)

logger = structlog.get_logger()


def unix_now() -> int:
    return int(time.time())


@dataclass
class OrchestratorContext:
    """Everything a fill attempt talks to, constructed once per process."""

    config: SolverConfig
    chain: ChainClient
    route_solver: RouteSolver
    builder: TransactionBuilder
    dispatcher: RelayDispatcher
    handshake: MatchmakerHandshake
    queue: JobQueue
    clock: Callable[[], int] = field(default=unix_now)


class FillOrchestrator:
    """Handles one fill attempt per call."""

    def __init__(self, context: OrchestratorContext) -> None:
        self.context = context

    def handle(self, job: FillJob) -> FillResult:
        """Run one attempt for ``job``; never raises."""
        intent_hash = get_intent_hash(job.intent)
        try:
            return self._attempt(job, intent_hash)
        except Exception as e:
            logger.exception(
                "fill_attempt_failed",
                intent_hash=intent_hash,
                approval_tx_or_tx_hash=job.approval_tx_or_tx_hash,
                has_authorization=job.authorization is not None,
                handshake_attempts=job.handshake_attempts,
            )
            return FillResult.retryable(f"{type(e).__name__}: {e}")

    def _attempt(self, job: FillJob, intent_hash: str) -> FillResult:
        ctx = self.context
        intent = job.intent
        log = logger.bind(intent_hash=intent_hash, approval_tx_or_tx_hash=job.approval_tx_or_tx_hash)

        if ctx.chain.is_intent_filled(intent_hash, intent.amount_in_int):
            log.info("intent_already_filled")
            return FillResult.completed(Outcome.ALREADY_FILLED)

        void_reason = self.check_eligibility(intent, ctx.clock())
        if void_reason is not None:
            log.info("intent_ineligible", reason=void_reason.value, deadline=intent.deadline)
            return FillResult.void(void_reason)

        latest = ctx.chain.latest_block()
        base_fee = ctx.chain.pending_base_fee()

        governed = is_matchmaker_governed(intent, ctx.config.matchmaker)
        authorization = job.authorization if governed else None
        if authorization is not None and latest.number >= authorization.block_deadline:
            log.info(
                "authorization_expired",
                block_deadline=authorization.block_deadline,
                latest_block=latest.number,
            )
            return FillResult.void(VoidReason.AUTHORIZATION_EXPIRED)

        if job.existing_solution is not None:
            solution = job.existing_solution
        else:
            solved = self.solve(intent, intent_hash, latest, base_fee)
            if isinstance(solved, FillResult):
                return solved
            solution = solved

        approval = self.resolve_approval(job.approval_tx_or_tx_hash)
        approval_included = approval is not None and ctx.chain.is_tx_included(approval.tx_hash)
        approval_pending = approval is not None and not approval_included

        fill_tx = ctx.builder.build(
            intent,
            solution,
            authorization,
            nonce=ctx.chain.transaction_count(ctx.builder.address),
            chain_id=ctx.chain.chain_id,
            base_fee=base_fee,
        )

        if governed and authorization is None:
            txs = [approval.raw, fill_tx.raw] if approval is not None and approval_pending else [fill_tx.raw]
            return ctx.handshake.request_authorization(job, intent_hash, solution, txs, approval)

        target_block = authorization.block_deadline if authorization is not None else latest.number + 1
        report = ctx.dispatcher.dispatch(intent_hash, fill_tx, approval, approval_included, target_block)
        if report.is_success:
            return FillResult.completed(Outcome.RELAYED, detail=report.tx_hash)
        return FillResult.retryable(report.detail or report.state.value)

    def check_eligibility(self, intent: Intent, now: int) -> VoidReason | None:
        """Cheap checks that rule an intent out before any pricing."""
        config = self.context.config

        wraps = same_address(intent.token_in, config.memeth) and same_address(
            intent.token_out, config.weth9
        )
        unwraps = same_address(intent.token_in, config.weth9) and same_address(
            intent.token_out, ZERO_ADDRESS
        )
        if wraps or unwraps:
            return VoidReason.WRAP_UNWRAP

        if is_expired(intent, now):
            return VoidReason.EXPIRED

        supported = (ZERO_ADDRESS, self.context.builder.address, config.matchmaker)
        if not any(same_address(intent.matchmaker, m) for m in supported):
            return VoidReason.UNSUPPORTED_MATCHMAKER

        return None

    def solve(
        self,
        intent: Intent,
        intent_hash: str,
        latest: BlockInfo,
        base_fee: int,
    ) -> Solution | FillResult:
        """Price the intent, fetch a route and gate it on profit.

        Returns:
            The solution, or a void FillResult if no acceptable route exists
        """
        ctx = self.context
        config = ctx.config

        next_block_timestamp = latest.timestamp + config.block_time
        min_out = required_output(intent, next_block_timestamp, now=ctx.clock())

        logger.info("generating_solution", intent_hash=intent_hash, min_amount_out=min_out)
        route = ctx.route_solver.solve(intent.token_in, intent.token_out, intent.amount_in_int)
        if route is None:
            logger.info("no_route", intent_hash=intent_hash)
            return FillResult.void(VoidReason.NO_ROUTE)

        profit = evaluate_route(
            route,
            min_out,
            base_fee,
            config.max_priority_fee_per_gas,
            config.gas_limit,
            config.min_net_profit_wei,
        )
        if profit.error == ProfitError.SOLUTION_INSUFFICIENT:
            logger.warning(
                "solution_not_good_enough",
                intent_hash=intent_hash,
                actual_amount_out=route.amount_out,
                min_amount_out=min_out,
            )
            return FillResult.void(VoidReason.SOLUTION_INSUFFICIENT)
        if profit.error == ProfitError.INSUFFICIENT_PROFIT:
            logger.warning(
                "insufficient_solver_profit",
                intent_hash=intent_hash,
                gross_profit_wei=profit.gross_profit_wei,
                gas_cost_wei=profit.gas_cost_wei,
            )
            return FillResult.void(VoidReason.INSUFFICIENT_PROFIT)

        return build_solution(intent, route, min_out, config.solution_shape, config.solution_proxy)

    def resolve_approval(self, approval_tx_or_tx_hash: str | None) -> ApprovalTx | None:
        """Turn an approval reference into its original signed bytes and hash."""
        if approval_tx_or_tx_hash is None:
            return None
        if is_tx_hash(approval_tx_or_tx_hash):
            raw = self.context.chain.get_raw_transaction(approval_tx_or_tx_hash)
            return ApprovalTx(raw=raw, tx_hash=approval_tx_or_tx_hash)
        return ApprovalTx(raw=approval_tx_or_tx_hash, tx_hash=get_tx_hash(approval_tx_or_tx_hash))


def build_context(config: SolverConfig) -> tuple[OrchestratorContext, FillOrchestrator, FillQueue]:
    """Wire the production collaborators together.

    The queue's handler is the orchestrator, and the orchestrator's context
    holds the queue, so the handler is bound once both exist. The job store,
    the failed job log and the rendezvous store share one Redis client.
    """
    chain = ChainClient.from_url(config.json_url, config.memswap)
    builder = TransactionBuilder(
        config.solver_pk,
        protocol=config.memswap,
        matchmaker=config.matchmaker,
        gas_limit=config.gas_limit,
        max_priority_fee_per_gas=config.max_priority_fee_per_gas,
    )
    route_solver = ZeroExRouteSolver(
        token_decimals=chain.token_decimals,
        base_url=config.zeroex_api_url,
        api_key=config.zeroex_api_key,
        taker=config.solution_proxy,
    )
    dispatcher = RelayDispatcher(
        chain,
        FlashbotsRelay(config.flashbots_signer_pk, chain, config.flashbots_relay_url),
        relay_directly_when_possible=config.relay_directly_when_possible,
    )

    orchestrator: FillOrchestrator | None = None

    def handler(job: FillJob) -> FillResult:
        assert orchestrator is not None
        return orchestrator.handle(job)

    redis_client = redis.Redis.from_url(config.redis_url)
    queue = FillQueue.with_redis(
        handler,
        redis_client,
        concurrency=config.queue_concurrency,
        attempts=config.queue_attempts,
    )
    handshake = MatchmakerHandshake(
        store=RedisRendezvousStore(redis_client),
        client=MatchmakerClient(config.matchmaker_base_url),
        queue=queue,
        solver_base_url=config.solver_base_url,
        ttl_seconds=config.block_time,
        retry_delay_seconds=config.block_time,
        max_reschedules=config.max_handshake_reschedules,
    )
    context = OrchestratorContext(
        config=config,
        chain=chain,
        route_solver=route_solver,
        builder=builder,
        dispatcher=dispatcher,
        handshake=handshake,
        queue=queue,
    )
    orchestrator = FillOrchestrator(context)
    return context, orchestrator, queue
