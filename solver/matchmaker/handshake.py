"""Solver side of the matchmaker authorization handshake.

    REQUESTED -> AWAITING_AUTHORIZATION -> RESOLVED | EXPIRED

A matchmaker-governed intent is solved, cached under a fresh request id and
submitted to the matchmaker. The same job is rescheduled one block later in
case the callback never comes; the number of reschedules is capped. When the
matchmaker calls back, the cached state is consumed and a fill job carrying
the authorization is queued.
"""

from __future__ import annotations

import uuid
from enum import Enum

import structlog

from solver.jobs.queue import JobQueue
from solver.jobs.result import FillResult, Outcome, VoidReason
from solver.matchmaker.client import MatchmakerClient
from solver.matchmaker.store import RendezvousStore
from solver.models.intent import Authorization, Solution
from solver.models.jobs import CachedSolution, FillJob, SolutionSubmission
from solver.transactions import ApprovalTx

logger = structlog.get_logger()


class HandshakeState(str, Enum):
    REQUESTED = "requested"
    AWAITING_AUTHORIZATION = "awaiting_authorization"
    RESOLVED = "resolved"
    EXPIRED = "expired"


class UnknownRequestError(LookupError):
    """No pending handshake under this request id (never issued, consumed or expired)."""

    def __init__(self, request_id: str) -> None:
        super().__init__(f"Could not find uuid {request_id}")
        self.request_id = request_id


class MatchmakerHandshake:
    """Runs the request/callback exchange with the matchmaker."""

    def __init__(
        self,
        store: RendezvousStore,
        client: MatchmakerClient,
        queue: JobQueue,
        solver_base_url: str,
        ttl_seconds: int,
        retry_delay_seconds: int,
        max_reschedules: int,
    ) -> None:
        """Initialize the handshake.

        Args:
            store: Rendezvous store for pending requests
            client: Matchmaker HTTP client
            queue: Fill queue (for the delayed retry and the resumed fill)
            solver_base_url: Base URL the matchmaker calls back on
            ttl_seconds: Lifetime of a pending request (about one block)
            retry_delay_seconds: Delay before resubmitting (about one block)
            max_reschedules: Resubmissions allowed before the handshake expires
        """
        self.store = store
        self.client = client
        self.queue = queue
        self.solver_base_url = solver_base_url
        self.ttl_seconds = ttl_seconds
        self.retry_delay_seconds = retry_delay_seconds
        self.max_reschedules = max_reschedules

    def request_authorization(
        self,
        job: FillJob,
        intent_hash: str,
        solution: Solution,
        txs: list[str],
        approval: ApprovalTx | None,
    ) -> FillResult:
        """Cache the solve, submit it to the matchmaker and schedule a retry.

        Args:
            job: The job being handled
            intent_hash: Hash of ``job.intent`` (log context)
            solution: Solution the signed fill uses
            txs: Signed transactions: pending approval (if any) then the fill
            approval: Resolved approval transaction, if any

        Returns:
            AUTHORIZATION_REQUESTED, or VOID once the reschedule budget is spent
        """
        if job.handshake_attempts >= self.max_reschedules:
            logger.info(
                "handshake_expired",
                intent_hash=intent_hash,
                attempts=job.handshake_attempts,
                state=HandshakeState.EXPIRED.value,
            )
            return FillResult.void(
                VoidReason.HANDSHAKE_EXPIRED,
                f"No authorization after {job.handshake_attempts} submissions",
            )

        request_id = str(uuid.uuid4())
        self.store.put(
            request_id,
            CachedSolution(
                intent=job.intent,
                approval_tx_hash=approval.tx_hash if approval else None,
                approval_tx=approval.raw if approval else None,
                solution=solution,
            ),
            self.ttl_seconds,
        )

        logger.info(
            "submitting_solution_to_matchmaker",
            intent_hash=intent_hash,
            uuid=request_id,
            state=HandshakeState.REQUESTED.value,
        )
        self.client.submit_solution(
            SolutionSubmission(
                uuid=request_id,
                base_url=self.solver_base_url,
                intent=job.intent,
                txs=txs,
            )
        )

        retry = job.model_copy(
            update={
                "existing_solution": solution,
                "approval_tx_or_tx_hash": approval.raw if approval else None,
                "handshake_attempts": job.handshake_attempts + 1,
            }
        )
        self.queue.enqueue(retry, delay_seconds=self.retry_delay_seconds)

        logger.info(
            "awaiting_authorization",
            intent_hash=intent_hash,
            uuid=request_id,
            retry_in_seconds=self.retry_delay_seconds,
            attempt=retry.handshake_attempts,
            state=HandshakeState.AWAITING_AUTHORIZATION.value,
        )
        return FillResult.completed(Outcome.AUTHORIZATION_REQUESTED, detail=request_id)

    def resolve(self, request_id: str, authorization: Authorization) -> FillJob:
        """Consume a pending request and queue the authorized fill.

        Raises:
            UnknownRequestError: If the request id is unknown, consumed or expired
        """
        record = self.store.consume(request_id)
        if record is None:
            raise UnknownRequestError(request_id)

        job = FillJob(
            intent=record.intent,
            approval_tx_or_tx_hash=record.approval_reference,
            existing_solution=record.solution,
            authorization=authorization,
        )
        self.queue.enqueue(job)

        logger.info(
            "authorization_resolved",
            uuid=request_id,
            block_deadline=authorization.block_deadline,
            state=HandshakeState.RESOLVED.value,
        )
        return job
