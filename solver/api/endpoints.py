"""API endpoints for the Memswap solver."""

import structlog
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from solver.hashing import get_intent_hash
from solver.matchmaker.handshake import UnknownRequestError
from solver.models.jobs import AuthorizationSubmission, FillJob, IntentSubmission
from solver.orchestrator import OrchestratorContext

logger = structlog.get_logger()

router = APIRouter()

SUCCESS = {"message": "Success"}


def get_context(request: Request) -> OrchestratorContext:
    """Dependency provider for the orchestration context.

    Override this in tests to inject fakes:
        app.dependency_overrides[get_context] = lambda: context

    Returns:
        The context built by the application lifespan.
    """
    return request.app.state.context


def bad_request(error: str) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": error})


@router.get("/lives")
async def lives() -> dict[str, str]:
    """Liveness check."""
    return {"message": "Yes"}


@router.post("/intents")
def submit_intent(
    submission: IntentSubmission,
    context: OrchestratorContext = Depends(get_context),
) -> dict[str, str]:
    """Queue a fill attempt for a newly seen intent.

    The response only acknowledges the enqueue; the fill runs in the background.
    Declared sync so the job store write runs in the threadpool.
    """
    intent = submission.intent
    job_id = context.queue.enqueue(FillJob(intent=intent))
    logger.info(
        "received_intent",
        intent_hash=get_intent_hash(intent),
        job_id=job_id,
        token_in=intent.token_in,
        token_out=intent.token_out,
        deadline=intent.deadline,
    )
    return SUCCESS


@router.post("/authorizations", response_model=None)
def submit_authorization(
    submission: AuthorizationSubmission,
    context: OrchestratorContext = Depends(get_context),
) -> dict[str, str] | JSONResponse:
    """Matchmaker callback carrying an authorization.

    Either resumes a pending handshake (``uuid``) or queues an authorized fill
    for an intent the solver has not solved yet (``intent``). Declared sync:
    the rendezvous store and job store calls block.

    Error Handling:
        - Both or neither of ``uuid`` and ``intent``: 400
        - ``uuid`` combined with ``approvalTxOrTxHash``: 400
        - Unknown, consumed or expired ``uuid``: 400
        - Invalid request schema: 422 (Pydantic)
    """
    if (submission.uuid is None) == (submission.intent is None):
        return bad_request("Must specify only one of `intent` or `uuid`")
    if submission.uuid is not None and submission.approval_tx_or_tx_hash is not None:
        return bad_request("Cannot specify `approvalTxOrTxHash` and `uuid` together")

    logger.info(
        "received_authorization",
        uuid=submission.uuid,
        block_deadline=submission.authorization.block_deadline,
        approval_tx_or_tx_hash=submission.approval_tx_or_tx_hash,
    )

    if submission.uuid is not None:
        try:
            job = context.handshake.resolve(submission.uuid, submission.authorization)
        except UnknownRequestError as e:
            logger.warning("unknown_authorization_uuid", uuid=submission.uuid)
            return bad_request(str(e))
        logger.info(
            "handled_authorization",
            uuid=submission.uuid,
            intent_hash=get_intent_hash(job.intent),
        )
        return SUCCESS

    assert submission.intent is not None
    job = FillJob(
        intent=submission.intent,
        approval_tx_or_tx_hash=submission.approval_tx_or_tx_hash,
        authorization=submission.authorization,
    )
    context.queue.enqueue(job)
    logger.info("handled_authorization", intent_hash=get_intent_hash(job.intent))
    return SUCCESS
