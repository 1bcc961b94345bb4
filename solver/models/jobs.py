"""Models for queued fill work, the rendezvous record and API payloads."""

from pydantic import BaseModel, Field

from solver.models.intent import Authorization, Intent, Solution
from solver.models.types import Bytes, Hash32

# A 32-byte hash is 66 chars with the 0x prefix; anything longer is a raw signed tx
TX_HASH_LENGTH = 66


def is_tx_hash(approval_tx_or_tx_hash: str) -> bool:
    """True if the reference is a transaction hash rather than raw signed bytes."""
    return len(approval_tx_or_tx_hash) == TX_HASH_LENGTH


class FillJob(BaseModel):
    """Unit of work for the fill queue.

    Enqueued on new intent submission, on matchmaker authorization callback and
    on the handshake's own delayed retry. Delivery is at-least-once.
    """

    intent: Intent
    approval_tx_or_tx_hash: Bytes | None = Field(
        default=None,
        alias="approvalTxOrTxHash",
        description="Maker approval transaction as raw signed bytes or as a tx hash.",
    )
    existing_solution: Solution | None = Field(default=None, alias="existingSolution")
    authorization: Authorization | None = None
    handshake_attempts: int = Field(
        default=0,
        ge=0,
        alias="handshakeAttempts",
        description="Number of times the matchmaker handshake has rescheduled this job.",
    )

    model_config = {"populate_by_name": True, "frozen": True}


class CachedSolution(BaseModel):
    """Rendezvous record kept while waiting for a matchmaker authorization."""

    intent: Intent
    approval_tx_hash: Hash32 | None = Field(default=None, alias="approvalTxHash")
    approval_tx: Bytes | None = Field(
        default=None,
        alias="approvalTx",
        description="Original signed bytes of the approval transaction, when known.",
    )
    solution: Solution

    model_config = {"populate_by_name": True}

    @property
    def approval_reference(self) -> str | None:
        """Best available approval reference, preferring the signed bytes."""
        return self.approval_tx or self.approval_tx_hash


class IntentSubmission(BaseModel):
    """Body of ``POST /intents``."""

    intent: Intent


class AuthorizationSubmission(BaseModel):
    """Body of ``POST /authorizations``.

    Exactly one of ``uuid`` or ``intent`` must be present, and
    ``approvalTxOrTxHash`` may not be combined with ``uuid``.
    """

    uuid: str | None = None
    intent: Intent | None = None
    approval_tx_or_tx_hash: Bytes | None = Field(default=None, alias="approvalTxOrTxHash")
    authorization: Authorization

    model_config = {"populate_by_name": True}


class SolutionSubmission(BaseModel):
    """Payload sent to the matchmaker's ``POST /solutions``."""

    uuid: str
    base_url: str = Field(alias="baseUrl")
    intent: Intent
    txs: list[Bytes] = Field(min_length=1, description="Signed transactions, in order.")

    model_config = {"populate_by_name": True}
