"""Relay strategy selection and execution.

A fill goes out either as a plain transaction (Direct) or inside a private
bundle (Bundle). Direct is only possible when no maker approval transaction
has to land first and the operator allows bypassing the private relay.

Each relay attempt moves through:

    PREPARED -> SIMULATING -> SENT -> INCLUDED | NOT_INCLUDED | FAILED

Direct relay stops at SENT once the node accepts the transaction.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

import structlog

from solver.chain import CallRequest, ChainClient
from solver.relay.flashbots import BundleResolution, BundleTransaction, FlashbotsRelay
from solver.transactions import ApprovalTx, SignedFillTransaction

logger = structlog.get_logger()


class RelayStrategy(str, Enum):
    DIRECT = "direct"
    BUNDLE = "bundle"


class RelayState(str, Enum):
    PREPARED = "prepared"
    SIMULATING = "simulating"
    SENT = "sent"
    INCLUDED = "included"
    NOT_INCLUDED = "not_included"
    FAILED = "failed"


@dataclass(frozen=True)
class RelayReport:
    """Final state of one relay attempt."""

    strategy: RelayStrategy
    state: RelayState
    target_block: int | None = None
    tx_hash: str | None = None
    bundle_hash: str | None = None
    detail: str | None = None

    @property
    def is_success(self) -> bool:
        return self.state in (RelayState.SENT, RelayState.INCLUDED)


def choose_strategy(approval_pending: bool, relay_directly_when_possible: bool) -> RelayStrategy:
    """Direct only when nothing must precede the fill and the bypass flag is on."""
    if not approval_pending and relay_directly_when_possible:
        return RelayStrategy.DIRECT
    return RelayStrategy.BUNDLE


def bundle_transactions(
    fill_tx: SignedFillTransaction,
    approval: ApprovalTx | None,
    approval_pending: bool,
) -> list[BundleTransaction]:
    """Order bundle members: a still-pending approval first, then the fill."""
    txs: list[BundleTransaction] = []
    if approval is not None and approval_pending:
        txs.append(BundleTransaction(raw=approval.raw, tx_hash=approval.tx_hash))
    txs.append(
        BundleTransaction(
            raw=fill_tx.raw,
            tx_hash=fill_tx.tx_hash,
            sender=fill_tx.sender,
            nonce=fill_tx.nonce,
        )
    )
    return txs


class RelayDispatcher:
    """Chooses and runs the relay strategy for a signed fill."""

    def __init__(
        self,
        chain: ChainClient,
        relay: FlashbotsRelay,
        relay_directly_when_possible: bool = False,
    ) -> None:
        self.chain = chain
        self.relay = relay
        self.relay_directly_when_possible = relay_directly_when_possible

    def dispatch(
        self,
        intent_hash: str,
        fill_tx: SignedFillTransaction,
        approval: ApprovalTx | None,
        approval_included: bool,
        target_block: int,
    ) -> RelayReport:
        """Relay a fill.

        Args:
            intent_hash: Intent being filled (log context)
            fill_tx: Signed fill transaction
            approval: Maker approval transaction, if the intent came with one
            approval_included: Whether the approval is already mined
            target_block: Block a bundle must land in

        Returns:
            RelayReport; network errors propagate
        """
        approval_pending = approval is not None and not approval_included
        strategy = choose_strategy(approval_pending, self.relay_directly_when_possible)
        logger.debug(
            "relay_prepared",
            intent_hash=intent_hash,
            strategy=strategy.value,
            state=RelayState.PREPARED.value,
            approval_pending=approval_pending,
        )

        if strategy == RelayStrategy.DIRECT:
            return self.relay_direct(intent_hash, fill_tx)

        txs = bundle_transactions(fill_tx, approval, approval_pending)
        return self.relay_bundle(intent_hash, txs, target_block)

    def relay_direct(self, intent_hash: str, fill_tx: SignedFillTransaction) -> RelayReport:
        """Simulate with ``eth_call``, then broadcast as a regular transaction."""
        simulated = self.chain.simulate(
            CallRequest(
                sender=fill_tx.sender,
                to=fill_tx.to,
                data=fill_tx.data,
                gas=fill_tx.gas_limit,
                max_fee_per_gas=fill_tx.max_fee_per_gas,
            )
        )
        if not simulated:
            logger.error(
                "simulation_failed",
                intent_hash=intent_hash,
                tx_hash=fill_tx.tx_hash,
                method=fill_tx.method,
            )
            return RelayReport(
                strategy=RelayStrategy.DIRECT,
                state=RelayState.FAILED,
                tx_hash=fill_tx.tx_hash,
                detail="Simulation failed",
            )

        logger.info("relaying_transaction", intent_hash=intent_hash, method=fill_tx.method)
        tx_hash = self.chain.send_raw_transaction(fill_tx.raw)
        logger.info("transaction_sent", intent_hash=intent_hash, tx_hash=tx_hash)

        return RelayReport(strategy=RelayStrategy.DIRECT, state=RelayState.SENT, tx_hash=tx_hash)

    def relay_bundle(
        self,
        intent_hash: str,
        txs: list[BundleTransaction],
        target_block: int,
    ) -> RelayReport:
        """Simulate the bundle, submit it for ``target_block`` and confirm inclusion."""
        fill_hash = txs[-1].tx_hash

        simulation = self.relay.simulate(txs, target_block)
        if simulation.has_errors:
            logger.error(
                "bundle_simulation_failed",
                intent_hash=intent_hash,
                target_block=target_block,
                errors=simulation.errors,
                tx_hashes=[tx.tx_hash for tx in txs],
            )
            return RelayReport(
                strategy=RelayStrategy.BUNDLE,
                state=RelayState.FAILED,
                target_block=target_block,
                tx_hash=fill_hash,
                detail="Bundle simulation failed",
            )

        logger.info(
            "relaying_bundle",
            intent_hash=intent_hash,
            target_block=target_block,
            bundle_size=len(txs),
        )
        submission = self.relay.send_bundle(txs, target_block)
        logger.info(
            "bundle_sent",
            intent_hash=intent_hash,
            target_block=target_block,
            bundle_hash=submission.bundle_hash,
        )

        resolution = self.relay.wait(submission)
        included = resolution in (
            BundleResolution.BUNDLE_INCLUDED,
            BundleResolution.ACCOUNT_NONCE_TOO_HIGH,
        ) and self.chain.is_tx_included(fill_hash)

        state = RelayState.INCLUDED if included else RelayState.NOT_INCLUDED
        log = logger.info if included else logger.warning
        log(
            "bundle_included" if included else "bundle_not_included",
            intent_hash=intent_hash,
            target_block=target_block,
            bundle_hash=submission.bundle_hash,
            resolution=resolution.value,
        )

        return RelayReport(
            strategy=RelayStrategy.BUNDLE,
            state=state,
            target_block=target_block,
            tx_hash=fill_hash,
            bundle_hash=submission.bundle_hash,
            detail=None if included else "Bundle not included",
        )
