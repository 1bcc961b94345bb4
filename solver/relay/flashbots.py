"""Private bundle relay client speaking the Flashbots JSON-RPC dialect.

Requests are authenticated with an ``X-Flashbots-Signature`` header: the
relay signer's address and its signature over the keccak of the request body.
"""

from __future__ import annotations

import itertools
import json
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import httpx
import structlog
from eth_account import Account
from eth_account.messages import encode_defunct
from eth_account.signers.local import LocalAccount
from eth_utils import keccak

from solver.chain import ChainClient
from solver.constants import DEFAULT_FLASHBOTS_RELAY_URL

logger = structlog.get_logger()


class RelayError(Exception):
    """The relay returned an error or a malformed response."""


class BundleResolution(Enum):
    """How a submitted bundle resolved once its target block passed."""

    BUNDLE_INCLUDED = "bundle_included"
    BLOCK_PASSED_WITHOUT_INCLUSION = "block_passed_without_inclusion"
    ACCOUNT_NONCE_TOO_HIGH = "account_nonce_too_high"


@dataclass(frozen=True)
class BundleTransaction:
    """A signed transaction in a bundle.

    Sender and nonce are known for transactions this solver signed; they let
    the wait detect a nonce that was consumed elsewhere.
    """

    raw: str
    tx_hash: str
    sender: str | None = None
    nonce: int | None = None


@dataclass(frozen=True)
class BundleSimulation:
    """Result of ``eth_callBundle``."""

    results: list[dict[str, Any]] = field(default_factory=list)
    error: str | None = None

    @property
    def errors(self) -> list[str]:
        errors = [str(r["error"]) for r in self.results if r.get("error")]
        if self.error is not None:
            errors.insert(0, self.error)
        return errors

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)


@dataclass(frozen=True)
class BundleSubmission:
    """A bundle accepted by the relay for a target block."""

    bundle_hash: str
    target_block: int
    transactions: tuple[BundleTransaction, ...]


class FlashbotsRelay:
    """Signs, simulates, submits and tracks private bundles."""

    def __init__(
        self,
        signer_pk: str,
        chain: ChainClient,
        relay_url: str = DEFAULT_FLASHBOTS_RELAY_URL,
        client: httpx.Client | None = None,
        timeout_seconds: float = 10.0,
        poll_interval_seconds: float = 1.0,
        wait_timeout_seconds: float = 120.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the relay client.

        Args:
            signer_pk: Key identifying this searcher to the relay (holds no funds)
            chain: Chain client used to follow blocks and check inclusion
            relay_url: Relay JSON-RPC endpoint
            client: Optional preconfigured HTTP client
            timeout_seconds: Per-request timeout
            poll_interval_seconds: Block polling interval while waiting
            wait_timeout_seconds: Give up waiting for the target block after this long
            sleep: Sleep function (injectable for tests)
        """
        self.signer: LocalAccount = Account.from_key(signer_pk)
        self.chain = chain
        self.relay_url = relay_url
        self._client = client or httpx.Client(timeout=timeout_seconds)
        self._poll_interval = poll_interval_seconds
        self._wait_timeout = wait_timeout_seconds
        self._sleep = sleep
        self._request_ids = itertools.count(1)

    def _post(self, method: str, params: list[Any]) -> dict[str, Any]:
        request_id = next(self._request_ids)
        body = json.dumps(
            {"jsonrpc": "2.0", "id": request_id, "method": method, "params": params}
        )
        message = encode_defunct(text="0x" + keccak(text=body).hex())
        signature = self.signer.sign_message(message).signature
        headers = {
            "Content-Type": "application/json",
            "X-Flashbots-Signature": f"{self.signer.address}:0x{bytes(signature).hex()}",
        }

        response = self._client.post(self.relay_url, content=body, headers=headers)
        response.raise_for_status()
        data = response.json()
        if not isinstance(data, dict):
            raise RelayError(f"Unexpected {method} response: {data!r}")
        return data

    def simulate(self, txs: list[BundleTransaction], target_block: int) -> BundleSimulation:
        """Simulate the bundle on top of the latest state for ``target_block``."""
        data = self._post(
            "eth_callBundle",
            [
                {
                    "txs": [tx.raw for tx in txs],
                    "blockNumber": hex(target_block),
                    "stateBlockNumber": "latest",
                }
            ],
        )
        if "error" in data:
            return BundleSimulation(error=str(data["error"].get("message", data["error"])))

        result = data.get("result")
        if not isinstance(result, dict):
            raise RelayError(f"Malformed eth_callBundle result: {data!r}")
        return BundleSimulation(results=list(result.get("results", [])))

    def send_bundle(self, txs: list[BundleTransaction], target_block: int) -> BundleSubmission:
        """Submit the bundle for inclusion in exactly ``target_block``."""
        data = self._post(
            "eth_sendBundle",
            [{"txs": [tx.raw for tx in txs], "blockNumber": hex(target_block)}],
        )
        if "error" in data:
            raise RelayError(f"eth_sendBundle failed: {data['error']}")

        result = data.get("result") or {}
        bundle_hash = result.get("bundleHash")
        if not bundle_hash:
            raise RelayError(f"Malformed eth_sendBundle result: {data!r}")

        return BundleSubmission(
            bundle_hash=bundle_hash,
            target_block=target_block,
            transactions=tuple(txs),
        )

    def wait(self, submission: BundleSubmission) -> BundleResolution:
        """Block until the target block is mined, then report how the bundle fared.

        Raises:
            RelayError: If the target block is not reached within the wait timeout
        """
        deadline = time.monotonic() + self._wait_timeout
        while self.chain.block_number() < submission.target_block:
            if time.monotonic() >= deadline:
                raise RelayError(
                    f"Timed out waiting for block {submission.target_block} "
                    f"(bundleHash={submission.bundle_hash})"
                )
            self._sleep(self._poll_interval)

        if all(self.chain.is_tx_included(tx.tx_hash) for tx in submission.transactions):
            return BundleResolution.BUNDLE_INCLUDED

        for tx in submission.transactions:
            if tx.sender is None or tx.nonce is None:
                continue
            if self.chain.transaction_count(tx.sender) > tx.nonce:
                return BundleResolution.ACCOUNT_NONCE_TOO_HIGH

        return BundleResolution.BLOCK_PASSED_WITHOUT_INCLUSION
