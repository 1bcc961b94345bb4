"""Chain node access over web3.

Every method is a JSON-RPC round trip. Failures other than "not found" or a
simulated revert propagate to the caller.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog
from web3 import Web3
from web3.exceptions import ContractLogicError, TransactionNotFound, Web3RPCError

from solver.models.types import hex_to_bytes

logger = structlog.get_logger()

INTENT_STATUS_ABI = [
    {
        "name": "intentStatus",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "intentHash", "type": "bytes32"}],
        "outputs": [
            {
                "name": "",
                "type": "tuple",
                "components": [
                    {"name": "isValidated", "type": "bool"},
                    {"name": "isCancelled", "type": "bool"},
                    {"name": "amountFilled", "type": "uint128"},
                ],
            }
        ],
    }
]

ERC20_DECIMALS_ABI = [
    {
        "name": "decimals",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint8"}],
    }
]


@dataclass(frozen=True)
class BlockInfo:
    """Block number and timestamp."""

    number: int
    timestamp: int


@dataclass(frozen=True)
class CallRequest:
    """A transaction to simulate as a read-only call."""

    sender: str
    to: str
    data: str
    gas: int
    max_fee_per_gas: int
    value: int = 0


class ChainClient:
    """Thin wrapper around a web3 HTTP connection and the protocol contract."""

    def __init__(self, w3: Web3, protocol: str) -> None:
        """Initialize the client.

        Args:
            w3: Connected web3 instance
            protocol: Protocol contract address (fill status lives there)
        """
        self.w3 = w3
        self.protocol = w3.eth.contract(
            address=Web3.to_checksum_address(protocol),
            abi=INTENT_STATUS_ABI,
        )
        self._chain_id: int | None = None

    @classmethod
    def from_url(cls, json_url: str, protocol: str) -> ChainClient:
        return cls(Web3(Web3.HTTPProvider(json_url)), protocol)

    @property
    def chain_id(self) -> int:
        if self._chain_id is None:
            self._chain_id = int(self.w3.eth.chain_id)
        return self._chain_id

    def is_intent_filled(self, intent_hash: str, amount_in: int) -> bool:
        """True once the protocol has recorded at least ``amount_in`` as filled."""
        status = self.protocol.functions.intentStatus(hex_to_bytes(intent_hash)).call()
        amount_filled = int(status[2])
        return amount_filled >= amount_in

    def is_tx_included(self, tx_hash: str) -> bool:
        """True if the transaction was mined and succeeded."""
        try:
            receipt = self.w3.eth.get_transaction_receipt(tx_hash)  # type: ignore[arg-type]
        except TransactionNotFound:
            return False
        return receipt is not None and receipt["status"] == 1

    def latest_block(self) -> BlockInfo:
        block = self.w3.eth.get_block("latest")
        return BlockInfo(number=int(block["number"]), timestamp=int(block["timestamp"]))

    def block_number(self) -> int:
        return int(self.w3.eth.block_number)

    def pending_base_fee(self) -> int:
        block = self.w3.eth.get_block("pending")
        return int(block["baseFeePerGas"])

    def transaction_count(self, address: str) -> int:
        return int(self.w3.eth.get_transaction_count(Web3.to_checksum_address(address)))

    def simulate(self, call: CallRequest) -> bool:
        """Run the transaction as an ``eth_call`` against the latest state.

        Returns:
            False if the call reverts or the node rejects it, True otherwise
        """
        try:
            self.w3.eth.call(
                {
                    "from": Web3.to_checksum_address(call.sender),
                    "to": Web3.to_checksum_address(call.to),
                    "data": call.data,  # type: ignore[typeddict-item]
                    "value": call.value,  # type: ignore[typeddict-item]
                    "gas": call.gas,
                    "maxFeePerGas": call.max_fee_per_gas,  # type: ignore[typeddict-item]
                }
            )
        except (ContractLogicError, Web3RPCError) as e:
            logger.warning("call_simulation_reverted", to=call.to, error=str(e))
            return False
        return True

    def send_raw_transaction(self, raw: str) -> str:
        """Broadcast a signed transaction and return its hash."""
        tx_hash = self.w3.eth.send_raw_transaction(hex_to_bytes(raw))
        return "0x" + bytes(tx_hash).hex()

    def get_raw_transaction(self, tx_hash: str) -> str:
        """Original signed bytes of a known transaction."""
        raw = self.w3.eth.get_raw_transaction(tx_hash)  # type: ignore[arg-type]
        return "0x" + bytes(raw).hex()

    def token_decimals(self, token: str) -> int:
        contract = self.w3.eth.contract(
            address=Web3.to_checksum_address(token),
            abi=ERC20_DECIMALS_ABI,
        )
        return int(contract.functions.decimals().call())
