"""EIP-712 struct hashes and transaction hashes.

The intent hash is the key the protocol contract tracks fill status under,
so it must match ``hashStruct(Intent)`` byte for byte.
"""

from __future__ import annotations

from eth_abi import encode  # type: ignore[attr-defined]
from eth_utils import keccak

from solver.models.intent import Authorization, Intent
from solver.models.types import hex_to_bytes

INTENT_TYPE = (
    "Intent(address tokenIn,address tokenOut,address maker,address matchmaker,"
    "address source,uint16 feeBps,uint16 surplusBps,uint32 deadline,"
    "bool isPartiallyFillable,uint128 amountIn,uint128 endAmountOut,"
    "uint16 startAmountBps,uint16 expectedAmountBps)"
)
INTENT_TYPEHASH = keccak(text=INTENT_TYPE)

AUTHORIZATION_TYPE = (
    "Authorization(bytes32 intentHash,address authorizedSolver,uint128 maxAmountIn,"
    "uint128 minAmountOut,uint32 blockDeadline,bool isPartiallyFillable)"
)
AUTHORIZATION_TYPEHASH = keccak(text=AUTHORIZATION_TYPE)


def get_intent_hash(intent: Intent) -> str:
    """EIP-712 ``hashStruct`` of an intent (the signature is not part of it)."""
    encoded = encode(
        [
            "bytes32",
            "address",
            "address",
            "address",
            "address",
            "address",
            "uint16",
            "uint16",
            "uint32",
            "bool",
            "uint128",
            "uint128",
            "uint16",
            "uint16",
        ],
        [
            INTENT_TYPEHASH,
            hex_to_bytes(intent.token_in),
            hex_to_bytes(intent.token_out),
            hex_to_bytes(intent.maker),
            hex_to_bytes(intent.matchmaker),
            hex_to_bytes(intent.source),
            intent.fee_bps,
            intent.surplus_bps,
            intent.deadline,
            intent.is_partially_fillable,
            intent.amount_in_int,
            intent.end_amount_out_int,
            intent.start_amount_bps,
            intent.expected_amount_bps,
        ],
    )
    return "0x" + keccak(encoded).hex()


def get_authorization_hash(authorization: Authorization) -> str:
    """EIP-712 ``hashStruct`` of a matchmaker authorization.

    Raises:
        ValueError: If the authorization lacks its intent hash or solver
    """
    if authorization.intent_hash is None or authorization.authorized_solver is None:
        raise ValueError("Authorization hash requires intentHash and authorizedSolver")

    encoded = encode(
        ["bytes32", "bytes32", "address", "uint128", "uint128", "uint32", "bool"],
        [
            AUTHORIZATION_TYPEHASH,
            hex_to_bytes(authorization.intent_hash),
            hex_to_bytes(authorization.authorized_solver),
            int(authorization.max_amount_in),
            int(authorization.min_amount_out),
            authorization.block_deadline,
            authorization.is_partially_fillable,
        ],
    )
    return "0x" + keccak(encoded).hex()


def get_tx_hash(signed_tx: str) -> str:
    """Hash of a raw signed transaction (legacy or typed envelope)."""
    return "0x" + keccak(hex_to_bytes(signed_tx)).hex()
