"""Calldata encoding for the protocol's solve entry points and the solution proxy."""

from __future__ import annotations

from eth_abi import encode  # type: ignore[attr-defined]
from eth_utils import function_signature_to_4byte_selector

from solver.models.intent import Authorization, Intent, Solution
from solver.models.types import hex_to_bytes, normalize_address

# (address tokenIn, address tokenOut, address maker, address matchmaker,
#  address source, uint16 feeBps, uint16 surplusBps, uint32 deadline,
#  bool isPartiallyFillable, uint128 amountIn, uint128 endAmountOut,
#  uint16 startAmountBps, uint16 expectedAmountBps, bytes signature)
INTENT_TUPLE = (
    "(address,address,address,address,address,uint16,uint16,uint32,bool,"
    "uint128,uint128,uint16,uint16,bytes)"
)
# (address to, bytes data, uint128 amount)
SOLUTION_TUPLE = "(address,bytes,uint128)"
# (uint128 maxAmountIn, uint128 minAmountOut, uint32 blockDeadline, bool isPartiallyFillable)
AUTHORIZATION_TUPLE = "(uint128,uint128,uint32,bool)"

SOLVE_SELECTOR = function_signature_to_4byte_selector(
    f"solve({INTENT_TUPLE},{SOLUTION_TUPLE})"
)
SOLVE_WITH_ON_CHAIN_AUTHORIZATION_CHECK_SELECTOR = function_signature_to_4byte_selector(
    f"solveWithOnChainAuthorizationCheck({INTENT_TUPLE},{SOLUTION_TUPLE})"
)
SOLVE_WITH_SIGNATURE_AUTHORIZATION_CHECK_SELECTOR = function_signature_to_4byte_selector(
    f"solveWithSignatureAuthorizationCheck({INTENT_TUPLE},{SOLUTION_TUPLE},"
    f"{AUTHORIZATION_TUPLE},bytes)"
)

# fill(address to, bytes data, address tokenIn, uint256 amountIn, address tokenOut, uint256 amountOut)
FILL_SELECTOR = function_signature_to_4byte_selector(
    "fill(address,bytes,address,uint256,address,uint256)"
)


def _address(value: str) -> bytes:
    return hex_to_bytes(normalize_address(value))


def intent_values(intent: Intent) -> tuple:
    """Intent fields in on-chain struct order."""
    return (
        _address(intent.token_in),
        _address(intent.token_out),
        _address(intent.maker),
        _address(intent.matchmaker),
        _address(intent.source),
        intent.fee_bps,
        intent.surplus_bps,
        intent.deadline,
        intent.is_partially_fillable,
        intent.amount_in_int,
        intent.end_amount_out_int,
        intent.start_amount_bps,
        intent.expected_amount_bps,
        hex_to_bytes(intent.signature),
    )


def solution_values(solution: Solution) -> tuple:
    """Solution fields in on-chain struct order."""
    return (_address(solution.to), hex_to_bytes(solution.data), solution.amount_int)


def authorization_values(authorization: Authorization) -> tuple:
    """Authorization fields carried in calldata (hash and solver are implied)."""
    return (
        int(authorization.max_amount_in),
        int(authorization.min_amount_out),
        authorization.block_deadline,
        authorization.is_partially_fillable,
    )


def encode_solve(intent: Intent, solution: Solution) -> str:
    """Encode ``solve(intent, solution)``."""
    params = encode([INTENT_TUPLE, SOLUTION_TUPLE], [intent_values(intent), solution_values(solution)])
    return "0x" + (SOLVE_SELECTOR + params).hex()


def encode_solve_with_on_chain_authorization_check(intent: Intent, solution: Solution) -> str:
    """Encode ``solveWithOnChainAuthorizationCheck(intent, solution)``."""
    params = encode([INTENT_TUPLE, SOLUTION_TUPLE], [intent_values(intent), solution_values(solution)])
    return "0x" + (SOLVE_WITH_ON_CHAIN_AUTHORIZATION_CHECK_SELECTOR + params).hex()


def encode_solve_with_signature_authorization_check(
    intent: Intent,
    solution: Solution,
    authorization: Authorization,
) -> str:
    """Encode ``solveWithSignatureAuthorizationCheck(intent, solution, auth, signature)``."""
    params = encode(
        [INTENT_TUPLE, SOLUTION_TUPLE, AUTHORIZATION_TUPLE, "bytes"],
        [
            intent_values(intent),
            solution_values(solution),
            authorization_values(authorization),
            hex_to_bytes(authorization.signature),
        ],
    )
    return "0x" + (SOLVE_WITH_SIGNATURE_AUTHORIZATION_CHECK_SELECTOR + params).hex()


def encode_fill(
    to: str,
    data: str,
    token_in: str,
    amount_in: int,
    token_out: str,
    amount_out: int,
) -> str:
    """Encode the solution proxy's ``fill`` call.

    Args:
        to: Swap target the proxy calls
        data: Swap calldata
        token_in: Intent input token
        amount_in: Intent input amount
        token_out: Intent output token
        amount_out: Output the proxy must hand back to the protocol

    Returns:
        Calldata hex string
    """
    params = encode(
        ["address", "bytes", "address", "uint256", "address", "uint256"],
        [_address(to), hex_to_bytes(data), _address(token_in), amount_in, _address(token_out), amount_out],
    )
    return "0x" + (FILL_SELECTOR + params).hex()
