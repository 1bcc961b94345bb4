"""Shared type definitions for intent, solution and authorization models.

On-chain integer fields travel as decimal strings on the wire (JSON cannot
carry uint128 safely) and are validated against their Solidity width here.
"""

from typing import Annotated, Any

from pydantic import BeforeValidator, Field

UINT128_MAX = 2**128 - 1

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


def validate_uint128(value: Any) -> str:
    """Validate that a value is a valid uint128 decimal string.

    Args:
        value: Value to validate (string or int)

    Returns:
        Valid uint128 as decimal string

    Raises:
        ValueError: If value is not a non-negative integer within uint128 range
    """
    if isinstance(value, bool):
        raise ValueError("Uint128 must be string or int, got bool")

    if isinstance(value, int):
        int_value = value
    elif isinstance(value, str):
        try:
            int_value = int(value)
        except ValueError as err:
            raise ValueError(f"Uint128 must be a decimal integer string: '{value}'") from err
    else:
        raise ValueError(f"Uint128 must be string or int, got {type(value).__name__}")

    if int_value < 0:
        raise ValueError(f"Uint128 cannot be negative: {value}")
    if int_value > UINT128_MAX:
        raise ValueError(f"Uint128 overflow: {value} > 2^128-1")

    return str(int_value)


# Ethereum address (40 hex chars after 0x prefix)
Address = Annotated[str, Field(pattern=r"^0x[a-fA-F0-9]{40}$")]

# 128-bit unsigned integer as decimal string (validated)
Uint128 = Annotated[
    str,
    BeforeValidator(validate_uint128),
    Field(description="128-bit unsigned integer as decimal string"),
]

# Basis points (parts per 10,000), stored on-chain as uint16
Bps = Annotated[int, Field(ge=0, le=2**16 - 1)]

# Unix timestamp / block number, stored on-chain as uint32
Uint32 = Annotated[int, Field(ge=0, le=2**32 - 1)]

# Arbitrary hex bytes
Bytes = Annotated[str, Field(pattern=r"^0x[a-fA-F0-9]*$")]

# Keccak hash (32 bytes)
Hash32 = Annotated[str, Field(pattern=r"^0x[a-fA-F0-9]{64}$")]


def normalize_address(address: str) -> str:
    """Normalize an Ethereum address to lowercase with 0x prefix."""
    addr = address.lower()
    if not addr.startswith("0x"):
        addr = "0x" + addr
    return addr


def is_valid_address(address: str) -> bool:
    """Check if a string is a valid Ethereum address."""
    if not isinstance(address, str):
        return False
    if not address.startswith("0x") or len(address) != 42:
        return False
    try:
        int(address, 16)
        return True
    except ValueError:
        return False


def same_address(a: str, b: str) -> bool:
    """Case-insensitive address equality."""
    return normalize_address(a) == normalize_address(b)


def hex_to_bytes(value: str) -> bytes:
    """Decode a 0x-prefixed hex string."""
    return bytes.fromhex(value[2:] if value.startswith("0x") else value)
