"""Protocol constants for the Memswap solver.

Centralizes well-known addresses (per chain id) and protocol parameters.
"""

from solver.models.types import ZERO_ADDRESS, is_valid_address


def _validate_addresses(name: str, addresses: dict[int, str]) -> dict[int, str]:
    """Validate a chain-id -> address table.

    Raises:
        ValueError: If any address is invalid
    """
    for chain_id, address in addresses.items():
        if not is_valid_address(address):
            raise ValueError(f"Invalid {name} address on chain {chain_id}: {address}")
    return addresses


# Protocol (ERC20 intents)
MEMSWAP = _validate_addresses(
    "MEMSWAP",
    {
        1: "0x19a1b89a83b2729c5c3920e5719b01f80af49621",
        5: "0xb7493d86a83eb7e4b57a3747013aae82c907a58e",
    },
)
# Protocol-wrapped ether, only ever unwrapped to WETH9 by the protocol itself
MEMETH = _validate_addresses(
    "MEMETH",
    {
        1: "0x8adda31fe63696ac64ded7d0ea208102b1358c44",
        5: "0x6cb5504b957625d01a88db4b27eaafd5ae4422b6",
    },
)

# Solver-held proxy that executes a route and forwards the output
SOLUTION_PROXY = _validate_addresses(
    "SOLUTION_PROXY",
    {
        1: "0x58c90b5dbc69963fb0cabee1163747fdbb7a8b18",
        5: "0x2712515766af2e2680f20e8372c7ea6010eaca66",
    },
)

MATCHMAKER = _validate_addresses(
    "MATCHMAKER",
    {
        1: "0xf4f6df97aa065758c70e6fb7d938ec392dda98e0",
        5: "0xf4f6df97aa065758c70e6fb7d938ec392dda98e0",
    },
)

WETH9 = _validate_addresses(
    "WETH9",
    {
        1: "0xc02aaa39b223fe8d0a0e5c4f27ead9083c756cc2",
        5: "0xb4fbf271143f4fbf7b91a5ded31805e42b2208d6",
    },
)

NATIVE_TOKEN = ZERO_ADDRESS

# Seconds between blocks; also the rendezvous TTL and handshake retry delay
BLOCK_TIME = 12

# Basis points denominator
BPS_BASE = 10_000

# 1e18, the fixed-point unit of native-asset rates
WEI_PER_ETHER = 10**18
GWEI = 10**9

# Fill policy defaults (fixed rather than estimated per call)
DEFAULT_GAS_LIMIT = 1_000_000
DEFAULT_MAX_PRIORITY_FEE_PER_GAS = 10 * GWEI
# 0.00001 ETH
DEFAULT_MIN_NET_PROFIT_WEI = 10**13

DEFAULT_FLASHBOTS_RELAY_URL = "https://relay.flashbots.net"
DEFAULT_ZEROEX_API_URL = "https://api.0x.org"
