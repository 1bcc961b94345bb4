"""0x swap API route source."""

from __future__ import annotations

from collections.abc import Callable
from decimal import Decimal, InvalidOperation

import httpx
import structlog

from solver.constants import DEFAULT_ZEROEX_API_URL, NATIVE_TOKEN
from solver.models.types import same_address
from solver.routing.route import Route

logger = structlog.get_logger()

# 0x denotes native ether with this sentinel rather than the zero address
ZEROEX_NATIVE_TOKEN = "0xeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeee"


class ZeroExRouteSolver:
    """Route source backed by the 0x ``/swap/v1/quote`` endpoint.

    The quote's ``buyTokenToEthRate`` is expressed in whole tokens per ether,
    so the token's decimals are needed to convert it to wei per base unit.
    """

    def __init__(
        self,
        token_decimals: Callable[[str], int],
        base_url: str = DEFAULT_ZEROEX_API_URL,
        api_key: str = "",
        taker: str | None = None,
        client: httpx.Client | None = None,
        timeout_seconds: float = 5.0,
    ) -> None:
        """Initialize the route source.

        Args:
            token_decimals: Lookup for an ERC20's decimals (usually on-chain)
            base_url: 0x API base URL
            api_key: 0x API key, sent as ``0x-api-key``
            taker: Address that will execute the swap (the solution proxy)
            client: Optional preconfigured HTTP client
            timeout_seconds: Request timeout
        """
        self._token_decimals = token_decimals
        self._taker = taker
        headers = {"0x-api-key": api_key} if api_key else {}
        self._client = client or httpx.Client(
            base_url=base_url, headers=headers, timeout=timeout_seconds
        )

    def solve(self, token_in: str, token_out: str, amount_in: int) -> Route | None:
        params = {
            "sellToken": self._api_token(token_in),
            "buyToken": self._api_token(token_out),
            "sellAmount": str(amount_in),
        }
        if self._taker is not None:
            params["takerAddress"] = self._taker

        response = self._client.get("/swap/v1/quote", params=params)
        if response.status_code in (400, 404):
            # 0x answers "no liquidity" as a validation error
            logger.info(
                "zeroex_no_route",
                token_in=token_in,
                token_out=token_out,
                amount_in=amount_in,
                status_code=response.status_code,
            )
            return None
        response.raise_for_status()
        quote = response.json()

        try:
            amount_out = int(quote["buyAmount"])
            tokens_per_ether = Decimal(str(quote["buyTokenToEthRate"]))
        except (KeyError, ValueError, InvalidOperation):
            logger.warning("zeroex_malformed_quote", token_out=token_out, quote=quote)
            return None

        if tokens_per_ether <= 0:
            logger.info("zeroex_missing_native_rate", token_out=token_out)
            return None

        decimals = 18 if same_address(token_out, NATIVE_TOKEN) else self._token_decimals(token_out)
        native_rate = Decimal(10**18) / (tokens_per_ether * Decimal(10**decimals))

        return Route(
            target=quote["to"],
            calldata=quote["data"],
            amount_out=amount_out,
            token_out_to_native_rate=native_rate,
        )

    @staticmethod
    def _api_token(token: str) -> str:
        return ZEROEX_NATIVE_TOKEN if same_address(token, NATIVE_TOKEN) else token
