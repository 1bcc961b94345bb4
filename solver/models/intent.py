"""Pydantic models for maker intents, solutions and matchmaker authorizations.

Field names follow the on-chain structs (camelCase on the wire via aliases).
"""

from pydantic import BaseModel, Field

from solver.models.types import (
    ZERO_ADDRESS,
    Address,
    Bps,
    Bytes,
    Hash32,
    Uint32,
    Uint128,
)


class Intent(BaseModel):
    """A maker-signed, price-decaying swap order.

    The required output decays linearly from
    ``endAmountOut * (1 + startAmountBps / 10000)`` down to ``endAmountOut``
    at ``deadline``.
    """

    token_in: Address = Field(alias="tokenIn")
    token_out: Address = Field(alias="tokenOut")
    maker: Address
    matchmaker: Address = Field(
        default=ZERO_ADDRESS,
        description="Zero for unrestricted, the solver for exclusive, or a matchmaker.",
    )
    source: Address = Field(default=ZERO_ADDRESS)
    fee_bps: Bps = Field(default=0, alias="feeBps")
    surplus_bps: Bps = Field(default=0, alias="surplusBps")
    deadline: Uint32 = Field(description="Unix timestamp after which the intent is void.")
    is_partially_fillable: bool = Field(default=False, alias="isPartiallyFillable")
    amount_in: Uint128 = Field(alias="amountIn")
    end_amount_out: Uint128 = Field(
        alias="endAmountOut",
        description="Minimum acceptable output at the deadline.",
    )
    start_amount_bps: Bps = Field(default=0, alias="startAmountBps")
    expected_amount_bps: Bps = Field(default=0, alias="expectedAmountBps")
    signature: Bytes = Field(default="0x")

    model_config = {"populate_by_name": True, "frozen": True}

    @property
    def amount_in_int(self) -> int:
        return int(self.amount_in)

    @property
    def end_amount_out_int(self) -> int:
        return int(self.end_amount_out)


class Solution(BaseModel):
    """A proposed fill: the call the protocol makes to obtain the output tokens."""

    to: Address = Field(description="Contract called by the protocol during the fill.")
    data: Bytes = Field(description="Opaque calldata for the swap leg.")
    amount: Uint128 = Field(description="Amount of the intent being filled.")

    model_config = {"populate_by_name": True, "frozen": True}

    @property
    def amount_int(self) -> int:
        return int(self.amount)


class Authorization(BaseModel):
    """Matchmaker approval for a specific solver to fill an intent within bounds."""

    intent_hash: Hash32 | None = Field(default=None, alias="intentHash")
    authorized_solver: Address | None = Field(default=None, alias="authorizedSolver")
    max_amount_in: Uint128 = Field(alias="maxAmountIn")
    min_amount_out: Uint128 = Field(alias="minAmountOut")
    block_deadline: Uint32 = Field(
        alias="blockDeadline",
        description="Last block in which the authorization may be used.",
    )
    is_partially_fillable: bool = Field(default=False, alias="isPartiallyFillable")
    signature: Bytes = Field(default="0x")

    model_config = {"populate_by_name": True, "frozen": True}
