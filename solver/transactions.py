"""Fill transaction construction.

The protocol exposes three entry points. Which one a fill uses depends only on
whether the intent is matchmaker-governed and whether an authorization is held:

    matchmaker        authorization   call
    none / solver     -               solve
    matchmaker        absent          solveWithOnChainAuthorizationCheck
    matchmaker        present         solveWithSignatureAuthorizationCheck

Gas limit and priority fee are fixed policy values supplied by configuration.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TypeAlias

from eth_account import Account
from eth_account.signers.local import LocalAccount
from eth_utils import to_checksum_address

from solver.config import SolutionShape
from solver.encoding import (
    encode_fill,
    encode_solve,
    encode_solve_with_on_chain_authorization_check,
    encode_solve_with_signature_authorization_check,
)
from solver.models.intent import Authorization, Intent, Solution
from solver.models.types import same_address
from solver.routing.route import Route


@dataclass(frozen=True)
class SolveCall:
    """Unrestricted or solver-exclusive fill."""

    intent: Intent
    solution: Solution

    method = "solve"

    def encode(self) -> str:
        return encode_solve(self.intent, self.solution)


@dataclass(frozen=True)
class OnChainAuthorizationCall:
    """Matchmaker fill relying on an authorization the matchmaker posted on-chain."""

    intent: Intent
    solution: Solution

    method = "solveWithOnChainAuthorizationCheck"

    def encode(self) -> str:
        return encode_solve_with_on_chain_authorization_check(self.intent, self.solution)


@dataclass(frozen=True)
class SignatureAuthorizationCall:
    """Matchmaker fill carrying a signed authorization."""

    intent: Intent
    solution: Solution
    authorization: Authorization

    method = "solveWithSignatureAuthorizationCheck"

    def encode(self) -> str:
        return encode_solve_with_signature_authorization_check(
            self.intent, self.solution, self.authorization
        )


FillCall: TypeAlias = SolveCall | OnChainAuthorizationCall | SignatureAuthorizationCall


def is_matchmaker_governed(intent: Intent, matchmaker: str) -> bool:
    """True if the configured matchmaker arbitrates this intent."""
    return same_address(intent.matchmaker, matchmaker)


def select_call(
    intent: Intent,
    solution: Solution,
    authorization: Authorization | None,
    matchmaker: str,
) -> FillCall:
    """Pick the protocol entry point for a fill.

    Args:
        intent: Intent being filled
        solution: Fill solution
        authorization: Matchmaker authorization, if one is held
        matchmaker: Address of the matchmaker this solver works with

    Returns:
        The call variant; an authorization on a non-matchmaker intent is ignored
    """
    if not is_matchmaker_governed(intent, matchmaker):
        return SolveCall(intent=intent, solution=solution)
    if authorization is None:
        return OnChainAuthorizationCall(intent=intent, solution=solution)
    return SignatureAuthorizationCall(intent=intent, solution=solution, authorization=authorization)


def build_solution(
    intent: Intent,
    route: Route,
    min_out: int,
    shape: SolutionShape,
    solution_proxy: str,
) -> Solution:
    """Turn a route into the solution the protocol executes.

    With the proxy shape the route is wrapped in the solver's proxy ``fill``,
    which must hand ``min_out`` back to the protocol; the router shape calls the
    route target directly.
    """
    if shape == SolutionShape.ROUTER:
        return Solution(to=route.target, data=route.calldata, amount=intent.amount_in)

    return Solution(
        to=solution_proxy,
        data=encode_fill(
            route.target,
            route.calldata,
            intent.token_in,
            intent.amount_in_int,
            intent.token_out,
            min_out,
        ),
        amount=intent.amount_in,
    )


@dataclass(frozen=True)
class SignedFillTransaction:
    """A signed EIP-1559 fill transaction ready for relay."""

    call: FillCall
    raw: str
    tx_hash: str
    sender: str
    to: str
    data: str
    nonce: int
    gas_limit: int
    max_fee_per_gas: int
    max_priority_fee_per_gas: int

    @property
    def method(self) -> str:
        return self.call.method


class TransactionBuilder:
    """Builds and signs fill transactions for one solver account."""

    def __init__(
        self,
        solver_pk: str,
        protocol: str,
        matchmaker: str,
        gas_limit: int,
        max_priority_fee_per_gas: int,
    ) -> None:
        """Initialize the builder.

        Args:
            solver_pk: Solver private key
            protocol: Protocol contract receiving the solve call
            matchmaker: Matchmaker address the solver cooperates with
            gas_limit: Fixed gas limit for every fill
            max_priority_fee_per_gas: Fixed priority fee (wei)
        """
        self.account: LocalAccount = Account.from_key(solver_pk)
        self.protocol = protocol
        self.matchmaker = matchmaker
        self.gas_limit = gas_limit
        self.max_priority_fee_per_gas = max_priority_fee_per_gas

    @property
    def address(self) -> str:
        return self.account.address

    def build(
        self,
        intent: Intent,
        solution: Solution,
        authorization: Authorization | None,
        *,
        nonce: int,
        chain_id: int,
        base_fee: int,
    ) -> SignedFillTransaction:
        """Sign the fill call matching the intent and authorization.

        ``maxFeePerGas = baseFee + priorityFee``, ``maxPriorityFeePerGas = priorityFee``.
        """
        call = select_call(intent, solution, authorization, self.matchmaker)
        data = call.encode()
        max_fee_per_gas = base_fee + self.max_priority_fee_per_gas

        signed = self.account.sign_transaction(
            {
                "type": 2,
                "chainId": chain_id,
                "nonce": nonce,
                "to": to_checksum_address(self.protocol),
                "value": 0,
                "data": data,
                "gas": self.gas_limit,
                "maxFeePerGas": max_fee_per_gas,
                "maxPriorityFeePerGas": self.max_priority_fee_per_gas,
            }
        )

        return SignedFillTransaction(
            call=call,
            raw="0x" + bytes(signed.raw_transaction).hex(),
            tx_hash="0x" + bytes(signed.hash).hex(),
            sender=self.account.address,
            to=self.protocol,
            data=data,
            nonce=nonce,
            gas_limit=self.gas_limit,
            max_fee_per_gas=max_fee_per_gas,
            max_priority_fee_per_gas=self.max_priority_fee_per_gas,
        )


@dataclass(frozen=True)
class ApprovalTx:
    """A maker's token approval transaction, as originally signed."""

    raw: str
    tx_hash: str
