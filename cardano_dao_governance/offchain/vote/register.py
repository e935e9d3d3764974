"""
Register a wallet for voting in a DAO.

Mints the vote registration pair, locks the governance tokens together with the reference token
at the vote address and sends the user token to the wallet.
"""
from dataclasses import dataclass
from typing import Any, List

import fire
import pycardano
from pycardano import TransactionOutput, Value

from cardano_dao_governance.onchain import identifiers
from cardano_dao_governance.onchain.vote import RegisterVote, empty_vote_datum
from cardano_dao_governance.utils.to_script_context import to_output_reference
from .. import validation
from ..context import ProtocolContext, default_context
from ..errors import StateError, ValidationError
from ..state import DaoState, load_dao, wallet_utxos
from ..tracing import traced
from ..tx import Assembled, Mint, TxPlan
from ..util import asset_from_token, is_ada_only
from opshin.prelude import Token


@dataclass
class RegisterRequest:
    dao_policy_id: bytes
    dao_key: bytes
    amount: int
    wallet_address: pycardano.Address
    change_address: pycardano.Address
    collateral: List[Any]

    @classmethod
    def from_dict(cls, data: dict) -> "RegisterRequest":
        dao_policy_id, dao_key = validation.dao_fields(data)
        wallet, change, collateral = validation.wallet_fields(data)
        return cls(
            dao_policy_id=dao_policy_id,
            dao_key=dao_key,
            amount=validation.integer("amount", data.get("amount")),
            wallet_address=wallet,
            change_address=change,
            collateral=collateral,
        )


def choose_seed(
    utxos: List[pycardano.UTxO], governance_utxos: List[pycardano.UTxO]
) -> pycardano.UTxO:
    """
    Largest ADA-only UTxO, else the largest governance UTxO, else the first one
    """
    ada_only = [u for u in utxos if is_ada_only(u)]
    if ada_only:
        return max(ada_only, key=lambda u: u.output.amount.coin)
    if governance_utxos:
        return governance_utxos[0]
    return utxos[0]


def select_governance_inputs(
    dao: DaoState, utxos: List[pycardano.UTxO], amount: int
) -> List[pycardano.UTxO]:
    """
    Seed UTxO first, then governance UTxOs from largest to smallest until amount is covered
    """
    governance_utxos = sorted(
        (u for u in utxos if dao.governance_amount(u.output.amount) > 0),
        key=lambda u: dao.governance_amount(u.output.amount),
        reverse=True,
    )
    available = sum(dao.governance_amount(u.output.amount) for u in governance_utxos)
    if available < amount:
        raise StateError(
            f"Wallet holds {available} governance tokens, {amount} required",
            code="INSUFFICIENT_GOVERNANCE_TOKENS",
        )
    seed = choose_seed(utxos, governance_utxos)
    inputs = [seed]
    covered = dao.governance_amount(seed.output.amount)
    for u in governance_utxos:
        if covered >= amount:
            break
        if u.input == seed.input:
            continue
        inputs.append(u)
        covered += dao.governance_amount(u.output.amount)
    return inputs


def plan_register(ctx: ProtocolContext, request: RegisterRequest) -> Assembled:
    if request.amount <= 0:
        raise ValidationError("Amount must be positive", code="INVALID_FIELD")
    dao = load_dao(ctx, request.dao_policy_id, request.dao_key)
    if request.amount < dao.datum.min_gov_proposal_create:
        raise StateError(
            f"At least {dao.datum.min_gov_proposal_create} governance tokens must be locked",
            code="AMOUNT_TOO_LOW",
        )
    utxos = wallet_utxos(ctx, request.wallet_address)
    collateral = validation.collateral(request.collateral, utxos)
    inputs = select_governance_inputs(dao, utxos, request.amount)
    seed = inputs[0]

    registration_id = identifiers.vote_registration_id(
        seed.input.transaction_id.payload, seed.input.index
    )
    vote_policy_id = dao.scripts.vote_policy_id
    reference_tk = Token(vote_policy_id, identifiers.vote_reference_name(registration_id))
    user_tk = Token(vote_policy_id, identifiers.vote_user_name(registration_id))
    governance_tk = Token(
        dao.datum.governance_policy_id, dao.datum.governance_asset_name
    )

    plan = TxPlan(
        message="Register DAO vote",
        change_address=request.change_address,
        inputs=inputs,
        collateral=collateral,
        input_addresses=[request.wallet_address],
    )
    plan.add_reference_input(dao.utxo)
    plan.add_mint(
        Mint(
            policy_id=vote_policy_id,
            assets={reference_tk.token_name: 1, user_tk.token_name: 1},
            script=dao.scripts.vote_source(mint=True),
            redeemer=RegisterVote(to_output_reference(seed.input)),
        )
    )
    plan.add_output(
        TransactionOutput(
            address=dao.scripts.vote_address,
            amount=Value(
                multi_asset=asset_from_token(reference_tk, 1)
                + asset_from_token(governance_tk, request.amount)
            ),
            datum=empty_vote_datum(),
        ),
        pad_min_lovelace=True,
    )
    plan.add_output(
        TransactionOutput(
            address=request.change_address,
            amount=Value(multi_asset=asset_from_token(user_tk, 1)),
        ),
        pad_min_lovelace=True,
    )
    return Assembled(
        plan,
        {
            "vote_policy_id": vote_policy_id.hex(),
            "vote_nft_asset_name": user_tk.token_name.hex(),
            "reference_asset_name": reference_tk.token_name.hex(),
            "governance_tokens_locked": request.amount,
            "governance_utxos_used": len(inputs),
        },
    )


def register(ctx: ProtocolContext, request: RegisterRequest) -> dict:
    with traced("register") as log:
        assembled = plan_register(ctx, request)
        log.info(
            f"locking {request.amount} governance tokens for vote "
            f"{assembled.info['vote_nft_asset_name']}"
        )
        result = assembled.build(ctx.chain.context)
        log.info(f"built transaction {result['tx_id']}")
        return result


def main(
    dao_policy_id: str,
    dao_key: str,
    amount: int,
    wallet_address: str,
    collateral: str,
    change_address: str = None,
):
    return register(
        default_context(),
        RegisterRequest.from_dict(
            {
                "dao_policy_id": dao_policy_id,
                "dao_key": dao_key,
                "amount": amount,
                "wallet_address": wallet_address,
                "change_address": change_address,
                "collateral": collateral,
            }
        ),
    )


if __name__ == "__main__":
    fire.Fire(main)
