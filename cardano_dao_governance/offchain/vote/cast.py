"""
Cast a vote on an active proposal.

The vote receipts (policy: proposal, name: receipt id of proposal and option, quantity: vote power)
are minted into the vote UTxO of the voter, and the tally of the proposal is increased.
Only the tally field of the proposal datum changes, all other fields are kept byte for byte.
"""
from dataclasses import dataclass
from typing import Any, List, Optional

import fire
import pycardano
from pycardano import RawCBOR, TransactionOutput, Value

from cardano_dao_governance.onchain import identifiers
from cardano_dao_governance.onchain.codec import datum_cbor, rebuild_with_field
from cardano_dao_governance.onchain.proposal import (
    Active,
    CastVote as ProposalCastVote,
    TALLY_FIELD,
)
from cardano_dao_governance.onchain.vote import CastVote as VoteCastVote
from opshin.prelude import Token
from .. import validation
from ..chain import resolve_concurrently
from ..context import ProtocolContext, default_context
from ..errors import StateError, ValidationError
from ..state import (
    load_dao,
    load_proposal,
    proposal_mint_source,
    require_registration,
    seed_avoiding,
    wallet_utxos,
)
from ..tracing import traced
from ..tx import Assembled, Mint, ScriptInput, TxPlan
from ..util import asset_from_token

VALIDITY_SLOTS = 3600


@dataclass
class CastVoteRequest:
    dao_policy_id: bytes
    dao_key: bytes
    proposal_policy_id: bytes
    proposal_asset_name: bytes
    option: int
    wallet_address: pycardano.Address
    change_address: pycardano.Address
    collateral: List[Any]
    # all locked governance tokens if not given
    vote_power: Optional[int] = None

    @classmethod
    def from_dict(cls, data: dict) -> "CastVoteRequest":
        dao_policy_id, dao_key = validation.dao_fields(data)
        proposal_policy_id, proposal_asset_name = validation.proposal_fields(data)
        wallet, change, collateral = validation.wallet_fields(data)
        vote_power = data.get("vote_power")
        return cls(
            dao_policy_id=dao_policy_id,
            dao_key=dao_key,
            proposal_policy_id=proposal_policy_id,
            proposal_asset_name=proposal_asset_name,
            option=validation.integer("option", data.get("option"), 0),
            wallet_address=wallet,
            change_address=change,
            collateral=collateral,
            vote_power=(
                validation.integer("vote_power", vote_power)
                if vote_power is not None
                else None
            ),
        )


def plan_cast_vote(ctx: ProtocolContext, request: CastVoteRequest) -> Assembled:
    dao = load_dao(ctx, request.dao_policy_id, request.dao_key)
    utxos = wallet_utxos(ctx, request.wallet_address)
    collateral = validation.collateral(request.collateral, utxos)
    registration = require_registration(ctx, dao, utxos)

    vote_power = request.vote_power
    if vote_power is None:
        vote_power = registration.locked_governance_tokens
    if vote_power <= 0:
        raise ValidationError("Vote power must be positive", code="INVALID_FIELD")
    if vote_power > registration.locked_governance_tokens:
        raise StateError(
            f"Insufficient voting power, {registration.locked_governance_tokens} available",
            code="INSUFFICIENT_VOTING_POWER",
        )

    proposal = load_proposal(
        ctx, dao, request.proposal_policy_id, request.proposal_asset_name
    )
    if not isinstance(proposal.datum.status, Active):
        raise StateError("Proposal is not active", code="PROPOSAL_NOT_ACTIVE")
    if ctx.now() > proposal.datum.end_time:
        raise StateError("Voting period has ended", code="VOTING_ENDED")
    tally = list(proposal.datum.tally)
    if request.option >= len(tally):
        raise ValidationError(
            f"Option {request.option} does not exist, proposal has {len(tally)} options",
            code="INVALID_FIELD",
        )
    tally[request.option] += vote_power

    receipt_tk = Token(
        proposal.policy_id,
        identifiers.vote_receipt_id(proposal.asset_name, request.option),
    )
    vote_utxo = registration.vote_utxo
    proposal_spend, proposal_mint, vote_spend = resolve_concurrently(
        lambda: dao.scripts.proposal_source(),
        lambda: proposal_mint_source(dao, proposal.policy_id),
        lambda: dao.scripts.vote_source(),
    )

    plan = TxPlan(
        message="Cast DAO vote",
        change_address=request.change_address,
        inputs=[
            seed_avoiding(
                utxos, dao.scripts.vote_policy_id, registration.user_name
            )
        ],
        collateral=collateral,
        input_addresses=[request.wallet_address],
    )
    slot = ctx.current_slot()
    plan.validity_start = slot
    plan.ttl = slot + VALIDITY_SLOTS
    plan.script_inputs.append(
        ScriptInput(proposal.utxo, proposal_spend, ProposalCastVote())
    )
    plan.script_inputs.append(ScriptInput(vote_utxo, vote_spend, VoteCastVote()))
    plan.add_reference_input(dao.utxo)
    plan.add_mint(
        Mint(
            policy_id=proposal.policy_id,
            assets={receipt_tk.token_name: vote_power},
            script=proposal_mint,
            redeemer=ProposalCastVote(),
        )
    )
    plan.add_output(
        TransactionOutput(
            address=proposal.utxo.output.address,
            amount=proposal.utxo.output.amount,
            datum=RawCBOR(rebuild_with_field(proposal.raw, TALLY_FIELD, tally)),
        )
    )
    vote_value = vote_utxo.output.amount
    plan.add_output(
        TransactionOutput(
            address=vote_utxo.output.address,
            amount=Value(
                vote_value.coin,
                vote_value.multi_asset + asset_from_token(receipt_tk, vote_power),
            ),
            datum=RawCBOR(datum_cbor(vote_utxo.output)),
        )
    )
    return Assembled(
        plan,
        {
            "proposal_id": f"{proposal.policy_id.hex()}.{proposal.asset_name.hex()}",
            "option": request.option,
            "vote_power": vote_power,
            "receipt_asset_name": receipt_tk.token_name.hex(),
            "new_tally": tally,
        },
    )


def cast_vote(ctx: ProtocolContext, request: CastVoteRequest) -> dict:
    with traced("cast_vote") as log:
        assembled = plan_cast_vote(ctx, request)
        log.info(
            f"voting {assembled.info['vote_power']} for option {request.option} "
            f"of {assembled.info['proposal_id']}"
        )
        result = assembled.build(ctx.chain.context)
        log.info(f"built transaction {result['tx_id']}")
        return result


def main(
    dao_policy_id: str,
    dao_key: str,
    proposal_policy_id: str,
    proposal_asset_name: str,
    option: int,
    wallet_address: str,
    collateral: str,
    vote_power: int = None,
    change_address: str = None,
):
    return cast_vote(
        default_context(),
        CastVoteRequest.from_dict(
            {
                "dao_policy_id": dao_policy_id,
                "dao_key": dao_key,
                "proposal_policy_id": proposal_policy_id,
                "proposal_asset_name": proposal_asset_name,
                "option": option,
                "vote_power": vote_power,
                "wallet_address": wallet_address,
                "change_address": change_address,
                "collateral": collateral,
            }
        ),
    )


if __name__ == "__main__":
    fire.Fire(main)
