"""
Evaluate a proposal after its voting period ended, fixing its terminal status.
"""
import logging
from dataclasses import dataclass
from typing import Any, List

import fire
import pycardano
from pycardano import RawCBOR, TransactionOutput

from cardano_dao_governance.onchain.codec import rebuild_with_field
from cardano_dao_governance.onchain.proposal import (
    Active,
    EvaluateProposal,
    STATUS_FIELD,
    status_name,
)
from .. import validation
from ..context import ProtocolContext, default_context
from ..errors import StateError
from ..outcome import evaluate_outcome
from ..state import load_dao, load_proposal, wallet_utxos
from ..tracing import traced
from ..tx import Assembled, ScriptInput, TxPlan

_LOGGER = logging.getLogger(__name__)

VALIDITY_SLOTS = 3600


@dataclass
class EvaluateRequest:
    dao_policy_id: bytes
    dao_key: bytes
    proposal_policy_id: bytes
    proposal_asset_name: bytes
    wallet_address: pycardano.Address
    change_address: pycardano.Address
    collateral: List[Any]

    @classmethod
    def from_dict(cls, data: dict) -> "EvaluateRequest":
        dao_policy_id, dao_key = validation.dao_fields(data)
        proposal_policy_id, proposal_asset_name = validation.proposal_fields(data)
        wallet, change, collateral = validation.wallet_fields(data)
        return cls(
            dao_policy_id,
            dao_key,
            proposal_policy_id,
            proposal_asset_name,
            wallet,
            change,
            collateral,
        )


def plan_evaluate(ctx: ProtocolContext, request: EvaluateRequest) -> Assembled:
    dao = load_dao(ctx, request.dao_policy_id, request.dao_key)
    proposal = load_proposal(
        ctx, dao, request.proposal_policy_id, request.proposal_asset_name
    )
    if not isinstance(proposal.datum.status, Active):
        raise StateError(
            f"Proposal already evaluated as {status_name(proposal.datum.status)}",
            code="PROPOSAL_NOT_ACTIVE",
        )
    if ctx.now() <= proposal.datum.end_time:
        raise StateError("Voting period has not ended yet", code="VOTING_NOT_ENDED")
    utxos = wallet_utxos(ctx, request.wallet_address)
    collateral = validation.collateral(request.collateral, utxos)

    outcome = evaluate_outcome(
        list(proposal.datum.tally), dao.datum.quorum, dao.datum.threshold
    )
    if outcome.is_tie:
        _LOGGER.warning(
            f"Options {outcome.tied_options} are tied, option {outcome.winning_option} wins"
        )

    plan = TxPlan(
        message="Evaluate DAO proposal",
        change_address=request.change_address,
        collateral=collateral,
        input_addresses=[request.wallet_address],
    )
    slot = ctx.current_slot()
    plan.validity_start = slot
    plan.ttl = slot + VALIDITY_SLOTS
    plan.script_inputs.append(
        ScriptInput(proposal.utxo, dao.scripts.proposal_source(), EvaluateProposal())
    )
    plan.add_reference_input(dao.utxo)
    plan.add_output(
        TransactionOutput(
            address=proposal.utxo.output.address,
            amount=proposal.utxo.output.amount,
            datum=RawCBOR(
                rebuild_with_field(proposal.raw, STATUS_FIELD, outcome.status)
            ),
        )
    )
    return Assembled(
        plan,
        {
            "proposal_id": f"{proposal.policy_id.hex()}.{proposal.asset_name.hex()}",
            "status": status_name(outcome.status),
            "winning_option": outcome.winning_option,
            "total_votes": outcome.total_votes,
            "tied_options": outcome.tied_options,
        },
    )


def evaluate(ctx: ProtocolContext, request: EvaluateRequest) -> dict:
    with traced("evaluate") as log:
        assembled = plan_evaluate(ctx, request)
        log.info(f"proposal evaluates to {assembled.info['status']}")
        result = assembled.build(ctx.chain.context)
        log.info(f"built transaction {result['tx_id']}")
        return result


def main(
    dao_policy_id: str,
    dao_key: str,
    proposal_policy_id: str,
    proposal_asset_name: str,
    wallet_address: str,
    collateral: str,
    change_address: str = None,
):
    return evaluate(
        default_context(),
        EvaluateRequest.from_dict(
            {
                "dao_policy_id": dao_policy_id,
                "dao_key": dao_key,
                "proposal_policy_id": proposal_policy_id,
                "proposal_asset_name": proposal_asset_name,
                "wallet_address": wallet_address,
                "change_address": change_address,
                "collateral": collateral,
            }
        ),
    )


if __name__ == "__main__":
    fire.Fire(main)
