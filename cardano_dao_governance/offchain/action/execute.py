"""
Execute a treasury action of a passed proposal.

The action NFT is burned, treasury UTxOs are collected until they cover the payout,
every target is paid and the remainder goes back to the treasury.
"""
import logging
from dataclasses import dataclass
from typing import Any, List

import fire
import pycardano
from pycardano import DatumHash, TransactionOutput, Value

from cardano_dao_governance.onchain.action import (
    ActionTarget,
    ExecuteAction,
    SpendAction,
    SpendTreasury,
)
from cardano_dao_governance.onchain.proposal import Passed, status_name
from cardano_dao_governance.utils.from_script_context import from_address
from opshin.prelude import SomeOutputDatum, SomeOutputDatumHash
from .. import validation
from ..chain import resolve_concurrently
from ..context import ProtocolContext, default_context
from ..errors import NotFoundError, StateError
from ..state import load_action, load_dao, load_proposal, wallet_utxos
from ..tracing import traced
from ..treasury.select import select_treasury_inputs
from ..tx import Assembled, Mint, ScriptInput, TxPlan
from ..util import multi_asset_from_dict, subtract_value

_LOGGER = logging.getLogger(__name__)

VALIDITY_SLOTS = 300


@dataclass
class ExecuteRequest:
    dao_policy_id: bytes
    dao_key: bytes
    proposal_policy_id: bytes
    proposal_asset_name: bytes
    wallet_address: pycardano.Address
    change_address: pycardano.Address
    collateral: List[Any]
    action_index: int = 0

    @classmethod
    def from_dict(cls, data: dict) -> "ExecuteRequest":
        dao_policy_id, dao_key = validation.dao_fields(data)
        proposal_policy_id, proposal_asset_name = validation.proposal_fields(data)
        wallet, change, collateral = validation.wallet_fields(data)
        return cls(
            dao_policy_id=dao_policy_id,
            dao_key=dao_key,
            proposal_policy_id=proposal_policy_id,
            proposal_asset_name=proposal_asset_name,
            wallet_address=wallet,
            change_address=change,
            collateral=collateral,
            action_index=validation.integer(
                "action_index", data.get("action_index", 0), 0
            ),
        )


def target_output(target: ActionTarget, network: pycardano.Network) -> TransactionOutput:
    output = TransactionOutput(
        address=from_address(target.address, network),
        amount=Value(target.coins, multi_asset_from_dict(target.tokens)),
    )
    if isinstance(target.datum, SomeOutputDatum):
        output.datum = target.datum.datum
    elif isinstance(target.datum, SomeOutputDatumHash):
        output.datum_hash = DatumHash(target.datum.datum_hash)
    return output


def plan_execute(ctx: ProtocolContext, request: ExecuteRequest) -> Assembled:
    dao = load_dao(ctx, request.dao_policy_id, request.dao_key)
    proposal = load_proposal(
        ctx, dao, request.proposal_policy_id, request.proposal_asset_name
    )
    action = load_action(
        ctx,
        dao,
        request.proposal_policy_id,
        request.proposal_asset_name,
        request.action_index,
    )
    status = proposal.datum.status
    if not isinstance(status, Passed):
        raise StateError(
            f"Proposal has status {status_name(status)}, it did not pass",
            code="PROPOSAL_NOT_PASSED",
        )
    if status.option != action.datum.option:
        raise StateError(
            f"Option {status.option} won, the action requires option {action.datum.option}",
            code="OPTION_MISMATCH",
        )
    if ctx.now() < action.datum.activation_time:
        raise StateError("Action is not active yet", code="ACTION_NOT_ACTIVE")

    utxos = wallet_utxos(ctx, request.wallet_address)
    collateral = validation.collateral(request.collateral, utxos)

    treasury_address = from_address(action.datum.treasury, ctx.network)
    treasury_utxos = ctx.chain.utxos(treasury_address)
    if not treasury_utxos:
        raise NotFoundError(
            f"No UTxOs at treasury {treasury_address}", code="TREASURY_UTXOS_NOT_FOUND"
        )
    outputs = [target_output(t, ctx.network) for t in action.datum.targets]
    payout = Value()
    for o in outputs:
        payout += o.amount
    selection = select_treasury_inputs(
        treasury_utxos, action.datum.total_coins, payout.multi_asset
    )
    _LOGGER.debug(
        f"Selected {len(selection.selected)} treasury UTxOs holding {selection.accumulated}"
    )
    collected = Value()
    for u in selection.selected:
        collected += u.output.amount
    change = subtract_value(collected, payout)

    action_spend, treasury_spend, action_mint = resolve_concurrently(
        lambda: dao.scripts.action_source(),
        lambda: dao.scripts.treasury_source(),
        lambda: dao.scripts.action_source(mint=True),
    )

    plan = TxPlan(
        message="Execute DAO action",
        change_address=request.change_address,
        collateral=collateral,
        input_addresses=[request.wallet_address],
    )
    slot = ctx.current_slot()
    plan.validity_start = slot
    plan.ttl = slot + VALIDITY_SLOTS
    plan.script_inputs.append(ScriptInput(action.utxo, action_spend, SpendAction()))
    for u in selection.selected:
        plan.script_inputs.append(ScriptInput(u, treasury_spend, SpendTreasury()))
    plan.add_reference_input(dao.utxo)
    plan.add_reference_input(proposal.utxo)
    plan.add_mint(
        Mint(
            policy_id=action.policy_id,
            assets={action.asset_name: -1},
            script=action_mint,
            redeemer=ExecuteAction(),
        )
    )
    for o in outputs:
        plan.add_output(o)
    if change.coin > 0 or change.multi_asset:
        plan.add_output(
            TransactionOutput(address=treasury_address, amount=change),
            pad_min_lovelace=True,
        )
    return Assembled(
        plan,
        {
            "action_id": f"{action.policy_id.hex()}.{action.asset_name.hex()}",
            "action_name": action.datum.name.decode("utf-8", errors="replace"),
            "targets": len(outputs),
            "total_paid": action.datum.total_coins,
            "treasury_inputs": len(selection.selected),
            "treasury_change": change.coin,
        },
    )


def execute_action(ctx: ProtocolContext, request: ExecuteRequest) -> dict:
    with traced("execute_action") as log:
        assembled = plan_execute(ctx, request)
        log.info(
            f"paying {assembled.info['total_paid']} lovelace to "
            f"{assembled.info['targets']} targets"
        )
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
    action_index: int = 0,
    change_address: str = None,
):
    return execute_action(
        default_context(),
        ExecuteRequest.from_dict(
            {
                "dao_policy_id": dao_policy_id,
                "dao_key": dao_key,
                "proposal_policy_id": proposal_policy_id,
                "proposal_asset_name": proposal_asset_name,
                "action_index": action_index,
                "wallet_address": wallet_address,
                "change_address": change_address,
                "collateral": collateral,
            }
        ),
    )


if __name__ == "__main__":
    fire.Fire(main)
