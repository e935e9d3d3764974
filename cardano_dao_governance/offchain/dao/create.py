"""
Create a DAO.

Mints the DAO identity NFT, named after the consumed seed output, and locks it together with the
governance parameters at the DAO address. The proposal and action policies of the new DAO are
whitelisted in the datum.
"""
from dataclasses import dataclass
from typing import Any, List

import fire
import pycardano
from pycardano import TransactionOutput, Value

from cardano_dao_governance.onchain import identifiers
from cardano_dao_governance.onchain.dao import CreateDAO, DAODatum
from cardano_dao_governance.utils.contracts import DAO_MINT
from cardano_dao_governance.utils.to_script_context import to_output_reference
from opshin.prelude import Token
from .. import validation
from ..context import ProtocolContext, dao_policy_id, default_context
from ..errors import ValidationError
from ..state import wallet_utxos
from ..tracing import traced
from ..tx import Assembled, Mint, TxPlan
from ..util import asset_from_token, token_from_string


@dataclass
class CreateDaoRequest:
    name: str
    governance_token: Token
    threshold: int
    min_proposal_time: int
    max_proposal_time: int
    quorum: int
    min_gov_proposal_create: int
    wallet_address: pycardano.Address
    change_address: pycardano.Address
    collateral: List[Any]

    @classmethod
    def from_dict(cls, data: dict) -> "CreateDaoRequest":
        wallet, change, collateral = validation.wallet_fields(data)
        request = cls(
            name=validation.text("name", data.get("name"), 64),
            governance_token=governance_token(data.get("governance_token")),
            threshold=validation.integer("threshold", data.get("threshold")),
            min_proposal_time=validation.integer(
                "min_proposal_time", data.get("min_proposal_time"), 0
            ),
            max_proposal_time=validation.integer(
                "max_proposal_time", data.get("max_proposal_time"), 0
            ),
            quorum=validation.integer("quorum", data.get("quorum")),
            min_gov_proposal_create=validation.integer(
                "min_gov_proposal_create", data.get("min_gov_proposal_create", 0), 0
            ),
            wallet_address=wallet,
            change_address=change,
            collateral=collateral,
        )
        request.validate()
        return request

    def validate(self):
        if not self.name:
            raise ValidationError("DAO name must not be empty", code="INVALID_FIELD")
        if not 1 <= self.threshold <= 100:
            raise ValidationError(
                "Threshold must be between 1 and 100 percent", code="INVALID_FIELD"
            )
        if self.quorum < 0:
            raise ValidationError("Quorum must not be negative", code="INVALID_FIELD")
        if self.min_proposal_time > self.max_proposal_time:
            raise ValidationError(
                "Minimum proposal time exceeds the maximum", code="INVALID_FIELD"
            )


def governance_token(value: Any) -> Token:
    """
    Governance token given as policy.name or as concatenated hex
    """
    validation.require("governance_token", value)
    if isinstance(value, Token):
        return value
    value = str(value)
    try:
        if "." in value:
            token = token_from_string(value)
        else:
            raw = bytes.fromhex(value)
            token = Token(raw[:28], raw[28:])
    except ValueError:
        raise ValidationError("governance_token is not valid hex", code="INVALID_FIELD")
    if len(token.policy_id) != 28:
        raise ValidationError(
            "governance_token policy id must be 28 bytes", code="INVALID_FIELD"
        )
    return token


def plan_create_dao(ctx: ProtocolContext, request: CreateDaoRequest) -> Assembled:
    request.validate()
    utxos = wallet_utxos(ctx, request.wallet_address)
    collateral = validation.collateral(request.collateral, utxos)
    seed = utxos[0]
    policy_id = dao_policy_id(ctx)
    key = identifiers.dao_key(seed.input.transaction_id.payload, seed.input.index)
    scripts = ctx.dao_scripts(policy_id, key)

    datum = DAODatum(
        name=request.name.encode("utf-8"),
        governance_token=request.governance_token.policy_id
        + request.governance_token.token_name,
        threshold=request.threshold,
        min_proposal_time=request.min_proposal_time,
        max_proposal_time=request.max_proposal_time,
        quorum=request.quorum,
        min_gov_proposal_create=request.min_gov_proposal_create,
        whitelisted_proposals=[scripts.proposal_policy_id],
        whitelisted_actions=[scripts.action_policy_id],
    )

    plan = TxPlan(
        message="Create DAO",
        change_address=request.change_address,
        inputs=[seed],
        collateral=collateral,
        input_addresses=[request.wallet_address],
    )
    plan.add_mint(
        Mint(
            policy_id=policy_id,
            assets={key: 1},
            script=ctx.script_source(DAO_MINT),
            redeemer=CreateDAO(to_output_reference(seed.input)),
        )
    )
    plan.add_output(
        TransactionOutput(
            address=scripts.dao_address,
            amount=Value(multi_asset=asset_from_token(Token(policy_id, key), 1)),
            datum=datum,
        ),
        pad_min_lovelace=True,
    )
    return Assembled(
        plan,
        {
            "dao_policy_id": policy_id.hex(),
            "dao_key": key.hex(),
            "dao_address": str(scripts.dao_address),
            "vote_policy_id": scripts.vote_policy_id.hex(),
            "proposal_policy_id": scripts.proposal_policy_id.hex(),
            "action_policy_id": scripts.action_policy_id.hex(),
            "treasury_address": str(scripts.treasury_address),
        },
    )


def create_dao(ctx: ProtocolContext, request: CreateDaoRequest) -> dict:
    with traced("create_dao") as log:
        assembled = plan_create_dao(ctx, request)
        log.info(f"creating DAO {request.name!r} with key {assembled.info['dao_key']}")
        result = assembled.build(ctx.chain.context)
        log.info(f"built transaction {result['tx_id']}")
        return result


def main(
    name: str,
    governance_token: str,
    wallet_address: str,
    collateral: str,
    threshold: int = 50,
    min_proposal_time: int = 3600,
    max_proposal_time: int = 30 * 24 * 3600,
    quorum: int = 0,
    min_gov_proposal_create: int = 1,
    change_address: str = None,
):
    return create_dao(
        default_context(),
        CreateDaoRequest.from_dict(
            {
                "name": name,
                "governance_token": governance_token,
                "threshold": threshold,
                "min_proposal_time": min_proposal_time,
                "max_proposal_time": max_proposal_time,
                "quorum": quorum,
                "min_gov_proposal_create": min_gov_proposal_create,
                "wallet_address": wallet_address,
                "change_address": change_address,
                "collateral": collateral,
            }
        ),
    )


if __name__ == "__main__":
    fire.Fire(main)
