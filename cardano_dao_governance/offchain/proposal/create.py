"""
Create a proposal, optionally together with a treasury action bound to one of its options.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import fire
import pycardano
from pycardano import TransactionOutput, Value

from cardano_dao_governance.onchain import identifiers
from cardano_dao_governance.onchain.action import (
    ActionDatum,
    ActionIdentifier,
    ActionTarget,
    CreateAction,
)
from cardano_dao_governance.onchain.proposal import (
    Active,
    CreateProposal,
    ProposalDatum,
)
from cardano_dao_governance.utils.to_script_context import (
    to_address,
    to_output_reference,
)
from opshin.prelude import NoOutputDatum, Token
from .. import validation
from ..context import ProtocolContext, default_context
from ..errors import StateError, ValidationError
from ..state import load_dao, require_registration, seed_avoiding, wallet_utxos
from ..tracing import traced
from ..tx import Assembled, Mint, TxPlan
from ..util import asset_from_token, token_from_string

VALIDITY_SLOTS = 300
MAX_NAME_LENGTH = 100
MAX_DESCRIPTION_LENGTH = 2000
# actions become executable at least this long after the vote ended
MIN_ACTIVATION_DELAY = 60 * 1000


@dataclass
class TargetRequest:
    address: pycardano.Address
    coins: int
    # policy id -> asset name -> amount
    tokens: Dict[bytes, Dict[bytes, int]] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict) -> "TargetRequest":
        tokens = {}
        for token_str, amount in (data.get("tokens") or {}).items():
            try:
                token = token_from_string(token_str)
            except ValueError:
                raise ValidationError(
                    f"Token {token_str} is not policy.name", code="INVALID_FIELD"
                )
            tokens.setdefault(token.policy_id, {})[token.token_name] = (
                validation.integer(f"tokens.{token_str}", amount, 1)
            )
        return cls(
            address=validation.address("target.address", data.get("address")),
            coins=validation.integer("target.coins", data.get("coins"), 0),
            tokens=tokens,
        )

    def to_target(self) -> ActionTarget:
        return ActionTarget(
            address=to_address(self.address),
            coins=self.coins,
            tokens=self.tokens,
            datum=NoOutputDatum(),
        )


@dataclass
class ActionRequest:
    name: str
    description: str
    targets: List[TargetRequest]
    # POSIX time in milliseconds, one minute after the end of the vote if not given
    activation_time: Optional[int] = None
    option: int = 1

    @classmethod
    def from_dict(cls, data: dict) -> "ActionRequest":
        targets = data.get("targets") or []
        activation_time = data.get("activation_time")
        return cls(
            name=validation.text("action.name", data.get("name"), MAX_NAME_LENGTH),
            description=validation.text(
                "action.description",
                data.get("description"),
                MAX_DESCRIPTION_LENGTH,
                required=False,
            ),
            targets=[TargetRequest.from_dict(t) for t in targets],
            activation_time=(
                validation.integer("action.activation_time", activation_time, 0)
                if activation_time is not None
                else None
            ),
            option=validation.integer("action.option", data.get("option", 1), 0),
        )


@dataclass
class CreateProposalRequest:
    dao_policy_id: bytes
    dao_key: bytes
    name: str
    description: str
    options: int
    # POSIX time in milliseconds
    end_time: int
    wallet_address: pycardano.Address
    change_address: pycardano.Address
    collateral: List[Any]
    action: Optional[ActionRequest] = None

    @classmethod
    def from_dict(cls, data: dict, now: int) -> "CreateProposalRequest":
        """
        The end of the vote is given either as end_time or as duration in seconds from now
        """
        dao_policy_id, dao_key = validation.dao_fields(data)
        wallet, change, collateral = validation.wallet_fields(data)
        if data.get("end_time") is not None:
            end_time = validation.integer("end_time", data.get("end_time"), 0)
        else:
            end_time = now + 1000 * validation.integer(
                "duration", data.get("duration"), 1
            )
        action = data.get("action")
        return cls(
            dao_policy_id=dao_policy_id,
            dao_key=dao_key,
            name=validation.text("name", data.get("name"), MAX_NAME_LENGTH),
            description=validation.text(
                "description",
                data.get("description"),
                MAX_DESCRIPTION_LENGTH,
                required=False,
            ),
            options=validation.integer("options", data.get("options", 2), 2),
            end_time=end_time,
            wallet_address=wallet,
            change_address=change,
            collateral=collateral,
            action=ActionRequest.from_dict(action) if action else None,
        )


def check_timing(request: CreateProposalRequest, dao_datum, now: int):
    duration = (request.end_time - now) // 1000
    if request.end_time <= now:
        raise ValidationError("Proposal must end in the future", code="INVALID_FIELD")
    if duration < dao_datum.min_proposal_time:
        raise ValidationError(
            f"Proposal must run for at least {dao_datum.min_proposal_time} seconds",
            code="INVALID_FIELD",
        )
    if duration > dao_datum.max_proposal_time:
        raise ValidationError(
            f"Proposal must not run longer than {dao_datum.max_proposal_time} seconds",
            code="INVALID_FIELD",
        )
    action = request.action
    if action is None:
        return
    if action.activation_time is None:
        action.activation_time = request.end_time + MIN_ACTIVATION_DELAY
    if action.activation_time < request.end_time + MIN_ACTIVATION_DELAY:
        raise ValidationError(
            "Action activation must be at least one minute after the end of the vote",
            code="INVALID_FIELD",
        )
    if not any(t.coins > 0 for t in action.targets):
        raise ValidationError(
            "Action needs at least one target receiving lovelace", code="INVALID_FIELD"
        )
    if action.option >= request.options:
        raise ValidationError(
            f"Action option {action.option} does not exist", code="INVALID_FIELD"
        )


def plan_create_proposal(
    ctx: ProtocolContext, request: CreateProposalRequest
) -> Assembled:
    if not request.name:
        raise ValidationError("Proposal name must not be empty", code="INVALID_FIELD")
    dao = load_dao(ctx, request.dao_policy_id, request.dao_key)
    check_timing(request, dao.datum, ctx.now())
    utxos = wallet_utxos(ctx, request.wallet_address)
    collateral = validation.collateral(request.collateral, utxos)
    registration = require_registration(ctx, dao, utxos)
    if registration.locked_governance_tokens < dao.datum.min_gov_proposal_create:
        raise StateError(
            f"Creating proposals requires {dao.datum.min_gov_proposal_create} locked "
            f"governance tokens, vote holds {registration.locked_governance_tokens}",
            code="INSUFFICIENT_GOVERNANCE_TOKENS",
        )
    proposal_policy_id = dao.scripts.proposal_policy_id
    if proposal_policy_id not in dao.datum.whitelisted_proposals:
        raise StateError(
            "Proposal policy is not whitelisted by the DAO", code="POLICY_NOT_WHITELISTED"
        )

    seed = seed_avoiding(utxos, dao.scripts.vote_policy_id, registration.user_name)
    seed_ref = to_output_reference(seed.input)
    asset_name = identifiers.proposal_asset_name(
        seed.input.transaction_id.payload, seed.input.index
    )
    datum = ProposalDatum(
        name=request.name.encode("utf-8"),
        description=request.description.encode("utf-8"),
        tally=[0] * request.options,
        end_time=request.end_time,
        status=Active(),
        identifier=seed_ref,
    )

    plan = TxPlan(
        message="Create DAO proposal",
        change_address=request.change_address,
        inputs=[seed],
        collateral=collateral,
        input_addresses=[request.wallet_address],
    )
    slot = ctx.current_slot()
    plan.validity_start = slot
    plan.ttl = slot + VALIDITY_SLOTS
    plan.add_reference_input(dao.utxo)
    plan.add_reference_input(registration.vote_utxo)
    plan.add_mint(
        Mint(
            policy_id=proposal_policy_id,
            assets={asset_name: 1},
            script=dao.scripts.proposal_source(mint=True),
            redeemer=CreateProposal(registration.registration_id),
        )
    )
    plan.add_output(
        TransactionOutput(
            address=dao.scripts.proposal_address,
            amount=Value(
                multi_asset=asset_from_token(Token(proposal_policy_id, asset_name), 1)
            ),
            datum=datum,
        ),
        pad_min_lovelace=True,
    )
    info = {
        "proposal_policy_id": proposal_policy_id.hex(),
        "proposal_asset_name": asset_name.hex(),
        "end_time": request.end_time,
        "action_asset_name": None,
    }

    action = request.action
    if action is not None:
        action_policy_id = dao.scripts.action_policy_id
        if action_policy_id not in dao.datum.whitelisted_actions:
            raise StateError(
                "Action policy is not whitelisted by the DAO",
                code="POLICY_NOT_WHITELISTED",
            )
        action_name = identifiers.action_id(proposal_policy_id, asset_name, 0)
        plan.add_mint(
            Mint(
                policy_id=action_policy_id,
                assets={action_name: 1},
                script=dao.scripts.action_source(mint=True),
                redeemer=CreateAction(proposal_policy_id, seed_ref),
            )
        )
        plan.add_output(
            TransactionOutput(
                address=dao.scripts.action_address,
                amount=Value(
                    multi_asset=asset_from_token(Token(action_policy_id, action_name), 1)
                ),
                datum=ActionDatum(
                    name=action.name.encode("utf-8"),
                    description=action.description.encode("utf-8"),
                    activation_time=action.activation_time,
                    action_identifier=ActionIdentifier(proposal_policy_id, asset_name, 0),
                    option=action.option,
                    targets=[t.to_target() for t in action.targets],
                    treasury=to_address(dao.scripts.treasury_address),
                ),
            ),
            pad_min_lovelace=True,
        )
        info["action_asset_name"] = action_name.hex()
    return Assembled(plan, info)


def create_proposal(ctx: ProtocolContext, request: CreateProposalRequest) -> dict:
    with traced("create_proposal") as log:
        assembled = plan_create_proposal(ctx, request)
        log.info(
            f"creating proposal {assembled.info['proposal_asset_name']}"
            + (" with action" if request.action else "")
        )
        result = assembled.build(ctx.chain.context)
        log.info(f"built transaction {result['tx_id']}")
        return result


def main(
    dao_policy_id: str,
    dao_key: str,
    name: str,
    wallet_address: str,
    collateral: str,
    duration: int,
    description: str = "",
    options: int = 2,
    action: dict = None,
    change_address: str = None,
):
    ctx = default_context()
    return create_proposal(
        ctx,
        CreateProposalRequest.from_dict(
            {
                "dao_policy_id": dao_policy_id,
                "dao_key": dao_key,
                "name": name,
                "description": description,
                "options": options,
                "duration": duration,
                "action": action,
                "wallet_address": wallet_address,
                "change_address": change_address,
                "collateral": collateral,
            },
            ctx.now(),
        ),
    )


if __name__ == "__main__":
    fire.Fire(main)
