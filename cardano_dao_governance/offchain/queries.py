"""
Read-only views of the state of a DAO, serialized to plain dicts
"""
from typing import List, Optional

import pycardano

from cardano_dao_governance.onchain.dao import DAODatum
from cardano_dao_governance.onchain.identifiers import parse_cip67_label
from cardano_dao_governance.onchain.proposal import Active, Passed, status_name
from cardano_dao_governance.utils.from_script_context import from_address
from .context import ProtocolContext, dao_address
from .context import dao_policy_id as resolve_dao_policy_id
from .errors import NotFoundError
from .locator import decodable, find_assets_with_quantity
from .outcome import evaluate_outcome
from .state import (
    ActionState,
    DaoState,
    ProposalState,
    find_registration,
    list_proposal_states,
    load_action,
    load_dao,
    load_proposal,
)
from .treasury.select import treasury_balance
from .util import iter_assets, utxo_ref
from .vote.unregister import analyze_receipts


def _text(value: bytes) -> str:
    return value.decode("utf-8", errors="replace")


def dao_to_dict(dao: DaoState) -> dict:
    d = dao.datum
    return {
        "policy_id": dao.policy_id.hex(),
        "key": dao.key.hex(),
        "utxo": utxo_ref(dao.utxo),
        "name": _text(d.name),
        "governance_token": f"{d.governance_policy_id.hex()}.{d.governance_asset_name.hex()}",
        "threshold": d.threshold,
        "min_proposal_time": d.min_proposal_time,
        "max_proposal_time": d.max_proposal_time,
        "quorum": d.quorum,
        "min_gov_proposal_create": d.min_gov_proposal_create,
        "whitelisted_proposals": [p.hex() for p in d.whitelisted_proposals],
        "whitelisted_actions": [a.hex() for a in d.whitelisted_actions],
        "addresses": {
            "dao": str(dao.scripts.dao_address),
            "vote": str(dao.scripts.vote_address),
            "proposal": str(dao.scripts.proposal_address),
            "treasury": str(dao.scripts.treasury_address),
            "action": str(dao.scripts.action_address),
        },
    }


def proposal_to_dict(proposal: ProposalState, now: int) -> dict:
    d = proposal.datum
    return {
        "policy_id": proposal.policy_id.hex(),
        "asset_name": proposal.asset_name.hex(),
        "utxo": utxo_ref(proposal.utxo),
        "name": _text(d.name),
        "description": _text(d.description),
        "tally": list(d.tally),
        "total_votes": sum(d.tally),
        "end_time": d.end_time,
        "status": status_name(d.status),
        "winning_option": d.status.option if isinstance(d.status, Passed) else None,
        "voting_open": isinstance(d.status, Active) and now <= d.end_time,
        "identifier": {
            "transaction_id": d.identifier.transaction_id.hex(),
            "output_index": d.identifier.output_index,
        },
    }


def action_to_dict(action: ActionState, network: pycardano.Network) -> dict:
    d = action.datum
    return {
        "policy_id": action.policy_id.hex(),
        "asset_name": action.asset_name.hex(),
        "utxo": utxo_ref(action.utxo),
        "name": _text(d.name),
        "description": _text(d.description),
        "activation_time": d.activation_time,
        "option": d.option,
        "proposal_policy_id": d.action_identifier.proposal_policy_id.hex(),
        "proposal_asset_name": d.action_identifier.proposal_identifier.hex(),
        "action_index": d.action_identifier.action_index,
        "total_coins": d.total_coins,
        "targets": [
            {
                "address": str(from_address(t.address, network)),
                "coins": t.coins,
                "tokens": {
                    f"{policy_id.hex()}.{name.hex()}": amount
                    for policy_id, names in t.tokens.items()
                    for name, amount in names.items()
                },
            }
            for t in d.targets
        ],
        "treasury": str(from_address(d.treasury, network)),
    }


def get_dao_info(ctx: ProtocolContext, dao_policy_id: bytes, dao_key: bytes) -> dict:
    return dao_to_dict(load_dao(ctx, dao_policy_id, dao_key))


def list_proposals(ctx: ProtocolContext, dao_policy_id: bytes, dao_key: bytes) -> List[dict]:
    """
    All proposals of the DAO
    :return: A list of proposals, the one ending last first
    """
    dao = load_dao(ctx, dao_policy_id, dao_key)
    now = ctx.now()
    proposals = sorted(
        list_proposal_states(ctx, dao), key=lambda p: p.datum.end_time, reverse=True
    )
    return [proposal_to_dict(p, now) for p in proposals]


def _find_action(
    ctx: ProtocolContext, dao: DaoState, proposal: ProposalState, action_index: int = 0
) -> Optional[ActionState]:
    try:
        return load_action(ctx, dao, proposal.policy_id, proposal.asset_name, action_index)
    except NotFoundError:
        return None


def get_proposal_details(
    ctx: ProtocolContext,
    dao_policy_id: bytes,
    dao_key: bytes,
    proposal_policy_id: bytes,
    proposal_asset_name: bytes,
) -> dict:
    """
    A proposal with the outcome it would be evaluated to and its pending action, if any
    """
    dao = load_dao(ctx, dao_policy_id, dao_key)
    proposal = load_proposal(ctx, dao, proposal_policy_id, proposal_asset_name)
    now = ctx.now()
    details = proposal_to_dict(proposal, now)
    outcome = evaluate_outcome(
        list(proposal.datum.tally), dao.datum.quorum, dao.datum.threshold
    )
    details["projected_outcome"] = {
        "status": status_name(outcome.status),
        "winning_option": outcome.winning_option,
        "tied_options": outcome.tied_options,
    }
    details["can_evaluate"] = (
        isinstance(proposal.datum.status, Active) and now > proposal.datum.end_time
    )
    action = _find_action(ctx, dao, proposal)
    details["action"] = action_to_dict(action, ctx.network) if action else None
    return details


def get_registration_status(
    ctx: ProtocolContext,
    dao_policy_id: bytes,
    dao_key: bytes,
    wallet_address: pycardano.Address,
) -> dict:
    """
    Whether the wallet holds a vote registration of the DAO.
    Absence of a registration is an answer, not an error.
    """
    dao = load_dao(ctx, dao_policy_id, dao_key)
    registration = find_registration(ctx, dao, ctx.chain.utxos(wallet_address))
    if registration is None:
        return {"registered": False}
    return {
        "registered": registration.vote_utxo is not None,
        "registration_id": registration.registration_id.hex(),
        "vote_nft_asset_name": registration.user_name.hex(),
        "reference_asset_name": registration.reference_name.hex(),
        "vote_utxo": utxo_ref(registration.vote_utxo) if registration.vote_utxo else None,
        "locked_governance_tokens": registration.locked_governance_tokens,
        "can_create_proposal": (
            registration.locked_governance_tokens >= dao.datum.min_gov_proposal_create
        ),
    }


def analyze_unregister(
    ctx: ProtocolContext,
    dao_policy_id: bytes,
    dao_key: bytes,
    wallet_address: pycardano.Address,
) -> dict:
    """
    Whether the vote of the wallet can be unregistered and which receipts would be burned
    """
    dao = load_dao(ctx, dao_policy_id, dao_key)
    registration = find_registration(ctx, dao, ctx.chain.utxos(wallet_address))
    if registration is None or registration.vote_utxo is None:
        return {
            "registered": False,
            "can_unregister": False,
            "message": "Wallet holds no vote registration of this DAO",
        }
    analysis = analyze_receipts(ctx, dao, registration)
    if analysis.can_unregister:
        message = f"{len(analysis.ended)} receipts of ended proposals will be burned"
    else:
        message = (
            f"Vote holds receipts of {len(analysis.active)} active proposals, "
            "wait until they are evaluated"
        )
    return {
        "registered": True,
        "can_unregister": analysis.can_unregister,
        "governance_tokens": registration.locked_governance_tokens,
        "active_receipts": [r.to_dict() for r in analysis.active],
        "ended_receipts": [r.to_dict() for r in analysis.ended],
        "message": message,
    }


def get_treasury_info(ctx: ProtocolContext, dao_policy_id: bytes, dao_key: bytes) -> dict:
    """
    Funds held at the treasury address of the DAO
    """
    dao = load_dao(ctx, dao_policy_id, dao_key)
    utxos = ctx.chain.utxos(dao.scripts.treasury_address)
    assets = {}
    for u in utxos:
        for policy_id, name, amount in iter_assets(u.output.amount):
            key = f"{policy_id.hex()}.{name.hex()}"
            assets[key] = assets.get(key, 0) + amount
    return {
        "address": str(dao.scripts.treasury_address),
        "lovelace": treasury_balance(utxos),
        "assets": assets,
        "utxo_count": len(utxos),
    }


def find_proposals_to_evaluate(
    ctx: ProtocolContext, dao_policy_id: bytes, dao_key: bytes
) -> List[dict]:
    """
    Active proposals whose voting period has ended
    """
    dao = load_dao(ctx, dao_policy_id, dao_key)
    now = ctx.now()
    return [
        proposal_to_dict(p, now)
        for p in list_proposal_states(ctx, dao)
        if isinstance(p.datum.status, Active) and now > p.datum.end_time
    ]


def get_action_details(
    ctx: ProtocolContext,
    dao_policy_id: bytes,
    dao_key: bytes,
    proposal_policy_id: bytes,
    proposal_asset_name: bytes,
    action_index: int = 0,
) -> dict:
    """
    An action and whether it can be executed now
    """
    dao = load_dao(ctx, dao_policy_id, dao_key)
    action = load_action(
        ctx, dao, proposal_policy_id, proposal_asset_name, action_index
    )
    details = action_to_dict(action, ctx.network)
    try:
        proposal = load_proposal(ctx, dao, proposal_policy_id, proposal_asset_name)
    except NotFoundError:
        proposal = None
    status = proposal.datum.status if proposal else None
    if proposal is None:
        reason = "Proposal not found"
    elif not isinstance(status, Passed):
        reason = f"Proposal has status {status_name(status)}"
    elif status.option != action.datum.option:
        reason = f"Option {status.option} won, action requires {action.datum.option}"
    elif ctx.now() < action.datum.activation_time:
        reason = "Activation time not reached"
    else:
        reason = None
    details["proposal_status"] = status_name(status) if status else None
    details["executable"] = reason is None
    details["blocked_by"] = reason
    return details


def list_daos(ctx: ProtocolContext) -> List[dict]:
    """
    Every DAO locked at the DAO address, ordered by name
    """
    policy_id = resolve_dao_policy_id(ctx)
    daos = []
    for utxo, decoded in decodable(DAODatum, ctx.chain.utxos(dao_address(ctx))):
        keys = find_assets_with_quantity(utxo.output.amount, policy_id, 1)
        if not keys:
            continue
        scripts = ctx.dao_scripts(policy_id, keys[0])
        daos.append(dao_to_dict(DaoState(utxo, decoded.value, scripts)))
    return sorted(daos, key=lambda d: (d["name"].lower(), d["key"]))


def scan_deployed_scripts(
    ctx: ProtocolContext, dao_policy_id: bytes, dao_key: bytes
) -> dict:
    """
    Which validators of the DAO are published as reference scripts
    """
    scripts = ctx.dao_scripts(dao_policy_id, dao_key)
    found = []
    for name, (title, params) in scripts.named_scripts().items():
        script = ctx.script(title, params)
        ref_utxo = ctx.reference_utxo(script)
        found.append(
            {
                "name": name,
                "title": title,
                "parameters": [p.hex() for p in params],
                "script_hash": pycardano.plutus_script_hash(script).payload.hex(),
                "size": len(script),
                "deployed": ref_utxo is not None,
                "reference_utxo": utxo_ref(ref_utxo) if ref_utxo else None,
            }
        )
    deployed = sum(1 for s in found if s["deployed"])
    return {
        "scripts": found,
        "deployed": deployed,
        "missing": len(found) - deployed,
    }


def validate_token(ctx: ProtocolContext, policy_id: bytes, asset_name: bytes) -> dict:
    """
    Whether a token exists on chain, with its CIP-67 label and metadata.
    A missing token is an answer, not an error.
    """
    details = ctx.chain.asset(policy_id, asset_name)
    result = {
        "exists": details is not None,
        "policy_id": policy_id.hex(),
        "asset_name": asset_name.hex(),
        "cip67_label": parse_cip67_label(asset_name),
    }
    if details is None:
        return result
    result.update(
        {
            "fingerprint": details.get("fingerprint"),
            "quantity": int(details.get("quantity") or 0),
            "mint_count": details.get("mint_or_burn_count"),
            "metadata": details.get("onchain_metadata") or details.get("metadata"),
        }
    )
    return result
