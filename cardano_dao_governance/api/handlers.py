"""
JSON entry points of the operations and queries.

Each handler takes the protocol context and the decoded JSON request and returns a JSON
serializable dict. Failures are returned as {"error": {...}} instead of being raised.
"""
import functools
import logging
from typing import Callable

from cardano_dao_governance.offchain import queries, validation
from cardano_dao_governance.offchain.action.execute import ExecuteRequest, execute_action
from cardano_dao_governance.offchain.context import ProtocolContext
from cardano_dao_governance.offchain.dao.create import CreateDaoRequest, create_dao
from cardano_dao_governance.offchain.errors import GovernanceError, ValidationError
from cardano_dao_governance.offchain.proposal.create import (
    CreateProposalRequest,
    create_proposal,
)
from cardano_dao_governance.offchain.proposal.evaluate import EvaluateRequest, evaluate
from cardano_dao_governance.offchain.reference.deploy import (
    DeployScriptRequest,
    deploy_script,
)
from cardano_dao_governance.offchain.token.mint import MintTokenRequest, mint_token
from cardano_dao_governance.offchain.tx import submit_transaction
from cardano_dao_governance.offchain.vote.cast import CastVoteRequest, cast_vote
from cardano_dao_governance.offchain.vote.register import RegisterRequest, register
from cardano_dao_governance.offchain.vote.unregister import (
    UnregisterRequest,
    unregister,
)

_LOGGER = logging.getLogger(__name__)


def error_response(error: GovernanceError) -> dict:
    return {"error": {**error.to_dict(), "status": error.http_status}}


def json_entry(f: Callable[[ProtocolContext, dict], object]):
    """
    Run the handler against fresh chain state and turn errors into error responses
    """

    @functools.wraps(f)
    def wrapper(ctx: ProtocolContext, payload: dict) -> dict:
        try:
            if not isinstance(payload, dict):
                raise ValidationError(
                    "Request body must be a JSON object", code="INVALID_REQUEST"
                )
            result = f(ctx.for_call(), payload)
        except GovernanceError as e:
            return error_response(e)
        except Exception:
            _LOGGER.exception(f"{f.__name__} failed unexpectedly")
            return {
                "error": {
                    "code": "INTERNAL_ERROR",
                    "type": "InternalError",
                    "message": "Internal error",
                    "retryable": False,
                    "status": 500,
                }
            }
        if isinstance(result, list):
            return {"items": result}
        return result

    return wrapper


@json_entry
def handle_create_dao(ctx: ProtocolContext, payload: dict):
    return create_dao(ctx, CreateDaoRequest.from_dict(payload))


@json_entry
def handle_register(ctx: ProtocolContext, payload: dict):
    return register(ctx, RegisterRequest.from_dict(payload))


@json_entry
def handle_create_proposal(ctx: ProtocolContext, payload: dict):
    return create_proposal(ctx, CreateProposalRequest.from_dict(payload, ctx.now()))


@json_entry
def handle_cast_vote(ctx: ProtocolContext, payload: dict):
    return cast_vote(ctx, CastVoteRequest.from_dict(payload))


@json_entry
def handle_evaluate(ctx: ProtocolContext, payload: dict):
    return evaluate(ctx, EvaluateRequest.from_dict(payload))


@json_entry
def handle_execute_action(ctx: ProtocolContext, payload: dict):
    return execute_action(ctx, ExecuteRequest.from_dict(payload))


@json_entry
def handle_unregister(ctx: ProtocolContext, payload: dict):
    return unregister(ctx, UnregisterRequest.from_dict(payload))


@json_entry
def handle_deploy_script(ctx: ProtocolContext, payload: dict):
    return deploy_script(ctx, DeployScriptRequest.from_dict(payload))


@json_entry
def handle_mint_token(ctx: ProtocolContext, payload: dict):
    return mint_token(ctx, MintTokenRequest.from_dict(payload))


@json_entry
def handle_submit(ctx: ProtocolContext, payload: dict):
    signed_tx = validation.require("signed_tx", payload.get("signed_tx"))
    return {"tx_id": submit_transaction(ctx.chain.context, signed_tx)}


@json_entry
def handle_dao_info(ctx: ProtocolContext, payload: dict):
    return queries.get_dao_info(ctx, *validation.dao_fields(payload))


@json_entry
def handle_list_proposals(ctx: ProtocolContext, payload: dict):
    return queries.list_proposals(ctx, *validation.dao_fields(payload))


@json_entry
def handle_proposal_details(ctx: ProtocolContext, payload: dict):
    return queries.get_proposal_details(
        ctx, *validation.dao_fields(payload), *validation.proposal_fields(payload)
    )


@json_entry
def handle_registration_status(ctx: ProtocolContext, payload: dict):
    return queries.get_registration_status(
        ctx,
        *validation.dao_fields(payload),
        validation.address("wallet_address", payload.get("wallet_address")),
    )


@json_entry
def handle_unregister_analysis(ctx: ProtocolContext, payload: dict):
    return queries.analyze_unregister(
        ctx,
        *validation.dao_fields(payload),
        validation.address("wallet_address", payload.get("wallet_address")),
    )


@json_entry
def handle_treasury_info(ctx: ProtocolContext, payload: dict):
    return queries.get_treasury_info(ctx, *validation.dao_fields(payload))


@json_entry
def handle_proposals_to_evaluate(ctx: ProtocolContext, payload: dict):
    return queries.find_proposals_to_evaluate(ctx, *validation.dao_fields(payload))


@json_entry
def handle_action_details(ctx: ProtocolContext, payload: dict):
    return queries.get_action_details(
        ctx,
        *validation.dao_fields(payload),
        *validation.proposal_fields(payload),
        validation.integer("action_index", payload.get("action_index", 0), 0),
    )


@json_entry
def handle_list_daos(ctx: ProtocolContext, payload: dict):
    return queries.list_daos(ctx)


@json_entry
def handle_deployed_scripts(ctx: ProtocolContext, payload: dict):
    return queries.scan_deployed_scripts(ctx, *validation.dao_fields(payload))


@json_entry
def handle_validate_token(ctx: ProtocolContext, payload: dict):
    return queries.validate_token(
        ctx,
        validation.policy_id("policy_id", payload.get("policy_id")),
        validation.hex_bytes("asset_name", payload.get("asset_name")),
    )
