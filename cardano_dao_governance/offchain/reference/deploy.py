"""
Publish a validator of a DAO as reference script.

The script is locked in an output at the configured reference script address, or at its own
address. Operations then spend and mint through the published script instead of attaching it.
"""
from dataclasses import dataclass

import fire
import pycardano
from pycardano import TransactionOutput, Value

from .. import validation
from ..context import ProtocolContext, default_context
from ..errors import StateError, ValidationError
from ..state import wallet_utxos
from ..tracing import traced
from ..tx import Assembled, TxPlan


@dataclass
class DeployScriptRequest:
    dao_policy_id: bytes
    dao_key: bytes
    script_name: str
    wallet_address: pycardano.Address
    change_address: pycardano.Address

    @classmethod
    def from_dict(cls, data: dict) -> "DeployScriptRequest":
        dao_policy_id, dao_key = validation.dao_fields(data)
        wallet, change, _ = validation.wallet_fields(data)
        return cls(
            dao_policy_id=dao_policy_id,
            dao_key=dao_key,
            script_name=validation.text("script_name", data.get("script_name")),
            wallet_address=wallet,
            change_address=change,
        )


def plan_deploy_script(ctx: ProtocolContext, request: DeployScriptRequest) -> Assembled:
    scripts = ctx.dao_scripts(request.dao_policy_id, request.dao_key)
    named = scripts.named_scripts()
    if request.script_name not in named:
        raise ValidationError(
            f"Unknown script {request.script_name}, expected one of {', '.join(named)}",
            code="INVALID_FIELD",
        )
    title, params = named[request.script_name]
    script = ctx.script(title, params)
    script_hash = pycardano.plutus_script_hash(script)
    script_address = pycardano.Address(payment_part=script_hash, network=ctx.network)
    target = ctx.reference_address(script)
    existing = ctx.reference_utxo(script)
    if existing is not None:
        raise StateError(
            f"Reference script for {request.script_name} exists at {existing.input}",
            code="SCRIPT_ALREADY_DEPLOYED",
        )
    wallet_utxos(ctx, request.wallet_address)

    plan = TxPlan(
        message=f"Deploy {request.script_name} reference script",
        change_address=request.change_address,
        input_addresses=[request.wallet_address],
    )
    plan.add_output(
        TransactionOutput(address=target, amount=Value(0), script=script),
        pad_min_lovelace=True,
    )
    return Assembled(
        plan,
        {
            "script_name": request.script_name,
            "script_title": title,
            "script_hash": script_hash.payload.hex(),
            "script_address": str(script_address),
            "reference_address": str(target),
            "size": len(script),
            "parameters": [p.hex() for p in params],
            "reference_output_index": 0,
        },
    )


def deploy_script(ctx: ProtocolContext, request: DeployScriptRequest) -> dict:
    with traced("deploy_script") as log:
        assembled = plan_deploy_script(ctx, request)
        log.info(
            f"deploying {request.script_name} ({assembled.info['size']} bytes) "
            f"to {assembled.info['reference_address']}"
        )
        result = assembled.build(ctx.chain.context)
        log.info(f"built transaction {result['tx_id']}")
        return result


def main(
    dao_policy_id: str,
    dao_key: str,
    script_name: str,
    wallet_address: str,
    change_address: str = None,
):
    return deploy_script(
        default_context(),
        DeployScriptRequest.from_dict(
            {
                "dao_policy_id": dao_policy_id,
                "dao_key": dao_key,
                "script_name": script_name,
                "wallet_address": wallet_address,
                "change_address": change_address,
            }
        ),
    )


if __name__ == "__main__":
    fire.Fire(main)
