"""
Unregister a vote.

Burns the registration pair and the receipts of proposals that are no longer active, and returns
the locked governance tokens. Receipts of proposals that are still active block unregistering,
as burning them would falsify the running tally.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import fire
import pycardano
from pycardano import TransactionOutput, Value

from cardano_dao_governance.onchain import identifiers
from cardano_dao_governance.onchain.proposal import (
    Active,
    CleanReceipts as ProposalCleanReceipts,
)
from cardano_dao_governance.onchain.vote import CleanReceipts, EmptyVote
from opshin.prelude import Token
from .. import validation
from ..context import ProtocolContext, default_context
from ..errors import StateError
from ..state import (
    DaoState,
    ProposalState,
    Registration,
    list_proposal_states,
    load_dao,
    proposal_mint_source,
    require_registration,
    wallet_utxos,
)
from ..tracing import traced
from ..tx import Assembled, Mint, ScriptInput, TxPlan
from ..util import asset_from_token, assets_of_policy

_LOGGER = logging.getLogger(__name__)


@dataclass
class Receipt:
    policy_id: bytes
    asset_name: bytes
    amount: int
    # None if no proposal of the DAO issued this receipt
    proposal: Optional[ProposalState] = None
    option: Optional[int] = None

    @property
    def active(self) -> bool:
        return self.proposal is None or isinstance(self.proposal.datum.status, Active)

    def to_dict(self) -> dict:
        return {
            "policy_id": self.policy_id.hex(),
            "asset_name": self.asset_name.hex(),
            "amount": self.amount,
            "proposal_asset_name": (
                self.proposal.asset_name.hex() if self.proposal else None
            ),
            "option": self.option,
            "active": self.active,
        }


@dataclass
class ReceiptAnalysis:
    active: List[Receipt] = field(default_factory=list)
    ended: List[Receipt] = field(default_factory=list)

    @property
    def can_unregister(self) -> bool:
        return not self.active

    def ended_by_policy(self) -> Dict[bytes, List[Receipt]]:
        groups: Dict[bytes, List[Receipt]] = {}
        for r in self.ended:
            groups.setdefault(r.policy_id, []).append(r)
        return groups


def analyze_receipts(
    ctx: ProtocolContext, dao: DaoState, registration: Registration
) -> ReceiptAnalysis:
    """
    Sort the receipts held by the vote UTxO into receipts of active and of ended proposals
    """
    by_receipt: Dict[Tuple[bytes, bytes], Tuple[ProposalState, int]] = {}
    for proposal in list_proposal_states(ctx, dao):
        for option in range(len(proposal.datum.tally)):
            receipt_id = identifiers.vote_receipt_id(proposal.asset_name, option)
            by_receipt[(proposal.policy_id, receipt_id)] = (proposal, option)

    policies = list(dao.datum.whitelisted_proposals)
    if dao.scripts.proposal_policy_id not in policies:
        policies.append(dao.scripts.proposal_policy_id)

    analysis = ReceiptAnalysis()
    for policy_id in policies:
        for name, amount in assets_of_policy(
            registration.vote_utxo.output.amount, policy_id
        ).items():
            proposal, option = by_receipt.get((policy_id, name), (None, None))
            receipt = Receipt(policy_id, name, amount, proposal, option)
            if receipt.active:
                analysis.active.append(receipt)
            else:
                analysis.ended.append(receipt)
    _LOGGER.debug(
        f"{len(analysis.active)} active and {len(analysis.ended)} ended receipts"
    )
    return analysis


@dataclass
class UnregisterRequest:
    dao_policy_id: bytes
    dao_key: bytes
    wallet_address: pycardano.Address
    change_address: pycardano.Address
    collateral: List[Any]

    @classmethod
    def from_dict(cls, data: dict) -> "UnregisterRequest":
        dao_policy_id, dao_key = validation.dao_fields(data)
        wallet, change, collateral = validation.wallet_fields(data)
        return cls(dao_policy_id, dao_key, wallet, change, collateral)


def plan_unregister(ctx: ProtocolContext, request: UnregisterRequest) -> Assembled:
    dao = load_dao(ctx, request.dao_policy_id, request.dao_key)
    utxos = wallet_utxos(ctx, request.wallet_address)
    collateral = validation.collateral(request.collateral, utxos)
    registration = require_registration(ctx, dao, utxos)
    analysis = analyze_receipts(ctx, dao, registration)
    if not analysis.can_unregister:
        raise StateError(
            f"Vote holds receipts of {len(analysis.active)} active or unknown proposals",
            code="ACTIVE_VOTE_RECEIPTS",
        )

    vote_redeemer = CleanReceipts() if analysis.ended else EmptyVote()
    vote_policy_id = dao.scripts.vote_policy_id
    governance_tk = Token(
        dao.datum.governance_policy_id, dao.datum.governance_asset_name
    )

    plan = TxPlan(
        message="Unregister DAO vote",
        change_address=request.change_address,
        inputs=[registration.user_utxo],
        collateral=collateral,
        input_addresses=[request.wallet_address],
    )
    plan.script_inputs.append(
        ScriptInput(registration.vote_utxo, dao.scripts.vote_source(), vote_redeemer)
    )
    plan.add_reference_input(dao.utxo)
    plan.add_mint(
        Mint(
            policy_id=vote_policy_id,
            assets={registration.reference_name: -1, registration.user_name: -1},
            script=dao.scripts.vote_source(mint=True),
            redeemer=vote_redeemer,
        )
    )
    for policy_id, receipts in analysis.ended_by_policy().items():
        for r in receipts:
            plan.add_reference_input(r.proposal.utxo)
        plan.add_mint(
            Mint(
                policy_id=policy_id,
                assets={r.asset_name: -r.amount for r in receipts},
                script=proposal_mint_source(dao, policy_id),
                redeemer=ProposalCleanReceipts(),
            )
        )
    if registration.locked_governance_tokens > 0:
        plan.add_output(
            TransactionOutput(
                address=request.change_address,
                amount=Value(
                    multi_asset=asset_from_token(
                        governance_tk, registration.locked_governance_tokens
                    )
                ),
            ),
            pad_min_lovelace=True,
        )
    return Assembled(
        plan,
        {
            "vote_nft_asset_name": registration.user_name.hex(),
            "governance_tokens_returned": registration.locked_governance_tokens,
            "receipts_cleaned": len(analysis.ended),
            "redeemer": type(vote_redeemer).__name__,
        },
    )


def unregister(ctx: ProtocolContext, request: UnregisterRequest) -> dict:
    with traced("unregister") as log:
        assembled = plan_unregister(ctx, request)
        log.info(
            f"returning {assembled.info['governance_tokens_returned']} governance tokens, "
            f"burning {assembled.info['receipts_cleaned']} receipts"
        )
        result = assembled.build(ctx.chain.context)
        log.info(f"built transaction {result['tx_id']}")
        return result


def main(
    dao_policy_id: str,
    dao_key: str,
    wallet_address: str,
    collateral: str,
    change_address: str = None,
):
    return unregister(
        default_context(),
        UnregisterRequest.from_dict(
            {
                "dao_policy_id": dao_policy_id,
                "dao_key": dao_key,
                "wallet_address": wallet_address,
                "change_address": change_address,
                "collateral": collateral,
            }
        ),
    )


if __name__ == "__main__":
    fire.Fire(main)
