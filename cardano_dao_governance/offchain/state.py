"""
Lookup of the current on-chain state of a DAO, its proposals and vote registrations.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional

import pycardano

from cardano_dao_governance.onchain import identifiers
from cardano_dao_governance.onchain.action import ActionDatum
from cardano_dao_governance.onchain.dao import DAODatum
from cardano_dao_governance.onchain.proposal import ProposalDatum
from cardano_dao_governance.onchain.types import (
    VOTE_REFERENCE_PREFIX,
    VOTE_USER_PREFIX,
)
from .context import DaoScripts, ProtocolContext
from .errors import CodecError, NotFoundError, as_not_found
from .tx import ScriptSource
from .locator import (
    decodable,
    expect_datum,
    find_assets_with_quantity,
    find_utxo_with_prefix,
    locate,
    quantity_of,
)

_LOGGER = logging.getLogger(__name__)


@dataclass
class DaoState:
    utxo: pycardano.UTxO
    datum: DAODatum
    scripts: DaoScripts

    @property
    def policy_id(self) -> bytes:
        return self.scripts.dao_policy_id

    @property
    def key(self) -> bytes:
        return self.scripts.dao_key

    def governance_amount(self, value: pycardano.Value) -> int:
        return quantity_of(
            value, self.datum.governance_policy_id, self.datum.governance_asset_name
        )


@dataclass
class ProposalState:
    utxo: pycardano.UTxO
    datum: ProposalDatum
    # inline datum bytes as found on chain
    raw: bytes
    policy_id: bytes
    asset_name: bytes


@dataclass
class Registration:
    registration_id: bytes
    # wallet UTxO holding the user token
    user_utxo: pycardano.UTxO
    # script UTxO holding the reference token, None if it has been spent
    vote_utxo: Optional[pycardano.UTxO]
    locked_governance_tokens: int

    @property
    def reference_name(self) -> bytes:
        return identifiers.vote_reference_name(self.registration_id)

    @property
    def user_name(self) -> bytes:
        return identifiers.vote_user_name(self.registration_id)


@dataclass
class ActionState:
    utxo: pycardano.UTxO
    datum: ActionDatum
    policy_id: bytes
    asset_name: bytes


def load_dao(ctx: ProtocolContext, dao_policy_id: bytes, dao_key: bytes) -> DaoState:
    scripts = ctx.dao_scripts(dao_policy_id, dao_key)
    utxo = locate(ctx.chain, scripts.dao_address, dao_policy_id, dao_key)
    if utxo is None:
        raise NotFoundError(
            f"DAO {dao_policy_id.hex()}.{dao_key.hex()} not found", code="DAO_NOT_FOUND"
        )
    try:
        datum = expect_datum(DAODatum, utxo).value
    except CodecError as e:
        raise as_not_found(e, "DAO_NOT_FOUND") from e
    _LOGGER.debug(f"DAO {datum.name!r} found at {utxo.input}")
    return DaoState(utxo, datum, scripts)


def _proposal_state(utxo: pycardano.UTxO, policy_id: bytes, asset_name: bytes):
    decoded = expect_datum(ProposalDatum, utxo)
    return ProposalState(utxo, decoded.value, decoded.raw, policy_id, asset_name)


def load_proposal(
    ctx: ProtocolContext, dao: DaoState, policy_id: bytes, asset_name: bytes
) -> ProposalState:
    utxo = locate(ctx.chain, dao.scripts.proposal_address, policy_id, asset_name)
    if utxo is None:
        raise NotFoundError(
            f"Proposal {policy_id.hex()}.{asset_name.hex()} not found",
            code="PROPOSAL_NOT_FOUND",
        )
    try:
        return _proposal_state(utxo, policy_id, asset_name)
    except CodecError as e:
        raise as_not_found(e, "PROPOSAL_NOT_FOUND") from e


def list_proposal_states(ctx: ProtocolContext, dao: DaoState) -> List[ProposalState]:
    """
    All proposals at the proposal address of the DAO, identified by their whitelisted NFT
    """
    states = []
    for utxo, decoded in decodable(
        ProposalDatum, ctx.chain.utxos(dao.scripts.proposal_address)
    ):
        for policy_id in dao.datum.whitelisted_proposals:
            names = find_assets_with_quantity(utxo.output.amount, policy_id, 1)
            if names:
                states.append(
                    ProposalState(
                        utxo, decoded.value, decoded.raw, policy_id, names[0]
                    )
                )
                break
    return states


def find_registration(
    ctx: ProtocolContext, dao: DaoState, wallet_utxos: List[pycardano.UTxO]
) -> Optional[Registration]:
    """
    Vote registration of a wallet, None if the wallet holds no user token of the DAO
    """
    vote_policy_id = dao.scripts.vote_policy_id
    found = find_utxo_with_prefix(wallet_utxos, vote_policy_id, VOTE_USER_PREFIX)
    if found is None:
        return None
    user_utxo, user_name = found
    registration_id = user_name[len(VOTE_USER_PREFIX) :]
    vote_utxo = locate(
        ctx.chain,
        dao.scripts.vote_address,
        vote_policy_id,
        VOTE_REFERENCE_PREFIX + registration_id,
    )
    locked = dao.governance_amount(vote_utxo.output.amount) if vote_utxo else 0
    return Registration(registration_id, user_utxo, vote_utxo, locked)


def require_registration(
    ctx: ProtocolContext, dao: DaoState, wallet_utxos: List[pycardano.UTxO]
) -> Registration:
    registration = find_registration(ctx, dao, wallet_utxos)
    if registration is None:
        raise NotFoundError(
            "Wallet holds no vote registration of this DAO", code="NOT_REGISTERED"
        )
    if registration.vote_utxo is None:
        raise NotFoundError(
            "Vote UTxO of the registration not found or already spent",
            code="VOTE_NOT_FOUND",
        )
    return registration


def load_action(
    ctx: ProtocolContext,
    dao: DaoState,
    proposal_policy_id: bytes,
    proposal_asset_name: bytes,
    action_index: int,
) -> ActionState:
    action_policy_id = dao.scripts.action_policy_id
    asset_name = identifiers.action_id(
        proposal_policy_id, proposal_asset_name, action_index
    )
    utxo = locate(ctx.chain, dao.scripts.action_address, action_policy_id, asset_name)
    if utxo is None:
        raise NotFoundError(
            "Action UTxO not found, it may have been executed already",
            code="ACTION_UTXO_NOT_FOUND",
        )
    try:
        datum = expect_datum(ActionDatum, utxo).value
    except CodecError as e:
        raise as_not_found(e, "ACTION_UTXO_NOT_FOUND") from e
    return ActionState(utxo, datum, action_policy_id, asset_name)


def wallet_utxos(ctx: ProtocolContext, address: pycardano.Address) -> List[pycardano.UTxO]:
    utxos = ctx.chain.utxos(address)
    if not utxos:
        raise NotFoundError(f"No UTxOs found at {address}", code="WALLET_EMPTY")
    return utxos


def seed_avoiding(
    utxos: List[pycardano.UTxO], policy_id: bytes, asset_name: bytes
) -> pycardano.UTxO:
    """
    First wallet UTxO that does not carry the given token, the first UTxO if all of them do
    """
    for u in utxos:
        if quantity_of(u.output.amount, policy_id, asset_name) == 0:
            return u
    return utxos[0]


def proposal_mint_source(dao: DaoState, policy_id: bytes) -> ScriptSource:
    """
    Minting script of a proposal policy, only the proposal policy of this DAO can be resolved
    """
    if policy_id != dao.scripts.proposal_policy_id:
        raise NotFoundError(
            f"No script known for proposal policy {policy_id.hex()}",
            code="SCRIPT_NOT_FOUND",
        )
    return dao.scripts.proposal_source(mint=True)
