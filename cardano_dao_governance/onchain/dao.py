"""
The DAO contract.

A single UTxO at the DAO address holds the DAO identity NFT (policy: dao mint, name: dao key)
together with the immutable governance parameters of the DAO.

Other contracts read it as a reference input:
- vote: governance token and minimum stake to create proposals
- proposal: quorum, threshold and proposal duration bounds
- action_send_funds / treasury: the whitelisted action policies
"""
from opshin.prelude import *

from cardano_dao_governance.onchain.types import OutputReference

GOVERNANCE_POLICY_ID_LENGTH = 28


@dataclass
class DAODatum(PlutusData):
    """
    Governance parameters of a DAO
    """

    CONSTR_ID = 0
    name: bytes
    # policy id followed by asset name
    governance_token: bytes
    # percentage of the winning option, 1 to 100
    threshold: int
    min_proposal_time: int
    max_proposal_time: int
    quorum: int
    min_gov_proposal_create: int
    whitelisted_proposals: List[bytes]
    whitelisted_actions: List[bytes]

    @property
    def governance_policy_id(self) -> bytes:
        return self.governance_token[:GOVERNANCE_POLICY_ID_LENGTH]

    @property
    def governance_asset_name(self) -> bytes:
        return self.governance_token[GOVERNANCE_POLICY_ID_LENGTH:]


@dataclass
class CreateDAO(PlutusData):
    """
    Mint redeemer of the DAO identity NFT, consuming the seed output
    """

    CONSTR_ID = 0
    seed: OutputReference
