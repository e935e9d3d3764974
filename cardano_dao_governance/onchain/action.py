"""
The action_send_funds contract.

An action is created together with its proposal and holds an action NFT
(policy: action mint, name: action id of proposal policy, proposal asset name and index).
Once the bound proposal passed with the matching option and the activation time is reached,
the action is spent together with treasury outputs, the NFT is burned and the targets are paid.
"""
from opshin.prelude import *

from cardano_dao_governance.onchain.types import OutputReference


@dataclass
class ActionIdentifier(PlutusData):
    CONSTR_ID = 0
    proposal_policy_id: bytes
    proposal_identifier: bytes
    action_index: int


@dataclass
class ActionTarget(PlutusData):
    """
    A single payment of the action
    """

    CONSTR_ID = 0
    address: Address
    coins: int
    tokens: Dict[bytes, Dict[bytes, int]]
    datum: OutputDatum


@dataclass
class ActionDatum(PlutusData):
    """
    Treasury payout bound to a proposal option
    """

    CONSTR_ID = 0
    name: bytes
    description: bytes
    # POSIX time in milliseconds
    activation_time: int
    action_identifier: ActionIdentifier
    option: int
    targets: List[ActionTarget]
    treasury: Address

    @property
    def total_coins(self) -> int:
        return sum(t.coins for t in self.targets)


@dataclass
class CreateAction(PlutusData):
    CONSTR_ID = 0
    proposal_policy_id: bytes
    seed: OutputReference


@dataclass
class ExecuteAction(PlutusData):
    """
    Burn the action NFT when the action is executed
    """

    CONSTR_ID = 1


@dataclass
class SpendAction(PlutusData):
    CONSTR_ID = 0


ActionMintRedeemer = Union[CreateAction, ExecuteAction]


@dataclass
class SpendTreasury(PlutusData):
    """
    Spend redeemer of treasury outputs
    """

    CONSTR_ID = 0
