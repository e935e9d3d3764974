"""
The proposal contract.

Each proposal lives in its own UTxO at the proposal address, authenticated by a proposal NFT
(policy: proposal mint, name: derived from the creating seed output).
The same script mints the vote receipts of the proposal.

The datum is updated in place:
- CastVote: only the tally changes
- EvaluateProposal: only the status changes, Active -> terminal status
"""
from opshin.prelude import *

from cardano_dao_governance.onchain.types import OutputReference

NAME_FIELD = 0
DESCRIPTION_FIELD = 1
TALLY_FIELD = 2
END_TIME_FIELD = 3
STATUS_FIELD = 4
IDENTIFIER_FIELD = 5


@dataclass
class Active(PlutusData):
    CONSTR_ID = 0


@dataclass
class FailedThreshold(PlutusData):
    CONSTR_ID = 1


@dataclass
class FailedQuorum(PlutusData):
    CONSTR_ID = 2


@dataclass
class Passed(PlutusData):
    CONSTR_ID = 3
    option: int


ProposalStatus = Union[Active, FailedThreshold, FailedQuorum, Passed]


def status_name(status: ProposalStatus) -> str:
    return type(status).__name__


@dataclass
class ProposalDatum(PlutusData):
    """
    State of a proposal
    """

    CONSTR_ID = 0
    name: bytes
    description: bytes
    # accumulated vote weight per option
    tally: List[int]
    # POSIX time in milliseconds
    end_time: int
    status: ProposalStatus
    # seed output consumed when the proposal was created
    identifier: OutputReference


@dataclass
class CreateProposal(PlutusData):
    """
    Mint redeemer of the proposal NFT, names the vote registration of the creator
    """

    CONSTR_ID = 0
    vote_key: bytes


@dataclass
class CastVote(PlutusData):
    """
    Spend the proposal and mint receipts for a vote
    """

    CONSTR_ID = 1


@dataclass
class CleanReceipts(PlutusData):
    """
    Burn receipts of a proposal that is no longer active
    """

    CONSTR_ID = 2


@dataclass
class EvaluateProposal(PlutusData):
    CONSTR_ID = 3


ProposalRedeemer = Union[CreateProposal, CastVote, CleanReceipts, EvaluateProposal]
