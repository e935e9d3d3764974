"""
The vote contract.

A vote registration is a pair of tokens minted by the vote policy:
- reference token (0000 ++ id): locked at the vote address together with the governance tokens
  and the vote receipts collected while voting
- user token (0001 ++ id): held in the voter's wallet and proving ownership

The datum of the locked output follows CIP-68 and is never changed after registration.
"""
from opshin.prelude import *

from cardano_dao_governance.onchain.types import OutputReference

CIP68_VERSION = 1


@dataclass
class VoteDatum(PlutusData):
    """
    CIP-68 style datum of a vote registration
    """

    CONSTR_ID = 0
    metadata: Dict[bytes, Union[bytes, int]]
    version: int
    extra: bytes


def empty_vote_datum() -> VoteDatum:
    return VoteDatum(metadata={}, version=CIP68_VERSION, extra=b"")


@dataclass
class RegisterVote(PlutusData):
    """
    Mint the registration pair, consuming the seed output
    """

    CONSTR_ID = 0
    seed: OutputReference


@dataclass
class CastVote(PlutusData):
    CONSTR_ID = 1


@dataclass
class CleanReceipts(PlutusData):
    """
    Unregister while burning receipts of ended proposals
    """

    CONSTR_ID = 2


@dataclass
class EmptyVote(PlutusData):
    """
    Unregister a vote that holds no receipts
    """

    CONSTR_ID = 3


VoteRedeemer = Union[RegisterVote, CastVote, CleanReceipts, EmptyVote]
