"""
Plutus data shared by the DAO contracts.

The validators themselves are compiled Aiken scripts loaded from the blueprint.
The classes here only describe the data they exchange with off-chain code.
"""
from opshin.prelude import *

# Asset name prefixes distinguishing the two halves of a vote registration
VOTE_REFERENCE_PREFIX = bytes.fromhex("0000")
VOTE_USER_PREFIX = bytes.fromhex("0001")

# Length of a vote registration id (truncated blake2b-256)
VOTE_ID_LENGTH = 28


@dataclass
class OutputReference(PlutusData):
    """
    Reference to a transaction output, as seen by Plutus V3 scripts
    """

    CONSTR_ID = 0
    transaction_id: bytes
    output_index: int
