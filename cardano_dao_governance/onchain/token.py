"""
Governance token policies.

A token is minted by two one-shot policies: the auth policy, parameterized with the consumed
seed output, mints the minting authority NFT, and the token policy, parameterized with the
auth NFT, mints the CIP-68 reference NFT and the fungible supply.
"""
from opshin.prelude import *

CIP68_VERSION = 1


@dataclass
class TokenMetadataDatum(PlutusData):
    """
    CIP-68 datum of the reference NFT and the auth NFT
    """

    CONSTR_ID = 0
    metadata: Dict[bytes, Union[bytes, int]]
    version: int
    extra: bytes


@dataclass
class MintToken(PlutusData):
    CONSTR_ID = 0


# the auth policy only checks that the seed output is consumed
AUTH_MINT_REDEEMER = b""
