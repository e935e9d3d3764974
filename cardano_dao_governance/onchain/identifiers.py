"""
Deterministic identifiers of the DAO protocol.

All identifiers are blake2b-256 digests of the CBOR encoding of a constructor 0
tuple. The preimages must match the ones the validators build, otherwise the
derived asset names point to tokens that do not exist.
"""
import hashlib
from typing import Optional

from opshin.prelude import *

from cardano_dao_governance.onchain.types import (
    OutputReference,
    VOTE_ID_LENGTH,
    VOTE_REFERENCE_PREFIX,
    VOTE_USER_PREFIX,
)


@dataclass
class ProposalSeed(PlutusData):
    """
    Preimage of a proposal identity token name
    """

    CONSTR_ID = 0
    output_reference: OutputReference
    marker: int = -1


@dataclass
class ActionKey(PlutusData):
    """
    Preimage of an action identity token name
    """

    CONSTR_ID = 0
    proposal_policy_id: bytes
    proposal_asset_name: bytes
    action_index: int


@dataclass
class ReceiptKey(PlutusData):
    """
    Preimage of a vote receipt token name
    """

    CONSTR_ID = 0
    proposal_asset_name: bytes
    option: int


def blake2b_256(data: bytes) -> bytes:
    return hashlib.blake2b(data, digest_size=32).digest()


def derive(preimage: PlutusData) -> bytes:
    return blake2b_256(preimage.to_cbor())


def dao_key(tx_hash: bytes, output_index: int) -> bytes:
    """
    Asset name of the DAO identity NFT, derived from the deployer's seed UTxO
    """
    return derive(OutputReference(tx_hash, output_index))


def vote_registration_id(tx_hash: bytes, output_index: int) -> bytes:
    return derive(OutputReference(tx_hash, output_index))[:VOTE_ID_LENGTH]


def vote_reference_name(registration_id: bytes) -> bytes:
    return VOTE_REFERENCE_PREFIX + registration_id


def vote_user_name(registration_id: bytes) -> bytes:
    return VOTE_USER_PREFIX + registration_id


def proposal_asset_name(tx_hash: bytes, output_index: int) -> bytes:
    return derive(ProposalSeed(OutputReference(tx_hash, output_index)))


def action_id(
    proposal_policy_id: bytes, proposal_asset_name: bytes, action_index: int
) -> bytes:
    return derive(ActionKey(proposal_policy_id, proposal_asset_name, action_index))


def vote_receipt_id(proposal_asset_name: bytes, option: int) -> bytes:
    return derive(ReceiptKey(proposal_asset_name, option))


def _crc8(data: bytes) -> int:
    crc = 0
    for byte in data:
        crc ^= byte
        for _ in range(8):
            if crc & 0x80:
                crc = ((crc << 1) ^ 0x07) & 0xFF
            else:
                crc = (crc << 1) & 0xFF
    return crc


CIP68_REFERENCE_LABEL = 100
CIP68_NFT_LABEL = 222
CIP68_FT_LABEL = 333
CIP68_RFT_LABEL = 444


def cip67_label(label: int) -> bytes:
    """
    Four byte asset name prefix for a CIP-67 label: [0000 | 16 bit label | crc8 | 0000]
    """
    if not 0 <= label <= 0xFFFF:
        raise ValueError(f"CIP-67 label out of range: {label}")
    number = label.to_bytes(2, "big")
    return bytes.fromhex(f"0{number.hex()}{_crc8(number):02x}0")


def parse_cip67_label(prefix: bytes) -> Optional[int]:
    """
    Returns the label encoded in the first four bytes of an asset name, or None
    """
    if len(prefix) < 4:
        return None
    prefix_hex = prefix[:4].hex()
    if prefix_hex[0] != "0" or prefix_hex[-1] != "0":
        return None
    number = bytes.fromhex(prefix_hex[1:5])
    if f"{_crc8(number):02x}" != prefix_hex[5:7]:
        return None
    return int.from_bytes(number, "big")
