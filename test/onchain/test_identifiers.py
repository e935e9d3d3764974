import hashlib

from hypothesis import given
from hypothesis import strategies as st

from cardano_dao_governance.onchain import identifiers
from cardano_dao_governance.onchain.types import VOTE_ID_LENGTH

SEED_HASH = bytes(range(32))
POLICY_ID = bytes.fromhex("cd" * 28)


def blake(data: bytes) -> bytes:
    return hashlib.blake2b(data, digest_size=32).digest()


def test_vote_receipt_preimage():
    preimage = identifiers.ReceiptKey(b"\xab\x12", 1).to_cbor()
    assert preimage == bytes.fromhex("d8799f42ab1201ff")
    assert identifiers.vote_receipt_id(b"\xab\x12", 1) == blake(preimage)


def test_vote_receipt_id_stable_per_option():
    first = identifiers.vote_receipt_id(bytes.fromhex("ab12"), 1)
    second = identifiers.vote_receipt_id(bytes.fromhex("ab12"), 1)
    assert first == second
    assert first != identifiers.vote_receipt_id(bytes.fromhex("ab12"), 0)
    assert len(first) == 32


def test_dao_key_preimage():
    preimage = bytes.fromhex("d8799f5820") + SEED_HASH + bytes.fromhex("00ff")
    assert identifiers.dao_key(SEED_HASH, 0) == blake(preimage)


def test_vote_registration_id_truncated():
    registration_id = identifiers.vote_registration_id(SEED_HASH, 3)
    assert len(registration_id) == VOTE_ID_LENGTH
    assert registration_id == identifiers.dao_key(SEED_HASH, 3)[:VOTE_ID_LENGTH]
    assert identifiers.vote_reference_name(registration_id)[:2] == b"\x00\x00"
    assert identifiers.vote_user_name(registration_id)[:2] == b"\x00\x01"
    assert identifiers.vote_user_name(registration_id)[2:] == registration_id


def test_action_id_preimage():
    asset_name = identifiers.proposal_asset_name(SEED_HASH, 0)
    preimage = (
        bytes.fromhex("d8799f581c")
        + POLICY_ID
        + bytes.fromhex("5820")
        + asset_name
        + bytes.fromhex("00ff")
    )
    assert identifiers.action_id(POLICY_ID, asset_name, 0) == blake(preimage)
    assert identifiers.action_id(POLICY_ID, asset_name, 1) != blake(preimage)


def test_proposal_asset_name_preimage():
    preimage = (
        bytes.fromhex("d8799fd8799f5820") + SEED_HASH + bytes.fromhex("00ff20ff")
    )
    assert identifiers.proposal_asset_name(SEED_HASH, 0) == blake(preimage)


@given(st.binary(min_size=32, max_size=32), st.integers(min_value=0, max_value=2**16))
def test_identifiers_deterministic(seed_hash: bytes, index: int):
    assert identifiers.dao_key(seed_hash, index) == identifiers.dao_key(seed_hash, index)
    assert identifiers.dao_key(seed_hash, index) != identifiers.dao_key(
        seed_hash, index + 1
    )


def test_cip67_labels():
    assert identifiers.cip67_label(identifiers.CIP68_NFT_LABEL).hex() == "000de140"
    assert identifiers.cip67_label(identifiers.CIP68_REFERENCE_LABEL).hex() == "000643b0"
    assert identifiers.cip67_label(identifiers.CIP68_FT_LABEL).hex() == "0014df10"


@given(st.integers(min_value=0, max_value=0xFFFF))
def test_cip67_label_parses_back(label: int):
    assert identifiers.parse_cip67_label(identifiers.cip67_label(label)) == label


def test_cip67_label_rejects_bad_checksum():
    assert identifiers.parse_cip67_label(bytes.fromhex("000de150")) is None
    assert identifiers.parse_cip67_label(bytes.fromhex("100de140")) is None
    assert identifiers.parse_cip67_label(b"\x00") is None
