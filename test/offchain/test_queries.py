from dataclasses import replace

import pytest
from opshin.prelude import Token

from cardano_dao_governance.offchain import queries
from cardano_dao_governance.offchain.errors import NotFoundError
from cardano_dao_governance.offchain.util import asset_from_token
from cardano_dao_governance.onchain import identifiers
from cardano_dao_governance.onchain.identifiers import CIP68_FT_LABEL, cip67_label
from cardano_dao_governance.onchain.proposal import FailedQuorum, Passed
from test.offchain.util import (
    FakeChain,
    HOUR,
    IndexedChain,
    NOW,
    add_reference_script,
    add_treasury,
    fresh,
    make_action,
    make_context,
    make_dao,
    make_proposal,
    make_registration,
    make_utxo,
    tx_hash,
    wallet_address,
)


def test_dao_info():
    dao = make_dao(FakeChain())
    info = queries.get_dao_info(fresh(dao), dao.policy_id, dao.key)
    assert info["name"] == "Test DAO"
    assert info["threshold"] == 50
    assert info["quorum"] == 100
    assert info["whitelisted_proposals"] == [dao.scripts.proposal_policy_id.hex()]
    assert info["addresses"]["treasury"] == str(dao.scripts.treasury_address)


def test_dao_info_unknown():
    dao = make_dao(FakeChain())
    with pytest.raises(NotFoundError) as e:
        queries.get_dao_info(fresh(dao), dao.policy_id, bytes(32))
    assert e.value.code == "DAO_NOT_FOUND"


def test_list_proposals_latest_first():
    dao = make_dao(FakeChain())
    early = make_proposal(dao, [1, 2], NOW - HOUR, seed=30)
    late = make_proposal(dao, [0, 0], NOW + HOUR, seed=31)
    listed = queries.list_proposals(fresh(dao), dao.policy_id, dao.key)
    assert [p["asset_name"] for p in listed] == [
        late.asset_name.hex(),
        early.asset_name.hex(),
    ]
    assert listed[0]["voting_open"]
    assert not listed[1]["voting_open"]
    assert listed[1]["total_votes"] == 3


def test_proposal_details():
    dao = make_dao(FakeChain())
    proposal = make_proposal(dao, [20, 80], NOW - 1)
    make_action(dao, proposal, [(wallet_address(5), 1000000)], NOW + HOUR)
    details = queries.get_proposal_details(
        fresh(dao), dao.policy_id, dao.key, proposal.policy_id, proposal.asset_name
    )
    assert details["status"] == "Active"
    assert details["can_evaluate"]
    assert details["projected_outcome"]["status"] == "Passed"
    assert details["projected_outcome"]["winning_option"] == 1
    assert details["action"]["total_coins"] == 1000000
    assert details["action"]["targets"][0]["address"] == str(wallet_address(5))


def test_proposal_details_without_action():
    dao = make_dao(FakeChain())
    proposal = make_proposal(dao, [0, 0], NOW + HOUR)
    details = queries.get_proposal_details(
        fresh(dao), dao.policy_id, dao.key, proposal.policy_id, proposal.asset_name
    )
    assert details["action"] is None
    assert not details["can_evaluate"]
    assert details["projected_outcome"]["status"] == "FailedQuorum"


def test_registration_status():
    dao = make_dao(FakeChain())
    wallet = wallet_address(2)
    registration = make_registration(dao, wallet, 42)
    status = queries.get_registration_status(fresh(dao), dao.policy_id, dao.key, wallet)
    assert status["registered"]
    assert status["locked_governance_tokens"] == 42
    assert status["can_create_proposal"]
    assert status["registration_id"] == registration.registration_id.hex()

    other = queries.get_registration_status(
        fresh(dao), dao.policy_id, dao.key, wallet_address(3)
    )
    assert other == {"registered": False}


def test_analyze_unregister():
    dao = make_dao(FakeChain())
    active = make_proposal(dao, [0, 100], NOW + HOUR, seed=30)
    ended = make_proposal(dao, [0, 100], NOW - HOUR, FailedQuorum(), seed=31)
    receipts = {
        active.policy_id: {
            identifiers.vote_receipt_id(active.asset_name, 1): 100,
            identifiers.vote_receipt_id(ended.asset_name, 0): 100,
        }
    }
    wallet = wallet_address(2)
    make_registration(dao, wallet, 100, receipts)
    analysis = queries.analyze_unregister(fresh(dao), dao.policy_id, dao.key, wallet)
    assert analysis["registered"]
    assert not analysis["can_unregister"]
    assert [r["option"] for r in analysis["active_receipts"]] == [1]
    assert [r["option"] for r in analysis["ended_receipts"]] == [0]

    nobody = queries.analyze_unregister(
        fresh(dao), dao.policy_id, dao.key, wallet_address(3)
    )
    assert not nobody["registered"]
    assert not nobody["can_unregister"]


def test_treasury_info():
    dao = make_dao(FakeChain())
    add_treasury(dao, [1000000, 2500000])
    info = queries.get_treasury_info(fresh(dao), dao.policy_id, dao.key)
    assert info["lovelace"] == 3500000
    assert info["utxo_count"] == 2
    assert info["assets"] == {}


def test_find_proposals_to_evaluate():
    dao = make_dao(FakeChain())
    ready = make_proposal(dao, [0, 1], NOW - 1, seed=30)
    make_proposal(dao, [0, 1], NOW + HOUR, seed=31)
    make_proposal(dao, [0, 1], NOW - HOUR, Passed(1), seed=32)
    found = queries.find_proposals_to_evaluate(fresh(dao), dao.policy_id, dao.key)
    assert [p["asset_name"] for p in found] == [ready.asset_name.hex()]


@pytest.mark.parametrize(
    "status,activation,executable,reason",
    [
        (Passed(1), NOW - 1, True, None),
        (Passed(0), NOW - 1, False, "Option 0 won, action requires 1"),
        (Passed(1), NOW + 1, False, "Activation time not reached"),
        (FailedQuorum(), NOW - 1, False, "Proposal has status FailedQuorum"),
    ],
)
def test_action_details(status, activation, executable, reason):
    dao = make_dao(FakeChain())
    proposal = make_proposal(dao, [0, 100], NOW - HOUR, status)
    make_action(dao, proposal, [(wallet_address(5), 1000000)], activation)
    details = queries.get_action_details(
        fresh(dao), dao.policy_id, dao.key, proposal.policy_id, proposal.asset_name
    )
    assert details["executable"] == executable
    assert details["blocked_by"] == reason


def test_list_daos_by_name():
    dao = make_dao(FakeChain())
    other_key = identifiers.dao_key(bytes.fromhex(tx_hash(2)), 0)
    address = dao.scripts.dao_address
    dao.chain.add(
        make_utxo(
            tx_hash(2),
            0,
            address,
            2000000,
            asset_from_token(Token(dao.policy_id, other_key), 1),
            replace(dao.datum, name=b"Alpha DAO"),
        )
    )
    # outputs without a DAO datum or without the DAO NFT are not DAOs
    dao.chain.add(make_utxo(tx_hash(3), 0, address, 1000000))
    dao.chain.add(make_utxo(tx_hash(3), 1, address, 1000000, datum=dao.datum))

    listed = queries.list_daos(fresh(dao))
    assert [(d["name"], d["key"]) for d in listed] == [
        ("Alpha DAO", other_key.hex()),
        ("Test DAO", dao.key.hex()),
    ]
    assert listed[1]["utxo"] == f"{tx_hash(1)}#0"


def test_list_daos_empty():
    assert queries.list_daos(make_context(FakeChain())) == []


def test_scan_deployed_scripts():
    dao = make_dao(FakeChain())
    treasury_script = dao.ctx.script(*dao.scripts.named_scripts()["treasury_spend"])
    ref = add_reference_script(dao.chain, dao.scripts.treasury_address, treasury_script)
    scan = queries.scan_deployed_scripts(fresh(dao), dao.policy_id, dao.key)
    by_name = {s["name"]: s for s in scan["scripts"]}
    assert len(by_name) == 9
    assert scan["deployed"] == 1
    assert scan["missing"] == 8
    assert by_name["treasury_spend"]["deployed"]
    assert by_name["treasury_spend"]["reference_utxo"] == f"{tx_hash(60)}#0"
    assert by_name["treasury_spend"]["parameters"] == [
        dao.policy_id.hex(),
        dao.key.hex(),
    ]
    assert by_name["vote_spend"]["reference_utxo"] is None
    assert by_name["dao_mint"]["parameters"] == []
    proposal_mint = by_name["proposal_mint"]
    assert proposal_mint["script_hash"] == dao.scripts.proposal_policy_id.hex()
    assert ref.output.script == treasury_script


def test_validate_token():
    chain = IndexedChain()
    policy_id = bytes.fromhex("cd" * 28)
    name = cip67_label(CIP68_FT_LABEL) + b"GOV"
    chain.api.assets[(policy_id + name).hex()] = {
        "fingerprint": "asset1xyz",
        "quantity": "1000000",
        "mint_or_burn_count": 1,
        "onchain_metadata": {"name": "Governance", "decimals": 6},
        "metadata": None,
    }
    ctx = make_dao(chain).ctx
    found = queries.validate_token(ctx, policy_id, name)
    assert found["exists"]
    assert found["cip67_label"] == CIP68_FT_LABEL
    assert found["quantity"] == 1000000
    assert found["metadata"]["decimals"] == 6

    missing = queries.validate_token(ctx, policy_id, b"tGOV")
    assert missing == {
        "exists": False,
        "policy_id": policy_id.hex(),
        "asset_name": b"tGOV".hex(),
        "cip67_label": None,
    }
