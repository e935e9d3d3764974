import pytest

from cardano_dao_governance.offchain.action.execute import (
    ExecuteRequest,
    VALIDITY_SLOTS,
    plan_execute,
    target_output,
)
from cardano_dao_governance.offchain.errors import NotFoundError, StateError
from cardano_dao_governance.offchain.locator import quantity_of
from cardano_dao_governance.offchain.util import multi_asset_from_dict
from cardano_dao_governance.onchain.action import (
    ActionTarget,
    ExecuteAction,
    SpendAction,
    SpendTreasury,
)
from cardano_dao_governance.onchain.proposal import Active, FailedQuorum, Passed
from cardano_dao_governance.utils.to_script_context import to_address
from opshin.prelude import SomeOutputDatum, SomeOutputDatumHash
from pycardano import Network
from test.offchain.util import (
    FakeChain,
    HOUR,
    NOW,
    add_treasury,
    add_wallet_utxo,
    fresh,
    make_action,
    make_dao,
    make_proposal,
    make_utxo,
    request,
    tx_hash,
    wallet_address,
)

ALICE = wallet_address(5)
BOB = wallet_address(6)


def setup_execute(
    treasury=(4000000, 6000000, 10000000),
    status=Passed(1),
    option=1,
    activation_time=NOW - 1,
    with_action=True,
):
    dao = make_dao(FakeChain())
    wallet = wallet_address(3)
    fee = add_wallet_utxo(dao, wallet, 10000000)
    proposal = make_proposal(dao, [0, 100], NOW - HOUR, status)
    action = None
    if with_action:
        action = make_action(
            dao, proposal, [(ALICE, 5000000), (BOB, 3000000)], activation_time, option
        )
    treasury_utxos = add_treasury(dao, list(treasury))
    payload = request(dao, wallet, fee, **proposal.ids())
    return dao, proposal, action, treasury_utxos, ExecuteRequest.from_dict(payload)


def test_execute_pays_targets():
    dao, proposal, action, treasury_utxos, req = setup_execute()
    assembled = plan_execute(fresh(dao), req)
    plan = assembled.plan

    assert plan.inputs == []
    assert plan.script_inputs[0].utxo == action
    assert isinstance(plan.script_inputs[0].redeemer, SpendAction)
    assert [s.utxo for s in plan.script_inputs[1:]] == treasury_utxos[:2]
    assert all(isinstance(s.redeemer, SpendTreasury) for s in plan.script_inputs[1:])
    assert plan.reference_inputs == [dao.utxo, proposal.utxo]
    assert plan.ttl - plan.validity_start == VALIDITY_SLOTS

    [mint] = plan.mints
    assert mint.policy_id == dao.scripts.action_policy_id
    assert list(mint.assets.values()) == [-1]
    assert isinstance(mint.redeemer, ExecuteAction)

    alice, bob, change = [o.output for o in plan.outputs]
    assert (alice.address, alice.amount.coin) == (ALICE, 5000000)
    assert (bob.address, bob.amount.coin) == (BOB, 3000000)
    assert change.address == dao.scripts.treasury_address
    assert change.amount.coin == 2000000

    assert assembled.info["total_paid"] == 8000000
    assert assembled.info["treasury_inputs"] == 2
    assert assembled.info["treasury_change"] == 2000000


def test_execute_without_change():
    dao, _, _, _, req = setup_execute(treasury=(8000000,))
    plan = plan_execute(fresh(dao), req).plan
    assert len(plan.outputs) == 2


def test_execute_insufficient_treasury():
    dao, _, _, _, req = setup_execute(treasury=(1000000, 2000000))
    with pytest.raises(StateError) as e:
        plan_execute(fresh(dao), req)
    assert e.value.code == "INSUFFICIENT_TREASURY_FUNDS"


def test_execute_empty_treasury():
    dao, _, _, _, req = setup_execute(treasury=())
    with pytest.raises(NotFoundError) as e:
        plan_execute(fresh(dao), req)
    assert e.value.code == "TREASURY_UTXOS_NOT_FOUND"


@pytest.mark.parametrize("status", [Active(), FailedQuorum()])
def test_execute_proposal_not_passed(status):
    dao, _, _, _, req = setup_execute(status=status)
    with pytest.raises(StateError) as e:
        plan_execute(fresh(dao), req)
    assert e.value.code == "PROPOSAL_NOT_PASSED"


def test_execute_other_option_won():
    dao, _, _, _, req = setup_execute(status=Passed(0))
    with pytest.raises(StateError) as e:
        plan_execute(fresh(dao), req)
    assert e.value.code == "OPTION_MISMATCH"


def test_execute_before_activation():
    dao, _, _, _, req = setup_execute(activation_time=NOW + 1)
    with pytest.raises(StateError) as e:
        plan_execute(fresh(dao), req)
    assert e.value.code == "ACTION_NOT_ACTIVE"


def test_execute_at_activation():
    dao, _, _, _, req = setup_execute(activation_time=NOW)
    assert plan_execute(fresh(dao), req).info["targets"] == 2


def test_execute_missing_action():
    dao, _, _, _, req = setup_execute(with_action=False)
    with pytest.raises(NotFoundError) as e:
        plan_execute(fresh(dao), req)
    assert e.value.code == "ACTION_UTXO_NOT_FOUND"


def test_target_output_datum():
    inline = ActionTarget(to_address(ALICE), 2000000, {}, SomeOutputDatum(b"\x01"))
    assert target_output(inline, Network.TESTNET).datum == b"\x01"
    hashed = ActionTarget(
        to_address(ALICE), 2000000, {}, SomeOutputDatumHash(bytes(32))
    )
    assert target_output(hashed, Network.TESTNET).datum_hash.payload == bytes(32)


def test_execute_pays_tokens_from_treasury():
    grant = {bytes.fromhex("cd" * 28): {b"grant": 5}}
    dao = make_dao(FakeChain())
    wallet = wallet_address(3)
    fee = add_wallet_utxo(dao, wallet, 10000000)
    proposal = make_proposal(dao, [0, 100], NOW - HOUR, Passed(1))
    make_action(dao, proposal, [(ALICE, 0)], NOW - 1, target_tokens=grant)
    plain = add_treasury(dao, [5000000])
    holding = dao.chain.add(
        make_utxo(
            tx_hash(51),
            0,
            dao.scripts.treasury_address,
            3000000,
            multi_asset_from_dict({bytes.fromhex("cd" * 28): {b"grant": 8}}),
        )
    )
    payload = request(dao, wallet, fee, **proposal.ids())
    plan = plan_execute(fresh(dao), ExecuteRequest.from_dict(payload)).plan

    assert [s.utxo for s in plan.script_inputs[1:]] == plain + [holding]
    alice, change = [o.output for o in plan.outputs]
    assert alice.address == ALICE
    assert quantity_of(alice.amount, bytes.fromhex("cd" * 28), b"grant") == 5
    assert change.amount.coin == 8000000
    assert quantity_of(change.amount, bytes.fromhex("cd" * 28), b"grant") == 3
