import pytest

from cardano_dao_governance.offchain.errors import (
    NotFoundError,
    StateError,
    ValidationError,
)
from cardano_dao_governance.offchain.locator import quantity_of
from cardano_dao_governance.offchain.proposal.create import (
    CreateProposalRequest,
    MIN_ACTIVATION_DELAY,
    VALIDITY_SLOTS,
    plan_create_proposal,
)
from cardano_dao_governance.onchain import identifiers
from cardano_dao_governance.onchain.action import CreateAction
from cardano_dao_governance.onchain.proposal import Active, CreateProposal
from cardano_dao_governance.utils.from_script_context import from_address
from test.offchain.util import (
    FakeChain,
    HOUR,
    NOW,
    add_wallet_utxo,
    fresh,
    make_dao,
    make_registration,
    request,
    tx_hash,
    wallet_address,
)

RECIPIENT = wallet_address(8)


def setup_proposal(locked=100):
    dao = make_dao(FakeChain())
    wallet = wallet_address(2)
    registration = make_registration(dao, wallet, locked)
    fee = add_wallet_utxo(dao, wallet, 10000000, seed=10)
    return dao, wallet, registration, fee


def proposal_request(dao, wallet, fee, **fields):
    payload = request(
        dao,
        wallet,
        fee,
        name="Fund the community",
        description="Pay out the grant",
        duration=2 * 3600,
    )
    payload.update(fields)
    return CreateProposalRequest.from_dict(payload, NOW)


def action_payload(**fields):
    return {
        "name": "Grant",
        "description": "Community grant",
        "targets": [{"address": str(RECIPIENT), "coins": 5000000}],
        **fields,
    }


def test_create_proposal():
    dao, wallet, registration, fee = setup_proposal()
    assembled = plan_create_proposal(
        fresh(dao), proposal_request(dao, wallet, fee, options=3)
    )
    plan = assembled.plan

    assert plan.inputs == [fee]
    assert plan.reference_inputs == [dao.utxo, registration.vote_utxo]
    assert plan.ttl - plan.validity_start == VALIDITY_SLOTS

    asset_name = identifiers.proposal_asset_name(bytes.fromhex(tx_hash(10)), 0)
    [mint] = plan.mints
    assert mint.policy_id == dao.scripts.proposal_policy_id
    assert mint.assets == {asset_name: 1}
    assert mint.redeemer == CreateProposal(registration.registration_id)

    [output] = [o.output for o in plan.outputs]
    assert output.address == dao.scripts.proposal_address
    assert quantity_of(output.amount, mint.policy_id, asset_name) == 1
    datum = output.datum
    assert datum.name == b"Fund the community"
    assert datum.description == b"Pay out the grant"
    assert datum.tally == [0, 0, 0]
    assert datum.end_time == NOW + 2 * HOUR
    assert datum.status == Active()
    assert datum.identifier.transaction_id == bytes.fromhex(tx_hash(10))

    assert assembled.info["proposal_asset_name"] == asset_name.hex()
    assert assembled.info["action_asset_name"] is None


def test_create_proposal_with_action():
    dao, wallet, _, fee = setup_proposal()
    assembled = plan_create_proposal(
        fresh(dao), proposal_request(dao, wallet, fee, action=action_payload())
    )
    plan = assembled.plan
    proposal_name = bytes.fromhex(assembled.info["proposal_asset_name"])
    action_name = identifiers.action_id(
        dao.scripts.proposal_policy_id, proposal_name, 0
    )
    assert assembled.info["action_asset_name"] == action_name.hex()

    _, action_mint = plan.mints
    assert action_mint.policy_id == dao.scripts.action_policy_id
    assert action_mint.assets == {action_name: 1}
    assert isinstance(action_mint.redeemer, CreateAction)

    _, action_output = [o.output for o in plan.outputs]
    assert action_output.address == dao.scripts.action_address
    datum = action_output.datum
    assert datum.option == 1
    assert datum.activation_time == NOW + 2 * HOUR + MIN_ACTIVATION_DELAY
    assert datum.action_identifier.proposal_identifier == proposal_name
    assert datum.total_coins == 5000000
    assert from_address(datum.targets[0].address, dao.chain.network) == RECIPIENT
    assert (
        from_address(datum.treasury, dao.chain.network)
        == dao.scripts.treasury_address
    )


def test_create_proposal_with_explicit_end_time():
    dao, wallet, _, fee = setup_proposal()
    req = proposal_request(dao, wallet, fee, end_time=NOW + 3 * HOUR)
    assembled = plan_create_proposal(fresh(dao), req)
    assert assembled.info["end_time"] == NOW + 3 * HOUR


@pytest.mark.parametrize("duration", [60, 8 * 24 * 3600])
def test_create_proposal_duration_out_of_bounds(duration):
    dao, wallet, _, fee = setup_proposal()
    with pytest.raises(ValidationError) as e:
        plan_create_proposal(
            fresh(dao), proposal_request(dao, wallet, fee, duration=duration)
        )
    assert e.value.code == "INVALID_FIELD"


def test_create_proposal_in_the_past():
    dao, wallet, _, fee = setup_proposal()
    with pytest.raises(ValidationError):
        plan_create_proposal(
            fresh(dao), proposal_request(dao, wallet, fee, end_time=NOW - 1)
        )


@pytest.mark.parametrize(
    "action",
    [
        action_payload(activation_time=NOW + 2 * HOUR),
        action_payload(targets=[{"address": str(RECIPIENT), "coins": 0}]),
        action_payload(targets=[]),
        action_payload(option=2),
    ],
)
def test_create_proposal_invalid_action(action):
    dao, wallet, _, fee = setup_proposal()
    with pytest.raises(ValidationError) as e:
        plan_create_proposal(
            fresh(dao), proposal_request(dao, wallet, fee, action=action)
        )
    assert e.value.code == "INVALID_FIELD"


def test_create_proposal_invalid_target_token():
    dao, wallet, _, fee = setup_proposal()
    action = action_payload(
        targets=[{"address": str(RECIPIENT), "coins": 1, "tokens": {"abc": 1}}]
    )
    with pytest.raises(ValidationError):
        proposal_request(dao, wallet, fee, action=action)


def test_create_proposal_needs_locked_tokens():
    dao, wallet, _, fee = setup_proposal(locked=9)
    with pytest.raises(StateError) as e:
        plan_create_proposal(fresh(dao), proposal_request(dao, wallet, fee))
    assert e.value.code == "INSUFFICIENT_GOVERNANCE_TOKENS"


def test_create_proposal_not_registered():
    dao = make_dao(FakeChain())
    wallet = wallet_address(2)
    fee = add_wallet_utxo(dao, wallet, 10000000)
    with pytest.raises(NotFoundError) as e:
        plan_create_proposal(fresh(dao), proposal_request(dao, wallet, fee))
    assert e.value.code == "NOT_REGISTERED"


def test_create_proposal_requires_name():
    dao, wallet, _, fee = setup_proposal()
    with pytest.raises(ValidationError) as e:
        proposal_request(dao, wallet, fee, name=None)
    assert e.value.code == "MISSING_FIELD"
