from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import pycardano
from blockfrost import ApiError
from pycardano import (
    MultiAsset,
    Network,
    PlutusV3Script,
    TransactionInput,
    TransactionOutput,
    UTxO,
    Value,
    VerificationKeyHash,
)

from cardano_dao_governance.offchain.chain import ChainQuery
from cardano_dao_governance.offchain.context import (
    DaoScripts,
    ProtocolContext,
    dao_policy_id,
)
from cardano_dao_governance.offchain.util import asset_from_token, multi_asset_from_dict
from cardano_dao_governance.onchain import identifiers
from cardano_dao_governance.onchain.action import (
    ActionDatum,
    ActionIdentifier,
    ActionTarget,
)
from cardano_dao_governance.onchain.dao import DAODatum
from cardano_dao_governance.onchain.proposal import Active, ProposalDatum
from cardano_dao_governance.onchain.types import OutputReference
from cardano_dao_governance.onchain.vote import empty_vote_datum
from cardano_dao_governance.utils.contracts import ScriptResolver
from cardano_dao_governance.utils.network import SlotConfig
from cardano_dao_governance.utils.to_script_context import to_address
from opshin.prelude import NoOutputDatum, Token

# 2025-01-01 00:00:00 UTC
NOW = 1735689600000
HOUR = 3600 * 1000


@dataclass
class TestConfig:
    governance_token: Token
    threshold: int = 50
    quorum: int = 100
    min_proposal_time: int = 3600
    max_proposal_time: int = 7 * 24 * 3600
    min_gov_proposal_create: int = 10


DEFAULT_TEST_CONFIG = TestConfig(
    governance_token=Token(bytes.fromhex("ab" * 28), b"tGOV"),
)


def tx_hash(n: int) -> str:
    return f"{n:064x}"


def wallet_address(n: int = 1) -> pycardano.Address:
    return pycardano.Address(
        payment_part=VerificationKeyHash(bytes([n]) * 28), network=Network.TESTNET
    )


def make_utxo(
    tx_id: str,
    index: int,
    address: pycardano.Address,
    coin: int,
    multi_asset: Optional[MultiAsset] = None,
    datum=None,
) -> UTxO:
    return UTxO(
        TransactionInput.from_primitive([tx_id, index]),
        TransactionOutput(
            address, Value(coin, multi_asset or MultiAsset()), datum=datum
        ),
    )


class FakeChain:
    """
    In-memory stand-in for a chain context, UTxOs are registered per address
    """

    def __init__(self, network: Network = Network.TESTNET):
        self.network = network
        self.outputs: Dict[str, List[UTxO]] = {}
        self.queries = 0
        self.submitted = []

    def add(self, utxo: UTxO) -> UTxO:
        self.outputs.setdefault(str(utxo.output.address), []).append(utxo)
        return utxo

    def utxos(self, address) -> List[UTxO]:
        self.queries += 1
        return list(self.outputs.get(str(address), []))

    def submit_tx(self, tx):
        self.submitted.append(tx)


class FailingChain(FakeChain):
    def utxos(self, address) -> List[UTxO]:
        raise ConnectionError("provider unreachable")


class NotFoundResponse:
    def json(self):
        return {"status_code": 404, "error": "Not Found", "message": "asset not found"}


class FakeAssetApi:
    """
    Asset endpoint of an indexer, assets are registered by unit
    """

    def __init__(self):
        self.assets: Dict[str, dict] = {}

    def asset(self, unit: str, return_type: str = "object"):
        if unit not in self.assets:
            raise ApiError(NotFoundResponse())
        return self.assets[unit]


class IndexedChain(FakeChain):
    """
    Chain context with an indexer api, like the Blockfrost backend
    """

    def __init__(self, network: Network = Network.TESTNET):
        super().__init__(network)
        self.api = FakeAssetApi()


class FixedScriptResolver(ScriptResolver):
    """
    Deterministic stand-in scripts, distinct per title and parameters
    """

    def _load(self, title: str, params: Tuple[str, ...]) -> PlutusV3Script:
        return PlutusV3Script(f"{title}:{','.join(params)}".encode())


def make_context(chain: FakeChain, now: int = NOW) -> ProtocolContext:
    return ProtocolContext(
        chain=ChainQuery(chain),
        scripts=FixedScriptResolver(chain.network),
        clock=lambda: now,
        slots=SlotConfig(zero_time=0, zero_slot=0),
    )


@dataclass
class DaoFixture:
    ctx: ProtocolContext
    chain: FakeChain
    scripts: DaoScripts
    datum: DAODatum
    utxo: UTxO

    @property
    def policy_id(self) -> bytes:
        return self.scripts.dao_policy_id

    @property
    def key(self) -> bytes:
        return self.scripts.dao_key

    def ids(self) -> dict:
        return {"dao_policy_id": self.policy_id.hex(), "dao_key": self.key.hex()}


def make_dao(
    chain: FakeChain, config: TestConfig = DEFAULT_TEST_CONFIG, now: int = NOW
) -> DaoFixture:
    ctx = make_context(chain, now)
    policy_id = dao_policy_id(ctx)
    key = identifiers.dao_key(bytes.fromhex(tx_hash(1)), 0)
    scripts = ctx.dao_scripts(policy_id, key)
    datum = DAODatum(
        name=b"Test DAO",
        governance_token=config.governance_token.policy_id
        + config.governance_token.token_name,
        threshold=config.threshold,
        min_proposal_time=config.min_proposal_time,
        max_proposal_time=config.max_proposal_time,
        quorum=config.quorum,
        min_gov_proposal_create=config.min_gov_proposal_create,
        whitelisted_proposals=[scripts.proposal_policy_id],
        whitelisted_actions=[scripts.action_policy_id],
    )
    utxo = chain.add(
        make_utxo(
            tx_hash(1),
            0,
            scripts.dao_address,
            2000000,
            asset_from_token(Token(policy_id, key), 1),
            datum,
        )
    )
    return DaoFixture(ctx, chain, scripts, datum, utxo)


def governance(amount: int, config: TestConfig = DEFAULT_TEST_CONFIG) -> MultiAsset:
    return asset_from_token(config.governance_token, amount)


@dataclass
class RegistrationFixture:
    registration_id: bytes
    user_utxo: UTxO
    vote_utxo: UTxO


def make_registration(
    dao: DaoFixture,
    wallet: pycardano.Address,
    locked: int,
    receipts: Optional[Dict[bytes, Dict[bytes, int]]] = None,
    seed: int = 20,
) -> RegistrationFixture:
    registration_id = identifiers.vote_registration_id(bytes.fromhex(tx_hash(seed)), 0)
    vote_policy_id = dao.scripts.vote_policy_id
    user_tk = Token(vote_policy_id, identifiers.vote_user_name(registration_id))
    reference_tk = Token(
        vote_policy_id, identifiers.vote_reference_name(registration_id)
    )
    user_utxo = dao.chain.add(
        make_utxo(tx_hash(seed), 1, wallet, 1500000, asset_from_token(user_tk, 1))
    )
    locked_assets = asset_from_token(reference_tk, 1) + governance(locked)
    if receipts:
        locked_assets += multi_asset_from_dict(receipts)
    vote_utxo = dao.chain.add(
        make_utxo(
            tx_hash(seed),
            0,
            dao.scripts.vote_address,
            3000000,
            locked_assets,
            empty_vote_datum(),
        )
    )
    return RegistrationFixture(registration_id, user_utxo, vote_utxo)


@dataclass
class ProposalFixture:
    policy_id: bytes
    asset_name: bytes
    utxo: UTxO
    datum: ProposalDatum

    def ids(self) -> dict:
        return {
            "proposal_policy_id": self.policy_id.hex(),
            "proposal_asset_name": self.asset_name.hex(),
        }


def make_proposal(
    dao: DaoFixture,
    tally: List[int],
    end_time: int,
    status=None,
    seed: int = 30,
) -> ProposalFixture:
    seed_hash = bytes.fromhex(tx_hash(seed))
    policy_id = dao.scripts.proposal_policy_id
    asset_name = identifiers.proposal_asset_name(seed_hash, 0)
    datum = ProposalDatum(
        name=b"Fund the community",
        description=b"Pay out the community grant",
        tally=tally,
        end_time=end_time,
        status=status if status is not None else Active(),
        identifier=OutputReference(seed_hash, 0),
    )
    utxo = dao.chain.add(
        make_utxo(
            tx_hash(seed),
            0,
            dao.scripts.proposal_address,
            2500000,
            asset_from_token(Token(policy_id, asset_name), 1),
            datum,
        )
    )
    return ProposalFixture(policy_id, asset_name, utxo, datum)


def make_action(
    dao: DaoFixture,
    proposal: ProposalFixture,
    targets: List[Tuple[pycardano.Address, int]],
    activation_time: int,
    option: int = 1,
    seed: int = 40,
    target_tokens: Optional[Dict[bytes, Dict[bytes, int]]] = None,
) -> UTxO:
    asset_name = identifiers.action_id(proposal.policy_id, proposal.asset_name, 0)
    datum = ActionDatum(
        name=b"Grant",
        description=b"Community grant payout",
        activation_time=activation_time,
        action_identifier=ActionIdentifier(proposal.policy_id, proposal.asset_name, 0),
        option=option,
        targets=[
            ActionTarget(
                to_address(address), coins, target_tokens or {}, NoOutputDatum()
            )
            for address, coins in targets
        ],
        treasury=to_address(dao.scripts.treasury_address),
    )
    return dao.chain.add(
        make_utxo(
            tx_hash(seed),
            0,
            dao.scripts.action_address,
            2000000,
            asset_from_token(Token(dao.scripts.action_policy_id, asset_name), 1),
            datum,
        )
    )


def add_treasury(dao: DaoFixture, coins: List[int], seed: int = 50) -> List[UTxO]:
    return [
        dao.chain.add(make_utxo(tx_hash(seed), i, dao.scripts.treasury_address, c))
        for i, c in enumerate(coins)
    ]


def add_wallet_utxo(
    dao: DaoFixture,
    wallet: pycardano.Address,
    coin: int,
    multi_asset: Optional[MultiAsset] = None,
    seed: int = 10,
    index: int = 0,
) -> UTxO:
    return dao.chain.add(make_utxo(tx_hash(seed), index, wallet, coin, multi_asset))


def add_reference_script(
    chain: FakeChain, address: pycardano.Address, script: PlutusV3Script, seed: int = 60
) -> UTxO:
    return chain.add(
        UTxO(
            TransactionInput.from_primitive([tx_hash(seed), 0]),
            TransactionOutput(address, Value(15000000), script=script),
        )
    )


def collateral_ref(utxo: UTxO) -> str:
    return f"{utxo.input.transaction_id.payload.hex()}#{utxo.input.index}"


def fresh(dao: DaoFixture) -> ProtocolContext:
    """
    Context that sees all UTxOs added to the chain so far
    """
    return dao.ctx.for_call()


def request(
    dao: DaoFixture, wallet: pycardano.Address, collateral: UTxO, **fields
) -> dict:
    """
    JSON request of an operation on the DAO, signed by wallet
    """
    return {
        **dao.ids(),
        "wallet_address": str(wallet),
        "collateral": [collateral_ref(collateral)],
        **fields,
    }
