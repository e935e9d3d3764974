import logging
from dataclasses import dataclass, field, replace
from functools import cached_property
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import pycardano
from pycardano import Address, PlutusV3Script

from cardano_dao_governance.utils import network as network_config
from cardano_dao_governance.utils.contracts import (
    ACTION_MINT,
    ACTION_SPEND,
    BlueprintScriptResolver,
    DAO_MINT,
    DAO_SPEND,
    PROPOSAL_MINT,
    PROPOSAL_SPEND,
    ScriptCache,
    ScriptResolver,
    TREASURY_SPEND,
    VOTE_MINT,
    VOTE_SPEND,
    get_ref_utxo,
)
from cardano_dao_governance.utils.network import SlotConfig, now_posix_ms
from .chain import ChainQuery
from .errors import NotFoundError
from .tx import ScriptSource

_LOGGER = logging.getLogger(__name__)


@dataclass
class ProtocolContext:
    """
    Everything an operation needs from the outside world
    """

    chain: ChainQuery
    scripts: ScriptResolver
    clock: Callable[[], int] = now_posix_ms
    slots: SlotConfig = field(default_factory=lambda: network_config.slot_config)
    reference_script_address: Optional[str] = None

    @property
    def network(self) -> pycardano.Network:
        return self.scripts.network

    def now(self) -> int:
        return self.clock()

    def current_slot(self) -> int:
        return self.slots.slot_at(self.now())

    def for_call(self) -> "ProtocolContext":
        """
        Copy with an empty UTxO lookup cache, sharing the script cache
        """
        return replace(self, chain=self.chain.fresh())

    def script(self, title: str, params: Sequence = ()) -> PlutusV3Script:
        try:
            return self.scripts.script(title, params)
        except KeyError as e:
            raise NotFoundError(str(e), code="SCRIPT_NOT_FOUND") from e

    def reference_address(self, script: PlutusV3Script) -> Address:
        """
        Where reference scripts are published, the script's own address if unconfigured
        """
        if self.reference_script_address:
            return Address.from_primitive(self.reference_script_address)
        return Address(
            payment_part=pycardano.plutus_script_hash(script), network=self.network
        )

    def reference_utxo(self, script: PlutusV3Script) -> Optional[pycardano.UTxO]:
        return get_ref_utxo(script, self.chain, self.reference_address(script))

    def script_source(self, title: str, params: Sequence = ()) -> ScriptSource:
        """
        Reference script UTxO if one is published, the script itself otherwise
        """
        script = self.script(title, params)
        ref_utxo = self.reference_utxo(script)
        if ref_utxo is None:
            _LOGGER.debug(f"No reference script for {title}, attaching the script")
        return ref_utxo or script

    def dao_scripts(self, dao_policy_id: bytes, dao_key: bytes) -> "DaoScripts":
        return DaoScripts(self, dao_policy_id, dao_key)


class DaoScripts:
    """
    Policy ids and addresses of the validators of one DAO
    """

    def __init__(self, ctx: ProtocolContext, dao_policy_id: bytes, dao_key: bytes):
        self.ctx = ctx
        self.dao_policy_id = dao_policy_id
        self.dao_key = dao_key

    @property
    def params(self) -> List[bytes]:
        return [self.dao_policy_id, self.dao_key]

    def _hash(self, title: str, params: Sequence = ()) -> bytes:
        return pycardano.plutus_script_hash(self.ctx.script(title, params)).payload

    def _address(self, title: str, params: Sequence = ()) -> Address:
        return Address(
            payment_part=pycardano.ScriptHash(self._hash(title, params)),
            network=self.ctx.network,
        )

    @cached_property
    def dao_address(self) -> Address:
        return dao_address(self.ctx)

    @cached_property
    def vote_policy_id(self) -> bytes:
        return self._hash(VOTE_MINT, self.params)

    @cached_property
    def vote_address(self) -> Address:
        return self._address(VOTE_SPEND, self.params)

    @property
    def proposal_params(self) -> List[bytes]:
        return self.params + [self.vote_policy_id]

    @cached_property
    def proposal_policy_id(self) -> bytes:
        return self._hash(PROPOSAL_MINT, self.proposal_params)

    @cached_property
    def proposal_address(self) -> Address:
        return self._address(PROPOSAL_SPEND, self.proposal_params)

    @cached_property
    def treasury_address(self) -> Address:
        return self._address(TREASURY_SPEND, self.params)

    @cached_property
    def action_policy_id(self) -> bytes:
        return self._hash(ACTION_MINT, self.params)

    @cached_property
    def action_address(self) -> Address:
        return self._address(ACTION_SPEND, self.params)

    def vote_source(self, mint: bool = False) -> ScriptSource:
        return self.ctx.script_source(VOTE_MINT if mint else VOTE_SPEND, self.params)

    def proposal_source(self, mint: bool = False) -> ScriptSource:
        return self.ctx.script_source(
            PROPOSAL_MINT if mint else PROPOSAL_SPEND, self.proposal_params
        )

    def treasury_source(self) -> ScriptSource:
        return self.ctx.script_source(TREASURY_SPEND, self.params)

    def action_source(self, mint: bool = False) -> ScriptSource:
        return self.ctx.script_source(ACTION_MINT if mint else ACTION_SPEND, self.params)

    def named_scripts(self) -> Dict[str, Tuple[str, List]]:
        """
        Blueprint title and parameters of every validator of the DAO, by short name
        """
        return {
            "dao_mint": (DAO_MINT, []),
            "dao_spend": (DAO_SPEND, []),
            "vote_mint": (VOTE_MINT, self.params),
            "vote_spend": (VOTE_SPEND, self.params),
            "proposal_mint": (PROPOSAL_MINT, self.proposal_params),
            "proposal_spend": (PROPOSAL_SPEND, self.proposal_params),
            "treasury_spend": (TREASURY_SPEND, self.params),
            "action_mint": (ACTION_MINT, self.params),
            "action_spend": (ACTION_SPEND, self.params),
        }


def dao_policy_id(ctx: ProtocolContext) -> bytes:
    return pycardano.plutus_script_hash(ctx.script(DAO_MINT)).payload


def dao_address(ctx: ProtocolContext) -> Address:
    """
    Address of all DAOs, the DAO validator takes no parameters
    """
    return Address(
        payment_part=pycardano.plutus_script_hash(ctx.script(DAO_SPEND)),
        network=ctx.network,
    )


def default_context(cache: Optional[ScriptCache] = None) -> ProtocolContext:
    """
    Context for the configured network, chain backend and blueprint
    """
    return ProtocolContext(
        chain=ChainQuery(network_config.get_chain_context()),
        scripts=BlueprintScriptResolver(
            network_config.blueprint_path, network_config.network, cache
        ),
        slots=network_config.slot_config,
        reference_script_address=network_config.reference_script_address,
    )
