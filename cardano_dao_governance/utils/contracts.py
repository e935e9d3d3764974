"""
Resolution of the compiled DAO validators.

Validators are parameterized by byte strings (policy ids and the DAO key) or plutus
data. Applying parameters is costly, so resolved scripts are kept in a ScriptCache whose
lifetime is chosen by the caller: one per request, or one per process.
"""
import json
import logging
import threading
from pathlib import Path
from typing import Dict, Iterable, Optional, Sequence, Tuple, Union

import pycardano
from pycardano import (
    Address,
    Network,
    PlutusData,
    PlutusV3Script,
    ScriptHash,
    plutus_script_hash,
    script_hash as any_script_hash,
)
from uplc.ast import Apply, PlutusByteString, Program, data_from_cbor
from uplc.tools import flatten, unflatten

_LOGGER = logging.getLogger(__name__)

DAO_MINT = "dao.dao.mint"
DAO_SPEND = "dao.dao.spend"
VOTE_MINT = "vote.vote.mint"
VOTE_SPEND = "vote.vote.spend"
PROPOSAL_MINT = "proposal.proposal.mint"
PROPOSAL_SPEND = "proposal.proposal.spend"
TREASURY_SPEND = "treasury.treasury.spend"
ACTION_MINT = "action_send_funds.action_send_funds.mint"
ACTION_SPEND = "action_send_funds.action_send_funds.spend"
AUTH_TOKEN_MINT = "auth_token_policy.auth_token_policy.mint"
TOKEN_MINT = "token_minting_policy.token_minting_policy.mint"

# parameters that are plutus data instead of a byte string carry this prefix
DATA_PARAM_PREFIX = "data:"

ScriptKey = Tuple[str, Tuple[str, ...]]


class ScriptCache:
    """
    Resolved scripts keyed by (title, parameters)
    """

    def __init__(self):
        self._scripts: Dict[ScriptKey, PlutusV3Script] = {}
        self._lock = threading.Lock()

    def get(self, key: ScriptKey) -> Optional[PlutusV3Script]:
        with self._lock:
            return self._scripts.get(key)

    def put(self, key: ScriptKey, script: PlutusV3Script):
        with self._lock:
            self._scripts[key] = script

    def __len__(self):
        return len(self._scripts)


def normalize_params(
    params: Iterable[Union[str, bytes, ScriptHash, PlutusData]]
) -> Tuple[str, ...]:
    normalized = []
    for p in params:
        if isinstance(p, PlutusData):
            normalized.append(DATA_PARAM_PREFIX + p.to_cbor().hex())
            continue
        if isinstance(p, ScriptHash):
            p = p.payload
        if isinstance(p, bytes):
            p = p.hex()
        normalized.append(p.lower())
    return tuple(normalized)


class ScriptResolver:
    """
    Resolves validators by blueprint title and parameters
    """

    def __init__(self, network: Network, cache: Optional[ScriptCache] = None):
        self.network = network
        self.cache = cache if cache is not None else ScriptCache()

    def _load(self, title: str, params: Tuple[str, ...]) -> PlutusV3Script:
        raise NotImplementedError()

    def script(self, title: str, params: Sequence = ()) -> PlutusV3Script:
        key = (title, normalize_params(params))
        script = self.cache.get(key)
        if script is None:
            script = self._load(*key)
            self.cache.put(key, script)
        return script


class BlueprintScriptResolver(ScriptResolver):
    """
    Loads validators from a CIP-57 blueprint (plutus.json) produced by aiken build
    """

    def __init__(
        self,
        blueprint: Union[str, Path, dict],
        network: Network,
        cache: Optional[ScriptCache] = None,
    ):
        super().__init__(network, cache)
        if not isinstance(blueprint, dict):
            with Path(blueprint).open() as fp:
                blueprint = json.load(fp)
        self.validators = {v["title"]: v for v in blueprint["validators"]}

    def _load(self, title: str, params: Tuple[str, ...]) -> PlutusV3Script:
        try:
            validator = self.validators[title]
        except KeyError:
            raise KeyError(f"Validator {title} is not in the blueprint")
        compiled = bytes.fromhex(validator["compiledCode"])
        if not params:
            return PlutusV3Script(compiled)
        _LOGGER.debug(f"Applying {len(params)} parameters to {title}")
        return PlutusV3Script(apply_params(compiled, params))


def apply_params(compiled: bytes, params: Sequence[str]) -> bytes:
    """
    Apply parameters to a CBOR wrapped flat encoded program, byte strings given as hex and
    plutus data as DATA_PARAM_PREFIX followed by its CBOR hex
    """
    program = unflatten(compiled)
    term = program.term
    for param in params:
        if param.startswith(DATA_PARAM_PREFIX):
            argument = data_from_cbor(bytes.fromhex(param[len(DATA_PARAM_PREFIX) :]))
        else:
            argument = PlutusByteString(bytes.fromhex(param))
        term = Apply(term, argument)
    return flatten(Program(version=program.version, term=term))


def get_ref_utxo(
    script: PlutusV3Script,
    context: pycardano.ChainContext,
    address: Optional[Union[str, Address]] = None,
) -> Optional[pycardano.UTxO]:
    """
    UTxO carrying the script as reference script, searched at the given address
    (by default the script's own address)
    """
    expected_hash = plutus_script_hash(script)
    if address is None:
        address = Address(payment_part=expected_hash, network=context.network)
    for utxo in context.utxos(address):
        if utxo.output.script is None:
            continue
        if any_script_hash(utxo.output.script) == expected_hash:
            return utxo
    return None
