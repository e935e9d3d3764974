"""
Locating protocol UTxOs by the tokens they carry.

Not finding a UTxO is a normal outcome (it may have been spent by someone else in the meantime),
so the finders return None and leave the decision to the caller.
"""
import logging
from typing import Iterable, List, Optional, Tuple, Type

import pycardano
from pycardano import AssetName, ScriptHash

from cardano_dao_governance.onchain.codec import (
    Decoded,
    Malformed,
    T,
    decode_output,
)
from .errors import CodecError

_LOGGER = logging.getLogger(__name__)


def quantity_of(value: pycardano.Value, policy_id: bytes, asset_name: bytes) -> int:
    return value.multi_asset.get(ScriptHash(policy_id), {}).get(AssetName(asset_name), 0)


def find_utxo_with_asset(
    utxos: Iterable[pycardano.UTxO],
    policy_id: bytes,
    asset_name: bytes,
    expected_quantity: int = 1,
) -> Optional[pycardano.UTxO]:
    """
    First UTxO holding exactly expected_quantity of the given asset
    """
    for u in utxos:
        if quantity_of(u.output.amount, policy_id, asset_name) == expected_quantity:
            return u
    return None


def locate(
    chain,
    address,
    policy_id: bytes,
    asset_name: bytes,
    expected_quantity: int = 1,
) -> Optional[pycardano.UTxO]:
    """
    Scan the unspent outputs at address for the one carrying the given asset
    """
    return find_utxo_with_asset(
        chain.utxos(address), policy_id, asset_name, expected_quantity
    )


def find_assets_with_quantity(
    value: pycardano.Value, policy_id: bytes, quantity: int = 1
) -> List[bytes]:
    return [
        name.payload
        for name, amount in value.multi_asset.get(ScriptHash(policy_id), {}).items()
        if amount == quantity
    ]


def find_utxo_with_prefix(
    utxos: Iterable[pycardano.UTxO],
    policy_id: bytes,
    prefix: bytes,
    expected_quantity: int = 1,
) -> Optional[Tuple[pycardano.UTxO, bytes]]:
    """
    First UTxO holding an asset of the policy whose name starts with prefix, and that name
    """
    for u in utxos:
        for name, amount in u.output.amount.multi_asset.get(
            ScriptHash(policy_id), {}
        ).items():
            if name.payload.startswith(prefix) and amount == expected_quantity:
                return u, name.payload
    return None


def expect_datum(datum_type: Type[T], utxo: pycardano.UTxO) -> Decoded:
    """
    Decoded inline datum of the UTxO, raises CodecError if it is not a datum_type
    """
    result = decode_output(datum_type, utxo.output)
    if isinstance(result, Decoded):
        return result
    code = "DATUM_MALFORMED" if isinstance(result, Malformed) else "DATUM_WRONG_SHAPE"
    raise CodecError(
        f"Datum of {utxo.input} is not a {datum_type.__name__}: {result.reason}",
        code=code,
    )


def decodable(
    datum_type: Type[T], utxos: Iterable[pycardano.UTxO]
) -> List[Tuple[pycardano.UTxO, Decoded]]:
    """
    UTxOs whose datum decodes as datum_type, skipping foreign outputs at the same address
    """
    found = []
    for u in utxos:
        result = decode_output(datum_type, u.output)
        if not isinstance(result, Decoded):
            _LOGGER.debug(f"Skipping {u.input}: {result.reason}")
            continue
        found.append((u, result))
    return found
