from typing import Dict, Iterable, List, Optional, Tuple

import pycardano

from opshin.prelude import Token
from pycardano import MultiAsset, ScriptHash, Asset, AssetName, Value

# Margin on top of the minimum lovelace of newly created outputs
MIN_LOVELACE_MARGIN = 500000


def token_from_string(token: str) -> Token:
    if token == "lovelace":
        return Token(b"", b"")
    policy_id, token_name = token.split(".")
    return Token(
        policy_id=bytes.fromhex(policy_id),
        token_name=bytes.fromhex(token_name),
    )


def asset_from_token(token: Token, amount: int) -> MultiAsset:
    return MultiAsset(
        {ScriptHash(token.policy_id): Asset({AssetName(token.token_name): amount})}
    )


def multi_asset_from_dict(assets: Dict[bytes, Dict[bytes, int]]) -> MultiAsset:
    return MultiAsset(
        {
            ScriptHash(policy_id): Asset(
                {AssetName(name): amount for name, amount in names.items()}
            )
            for policy_id, names in assets.items()
            if names
        }
    )


def with_min_lovelace(
    output: pycardano.TransactionOutput, context: pycardano.ChainContext
):
    min_lvl = pycardano.min_lovelace(context, output)
    output.amount.coin = max(output.amount.coin, min_lvl + MIN_LOVELACE_MARGIN)
    return output


def assets_of_policy(value: Value, policy_id: bytes) -> Dict[bytes, int]:
    return {
        name.payload: amount
        for name, amount in value.multi_asset.get(ScriptHash(policy_id), {}).items()
    }


def iter_assets(value: Value) -> Iterable[Tuple[bytes, bytes, int]]:
    for policy_id, assets in value.multi_asset.items():
        for name, amount in assets.items():
            yield policy_id.payload, name.payload, amount


def is_ada_only(utxo: pycardano.UTxO) -> bool:
    return not utxo.output.amount.multi_asset


def utxo_ref(utxo: pycardano.UTxO) -> str:
    return f"{utxo.input.transaction_id.payload.hex()}#{utxo.input.index}"


def parse_utxo_ref(ref: str) -> Tuple[str, int]:
    tx_hash, index = ref.split("#")
    return tx_hash.lower(), int(index)


def find_utxo_by_ref(
    utxos: List[pycardano.UTxO], tx_hash: str, index: int
) -> Optional[pycardano.UTxO]:
    for u in utxos:
        if u.input.transaction_id.payload.hex() == tx_hash and u.input.index == index:
            return u
    return None


def subtract_value(value: Value, other: Value) -> Value:
    """
    value - other, keeping negative quantities so that shortfalls can be detected
    """
    quantities: Dict[Tuple[bytes, bytes], int] = {}
    for policy_id, name, amount in iter_assets(value):
        quantities[(policy_id, name)] = quantities.get((policy_id, name), 0) + amount
    for policy_id, name, amount in iter_assets(other):
        quantities[(policy_id, name)] = quantities.get((policy_id, name), 0) - amount
    multi_asset = MultiAsset()
    for (policy_id, name), amount in quantities.items():
        if amount == 0:
            continue
        if ScriptHash(policy_id) not in multi_asset:
            multi_asset[ScriptHash(policy_id)] = Asset()
        multi_asset[ScriptHash(policy_id)][AssetName(name)] = amount
    return Value(value.coin - other.coin, multi_asset)
