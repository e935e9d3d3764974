from dataclasses import dataclass
from typing import List, Optional

import pycardano
from pycardano import MultiAsset, Value

from ..errors import StateError
from ..locator import quantity_of
from ..util import iter_assets


@dataclass
class TreasurySelection:
    selected: List[pycardano.UTxO]
    accumulated: int
    change: int


def treasury_balance(utxos: List[pycardano.UTxO]) -> int:
    return sum(u.output.amount.coin for u in utxos)


def covers(value: Value, required_coins: int, required_tokens: MultiAsset) -> bool:
    if value.coin < required_coins:
        return False
    return all(
        quantity_of(value, policy_id, name) >= amount
        for policy_id, name, amount in iter_assets(Value(0, required_tokens))
    )


def select_treasury_inputs(
    utxos: List[pycardano.UTxO],
    required_coins: int,
    required_tokens: Optional[MultiAsset] = None,
) -> TreasurySelection:
    """
    Take treasury UTxOs in the given order until they cover required_coins lovelace
    and every token in required_tokens
    """
    required_tokens = required_tokens or MultiAsset()
    selected = []
    collected = Value()
    for u in utxos:
        if covers(collected, required_coins, required_tokens):
            break
        selected.append(u)
        collected += u.output.amount
    if not covers(collected, required_coins, required_tokens):
        if collected.coin < required_coins:
            message = (
                f"Treasury holds {collected.coin} lovelace, {required_coins} required"
            )
        else:
            message = "Treasury does not hold the tokens of the targets"
        raise StateError(message, code="INSUFFICIENT_TREASURY_FUNDS")
    return TreasurySelection(selected, collected.coin, collected.coin - required_coins)
