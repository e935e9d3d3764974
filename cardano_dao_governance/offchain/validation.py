"""
Checks of caller supplied values, raising ValidationError on bad input
"""
from typing import Any, List, Optional, Sequence

import pycardano

from .errors import NotFoundError, ValidationError
from .util import find_utxo_by_ref, parse_utxo_ref


def require(name: str, value: Any) -> Any:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(f"Missing required field {name}", code="MISSING_FIELD")
    return value


def hex_bytes(name: str, value: Any, length: Optional[int] = None) -> bytes:
    require(name, value)
    if isinstance(value, bytes):
        raw = value
    else:
        try:
            raw = bytes.fromhex(str(value))
        except ValueError:
            raise ValidationError(f"{name} is not valid hex", code="INVALID_FIELD")
    if length is not None and len(raw) != length:
        raise ValidationError(
            f"{name} must be {length} bytes, got {len(raw)}", code="INVALID_FIELD"
        )
    return raw


def policy_id(name: str, value: Any) -> bytes:
    return hex_bytes(name, value, 28)


def integer(name: str, value: Any, minimum: Optional[int] = None) -> int:
    require(name, value)
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be an integer", code="INVALID_FIELD")
    if isinstance(value, str):
        try:
            value = int(value, 10)
        except ValueError:
            raise ValidationError(f"{name} must be an integer", code="INVALID_FIELD")
    if not isinstance(value, int):
        raise ValidationError(f"{name} must be an integer", code="INVALID_FIELD")
    if minimum is not None and value < minimum:
        raise ValidationError(f"{name} must be at least {minimum}", code="INVALID_FIELD")
    return value


def address(name: str, value: Any) -> pycardano.Address:
    require(name, value)
    if isinstance(value, pycardano.Address):
        return value
    try:
        return pycardano.Address.from_primitive(value)
    except Exception:
        raise ValidationError(f"{name} is not a valid address", code="INVALID_FIELD")


def text(
    name: str, value: Any, max_length: Optional[int] = None, required: bool = True
) -> str:
    if not required and value is None:
        return ""
    if required:
        require(name, value)
    value = str(value).strip()
    if max_length is not None and len(value) > max_length:
        raise ValidationError(
            f"{name} must be {max_length} characters or less", code="INVALID_FIELD"
        )
    return value


def _collateral_ref(value: Any):
    if isinstance(value, str):
        try:
            return parse_utxo_ref(value)
        except ValueError:
            raise ValidationError(
                f"Collateral reference {value} is not tx_hash#index", code="INVALID_FIELD"
            )
    if isinstance(value, dict):
        return (
            str(require("collateral.tx_hash", value.get("tx_hash"))).lower(),
            integer("collateral.output_index", value.get("output_index"), 0),
        )
    raise ValidationError("Unsupported collateral reference", code="INVALID_FIELD")


def collateral(
    refs: Optional[Sequence[Any]], wallet_utxos: List[pycardano.UTxO]
) -> List[pycardano.UTxO]:
    """
    Collateral UTxOs of the wallet referenced by "tx_hash#index" strings or dicts
    """
    if not refs:
        raise ValidationError("No collateral provided", code="MISSING_COLLATERAL")
    found = []
    for ref in refs:
        tx_hash, index = _collateral_ref(ref)
        utxo = find_utxo_by_ref(wallet_utxos, tx_hash, index)
        if utxo is None:
            raise NotFoundError(
                f"Collateral {tx_hash}#{index} not found in wallet",
                code="COLLATERAL_NOT_FOUND",
            )
        found.append(utxo)
    return found


def refs_list(value: Any) -> List[Any]:
    """
    Collateral given as a list or a comma separated string
    """
    if value is None:
        return []
    if isinstance(value, str):
        return [v.strip() for v in value.split(",") if v.strip()]
    if isinstance(value, dict):
        return [value]
    return list(value)


def dao_fields(data: dict):
    return (
        policy_id("dao_policy_id", data.get("dao_policy_id")),
        hex_bytes("dao_key", data.get("dao_key"), 32),
    )


def wallet_fields(data: dict):
    wallet = address("wallet_address", data.get("wallet_address"))
    change = data.get("change_address")
    return (
        wallet,
        address("change_address", change) if change else wallet,
        refs_list(data.get("collateral")),
    )


def proposal_fields(data: dict):
    return (
        policy_id("proposal_policy_id", data.get("proposal_policy_id")),
        hex_bytes("proposal_asset_name", data.get("proposal_asset_name")),
    )
