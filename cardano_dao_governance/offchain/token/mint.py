"""
Mint a CIP-68 governance token.

The auth NFT is minted once against the consumed seed output and authorizes the token policy.
The token policy mints the reference NFT carrying the token metadata and the fungible supply.
"""
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

import fire
import pycardano
from pycardano import TransactionOutput, Value

from cardano_dao_governance.onchain.identifiers import (
    CIP68_FT_LABEL,
    CIP68_NFT_LABEL,
    CIP68_REFERENCE_LABEL,
    cip67_label,
)
from cardano_dao_governance.onchain.token import (
    AUTH_MINT_REDEEMER,
    CIP68_VERSION,
    MintToken,
    TokenMetadataDatum,
)
from cardano_dao_governance.utils.contracts import AUTH_TOKEN_MINT, TOKEN_MINT
from cardano_dao_governance.utils.to_script_context import to_output_reference
from opshin.prelude import Token
from .. import validation
from ..context import ProtocolContext, default_context
from ..errors import ValidationError
from ..state import wallet_utxos
from ..tracing import traced
from ..tx import Assembled, Mint, TxPlan
from ..util import asset_from_token

SYMBOL_PATTERN = re.compile(r"[A-Z0-9]{1,12}")
MAX_SUPPLY = 1_000_000_000
MAX_DECIMALS = 18


@dataclass
class MintTokenRequest:
    name: str
    symbol: str
    description: str
    supply: int
    decimals: int
    url: str
    logo: str
    wallet_address: pycardano.Address
    change_address: pycardano.Address
    collateral: List[Any]
    # holder of the reference NFT, the change address if not given
    reference_address: Optional[pycardano.Address] = None

    @classmethod
    def from_dict(cls, data: dict) -> "MintTokenRequest":
        wallet, change, collateral = validation.wallet_fields(data)
        reference = data.get("reference_address")
        request = cls(
            name=validation.text("name", data.get("name"), 50),
            symbol=validation.text("symbol", data.get("symbol")),
            description=validation.text("description", data.get("description"), 500),
            supply=validation.integer("supply", data.get("supply"), 1),
            decimals=validation.integer("decimals", data.get("decimals", 0), 0),
            url=validation.text("url", data.get("url"), 256, required=False),
            logo=validation.text("logo", data.get("logo"), 256, required=False),
            wallet_address=wallet,
            change_address=change,
            collateral=collateral,
            reference_address=(
                validation.address("reference_address", reference) if reference else None
            ),
        )
        request.validate()
        return request

    def validate(self):
        if not self.name:
            raise ValidationError("Token name must not be empty", code="INVALID_FIELD")
        if not SYMBOL_PATTERN.fullmatch(self.symbol):
            raise ValidationError(
                "Symbol must be 1 to 12 uppercase letters or digits", code="INVALID_FIELD"
            )
        if not 1 <= self.supply <= MAX_SUPPLY:
            raise ValidationError(
                f"Supply must be between 1 and {MAX_SUPPLY}", code="INVALID_FIELD"
            )
        if not 0 <= self.decimals <= MAX_DECIMALS:
            raise ValidationError(
                f"Decimals must be between 0 and {MAX_DECIMALS}", code="INVALID_FIELD"
            )


def _metadata(fields: Dict[str, Union[str, int]]) -> Dict[bytes, Union[bytes, int]]:
    return {
        k.encode(): v if isinstance(v, int) else v.encode("utf-8")
        for k, v in fields.items()
    }


def fungible_metadata(request: MintTokenRequest) -> TokenMetadataDatum:
    fields = {
        "name": request.name,
        "description": request.description,
        "ticker": request.symbol,
        "decimals": request.decimals,
    }
    if request.url:
        fields["url"] = request.url
    if request.logo:
        fields["logo"] = request.logo
    return TokenMetadataDatum(_metadata(fields), CIP68_VERSION, b"")


def authority_metadata(request: MintTokenRequest) -> TokenMetadataDatum:
    fields = {
        "name": f"{request.name} Minting Authority",
        "image": request.logo,
        "description": (
            f"Minting authority token for {request.name} ({request.symbol})"
        ),
    }
    return TokenMetadataDatum(_metadata(fields), CIP68_VERSION, b"")


def plan_mint_token(ctx: ProtocolContext, request: MintTokenRequest) -> Assembled:
    request.validate()
    utxos = wallet_utxos(ctx, request.wallet_address)
    collateral = validation.collateral(request.collateral, utxos)
    seed = utxos[0]
    symbol = request.symbol.encode()

    auth_script = ctx.script(AUTH_TOKEN_MINT, [to_output_reference(seed.input)])
    auth_policy_id = pycardano.plutus_script_hash(auth_script).payload
    auth_name = cip67_label(CIP68_NFT_LABEL) + b"AUTH_" + symbol
    token_script = ctx.script(TOKEN_MINT, [auth_policy_id, auth_name])
    token_policy_id = pycardano.plutus_script_hash(token_script).payload
    reference_name = cip67_label(CIP68_REFERENCE_LABEL) + symbol
    fungible_name = cip67_label(CIP68_FT_LABEL) + symbol

    plan = TxPlan(
        message=f"Mint {request.symbol}",
        change_address=request.change_address,
        inputs=[seed],
        collateral=collateral,
        input_addresses=[request.wallet_address],
    )
    plan.add_mint(
        Mint(
            policy_id=auth_policy_id,
            assets={auth_name: 1},
            script=auth_script,
            redeemer=AUTH_MINT_REDEEMER,
        )
    )
    plan.add_mint(
        Mint(
            policy_id=token_policy_id,
            assets={reference_name: 1, fungible_name: request.supply},
            script=token_script,
            redeemer=MintToken(),
        )
    )
    reference_address = request.reference_address or request.change_address
    plan.add_output(
        TransactionOutput(
            address=reference_address,
            amount=Value(
                multi_asset=asset_from_token(Token(token_policy_id, reference_name), 1)
            ),
            datum=fungible_metadata(request),
        ),
        pad_min_lovelace=True,
    )
    plan.add_output(
        TransactionOutput(
            address=request.change_address,
            amount=Value(
                multi_asset=asset_from_token(Token(auth_policy_id, auth_name), 1)
            ),
            datum=authority_metadata(request),
        ),
        pad_min_lovelace=True,
    )
    plan.add_output(
        TransactionOutput(
            address=request.change_address,
            amount=Value(
                multi_asset=asset_from_token(
                    Token(token_policy_id, fungible_name), request.supply
                )
            ),
        ),
        pad_min_lovelace=True,
    )
    return Assembled(
        plan,
        {
            "policy_id": token_policy_id.hex(),
            "reference_asset_name": reference_name.hex(),
            "fungible_asset_name": fungible_name.hex(),
            "governance_token": f"{token_policy_id.hex()}.{fungible_name.hex()}",
            "auth_policy_id": auth_policy_id.hex(),
            "auth_asset_name": auth_name.hex(),
            "reference_address": str(reference_address),
            "supply": request.supply,
        },
    )


def mint_token(ctx: ProtocolContext, request: MintTokenRequest) -> dict:
    with traced("mint_token") as log:
        assembled = plan_mint_token(ctx, request)
        log.info(
            f"minting {request.supply} {request.symbol} "
            f"under policy {assembled.info['policy_id']}"
        )
        result = assembled.build(ctx.chain.context)
        log.info(f"built transaction {result['tx_id']}")
        return result


def main(
    name: str,
    symbol: str,
    description: str,
    supply: int,
    wallet_address: str,
    collateral: str,
    decimals: int = 0,
    url: str = None,
    logo: str = None,
    change_address: str = None,
    reference_address: str = None,
):
    return mint_token(
        default_context(),
        MintTokenRequest.from_dict(
            {
                "name": name,
                "symbol": symbol,
                "description": description,
                "supply": supply,
                "decimals": decimals,
                "url": url,
                "logo": logo,
                "wallet_address": wallet_address,
                "change_address": change_address,
                "collateral": collateral,
                "reference_address": reference_address,
            }
        ),
    )


if __name__ == "__main__":
    fire.Fire(main)
