"""
Transaction plans and their translation into unsigned pycardano transactions.

Operations only decide which inputs, reference inputs, mints and outputs a validator needs.
Fee balancing, collateral return and minimum lovelace are left to the pycardano TransactionBuilder.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

import pycardano
from pycardano import (
    AlonzoMetadata,
    Asset,
    AssetName,
    AuxiliaryData,
    Metadata,
    MultiAsset,
    PlutusData,
    PlutusV3Script,
    Redeemer,
    ScriptHash,
    Transaction,
    TransactionBuilder,
    TransactionOutput,
)

from .errors import GovernanceError, NotFoundError, ProviderError, ValidationError
from .util import with_min_lovelace

_LOGGER = logging.getLogger(__name__)

ScriptSource = Union[pycardano.UTxO, PlutusV3Script]

# Metadata label of transaction messages (CIP-20)
MESSAGE_LABEL = 674


@dataclass
class ScriptInput:
    utxo: pycardano.UTxO
    script: ScriptSource
    redeemer: PlutusData


@dataclass
class Mint:
    policy_id: bytes
    assets: Dict[bytes, int]
    script: ScriptSource
    redeemer: PlutusData


@dataclass
class PlannedOutput:
    output: TransactionOutput
    # raise the lovelace of newly created outputs to the minimum required
    pad_min_lovelace: bool = False


@dataclass
class TxPlan:
    message: str
    change_address: pycardano.Address
    inputs: List[pycardano.UTxO] = field(default_factory=list)
    script_inputs: List[ScriptInput] = field(default_factory=list)
    reference_inputs: List[pycardano.UTxO] = field(default_factory=list)
    mints: List[Mint] = field(default_factory=list)
    outputs: List[PlannedOutput] = field(default_factory=list)
    collateral: List[pycardano.UTxO] = field(default_factory=list)
    # wallet addresses the builder may pick additional inputs from
    input_addresses: List[pycardano.Address] = field(default_factory=list)
    validity_start: Optional[int] = None
    ttl: Optional[int] = None

    def add_output(self, output: TransactionOutput, pad_min_lovelace: bool = False):
        self.outputs.append(PlannedOutput(output, pad_min_lovelace))

    def add_reference_input(self, utxo: pycardano.UTxO):
        if utxo.input not in {u.input for u in self.reference_inputs}:
            self.reference_inputs.append(utxo)

    def add_mint(self, mint: Mint):
        for existing in self.mints:
            if existing.policy_id == mint.policy_id:
                for name, amount in mint.assets.items():
                    existing.assets[name] = existing.assets.get(name, 0) + amount
                return
        self.mints.append(mint)

    def mint_value(self) -> MultiAsset:
        multi_asset = MultiAsset()
        for m in self.mints:
            multi_asset[ScriptHash(m.policy_id)] = Asset(
                {AssetName(name): amount for name, amount in m.assets.items()}
            )
        return multi_asset


def build_transaction(plan: TxPlan, context: pycardano.ChainContext) -> Transaction:
    """
    Balance the plan into an unsigned transaction, ready to be signed by the wallet
    """
    builder = TransactionBuilder(context)
    builder.auxiliary_data = AuxiliaryData(
        data=AlonzoMetadata(
            metadata=Metadata({MESSAGE_LABEL: {"msg": [plan.message]}})
        )
    )
    for u in plan.inputs:
        builder.add_input(u)
    for s in plan.script_inputs:
        builder.add_script_input(s.utxo, s.script, None, Redeemer(s.redeemer))
    for m in plan.mints:
        builder.add_minting_script(m.script, Redeemer(m.redeemer))
    if plan.mints:
        builder.mint = plan.mint_value()
    for u in plan.reference_inputs:
        builder.reference_inputs.add(u)
    for address in plan.input_addresses:
        builder.add_input_address(address)
    if plan.collateral:
        builder.collaterals = list(plan.collateral)
    if plan.validity_start is not None:
        builder.validity_start = plan.validity_start
    if plan.ttl is not None:
        builder.ttl = plan.ttl
    try:
        for o in plan.outputs:
            output = o.output
            if o.pad_min_lovelace:
                output = with_min_lovelace(output, context)
            builder.add_output(output)
        body = builder.build(change_address=plan.change_address)
        witness_set = builder.build_witness_set()
    except GovernanceError:
        raise
    except Exception as e:
        raise ProviderError(f"Could not build transaction: {e}") from e
    tx = Transaction(body, witness_set, auxiliary_data=builder.auxiliary_data)
    _LOGGER.debug(f"Built transaction {tx.id} ({len(tx.to_cbor())} bytes)")
    return tx


@dataclass
class Assembled:
    """
    A transaction plan with the operation specific details reported to the caller
    """

    plan: TxPlan
    info: dict = field(default_factory=dict)

    def build(self, context: pycardano.ChainContext) -> dict:
        tx = build_transaction(self.plan, context)
        return {"unsigned_tx": tx.to_cbor_hex(), "tx_id": str(tx.id), **self.info}


# fragments of node errors telling that an input was spent by another transaction
SPENT_INPUT_MARKERS = ("BadInputsUTxO", "ValueNotConservedUTxO", "already spent")


def submit_transaction(context: pycardano.ChainContext, signed_tx: str) -> str:
    """
    Submit a signed transaction given as CBOR hex, returns the transaction id
    """
    try:
        tx = Transaction.from_cbor(signed_tx)
    except Exception as e:
        raise ValidationError(
            f"signed_tx is not a CBOR encoded transaction: {e}", code="INVALID_FIELD"
        ) from e
    try:
        context.submit_tx(tx)
    except Exception as e:
        if any(marker in str(e) for marker in SPENT_INPUT_MARKERS):
            raise NotFoundError(
                f"An input of {tx.id} has been spent already", code="UTXO_SPENT"
            ) from e
        raise ProviderError(f"Could not submit transaction {tx.id}: {e}") from e
    _LOGGER.info(f"Submitted transaction {tx.id}")
    return str(tx.id)
