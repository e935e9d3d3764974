"""
Conversions from pycardano objects to the data the scripts see
"""
import pycardano
from opshin.prelude import *

from cardano_dao_governance.onchain.types import OutputReference


def to_payment_credential(
    part: Union[pycardano.VerificationKeyHash, pycardano.ScriptHash]
) -> Union[PubKeyCredential, ScriptCredential]:
    if isinstance(part, pycardano.VerificationKeyHash):
        return PubKeyCredential(part.payload)
    if isinstance(part, pycardano.ScriptHash):
        return ScriptCredential(part.payload)
    raise NotImplementedError(f"Unknown payment part {type(part)}")


def to_staking_credential(
    part: Union[pycardano.VerificationKeyHash, pycardano.ScriptHash, None]
) -> Union[NoStakingCredential, SomeStakingCredential]:
    if part is None:
        return NoStakingCredential()
    if isinstance(part, (pycardano.VerificationKeyHash, pycardano.ScriptHash)):
        return SomeStakingCredential(StakingHash(to_payment_credential(part)))
    raise NotImplementedError(f"Pointer staking parts are not supported: {part}")


def to_address(address: pycardano.Address) -> Address:
    return Address(
        to_payment_credential(address.payment_part),
        to_staking_credential(address.staking_part),
    )


def to_output_reference(tx_in: pycardano.TransactionInput) -> OutputReference:
    return OutputReference(tx_in.transaction_id.payload, tx_in.index)
