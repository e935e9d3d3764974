"""
Conversions from script data back to pycardano objects
"""
import pycardano
from opshin.prelude import *


def from_credential(
    credential: Union[PubKeyCredential, ScriptCredential]
) -> Union[pycardano.VerificationKeyHash, pycardano.ScriptHash]:
    if isinstance(credential, PubKeyCredential):
        return pycardano.VerificationKeyHash(credential.credential_hash)
    return pycardano.ScriptHash(credential.credential_hash)


def from_address(address: Address, network: pycardano.Network) -> pycardano.Address:
    staking_part = None
    staking = address.staking_credential
    if isinstance(staking, SomeStakingCredential):
        if not isinstance(staking.staking_credential, StakingHash):
            raise NotImplementedError("Pointer staking credentials are not supported")
        staking_part = from_credential(staking.staking_credential.value)
    return pycardano.Address(
        payment_part=from_credential(address.payment_credential),
        staking_part=staking_part,
        network=network,
    )
