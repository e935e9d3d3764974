import logging
import os
import time
from dataclasses import dataclass
from functools import lru_cache

import pycardano
from blockfrost import ApiUrls
from pycardano import Network

_LOGGER = logging.getLogger(__name__)

network_name = os.environ.get("NETWORK", "preview").lower()
network = Network.MAINNET if network_name == "mainnet" else Network.TESTNET

blockfrost_project_id = os.environ.get("BLOCKFROST_PROJECT_ID")

ogmios_host = os.environ.get("OGMIOS_API_HOST", "localhost")
ogmios_port = int(os.environ.get("OGMIOS_API_PORT", "1337"))
ogmios_protocol = os.environ.get("OGMIOS_API_PROTOCOL", "ws")
ogmios_url = f"{ogmios_protocol}://{ogmios_host}:{ogmios_port}"

kupo_host = os.environ.get("KUPO_API_HOST", "localhost")
kupo_port = os.environ.get("KUPO_API_PORT", "1442")
kupo_protocol = os.environ.get("KUPO_API_PROTOCOL", "http")
kupo_url = f"{kupo_protocol}://{kupo_host}:{kupo_port}"

blueprint_path = os.environ.get("DAO_BLUEPRINT", "plutus.json")
reference_script_address = os.environ.get("REFERENCE_SCRIPT_ADDRESS")


@dataclass(frozen=True)
class SlotConfig:
    """
    Conversion between POSIX time and ledger slots (Shelley era onwards)
    """

    zero_time: int
    zero_slot: int
    slot_length: int = 1000

    def slot_at(self, posix_ms: int) -> int:
        return self.zero_slot + (posix_ms - self.zero_time) // self.slot_length


SLOT_CONFIGS = {
    "mainnet": SlotConfig(zero_time=1596059091000, zero_slot=4492800),
    "preprod": SlotConfig(zero_time=1655769600000, zero_slot=86400),
    "preview": SlotConfig(zero_time=1666656000000, zero_slot=0),
}
slot_config = SLOT_CONFIGS.get(network_name, SLOT_CONFIGS["preview"])

BLOCKFROST_URLS = {
    "mainnet": ApiUrls.mainnet.value,
    "preprod": ApiUrls.preprod.value,
    "preview": ApiUrls.preview.value,
}


def now_posix_ms() -> int:
    return int(time.time() * 1000)


@lru_cache(maxsize=1)
def get_chain_context() -> pycardano.ChainContext:
    """
    Chain context of the configured backend, created on first use
    """
    if blockfrost_project_id:
        _LOGGER.info(f"Using Blockfrost on {network_name}")
        return pycardano.BlockFrostChainContext(
            blockfrost_project_id,
            base_url=BLOCKFROST_URLS.get(network_name, ApiUrls.preview.value),
        )
    _LOGGER.info(f"Using Ogmios at {ogmios_url} and Kupo at {kupo_url}")
    ogmios_context = pycardano.OgmiosV6ChainContext(
        host=ogmios_host,
        port=ogmios_port,
        secure=ogmios_protocol == "wss",
        network=network,
    )
    return pycardano.KupoChainContextExtension(ogmios_context, kupo_url)
