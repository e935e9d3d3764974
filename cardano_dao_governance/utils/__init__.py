from .network import network_name, ogmios_url, kupo_url, get_chain_context
