import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, List, Optional, Union

import pycardano
from blockfrost import ApiError

from .errors import GovernanceError, ProviderError

_LOGGER = logging.getLogger(__name__)


class ChainQuery:
    """
    Read access to the chain for a single operation call.

    UTxO lookups are memoized per address for the lifetime of the object only.
    The ledger may change at any time, so a fresh ChainQuery is used for every call.
    """

    def __init__(self, context: pycardano.ChainContext):
        self.context = context
        self._utxos: Dict[str, List[pycardano.UTxO]] = {}
        self._lock = threading.Lock()

    @property
    def network(self) -> pycardano.Network:
        return self.context.network

    def utxos(self, address: Union[str, pycardano.Address]) -> List[pycardano.UTxO]:
        key = str(address)
        with self._lock:
            if key in self._utxos:
                return self._utxos[key]
        try:
            utxos = list(self.context.utxos(key))
        except Exception as e:
            raise ProviderError(f"Could not query UTxOs at {key}: {e}") from e
        _LOGGER.debug(f"Found {len(utxos)} UTxOs at {key}")
        with self._lock:
            self._utxos[key] = utxos
        return utxos

    def asset(self, policy_id: bytes, asset_name: bytes) -> Optional[dict]:
        """
        Indexer details of an asset, None if it was never minted.
        Only chain contexts backed by Blockfrost expose asset lookups.
        """
        api = getattr(self.context, "api", None)
        if api is None:
            raise ProviderError(
                "Chain backend does not support asset lookups",
                code="ASSET_LOOKUP_UNSUPPORTED",
            )
        unit = (policy_id + asset_name).hex()
        try:
            return api.asset(unit, return_type="json")
        except ApiError as e:
            if e.status_code == 404:
                return None
            raise ProviderError(f"Could not query asset {unit}: {e}") from e
        except Exception as e:
            raise ProviderError(f"Could not query asset {unit}: {e}") from e

    def fresh(self) -> "ChainQuery":
        return ChainQuery(self.context)


def resolve_concurrently(*calls: Callable[[], object]) -> List[object]:
    """
    Run independent read-only lookups in parallel, results in call order
    """
    if len(calls) <= 1:
        return [c() for c in calls]
    with ThreadPoolExecutor(max_workers=len(calls)) as pool:
        futures = [pool.submit(c) for c in calls]
        results = []
        for f in futures:
            try:
                results.append(f.result())
            except GovernanceError:
                raise
            except Exception as e:
                raise ProviderError(f"Lookup failed: {e}") from e
        return results
