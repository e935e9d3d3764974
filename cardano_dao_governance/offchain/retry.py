"""
Rebuild and resubmit a transaction when the state it was built from changed in the meantime.

Two voters spending the same proposal UTxO race for it; the ledger accepts only one of them.
The other one has to fetch the new tally, rebuild and submit again.
"""
import logging
import time
from typing import Callable, TypeVar

from .errors import GovernanceError

_LOGGER = logging.getLogger(__name__)

R = TypeVar("R")

DEFAULT_ATTEMPTS = 3
DEFAULT_DELAY = 20


def retry_operation(
    build: Callable[[], dict],
    submit: Callable[[dict], R],
    attempts: int = DEFAULT_ATTEMPTS,
    delay: float = DEFAULT_DELAY,
    sleep: Callable[[float], None] = time.sleep,
) -> R:
    """
    Call build and pass its result to submit, repeating both on retryable errors.

    build must read the chain anew on every call, e.g. by using ProtocolContext.for_call().
    Errors that are not retryable are raised immediately, the last retryable error is raised
    once all attempts failed.
    """
    if attempts < 1:
        raise ValueError("attempts must be at least 1")
    for attempt in range(1, attempts + 1):
        try:
            return submit(build())
        except GovernanceError as e:
            if not e.retryable or attempt == attempts:
                raise
            _LOGGER.warning(
                f"Attempt {attempt}/{attempts} failed with {e.code}: {e.message}, retrying"
            )
        sleep(delay)
