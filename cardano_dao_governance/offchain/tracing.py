import logging
import uuid
from contextlib import contextmanager
from typing import Optional

from .errors import GovernanceError

_LOGGER = logging.getLogger(__name__)


class OperationLogger(logging.LoggerAdapter):
    """
    Prefixes messages with the operation and its id and attaches both to the log record
    """

    def process(self, msg, kwargs):
        kwargs.setdefault("extra", {}).update(self.extra)
        return f"[{self.extra['operation']} {self.extra['operation_id']}] {msg}", kwargs


@contextmanager
def traced(operation: str, operation_id: Optional[str] = None):
    log = OperationLogger(
        _LOGGER,
        {"operation": operation, "operation_id": operation_id or uuid.uuid4().hex},
    )
    log.info("started")
    try:
        yield log
    except GovernanceError as e:
        log.warning(f"failed with {e.code}: {e.message}")
        raise
    except Exception:
        log.exception("failed unexpectedly")
        raise
    log.info("completed")
