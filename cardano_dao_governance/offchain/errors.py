"""
Errors raised while assembling governance transactions.

Every operation either returns a complete unsigned transaction or raises exactly one of these.
"""


class GovernanceError(Exception):
    code = "GOVERNANCE_ERROR"
    retryable = False
    http_status = 500

    def __init__(self, message: str, code: str = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "type": type(self).__name__,
            "message": self.message,
            "retryable": self.retryable,
        }


class ValidationError(GovernanceError):
    """
    Missing or malformed request fields
    """

    code = "INVALID_REQUEST"
    http_status = 400


class NotFoundError(GovernanceError):
    """
    An expected UTxO, datum or script is not on chain (yet or anymore)
    """

    code = "NOT_FOUND"
    retryable = True
    http_status = 404


class StateError(GovernanceError):
    """
    The entity exists but is in the wrong state for the operation
    """

    code = "INVALID_STATE"
    http_status = 409


class CodecError(GovernanceError):
    """
    A datum is present but does not decode into the expected shape
    """

    code = "DATUM_WRONG_SHAPE"
    http_status = 422


class ProviderError(GovernanceError):
    """
    The chain data provider or the transaction builder failed
    """

    code = "PROVIDER_FAILURE"
    retryable = True
    http_status = 502


def as_not_found(error: CodecError, code: str) -> NotFoundError:
    return NotFoundError(error.message, code=code)
