"""
ContractGate Errors

Exception types shared by the enforcer, mock resolver, response sender and
route dispatcher.
"""

from typing import Any, Optional


class ConfigurationError(ValueError):
    """Raised when middleware options fail validation at construction time."""


class StatusError(Exception):
    """
    An error that carries the HTTP status class it should be answered with.

    Attributes:
        status_code: HTTP status code associated with the failure (may be None)
        exception: The underlying cause, preserved for logging
        code: Optional machine-readable code (e.g. NO_MATCH for negotiation)
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        exception: Any = None,
        code: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.exception = exception
        self.code = code

    def __str__(self) -> str:
        return self.message


class ErrorCode(Exception):
    """Reported infrastructure problem with a stable code."""

    def __init__(self, message: str, code: str):
        super().__init__(message)
        self.code = code


def error_from_exception(exception: Any) -> StatusError:
    """
    Wrap an engine error in a fresh StatusError, keeping its status code.

    Args:
        exception: Error returned by the specification engine

    Returns:
        StatusError whose `exception` attribute references the original
    """
    err = StatusError(str(exception), exception=exception)
    status_code = getattr(exception, 'status_code', None)
    if status_code is not None:
        err.status_code = status_code
    return err
