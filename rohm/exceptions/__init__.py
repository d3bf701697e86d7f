##############################################################################
# Copyright (c) Rohm Project developers. See top-level LICENSE and COPYRIGHT
# files for dates and other details. No copyright assignment is required to
# contribute to Rohm.
##############################################################################

"""
Module of all Rohm-specific exception types.

Every error carries an [`ErrorKind`][common.enums.ErrorKind] so callers can
branch on it, and a `retryable` flag telling whether repeating the call can
succeed.
"""

from rohm.common.enums import ErrorKind


__all__ = (
    "RohmError",
    "ValidationError",
    "ReferentialError",
    "ConcurrencyAbort",
    "StoreUnavailable",
    "GenericStoreFailure",
)


class RohmError(Exception):
    """
    Base class for every error raised by Rohm.

    Attributes:
        kind (ErrorKind): The machine-readable kind of this error.
        message (str): A human-readable description.
        retryable (bool): Whether a caller may retry the failed call.
    """

    retryable: bool = False
    default_kind: ErrorKind = ErrorKind.STORE_FAILURE

    def __init__(self, message: str = None, kind: ErrorKind = None):
        self.kind: ErrorKind = kind if kind is not None else self.default_kind
        self.message: str = message if message else self.kind.value
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"[{self.kind.name}] {self.message}"


class ValidationError(RohmError):
    """
    Exception for invalid schemas, constraints or values. Raised before
    anything is written, so there is nothing to roll back.
    """

    default_kind = ErrorKind.INVALID_VALUE


class ReferentialError(RohmError):
    """
    Exception signalling that a referenced model has not been saved yet
    and therefore has no id to store.
    """

    default_kind = ErrorKind.MISSING_ID


class ConcurrencyAbort(RohmError):
    """
    Exception signalling that a transactional save lost the race against
    another writer. Nothing from the aborted save was written.
    """

    retryable = True
    default_kind = ErrorKind.CONCURRENT_MODIFICATION


class StoreUnavailable(RohmError):
    """
    Exception signalling that no usable connection to the store could be
    obtained.
    """

    retryable = True
    default_kind = ErrorKind.STORE_UNAVAILABLE


class GenericStoreFailure(RohmError):
    """
    Exception wrapping any other store failure. The original exception is
    available as `__cause__`.
    """

    default_kind = ErrorKind.STORE_FAILURE
