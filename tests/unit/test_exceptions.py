##############################################################################
# Copyright (c) Rohm Project developers. See top-level LICENSE and COPYRIGHT
# files for dates and other details. No copyright assignment is required to
# contribute to Rohm.
##############################################################################

"""
Tests for the `exceptions` package.
"""
from typing import Type

import pytest

from rohm.common.enums import ErrorKind
from rohm.exceptions import (
    ConcurrencyAbort,
    GenericStoreFailure,
    ReferentialError,
    RohmError,
    StoreUnavailable,
    ValidationError,
)


@pytest.mark.parametrize(
    "exception_class, kind, retryable",
    [
        (ValidationError, ErrorKind.INVALID_VALUE, False),
        (ReferentialError, ErrorKind.MISSING_ID, False),
        (ConcurrencyAbort, ErrorKind.CONCURRENT_MODIFICATION, True),
        (StoreUnavailable, ErrorKind.STORE_UNAVAILABLE, True),
        (GenericStoreFailure, ErrorKind.STORE_FAILURE, False),
    ],
)
def test_defaults(exception_class: Type[RohmError], kind: ErrorKind, retryable: bool):
    """
    Test the default kind, message and retryability of each exception.

    Args:
        exception_class: The exception under test.
        kind: Its expected default kind.
        retryable: Whether it should be retryable.
    """
    error = exception_class()
    assert isinstance(error, RohmError)
    assert error.kind is kind
    assert error.message == kind.value
    assert error.retryable is retryable


def test_explicit_kind_and_message():
    """Test that an explicit kind and message override the defaults."""
    error = ValidationError("User.age is not comparable", ErrorKind.MISSING_COMPARABLE)
    assert error.kind is ErrorKind.MISSING_COMPARABLE
    assert error.message == "User.age is not comparable"
    assert str(error) == "[MISSING_COMPARABLE] User.age is not comparable"
