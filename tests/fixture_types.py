##############################################################################
# Copyright (c) Rohm Project developers. See top-level LICENSE and COPYRIGHT
# files for dates and other details. No copyright assignment is required to
# contribute to Rohm.
##############################################################################

"""
It's hard to type hint pytest fixtures in a way that makes it clear
that the variable being used is a fixture. This module will created
aliases for these fixtures in order to make it easier to track what's
happening.

The types here will be defined as such:
- `FixtureBackend`: A fixture that returns a `RedisBackend`
- `FixtureCallable`: A fixture that returns a function
- `FixtureRedis`: A fixture that returns a Redis client (real, fake or mocked)
- `FixtureRegistry`: A fixture that returns a `SchemaRegistry`
- `FixtureStore`: A fixture that returns a `RedisModelStore`
"""

import sys
from collections.abc import Callable

import pytest
from redis import Redis

from rohm.backends.redis.redis_backend import RedisBackend
from rohm.backends.redis.redis_model_store import RedisModelStore
from rohm.schema.registry import SchemaRegistry


# TODO when we drop support for Python 3.8, remove this if/else statement
# Check Python version
if sys.version_info >= (3, 9):
    from typing import Annotated

    FixtureBackend = Annotated[RedisBackend, pytest.fixture]
    FixtureCallable = Annotated[Callable, pytest.fixture]
    FixtureRedis = Annotated[Redis, pytest.fixture]
    FixtureRegistry = Annotated[SchemaRegistry, pytest.fixture]
    FixtureStore = Annotated[RedisModelStore, pytest.fixture]
else:
    # Fallback for Python 3.8
    FixtureBackend = pytest.fixture
    FixtureCallable = pytest.fixture
    FixtureRedis = pytest.fixture
    FixtureRegistry = pytest.fixture
    FixtureStore = pytest.fixture
