##############################################################################
# Copyright (c) Rohm Project developers. See top-level LICENSE and COPYRIGHT
# files for dates and other details. No copyright assignment is required to
# contribute to Rohm.
##############################################################################

"""
Tests for the `keys.py` module.
"""

import pytest

from rohm.keys import Nest, get_hash_tag, is_hash_tag
from tests.data_models import User


class TestNest:
    """Tests for the `Nest` key builder."""

    def test_key_joins_segments(self):
        """Test that segments are joined with colons and no trailing separator."""
        assert Nest("User").cat(1).cat("name").key() == "User:1:name"

    def test_key_resets_builder(self):
        """Test that the same instance can build several keys in a row."""
        nest = Nest("User")
        assert nest.cat("age").key() == "User:age"
        assert nest.cat("name").cat("bob").key() == "User:name:bob"
        assert nest.key() == "User"

    def test_empty_root(self):
        """Test that a builder without a root yields just its segments."""
        assert Nest().cat("User:age").key() == "User:age"
        assert Nest().cat("a").cat("b").key() == "a:b"

    def test_for_model(self):
        """Test that builders can be rooted at a model class or instance."""
        assert Nest.for_model(User).cat("all").key() == "User:all"
        assert Nest.for_model(User()).cat("id").key() == "User:id"

    def test_fork(self):
        """Test that a fork is rooted at the key under construction."""
        nest = Nest("Account").cat("{region_eu}").fork()
        assert nest.root == "Account:{region_eu}"
        assert nest.cat("owner").cat("ann").key() == "Account:{region_eu}:owner:ann"

    def test_next_and_keys(self):
        """Test that snapshots are kept in order and the builder is reset."""
        nest = Nest("User")
        nest.cat("name").cat("bob").next()
        nest.cat("age").cat(10).next()
        assert nest.keys() == ["User:name:bob", "User:age:10"]
        assert nest.key() == "User"

    def test_combine_keys_is_order_independent(self):
        """Test that the same snapshots combine to the same key in any order."""
        first = Nest("User")
        first.cat("name").cat("bob").next()
        first.cat("age").cat(10).next()

        second = Nest("User")
        second.cat("age").cat(10).next()
        second.cat("name").cat("bob").next()

        assert first.combine_keys() == second.combine_keys() == "User:age:10:User:name:bob"

    def test_combine_keys_without_snapshots(self):
        """Test that nothing combines to None."""
        assert Nest("User").combine_keys() is None
        assert Nest("User").keys() == []

    def test_repr(self):
        assert repr(Nest("User")) == "Nest(root='User')"


def test_get_hash_tag():
    """Test the hash-tag segment format."""
    assert get_hash_tag("region", "eu") == "{region_eu}"


@pytest.mark.parametrize(
    "segment, expected",
    [
        ("{region_eu}", True),
        ("{}", False),
        ("region_eu", False),
        ("{region_eu", False),
        ("region_eu}", False),
    ],
)
def test_is_hash_tag(segment: str, expected: bool):
    """
    Test the recognition of hash-tag segments.

    Args:
        segment: The segment to check.
        expected: Whether it is a hash tag.
    """
    assert is_hash_tag(segment) is expected
