##############################################################################
# Copyright (c) Rohm Project developers. See top-level LICENSE and COPYRIGHT
# files for dates and other details. No copyright assignment is required to
# contribute to Rohm.
##############################################################################

"""
Tests for the `Config` object in `rohm/config/__init__.py`.
"""
from copy import copy
from types import SimpleNamespace

from rohm.config import Config


def test_sections_become_namespaces():
    """Test that every known section is converted into a namespace and unknown ones are ignored."""
    config = Config({"store": {"name": "redis", "port": 6379}, "query": {"destination_key_ttl": 5}, "other": {}})

    assert isinstance(config.store, SimpleNamespace)
    assert config.store.port == 6379
    assert config.query.destination_key_ttl == 5
    assert config.logging is None
    assert not hasattr(config, "other")


def test_copy_is_shallow_per_section():
    """Test that a copied config can change its sections without touching the original."""
    config = Config({"store": {"server": "localhost"}})
    copied = copy(config)
    copied.store.server = "elsewhere"

    assert config.store.server == "localhost"
    assert copied.logging is None


def test_str_hides_password():
    """Test that the string form lists every section but never the password."""
    config = Config({"store": {"server": "localhost", "password": "hunter2"}})
    text = str(config)

    assert "server: 'localhost'" in text
    assert "hunter2" not in text
    assert "  query:\n    None" in text
