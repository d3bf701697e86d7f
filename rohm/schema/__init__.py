##############################################################################
# Copyright (c) Rohm Project developers. See top-level LICENSE and COPYRIGHT
# files for dates and other details. No copyright assignment is required to
# contribute to Rohm.
##############################################################################

"""
The `schema` package compiles model declarations into validated schemas and
caches them for the lifetime of the process.
"""

from rohm.schema.model_schema import ModelSchema, SchemaProperty
from rohm.schema.registry import DEFAULT_REGISTRY, SchemaRegistry


__all__ = ("DEFAULT_REGISTRY", "ModelSchema", "SchemaProperty", "SchemaRegistry")
