##############################################################################
# Copyright (c) Rohm Project developers. See top-level LICENSE and COPYRIGHT
# files for dates and other details. No copyright assignment is required to
# contribute to Rohm.
##############################################################################

"""
The `models` package contains the base class for persistable models and the
property declarations that describe how each field is stored and indexed.
"""

from rohm.models.base_model import BaseModel
from rohm.models.properties import Property


__all__ = ("BaseModel", "Property")
