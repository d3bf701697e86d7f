##############################################################################
# Copyright (c) Rohm Project developers. See top-level LICENSE and COPYRIGHT
# files for dates and other details. No copyright assignment is required to
# contribute to Rohm.
##############################################################################

"""
Rohm: a Redis object-hash mapper with secondary indexes.

Models are persisted as Redis hashes and kept in sync with equality and
range indexes so they can be queried by multi-predicate constraints.
"""

import os


__version__ = "0.4.0"
VERSION = __version__
PATH_TO_PROJ = os.path.join(os.path.dirname(__file__), "")
