##############################################################################
# Copyright (c) Rohm Project developers. See top-level LICENSE and COPYRIGHT
# files for dates and other details. No copyright assignment is required to
# contribute to Rohm.
##############################################################################

"""
Fixture modules, loaded as pytest plugins by `tests/conftest.py` so that
`conftest.py` itself stays small. Each module groups the fixtures of one
area of the code base (for instance `stores.py` for the Redis store).
"""
