##############################################################################
# Copyright (c) Rohm Project developers. See top-level LICENSE and COPYRIGHT
# files for dates and other details. No copyright assignment is required to
# contribute to Rohm.
##############################################################################

"""
The `redis` package holds every Redis-specific part of Rohm: the client
wrapper, index maintenance, the model store, collection proxies, the query
evaluator and the backend that ties them together.
"""
