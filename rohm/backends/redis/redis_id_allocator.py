##############################################################################
# Copyright (c) Rohm Project developers. See top-level LICENSE and COPYRIGHT
# files for dates and other details. No copyright assignment is required to
# contribute to Rohm.
##############################################################################

"""Per-type id allocation backed by a Redis counter."""
import logging

from rohm.backends.redis.redis_client import StoreClient
from rohm.keys import Nest
from rohm.schema.model_schema import ModelSchema


LOG = logging.getLogger(__name__)


class RedisIdAllocator:
    """
    Hands out monotonically increasing ids from the counter key `Type:id`.

    Attributes:
        client (StoreClient): The store client.
    """

    def __init__(self, client: StoreClient):
        self.client: StoreClient = client

    @staticmethod
    def counter_key(schema: ModelSchema) -> str:
        """The key of the id counter of a type."""
        return Nest(schema.type_name).cat("id").key()

    def allocate(self, schema: ModelSchema) -> int:
        """
        Atomically reserve the next id of a type.

        Args:
            schema: The schema of the type.

        Returns:
            The new id, starting at 1.
        """
        new_id = int(self.client.incr(self.counter_key(schema)))
        LOG.debug(f"Allocated id {new_id} for {schema.type_name}.")
        return new_id
